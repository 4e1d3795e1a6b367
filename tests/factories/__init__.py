"""Test data factories using factory_boy.

These factories generate raw indexer transaction records, shaped exactly
like the JSON the indexer returns.
"""

from tests.factories.transaction import (
    AssetTransferPayloadFactory,
    AssetTransferRecordFactory,
    PaymentPayloadFactory,
    PaymentRecordFactory,
    generate_address,
    generate_tx_id,
)

__all__ = [
    "AssetTransferPayloadFactory",
    "AssetTransferRecordFactory",
    "PaymentPayloadFactory",
    "PaymentRecordFactory",
    "generate_address",
    "generate_tx_id",
]
