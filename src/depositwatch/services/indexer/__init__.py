"""Ledger indexer client and response models."""

from depositwatch.services.indexer.client import IndexerClient
from depositwatch.services.indexer.models import (
    AssetTransferPayload,
    PaymentPayload,
    SearchResult,
    TransactionRecord,
    TxType,
)

__all__ = [
    "AssetTransferPayload",
    "IndexerClient",
    "PaymentPayload",
    "SearchResult",
    "TransactionRecord",
    "TxType",
]
