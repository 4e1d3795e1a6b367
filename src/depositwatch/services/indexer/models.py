"""Pydantic models for indexer transaction search responses.

Only the fields the deposit watcher reads are modelled; everything else in
the indexer payload is ignored.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from depositwatch.core.exceptions import MalformedRecordError


class TxType(str, Enum):
    """Transaction types that can carry a deposit."""

    PAYMENT = "pay"  # Native currency transfer
    ASSET_TRANSFER = "axfer"  # Tokenized asset transfer


class PaymentPayload(BaseModel):
    """The ``payment-transaction`` section of a record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    receiver: str
    amount: int = Field(..., ge=0)


class AssetTransferPayload(BaseModel):
    """The ``asset-transfer-transaction`` section of a record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    receiver: str
    amount: int = Field(..., ge=0)
    asset_id: int = Field(..., alias="asset-id")


class TransactionRecord(BaseModel):
    """One transaction as returned by the indexer search endpoint.

    Attributes:
        id: Transaction id.
        sender: Sending address.
        tx_type: Raw type string (``pay``, ``axfer``, ``appl``, ...).
        confirmed_round: Round the transaction was confirmed in.
        round_time: Unix timestamp (seconds) of the confirming block.
        payment: Payload for ``pay`` transactions.
        asset_transfer: Payload for ``axfer`` transactions.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(..., min_length=1)
    sender: str
    tx_type: str = Field(..., alias="tx-type")
    confirmed_round: int = Field(..., alias="confirmed-round", ge=0)
    round_time: int = Field(..., alias="round-time", ge=0)
    payment: PaymentPayload | None = Field(default=None, alias="payment-transaction")
    asset_transfer: AssetTransferPayload | None = Field(
        default=None, alias="asset-transfer-transaction"
    )

    @classmethod
    def from_raw(cls, raw: Any) -> "TransactionRecord":
        """Parse a raw indexer record.

        Raises:
            MalformedRecordError: If a required field is missing or invalid.
        """
        try:
            return cls.model_validate(raw)
        except PydanticValidationError as e:
            record_id = raw.get("id") if isinstance(raw, dict) else None
            raise MalformedRecordError(
                f"Invalid transaction record: {e.error_count()} error(s)",
                record_id=record_id,
            ) from e

    @property
    def round_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.round_time, tz=UTC)

    @property
    def is_transfer(self) -> bool:
        """True for the two types that can carry a deposit."""
        return self.tx_type in (TxType.PAYMENT.value, TxType.ASSET_TRANSFER.value)

    @property
    def is_asset_transfer(self) -> bool:
        return self.tx_type == TxType.ASSET_TRANSFER.value

    @property
    def transfer(self) -> PaymentPayload | AssetTransferPayload:
        """Type-specific payload.

        Raises:
            MalformedRecordError: If the payload matching tx_type is absent.
        """
        payload = self.asset_transfer if self.is_asset_transfer else self.payment
        if payload is None:
            raise MalformedRecordError(
                f"Transaction of type {self.tx_type!r} has no transfer payload",
                record_id=self.id,
            )
        return payload


class SearchResult(BaseModel):
    """Result of a paginated transaction search.

    Records are kept raw so that a single malformed one can be skipped
    without losing the rest of the page. When the page limit cut the search
    short, ``truncated`` is set and ``current_round`` is the round of the
    last record fetched, so resuming from it loses nothing.
    """

    records: list[Any] = Field(default_factory=list)
    current_round: int = Field(..., ge=0)
    truncated: bool = False
