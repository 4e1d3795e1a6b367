"""Deposit event models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DepositKind(str, Enum):
    """Event kinds published by the deposit watcher."""

    NATIVE = "deposit_native"  # Native currency transfer
    ASSET = "deposit_asset"  # Tokenized asset transfer


class DepositEvent(BaseModel):
    """A single detected deposit.

    Immutable once constructed. ``asset_id`` is set only for
    tokenized-asset transfers.

    Attributes:
        transaction_id: Ledger transaction id.
        sender: Sending address.
        receiver: Watched address that received the deposit.
        amount: Amount in base units (microunits or asset base units).
        asset_id: Asset id for asset transfers, None for native transfers.
    """

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(..., min_length=1)
    sender: str
    receiver: str
    amount: int = Field(..., ge=0)
    asset_id: int | None = None

    @property
    def kind(self) -> DepositKind:
        """Event kind derived from the presence of an asset id."""
        return DepositKind.ASSET if self.asset_id is not None else DepositKind.NATIVE
