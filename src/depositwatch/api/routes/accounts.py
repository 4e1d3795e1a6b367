"""Deposit account endpoints.

Key generation and asset opt-in belong to the wallet service; these routes
only expose and extend the set of addresses the watcher reports on.
"""

import structlog
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from depositwatch.api.dependencies import DepositWatcherDep
from depositwatch.core.deposits.address import require_valid_address
from depositwatch.core.exceptions import ValidationError

log = structlog.get_logger(__name__)

router = APIRouter(tags=["accounts"])


class AccountCreate(BaseModel):
    """Request body for registering a deposit address."""

    address: str = Field(..., min_length=1)


class AccountResponse(BaseModel):
    address: str
    added: bool


@router.get("/accounts")
async def list_accounts(watcher: DepositWatcherDep) -> list[str]:
    """List watched deposit addresses."""
    return sorted(watcher.watch_set.snapshot())


@router.post(
    "/accounts",
    status_code=status.HTTP_201_CREATED,
    response_model=AccountResponse,
)
async def create_account(body: AccountCreate, watcher: DepositWatcherDep) -> AccountResponse:
    """Start watching a deposit address.

    Idempotent: registering an address twice returns ``added: false``.
    """
    try:
        address = require_valid_address(body.address)
    except ValidationError as e:
        log.warning("account_address_invalid", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        ) from e

    added = watcher.add_watched_address(address)
    return AccountResponse(address=address, added=added)
