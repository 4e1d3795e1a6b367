"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from depositwatch.config.settings import Settings, get_settings
from depositwatch.workers.deposit_watcher import DepositWatcher


def get_deposit_watcher(request: Request) -> DepositWatcher:
    """Get the deposit watcher started by the application lifespan."""
    watcher: DepositWatcher | None = getattr(request.app.state, "deposit_watcher", None)
    if watcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deposit watcher is not running",
        )
    return watcher


SettingsDep = Annotated[Settings, Depends(get_settings)]
DepositWatcherDep = Annotated[DepositWatcher, Depends(get_deposit_watcher)]
