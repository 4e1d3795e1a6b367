"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from depositwatch.api.routes import accounts, health, updates
from depositwatch.config.logging import configure_logging
from depositwatch.config.settings import get_settings
from depositwatch.core.deposits.address import is_valid_address
from depositwatch.core.exceptions import ConfigurationError
from depositwatch.services.indexer.client import IndexerClient
from depositwatch.workers.deposit_watcher import DepositWatcher

log = structlog.get_logger()


def build_deposit_watcher() -> DepositWatcher:
    """Create the watcher and its indexer client from settings.

    Raises:
        ConfigurationError: If a configured address is malformed.
    """
    settings = get_settings()

    for setting, addresses in (
        ("WATCHED_ADDRESSES", settings.watched_address_list),
        ("IGNORED_SENDERS", settings.ignored_sender_list),
    ):
        invalid = [a for a in addresses if not is_valid_address(a)]
        if invalid:
            raise ConfigurationError(f"{setting} contains invalid addresses: {invalid}")

    return DepositWatcher(
        indexer=IndexerClient(settings),
        addresses=settings.watched_address_list,
        ignore_senders=settings.ignored_sender_list,
        interval_ms=settings.poll_interval_ms,
    )


def create_app(watcher: DepositWatcher | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        watcher: Pre-built watcher to serve; built from settings on startup
            when omitted.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        log.info("application_starting")
        configure_logging()

        deposit_watcher = watcher or build_deposit_watcher()
        app.state.deposit_watcher = deposit_watcher
        deposit_watcher.start()
        log.info("application_started")

        yield

        log.info("application_stopping")
        await deposit_watcher.stop()
        close = getattr(deposit_watcher.indexer, "close", None)
        if close is not None:
            await close()
        app.state.deposit_watcher = None
        log.info("application_stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Exactly-once deposit notifications for watched ledger addresses",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.deposit_watcher = None

    app.include_router(health.router)
    app.include_router(accounts.router)
    app.include_router(updates.router)

    return app
