"""Shared pytest fixtures for depositwatch tests.

This module provides fixtures for:
- Test environment variables and settings cache isolation
- Valid ledger addresses
- A mocked indexer and a watcher wired to it

Usage:
    @pytest.mark.asyncio
    async def test_something(watcher, mock_indexer):
        mock_indexer.search.return_value = SearchResult(records=[], current_round=1)
        await watcher.poll_once()
"""

import os
from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest

from depositwatch.config.settings import get_settings
from depositwatch.core.deposits.address import encode_address
from depositwatch.services.indexer.models import SearchResult
from depositwatch.workers.deposit_watcher import DepositWatcher
from tests.factories.transaction import generate_address

# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """Set up test environment variables.

    Loads .env file first, then sets defaults for any missing variables.
    """
    from dotenv import load_dotenv

    original_env = os.environ.copy()

    load_dotenv()

    os.environ.setdefault("INDEXER_URL", "http://indexer.test")
    os.environ.setdefault("POLL_INTERVAL_MS", "1000")

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Drop the cached Settings so each test sees its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Addresses
# =============================================================================


@pytest.fixture
def zero_address() -> str:
    """Address of the all-zero public key."""
    return encode_address(bytes(32))


@pytest.fixture
def deposit_address() -> str:
    """A valid, randomly generated deposit address."""
    return generate_address()


@pytest.fixture
def hot_wallet_address() -> str:
    """A valid address standing in for our own outgoing wallet."""
    return generate_address()


# =============================================================================
# Watcher Fixtures
# =============================================================================


@pytest.fixture
def mock_indexer() -> AsyncMock:
    """Mock indexer client.

    Returns an empty page at round 1 unless a test overrides
    ``search.return_value`` or ``search.side_effect``.
    """
    mock = AsyncMock()
    mock.search = AsyncMock(return_value=SearchResult(records=[], current_round=1))
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def watcher(
    mock_indexer: AsyncMock,
    deposit_address: str,
    hot_wallet_address: str,
) -> DepositWatcher:
    """Watcher on ``deposit_address`` ignoring ``hot_wallet_address``."""
    return DepositWatcher(
        indexer=mock_indexer,
        addresses=[deposit_address],
        ignore_senders=[hot_wallet_address],
        interval_ms=10,
    )


@pytest.fixture
def start_ts(watcher: DepositWatcher) -> int:
    """Watcher start time as whole unix seconds (rounded up)."""
    return int(watcher.start_time.timestamp()) + 1


# =============================================================================
# Markers for Test Selection
# =============================================================================

# Usage:
# pytest -m unit          # Run only unit tests
# pytest -m integration   # Run only integration tests
