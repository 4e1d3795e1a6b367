"""Indexer client for transaction search.

This module provides an async client for the ledger indexer's
``GET /v2/transactions`` endpoint. The client extends BaseAPIClient to
inherit retry with exponential backoff and the circuit breaker, and folds
every failure into TransientQueryError so that the poll loop has a single
error type to recover from.
"""

from datetime import datetime
from typing import Any

import structlog

from depositwatch.config.settings import Settings, get_settings
from depositwatch.core.exceptions import (
    CircuitBreakerOpenError,
    ExternalServiceError,
    TransientQueryError,
)
from depositwatch.services.base import BaseAPIClient
from depositwatch.services.indexer.models import SearchResult

log = structlog.get_logger(__name__)

SEARCH_PATH = "/v2/transactions"
TOKEN_HEADER = "X-Indexer-API-Token"


class IndexerClient(BaseAPIClient):
    """Async client for the indexer transaction search.

    Example:
        client = IndexerClient()
        result = await client.search(min_round=10)
        for raw in result.records:
            ...
        await client.close()
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        token = settings.indexer_token.get_secret_value()
        if token:
            headers[TOKEN_HEADER] = token

        super().__init__(
            service="indexer",
            base_url=settings.indexer_url,
            timeout=settings.indexer_timeout,
            headers=headers,
            max_attempts=settings.indexer_max_attempts,
            circuit_breaker_threshold=settings.circuit_breaker_threshold,
            circuit_breaker_cooldown=settings.circuit_breaker_cooldown,
        )
        self.page_size = settings.indexer_page_size
        self.max_pages = settings.indexer_max_pages
        log.info("indexer_client_initialized", base_url=settings.indexer_url)

    async def search(
        self,
        min_round: int | None = None,
        after_time: datetime | None = None,
    ) -> SearchResult:
        """Search transactions from a round or a point in time onwards.

        Exactly one bound must be given. Pages are followed through
        ``next-token`` until exhausted; the reported current round is the one
        from the first page, so the cursor never runs ahead of the data.
        If ``max_pages`` is reached first, the result is marked truncated and
        reports the round of the last record fetched instead, so a search
        resumed from that round picks up every record left behind.

        Args:
            min_round: Lowest confirmed round to return (inclusive).
            after_time: Only return transactions confirmed after this time.

        Returns:
            SearchResult with the raw records in ledger order.

        Raises:
            ValueError: If neither or both bounds are given.
            TransientQueryError: If the request fails or the envelope is malformed.
        """
        if (min_round is None) == (after_time is None):
            msg = "Exactly one of min_round or after_time must be provided"
            raise ValueError(msg)

        params: dict[str, Any] = {"limit": self.page_size}
        if min_round is not None:
            params["min-round"] = min_round
        else:
            params["after-time"] = after_time.isoformat()

        records: list[Any] = []
        current_round: int | None = None
        truncated = False

        for page in range(self.max_pages):
            body = await self._fetch_page(params)
            page_round, transactions, next_token = self._unpack(body)

            if current_round is None:
                current_round = page_round
            records.extend(transactions)

            if not next_token or not transactions:
                break
            params = {**params, "next": next_token}
        else:
            truncated = True
            current_round = min(current_round, self._resume_round(records))
            log.warning(
                "indexer_search_page_limit_reached",
                pages=self.max_pages,
                record_count=len(records),
                resume_round=current_round,
            )

        log.debug(
            "indexer_search_completed",
            min_round=min_round,
            after_time=after_time.isoformat() if after_time else None,
            record_count=len(records),
            current_round=current_round,
            pages=page + 1,
            truncated=truncated,
        )
        return SearchResult(records=records, current_round=current_round, truncated=truncated)

    @staticmethod
    def _resume_round(records: list[Any]) -> int:
        """Confirmed round of the last readable record fetched.

        Raises:
            TransientQueryError: If no fetched record carries a round.
        """
        for raw in reversed(records):
            confirmed = raw.get("confirmed-round") if isinstance(raw, dict) else None
            if isinstance(confirmed, int) and not isinstance(confirmed, bool):
                return confirmed
        raise TransientQueryError("Search hit the page limit without a resumable round")

    async def _fetch_page(self, params: dict[str, Any]) -> Any:
        try:
            response = await self.get(SEARCH_PATH, params=params)
        except CircuitBreakerOpenError as e:
            raise TransientQueryError(str(e)) from e
        except ExternalServiceError as e:
            raise TransientQueryError(str(e), status_code=e.status_code) from e

        try:
            return response.json()
        except ValueError as e:
            raise TransientQueryError(f"Response is not valid JSON: {e}") from e

    @staticmethod
    def _unpack(body: Any) -> tuple[int, list[Any], str | None]:
        if not isinstance(body, dict):
            raise TransientQueryError("Response body is not a JSON object")

        current_round = body.get("current-round")
        if not isinstance(current_round, int) or isinstance(current_round, bool):
            raise TransientQueryError("Response is missing 'current-round'")

        transactions = body.get("transactions")
        if not isinstance(transactions, list):
            raise TransientQueryError("Response is missing 'transactions'")

        return current_round, transactions, body.get("next-token")
