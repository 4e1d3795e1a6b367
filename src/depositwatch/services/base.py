"""Base HTTP client with a circuit breaker.

This module provides:
- CircuitState enum for circuit breaker states
- CircuitBreaker for tracking consecutive failures of one service
- BaseAPIClient, a lazily created httpx.AsyncClient behind the breaker

A poll-driven caller sends one attempt per call and lets its own schedule
do the retrying; ``max_attempts`` above one adds short in-call retries for
callers without such a schedule.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog

from depositwatch.core.exceptions import CircuitBreakerOpenError, ExternalServiceError

log = structlog.get_logger(__name__)

MAX_BACKOFF_SECONDS = 4.0


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Requests allowed
    OPEN = "open"  # Requests blocked
    HALF_OPEN = "half_open"  # One trial request allowed


def is_retryable_status(status_code: int) -> bool:
    """True for responses worth asking again: throttling and server errors."""
    return status_code == 429 or status_code >= 500


@dataclass
class CircuitBreaker:
    """Opens after ``failure_threshold`` consecutive failures.

    While open, calls are refused until ``cooldown_seconds`` have passed
    since the circuit opened. The next call is then let through as a trial
    (half-open): success closes the circuit, failure opens it again for a
    fresh cooldown.
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 30
    failure_count: int = field(default=0, init=False)
    opened_at: float | None = field(default=None, init=False)
    state: CircuitState = field(default=CircuitState.CLOSED, init=False)

    def record_success(self) -> None:
        if self.state != CircuitState.CLOSED:
            log.info("circuit_breaker_closed", previous_state=self.state.value)
        self.failure_count = 0
        self.opened_at = None
        self.state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN:
            self._open()
            log.warning("circuit_breaker_reopened", failure_count=self.failure_count)
        elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
            self._open()
            log.warning(
                "circuit_breaker_opened",
                failure_count=self.failure_count,
                threshold=self.failure_threshold,
            )

    def _open(self) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = time.monotonic()

    def seconds_until_half_open(self) -> float:
        if self.state != CircuitState.OPEN or self.opened_at is None:
            return 0.0
        elapsed = time.monotonic() - self.opened_at
        return max(0.0, self.cooldown_seconds - elapsed)

    def can_execute(self) -> bool:
        """Check whether a request may be sent now.

        An OPEN circuit whose cooldown has elapsed moves to HALF_OPEN.
        """
        if self.state != CircuitState.OPEN:
            return True
        if self.seconds_until_half_open() > 0:
            return False
        self.state = CircuitState.HALF_OPEN
        log.info("circuit_breaker_half_open")
        return True

    def raise_if_open(self) -> None:
        """Raise CircuitBreakerOpenError if requests are currently blocked."""
        if not self.can_execute():
            raise CircuitBreakerOpenError(
                f"Circuit breaker is open. Next retry in "
                f"{self.seconds_until_half_open():.1f} seconds."
            )


class BaseAPIClient:
    """Shared plumbing for the service clients.

    Attributes:
        service: Name used in errors and log lines.
        base_url: Base URL for all requests.
        timeout: Request timeout in seconds.
        headers: Default headers for all requests.
        max_attempts: HTTP attempts per call. Only 429, 5xx and transport
            errors are attempted again; other error responses fail at once.
    """

    def __init__(
        self,
        service: str,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        max_attempts: int = 1,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: float = 30,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)

        self.service = service
        self.base_url = base_url
        self.timeout = timeout
        self.headers = headers or {}
        self.max_attempts = max_attempts
        self._client: httpx.AsyncClient | None = None
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_breaker_threshold,
            cooldown_seconds=circuit_breaker_cooldown,
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
            )
            log.debug("httpx_client_created", service=self.service, base_url=self.base_url)
        return self._client

    async def close(self) -> None:
        """Close the httpx client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.debug("httpx_client_closed", service=self.service)

    @staticmethod
    def backoff_seconds(attempt: int) -> float:
        """Pause before ``attempt`` (2, 3, ...): 1s, 2s, 4s, capped."""
        return min(2.0 ** (attempt - 2), MAX_BACKOFF_SECONDS)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request through the circuit breaker.

        Args:
            method: HTTP method.
            path: Request path, appended to base_url.
            **kwargs: Passed through to httpx.

        Returns:
            The successful httpx.Response.

        Raises:
            CircuitBreakerOpenError: If the circuit is open.
            ExternalServiceError: On an error response or transport failure
                once the attempts are used up.
        """
        self._circuit_breaker.raise_if_open()
        client = await self._get_client()

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await client.request(method, path, **kwargs)
            except httpx.RequestError as e:
                error = ExternalServiceError(
                    service=self.service, message=f"{type(e).__name__}: {e}"
                )
                error.__cause__ = e
            else:
                if response.is_success:
                    self._circuit_breaker.record_success()
                    return response

                error = ExternalServiceError(
                    service=self.service,
                    message=f"HTTP {response.status_code} for {method} {path}",
                    status_code=response.status_code,
                )
                if not is_retryable_status(response.status_code):
                    # Rejections do not count against the circuit
                    log.warning(
                        "request_rejected",
                        service=self.service,
                        method=method,
                        path=path,
                        status_code=response.status_code,
                    )
                    raise error

            self._circuit_breaker.record_failure()
            log.warning(
                "request_failed",
                service=self.service,
                method=method,
                path=path,
                status_code=error.status_code,
                error=str(error),
                attempt=attempt,
                max_attempts=self.max_attempts,
            )

            if attempt >= self.max_attempts or not self._circuit_breaker.can_execute():
                raise error
            await asyncio.sleep(self.backoff_seconds(attempt + 1))

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", path, **kwargs)
