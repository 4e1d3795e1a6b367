"""Tests for BaseAPIClient and CircuitBreaker."""

import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from depositwatch.core.exceptions import CircuitBreakerOpenError, ExternalServiceError
from depositwatch.services.base import BaseAPIClient, CircuitBreaker, CircuitState

BASE_URL = "https://api.example.com"


@pytest.fixture
def client() -> BaseAPIClient:
    return BaseAPIClient(service="example", base_url=BASE_URL, max_attempts=3)


@pytest.fixture
def no_backoff():
    """Skip the real backoff sleeps."""
    with patch("depositwatch.services.base.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestCircuitBreaker:
    """Tests for CircuitBreaker state transitions."""

    def test_opens_after_threshold(self) -> None:
        breaker = CircuitBreaker(failure_threshold=3)
        for _ in range(2):
            breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert breaker.can_execute() is False

    def test_half_open_after_cooldown(self) -> None:
        breaker = CircuitBreaker(failure_threshold=1, cooldown_seconds=30)
        breaker.record_failure()
        breaker.opened_at = time.monotonic() - 31

        assert breaker.can_execute() is True
        assert breaker.state == CircuitState.HALF_OPEN

    def test_failure_in_half_open_reopens(self) -> None:
        breaker = CircuitBreaker(failure_threshold=5)
        breaker.state = CircuitState.HALF_OPEN

        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN

    def test_success_closes(self) -> None:
        breaker = CircuitBreaker(failure_threshold=1)
        breaker.record_failure()
        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_raise_if_open(self) -> None:
        breaker = CircuitBreaker(failure_threshold=1)
        breaker.record_failure()

        with pytest.raises(CircuitBreakerOpenError, match="Next retry in"):
            breaker.raise_if_open()


class TestBaseAPIClient:
    """Tests for BaseAPIClient requests."""

    def test_lazy_initialization(self, client: BaseAPIClient) -> None:
        assert client._client is None
        assert client.timeout == 30.0
        assert client.headers == {}
        assert client.max_attempts == 3

    def test_single_attempt_by_default(self) -> None:
        assert BaseAPIClient(service="example", base_url=BASE_URL).max_attempts == 1

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            BaseAPIClient(service="example", base_url=BASE_URL, max_attempts=0)

    @pytest.mark.asyncio
    async def test_close_cleans_up_client(self, client: BaseAPIClient) -> None:
        mock_httpx_client = AsyncMock()
        client._client = mock_httpx_client

        await client.close()

        mock_httpx_client.aclose.assert_called_once()
        assert client._client is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_on_first_attempt(self, client: BaseAPIClient) -> None:
        route = respx.get(f"{BASE_URL}/ping").mock(
            return_value=httpx.Response(200, json={"ok": True})
        )

        response = await client.get("/ping")

        assert response.json() == {"ok": True}
        assert route.call_count == 1
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_server_errors(
        self, client: BaseAPIClient, no_backoff: AsyncMock
    ) -> None:
        route = respx.get(f"{BASE_URL}/ping").mock(
            side_effect=[httpx.Response(503), httpx.Response(200, json={"ok": True})]
        )

        response = await client.get("/ping")

        assert response.status_code == 200
        assert route.call_count == 2
        no_backoff.assert_awaited_once_with(1)
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_is_not_retried(self, client: BaseAPIClient) -> None:
        route = respx.get(f"{BASE_URL}/ping").mock(return_value=httpx.Response(400))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get("/ping")

        assert exc_info.value.status_code == 400
        assert exc_info.value.service == "example"
        assert route.call_count == 1
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_gives_up_after_max_attempts(
        self, client: BaseAPIClient, no_backoff: AsyncMock
    ) -> None:
        respx.get(f"{BASE_URL}/ping").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ExternalServiceError, match="ConnectError") as exc_info:
            await client.get("/ping")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert [c.args[0] for c in no_backoff.await_args_list] == [1.0, 2.0]
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_open_circuit_blocks_requests(self, no_backoff: AsyncMock) -> None:
        client = BaseAPIClient(
            service="example",
            base_url=BASE_URL,
            max_attempts=3,
            circuit_breaker_threshold=3,
        )
        route = respx.get(f"{BASE_URL}/ping").mock(return_value=httpx.Response(500))

        with pytest.raises(ExternalServiceError):
            await client.get("/ping")
        with pytest.raises(CircuitBreakerOpenError):
            await client.get("/ping")

        assert route.call_count == 3
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_single_attempt_client_does_not_sleep(self, no_backoff: AsyncMock) -> None:
        """
        Given: A client left at one attempt per call
        When: The service answers 503
        Then: One request is sent and the error is raised without any pause
        """
        client = BaseAPIClient(service="example", base_url=BASE_URL)
        route = respx.get(f"{BASE_URL}/ping").mock(return_value=httpx.Response(503))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get("/ping")

        assert exc_info.value.status_code == 503
        assert route.call_count == 1
        no_backoff.assert_not_awaited()
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_opening_circuit_ends_remaining_attempts(self, no_backoff: AsyncMock) -> None:
        client = BaseAPIClient(
            service="example",
            base_url=BASE_URL,
            max_attempts=5,
            circuit_breaker_threshold=2,
        )
        route = respx.get(f"{BASE_URL}/ping").mock(return_value=httpx.Response(500))

        with pytest.raises(ExternalServiceError):
            await client.get("/ping")

        assert route.call_count == 2
        assert client.circuit_breaker.state == CircuitState.OPEN
        await client.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejection_does_not_count_against_circuit(self, client: BaseAPIClient) -> None:
        respx.get(f"{BASE_URL}/ping").mock(return_value=httpx.Response(404))

        with pytest.raises(ExternalServiceError):
            await client.get("/ping")

        assert client.circuit_breaker.failure_count == 0
        await client.close()
