"""Tests for EventEmitter."""

import pytest

from depositwatch.core.deposits.emitter import EventEmitter
from depositwatch.core.deposits.models import DepositEvent, DepositKind
from depositwatch.core.exceptions import SubscriberError


@pytest.fixture
def native_event() -> DepositEvent:
    return DepositEvent(transaction_id="tx1", sender="B", receiver="A", amount=500)


class TestEventEmitter:
    """Tests for subscription and fan-out."""

    def test_emit_reaches_subscribers_in_order(self, native_event: DepositEvent) -> None:
        emitter = EventEmitter()
        calls: list[str] = []
        emitter.subscribe(DepositKind.NATIVE, lambda e: calls.append("first"))
        emitter.subscribe(DepositKind.NATIVE, lambda e: calls.append("second"))

        failures = emitter.emit(DepositKind.NATIVE, native_event)

        assert calls == ["first", "second"]
        assert failures == []

    def test_emit_only_matching_kind(self, native_event: DepositEvent) -> None:
        emitter = EventEmitter()
        asset_calls: list[DepositEvent] = []
        emitter.subscribe("deposit_asset", asset_calls.append)

        emitter.emit("deposit_native", native_event)

        assert asset_calls == []

    def test_failing_subscriber_is_isolated(self, native_event: DepositEvent) -> None:
        """
        Given: Three subscribers, the middle one raising
        When: An event is emitted
        Then: The others still receive it and the failure is reported
        """
        emitter = EventEmitter()
        received: list[DepositEvent] = []

        def broken(_event: DepositEvent) -> None:
            raise RuntimeError("boom")

        emitter.subscribe(DepositKind.NATIVE, received.append)
        emitter.subscribe(DepositKind.NATIVE, broken)
        emitter.subscribe(DepositKind.NATIVE, received.append)

        failures = emitter.emit(DepositKind.NATIVE, native_event)

        assert received == [native_event, native_event]
        assert len(failures) == 1
        assert isinstance(failures[0], SubscriberError)
        assert failures[0].kind == "deposit_native"
        assert isinstance(failures[0].__cause__, RuntimeError)

    def test_unsubscribe(self, native_event: DepositEvent) -> None:
        emitter = EventEmitter()
        received: list[DepositEvent] = []
        emitter.subscribe(DepositKind.NATIVE, received.append)

        assert emitter.unsubscribe(DepositKind.NATIVE, received.append) is True
        assert emitter.unsubscribe(DepositKind.NATIVE, received.append) is False
        emitter.emit(DepositKind.NATIVE, native_event)

        assert received == []
        assert emitter.listener_count(DepositKind.NATIVE) == 0

    def test_unsubscribe_during_emit_does_not_skip_others(
        self, native_event: DepositEvent
    ) -> None:
        emitter = EventEmitter()
        calls: list[str] = []

        def once(_event: DepositEvent) -> None:
            calls.append("once")
            emitter.unsubscribe(DepositKind.NATIVE, once)

        emitter.subscribe(DepositKind.NATIVE, once)
        emitter.subscribe(DepositKind.NATIVE, lambda e: calls.append("always"))

        emitter.emit(DepositKind.NATIVE, native_event)
        emitter.emit(DepositKind.NATIVE, native_event)

        assert calls == ["once", "always", "always"]

    def test_unknown_kind_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            EventEmitter().subscribe("deposit_nft", print)
