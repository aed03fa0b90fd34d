from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from tracking.models import RideEvent, RideMetrics, SessionState
from tracking.services import events
from tracking.services.events import RedisRideEventPublisher, RideEventBus


class _FakePublisher:
    def __init__(self, subscribers: int = 1) -> None:
        self.published: list[tuple[str, str]] = []
        self.subscribers = subscribers

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return self.subscribers


def _event(event_type: str = "state") -> RideEvent:
    return RideEvent(
        event_type=event_type,
        state=SessionState.ACTIVE,
        session_id="ride-1",
        metrics=RideMetrics(distance_meters=120.5, points_recorded=3),
    )


@pytest.mark.asyncio
async def test_bus_notifies_listeners_in_subscription_order() -> None:
    bus = RideEventBus()
    calls: list[str] = []

    async def first(event: RideEvent) -> None:
        calls.append(f"first:{event.event_type}")

    async def second(event: RideEvent) -> None:
        calls.append(f"second:{event.event_type}")

    bus.subscribe(first)
    bus.subscribe(second)
    bus.subscribe(first)

    await bus.emit(_event("metrics"))

    assert calls == ["first:metrics", "second:metrics"]
    assert len(bus) == 2


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others() -> None:
    bus = RideEventBus()
    received = AsyncMock()

    async def broken(_event: RideEvent) -> None:
        msg = "display went away"
        raise RuntimeError(msg)

    bus.subscribe(broken)
    bus.subscribe(received)

    await bus.emit(_event())

    received.assert_awaited_once()


@pytest.mark.asyncio
async def test_unsubscribed_listener_is_not_called() -> None:
    bus = RideEventBus()
    listener = AsyncMock()
    bus.subscribe(listener)
    bus.unsubscribe(listener)
    bus.unsubscribe(listener)

    await bus.emit(_event())

    listener.assert_not_awaited()
    assert len(bus) == 0


@pytest.mark.asyncio
async def test_publish_ride_event_sends_json_to_channel(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = _FakePublisher(subscribers=2)
    monkeypatch.setattr(events, "get_shared_redis", AsyncMock(return_value=client))

    assert await events.publish_ride_event(_event()) is True

    channel, message = client.published[0]
    payload = json.loads(message)
    assert channel == events.RIDE_UPDATES_CHANNEL
    assert payload["session_id"] == "ride-1"
    assert payload["state"] == "active"
    assert payload["metrics"]["distance_meters"] == 120.5


@pytest.mark.asyncio
async def test_publish_ride_event_returns_false_when_redis_unavailable(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        events,
        "get_shared_redis",
        AsyncMock(side_effect=ConnectionError("redis down")),
    )

    assert await events.publish_ride_event(_event()) is False


@pytest.mark.asyncio
async def test_redis_publisher_uses_its_channel(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _FakePublisher()
    monkeypatch.setattr(events, "get_shared_redis", AsyncMock(return_value=client))
    publisher = RedisRideEventPublisher(channel="rides:test")

    await publisher(_event("metrics"))

    assert client.published[0][0] == "rides:test"
