"""
Ride event fan-out to presentation listeners.

The tracking controller emits a ``RideEvent`` on every lifecycle change and
every metrics update. Listeners are plain async callables; a failing
listener is logged and never interrupts the ride. ``publish_ride_event``
forwards events over Redis Pub/Sub for out-of-process subscribers.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from core.redis import get_shared_redis
from tracking.models import RideEvent

logger = logging.getLogger(__name__)

# Redis channel name for ride updates
RIDE_UPDATES_CHANNEL = "ride_updates"

RideEventListener = Callable[[RideEvent], Awaitable[None]]


class RideEventBus:
    """Ordered set of async listeners notified one after another."""

    def __init__(self) -> None:
        self._listeners: list[RideEventListener] = []

    def subscribe(self, listener: RideEventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: RideEventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, event: RideEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception(
                    "Ride event listener failed for %s event (session %s)",
                    event.event_type,
                    event.session_id,
                )

    def __len__(self) -> int:
        return len(self._listeners)


async def publish_ride_event(
    event: RideEvent,
    *,
    channel: str = RIDE_UPDATES_CHANNEL,
) -> bool:
    """
    Publish a ride event to Redis Pub/Sub.

    Returns:
        True if published successfully, False otherwise.
    """
    try:
        client = await get_shared_redis()
        subscribers = await client.publish(channel, event.model_dump_json())
        logger.debug(
            "Published %s event for %s (state=%s) to %d subscriber(s)",
            event.event_type,
            event.session_id,
            event.state.value,
            subscribers,
        )
    except Exception:
        logger.exception("Failed to publish ride event for %s", event.session_id)
        return False
    else:
        return True


class RedisRideEventPublisher:
    """Listener that forwards every ride event to a Redis channel."""

    def __init__(self, channel: str = RIDE_UPDATES_CHANNEL) -> None:
        self.channel = channel

    async def __call__(self, event: RideEvent) -> None:
        await publish_ride_event(event, channel=self.channel)


__all__ = [
    "RIDE_UPDATES_CHANNEL",
    "RedisRideEventPublisher",
    "RideEventBus",
    "RideEventListener",
    "publish_ride_event",
]
