"""Event bridge — fans backend push channels out to in-process subscribers.

The transport (HTTP SSE stream, in-memory backend, ...) hands raw channel
payloads to the callback from ``make_callback``. The bridge normalizes them
into typed events and queues them for every live subscription. It owns no
business logic and never retries the transport.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from trustagent.adapters.events import BridgeEvent, normalize

logger = logging.getLogger(__name__)

ChannelCallback = Callable[[Any], Awaitable[None]]

_STOP = object()


class Subscription:
    """Cancellable stream of bridge events, consumed with ``async for``.

    After ``cancel()`` nothing more is delivered: queued events are dropped
    and a pending ``__anext__`` finishes the iteration.
    """

    def __init__(self, bridge: EventBridge, maxsize: int) -> None:
        self._bridge = bridge
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._bridge._unsubscribe(self)
        while not self._queue.empty():
            self._queue.get_nowait()
        # Wake a consumer blocked in __anext__
        self._queue.put_nowait(_STOP)

    def _offer(self, event: BridgeEvent) -> None:
        if self._cancelled:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(
                "Subscription queue full, dropping: %s (queue size: %d)",
                event.channel,
                self._queue.qsize(),
            )

    async def get(self) -> BridgeEvent:
        """Wait for the next event. Raises StopAsyncIteration once cancelled."""
        if self._cancelled:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _STOP or self._cancelled:
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> BridgeEvent:
        return await self.get()


class EventBridge:
    """Normalizes push-channel payloads and fans them out to subscribers."""

    def __init__(self, queue_size: int = 5000) -> None:
        self._queue_size = queue_size
        self._subscriptions: list[Subscription] = []
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self._queue_size)
        if self._closed:
            subscription.cancel()
            return subscription
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def make_callback(self, channel: str) -> ChannelCallback:
        """Return the async callback a transport calls for *channel* payloads."""
        async def _callback(payload: Any = None) -> None:
            self.publish_raw(channel, payload)

        return _callback

    def publish_raw(self, channel: str, payload: Any = None) -> None:
        """Normalize and deliver one raw payload. Malformed payloads are dropped."""
        if self._closed:
            return
        try:
            event = normalize(channel, payload)
        except ValueError as exc:
            logger.warning("Dropping %s payload %r: %s", channel, payload, exc)
            return
        self.publish(event)

    def publish(self, event: BridgeEvent) -> None:
        if self._closed:
            return
        logger.debug("EventBridge: %s -> %d subscriber(s)", event, len(self._subscriptions))
        for subscription in list(self._subscriptions):
            subscription._offer(event)

    def close(self) -> None:
        """Cancel every subscription and stop accepting events permanently."""
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription.cancel()
