"""In-process event bus.

The manager publishes lifecycle events (a service finished loading) and
subscribers receive them. Delivery happens inside ``publish()``: plain
callbacks run before it returns, coroutine callbacks are scheduled on the
running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union
from uuid import uuid4

logger = logging.getLogger(__name__)

# Type alias for subscriber callbacks
EventCallback = Callable[[dict[str, Any]], Union[Awaitable[None], None]]


@dataclass
class Subscription:
    """Represents an active event subscription."""

    id: str = field(default_factory=lambda: uuid4().hex)
    event_types: list[str] = field(default_factory=list)
    callback: EventCallback | None = None


class EventBus:
    """Synchronous pub/sub bus with optional async subscribers."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()
        self._seq = 0
        self._pending: set[asyncio.Future[Any]] = set()

    def publish(self, event_type: str, payload: dict[str, Any]) -> int:
        """Notify subscribers of an event. Returns the event sequence number.

        A subscriber that raises is logged and skipped; the remaining
        subscribers still receive the event.
        """
        with self._lock:
            self._seq += 1
            seq = self._seq
            subscriptions = list(self._subscriptions)

        event = {
            "seq": seq,
            "event_type": event_type,
            "payload": payload,
        }

        for sub in subscriptions:
            if "*" not in sub.event_types and event_type not in sub.event_types:
                continue
            if sub.callback is None:
                continue
            try:
                result = sub.callback(event)
                if inspect.isawaitable(result):
                    future = asyncio.ensure_future(result)
                    self._pending.add(future)
                    future.add_done_callback(self._on_callback_done)
            except Exception:
                logger.exception(
                    "Error delivering %s to subscription %s", event_type, sub.id
                )

        return seq

    def _on_callback_done(self, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error(
                "Async subscriber failed", exc_info=future.exception()
            )

    def subscribe(
        self,
        event_types: list[str],
        callback: EventCallback,
    ) -> Subscription:
        """Register a callback for the given event types.

        Use ``["*"]`` to subscribe to all events.

        Returns a ``Subscription`` that can be passed to ``unsubscribe()``.
        """
        sub = Subscription(event_types=event_types, callback=callback)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        with self._lock:
            self._subscriptions = [
                s for s in self._subscriptions if s.id != subscription.id
            ]
