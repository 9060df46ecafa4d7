"""In-process event bus fanning crawl, review and upload events out to subscribers."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from docgate.models.base import utcnow
from docgate.observability.metrics import EVENTS_DROPPED, WS_SUBSCRIBERS

EventType = Literal[
    "task.status",
    "log.append",
    "chunk.update",
    "upload.completed",
    "review.update",
    "heartbeat",
]

_LOG_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40, "critical": 50}


@dataclass
class Event:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_json(self) -> str:
        return json.dumps(
            {"event": self.event, "data": self.data, "timestamp": self.timestamp.isoformat()},
            default=str,
            ensure_ascii=False,
        )


class Subscription:
    """A bounded per-subscriber queue. Overflow drops the newest event."""

    def __init__(self, bus: "EventBus", max_size: int):
        self._bus = bus
        self.queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=max_size)
        self.dropped = 0

    async def get(self, timeout: float | None = None) -> Event | None:
        """Next event, or None if `timeout` elapses first."""
        if timeout is None:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class EventBus:
    """
    Fan-out of events to any number of subscribers.

    Publishing never blocks and never raises: a subscriber whose queue is full
    simply misses the event.
    """

    def __init__(self, max_queue_size: int = 1000):
        self.max_queue_size = max_queue_size
        self._subscribers: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self.max_queue_size)
        self._subscribers.append(sub)
        WS_SUBSCRIBERS.set(len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        WS_SUBSCRIBERS.set(len(self._subscribers))

    def publish(self, event: EventType, data: dict[str, Any] | None = None) -> int:
        """Deliver to every subscriber with room. Returns how many received it."""
        message = Event(event=event, data=data or {})
        delivered = 0
        for sub in list(self._subscribers):
            try:
                sub.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                sub.dropped += 1
                EVENTS_DROPPED.inc()
        return delivered


class LogForwarder:
    """
    structlog processor that mirrors log entries onto the bus as log.append events.

    Must run after `add_log_level` so the level is known.
    """

    def __init__(self, bus: EventBus, min_level: str = "info"):
        self.bus = bus
        self.min_level = _LOG_LEVELS.get(min_level, 20)

    def __call__(self, logger, method_name: str, event_dict: dict) -> dict:
        level = event_dict.get("level", method_name)
        if _LOG_LEVELS.get(level, 20) < self.min_level or not self.bus.subscriber_count:
            return event_dict

        context = {
            key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
            for key, value in event_dict.items()
            if key not in ("event", "level", "timestamp")
        }
        self.bus.publish(
            "log.append",
            {
                "level": level,
                "message": str(event_dict.get("event", "")),
                "source_id": event_dict.get("source_id"),
                "context": context,
            },
        )
        return event_dict


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the process-wide event bus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
