"""EventBus for broadcasting session state changes.

Feeds the presentation layer over Server-Sent Events and in-process
subscribers. Events: session_registered, session_destroyed,
session_state_changed, hook_received.
"""

import json
import logging
import queue
import threading
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """An event to be broadcast."""

    event_type: str
    data: dict
    timestamp: datetime = field(default_factory=datetime.now)
    id: str | None = None

    def to_sse(self) -> str:
        """Format the event as an SSE message.

        event: <event_type>
        data: <json_data>
        id: <optional_id>
        """
        lines = []
        if self.event_type:
            lines.append(f"event: {self.event_type}")
        lines.append(f"data: {json.dumps(self.data, default=str)}")
        if self.id:
            lines.append(f"id: {self.id}")
        lines.append("")
        return "\n".join(lines) + "\n"


class EventBus:
    """Thread-safe fan-out of events to callbacks and SSE clients.

    Keeps a small buffer of recent events so a dashboard that connects late
    still sees the latest state of every pane.
    """

    def __init__(self, buffer_size: int = 100, queue_size: int = 100):
        """Initialize the EventBus.

        Args:
            buffer_size: Number of recent events replayed to new SSE clients.
            queue_size: Per-client queue length before the client is dropped.
        """
        self._buffer_size = buffer_size
        self._queue_size = queue_size
        self._buffer: list[Event] = []
        self._subscribers: dict[str, list[Callable[[Event], None]]] = {}
        self._queues: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._counter = 0

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        """Subscribe to an event type, or "*" for everything."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        with self._lock:
            if event_type in self._subscribers:
                self._subscribers[event_type] = [
                    cb for cb in self._subscribers[event_type] if cb != callback
                ]

    def emit(self, event_type: str, data: dict) -> Event:
        """Deliver an event to subscribers and SSE clients.

        Callback errors are logged and do not stop delivery to others.

        Returns:
            The created Event.
        """
        with self._lock:
            self._counter += 1
            event = Event(event_type=event_type, data=data, id=str(self._counter))

            self._buffer.append(event)
            if len(self._buffer) > self._buffer_size:
                self._buffer = self._buffer[-self._buffer_size :]

            callbacks = self._subscribers.get(event_type, []) + self._subscribers.get("*", [])

            dead = []
            for q in self._queues:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._queues.remove(q)

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"[EventBus] Subscriber error for {event_type}: {e}")

        return event

    def get_sse_stream(
        self,
        include_buffer: bool = True,
        timeout: float = 30.0,
    ) -> Generator[str, None, None]:
        """Yield SSE-formatted events as they occur.

        Args:
            include_buffer: Replay buffered events first.
            timeout: Seconds without events before a keep-alive comment.
        """
        event_queue: queue.Queue = queue.Queue(maxsize=self._queue_size)

        with self._lock:
            self._queues.append(event_queue)
            backlog = list(self._buffer) if include_buffer else []

        try:
            for event in backlog:
                yield event.to_sse()
            while True:
                try:
                    event = event_queue.get(timeout=timeout)
                    yield event.to_sse()
                except queue.Empty:
                    yield ": keep-alive\n\n"
        finally:
            with self._lock:
                if event_queue in self._queues:
                    self._queues.remove(event_queue)

    def get_buffered_events(self, event_type: str | None = None) -> list[Event]:
        """Recent events, optionally filtered by type."""
        with self._lock:
            events = list(self._buffer)
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    @property
    def subscriber_count(self) -> int:
        """Number of connected SSE clients."""
        with self._lock:
            return len(self._queues)


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global EventBus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the global EventBus (for testing)."""
    global _event_bus
    _event_bus = None
