"""TimeoutScheduler - cancellable delayed actions, at most one per key.

Every ``reschedule`` cancels whatever was pending for the key before
starting the new timer, so two timers can never race for one session.
Timers are created through an injectable factory (``threading.Timer`` by
default) so tests can drive time by hand.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TimeoutKind(str, Enum):
    """What a pending timeout will do when it fires."""

    IDLE_REVERSION = "idle_reversion"
    FORCED_EXIT = "forced_exit"


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


@dataclass(eq=False)
class ScheduledTimeout:
    """Handle for one scheduled action."""

    key: str
    kind: TimeoutKind
    delay: float
    scheduled_at: float | None = None
    timer: Any = field(default=None, repr=False)
    cancelled: bool = False


def _default_timer_factory(interval: float, function: Callable[[], None]) -> Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class TimeoutScheduler:
    """Per-key cancellable delayed actions.

    The callback receives its own handle. Callers that serialize state
    under their own lock should confirm the handle with ``complete`` while
    holding that lock; a handle that was cancelled or replaced in the
    meantime is rejected, which turns stale timer firings into no-ops.
    """

    def __init__(self, timer_factory: TimerFactory | None = None):
        self._timer_factory = timer_factory or _default_timer_factory
        self._lock = threading.Lock()
        self._pending: dict[str, ScheduledTimeout] = {}

    def reschedule(
        self,
        key: str,
        kind: TimeoutKind,
        delay_seconds: float,
        callback: Callable[[ScheduledTimeout], None],
        scheduled_at: float | None = None,
    ) -> ScheduledTimeout:
        """Cancel any pending action for ``key`` and schedule a new one.

        Args:
            key: Owner of the timeout (session id).
            kind: What the action does, for introspection.
            delay_seconds: Delay before the callback runs.
            callback: Called with the handle when the timer fires.
            scheduled_at: Caller's clock reading when scheduling, kept on the handle.

        Returns:
            The new handle.
        """
        handle = ScheduledTimeout(key=key, kind=kind, delay=delay_seconds, scheduled_at=scheduled_at)
        handle.timer = self._timer_factory(delay_seconds, lambda: callback(handle))

        with self._lock:
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous.cancelled = True
                previous.timer.cancel()
            self._pending[key] = handle

        handle.timer.start()
        logger.debug(f"[TimeoutScheduler] {kind.value} scheduled for {key[:8]} in {delay_seconds:.3f}s")
        return handle

    def cancel(self, key: str) -> bool:
        """Cancel the pending action for ``key``.

        Returns:
            True if something was pending.
        """
        with self._lock:
            handle = self._pending.pop(key, None)
        if handle is None:
            return False
        handle.cancelled = True
        handle.timer.cancel()
        return True

    def pending(self, key: str) -> TimeoutKind | None:
        """Kind of the action pending for ``key``, if any."""
        with self._lock:
            handle = self._pending.get(key)
            return handle.kind if handle else None

    def complete(self, key: str, handle: ScheduledTimeout) -> bool:
        """Claim a fired handle.

        Returns:
            True if ``handle`` was still the current action for ``key``;
            it is then removed. False for cancelled or superseded handles.
        """
        with self._lock:
            if handle.cancelled or self._pending.get(key) is not handle:
                return False
            del self._pending[key]
            return True

    def cancel_all(self) -> None:
        with self._lock:
            handles = list(self._pending.values())
            self._pending.clear()
        for handle in handles:
            handle.cancelled = True
            handle.timer.cancel()
