"""HookReceiver - entry point for agent lifecycle hooks.

The agent's hook script POSTs each event as JSON. This service decodes the
payload, hands it to the detector for correlation and arbitration, and
keeps activity counters for the status endpoint.

Delivery is at-most-once with no acknowledgement contract, so malformed
payloads and events that match no session are logged and dropped rather
than retried.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from termsense.models.activity import AgentState
from termsense.services.hook_correlator import HookEvent, MalformedHookError, state_for_event

if TYPE_CHECKING:
    from termsense.services.event_bus import EventBus
    from termsense.services.state_detector import ActivityStateDetector

logger = logging.getLogger(__name__)


@dataclass
class HookResult:
    """Result of processing a hook payload."""

    success: bool
    session_id: str | None = None
    new_state: AgentState | None = None
    message: str = ""


class HookReceiver:
    """Receives hook payloads and applies them to the detector."""

    def __init__(
        self,
        detector: "ActivityStateDetector",
        event_bus: "EventBus | None" = None,
    ):
        """Initialize the HookReceiver.

        Args:
            detector: Arbitration layer the events are applied to.
            event_bus: Event bus for hook_received broadcasts (optional).
        """
        self._detector = detector
        self._event_bus = event_bus

        self._lock = threading.Lock()
        self._last_event_time: float = 0
        self._event_count: int = 0
        self._resolved_count: int = 0
        self._unresolved_count: int = 0
        self._malformed_count: int = 0

    def process_payload(self, payload: object) -> HookResult:
        """Process a decoded hook payload.

        Args:
            payload: JSON object with hook_event_name, cwd, tool_name, ...

        Returns:
            HookResult describing what happened.
        """
        with self._lock:
            self._last_event_time = time.time()
            self._event_count += 1

        try:
            event = HookEvent.from_payload(payload)
        except MalformedHookError as e:
            with self._lock:
                self._malformed_count += 1
            logger.warning(f"[HookReceiver] Discarding malformed payload: {e}")
            return HookResult(success=False, message=str(e))

        return self.process_event(event)

    def process_event(self, event: HookEvent) -> HookResult:
        """Apply a decoded hook event."""
        logger.debug(
            f"[HookReceiver] process_event: name={event.hook_event_name}, "
            f"cwd={event.cwd}, tool={event.tool_name}"
        )

        if state_for_event(event) is None:
            logger.debug(f"[HookReceiver] Event {event.hook_event_name} carries no state")
            return HookResult(success=True, message=f"Ignored event: {event.hook_event_name}")

        resolution = self._detector.update_from_hook(event)

        if resolution is None:
            with self._lock:
                self._unresolved_count += 1
            return HookResult(success=True, message="No matching session")

        with self._lock:
            self._resolved_count += 1

        if self._event_bus is not None:
            self._event_bus.emit(
                "hook_received",
                {
                    "session_id": resolution.session_id,
                    "hook_event_name": event.hook_event_name,
                    "tool_name": event.tool_name,
                    "state": resolution.state.value,
                    "cwd": event.cwd,
                },
            )

        return HookResult(
            success=True,
            session_id=resolution.session_id,
            new_state=resolution.state,
            message=f"Applied {event.hook_event_name}",
        )

    def get_status(self) -> dict:
        """Hook activity metrics for the status endpoint."""
        with self._lock:
            return {
                "active": self._last_event_time > 0,
                "last_event_time": self._last_event_time,
                "seconds_since_last_event": (
                    time.time() - self._last_event_time if self._last_event_time > 0 else None
                ),
                "event_count": self._event_count,
                "resolved_count": self._resolved_count,
                "unresolved_count": self._unresolved_count,
                "malformed_count": self._malformed_count,
            }
