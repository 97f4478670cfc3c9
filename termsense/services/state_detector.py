"""ActivityStateDetector - arbitration between pattern and hook signals.

This is the only writer of session state. Output chunks go through the
PatternMatcher, hook events through the HookCorrelator, and both end up in
``_transition``, which applies a change only when (state, agent_active)
actually differs and then notifies exactly once.

Hooks are authoritative: after a hook update, pattern-based transitions
are suppressed for a priority window except for detecting that the agent
exited back to the shell.

All mutations happen under one re-entrant lock, including timer callbacks,
so the chunk path, the hook path and timeouts never interleave for a
session.
"""

import codecs
import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from termsense.models.activity import (
    ActivityStatus,
    AgentState,
    DetectionSource,
    StateChange,
    StateInfo,
)
from termsense.models.config import DetectionConfig
from termsense.models.session import Session
from termsense.services.hook_correlator import HookCorrelator, HookEvent, HookResolution
from termsense.services.pattern_matcher import (
    Directive,
    MatchContext,
    PatternMatcher,
    extract_working_directory,
)
from termsense.services.session_registry import SessionRegistry, StateChangeCallback
from termsense.services.timeout_scheduler import ScheduledTimeout, TimeoutKind, TimeoutScheduler

if TYPE_CHECKING:
    from termsense.services.event_bus import EventBus

logger = logging.getLogger(__name__)

INTERRUPT = "\x03"


class ActivityStateDetector:
    """Infers agent activity per session from output and hook events."""

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        scheduler: TimeoutScheduler | None = None,
        matcher: PatternMatcher | None = None,
        correlator: HookCorrelator | None = None,
        config: DetectionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        event_bus: "EventBus | None" = None,
    ):
        """Initialize the detector.

        Args:
            registry: Session store. Created if not provided.
            scheduler: Timeout scheduler. Created if not provided.
            matcher: Output classifier. Created if not provided.
            correlator: Hook-to-session resolver. Created if not provided.
            config: Timing and buffer settings.
            clock: Monotonic clock in seconds.
            event_bus: Optional bus receiving session_state_changed events.
        """
        self._config = config if config is not None else DetectionConfig()
        self._clock = clock
        # Explicit None checks: an empty registry is falsy
        self._registry = registry if registry is not None else SessionRegistry()
        self._scheduler = scheduler if scheduler is not None else TimeoutScheduler()
        self._matcher = matcher if matcher is not None else PatternMatcher()
        if correlator is None:
            correlator = HookCorrelator(
                self._registry,
                recent_activity_window_ms=self._config.recent_activity_window_ms,
                clock=clock,
            )
        self._correlator = correlator
        self._event_bus = event_bus
        self._lock = threading.RLock()
        self._decoders: dict[str, codecs.IncrementalDecoder] = {}

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def register_session(self, session_id: str, working_directory: str = "") -> Session:
        """Start monitoring a pane.

        Raises:
            ValueError: If session_id is empty.
        """
        with self._lock:
            self._scheduler.cancel(session_id)
            self._decoders.pop(session_id, None)
            session = self._registry.create(session_id, working_directory)
            session.last_activity_at = self._clock()
        logger.info(f"[StateDetector:{session_id[:8]}] Registered (cwd={working_directory or '(empty)'})")
        self._emit("session_registered", {"session_id": session_id, "cwd": working_directory})
        return session

    def destroy_session(self, session_id: str) -> bool:
        """Stop monitoring a pane.

        Cancels its timeout and removes the record and subscriber before
        returning, so no notification fires for it afterwards.
        """
        with self._lock:
            self._scheduler.cancel(session_id)
            self._decoders.pop(session_id, None)
            existed = self._registry.destroy(session_id)
        if existed:
            logger.info(f"[StateDetector:{session_id[:8]}] Destroyed")
            self._emit("session_destroyed", {"session_id": session_id})
        return existed

    def update_working_directory(self, session_id: str, path: str) -> bool:
        with self._lock:
            return self._registry.update_working_directory(session_id, path)

    def subscribe(self, session_id: str, callback: StateChangeCallback) -> bool:
        """Install the state-change callback for a session (one per session)."""
        return self._registry.set_subscriber(session_id, callback)

    def unsubscribe(self, session_id: str) -> None:
        self._registry.clear_subscriber(session_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_state(self, session_id: str) -> StateInfo:
        """Current state, or (idle, inactive, initial) for unknown sessions."""
        with self._lock:
            session = self._registry.get(session_id)
            if session is None:
                return StateInfo()
            return StateInfo.from_status(session.status, session.detection_source)

    def list_states(self) -> dict[str, StateInfo]:
        with self._lock:
            return {
                s.id: StateInfo.from_status(s.status, s.detection_source)
                for s in self._registry.list_sessions()
            }

    def pending_timeout(self, session_id: str) -> TimeoutKind | None:
        return self._scheduler.pending(session_id)

    # =========================================================================
    # Terminal output and input
    # =========================================================================

    def process_output(self, session_id: str, data: str | bytes) -> Directive:
        """Feed a raw output chunk from the pane.

        Args:
            session_id: The pane the output came from.
            data: Raw text or UTF-8 bytes including control sequences. Byte
                chunks may split a multi-byte character; the tail is held
                until the next chunk completes it.

        Returns:
            The directive that was applied (NONE if nothing happened).
        """
        if not isinstance(data, (str, bytes, bytearray)):
            logger.warning(f"[StateDetector:{session_id[:8]}] Discarding malformed chunk: {type(data).__name__}")
            return Directive.NONE

        with self._lock:
            session = self._registry.get(session_id)
            if session is None:
                return Directive.NONE

            now = self._clock()
            session.last_activity_at = now

            chunk = self._decode_output(session_id, data)
            if not chunk:
                return Directive.NONE

            cwd = extract_working_directory(chunk)
            if cwd and cwd != session.working_directory:
                logger.debug(f"[StateDetector:{session_id[:8]}] cwd -> {cwd}")
                session.working_directory = cwd

            max_length = self._config.buffer_max_length
            hooks_priority = not session.pending_forced_exit and self._in_hooks_priority(session, now)
            if hooks_priority:
                # Evaluate against the chunk without keeping it; hooks own the state
                buffer = (session.activity_buffer + chunk)[-max_length:]
            else:
                buffer = session.append_output(chunk, max_length)

            context = MatchContext(
                chunk=chunk,
                buffer=buffer,
                status=session.status,
                pending_forced_exit=session.pending_forced_exit,
                hooks_priority=hooks_priority,
            )
            result = self._matcher.evaluate(context)

            if result.directive != Directive.NONE:
                logger.debug(
                    f"[StateDetector:{session_id[:8]}] TRIGGER: {result.rule} -> {result.directive.value} "
                    f"(state={session.state.value}, source={session.detection_source.value})"
                )
            self._apply(session, result.directive, now)
            return result.directive

    def process_input(self, session_id: str, data: str | bytes) -> None:
        """Observe input written to the pane; an interrupt byte arms forced exit."""
        chunk = self._decode(data)
        if chunk and INTERRUPT in chunk:
            self.notify_interrupt(session_id)

    def notify_interrupt(self, session_id: str) -> bool:
        """Handle Ctrl+C sent to the pane.

        While the agent is active this waits for a shell prompt, and forces
        the session back to the shell if none shows up in time.

        Returns:
            True if a forced exit was armed.
        """
        with self._lock:
            session = self._registry.get(session_id)
            if session is None or not session.agent_active:
                return False

            logger.info(f"[StateDetector:{session_id[:8]}] CTRL+C detected, waiting for shell prompt")
            session.pending_forced_exit = True
            session.clear_buffer()
            self._scheduler.reschedule(
                session_id,
                TimeoutKind.FORCED_EXIT,
                self._config.forced_exit_timeout_ms / 1000,
                self._on_forced_exit,
                scheduled_at=self._clock(),
            )
            return True

    # =========================================================================
    # Hooks
    # =========================================================================

    def update_from_hook(self, event: HookEvent) -> HookResolution | None:
        """Apply an agent hook event.

        Returns:
            The resolution that was applied, or None if the event carried no
            state or matched no session.
        """
        with self._lock:
            now = self._clock()
            resolution = self._correlator.correlate(event, now)
            if resolution is None:
                return None

            session = self._registry.get(resolution.session_id)
            if session is None:
                return None

            logger.info(
                f"[StateDetector:{session.id[:8]}] HOOKS UPDATE: {session.state.value} -> "
                f"{resolution.state.value} (event={event.hook_event_name}, tier={resolution.tier})"
            )
            session.last_hook_update_at = now
            session.detection_source = DetectionSource.HOOKS
            # Fresh hook data supersedes any pending timer or forced exit
            session.pending_forced_exit = False
            self._scheduler.cancel(session.id)

            status = ActivityStatus.of(resolution.state, resolution.agent_active)
            self._transition(session, status, DetectionSource.HOOKS)
            return resolution

    # =========================================================================
    # Arbitration
    # =========================================================================

    def _apply(self, session: Session, directive: Directive, now: float) -> None:
        if directive == Directive.NONE:
            return

        if directive == Directive.DEACTIVATE:
            session.pending_forced_exit = False
            self._scheduler.cancel(session.id)
            self._transition(session, ActivityStatus.SHELL, DetectionSource.PATTERN)
            session.clear_buffer()
        elif directive in (Directive.ACTIVATE, Directive.PROCESSING):
            self._transition(session, ActivityStatus.PROCESSING, DetectionSource.PATTERN)
        elif directive == Directive.WAITING_INPUT:
            self._transition(session, ActivityStatus.WAITING, DetectionSource.PATTERN)
        elif directive == Directive.IDLE:
            self._transition(session, ActivityStatus.AGENT_IDLE, DetectionSource.PATTERN)
            session.clear_buffer()
        elif directive == Directive.EXTEND_PROCESSING:
            self._schedule_idle_reversion(session, self._config.idle_timeout_ms / 1000, now)

    def _transition(self, session: Session, status: ActivityStatus, source: DetectionSource) -> bool:
        """Move a session to ``status`` if that changes (state, agent_active).

        Returns:
            True if the state changed and subscribers were notified.
        """
        if session.status == status:
            return False

        logger.info(
            f"[StateDetector:{session.id[:8]}] STATE CHANGE: {session.state.value} -> "
            f"{status.state.value} (active={status.agent_active}, source={source.value})"
        )
        session.status = status
        session.detection_source = source
        session.clear_buffer()
        if not status.agent_active and self._scheduler.pending(session.id) == TimeoutKind.IDLE_REVERSION:
            self._scheduler.cancel(session.id)

        change = StateChange(
            session_id=session.id,
            state=status.state,
            agent_active=status.agent_active,
            detection_source=source,
        )
        self._notify(change)
        return True

    def _notify(self, change: StateChange) -> None:
        callback = self._registry.get_subscriber(change.session_id)
        if callback is not None:
            try:
                callback(change)
            except Exception as e:
                logger.error(f"[StateDetector:{change.session_id[:8]}] Subscriber error: {e}")
        self._emit("session_state_changed", change.model_dump(mode="json"))

    def _emit(self, event_type: str, data: dict) -> None:
        if self._event_bus is not None:
            self._event_bus.emit(event_type, data)

    def _in_hooks_priority(self, session: Session, now: float) -> bool:
        if session.detection_source != DetectionSource.HOOKS:
            return False
        return now - session.last_hook_update_at < self._config.hooks_priority_window_ms / 1000

    # =========================================================================
    # Timeouts
    # =========================================================================

    def _schedule_idle_reversion(self, session: Session, delay: float, now: float) -> None:
        if session.state == AgentState.WAITING_INPUT or session.pending_forced_exit:
            return
        self._scheduler.reschedule(
            session.id,
            TimeoutKind.IDLE_REVERSION,
            delay,
            self._on_idle_timeout,
            scheduled_at=now,
        )

    def _on_idle_timeout(self, handle: ScheduledTimeout) -> None:
        with self._lock:
            if not self._scheduler.complete(handle.key, handle):
                return
            session = self._registry.get(handle.key)
            if session is None or session.status != ActivityStatus.PROCESSING:
                return

            # Output since scheduling restarts the quiet period from that output
            if handle.scheduled_at is not None and session.last_activity_at > handle.scheduled_at:
                now = self._clock()
                remaining = self._config.idle_timeout_ms / 1000 - (now - session.last_activity_at)
                if remaining > 0:
                    self._schedule_idle_reversion(session, remaining, session.last_activity_at)
                    return

            self._transition(session, ActivityStatus.AGENT_IDLE, DetectionSource.PATTERN)
            session.clear_buffer()

    def _on_forced_exit(self, handle: ScheduledTimeout) -> None:
        with self._lock:
            if not self._scheduler.complete(handle.key, handle):
                return
            session = self._registry.get(handle.key)
            if session is None or not session.pending_forced_exit:
                return

            logger.info(f"[StateDetector:{session.id[:8]}] Timeout waiting for shell prompt, forcing exit")
            session.pending_forced_exit = False
            session.clear_buffer()
            self._transition(session, ActivityStatus.SHELL, DetectionSource.PATTERN)

    def _decode_output(self, session_id: str, data: str | bytes | bytearray) -> str:
        if isinstance(data, str):
            return data
        decoder = self._decoders.get(session_id)
        if decoder is None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            self._decoders[session_id] = decoder
        return decoder.decode(bytes(data))

    @staticmethod
    def _decode(data: object) -> str | None:
        if isinstance(data, str):
            return data
        if isinstance(data, (bytes, bytearray)):
            return bytes(data).decode("utf-8", errors="replace")
        return None
