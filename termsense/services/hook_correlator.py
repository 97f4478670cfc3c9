"""HookCorrelator - maps agent hook events onto monitored sessions.

Hook payloads carry the agent's own session id, which means nothing to the
terminal layer, so an event is matched to a pane by working directory with
a tiered best-match search. The event name is translated into a target
state with a fixed lookup table.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from termsense.models.activity import AgentState

if TYPE_CHECKING:
    from termsense.models.session import Session
    from termsense.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class MalformedHookError(ValueError):
    """Raised when a hook payload cannot be decoded into a HookEvent."""


class HookEventName(str, Enum):
    """Agent hook event names that carry state information."""

    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    PERMISSION_REQUEST = "PermissionRequest"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"


# Tools that block until the user answers
BLOCKING_TOOLS = frozenset({"AskUserQuestion", "ExitPlanMode"})

EVENT_STATES: dict[HookEventName, AgentState] = {
    HookEventName.USER_PROMPT_SUBMIT: AgentState.PROCESSING,
    HookEventName.PRE_TOOL_USE: AgentState.PROCESSING,
    HookEventName.POST_TOOL_USE: AgentState.PROCESSING,
    HookEventName.PERMISSION_REQUEST: AgentState.WAITING_INPUT,
    HookEventName.STOP: AgentState.IDLE,
    HookEventName.SUBAGENT_STOP: AgentState.IDLE,
}


@dataclass
class HookEvent:
    """An agent hook event."""

    hook_event_name: str
    session_id: str = ""
    cwd: str = ""
    tool_name: str | None = None
    tool_input: dict | None = None
    tool_response: dict | None = None
    received_at: float = field(default_factory=time.time)

    @classmethod
    def from_payload(cls, payload: object) -> "HookEvent":
        """Build an event from a decoded JSON payload.

        Only ``hook_event_name``, ``cwd`` and ``tool_name`` matter for state
        detection; the rest is kept as opaque passthrough.

        Raises:
            MalformedHookError: If the payload is not an object or has no event name.
        """
        if not isinstance(payload, dict):
            raise MalformedHookError("Hook payload must be a JSON object")

        name = payload.get("hook_event_name")
        if not isinstance(name, str) or not name:
            raise MalformedHookError("Missing hook_event_name")

        cwd = payload.get("cwd")
        tool_name = payload.get("tool_name")
        tool_input = payload.get("tool_input")
        tool_response = payload.get("tool_response")

        return cls(
            hook_event_name=name,
            session_id=str(payload.get("session_id") or ""),
            cwd=cwd if isinstance(cwd, str) else "",
            tool_name=tool_name if isinstance(tool_name, str) else None,
            tool_input=tool_input if isinstance(tool_input, dict) else None,
            tool_response=tool_response if isinstance(tool_response, dict) else None,
        )


@dataclass
class HookResolution:
    """A hook event resolved to a session and target state."""

    session_id: str
    state: AgentState
    agent_active: bool = True
    tier: str = ""


def state_for_event(event: HookEvent) -> AgentState | None:
    """Map a hook event to the state it implies.

    Returns:
        The target state, or None for events that carry no state change.
    """
    try:
        name = HookEventName(event.hook_event_name)
    except ValueError:
        return None

    if name == HookEventName.POST_TOOL_USE and event.tool_name in BLOCKING_TOOLS:
        return AgentState.WAITING_INPUT
    return EVENT_STATES[name]


def _normalize(path: str) -> str:
    return path.rstrip("/") if path else ""


class HookCorrelator:
    """Resolves hook events to sessions in the registry.

    Tiers, first match wins:
    1. Exact cwd match among sessions with an active agent
    2. Exact cwd match among all sessions
    3. Prefix match in either direction (agent cwd drift into subdirectories)
    4. Any session with an active agent
    5. Any session with output inside the recent-activity window

    Tier 5 can pick the wrong pane when several are busy and none has an
    active agent; it is kept as a last resort.
    """

    def __init__(
        self,
        registry: "SessionRegistry",
        recent_activity_window_ms: int = 30000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._registry = registry
        self._recent_window = recent_activity_window_ms / 1000
        self._clock = clock

    def find_session(self, cwd: str, now: float | None = None) -> tuple[str, str] | None:
        """Find the session a hook event belongs to.

        Args:
            cwd: Working directory reported by the hook.
            now: Current monotonic time (defaults to the clock).

        Returns:
            (session_id, tier name), or None when nothing matches.
        """
        now = self._clock() if now is None else now
        target = _normalize(cwd)
        sessions = self._registry.list_sessions()

        tiers: list[tuple[str, Callable[["Session"], bool]]] = [
            ("exact_active", lambda s: _normalize(s.working_directory) == target and s.agent_active),
            ("exact", lambda s: _normalize(s.working_directory) == target),
            ("prefix", lambda s: self._is_prefix_match(_normalize(s.working_directory), target)),
            ("active_agent", lambda s: s.agent_active),
            ("recent_activity", lambda s: now - s.last_activity_at < self._recent_window),
        ]

        for tier, matches in tiers:
            for session in sessions:
                if matches(session):
                    if tier != "exact_active":
                        logger.info(
                            f"[HookCorrelator] {tier} match for cwd={cwd}: session {session.id[:8]} "
                            f"(cwd={session.working_directory or '(empty)'})"
                        )
                    return session.id, tier

        available = ", ".join(f"{s.id[:8]}={s.working_directory or '(empty)'}" for s in sessions)
        logger.info(f"[HookCorrelator] No session found for cwd: {cwd}")
        logger.debug(f"[HookCorrelator] Available sessions: {available or '(none)'}")
        return None

    def correlate(self, event: HookEvent, now: float | None = None) -> HookResolution | None:
        """Resolve an event to (session, state).

        Returns:
            HookResolution, or None if the event implies no state or
            matches no session.
        """
        state = state_for_event(event)
        if state is None:
            logger.debug(f"[HookCorrelator] Ignoring event {event.hook_event_name}")
            return None

        if not event.cwd:
            logger.info(f"[HookCorrelator] Dropping {event.hook_event_name}: no cwd in payload")
            return None

        match = self.find_session(event.cwd, now)
        if match is None:
            return None

        session_id, tier = match
        return HookResolution(session_id=session_id, state=state, agent_active=True, tier=tier)

    @staticmethod
    def _is_prefix_match(session_cwd: str, target: str) -> bool:
        if not session_cwd or not target:
            return False
        return target.startswith(session_cwd) or session_cwd.startswith(target)
