"""Activity state models for monitored terminal sessions."""

from enum import Enum

from pydantic import BaseModel, Field


class AgentState(str, Enum):
    """Activity state shown for a session.

    The agent is idle at its prompt, busy working, or blocked on a
    question that needs an answer from the user.
    """

    IDLE = "idle"
    """Nothing running, prompt ready."""

    PROCESSING = "processing"
    """Agent is actively working."""

    WAITING_INPUT = "waiting-input"
    """Agent asked a question or needs permission."""


class DetectionSource(str, Enum):
    """Where the current state came from."""

    HOOKS = "hooks"
    PATTERN = "pattern"
    INITIAL = "initial"


class ActivityStatus(Enum):
    """Combined (state, agent_active) value for a session.

    Only the four valid combinations exist, so a session can never be
    ``waiting-input`` or ``processing`` without an active agent.
    """

    SHELL = (AgentState.IDLE, False)
    AGENT_IDLE = (AgentState.IDLE, True)
    PROCESSING = (AgentState.PROCESSING, True)
    WAITING = (AgentState.WAITING_INPUT, True)

    @property
    def state(self) -> AgentState:
        return self.value[0]

    @property
    def agent_active(self) -> bool:
        return self.value[1]

    @classmethod
    def of(cls, state: AgentState, agent_active: bool) -> "ActivityStatus":
        """Look up the status for a (state, agent_active) pair.

        Raises:
            ValueError: If the combination is not a valid status.
        """
        for status in cls:
            if status.value == (AgentState(state), agent_active):
                return status
        raise ValueError(f"Invalid status: state={state}, agent_active={agent_active}")


class StateInfo(BaseModel):
    """Snapshot of a session's state for the presentation layer."""

    state: AgentState = Field(default=AgentState.IDLE)
    agent_active: bool = Field(default=False)
    detection_source: DetectionSource = Field(default=DetectionSource.INITIAL)

    @classmethod
    def from_status(cls, status: ActivityStatus, source: DetectionSource) -> "StateInfo":
        return cls(state=status.state, agent_active=status.agent_active, detection_source=source)


class StateChange(StateInfo):
    """A state change delivered to subscribers."""

    session_id: str = Field(..., description="Session that changed")
