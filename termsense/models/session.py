"""Session model - one monitored terminal pane."""

from pydantic import BaseModel, Field

from termsense.models.activity import ActivityStatus, AgentState, DetectionSource


class Session(BaseModel):
    """A terminal pane whose agent activity is being inferred.

    The record is owned by SessionRegistry and only mutated by
    ActivityStateDetector while it holds its lock. The single pending
    timeout for the session lives in TimeoutScheduler, keyed by ``id``.
    """

    id: str = Field(..., min_length=1, description="Identifier assigned by the pane owner")
    working_directory: str = Field(
        default="",
        description="Last known working directory of the pane",
    )
    status: ActivityStatus = Field(default=ActivityStatus.SHELL)
    detection_source: DetectionSource = Field(default=DetectionSource.INITIAL)
    activity_buffer: str = Field(
        default="",
        description="Rolling window of recent output used for pattern matching",
    )
    last_activity_at: float = Field(default=0.0, description="Monotonic time of last output")
    last_hook_update_at: float = Field(
        default=0.0,
        description="Monotonic time of last hook update (0 = never)",
    )
    pending_forced_exit: bool = Field(
        default=False,
        description="Interrupt seen while the agent was active, waiting for a shell prompt",
    )

    @property
    def state(self) -> AgentState:
        return self.status.state

    @property
    def agent_active(self) -> bool:
        return self.status.agent_active

    def append_output(self, data: str, max_length: int) -> str:
        """Append output to the buffer, evicting the oldest text past ``max_length``."""
        buffer = self.activity_buffer + data
        if len(buffer) > max_length:
            buffer = buffer[-max_length:]
        self.activity_buffer = buffer
        return buffer

    def clear_buffer(self) -> None:
        self.activity_buffer = ""
