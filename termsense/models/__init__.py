"""Domain models for termsense."""

from termsense.models.activity import (
    ActivityStatus,
    AgentState,
    DetectionSource,
    StateChange,
    StateInfo,
)
from termsense.models.config import AppConfig, DetectionConfig, HookConfig
from termsense.models.session import Session

__all__ = [
    # Activity
    "ActivityStatus",
    "AgentState",
    "DetectionSource",
    "StateChange",
    "StateInfo",
    # Session
    "Session",
    # Config
    "AppConfig",
    "DetectionConfig",
    "HookConfig",
]
