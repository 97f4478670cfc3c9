"""Application configuration models with Pydantic validation."""

from pydantic import BaseModel, Field

DEFAULT_HOOKS_PORT = 52429


class DetectionConfig(BaseModel):
    """Timing and buffer settings for activity detection.

    Defaults match the behaviour the agent's terminal UI was tuned against;
    changing them trades responsiveness for flicker.
    """

    idle_timeout_ms: int = Field(
        default=800,
        ge=50,
        le=60000,
        description="Quiet period before a processing session reverts to idle",
    )
    buffer_max_length: int = Field(
        default=1200,
        ge=100,
        le=100000,
        description="Maximum characters kept in the rolling output buffer",
    )
    hooks_priority_window_ms: int = Field(
        default=5000,
        ge=0,
        le=600000,
        description="How long a hook update suppresses pattern-based transitions",
    )
    forced_exit_timeout_ms: int = Field(
        default=2000,
        ge=100,
        le=60000,
        description="Wait for a shell prompt after an interrupt before forcing exit",
    )
    recent_activity_window_ms: int = Field(
        default=30000,
        ge=0,
        le=3600000,
        description="Recency window for the last-resort hook correlation fallback",
    )


class HookConfig(BaseModel):
    """Agent hooks configuration.

    Hooks give authoritative, event-driven state updates that override
    pattern matching for a short window.
    """

    enabled: bool = Field(
        default=True,
        description="Whether to accept agent hook events",
    )
    script_path: str = Field(
        default="~/.termsense/hooks/termsense-hook.sh",
        description="Where the hook forwarding script is installed",
    )
    agent_settings_path: str = Field(
        default="~/.claude/settings.json",
        description="Agent settings file that registers hook commands",
    )


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic.
    """

    detection: DetectionConfig = Field(
        default_factory=DetectionConfig,
        description="Activity detection timing and buffer settings",
    )
    hooks: HookConfig = Field(
        default_factory=HookConfig,
        description="Agent hooks configuration",
    )
    host: str = Field(
        default="127.0.0.1",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        default=DEFAULT_HOOKS_PORT,
        ge=1024,
        le=65535,
        description="Port for the Flask server (hook script posts here)",
    )
    debug: bool = Field(
        default=False,
        description="Enable Flask debug mode",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR)$",
        description="Root logging level",
    )
