"""Services for termsense."""

from termsense.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from termsense.services.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from termsense.services.hook_correlator import (
    HookCorrelator,
    HookEvent,
    HookEventName,
    HookResolution,
    MalformedHookError,
    state_for_event,
)
from termsense.services.hook_receiver import HookReceiver, HookResult
from termsense.services.hooks_setup_service import HooksSetupService, HooksStatus
from termsense.services.pattern_matcher import (
    Directive,
    MatchContext,
    MatchResult,
    PatternMatcher,
    extract_working_directory,
    strip_ansi,
)
from termsense.services.session_registry import SessionRegistry
from termsense.services.state_detector import ActivityStateDetector
from termsense.services.timeout_scheduler import (
    ScheduledTimeout,
    TimeoutKind,
    TimeoutScheduler,
)

__all__ = [
    "ActivityStateDetector",
    "ConfigService",
    "Directive",
    "Event",
    "EventBus",
    "get_config_service",
    "get_event_bus",
    "reset_config_service",
    "reset_event_bus",
    "HookCorrelator",
    "HookEvent",
    "HookEventName",
    "HookReceiver",
    "HookResolution",
    "HookResult",
    "HooksSetupService",
    "HooksStatus",
    "MalformedHookError",
    "MatchContext",
    "MatchResult",
    "PatternMatcher",
    "ScheduledTimeout",
    "SessionRegistry",
    "TimeoutKind",
    "TimeoutScheduler",
    "extract_working_directory",
    "state_for_event",
    "strip_ansi",
]
