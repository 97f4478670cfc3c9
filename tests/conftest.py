"""Pytest configuration and shared fixtures for termsense tests."""

import pytest

from termsense.models.config import DetectionConfig
from termsense.services.config_service import reset_config_service
from termsense.services.event_bus import EventBus, reset_event_bus
from termsense.services.session_registry import SessionRegistry
from termsense.services.state_detector import ActivityStateDetector
from termsense.services.timeout_scheduler import TimeoutScheduler


class ManualTimer:
    """Timer driven by ManualClock.advance instead of a thread."""

    def __init__(self, clock: "ManualClock", interval: float, function):
        self.clock = clock
        self.interval = interval
        self.function = function
        self.due_ms: int | None = None
        self.cancelled = False
        self.fired = False

    def start(self):
        self.due_ms = self.clock.now_ms + round(self.interval * 1000)
        self.clock.timers.append(self)

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """Monotonic clock in seconds whose time only moves when advanced.

    Starts well away from zero so that "never" timestamps (0.0) are never
    mistaken for recent ones.
    """

    def __init__(self, start_ms: int = 1_000_000):
        self.now_ms = start_ms
        self.timers: list[ManualTimer] = []

    def __call__(self) -> float:
        return self.now_ms / 1000

    def timer_factory(self, interval: float, function) -> ManualTimer:
        return ManualTimer(self, interval, function)

    def advance(self, ms: int) -> None:
        """Move time forward, firing due timers in order.

        A fired callback may start new timers; those fire too if they fall
        due before the target time.
        """
        target = self.now_ms + ms
        while True:
            due = [t for t in self.live_timers if t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due_ms)
            self.now_ms = timer.due_ms
            timer.fired = True
            timer.function()
        self.now_ms = target

    @property
    def live_timers(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global services before and after each test."""
    reset_event_bus()
    reset_config_service()
    yield
    reset_event_bus()
    reset_config_service()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    return TimeoutScheduler(timer_factory=clock.timer_factory)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def event_bus():
    return EventBus(buffer_size=50)


@pytest.fixture
def detector(registry, scheduler, clock, event_bus):
    """Detector with default timings on a manual clock."""
    return ActivityStateDetector(
        registry=registry,
        scheduler=scheduler,
        config=DetectionConfig(),
        clock=clock,
        event_bus=event_bus,
    )


@pytest.fixture
def changes(detector):
    """Register session "pane-1" in /work/app and record its state changes."""
    received = []
    detector.register_session("pane-1", "/work/app")
    detector.subscribe("pane-1", received.append)
    return received
