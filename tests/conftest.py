"""Shared test fixtures for litestar-automation test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest

from litestar_automation.core.models import ActionResult
from litestar_automation.providers.base import EFFECT_ACTIONS

if TYPE_CHECKING:
    from litestar_automation.engine.local import AutomationEngine
    from litestar_automation.engine.memory import InMemoryWorkflowStore
    from litestar_automation.engine.registry import WorkflowRegistry
    from litestar_automation.engine.scheduler import Scheduler

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock so delays and schedules can be tested without sleeping."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


class RecordingActionProvider:
    """Action provider that records every delivery.

    Every effectful action kind succeeds by default. Individual kinds can be
    made to report a failure, raise, return extra output or return an
    arbitrary value.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any], dict[str, Any]]] = []
        self.outputs: dict[str, dict[str, Any]] = {}
        self.failures: dict[str, str] = {}
        self.errors: dict[str, Exception] = {}
        self.responses: dict[str, Any] = {}

    @property
    def called(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    @property
    def messages(self) -> list[Any]:
        """The ``message`` config of every ``send_message`` delivery, in order."""
        return [config.get("message") for name, config, _ in self.calls if name == "send_message"]

    def __getattr__(self, name: str) -> Any:
        if name not in EFFECT_ACTIONS:
            raise AttributeError(name)

        async def handler(config: dict[str, Any], context: dict[str, Any]) -> Any:
            return self._deliver(name, config, context)

        return handler

    def _deliver(self, name: str, config: dict[str, Any], context: dict[str, Any]) -> Any:
        self.calls.append((name, config, context))
        if name in self.errors:
            raise self.errors[name]
        if name in self.responses:
            return self.responses[name]
        if name in self.failures:
            return ActionResult(success=False, error=self.failures[name])
        return ActionResult(success=True, output={"action": name, **self.outputs.get(name, {})})


class MockEventBus:
    """Mock event bus for testing."""

    def __init__(self) -> None:
        """Initialize mock event bus."""
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event_type: str, **kwargs: Any) -> None:
        """Emit an event."""
        self.events.append((event_type, kwargs))

    @property
    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


def message(text: str) -> dict[str, Any]:
    """Build a ``send_message`` action whose delivery is identifiable by ``text``."""
    return {"type": "send_message", "config": {"channelId": "general", "message": text}}


def condition(field: str, operator: str, value: Any, skip: int = 0) -> dict[str, Any]:
    """Build a single-comparison ``condition`` action."""
    return {
        "type": "condition",
        "config": {"leftOperand": field, "operator": operator, "rightOperand": value, "skipActions": skip},
    }


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at 2024-01-01 09:00 UTC.

    Returns:
        FakeClock instance
    """
    return FakeClock()


@pytest.fixture
def provider() -> RecordingActionProvider:
    """Create a recording action provider.

    Returns:
        RecordingActionProvider instance
    """
    return RecordingActionProvider()


@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Create mock event bus.

    Returns:
        MockEventBus instance
    """
    return MockEventBus()


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    """Create an empty in-memory workflow store.

    Returns:
        InMemoryWorkflowStore instance
    """
    from litestar_automation.engine.memory import InMemoryWorkflowStore

    return InMemoryWorkflowStore()


@pytest.fixture
def registry(store: InMemoryWorkflowStore, clock: FakeClock) -> WorkflowRegistry:
    """Create a workflow registry over the test store.

    Args:
        store: Workflow store fixture
        clock: Fake clock fixture

    Returns:
        WorkflowRegistry instance
    """
    from litestar_automation.engine.registry import WorkflowRegistry

    return WorkflowRegistry(store, clock)


@pytest.fixture
async def engine(
    store: InMemoryWorkflowStore,
    provider: RecordingActionProvider,
    clock: FakeClock,
    mock_event_bus: MockEventBus,
) -> AutomationEngine:
    """Create an automation engine wired to the recording provider.

    Outstanding run tasks are cancelled on teardown.

    Args:
        store: Workflow store fixture
        provider: Recording provider fixture
        clock: Fake clock fixture
        mock_event_bus: Mock event bus fixture

    Returns:
        AutomationEngine instance
    """
    from litestar_automation.engine.local import AutomationEngine

    automation_engine = AutomationEngine(store, provider, clock=clock, event_bus=mock_event_bus)
    yield automation_engine
    await automation_engine.close(timeout=1)


@pytest.fixture
def scheduler(store: InMemoryWorkflowStore, engine: AutomationEngine, clock: FakeClock) -> Scheduler:
    """Create a scheduler sharing the engine's store and clock.

    Args:
        store: Workflow store fixture
        engine: Automation engine fixture
        clock: Fake clock fixture

    Returns:
        Scheduler instance
    """
    from litestar_automation.engine.scheduler import Scheduler

    return Scheduler(store, engine, clock=clock, tick_interval=0.01, stall_timeout=300)


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers.

    Args:
        config: Pytest config object
    """
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Tests that take more than 1 second")
