"""Shared test fixtures for litestar-dataflows test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import pytest

from litestar_dataflows.core.definition import DataflowDefinition, Link, StepDefinition
from litestar_dataflows.core.types import EdgeKind
from litestar_dataflows.engine.local import LocalExecutionEngine
from litestar_dataflows.engine.manager import DataflowManager
from litestar_dataflows.engine.registry import DataflowRegistry, StepTypeRegistry
from litestar_dataflows.scheduling.scheduler import Scheduler
from litestar_dataflows.scheduling.stores import InMemoryKeyValueStore
from litestar_dataflows.steps.base import BaseConnectorStep, BaseFlowStep

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from litestar_dataflows.core.events import DataflowEvent

# Tuesday 2023-11-14 22:13:20 UTC
NOW = 1_700_000_000
NEXT_MIDNIGHT = 1_700_006_400


class FixedClock:
    """Clock frozen at a given epoch time until advanced."""

    def __init__(self, now: int = NOW) -> None:
        self.current = now

    def now(self) -> int:
        return self.current

    def advance(self, seconds: int) -> None:
        self.current += seconds


class RecordingEventBus:
    """Event bus keeping every emitted event."""

    def __init__(self) -> None:
        self.events: list[DataflowEvent] = []

    async def emit(self, event: DataflowEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [type(event).__name__ for event in self.events]


# =============================================================================
# Test step types
# =============================================================================


class CallLog:
    """Class-level record of step activity, reset for every test."""

    executed: ClassVar[list[str]] = []
    applied: ClassVar[list[tuple[str, Any]]] = []
    finalised: ClassVar[list[str]] = []

    @classmethod
    def reset(cls) -> None:
        cls.executed.clear()
        cls.applied.clear()
        cls.finalised.clear()


class RecordingConnector(BaseConnectorStep):
    """Connector that records its input and finalisation, and passes the input on."""

    type_name = "test_record"
    output_connectors = (0, 3)

    async def execute(self, input: Any) -> Any:
        CallLog.executed.append(self.stepdef.id)
        return input

    async def on_finalise(self) -> None:
        assert self.enginestep is not None
        CallLog.finalised.append(self.stepdef.id)


class FailingConnector(BaseConnectorStep):
    """Connector whose execute always raises."""

    type_name = "test_fail"

    async def execute(self, input: Any) -> Any:
        CallLog.executed.append(self.stepdef.id)
        msg = f"{self.stepdef.id} exploded"
        raise RuntimeError(msg)


class FailingFinaliseConnector(BaseConnectorStep):
    """Connector whose finalise hook raises."""

    type_name = "test_fail_finalise"

    async def execute(self, input: Any) -> Any:
        return input

    async def on_finalise(self) -> None:
        msg = "cannot finalise"
        raise RuntimeError(msg)


class SplitConnector(BaseConnectorStep):
    """Connector emitting a different value on each of its two output slots."""

    type_name = "test_split"
    output_connectors = (2, 2)
    emits_per_slot = True

    async def execute(self, input: Any) -> Any:
        return (f"{input}-left", f"{input}-right")


class CollectFlow(BaseFlowStep):
    """Flow step recording what it applies; suppressed in dry-runs."""

    type_name = "test_collect"

    async def apply(self, input: Any) -> Any:
        CallLog.applied.append((self.stepdef.id, input))
        return input

    async def on_finalise(self) -> None:
        if self.is_dry_run:
            return
        CallLog.finalised.append(self.stepdef.id)


TEST_STEP_TYPES = (RecordingConnector, FailingConnector, FailingFinaliseConnector, SplitConnector, CollectFlow)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def call_log() -> Iterator[type[CallLog]]:
    """Reset the test step call log around each test."""
    CallLog.reset()
    yield CallLog
    CallLog.reset()


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at :data:`NOW`."""
    return FixedClock()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def scheduler(kv_store: InMemoryKeyValueStore, clock: FixedClock) -> Scheduler:
    return Scheduler(kv_store, clock)


@pytest.fixture
def step_types() -> StepTypeRegistry:
    """Registry with the built-in and test step types."""
    registry = StepTypeRegistry.with_builtins()
    for step_type in TEST_STEP_TYPES:
        registry.register(step_type)
    return registry


@pytest.fixture
def dataflows() -> DataflowRegistry:
    return DataflowRegistry()


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def engine(
    dataflows: DataflowRegistry,
    step_types: StepTypeRegistry,
    scheduler: Scheduler,
    clock: FixedClock,
    event_bus: RecordingEventBus,
) -> LocalExecutionEngine:
    return LocalExecutionEngine(dataflows, step_types, scheduler=scheduler, clock=clock, event_bus=event_bus)


@pytest.fixture
def manager(dataflows: DataflowRegistry, step_types: StepTypeRegistry, engine: LocalExecutionEngine) -> DataflowManager:
    return DataflowManager(dataflows, step_types, engine.services)


@pytest.fixture
def make_dataflow() -> Callable[..., DataflowDefinition]:
    """Factory building a dataflow from compact step and link tuples.

    Steps are ``(id, type)`` or ``(id, type, config)``. Links are
    ``(source, target)`` or ``(source, target, target_index)`` or
    ``(source, target, target_index, source_index)``; all links are connector
    edges unless ``kind`` is given.
    """

    def factory(
        dataflow_id: str,
        steps: list[tuple[Any, ...]],
        links: list[tuple[Any, ...]] = (),  # type: ignore[assignment]
        *,
        kind: EdgeKind = EdgeKind.CONNECTOR,
        enabled: bool = True,
    ) -> DataflowDefinition:
        return DataflowDefinition(
            id=dataflow_id,
            enabled=enabled,
            steps=tuple(
                StepDefinition(
                    id=step[0], dataflow_id=dataflow_id, type=step[1], config=step[2] if len(step) > 2 else {}
                )
                for step in steps
            ),
            links=tuple(
                Link(
                    source=link[0],
                    target=link[1],
                    kind=kind,
                    target_index=link[2] if len(link) > 2 else 0,
                    source_index=link[3] if len(link) > 3 else 0,
                )
                for link in links
            ),
        )

    return factory
