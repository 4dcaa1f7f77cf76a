"""Tests for engine steps and run state."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

import pytest

from litestar_dataflows.core.context import EngineStep
from litestar_dataflows.core.definition import StepDefinition
from litestar_dataflows.core.models import DataflowRun, ScheduledTimes
from litestar_dataflows.core.types import RunStatus, StepStatus
from litestar_dataflows.steps.base import BaseConnectorStep
from litestar_dataflows.steps.connector_noop import NoopConnector


class PairConnector(BaseConnectorStep):
    type_name = "test_pair"
    emits_per_slot = True

    async def execute(self, input: Any) -> Any:
        return ("a", "b")


def _enginestep(run: DataflowRun, step_id: str, slots: tuple[int, ...] = (), step_class: type = NoopConnector):
    stepdef = StepDefinition(id=step_id, dataflow_id=run.dataflow_id, type=step_class.type_name)
    enginestep = EngineStep(stepdef=stepdef, run=run, step=step_class(stepdef), input_slots=slots)
    run.steps[step_id] = enginestep
    run.order.append(step_id)
    return enginestep


@pytest.fixture
def run() -> DataflowRun:
    return DataflowRun(id=uuid4(), dataflow_id="d")


@pytest.mark.unit
class TestEngineStep:
    """Tests for EngineStep."""

    def test_trigger_receives_none(self, run: DataflowRun) -> None:
        enginestep = _enginestep(run, "trigger")

        assert enginestep.ready
        assert enginestep.input_value() is None

    def test_single_slot_passes_bare_value(self, run: DataflowRun) -> None:
        enginestep = _enginestep(run, "noop", slots=(0,))

        assert not enginestep.ready
        enginestep.receive(0, {"row": 1})

        assert enginestep.ready
        assert enginestep.input_value() == {"row": 1}

    def test_join_passes_tuple_ordered_by_slot(self, run: DataflowRun) -> None:
        enginestep = _enginestep(run, "join", slots=(0, 1, 2))
        enginestep.receive(2, "c")
        enginestep.receive(0, "a")

        assert not enginestep.ready
        enginestep.receive(1, "b")

        assert enginestep.input_value() == ("a", "b", "c")

    def test_dry_run_follows_run(self, run: DataflowRun) -> None:
        enginestep = _enginestep(run, "noop")
        assert enginestep.dry_run is False

        run.dry_run = True
        assert enginestep.dry_run is True

    def test_output_fans_out_same_value(self, run: DataflowRun) -> None:
        enginestep = _enginestep(run, "noop")
        enginestep.output = "value"

        assert enginestep.output_for(0) == "value"
        assert enginestep.output_for(3) == "value"

    def test_output_per_slot(self, run: DataflowRun) -> None:
        enginestep = _enginestep(run, "pair", step_class=PairConnector)
        enginestep.output = ("a", "b")

        assert enginestep.output_for(0) == "a"
        assert enginestep.output_for(1) == "b"


@pytest.mark.unit
class TestDataflowRun:
    """Tests for DataflowRun."""

    def test_status_views(self, run: DataflowRun) -> None:
        first = _enginestep(run, "first")
        second = _enginestep(run, "second")
        third = _enginestep(run, "third")
        first.status = StepStatus.FINISHED
        first.output = 1
        second.status = StepStatus.FAILED
        third.status = StepStatus.SKIPPED

        assert run.finished_steps == ["first"]
        assert run.failed_steps == ["second"]
        assert run.skipped_steps == ["third"]
        assert run.outputs == {"first": 1}
        assert [s.id for s in run.ordered_steps()] == ["first", "second", "third"]

    def test_cancel_and_completion(self, run: DataflowRun) -> None:
        assert not run.is_complete
        run.request_cancel()

        assert run.cancel_requested
        run.status = RunStatus.CANCELED
        assert run.is_complete


@pytest.mark.unit
class TestScheduledTimes:
    """Tests for ScheduledTimes."""

    def test_record_round_trip(self) -> None:
        times = ScheduledTimes(dataflow_id="d", lastruntime=10, nextruntime=20)

        assert ScheduledTimes.from_record("d", times.to_record()) == times

    def test_missing_values_default_to_zero(self) -> None:
        times = ScheduledTimes.from_record("d", {"lastruntime": None})

        assert times.lastruntime == 0
        assert times.nextruntime == 0

    def test_is_due(self) -> None:
        assert ScheduledTimes("d", nextruntime=0).is_due(100)
        assert ScheduledTimes("d", nextruntime=100).is_due(100)
        assert not ScheduledTimes("d", nextruntime=101).is_due(100)
