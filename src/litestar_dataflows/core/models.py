"""Concrete data models for litestar-dataflows.

This module provides concrete dataclass implementations for run-time data:
the state of one dataflow run and the scheduled-time record of a dataflow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from litestar_dataflows.core.types import RunStatus, StepStatus

if TYPE_CHECKING:
    from litestar_dataflows.core.context import EngineStep


__all__ = ["DataflowRun", "ScheduledTimes"]


@dataclass(frozen=True)
class ScheduledTimes:
    """Last and next run timestamps of a time-triggered dataflow.

    Attributes:
        dataflow_id: The dataflow the record belongs to.
        lastruntime: Epoch seconds of the last run, 0 if it never ran.
        nextruntime: Epoch seconds of the next due run, 0 if unset.
    """

    dataflow_id: str
    lastruntime: int = 0
    nextruntime: int = 0

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record shape."""
        return {
            "dataflow_id": self.dataflow_id,
            "lastruntime": int(self.lastruntime),
            "nextruntime": int(self.nextruntime),
        }

    @classmethod
    def from_record(cls, dataflow_id: str, record: dict[str, Any]) -> ScheduledTimes:
        """Build an instance from a persisted record."""
        return cls(
            dataflow_id=dataflow_id,
            lastruntime=int(record.get("lastruntime") or 0),
            nextruntime=int(record.get("nextruntime") or 0),
        )

    def is_due(self, now: int) -> bool:
        """Whether the next run time has been reached."""
        return self.nextruntime <= now


@dataclass
class DataflowRun:
    """State of a single dataflow run.

    The run is the engine context every engine step references. It holds the
    dry-run flag, the planned execution order and the engine steps keyed by
    step id.

    Attributes:
        id: Unique identifier for this run.
        dataflow_id: Identifier of the dataflow being run.
        dry_run: Whether external side effects are suppressed.
        status: Current run status.
        order: Step ids in execution order.
        steps: Engine steps keyed by step id.
        started_at: When the run started executing.
        completed_at: When the run ended.
        error: Summary of the failure, if the run failed.
        cancel_requested: Whether an abort was requested.
        scheduled_time: Epoch seconds of the schedule slot a dispatched run
            was started for, ``None`` for manual runs.
    """

    id: UUID
    dataflow_id: str
    dry_run: bool = False
    status: RunStatus = RunStatus.PENDING
    order: list[str] = field(default_factory=list)
    steps: dict[str, EngineStep] = field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    cancel_requested: bool = False
    scheduled_time: int | None = None

    def request_cancel(self) -> None:
        """Ask the engine to stop before the next step executes."""
        self.cancel_requested = True

    def ordered_steps(self) -> list[EngineStep]:
        """Engine steps in execution order."""
        return [self.steps[step_id] for step_id in self.order]

    def steps_with_status(self, status: StepStatus) -> list[str]:
        """Ids of the steps currently in ``status``, in execution order."""
        return [step_id for step_id in self.order if self.steps[step_id].status == status]

    @property
    def failed_steps(self) -> list[str]:
        """Ids of failed steps."""
        return self.steps_with_status(StepStatus.FAILED)

    @property
    def skipped_steps(self) -> list[str]:
        """Ids of skipped steps."""
        return self.steps_with_status(StepStatus.SKIPPED)

    @property
    def finished_steps(self) -> list[str]:
        """Ids of finished steps."""
        return self.steps_with_status(StepStatus.FINISHED)

    @property
    def outputs(self) -> dict[str, Any]:
        """Outputs of the finished steps keyed by step id."""
        return {step_id: self.steps[step_id].output for step_id in self.finished_steps}

    @property
    def is_complete(self) -> bool:
        """Whether the run reached a terminal status."""
        return self.status in (RunStatus.FINISHED, RunStatus.FAILED, RunStatus.CANCELED)
