"""Domain events for the dataflow run lifecycle.

This module defines the event types that are emitted during dataflow
execution. These events can be used for monitoring, auditing or integrating
with external systems through an event bus supplied by the host.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

__all__ = [
    "DataflowEvent",
    "DataflowRunCanceled",
    "DataflowRunFailed",
    "DataflowRunFinished",
    "DataflowRunStarted",
    "StepFailed",
    "StepFinalised",
    "StepFinished",
    "StepSkipped",
    "StepStarted",
]


@dataclass
class DataflowEvent:
    """Base class for all dataflow events.

    Attributes:
        run_id: Unique identifier of the dataflow run.
        dataflow_id: Identifier of the dataflow being run.
        timestamp: When the event occurred.
    """

    run_id: UUID
    dataflow_id: str
    timestamp: datetime


@dataclass
class DataflowRunStarted(DataflowEvent):
    """Event emitted when a run starts executing.

    Attributes:
        dry_run: Whether side effects are suppressed for this run.
        step_count: Number of steps planned for execution.

    Example:
        >>> event = DataflowRunStarted(
        ...     run_id=uuid4(),
        ...     dataflow_id="nightly",
        ...     timestamp=datetime.now(timezone.utc),
        ...     dry_run=True,
        ...     step_count=4,
        ... )
    """

    dry_run: bool = False
    step_count: int = 0


@dataclass
class DataflowRunFinished(DataflowEvent):
    """Event emitted when every step of a run finished.

    Attributes:
        duration_seconds: Total execution time in seconds.
    """

    duration_seconds: float | None = None


@dataclass
class DataflowRunFailed(DataflowEvent):
    """Event emitted when a run ends with at least one failed step.

    Attributes:
        failed_steps: Ids of the steps that failed.
        skipped_steps: Ids of the steps skipped because of the failures.
        error: Summary of the failure.
    """

    failed_steps: list[str]
    skipped_steps: list[str]
    error: str | None = None


@dataclass
class DataflowRunCanceled(DataflowEvent):
    """Event emitted when a run was aborted between step executions.

    Attributes:
        remaining_steps: Ids of the steps that never ran.
    """

    remaining_steps: list[str]


@dataclass
class StepStarted(DataflowEvent):
    """Event emitted when a step begins execution.

    Attributes:
        step_id: Id of the step that started.
        step_type: Registered type name of the step.
    """

    step_id: str
    step_type: str


@dataclass
class StepFinished(DataflowEvent):
    """Event emitted when a step produced its output.

    Attributes:
        step_id: Id of the step that finished.
        output: The value the step produced.
        duration_seconds: Execution time in seconds.

    Example:
        >>> event = StepFinished(
        ...     run_id=uuid4(),
        ...     dataflow_id="nightly",
        ...     timestamp=datetime.now(timezone.utc),
        ...     step_id="append",
        ...     output="/tmp/out.csv",
        ... )
    """

    step_id: str
    output: Any = None
    duration_seconds: float | None = None


@dataclass
class StepFailed(DataflowEvent):
    """Event emitted when a step execution or finalisation raised.

    Attributes:
        step_id: Id of the step that failed.
        error: Error message describing the failure.
        error_type: Class name of the underlying exception.
    """

    step_id: str
    error: str
    error_type: str | None = None


@dataclass
class StepSkipped(DataflowEvent):
    """Event emitted when a step could not run.

    Attributes:
        step_id: Id of the step that was skipped.
        reason: Why the step was skipped.
    """

    step_id: str
    reason: str | None = None


@dataclass
class StepFinalised(DataflowEvent):
    """Event emitted after a step's ``on_finalise`` hook returned."""

    step_id: str
