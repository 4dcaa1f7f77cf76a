"""Per-run engine step state.

This module provides the EngineStep dataclass, the runtime wrapper the engine
creates around each step definition for the duration of one run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from litestar_dataflows.core.types import StepStatus

if TYPE_CHECKING:
    from litestar_dataflows.core.definition import StepDefinition
    from litestar_dataflows.core.models import DataflowRun
    from litestar_dataflows.core.protocols import Step

__all__ = ["EngineStep"]


@dataclass(eq=False)
class EngineStep:
    """Runtime wrapper around a step definition during one run.

    The engine step references (but does not own) its step definition and the
    run it belongs to. It buffers the values delivered to each input slot and
    the value the step produced. Engine steps are never persisted.

    Attributes:
        stepdef: The step definition being executed.
        run: The run this engine step belongs to.
        step: The step implementation bound to this engine step.
        input_slots: Input slot indexes fed by incoming links.
        inputs: Values delivered so far, keyed by input slot.
        output: Value produced by ``execute``.
        status: Current execution status.
        error: Error message if the step failed.
        exception: The exception raised by the step, if any.
        skip_reason: Why the step was skipped, if it was.
        started_at: When execution began.
        finished_at: When execution ended.
        finalised: Whether ``on_finalise`` has been called.

    Example:
        >>> enginestep.receive(0, "payload")
        >>> enginestep.ready
        True
        >>> enginestep.input_value()
        'payload'
    """

    stepdef: StepDefinition
    run: DataflowRun
    step: Step
    input_slots: tuple[int, ...] = ()
    inputs: dict[int, Any] = field(default_factory=dict)
    output: Any = None
    status: StepStatus = StepStatus.PENDING
    error: str | None = None
    exception: BaseException | None = None
    skip_reason: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    finalised: bool = False

    @property
    def id(self) -> str:
        """Id of the wrapped step definition."""
        return self.stepdef.id

    @property
    def dry_run(self) -> bool:
        """Dry-run flag inherited from the owning run."""
        return self.run.dry_run

    @property
    def ready(self) -> bool:
        """Whether every input slot has received a value."""
        return all(slot in self.inputs for slot in self.input_slots)

    @property
    def is_done(self) -> bool:
        """Whether the step reached a terminal status."""
        return self.status in (StepStatus.FINISHED, StepStatus.SKIPPED, StepStatus.FAILED)

    def receive(self, slot: int, value: Any) -> None:
        """Deliver a value into one of this step's input slots.

        Args:
            slot: The input slot index.
            value: The value produced upstream.
        """
        self.inputs[slot] = value

    def input_value(self) -> Any:
        """Assemble the value passed to ``execute``.

        Returns:
            ``None`` when the step has no inputs (a trigger), the bare value for
            a single input slot, or a tuple ordered by slot index for joins.
        """
        if not self.input_slots:
            return None
        if len(self.input_slots) == 1:
            return self.inputs.get(self.input_slots[0])
        return tuple(self.inputs.get(slot) for slot in sorted(self.input_slots))

    def output_for(self, slot: int) -> Any:
        """Return the value to send out of output slot ``slot``.

        Steps that emit per slot return a sequence indexed by output slot;
        every other step fans the same value out on every slot.
        """
        if getattr(self.step, "emits_per_slot", False):
            return self.output[slot]
        return self.output
