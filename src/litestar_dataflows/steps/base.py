"""Base step implementations for litestar-dataflows."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from litestar_dataflows.core.types import StepRole

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_dataflows.core.context import EngineStep
    from litestar_dataflows.core.definition import DataflowDefinition, StepDefinition
    from litestar_dataflows.core.protocols import Clock, ConfigFormBuilder, CronEvaluator
    from litestar_dataflows.core.types import Bounds, ConfigValue
    from litestar_dataflows.scheduling.scheduler import Scheduler

__all__ = ["UNBOUNDED", "BaseConnectorStep", "BaseFlowStep", "BaseStep", "BaseTriggerStep", "StepServices"]

logger = logging.getLogger(__name__)

UNBOUNDED = sys.maxsize
"""Upper cardinality bound allowing any number of edges."""


@dataclass(frozen=True)
class StepServices:
    """Host collaborators handed to step instances.

    The scheduler is the only channel through which a step may update state
    outside its own engine step (e.g. committing the next run time).

    Attributes:
        scheduler: Scheduled-time storage.
        clock: Source of "now".
        cron: Cron schedule evaluator.
    """

    scheduler: Scheduler
    clock: Clock
    cron: CronEvaluator


class BaseStep:
    """Base implementation with common functionality for all steps.

    This class provides default implementations of the Step protocol methods
    and common attributes. Subclass one of the role-specific bases to create a
    custom step type.

    A step instance is bound to a step definition. The engine creates a fresh
    instance per run and binds ``enginestep``; configuration hooks run on an
    instance whose ``enginestep`` is ``None``.
    """

    type_name: ClassVar[str] = ""
    """Name the step type is registered under."""

    role: ClassVar[StepRole] = StepRole.CONNECTOR
    """Graph role of the step type."""

    output_flows: ClassVar[Bounds] = (0, 1)
    """Inclusive ``(min, max)`` number of outgoing flow edges."""

    output_connectors: ClassVar[Bounds] = (0, 1)
    """Inclusive ``(min, max)`` number of outgoing connector edges."""

    emits_per_slot: ClassVar[bool] = False
    """Whether ``execute`` returns a sequence with one value per output slot."""

    config_fields: ClassVar[Mapping[str, ConfigValue]] = MappingProxyType({})
    """Configuration keys understood by the step type, with their defaults."""

    def __init__(
        self,
        stepdef: StepDefinition,
        services: StepServices | None = None,
        enginestep: EngineStep | None = None,
    ) -> None:
        """Initialize the step.

        Args:
            stepdef: The step definition this instance is bound to.
            services: Host collaborators. Required by steps that schedule.
            enginestep: The engine step of the current run, if any.
        """
        self.stepdef = stepdef
        self.services = services
        self.enginestep = enginestep

    @property
    def name(self) -> str:
        """Name of the bound step definition."""
        return self.stepdef.name

    @property
    def config(self) -> Mapping[str, ConfigValue]:
        """Read-only configuration with the type's defaults filled in."""
        return MappingProxyType({**self.config_fields, **self.stepdef.config})

    @property
    def is_dry_run(self) -> bool:
        """Whether the current run suppresses side effects."""
        return self.enginestep is not None and self.enginestep.dry_run

    def require_services(self) -> StepServices:
        """Return the bound services or fail loudly if there are none.

        Raises:
            RuntimeError: If the step was created without services.
        """
        if self.services is None:
            msg = f"Step type '{self.type_name}' requires StepServices"
            raise RuntimeError(msg)
        return self.services

    async def execute(self, input: Any) -> Any:
        """Execute the step with the given input.

        Override this method to implement step logic.

        Args:
            input: The value received from upstream.

        Returns:
            The value propagated to successors.

        Raises:
            NotImplementedError: Must be implemented by subclasses.
        """
        msg = f"Step {self.name} must implement execute()"
        raise NotImplementedError(msg)

    def validate_config(self, config: Mapping[str, ConfigValue]) -> bool | dict[str, str]:
        """Validate a configuration before it is saved or run.

        Override this method to reject malformed configuration.

        Args:
            config: The configuration to validate, defaults included.

        Returns:
            ``True`` if valid, otherwise a mapping of ``config_<field>`` to message.
        """
        return True

    async def on_save(self) -> None:
        """Hook called after the step definition has been persisted."""

    async def on_delete(self) -> None:
        """Hook called when the step definition is removed."""

    async def on_finalise(self) -> None:
        """Hook called when the engine step completes within a run.

        Implementations that mutate external state must check
        :attr:`is_dry_run` and do nothing when it is set.
        """

    async def form_define(
        self,
        builder: ConfigFormBuilder,
        dataflow: DataflowDefinition | None = None,
    ) -> None:
        """Describe the configuration fields to a host form builder.

        Args:
            builder: The host form builder.
            dataflow: The dataflow the step belongs to, if known.
        """
        for field_name, default in self.config_fields.items():
            builder.add_field(f"config_{field_name}", field_name, default)


class BaseTriggerStep(BaseStep):
    """Base for trigger steps.

    A trigger is the unique entry point of a dataflow. It has no inputs and
    produces the value that seeds the run, which may fan out to any number of
    steps.
    """

    role: ClassVar[StepRole] = StepRole.TRIGGER
    output_flows: ClassVar[Bounds] = (0, UNBOUNDED)
    output_connectors: ClassVar[Bounds] = (0, UNBOUNDED)


class BaseConnectorStep(BaseStep):
    """Base for connector steps.

    Connectors transform and branch values, typically without side effects.
    """

    role: ClassVar[StepRole] = StepRole.CONNECTOR


class BaseFlowStep(BaseStep):
    """Base for flow steps.

    Flow steps perform side-effecting I/O and pass their input through. In a
    dry-run :meth:`apply` is never called; :meth:`preview` reports what the
    step would have produced instead.
    """

    role: ClassVar[StepRole] = StepRole.FLOW

    async def execute(self, input: Any) -> Any:
        """Apply the side effect, or preview it when the run is a dry-run."""
        if self.is_dry_run:
            logger.debug("Dry-run: suppressing side effect of step %s", self.stepdef.id)
            return await self.preview(input)
        return await self.apply(input)

    async def apply(self, input: Any) -> Any:
        """Perform the side effect and return the output.

        Raises:
            NotImplementedError: Must be implemented by subclasses.
        """
        msg = f"Flow step {self.name} must implement apply()"
        raise NotImplementedError(msg)

    async def preview(self, input: Any) -> Any:
        """Return what :meth:`apply` would produce, without side effects."""
        return input
