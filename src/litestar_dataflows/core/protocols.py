"""Core protocols for litestar-dataflows.

This module defines the Protocol-based interfaces for step types and for the
host collaborators the engine depends on. The engine core only talks to these
narrow interfaces, never to concrete host APIs, which keeps it embeddable in
any application that can provide them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_dataflows.core.context import EngineStep
    from litestar_dataflows.core.definition import DataflowDefinition, StepDefinition
    from litestar_dataflows.core.events import DataflowEvent
    from litestar_dataflows.core.types import Bounds, ConfigValue, StepRole


__all__ = [
    "Clock",
    "ConfigFormBuilder",
    "CronEvaluator",
    "DataflowLoader",
    "DataflowStore",
    "EventBus",
    "KeyValueStore",
    "Step",
]


@runtime_checkable
class Step(Protocol):
    """Protocol defining the capability interface of a step type.

    A step instance is bound to one step definition. During a run the engine
    also binds it to the engine step wrapping that definition; outside a run
    (``on_save`` / ``on_delete``) ``enginestep`` is ``None``.

    Attributes:
        role: Graph role of the step type (trigger, connector or flow).
        output_flows: ``(min, max)`` number of outgoing flow edges.
        output_connectors: ``(min, max)`` number of outgoing connector edges.
        emits_per_slot: Whether ``execute`` returns one value per output slot.
        stepdef: The step definition this instance is bound to.
        enginestep: The engine step of the current run, or ``None``.

    Example:
        >>> class Upper:
        ...     role = StepRole.CONNECTOR
        ...     output_flows = (0, 1)
        ...     output_connectors = (0, 1)
        ...
        ...     async def execute(self, input: Any) -> Any:
        ...         return input.upper()
    """

    role: StepRole
    output_flows: Bounds
    output_connectors: Bounds
    emits_per_slot: bool
    stepdef: StepDefinition
    enginestep: EngineStep | None

    async def execute(self, input: Any) -> Any:
        """Transform one input value into one output value.

        Args:
            input: The value received from the predecessor(s). ``None`` for
                triggers; a tuple ordered by input slot for joins.

        Returns:
            The value propagated to successors (may be ``None``).
        """
        ...

    def validate_config(self, config: Mapping[str, ConfigValue]) -> bool | dict[str, str]:
        """Validate a configuration before it is saved or run.

        Args:
            config: The configuration to validate.

        Returns:
            ``True`` if valid, otherwise a mapping of field name to message.
        """
        ...

    async def on_save(self) -> None:
        """Hook called after the step definition has been persisted."""
        ...

    async def on_delete(self) -> None:
        """Hook called when the step definition is removed."""
        ...

    async def on_finalise(self) -> None:
        """Hook called when the engine step completes within a run."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time as epoch seconds."""

    def now(self) -> int:
        """Return the current time as integer epoch seconds."""
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Storage for small records keyed by string.

    The scheduler keeps one record per dataflow id. ``upsert`` must replace
    the whole record in a single operation.
    """

    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the record stored under ``key`` or ``None``."""
        ...

    async def upsert(self, key: str, value: dict[str, Any]) -> None:
        """Insert or replace the record stored under ``key``."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete the record under ``key``; return whether one existed."""
        ...

    async def items(self) -> list[tuple[str, dict[str, Any]]]:
        """Return every stored ``(key, record)`` pair."""
        ...


@runtime_checkable
class CronEvaluator(Protocol):
    """Evaluates five-field cron schedules."""

    def validate_field(self, field: str, value: str) -> bool:
        """Return whether ``value`` is valid syntax for cron ``field``."""
        ...

    def next_run_time(self, fields: Mapping[str, str], after: int) -> int:
        """Return the first matching epoch time strictly after ``after``."""
        ...


@runtime_checkable
class ConfigFormBuilder(Protocol):
    """Host-side builder used by step types to describe their configuration form."""

    def add_field(self, name: str, label: str, default: ConfigValue = None) -> None:
        """Declare an editable configuration field."""
        ...

    def add_static(self, name: str, label: str, value: str) -> None:
        """Declare a read-only informational line."""
        ...


@runtime_checkable
class DataflowLoader(Protocol):
    """Source of dataflow definitions for the engine."""

    async def get_dataflow(self, dataflow_id: str) -> DataflowDefinition:
        """Return the dataflow definition for ``dataflow_id``.

        Raises:
            DataflowNotFoundError: If no such dataflow exists.
        """
        ...

    async def list_dataflows(self) -> list[DataflowDefinition]:
        """Return every known dataflow definition."""
        ...


@runtime_checkable
class DataflowStore(DataflowLoader, Protocol):
    """Writable source of dataflow definitions, used when editing dataflows."""

    async def save_dataflow(self, definition: DataflowDefinition) -> None:
        """Persist ``definition``, replacing any stored dataflow with the same id."""
        ...

    async def delete_dataflow(self, dataflow_id: str) -> bool:
        """Remove a dataflow with its steps and links. Returns True if it existed."""
        ...


@runtime_checkable
class EventBus(Protocol):
    """Receiver of dataflow lifecycle events."""

    async def emit(self, event: DataflowEvent) -> None:
        """Publish one event."""
        ...
