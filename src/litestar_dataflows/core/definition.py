"""Dataflow definition and link structures.

This module provides the immutable data structures describing a dataflow
graph: the step definitions (nodes), the links between them (edges) and the
dataflow that owns them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from litestar_dataflows.core.types import EdgeKind

if TYPE_CHECKING:
    from litestar_dataflows.core.types import ConfigValue

__all__ = ["DataflowDefinition", "Link", "StepDefinition", "freeze_config"]


def freeze_config(config: Mapping[str, Any] | None) -> Mapping[str, ConfigValue]:
    """Return a read-only copy of a step configuration mapping.

    Args:
        config: The configuration to copy. ``None`` yields an empty mapping.

    Returns:
        A ``MappingProxyType`` over a private copy of ``config``.
    """
    return MappingProxyType(dict(config or {}))


@dataclass(frozen=True)
class Link:
    """Directed connection from one step's output to another step's input.

    Attributes:
        source: Id of the step producing the value.
        target: Id of the step receiving the value.
        kind: Whether this is a flow edge or a connector edge.
        source_index: Output slot of the source step.
        target_index: Input slot of the target step.

    Example:
        >>> link = Link(source="trigger", target="copy", kind=EdgeKind.FLOW)
        >>> link.target_index
        0
    """

    source: str
    target: str
    kind: EdgeKind = EdgeKind.CONNECTOR
    source_index: int = 0
    target_index: int = 0


@dataclass(frozen=True)
class StepDefinition:
    """Static, persisted description of one node in a dataflow graph.

    Step definitions are read immutably during a run. The configuration is
    stored as a read-only mapping; use :meth:`with_config` to derive an edited
    copy.

    Attributes:
        id: Identifier of the step, unique within its dataflow.
        dataflow_id: Identifier of the owning dataflow.
        type: Registered step type name (e.g. ``"trigger_cron"``).
        config: Read-only configuration mapping of scalar values.
        name: Human-readable name. Defaults to the id.
        position: Optional layout coordinates, carried but not interpreted.
    """

    id: str
    dataflow_id: str
    type: str
    config: Mapping[str, ConfigValue] = field(default_factory=lambda: MappingProxyType({}))
    name: str = ""
    position: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.config, MappingProxyType):
            object.__setattr__(self, "config", freeze_config(self.config))
        if not self.name:
            object.__setattr__(self, "name", self.id)

    def with_config(self, **changes: ConfigValue) -> StepDefinition:
        """Return a copy of this definition with configuration values changed.

        Args:
            **changes: Configuration keys to set.

        Returns:
            A new StepDefinition with the merged configuration.
        """
        return replace(self, config=freeze_config({**self.config, **changes}))


@dataclass(frozen=True)
class DataflowDefinition:
    """Declarative dataflow structure.

    A dataflow is an ordered set of step definitions forming a DAG rooted at
    exactly one trigger step. The order of ``steps`` is the declaration order
    and is used to break ties when planning execution.

    Attributes:
        id: Unique identifier of the dataflow.
        name: Human-readable name.
        enabled: Whether scheduled execution is allowed. Manual runs and
            dry-runs ignore this flag.
        steps: Step definitions in declaration order.
        links: Links between steps.

    Example:
        >>> definition = DataflowDefinition(
        ...     id="nightly",
        ...     name="Nightly export",
        ...     steps=(
        ...         StepDefinition(id="cron", dataflow_id="nightly", type="trigger_cron"),
        ...         StepDefinition(id="noop", dataflow_id="nightly", type="connector_noop"),
        ...     ),
        ...     links=(Link(source="cron", target="noop"),),
        ... )
    """

    id: str
    name: str = ""
    enabled: bool = True
    steps: tuple[StepDefinition, ...] = ()
    links: tuple[Link, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "links", tuple(self.links))
        if not self.name:
            object.__setattr__(self, "name", self.id)

    @property
    def step_ids(self) -> list[str]:
        """Step ids in declaration order."""
        return [step.id for step in self.steps]

    def get_step(self, step_id: str) -> StepDefinition:
        """Look up a step definition by id.

        Args:
            step_id: The id of the step.

        Returns:
            The matching StepDefinition.

        Raises:
            KeyError: If no step has that id.
        """
        for step in self.steps:
            if step.id == step_id:
                return step
        msg = f"Step '{step_id}' not found in dataflow '{self.id}'"
        raise KeyError(msg)

    def has_step(self, step_id: str) -> bool:
        """Check whether a step with the given id exists."""
        return any(step.id == step_id for step in self.steps)

    def outgoing(self, step_id: str) -> list[Link]:
        """Links leaving the given step, in declaration order."""
        return [link for link in self.links if link.source == step_id]

    def incoming(self, step_id: str) -> list[Link]:
        """Links entering the given step, in declaration order."""
        return [link for link in self.links if link.target == step_id]

    def with_step(self, step: StepDefinition) -> DataflowDefinition:
        """Return a copy with ``step`` added, or replacing the step with the same id."""
        if self.has_step(step.id):
            steps = tuple(step if s.id == step.id else s for s in self.steps)
        else:
            steps = (*self.steps, step)
        return replace(self, steps=steps)

    def without_step(self, step_id: str) -> DataflowDefinition:
        """Return a copy with the step and every link touching it removed."""
        return replace(
            self,
            steps=tuple(s for s in self.steps if s.id != step_id),
            links=tuple(link for link in self.links if step_id not in (link.source, link.target)),
        )

    def to_mermaid(self) -> str:
        """Generate a MermaidJS graph representation of the dataflow.

        Flow edges are drawn as thick arrows, connector edges as plain ones.

        Returns:
            MermaidJS graph definition as a string.

        Example:
            >>> print(definition.to_mermaid())
            graph TD
                cron[cron: trigger_cron]
                noop[noop: connector_noop]
                cron --> noop
        """
        lines = ["graph TD"]
        for step in self.steps:
            lines.append(f"    {step.id}[{step.name}: {step.type}]")
        for link in self.links:
            arrow = "==>" if link.kind == EdgeKind.FLOW else "-->"
            lines.append(f"    {link.source} {arrow} {link.target}")
        return "\n".join(lines)
