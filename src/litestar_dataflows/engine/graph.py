"""Dataflow graph operations and validation.

This module provides graph-based operations for dataflow definitions:
step navigation, structural validation and deterministic topological
ordering.
"""

from __future__ import annotations

import heapq
from collections import Counter
from typing import TYPE_CHECKING

from litestar_dataflows.core.types import EdgeKind, StepRole
from litestar_dataflows.exceptions import ConfigurationError, ConfigurationIssue

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_dataflows.core.definition import DataflowDefinition, Link
    from litestar_dataflows.steps.base import BaseStep

__all__ = ["DataflowGraph"]


class DataflowGraph:
    """Graph representation of a dataflow for navigation and validation.

    Links whose endpoints are not steps of the dataflow are left out of the
    adjacency lists; :meth:`validate` reports them.

    Attributes:
        definition: The dataflow definition this graph represents.
        _adjacency: Step id to outgoing links.
        _reverse_adjacency: Step id to incoming links.
        _position: Step id to declaration index, used to break ordering ties.
    """

    def __init__(self, definition: DataflowDefinition) -> None:
        """Initialize a dataflow graph from a definition.

        Args:
            definition: The dataflow definition to represent as a graph.
        """
        self.definition = definition
        self._adjacency: dict[str, list[Link]] = {}
        self._reverse_adjacency: dict[str, list[Link]] = {}
        self._position: dict[str, int] = {}
        self._build_adjacency()

    def _build_adjacency(self) -> None:
        for index, step in enumerate(self.definition.steps):
            self._position.setdefault(step.id, index)
            self._adjacency.setdefault(step.id, [])
            self._reverse_adjacency.setdefault(step.id, [])

        for link in self.definition.links:
            if link.source in self._adjacency and link.target in self._adjacency:
                self._adjacency[link.source].append(link)
                self._reverse_adjacency[link.target].append(link)

    @classmethod
    def from_definition(cls, definition: DataflowDefinition) -> DataflowGraph:
        """Create a dataflow graph from a definition.

        Example:
            >>> graph = DataflowGraph.from_definition(my_definition)
        """
        return cls(definition)

    def get_next_steps(self, step_id: str) -> list[str]:
        """Get the ids of the steps fed by ``step_id``, without duplicates.

        Example:
            >>> graph.get_next_steps("trigger")
            ['copy', 'notify']
        """
        return list(dict.fromkeys(link.target for link in self._adjacency.get(step_id, [])))

    def get_previous_steps(self, step_id: str) -> list[str]:
        """Get the ids of the steps feeding ``step_id``, without duplicates."""
        return list(dict.fromkeys(link.source for link in self._reverse_adjacency.get(step_id, [])))

    def outgoing_links(self, step_id: str) -> list[Link]:
        """Links leaving ``step_id``."""
        return list(self._adjacency.get(step_id, []))

    def incoming_links(self, step_id: str) -> list[Link]:
        """Links entering ``step_id``."""
        return list(self._reverse_adjacency.get(step_id, []))

    def input_slots(self, step_id: str) -> tuple[int, ...]:
        """Sorted input slot indexes of ``step_id`` that are fed by a link."""
        return tuple(sorted({link.target_index for link in self._reverse_adjacency.get(step_id, [])}))

    def is_terminal(self, step_id: str) -> bool:
        """Whether ``step_id`` has no outgoing links."""
        return not self._adjacency.get(step_id)

    def triggers(self, step_types: Mapping[str, type[BaseStep]]) -> list[str]:
        """Ids of the steps whose type has the trigger role, in declaration order."""
        return [
            step.id
            for step in self.definition.steps
            if step.type in step_types and step_types[step.type].role == StepRole.TRIGGER
        ]

    def validate(self, step_types: Mapping[str, type[BaseStep]]) -> list[ConfigurationIssue]:
        """Validate the dataflow graph structure.

        Checks:
        - Duplicate step ids and unknown step types
        - Links referring to missing steps
        - Exactly one trigger, with no incoming links
        - Acyclicity
        - Reachability of every step from the trigger
        - Outgoing flow and connector counts against the type's bounds
        - Input slots fed by more than one link

        Args:
            step_types: Registered step classes keyed by type name.

        Returns:
            Every issue found. Empty list if valid.

        Example:
            >>> issues = graph.validate(registry.as_mapping())
            >>> for issue in issues:
            ...     print(issue)
        """
        issues: list[ConfigurationIssue] = []

        for step_id, count in Counter(self.definition.step_ids).items():
            if count > 1:
                issues.append(ConfigurationIssue(f"Step id is used {count} times", step_id=step_id))

        for step in self.definition.steps:
            if step.type not in step_types:
                issues.append(ConfigurationIssue(f"Unknown step type '{step.type}'", step_id=step.id))

        for link in self.definition.links:
            for endpoint in (link.source, link.target):
                if endpoint not in self._adjacency:
                    issues.append(
                        ConfigurationIssue(f"Link {link.source} -> {link.target} refers to missing step '{endpoint}'")
                    )

        triggers = self.triggers(step_types)
        if not triggers:
            issues.append(ConfigurationIssue("Dataflow has no trigger step"))
        elif len(triggers) > 1:
            issues.append(ConfigurationIssue(f"Dataflow has {len(triggers)} trigger steps: {', '.join(triggers)}"))
        for trigger in triggers:
            if self._reverse_adjacency.get(trigger):
                issues.append(ConfigurationIssue("Trigger step cannot have incoming links", step_id=trigger))

        cyclic = self._cyclic_steps()
        if cyclic:
            issues.append(ConfigurationIssue(f"Dataflow contains a cycle through: {', '.join(cyclic)}"))

        if len(triggers) == 1:
            reachable = self._get_reachable_steps(triggers[0])
            for step_id in self._position:
                if step_id not in reachable:
                    issues.append(ConfigurationIssue("Step is unreachable from the trigger", step_id=step_id))

        for step in self.definition.steps:
            step_class = step_types.get(step.type)
            if step_class is not None:
                issues.extend(self._check_cardinality(step.id, step_class))

        for step_id, links in self._reverse_adjacency.items():
            for slot, count in sorted(Counter(link.target_index for link in links).items()):
                if count > 1:
                    issues.append(
                        ConfigurationIssue(f"Input slot {slot} is fed by {count} links", step_id=step_id)
                    )

        return issues

    def _check_cardinality(self, step_id: str, step_class: type[BaseStep]) -> list[ConfigurationIssue]:
        issues = []
        links = self._adjacency.get(step_id, [])
        for kind, (minimum, maximum) in (
            (EdgeKind.FLOW, step_class.output_flows),
            (EdgeKind.CONNECTOR, step_class.output_connectors),
        ):
            count = sum(1 for link in links if link.kind == kind)
            if not minimum <= count <= maximum:
                issues.append(
                    ConfigurationIssue(
                        f"Step type '{step_class.type_name}' allows {minimum} to {maximum} outgoing {kind} "
                        f"links, found {count}",
                        step_id=step_id,
                    )
                )
        return issues

    def _get_reachable_steps(self, start: str) -> set[str]:
        reachable: set[str] = set()
        to_visit = [start]

        while to_visit:
            current = to_visit.pop()
            if current in reachable:
                continue
            reachable.add(current)
            to_visit.extend(target for target in self.get_next_steps(current) if target not in reachable)

        return reachable

    def _kahn(self) -> list[str]:
        """Kahn's algorithm, always picking the ready step declared first."""
        in_degree = {step_id: len(self.get_previous_steps(step_id)) for step_id in self._position}
        ready = [(self._position[step_id], step_id) for step_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[str] = []

        while ready:
            _, current = heapq.heappop(ready)
            order.append(current)
            for target in self.get_next_steps(current):
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    heapq.heappush(ready, (self._position[target], target))

        return order

    def _cyclic_steps(self) -> list[str]:
        ordered = set(self._kahn())
        return [step_id for step_id in self._position if step_id not in ordered]

    def topological_order(self) -> list[str]:
        """Return step ids in execution order.

        Ties between independent steps are broken by declaration order, so
        the order is deterministic for a given definition.

        Raises:
            ConfigurationError: If the graph contains a cycle.

        Example:
            >>> graph.topological_order()
            ['trigger', 'extract', 'load']
        """
        order = self._kahn()
        if len(order) != len(self._position):
            cyclic = [step_id for step_id in self._position if step_id not in set(order)]
            raise ConfigurationError(
                [ConfigurationIssue(f"Dataflow contains a cycle through: {', '.join(cyclic)}")],
                dataflow_id=self.definition.id,
            )
        return order

    def get_step_depth(self, step_id: str) -> int:
        """Get the length of the longest path from any root to ``step_id``.

        Returns:
            0 for roots, -1 if the step is unknown or part of a cycle.
        """
        depth: dict[str, int] = {}
        for current in self._kahn():
            previous = self.get_previous_steps(current)
            depth[current] = 1 + max((depth[p] for p in previous), default=-1)
        return depth.get(step_id, -1)
