"""Registries for step types and dataflow definitions.

This module provides the step-type registry the engine resolves step
definitions against, and an in-memory dataflow store for applications that
do not persist their dataflows in a database.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from litestar_dataflows.exceptions import DataflowNotFoundError, UnknownStepTypeError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from litestar_dataflows.core.definition import DataflowDefinition
    from litestar_dataflows.steps.base import BaseStep

__all__ = ["DataflowRegistry", "StepTypeRegistry"]


class StepTypeRegistry:
    """Registry mapping step type names to step classes.

    Attributes:
        _types: Map of type name to step class.
    """

    def __init__(self, step_types: Iterable[type[BaseStep]] = ()) -> None:
        """Initialize the registry.

        Args:
            step_types: Step classes to register up front.
        """
        self._types: dict[str, type[BaseStep]] = {}
        for step_type in step_types:
            self.register(step_type)

    @classmethod
    def with_builtins(cls) -> StepTypeRegistry:
        """Create a registry holding the built-in step types.

        Example:
            >>> registry = StepTypeRegistry.with_builtins()
            >>> registry.has("trigger_cron")
            True
        """
        from litestar_dataflows.steps import BUILTIN_STEP_TYPES

        return cls(BUILTIN_STEP_TYPES)

    def register(self, step_type: type[BaseStep]) -> type[BaseStep]:
        """Register a step class under its ``type_name``.

        Returns the class unchanged, so this can be used as a decorator.

        Args:
            step_type: The step class to register.

        Raises:
            ValueError: If the class has no type name, or the name is taken by
                another class.

        Example:
            >>> @registry.register
            ... class Upper(BaseConnectorStep):
            ...     type_name = "connector_upper"
        """
        name = step_type.type_name
        if not name:
            msg = f"Step class {step_type.__name__} has no type_name"
            raise ValueError(msg)
        existing = self._types.get(name)
        if existing is not None and existing is not step_type:
            msg = f"Step type '{name}' is already registered to {existing.__name__}"
            raise ValueError(msg)
        self._types[name] = step_type
        return step_type

    def get(self, type_name: str) -> type[BaseStep]:
        """Resolve a type name to its step class.

        Raises:
            UnknownStepTypeError: If the name is not registered.
        """
        try:
            return self._types[type_name]
        except KeyError:
            raise UnknownStepTypeError(type_name) from None

    def has(self, type_name: str) -> bool:
        """Check if a type name is registered."""
        return type_name in self._types

    def list_types(self) -> list[str]:
        """Registered type names, sorted."""
        return sorted(self._types)

    def unregister(self, type_name: str) -> None:
        """Remove a step type. Unknown names are ignored."""
        self._types.pop(type_name, None)

    def as_mapping(self) -> Mapping[str, type[BaseStep]]:
        """Read-only view of the registered classes keyed by type name."""
        return MappingProxyType(self._types)


class DataflowRegistry:
    """In-memory store of dataflow definitions.

    Implements both the loader interface the engine reads from and the
    writable store interface the dataflow manager edits through.

    Example:
        >>> registry = DataflowRegistry()
        >>> registry.add(definition)
        >>> (await registry.get_dataflow(definition.id)).name
        'Nightly export'
    """

    def __init__(self, definitions: Iterable[DataflowDefinition] = ()) -> None:
        self._definitions: dict[str, DataflowDefinition] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: DataflowDefinition) -> None:
        """Store a definition, replacing one with the same id."""
        self._definitions[definition.id] = definition

    def remove(self, dataflow_id: str) -> bool:
        """Remove a definition. Returns True if it was present."""
        return self._definitions.pop(dataflow_id, None) is not None

    def has_dataflow(self, dataflow_id: str) -> bool:
        return dataflow_id in self._definitions

    async def get_dataflow(self, dataflow_id: str) -> DataflowDefinition:
        try:
            return self._definitions[dataflow_id]
        except KeyError:
            raise DataflowNotFoundError(dataflow_id) from None

    async def list_dataflows(self) -> list[DataflowDefinition]:
        return list(self._definitions.values())

    async def save_dataflow(self, definition: DataflowDefinition) -> None:
        self.add(definition)

    async def delete_dataflow(self, dataflow_id: str) -> bool:
        return self.remove(dataflow_id)
