"""Editing of dataflow definitions.

The manager is the write side of the library: it persists step definitions
through a dataflow store and drives the step lifecycle hooks that belong to
editing, ``validate_config``, ``on_save`` and ``on_delete``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from litestar_dataflows.exceptions import ConfigurationError, ConfigurationIssue, SchedulingError
from litestar_dataflows.steps.trigger_cron import CronTrigger

if TYPE_CHECKING:
    from litestar_dataflows.core.definition import DataflowDefinition, Link, StepDefinition
    from litestar_dataflows.core.protocols import DataflowStore
    from litestar_dataflows.engine.registry import StepTypeRegistry
    from litestar_dataflows.steps.base import BaseStep, StepServices

__all__ = ["DataflowManager"]

logger = logging.getLogger(__name__)


class DataflowManager:
    """Persists dataflows and runs the editing hooks of their steps.

    Attributes:
        store: Writable source of dataflow definitions.
        step_types: Registry resolving step type names.
        services: Host collaborators handed to step instances.

    Example:
        >>> manager = DataflowManager(registry, StepTypeRegistry.with_builtins(), engine.services)
        >>> await manager.save_dataflow(DataflowDefinition(id="nightly"))
        >>> await manager.save_step(
        ...     StepDefinition(id="cron", dataflow_id="nightly", type="trigger_cron", config={"minute": "0"})
        ... )
    """

    def __init__(self, store: DataflowStore, step_types: StepTypeRegistry, services: StepServices) -> None:
        self.store = store
        self.step_types = step_types
        self.services = services

    def _instantiate(self, stepdef: StepDefinition) -> BaseStep:
        return self.step_types.get(stepdef.type)(stepdef, services=self.services)

    async def save_dataflow(self, definition: DataflowDefinition) -> DataflowDefinition:
        """Persist a dataflow's metadata, steps and links as given.

        Step hooks are not called; use :meth:`save_step` to add or edit steps.
        """
        await self.store.save_dataflow(definition)
        return definition

    async def set_enabled(self, dataflow_id: str, enabled: bool) -> DataflowDefinition:
        """Enable or disable scheduled execution of a dataflow.

        Raises:
            DataflowNotFoundError: If the dataflow does not exist.
        """
        definition = replace(await self.store.get_dataflow(dataflow_id), enabled=enabled)
        await self.store.save_dataflow(definition)
        return definition

    async def save_step(self, stepdef: StepDefinition) -> StepDefinition:
        """Validate, persist and announce a new or edited step definition.

        Args:
            stepdef: The step definition to save.

        Returns:
            The saved step definition.

        Raises:
            DataflowNotFoundError: If the owning dataflow does not exist.
            UnknownStepTypeError: If the step type is not registered.
            SchedulingError: If a cron trigger's schedule is invalid.
            ConfigurationError: If any other step configuration is invalid.
        """
        definition = await self.store.get_dataflow(stepdef.dataflow_id)
        step = self._instantiate(stepdef)

        result = step.validate_config(step.config)
        if result is not True:
            errors = dict(result or {})
            if isinstance(step, CronTrigger):
                raise SchedulingError(stepdef.dataflow_id, errors)
            raise ConfigurationError(
                [ConfigurationIssue(message, step_id=stepdef.id, field=field) for field, message in errors.items()],
                dataflow_id=stepdef.dataflow_id,
            )

        await self.store.save_dataflow(definition.with_step(stepdef))
        await step.on_save()
        logger.debug("Saved step %s of dataflow %s", stepdef.id, stepdef.dataflow_id)
        return stepdef

    async def add_link(self, link: Link, dataflow_id: str) -> DataflowDefinition:
        """Add a link between two existing steps of a dataflow.

        Raises:
            DataflowNotFoundError: If the dataflow does not exist.
            KeyError: If either endpoint is not a step of the dataflow.
        """
        definition = await self.store.get_dataflow(dataflow_id)
        definition.get_step(link.source)
        definition.get_step(link.target)
        definition = replace(definition, links=(*definition.links, link))
        await self.store.save_dataflow(definition)
        return definition

    async def delete_step(self, dataflow_id: str, step_id: str) -> None:
        """Remove a step and the links touching it, after calling ``on_delete``.

        Raises:
            DataflowNotFoundError: If the dataflow does not exist.
            KeyError: If the step is not part of the dataflow.
        """
        definition = await self.store.get_dataflow(dataflow_id)
        stepdef = definition.get_step(step_id)
        await self._instantiate(stepdef).on_delete()
        await self.store.save_dataflow(definition.without_step(step_id))
        logger.debug("Deleted step %s of dataflow %s", step_id, dataflow_id)

    async def delete_dataflow(self, dataflow_id: str) -> bool:
        """Delete a dataflow, calling ``on_delete`` for each of its steps first.

        Returns:
            True if the dataflow existed.

        Raises:
            DataflowNotFoundError: If the dataflow does not exist.
        """
        definition = await self.store.get_dataflow(dataflow_id)
        for stepdef in definition.steps:
            if self.step_types.has(stepdef.type):
                await self._instantiate(stepdef).on_delete()
        return await self.store.delete_dataflow(dataflow_id)
