"""Repository implementations for dataflow persistence.

This module provides async repositories for CRUD operations on dataflow
models using advanced-alchemy's repository pattern, plus the conversion
between database models and the immutable core definitions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import select

from litestar_dataflows.core.definition import DataflowDefinition, Link, StepDefinition
from litestar_dataflows.db.models import DataflowModel, ScheduledTimeModel, StepDefinitionModel, StepLinkModel

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "DataflowRepository",
    "ScheduledTimeRepository",
    "to_definition",
]


def to_definition(model: DataflowModel) -> DataflowDefinition:
    """Convert a loaded dataflow model to a core definition.

    Args:
        model: The dataflow model, with steps and links loaded.

    Returns:
        The equivalent immutable DataflowDefinition.
    """
    steps = tuple(
        StepDefinition(
            id=step.key,
            dataflow_id=model.key,
            type=step.type,
            config=step.config or {},
            name=step.name,
            position=(step.position_x, step.position_y)
            if step.position_x is not None and step.position_y is not None
            else None,
        )
        for step in sorted(model.steps, key=lambda s: s.sort_order)
    )
    links = tuple(
        Link(
            source=link.source,
            target=link.target,
            kind=link.kind,
            source_index=link.source_index,
            target_index=link.target_index,
        )
        for link in sorted(model.links, key=lambda li: li.sort_order)
    )
    return DataflowDefinition(id=model.key, name=model.name, enabled=model.enabled, steps=steps, links=links)


class DataflowRepository(SQLAlchemyAsyncRepository[DataflowModel]):
    """Repository for dataflow CRUD operations.

    Steps and links are owned by their dataflow and written through it.
    """

    model_type = DataflowModel

    async def get_by_key(self, key: str) -> DataflowModel | None:
        """Get a dataflow by its dataflow id.

        Args:
            key: The dataflow id.

        Returns:
            The dataflow model or None if not found.
        """
        stmt = select(DataflowModel).where(DataflowModel.key == key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_ordered(self) -> Sequence[DataflowModel]:
        """List all dataflows ordered by dataflow id."""
        stmt = select(DataflowModel).order_by(DataflowModel.key)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def save_definition(self, definition: DataflowDefinition) -> DataflowModel:
        """Insert or replace a dataflow with its steps and links.

        Existing step rows are updated in place by step id, so the unique
        ``(dataflow, step id)`` index is never violated mid-flush.

        Args:
            definition: The dataflow to persist.

        Returns:
            The persisted dataflow model.
        """
        model = await self.get_by_key(definition.id)
        if model is None:
            model = DataflowModel(key=definition.id, steps=[], links=[])
            self.session.add(model)
        model.name = definition.name
        model.enabled = definition.enabled

        existing = {step.key: step for step in model.steps}
        steps = []
        for order, stepdef in enumerate(definition.steps):
            step = existing.get(stepdef.id) or StepDefinitionModel(key=stepdef.id)
            step.type = stepdef.type
            step.name = stepdef.name
            step.config = dict(stepdef.config)
            step.position_x, step.position_y = stepdef.position or (None, None)
            step.sort_order = order
            steps.append(step)
        model.steps = steps

        model.links = [
            StepLinkModel(
                source=link.source,
                target=link.target,
                kind=link.kind,
                source_index=link.source_index,
                target_index=link.target_index,
                sort_order=order,
            )
            for order, link in enumerate(definition.links)
        ]
        await self.session.flush()
        return model

    async def delete_by_key(self, key: str) -> bool:
        """Delete a dataflow with its steps and links.

        Returns:
            True if a dataflow was deleted.
        """
        model = await self.get_by_key(key)
        if model is None:
            return False
        await self.session.delete(model)
        await self.session.flush()
        return True


class ScheduledTimeRepository(SQLAlchemyAsyncRepository[ScheduledTimeModel]):
    """Repository for scheduled-time records."""

    model_type = ScheduledTimeModel

    async def get_by_dataflow(self, dataflow_id: str) -> ScheduledTimeModel | None:
        """Get the scheduled-time record of a dataflow."""
        stmt = select(ScheduledTimeModel).where(ScheduledTimeModel.dataflow_id == dataflow_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_times(self, dataflow_id: str, lastruntime: int, nextruntime: int) -> ScheduledTimeModel:
        """Insert or replace the scheduled-time record of a dataflow.

        Args:
            dataflow_id: The dataflow id.
            lastruntime: Epoch seconds of the last run.
            nextruntime: Epoch seconds of the next run.

        Returns:
            The stored record.
        """
        model = await self.get_by_dataflow(dataflow_id)
        if model is None:
            model = ScheduledTimeModel(dataflow_id=dataflow_id)
            self.session.add(model)
        model.lastruntime = lastruntime
        model.nextruntime = nextruntime
        await self.session.flush()
        return model

    async def delete_by_dataflow(self, dataflow_id: str) -> bool:
        """Delete the scheduled-time record of a dataflow.

        Returns:
            True if a record was deleted.
        """
        model = await self.get_by_dataflow(dataflow_id)
        if model is None:
            return False
        await self.session.delete(model)
        await self.session.flush()
        return True
