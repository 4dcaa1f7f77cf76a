"""Database-backed implementations of the engine's storage protocols.

Each operation opens its own session from the given session maker and
commits before returning, so the adapters can be shared by the engine, the
scheduler and background dispatchers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_dataflows.db.repositories import DataflowRepository, ScheduledTimeRepository, to_definition
from litestar_dataflows.exceptions import DataflowNotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from litestar_dataflows.core.definition import DataflowDefinition

__all__ = ["SQLAlchemyDataflowStore", "SQLAlchemyScheduleStore"]


class SQLAlchemyScheduleStore:
    """Key-value store of scheduled-time records in the database.

    Example:
        >>> scheduler = Scheduler(SQLAlchemyScheduleStore(session_maker))
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self.session_maker() as session:
            model = await ScheduledTimeRepository(session=session).get_by_dataflow(key)
            if model is None:
                return None
            return {
                "dataflow_id": model.dataflow_id,
                "lastruntime": model.lastruntime,
                "nextruntime": model.nextruntime,
            }

    async def upsert(self, key: str, value: dict[str, Any]) -> None:
        async with self.session_maker() as session:
            await ScheduledTimeRepository(session=session).upsert_times(
                key,
                lastruntime=int(value.get("lastruntime") or 0),
                nextruntime=int(value.get("nextruntime") or 0),
            )
            await session.commit()

    async def delete(self, key: str) -> bool:
        async with self.session_maker() as session:
            deleted = await ScheduledTimeRepository(session=session).delete_by_dataflow(key)
            await session.commit()
            return deleted

    async def items(self) -> list[tuple[str, dict[str, Any]]]:
        async with self.session_maker() as session:
            models = await ScheduledTimeRepository(session=session).list()
            return [
                (
                    model.dataflow_id,
                    {
                        "dataflow_id": model.dataflow_id,
                        "lastruntime": model.lastruntime,
                        "nextruntime": model.nextruntime,
                    },
                )
                for model in models
            ]


class SQLAlchemyDataflowStore:
    """Dataflow definitions stored in the database.

    Implements the loader interface read by the engine and the writable store
    interface used by the dataflow manager.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def get_dataflow(self, dataflow_id: str) -> DataflowDefinition:
        async with self.session_maker() as session:
            model = await DataflowRepository(session=session).get_by_key(dataflow_id)
            if model is None:
                raise DataflowNotFoundError(dataflow_id)
            return to_definition(model)

    async def list_dataflows(self) -> list[DataflowDefinition]:
        async with self.session_maker() as session:
            return [to_definition(model) for model in await DataflowRepository(session=session).list_ordered()]

    async def save_dataflow(self, definition: DataflowDefinition) -> None:
        async with self.session_maker() as session:
            await DataflowRepository(session=session).save_definition(definition)
            await session.commit()

    async def delete_dataflow(self, dataflow_id: str) -> bool:
        async with self.session_maker() as session:
            deleted = await DataflowRepository(session=session).delete_by_key(dataflow_id)
            await session.commit()
            return deleted
