"""Integration tests for database persistence layer.

Tests the SQLAlchemy models, repositories, the storage adapters and the
initial migration using SQLite databases.
"""

from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, event, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_dataflows.core.definition import DataflowDefinition, Link, StepDefinition
from litestar_dataflows.core.types import EdgeKind, RunStatus
from litestar_dataflows.db.models import DataflowModel, ScheduledTimeModel, StepDefinitionModel
from litestar_dataflows.db.repositories import DataflowRepository, ScheduledTimeRepository, to_definition
from litestar_dataflows.db.stores import SQLAlchemyDataflowStore, SQLAlchemyScheduleStore
from litestar_dataflows.engine.local import LocalExecutionEngine
from litestar_dataflows.engine.manager import DataflowManager
from litestar_dataflows.engine.registry import StepTypeRegistry
from litestar_dataflows.exceptions import DataflowNotFoundError
from litestar_dataflows.scheduling.scheduler import Scheduler
from tests.conftest import NEXT_MIDNIGHT, NOW, FixedClock

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MIGRATION = (
    Path(__file__).parent.parent
    / "src"
    / "litestar_dataflows"
    / "db"
    / "migrations"
    / "versions"
    / "001_initial_dataflow_tables.py"
)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def async_engine(tmp_path: Path):
    """Create an async SQLite engine on a temporary database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dataflows.db'}", echo=False)

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(DataflowModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Create an async session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def definition() -> DataflowDefinition:
    return DataflowDefinition(
        id="nightly",
        name="Nightly export",
        steps=[
            StepDefinition(
                id="cron",
                dataflow_id="nightly",
                type="trigger_cron",
                config={"minute": "0", "hour": "0"},
                position=(10.0, 20.0),
            ),
            StepDefinition(id="noop", dataflow_id="nightly", type="connector_noop"),
            StepDefinition(id="copy", dataflow_id="nightly", type="flow_append_file", config={"to": "/tmp/x"}),
        ],
        links=[
            Link(source="cron", target="noop"),
            Link(source="noop", target="copy", kind=EdgeKind.FLOW),
        ],
    )


# =============================================================================
# Repository Tests
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestDataflowRepository:
    """Tests for DataflowRepository."""

    async def test_save_and_load(self, async_session: AsyncSession, definition: DataflowDefinition) -> None:
        repo = DataflowRepository(session=async_session)

        model = await repo.save_definition(definition)

        assert model.key == "nightly"
        assert [step.key for step in model.steps] == ["cron", "noop", "copy"]
        assert to_definition(model) == definition

    async def test_get_by_key(self, async_session: AsyncSession, definition: DataflowDefinition) -> None:
        repo = DataflowRepository(session=async_session)
        await repo.save_definition(definition)

        assert await repo.get_by_key("nightly") is not None
        assert await repo.get_by_key("missing") is None

    async def test_resave_updates_steps_in_place(
        self, async_session: AsyncSession, definition: DataflowDefinition
    ) -> None:
        repo = DataflowRepository(session=async_session)
        first = await repo.save_definition(definition)
        cron_pk = first.steps[0].id

        edited = definition.with_step(definition.get_step("cron").with_config(minute="30")).without_step("copy")
        model = await repo.save_definition(edited)

        assert model.steps[0].id == cron_pk
        assert model.steps[0].config == {"minute": "30", "hour": "0"}
        assert to_definition(model) == edited
        assert await _count_step_rows(async_session) == 2

    async def test_list_and_delete(self, async_session: AsyncSession, definition: DataflowDefinition) -> None:
        repo = DataflowRepository(session=async_session)
        await repo.save_definition(DataflowDefinition(id="b"))
        await repo.save_definition(definition)
        await repo.save_definition(DataflowDefinition(id="a"))

        assert [model.key for model in await repo.list_ordered()] == ["a", "b", "nightly"]
        assert await repo.delete_by_key("nightly") is True
        assert await repo.delete_by_key("nightly") is False
        assert await _count_step_rows(async_session) == 0


async def _count_step_rows(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(StepDefinitionModel))
    return int(result.scalar_one())


@pytest.mark.integration
@pytest.mark.asyncio
class TestScheduledTimeRepository:
    """Tests for ScheduledTimeRepository."""

    async def test_upsert_and_delete(self, async_session: AsyncSession) -> None:
        repo = ScheduledTimeRepository(session=async_session)

        first = await repo.upsert_times("nightly", lastruntime=0, nextruntime=NEXT_MIDNIGHT)
        second = await repo.upsert_times("nightly", lastruntime=NEXT_MIDNIGHT, nextruntime=NEXT_MIDNIGHT + 86_400)

        assert first.id == second.id
        assert isinstance(second, ScheduledTimeModel)
        assert (await repo.get_by_dataflow("nightly")).nextruntime == NEXT_MIDNIGHT + 86_400  # type: ignore[union-attr]
        assert await repo.delete_by_dataflow("nightly") is True
        assert await repo.delete_by_dataflow("nightly") is False
        assert await repo.get_by_dataflow("nightly") is None


# =============================================================================
# Store Tests
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLAlchemyScheduleStore:
    """Tests for the database-backed scheduled-time store."""

    async def test_scheduler_round_trip(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        scheduler = Scheduler(SQLAlchemyScheduleStore(session_maker), FixedClock())

        assert await scheduler.get_scheduled_times("nightly") is None

        await scheduler.set_scheduled_times("nightly", NEXT_MIDNIGHT, lastruntime=0)
        claimed = await scheduler.claim_due_run("nightly", lambda now: now + 60, now=NEXT_MIDNIGHT)

        assert claimed is not None
        assert (claimed.lastruntime, claimed.nextruntime) == (NEXT_MIDNIGHT, NEXT_MIDNIGHT + 60)
        stored = await scheduler.get_scheduled_times("nightly")
        assert stored == claimed

    async def test_items_and_delete(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        store = SQLAlchemyScheduleStore(session_maker)
        await store.upsert("a", {"lastruntime": 0, "nextruntime": 5})
        await store.upsert("b", {"lastruntime": 1, "nextruntime": 6})

        items = dict(await store.items())

        assert items["a"] == {"dataflow_id": "a", "lastruntime": 0, "nextruntime": 5}
        assert set(items) == {"a", "b"}
        assert await store.delete("a") is True
        assert await store.get("a") is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestSQLAlchemyDataflowStore:
    """Tests for the database-backed dataflow store."""

    async def test_round_trip(
        self, session_maker: async_sessionmaker[AsyncSession], definition: DataflowDefinition
    ) -> None:
        store = SQLAlchemyDataflowStore(session_maker)

        await store.save_dataflow(definition)

        assert await store.get_dataflow("nightly") == definition
        assert await store.list_dataflows() == [definition]

    async def test_missing_dataflow(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        with pytest.raises(DataflowNotFoundError):
            await SQLAlchemyDataflowStore(session_maker).get_dataflow("missing")

    async def test_delete(
        self, session_maker: async_sessionmaker[AsyncSession], definition: DataflowDefinition
    ) -> None:
        store = SQLAlchemyDataflowStore(session_maker)
        await store.save_dataflow(definition)

        assert await store.delete_dataflow("nightly") is True
        assert await store.delete_dataflow("nightly") is False
        assert await store.list_dataflows() == []

    async def test_engine_and_manager_on_database(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        """A scheduled dataflow edited, dispatched and finalised entirely through the database."""
        clock = FixedClock()
        store = SQLAlchemyDataflowStore(session_maker)
        scheduler = Scheduler(SQLAlchemyScheduleStore(session_maker), clock)
        engine = LocalExecutionEngine(store, StepTypeRegistry.with_builtins(), scheduler=scheduler)
        manager = DataflowManager(store, engine.step_types, engine.services)

        await manager.save_dataflow(
            DataflowDefinition(
                id="nightly",
                steps=[StepDefinition(id="noop", dataflow_id="nightly", type="connector_noop")],
            )
        )
        await manager.save_step(
            StepDefinition(id="cron", dataflow_id="nightly", type="trigger_cron", config={"minute": "0", "hour": "0"})
        )
        await manager.add_link(Link(source="cron", target="noop"), "nightly")

        assert await engine.run_due() == []
        clock.advance(NEXT_MIDNIGHT - NOW)
        runs = await engine.run_due()

        assert [run.status for run in runs] == [RunStatus.FINISHED]
        assert runs[0].outputs["noop"] == NEXT_MIDNIGHT
        times = await scheduler.get_scheduled_times("nightly")
        assert times is not None
        assert (times.lastruntime, times.nextruntime) == (NEXT_MIDNIGHT, NEXT_MIDNIGHT + 86_400)

        await manager.delete_dataflow("nightly")

        assert await scheduler.get_scheduled_times("nightly") is None
        assert await store.list_dataflows() == []


# =============================================================================
# Migration Tests
# =============================================================================


@pytest.mark.integration
class TestInitialMigration:
    """Tests for the initial Alembic migration."""

    @pytest.fixture
    def migration(self):
        spec = importlib.util.spec_from_file_location("initial_dataflow_tables", MIGRATION)
        assert spec is not None
        assert spec.loader is not None
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def test_upgrade_matches_models(self, migration, tmp_path: Path) -> None:
        from alembic.migration import MigrationContext
        from alembic.operations import Operations

        engine = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
        with engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                migration.upgrade()
            tables = set(inspect(conn).get_table_names())
            columns = {column["name"] for column in inspect(conn).get_columns("dataflow_scheduled_times")}

        assert tables == {"dataflows", "dataflow_steps", "dataflow_links", "dataflow_scheduled_times"}
        assert {"dataflow_id", "lastruntime", "nextruntime"} <= columns
        assert migration.revision == "001_initial"
        assert migration.down_revision is None

        with engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                migration.downgrade()
            assert inspect(conn).get_table_names() == []
        engine.dispose()
