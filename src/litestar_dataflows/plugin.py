"""Litestar plugin for dataflow integration.

This module provides the DataflowsPlugin for integrating litestar-dataflows
with Litestar applications.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from litestar_dataflows.config import DataflowsConfig
from litestar_dataflows.core.protocols import DataflowStore
from litestar_dataflows.engine.local import LocalExecutionEngine
from litestar_dataflows.engine.manager import DataflowManager
from litestar_dataflows.engine.registry import DataflowRegistry, StepTypeRegistry
from litestar_dataflows.scheduling.scheduler import Scheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from litestar import Litestar
    from litestar.config.app import AppConfig

    from litestar_dataflows.core.definition import DataflowDefinition
    from litestar_dataflows.core.protocols import Clock, EventBus
    from litestar_dataflows.steps.base import BaseStep

__all__ = ["DataflowsPlugin", "DataflowsPluginConfig"]

logger = logging.getLogger(__name__)


@dataclass
class DataflowsPluginConfig:
    """Configuration for the DataflowsPlugin.

    Attributes:
        store: Optional dataflow store. If not provided, an in-memory
            DataflowRegistry is created.
        step_types: Optional step-type registry. If not provided, one holding
            the built-in step types is created.
        scheduler: Optional scheduler, e.g. one backed by
            ``SQLAlchemyScheduleStore``. Defaults to an in-memory scheduler.
        clock: Optional clock shared by the engine and scheduler.
        event_bus: Optional receiver of run lifecycle events.
        engine: Optional pre-configured engine. When given, ``store``,
            ``scheduler``, ``clock`` and ``event_bus`` are ignored.
        settings: Engine settings.
        extra_step_types: Step classes to register on app startup.
        auto_register_dataflows: Dataflows added to the default in-memory
            store on app startup.
        dependency_key_engine: Dependency key of the engine.
            Defaults to "dataflow_engine".
        dependency_key_manager: Dependency key of the manager.
            Defaults to "dataflow_manager".
        dependency_key_scheduler: Dependency key of the scheduler.
            Defaults to "dataflow_scheduler".
        dependency_key_step_types: Dependency key of the step-type registry.
            Defaults to "dataflow_step_types".
        enable_dispatcher: Whether to run due scheduled dataflows in a
            background task for the lifetime of the app. Defaults to False.
        dispatch_interval: Seconds between two dispatcher passes.
    """

    store: DataflowStore | None = None
    step_types: StepTypeRegistry | None = None
    scheduler: Scheduler | None = None
    clock: Clock | None = None
    event_bus: EventBus | None = None
    engine: LocalExecutionEngine | None = None
    settings: DataflowsConfig = field(default_factory=DataflowsConfig)
    extra_step_types: list[type[BaseStep]] = field(default_factory=list)
    auto_register_dataflows: list[DataflowDefinition] = field(default_factory=list)
    dependency_key_engine: str = "dataflow_engine"
    dependency_key_manager: str = "dataflow_manager"
    dependency_key_scheduler: str = "dataflow_scheduler"
    dependency_key_step_types: str = "dataflow_step_types"
    enable_dispatcher: bool = False
    dispatch_interval: float = 60.0


class DataflowsPlugin(InitPluginProtocol):
    """Litestar plugin for dataflow management.

    This plugin integrates litestar-dataflows with a Litestar application,
    providing dependency injection for the engine, manager, scheduler and
    step-type registry, and optionally dispatching scheduled runs.

    Example:
        Basic usage::

            from litestar import Litestar, post
            from litestar_dataflows import DataflowsPlugin, DataflowsPluginConfig, LocalExecutionEngine

            app = Litestar(
                plugins=[DataflowsPlugin(DataflowsPluginConfig(auto_register_dataflows=[nightly]))]
            )

        Using in a route handler::

            @post("/dataflows/{dataflow_id:str}/dry-run")
            async def dry_run(dataflow_id: str, dataflow_engine: LocalExecutionEngine) -> dict:
                run = await dataflow_engine.run(dataflow_id, dry_run=True)
                return {"run_id": str(run.id), "status": run.status}
    """

    __slots__ = ("_config", "_engine", "_manager")

    def __init__(self, config: DataflowsPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or DataflowsPluginConfig()
        self._engine: LocalExecutionEngine | None = None
        self._manager: DataflowManager | None = None

    @property
    def engine(self) -> LocalExecutionEngine:
        """Get the execution engine.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._engine is None:
            msg = "DataflowsPlugin has not been initialized. Access engine after app startup."
            raise RuntimeError(msg)
        return self._engine

    @property
    def manager(self) -> DataflowManager:
        """Get the dataflow manager.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._manager is None:
            msg = "DataflowsPlugin has not been initialized. Access manager after app startup."
            raise RuntimeError(msg)
        return self._manager

    def _build_engine(self) -> LocalExecutionEngine:
        config = self._config
        if config.engine is not None:
            return config.engine

        store = config.store
        if store is None:
            store = DataflowRegistry(config.auto_register_dataflows)
        elif config.auto_register_dataflows:
            logger.warning("auto_register_dataflows is ignored when a dataflow store is configured")
        return LocalExecutionEngine(
            loader=store,
            step_types=config.step_types or StepTypeRegistry.with_builtins(),
            scheduler=config.scheduler,
            clock=config.clock,
            config=config.settings,
            event_bus=config.event_bus,
        )

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Initialize the plugin when the Litestar app starts.

        This method:
        1. Creates or uses the provided engine and its collaborators
        2. Registers any extra step types
        3. Adds dependency providers to the app config
        4. Optionally adds the scheduled-run dispatcher to the app lifespan

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        engine = self._engine = self._build_engine()
        for step_type in self._config.extra_step_types:
            engine.step_types.register(step_type)
        if not isinstance(engine.loader, DataflowStore):
            msg = (
                f"DataflowsPlugin needs a writable dataflow store, got {type(engine.loader).__name__}. "
                "Provide a loader implementing save_dataflow and delete_dataflow."
            )
            raise TypeError(msg)
        manager = self._manager = DataflowManager(
            engine.loader,
            engine.step_types,
            engine.services,
        )

        def provide_engine() -> LocalExecutionEngine:
            return engine

        def provide_manager() -> DataflowManager:
            return manager

        def provide_scheduler() -> Scheduler:
            return engine.scheduler

        def provide_step_types() -> StepTypeRegistry:
            return engine.step_types

        for key, provider in (
            (self._config.dependency_key_engine, provide_engine),
            (self._config.dependency_key_manager, provide_manager),
            (self._config.dependency_key_scheduler, provide_scheduler),
            (self._config.dependency_key_step_types, provide_step_types),
        ):
            app_config.dependencies[key] = Provide(provider, sync_to_thread=False)

        if self._config.enable_dispatcher:
            app_config.lifespan.append(self._dispatcher_lifespan)

        return app_config

    @contextlib.asynccontextmanager
    async def _dispatcher_lifespan(self, app: Litestar) -> AsyncIterator[None]:
        task = asyncio.create_task(self._dispatch_loop())
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _dispatch_loop(self) -> None:
        engine = self.engine
        logger.info("Dataflow dispatcher started, checking every %ss", self._config.dispatch_interval)
        while True:
            try:
                runs = await engine.run_due()
            except Exception:
                logger.exception("Dataflow dispatcher pass failed")
            else:
                if runs:
                    logger.debug("Dataflow dispatcher ran %d dataflow(s)", len(runs))
            await asyncio.sleep(self._config.dispatch_interval)
