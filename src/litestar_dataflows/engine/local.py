"""Local in-memory async execution engine.

This module provides the in-process engine that builds, executes and
finalises dataflow runs, and dispatches scheduled dataflows when they are due.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from litestar_dataflows.config import DataflowsConfig
from litestar_dataflows.core.context import EngineStep
from litestar_dataflows.core.events import (
    DataflowRunCanceled,
    DataflowRunFailed,
    DataflowRunFinished,
    DataflowRunStarted,
    StepFailed,
    StepFinalised,
    StepFinished,
    StepSkipped,
    StepStarted,
)
from litestar_dataflows.core.models import DataflowRun
from litestar_dataflows.core.types import RunStatus, StepStatus
from litestar_dataflows.engine.graph import DataflowGraph
from litestar_dataflows.exceptions import (
    ConfigurationError,
    ConfigurationIssue,
    DataflowNotFoundError,
    RunNotFoundError,
    StepExecutionError,
)
from litestar_dataflows.scheduling.clock import SystemClock
from litestar_dataflows.scheduling.cron import StandardCronEvaluator
from litestar_dataflows.scheduling.scheduler import Scheduler
from litestar_dataflows.scheduling.stores import InMemoryKeyValueStore
from litestar_dataflows.steps.base import StepServices
from litestar_dataflows.steps.trigger_cron import CronTrigger

if TYPE_CHECKING:
    from litestar_dataflows.core.definition import DataflowDefinition
    from litestar_dataflows.core.events import DataflowEvent
    from litestar_dataflows.core.protocols import Clock, CronEvaluator, DataflowLoader, EventBus
    from litestar_dataflows.engine.registry import StepTypeRegistry

__all__ = ["LocalExecutionEngine"]

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _duration(started_at: datetime | None, finished_at: datetime | None) -> float | None:
    if started_at is None or finished_at is None:
        return None
    return (finished_at - started_at).total_seconds()


class LocalExecutionEngine:
    """In-memory async execution engine for dataflows.

    A run goes through three phases:

    1. **Build.** The dataflow is loaded, every step type resolved and the
       graph and step configurations validated. All problems are collected
       into one :class:`ConfigurationError`, raised before any step executes.
    2. **Execute.** Steps run in topological order. A step runs only when
       every predecessor finished; otherwise it is skipped. A failing step
       fails alone and independent branches carry on.
    3. **Finalise.** ``on_finalise`` is called on every finished step in
       topological order, then the engine steps are released.

    Attributes:
        loader: Source of dataflow definitions.
        step_types: Registry resolving step type names.
        clock: Source of "now" for scheduling.
        scheduler: Scheduled-time storage.
        cron: Cron evaluator handed to step types.
        config: Engine settings.
        event_bus: Optional receiver of lifecycle events.
        _runs: Pending, running and recently completed runs, keyed by run id.
        _completed: Ids of retained completed runs, oldest first.
        _graphs: Graphs of runs that have not completed yet.
        _running: Background tasks started by :meth:`start`.

    Example:
        >>> engine = LocalExecutionEngine(DataflowRegistry([definition]), StepTypeRegistry.with_builtins())
        >>> run = await engine.run("nightly", dry_run=True)
        >>> run.status
        <RunStatus.FINISHED: 'finished'>
    """

    def __init__(
        self,
        loader: DataflowLoader,
        step_types: StepTypeRegistry,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
        cron: CronEvaluator | None = None,
        config: DataflowsConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize the local execution engine.

        Args:
            loader: Source of dataflow definitions.
            step_types: Registry resolving step type names.
            scheduler: Scheduled-time storage. Defaults to an in-memory store.
            clock: Source of "now". Defaults to the scheduler's clock.
            cron: Cron evaluator. Defaults to one in the configured timezone.
            config: Engine settings.
            event_bus: Optional receiver of lifecycle events.
        """
        self.loader = loader
        self.step_types = step_types
        self.config = config or DataflowsConfig()
        self.clock = clock or (scheduler.clock if scheduler is not None else SystemClock())
        self.scheduler = scheduler or Scheduler(InMemoryKeyValueStore(), self.clock)
        self.cron = cron or StandardCronEvaluator(self.config.timezone)
        self.event_bus = event_bus
        self.services = StepServices(scheduler=self.scheduler, clock=self.clock, cron=self.cron)
        self._runs: dict[UUID, DataflowRun] = {}
        self._completed: deque[UUID] = deque()
        self._graphs: dict[UUID, DataflowGraph] = {}
        self._running: dict[UUID, asyncio.Task[DataflowRun]] = {}

    async def _emit(self, event: DataflowEvent) -> None:
        if self.event_bus is not None:
            await self.event_bus.emit(event)

    def validate(self, definition: DataflowDefinition) -> list[ConfigurationIssue]:
        """Collect every structural and configuration issue of a dataflow.

        Args:
            definition: The dataflow to check.

        Returns:
            The issues found. Empty list if the dataflow can run.
        """
        graph = DataflowGraph(definition)
        issues = graph.validate(self.step_types.as_mapping())
        for stepdef in definition.steps:
            if not self.step_types.has(stepdef.type):
                continue
            step = self.step_types.get(stepdef.type)(stepdef, services=self.services)
            result = step.validate_config(step.config)
            if result is not True:
                issues.extend(
                    ConfigurationIssue(message, step_id=stepdef.id, field=field)
                    for field, message in dict(result or {}).items()
                )
        return issues

    async def build(self, dataflow_id: str, *, dry_run: bool = False) -> DataflowRun:
        """Load and validate a dataflow, and prepare a run of it.

        Args:
            dataflow_id: The dataflow to run.
            dry_run: Whether external side effects are suppressed.

        Returns:
            A pending run, ready for :meth:`execute`.

        Raises:
            DataflowNotFoundError: If the dataflow does not exist.
            ConfigurationError: If the dataflow cannot run, with every issue found.
        """
        definition = await self.loader.get_dataflow(dataflow_id)
        return self.build_run(definition, dry_run=dry_run)

    def build_run(self, definition: DataflowDefinition, *, dry_run: bool = False) -> DataflowRun:
        """Validate ``definition`` and prepare a run of it.

        Raises:
            ConfigurationError: If the dataflow cannot run, with every issue found.
        """
        issues = self.validate(definition)
        if issues:
            raise ConfigurationError(issues, dataflow_id=definition.id)

        graph = DataflowGraph(definition)
        run = DataflowRun(id=uuid4(), dataflow_id=definition.id, dry_run=dry_run, order=graph.topological_order())
        for stepdef in definition.steps:
            step = self.step_types.get(stepdef.type)(stepdef, services=self.services)
            enginestep = EngineStep(stepdef=stepdef, run=run, step=step, input_slots=graph.input_slots(stepdef.id))
            step.enginestep = enginestep
            run.steps[stepdef.id] = enginestep

        self._runs[run.id] = run
        self._graphs[run.id] = graph
        return run

    async def run(self, dataflow_id: str, *, dry_run: bool = False) -> DataflowRun:
        """Build and execute a dataflow, waiting for the run to complete.

        Step failures do not raise; inspect the returned run instead.

        Raises:
            DataflowNotFoundError: If the dataflow does not exist.
            ConfigurationError: If the dataflow cannot run.
        """
        run = await self.build(dataflow_id, dry_run=dry_run)
        return await self.execute(run)

    async def start(self, dataflow_id: str, *, dry_run: bool = False) -> DataflowRun:
        """Build a dataflow and execute it in a background task.

        Configuration errors are raised here, before the task is created.

        Returns:
            The run, still pending or running.
        """
        run = await self.build(dataflow_id, dry_run=dry_run)
        task = asyncio.create_task(self.execute(run))
        self._running[run.id] = task
        task.add_done_callback(lambda _: self._running.pop(run.id, None))
        return run

    async def wait(self, run_id: UUID) -> DataflowRun:
        """Wait for a run started with :meth:`start` to complete."""
        task = self._running.get(run_id)
        if task is not None:
            return await task
        return self.get_run(run_id)

    async def execute(self, run: DataflowRun) -> DataflowRun:
        """Execute and finalise a run produced by :meth:`build`.

        Args:
            run: The pending run.

        Returns:
            The completed run.
        """
        graph = self._graphs.pop(run.id, None)
        if graph is None or run.status != RunStatus.PENDING:
            msg = f"Run {run.id} is not a pending run of this engine"
            raise ValueError(msg)

        run.status = RunStatus.RUNNING
        run.started_at = _now()
        logger.info("Starting dataflow %s run %s%s", run.dataflow_id, run.id, " (dry-run)" if run.dry_run else "")
        await self._emit(
            DataflowRunStarted(
                run_id=run.id,
                timestamp=_now(),
                dataflow_id=run.dataflow_id,
                dry_run=run.dry_run,
                step_count=len(run.order),
            )
        )

        try:
            await self._execute_steps(run, graph)
        finally:
            await self._complete(run)
        return run

    async def _execute_steps(self, run: DataflowRun, graph: DataflowGraph) -> None:
        pending = list(run.order)
        while pending:
            if run.cancel_requested:
                break

            ready = [
                step_id
                for step_id in pending
                if all(run.steps[p].is_done for p in graph.get_previous_steps(step_id))
            ]
            if not self.config.concurrent_branches:
                ready = ready[:1]

            runnable: list[EngineStep] = []
            for step_id in ready:
                pending.remove(step_id)
                enginestep = run.steps[step_id]
                blocked = [
                    p for p in graph.get_previous_steps(step_id) if run.steps[p].status != StepStatus.FINISHED
                ]
                if blocked:
                    await self._skip(enginestep, f"predecessor {', '.join(blocked)} did not finish")
                else:
                    runnable.append(enginestep)

            if len(runnable) > 1:
                await asyncio.gather(*(self._execute_step(enginestep, graph) for enginestep in runnable))
            elif runnable:
                await self._execute_step(runnable[0], graph)

        for step_id in pending:
            await self._skip(run.steps[step_id], "run was canceled")

    async def _skip(self, enginestep: EngineStep, reason: str) -> None:
        enginestep.status = StepStatus.SKIPPED
        enginestep.skip_reason = reason
        logger.debug("Skipping step %s: %s", enginestep.id, reason)
        await self._emit(
            StepSkipped(
                run_id=enginestep.run.id,
                timestamp=_now(),
                dataflow_id=enginestep.run.dataflow_id,
                step_id=enginestep.id,
                reason=reason,
            )
        )

    async def _execute_step(self, enginestep: EngineStep, graph: DataflowGraph) -> None:
        run = enginestep.run
        enginestep.status = StepStatus.RUNNING
        enginestep.started_at = _now()
        await self._emit(
            StepStarted(
                run_id=run.id,
                timestamp=_now(),
                dataflow_id=run.dataflow_id,
                step_id=enginestep.id,
                step_type=enginestep.stepdef.type,
            )
        )

        try:
            enginestep.output = await enginestep.step.execute(enginestep.input_value())
            deliveries = [
                (link.target, link.target_index, self._slot_output(enginestep, link.source_index))
                for link in graph.outgoing_links(enginestep.id)
            ]
        except Exception as exc:
            enginestep.finished_at = _now()
            await self._fail(enginestep, StepExecutionError(enginestep.id, exc))
            return

        for target, slot, value in deliveries:
            run.steps[target].receive(slot, value)
        enginestep.status = StepStatus.FINISHED
        enginestep.finished_at = _now()
        await self._emit(
            StepFinished(
                run_id=run.id,
                timestamp=_now(),
                dataflow_id=run.dataflow_id,
                step_id=enginestep.id,
                output=enginestep.output,
                duration_seconds=_duration(enginestep.started_at, enginestep.finished_at),
            )
        )

    @staticmethod
    def _slot_output(enginestep: EngineStep, slot: int) -> Any:
        if enginestep.step.emits_per_slot:
            output = enginestep.output
            if isinstance(output, (str, bytes)) or not isinstance(output, Sequence) or slot >= len(output):
                msg = f"Step '{enginestep.id}' emits per slot but produced no value for output slot {slot}"
                raise TypeError(msg)
        return enginestep.output_for(slot)

    async def _fail(self, enginestep: EngineStep, error: StepExecutionError) -> None:
        run = enginestep.run
        enginestep.status = StepStatus.FAILED
        enginestep.exception = error
        enginestep.error = str(error)
        logger.warning("Step %s of dataflow %s failed: %s", enginestep.id, run.dataflow_id, error.cause)
        await self._emit(
            StepFailed(
                run_id=run.id,
                timestamp=_now(),
                dataflow_id=run.dataflow_id,
                step_id=enginestep.id,
                error=enginestep.error,
                error_type=type(error.cause).__name__ if error.cause is not None else None,
            )
        )

    async def _finalise(self, run: DataflowRun) -> None:
        for enginestep in run.ordered_steps():
            if enginestep.status != StepStatus.FINISHED:
                continue
            try:
                await enginestep.step.on_finalise()
            except Exception as exc:
                await self._fail(enginestep, StepExecutionError(enginestep.id, exc))
                continue
            enginestep.finalised = True
            await self._emit(
                StepFinalised(run_id=run.id, timestamp=_now(), dataflow_id=run.dataflow_id, step_id=enginestep.id)
            )

    async def _complete(self, run: DataflowRun) -> None:
        await self._finalise(run)
        for enginestep in run.ordered_steps():
            enginestep.step.enginestep = None

        run.completed_at = _now()
        failed = run.failed_steps
        if run.cancel_requested:
            run.status = RunStatus.CANCELED
        elif failed:
            run.status = RunStatus.FAILED
        else:
            run.status = RunStatus.FINISHED
        if failed:
            run.error = "; ".join(run.steps[step_id].error or step_id for step_id in failed)

        self._retain(run)

        duration = _duration(run.started_at, run.completed_at)
        if run.status == RunStatus.FINISHED:
            logger.info("Dataflow %s run %s finished in %.3fs", run.dataflow_id, run.id, duration or 0.0)
            await self._emit(
                DataflowRunFinished(
                    run_id=run.id,
                    timestamp=_now(),
                    dataflow_id=run.dataflow_id,
                    duration_seconds=duration,
                )
            )
        elif run.status == RunStatus.CANCELED:
            logger.info("Dataflow %s run %s was canceled", run.dataflow_id, run.id)
            await self._emit(
                DataflowRunCanceled(
                    run_id=run.id,
                    timestamp=_now(),
                    dataflow_id=run.dataflow_id,
                    remaining_steps=run.skipped_steps,
                )
            )
        else:
            logger.info("Dataflow %s run %s failed: %s", run.dataflow_id, run.id, run.error)
            await self._emit(
                DataflowRunFailed(
                    run_id=run.id,
                    timestamp=_now(),
                    dataflow_id=run.dataflow_id,
                    failed_steps=failed,
                    skipped_steps=run.skipped_steps,
                    error=run.error,
                )
            )

    def _retain(self, run: DataflowRun) -> None:
        self._completed.append(run.id)
        while len(self._completed) > max(self.config.run_history, 0):
            self._runs.pop(self._completed.popleft(), None)

    def cancel(self, run_id: UUID) -> DataflowRun:
        """Request that a run stops before its next step.

        Steps that have not started are skipped and the run ends canceled.
        Steps that already finished are still finalised. Cancelling a
        completed run has no effect.

        Raises:
            RunNotFoundError: If the run is unknown.
        """
        run = self.get_run(run_id)
        if not run.is_complete:
            run.request_cancel()
            logger.info("Cancel requested for dataflow %s run %s", run.dataflow_id, run.id)
        return run

    def get_run(self, run_id: UUID) -> DataflowRun:
        """Retrieve a run by id.

        Raises:
            RunNotFoundError: If the run is unknown.
        """
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFoundError(run_id) from None

    def get_running_runs(self) -> list[DataflowRun]:
        """Runs that have not completed yet."""
        return [run for run in self._runs.values() if not run.is_complete]

    def get_all_runs(self) -> list[DataflowRun]:
        """Runs not yet completed plus the most recent completed runs."""
        return list(self._runs.values())

    async def run_due(self, now: int | None = None) -> list[DataflowRun]:
        """Run every scheduled dataflow whose next run time has been reached.

        Disabled dataflows and disabled cron triggers are left alone. Each due
        slot is claimed atomically before its run starts, so concurrent
        dispatchers never run the same slot twice.

        Args:
            now: The reference time. Defaults to the clock.

        Returns:
            The runs that were executed.
        """
        now = self.clock.now() if now is None else now
        runs: list[DataflowRun] = []
        for times in await self.scheduler.list_due(now):
            try:
                definition = await self.loader.get_dataflow(times.dataflow_id)
            except DataflowNotFoundError:
                logger.warning("Scheduled dataflow %s no longer exists", times.dataflow_id)
                continue
            if not definition.enabled:
                logger.debug("Dataflow %s is disabled, not dispatching", definition.id)
                continue

            trigger = self._cron_trigger(definition)
            if trigger is None or trigger.disabled:
                logger.debug("Dataflow %s has no enabled cron trigger, not dispatching", definition.id)
                continue

            try:
                run = self.build_run(definition)
            except ConfigurationError as exc:
                logger.error("Scheduled dataflow %s cannot run: %s", definition.id, exc)
                continue
            claimed = await self.scheduler.claim_due_run(definition.id, trigger.next_scheduled_time, now)
            if claimed is None:
                self._runs.pop(run.id, None)
                self._graphs.pop(run.id, None)
                continue
            run.scheduled_time = claimed.lastruntime
            runs.append(await self.execute(run))
        return runs

    def _cron_trigger(self, definition: DataflowDefinition) -> CronTrigger | None:
        for stepdef in definition.steps:
            if self.step_types.has(stepdef.type):
                step_class = self.step_types.get(stepdef.type)
                if issubclass(step_class, CronTrigger):
                    return step_class(stepdef, services=self.services)
        return None
