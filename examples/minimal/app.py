"""Minimal example of litestar-dataflows integration.

This example demonstrates the basic usage of the DataflowsPlugin with a
nightly export: a cron trigger feeds a custom connector, whose output is
appended to a growing CSV file.

Run with:
    cd examples/minimal
    litestar run

Or:
    uvicorn app:app --reload
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, ClassVar
from uuid import UUID

from litestar import Controller, Litestar, get, post

from litestar_dataflows import (
    DataflowDefinition,
    DataflowManager,
    DataflowRun,
    DataflowsPlugin,
    DataflowsPluginConfig,
    EdgeKind,
    Link,
    LocalExecutionEngine,
    Scheduler,
    StepDefinition,
)
from litestar_dataflows.steps import BaseConnectorStep

WORKDIR = Path(tempfile.gettempdir()) / "litestar-dataflows-example"

# =============================================================================
# Step Types
# =============================================================================


class WriteDailyReport(BaseConnectorStep):
    """Write the daily report and hand its path downstream."""

    type_name: ClassVar[str] = "connector_daily_report"

    async def execute(self, input: Any) -> str:
        """Write a one-line report for the trigger time."""
        report = WORKDIR / "today.csv"
        if self.is_dry_run:
            return str(report)
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(f"{input},ok\n")
        return str(report)


# =============================================================================
# Dataflow Definitions
# =============================================================================


NIGHTLY_EXPORT = DataflowDefinition(
    id="nightly_export",
    name="Nightly export",
    steps=(
        StepDefinition(
            id="cron",
            dataflow_id="nightly_export",
            type="trigger_cron",
            config={"minute": "0", "hour": "2"},
        ),
        StepDefinition(id="report", dataflow_id="nightly_export", type="connector_daily_report"),
        StepDefinition(
            id="append",
            dataflow_id="nightly_export",
            type="flow_append_file",
            config={"to": str(WORKDIR / "history.csv")},
        ),
    ),
    links=(
        Link(source="cron", target="report"),
        Link(source="report", target="append", kind=EdgeKind.FLOW),
    ),
)


def serialize_run(run: DataflowRun) -> dict[str, Any]:
    """Convert a run into a JSON-friendly dict."""
    return {
        "id": str(run.id),
        "dataflow_id": run.dataflow_id,
        "dry_run": run.dry_run,
        "status": str(run.status),
        "outputs": run.outputs,
        "failed_steps": run.failed_steps,
        "skipped_steps": run.skipped_steps,
        "error": run.error,
    }


# =============================================================================
# API Controller
# =============================================================================


class DataflowController(Controller):
    """API endpoints for dataflow management."""

    path = "/dataflows"

    @get("/{dataflow_id:str}/schedule")
    async def get_schedule(self, dataflow_id: str, dataflow_scheduler: Scheduler) -> dict[str, Any]:
        """Show when the dataflow last ran and runs next."""
        times = await dataflow_scheduler.get_scheduled_times(dataflow_id)
        if times is None:
            return {"dataflow_id": dataflow_id, "scheduled": False}
        return {"dataflow_id": dataflow_id, "scheduled": True, **times.to_record()}

    @post("/{dataflow_id:str}/schedule")
    async def save_schedule(
        self,
        dataflow_id: str,
        data: dict[str, str],
        dataflow_manager: DataflowManager,
    ) -> dict[str, str]:
        """Change the crontab of the dataflow's trigger."""
        await dataflow_manager.save_step(
            StepDefinition(id="cron", dataflow_id=dataflow_id, type="trigger_cron", config=data)
        )
        return {"dataflow_id": dataflow_id, "status": "saved"}

    @post("/{dataflow_id:str}/dry-run")
    async def dry_run(self, dataflow_id: str, dataflow_engine: LocalExecutionEngine) -> dict[str, Any]:
        """Run the dataflow without side effects."""
        return serialize_run(await dataflow_engine.run(dataflow_id, dry_run=True))

    @post("/{dataflow_id:str}/run")
    async def start_run(self, dataflow_id: str, dataflow_engine: LocalExecutionEngine) -> dict[str, Any]:
        """Start a real run in the background."""
        return serialize_run(await dataflow_engine.start(dataflow_id))

    @get("/runs/{run_id:uuid}")
    async def get_run(self, run_id: UUID, dataflow_engine: LocalExecutionEngine) -> dict[str, Any]:
        """Get the state of a run."""
        return serialize_run(dataflow_engine.get_run(run_id))

    @post("/runs/{run_id:uuid}/cancel")
    async def cancel_run(self, run_id: UUID, dataflow_engine: LocalExecutionEngine) -> dict[str, Any]:
        """Ask a run to stop before its next step."""
        return serialize_run(dataflow_engine.cancel(run_id))


# =============================================================================
# Application
# =============================================================================


async def schedule_on_startup(app: Litestar) -> None:
    """Register the nightly trigger with the scheduler."""
    plugin = app.plugins.get(DataflowsPlugin)
    await plugin.manager.save_step(NIGHTLY_EXPORT.get_step("cron"))


app = Litestar(
    route_handlers=[DataflowController],
    on_startup=[schedule_on_startup],
    plugins=[
        DataflowsPlugin(
            DataflowsPluginConfig(
                auto_register_dataflows=[NIGHTLY_EXPORT],
                extra_step_types=[WriteDailyReport],
                enable_dispatcher=True,
            )
        )
    ],
    debug=True,
)


# =============================================================================
# Health Check (for testing)
# =============================================================================


@get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Add health check to app
app.register(health_check)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
