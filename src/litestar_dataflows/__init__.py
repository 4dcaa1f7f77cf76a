"""Litestar Dataflows - Dataflow execution library for Litestar.

This package provides an embeddable dataflow engine for Litestar
applications: typed steps wired into a graph, scheduled by cron, executed
with data propagating from step to step, with dry-run support.

Key Features:
    - DAG-based dataflow definitions validated before execution
    - Trigger, connector and flow step roles with edge cardinality bounds
    - Cron scheduling with persisted last and next run times
    - Dry-runs that suppress every external side effect
    - Lifecycle hooks for saving, deleting and finalising steps
    - Optional SQLAlchemy persistence and a Litestar plugin

Example:
    >>> from litestar_dataflows import DataflowDefinition, Link, StepDefinition
    >>>
    >>> nightly = DataflowDefinition(
    ...     id="nightly",
    ...     steps=(
    ...         StepDefinition(id="cron", dataflow_id="nightly", type="trigger_cron", config={"minute": "0"}),
    ...         StepDefinition(id="noop", dataflow_id="nightly", type="connector_noop"),
    ...     ),
    ...     links=(Link(source="cron", target="noop"),),
    ... )
"""

from __future__ import annotations

from litestar_dataflows.__metadata__ import __project__, __version__
from litestar_dataflows.config import DataflowsConfig
from litestar_dataflows.core import (
    DataflowDefinition,
    DataflowRun,
    EdgeKind,
    Link,
    RunStatus,
    StepDefinition,
    StepRole,
    StepStatus,
)
from litestar_dataflows.engine import DataflowManager, DataflowRegistry, LocalExecutionEngine, StepTypeRegistry
from litestar_dataflows.exceptions import (
    ConfigurationError,
    ConfigurationIssue,
    DataflowNotFoundError,
    DataflowsError,
    RunNotFoundError,
    SchedulingError,
    StepExecutionError,
    UnknownStepTypeError,
)
from litestar_dataflows.plugin import DataflowsPlugin, DataflowsPluginConfig
from litestar_dataflows.scheduling import Scheduler

__all__ = (
    "ConfigurationError",
    "ConfigurationIssue",
    "DataflowDefinition",
    "DataflowManager",
    "DataflowNotFoundError",
    "DataflowRegistry",
    "DataflowRun",
    "DataflowsConfig",
    "DataflowsError",
    "DataflowsPlugin",
    "DataflowsPluginConfig",
    "EdgeKind",
    "Link",
    "LocalExecutionEngine",
    "RunNotFoundError",
    "RunStatus",
    "Scheduler",
    "SchedulingError",
    "StepDefinition",
    "StepExecutionError",
    "StepRole",
    "StepStatus",
    "StepTypeRegistry",
    "UnknownStepTypeError",
    "__project__",
    "__version__",
)
