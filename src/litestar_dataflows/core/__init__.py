"""Core domain module for litestar-dataflows.

This module exports the fundamental building blocks for dataflow definitions,
including types, protocols, run state, definitions, and events.
"""

from __future__ import annotations

from litestar_dataflows.core.context import EngineStep
from litestar_dataflows.core.definition import DataflowDefinition, Link, StepDefinition, freeze_config
from litestar_dataflows.core.events import (
    DataflowEvent,
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
from litestar_dataflows.core.models import DataflowRun, ScheduledTimes
from litestar_dataflows.core.protocols import (
    Clock,
    ConfigFormBuilder,
    CronEvaluator,
    DataflowLoader,
    DataflowStore,
    EventBus,
    KeyValueStore,
    Step,
)
from litestar_dataflows.core.types import Bounds, ConfigValue, EdgeKind, RunStatus, StepRole, StepStatus

__all__ = [
    "Bounds",
    "Clock",
    "ConfigFormBuilder",
    "ConfigValue",
    "CronEvaluator",
    "DataflowDefinition",
    "DataflowEvent",
    "DataflowLoader",
    "DataflowRun",
    "DataflowRunCanceled",
    "DataflowRunFailed",
    "DataflowRunFinished",
    "DataflowRunStarted",
    "DataflowStore",
    "EdgeKind",
    "EngineStep",
    "EventBus",
    "KeyValueStore",
    "Link",
    "RunStatus",
    "ScheduledTimes",
    "Step",
    "StepDefinition",
    "StepFailed",
    "StepFinalised",
    "StepFinished",
    "StepRole",
    "StepSkipped",
    "StepStarted",
    "StepStatus",
    "freeze_config",
]
