"""Built-in step implementations for litestar-dataflows."""

from __future__ import annotations

from litestar_dataflows.steps.base import (
    UNBOUNDED,
    BaseConnectorStep,
    BaseFlowStep,
    BaseStep,
    BaseTriggerStep,
    StepServices,
)
from litestar_dataflows.steps.connector_noop import NoopConnector
from litestar_dataflows.steps.flow_append_file import AppendFileFlow
from litestar_dataflows.steps.trigger_cron import CronTrigger
from litestar_dataflows.steps.trigger_manual import ManualTrigger

BUILTIN_STEP_TYPES: tuple[type[BaseStep], ...] = (CronTrigger, ManualTrigger, NoopConnector, AppendFileFlow)
"""Step types registered by :meth:`StepTypeRegistry.with_builtins`."""

__all__ = [
    "BUILTIN_STEP_TYPES",
    "UNBOUNDED",
    "AppendFileFlow",
    "BaseConnectorStep",
    "BaseFlowStep",
    "BaseStep",
    "BaseTriggerStep",
    "CronTrigger",
    "ManualTrigger",
    "NoopConnector",
    "StepServices",
]
