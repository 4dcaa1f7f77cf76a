"""Cron trigger step."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from litestar_dataflows.scheduling.cron import CRON_FIELDS
from litestar_dataflows.steps.base import BaseTriggerStep

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_dataflows.core.definition import DataflowDefinition
    from litestar_dataflows.core.protocols import ConfigFormBuilder
    from litestar_dataflows.core.types import ConfigValue

__all__ = ["CronTrigger"]

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def _format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


class CronTrigger(BaseTriggerStep):
    """Time-based trigger driven by a five-field cron schedule.

    The trigger owns its dataflow's scheduled-time record:

    - ``on_save`` computes the next run time from now and stores it, keeping
      the recorded last run time.
    - ``on_finalise`` records the slot that just ran as the last run time
      (the current time when no slot was scheduled) and stores the following
      slot, unless the run is a dry-run.
    - ``on_delete`` removes the record.

    Setting ``disabled`` keeps the schedule but stops the dispatcher from
    starting scheduled runs.
    """

    type_name: ClassVar[str] = "trigger_cron"
    config_fields: ClassVar[Mapping[str, ConfigValue]] = MappingProxyType(
        {"minute": "*", "hour": "*", "day": "*", "month": "*", "dayofweek": "*", "disabled": False}
    )

    @property
    def schedule_fields(self) -> dict[str, str]:
        """The cron fields of the current configuration."""
        return {field: str(self.config.get(field, "*")) for field in CRON_FIELDS}

    @property
    def disabled(self) -> bool:
        """Whether scheduled dispatching is switched off for this trigger."""
        value = self.config.get("disabled")
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)

    def validate_config(self, config: Mapping[str, ConfigValue]) -> bool | dict[str, str]:
        cron = self.require_services().cron
        errors: dict[str, str] = {}
        for field in CRON_FIELDS:
            value = config.get(field, "*")
            if value is None or not cron.validate_field(field, str(value)):
                errors[f"config_{field}"] = f"Invalid cron {field} value: {value!r}"
        if errors:
            return errors

        fields = {field: str(config.get(field, "*")) for field in CRON_FIELDS}
        try:
            cron.next_run_time(fields, self.require_services().clock.now())
        except ValueError:
            errors["config_crontab"] = "The schedule never produces a run time"
        return errors or True

    def next_scheduled_time(self, after: int) -> int:
        """Return the first scheduled epoch time strictly after ``after``."""
        return self.require_services().cron.next_run_time(self.schedule_fields, after)

    async def execute(self, input: Any) -> int:
        """Seed the run with the time the trigger fired."""
        return self.require_services().clock.now()

    async def on_save(self) -> None:
        services = self.require_services()
        dataflow_id = self.stepdef.dataflow_id
        times = await services.scheduler.get_scheduled_times(dataflow_id)
        lastruntime = times.lastruntime if times is not None else 0
        newtime = self.next_scheduled_time(services.clock.now())
        await services.scheduler.set_scheduled_times(dataflow_id, newtime, lastruntime=lastruntime)

    async def on_delete(self) -> None:
        await self.require_services().scheduler.delete_scheduled_times(self.stepdef.dataflow_id)

    async def on_finalise(self) -> None:
        if self.enginestep is None:
            return
        if self.is_dry_run:
            logger.debug("Dry-run: not advancing the schedule of dataflow %s", self.stepdef.dataflow_id)
            return

        services = self.require_services()
        dataflow_id = self.stepdef.dataflow_id
        lastruntime = self.enginestep.run.scheduled_time
        if lastruntime is None:
            times = await services.scheduler.get_scheduled_times(dataflow_id)
            lastruntime = times.nextruntime if times is not None and times.nextruntime else None
        newtime = self.next_scheduled_time(services.clock.now())
        await services.scheduler.set_scheduled_times(dataflow_id, newtime, lastruntime=lastruntime)

    async def form_define(
        self,
        builder: ConfigFormBuilder,
        dataflow: DataflowDefinition | None = None,
    ) -> None:
        """Describe the schedule status and the crontab fields."""
        if self.services is not None:
            times = await self.services.scheduler.get_scheduled_times(self.stepdef.dataflow_id)
            lastruntime = times.lastruntime if times is not None else 0
            nextruntime = times.nextruntime if times is not None else 0
            if dataflow is not None and not dataflow.enabled:
                nextrun = "Dataflow is disabled"
            elif nextruntime > self.services.clock.now():
                nextrun = _format_time(nextruntime)
            else:
                nextrun = "As soon as possible"
            builder.add_static("lastrun", "Last run", _format_time(lastruntime) if lastruntime else "Never")
            builder.add_static("nextrun", "Next run", nextrun)
        await super().form_define(builder, dataflow)
