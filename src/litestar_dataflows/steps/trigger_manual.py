"""Manual trigger step."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from litestar_dataflows.steps.base import BaseTriggerStep

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_dataflows.core.types import ConfigValue

__all__ = ["ManualTrigger"]


class ManualTrigger(BaseTriggerStep):
    """Trigger for dataflows that only run on demand.

    The run is seeded with the configured ``value`` (``None`` by default).
    """

    type_name: ClassVar[str] = "trigger_manual"
    config_fields: ClassVar[Mapping[str, ConfigValue]] = MappingProxyType({"value": None})

    async def execute(self, input: Any) -> Any:
        return self.config.get("value")
