"""No-op connector step."""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from litestar_dataflows.steps.base import BaseConnectorStep

__all__ = ["NoopConnector"]

logger = logging.getLogger(__name__)


class NoopConnector(BaseConnectorStep):
    """Connector that passes its input to its output unchanged.

    Example:
        >>> step = NoopConnector(StepDefinition(id="noop", dataflow_id="d", type="connector_noop"))
        >>> await step.execute({"row": 1})
        {'row': 1}
    """

    type_name: ClassVar[str] = "connector_noop"

    async def execute(self, input: Any) -> Any:
        logger.debug("Step %s passing through %r", self.stepdef.id, input)
        return input
