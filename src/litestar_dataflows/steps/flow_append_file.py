"""Flow step for appending files."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

import anyio.to_thread

from litestar_dataflows.steps.base import BaseFlowStep

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_dataflows.core.types import ConfigValue

__all__ = ["AppendFileFlow"]

logger = logging.getLogger(__name__)


def _append(source: Path, destination: Path, chunk_size: int) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    with source.open("rb") as reader, destination.open("ab") as writer:
        shutil.copyfileobj(reader, writer, chunk_size)


class AppendFileFlow(BaseFlowStep):
    """Append the contents of one file onto another.

    Similar to copying, but never overwrites: the source is appended to the
    end of the destination, which is created (with its parent directories) if
    it does not exist. When ``from`` is not configured, the step's input is
    used as the source path, so an upstream step can hand over a file.

    The output is the destination path as a string, both for real runs and
    dry-runs.

    Example:
        >>> stepdef = StepDefinition(
        ...     id="append",
        ...     dataflow_id="export",
        ...     type="flow_append_file",
        ...     config={"from": "/tmp/today.csv", "to": "/tmp/all.csv"},
        ... )
        >>> await AppendFileFlow(stepdef).execute(None)
        '/tmp/all.csv'
    """

    type_name: ClassVar[str] = "flow_append_file"
    config_fields: ClassVar[Mapping[str, ConfigValue]] = MappingProxyType({"from": "", "to": "", "chunk_size": 65536})

    def validate_config(self, config: Mapping[str, ConfigValue]) -> bool | dict[str, str]:
        errors: dict[str, str] = {}
        if not str(config.get("to") or "").strip():
            errors["config_to"] = "A destination file is required"
        chunk_size = config.get("chunk_size", 65536)
        if not isinstance(chunk_size, int) or isinstance(chunk_size, bool) or chunk_size < 1:
            errors["config_chunk_size"] = "Chunk size must be a positive integer"
        return errors or True

    def _paths(self, input: Any) -> tuple[Path, Path]:
        source = str(self.config.get("from") or "").strip()
        if not source:
            if not isinstance(input, (str, Path)):
                msg = f"Step '{self.stepdef.id}' has no source file configured and received {type(input).__name__}"
                raise ValueError(msg)
            source = str(input)
        return Path(source), Path(str(self.config["to"]))

    async def apply(self, input: Any) -> str:
        source, destination = self._paths(input)
        chunk_size = int(self.config.get("chunk_size") or 65536)
        await anyio.to_thread.run_sync(_append, source, destination, chunk_size)
        logger.debug("Appended %s onto %s", source, destination)
        return str(destination)

    async def preview(self, input: Any) -> str:
        source, destination = self._paths(input)
        logger.debug("Dry-run: would append %s onto %s", source, destination)
        return str(destination)
