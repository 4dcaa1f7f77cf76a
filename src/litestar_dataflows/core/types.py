"""Core type definitions for litestar-dataflows.

This module defines the fundamental enums and type aliases used throughout
the dataflow system.
"""

from __future__ import annotations

import sys
from enum import Enum, auto
from typing import Any, TypeAlias, Union

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)

        @staticmethod
        def _generate_next_value_(name: str, start: int, count: int, last_values: list[Any]) -> str:
            return name.lower()


__all__ = [
    "Bounds",
    "ConfigValue",
    "EdgeKind",
    "RunStatus",
    "StepRole",
    "StepStatus",
]


class StepRole(StrEnum):
    """Position a step type may take in a dataflow graph.

    Attributes:
        TRIGGER: The unique entry point that seeds a run.
        CONNECTOR: Transforms or branches values, typically without side effects.
        FLOW: Performs side-effecting I/O and passes its input through.
    """

    TRIGGER = auto()
    CONNECTOR = auto()
    FLOW = auto()


class EdgeKind(StrEnum):
    """Kind of link between two steps.

    Attributes:
        FLOW: A flow edge, counted against a step's ``output_flows`` bounds.
        CONNECTOR: A connector edge, counted against ``output_connectors``.
    """

    FLOW = auto()
    CONNECTOR = auto()


class StepStatus(StrEnum):
    """Execution status of an engine step within one run.

    Attributes:
        PENDING: Step has not run yet.
        RUNNING: Step is currently executing.
        FINISHED: Step produced its output.
        SKIPPED: Step was not executed because an input never became available.
        FAILED: Step execution or finalisation raised an error.
    """

    PENDING = auto()
    RUNNING = auto()
    FINISHED = auto()
    SKIPPED = auto()
    FAILED = auto()


class RunStatus(StrEnum):
    """Overall status of a dataflow run.

    Attributes:
        PENDING: Run has been built but not started.
        RUNNING: Run is executing steps.
        FINISHED: Every step finished.
        FAILED: At least one step failed.
        CANCELED: Run was aborted between step executions.
    """

    PENDING = auto()
    RUNNING = auto()
    FINISHED = auto()
    FAILED = auto()
    CANCELED = auto()


ConfigValue: TypeAlias = Union[str, int, float, bool, None]
"""Scalar value allowed in a step configuration mapping."""

Bounds: TypeAlias = tuple[int, int]
"""Inclusive ``(min, max)`` bounds on a step's outgoing edge count."""
