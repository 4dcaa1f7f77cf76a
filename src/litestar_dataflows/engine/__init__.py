"""Dataflow execution engine.

This module provides the graph, registries, manager and local execution
engine that validate, run and edit dataflows.
"""

from __future__ import annotations

from litestar_dataflows.engine.graph import DataflowGraph
from litestar_dataflows.engine.local import LocalExecutionEngine
from litestar_dataflows.engine.manager import DataflowManager
from litestar_dataflows.engine.registry import DataflowRegistry, StepTypeRegistry

__all__ = [
    "DataflowGraph",
    "DataflowManager",
    "DataflowRegistry",
    "LocalExecutionEngine",
    "StepTypeRegistry",
]
