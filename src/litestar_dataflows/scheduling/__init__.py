"""Scheduling support for time-triggered dataflows.

This module provides the scheduler that stores last/next run times, the cron
evaluator that computes them, and default clock and store implementations.
"""

from __future__ import annotations

from litestar_dataflows.scheduling.clock import SystemClock
from litestar_dataflows.scheduling.cron import CRON_FIELDS, StandardCronEvaluator
from litestar_dataflows.scheduling.scheduler import Scheduler
from litestar_dataflows.scheduling.stores import InMemoryKeyValueStore

__all__ = [
    "CRON_FIELDS",
    "InMemoryKeyValueStore",
    "Scheduler",
    "StandardCronEvaluator",
    "SystemClock",
]
