"""Database persistence layer for litestar-dataflows.

This module provides SQLAlchemy models and repositories for persisting
dataflows and their scheduled times, and adapters exposing them to the engine.
"""

from __future__ import annotations

from litestar_dataflows.db.models import DataflowModel, ScheduledTimeModel, StepDefinitionModel, StepLinkModel
from litestar_dataflows.db.repositories import DataflowRepository, ScheduledTimeRepository, to_definition
from litestar_dataflows.db.stores import SQLAlchemyDataflowStore, SQLAlchemyScheduleStore

__all__ = [
    "DataflowModel",
    "DataflowRepository",
    "SQLAlchemyDataflowStore",
    "SQLAlchemyScheduleStore",
    "ScheduledTimeModel",
    "ScheduledTimeRepository",
    "StepDefinitionModel",
    "StepLinkModel",
    "to_definition",
]
