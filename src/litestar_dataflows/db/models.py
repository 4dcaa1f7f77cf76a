"""SQLAlchemy models for dataflow persistence.

This module defines the database models for persisting dataflows:
- DataflowModel: Stores dataflow metadata
- StepDefinitionModel: Stores the step definitions of a dataflow
- StepLinkModel: Stores the links between steps
- ScheduledTimeModel: Stores the last and next run times of a dataflow
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from advanced_alchemy.base import UUIDAuditBase
from sqlalchemy import JSON, BigInteger, Enum, Float, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litestar_dataflows.core.types import EdgeKind

__all__ = [
    "DataflowModel",
    "ScheduledTimeModel",
    "StepDefinitionModel",
    "StepLinkModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")


class DataflowModel(UUIDAuditBase):
    """Persisted dataflow.

    Attributes:
        key: The dataflow id used by the engine and the scheduler.
        name: Human-readable name.
        enabled: Whether scheduled execution is allowed.
        steps: Step definitions in declaration order.
        links: Links between the steps.
    """

    __tablename__ = "dataflows"

    key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    enabled: Mapped[bool] = mapped_column(default=True)

    # Relationships
    steps: Mapped[list[StepDefinitionModel]] = relationship(
        back_populates="dataflow",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StepDefinitionModel.sort_order",
    )
    links: Mapped[list[StepLinkModel]] = relationship(
        back_populates="dataflow",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="StepLinkModel.sort_order",
    )


class StepDefinitionModel(UUIDAuditBase):
    """Persisted step definition.

    Attributes:
        dataflow_pk: Foreign key to the owning dataflow.
        key: The step id, unique within its dataflow.
        type: Registered step type name.
        name: Human-readable name.
        config: Scalar configuration values as JSON.
        position_x: Optional horizontal layout coordinate.
        position_y: Optional vertical layout coordinate.
        sort_order: Declaration order within the dataflow.
    """

    __tablename__ = "dataflow_steps"
    __table_args__ = (Index("ix_dataflow_steps_dataflow_key", "dataflow_pk", "key", unique=True),)

    dataflow_pk: Mapped[UUID] = mapped_column(ForeignKey("dataflows.id", ondelete="CASCADE"))
    key: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255), default="")
    config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    position_x: Mapped[float | None] = mapped_column(Float, nullable=True)
    position_y: Mapped[float | None] = mapped_column(Float, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    dataflow: Mapped[DataflowModel] = relationship(back_populates="steps")


class StepLinkModel(UUIDAuditBase):
    """Persisted link between two steps of a dataflow.

    Attributes:
        dataflow_pk: Foreign key to the owning dataflow.
        source: Id of the step producing the value.
        target: Id of the step receiving the value.
        kind: Flow or connector edge.
        source_index: Output slot of the source step.
        target_index: Input slot of the target step.
        sort_order: Declaration order within the dataflow.
    """

    __tablename__ = "dataflow_links"
    __table_args__ = (Index("ix_dataflow_links_dataflow_pk", "dataflow_pk"),)

    dataflow_pk: Mapped[UUID] = mapped_column(ForeignKey("dataflows.id", ondelete="CASCADE"))
    source: Mapped[str] = mapped_column(String(255))
    target: Mapped[str] = mapped_column(String(255))
    kind: Mapped[EdgeKind] = mapped_column(
        Enum(EdgeKind, native_enum=False, length=50),
        default=EdgeKind.CONNECTOR,
    )
    source_index: Mapped[int] = mapped_column(Integer, default=0)
    target_index: Mapped[int] = mapped_column(Integer, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    dataflow: Mapped[DataflowModel] = relationship(back_populates="links")


class ScheduledTimeModel(UUIDAuditBase):
    """Scheduled-time record of a time-triggered dataflow.

    Attributes:
        dataflow_id: The dataflow id, one record per dataflow.
        lastruntime: Epoch seconds of the last run, 0 if it never ran.
        nextruntime: Epoch seconds of the next due run, 0 if unset.
    """

    __tablename__ = "dataflow_scheduled_times"
    __table_args__ = (Index("ix_dataflow_scheduled_times_nextruntime", "nextruntime"),)

    dataflow_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    lastruntime: Mapped[int] = mapped_column(BigInteger, default=0)
    nextruntime: Mapped[int] = mapped_column(BigInteger, default=0)
