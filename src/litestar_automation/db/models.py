"""SQLAlchemy models for workflow persistence.

This module defines the database models backing :class:`SQLAlchemyWorkflowStore`:

- WorkflowDefinitionModel: the current state of each definition
- WorkflowDefinitionVersionModel: an immutable snapshot per definition version
- WorkflowRunModel: runs with their ledger of step results
- WorkflowScheduleModel: timers that fire definitions
- WorkflowTemplateModel: reusable blueprints
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from advanced_alchemy.base import UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from litestar_automation.core.types import DefinitionStatus, RunStatus, ScheduleType, TriggerType

__all__ = [
    "WorkflowDefinitionModel",
    "WorkflowDefinitionVersionModel",
    "WorkflowRunModel",
    "WorkflowScheduleModel",
    "WorkflowTemplateModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")


class WorkflowDefinitionModel(UUIDAuditBase):
    """Persisted workflow definition, current version only.

    Attributes:
        name: Display name.
        description: Free-form description.
        status: Lifecycle status.
        version: Current version number.
        trigger_type: Trigger class.
        trigger_config: Trigger parameters as JSON.
        actions: The action program as a JSON list of ``{"type", "config"}``.
        variables: Default run variables.
        created_by: Author.
        workspace_id: Owning workspace.
        metadata_: Free-form metadata (column ``metadata``).
    """

    __tablename__ = "automation_workflow_definitions"
    __table_args__ = (
        Index("ix_automation_workflow_definitions_status_trigger", "status", "trigger_type"),
        Index("ix_automation_workflow_definitions_workspace_id", "workspace_id"),
    )

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[DefinitionStatus] = mapped_column(
        Enum(DefinitionStatus, native_enum=False, length=50),
        default=DefinitionStatus.DRAFT,
    )
    version: Mapped[int] = mapped_column(Integer, default=1)
    trigger_type: Mapped[TriggerType] = mapped_column(Enum(TriggerType, native_enum=False, length=50))
    trigger_config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    variables: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    workspace_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)


class WorkflowDefinitionVersionModel(UUIDAuditBase):
    """Immutable snapshot of one definition version.

    Runs are pinned to a version; the executor loads the program from here so
    editing a definition never changes a run already in flight.

    Attributes:
        workflow_id: The definition.
        version: The snapshotted version number.
        snapshot: The full definition as JSON.
    """

    __tablename__ = "automation_workflow_definition_versions"
    __table_args__ = (
        Index(
            "ix_automation_workflow_definition_versions_workflow_version",
            "workflow_id",
            "version",
            unique=True,
        ),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        ForeignKey("automation_workflow_definitions.id", ondelete="CASCADE"),
    )
    version: Mapped[int] = mapped_column(Integer)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)


class WorkflowRunModel(UUIDAuditBase):
    """Persisted workflow run.

    Runs outlive their definitions, so ``workflow_id`` is not a foreign key.

    Attributes:
        workflow_id: The definition executed.
        workflow_version: The pinned definition version.
        status: Run status.
        trigger_data: Payload of the starting event.
        triggered_by: User or sender that caused the run.
        variables: Run variables.
        current_step_index: Last recorded program index.
        step_results: Append-only JSON list of step results.
        in_flight_index: Index of an effect dispatched but not yet recorded.
        resume_at: When a delay-paused run becomes due.
        error_message: Diagnostic of a failed run.
        started_at: Creation time.
        completed_at: Time the run became terminal.
        heartbeat_at: Time of the last ledger write, used for stall detection.
        lock_version: Optimistic concurrency token.
    """

    __tablename__ = "automation_workflow_runs"
    __table_args__ = (
        Index("ix_automation_workflow_runs_workflow_started", "workflow_id", "started_at"),
        Index("ix_automation_workflow_runs_status_resume_at", "status", "resume_at"),
        Index("ix_automation_workflow_runs_status_heartbeat_at", "status", "heartbeat_at"),
    )

    workflow_id: Mapped[UUID] = mapped_column()
    workflow_version: Mapped[int] = mapped_column(Integer)
    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, native_enum=False, length=50),
        default=RunStatus.PENDING,
    )
    trigger_data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    triggered_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    variables: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    current_step_index: Mapped[int] = mapped_column(Integer, default=-1)
    step_results: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    in_flight_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resume_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    heartbeat_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    lock_version: Mapped[int] = mapped_column(Integer, default=0)


class WorkflowScheduleModel(UUIDAuditBase):
    """Persisted workflow schedule.

    Attributes:
        workflow_id: The definition to fire.
        schedule_type: once, recurring or interval.
        cron_expression: Cron expression for recurring schedules.
        interval_seconds: Period for interval schedules.
        next_run_at: Next due time.
        timezone: IANA zone of the cron expression.
        is_active: Whether the scheduler considers this schedule.
        last_run_at: Last time the schedule fired.
        last_error: Diagnostic of the last failure to advance.
        lock_version: Optimistic concurrency token.
    """

    __tablename__ = "automation_workflow_schedules"
    __table_args__ = (Index("ix_automation_workflow_schedules_active_next_run", "is_active", "next_run_at"),)

    workflow_id: Mapped[UUID] = mapped_column(
        ForeignKey("automation_workflow_definitions.id", ondelete="CASCADE"),
        index=True,
    )
    schedule_type: Mapped[ScheduleType] = mapped_column(Enum(ScheduleType, native_enum=False, length=50))
    cron_expression: Mapped[str | None] = mapped_column(String(255), nullable=True)
    interval_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_run_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    is_active: Mapped[bool] = mapped_column(default=True)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    lock_version: Mapped[int] = mapped_column(Integer, default=0)


class WorkflowTemplateModel(UUIDAuditBase):
    """Persisted workflow template.

    Attributes:
        name: Display name.
        description: Free-form description.
        category: Gallery grouping.
        icon: Gallery icon.
        trigger_type: Trigger class copied into new definitions.
        trigger_config: Trigger parameters copied into new definitions.
        actions: Action program copied into new definitions.
        variables: Default variables copied into new definitions.
        tags: Search tags.
        is_public: Visible to every workspace.
        usage_count: Number of instantiations.
    """

    __tablename__ = "automation_workflow_templates"
    __table_args__ = (Index("ix_automation_workflow_templates_category", "category"),)

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), default="general")
    icon: Mapped[str | None] = mapped_column(String(100), nullable=True)
    trigger_type: Mapped[TriggerType] = mapped_column(Enum(TriggerType, native_enum=False, length=50))
    trigger_config: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    variables: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list)
    is_public: Mapped[bool] = mapped_column(default=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
