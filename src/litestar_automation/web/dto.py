"""Data Transfer Objects for the automation web API.

This module defines DTOs for serializing and deserializing definitions, runs,
schedules and templates in REST API requests and responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from litestar_automation.core.models import (
    StepResult,
    WorkflowDefinition,
    WorkflowRun,
    WorkflowSchedule,
    WorkflowTemplate,
)

__all__ = [
    "ApproveRunDTO",
    "CreateDefinitionDTO",
    "CreateScheduleDTO",
    "CreateTemplateDTO",
    "DomainEventDTO",
    "InstantiateTemplateDTO",
    "MessageDTO",
    "RunManualDTO",
    "StepResultDTO",
    "UpdateDefinitionDTO",
    "UpdateScheduleDTO",
    "WorkflowDefinitionDTO",
    "WorkflowRunDTO",
    "WorkflowRunDetailDTO",
    "WorkflowScheduleDTO",
    "WorkflowTemplateDTO",
]


# Requests


@dataclass
class CreateDefinitionDTO:
    """DTO for creating a workflow definition.

    Attributes:
        name: Display name.
        trigger_type: One of message, schedule, event, webhook, manual, form_submission.
        trigger_config: Trigger parameters such as ``eventType`` or ``webhookId``.
        actions: The action program as a list of ``{"type", "config"}`` objects.
        description: Free-form description.
        status: Initial status; defaults to draft.
        variables: Default run variables.
        created_by: Author of the definition.
        workspace_id: Owning workspace.
        metadata: Free-form metadata.
    """

    name: str
    trigger_type: str
    trigger_config: dict[str, Any] = field(default_factory=dict)
    actions: list[dict[str, Any]] = field(default_factory=list)
    description: str | None = None
    status: str = "draft"
    variables: dict[str, Any] = field(default_factory=dict)
    created_by: str | None = None
    workspace_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class UpdateDefinitionDTO:
    """DTO for a partial update of a workflow definition.

    Fields left as ``None`` are not changed.
    """

    name: str | None = None
    description: str | None = None
    status: str | None = None
    trigger_type: str | None = None
    trigger_config: dict[str, Any] | None = None
    actions: list[dict[str, Any]] | None = None
    variables: dict[str, Any] | None = None
    workspace_id: str | None = None
    metadata: dict[str, Any] | None = None

    def changes(self) -> dict[str, Any]:
        """Return the fields that were set."""
        return {name: value for name, value in vars(self).items() if value is not None}


@dataclass
class RunManualDTO:
    """DTO for starting a definition manually.

    Attributes:
        trigger_data: Trigger data for the run; defaults to ``{"source": "manual"}``.
        triggered_by: User requesting the run.
    """

    trigger_data: dict[str, Any] | None = None
    triggered_by: str | None = None


@dataclass
class ApproveRunDTO:
    """DTO for recording an approval decision.

    Attributes:
        approval_status: The decision, conventionally ``approved`` or ``rejected``.
        variables: Extra variables merged into the run.
    """

    approval_status: str = "approved"
    variables: dict[str, Any] | None = None


@dataclass
class CreateScheduleDTO:
    """DTO for creating a schedule.

    Attributes:
        schedule_type: once, recurring or interval.
        cron_expression: Five-field cron expression for recurring schedules.
        interval_seconds: Period for interval schedules.
        next_run_at: First due time; computed when omitted.
        timezone: IANA zone of the cron expression.
        is_active: Whether the schedule fires.
    """

    schedule_type: str
    cron_expression: str | None = None
    interval_seconds: int | None = None
    next_run_at: datetime | None = None
    timezone: str = "UTC"
    is_active: bool = True


@dataclass
class UpdateScheduleDTO:
    """DTO for a partial update of a schedule. ``None`` fields are not changed."""

    schedule_type: str | None = None
    cron_expression: str | None = None
    interval_seconds: int | None = None
    next_run_at: datetime | None = None
    timezone: str | None = None
    is_active: bool | None = None

    def changes(self) -> dict[str, Any]:
        return {name: value for name, value in vars(self).items() if value is not None}


@dataclass
class CreateTemplateDTO:
    """DTO for creating a workflow template."""

    name: str
    trigger_type: str
    trigger_config: dict[str, Any] = field(default_factory=dict)
    actions: list[dict[str, Any]] = field(default_factory=list)
    description: str | None = None
    category: str = "general"
    icon: str | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    is_public: bool = True


@dataclass
class InstantiateTemplateDTO:
    """DTO for creating a definition from a template.

    Attributes:
        name: Name of the new definition; defaults to the template's.
        description: Description of the new definition.
        trigger_config_override: Keys merged over the template's trigger config.
        created_by: Author of the new definition.
        workspace_id: Owning workspace.
    """

    name: str | None = None
    description: str | None = None
    trigger_config_override: dict[str, Any] | None = None
    created_by: str | None = None
    workspace_id: str | None = None


@dataclass
class DomainEventDTO:
    """DTO for an inbound domain event such as ``candidate_created``."""

    event_type: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class MessageDTO:
    """DTO for an inbound chat message."""

    content: str
    channel_id: str | None = None
    sender_id: str | None = None
    message_id: str | None = None


# Responses


@dataclass
class WorkflowDefinitionDTO:
    """DTO for a workflow definition."""

    id: UUID
    name: str
    description: str | None
    status: str
    version: int
    trigger_type: str
    trigger_config: dict[str, Any]
    actions: list[dict[str, Any]]
    variables: dict[str, Any]
    created_by: str | None
    workspace_id: str | None
    metadata: dict[str, Any]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> WorkflowDefinitionDTO:
        return cls(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            status=str(definition.status),
            version=definition.version,
            trigger_type=str(definition.trigger_type),
            trigger_config=definition.trigger_config,
            actions=[action.to_dict() for action in definition.actions],
            variables=definition.variables,
            created_by=definition.created_by,
            workspace_id=definition.workspace_id,
            metadata=definition.metadata,
            created_at=definition.created_at,
            updated_at=definition.updated_at,
        )


@dataclass
class StepResultDTO:
    """DTO for one ledger entry of a run."""

    index: int
    action_type: str
    success: bool
    output: dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_result(cls, result: StepResult) -> StepResultDTO:
        return cls(
            index=result.index,
            action_type=result.action_type,
            success=result.success,
            output=result.output,
            timestamp=result.timestamp,
        )


@dataclass
class WorkflowRunDTO:
    """DTO for a workflow run summary.

    Attributes:
        id: Run ID.
        workflow_id: The definition executed.
        workflow_version: The pinned definition version.
        status: Current run status.
        current_step_index: Last recorded program index.
        triggered_by: User or sender that caused the run.
        started_at: When the run was created.
        completed_at: When the run finished, if it has.
        resume_at: When a delay-paused run becomes due.
        error_message: Diagnostic of a failed run.
    """

    id: UUID
    workflow_id: UUID
    workflow_version: int
    status: str
    current_step_index: int
    started_at: datetime | None
    completed_at: datetime | None = None
    resume_at: datetime | None = None
    error_message: str | None = None
    triggered_by: str | None = None

    @classmethod
    def from_run(cls, run: WorkflowRun) -> WorkflowRunDTO:
        return cls(
            id=run.id,
            workflow_id=run.workflow_id,
            workflow_version=run.workflow_version,
            status=str(run.status),
            current_step_index=run.current_step_index,
            started_at=run.started_at,
            completed_at=run.completed_at,
            resume_at=run.resume_at,
            error_message=run.error_message,
            triggered_by=run.triggered_by,
        )


@dataclass
class WorkflowRunDetailDTO:
    """DTO for a run with its trigger data, variables and step history."""

    id: UUID
    workflow_id: UUID
    workflow_version: int
    status: str
    current_step_index: int
    started_at: datetime | None
    completed_at: datetime | None
    resume_at: datetime | None
    error_message: str | None
    triggered_by: str | None
    trigger_data: dict[str, Any]
    variables: dict[str, Any]
    step_results: list[StepResultDTO]

    @classmethod
    def from_run(cls, run: WorkflowRun) -> WorkflowRunDetailDTO:
        return cls(
            id=run.id,
            workflow_id=run.workflow_id,
            workflow_version=run.workflow_version,
            status=str(run.status),
            current_step_index=run.current_step_index,
            started_at=run.started_at,
            completed_at=run.completed_at,
            resume_at=run.resume_at,
            error_message=run.error_message,
            triggered_by=run.triggered_by,
            trigger_data=run.trigger_data,
            variables=run.variables,
            step_results=[StepResultDTO.from_result(result) for result in run.step_results],
        )


@dataclass
class WorkflowScheduleDTO:
    """DTO for a schedule."""

    id: UUID
    workflow_id: UUID
    schedule_type: str
    cron_expression: str | None
    interval_seconds: int | None
    next_run_at: datetime
    timezone: str
    is_active: bool
    last_run_at: datetime | None = None
    last_error: str | None = None

    @classmethod
    def from_schedule(cls, schedule: WorkflowSchedule) -> WorkflowScheduleDTO:
        return cls(
            id=schedule.id,
            workflow_id=schedule.workflow_id,
            schedule_type=str(schedule.schedule_type),
            cron_expression=schedule.cron_expression,
            interval_seconds=schedule.interval_seconds,
            next_run_at=schedule.next_run_at,
            timezone=schedule.timezone,
            is_active=schedule.is_active,
            last_run_at=schedule.last_run_at,
            last_error=schedule.last_error,
        )


@dataclass
class WorkflowTemplateDTO:
    """DTO for a template."""

    id: UUID
    name: str
    description: str | None
    category: str
    icon: str | None
    trigger_type: str
    trigger_config: dict[str, Any]
    actions: list[dict[str, Any]]
    variables: dict[str, Any]
    tags: list[str]
    is_public: bool
    usage_count: int

    @classmethod
    def from_template(cls, template: WorkflowTemplate) -> WorkflowTemplateDTO:
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            category=template.category,
            icon=template.icon,
            trigger_type=str(template.trigger_type),
            trigger_config=template.trigger_config,
            actions=[action.to_dict() for action in template.actions],
            variables=template.variables,
            tags=template.tags,
            is_public=template.is_public,
            usage_count=template.usage_count,
        )
