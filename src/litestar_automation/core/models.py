"""Domain data models for litestar-automation.

This module provides the dataclasses that make up the engine's state: workflow
definitions and their action programs, runs with their step results, schedules
and templates. They are storage agnostic; both the in-memory store and the
SQLAlchemy store convert to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from litestar_automation.core.types import (
    ConditionLogic,
    DefinitionStatus,
    RunStatus,
    ScheduleType,
    TriggerType,
)

__all__ = [
    "ActionResult",
    "ActionStep",
    "ConditionNode",
    "StepResult",
    "WorkflowDefinition",
    "WorkflowRun",
    "WorkflowSchedule",
    "WorkflowTemplate",
]


@dataclass(frozen=True)
class ActionStep:
    """One entry of a workflow's ordered action program.

    ``type`` is kept as a plain string so that programs loaded from storage can
    carry unknown kinds; those compile to ``UnknownAction`` and are rejected by
    validation.

    Attributes:
        type: The action kind, normally an :class:`~litestar_automation.core.types.ActionType` value.
        config: Action parameters. String values may contain ``{{path}}`` placeholders.
    """

    type: str
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionStep:
        """Build an action step from its JSON form ``{"type": ..., "config": {...}}``."""
        return cls(type=str(data.get("type", "")), config=dict(data.get("config") or {}))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON form stored on definitions and templates."""
        return {"type": str(self.type), "config": dict(self.config)}


@dataclass(frozen=True)
class ConditionNode:
    """A single comparison inside a condition step.

    Attributes:
        field: Dotted path into the run context, for example ``candidate.score``.
        operator: One of the :class:`~litestar_automation.core.types.ConditionOperator` values.
        value: The right-hand operand.
        logic: How this node's result combines with the next node's.
    """

    field: str
    operator: str
    value: Any = None
    logic: str = ConditionLogic.AND

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConditionNode:
        return cls(
            field=str(data.get("field", "")),
            operator=str(data.get("operator", "")),
            value=data.get("value"),
            logic=str(data.get("logic") or ConditionLogic.AND),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value, "logic": self.logic}


@dataclass(frozen=True)
class ActionResult:
    """Outcome reported by an action provider for one effectful step.

    Attributes:
        success: Whether the side effect was delivered.
        output: Provider output, exposed to later steps under ``steps.<index>``.
        error: Diagnostic when ``success`` is false.
    """

    success: bool
    output: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


@dataclass(frozen=True)
class StepResult:
    """Ledger entry for one executed, evaluated or skipped program step.

    Attributes:
        index: Program index of the step.
        action_type: The step's action kind.
        success: Whether the step succeeded.
        output: Provider output or control-step diagnostics.
        timestamp: When the step was recorded.
    """

    index: int
    action_type: str
    success: bool
    output: dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepResult:
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            index=int(data["index"]),
            action_type=str(data["action_type"]),
            success=bool(data["success"]),
            output=dict(data.get("output") or {}),
            timestamp=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "action_type": self.action_type,
            "success": self.success,
            "output": self.output,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class WorkflowDefinition:
    """An operator-authored automation rule.

    A definition couples one trigger with an ordered action program. Its
    ``version`` starts at 1 and increments whenever ``actions`` or
    ``trigger_config`` change; runs pin the version they were created with.

    Attributes:
        name: Display name.
        trigger_type: Which class of events starts this workflow.
        trigger_config: Trigger parameters (``eventType``, ``keyword``, ``webhookId``...).
        actions: The ordered action program.
        id: Unique identifier.
        description: Free-form description.
        status: Lifecycle status; only ``active`` definitions execute.
        version: Monotonic version number.
        variables: Default run variables.
        created_by: Identifier of the author.
        workspace_id: Owning workspace.
        metadata: Free-form metadata; ``templateId`` when built from a template.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    name: str
    trigger_type: TriggerType
    trigger_config: dict[str, Any] = field(default_factory=dict)
    actions: list[ActionStep] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)
    description: str | None = None
    status: DefinitionStatus = DefinitionStatus.DRAFT
    version: int = 1
    variables: dict[str, Any] = field(default_factory=dict)
    created_by: str | None = None
    workspace_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == DefinitionStatus.ACTIVE


@dataclass
class WorkflowRun:
    """Durable record of one execution of a definition version.

    ``current_step_index`` is the last program index the ledger recorded, or
    ``-1`` before the first step; the next step to run is always
    ``current_step_index + 1``. It only moves forward.

    Attributes:
        workflow_id: The definition this run executes.
        workflow_version: The definition version the run is pinned to.
        id: Unique identifier.
        status: Current run status.
        trigger_data: Payload of the event that started the run.
        triggered_by: User or sender that caused the run, when the trigger names one.
        variables: Run variables, seeded from the definition and updated by approvals.
        current_step_index: Last recorded program index.
        step_results: Append-only ledger of recorded steps.
        in_flight_index: Program index of an effect handed to the provider and
            not yet recorded. A stalled run carrying it is failed, never retried.
        resume_at: When a delay-paused run becomes due again.
        error_message: Diagnostic of a failed run.
        started_at: Creation timestamp.
        completed_at: When the run reached a terminal status.
        updated_at: Last write timestamp, used for stall detection.
        lock_version: Optimistic concurrency token, bumped on every write.
    """

    workflow_id: UUID
    workflow_version: int
    id: UUID = field(default_factory=uuid4)
    status: RunStatus = RunStatus.PENDING
    trigger_data: dict[str, Any] = field(default_factory=dict)
    triggered_by: str | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    current_step_index: int = -1
    step_results: list[StepResult] = field(default_factory=list)
    in_flight_index: int | None = None
    resume_at: datetime | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None
    lock_version: int = 0

    @property
    def next_index(self) -> int:
        """Program index of the next step to run."""
        return self.current_step_index + 1

    @property
    def awaiting_approval(self) -> bool:
        """Whether the run is paused on an approval request rather than a timer."""
        return self.status == RunStatus.PAUSED and self.resume_at is None


@dataclass
class WorkflowSchedule:
    """A timer bound to a definition.

    Attributes:
        workflow_id: The definition to start.
        schedule_type: ``once``, ``recurring`` (cron) or ``interval``.
        next_run_at: When the schedule is next due (UTC).
        id: Unique identifier.
        cron_expression: Five-field cron expression for ``recurring`` schedules.
        interval_seconds: Period for ``interval`` schedules.
        timezone: IANA zone the cron expression is evaluated in.
        is_active: Inactive schedules are never fired.
        last_run_at: When the schedule last fired.
        last_error: Diagnostic of the last failure to advance the schedule.
        lock_version: Optimistic concurrency token used to claim a firing.
        created_at: Creation timestamp.
    """

    workflow_id: UUID
    schedule_type: ScheduleType
    next_run_at: datetime
    id: UUID = field(default_factory=uuid4)
    cron_expression: str | None = None
    interval_seconds: int | None = None
    timezone: str = "UTC"
    is_active: bool = True
    last_run_at: datetime | None = None
    last_error: str | None = None
    lock_version: int = 0
    created_at: datetime | None = None


@dataclass
class WorkflowTemplate:
    """A reusable blueprint from which definitions are instantiated.

    Attributes:
        name: Display name.
        trigger_type: Trigger class copied into new definitions.
        id: Unique identifier.
        description: Free-form description.
        category: Grouping used by the template gallery.
        icon: Icon name for the gallery.
        trigger_config: Trigger parameters copied into new definitions.
        actions: Action program copied into new definitions.
        variables: Default variables copied into new definitions.
        tags: Search tags.
        is_public: Whether every workspace can see the template.
        usage_count: Number of definitions instantiated from this template.
        created_at: Creation timestamp.
    """

    name: str
    trigger_type: TriggerType
    id: UUID = field(default_factory=uuid4)
    description: str | None = None
    category: str = "general"
    icon: str | None = None
    trigger_config: dict[str, Any] = field(default_factory=dict)
    actions: list[ActionStep] = field(default_factory=list)
    variables: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    is_public: bool = True
    usage_count: int = 0
    created_at: datetime | None = None
