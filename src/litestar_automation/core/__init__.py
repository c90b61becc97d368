"""Core domain module for litestar-automation.

This module exports the fundamental building blocks of the engine: types,
data models, trigger events, the run context, the compiled action program,
protocols and save-time validation.
"""

from __future__ import annotations

from litestar_automation.core.context import UNDEFINED, build_context, resolve_path
from litestar_automation.core.events import (
    DomainEvent,
    FormSubmission,
    ManualTrigger,
    MessageEvent,
    TriggerEvent,
    WebhookEvent,
)
from litestar_automation.core.models import (
    ActionResult,
    ActionStep,
    ConditionNode,
    StepResult,
    WorkflowDefinition,
    WorkflowRun,
    WorkflowSchedule,
    WorkflowTemplate,
)
from litestar_automation.core.program import (
    ApprovalStep,
    ConditionalSkip,
    DelayStep,
    EffectStep,
    ProgramStep,
    UnknownAction,
    compile_program,
    compile_step,
)
from litestar_automation.core.protocols import ActionProvider, Clock, EventBus, WorkflowStore
from litestar_automation.core.types import (
    CONTROL_ACTIONS,
    ActionType,
    ConditionLogic,
    ConditionOperator,
    Context,
    DefinitionStatus,
    RunStatus,
    ScheduleType,
    TriggerType,
)
from litestar_automation.core.validation import validate_definition, validate_schedule, validate_template

__all__ = [
    "CONTROL_ACTIONS",
    "UNDEFINED",
    "ActionProvider",
    "ActionResult",
    "ActionStep",
    "ActionType",
    "ApprovalStep",
    "Clock",
    "ConditionLogic",
    "ConditionNode",
    "ConditionOperator",
    "ConditionalSkip",
    "Context",
    "DefinitionStatus",
    "DelayStep",
    "DomainEvent",
    "EffectStep",
    "EventBus",
    "FormSubmission",
    "ManualTrigger",
    "MessageEvent",
    "ProgramStep",
    "RunStatus",
    "ScheduleType",
    "StepResult",
    "TriggerEvent",
    "TriggerType",
    "UnknownAction",
    "WebhookEvent",
    "WorkflowDefinition",
    "WorkflowRun",
    "WorkflowSchedule",
    "WorkflowStore",
    "WorkflowTemplate",
    "build_context",
    "compile_program",
    "compile_step",
    "resolve_path",
    "validate_definition",
    "validate_schedule",
    "validate_template",
]
