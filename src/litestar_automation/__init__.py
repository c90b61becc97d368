"""Litestar Automation - Workflow automation engine for Litestar.

This package lets operators wire triggers to ordered action programs for a
recruiting platform: domain events, chat messages, form submissions,
schedules, webhooks and manual requests start durable workflow runs that
evaluate conditions, call out to an action provider, wait on timers and
pause for approvals.

Key Features:
    - Versioned workflow definitions validated at save time
    - Flat condition evaluation with fail-closed semantics
    - ``{{path}}`` templating of action configs
    - Durable, resumable runs with an append-only step ledger
    - Cron, interval and one-shot schedules with crash recovery
    - Public webhook endpoint and reusable templates

Example:
    >>> from litestar_automation import AutomationEngine, InMemoryWorkflowStore, WorkflowRegistry
    >>>
    >>> store = InMemoryWorkflowStore()
    >>> registry = WorkflowRegistry(store)
    >>> engine = AutomationEngine(store, MyActionProvider())
    >>> await registry.create_definition(
    ...     "Welcome new candidates",
    ...     "event",
    ...     {"eventType": "candidate_created"},
    ...     [{"type": "send_email", "config": {"to": "{{candidate.email}}"}}],
    ...     status="active",
    ... )
    >>> await engine.handle_event(DomainEvent("candidate_created", {"candidate": {"email": "a@b.c"}}))
"""

from __future__ import annotations

from litestar_automation.__metadata__ import __project__, __version__
from litestar_automation.core.events import (
    DomainEvent,
    FormSubmission,
    ManualTrigger,
    MessageEvent,
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
from litestar_automation.engine.local import AutomationEngine
from litestar_automation.engine.memory import InMemoryWorkflowStore
from litestar_automation.engine.registry import WorkflowRegistry
from litestar_automation.engine.scheduler import Scheduler
from litestar_automation.engine.webhooks import WebhookDispatcher
from litestar_automation.exceptions import (
    ActionError,
    AutomationError,
    EvaluationError,
    InvalidTransitionError,
    ScheduleNotFoundError,
    SchedulingError,
    StaleRunError,
    StepAlreadyRecordedError,
    TemplateNotFoundError,
    WorkflowNotActiveError,
    WorkflowNotFoundError,
    WorkflowRunNotFoundError,
    WorkflowValidationError,
)
from litestar_automation.plugin import AutomationPlugin, AutomationPluginConfig
from litestar_automation.providers.base import BaseActionProvider

__all__ = (
    "ActionError",
    "ActionResult",
    "ActionStep",
    "AutomationEngine",
    "AutomationError",
    "AutomationPlugin",
    "AutomationPluginConfig",
    "BaseActionProvider",
    "ConditionNode",
    "DomainEvent",
    "EvaluationError",
    "FormSubmission",
    "InMemoryWorkflowStore",
    "InvalidTransitionError",
    "ManualTrigger",
    "MessageEvent",
    "ScheduleNotFoundError",
    "Scheduler",
    "SchedulingError",
    "StaleRunError",
    "StepAlreadyRecordedError",
    "StepResult",
    "TemplateNotFoundError",
    "WebhookDispatcher",
    "WebhookEvent",
    "WorkflowDefinition",
    "WorkflowNotActiveError",
    "WorkflowNotFoundError",
    "WorkflowRegistry",
    "WorkflowRun",
    "WorkflowRunNotFoundError",
    "WorkflowSchedule",
    "WorkflowTemplate",
    "WorkflowValidationError",
    "__project__",
    "__version__",
)
