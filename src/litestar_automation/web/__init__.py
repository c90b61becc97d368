"""REST API for litestar-automation.

The controllers are registered automatically by :class:`AutomationPlugin`
when ``enable_api=True`` (the default). Every endpoint lives under
``api_path_prefix`` (``/automations`` by default); ``api_guards`` apply to all
of them except the public webhook endpoint.

Example:
    With authentication guards::

        from litestar_automation import AutomationPlugin, AutomationPluginConfig

        config = AutomationPluginConfig(
            api_path_prefix="/api/v1/automations",
            api_guards=[require_recruiter_guard],
        )

        app = Litestar(plugins=[AutomationPlugin(config=config)])
"""

from __future__ import annotations

from litestar_automation.web.controllers import (
    EventController,
    WebhookController,
    WorkflowDefinitionController,
    WorkflowRunController,
    WorkflowScheduleController,
    WorkflowTemplateController,
)
from litestar_automation.web.dto import (
    ApproveRunDTO,
    CreateDefinitionDTO,
    CreateScheduleDTO,
    CreateTemplateDTO,
    DomainEventDTO,
    InstantiateTemplateDTO,
    MessageDTO,
    RunManualDTO,
    StepResultDTO,
    UpdateDefinitionDTO,
    UpdateScheduleDTO,
    WorkflowDefinitionDTO,
    WorkflowRunDetailDTO,
    WorkflowRunDTO,
    WorkflowScheduleDTO,
    WorkflowTemplateDTO,
)
from litestar_automation.web.exceptions import automation_error_handler, exception_handlers

__all__ = [
    "ApproveRunDTO",
    "CreateDefinitionDTO",
    "CreateScheduleDTO",
    "CreateTemplateDTO",
    "DomainEventDTO",
    "EventController",
    "InstantiateTemplateDTO",
    "MessageDTO",
    "RunManualDTO",
    "StepResultDTO",
    "UpdateDefinitionDTO",
    "UpdateScheduleDTO",
    "WebhookController",
    "WorkflowDefinitionController",
    "WorkflowDefinitionDTO",
    "WorkflowRunController",
    "WorkflowRunDTO",
    "WorkflowRunDetailDTO",
    "WorkflowScheduleController",
    "WorkflowScheduleDTO",
    "WorkflowTemplateController",
    "WorkflowTemplateDTO",
    "automation_error_handler",
    "exception_handlers",
]
