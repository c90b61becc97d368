"""REST API controllers for workflow automation.

This module provides the controller classes of the automation API:
- WorkflowDefinitionController: CRUD on definitions, manual runs, run history and schedules
- WorkflowRunController: Inspect runs and record approval decisions
- WorkflowScheduleController: Edit and delete schedules
- WorkflowTemplateController: Template gallery and instantiation
- EventController: Domain event and chat message ingestion
- WebhookController: Public webhook endpoint

Domain errors propagate to the handlers in :mod:`litestar_automation.web.exceptions`.
"""

from __future__ import annotations

from typing import ClassVar
from uuid import UUID

from litestar import Controller, Request, delete, get, post, put
from litestar.exceptions import NotFoundException, SerializationException
from litestar.params import Parameter
from litestar.status_codes import HTTP_201_CREATED, HTTP_202_ACCEPTED

from litestar_automation.core.events import DomainEvent, MessageEvent
from litestar_automation.core.types import DefinitionStatus, TriggerType
from litestar_automation.engine.local import AutomationEngine  # noqa: TC001 - needed for DI
from litestar_automation.engine.registry import WorkflowRegistry  # noqa: TC001 - needed for DI
from litestar_automation.engine.webhooks import WebhookDispatcher  # noqa: TC001 - needed for DI
from litestar_automation.web.dto import (
    ApproveRunDTO,
    CreateDefinitionDTO,
    CreateScheduleDTO,
    CreateTemplateDTO,
    DomainEventDTO,
    InstantiateTemplateDTO,
    MessageDTO,
    RunManualDTO,
    UpdateDefinitionDTO,
    UpdateScheduleDTO,
    WorkflowDefinitionDTO,
    WorkflowRunDetailDTO,
    WorkflowRunDTO,
    WorkflowScheduleDTO,
    WorkflowTemplateDTO,
)

__all__ = [
    "EventController",
    "WebhookController",
    "WorkflowDefinitionController",
    "WorkflowRunController",
    "WorkflowScheduleController",
    "WorkflowTemplateController",
]


class WorkflowDefinitionController(Controller):
    """API controller for workflow definitions.

    Tags: Workflow Definitions
    """

    path = "/definitions"
    tags: ClassVar[list[str]] = ["Workflow Definitions"]

    @get("/")
    async def list_definitions(
        self,
        automation_registry: WorkflowRegistry,
        status: DefinitionStatus | None = Parameter(
            default=None,
            description="Filter by definition status",
        ),
        trigger_type: TriggerType | None = Parameter(
            default=None,
            description="Filter by trigger type",
        ),
    ) -> list[WorkflowDefinitionDTO]:
        """List workflow definitions.

        Args:
            automation_registry: Injected workflow registry.
            status: Optional status filter.
            trigger_type: Optional trigger type filter.

        Returns:
            List of workflow definition DTOs.
        """
        definitions = await automation_registry.list_definitions(status=status, trigger_type=trigger_type)
        return [WorkflowDefinitionDTO.from_definition(definition) for definition in definitions]

    @post("/", status_code=HTTP_201_CREATED)
    async def create_definition(
        self,
        data: CreateDefinitionDTO,
        automation_registry: WorkflowRegistry,
    ) -> WorkflowDefinitionDTO:
        """Create a workflow definition.

        The definition is validated before it is saved; a malformed trigger
        config or action program is rejected with 400.
        """
        definition = await automation_registry.create_definition(
            data.name,
            data.trigger_type,
            data.trigger_config,
            data.actions,
            description=data.description,
            status=data.status,
            variables=data.variables,
            created_by=data.created_by,
            workspace_id=data.workspace_id,
            metadata=data.metadata,
        )
        return WorkflowDefinitionDTO.from_definition(definition)

    @get("/{workflow_id:uuid}")
    async def get_definition(
        self,
        workflow_id: UUID,
        automation_registry: WorkflowRegistry,
        version: int | None = Parameter(
            default=None,
            ge=1,
            description="Specific version to retrieve. If omitted, returns the current one.",
        ),
    ) -> WorkflowDefinitionDTO:
        """Get a workflow definition, optionally at a past version."""
        definition = await automation_registry.get_definition(workflow_id, version)
        return WorkflowDefinitionDTO.from_definition(definition)

    @put("/{workflow_id:uuid}")
    async def update_definition(
        self,
        workflow_id: UUID,
        data: UpdateDefinitionDTO,
        automation_registry: WorkflowRegistry,
    ) -> WorkflowDefinitionDTO:
        """Update a workflow definition.

        Changing the trigger or the action program creates a new version;
        runs already in flight keep executing the version they started with.
        """
        definition = await automation_registry.update_definition(workflow_id, **data.changes())
        return WorkflowDefinitionDTO.from_definition(definition)

    @delete("/{workflow_id:uuid}")
    async def delete_definition(
        self,
        workflow_id: UUID,
        automation_registry: WorkflowRegistry,
    ) -> None:
        """Delete a workflow definition and its schedules. Run history is kept."""
        await automation_registry.delete_definition(workflow_id)

    @post("/{workflow_id:uuid}/run", status_code=HTTP_202_ACCEPTED)
    async def run_definition(
        self,
        workflow_id: UUID,
        data: RunManualDTO,
        automation_engine: AutomationEngine,
    ) -> WorkflowRunDTO:
        """Start an active definition manually.

        Returns:
            The pending run; it executes in the background.
        """
        run = await automation_engine.run_manual(workflow_id, data.trigger_data, data.triggered_by)
        return WorkflowRunDTO.from_run(run)

    @get("/{workflow_id:uuid}/runs")
    async def list_runs(
        self,
        workflow_id: UUID,
        automation_engine: AutomationEngine,
        limit: int = Parameter(
            default=50,
            ge=1,
            le=500,
            description="Maximum number of runs to return",
        ),
    ) -> list[WorkflowRunDTO]:
        """List a definition's runs, newest first."""
        runs = await automation_engine.history(workflow_id, limit)
        return [WorkflowRunDTO.from_run(run) for run in runs]

    @get("/{workflow_id:uuid}/schedules")
    async def list_schedules(
        self,
        workflow_id: UUID,
        automation_registry: WorkflowRegistry,
    ) -> list[WorkflowScheduleDTO]:
        """List a definition's schedules."""
        await automation_registry.get_definition(workflow_id)
        schedules = await automation_registry.list_schedules(workflow_id)
        return [WorkflowScheduleDTO.from_schedule(schedule) for schedule in schedules]

    @post("/{workflow_id:uuid}/schedules", status_code=HTTP_201_CREATED)
    async def create_schedule(
        self,
        workflow_id: UUID,
        data: CreateScheduleDTO,
        automation_registry: WorkflowRegistry,
    ) -> WorkflowScheduleDTO:
        """Attach a schedule to a definition."""
        schedule = await automation_registry.create_schedule(
            workflow_id,
            data.schedule_type,
            cron_expression=data.cron_expression,
            interval_seconds=data.interval_seconds,
            next_run_at=data.next_run_at,
            timezone=data.timezone,
            is_active=data.is_active,
        )
        return WorkflowScheduleDTO.from_schedule(schedule)


class WorkflowRunController(Controller):
    """API controller for workflow runs.

    Tags: Workflow Runs
    """

    path = "/runs"
    tags: ClassVar[list[str]] = ["Workflow Runs"]

    @get("/{run_id:uuid}")
    async def get_run(
        self,
        run_id: UUID,
        automation_engine: AutomationEngine,
    ) -> WorkflowRunDetailDTO:
        """Get a run with its trigger data, variables and step history."""
        run = await automation_engine.get_run(run_id)
        return WorkflowRunDetailDTO.from_run(run)

    @post("/{run_id:uuid}/approve", status_code=HTTP_202_ACCEPTED)
    async def approve_run(
        self,
        run_id: UUID,
        data: ApproveRunDTO,
        automation_engine: AutomationEngine,
    ) -> WorkflowRunDTO:
        """Record an approval decision on a run paused by ``approval_request``.

        The decision is stored as ``variables.approval_status`` and the run
        continues in the background. A run that is not waiting for approval
        is rejected with 409.
        """
        run = await automation_engine.approve(run_id, data.approval_status, data.variables)
        return WorkflowRunDTO.from_run(run)


class WorkflowScheduleController(Controller):
    """API controller for schedules.

    Tags: Workflow Schedules
    """

    path = "/schedules"
    tags: ClassVar[list[str]] = ["Workflow Schedules"]

    @put("/{schedule_id:uuid}")
    async def update_schedule(
        self,
        schedule_id: UUID,
        data: UpdateScheduleDTO,
        automation_registry: WorkflowRegistry,
    ) -> WorkflowScheduleDTO:
        """Update a schedule. Changing its timing recomputes ``next_run_at``."""
        schedule = await automation_registry.update_schedule(schedule_id, **data.changes())
        return WorkflowScheduleDTO.from_schedule(schedule)

    @delete("/{schedule_id:uuid}")
    async def delete_schedule(
        self,
        schedule_id: UUID,
        automation_registry: WorkflowRegistry,
    ) -> None:
        await automation_registry.delete_schedule(schedule_id)


class WorkflowTemplateController(Controller):
    """API controller for workflow templates.

    Tags: Workflow Templates
    """

    path = "/templates"
    tags: ClassVar[list[str]] = ["Workflow Templates"]

    @get("/")
    async def list_templates(
        self,
        automation_registry: WorkflowRegistry,
        category: str | None = Parameter(
            default=None,
            description="Filter by template category",
        ),
    ) -> list[WorkflowTemplateDTO]:
        """List templates, most used first."""
        templates = await automation_registry.list_templates(category)
        return [WorkflowTemplateDTO.from_template(template) for template in templates]

    @post("/", status_code=HTTP_201_CREATED)
    async def create_template(
        self,
        data: CreateTemplateDTO,
        automation_registry: WorkflowRegistry,
    ) -> WorkflowTemplateDTO:
        template = await automation_registry.create_template(
            data.name,
            data.trigger_type,
            data.trigger_config,
            data.actions,
            description=data.description,
            category=data.category,
            icon=data.icon,
            variables=data.variables,
            tags=data.tags,
            is_public=data.is_public,
        )
        return WorkflowTemplateDTO.from_template(template)

    @post("/{template_id:uuid}/instantiate", status_code=HTTP_201_CREATED)
    async def instantiate_template(
        self,
        template_id: UUID,
        data: InstantiateTemplateDTO,
        automation_registry: WorkflowRegistry,
    ) -> WorkflowDefinitionDTO:
        """Create a draft definition from a template."""
        definition = await automation_registry.instantiate_template(
            template_id,
            name=data.name,
            description=data.description,
            trigger_config_override=data.trigger_config_override,
            created_by=data.created_by,
            workspace_id=data.workspace_id,
        )
        return WorkflowDefinitionDTO.from_definition(definition)


class WebhookController(Controller):
    """API controller for inbound webhooks.

    This endpoint is meant to be public: the webhook id in the path is the
    only credential, so it should be an unguessable value.

    Tags: Workflow Triggers
    """

    path = "/webhook"
    tags: ClassVar[list[str]] = ["Workflow Triggers"]

    @post("/{webhook_id:str}", status_code=HTTP_202_ACCEPTED)
    async def receive_webhook(
        self,
        webhook_id: str,
        request: Request,
        webhook_dispatcher: WebhookDispatcher,
    ) -> WorkflowRunDTO:
        """Start the workflow bound to ``webhook_id`` with the raw request body.

        JSON bodies are decoded; any other body is passed on as text.

        Raises:
            NotFoundException: If no single active workflow owns the webhook id.
        """
        try:
            payload = await request.json()
        except SerializationException:
            payload = (await request.body()).decode(errors="replace")
        run = await webhook_dispatcher.receive(webhook_id, payload)
        if run is None:
            raise NotFoundException(detail=f"No active workflow for webhook '{webhook_id}'")
        return WorkflowRunDTO.from_run(run)


class EventController(Controller):
    """API controller for inbound domain events and chat messages.

    Tags: Workflow Triggers
    """

    path = "/"
    tags: ClassVar[list[str]] = ["Workflow Triggers"]

    @post("/events", status_code=HTTP_202_ACCEPTED)
    async def ingest_event(
        self,
        data: DomainEventDTO,
        automation_engine: AutomationEngine,
    ) -> list[WorkflowRunDTO]:
        """Start one run per active workflow listening for the event type."""
        runs = await automation_engine.handle_event(DomainEvent(data.event_type, data.data))
        return [WorkflowRunDTO.from_run(run) for run in runs]

    @post("/messages", status_code=HTTP_202_ACCEPTED)
    async def ingest_message(
        self,
        data: MessageDTO,
        automation_engine: AutomationEngine,
    ) -> list[WorkflowRunDTO]:
        """Start one run per active workflow whose keyword the message contains."""
        event = MessageEvent(
            content=data.content,
            channel_id=data.channel_id,
            sender_id=data.sender_id,
            message_id=data.message_id,
        )
        runs = await automation_engine.handle_event(event)
        return [WorkflowRunDTO.from_run(run) for run in runs]
