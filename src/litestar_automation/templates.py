"""Built-in workflow templates.

These are the blueprints offered in the template gallery of a fresh install.
:func:`seed_default_templates` installs them once, when the store has no
templates at all.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar_automation.core.types import ActionType, TriggerType

if TYPE_CHECKING:
    from litestar_automation.core.models import WorkflowTemplate
    from litestar_automation.engine.registry import WorkflowRegistry

__all__ = ["DEFAULT_TEMPLATES", "seed_default_templates"]

logger = logging.getLogger(__name__)


def _action(action_type: ActionType, **config: Any) -> dict[str, Any]:
    return {"type": action_type.value, "config": config}


DEFAULT_TEMPLATES: list[dict[str, Any]] = [
    {
        "name": "New Employee Onboarding",
        "description": "Automate the onboarding process for new employees",
        "category": "onboarding",
        "icon": "UserPlus",
        "trigger_type": TriggerType.EVENT,
        "trigger_config": {"eventType": "user_joined"},
        "actions": [
            _action(
                ActionType.SEND_MESSAGE,
                channelId="{{general}}",
                message="Welcome {{trigger.userName}} to the team!",
            ),
            _action(
                ActionType.CREATE_TASK,
                assignTo="{{trigger.userId}}",
                taskDescription="Complete onboarding checklist",
                dueInHours=24,
            ),
            _action(
                ActionType.SEND_EMAIL,
                to="{{trigger.userEmail}}",
                subject="Welcome to the Team!",
                body="Welcome aboard! Please find attached your onboarding materials.",
            ),
        ],
        "variables": {"general": "general"},
        "tags": ["hr", "onboarding", "new-employee"],
    },
    {
        "name": "Daily Standup Reminder",
        "description": "Send daily standup reminder to team channels",
        "category": "notification",
        "icon": "Clock",
        "trigger_type": TriggerType.SCHEDULE,
        "trigger_config": {"cronExpression": "0 9 * * 1-5"},
        "actions": [
            _action(
                ActionType.SEND_MESSAGE,
                channelId="{{engineering}}",
                message="@channel Daily standup starting in 15 minutes! Please prepare your updates.",
            ),
            _action(ActionType.DELAY, seconds=900),
            _action(
                ActionType.SEND_MESSAGE,
                channelId="{{engineering}}",
                message="Daily standup starting now! Join the call: {{meetingLink}}",
            ),
        ],
        "variables": {"engineering": "engineering", "meetingLink": "https://meet.example.com/standup"},
        "tags": ["meeting", "reminder", "daily"],
    },
    {
        "name": "Content Approval Process",
        "description": "Route content for approval before publishing",
        "category": "approval",
        "icon": "CheckCircle",
        "trigger_type": TriggerType.FORM_SUBMISSION,
        "trigger_config": {"formId": "content-submission"},
        "actions": [
            _action(
                ActionType.ASSIGN_TO_USER,
                userId="{{approver}}",
                title="Content Approval Required",
                message="New content submission: {{trigger.title}}",
            ),
            _action(
                ActionType.APPROVAL_REQUEST,
                approverId="{{approver}}",
                message="Please review and approve the content submission",
            ),
            _action(
                ActionType.CONDITION,
                leftOperand="approval_status",
                operator="equals",
                rightOperand="approved",
                skipActions=2,
            ),
            _action(
                ActionType.SEND_MESSAGE,
                channelId="{{content}}",
                message='Content "{{trigger.title}}" has been approved and published!',
            ),
            _action(
                ActionType.API_CALL,
                url="https://api.example.com/publish",
                method="POST",
                body={"contentId": "{{trigger.contentId}}"},
            ),
        ],
        "variables": {"approver": "content-manager", "content": "content"},
        "tags": ["content", "approval", "publishing"],
    },
    {
        "name": "Customer Feedback Collection",
        "description": "Collect and process customer feedback automatically",
        "category": "feedback",
        "icon": "MessageSquare",
        "trigger_type": TriggerType.MESSAGE,
        "trigger_config": {"keyword": "feedback"},
        "actions": [
            _action(
                ActionType.CREATE_TASK,
                assignTo="support-team",
                taskDescription="Review customer feedback from {{trigger.senderId}}",
                dueInHours=48,
            ),
            _action(
                ActionType.SEND_MESSAGE,
                channelId="{{trigger.channelId}}",
                message="Thank you for your feedback! Our team will review it and get back to you soon.",
            ),
            _action(
                ActionType.DATABASE_UPDATE,
                table="feedback",
                updates={"userId": "{{trigger.senderId}}", "message": "{{trigger.content}}", "status": "pending"},
            ),
        ],
        "variables": {},
        "tags": ["customer", "feedback", "support"],
    },
    {
        "name": "Incident Response",
        "description": "Automate incident response and escalation",
        "category": "incident",
        "icon": "AlertTriangle",
        "trigger_type": TriggerType.MESSAGE,
        "trigger_config": {"keyword": "incident"},
        "actions": [
            _action(
                ActionType.SEND_MESSAGE,
                channelId="{{incidents}}",
                message="New incident reported: {{trigger.content}}",
            ),
            _action(
                ActionType.CREATE_TASK,
                assignTo="ops-team",
                taskDescription="Investigate and resolve incident",
                dueInHours=1,
            ),
            _action(
                ActionType.CONDITION,
                leftOperand="trigger.content",
                operator="contains",
                rightOperand="critical",
                skipActions=1,
            ),
            _action(
                ActionType.SEND_EMAIL,
                to="ops-manager@example.com",
                subject="CRITICAL INCIDENT ALERT",
                body="A critical incident has been reported and requires immediate attention.",
            ),
            _action(
                ActionType.API_CALL,
                url="https://api.pagerduty.com/incidents",
                method="POST",
                headers={"Authorization": "Token {{pagerdutyToken}}"},
                body={"incident": {"type": "incident", "title": "Incident from chat", "urgency": "high"}},
            ),
        ],
        "variables": {"incidents": "incidents", "pagerdutyToken": ""},
        "tags": ["incident", "ops", "emergency"],
    },
]
"""Template blueprints in the keyword form accepted by :meth:`WorkflowRegistry.create_template`."""


async def seed_default_templates(registry: WorkflowRegistry) -> list[WorkflowTemplate]:
    """Install :data:`DEFAULT_TEMPLATES` unless the store already has templates.

    Returns:
        The templates that were created; empty when seeding was skipped.
    """
    if await registry.list_templates():
        return []

    created = []
    for blueprint in DEFAULT_TEMPLATES:
        fields = dict(blueprint)
        created.append(
            await registry.create_template(
                fields.pop("name"),
                fields.pop("trigger_type"),
                fields.pop("trigger_config"),
                fields.pop("actions"),
                **fields,
            )
        )
    logger.info("Seeded %d default workflow templates", len(created))
    return created
