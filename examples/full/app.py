"""Full example demonstrating litestar-automation with persistence and a guarded API.

This example shows:
- SQLite database persistence with SQLAlchemyWorkflowStore
- The built-in REST API behind an API-key guard
- The public webhook endpoint
- The seeded template gallery
- A scheduler firing a daily digest

Run with:
    cd examples/full
    uv run litestar run --port 8001

Or:
    uv run uvicorn app:app --reload --port 8001

API Endpoints (require ``X-API-Key: secret`` except the webhook):
    Definitions:
        GET    /automations/definitions                   - List workflows
        POST   /automations/definitions                   - Create a workflow
        GET    /automations/definitions/{id}              - Get a workflow
        PUT    /automations/definitions/{id}              - Update a workflow
        DELETE /automations/definitions/{id}              - Delete a workflow
        POST   /automations/definitions/{id}/run          - Start a manual run
        GET    /automations/definitions/{id}/runs         - Run history
        GET    /automations/definitions/{id}/schedules    - List schedules
        POST   /automations/definitions/{id}/schedules    - Add a schedule

    Runs:
        GET    /automations/runs/{id}                     - Get a run
        POST   /automations/runs/{id}/approve             - Decide a pending approval

    Schedules:
        PUT    /automations/schedules/{id}                - Update a schedule
        DELETE /automations/schedules/{id}                - Delete a schedule

    Templates:
        GET    /automations/templates                     - Browse templates
        POST   /automations/templates                     - Create a template
        POST   /automations/templates/{id}/instantiate    - Create a workflow from a template

    Triggers:
        POST   /automations/events                        - Ingest a domain event
        POST   /automations/messages                      - Ingest a chat message
        POST   /automations/webhook/{webhook_id}          - Public webhook

Example API Usage:
    # Browse the template gallery
    curl -H "X-API-Key: secret" http://localhost:8001/automations/templates

    # Fire the ATS webhook
    curl -X POST http://localhost:8001/automations/webhook/ats-sync \\
        -H "Content-Type: application/json" \\
        -d '{"candidate": {"name": "Ada", "stage": "offer"}}'
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar import Litestar, get
from litestar.exceptions import NotAuthorizedException
from litestar.openapi import OpenAPIConfig
from litestar.plugins.sqlalchemy import SQLAlchemyAsyncConfig, SQLAlchemyPlugin

from litestar_automation import (
    ActionResult,
    AutomationPlugin,
    AutomationPluginConfig,
    BaseActionProvider,
)
from litestar_automation.core.types import DefinitionStatus, ScheduleType, TriggerType
from litestar_automation.db import SQLAlchemyWorkflowStore, WorkflowDefinitionModel

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection
    from litestar.handlers.base import BaseRouteHandler

logger = logging.getLogger(__name__)

API_KEY = "secret"

# =============================================================================
# Action Provider
# =============================================================================


class RecruitingActionProvider(BaseActionProvider):
    """Delivers recruiting actions by logging them."""

    async def send_message(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        sender = context.get("triggered_by") or "system"
        logger.info("#%s <%s>: %s", config.get("channelId"), sender, config.get("message"))
        return ActionResult(success=True)

    async def send_email(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        logger.info("Email to %s: %s", config.get("to"), config.get("subject"))
        return ActionResult(success=True, output={"to": config.get("to")})

    async def create_task(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        assignee = config.get("assignTo") or context.get("triggered_by") or "system"
        logger.info("Task for %s: %s", assignee, config.get("title"))
        return ActionResult(success=True)

    async def notify_team(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        logger.info("Notify %s: %s", config.get("team"), config.get("message"))
        return ActionResult(success=True)

    async def move_stage(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        logger.info("Move candidate to %s", config.get("stage"))
        return ActionResult(success=True, output={"stage": config.get("stage")})

    async def approval_request(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        logger.info("Approval requested from %s", config.get("approver"))
        return ActionResult(success=True)

    async def api_call(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        logger.info("%s %s", config.get("method", "GET"), config.get("url"))
        return ActionResult(success=True, output={"status": 200})


# =============================================================================
# Guards
# =============================================================================


def require_api_key(connection: ASGIConnection, _: BaseRouteHandler) -> None:
    """Reject requests without the example API key."""
    if connection.headers.get("X-API-Key") != API_KEY:
        raise NotAuthorizedException(detail="Missing or invalid API key")


# =============================================================================
# Startup
# =============================================================================


async def install_examples(app: Litestar) -> None:
    """Create the tables and the example workflows on first start."""
    async with sqlalchemy_config.get_engine().begin() as conn:
        await conn.run_sync(WorkflowDefinitionModel.metadata.create_all)

    registry = automation.registry
    if await registry.list_definitions():
        return

    await registry.create_definition(
        "ATS sync",
        TriggerType.WEBHOOK,
        {"webhookId": "ats-sync"},
        [
            {"type": "move_stage", "config": {"stage": "{{candidate.stage}}"}},
            {
                "type": "send_message",
                "config": {"channelId": "recruiting", "message": "{{candidate.name}} moved to {{candidate.stage}}"},
            },
        ],
        status=DefinitionStatus.ACTIVE,
    )

    digest = await registry.create_definition(
        "Daily pipeline digest",
        TriggerType.SCHEDULE,
        {},
        [{"type": "notify_team", "config": {"team": "recruiting", "message": "Digest for {{scheduledAt}}"}}],
        status=DefinitionStatus.ACTIVE,
    )
    await registry.create_schedule(digest.id, ScheduleType.RECURRING, cron_expression="0 9 * * 1-5")


# =============================================================================
# Health Check
# =============================================================================


@get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# =============================================================================
# Application
# =============================================================================

# Database configuration - SQLite for simplicity
# In production, use PostgreSQL or another production database
sqlalchemy_config = SQLAlchemyAsyncConfig(
    connection_string="sqlite+aiosqlite:///./automations.db",
)

automation = AutomationPlugin(
    config=AutomationPluginConfig(
        store=SQLAlchemyWorkflowStore(sqlalchemy_config.create_session_maker()),
        provider=RecruitingActionProvider(),
        seed_templates=True,
        tick_interval=10,
        api_guards=[require_api_key],
    )
)

# Create the Litestar application
app = Litestar(
    route_handlers=[health_check],
    plugins=[SQLAlchemyPlugin(config=sqlalchemy_config), automation],
    on_startup=[install_examples],
    openapi_config=OpenAPIConfig(
        title="Litestar Automation - Full Example",
        version="1.0.0",
        description="Recruiting automations with persistence, schedules, webhooks and templates.",
    ),
    debug=True,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
