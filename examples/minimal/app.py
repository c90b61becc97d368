"""Minimal example of litestar-automation integration.

This example wires the AutomationPlugin into an application that creates
candidates. Every new candidate emits a ``candidate_created`` domain event,
and a welcome workflow greets them and routes strong applicants to a phone
screen.

Run with:
    cd examples/minimal
    litestar run

Or:
    uvicorn app:app --reload

Then:
    curl -X POST http://localhost:8000/candidates \\
        -H "Content-Type: application/json" \\
        -d '{"name": "Ada", "email": "ada@example.com", "score": 91}'
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from litestar import Controller, Litestar, get, post

from litestar_automation import (
    ActionResult,
    AutomationEngine,
    AutomationPlugin,
    AutomationPluginConfig,
    BaseActionProvider,
    DomainEvent,
    WorkflowRegistry,
)
from litestar_automation.core.types import DefinitionStatus, TriggerType

logger = logging.getLogger(__name__)

# =============================================================================
# Action Provider
# =============================================================================


class ConsoleActionProvider(BaseActionProvider):
    """Delivers actions by logging them."""

    async def send_email(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        logger.info("Email to %s: %s", config.get("to"), config.get("subject"))
        return ActionResult(success=True, output={"to": config.get("to")})

    async def send_message(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        sender = context.get("triggered_by") or "system"
        logger.info("#%s <%s>: %s", config.get("channelId"), sender, config.get("message"))
        return ActionResult(success=True)

    async def create_task(self, config: dict[str, Any], context: dict[str, Any]) -> ActionResult:
        task_id = f"TASK-{uuid4().hex[:8]}"
        logger.info("Task %s: %s", task_id, config.get("title"))
        return ActionResult(success=True, output={"taskId": task_id})


# =============================================================================
# Workflow Definition
# =============================================================================

WELCOME_ACTIONS: list[dict[str, Any]] = [
    {
        "type": "send_email",
        "config": {"to": "{{candidate.email}}", "subject": "Thanks for applying, {{candidate.name}}"},
    },
    {
        "type": "condition",
        "config": {"leftOperand": "candidate.score", "operator": "greater_than", "rightOperand": 80, "skipActions": 1},
    },
    {"type": "create_task", "config": {"title": "Phone screen {{candidate.name}}"}},
    {"type": "send_message", "config": {"channelId": "recruiting", "message": "{{candidate.name}} applied"}},
]


# =============================================================================
# API Controller
# =============================================================================


class CandidateController(Controller):
    """Candidate intake that feeds the automation engine."""

    path = "/candidates"
    tags = ["Candidates"]

    @post("/")
    async def create_candidate(self, data: dict[str, Any], automation_engine: AutomationEngine) -> dict[str, Any]:
        """Store a candidate and announce it."""
        candidate = {"id": str(uuid4()), **data}
        runs = await automation_engine.handle_event(DomainEvent("candidate_created", {"candidate": candidate}))
        return {"candidate": candidate, "runs": [str(run.id) for run in runs]}


# =============================================================================
# Application
# =============================================================================


async def install_welcome_workflow(app: Litestar) -> None:
    """Create the welcome workflow when the store has none."""
    registry: WorkflowRegistry = plugin.registry
    if await registry.list_definitions(trigger_type=TriggerType.EVENT):
        return
    await registry.create_definition(
        "Welcome new candidates",
        TriggerType.EVENT,
        {"eventType": "candidate_created"},
        WELCOME_ACTIONS,
        status=DefinitionStatus.ACTIVE,
    )


plugin = AutomationPlugin(config=AutomationPluginConfig(provider=ConsoleActionProvider(), seed_templates=True))

app = Litestar(
    route_handlers=[CandidateController],
    plugins=[plugin],
    on_startup=[install_welcome_workflow],
    debug=True,
)


# =============================================================================
# Health Check (for testing)
# =============================================================================


@get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Add health check to app
app.register(health_check)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
