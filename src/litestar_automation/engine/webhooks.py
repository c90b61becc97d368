"""Webhook dispatcher: the thin layer between the public webhook endpoint and the engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar_automation.core.events import WebhookEvent

if TYPE_CHECKING:
    from litestar_automation.core.models import WorkflowRun
    from litestar_automation.engine.local import AutomationEngine

__all__ = ["WebhookDispatcher"]

logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Starts the single active workflow bound to a webhook id.

    Exactly one active definition must carry ``trigger_config["webhookId"]``
    for a call to start anything. With no match, or with several definitions
    sharing the id, the call is a no-op here and the HTTP layer decides the
    response.

    Example:
        >>> dispatcher = WebhookDispatcher(engine)
        >>> run = await dispatcher.receive("abc123", {"x": 1})
        >>> run.trigger_data
        {'x': 1}
    """

    def __init__(self, engine: AutomationEngine) -> None:
        self.engine = engine

    async def receive(self, webhook_id: str, payload: Any) -> WorkflowRun | None:
        """Start a run for ``webhook_id`` with the raw, unvalidated ``payload``.

        Args:
            webhook_id: The id from the request path.
            payload: The decoded request body.

        Returns:
            The pending run, or ``None`` when zero or several definitions match.
        """
        event = WebhookEvent(webhook_id, payload)
        matches = await self.engine.matcher.match(event)
        if not matches:
            logger.info("Webhook %r has no active workflow", webhook_id)
            return None
        if len(matches) > 1:
            logger.warning(
                "Webhook %r is shared by %d active workflows (%s); ignoring call",
                webhook_id,
                len(matches),
                ", ".join(str(match.definition.id) for match in matches),
            )
            return None

        match = matches[0]
        return await self.engine.start_run(match.definition, match.trigger_data, match.triggered_by)
