"""Trigger matching.

Maps inbound events to the active definitions they should start. Not finding
a match is not an error: the event is dropped and an empty list returned.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, NamedTuple

from litestar_automation.core.events import (
    DomainEvent,
    FormSubmission,
    ManualTrigger,
    MessageEvent,
    WebhookEvent,
)
from litestar_automation.core.types import DefinitionStatus, TriggerType

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from litestar_automation.core.events import TriggerEvent
    from litestar_automation.core.models import WorkflowDefinition
    from litestar_automation.core.protocols import WorkflowStore

__all__ = ["TriggerIndex", "TriggerMatch", "TriggerMatcher"]

logger = logging.getLogger(__name__)


class TriggerMatch(NamedTuple):
    """A definition an event should start, with the trigger data and actor for its run."""

    definition: WorkflowDefinition
    trigger_data: dict[str, Any]
    triggered_by: str | None = None


def _key(value: Any) -> str | None:
    if value is None:
        return None
    key = str(value).strip()
    return key or None


class TriggerIndex:
    """Active definitions indexed by trigger type and type-specific key.

    Event definitions are keyed by ``eventType``, webhooks by ``webhookId``
    and forms by ``formId``. Message definitions are scanned, since keywords
    are substring matches. Schedule definitions are never indexed; the
    scheduler owns them.
    """

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()) -> None:
        self.by_event_type: dict[str, list[WorkflowDefinition]] = defaultdict(list)
        self.by_webhook_id: dict[str, list[WorkflowDefinition]] = defaultdict(list)
        self.by_form_id: dict[str, list[WorkflowDefinition]] = defaultdict(list)
        self.messages: list[WorkflowDefinition] = []
        self.by_id: dict[UUID, WorkflowDefinition] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: WorkflowDefinition) -> None:
        """Index one definition. Inactive definitions are ignored."""
        if definition.status != DefinitionStatus.ACTIVE:
            return
        self.by_id[definition.id] = definition
        config = definition.trigger_config or {}

        if definition.trigger_type == TriggerType.EVENT:
            key = _key(config.get("eventType"))
            if key:
                self.by_event_type[key].append(definition)
        elif definition.trigger_type == TriggerType.WEBHOOK:
            key = _key(config.get("webhookId"))
            if key:
                self.by_webhook_id[key].append(definition)
        elif definition.trigger_type == TriggerType.FORM_SUBMISSION:
            key = _key(config.get("formId"))
            if key:
                self.by_form_id[key].append(definition)
        elif definition.trigger_type == TriggerType.MESSAGE and _key(config.get("keyword")):
            self.messages.append(definition)

    def candidates(self, event: TriggerEvent) -> list[WorkflowDefinition]:
        """Return the indexed definitions ``event`` matches."""
        if isinstance(event, DomainEvent):
            return list(self.by_event_type.get(event.event_type, ()))
        if isinstance(event, WebhookEvent):
            return list(self.by_webhook_id.get(event.webhook_id, ()))
        if isinstance(event, FormSubmission):
            return list(self.by_form_id.get(event.form_id, ()))
        if isinstance(event, MessageEvent):
            return [definition for definition in self.messages if self._message_matches(definition, event)]
        if isinstance(event, ManualTrigger):
            definition = self.by_id.get(event.workflow_id)
            return [definition] if definition is not None else []
        return []

    @staticmethod
    def _message_matches(definition: WorkflowDefinition, event: MessageEvent) -> bool:
        config = definition.trigger_config or {}
        keyword = str(config.get("keyword", "")).lower()
        if not keyword or keyword not in (event.content or "").lower():
            return False
        channel_id = _key(config.get("channelId"))
        if channel_id and channel_id != event.channel_id:
            return False
        user_id = _key(config.get("userId"))
        return not (user_id and user_id != event.sender_id)


class TriggerMatcher:
    """Matches events against the store's active definitions.

    The index is rebuilt from the store on every call, so definition edits
    take effect on the next event without any cache invalidation.

    Example:
        >>> matcher = TriggerMatcher(store)
        >>> matches = await matcher.match(DomainEvent("candidate_created", {"candidate": {...}}))
        >>> [m.definition.name for m in matches]
        ['Welcome new candidates']
    """

    def __init__(self, store: WorkflowStore) -> None:
        self.store = store

    async def build_index(self) -> TriggerIndex:
        return TriggerIndex(await self.store.list_definitions(status=DefinitionStatus.ACTIVE))

    async def match(self, event: TriggerEvent) -> list[TriggerMatch]:
        """Return every active definition ``event`` should start.

        Args:
            event: The inbound event.

        Returns:
            One match per definition, each with its own copy of the trigger data.
            Empty when nothing matches.
        """
        index = await self.build_index()
        matches = [
            TriggerMatch(definition, event.trigger_data(), event.triggered_by())
            for definition in index.candidates(event)
        ]
        if not matches:
            logger.debug("No active workflow matches %s", type(event).__name__)
        return matches
