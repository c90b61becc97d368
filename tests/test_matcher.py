"""Tests for trigger matching."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from litestar_automation.core.events import (
    DomainEvent,
    FormSubmission,
    ManualTrigger,
    MessageEvent,
    WebhookEvent,
)
from litestar_automation.core.models import WorkflowDefinition
from litestar_automation.core.types import DefinitionStatus, TriggerType
from litestar_automation.engine.matcher import TriggerIndex, TriggerMatcher

if TYPE_CHECKING:
    from litestar_automation.engine.memory import InMemoryWorkflowStore


def make_definition(
    trigger_type: TriggerType,
    trigger_config: dict[str, Any],
    status: DefinitionStatus = DefinitionStatus.ACTIVE,
    name: str = "test",
) -> WorkflowDefinition:
    return WorkflowDefinition(name=name, trigger_type=trigger_type, trigger_config=trigger_config, status=status)


@pytest.mark.unit
class TestTriggerIndex:
    """Tests for the per-trigger-type index."""

    def test_event_type(self) -> None:
        created = make_definition(TriggerType.EVENT, {"eventType": "candidate_created"})
        moved = make_definition(TriggerType.EVENT, {"eventType": "stage_changed"})
        index = TriggerIndex([created, moved])

        assert index.candidates(DomainEvent("candidate_created")) == [created]
        assert index.candidates(DomainEvent("interview_scheduled")) == []

    def test_inactive_definitions_are_not_indexed(self) -> None:
        index = TriggerIndex(
            [
                make_definition(TriggerType.EVENT, {"eventType": "candidate_created"}, DefinitionStatus.DRAFT),
                make_definition(TriggerType.EVENT, {"eventType": "candidate_created"}, DefinitionStatus.INACTIVE),
                make_definition(TriggerType.EVENT, {"eventType": "candidate_created"}, DefinitionStatus.ARCHIVED),
            ]
        )

        assert index.candidates(DomainEvent("candidate_created")) == []

    def test_webhook_id_is_exact(self) -> None:
        definition = make_definition(TriggerType.WEBHOOK, {"webhookId": "abc123"})
        index = TriggerIndex([definition])

        assert index.candidates(WebhookEvent("abc123")) == [definition]
        assert index.candidates(WebhookEvent("ABC123")) == []
        assert index.candidates(WebhookEvent("abc")) == []

    def test_form_id(self) -> None:
        definition = make_definition(TriggerType.FORM_SUBMISSION, {"formId": "application"})
        index = TriggerIndex([definition])

        assert index.candidates(FormSubmission("application", {"name": "Ada"})) == [definition]
        assert index.candidates(FormSubmission("feedback")) == []

    def test_message_keyword_is_case_insensitive_substring(self) -> None:
        definition = make_definition(TriggerType.MESSAGE, {"keyword": "Apply"})
        index = TriggerIndex([definition])

        assert index.candidates(MessageEvent("How do I APPLY for this role?")) == [definition]
        assert index.candidates(MessageEvent("hello")) == []

    def test_message_channel_and_user_filters(self) -> None:
        definition = make_definition(
            TriggerType.MESSAGE,
            {"keyword": "urgent", "channelId": "recruiting", "userId": "u-1"},
        )
        index = TriggerIndex([definition])

        assert index.candidates(MessageEvent("urgent!", channel_id="recruiting", sender_id="u-1")) == [definition]
        assert index.candidates(MessageEvent("urgent!", channel_id="general", sender_id="u-1")) == []
        assert index.candidates(MessageEvent("urgent!", channel_id="recruiting", sender_id="u-2")) == []

    def test_schedule_definitions_are_never_matched_by_events(self) -> None:
        definition = make_definition(TriggerType.SCHEDULE, {"eventType": "candidate_created"})
        index = TriggerIndex([definition])

        assert index.candidates(DomainEvent("candidate_created")) == []

    def test_manual_trigger_by_id(self) -> None:
        definition = make_definition(TriggerType.MANUAL, {})
        index = TriggerIndex([definition])

        assert index.candidates(ManualTrigger(definition.id)) == [definition]
        assert index.candidates(ManualTrigger(make_definition(TriggerType.MANUAL, {}).id)) == []

    def test_event_definition_without_key_is_ignored(self) -> None:
        index = TriggerIndex([make_definition(TriggerType.EVENT, {"eventType": "  "})])

        assert index.candidates(DomainEvent("  ")) == []


@pytest.mark.unit
class TestTriggerData:
    """Tests for how events become run trigger data."""

    def test_domain_event_data_is_copied(self) -> None:
        data = {"candidate": {"id": 1}}
        trigger_data = DomainEvent("candidate_created", data).trigger_data()

        assert trigger_data == data
        assert trigger_data is not data

    def test_message_event(self) -> None:
        assert MessageEvent("apply", "c-1", "u-1", "m-1").trigger_data() == {
            "messageId": "m-1",
            "content": "apply",
            "channelId": "c-1",
            "senderId": "u-1",
        }

    def test_webhook_payload_shapes(self) -> None:
        assert WebhookEvent("abc123", {"x": 1}).trigger_data() == {"x": 1}
        assert WebhookEvent("abc123", [1, 2]).trigger_data() == {"payload": [1, 2]}
        assert WebhookEvent("abc123").trigger_data() == {}

    def test_form_submission(self) -> None:
        assert FormSubmission("application", {"name": "Ada"}, "u-9").trigger_data() == {
            "formId": "application",
            "name": "Ada",
            "submittedBy": "u-9",
        }

    def test_manual_default(self) -> None:
        definition = make_definition(TriggerType.MANUAL, {})

        assert ManualTrigger(definition.id).trigger_data() == {"source": "manual"}
        assert ManualTrigger(definition.id, {"reason": "retry"}).trigger_data() == {"reason": "retry"}

    @pytest.mark.parametrize(
        ("event", "triggered_by"),
        [
            (DomainEvent("candidate_created", {"userId": 42}), "42"),
            (DomainEvent("candidate_created", {"candidate": {"id": 1}}), None),
            (MessageEvent("apply", "c-1", "u-1"), "u-1"),
            (FormSubmission("application", {}, "u-9"), "u-9"),
            (WebhookEvent("abc123", {"userId": "u-2"}), None),
        ],
    )
    def test_triggered_by(self, event: Any, triggered_by: str | None) -> None:
        assert event.triggered_by() == triggered_by

    def test_manual_requester(self) -> None:
        definition = make_definition(TriggerType.MANUAL, {})

        assert ManualTrigger(definition.id, requested_by="recruiter-7").triggered_by() == "recruiter-7"
        assert ManualTrigger(definition.id).triggered_by() is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestTriggerMatcher:
    """Tests for matching against the store."""

    async def test_matches_every_listening_definition(self, store: InMemoryWorkflowStore) -> None:
        first = await store.add_definition(make_definition(TriggerType.EVENT, {"eventType": "candidate_created"}))
        second = await store.add_definition(make_definition(TriggerType.EVENT, {"eventType": "candidate_created"}))
        await store.add_definition(make_definition(TriggerType.EVENT, {"eventType": "stage_changed"}))

        matches = await TriggerMatcher(store).match(DomainEvent("candidate_created", {"candidate": {"id": 1}}))

        assert {match.definition.id for match in matches} == {first.id, second.id}
        matches[0].trigger_data["candidate"] = "changed"
        assert matches[1].trigger_data == {"candidate": {"id": 1}}

    async def test_no_match_is_empty(self, store: InMemoryWorkflowStore) -> None:
        assert await TriggerMatcher(store).match(DomainEvent("candidate_created")) == []

    async def test_sees_edits_immediately(self, store: InMemoryWorkflowStore) -> None:
        definition = await store.add_definition(
            make_definition(TriggerType.EVENT, {"eventType": "candidate_created"}, DefinitionStatus.DRAFT)
        )
        matcher = TriggerMatcher(store)

        assert await matcher.match(DomainEvent("candidate_created")) == []

        definition.status = DefinitionStatus.ACTIVE
        await store.update_definition(definition)

        assert len(await matcher.match(DomainEvent("candidate_created"))) == 1
