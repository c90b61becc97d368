"""Inbound trigger events.

These are the things that can start a workflow run. Each event knows its
trigger class, how to turn itself into the ``trigger_data`` stored on the
runs it starts, and who caused it when the event names a user.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union
from uuid import UUID

from litestar_automation.core.types import TriggerType

__all__ = [
    "DomainEvent",
    "FormSubmission",
    "ManualTrigger",
    "MessageEvent",
    "TriggerEvent",
    "WebhookEvent",
]


@dataclass(frozen=True)
class DomainEvent:
    """A typed platform event such as ``candidate_created`` or ``stage_changed``.

    Attributes:
        event_type: Matched against ``trigger_config["eventType"]``.
        data: Event payload; becomes the run's trigger data unchanged.
            A ``userId`` key names the user who caused the event.

    Example:
        >>> event = DomainEvent("candidate_created", {"candidate": {"name": "Ada"}})
        >>> event.trigger_data()
        {'candidate': {'name': 'Ada'}}
    """

    trigger_type: ClassVar[TriggerType] = TriggerType.EVENT

    event_type: str
    data: dict[str, Any] = field(default_factory=dict)

    def trigger_data(self) -> dict[str, Any]:
        return dict(self.data)

    def triggered_by(self) -> str | None:
        user_id = self.data.get("userId")
        return None if user_id is None else str(user_id)


@dataclass(frozen=True)
class MessageEvent:
    """A chat message posted in a channel.

    Attributes:
        content: Message text searched for the trigger keyword.
        channel_id: Channel the message was posted in.
        sender_id: Author of the message; matched against ``trigger_config["userId"]``.
        message_id: Identifier of the message.
    """

    trigger_type: ClassVar[TriggerType] = TriggerType.MESSAGE

    content: str
    channel_id: str | None = None
    sender_id: str | None = None
    message_id: str | None = None

    def trigger_data(self) -> dict[str, Any]:
        return {
            "messageId": self.message_id,
            "content": self.content,
            "channelId": self.channel_id,
            "senderId": self.sender_id,
        }

    def triggered_by(self) -> str | None:
        return self.sender_id


@dataclass(frozen=True)
class WebhookEvent:
    """An inbound call on the public webhook endpoint.

    Attributes:
        webhook_id: Matched exactly against ``trigger_config["webhookId"]``.
        payload: Raw request body; becomes the run's trigger data unvalidated.
    """

    trigger_type: ClassVar[TriggerType] = TriggerType.WEBHOOK

    webhook_id: str
    payload: Any = None

    def trigger_data(self) -> dict[str, Any]:
        if isinstance(self.payload, dict):
            return dict(self.payload)
        return {} if self.payload is None else {"payload": self.payload}

    def triggered_by(self) -> str | None:
        return None


@dataclass(frozen=True)
class FormSubmission:
    """A submitted form.

    Attributes:
        form_id: Matched exactly against ``trigger_config["formId"]``.
        data: Submitted field values.
        submitted_by: Optional submitting user.
    """

    trigger_type: ClassVar[TriggerType] = TriggerType.FORM_SUBMISSION

    form_id: str
    data: dict[str, Any] = field(default_factory=dict)
    submitted_by: str | None = None

    def trigger_data(self) -> dict[str, Any]:
        trigger_data = {"formId": self.form_id, **self.data}
        if self.submitted_by is not None:
            trigger_data["submittedBy"] = self.submitted_by
        return trigger_data

    def triggered_by(self) -> str | None:
        return self.submitted_by


@dataclass(frozen=True)
class ManualTrigger:
    """An explicit request to run one definition.

    Attributes:
        workflow_id: The definition to run.
        data: Trigger data; defaults to ``{"source": "manual"}``.
        requested_by: User who started the run.
    """

    trigger_type: ClassVar[TriggerType] = TriggerType.MANUAL

    workflow_id: UUID
    data: dict[str, Any] | None = None
    requested_by: str | None = None

    def trigger_data(self) -> dict[str, Any]:
        return dict(self.data) if self.data else {"source": "manual"}

    def triggered_by(self) -> str | None:
        return self.requested_by


TriggerEvent = Union[DomainEvent, MessageEvent, WebhookEvent, FormSubmission, ManualTrigger]
"""Every event type the trigger matcher accepts."""
