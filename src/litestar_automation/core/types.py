"""Core type definitions for litestar-automation.

This module defines the enums and type aliases used throughout the engine.
Every enum is a ``StrEnum`` whose values are the wire/storage spellings.
"""

from __future__ import annotations

import sys
from enum import Enum
from typing import Any, TypeAlias

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)


__all__ = [
    "CONTROL_ACTIONS",
    "ActionType",
    "ConditionLogic",
    "ConditionOperator",
    "Context",
    "DefinitionStatus",
    "RunStatus",
    "ScheduleType",
    "TriggerType",
]


class DefinitionStatus(StrEnum):
    """Lifecycle status of a workflow definition.

    Attributes:
        DRAFT: Being edited; never executed.
        ACTIVE: Eligible for automatic and manual execution.
        INACTIVE: Switched off by an operator.
        ARCHIVED: Retired; kept for run history.
    """

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class TriggerType(StrEnum):
    """Event class that can start a workflow run.

    Attributes:
        MESSAGE: A chat message matching a keyword.
        SCHEDULE: A schedule tick; owned by the scheduler.
        EVENT: A typed domain event such as ``candidate_created``.
        WEBHOOK: An inbound call on the public webhook endpoint.
        MANUAL: An explicit API request naming the definition.
        FORM_SUBMISSION: A submitted form.
    """

    MESSAGE = "message"
    SCHEDULE = "schedule"
    EVENT = "event"
    WEBHOOK = "webhook"
    MANUAL = "manual"
    FORM_SUBMISSION = "form_submission"


class ActionType(StrEnum):
    """Closed set of action kinds a workflow program may contain.

    ``CONDITION`` and ``DELAY`` are control-flow pseudo-actions handled by the
    executor; all other kinds are delegated to the action provider.
    """

    CONDITION = "condition"
    DELAY = "delay"
    SEND_MESSAGE = "send_message"
    SEND_EMAIL = "send_email"
    CREATE_TASK = "create_task"
    API_CALL = "api_call"
    DATABASE_UPDATE = "database_update"
    NOTIFY_TEAM = "notify_team"
    ASSIGN_TO_USER = "assign_to_user"
    UPDATE_CANDIDATE = "update_candidate"
    MOVE_STAGE = "move_stage"
    ASSIGN_TAG = "assign_tag"
    SCHEDULE_INTERVIEW = "schedule_interview"
    UPDATE_SCORE = "update_score"
    APPROVAL_REQUEST = "approval_request"


CONTROL_ACTIONS = frozenset({ActionType.CONDITION, ActionType.DELAY})
"""Action kinds handled inside the executor rather than by a provider."""


class ConditionOperator(StrEnum):
    """Comparison operators available to condition nodes."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"


class ConditionLogic(StrEnum):
    """How a condition node combines with the node that follows it."""

    AND = "and"
    OR = "or"


class RunStatus(StrEnum):
    """Status of a workflow run.

    Attributes:
        PENDING: Created by a trigger, not yet claimed by a worker.
        RUNNING: Owned by a worker that is advancing the program.
        PAUSED: Suspended on a delay (with ``resume_at``) or an approval.
        COMPLETED: Every step was executed or skipped. Terminal.
        FAILED: An action failed; remaining steps were not run. Terminal.
    """

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible from this status."""
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class ScheduleType(StrEnum):
    """Kind of timer a workflow schedule represents."""

    ONCE = "once"
    RECURRING = "recurring"
    INTERVAL = "interval"


# Type aliases for workflow data
Context: TypeAlias = dict[str, Any]
"""Type alias for the merged run context used by conditions and templates."""
