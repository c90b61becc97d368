"""Save-time validation for definitions, schedules and templates.

Everything that can be checked without running a workflow is checked here so
that malformed configs never reach the executor or the scheduler.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from litestar_automation.core.program import UnknownAction, compile_program
from litestar_automation.core.types import ScheduleType, TriggerType
from litestar_automation.exceptions import WorkflowValidationError

if TYPE_CHECKING:
    from litestar_automation.core.models import (
        ActionStep,
        WorkflowDefinition,
        WorkflowSchedule,
        WorkflowTemplate,
    )

__all__ = [
    "REQUIRED_TRIGGER_KEYS",
    "check_program",
    "check_trigger",
    "validate_definition",
    "validate_schedule",
    "validate_template",
]

REQUIRED_TRIGGER_KEYS: dict[TriggerType, tuple[str, ...]] = {
    TriggerType.EVENT: ("eventType",),
    TriggerType.WEBHOOK: ("webhookId",),
    TriggerType.MESSAGE: ("keyword",),
    TriggerType.FORM_SUBMISSION: ("formId",),
    TriggerType.SCHEDULE: (),
    TriggerType.MANUAL: (),
}
"""Trigger config keys that must be present and non-empty, per trigger type."""


def check_trigger(trigger_type: Any, trigger_config: Any) -> list[str]:
    """Return the problems with a trigger type and its config."""
    try:
        trigger = TriggerType(trigger_type)
    except ValueError:
        return [f"unknown trigger type '{trigger_type}'"]
    if not isinstance(trigger_config, Mapping):
        return ["trigger config must be an object"]

    errors = []
    for key in REQUIRED_TRIGGER_KEYS[trigger]:
        value = trigger_config.get(key)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{trigger} trigger requires a non-empty '{key}'")
    return errors


def check_program(actions: Sequence[ActionStep]) -> list[str]:
    """Return the problems with an action program, one message per bad step."""
    errors = []
    for step in compile_program(actions):
        if isinstance(step, UnknownAction):
            errors.append(f"action {step.index}: {step.reason}")
        elif not isinstance(getattr(step, "config", {}), Mapping):
            errors.append(f"action {step.index}: config must be an object")
    return errors


def validate_definition(definition: WorkflowDefinition) -> None:
    """Validate a definition before it is saved.

    Args:
        definition: The definition to check.

    Raises:
        WorkflowValidationError: If the name, trigger or program is invalid.
    """
    errors = []
    if not definition.name or not definition.name.strip():
        errors.append("name must not be empty")
    errors.extend(check_trigger(definition.trigger_type, definition.trigger_config))
    errors.extend(check_program(definition.actions))
    if not isinstance(definition.variables, Mapping):
        errors.append("variables must be an object")
    if errors:
        raise WorkflowValidationError(errors)


def validate_template(template: WorkflowTemplate) -> None:
    """Validate a template with the same rules as a definition.

    Raises:
        WorkflowValidationError: If the template could not be instantiated into a valid definition.
    """
    errors = []
    if not template.name or not template.name.strip():
        errors.append("name must not be empty")
    errors.extend(check_trigger(template.trigger_type, template.trigger_config))
    errors.extend(check_program(template.actions))
    if errors:
        raise WorkflowValidationError(errors)


def validate_schedule(schedule: WorkflowSchedule) -> None:
    """Validate a schedule's type, period, cron expression and timezone.

    Raises:
        WorkflowValidationError: If the schedule could never fire correctly.
    """
    errors = []
    try:
        schedule_type = ScheduleType(schedule.schedule_type)
    except ValueError:
        raise WorkflowValidationError([f"unknown schedule type '{schedule.schedule_type}'"]) from None

    try:
        ZoneInfo(schedule.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"unknown timezone '{schedule.timezone}'")

    if schedule_type == ScheduleType.RECURRING:
        if not schedule.cron_expression or not croniter.is_valid(schedule.cron_expression):
            errors.append(f"invalid cron expression '{schedule.cron_expression}'")
    elif schedule_type == ScheduleType.INTERVAL:
        interval = schedule.interval_seconds
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            errors.append("interval schedules require a positive 'interval_seconds'")

    if schedule.next_run_at is None:
        errors.append("'next_run_at' is required")
    elif schedule.next_run_at.tzinfo is None:
        errors.append("'next_run_at' must be timezone-aware")

    if errors:
        raise WorkflowValidationError(errors)
