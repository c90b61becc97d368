"""Workflow registry: operator-facing management of definitions, templates and schedules.

Every write is validated before it reaches the store. Definitions are
versioned: changing ``actions``, ``trigger_type`` or ``trigger_config`` bumps
the version, and the store keeps a snapshot of every version so in-flight runs
keep executing the program they started with.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from litestar_automation.core.models import (
    ActionStep,
    WorkflowDefinition,
    WorkflowSchedule,
    WorkflowTemplate,
)
from litestar_automation.core.types import DefinitionStatus, ScheduleType, TriggerType
from litestar_automation.core.validation import validate_definition, validate_schedule, validate_template
from litestar_automation.engine.clock import SystemClock, utc
from litestar_automation.engine.scheduler import compute_next_run
from litestar_automation.exceptions import (
    ScheduleNotFoundError,
    SchedulingError,
    TemplateNotFoundError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from litestar_automation.core.protocols import Clock, WorkflowStore

__all__ = ["WorkflowRegistry", "normalize_actions"]

logger = logging.getLogger(__name__)

_DEFINITION_FIELDS = frozenset(
    {
        "name",
        "description",
        "status",
        "trigger_type",
        "trigger_config",
        "actions",
        "variables",
        "workspace_id",
        "metadata",
    }
)
_VERSIONED_FIELDS = frozenset({"trigger_type", "trigger_config", "actions"})
_SCHEDULE_FIELDS = frozenset(
    {"schedule_type", "cron_expression", "interval_seconds", "next_run_at", "timezone", "is_active"}
)
_TIMING_FIELDS = frozenset({"schedule_type", "cron_expression", "interval_seconds", "timezone"})


def normalize_actions(actions: Iterable[ActionStep | Mapping[str, Any]] | None) -> list[ActionStep]:
    """Coerce a mix of :class:`ActionStep` objects and ``{"type", "config"}`` maps.

    Raises:
        WorkflowValidationError: If an entry is neither.
    """
    normalized = []
    for position, action in enumerate(actions or ()):
        if isinstance(action, ActionStep):
            normalized.append(action)
        elif isinstance(action, Mapping):
            normalized.append(ActionStep.from_dict(dict(action)))
        else:
            raise WorkflowValidationError([f"action {position} must be an object"])
    return normalized


def _enum(enum_type: Any, value: Any, label: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise WorkflowValidationError([f"unknown {label} '{value}'"]) from None


class WorkflowRegistry:
    """Validated CRUD over the workflow store.

    Attributes:
        store: The workflow store.
        clock: Source of ``created_at``/``updated_at`` timestamps and default schedule times.
    """

    def __init__(self, store: WorkflowStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()

    # Definitions

    async def create_definition(
        self,
        name: str,
        trigger_type: TriggerType | str,
        trigger_config: dict[str, Any] | None = None,
        actions: Iterable[ActionStep | Mapping[str, Any]] | None = None,
        *,
        description: str | None = None,
        status: DefinitionStatus | str = DefinitionStatus.DRAFT,
        variables: dict[str, Any] | None = None,
        created_by: str | None = None,
        workspace_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> WorkflowDefinition:
        """Validate and save a new definition at version 1.

        Args:
            name: Display name.
            trigger_type: Which events start the workflow.
            trigger_config: Trigger parameters.
            actions: The action program.
            description: Free-form description.
            status: Initial status; new definitions are drafts unless told otherwise.
            variables: Default run variables.
            created_by: Identifier of the author.
            workspace_id: Owning workspace.
            metadata: Free-form metadata.

        Returns:
            The saved definition.

        Raises:
            WorkflowValidationError: If the definition is invalid.

        Example:
            >>> definition = await registry.create_definition(
            ...     "Welcome new candidates",
            ...     TriggerType.EVENT,
            ...     {"eventType": "candidate_created"},
            ...     [{"type": "send_email", "config": {"to": "{{candidate.email}}", "template": "welcome"}}],
            ...     status=DefinitionStatus.ACTIVE,
            ... )
        """
        now = self.clock.now()
        definition = WorkflowDefinition(
            name=name,
            trigger_type=_enum(TriggerType, trigger_type, "trigger type"),
            trigger_config=dict(trigger_config or {}),
            actions=normalize_actions(actions),
            description=description,
            status=_enum(DefinitionStatus, status, "status"),
            version=1,
            variables=dict(variables or {}),
            created_by=created_by,
            workspace_id=workspace_id,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        validate_definition(definition)
        definition = await self.store.add_definition(definition)
        logger.info("Created workflow %s (%s)", definition.id, definition.name)
        return definition

    async def get_definition(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition:
        """Return the current definition, or a specific version's snapshot.

        Raises:
            WorkflowNotFoundError: If the definition or version does not exist.
        """
        definition = await self.store.get_definition(workflow_id, version)
        if definition is None:
            raise WorkflowNotFoundError(workflow_id, version)
        return definition

    async def list_definitions(
        self,
        status: DefinitionStatus | None = None,
        trigger_type: TriggerType | None = None,
    ) -> list[WorkflowDefinition]:
        return await self.store.list_definitions(status=status, trigger_type=trigger_type)

    async def update_definition(self, workflow_id: UUID, **changes: Any) -> WorkflowDefinition:
        """Apply ``changes`` to a definition.

        The version is bumped when the trigger or the action program actually
        changes; edits to name, status, variables and the like keep it.

        Args:
            workflow_id: The definition to update.
            **changes: New values for any of ``name``, ``description``, ``status``,
                ``trigger_type``, ``trigger_config``, ``actions``, ``variables``,
                ``workspace_id`` and ``metadata``.

        Returns:
            The saved definition.

        Raises:
            WorkflowNotFoundError: If the definition does not exist.
            WorkflowValidationError: If a field is unknown or the result is invalid.
        """
        unknown = sorted(set(changes) - _DEFINITION_FIELDS)
        if unknown:
            raise WorkflowValidationError([f"cannot update field '{name}'" for name in unknown])

        current = await self.get_definition(workflow_id)
        if "actions" in changes:
            changes["actions"] = normalize_actions(changes["actions"])
        if "trigger_type" in changes:
            changes["trigger_type"] = _enum(TriggerType, changes["trigger_type"], "trigger type")
        if "status" in changes:
            changes["status"] = _enum(DefinitionStatus, changes["status"], "status")

        versioned = any(
            name in changes and changes[name] != getattr(current, name) for name in _VERSIONED_FIELDS
        )
        updated = replace(
            current,
            **changes,
            version=current.version + 1 if versioned else current.version,
            updated_at=self.clock.now(),
        )
        validate_definition(updated)
        updated = await self.store.update_definition(updated)
        if versioned:
            logger.info("Workflow %s is now version %d", updated.id, updated.version)
        return updated

    async def set_status(self, workflow_id: UUID, status: DefinitionStatus | str) -> WorkflowDefinition:
        """Shortcut for changing only a definition's status."""
        return await self.update_definition(workflow_id, status=status)

    async def delete_definition(self, workflow_id: UUID) -> None:
        """Delete a definition, its version snapshots and its schedules. Runs are kept.

        Raises:
            WorkflowNotFoundError: If the definition does not exist.
        """
        if not await self.store.delete_definition(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        logger.info("Deleted workflow %s", workflow_id)

    # Templates

    async def create_template(
        self,
        name: str,
        trigger_type: TriggerType | str,
        trigger_config: dict[str, Any] | None = None,
        actions: Iterable[ActionStep | Mapping[str, Any]] | None = None,
        *,
        description: str | None = None,
        category: str = "general",
        icon: str | None = None,
        variables: dict[str, Any] | None = None,
        tags: list[str] | None = None,
        is_public: bool = True,
    ) -> WorkflowTemplate:
        """Validate and save a reusable blueprint.

        Raises:
            WorkflowValidationError: If the blueprint could not produce a valid definition.
        """
        template = WorkflowTemplate(
            name=name,
            trigger_type=_enum(TriggerType, trigger_type, "trigger type"),
            trigger_config=dict(trigger_config or {}),
            actions=normalize_actions(actions),
            description=description,
            category=category,
            icon=icon,
            variables=dict(variables or {}),
            tags=list(tags or []),
            is_public=is_public,
            created_at=self.clock.now(),
        )
        validate_template(template)
        return await self.store.add_template(template)

    async def get_template(self, template_id: UUID) -> WorkflowTemplate:
        template = await self.store.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def list_templates(self, category: str | None = None) -> list[WorkflowTemplate]:
        """Return templates, most used first."""
        return await self.store.list_templates(category)

    async def instantiate_template(
        self,
        template_id: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        trigger_config_override: dict[str, Any] | None = None,
        created_by: str | None = None,
        workspace_id: str | None = None,
    ) -> WorkflowDefinition:
        """Copy a template into a new draft definition and count the use.

        Args:
            template_id: The template to copy.
            name: Name of the new definition; defaults to the template's.
            description: Description of the new definition; defaults to the template's.
            trigger_config_override: Keys merged over the template's trigger config.
            created_by: Author of the new definition.
            workspace_id: Owning workspace of the new definition.

        Returns:
            The new ``draft`` definition, with ``metadata["templateId"]`` set.

        Raises:
            TemplateNotFoundError: If the template does not exist.
            WorkflowValidationError: If the override makes the trigger invalid.
        """
        template = await self.get_template(template_id)
        definition = await self.create_definition(
            name or template.name,
            template.trigger_type,
            {**template.trigger_config, **(trigger_config_override or {})},
            template.actions,
            description=description if description is not None else template.description,
            status=DefinitionStatus.DRAFT,
            variables=template.variables,
            created_by=created_by,
            workspace_id=workspace_id,
            metadata={"templateId": str(template.id)},
        )
        await self.store.update_template(replace(template, usage_count=template.usage_count + 1))
        return definition

    # Schedules

    async def create_schedule(
        self,
        workflow_id: UUID,
        schedule_type: ScheduleType | str,
        *,
        cron_expression: str | None = None,
        interval_seconds: int | None = None,
        next_run_at: datetime | None = None,
        timezone: str = "UTC",
        is_active: bool = True,
    ) -> WorkflowSchedule:
        """Validate and save a schedule for an existing definition.

        When ``next_run_at`` is omitted it defaults to now for ``once``
        schedules, one interval from now for ``interval`` schedules, and the
        next cron match for ``recurring`` schedules.

        Raises:
            WorkflowNotFoundError: If the definition does not exist.
            WorkflowValidationError: If the schedule is invalid.
        """
        await self.get_definition(workflow_id)
        now = self.clock.now()
        schedule = WorkflowSchedule(
            workflow_id=workflow_id,
            schedule_type=_enum(ScheduleType, schedule_type, "schedule type"),
            next_run_at=utc(next_run_at) if next_run_at is not None else now,
            cron_expression=cron_expression,
            interval_seconds=interval_seconds,
            timezone=timezone or "UTC",
            is_active=is_active,
            created_at=now,
        )
        validate_schedule(schedule)
        if next_run_at is None:
            schedule = replace(schedule, next_run_at=self._first_run(schedule, now))
        schedule = await self.store.add_schedule(schedule)
        logger.info("Created %s schedule %s for workflow %s", schedule.schedule_type, schedule.id, workflow_id)
        return schedule

    async def get_schedule(self, schedule_id: UUID) -> WorkflowSchedule:
        schedule = await self.store.get_schedule(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    async def list_schedules(self, workflow_id: UUID | None = None) -> list[WorkflowSchedule]:
        return await self.store.list_schedules(workflow_id)

    async def update_schedule(self, schedule_id: UUID, **changes: Any) -> WorkflowSchedule:
        """Apply an operator's edit to a schedule.

        Changing the timing without giving ``next_run_at`` recomputes it from
        now. Re-activating a schedule clears its ``last_error``. The version
        bump makes any concurrent scheduler claim on the old row fail.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist.
            WorkflowValidationError: If a field is unknown or the result is invalid.
        """
        unknown = sorted(set(changes) - _SCHEDULE_FIELDS)
        if unknown:
            raise WorkflowValidationError([f"cannot update field '{name}'" for name in unknown])

        current = await self.get_schedule(schedule_id)
        if "schedule_type" in changes:
            changes["schedule_type"] = _enum(ScheduleType, changes["schedule_type"], "schedule type")
        if changes.get("next_run_at") is not None:
            changes["next_run_at"] = utc(changes["next_run_at"])
        elif "next_run_at" in changes:
            del changes["next_run_at"]
        if changes.get("is_active") and not current.is_active:
            changes["last_error"] = None

        updated = replace(current, **changes, lock_version=current.lock_version + 1)
        validate_schedule(updated)
        if "next_run_at" not in changes and _TIMING_FIELDS & set(changes):
            updated = replace(updated, next_run_at=self._first_run(updated, self.clock.now()))
        return await self.store.update_schedule(updated)

    async def delete_schedule(self, schedule_id: UUID) -> None:
        if not await self.store.delete_schedule(schedule_id):
            raise ScheduleNotFoundError(schedule_id)

    @staticmethod
    def _first_run(schedule: WorkflowSchedule, now: datetime) -> datetime:
        if schedule.schedule_type == ScheduleType.ONCE:
            return now
        if schedule.schedule_type == ScheduleType.INTERVAL:
            return now + timedelta(seconds=schedule.interval_seconds or 0)
        try:
            next_run = compute_next_run(replace(schedule, next_run_at=now), now)
        except SchedulingError as exc:
            raise WorkflowValidationError([str(exc)]) from exc
        if next_run is None:
            msg = f"schedule type {schedule.schedule_type!r} has no next run"
            raise WorkflowValidationError([msg])
        return next_run
