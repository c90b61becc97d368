"""Core protocols for litestar-automation.

This module defines the Protocol-based interfaces the engine depends on: the
action provider that delivers side effects, the store that persists engine
state, the clock, and an optional event bus. Using Protocol allows duck typing
while maintaining type safety.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from litestar_automation.core.models import (
        ActionResult,
        WorkflowDefinition,
        WorkflowRun,
        WorkflowSchedule,
        WorkflowTemplate,
    )
    from litestar_automation.core.types import Context, DefinitionStatus, TriggerType


__all__ = ["ActionProvider", "Clock", "EventBus", "WorkflowStore"]


@runtime_checkable
class Clock(Protocol):
    """Source of the current time.

    The scheduler and the executor never call ``datetime.now`` themselves, so
    tests can drive time with a fake clock.
    """

    def now(self) -> datetime:
        """Return the current, timezone-aware UTC time."""
        ...


@runtime_checkable
class EventBus(Protocol):
    """Optional sink for engine lifecycle events (``run.started``, ``run.failed``...)."""

    async def emit(self, event_type: str, **data: Any) -> None: ...


@runtime_checkable
class ActionProvider(Protocol):
    """Adapter the executor calls for effectful steps.

    There is one coroutine per effectful action kind, named after the kind.
    Each receives the step's config, with placeholders already rendered, and
    the run context, and returns an
    :class:`~litestar_automation.core.models.ActionResult`. Raising an
    exception and returning ``success=False`` both fail the run.

    Example:
        >>> class SlackProvider(BaseActionProvider):
        ...     async def send_message(self, config, context):
        ...         await slack.post(config["channel"], config["message"])
        ...         return ActionResult(success=True)
    """

    async def send_message(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def send_email(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def create_task(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def api_call(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def database_update(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def notify_team(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def assign_to_user(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def update_candidate(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def move_stage(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def assign_tag(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def schedule_interview(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def update_score(self, config: dict[str, Any], context: Context) -> ActionResult: ...

    async def approval_request(self, config: dict[str, Any], context: Context) -> ActionResult: ...


@runtime_checkable
class WorkflowStore(Protocol):
    """Persistence contract for definitions, runs, schedules and templates.

    Engine logic is storage agnostic; it only talks to this protocol. Two
    operations are compare-and-set writes and are what make claims safe when
    several workers share one store:

    - :meth:`save_run` persists a run only if its stored ``lock_version``
      still equals ``expected_version``, bumping the version on success.
    - :meth:`claim_schedule` advances a schedule and inserts the run it fires
      in one atomic step, under the same version check.

    All ``list_*`` methods return copies; mutating them never changes the store.
    """

    # Definitions

    async def add_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition: ...

    async def get_definition(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition | None:
        """Return the current definition, or the snapshot of ``version`` when given."""
        ...

    async def list_definitions(
        self,
        status: DefinitionStatus | None = None,
        trigger_type: TriggerType | None = None,
    ) -> list[WorkflowDefinition]: ...

    async def update_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Persist a modified definition; a changed version is snapshotted."""
        ...

    async def delete_definition(self, workflow_id: UUID) -> bool: ...

    # Runs

    async def add_run(self, run: WorkflowRun) -> WorkflowRun: ...

    async def get_run(self, run_id: UUID) -> WorkflowRun | None: ...

    async def list_runs(self, workflow_id: UUID, limit: int | None = None) -> list[WorkflowRun]:
        """Return a definition's runs, newest first."""
        ...

    async def list_due_runs(self, now: datetime) -> list[WorkflowRun]:
        """Return paused runs whose ``resume_at`` is at or before ``now``."""
        ...

    async def list_stalled_runs(self, before: datetime) -> list[WorkflowRun]:
        """Return pending or running runs last written before ``before``."""
        ...

    async def save_run(self, run: WorkflowRun, expected_version: int) -> bool:
        """Compare-and-set write; returns ``False`` when the stored version moved."""
        ...

    # Schedules

    async def add_schedule(self, schedule: WorkflowSchedule) -> WorkflowSchedule: ...

    async def get_schedule(self, schedule_id: UUID) -> WorkflowSchedule | None: ...

    async def list_schedules(self, workflow_id: UUID | None = None) -> list[WorkflowSchedule]: ...

    async def list_due_schedules(self, now: datetime) -> list[WorkflowSchedule]:
        """Return active schedules whose ``next_run_at`` is at or before ``now``."""
        ...

    async def update_schedule(self, schedule: WorkflowSchedule) -> WorkflowSchedule:
        """Replace a stored schedule.

        Raises:
            ScheduleNotFoundError: If no schedule has ``schedule.id``.
        """
        ...

    async def delete_schedule(self, schedule_id: UUID) -> bool: ...

    async def claim_schedule(
        self,
        schedule: WorkflowSchedule,
        expected_version: int,
        runs: Sequence[WorkflowRun] = (),
    ) -> bool:
        """Atomically persist ``schedule`` and insert ``runs`` if the version still matches."""
        ...

    # Templates

    async def add_template(self, template: WorkflowTemplate) -> WorkflowTemplate: ...

    async def get_template(self, template_id: UUID) -> WorkflowTemplate | None: ...

    async def list_templates(self, category: str | None = None) -> list[WorkflowTemplate]: ...

    async def update_template(self, template: WorkflowTemplate) -> WorkflowTemplate: ...
