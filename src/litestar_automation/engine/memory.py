"""In-memory implementation of the workflow store.

Suitable for development, testing and single-process deployments. Every value
going in or out is deep-copied, so callers can never mutate stored state
behind the store's back, and an :class:`asyncio.Lock` serializes writes so the
compare-and-set operations behave like their database counterparts.
"""

from __future__ import annotations

import asyncio
from copy import deepcopy
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from litestar_automation.core.types import RunStatus
from litestar_automation.exceptions import ScheduleNotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from litestar_automation.core.models import (
        WorkflowDefinition,
        WorkflowRun,
        WorkflowSchedule,
        WorkflowTemplate,
    )
    from litestar_automation.core.types import DefinitionStatus, TriggerType

__all__ = ["InMemoryWorkflowStore"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryWorkflowStore:
    """Dictionary-backed :class:`~litestar_automation.core.protocols.WorkflowStore`.

    Example:
        >>> store = InMemoryWorkflowStore()
        >>> definition = await store.add_definition(definition)
        >>> await store.get_definition(definition.id)
    """

    def __init__(self) -> None:
        self._definitions: dict[UUID, WorkflowDefinition] = {}
        self._snapshots: dict[tuple[UUID, int], WorkflowDefinition] = {}
        self._runs: dict[UUID, WorkflowRun] = {}
        self._schedules: dict[UUID, WorkflowSchedule] = {}
        self._templates: dict[UUID, WorkflowTemplate] = {}
        self._lock = asyncio.Lock()

    # Definitions

    async def add_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        async with self._lock:
            self._definitions[definition.id] = deepcopy(definition)
            self._snapshots[(definition.id, definition.version)] = deepcopy(definition)
        return deepcopy(definition)

    async def get_definition(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition | None:
        if version is None:
            found = self._definitions.get(workflow_id)
        else:
            found = self._snapshots.get((workflow_id, version))
        return deepcopy(found) if found is not None else None

    async def list_definitions(
        self,
        status: DefinitionStatus | None = None,
        trigger_type: TriggerType | None = None,
    ) -> list[WorkflowDefinition]:
        return [
            deepcopy(definition)
            for definition in self._definitions.values()
            if (status is None or definition.status == status)
            and (trigger_type is None or definition.trigger_type == trigger_type)
        ]

    async def update_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        async with self._lock:
            self._definitions[definition.id] = deepcopy(definition)
            self._snapshots[(definition.id, definition.version)] = deepcopy(definition)
        return deepcopy(definition)

    async def delete_definition(self, workflow_id: UUID) -> bool:
        async with self._lock:
            if self._definitions.pop(workflow_id, None) is None:
                return False
            for key in [key for key in self._snapshots if key[0] == workflow_id]:
                del self._snapshots[key]
            for schedule_id in [s.id for s in self._schedules.values() if s.workflow_id == workflow_id]:
                del self._schedules[schedule_id]
        return True

    # Runs

    async def add_run(self, run: WorkflowRun) -> WorkflowRun:
        async with self._lock:
            self._runs[run.id] = deepcopy(run)
        return deepcopy(run)

    async def get_run(self, run_id: UUID) -> WorkflowRun | None:
        found = self._runs.get(run_id)
        return deepcopy(found) if found is not None else None

    async def list_runs(self, workflow_id: UUID, limit: int | None = None) -> list[WorkflowRun]:
        runs = [run for run in reversed(self._runs.values()) if run.workflow_id == workflow_id]
        runs.sort(key=lambda run: run.started_at or _EPOCH, reverse=True)
        if limit is not None:
            runs = runs[:limit]
        return deepcopy(runs)

    async def list_due_runs(self, now: datetime) -> list[WorkflowRun]:
        return [
            deepcopy(run)
            for run in self._runs.values()
            if run.status == RunStatus.PAUSED and run.resume_at is not None and run.resume_at <= now
        ]

    async def list_stalled_runs(self, before: datetime) -> list[WorkflowRun]:
        return [
            deepcopy(run)
            for run in self._runs.values()
            if run.status in (RunStatus.PENDING, RunStatus.RUNNING)
            and (run.updated_at or run.started_at or _EPOCH) < before
        ]

    async def save_run(self, run: WorkflowRun, expected_version: int) -> bool:
        async with self._lock:
            stored = self._runs.get(run.id)
            if stored is None or stored.lock_version != expected_version:
                return False
            self._runs[run.id] = deepcopy(run)
        return True

    # Schedules

    async def add_schedule(self, schedule: WorkflowSchedule) -> WorkflowSchedule:
        async with self._lock:
            self._schedules[schedule.id] = deepcopy(schedule)
        return deepcopy(schedule)

    async def get_schedule(self, schedule_id: UUID) -> WorkflowSchedule | None:
        found = self._schedules.get(schedule_id)
        return deepcopy(found) if found is not None else None

    async def list_schedules(self, workflow_id: UUID | None = None) -> list[WorkflowSchedule]:
        return [
            deepcopy(schedule)
            for schedule in self._schedules.values()
            if workflow_id is None or schedule.workflow_id == workflow_id
        ]

    async def list_due_schedules(self, now: datetime) -> list[WorkflowSchedule]:
        due = [
            deepcopy(schedule)
            for schedule in self._schedules.values()
            if schedule.is_active and schedule.next_run_at <= now
        ]
        return sorted(due, key=lambda schedule: schedule.next_run_at)

    async def update_schedule(self, schedule: WorkflowSchedule) -> WorkflowSchedule:
        async with self._lock:
            if schedule.id not in self._schedules:
                raise ScheduleNotFoundError(schedule.id)
            self._schedules[schedule.id] = deepcopy(schedule)
        return deepcopy(schedule)

    async def delete_schedule(self, schedule_id: UUID) -> bool:
        async with self._lock:
            return self._schedules.pop(schedule_id, None) is not None

    async def claim_schedule(
        self,
        schedule: WorkflowSchedule,
        expected_version: int,
        runs: Sequence[WorkflowRun] = (),
    ) -> bool:
        async with self._lock:
            stored = self._schedules.get(schedule.id)
            if stored is None or stored.lock_version != expected_version:
                return False
            self._schedules[schedule.id] = deepcopy(schedule)
            for run in runs:
                self._runs[run.id] = deepcopy(run)
        return True

    # Templates

    async def add_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        async with self._lock:
            self._templates[template.id] = deepcopy(template)
        return deepcopy(template)

    async def get_template(self, template_id: UUID) -> WorkflowTemplate | None:
        found = self._templates.get(template_id)
        return deepcopy(found) if found is not None else None

    async def list_templates(self, category: str | None = None) -> list[WorkflowTemplate]:
        templates = [
            deepcopy(template)
            for template in self._templates.values()
            if category is None or template.category == category
        ]
        return sorted(templates, key=lambda template: (-template.usage_count, template.name))

    async def update_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        async with self._lock:
            self._templates[template.id] = deepcopy(template)
        return deepcopy(template)
