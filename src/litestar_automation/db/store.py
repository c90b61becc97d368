"""SQLAlchemy implementation of the workflow store.

Every store operation opens its own session from the configured
``async_sessionmaker`` and commits before returning, so engine objects never
hold a session across ``await`` points of a long-running workflow. Rows are
converted to and from the domain dataclasses at this boundary.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import delete

from litestar_automation.core.models import (
    ActionStep,
    StepResult,
    WorkflowDefinition,
    WorkflowRun,
    WorkflowSchedule,
    WorkflowTemplate,
)
from litestar_automation.core.types import DefinitionStatus, RunStatus, ScheduleType, TriggerType
from litestar_automation.db.models import (
    WorkflowDefinitionModel,
    WorkflowDefinitionVersionModel,
    WorkflowRunModel,
    WorkflowScheduleModel,
    WorkflowTemplateModel,
)
from litestar_automation.db.repositories import (
    WorkflowDefinitionRepository,
    WorkflowDefinitionVersionRepository,
    WorkflowRunRepository,
    WorkflowScheduleRepository,
    WorkflowTemplateRepository,
)
from litestar_automation.engine.clock import utc
from litestar_automation.exceptions import ScheduleNotFoundError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["SQLAlchemyWorkflowStore"]

logger = logging.getLogger(__name__)


def _optional_utc(value: datetime | None) -> datetime | None:
    return utc(value) if value is not None else None


def _optional_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _audit_fields(created_at: datetime | None) -> dict[str, Any]:
    # Leave the audit column default in charge when the domain object has no timestamp.
    return {"created_at": created_at} if created_at is not None else {}


def definition_to_snapshot(definition: WorkflowDefinition) -> dict[str, Any]:
    """Serialize a definition to the JSON document stored per version."""
    return {
        "id": str(definition.id),
        "name": definition.name,
        "description": definition.description,
        "status": str(definition.status),
        "version": definition.version,
        "trigger_type": str(definition.trigger_type),
        "trigger_config": definition.trigger_config,
        "actions": [action.to_dict() for action in definition.actions],
        "variables": definition.variables,
        "created_by": definition.created_by,
        "workspace_id": definition.workspace_id,
        "metadata": definition.metadata,
        "created_at": _optional_iso(definition.created_at),
        "updated_at": _optional_iso(definition.updated_at),
    }


def definition_from_snapshot(data: dict[str, Any]) -> WorkflowDefinition:
    """Rebuild a definition from a version snapshot."""
    created_at = data.get("created_at")
    updated_at = data.get("updated_at")
    return WorkflowDefinition(
        id=UUID(data["id"]),
        name=data["name"],
        description=data.get("description"),
        status=DefinitionStatus(data["status"]),
        version=int(data["version"]),
        trigger_type=TriggerType(data["trigger_type"]),
        trigger_config=dict(data.get("trigger_config") or {}),
        actions=[ActionStep.from_dict(action) for action in data.get("actions") or []],
        variables=dict(data.get("variables") or {}),
        created_by=data.get("created_by"),
        workspace_id=data.get("workspace_id"),
        metadata=dict(data.get("metadata") or {}),
        created_at=datetime.fromisoformat(created_at) if created_at else None,
        updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
    )


class SQLAlchemyWorkflowStore:
    """Database-backed :class:`~litestar_automation.core.protocols.WorkflowStore`.

    Compare-and-set writes are single ``UPDATE ... WHERE lock_version = :expected``
    statements, so concurrent workers sharing one database never both win a
    claim on the same run or schedule.

    Args:
        session_maker: Factory for the async sessions each operation uses.

    Example:
        >>> engine = create_async_engine("postgresql+asyncpg://localhost/app")
        >>> store = SQLAlchemyWorkflowStore(async_sessionmaker(engine, expire_on_commit=False))
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    # Definitions

    def _definition_model(self, definition: WorkflowDefinition) -> WorkflowDefinitionModel:
        return WorkflowDefinitionModel(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            status=definition.status,
            version=definition.version,
            trigger_type=definition.trigger_type,
            trigger_config=definition.trigger_config,
            actions=[action.to_dict() for action in definition.actions],
            variables=definition.variables,
            created_by=definition.created_by,
            workspace_id=definition.workspace_id,
            metadata_=definition.metadata,
            **_audit_fields(definition.created_at),
        )

    def _to_definition(self, model: WorkflowDefinitionModel) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=model.id,
            name=model.name,
            description=model.description,
            status=DefinitionStatus(model.status),
            version=model.version,
            trigger_type=TriggerType(model.trigger_type),
            trigger_config=dict(model.trigger_config or {}),
            actions=[ActionStep.from_dict(action) for action in model.actions or []],
            variables=dict(model.variables or {}),
            created_by=model.created_by,
            workspace_id=model.workspace_id,
            metadata=dict(model.metadata_ or {}),
            created_at=_optional_utc(model.created_at),
            updated_at=_optional_utc(model.updated_at),
        )

    async def _save_snapshot(self, session: AsyncSession, definition: WorkflowDefinition) -> None:
        repo = WorkflowDefinitionVersionRepository(session=session)
        snapshot = definition_to_snapshot(definition)
        existing = await repo.get_version(definition.id, definition.version)
        if existing is None:
            await repo.add(
                WorkflowDefinitionVersionModel(
                    workflow_id=definition.id,
                    version=definition.version,
                    snapshot=snapshot,
                )
            )
        else:
            existing.snapshot = snapshot

    async def add_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        async with self.session_maker() as session:
            repo = WorkflowDefinitionRepository(session=session)
            model = await repo.add(self._definition_model(definition))
            result = self._to_definition(model)
            await self._save_snapshot(session, result)
            await session.commit()
        return result

    async def get_definition(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition | None:
        async with self.session_maker() as session:
            if version is None:
                model = await WorkflowDefinitionRepository(session=session).get_one_or_none(id=workflow_id)
                return self._to_definition(model) if model is not None else None
            snapshot = await WorkflowDefinitionVersionRepository(session=session).get_version(workflow_id, version)
            return definition_from_snapshot(snapshot.snapshot) if snapshot is not None else None

    async def list_definitions(
        self,
        status: DefinitionStatus | None = None,
        trigger_type: TriggerType | None = None,
    ) -> list[WorkflowDefinition]:
        async with self.session_maker() as session:
            models = await WorkflowDefinitionRepository(session=session).list_filtered(status, trigger_type)
            return [self._to_definition(model) for model in models]

    async def update_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        async with self.session_maker() as session:
            repo = WorkflowDefinitionRepository(session=session)
            model = await repo.get_one_or_none(id=definition.id)
            if model is None:
                model = await repo.add(self._definition_model(definition))
            else:
                model.name = definition.name
                model.description = definition.description
                model.status = definition.status
                model.version = definition.version
                model.trigger_type = definition.trigger_type
                model.trigger_config = definition.trigger_config
                model.actions = [action.to_dict() for action in definition.actions]
                model.variables = definition.variables
                model.created_by = definition.created_by
                model.workspace_id = definition.workspace_id
                model.metadata_ = definition.metadata
                await session.flush()
            result = self._to_definition(model)
            await self._save_snapshot(session, result)
            await session.commit()
        return result

    async def delete_definition(self, workflow_id: UUID) -> bool:
        async with self.session_maker() as session:
            repo = WorkflowDefinitionRepository(session=session)
            model = await repo.get_one_or_none(id=workflow_id)
            if model is None:
                return False
            await session.execute(
                delete(WorkflowScheduleModel).where(WorkflowScheduleModel.workflow_id == workflow_id)
            )
            await session.execute(
                delete(WorkflowDefinitionVersionModel).where(
                    WorkflowDefinitionVersionModel.workflow_id == workflow_id
                )
            )
            await repo.delete(workflow_id)
            await session.commit()
        logger.info("Deleted workflow definition %s", workflow_id)
        return True

    # Runs

    def _run_values(self, run: WorkflowRun) -> dict[str, Any]:
        started_at = run.started_at or datetime.now(timezone.utc)
        return {
            "workflow_id": run.workflow_id,
            "workflow_version": run.workflow_version,
            "status": run.status,
            "trigger_data": run.trigger_data,
            "triggered_by": run.triggered_by,
            "variables": run.variables,
            "current_step_index": run.current_step_index,
            "step_results": [result.to_dict() for result in run.step_results],
            "in_flight_index": run.in_flight_index,
            "resume_at": run.resume_at,
            "error_message": run.error_message,
            "started_at": started_at,
            "completed_at": run.completed_at,
            "heartbeat_at": run.updated_at or started_at,
            "lock_version": run.lock_version,
        }

    def _to_run(self, model: WorkflowRunModel) -> WorkflowRun:
        return WorkflowRun(
            id=model.id,
            workflow_id=model.workflow_id,
            workflow_version=model.workflow_version,
            status=RunStatus(model.status),
            trigger_data=dict(model.trigger_data or {}),
            triggered_by=model.triggered_by,
            variables=dict(model.variables or {}),
            current_step_index=model.current_step_index,
            step_results=[StepResult.from_dict(result) for result in model.step_results or []],
            in_flight_index=model.in_flight_index,
            resume_at=_optional_utc(model.resume_at),
            error_message=model.error_message,
            started_at=_optional_utc(model.started_at),
            completed_at=_optional_utc(model.completed_at),
            updated_at=_optional_utc(model.heartbeat_at),
            lock_version=model.lock_version,
        )

    async def add_run(self, run: WorkflowRun) -> WorkflowRun:
        async with self.session_maker() as session:
            model = await WorkflowRunRepository(session=session).add(
                WorkflowRunModel(id=run.id, **self._run_values(run))
            )
            result = self._to_run(model)
            await session.commit()
        return result

    async def get_run(self, run_id: UUID) -> WorkflowRun | None:
        async with self.session_maker() as session:
            model = await WorkflowRunRepository(session=session).get_one_or_none(id=run_id)
            return self._to_run(model) if model is not None else None

    async def list_runs(self, workflow_id: UUID, limit: int | None = None) -> list[WorkflowRun]:
        async with self.session_maker() as session:
            models = await WorkflowRunRepository(session=session).list_for_workflow(workflow_id, limit)
            return [self._to_run(model) for model in models]

    async def list_due_runs(self, now: datetime) -> list[WorkflowRun]:
        async with self.session_maker() as session:
            models = await WorkflowRunRepository(session=session).list_due(now)
            return [self._to_run(model) for model in models]

    async def list_stalled_runs(self, before: datetime) -> list[WorkflowRun]:
        async with self.session_maker() as session:
            models = await WorkflowRunRepository(session=session).list_stalled(before)
            return [self._to_run(model) for model in models]

    async def save_run(self, run: WorkflowRun, expected_version: int) -> bool:
        async with self.session_maker() as session:
            saved = await WorkflowRunRepository(session=session).compare_and_set(
                run.id, expected_version, self._run_values(run)
            )
            await session.commit()
        return saved

    # Schedules

    def _schedule_values(self, schedule: WorkflowSchedule) -> dict[str, Any]:
        return {
            "workflow_id": schedule.workflow_id,
            "schedule_type": schedule.schedule_type,
            "cron_expression": schedule.cron_expression,
            "interval_seconds": schedule.interval_seconds,
            "next_run_at": schedule.next_run_at,
            "timezone": schedule.timezone,
            "is_active": schedule.is_active,
            "last_run_at": schedule.last_run_at,
            "last_error": schedule.last_error,
            "lock_version": schedule.lock_version,
        }

    def _to_schedule(self, model: WorkflowScheduleModel) -> WorkflowSchedule:
        return WorkflowSchedule(
            id=model.id,
            workflow_id=model.workflow_id,
            schedule_type=ScheduleType(model.schedule_type),
            cron_expression=model.cron_expression,
            interval_seconds=model.interval_seconds,
            next_run_at=utc(model.next_run_at),
            timezone=model.timezone,
            is_active=model.is_active,
            last_run_at=_optional_utc(model.last_run_at),
            last_error=model.last_error,
            lock_version=model.lock_version,
            created_at=_optional_utc(model.created_at),
        )

    async def add_schedule(self, schedule: WorkflowSchedule) -> WorkflowSchedule:
        async with self.session_maker() as session:
            model = await WorkflowScheduleRepository(session=session).add(
                WorkflowScheduleModel(
                    id=schedule.id,
                    **self._schedule_values(schedule),
                    **_audit_fields(schedule.created_at),
                )
            )
            result = self._to_schedule(model)
            await session.commit()
        return result

    async def get_schedule(self, schedule_id: UUID) -> WorkflowSchedule | None:
        async with self.session_maker() as session:
            model = await WorkflowScheduleRepository(session=session).get_one_or_none(id=schedule_id)
            return self._to_schedule(model) if model is not None else None

    async def list_schedules(self, workflow_id: UUID | None = None) -> list[WorkflowSchedule]:
        async with self.session_maker() as session:
            models = await WorkflowScheduleRepository(session=session).list_for_workflow(workflow_id)
            return [self._to_schedule(model) for model in models]

    async def list_due_schedules(self, now: datetime) -> list[WorkflowSchedule]:
        async with self.session_maker() as session:
            models = await WorkflowScheduleRepository(session=session).list_due(now)
            return [self._to_schedule(model) for model in models]

    async def update_schedule(self, schedule: WorkflowSchedule) -> WorkflowSchedule:
        async with self.session_maker() as session:
            model = await WorkflowScheduleRepository(session=session).get_one_or_none(id=schedule.id)
            if model is None:
                raise ScheduleNotFoundError(schedule.id)
            for key, value in self._schedule_values(schedule).items():
                setattr(model, key, value)
            await session.flush()
            result = self._to_schedule(model)
            await session.commit()
        return result

    async def delete_schedule(self, schedule_id: UUID) -> bool:
        async with self.session_maker() as session:
            repo = WorkflowScheduleRepository(session=session)
            if await repo.get_one_or_none(id=schedule_id) is None:
                return False
            await repo.delete(schedule_id)
            await session.commit()
        return True

    async def claim_schedule(
        self,
        schedule: WorkflowSchedule,
        expected_version: int,
        runs: Sequence[WorkflowRun] = (),
    ) -> bool:
        async with self.session_maker() as session:
            claimed = await WorkflowScheduleRepository(session=session).compare_and_set(
                schedule.id, expected_version, self._schedule_values(schedule)
            )
            if not claimed:
                await session.rollback()
                return False
            if runs:
                await WorkflowRunRepository(session=session).add_many(
                    [WorkflowRunModel(id=run.id, **self._run_values(run)) for run in runs]
                )
            await session.commit()
        return True

    # Templates

    def _template_model(self, template: WorkflowTemplate) -> WorkflowTemplateModel:
        return WorkflowTemplateModel(
            id=template.id,
            name=template.name,
            description=template.description,
            category=template.category,
            icon=template.icon,
            trigger_type=template.trigger_type,
            trigger_config=template.trigger_config,
            actions=[action.to_dict() for action in template.actions],
            variables=template.variables,
            tags=list(template.tags),
            is_public=template.is_public,
            usage_count=template.usage_count,
            **_audit_fields(template.created_at),
        )

    def _to_template(self, model: WorkflowTemplateModel) -> WorkflowTemplate:
        return WorkflowTemplate(
            id=model.id,
            name=model.name,
            description=model.description,
            category=model.category,
            icon=model.icon,
            trigger_type=TriggerType(model.trigger_type),
            trigger_config=dict(model.trigger_config or {}),
            actions=[ActionStep.from_dict(action) for action in model.actions or []],
            variables=dict(model.variables or {}),
            tags=list(model.tags or []),
            is_public=model.is_public,
            usage_count=model.usage_count,
            created_at=_optional_utc(model.created_at),
        )

    async def add_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        async with self.session_maker() as session:
            model = await WorkflowTemplateRepository(session=session).add(self._template_model(template))
            result = self._to_template(model)
            await session.commit()
        return result

    async def get_template(self, template_id: UUID) -> WorkflowTemplate | None:
        async with self.session_maker() as session:
            model = await WorkflowTemplateRepository(session=session).get_one_or_none(id=template_id)
            return self._to_template(model) if model is not None else None

    async def list_templates(self, category: str | None = None) -> list[WorkflowTemplate]:
        async with self.session_maker() as session:
            models = await WorkflowTemplateRepository(session=session).list_by_category(category)
            return [self._to_template(model) for model in models]

    async def update_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        async with self.session_maker() as session:
            repo = WorkflowTemplateRepository(session=session)
            model = await repo.get_one_or_none(id=template.id)
            if model is None:
                model = await repo.add(self._template_model(template))
            else:
                model.name = template.name
                model.description = template.description
                model.category = template.category
                model.icon = template.icon
                model.trigger_type = template.trigger_type
                model.trigger_config = template.trigger_config
                model.actions = [action.to_dict() for action in template.actions]
                model.variables = template.variables
                model.tags = list(template.tags)
                model.is_public = template.is_public
                model.usage_count = template.usage_count
                await session.flush()
            result = self._to_template(model)
            await session.commit()
        return result
