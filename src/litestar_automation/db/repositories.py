"""Repository implementations for workflow persistence.

This module provides async repositories for the workflow models using
advanced-alchemy's repository pattern. Besides plain CRUD they carry the
queries the scheduler needs and the compare-and-set updates that make run and
schedule claims safe across workers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from advanced_alchemy.filters import LimitOffset, OrderBy
from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import and_, select, update

from litestar_automation.core.types import DefinitionStatus, RunStatus, TriggerType
from litestar_automation.db.models import (
    WorkflowDefinitionModel,
    WorkflowDefinitionVersionModel,
    WorkflowRunModel,
    WorkflowScheduleModel,
    WorkflowTemplateModel,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

__all__ = [
    "WorkflowDefinitionRepository",
    "WorkflowDefinitionVersionRepository",
    "WorkflowRunRepository",
    "WorkflowScheduleRepository",
    "WorkflowTemplateRepository",
]


class WorkflowDefinitionRepository(SQLAlchemyAsyncRepository[WorkflowDefinitionModel]):
    """Repository for workflow definition CRUD operations."""

    model_type = WorkflowDefinitionModel

    async def list_filtered(
        self,
        status: DefinitionStatus | None = None,
        trigger_type: TriggerType | None = None,
    ) -> Sequence[WorkflowDefinitionModel]:
        """List definitions, optionally narrowed by status and trigger type.

        Args:
            status: Only return definitions with this status.
            trigger_type: Only return definitions with this trigger type.

        Returns:
            Matching definitions, oldest first.
        """
        conditions = []
        if status is not None:
            conditions.append(WorkflowDefinitionModel.status == status)
        if trigger_type is not None:
            conditions.append(WorkflowDefinitionModel.trigger_type == trigger_type)

        stmt = select(WorkflowDefinitionModel).order_by(WorkflowDefinitionModel.created_at)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        result = await self.session.execute(stmt)
        return result.scalars().all()


class WorkflowDefinitionVersionRepository(SQLAlchemyAsyncRepository[WorkflowDefinitionVersionModel]):
    """Repository for definition version snapshots."""

    model_type = WorkflowDefinitionVersionModel

    async def get_version(self, workflow_id: UUID, version: int) -> WorkflowDefinitionVersionModel | None:
        """Get the snapshot of one definition version.

        Args:
            workflow_id: The definition.
            version: The version number.

        Returns:
            The snapshot or None if that version was never saved.
        """
        return await self.get_one_or_none(workflow_id=workflow_id, version=version)


class WorkflowRunRepository(SQLAlchemyAsyncRepository[WorkflowRunModel]):
    """Repository for workflow runs.

    Runs are only ever inserted and updated; there is no delete path.
    """

    model_type = WorkflowRunModel

    async def list_for_workflow(self, workflow_id: UUID, limit: int | None = None) -> Sequence[WorkflowRunModel]:
        """List a definition's runs, newest first.

        Args:
            workflow_id: The definition.
            limit: Maximum number of runs to return.

        Returns:
            The runs.
        """
        filters: list[Any] = [OrderBy(field_name="started_at", sort_order="desc")]
        if limit is not None:
            filters.append(LimitOffset(limit=limit, offset=0))
        return await self.list(*filters, workflow_id=workflow_id)

    async def list_due(self, now: datetime) -> Sequence[WorkflowRunModel]:
        """List delay-paused runs whose ``resume_at`` has passed.

        Approval pauses have no ``resume_at`` and are never returned.
        """
        stmt = (
            select(WorkflowRunModel)
            .where(
                and_(
                    WorkflowRunModel.status == RunStatus.PAUSED,
                    WorkflowRunModel.resume_at.is_not(None),
                    WorkflowRunModel.resume_at <= now,
                )
            )
            .order_by(WorkflowRunModel.resume_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_stalled(self, before: datetime) -> Sequence[WorkflowRunModel]:
        """List pending or running runs whose last ledger write is older than ``before``."""
        stmt = (
            select(WorkflowRunModel)
            .where(
                and_(
                    WorkflowRunModel.status.in_([RunStatus.PENDING, RunStatus.RUNNING]),
                    WorkflowRunModel.heartbeat_at < before,
                )
            )
            .order_by(WorkflowRunModel.heartbeat_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def compare_and_set(self, run_id: UUID, expected_version: int, values: dict[str, Any]) -> bool:
        """Update a run only if its ``lock_version`` still equals ``expected_version``.

        Args:
            run_id: The run to update.
            expected_version: The version the caller read.
            values: Column values to write, including the new ``lock_version``.

        Returns:
            True if the row was updated.
        """
        stmt = (
            update(WorkflowRunModel)
            .where(
                and_(
                    WorkflowRunModel.id == run_id,
                    WorkflowRunModel.lock_version == expected_version,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class WorkflowScheduleRepository(SQLAlchemyAsyncRepository[WorkflowScheduleModel]):
    """Repository for workflow schedules."""

    model_type = WorkflowScheduleModel

    async def list_due(self, now: datetime) -> Sequence[WorkflowScheduleModel]:
        """List active schedules whose ``next_run_at`` has passed, most overdue first."""
        stmt = (
            select(WorkflowScheduleModel)
            .where(
                and_(
                    WorkflowScheduleModel.is_active == True,  # noqa: E712
                    WorkflowScheduleModel.next_run_at <= now,
                )
            )
            .order_by(WorkflowScheduleModel.next_run_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_for_workflow(self, workflow_id: UUID | None = None) -> Sequence[WorkflowScheduleModel]:
        """List schedules, optionally only those of one definition."""
        stmt = select(WorkflowScheduleModel).order_by(WorkflowScheduleModel.next_run_at)
        if workflow_id is not None:
            stmt = stmt.where(WorkflowScheduleModel.workflow_id == workflow_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def compare_and_set(self, schedule_id: UUID, expected_version: int, values: dict[str, Any]) -> bool:
        """Update a schedule only if its ``lock_version`` still equals ``expected_version``."""
        stmt = (
            update(WorkflowScheduleModel)
            .where(
                and_(
                    WorkflowScheduleModel.id == schedule_id,
                    WorkflowScheduleModel.lock_version == expected_version,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class WorkflowTemplateRepository(SQLAlchemyAsyncRepository[WorkflowTemplateModel]):
    """Repository for workflow templates."""

    model_type = WorkflowTemplateModel

    async def list_by_category(self, category: str | None = None) -> Sequence[WorkflowTemplateModel]:
        """List templates, most used first, optionally within one category."""
        stmt = select(WorkflowTemplateModel).order_by(
            WorkflowTemplateModel.usage_count.desc(),
            WorkflowTemplateModel.name,
        )
        if category is not None:
            stmt = stmt.where(WorkflowTemplateModel.category == category)
        result = await self.session.execute(stmt)
        return result.scalars().all()
