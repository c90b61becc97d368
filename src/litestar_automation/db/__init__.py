"""Database persistence layer for litestar-automation.

This module provides SQLAlchemy models, repositories and a
:class:`~litestar_automation.core.protocols.WorkflowStore` implementation for
persisting definitions, runs, schedules and templates.

Requires the [db] extra:
    pip install litestar-automation[db]
"""

from __future__ import annotations

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
from litestar_automation.db.store import SQLAlchemyWorkflowStore

__all__ = [
    "SQLAlchemyWorkflowStore",
    "WorkflowDefinitionModel",
    "WorkflowDefinitionRepository",
    "WorkflowDefinitionVersionModel",
    "WorkflowDefinitionVersionRepository",
    "WorkflowRunModel",
    "WorkflowRunRepository",
    "WorkflowScheduleModel",
    "WorkflowScheduleRepository",
    "WorkflowTemplateModel",
    "WorkflowTemplateRepository",
]
