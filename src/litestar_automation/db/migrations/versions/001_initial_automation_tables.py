"""Initial automation tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("sa_orm_sentinel", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create automation tables."""
    # Create automation_workflow_definitions table
    op.create_table(
        "automation_workflow_definitions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("trigger_type", sa.String(length=50), nullable=False),
        sa.Column("trigger_config", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("workspace_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_workflow_definitions_status_trigger",
        "automation_workflow_definitions",
        ["status", "trigger_type"],
    )
    op.create_index(
        "ix_automation_workflow_definitions_workspace_id",
        "automation_workflow_definitions",
        ["workspace_id"],
    )

    # Create automation_workflow_definition_versions table
    op.create_table(
        "automation_workflow_definition_versions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("workflow_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(
            ["workflow_id"],
            ["automation_workflow_definitions.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_workflow_definition_versions_workflow_version",
        "automation_workflow_definition_versions",
        ["workflow_id", "version"],
        unique=True,
    )

    # Create automation_workflow_runs table
    op.create_table(
        "automation_workflow_runs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("workflow_id", sa.Uuid(), nullable=False),
        sa.Column("workflow_version", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("trigger_data", sa.JSON(), nullable=False),
        sa.Column("triggered_by", sa.String(length=255), nullable=True),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("current_step_index", sa.Integer(), nullable=False),
        sa.Column("step_results", sa.JSON(), nullable=False),
        sa.Column("in_flight_index", sa.Integer(), nullable=True),
        sa.Column("resume_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("heartbeat_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("lock_version", sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_workflow_runs_workflow_started",
        "automation_workflow_runs",
        ["workflow_id", "started_at"],
    )
    op.create_index(
        "ix_automation_workflow_runs_status_resume_at",
        "automation_workflow_runs",
        ["status", "resume_at"],
    )
    op.create_index(
        "ix_automation_workflow_runs_status_heartbeat_at",
        "automation_workflow_runs",
        ["status", "heartbeat_at"],
    )

    # Create automation_workflow_schedules table
    op.create_table(
        "automation_workflow_schedules",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("workflow_id", sa.Uuid(), nullable=False),
        sa.Column("schedule_type", sa.String(length=50), nullable=False),
        sa.Column("cron_expression", sa.String(length=255), nullable=True),
        sa.Column("interval_seconds", sa.Integer(), nullable=True),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("lock_version", sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(
            ["workflow_id"],
            ["automation_workflow_definitions.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_workflow_schedules_workflow_id",
        "automation_workflow_schedules",
        ["workflow_id"],
    )
    op.create_index(
        "ix_automation_workflow_schedules_active_next_run",
        "automation_workflow_schedules",
        ["is_active", "next_run_at"],
    )

    # Create automation_workflow_templates table
    op.create_table(
        "automation_workflow_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=100), nullable=True),
        sa.Column("trigger_type", sa.String(length=50), nullable=False),
        sa.Column("trigger_config", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_workflow_templates_category",
        "automation_workflow_templates",
        ["category"],
    )


def downgrade() -> None:
    """Drop automation tables."""
    op.drop_table("automation_workflow_templates")
    op.drop_table("automation_workflow_schedules")
    op.drop_table("automation_workflow_runs")
    op.drop_table("automation_workflow_definition_versions")
    op.drop_table("automation_workflow_definitions")
