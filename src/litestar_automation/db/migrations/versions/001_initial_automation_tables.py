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
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create the workflow, ticket and SLA tables."""
    op.create_table(
        "automation_workflows",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("trigger_type", sa.String(length=50), nullable=False),
        sa.Column("definition_json", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("execution_order", sa.Integer(), nullable=False, default=0),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_workflows_trigger_type", "automation_workflows", ["trigger_type"])
    op.create_index(
        "ix_automation_workflows_active_order",
        "automation_workflows",
        ["is_active", "execution_order"],
    )

    op.create_table(
        "automation_workflow_instances",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("workflow_id", sa.Uuid(), nullable=False),
        sa.Column("workflow_name", sa.String(length=255), nullable=False),
        sa.Column("trigger_event_id", sa.Uuid(), nullable=False),
        sa.Column("trigger_type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("total_actions", sa.Integer(), nullable=False, default=0),
        sa.Column("actions_completed", sa.Integer(), nullable=False, default=0),
        sa.Column("execution_log", sa.JSON(), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["workflow_id"], ["automation_workflows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    # One instance per workflow and trigger event; redelivered events are ignored.
    op.create_index(
        "ix_automation_instances_workflow_event",
        "automation_workflow_instances",
        ["workflow_id", "trigger_event_id"],
        unique=True,
    )
    op.create_index("ix_automation_instances_status", "automation_workflow_instances", ["status"])
    op.create_index("ix_automation_instances_started_at", "automation_workflow_instances", ["started_at"])

    op.create_table(
        "automation_tickets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subject", sa.String(length=500), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("client_id", sa.String(length=255), nullable=True),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("assigned_group_id", sa.String(length=255), nullable=True),
        sa.Column("sla_breached", sa.Boolean(), nullable=False, default=False),
        sa.Column("escalated", sa.Boolean(), nullable=False, default=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_tickets_status", "automation_tickets", ["status"])

    op.create_table(
        "automation_ticket_comments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("ticket_id", sa.Uuid(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("internal", sa.Boolean(), nullable=False, default=True),
        sa.Column("author", sa.String(length=255), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["ticket_id"], ["automation_tickets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_ticket_comments_ticket_id", "automation_ticket_comments", ["ticket_id"])

    op.create_table(
        "automation_sla_policies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, default=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "automation_sla_rules",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("policy_id", sa.Uuid(), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("response_time_minutes", sa.Integer(), nullable=False),
        sa.Column("resolution_time_hours", sa.Integer(), nullable=False),
        sa.Column("escalation_time_minutes", sa.Integer(), nullable=True),
        sa.Column("escalation_target", sa.String(length=255), nullable=True),
        sa.Column("breach_notification_emails", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["policy_id"], ["automation_sla_policies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_sla_rules_policy_priority",
        "automation_sla_rules",
        ["policy_id", "priority"],
        unique=True,
    )

    op.create_table(
        "automation_ticket_sla_tracking",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("ticket_id", sa.Uuid(), nullable=False),
        sa.Column("policy_id", sa.Uuid(), nullable=True),
        sa.Column("response_due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolution_due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("first_response_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_breached", sa.Boolean(), nullable=False, default=False),
        sa.Column("resolution_breached", sa.Boolean(), nullable=False, default=False),
        sa.Column("response_breach_minutes", sa.Integer(), nullable=True),
        sa.Column("resolution_breach_minutes", sa.Integer(), nullable=True),
        sa.Column("pause_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pause_duration_minutes", sa.Integer(), nullable=False, default=0),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_to", sa.String(length=255), nullable=True),
        sa.Column("breach_notifications_sent", sa.Integer(), nullable=False, default=0),
        sa.Column("warnings_sent", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["ticket_id"], ["automation_tickets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["policy_id"], ["automation_sla_policies.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_automation_sla_tracking_ticket",
        "automation_ticket_sla_tracking",
        ["ticket_id"],
        unique=True,
    )
    op.create_index(
        "ix_automation_sla_tracking_resolution_due",
        "automation_ticket_sla_tracking",
        ["resolution_due_at"],
    )


def downgrade() -> None:
    """Drop the automation tables."""
    op.drop_table("automation_ticket_sla_tracking")
    op.drop_table("automation_sla_rules")
    op.drop_table("automation_sla_policies")
    op.drop_table("automation_ticket_comments")
    op.drop_table("automation_tickets")
    op.drop_table("automation_workflow_instances")
    op.drop_table("automation_workflows")
