"""SQLAlchemy models for automation persistence.

This module defines the database models backing the SQLAlchemy stores:
- WorkflowDefinitionModel: Stores serialized workflow definitions
- WorkflowInstanceModel: Stores workflow executions and their action logs
- TicketModel: The ticket fields workflows and the SLA checker work with
- SlaPolicyModel / SlaRuleModel: SLA targets per priority
- TicketSlaTrackingModel: Per-ticket SLA deadlines and breach state
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from advanced_alchemy.base import UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import JSON, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litestar_automation.core.types import InstanceStatus

__all__ = [
    "SlaPolicyModel",
    "SlaRuleModel",
    "TicketCommentModel",
    "TicketModel",
    "TicketSlaTrackingModel",
    "WorkflowDefinitionModel",
    "WorkflowInstanceModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")


class WorkflowDefinitionModel(UUIDAuditBase):
    """Persisted workflow definition.

    The full definition lives in ``definition_json``; the other columns are
    denormalized for querying.

    Attributes:
        name: Display name of the workflow.
        description: Human-readable description.
        trigger_type: Event type the workflow reacts to.
        definition_json: Serialized WorkflowDefinition.
        is_active: Whether the workflow is loaded by the registry.
        execution_order: Evaluation order among matching workflows.
        instances: Executions of this workflow.
    """

    __tablename__ = "automation_workflows"
    __table_args__ = (Index("ix_automation_workflows_active_order", "is_active", "execution_order"),)

    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger_type: Mapped[str] = mapped_column(String(50), index=True)
    definition_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    is_active: Mapped[bool] = mapped_column(default=True)
    execution_order: Mapped[int] = mapped_column(default=0)

    instances: Mapped[list[WorkflowInstanceModel]] = relationship(
        back_populates="workflow",
        lazy="noload",
        passive_deletes=True,
    )


class WorkflowInstanceModel(UUIDAuditBase):
    """One execution of a workflow against one trigger event.

    The unique index on ``(workflow_id, trigger_event_id)`` makes redelivered
    events a no-op.

    Attributes:
        workflow_id: Foreign key to the workflow definition.
        workflow_name: Denormalized workflow name.
        trigger_event_id: Identifier of the triggering event.
        trigger_type: Type of the triggering event.
        status: Current execution status.
        total_actions: Number of actions in the definition.
        actions_completed: Number of actions that have run.
        execution_log: Per-action outcomes as JSON.
        variables: Instance variables as JSON.
        error_message: Why the execution failed or was cancelled.
        started_at: When the execution was created.
        completed_at: When the execution reached a terminal status.
    """

    __tablename__ = "automation_workflow_instances"
    __table_args__ = (
        Index("ix_automation_instances_workflow_event", "workflow_id", "trigger_event_id", unique=True),
        Index("ix_automation_instances_status", "status"),
        Index("ix_automation_instances_started_at", "started_at"),
    )

    workflow_id: Mapped[UUID] = mapped_column(ForeignKey("automation_workflows.id", ondelete="CASCADE"))
    workflow_name: Mapped[str] = mapped_column(String(255))
    trigger_event_id: Mapped[UUID] = mapped_column(Uuid)
    trigger_type: Mapped[str] = mapped_column(String(50))
    status: Mapped[InstanceStatus] = mapped_column(
        Enum(InstanceStatus, native_enum=False, length=50),
        default=InstanceStatus.PENDING,
    )
    total_actions: Mapped[int] = mapped_column(default=0)
    actions_completed: Mapped[int] = mapped_column(default=0)
    execution_log: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    variables: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)

    workflow: Mapped[WorkflowDefinitionModel] = relationship(back_populates="instances", lazy="noload")


class TicketModel(UUIDAuditBase):
    """Ticket columns read and written by automation.

    Attributes:
        subject: Ticket subject line.
        priority: Priority level.
        status: Ticket status.
        client_id: Owning client.
        client_name: Denormalized client name.
        assigned_to: Assigned technician.
        assigned_group_id: Assigned team.
        sla_breached: Whether any SLA target was breached.
        escalated: Whether the ticket was escalated.
        tags: Free-form labels as JSON.
    """

    __tablename__ = "automation_tickets"
    __table_args__ = (Index("ix_automation_tickets_status", "status"),)

    subject: Mapped[str] = mapped_column(String(500))
    priority: Mapped[str] = mapped_column(String(20), default="medium")
    status: Mapped[str] = mapped_column(String(50), default="new")
    client_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_group_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sla_breached: Mapped[bool] = mapped_column(default=False)
    escalated: Mapped[bool] = mapped_column(default=False)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list)

    comments: Mapped[list[TicketCommentModel]] = relationship(
        back_populates="ticket",
        lazy="noload",
        passive_deletes=True,
    )


class TicketCommentModel(UUIDAuditBase):
    """A comment added to a ticket by automation."""

    __tablename__ = "automation_ticket_comments"

    ticket_id: Mapped[UUID] = mapped_column(ForeignKey("automation_tickets.id", ondelete="CASCADE"), index=True)
    body: Mapped[str] = mapped_column(Text)
    internal: Mapped[bool] = mapped_column(default=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)

    ticket: Mapped[TicketModel] = relationship(back_populates="comments", lazy="noload")


class SlaPolicyModel(UUIDAuditBase):
    """A named set of SLA rules.

    Attributes:
        name: Display name.
        is_default: Applied when no policy is given.
        rules: One rule per priority, loaded eagerly.
    """

    __tablename__ = "automation_sla_policies"

    name: Mapped[str] = mapped_column(String(255))
    is_default: Mapped[bool] = mapped_column(default=False)

    rules: Mapped[list[SlaRuleModel]] = relationship(
        back_populates="policy",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class SlaRuleModel(UUIDAuditBase):
    """SLA targets of one priority within a policy."""

    __tablename__ = "automation_sla_rules"
    __table_args__ = (Index("ix_automation_sla_rules_policy_priority", "policy_id", "priority", unique=True),)

    policy_id: Mapped[UUID] = mapped_column(ForeignKey("automation_sla_policies.id", ondelete="CASCADE"))
    priority: Mapped[str] = mapped_column(String(20))
    response_time_minutes: Mapped[int]
    resolution_time_hours: Mapped[int]
    escalation_time_minutes: Mapped[int | None] = mapped_column(nullable=True)
    escalation_target: Mapped[str | None] = mapped_column(String(255), nullable=True)
    breach_notification_emails: Mapped[list[str]] = mapped_column(JSONType, default=list)

    policy: Mapped[SlaPolicyModel] = relationship(back_populates="rules")


class TicketSlaTrackingModel(UUIDAuditBase):
    """SLA deadlines and breach state of one ticket.

    Breach flags, ``escalated_at`` and ``first_response_at`` /
    ``resolved_at`` are only ever set through conditional updates.
    """

    __tablename__ = "automation_ticket_sla_tracking"
    __table_args__ = (
        Index("ix_automation_sla_tracking_ticket", "ticket_id", unique=True),
        Index("ix_automation_sla_tracking_resolution_due", "resolution_due_at"),
    )

    ticket_id: Mapped[UUID] = mapped_column(ForeignKey("automation_tickets.id", ondelete="CASCADE"))
    policy_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("automation_sla_policies.id", ondelete="SET NULL"),
        nullable=True,
    )
    response_due_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    resolution_due_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    first_response_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    response_breached: Mapped[bool] = mapped_column(default=False)
    resolution_breached: Mapped[bool] = mapped_column(default=False)
    response_breach_minutes: Mapped[int | None] = mapped_column(nullable=True)
    resolution_breach_minutes: Mapped[int | None] = mapped_column(nullable=True)
    pause_start: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    pause_duration_minutes: Mapped[int] = mapped_column(default=0)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    escalated_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    breach_notifications_sent: Mapped[int] = mapped_column(default=0)
    warnings_sent: Mapped[list[str]] = mapped_column(JSONType, default=list)

    ticket: Mapped[TicketModel] = relationship(lazy="joined", innerjoin=True)
