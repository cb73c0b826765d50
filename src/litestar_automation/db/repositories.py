"""Repository implementations for automation persistence.

This module provides async repositories for the automation models using
advanced-alchemy's repository pattern. The conditional updates used by the
SLA checker live here so they are issued as single ``UPDATE ... WHERE``
statements.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from advanced_alchemy.filters import LimitOffset, OrderBy
from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import select, update

from litestar_automation.core.types import CLOSED_TICKET_STATUSES
from litestar_automation.db.models import (
    SlaPolicyModel,
    TicketCommentModel,
    TicketModel,
    TicketSlaTrackingModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "SlaPolicyRepository",
    "TicketCommentRepository",
    "TicketRepository",
    "TicketSlaTrackingRepository",
    "WorkflowDefinitionRepository",
    "WorkflowInstanceRepository",
]


class WorkflowDefinitionRepository(SQLAlchemyAsyncRepository[WorkflowDefinitionModel]):
    """Repository for workflow definition CRUD operations."""

    model_type = WorkflowDefinitionModel

    async def list_active(self) -> Sequence[WorkflowDefinitionModel]:
        """List active workflow definitions in execution order.

        Returns:
            Active definitions ordered by ``execution_order`` ascending.
        """
        stmt = (
            select(WorkflowDefinitionModel)
            .where(WorkflowDefinitionModel.is_active == True)  # noqa: E712
            .order_by(WorkflowDefinitionModel.execution_order, WorkflowDefinitionModel.created_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class WorkflowInstanceRepository(SQLAlchemyAsyncRepository[WorkflowInstanceModel]):
    """Repository for workflow instance CRUD operations."""

    model_type = WorkflowInstanceModel

    async def find_recent(
        self,
        workflow_id: UUID | None = None,
        limit: int = 50,
    ) -> Sequence[WorkflowInstanceModel]:
        """Find instances, newest first.

        Args:
            workflow_id: Optional workflow filter.
            limit: Maximum number of results.

        Returns:
            Instances ordered by ``started_at`` descending.
        """
        filters: list[Any] = []
        if workflow_id is not None:
            filters.append(WorkflowInstanceModel.workflow_id == workflow_id)
        return await self.list(
            *filters,
            LimitOffset(limit=limit, offset=0),
            OrderBy(field_name="started_at", sort_order="desc"),
        )


class TicketRepository(SQLAlchemyAsyncRepository[TicketModel]):
    """Repository for ticket CRUD operations."""

    model_type = TicketModel

    async def mark_sla_breached(self, ticket_id: UUID) -> None:
        """Set the ticket's ``sla_breached`` flag."""
        stmt = update(TicketModel).where(TicketModel.id == ticket_id).values(sla_breached=True)
        await self.session.execute(stmt)

    async def escalate(self, ticket_id: UUID, escalated_to: str) -> None:
        """Reassign the ticket to ``escalated_to`` and flag it escalated."""
        stmt = (
            update(TicketModel)
            .where(TicketModel.id == ticket_id)
            .values(assigned_to=escalated_to, escalated=True)
        )
        await self.session.execute(stmt)


class TicketCommentRepository(SQLAlchemyAsyncRepository[TicketCommentModel]):
    """Repository for ticket comments."""

    model_type = TicketCommentModel


class SlaPolicyRepository(SQLAlchemyAsyncRepository[SlaPolicyModel]):
    """Repository for SLA policies and their rules."""

    model_type = SlaPolicyModel

    async def get_default(self) -> SlaPolicyModel | None:
        """Get the default policy, falling back to the oldest policy.

        Returns:
            The default policy or None when no policy exists.
        """
        stmt = (
            select(SlaPolicyModel)
            .order_by(SlaPolicyModel.is_default.desc(), SlaPolicyModel.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class TicketSlaTrackingRepository(SQLAlchemyAsyncRepository[TicketSlaTrackingModel]):
    """Repository for SLA tracking rows.

    Every ``set_*`` method is a conditional update that returns whether a
    row changed, so concurrent checker runs cannot both claim the same
    transition.
    """

    model_type = TicketSlaTrackingModel

    async def get_by_ticket(self, ticket_id: UUID) -> TicketSlaTrackingModel | None:
        """Get the tracking row of a ticket."""
        stmt = select(TicketSlaTrackingModel).where(TicketSlaTrackingModel.ticket_id == ticket_id)
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def list_open(self) -> Sequence[TicketSlaTrackingModel]:
        """List tracking rows of tickets that are not resolved, closed or cancelled.

        Returns:
            Tracking rows with their ticket joined, soonest resolution deadline first.
        """
        stmt = (
            select(TicketSlaTrackingModel)
            .join(TicketModel, TicketSlaTrackingModel.ticket_id == TicketModel.id)
            .where(TicketModel.status.not_in(CLOSED_TICKET_STATUSES))
            .order_by(TicketSlaTrackingModel.resolution_due_at)
        )
        result = await self.session.execute(stmt)
        return result.unique().scalars().all()

    async def _conditional_update(self, *where: Any, **values: Any) -> bool:
        stmt = update(TicketSlaTrackingModel).where(*where).values(**values)
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def set_response_breach(self, tracking_id: UUID, breach_minutes: int) -> bool:
        """Flag the response breach if it is not flagged yet."""
        return await self._conditional_update(
            TicketSlaTrackingModel.id == tracking_id,
            TicketSlaTrackingModel.response_breached == False,  # noqa: E712
            response_breached=True,
            response_breach_minutes=breach_minutes,
        )

    async def set_resolution_breach(self, tracking_id: UUID, breach_minutes: int) -> bool:
        """Flag the resolution breach if it is not flagged yet."""
        return await self._conditional_update(
            TicketSlaTrackingModel.id == tracking_id,
            TicketSlaTrackingModel.resolution_breached == False,  # noqa: E712
            resolution_breached=True,
            resolution_breach_minutes=breach_minutes,
        )

    async def set_escalation(self, tracking_id: UUID, escalated_to: str, escalated_at: Any) -> bool:
        """Record the escalation if the row was not escalated yet."""
        return await self._conditional_update(
            TicketSlaTrackingModel.id == tracking_id,
            TicketSlaTrackingModel.escalated_at.is_(None),
            escalated_at=escalated_at,
            escalated_to=escalated_to,
        )

    async def add_breach_notifications(self, tracking_id: UUID, count: int) -> None:
        """Increment ``breach_notifications_sent`` in place."""
        await self._conditional_update(
            TicketSlaTrackingModel.id == tracking_id,
            breach_notifications_sent=TicketSlaTrackingModel.breach_notifications_sent + count,
        )

    async def set_pause_start(self, ticket_id: UUID, paused_at: Any) -> bool:
        """Start a pause if the clock is running."""
        return await self._conditional_update(
            TicketSlaTrackingModel.ticket_id == ticket_id,
            TicketSlaTrackingModel.pause_start.is_(None),
            pause_start=paused_at,
        )

    async def clear_pause(self, ticket_id: UUID, paused_at: Any, added_minutes: int) -> bool:
        """End the pause started at ``paused_at`` and accumulate its length."""
        return await self._conditional_update(
            TicketSlaTrackingModel.ticket_id == ticket_id,
            TicketSlaTrackingModel.pause_start == paused_at,
            pause_start=None,
            pause_duration_minutes=TicketSlaTrackingModel.pause_duration_minutes + added_minutes,
        )

    async def set_first_response(self, ticket_id: UUID, responded_at: Any) -> bool:
        """Set ``first_response_at`` if it is not set yet."""
        return await self._conditional_update(
            TicketSlaTrackingModel.ticket_id == ticket_id,
            TicketSlaTrackingModel.first_response_at.is_(None),
            first_response_at=responded_at,
        )

    async def set_resolved(self, ticket_id: UUID, resolved_at: Any) -> bool:
        """Set ``resolved_at`` if it is not set yet."""
        return await self._conditional_update(
            TicketSlaTrackingModel.ticket_id == ticket_id,
            TicketSlaTrackingModel.resolved_at.is_(None),
            resolved_at=resolved_at,
        )
