"""SQLAlchemy-backed implementations of the collaborator protocols.

Each store opens a short-lived session per call from an
:class:`~sqlalchemy.ext.asyncio.async_sessionmaker`, so stores are safe to
share between the workflow engine, the SLA checker and request handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from advanced_alchemy.exceptions import IntegrityError
from sqlalchemy import select

from litestar_automation.core.models import ActionLogEntry, Ticket, WorkflowInstanceData
from litestar_automation.core.types import PRIORITY_RANK, BreachType, InstanceStatus, TriggerType
from litestar_automation.db.models import (
    TicketCommentModel,
    TicketModel,
    TicketSlaTrackingModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
)
from litestar_automation.db.repositories import (
    SlaPolicyRepository,
    TicketCommentRepository,
    TicketRepository,
    TicketSlaTrackingRepository,
    WorkflowDefinitionRepository,
    WorkflowInstanceRepository,
)
from litestar_automation.exceptions import TicketNotFoundError
from litestar_automation.log import get_logger
from litestar_automation.sla.calculator import minutes_between
from litestar_automation.sla.models import SlaPolicy, SlaRule, TicketSlaTracking, TrackedTicket

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from litestar_automation.db.models import SlaPolicyModel

__all__ = ["SQLAlchemyDefinitionStore", "SQLAlchemyInstanceStore", "SQLAlchemyTicketStore"]

logger = get_logger(__name__)

_READ_ONLY_TICKET_FIELDS = frozenset({"id", "created_at", "updated_at"})


def _as_uuid(value: UUID | str | None) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def ticket_from_model(model: TicketModel) -> Ticket:
    """Convert a ticket row to a :class:`Ticket`."""
    return Ticket(
        id=str(model.id),
        subject=model.subject,
        priority=model.priority,
        status=model.status,
        client_id=model.client_id,
        client_name=model.client_name,
        assigned_to=model.assigned_to,
        assigned_group_id=model.assigned_group_id,
        sla_breached=model.sla_breached,
        escalated=model.escalated,
        tags=list(model.tags or []),
        created_at=model.created_at,
    )


def policy_from_model(model: SlaPolicyModel) -> SlaPolicy:
    """Convert a policy row and its rules to an :class:`SlaPolicy`."""
    return SlaPolicy(
        name=model.name,
        id=model.id,
        is_default=model.is_default,
        rules=[
            SlaRule(
                priority=rule.priority,
                response_time_minutes=rule.response_time_minutes,
                resolution_time_hours=rule.resolution_time_hours,
                escalation_time_minutes=rule.escalation_time_minutes,
                escalation_target=rule.escalation_target,
                breach_notification_emails=list(rule.breach_notification_emails or []),
            )
            for rule in model.rules
        ],
    )


def tracking_from_model(model: TicketSlaTrackingModel) -> TicketSlaTracking:
    """Convert a tracking row to a :class:`TicketSlaTracking`."""
    return TicketSlaTracking(
        id=model.id,
        ticket_id=str(model.ticket_id),
        policy_id=model.policy_id,
        response_due_at=model.response_due_at,
        resolution_due_at=model.resolution_due_at,
        first_response_at=model.first_response_at,
        resolved_at=model.resolved_at,
        response_breached=model.response_breached,
        resolution_breached=model.resolution_breached,
        response_breach_minutes=model.response_breach_minutes,
        resolution_breach_minutes=model.resolution_breach_minutes,
        pause_start=model.pause_start,
        pause_duration_minutes=model.pause_duration_minutes,
        escalated_at=model.escalated_at,
        escalated_to=model.escalated_to,
        breach_notifications_sent=model.breach_notifications_sent,
        warnings_sent=set(model.warnings_sent or []),
    )


def instance_from_model(model: WorkflowInstanceModel) -> WorkflowInstanceData:
    """Convert an instance row to :class:`WorkflowInstanceData`."""
    return WorkflowInstanceData(
        id=model.id,
        workflow_id=model.workflow_id,
        workflow_name=model.workflow_name,
        trigger_event_id=model.trigger_event_id,
        trigger_type=TriggerType(model.trigger_type),
        status=InstanceStatus(model.status),
        started_at=model.started_at,
        total_actions=model.total_actions,
        actions_completed=model.actions_completed,
        completed_at=model.completed_at,
        error_message=model.error_message,
        execution_log=[ActionLogEntry.from_dict(entry) for entry in model.execution_log or []],
        variables=dict(model.variables or {}),
    )


def _apply_instance(model: WorkflowInstanceModel, instance: WorkflowInstanceData) -> None:
    model.status = instance.status
    model.total_actions = instance.total_actions
    model.actions_completed = instance.actions_completed
    model.completed_at = instance.completed_at
    model.error_message = instance.error_message
    model.execution_log = [entry.to_dict() for entry in instance.execution_log]
    model.variables = dict(instance.variables)


class _SessionStore:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker


class SQLAlchemyDefinitionStore(_SessionStore):
    """Workflow definition store backed by ``automation_workflows``."""

    @staticmethod
    def _record(model: WorkflowDefinitionModel) -> dict[str, Any]:
        return {
            **model.definition_json,
            "id": str(model.id),
            "is_active": model.is_active,
            "execution_order": model.execution_order,
        }

    @staticmethod
    def _apply(model: WorkflowDefinitionModel, record: dict[str, Any]) -> None:
        model.name = record["name"]
        model.description = record.get("description")
        model.trigger_type = str(record["trigger_type"])
        model.definition_json = dict(record)
        model.is_active = bool(record.get("is_active", True))
        model.execution_order = int(record.get("execution_order", 0))

    async def list_active(self) -> Sequence[dict[str, Any]]:
        async with self.session_maker() as session:
            models = await WorkflowDefinitionRepository(session=session).list_active()
            return [self._record(model) for model in models]

    async def get(self, workflow_id: UUID) -> dict[str, Any] | None:
        async with self.session_maker() as session:
            model = await WorkflowDefinitionRepository(session=session).get_one_or_none(id=_as_uuid(workflow_id))
            return self._record(model) if model is not None else None

    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        model = WorkflowDefinitionModel(id=_as_uuid(record["id"]))
        self._apply(model, record)
        async with self.session_maker() as session:
            await WorkflowDefinitionRepository(session=session).add(model, auto_commit=True)
        return record

    async def update(self, workflow_id: UUID, record: dict[str, Any]) -> dict[str, Any] | None:
        async with self.session_maker() as session:
            repository = WorkflowDefinitionRepository(session=session)
            model = await repository.get_one_or_none(id=_as_uuid(workflow_id))
            if model is None:
                return None
            self._apply(model, record)
            await session.commit()
        return record

    async def delete(self, workflow_id: UUID) -> bool:
        async with self.session_maker() as session:
            repository = WorkflowDefinitionRepository(session=session)
            model = await repository.get_one_or_none(id=_as_uuid(workflow_id))
            if model is None:
                return False
            await repository.delete(model.id, auto_commit=True)
        return True


class SQLAlchemyInstanceStore(_SessionStore):
    """Workflow instance store backed by ``automation_workflow_instances``.

    The unique ``(workflow_id, trigger_event_id)`` index turns a redelivered
    event into advanced-alchemy's :class:`IntegrityError` (a
    ``DuplicateKeyError``), reported as ``False`` by :meth:`create`.
    """

    async def create(self, instance: WorkflowInstanceData) -> bool:
        model = WorkflowInstanceModel(
            id=instance.id,
            workflow_id=instance.workflow_id,
            workflow_name=instance.workflow_name,
            trigger_event_id=instance.trigger_event_id,
            trigger_type=str(instance.trigger_type),
            started_at=instance.started_at,
        )
        _apply_instance(model, instance)
        async with self.session_maker() as session:
            try:
                await WorkflowInstanceRepository(session=session).add(model, auto_commit=True)
            except IntegrityError:
                await session.rollback()
                logger.info(
                    "Duplicate workflow instance ignored",
                    extra={"workflow_id": str(instance.workflow_id), "event_id": str(instance.trigger_event_id)},
                )
                return False
        return True

    async def update(self, instance: WorkflowInstanceData) -> None:
        async with self.session_maker() as session:
            model = await WorkflowInstanceRepository(session=session).get_one_or_none(id=instance.id)
            if model is None:
                logger.warning("Workflow instance vanished before update", extra={"instance_id": str(instance.id)})
                return
            _apply_instance(model, instance)
            await session.commit()

    async def get(self, instance_id: UUID) -> WorkflowInstanceData | None:
        async with self.session_maker() as session:
            model = await WorkflowInstanceRepository(session=session).get_one_or_none(id=instance_id)
            return instance_from_model(model) if model is not None else None

    async def list(self, workflow_id: UUID | None = None, limit: int = 50) -> Sequence[WorkflowInstanceData]:
        async with self.session_maker() as session:
            models = await WorkflowInstanceRepository(session=session).find_recent(workflow_id, limit)
            return [instance_from_model(model) for model in models]


class SQLAlchemyTicketStore(_SessionStore):
    """Ticket and SLA store backed by the ticket, policy and tracking tables.

    Ticket ids are the string form of the ticket row's UUID. Ids that are
    not valid UUIDs never match a ticket.
    """

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        key = _as_uuid(ticket_id)
        if key is None:
            return None
        async with self.session_maker() as session:
            model = await TicketRepository(session=session).get_one_or_none(id=key)
            return ticket_from_model(model) if model is not None else None

    async def update_ticket(self, ticket_id: str, **changes: Any) -> Ticket:
        key = _as_uuid(ticket_id)
        async with self.session_maker() as session:
            model = await TicketRepository(session=session).get_one_or_none(id=key) if key else None
            if model is None:
                raise TicketNotFoundError(ticket_id)
            for name, value in changes.items():
                if name in _READ_ONLY_TICKET_FIELDS or name not in TicketModel.__table__.columns:
                    msg = f"Ticket field '{name}' cannot be updated"
                    raise AttributeError(msg)
                setattr(model, name, value)
            await session.commit()
            return ticket_from_model(model)

    async def add_comment(
        self,
        ticket_id: str,
        body: str,
        *,
        internal: bool = True,
        author: str | None = None,
    ) -> None:
        key = _as_uuid(ticket_id)
        async with self.session_maker() as session:
            if key is None or await TicketRepository(session=session).get_one_or_none(id=key) is None:
                raise TicketNotFoundError(ticket_id)
            comment = TicketCommentModel(ticket_id=key, body=body, internal=internal, author=author)
            await TicketCommentRepository(session=session).add(comment, auto_commit=True)

    async def get_policy(self, policy_id: UUID | str | None = None) -> SlaPolicy | None:
        async with self.session_maker() as session:
            repository = SlaPolicyRepository(session=session)
            if policy_id is None:
                model = await repository.get_default()
            else:
                key = _as_uuid(policy_id)
                model = await repository.get_one_or_none(id=key) if key else None
            return policy_from_model(model) if model is not None else None

    async def list_tracked_tickets(self) -> Sequence[TrackedTicket]:
        async with self.session_maker() as session:
            rows = await TicketSlaTrackingRepository(session=session).list_open()
            policies = SlaPolicyRepository(session=session)
            cache: dict[UUID | None, SlaPolicy | None] = {}
            tracked: list[TrackedTicket] = []
            for row in rows:
                if row.policy_id not in cache:
                    model = (
                        await policies.get_default()
                        if row.policy_id is None
                        else await policies.get_one_or_none(id=row.policy_id)
                    )
                    cache[row.policy_id] = policy_from_model(model) if model is not None else None
                ticket = ticket_from_model(row.ticket)
                policy = cache[row.policy_id]
                rule = policy.rule_for(ticket.priority) if policy is not None else None
                tracked.append(TrackedTicket(ticket, tracking_from_model(row), rule))
        tracked.sort(
            key=lambda item: (
                PRIORITY_RANK.get(item.ticket.priority, len(PRIORITY_RANK)),
                item.tracking.resolution_due_at,
            )
        )
        return tracked

    async def get_tracking(self, ticket_id: str) -> TicketSlaTracking | None:
        key = _as_uuid(ticket_id)
        if key is None:
            return None
        async with self.session_maker() as session:
            model = await TicketSlaTrackingRepository(session=session).get_by_ticket(key)
            return tracking_from_model(model) if model is not None else None

    async def create_tracking(self, tracking: TicketSlaTracking) -> TicketSlaTracking:
        key = _as_uuid(tracking.ticket_id)
        if key is None:
            raise TicketNotFoundError(tracking.ticket_id)
        async with self.session_maker() as session:
            repository = TicketSlaTrackingRepository(session=session)
            existing = await repository.get_by_ticket(key)
            if existing is not None:
                await session.delete(existing)
                await session.flush()
            model = TicketSlaTrackingModel(
                id=tracking.id,
                ticket_id=key,
                policy_id=tracking.policy_id,
                response_due_at=tracking.response_due_at,
                resolution_due_at=tracking.resolution_due_at,
                first_response_at=tracking.first_response_at,
                resolved_at=tracking.resolved_at,
                pause_start=tracking.pause_start,
                pause_duration_minutes=tracking.pause_duration_minutes,
                warnings_sent=sorted(tracking.warnings_sent),
            )
            await repository.add(model, auto_commit=True)
        return tracking

    async def _ticket_of(self, session: AsyncSession, tracking_id: UUID) -> UUID | None:
        result = await session.execute(
            select(TicketSlaTrackingModel.ticket_id).where(TicketSlaTrackingModel.id == tracking_id)
        )
        return result.scalar_one_or_none()

    async def mark_breach(self, tracking_id: UUID, breach_type: BreachType, breach_minutes: int) -> bool:
        async with self.session_maker() as session:
            repository = TicketSlaTrackingRepository(session=session)
            if breach_type is BreachType.RESPONSE:
                changed = await repository.set_response_breach(tracking_id, breach_minutes)
            else:
                changed = await repository.set_resolution_breach(tracking_id, breach_minutes)
            if changed:
                ticket_id = await self._ticket_of(session, tracking_id)
                if ticket_id is not None:
                    await TicketRepository(session=session).mark_sla_breached(ticket_id)
            await session.commit()
        return changed

    async def increment_breach_notifications(self, tracking_id: UUID, count: int) -> None:
        async with self.session_maker() as session:
            await TicketSlaTrackingRepository(session=session).add_breach_notifications(tracking_id, count)
            await session.commit()

    async def record_escalation(self, tracking_id: UUID, escalated_to: str, escalated_at: datetime) -> bool:
        async with self.session_maker() as session:
            changed = await TicketSlaTrackingRepository(session=session).set_escalation(
                tracking_id, escalated_to, escalated_at
            )
            if changed:
                ticket_id = await self._ticket_of(session, tracking_id)
                if ticket_id is not None:
                    await TicketRepository(session=session).escalate(ticket_id, escalated_to)
            await session.commit()
        return changed

    async def mark_warning_sent(self, tracking_id: UUID, marker: str) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(
                select(TicketSlaTrackingModel)
                .where(TicketSlaTrackingModel.id == tracking_id)
                .with_for_update(of=TicketSlaTrackingModel)
            )
            model = result.unique().scalar_one_or_none()
            if model is None or marker in (model.warnings_sent or []):
                return False
            model.warnings_sent = [*(model.warnings_sent or []), marker]
            await session.commit()
        return True

    async def pause_tracking(self, ticket_id: str, paused_at: datetime) -> bool:
        key = _as_uuid(ticket_id)
        if key is None:
            return False
        async with self.session_maker() as session:
            changed = await TicketSlaTrackingRepository(session=session).set_pause_start(key, paused_at)
            await session.commit()
        return changed

    async def resume_tracking(self, ticket_id: str, resumed_at: datetime) -> int | None:
        key = _as_uuid(ticket_id)
        if key is None:
            return None
        async with self.session_maker() as session:
            repository = TicketSlaTrackingRepository(session=session)
            model = await repository.get_by_ticket(key)
            if model is None or model.pause_start is None:
                return None
            added = max(0, minutes_between(model.pause_start, resumed_at))
            changed = await repository.clear_pause(key, model.pause_start, added)
            await session.commit()
        return added if changed else None

    async def record_first_response(self, ticket_id: str, responded_at: datetime) -> bool:
        key = _as_uuid(ticket_id)
        if key is None:
            return False
        async with self.session_maker() as session:
            changed = await TicketSlaTrackingRepository(session=session).set_first_response(key, responded_at)
            await session.commit()
        return changed

    async def record_resolution(self, ticket_id: str, resolved_at: datetime) -> bool:
        key = _as_uuid(ticket_id)
        if key is None:
            return False
        async with self.session_maker() as session:
            changed = await TicketSlaTrackingRepository(session=session).set_resolved(key, resolved_at)
            await session.commit()
        return changed
