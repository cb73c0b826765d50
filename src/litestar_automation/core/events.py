"""Trigger events consumed by the workflow engine.

A :class:`TriggerEvent` is an immutable fact describing something that
happened (a ticket was created, an SLA was breached, ...). It is the only
input to workflow matching. Collaborators build events with the factory
classmethods so payload keys stay consistent with what trigger configs and
conditions expect.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from litestar_automation.core.types import BreachType, EventSource, TriggerType

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ["TriggerEvent"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TriggerEvent:
    """An immutable event that may start one or more workflows.

    Attributes:
        trigger_type: What kind of event this is.
        payload: Read-only key/value data describing the event.
        event_id: Unique identifier, used to make delivery idempotent.
        occurred_at: When the event happened.
        source: Which subsystem produced the event.
        correlation_id: Optional id tying related events together.

    Example:
        >>> event = TriggerEvent.ticket_created(
        ...     ticket_id="42", priority="critical", client_id="acme"
        ... )
        >>> event.payload["priority"]
        'critical'
    """

    trigger_type: TriggerType
    payload: Mapping[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)
    source: EventSource = EventSource.SYSTEM
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "trigger_type", TriggerType(self.trigger_type))
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def with_correlation_id(self, correlation_id: str) -> TriggerEvent:
        """Return a copy of this event carrying ``correlation_id``."""
        return replace(self, payload=dict(self.payload), correlation_id=correlation_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the event to a JSON-compatible dictionary."""
        return {
            "event_id": str(self.event_id),
            "trigger_type": str(self.trigger_type),
            "payload": dict(self.payload),
            "occurred_at": self.occurred_at.isoformat(),
            "source": str(self.source),
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def ticket_created(
        cls,
        ticket_id: str | UUID,
        priority: str,
        client_id: str | UUID | None = None,
        **extra: Any,
    ) -> TriggerEvent:
        """Build a ``ticket_created`` event.

        Args:
            ticket_id: The new ticket.
            priority: The ticket priority.
            client_id: The client the ticket belongs to.
            **extra: Further payload fields such as ``subject`` or ``client_name``.
        """
        payload = {
            "ticket_id": str(ticket_id),
            "priority": priority,
            "client_id": str(client_id) if client_id is not None else None,
            **extra,
        }
        return cls(TriggerType.TICKET_CREATED, payload, source=EventSource.USER)

    @classmethod
    def ticket_status_changed(
        cls,
        ticket_id: str | UUID,
        old_status: str,
        new_status: str,
        changed_by: str | UUID | None = None,
        **extra: Any,
    ) -> TriggerEvent:
        """Build a ``ticket_status_changed`` event."""
        payload = {
            "ticket_id": str(ticket_id),
            "old_status": old_status,
            "new_status": new_status,
            "changed_by": str(changed_by) if changed_by is not None else None,
            **extra,
        }
        return cls(TriggerType.TICKET_STATUS_CHANGED, payload, source=EventSource.USER)

    @classmethod
    def ticket_assigned(
        cls,
        ticket_id: str | UUID,
        assigned_to: str | UUID,
        assigned_by: str | UUID | None = None,
        **extra: Any,
    ) -> TriggerEvent:
        """Build a ``ticket_assigned`` event."""
        payload = {
            "ticket_id": str(ticket_id),
            "assigned_to": str(assigned_to),
            "assigned_by": str(assigned_by) if assigned_by is not None else None,
            **extra,
        }
        return cls(TriggerType.TICKET_ASSIGNED, payload, source=EventSource.USER)

    @classmethod
    def sla_breach(
        cls,
        ticket_id: str | UUID,
        breach_type: BreachType | str,
        breach_minutes: int,
        assigned_to: str | UUID | None = None,
        **extra: Any,
    ) -> TriggerEvent:
        """Build an ``sla_breach`` event raised by the SLA checker."""
        payload = {
            "ticket_id": str(ticket_id),
            "breach_type": str(breach_type),
            "breach_minutes": breach_minutes,
            "assigned_to": str(assigned_to) if assigned_to is not None else None,
            **extra,
        }
        return cls(TriggerType.SLA_BREACH, payload, source=EventSource.SCHEDULER)

    @classmethod
    def sla_warning(
        cls,
        ticket_id: str | UUID,
        breach_type: BreachType | str,
        minutes_remaining: int,
        **extra: Any,
    ) -> TriggerEvent:
        """Build an ``sla_warning`` event raised by the SLA checker."""
        payload = {
            "ticket_id": str(ticket_id),
            "breach_type": str(breach_type),
            "minutes_remaining": minutes_remaining,
            **extra,
        }
        return cls(TriggerType.SLA_WARNING, payload, source=EventSource.SCHEDULER)

    @classmethod
    def ticket_escalated(
        cls,
        ticket_id: str | UUID,
        escalated_to: str | UUID,
        reason: str,
        **extra: Any,
    ) -> TriggerEvent:
        """Build a ``ticket_escalated`` event."""
        payload = {
            "ticket_id": str(ticket_id),
            "escalated_to": str(escalated_to),
            "reason": reason,
            **extra,
        }
        return cls(TriggerType.TICKET_ESCALATED, payload, source=EventSource.SCHEDULER)

    @classmethod
    def email_received(cls, from_address: str, subject: str, body: str, **extra: Any) -> TriggerEvent:
        """Build an ``email_received`` event."""
        payload = {"from": from_address, "subject": subject, "body": body, **extra}
        return cls(TriggerType.EMAIL_RECEIVED, payload, source=EventSource.EMAIL)

    @classmethod
    def webhook_received(cls, webhook_id: str, data: Mapping[str, Any]) -> TriggerEvent:
        """Build a ``webhook_received`` event."""
        return cls(
            TriggerType.WEBHOOK_RECEIVED,
            {"webhook_id": webhook_id, "data": dict(data)},
            source=EventSource.WEBHOOK,
        )

    @classmethod
    def manual(cls, payload: Mapping[str, Any], triggered_by: str | UUID | None = None) -> TriggerEvent:
        """Build a ``manual`` event for operator-started workflows."""
        data = dict(payload)
        if triggered_by is not None:
            data["triggered_by"] = str(triggered_by)
        return cls(TriggerType.MANUAL, data, source=EventSource.USER)
