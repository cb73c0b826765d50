"""Message builders for SLA breach, escalation and warning notices."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_automation.sla.calculator import format_duration

if TYPE_CHECKING:
    from litestar_automation.core.models import Ticket
    from litestar_automation.core.types import BreachType

__all__ = [
    "breach_broadcast",
    "breach_message",
    "escalation_message",
    "warning_broadcast",
]


def _client(ticket: Ticket) -> str:
    return ticket.client_name or "Unknown client"


def breach_message(ticket: Ticket, breach_type: BreachType, breach_minutes: int) -> tuple[str, str]:
    """Build the subject and body of a breach email.

    Returns:
        ``(subject, body)``.
    """
    label = str(breach_type).capitalize()
    duration = format_duration(breach_minutes)
    subject = f"[SLA BREACH] {_client(ticket)} - {ticket.subject} is {label} overdue by {duration}"
    body = (
        f"The {breach_type} SLA for ticket {ticket.id} has been breached.\n\n"
        f"Client: {_client(ticket)}\n"
        f"Subject: {ticket.subject}\n"
        f"Priority: {ticket.priority}\n"
        f"Status: {ticket.status}\n"
        f"Overdue by: {duration}\n"
    )
    return subject, body


def escalation_message(ticket: Ticket, breach_minutes: int) -> tuple[str, str]:
    """Build the subject and body of the notice sent to the escalation owner.

    Returns:
        ``(subject, body)``.
    """
    subject = f"[ESCALATION] {_client(ticket)} - {ticket.subject} requires your attention"
    body = (
        f"Ticket {ticket.id} has been escalated to you after breaching its resolution SLA "
        f"by {format_duration(breach_minutes)}.\n\n"
        f"Client: {_client(ticket)}\n"
        f"Subject: {ticket.subject}\n"
        f"Priority: {ticket.priority}\n"
    )
    return subject, body


def breach_broadcast(ticket: Ticket, breach_type: BreachType, breach_minutes: int) -> dict[str, Any]:
    """Build the real-time message announcing a breach."""
    return {
        "type": "sla_breach",
        "data": {
            "ticket_id": ticket.id,
            "breach_type": str(breach_type),
            "breach_minutes": breach_minutes,
            "priority": ticket.priority,
            "subject": ticket.subject,
        },
    }


def warning_broadcast(ticket: Ticket, breach_type: BreachType, minutes_remaining: int, threshold: int) -> dict[str, Any]:
    """Build the real-time message warning of an approaching breach."""
    return {
        "type": "sla_warning",
        "data": {
            "ticket_id": ticket.id,
            "breach_type": str(breach_type),
            "minutes_remaining": minutes_remaining,
            "threshold": threshold,
        },
    }
