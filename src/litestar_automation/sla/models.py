"""SLA policy, rule and tracking records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from litestar_automation.core.types import BreachType

if TYPE_CHECKING:
    from litestar_automation.core.models import Ticket

__all__ = ["SlaCheckResult", "SlaPolicy", "SlaRule", "TicketSlaTracking", "TrackedTicket"]


@dataclass
class SlaRule:
    """Response and resolution targets for one priority level.

    Attributes:
        priority: The ticket priority the rule applies to.
        response_time_minutes: Minutes allowed until the first response.
        resolution_time_hours: Hours allowed until resolution.
        escalation_time_minutes: Resolution breach minutes after which the
            ticket is escalated. None disables escalation.
        escalation_target: User the ticket is reassigned to on escalation.
        breach_notification_emails: Addresses notified of every breach.
    """

    priority: str
    response_time_minutes: int
    resolution_time_hours: int
    escalation_time_minutes: int | None = None
    escalation_target: str | None = None
    breach_notification_emails: list[str] = field(default_factory=list)


@dataclass
class SlaPolicy:
    """A named set of SLA rules, one per priority.

    Attributes:
        name: Display name of the policy.
        rules: Rules keyed implicitly by their priority.
        id: Unique identifier.
        is_default: Used for tickets whose client has no explicit policy.
    """

    name: str
    rules: list[SlaRule] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)
    is_default: bool = False

    def rule_for(self, priority: str) -> SlaRule | None:
        """Return the rule for ``priority``, or None if the policy has none."""
        for rule in self.rules:
            if rule.priority == priority:
                return rule
        return None


@dataclass
class TicketSlaTracking:
    """SLA state of one ticket.

    The due timestamps are computed once when tracking starts and never
    rewritten; pausing only accumulates ``pause_duration_minutes``.
    """

    ticket_id: str
    policy_id: UUID | None
    response_due_at: datetime
    resolution_due_at: datetime
    id: UUID = field(default_factory=uuid4)
    first_response_at: datetime | None = None
    resolved_at: datetime | None = None
    response_breached: bool = False
    resolution_breached: bool = False
    response_breach_minutes: int | None = None
    resolution_breach_minutes: int | None = None
    pause_start: datetime | None = None
    pause_duration_minutes: int = 0
    escalated_at: datetime | None = None
    escalated_to: str | None = None
    breach_notifications_sent: int = 0
    warnings_sent: set[str] = field(default_factory=set)

    @property
    def is_paused(self) -> bool:
        """Whether the SLA clock is currently paused."""
        return self.pause_start is not None

    def due_at(self, breach_type: BreachType) -> datetime:
        """Return the deadline for ``breach_type``."""
        return self.response_due_at if breach_type is BreachType.RESPONSE else self.resolution_due_at

    def is_breached(self, breach_type: BreachType) -> bool:
        """Return whether ``breach_type`` was already breached."""
        return self.response_breached if breach_type is BreachType.RESPONSE else self.resolution_breached

    def milestone_met(self, breach_type: BreachType) -> bool:
        """Return whether the milestone guarded by ``breach_type`` happened."""
        met = self.first_response_at if breach_type is BreachType.RESPONSE else self.resolved_at
        return met is not None


@dataclass
class TrackedTicket:
    """An open ticket joined with its SLA tracking and applicable rule.

    ``rule`` is None when the ticket's policy has no rule for its priority.
    """

    ticket: Ticket
    tracking: TicketSlaTracking
    rule: SlaRule | None


@dataclass
class SlaCheckResult:
    """Aggregate outcome of one SLA check run.

    The result is always returned, even when individual tickets failed, so
    partial success is visible in ``errors``.
    """

    tickets_checked: int = 0
    breaches_detected: int = 0
    escalations_triggered: int = 0
    notifications_sent: int = 0
    warnings_sent: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the result for logs and API responses."""
        return {
            "tickets_checked": self.tickets_checked,
            "breaches_detected": self.breaches_detected,
            "escalations_triggered": self.escalations_triggered,
            "notifications_sent": self.notifications_sent,
            "warnings_sent": self.warnings_sent,
            "errors": list(self.errors),
        }
