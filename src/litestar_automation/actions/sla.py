"""SLA actions: apply a policy, pause and resume the SLA clock."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from litestar_automation.actions.base import TicketAction
from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType
from litestar_automation.sla.calculator import SlaCalculator
from litestar_automation.sla.models import TicketSlaTracking

if TYPE_CHECKING:
    from uuid import UUID

    from litestar_automation.core.context import ExecutionContext
    from litestar_automation.core.models import Ticket
    from litestar_automation.core.protocols import SlaStore, TicketStore

__all__ = ["ApplySlaPolicyAction", "PauseSlaAction", "ResumeSlaAction"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlaAction(TicketAction):
    """Base for SLA actions; needs both the ticket and the SLA store."""

    def __init__(
        self,
        tickets: TicketStore,
        sla_store: SlaStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(tickets)
        self.sla_store = sla_store
        self.clock = clock


class ApplySlaPolicyAction(SlaAction):
    """Start SLA tracking for the ticket with a policy.

    Deadlines are computed from the time the action runs. ``policy_id``
    selects the policy; the default policy is used when it is omitted.
    """

    action_type = ActionType.APPLY_SLA_POLICY

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        policy_id: UUID | str | None = parameters.get("policy_id")
        policy = await self.sla_store.get_policy(policy_id)  # type: ignore[arg-type]
        if policy is None:
            return ActionResult.failure(f"SLA policy '{policy_id or 'default'}' not found")
        rule = policy.rule_for(ticket.priority)
        if rule is None:
            return ActionResult.failure(f"SLA policy '{policy.name}' has no rule for priority '{ticket.priority}'")

        response_due_at, resolution_due_at = SlaCalculator.compute_due_dates(rule, self.clock())
        await self.sla_store.create_tracking(
            TicketSlaTracking(
                ticket_id=ticket.id,
                policy_id=policy.id,
                response_due_at=response_due_at,
                resolution_due_at=resolution_due_at,
            )
        )
        return ActionResult.ok(
            {
                "ticket_id": ticket.id,
                "policy_id": str(policy.id),
                "response_due_at": response_due_at.isoformat(),
                "resolution_due_at": resolution_due_at.isoformat(),
            }
        )


class PauseSlaAction(SlaAction):
    """Pause the ticket's SLA clock; a no-op when it is already paused."""

    action_type = ActionType.PAUSE_SLA

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        paused = await self.sla_store.pause_tracking(ticket.id, self.clock())
        return ActionResult.ok({"ticket_id": ticket.id, "paused": paused})


class ResumeSlaAction(SlaAction):
    """Resume the ticket's SLA clock; a no-op when it is not paused."""

    action_type = ActionType.RESUME_SLA

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        added = await self.sla_store.resume_tracking(ticket.id, self.clock())
        return ActionResult.ok({"ticket_id": ticket.id, "resumed": added is not None, "paused_minutes": added})
