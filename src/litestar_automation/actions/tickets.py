"""Ticket mutation actions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_automation.actions.base import TicketAction
from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType, TicketPriority

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext
    from litestar_automation.core.models import Ticket

__all__ = [
    "AddTicketCommentAction",
    "AddTicketTagAction",
    "AssignTicketAction",
    "AssignToGroupAction",
    "EscalateTicketAction",
    "RemoveTicketTagAction",
    "UpdateTicketPriorityAction",
    "UpdateTicketStatusAction",
]


class AssignTicketAction(TicketAction):
    """Assign the ticket to a technician given by ``user_id``."""

    action_type = ActionType.ASSIGN_TICKET

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "user_id"):
            return missing
        user_id = str(parameters["user_id"])
        await self.tickets.update_ticket(ticket.id, assigned_to=user_id)
        return ActionResult.ok({"ticket_id": ticket.id, "assigned_to": user_id})


class AssignToGroupAction(TicketAction):
    """Assign the ticket to a team given by ``group_id``."""

    action_type = ActionType.ASSIGN_TO_GROUP

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "group_id"):
            return missing
        group_id = str(parameters["group_id"])
        await self.tickets.update_ticket(ticket.id, assigned_group_id=group_id)
        return ActionResult.ok({"ticket_id": ticket.id, "assigned_group_id": group_id})


class UpdateTicketStatusAction(TicketAction):
    """Move the ticket to ``status``."""

    action_type = ActionType.UPDATE_TICKET_STATUS

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "status"):
            return missing
        status = str(parameters["status"])
        await self.tickets.update_ticket(ticket.id, status=status)
        return ActionResult.ok({"ticket_id": ticket.id, "old_status": ticket.status, "new_status": status})


class UpdateTicketPriorityAction(TicketAction):
    """Change the ticket priority to one of critical, high, medium or low."""

    action_type = ActionType.UPDATE_TICKET_PRIORITY

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "priority"):
            return missing
        try:
            priority = TicketPriority(str(parameters["priority"]).lower())
        except ValueError:
            return ActionResult.failure(f"Unknown priority {parameters['priority']!r}")
        await self.tickets.update_ticket(ticket.id, priority=str(priority))
        return ActionResult.ok({"ticket_id": ticket.id, "old_priority": ticket.priority, "new_priority": priority})


class AddTicketCommentAction(TicketAction):
    """Add a comment; internal unless ``internal`` is False."""

    action_type = ActionType.ADD_TICKET_COMMENT

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "comment"):
            return missing
        internal = bool(parameters.get("internal", True))
        await self.tickets.add_comment(
            ticket.id,
            str(parameters["comment"]),
            internal=internal,
            author=parameters.get("author"),
        )
        return ActionResult.ok({"ticket_id": ticket.id, "internal": internal})


class AddTicketTagAction(TicketAction):
    """Add ``tag`` to the ticket if it is not already present."""

    action_type = ActionType.ADD_TICKET_TAG

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "tag"):
            return missing
        tag = str(parameters["tag"])
        if tag in ticket.tags:
            return ActionResult.ok({"ticket_id": ticket.id, "tags": list(ticket.tags), "changed": False})
        tags = [*ticket.tags, tag]
        await self.tickets.update_ticket(ticket.id, tags=tags)
        return ActionResult.ok({"ticket_id": ticket.id, "tags": tags, "changed": True})


class RemoveTicketTagAction(TicketAction):
    """Remove ``tag`` from the ticket."""

    action_type = ActionType.REMOVE_TICKET_TAG

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "tag"):
            return missing
        tag = str(parameters["tag"])
        tags = [existing for existing in ticket.tags if existing != tag]
        if len(tags) != len(ticket.tags):
            await self.tickets.update_ticket(ticket.id, tags=tags)
        return ActionResult.ok({"ticket_id": ticket.id, "tags": tags, "changed": len(tags) != len(ticket.tags)})


class EscalateTicketAction(TicketAction):
    """Flag the ticket as escalated, optionally reassigning it.

    Parameters:
        escalate_to: Optional user the ticket is reassigned to.
        reason: Optional reason, recorded as an internal comment.
    """

    action_type = ActionType.ESCALATE_TICKET

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        changes: dict[str, Any] = {"escalated": True}
        escalate_to = parameters.get("escalate_to")
        if escalate_to:
            changes["assigned_to"] = str(escalate_to)
        await self.tickets.update_ticket(ticket.id, **changes)

        reason = parameters.get("reason")
        if reason:
            await self.tickets.add_comment(ticket.id, f"Escalated: {reason}", internal=True)
        return ActionResult.ok({"ticket_id": ticket.id, "escalated_to": changes.get("assigned_to")})
