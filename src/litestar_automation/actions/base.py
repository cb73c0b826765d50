"""Base action implementations for litestar-automation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from litestar_automation.core.context import ActionResult
from litestar_automation.exceptions import TicketNotFoundError

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext
    from litestar_automation.core.models import Ticket
    from litestar_automation.core.protocols import TicketStore
    from litestar_automation.core.types import ActionType

__all__ = ["BaseAction", "TicketAction"]


class BaseAction:
    """Base implementation shared by all action handlers.

    Subclasses set :attr:`action_type` and implement :meth:`execute`.
    Expected failures (a missing parameter, a payload without a ticket)
    are returned as failed results; collaborator errors are raised so the
    executor can retry them.
    """

    action_type: ClassVar[ActionType]
    """Type of action this handler executes."""

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        """Execute the action with rendered ``parameters``.

        Args:
            parameters: Action parameters with templates already rendered.
            context: The execution context of the running instance.

        Returns:
            The outcome of the action.

        Raises:
            NotImplementedError: Must be implemented by subclasses.
        """
        msg = f"Action handler {type(self).__name__} must implement execute()"
        raise NotImplementedError(msg)

    @staticmethod
    def require(parameters: dict[str, Any], *names: str) -> ActionResult | None:
        """Return a failed result naming the first missing parameter, if any."""
        for name in names:
            if parameters.get(name) in (None, ""):
                return ActionResult.failure(f"Missing required parameter '{name}'")
        return None


class TicketAction(BaseAction):
    """Base for actions that operate on the ticket named in the event payload."""

    def __init__(self, tickets: TicketStore) -> None:
        """Initialize the handler.

        Args:
            tickets: Store used to read and mutate tickets.
        """
        self.tickets = tickets

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        ticket_id = parameters.get("ticket_id") or context.ticket_id
        if not ticket_id:
            return ActionResult.failure("No ticket_id in event payload")
        ticket = await self.tickets.get_ticket(str(ticket_id))
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return await self.apply(ticket, parameters, context)

    async def apply(self, ticket: Ticket, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        """Apply the action to ``ticket``.

        Raises:
            NotImplementedError: Must be implemented by subclasses.
        """
        msg = f"Ticket action {type(self).__name__} must implement apply()"
        raise NotImplementedError(msg)
