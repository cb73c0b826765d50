"""Exception hierarchy for litestar-automation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

__all__ = (
    "ActionExecutionError",
    "AutomationError",
    "NotificationError",
    "SlaError",
    "SlaRuleNotFoundError",
    "SlaTrackingNotFoundError",
    "TicketNotFoundError",
    "WorkflowInstanceNotFoundError",
    "WorkflowNotFoundError",
    "WorkflowValidationError",
)


class AutomationError(Exception):
    """Base exception for all litestar-automation errors.

    Catching this class catches every error raised by the workflow engine,
    the action handlers and the SLA checker.
    """


class WorkflowNotFoundError(AutomationError):
    """Raised when a workflow definition is not found.

    Attributes:
        workflow_id: The ID of the workflow that was not found.
    """

    def __init__(self, workflow_id: str | UUID) -> None:
        """Initialize the exception with workflow details.

        Args:
            workflow_id: The ID of the workflow that was not found.
        """
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' not found")


class WorkflowInstanceNotFoundError(AutomationError):
    """Raised when a workflow instance is not found.

    Attributes:
        instance_id: The ID of the workflow instance that was not found.
    """

    def __init__(self, instance_id: str | UUID) -> None:
        """Initialize the exception with instance details.

        Args:
            instance_id: The ID of the workflow instance that was not found.
        """
        self.instance_id = instance_id
        super().__init__(f"Workflow instance '{instance_id}' not found")


class WorkflowValidationError(AutomationError):
    """Raised when a workflow definition fails validation.

    This occurs when a stored or submitted definition contains an unknown
    trigger type, action type or condition operator, or malformed values.

    Attributes:
        errors: List of validation error messages.
    """

    def __init__(self, errors: list[str]) -> None:
        """Initialize the exception with validation errors.

        Args:
            errors: List of validation error messages.
        """
        self.errors = errors
        super().__init__(f"Workflow validation failed: {'; '.join(errors)}")


class ActionExecutionError(AutomationError):
    """Raised by action handlers when a side effect cannot be performed.

    The executor catches this (and any other exception), retries when the
    action allows it, and converts the final failure into an ``ActionResult``.

    Attributes:
        action_name: The name of the action that failed.
        cause: The underlying exception, if any.
    """

    def __init__(self, action_name: str, cause: Exception | str | None = None) -> None:
        """Initialize the exception with action details.

        Args:
            action_name: The name of the action that failed.
            cause: The underlying exception or a reason string.
        """
        self.action_name = action_name
        self.cause = cause
        msg = f"Action '{action_name}' failed"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)


class TicketNotFoundError(AutomationError):
    """Raised when a ticket referenced by an action or SLA operation is missing.

    Attributes:
        ticket_id: The ID of the ticket that was not found.
    """

    def __init__(self, ticket_id: str | UUID) -> None:
        """Initialize the exception with ticket details.

        Args:
            ticket_id: The ID of the ticket that was not found.
        """
        self.ticket_id = ticket_id
        super().__init__(f"Ticket '{ticket_id}' not found")


class SlaError(AutomationError):
    """Base exception for SLA tracking errors."""


class SlaRuleNotFoundError(SlaError):
    """Raised when an SLA policy has no rule for a ticket priority.

    Attributes:
        priority: The priority that has no matching rule.
        policy_id: The policy that was searched, if known.
    """

    def __init__(self, priority: str, policy_id: str | UUID | None = None) -> None:
        """Initialize the exception with rule lookup details.

        Args:
            priority: The priority that has no matching rule.
            policy_id: The policy that was searched, if known.
        """
        self.priority = priority
        self.policy_id = policy_id
        msg = f"No SLA rule for priority '{priority}'"
        if policy_id:
            msg += f" in policy '{policy_id}'"
        super().__init__(msg)


class SlaTrackingNotFoundError(SlaError):
    """Raised when a ticket has no SLA tracking record.

    Attributes:
        ticket_id: The ID of the ticket without tracking.
    """

    def __init__(self, ticket_id: str | UUID) -> None:
        """Initialize the exception with ticket details.

        Args:
            ticket_id: The ID of the ticket without tracking.
        """
        self.ticket_id = ticket_id
        super().__init__(f"No SLA tracking for ticket '{ticket_id}'")


class NotificationError(AutomationError):
    """Raised when a notification could not be delivered.

    Attributes:
        recipient: The intended recipient.
        cause: The underlying exception, if any.
    """

    def __init__(self, recipient: str, cause: Exception | str | None = None) -> None:
        """Initialize the exception with delivery details.

        Args:
            recipient: The intended recipient.
            cause: The underlying exception or a reason string.
        """
        self.recipient = recipient
        self.cause = cause
        msg = f"Notification to '{recipient}' failed"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)
