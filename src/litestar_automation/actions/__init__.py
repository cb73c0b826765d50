"""Built-in action handlers.

:func:`default_handlers` builds the handler set for the collaborators an
application provides. Handlers whose collaborator is missing are left out;
the executor reports actions of those types as failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from litestar_automation.actions.base import BaseAction, TicketAction
from litestar_automation.actions.control import StopWorkflowAction, WaitAction
from litestar_automation.actions.http import CallApiAction, HttpAction, SendWebhookAction
from litestar_automation.actions.notifications import SendEmailAction, SendNotificationAction
from litestar_automation.actions.sla import ApplySlaPolicyAction, PauseSlaAction, ResumeSlaAction
from litestar_automation.actions.tickets import (
    AddTicketCommentAction,
    AddTicketTagAction,
    AssignTicketAction,
    AssignToGroupAction,
    EscalateTicketAction,
    RemoveTicketTagAction,
    UpdateTicketPriorityAction,
    UpdateTicketStatusAction,
)
from litestar_automation.actions.variables import CopyVariableAction, IncrementVariableAction, SetVariableAction

if TYPE_CHECKING:
    import httpx

    from litestar_automation.core.protocols import (
        Broadcaster,
        NotificationSender,
        SlaStore,
        TicketStore,
        UserDirectory,
    )

__all__ = [
    "AddTicketCommentAction",
    "AddTicketTagAction",
    "ApplySlaPolicyAction",
    "AssignTicketAction",
    "AssignToGroupAction",
    "BaseAction",
    "CallApiAction",
    "CopyVariableAction",
    "EscalateTicketAction",
    "HttpAction",
    "IncrementVariableAction",
    "PauseSlaAction",
    "RemoveTicketTagAction",
    "ResumeSlaAction",
    "SendEmailAction",
    "SendNotificationAction",
    "SendWebhookAction",
    "SetVariableAction",
    "StopWorkflowAction",
    "TicketAction",
    "UpdateTicketPriorityAction",
    "UpdateTicketStatusAction",
    "WaitAction",
    "default_handlers",
]


def default_handlers(
    *,
    tickets: TicketStore | None = None,
    sla_store: SlaStore | None = None,
    sender: NotificationSender | None = None,
    broadcaster: Broadcaster | None = None,
    directory: UserDirectory | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> list[BaseAction]:
    """Build the built-in handlers supported by the given collaborators.

    Args:
        tickets: Ticket store for ticket actions.
        sla_store: SLA store for SLA actions (also needs ``tickets``).
        sender: Notification sender for ``send_email``.
        broadcaster: Broadcaster for ``send_notification``.
        directory: Optional user directory for ``send_email`` ``user_id`` lookups.
        http_client: Optional shared client for the HTTP actions.

    Returns:
        The handler instances.
    """
    handlers: list[BaseAction] = [
        SetVariableAction(),
        IncrementVariableAction(),
        CopyVariableAction(),
        WaitAction(),
        StopWorkflowAction(),
        SendWebhookAction(http_client),
        CallApiAction(http_client),
    ]
    if tickets is not None:
        handlers.extend(
            handler_class(tickets)
            for handler_class in (
                AssignTicketAction,
                AssignToGroupAction,
                UpdateTicketStatusAction,
                UpdateTicketPriorityAction,
                AddTicketCommentAction,
                AddTicketTagAction,
                RemoveTicketTagAction,
                EscalateTicketAction,
            )
        )
        if sla_store is not None:
            handlers.extend(
                handler_class(tickets, sla_store)
                for handler_class in (ApplySlaPolicyAction, PauseSlaAction, ResumeSlaAction)
            )
    if sender is not None:
        handlers.append(SendEmailAction(sender, directory))
    if broadcaster is not None:
        handlers.append(SendNotificationAction(broadcaster))
    return handlers
