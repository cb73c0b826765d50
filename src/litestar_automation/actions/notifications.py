"""Notification actions: email and real-time broadcast."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_automation.actions.base import BaseAction
from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType
from litestar_automation.exceptions import NotificationError
from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext
    from litestar_automation.core.protocols import Broadcaster, NotificationSender, UserDirectory

__all__ = ["SendEmailAction", "SendNotificationAction"]

logger = get_logger(__name__)


class SendEmailAction(BaseAction):
    """Send an email to one or more recipients.

    Parameters:
        to: An address or a list of addresses.
        user_id: Optional user whose address is looked up in the directory.
        subject: Subject line.
        body: Message body.

    Partial delivery succeeds and lists the failed recipients in the output.
    When no recipient could be reached the action raises, so the executor
    retries it.
    """

    action_type = ActionType.SEND_EMAIL

    def __init__(self, sender: NotificationSender, directory: UserDirectory | None = None) -> None:
        self.sender = sender
        self.directory = directory

    async def _recipients(self, parameters: dict[str, Any]) -> list[str]:
        to = parameters.get("to") or []
        recipients = [to] if isinstance(to, str) else [str(address) for address in to]
        user_id = parameters.get("user_id")
        if user_id and self.directory is not None:
            email = await self.directory.get_email(str(user_id))
            if email:
                recipients.append(email)
        return [address for address in dict.fromkeys(recipients) if address]

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "subject"):
            return missing
        recipients = await self._recipients(parameters)
        if not recipients:
            return ActionResult.failure("No email recipients")

        subject = str(parameters["subject"])
        body = str(parameters.get("body", ""))
        sent: list[str] = []
        failed: list[str] = []
        for recipient in recipients:
            try:
                delivered = await self.sender.send(recipient, subject, body)
            except Exception as exc:
                logger.warning(
                    "Email delivery failed",
                    extra={"recipient": recipient, "error": str(exc), "instance_id": context.instance_id},
                )
                delivered = False
            (sent if delivered else failed).append(recipient)

        if not sent:
            raise NotificationError(", ".join(failed), "no recipient accepted the message")
        return ActionResult.ok({"sent": sent, "failed": failed})


class SendNotificationAction(BaseAction):
    """Publish an in-app notification through the broadcaster.

    Parameters:
        message: Notification text.
        user_id: Optional target user.
        title: Optional title.
        channel: Optional broadcast channel.
    """

    action_type = ActionType.SEND_NOTIFICATION

    def __init__(self, broadcaster: Broadcaster) -> None:
        self.broadcaster = broadcaster

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "message"):
            return missing
        message = {
            "type": "notification",
            "data": {
                "title": parameters.get("title"),
                "message": str(parameters["message"]),
                "user_id": parameters.get("user_id"),
                "ticket_id": context.ticket_id,
                "workflow_id": str(context.workflow_id),
                "instance_id": str(context.instance_id),
            },
        }
        await self.broadcaster.publish(message, parameters.get("channel"))
        return ActionResult.ok(message["data"])
