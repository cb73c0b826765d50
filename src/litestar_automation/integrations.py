"""Concrete broadcaster and notification sender implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar.channels import ChannelsPlugin

__all__ = ["ChannelsBroadcaster", "HttpNotificationSender"]

logger = get_logger(__name__)


class ChannelsBroadcaster:
    """Publishes messages through Litestar's :class:`ChannelsPlugin`.

    Publishing is non-blocking; the channels backend delivers the message to
    subscribed websocket clients in the background.

    Attributes:
        channels: The application's channels plugin.
        default_channel: Channel used when ``publish`` is not given one.
    """

    def __init__(self, channels: ChannelsPlugin, default_channel: str = "sla") -> None:
        self.channels = channels
        self.default_channel = default_channel

    async def publish(self, message: Mapping[str, Any], channel: str | None = None) -> None:
        self.channels.publish(dict(message), channels=[channel or self.default_channel])


class HttpNotificationSender:
    """Delivers notifications by POSTing them to a mail relay endpoint.

    The endpoint receives ``{"recipient", "subject", "body"}`` as JSON and
    any 2xx response counts as delivered.

    Args:
        url: The relay endpoint.
        client: Optional shared :class:`httpx.AsyncClient`.
        timeout: Request timeout in seconds when no client is given.
    """

    def __init__(self, url: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0) -> None:
        self.url = url
        self.client = client
        self.timeout = timeout

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        payload = {"recipient": recipient, "subject": subject, "body": body}
        if self.client is not None:
            response = await self.client.post(self.url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload)
        if response.is_success:
            return True
        logger.warning(
            "Notification relay rejected message",
            extra={"recipient": recipient, "status_code": response.status_code},
        )
        return False
