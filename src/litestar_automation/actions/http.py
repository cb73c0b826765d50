"""Outbound HTTP actions built on ``httpx``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from litestar_automation.actions.base import BaseAction
from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType
from litestar_automation.exceptions import ActionExecutionError

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext

__all__ = ["CallApiAction", "HttpAction", "SendWebhookAction"]

DEFAULT_TIMEOUT = 30.0


class HttpAction(BaseAction):
    """Shared request logic for webhook and API actions.

    A shared :class:`httpx.AsyncClient` may be injected; otherwise a client
    is opened per request.
    """

    allowed_methods: frozenset[str] = frozenset({"GET", "POST", "PUT"})

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.client = client
        self.timeout = timeout

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        """Send a request and raise for error statuses.

        Raises:
            ActionExecutionError: For transport failures and 4xx/5xx responses.
        """
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if body is not None and method not in {"GET", "DELETE"}:
            kwargs["json"] = body
        try:
            if self.client is not None:
                response = await self.client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ActionExecutionError(str(self.action_type), exc) from exc
        return response

    def method(self, parameters: dict[str, Any]) -> str | None:
        """Return the upper-cased method, or None when it is not allowed."""
        method = str(parameters.get("method", "POST")).upper()
        return method if method in self.allowed_methods else None


class SendWebhookAction(HttpAction):
    """Send the event (or a custom ``payload``) to ``url``.

    Parameters:
        url: Target URL.
        method: GET, POST or PUT. Defaults to POST.
        payload: Optional body; defaults to the event payload.
        headers: Optional request headers.
    """

    action_type = ActionType.SEND_WEBHOOK

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "url"):
            return missing
        method = self.method(parameters)
        if method is None:
            return ActionResult.failure(f"Unsupported webhook method {parameters.get('method')!r}")
        body = parameters.get("payload")
        if body is None:
            body = {
                "event_id": str(context.event_id),
                "workflow_id": str(context.workflow_id),
                "instance_id": str(context.instance_id),
                "payload": dict(context.payload),
            }
        response = await self.request(method, str(parameters["url"]), headers=parameters.get("headers"), body=body)
        return ActionResult.ok({"status_code": response.status_code})


class CallApiAction(HttpAction):
    """Call an API and optionally keep its JSON response as a variable.

    Parameters:
        url: Target URL.
        method: GET, POST, PUT, PATCH or DELETE. Defaults to GET.
        headers: Optional request headers.
        body: Optional JSON body.
        store_as: Optional variable name receiving the decoded response.
    """

    action_type = ActionType.CALL_API
    allowed_methods = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        if missing := self.require(parameters, "url"):
            return missing
        method = self.method({"method": parameters.get("method", "GET")})
        if method is None:
            return ActionResult.failure(f"Unsupported API method {parameters.get('method')!r}")
        response = await self.request(
            method,
            str(parameters["url"]),
            headers=parameters.get("headers"),
            body=parameters.get("body"),
        )
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text
        store_as = parameters.get("store_as")
        if store_as:
            context.variables[str(store_as)] = data
        return ActionResult.ok({"status_code": response.status_code, "body": data})
