"""Test doubles and helpers shared by the test modules."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, ClassVar

from litestar_automation.core.context import ActionResult
from litestar_automation.core.types import ActionType
from litestar_automation.sla.models import TicketSlaTracking

if TYPE_CHECKING:
    from litestar_automation.core.context import ExecutionContext
    from litestar_automation.core.models import Ticket
    from litestar_automation.memory import InMemoryTicketStore
    from litestar_automation.sla.models import SlaPolicy

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
"""Creation time of the tickets used across the SLA tests."""


def minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


def track(store: InMemoryTicketStore, policy: SlaPolicy, ticket: Ticket) -> TicketSlaTracking:
    """Start tracking ``ticket`` with deadlines computed from its creation time."""
    rule = policy.rule_for(ticket.priority)
    assert rule is not None
    tracking = TicketSlaTracking(
        ticket_id=ticket.id,
        policy_id=policy.id,
        response_due_at=ticket.created_at + timedelta(minutes=rule.response_time_minutes),
        resolution_due_at=ticket.created_at + timedelta(hours=rule.resolution_time_hours),
    )
    store.trackings[ticket.id] = tracking
    return tracking


class RecordingSender:
    """Notification sender that records messages and can be told to fail."""

    def __init__(self, *, reject: set[str] | None = None, raise_for: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.reject = reject or set()
        self.raise_for = raise_for or set()

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        if recipient in self.raise_for:
            msg = f"SMTP connection refused for {recipient}"
            raise ConnectionError(msg)
        if recipient in self.reject:
            return False
        self.sent.append((recipient, subject, body))
        return True

    @property
    def recipients(self) -> list[str]:
        return [recipient for recipient, _, _ in self.sent]


class RecordingBroadcaster:
    """Broadcaster that keeps every published message."""

    def __init__(self, *, fail: bool = False) -> None:
        self.messages: list[tuple[dict[str, Any], str | None]] = []
        self.fail = fail

    async def publish(self, message: Mapping[str, Any], channel: str | None = None) -> None:
        if self.fail:
            msg = "websocket backend unavailable"
            raise RuntimeError(msg)
        self.messages.append((dict(message), channel))

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [message for message, _ in self.messages if message.get("type") == message_type]


class ScriptedHandler:
    """Handler for ``call_api`` actions driven by its parameters.

    ``{"step": "a"}`` records the step; ``{"fail": True}`` raises; ``{"halt": True}``
    asks the engine to stop.
    """

    action_type: ClassVar[ActionType] = ActionType.CALL_API

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        self.calls.append(parameters)
        if parameters.get("fail"):
            msg = f"step {parameters.get('step')} exploded"
            raise RuntimeError(msg)
        return ActionResult.ok({"step": parameters.get("step")}, halt=bool(parameters.get("halt")))

    @property
    def steps(self) -> list[Any]:
        return [call.get("step") for call in self.calls]


class FlakyHandler:
    """Handler for ``send_webhook`` actions that fails a fixed number of times."""

    action_type: ClassVar[ActionType] = ActionType.SEND_WEBHOOK

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.attempts = 0

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        self.attempts += 1
        if self.attempts <= self.failures:
            msg = f"attempt {self.attempts} timed out"
            raise TimeoutError(msg)
        return ActionResult.ok({"attempts": self.attempts})
