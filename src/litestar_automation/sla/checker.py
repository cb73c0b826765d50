"""Periodic SLA breach detection and SLA lifecycle operations.

:meth:`SlaChecker.run_sla_check` is the entry point the scheduler calls. It
scans open tickets with SLA tracking, records new breaches through
conditional writes, notifies the configured recipients, escalates overdue
tickets, broadcasts warnings for approaching deadlines and feeds
``sla_breach`` / ``sla_warning`` / ``ticket_escalated`` events back into the
workflow engine.

Errors are confined to the ticket being checked and reported in
:attr:`SlaCheckResult.errors`; one bad record never stops the batch.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from litestar_automation.core.events import TriggerEvent
from litestar_automation.core.types import BreachType
from litestar_automation.exceptions import (
    SlaError,
    SlaRuleNotFoundError,
    SlaTrackingNotFoundError,
)
from litestar_automation.log import get_logger
from litestar_automation.sla.calculator import (
    DEFAULT_WARNING_THRESHOLDS,
    DEFAULT_WARNING_TOLERANCE_MINUTES,
    SlaCalculator,
)
from litestar_automation.sla.models import SlaCheckResult, TicketSlaTracking
from litestar_automation.sla.notifications import (
    breach_broadcast,
    breach_message,
    escalation_message,
    warning_broadcast,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from uuid import UUID

    from litestar_automation.core.models import Ticket
    from litestar_automation.core.protocols import Broadcaster, NotificationSender, SlaStore, UserDirectory
    from litestar_automation.engine.engine import WorkflowEngine
    from litestar_automation.sla.calculator import SlaEvaluation
    from litestar_automation.sla.models import SlaRule, TrackedTicket

__all__ = ["SlaChecker", "SlaCheckerConfig"]

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SlaCheckerConfig:
    """Configuration for the SlaChecker.

    Attributes:
        auto_escalation_enabled: Reassign tickets whose resolution breach
            exceeds the rule's escalation time.
        warning_thresholds: Minutes-before-breach warning bands.
        warning_tolerance_minutes: Width of each warning band.
        skip_paused: Skip paused tickets entirely. When False, paused time
            extends the deadlines instead.
        suppress_duplicate_warnings: Record a marker per warning band so each
            band is broadcast once even when polling more often than the
            band width.
        emit_trigger_events: Feed breach, warning and escalation events into
            the workflow engine.
        broadcast_channel: Channel passed to the broadcaster.
    """

    auto_escalation_enabled: bool = True
    warning_thresholds: tuple[int, ...] = DEFAULT_WARNING_THRESHOLDS
    warning_tolerance_minutes: int = DEFAULT_WARNING_TOLERANCE_MINUTES
    skip_paused: bool = True
    suppress_duplicate_warnings: bool = True
    emit_trigger_events: bool = True
    broadcast_channel: str = "sla"


class SlaChecker:
    """Detects SLA breaches and manages SLA tracking.

    Attributes:
        sla_store: SLA policies and tracking rows.
        sender: Optional email sender for breach and escalation notices.
        broadcaster: Optional real-time publisher.
        directory: Optional user directory used to email escalation owners.
        engine: Optional workflow engine receiving SLA events.
        config: Checker configuration.
        calculator: Deadline arithmetic.
    """

    def __init__(
        self,
        sla_store: SlaStore,
        *,
        sender: NotificationSender | None = None,
        broadcaster: Broadcaster | None = None,
        directory: UserDirectory | None = None,
        engine: WorkflowEngine | None = None,
        config: SlaCheckerConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.sla_store = sla_store
        self.sender = sender
        self.broadcaster = broadcaster
        self.directory = directory
        self.engine = engine
        self.config = config or SlaCheckerConfig()
        self.clock = clock
        self.calculator = SlaCalculator(
            self.config.warning_thresholds,
            self.config.warning_tolerance_minutes,
            skip_paused=self.config.skip_paused,
        )

    async def run_sla_check(self, now: datetime | None = None) -> SlaCheckResult:
        """Check every open ticket with SLA tracking.

        Args:
            now: The time to evaluate at; defaults to the checker's clock.

        Returns:
            The aggregate result, including per-ticket errors.
        """
        now = now or self.clock()
        result = SlaCheckResult()
        try:
            tracked_tickets = await self.sla_store.list_tracked_tickets()
        except Exception as exc:
            logger.exception("Failed to load tracked tickets")
            result.errors.append(f"Failed to load tracked tickets: {exc}")
            return result

        for tracked in tracked_tickets:
            result.tickets_checked += 1
            try:
                await self._check_ticket(tracked, now, result)
            except Exception as exc:
                logger.exception("SLA check failed", extra={"ticket_id": tracked.ticket.id})
                result.errors.append(f"Ticket {tracked.ticket.id}: {exc}")

        logger.info("SLA check completed", extra=result.to_dict())
        return result

    async def _check_ticket(self, tracked: TrackedTicket, now: datetime, result: SlaCheckResult) -> None:
        tracking = tracked.tracking
        if tracking.is_paused and self.config.skip_paused:
            return
        if tracked.rule is None:
            raise SlaRuleNotFoundError(tracked.ticket.priority, tracking.policy_id)

        for breach_type in (BreachType.RESPONSE, BreachType.RESOLUTION):
            evaluation = self.calculator.evaluate(tracking, breach_type, now)
            if evaluation is None:
                continue
            if evaluation.breached:
                await self._handle_breach(tracked, tracked.rule, evaluation, now, result)
            elif evaluation.warning_threshold is not None:
                await self._handle_warning(tracked, evaluation, result)

    async def _handle_breach(
        self,
        tracked: TrackedTicket,
        rule: SlaRule,
        evaluation: SlaEvaluation,
        now: datetime,
        result: SlaCheckResult,
    ) -> None:
        ticket, tracking = tracked.ticket, tracked.tracking
        breach_type = evaluation.breach_type
        breach_minutes = evaluation.breach_minutes or 0

        if not await self.sla_store.mark_breach(tracking.id, breach_type, breach_minutes):
            return
        result.breaches_detected += 1
        logger.warning(
            "SLA breach detected",
            extra={"ticket_id": ticket.id, "breach_type": str(breach_type), "breach_minutes": breach_minutes},
        )

        subject, body = breach_message(ticket, breach_type, breach_minutes)
        sent = 0
        for recipient in rule.breach_notification_emails:
            if await self._notify(recipient, subject, body, result):
                sent += 1
        if sent:
            result.notifications_sent += sent
            try:
                await self.sla_store.increment_breach_notifications(tracking.id, sent)
            except Exception as exc:
                logger.exception("Failed to count breach notifications", extra={"ticket_id": ticket.id})
                result.errors.append(f"Ticket {ticket.id}: failed to count breach notifications: {exc}")

        await self._broadcast(breach_broadcast(ticket, breach_type, breach_minutes))

        if breach_type is BreachType.RESOLUTION:
            try:
                await self._maybe_escalate(ticket, tracking, rule, breach_minutes, now, result)
            except Exception as exc:
                logger.exception("Escalation failed", extra={"ticket_id": ticket.id})
                result.errors.append(f"Ticket {ticket.id}: escalation failed: {exc}")

        await self._emit(
            TriggerEvent.sla_breach(
                ticket_id=ticket.id,
                breach_type=breach_type,
                breach_minutes=breach_minutes,
                assigned_to=ticket.assigned_to,
                priority=ticket.priority,
                client_id=ticket.client_id,
            ),
            result,
        )

    async def _maybe_escalate(
        self,
        ticket: Ticket,
        tracking: TicketSlaTracking,
        rule: SlaRule,
        breach_minutes: int,
        now: datetime,
        result: SlaCheckResult,
    ) -> None:
        if not self.config.auto_escalation_enabled or tracking.escalated_at is not None:
            return
        if rule.escalation_time_minutes is None or not rule.escalation_target:
            return
        if breach_minutes < rule.escalation_time_minutes:
            return

        target = rule.escalation_target
        if not await self.sla_store.record_escalation(tracking.id, target, now):
            return
        result.escalations_triggered += 1
        logger.warning("Ticket escalated", extra={"ticket_id": ticket.id, "escalated_to": target})

        email = await self._escalation_email(ticket, target, result)
        if email:
            subject, body = escalation_message(ticket, breach_minutes)
            if await self._notify(email, subject, body, result):
                result.notifications_sent += 1
        else:
            logger.warning("No email address for escalation target", extra={"ticket_id": ticket.id, "user": target})

        await self._emit(
            TriggerEvent.ticket_escalated(
                ticket_id=ticket.id,
                escalated_to=target,
                reason=f"Resolution SLA breached by {breach_minutes} minutes",
                priority=ticket.priority,
            ),
            result,
        )

    async def _escalation_email(self, ticket: Ticket, target: str, result: SlaCheckResult) -> str | None:
        if self.directory is None:
            return None
        try:
            return await self.directory.get_email(target)
        except Exception as exc:
            logger.warning(
                "User directory lookup failed",
                extra={"ticket_id": ticket.id, "user": target, "error": str(exc)},
            )
            result.errors.append(f"Ticket {ticket.id}: failed to look up {target}: {exc}")
            return None

    async def _handle_warning(self, tracked: TrackedTicket, evaluation: SlaEvaluation, result: SlaCheckResult) -> None:
        ticket, tracking = tracked.ticket, tracked.tracking
        threshold = evaluation.warning_threshold
        marker = f"{evaluation.breach_type}:{threshold}"
        if self.config.suppress_duplicate_warnings and not await self.sla_store.mark_warning_sent(
            tracking.id, marker
        ):
            return

        minutes_remaining = max(0, math.floor(evaluation.minutes_until or 0))
        result.warnings_sent += 1
        await self._broadcast(warning_broadcast(ticket, evaluation.breach_type, minutes_remaining, threshold))  # type: ignore[arg-type]
        await self._emit(
            TriggerEvent.sla_warning(
                ticket_id=ticket.id,
                breach_type=evaluation.breach_type,
                minutes_remaining=minutes_remaining,
                priority=ticket.priority,
            ),
            result,
        )

    async def _notify(self, recipient: str, subject: str, body: str, result: SlaCheckResult) -> bool:
        if self.sender is None:
            logger.debug("No notification sender configured", extra={"recipient": recipient})
            return False
        try:
            delivered = await self.sender.send(recipient, subject, body)
        except Exception as exc:
            logger.warning("Notification failed", extra={"recipient": recipient, "error": str(exc)})
            result.errors.append(f"Failed to notify {recipient}: {exc}")
            return False
        if not delivered:
            result.errors.append(f"Failed to notify {recipient}: not delivered")
        return bool(delivered)

    async def _broadcast(self, message: Mapping[str, Any]) -> None:
        if self.broadcaster is None:
            return
        try:
            await self.broadcaster.publish(message, self.config.broadcast_channel)
        except Exception as exc:
            logger.warning("Broadcast failed", extra={"message_type": message.get("type"), "error": str(exc)})

    async def _emit(self, event: TriggerEvent, result: SlaCheckResult) -> None:
        if self.engine is None or not self.config.emit_trigger_events:
            return
        try:
            await self.engine.process_event(event, wait=False)
        except Exception as exc:
            logger.exception("Failed to dispatch SLA event", extra={"event_id": event.event_id})
            result.errors.append(f"Failed to dispatch {event.trigger_type} event: {exc}")

    async def start_tracking(
        self,
        ticket: Ticket,
        policy_id: UUID | None = None,
    ) -> TicketSlaTracking:
        """Start SLA tracking for a newly opened ticket.

        Deadlines are computed once, from the ticket's creation time.

        Args:
            ticket: The opened ticket.
            policy_id: Policy to apply; the default policy when None.

        Returns:
            The stored tracking row.

        Raises:
            SlaError: If the policy does not exist.
            SlaRuleNotFoundError: If the policy has no rule for the ticket priority.
        """
        policy = await self.sla_store.get_policy(policy_id)
        if policy is None:
            msg = f"SLA policy '{policy_id or 'default'}' not found"
            raise SlaError(msg)
        rule = policy.rule_for(ticket.priority)
        if rule is None:
            raise SlaRuleNotFoundError(ticket.priority, policy.id)
        response_due_at, resolution_due_at = self.calculator.compute_due_dates(rule, ticket.created_at)
        tracking = TicketSlaTracking(
            ticket_id=ticket.id,
            policy_id=policy.id,
            response_due_at=response_due_at,
            resolution_due_at=resolution_due_at,
        )
        return await self.sla_store.create_tracking(tracking)

    async def pause(self, ticket_id: str) -> bool:
        """Pause the SLA clock of a ticket.

        Returns:
            False when the clock was already paused.

        Raises:
            SlaTrackingNotFoundError: If the ticket has no SLA tracking.
        """
        await self._require_tracking(ticket_id)
        return await self.sla_store.pause_tracking(ticket_id, self.clock())

    async def resume(self, ticket_id: str) -> int | None:
        """Resume the SLA clock of a ticket.

        Returns:
            Minutes added to the paused duration, or None when not paused.

        Raises:
            SlaTrackingNotFoundError: If the ticket has no SLA tracking.
        """
        await self._require_tracking(ticket_id)
        return await self.sla_store.resume_tracking(ticket_id, self.clock())

    async def record_first_response(self, ticket_id: str) -> bool:
        """Record the first technician response; later calls are no-ops."""
        await self._require_tracking(ticket_id)
        return await self.sla_store.record_first_response(ticket_id, self.clock())

    async def record_resolution(self, ticket_id: str) -> bool:
        """Record the ticket's resolution; later calls are no-ops."""
        await self._require_tracking(ticket_id)
        return await self.sla_store.record_resolution(ticket_id, self.clock())

    async def _require_tracking(self, ticket_id: str) -> TicketSlaTracking:
        tracking = await self.sla_store.get_tracking(ticket_id)
        if tracking is None:
            raise SlaTrackingNotFoundError(ticket_id)
        return tracking
