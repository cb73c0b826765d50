"""SLA tracking and breach detection."""

from __future__ import annotations

from litestar_automation.sla.calculator import SlaCalculator, SlaEvaluation, format_duration
from litestar_automation.sla.checker import SlaChecker, SlaCheckerConfig
from litestar_automation.sla.models import SlaCheckResult, SlaPolicy, SlaRule, TicketSlaTracking, TrackedTicket
from litestar_automation.sla.scheduler import SlaScheduler

__all__ = [
    "SlaCalculator",
    "SlaCheckResult",
    "SlaChecker",
    "SlaCheckerConfig",
    "SlaEvaluation",
    "SlaPolicy",
    "SlaRule",
    "SlaScheduler",
    "TicketSlaTracking",
    "TrackedTicket",
    "format_duration",
]
