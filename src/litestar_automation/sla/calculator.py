"""SLA due-date and breach calculations.

Everything here is pure: callers pass "now" explicitly, which keeps the
checker deterministic under test and lets a run use one consistent clock
reading for every ticket.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from litestar_automation.core.types import BreachType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from litestar_automation.sla.models import SlaRule, TicketSlaTracking

__all__ = [
    "DEFAULT_WARNING_THRESHOLDS",
    "SlaCalculator",
    "SlaEvaluation",
    "format_duration",
    "minutes_between",
]

DEFAULT_WARNING_THRESHOLDS = (60, 30, 15, 5)
"""Minutes-before-breach at which warnings are broadcast."""

DEFAULT_WARNING_TOLERANCE_MINUTES = 5


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``, rounded down."""
    return math.floor((end - start).total_seconds() / 60)


def format_duration(minutes: int) -> str:
    """Render a duration for notification text.

    Example:
        >>> format_duration(45)
        '45 minutes'
        >>> format_duration(90)
        '1h 30m'
        >>> format_duration(2 * 1440)
        '2 days'
    """
    minutes = max(0, int(minutes))
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    if minutes < 1440:
        hours, remainder = divmod(minutes, 60)
        if remainder:
            return f"{hours}h {remainder}m"
        return f"{hours} hour{'s' if hours != 1 else ''}"
    days, remainder = divmod(minutes, 1440)
    hours = remainder // 60
    if hours:
        return f"{days}d {hours}h"
    return f"{days} day{'s' if days != 1 else ''}"


@dataclass(frozen=True)
class SlaEvaluation:
    """State of one SLA deadline at a point in time.

    Attributes:
        breach_type: Which deadline was evaluated.
        due_at: The effective deadline.
        breached: Whether "now" is past the deadline.
        breach_minutes: Whole minutes past the deadline when breached.
        minutes_until: Minutes left before the deadline when not breached.
        warning_threshold: The warning band "now" falls into, if any.
    """

    breach_type: BreachType
    due_at: datetime
    breached: bool
    breach_minutes: int | None = None
    minutes_until: float | None = None
    warning_threshold: int | None = None


class SlaCalculator:
    """Derives SLA deadlines and breach state.

    Args:
        warning_thresholds: Minutes-before-breach warning bands.
        warning_tolerance_minutes: Width of each band.
        skip_paused: Report nothing for paused tracking. When False, paused
            time is instead added to the deadline.
    """

    def __init__(
        self,
        warning_thresholds: Iterable[int] = DEFAULT_WARNING_THRESHOLDS,
        warning_tolerance_minutes: int = DEFAULT_WARNING_TOLERANCE_MINUTES,
        *,
        skip_paused: bool = True,
    ) -> None:
        self.warning_thresholds = tuple(sorted(set(warning_thresholds), reverse=True))
        self.warning_tolerance_minutes = warning_tolerance_minutes
        self.skip_paused = skip_paused

    @staticmethod
    def compute_due_dates(rule: SlaRule, created_at: datetime) -> tuple[datetime, datetime]:
        """Compute the response and resolution deadlines of a new ticket.

        Args:
            rule: The SLA rule for the ticket priority.
            created_at: When the ticket was opened.

        Returns:
            ``(response_due_at, resolution_due_at)``.
        """
        return (
            created_at + timedelta(minutes=rule.response_time_minutes),
            created_at + timedelta(hours=rule.resolution_time_hours),
        )

    def effective_due(self, tracking: TicketSlaTracking, breach_type: BreachType, now: datetime) -> datetime:
        """Return the deadline, extended by paused time unless pauses are skipped."""
        due = tracking.due_at(breach_type)
        if self.skip_paused:
            return due
        paused = tracking.pause_duration_minutes
        if tracking.pause_start is not None:
            paused += max(0, minutes_between(tracking.pause_start, now))
        return due + timedelta(minutes=paused)

    def warning_threshold(self, minutes_until: float) -> int | None:
        """Return the first threshold whose band contains ``minutes_until``.

        A band covers ``(threshold - tolerance, threshold]``, so a poll at
        the tolerance interval lands in each band at most once.
        """
        for threshold in self.warning_thresholds:
            if threshold - self.warning_tolerance_minutes < minutes_until <= threshold:
                return threshold
        return None

    def evaluate(self, tracking: TicketSlaTracking, breach_type: BreachType, now: datetime) -> SlaEvaluation | None:
        """Evaluate one deadline of ``tracking`` at ``now``.

        Returns:
            None when there is nothing to report: the milestone was met, the
            breach was already recorded, or the clock is paused and paused
            tickets are skipped.
        """
        if tracking.milestone_met(breach_type) or tracking.is_breached(breach_type):
            return None
        if tracking.is_paused and self.skip_paused:
            return None

        due = self.effective_due(tracking, breach_type, now)
        if now > due:
            return SlaEvaluation(
                breach_type=breach_type,
                due_at=due,
                breached=True,
                breach_minutes=minutes_between(due, now),
            )
        if tracking.is_paused:
            return SlaEvaluation(breach_type=breach_type, due_at=due, breached=False)

        minutes_until = (due - now).total_seconds() / 60
        return SlaEvaluation(
            breach_type=breach_type,
            due_at=due,
            breached=False,
            minutes_until=minutes_until,
            warning_threshold=self.warning_threshold(minutes_until),
        )
