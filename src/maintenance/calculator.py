"""Maintenance due-date calculator and overdue/reminder evaluator.

Supports the four schedule kinds:
- time-based: every N days, months or years after the last service
- usage-based: every N operating hours (needs an external usage counter)
- event-based: every N bookings (needs an external booking counter)
- fixed-date: every year on a fixed month/day

All functions are pure. "Today" is taken from the ``now`` argument, read
once per call and truncated to a calendar date; when omitted the system
date is used. Batch callers should resolve ``today`` once with
``resolve_today`` and pass it to every evaluation.

Calendar arithmetic uses ``dateutil.relativedelta``: adding months or
years never overflows into the next month but clamps to its last day
(2024-01-31 + 1 month = 2024-02-29, 2023-01-31 + 1 month = 2023-02-28,
2024-02-29 + 1 year = 2025-02-28).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from ..common.models import (
    Booking,
    BookingStatus,
    EventBasedSchedule,
    FixedDateSchedule,
    ScheduleBase,
    TimeBasedSchedule,
    UsageBasedSchedule,
    to_calendar_date,
)
from .models import DueDateResult, DueStatus, NotComputableReason, ScheduleStatus

logger = logging.getLogger(__name__)

DateLike = date | datetime | str


def as_calendar_date(value: DateLike) -> date:
    """Like ``to_calendar_date`` but raises ValueError for unparseable input."""
    result = to_calendar_date(value)
    if not isinstance(result, date):
        raise ValueError(f"Not an ISO date or timestamp: {value!r}")
    return result


def resolve_today(now: DateLike | None = None) -> date:
    """Return the calendar date for ``now`` (system date when omitted)."""
    if now is None:
        return date.today()
    return as_calendar_date(now)


# ================================================================
# Due-date calculation
# ================================================================

def resolve_next_due(
    schedule: ScheduleBase,
    last_performed: DateLike | None = None,
    now: DateLike | None = None,
) -> DueDateResult:
    """Compute the next due date, explaining why when there is none.

    Args:
        schedule: Any schedule variant.
        last_performed: Date (or timestamp) of the last service. The
            base date falls back to today when omitted.
        now: Evaluation time.

    Returns:
        DueDateResult with either ``due_date`` or ``reason`` set.
    """
    today = resolve_today(now)
    base = as_calendar_date(last_performed) if last_performed is not None else today

    if isinstance(schedule, TimeBasedSchedule):
        if schedule.interval_days:
            return DueDateResult(due_date=base + timedelta(days=schedule.interval_days))
        if schedule.interval_months:
            return DueDateResult(due_date=base + relativedelta(months=schedule.interval_months))
        if schedule.interval_years:
            return DueDateResult(due_date=base + relativedelta(years=schedule.interval_years))
        return DueDateResult(reason=NotComputableReason.MISSING_INTERVAL)

    if isinstance(schedule, UsageBasedSchedule):
        return DueDateResult(reason=NotComputableReason.USAGE_COUNTER_REQUIRED)

    if isinstance(schedule, EventBasedSchedule):
        return DueDateResult(reason=NotComputableReason.BOOKING_COUNTER_REQUIRED)

    if isinstance(schedule, FixedDateSchedule):
        if schedule.fixed_date is None:
            return DueDateResult(reason=NotComputableReason.MISSING_FIXED_DATE)
        if schedule.fixed_date > today:
            return DueDateResult(due_date=schedule.fixed_date)
        return DueDateResult(due_date=schedule.fixed_date + relativedelta(years=1))

    raise TypeError(f"Unsupported schedule: {type(schedule).__name__}")


def calculate_next_due(
    schedule: ScheduleBase,
    last_performed: DateLike | None = None,
    now: DateLike | None = None,
) -> date | None:
    """Compute the next due date, or None when it cannot be determined.

    None covers both incomplete schedules (time-based without interval,
    fixed-date without date) and counter-driven kinds (usage-based,
    event-based). Use ``resolve_next_due`` to tell them apart.
    """
    result = resolve_next_due(schedule, last_performed, now)
    if not result.is_computable:
        logger.debug(
            "No due date for schedule %s (asset %s): %s",
            schedule.id, schedule.asset_id, result.reason.value,
        )
    return result.due_date


# ================================================================
# Overdue / reminder evaluation
# ================================================================

def days_until_due(schedule: ScheduleBase, now: DateLike | None = None) -> int | None:
    """Signed days from today to ``next_due``; negative when overdue."""
    if schedule.next_due is None:
        return None
    return (schedule.next_due - resolve_today(now)).days


def is_overdue(schedule: ScheduleBase, now: DateLike | None = None) -> bool:
    """True if ``next_due`` is set and strictly before today."""
    if schedule.next_due is None:
        return False
    return schedule.next_due < resolve_today(now)


def is_reminder_due(schedule: ScheduleBase, now: DateLike | None = None) -> bool:
    """True once today reaches ``next_due`` minus the reminder window."""
    if schedule.next_due is None:
        return False
    reminder_date = schedule.next_due - timedelta(days=schedule.reminder_days_before)
    return resolve_today(now) >= reminder_date


def due_status(schedule: ScheduleBase, now: DateLike | None = None) -> DueStatus | None:
    """Classify a schedule as overdue, due-soon or ok."""
    days = days_until_due(schedule, now)
    if days is None:
        return None
    if days < 0:
        return DueStatus.OVERDUE
    if days <= schedule.reminder_days_before:
        return DueStatus.DUE_SOON
    return DueStatus.OK


def is_usage_maintenance_due(
    schedule: ScheduleBase,
    current_usage_hours: float,
    last_maintenance_hours: float,
) -> bool:
    """True when the hours run since the last service reach the interval."""
    if not isinstance(schedule, UsageBasedSchedule) or not schedule.interval_hours:
        return False
    return current_usage_hours - last_maintenance_hours >= schedule.interval_hours


def is_event_maintenance_due(
    schedule: ScheduleBase,
    bookings_since_last_maintenance: int,
) -> bool:
    """True when the bookings since the last service reach the interval."""
    if not isinstance(schedule, EventBasedSchedule) or not schedule.interval_bookings:
        return False
    return bookings_since_last_maintenance >= schedule.interval_bookings


def count_bookings_since(
    asset_id: str,
    bookings: Iterable[Booking],
    since: DateLike | None,
) -> int:
    """Count non-cancelled bookings of an asset starting on/after ``since``.

    Every booking counts when ``since`` is None (never serviced).
    """
    since_date = as_calendar_date(since) if since is not None else None
    count = 0
    for booking in bookings:
        if booking.asset is None or booking.asset.id != asset_id:
            continue
        if booking.status == BookingStatus.CANCELLED:
            continue
        if since_date is not None and booking.start_date < since_date:
            continue
        count += 1
    return count


# ================================================================
# Presentation helpers
# ================================================================

def _every(value: int, unit: str) -> str:
    return f"Every {value} {unit}{'s' if value > 1 else ''}"


def format_schedule_description(schedule: ScheduleBase) -> str:
    """Human-readable summary, e.g. "Every 3 months"."""
    if isinstance(schedule, TimeBasedSchedule):
        if schedule.interval_days:
            return _every(schedule.interval_days, "day")
        if schedule.interval_months:
            return _every(schedule.interval_months, "month")
        if schedule.interval_years:
            return _every(schedule.interval_years, "year")
        return "Time-based"
    if isinstance(schedule, UsageBasedSchedule):
        if schedule.interval_hours:
            return _every(schedule.interval_hours, "operating hour")
        return "Usage-based"
    if isinstance(schedule, EventBasedSchedule):
        if schedule.interval_bookings:
            return _every(schedule.interval_bookings, "booking")
        return "Event-based"
    if isinstance(schedule, FixedDateSchedule):
        if schedule.fixed_date:
            return f"Annually on {schedule.fixed_date.isoformat()}"
        return "Fixed date"
    return "Unknown"


def evaluate_schedules(
    schedules: Iterable[ScheduleBase],
    now: DateLike | None = None,
) -> list[ScheduleStatus]:
    """Snapshot every schedule against one consistently-read today."""
    today = resolve_today(now)
    statuses = [
        ScheduleStatus(
            schedule_id=schedule.id,
            asset_id=schedule.asset_id,
            description=format_schedule_description(schedule),
            next_due=schedule.next_due,
            days_until_due=days_until_due(schedule, today),
            status=due_status(schedule, today),
            reminder_due=is_reminder_due(schedule, today),
        )
        for schedule in schedules
    ]
    logger.info(
        "Evaluated %d schedules on %s: %d overdue",
        len(statuses),
        today.isoformat(),
        sum(1 for s in statuses if s.status == DueStatus.OVERDUE),
    )
    return statuses
