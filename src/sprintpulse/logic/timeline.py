from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sprintpulse.data.dto import BurndownPoint, TimeWindow
from sprintpulse.domain.models import IterationDescriptor, as_utc
from sprintpulse.utils.numbers import round_half_up

ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """The caller's instant as an aware datetime; naive values are read as UTC."""
    return as_utc(now) if now is not None else utc_now()


def span_days(start: datetime, end: datetime) -> float:
    """Exact (fractional) days from start to end."""
    return (end - start) / ONE_DAY


def days_between(start: datetime, end: datetime) -> int:
    """
    Whole days from start to end, truncated toward zero.
    Negative when end precedes start.
    """
    return int(span_days(start, end))


def compute_time_window(iteration: IterationDescriptor, now: Optional[datetime] = None) -> TimeWindow:
    """
    Derives elapsed/remaining/ideal-progress figures for an iteration.

    elapsed_days and remaining_days are not clamped: negative values mean the
    window has not started yet or has overrun.
    """
    now = resolve_now(now)
    total_days = days_between(iteration.start_date, iteration.end_date)
    elapsed_days = days_between(iteration.start_date, now)
    remaining_days = days_between(now, iteration.end_date)

    ideal_progress = round_half_up(elapsed_days / total_days * 100) if total_days > 0 else 0

    return TimeWindow(
        total_days=total_days,
        elapsed_days=elapsed_days,
        remaining_days=remaining_days,
        ideal_progress=ideal_progress,
        total_span=span_days(iteration.start_date, iteration.end_date),
        elapsed_span=span_days(iteration.start_date, now),
        remaining_span=span_days(now, iteration.end_date),
    )


def ideal_burndown(total_points: float, total_days: int) -> List[BurndownPoint]:
    """Ideal remaining-points line from day 0 to the last day of the window."""
    if total_days <= 0:
        return []
    return [
        BurndownPoint(day=day, remaining=round_half_up(total_points * (1 - day / total_days)))
        for day in range(total_days + 1)
    ]
