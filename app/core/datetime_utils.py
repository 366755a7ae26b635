"""
Calendar helpers shared by the planner, the stores and the SMS parser
"""

from calendar import monthrange
from datetime import date, datetime, timezone
from typing import List, Tuple

from dateutil.relativedelta import relativedelta

def utcnow() -> datetime:
    """Naive UTC timestamp for PostgreSQL TIMESTAMP WITHOUT TIME ZONE columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_ymd(value: date) -> str:
    """Date-only string (YYYY-MM-DD), never shifted by a time zone"""
    return value.isoformat()

def parse_ymd(value: str) -> date:
    return date.fromisoformat(value)

def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """
    First and last day of a calendar month

    Raises:
        ValueError: month outside 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])

def shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    """(year, month) moved by offset months, rolling over year boundaries"""
    shifted = date(year, month, 1) + relativedelta(months=offset)
    return shifted.year, shifted.month

def window_bounds(year: int, month: int, planning_window_months: int = 0) -> Tuple[date, date]:
    """First day of the target month through the last day of the last window month"""
    start, _ = month_bounds(year, month)
    end_year, end_month = shift_month(year, month, planning_window_months)
    _, end = month_bounds(end_year, end_month)
    return start, end

def months_in_window(year: int, month: int, planning_window_months: int = 0) -> List[Tuple[int, int]]:
    return [shift_month(year, month, offset) for offset in range(planning_window_months + 1)]

def day_in_month(year: int, month: int, day: int) -> date:
    """Same day-of-month in another month, clamped to that month's length"""
    return date(year, month, min(day, monthrange(year, month)[1]))

def months_between(from_year: int, from_month: int, to_year: int, to_month: int) -> int:
    """Whole calendar months from one month to another; negative when going back"""
    return (to_year - from_year) * 12 + (to_month - from_month)
