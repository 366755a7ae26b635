"""
Paycheck Projection
Turns recurring income sources into dated paycheck occurrences
"""

import re
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from app.core.datetime_utils import month_bounds, to_ymd
from app.core.errors import InvalidAllocationError
from app.schemas.paycheck_planning import PaycheckInfo

WEEKLY_STEPS = {
    'weekly': timedelta(weeks=1),
    'bi-weekly': timedelta(weeks=2),
}

PAYCHECK_ID_PATTERN = re.compile(r'^(\d+)-(\d{4}-\d{2}-\d{2})$')

def occurrence(start: date, frequency: str, n: int) -> date:
    """
    n-th pay date counted from the anchor

    Monthly dates are always derived from the anchor, so a source starting
    on the 31st pays on the last day of short months and returns to the
    31st afterwards.
    """
    if frequency == 'monthly':
        return start + relativedelta(months=n)
    step = WEEKLY_STEPS.get(frequency)
    if step is None:
        raise ValueError(f"Unknown income frequency: {frequency!r}")
    return start + step * n

def _first_index_on_or_after(start: date, frequency: str, day: date) -> int:
    if day <= start:
        return 0
    if frequency == 'monthly':
        n = (day.year - start.year) * 12 + (day.month - start.month)
        if occurrence(start, frequency, n) < day:
            n += 1
        return n
    step_days = (occurrence(start, frequency, 1) - start).days
    return -(-(day - start).days // step_days)

def occurrences_between(source, window_start: date, window_end: date) -> Iterator[date]:
    """Pay dates of one source inside [window_start, window_end], bounded by its own start/end"""
    lower = max(window_start, source.start_date)
    upper = window_end if source.end_date is None else min(window_end, source.end_date)
    if lower > upper:
        return

    n = _first_index_on_or_after(source.start_date, source.frequency, lower)
    while True:
        pay_date = occurrence(source.start_date, source.frequency, n)
        if pay_date > upper:
            break
        yield pay_date
        n += 1

def make_paycheck_id(income_source_id: int, pay_date: date) -> str:
    return f"{income_source_id}-{to_ymd(pay_date)}"

def parse_paycheck_id(paycheck_id: str) -> Tuple[int, date]:
    """Split a paycheck id back into (income_source_id, pay date)"""
    match = PAYCHECK_ID_PATTERN.match(paycheck_id or '')
    if not match:
        raise InvalidAllocationError(f"Malformed paycheck id: {paycheck_id!r}")
    try:
        pay_date = date.fromisoformat(match.group(2))
    except ValueError:
        raise InvalidAllocationError(f"Malformed paycheck id: {paycheck_id!r}")
    return int(match.group(1)), pay_date

def project_paychecks_between(
    sources: Iterable,
    window_start: date,
    window_end: date,
    user_id: Optional[int] = None
) -> List[PaycheckInfo]:
    """
    Paychecks of all active sources inside a date window

    Ordered by date, ties broken by the order the sources were given in.
    """
    dated = []
    for index, source in enumerate(sources):
        if not source.is_active:
            continue
        for pay_date in occurrences_between(source, window_start, window_end):
            paycheck = PaycheckInfo(
                id=make_paycheck_id(source.id, pay_date),
                income_source_id=source.id,
                user_id=user_id if user_id is not None else source.user_id,
                name=source.name,
                amount=source.amount,
                date=pay_date,
                frequency=source.frequency
            )
            dated.append((pay_date, index, paycheck))

    dated.sort(key=lambda item: (item[0], item[1]))
    return [paycheck for _, _, paycheck in dated]

def project_paychecks(sources: Iterable, year: int, month: int, user_id: Optional[int] = None) -> List[PaycheckInfo]:
    start, end = month_bounds(year, month)
    return project_paychecks_between(sources, start, end, user_id)
