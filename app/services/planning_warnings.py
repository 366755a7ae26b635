"""
Planning Warnings
Derived on every read from the month's debts and allocation summaries; never stored
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Set, Tuple

from app.schemas.paycheck_planning import DebtInfo, PaycheckAllocationSummary, PlanningWarning

SEVERITY_RANK = {'high': 0, 'medium': 1, 'low': 2}

def _money(amount: Decimal) -> str:
    return f"${amount:,.2f}"

def debt_warning_key(debt: DebtInfo) -> str:
    return f"{debt.id}:{debt.due_date.isoformat()}"

def derive_warnings(
    debts: List[DebtInfo],
    summaries: List[PaycheckAllocationSummary],
    allocated_planning_ids: Set[int],
    today: date,
    due_soon_days: int = 3,
    dismissed: Iterable[Tuple[str, str]] = (),
    period: str = ''
) -> List[PlanningWarning]:
    """
    Scan every debt and every paycheck summary once and collect all warnings

    Args:
        debts: active debts of the target month
        summaries: allocation summaries of the target month's paychecks
        allocated_planning_ids: monthly planning ids holding a paycheck assignment
        today: reference date for past-due and due-soon checks
        due_soon_days: look-ahead for the due-soon warning
        dismissed: (warning_type, warning_key) pairs the user dismissed
        period: YYYY-MM of the target month, keys the month-level warning

    Returns:
        Warnings ordered by severity (high first), then type and key
    """
    warnings = []

    for summary in summaries:
        if summary.remaining_amount < 0:
            allocated = summary.paycheck_amount - summary.remaining_amount
            warnings.append(PlanningWarning(
                type='insufficient_funds',
                severity='high',
                key=summary.paycheck_id,
                paycheck_id=summary.paycheck_id,
                message=(
                    f"Paycheck on {summary.paycheck_date.isoformat()} is over-allocated by "
                    f"{_money(-summary.remaining_amount)} ({_money(allocated)} allocated "
                    f"from {_money(summary.paycheck_amount)})"
                )
            ))

        for allocated_debt in summary.allocated_debts:
            if allocated_debt.is_paid or allocated_debt.payment_date is None:
                continue
            if allocated_debt.payment_date > allocated_debt.due_date:
                warnings.append(PlanningWarning(
                    type='late_payment',
                    severity='medium',
                    key=f"{allocated_debt.debt_id}:{allocated_debt.due_date.isoformat()}",
                    debt_id=allocated_debt.debt_id,
                    paycheck_id=summary.paycheck_id,
                    message=(
                        f"{allocated_debt.debt_name} is scheduled for {allocated_debt.payment_date.isoformat()}, "
                        f"after its due date {allocated_debt.due_date.isoformat()}"
                    )
                ))

    due_soon_limit = today + timedelta(days=due_soon_days)
    for debt in debts:
        if debt.monthly_debt_planning_id in allocated_planning_ids:
            continue
        if debt.due_date < today:
            warnings.append(PlanningWarning(
                type='unallocated_past_due',
                severity='high',
                key=debt_warning_key(debt),
                debt_id=debt.id,
                message=f"{debt.name} ({_money(debt.amount)}) was due {debt.due_date.isoformat()} and is not assigned to a paycheck"
            ))
        elif debt.due_date <= due_soon_limit:
            warnings.append(PlanningWarning(
                type='due_soon_unallocated',
                severity='medium',
                key=debt_warning_key(debt),
                debt_id=debt.id,
                message=f"{debt.name} ({_money(debt.amount)}) is due {debt.due_date.isoformat()} and is not assigned to a paycheck"
            ))

    total_debts = sum((debt.amount for debt in debts), Decimal('0'))
    total_income = sum((summary.paycheck_amount for summary in summaries), Decimal('0'))
    if total_debts > total_income:
        warnings.append(PlanningWarning(
            type='income_shortfall',
            severity='medium',
            key=period or 'month',
            message=f"Total debts ({_money(total_debts)}) exceed total income ({_money(total_income)})"
        ))

    dismissed = set(dismissed)
    warnings = [w for w in warnings if (w.type, w.key) not in dismissed]
    warnings.sort(key=lambda w: (SEVERITY_RANK[w.severity], w.type, w.key))
    return warnings
