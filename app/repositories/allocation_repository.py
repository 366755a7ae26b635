"""Repository for debt allocations and dismissed warnings."""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import utcnow
from app.models.debt import Debt, DebtAllocation, MonthlyDebtPlanning, DismissedWarning


class AllocationRepository:
    """
    Allocation store.

    A debt has one allocation row per month (unique on the monthly planning
    row). Re-allocating moves that row to another paycheck; unallocating
    keeps the row and clears its paycheck.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_for_planning_row(self, budget_account_id: int, monthly_debt_planning_id: int) -> Optional[DebtAllocation]:
        result = await self.session.execute(
            select(DebtAllocation).where(
                and_(
                    DebtAllocation.budget_account_id == budget_account_id,
                    DebtAllocation.monthly_debt_planning_id == monthly_debt_planning_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def get(self, budget_account_id: int, allocation_id: int) -> Optional[DebtAllocation]:
        result = await self.session.execute(
            select(DebtAllocation).where(
                and_(
                    DebtAllocation.id == allocation_id,
                    DebtAllocation.budget_account_id == budget_account_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_planning_rows(self, budget_account_id: int, monthly_debt_planning_ids: Iterable[int]) -> List[DebtAllocation]:
        ids = list(monthly_debt_planning_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(DebtAllocation)
            .where(
                and_(
                    DebtAllocation.budget_account_id == budget_account_id,
                    DebtAllocation.monthly_debt_planning_id.in_(ids)
                )
            )
            .order_by(DebtAllocation.id)
        )
        return list(result.scalars().all())

    async def list_for_paychecks(
        self,
        budget_account_id: int,
        paycheck_ids: Iterable[str]
    ) -> List[Tuple[DebtAllocation, MonthlyDebtPlanning, Debt]]:
        """
        Allocations held by the given paychecks, with their active planning row and debt.

        The planning rows may belong to any month, so debts pulled in through
        a planning window count against the paycheck that pays them.
        """
        ids = list(paycheck_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(DebtAllocation, MonthlyDebtPlanning, Debt)
            .join(MonthlyDebtPlanning, MonthlyDebtPlanning.id == DebtAllocation.monthly_debt_planning_id)
            .join(Debt, Debt.id == MonthlyDebtPlanning.debt_id)
            .where(
                and_(
                    DebtAllocation.budget_account_id == budget_account_id,
                    DebtAllocation.paycheck_id.in_(ids),
                    MonthlyDebtPlanning.is_active == True
                )
            )
            .order_by(DebtAllocation.id)
        )
        return [(allocation, monthly, debt) for allocation, monthly, debt in result.all()]

    async def upsert_allocation(
        self,
        budget_account_id: int,
        user_id: int,
        monthly_plan: MonthlyDebtPlanning,
        paycheck_id: str,
        payment_amount: Decimal,
        payment_date: Optional[date],
        note: Optional[str] = None
    ) -> DebtAllocation:
        """Create the month's allocation row or point the existing one at paycheck_id."""
        result = await self.session.execute(
            select(DebtAllocation).where(DebtAllocation.monthly_debt_planning_id == monthly_plan.id)
        )
        allocation = result.scalar_one_or_none()
        now = utcnow()

        if allocation is None:
            allocation = DebtAllocation(
                budget_account_id=budget_account_id,
                user_id=user_id,
                debt_id=monthly_plan.debt_id,
                monthly_debt_planning_id=monthly_plan.id,
                is_paid=False
            )
            self.session.add(allocation)

        allocation.paycheck_id = paycheck_id
        allocation.payment_amount = payment_amount
        allocation.payment_date = payment_date
        allocation.note = note
        allocation.allocated_at = now
        allocation.updated_at = now

        await self.session.flush()
        return allocation

    async def update_payment(
        self,
        allocation: DebtAllocation,
        payment_amount: Optional[Decimal],
        payment_date: Optional[date],
        note: Optional[str] = None
    ) -> DebtAllocation:
        if payment_amount is not None:
            allocation.payment_amount = payment_amount
        if payment_date is not None:
            allocation.payment_date = payment_date
        if note is not None:
            allocation.note = note
        allocation.updated_at = utcnow()
        await self.session.flush()
        return allocation

    async def clear_allocation_paycheck(self, allocation: DebtAllocation, note: Optional[str] = None) -> DebtAllocation:
        allocation.paycheck_id = None
        allocation.payment_date = None
        allocation.note = note
        allocation.updated_at = utcnow()
        await self.session.flush()
        return allocation

    async def mark_allocation_paid(
        self,
        allocation: DebtAllocation,
        payment_date: date,
        payment_amount: Optional[Decimal] = None
    ) -> DebtAllocation:
        now = utcnow()
        allocation.is_paid = True
        allocation.paid_at = now
        allocation.payment_date = payment_date
        if payment_amount is not None:
            allocation.payment_amount = payment_amount
        allocation.note = f"Payment marked as paid on {payment_date.isoformat()}"
        allocation.updated_at = now
        await self.session.flush()
        return allocation

    async def dismissed_warnings(self, budget_account_id: int, user_id: int) -> Set[Tuple[str, str]]:
        result = await self.session.execute(
            select(DismissedWarning.warning_type, DismissedWarning.warning_key).where(
                and_(
                    DismissedWarning.budget_account_id == budget_account_id,
                    DismissedWarning.user_id == user_id
                )
            )
        )
        return {(row.warning_type, row.warning_key) for row in result}

    async def add_dismissal(self, budget_account_id: int, user_id: int, warning_type: str, warning_key: str) -> bool:
        """Record a dismissal; False when it already existed."""
        if (warning_type, warning_key) in await self.dismissed_warnings(budget_account_id, user_id):
            return False
        self.session.add(DismissedWarning(
            budget_account_id=budget_account_id,
            user_id=user_id,
            warning_type=warning_type,
            warning_key=warning_key
        ))
        await self.session.flush()
        return True
