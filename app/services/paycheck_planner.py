"""
Paycheck Planner Service
Assigns the month's debts to projected paychecks and reports what is left of each paycheck
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.datetime_utils import month_bounds, months_between, months_in_window, window_bounds, day_in_month
from app.core.errors import NotFoundError, InvalidAllocationError, persistence_errors
from app.models.budget_account import BudgetAccountMember
from app.models.debt import Debt, DebtAllocation, MonthlyDebtPlanning
from app.repositories.allocation_repository import AllocationRepository
from app.repositories.debt_repository import DebtRepository
from app.repositories.income_repository import IncomeSourceRepository
from app.schemas.paycheck_planning import (
    AllocatedDebt,
    DebtInfo,
    PaycheckAllocationSummary,
    PaycheckInfo,
    PaycheckPlanningData,
    PlanningWarning
)
from app.services.paycheck_projection import parse_paycheck_id, project_paychecks, project_paychecks_between
from app.services.planning_warnings import derive_warnings

logger = logging.getLogger(__name__)

ALLOCATION_ACTIONS = ('allocate', 'unallocate', 'update')

def to_debt_info(monthly: MonthlyDebtPlanning, debt: Debt) -> DebtInfo:
    """Planning row + debt record -> the debt entry the planner reports"""
    return DebtInfo(
        id=debt.id,
        monthly_debt_planning_id=monthly.id,
        name=debt.name,
        amount=debt.payment_amount,
        due_date=monthly.due_date,
        original_due_date=debt.due_date,
        frequency=debt.frequency,
        has_balance=debt.has_balance,
        category_id=debt.category_id
    )

def to_allocated_debt(allocation: DebtAllocation, debt: DebtInfo) -> AllocatedDebt:
    return AllocatedDebt(
        debt_id=debt.id,
        monthly_debt_planning_id=debt.monthly_debt_planning_id,
        debt_name=debt.name,
        amount=debt.amount,
        due_date=debt.due_date,
        original_due_date=debt.original_due_date,
        payment_date=allocation.payment_date,
        payment_amount=allocation.payment_amount,
        is_paid=allocation.is_paid,
        payment_id=allocation.id
    )

class PaycheckPlanner:
    """
    Paycheck-to-debt allocation planner for one user

    Every operation checks that the user belongs to the budget account and
    raises NotFoundError otherwise. Reads never write; writes commit once.
    """

    def __init__(self, db: AsyncSession, user_id: int, today: Optional[date] = None):
        self.db = db
        self.user_id = user_id
        self.today = today or date.today()
        self.income_sources = IncomeSourceRepository(db)
        self.debts = DebtRepository(db)
        self.allocations = AllocationRepository(db)

    async def ensure_member(self, budget_account_id: int) -> None:
        with persistence_errors("check budget account membership"):
            result = await self.db.execute(
                select(BudgetAccountMember.id).where(
                    and_(
                        BudgetAccountMember.budget_account_id == budget_account_id,
                        BudgetAccountMember.user_id == self.user_id
                    )
                )
            )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Budget account not found")

    async def project_month(self, budget_account_id: int, year: int, month: int) -> List[PaycheckInfo]:
        sources = await self.income_sources.list_active(budget_account_id)
        return project_paychecks(sources, year, month)

    async def _future_paychecks(self, budget_account_id: int, year: int, month: int) -> List[PaycheckInfo]:
        """Paychecks after the target month up to the configured horizon"""
        month_start, month_end = month_bounds(year, month)
        horizon_end = month_start + relativedelta(months=settings.PAYCHECK_HORIZON_MONTHS) - timedelta(days=1)
        if horizon_end <= month_end:
            return []
        sources = await self.income_sources.list_active(budget_account_id)
        return project_paychecks_between(sources, month_end + timedelta(days=1), horizon_end)

    async def _window_debts(
        self,
        budget_account_id: int,
        year: int,
        month: int,
        planning_window_months: int = 0,
        is_active: bool = True
    ) -> List[DebtInfo]:
        start, end = window_bounds(year, month, planning_window_months)
        rows = await self.debts.list_monthly_debts(budget_account_id, start, end, is_active=is_active)
        return [to_debt_info(monthly, debt) for monthly, debt in rows]

    async def _summarize(
        self,
        budget_account_id: int,
        paychecks: List[PaycheckInfo],
        month_debts: List[DebtInfo]
    ) -> Tuple[List[PaycheckAllocationSummary], Set[int]]:
        """
        Allocation summary per paycheck

        A paycheck's summary counts every active planning row it pays,
        including rows of later months pulled in by a planning window.
        Returns the summaries and the month's planning ids holding a paycheck
        assignment (whether or not that paycheck is still projected).
        """
        plan_ids = [d.monthly_debt_planning_id for d in month_debts]
        month_allocations = await self.allocations.list_for_planning_rows(budget_account_id, plan_ids)
        allocated_ids = {a.monthly_debt_planning_id for a in month_allocations if a.paycheck_id is not None}

        by_paycheck = defaultdict(list)
        rows = await self.allocations.list_for_paychecks(budget_account_id, [p.id for p in paychecks])
        for allocation, monthly, debt in rows:
            by_paycheck[allocation.paycheck_id].append(to_allocated_debt(allocation, to_debt_info(monthly, debt)))

        summaries = []
        for paycheck in paychecks:
            allocated = sorted(by_paycheck.get(paycheck.id, []), key=lambda item: (item.due_date, item.debt_id))
            total_allocated = sum((item.payment_amount for item in allocated), Decimal('0'))

            summaries.append(PaycheckAllocationSummary(
                paycheck_id=paycheck.id,
                paycheck_date=paycheck.date,
                paycheck_amount=paycheck.amount,
                allocated_debts=allocated,
                remaining_amount=paycheck.amount - total_allocated
            ))

        return summaries, allocated_ids

    async def get_paycheck_planning_data(
        self,
        budget_account_id: int,
        year: int,
        month: int,
        planning_window_months: int = 0
    ) -> PaycheckPlanningData:
        """
        Paychecks, debts and warnings for a month

        Debts cover the target month plus planning_window_months following
        months; warnings are evaluated over the target month only.
        """
        await self.ensure_member(budget_account_id)
        month_start, month_end = month_bounds(year, month)

        with persistence_errors("load paycheck planning data"):
            paychecks = await self.project_month(budget_account_id, year, month)
            future_paychecks = await self._future_paychecks(budget_account_id, year, month)
            debts = await self._window_debts(budget_account_id, year, month, planning_window_months)

            month_debts = [d for d in debts if month_start <= d.due_date <= month_end]
            summaries, allocated_ids = await self._summarize(budget_account_id, paychecks, month_debts)
            dismissed = await self.allocations.dismissed_warnings(budget_account_id, self.user_id)

        warnings = derive_warnings(
            month_debts,
            summaries,
            allocated_ids,
            today=self.today,
            due_soon_days=settings.DUE_SOON_DAYS,
            dismissed=dismissed,
            period=f"{year:04d}-{month:02d}"
        )

        return PaycheckPlanningData(
            paychecks=paychecks,
            future_paychecks=future_paychecks,
            debts=debts,
            warnings=warnings
        )

    async def get_paycheck_allocations(self, budget_account_id: int, year: int, month: int) -> List[PaycheckAllocationSummary]:
        await self.ensure_member(budget_account_id)

        with persistence_errors("load paycheck allocations"):
            paychecks = await self.project_month(budget_account_id, year, month)
            month_debts = await self._window_debts(budget_account_id, year, month)
            summaries, _ = await self._summarize(budget_account_id, paychecks, month_debts)

        return summaries

    async def get_warnings(self, budget_account_id: int, year: int, month: int) -> List[PlanningWarning]:
        data = await self.get_paycheck_planning_data(budget_account_id, year, month)
        return data.warnings

    async def update_debt_allocation(
        self,
        budget_account_id: int,
        debt_id: int,
        paycheck_id: str,
        action: str,
        payment_amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        monthly_debt_planning_id: Optional[int] = None
    ) -> Optional[DebtAllocation]:
        """
        Allocate, unallocate or update a debt's payment on a paycheck

        The debt's planning row defaults to the paycheck's month. Passing
        monthly_debt_planning_id targets a row of a later month instead, as
        long as it lies within MAX_PLANNING_WINDOW_MONTHS of the paycheck.
        Each planning row has at most one allocation, so allocating moves it
        off any other paycheck. Paid allocations can be neither moved nor
        unallocated.

        Returns:
            The allocation row, or None when the call changed nothing

        Raises:
            NotFoundError: debt or planning row not in the budget account
            InvalidAllocationError: bad action or amount, unknown paycheck,
                debt not planned for the month, planning row outside the
                paycheck's window, or allocation already paid
        """
        await self.ensure_member(budget_account_id)

        if action not in ALLOCATION_ACTIONS:
            raise InvalidAllocationError(f"Unknown allocation action: {action!r}")
        if payment_amount is not None and payment_amount <= 0:
            raise InvalidAllocationError("Payment amount must be greater than zero")

        _, pay_date = parse_paycheck_id(paycheck_id)

        with persistence_errors("update debt allocation"):
            debt = await self.debts.get_debt(budget_account_id, debt_id)
            if debt is None:
                raise NotFoundError(f"Debt {debt_id} not found")

            monthly_plan = await self._planning_row(budget_account_id, debt, pay_date, monthly_debt_planning_id)

            if action == 'allocate':
                allocation = await self._allocate(budget_account_id, debt, monthly_plan, paycheck_id, pay_date, payment_amount, payment_date)
            else:
                if monthly_plan is None:
                    return None
                allocation = await self.allocations.find_for_planning_row(budget_account_id, monthly_plan.id)
                if allocation is None:
                    return None
                if allocation.is_paid:
                    raise InvalidAllocationError(f"{debt.name} is already paid for {monthly_plan.year:04d}-{monthly_plan.month:02d}")
                if allocation.paycheck_id != paycheck_id:
                    return None

                if action == 'unallocate':
                    allocation = await self.allocations.clear_allocation_paycheck(
                        allocation,
                        note=f"Unallocated from paycheck {paycheck_id}"
                    )
                else:
                    note = f"Updated payment from paycheck allocation on {payment_date.isoformat()}" if payment_date else None
                    allocation = await self.allocations.update_payment(allocation, payment_amount, payment_date, note)

            await self.db.commit()

        logger.info(
            "Debt %s %s paycheck %s in budget account %s",
            debt_id, {'allocate': 'allocated to', 'unallocate': 'unallocated from', 'update': 'updated on'}[action],
            paycheck_id, budget_account_id
        )
        return allocation

    async def _planning_row(
        self,
        budget_account_id: int,
        debt: Debt,
        pay_date: date,
        monthly_debt_planning_id: Optional[int]
    ) -> Optional[MonthlyDebtPlanning]:
        """The debt's planning row a paycheck acts on, or None when the month has none"""
        if monthly_debt_planning_id is None:
            return await self.debts.find_monthly_record(budget_account_id, debt.id, pay_date.year, pay_date.month)

        monthly_plan = await self.debts.get_monthly_record(budget_account_id, monthly_debt_planning_id)
        if monthly_plan is None:
            raise NotFoundError(f"Monthly debt {monthly_debt_planning_id} not found")
        if monthly_plan.debt_id != debt.id:
            raise InvalidAllocationError(f"Monthly debt {monthly_debt_planning_id} does not belong to {debt.name}")

        offset = months_between(pay_date.year, pay_date.month, monthly_plan.year, monthly_plan.month)
        if not 0 <= offset <= settings.MAX_PLANNING_WINDOW_MONTHS:
            raise InvalidAllocationError(
                f"{debt.name} for {monthly_plan.year:04d}-{monthly_plan.month:02d} is outside the planning window "
                f"of paychecks in {pay_date.year:04d}-{pay_date.month:02d}"
            )
        return monthly_plan

    async def _allocate(
        self,
        budget_account_id: int,
        debt: Debt,
        monthly_plan: Optional[MonthlyDebtPlanning],
        paycheck_id: str,
        pay_date: date,
        payment_amount: Optional[Decimal],
        payment_date: Optional[date]
    ) -> DebtAllocation:
        year, month = pay_date.year, pay_date.month
        paychecks = {p.id: p for p in await self.project_month(budget_account_id, year, month)}
        paycheck = paychecks.get(paycheck_id)
        if paycheck is None:
            raise InvalidAllocationError(f"Paycheck {paycheck_id} does not exist in {year:04d}-{month:02d}")

        if monthly_plan is None or not monthly_plan.is_active:
            raise InvalidAllocationError(f"{debt.name} is not planned for {year:04d}-{month:02d}")

        existing = await self.allocations.find_for_planning_row(budget_account_id, monthly_plan.id)
        if existing is not None and existing.is_paid:
            raise InvalidAllocationError(f"{debt.name} is already paid for {monthly_plan.year:04d}-{monthly_plan.month:02d}")

        payment_date = payment_date or paycheck.date
        return await self.allocations.upsert_allocation(
            budget_account_id,
            self.user_id,
            monthly_plan,
            paycheck_id,
            payment_amount=payment_amount if payment_amount is not None else debt.payment_amount,
            payment_date=payment_date,
            note=f"Scheduled payment from paycheck allocation on {payment_date.isoformat()}"
        )

    async def mark_payment_as_paid(
        self,
        budget_account_id: int,
        payment_id: int,
        payment_amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None
    ) -> DebtAllocation:
        """
        Allocated -> Paid; one-way

        Marking an already paid allocation again changes nothing.
        """
        await self.ensure_member(budget_account_id)
        if payment_amount is not None and payment_amount <= 0:
            raise InvalidAllocationError("Payment amount must be greater than zero")

        with persistence_errors("mark payment as paid"):
            allocation = await self.allocations.get(budget_account_id, payment_id)
            if allocation is None:
                raise NotFoundError(f"Payment {payment_id} not found")
            if allocation.is_paid:
                return allocation
            if allocation.paycheck_id is None:
                raise InvalidAllocationError("Only allocated payments can be marked as paid")

            allocation = await self.allocations.mark_allocation_paid(
                allocation,
                payment_date=payment_date or self.today,
                payment_amount=payment_amount
            )
            await self.db.commit()

        logger.info("Payment %s marked as paid in budget account %s", payment_id, budget_account_id)
        return allocation

    async def populate_monthly_debt_planning(
        self,
        budget_account_id: int,
        year: int,
        month: int,
        planning_window_months: int = 0
    ) -> int:
        """
        Materialize every debt into each month of the window

        A debt starts appearing in the month of its own due date; one-time
        debts appear only there. Existing rows, hidden ones included, are
        left alone.

        Returns:
            Number of monthly rows created
        """
        await self.ensure_member(budget_account_id)
        created = 0

        with persistence_errors("populate monthly debt planning"):
            debts = await self.debts.list_debts(budget_account_id)
            existing = await self.debts.existing_month_keys(budget_account_id)

            for debt in debts:
                first_month = (debt.due_date.year, debt.due_date.month)
                for target_year, target_month in months_in_window(year, month, planning_window_months):
                    if (target_year, target_month) < first_month:
                        continue
                    if debt.frequency == 'once' and (target_year, target_month) != first_month:
                        continue

                    key = (debt.id, target_year, target_month)
                    if key in existing:
                        continue

                    inserted = await self.debts.insert_monthly_record_if_missing(
                        budget_account_id,
                        debt.id,
                        target_year,
                        target_month,
                        day_in_month(target_year, target_month, debt.due_date.day)
                    )
                    existing.add(key)
                    if inserted:
                        created += 1

            await self.db.commit()

        logger.info(
            "Populated %d monthly debt rows for budget account %s from %04d-%02d (+%d months)",
            created, budget_account_id, year, month, planning_window_months
        )
        return created

    async def set_monthly_debt_planning_active(
        self,
        budget_account_id: int,
        monthly_debt_planning_id: int,
        is_active: bool
    ) -> MonthlyDebtPlanning:
        """Hide (False) or restore (True) a debt for one month without deleting it"""
        await self.ensure_member(budget_account_id)

        with persistence_errors("update monthly debt visibility"):
            record = await self.debts.get_monthly_record(budget_account_id, monthly_debt_planning_id)
            if record is None:
                raise NotFoundError(f"Monthly debt {monthly_debt_planning_id} not found")
            record.is_active = is_active
            await self.db.commit()

        return record

    async def get_hidden_monthly_debts(
        self,
        budget_account_id: int,
        year: int,
        month: int,
        planning_window_months: int = 0
    ) -> List[DebtInfo]:
        await self.ensure_member(budget_account_id)
        with persistence_errors("load hidden monthly debts"):
            return await self._window_debts(budget_account_id, year, month, planning_window_months, is_active=False)

    async def dismiss_warning(self, budget_account_id: int, warning_type: str, warning_key: str) -> bool:
        """Hide a warning from later reads; True when newly dismissed"""
        await self.ensure_member(budget_account_id)
        with persistence_errors("dismiss warning"):
            created = await self.allocations.add_dismissal(budget_account_id, self.user_id, warning_type, warning_key)
            await self.db.commit()
        return created

    async def get_current_month_planning_data(self, budget_account_id: int) -> PaycheckPlanningData:
        return await self.get_paycheck_planning_data(budget_account_id, self.today.year, self.today.month)

    async def get_current_month_allocations(self, budget_account_id: int) -> List[PaycheckAllocationSummary]:
        return await self.get_paycheck_allocations(budget_account_id, self.today.year, self.today.month)
