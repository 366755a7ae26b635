"""Repository for debts and their monthly planning rows."""

import logging
from datetime import date
from typing import List, Optional, Set, Tuple

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import month_bounds
from app.models.debt import Debt, MonthlyDebtPlanning, DebtAllocation

logger = logging.getLogger(__name__)


class DebtRepository:
    """Debt store: debt catalogue plus the per-month materialization of it."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_debt(self, budget_account_id: int, debt_id: int) -> Optional[Debt]:
        result = await self.session.execute(
            select(Debt).where(
                and_(
                    Debt.id == debt_id,
                    Debt.budget_account_id == budget_account_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_debts(self, budget_account_id: int) -> List[Debt]:
        result = await self.session.execute(
            select(Debt)
            .where(Debt.budget_account_id == budget_account_id)
            .order_by(Debt.due_date, Debt.id)
        )
        return list(result.scalars().all())

    async def add_debt(self, debt: Debt) -> Debt:
        self.session.add(debt)
        await self.session.flush()
        return debt

    async def delete_debt(self, debt: Debt) -> None:
        """Delete a debt together with its monthly rows and allocations."""
        await self.session.execute(delete(DebtAllocation).where(DebtAllocation.debt_id == debt.id))
        await self.session.execute(delete(MonthlyDebtPlanning).where(MonthlyDebtPlanning.debt_id == debt.id))
        await self.session.delete(debt)
        await self.session.flush()

    async def list_monthly_debts(
        self,
        budget_account_id: int,
        start: date,
        end: date,
        is_active: bool = True
    ) -> List[Tuple[MonthlyDebtPlanning, Debt]]:
        """
        Monthly planning rows due within [start, end] joined with their debt.

        Rows whose debt no longer exists are skipped with a warning.
        """
        result = await self.session.execute(
            select(MonthlyDebtPlanning, Debt)
            .outerjoin(Debt, Debt.id == MonthlyDebtPlanning.debt_id)
            .where(
                and_(
                    MonthlyDebtPlanning.budget_account_id == budget_account_id,
                    MonthlyDebtPlanning.is_active == is_active,
                    MonthlyDebtPlanning.due_date >= start,
                    MonthlyDebtPlanning.due_date <= end
                )
            )
            .order_by(MonthlyDebtPlanning.due_date, MonthlyDebtPlanning.id)
        )

        rows = []
        for monthly, debt in result.all():
            if debt is None:
                logger.warning(
                    "Monthly record %s references missing debt %s in budget account %s",
                    monthly.id, monthly.debt_id, budget_account_id
                )
                continue
            rows.append((monthly, debt))
        return rows

    async def list_active_monthly_debts(
        self,
        budget_account_id: int,
        year: int,
        month: int
    ) -> List[Tuple[MonthlyDebtPlanning, Debt]]:
        """Active debts materialized for one month."""
        start, end = month_bounds(year, month)
        return await self.list_monthly_debts(budget_account_id, start, end)

    async def find_monthly_record(
        self,
        budget_account_id: int,
        debt_id: int,
        year: int,
        month: int
    ) -> Optional[MonthlyDebtPlanning]:
        result = await self.session.execute(
            select(MonthlyDebtPlanning).where(
                and_(
                    MonthlyDebtPlanning.budget_account_id == budget_account_id,
                    MonthlyDebtPlanning.debt_id == debt_id,
                    MonthlyDebtPlanning.year == year,
                    MonthlyDebtPlanning.month == month
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_monthly_record(self, budget_account_id: int, monthly_debt_planning_id: int) -> Optional[MonthlyDebtPlanning]:
        result = await self.session.execute(
            select(MonthlyDebtPlanning).where(
                and_(
                    MonthlyDebtPlanning.id == monthly_debt_planning_id,
                    MonthlyDebtPlanning.budget_account_id == budget_account_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def existing_month_keys(self, budget_account_id: int) -> Set[Tuple[int, int, int]]:
        """(debt_id, year, month) of every monthly row, hidden ones included."""
        result = await self.session.execute(
            select(
                MonthlyDebtPlanning.debt_id,
                MonthlyDebtPlanning.year,
                MonthlyDebtPlanning.month
            ).where(MonthlyDebtPlanning.budget_account_id == budget_account_id)
        )
        return {(row.debt_id, row.year, row.month) for row in result}

    async def insert_monthly_record_if_missing(
        self,
        budget_account_id: int,
        debt_id: int,
        year: int,
        month: int,
        due_date: date
    ) -> bool:
        """
        Insert one monthly row unless (account, debt, year, month) already exists.

        Returns True when a row was written. A concurrent insert of the same
        month hits the unique constraint and is reported as already present.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            self.session.add(MonthlyDebtPlanning(
                budget_account_id=budget_account_id,
                debt_id=debt_id,
                year=year,
                month=month,
                due_date=due_date,
                is_active=True
            ))
            await self.session.flush()
            return True

        stmt = (
            insert(MonthlyDebtPlanning)
            .values(
                budget_account_id=budget_account_id,
                debt_id=debt_id,
                year=year,
                month=month,
                due_date=due_date,
                is_active=True
            )
            .on_conflict_do_nothing(index_elements=["budget_account_id", "debt_id", "year", "month"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
