"""Repository for income sources."""

from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.income import IncomeSource


class IncomeSourceRepository:
    """Income-source store: recurring income definitions of a budget account."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active(self, budget_account_id: int) -> List[IncomeSource]:
        """Active sources in creation order, the tie-break order for same-day paychecks."""
        result = await self.session.execute(
            select(IncomeSource)
            .where(
                and_(
                    IncomeSource.budget_account_id == budget_account_id,
                    IncomeSource.is_active == True
                )
            )
            .order_by(IncomeSource.id)
        )
        return list(result.scalars().all())

    async def list_all(self, budget_account_id: int) -> List[IncomeSource]:
        result = await self.session.execute(
            select(IncomeSource)
            .where(IncomeSource.budget_account_id == budget_account_id)
            .order_by(IncomeSource.id)
        )
        return list(result.scalars().all())

    async def get(self, budget_account_id: int, income_source_id: int) -> Optional[IncomeSource]:
        result = await self.session.execute(
            select(IncomeSource).where(
                and_(
                    IncomeSource.id == income_source_id,
                    IncomeSource.budget_account_id == budget_account_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def add(self, income_source: IncomeSource) -> IncomeSource:
        self.session.add(income_source)
        await self.session.flush()
        return income_source

    async def delete(self, income_source: IncomeSource) -> None:
        await self.session.delete(income_source)
        await self.session.flush()
