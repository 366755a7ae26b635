"""
Planning Cache
In-process cache of planning reads with an explicit invalidate-on-write contract
"""

import logging
import time
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from app.core.errors import persistence_errors
from app.schemas.paycheck_planning import PaycheckAllocationSummary, PaycheckPlanningData
from app.services.paycheck_projection import parse_paycheck_id

logger = logging.getLogger(__name__)

PLANNING_DATA = 'planning_data'
ALLOCATIONS = 'allocations'

# (kind, budget_account_id, year, month, viewer user id)
CacheKey = Tuple[str, int, int, int, int]

class PlanningCache:
    """
    Time-boxed cache of planning data and allocation summaries

    Entries are keyed by (kind, budget_account_id, year, month) plus the
    viewing user, since dismissed warnings are per user. Invalidation drops
    the month for every viewer.
    """

    def __init__(self, max_age_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.max_age_seconds = max_age_seconds
        self.clock = clock
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, key: CacheKey) -> Optional[Any]:
        """Cached value regardless of age, or None"""
        entry = self._entries.get(key)
        return entry[1] if entry else None

    def is_fresh(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self.clock() - entry[0] < self.max_age_seconds

    async def get_or_load(self, key: CacheKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Fresh entry, or the loader's result stored under key

        A failing loader propagates its error and leaves the previous entry
        in place. Storing a new value also drops every expired entry.
        """
        if self.is_fresh(key):
            return self._entries[key][1]

        value = await loader()
        self.evict_expired()
        self._entries[key] = (self.clock(), value)
        return value

    def evict_expired(self) -> int:
        """Drop entries older than max_age_seconds; returns how many were dropped"""
        now = self.clock()
        stale = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.max_age_seconds]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate(self, budget_account_id: int, year: int, month: int) -> int:
        """Drop both kinds of entries of one month; returns how many were dropped"""
        stale = [key for key in self._entries if key[1:4] == (budget_account_id, year, month)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate_account(self, budget_account_id: int) -> int:
        stale = [key for key in self._entries if key[1] == budget_account_id]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

class CachedPlanningClient:
    """
    Planner front that reads through a PlanningCache

    Every write invalidates the affected month and re-fetches both the
    planning data and the allocations before returning, so callers never
    see a remaining amount older than their own write.
    """

    def __init__(self, planner, cache: PlanningCache):
        self.planner = planner
        self.cache = cache

    def _key(self, kind: str, budget_account_id: int, year: int, month: int) -> CacheKey:
        return (kind, budget_account_id, year, month, self.planner.user_id)

    async def get_planning_data(self, budget_account_id: int, year: int, month: int) -> PaycheckPlanningData:
        return await self.cache.get_or_load(
            self._key(PLANNING_DATA, budget_account_id, year, month),
            lambda: self.planner.get_paycheck_planning_data(budget_account_id, year, month)
        )

    async def get_allocations(self, budget_account_id: int, year: int, month: int) -> List[PaycheckAllocationSummary]:
        return await self.cache.get_or_load(
            self._key(ALLOCATIONS, budget_account_id, year, month),
            lambda: self.planner.get_paycheck_allocations(budget_account_id, year, month)
        )

    async def refresh(self, budget_account_id: int, year: int, month: int) -> None:
        """Invalidate one month and load both entries again"""
        self.cache.invalidate(budget_account_id, year, month)
        await self.get_planning_data(budget_account_id, year, month)
        await self.get_allocations(budget_account_id, year, month)
        logger.debug("Refreshed planning cache for budget account %s %04d-%02d", budget_account_id, year, month)

    async def _refresh_months(self, budget_account_id: int, months: Iterable[Tuple[int, int]]) -> None:
        for year, month in sorted(set(months)):
            await self.refresh(budget_account_id, year, month)

    async def _planning_month(self, budget_account_id: int, monthly_debt_planning_id: int) -> Optional[Tuple[int, int]]:
        with persistence_errors("look up monthly debt planning"):
            monthly = await self.planner.debts.get_monthly_record(budget_account_id, monthly_debt_planning_id)
        return (monthly.year, monthly.month) if monthly is not None else None

    async def update_debt_allocation(
        self,
        budget_account_id: int,
        debt_id: int,
        paycheck_id: str,
        action: str,
        payment_amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        monthly_debt_planning_id: Optional[int] = None
    ):
        """Refreshes the paycheck's month and, when it differs, the month of the debt's row"""
        allocation = await self.planner.update_debt_allocation(
            budget_account_id, debt_id, paycheck_id, action,
            payment_amount=payment_amount,
            payment_date=payment_date,
            monthly_debt_planning_id=monthly_debt_planning_id
        )
        _, pay_date = parse_paycheck_id(paycheck_id)
        months = [(pay_date.year, pay_date.month)]
        if allocation is not None:
            planning_month = await self._planning_month(budget_account_id, allocation.monthly_debt_planning_id)
            if planning_month is not None:
                months.append(planning_month)
        await self._refresh_months(budget_account_id, months)
        return allocation

    async def allocate(self, budget_account_id: int, debt_id: int, paycheck_id: str, **payment):
        return await self.update_debt_allocation(budget_account_id, debt_id, paycheck_id, 'allocate', **payment)

    async def unallocate(self, budget_account_id: int, debt_id: int, paycheck_id: str, monthly_debt_planning_id: Optional[int] = None):
        return await self.update_debt_allocation(
            budget_account_id, debt_id, paycheck_id, 'unallocate',
            monthly_debt_planning_id=monthly_debt_planning_id
        )

    async def mark_paid(
        self,
        budget_account_id: int,
        payment_id: int,
        payment_amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None
    ):
        allocation = await self.planner.mark_payment_as_paid(
            budget_account_id, payment_id,
            payment_amount=payment_amount,
            payment_date=payment_date
        )
        months = []
        if allocation.paycheck_id is not None:
            _, pay_date = parse_paycheck_id(allocation.paycheck_id)
            months.append((pay_date.year, pay_date.month))
        planning_month = await self._planning_month(budget_account_id, allocation.monthly_debt_planning_id)
        if planning_month is not None:
            months.append(planning_month)
        await self._refresh_months(budget_account_id, months)
        return allocation

    async def populate(self, budget_account_id: int, year: int, month: int, planning_window_months: int = 0) -> int:
        created = await self.planner.populate_monthly_debt_planning(budget_account_id, year, month, planning_window_months)
        self.cache.invalidate_account(budget_account_id)
        await self.refresh(budget_account_id, year, month)
        return created

    async def set_active(self, budget_account_id: int, monthly_debt_planning_id: int, is_active: bool):
        """Refreshes the row's month and the month of the paycheck it is allocated to"""
        record = await self.planner.set_monthly_debt_planning_active(budget_account_id, monthly_debt_planning_id, is_active)
        months = [(record.year, record.month)]
        with persistence_errors("look up debt allocation"):
            allocation = await self.planner.allocations.find_for_planning_row(budget_account_id, record.id)
        if allocation is not None and allocation.paycheck_id is not None:
            _, pay_date = parse_paycheck_id(allocation.paycheck_id)
            months.append((pay_date.year, pay_date.month))
        await self._refresh_months(budget_account_id, months)
        return record

    async def dismiss_warning(self, budget_account_id: int, warning_type: str, warning_key: str) -> bool:
        """Warning keys are not tied to one month; the whole account is dropped"""
        created = await self.planner.dismiss_warning(budget_account_id, warning_type, warning_key)
        self.cache.invalidate_account(budget_account_id)
        return created
