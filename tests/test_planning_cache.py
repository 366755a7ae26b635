import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import PersistenceError
from app.repositories.debt_repository import DebtRepository
from app.services.planning_cache import ALLOCATIONS, PLANNING_DATA, CachedPlanningClient, PlanningCache

class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def cache(clock):
    return PlanningCache(max_age_seconds=30, clock=clock)

def loader_returning(*values):
    calls = []

    async def load():
        calls.append(len(calls))
        return values[len(calls) - 1]

    return load, calls

async def test_fresh_entry_is_served_from_cache(cache):
    load, calls = loader_returning("first", "second")
    key = (PLANNING_DATA, 1, 2024, 3, 7)

    assert await cache.get_or_load(key, load) == "first"
    assert await cache.get_or_load(key, load) == "first"
    assert len(calls) == 1

async def test_stale_entry_is_reloaded(cache, clock):
    load, calls = loader_returning("first", "second")
    key = (PLANNING_DATA, 1, 2024, 3, 7)

    await cache.get_or_load(key, load)
    clock.now = 31

    assert await cache.get_or_load(key, load) == "second"
    assert len(calls) == 2

async def test_failed_load_keeps_previous_entry(cache, clock):
    key = (ALLOCATIONS, 1, 2024, 3, 7)
    load, _ = loader_returning("cached")
    await cache.get_or_load(key, load)
    clock.now = 31

    async def failing():
        raise RuntimeError("database down")

    with pytest.raises(RuntimeError):
        await cache.get_or_load(key, failing)
    assert cache.peek(key) == "cached"

async def test_invalidate_drops_month_for_every_viewer(cache):
    load, _ = loader_returning("a", "b", "c", "d")
    await cache.get_or_load((PLANNING_DATA, 1, 2024, 3, 7), load)
    await cache.get_or_load((ALLOCATIONS, 1, 2024, 3, 8), load)
    await cache.get_or_load((ALLOCATIONS, 1, 2024, 4, 7), load)
    await cache.get_or_load((ALLOCATIONS, 2, 2024, 3, 7), load)

    assert cache.invalidate(1, 2024, 3) == 2
    assert len(cache) == 2
    assert cache.invalidate_account(1) == 1
    assert cache.peek((ALLOCATIONS, 2, 2024, 3, 7)) == "d"

async def test_allocate_through_client_refreshes_remaining_amount(db, planner, account, make_income, make_debt):
    account_id, _ = account
    salary = await make_income(amount="1000.00", start=date(2024, 1, 15))
    rent = await make_debt(amount="800.00", due=date(2024, 1, 20))
    client = CachedPlanningClient(planner, PlanningCache(max_age_seconds=300))
    await client.populate(account_id, 2024, 3)

    before = await client.get_allocations(account_id, 2024, 3)
    assert before[0].remaining_amount == Decimal("1000.00")

    paycheck_id = f"{salary.id}-2024-03-15"
    allocation = await client.allocate(account_id, rent.id, paycheck_id)

    key = (ALLOCATIONS, account_id, 2024, 3, planner.user_id)
    assert client.cache.is_fresh(key)
    assert client.cache.peek(key)[0].remaining_amount == Decimal("200.00")
    assert (await client.get_allocations(account_id, 2024, 3))[0].remaining_amount == Decimal("200.00")

    await client.mark_paid(account_id, allocation.id)
    summaries = client.cache.peek(key)
    assert summaries[0].allocated_debts[0].is_paid is True
    data = client.cache.peek((PLANNING_DATA, account_id, 2024, 3, planner.user_id))
    assert [d.name for d in data.debts] == ["Rent"]

async def test_storing_a_value_drops_expired_entries_of_other_keys(cache, clock):
    load, _ = loader_returning("march", "april", "may")
    await cache.get_or_load((PLANNING_DATA, 1, 2024, 3, 7), load)
    await cache.get_or_load((PLANNING_DATA, 1, 2024, 4, 8), load)
    clock.now = 31

    await cache.get_or_load((PLANNING_DATA, 2, 2024, 5, 7), load)

    assert len(cache) == 1
    assert cache.peek((PLANNING_DATA, 1, 2024, 3, 7)) is None
    assert cache.peek((PLANNING_DATA, 2, 2024, 5, 7)) == "may"

async def test_evict_expired_keeps_fresh_entries(cache, clock):
    load, _ = loader_returning("old", "new")
    await cache.get_or_load((ALLOCATIONS, 1, 2024, 3, 7), load)
    clock.now = 20
    await cache.get_or_load((ALLOCATIONS, 1, 2024, 4, 7), load)
    clock.now = 35

    assert cache.evict_expired() == 1
    assert cache.peek((ALLOCATIONS, 1, 2024, 4, 7)) == "new"

async def test_allocating_next_months_debt_refreshes_both_months(planner, account, make_income, make_debt):
    account_id, _ = account
    salary = await make_income(amount="1000.00", start=date(2024, 1, 28))
    insurance = await make_debt(name="Insurance", amount="300.00", due=date(2024, 4, 2), frequency="once")
    client = CachedPlanningClient(planner, PlanningCache(max_age_seconds=300))
    await client.populate(account_id, 2024, 3, planning_window_months=1)
    data = await planner.get_paycheck_planning_data(account_id, 2024, 3, planning_window_months=1)
    april_row = data.debts[0].monthly_debt_planning_id

    await client.allocate(
        account_id, insurance.id, f"{salary.id}-2024-03-28",
        monthly_debt_planning_id=april_row
    )

    march = client.cache.peek((ALLOCATIONS, account_id, 2024, 3, planner.user_id))
    assert march[0].remaining_amount == Decimal("700.00")
    assert client.cache.is_fresh((PLANNING_DATA, account_id, 2024, 4, planner.user_id))

async def test_mark_paid_lookup_failure_is_a_persistence_error(planner, account, make_income, make_debt, monkeypatch):
    account_id, _ = account
    salary = await make_income(amount="1000.00", start=date(2024, 1, 15))
    rent = await make_debt(amount="800.00", due=date(2024, 1, 20))
    client = CachedPlanningClient(planner, PlanningCache(max_age_seconds=300))
    await client.populate(account_id, 2024, 3)
    allocation = await client.allocate(account_id, rent.id, f"{salary.id}-2024-03-15")

    async def lost_connection(self, budget_account_id, monthly_debt_planning_id):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(DebtRepository, "get_monthly_record", lost_connection)

    with pytest.raises(PersistenceError) as exc_info:
        await client.mark_paid(account_id, allocation.id)
    assert exc_info.value.kind == "persistence_failure"
