import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy import select

from app.core.errors import InvalidAllocationError, NotFoundError
from app.models.debt import DebtAllocation, MonthlyDebtPlanning
from app.services.paycheck_planner import PaycheckPlanner

@pytest.fixture
async def march(planner, account, make_income, make_debt):
    """
    One 1000.00 monthly paycheck on the 15th and a 500.00 bi-weekly one
    from March 1st; rent (800.00, due the 20th) populated into March
    """
    account_id, _ = account
    salary = await make_income(name="Salary", amount="1000.00", frequency="monthly", start=date(2024, 1, 15))
    side = await make_income(name="Side job", amount="500.00", frequency="bi-weekly", start=date(2024, 3, 1))
    rent = await make_debt(name="Rent", amount="800.00", due=date(2024, 1, 20))
    await planner.populate_monthly_debt_planning(account_id, 2024, 3)
    return {
        "account_id": account_id,
        "salary": f"{salary.id}-2024-03-15",
        "side_first": f"{side.id}-2024-03-01",
        "side_mid": f"{side.id}-2024-03-15",
        "rent": rent
    }

async def allocations_for(db, debt_id):
    result = await db.execute(select(DebtAllocation).where(DebtAllocation.debt_id == debt_id))
    return list(result.scalars().all())

def summary_for(summaries, paycheck_id):
    return next(s for s in summaries if s.paycheck_id == paycheck_id)

async def test_planning_data_for_month(planner, march):
    data = await planner.get_paycheck_planning_data(march["account_id"], 2024, 3)

    # Same-day paychecks follow income source creation order
    assert [p.id for p in data.paychecks][:3] == [march["side_first"], march["salary"], march["side_mid"]]
    assert [p.date for p in data.paychecks] == [date(2024, 3, 1), date(2024, 3, 15), date(2024, 3, 15), date(2024, 3, 29)]
    assert [d.name for d in data.debts] == ["Rent"]
    assert data.debts[0].id == march["rent"].id
    assert data.debts[0].due_date == date(2024, 3, 20)
    assert data.debts[0].original_due_date == date(2024, 1, 20)

async def test_future_paychecks_run_to_horizon(planner, march):
    data = await planner.get_paycheck_planning_data(march["account_id"], 2024, 3)

    salary_dates = [p.date for p in data.future_paychecks if p.name == "Salary"]
    assert salary_dates == [date(2024, 4, 15), date(2024, 5, 15), date(2024, 6, 15)]
    assert all(p.date > date(2024, 3, 31) for p in data.future_paychecks)
    assert all(p.date < date(2024, 7, 1) for p in data.future_paychecks)

async def test_allocate_defaults_to_debt_amount_and_paycheck_date(planner, march):
    allocation = await planner.update_debt_allocation(march["account_id"], march["rent"].id, march["salary"], "allocate")

    assert allocation.paycheck_id == march["salary"]
    assert allocation.payment_amount == Decimal("800.00")
    assert allocation.payment_date == date(2024, 3, 15)
    assert allocation.is_paid is False

    summaries = await planner.get_paycheck_allocations(march["account_id"], 2024, 3)
    salary = summary_for(summaries, march["salary"])
    assert salary.remaining_amount == Decimal("200.00")
    assert [d.debt_name for d in salary.allocated_debts] == ["Rent"]
    assert salary.allocated_debts[0].payment_id == allocation.id

async def test_reallocating_keeps_one_allocation_per_month(db, planner, march):
    account_id, rent = march["account_id"], march["rent"]

    await planner.update_debt_allocation(account_id, rent.id, march["side_first"], "allocate")
    await planner.update_debt_allocation(account_id, rent.id, march["salary"], "allocate")

    rows = await allocations_for(db, rent.id)
    assert len(rows) == 1
    assert rows[0].paycheck_id == march["salary"]

    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["side_first"]).allocated_debts == []
    assert summary_for(summaries, march["side_first"]).remaining_amount == Decimal("500.00")

async def test_allocations_read_is_repeatable(planner, march):
    await planner.update_debt_allocation(march["account_id"], march["rent"].id, march["salary"], "allocate")

    first = await planner.get_paycheck_allocations(march["account_id"], 2024, 3)
    second = await planner.get_paycheck_allocations(march["account_id"], 2024, 3)

    assert [s.remaining_amount for s in first] == [s.remaining_amount for s in second]
    assert first == second

async def test_over_allocation_warns_insufficient_funds(planner, march, make_debt):
    account_id = march["account_id"]
    car = await make_debt(name="Car", amount="400.00", due=date(2024, 1, 25))
    await planner.populate_monthly_debt_planning(account_id, 2024, 3)

    await planner.update_debt_allocation(account_id, march["rent"].id, march["salary"], "allocate")
    await planner.update_debt_allocation(account_id, car.id, march["salary"], "allocate")

    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    salary = summary_for(summaries, march["salary"])
    assert salary.remaining_amount == Decimal("-200.00")
    assert [d.debt_name for d in salary.allocated_debts] == ["Rent", "Car"]

    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    insufficient = [w for w in data.warnings if w.type == "insufficient_funds"]
    assert len(insufficient) == 1
    assert insufficient[0].paycheck_id == march["salary"]
    assert insufficient[0].severity == "high"

async def test_past_due_warning_clears_once_allocated(planner, march, make_debt):
    account_id = march["account_id"]
    phone = await make_debt(name="Phone", amount="60.00", due=date(2024, 1, 5))
    await planner.populate_monthly_debt_planning(account_id, 2024, 3)

    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    past_due = [w for w in data.warnings if w.type == "unallocated_past_due"]
    assert [w.debt_id for w in past_due] == [phone.id]

    await planner.update_debt_allocation(account_id, phone.id, march["side_first"], "allocate")

    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    assert not [w for w in data.warnings if w.type == "unallocated_past_due"]

async def test_unallocate_keeps_row_and_frees_paycheck(db, planner, march):
    account_id, rent = march["account_id"], march["rent"]
    await planner.update_debt_allocation(account_id, rent.id, march["salary"], "allocate")

    allocation = await planner.update_debt_allocation(account_id, rent.id, march["salary"], "unallocate")

    assert allocation.paycheck_id is None
    rows = await allocations_for(db, rent.id)
    assert len(rows) == 1
    assert rows[0].paycheck_id is None

    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["salary"]).remaining_amount == Decimal("1000.00")

async def test_unallocate_without_allocation_is_noop(planner, march):
    result = await planner.update_debt_allocation(march["account_id"], march["rent"].id, march["salary"], "unallocate")

    assert result is None

async def test_unallocate_from_other_paycheck_is_noop(planner, march):
    account_id, rent = march["account_id"], march["rent"]
    await planner.update_debt_allocation(account_id, rent.id, march["salary"], "allocate")

    result = await planner.update_debt_allocation(account_id, rent.id, march["side_first"], "unallocate")

    assert result is None
    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["salary"]).remaining_amount == Decimal("200.00")

async def test_update_changes_payment(planner, march):
    account_id, rent = march["account_id"], march["rent"]
    await planner.update_debt_allocation(account_id, rent.id, march["salary"], "allocate")

    allocation = await planner.update_debt_allocation(
        account_id, rent.id, march["salary"], "update",
        payment_amount=Decimal("750.00"),
        payment_date=date(2024, 3, 18)
    )

    assert allocation.payment_amount == Decimal("750.00")
    assert allocation.payment_date == date(2024, 3, 18)
    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["salary"]).remaining_amount == Decimal("250.00")

async def test_mark_paid_is_terminal(planner, march):
    account_id, rent = march["account_id"], march["rent"]
    allocation = await planner.update_debt_allocation(account_id, rent.id, march["salary"], "allocate")

    paid = await planner.mark_payment_as_paid(account_id, allocation.id)

    assert paid.is_paid is True
    assert paid.paid_at is not None
    assert paid.payment_date == date(2024, 3, 10)
    assert paid.note == "Payment marked as paid on 2024-03-10"

    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(account_id, rent.id, march["salary"], "unallocate")
    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(account_id, rent.id, march["side_first"], "allocate")

    again = await planner.mark_payment_as_paid(account_id, allocation.id, payment_date=date(2024, 3, 12))
    assert again.id == paid.id
    assert again.payment_date == date(2024, 3, 10)

    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["salary"]).allocated_debts[0].is_paid is True

async def test_mark_paid_with_override_amount(planner, march):
    account_id = march["account_id"]
    allocation = await planner.update_debt_allocation(account_id, march["rent"].id, march["salary"], "allocate")

    paid = await planner.mark_payment_as_paid(account_id, allocation.id, payment_amount=Decimal("780.00"), payment_date=date(2024, 3, 14))

    assert paid.payment_amount == Decimal("780.00")
    assert paid.payment_date == date(2024, 3, 14)

async def test_mark_paid_requires_allocated_payment(planner, march):
    account_id, rent = march["account_id"], march["rent"]
    allocation = await planner.update_debt_allocation(account_id, rent.id, march["salary"], "allocate")
    await planner.update_debt_allocation(account_id, rent.id, march["salary"], "unallocate")

    with pytest.raises(InvalidAllocationError):
        await planner.mark_payment_as_paid(account_id, allocation.id)
    with pytest.raises(NotFoundError):
        await planner.mark_payment_as_paid(account_id, 9999)

@pytest.mark.parametrize("action,payment_amount", [
    ("allocate", Decimal("0")),
    ("allocate", Decimal("-5")),
    ("move", None),
])
async def test_invalid_allocation_requests(planner, march, action, payment_amount):
    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(
            march["account_id"], march["rent"].id, march["salary"], action,
            payment_amount=payment_amount
        )

async def test_allocate_to_unknown_paycheck_is_rejected(planner, march):
    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(march["account_id"], march["rent"].id, "1-2024-03-16", "allocate")
    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(march["account_id"], march["rent"].id, "not-a-paycheck", "allocate")

async def test_allocate_debt_not_planned_for_month(planner, march):
    # Rent was only populated into March
    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(march["account_id"], march["rent"].id, march["salary"].replace("2024-03", "2024-04"), "allocate")

async def test_unknown_debt_is_not_found(planner, march):
    with pytest.raises(NotFoundError):
        await planner.update_debt_allocation(march["account_id"], 9999, march["salary"], "allocate")

async def test_non_member_cannot_read_or_write(db, march):
    outsider = PaycheckPlanner(db, user_id=9999, today=date(2024, 3, 10))

    with pytest.raises(NotFoundError):
        await outsider.get_paycheck_planning_data(march["account_id"], 2024, 3)
    with pytest.raises(NotFoundError):
        await outsider.get_paycheck_allocations(march["account_id"], 2024, 3)
    with pytest.raises(NotFoundError):
        await outsider.update_debt_allocation(march["account_id"], march["rent"].id, march["salary"], "allocate")

async def test_populate_starts_at_due_month_and_never_duplicates(db, planner, account, make_debt):
    account_id, _ = account
    rent = await make_debt(name="Rent", due=date(2024, 1, 20))
    gym = await make_debt(name="Gym", amount="40.00", due=date(2024, 4, 5))
    deposit = await make_debt(name="Deposit", amount="250.00", due=date(2024, 4, 10), frequency="once")

    created = await planner.populate_monthly_debt_planning(account_id, 2024, 3, planning_window_months=2)

    assert created == 6
    assert await planner.populate_monthly_debt_planning(account_id, 2024, 3, planning_window_months=2) == 0

    result = await db.execute(select(MonthlyDebtPlanning.debt_id, MonthlyDebtPlanning.year, MonthlyDebtPlanning.month))
    months = sorted((row.debt_id, row.year, row.month) for row in result)
    assert months == sorted([
        (rent.id, 2024, 3), (rent.id, 2024, 4), (rent.id, 2024, 5),
        (gym.id, 2024, 4), (gym.id, 2024, 5),
        (deposit.id, 2024, 4),
    ])

async def test_populate_clamps_due_day_to_month_length(planner, account, make_debt):
    account_id, _ = account
    await make_debt(name="Insurance", due=date(2024, 1, 31))

    await planner.populate_monthly_debt_planning(account_id, 2024, 2)

    data = await planner.get_paycheck_planning_data(account_id, 2024, 2)
    assert [d.due_date for d in data.debts] == [date(2024, 2, 29)]

async def test_planning_window_adds_later_debts_only(planner, march):
    account_id = march["account_id"]
    await planner.populate_monthly_debt_planning(account_id, 2024, 3, planning_window_months=1)

    data = await planner.get_paycheck_planning_data(account_id, 2024, 3, planning_window_months=1)

    assert [d.due_date for d in data.debts] == [date(2024, 3, 20), date(2024, 4, 20)]

async def test_hidden_debt_leaves_planning(planner, march):
    account_id = march["account_id"]
    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    monthly_id = data.debts[0].monthly_debt_planning_id
    await planner.update_debt_allocation(account_id, march["rent"].id, march["salary"], "allocate")

    record = await planner.set_monthly_debt_planning_active(account_id, monthly_id, False)

    assert record.is_active is False
    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    assert data.debts == []
    hidden = await planner.get_hidden_monthly_debts(account_id, 2024, 3)
    assert [d.monthly_debt_planning_id for d in hidden] == [monthly_id]
    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["salary"]).remaining_amount == Decimal("1000.00")

    await planner.set_monthly_debt_planning_active(account_id, monthly_id, True)
    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    assert [d.monthly_debt_planning_id for d in data.debts] == [monthly_id]

async def test_hide_unknown_monthly_debt(planner, march):
    with pytest.raises(NotFoundError):
        await planner.set_monthly_debt_planning_active(march["account_id"], 9999, False)

async def test_dismissed_warning_is_hidden(planner, march, make_debt):
    account_id = march["account_id"]
    phone = await make_debt(name="Phone", amount="60.00", due=date(2024, 1, 5))
    await planner.populate_monthly_debt_planning(account_id, 2024, 3)

    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    warning = next(w for w in data.warnings if w.debt_id == phone.id)

    assert await planner.dismiss_warning(account_id, warning.type, warning.key) is True
    assert await planner.dismiss_warning(account_id, warning.type, warning.key) is False

    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    assert all((w.type, w.key) != (warning.type, warning.key) for w in data.warnings)

async def test_current_month_uses_today(planner, march):
    current = await planner.get_current_month_allocations(march["account_id"])
    explicit = await planner.get_paycheck_allocations(march["account_id"], 2024, 3)

    assert current == explicit

@pytest.fixture
async def insurance(planner, march, make_debt):
    """A one-time 300.00 debt due April 2nd, pulled into March by a one-month window"""
    account_id = march["account_id"]
    debt = await make_debt(name="Insurance", amount="300.00", due=date(2024, 4, 2), frequency="once")
    await planner.populate_monthly_debt_planning(account_id, 2024, 3, planning_window_months=1)
    data = await planner.get_paycheck_planning_data(account_id, 2024, 3, planning_window_months=1)
    row = next(d for d in data.debts if d.id == debt.id)
    return debt, row.monthly_debt_planning_id

async def test_window_debt_is_allocated_to_earlier_paycheck(db, planner, march, insurance):
    account_id = march["account_id"]
    debt, april_row = insurance
    side_last = march["side_first"].replace("2024-03-01", "2024-03-29")

    allocation = await planner.update_debt_allocation(
        account_id, debt.id, side_last, "allocate", monthly_debt_planning_id=april_row
    )

    assert allocation.monthly_debt_planning_id == april_row
    assert allocation.paycheck_id == side_last
    assert allocation.payment_date == date(2024, 3, 29)
    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    summary = summary_for(summaries, side_last)
    assert [d.debt_name for d in summary.allocated_debts] == ["Insurance"]
    assert summary.allocated_debts[0].due_date == date(2024, 4, 2)
    assert summary.remaining_amount == Decimal("200.00")
    assert len(await allocations_for(db, debt.id)) == 1

async def test_window_debt_allocation_clears_its_own_month_warning(planner, march, insurance):
    account_id = march["account_id"]
    debt, april_row = insurance
    planner.today = date(2024, 4, 1)

    data = await planner.get_paycheck_planning_data(account_id, 2024, 4)
    assert "Insurance" in " ".join(w.message for w in data.warnings if w.type == "due_soon_unallocated")

    await planner.update_debt_allocation(account_id, debt.id, march["salary"], "allocate", monthly_debt_planning_id=april_row)

    data = await planner.get_paycheck_planning_data(account_id, 2024, 4)
    assert all(w.debt_id != debt.id for w in data.warnings)

async def test_window_debt_needs_its_planning_row(planner, march, insurance):
    debt, _ = insurance

    with pytest.raises(InvalidAllocationError):
        await planner.update_debt_allocation(march["account_id"], debt.id, march["salary"], "allocate")

async def test_unallocate_window_debt_by_planning_row(planner, march, insurance):
    account_id = march["account_id"]
    debt, april_row = insurance
    await planner.update_debt_allocation(account_id, debt.id, march["salary"], "allocate", monthly_debt_planning_id=april_row)

    allocation = await planner.update_debt_allocation(
        account_id, debt.id, march["salary"], "unallocate", monthly_debt_planning_id=april_row
    )

    assert allocation.paycheck_id is None
    summaries = await planner.get_paycheck_allocations(account_id, 2024, 3)
    assert summary_for(summaries, march["salary"]).remaining_amount == Decimal("1000.00")

async def test_planning_row_before_paycheck_month_is_rejected(planner, march):
    account_id = march["account_id"]
    data = await planner.get_paycheck_planning_data(account_id, 2024, 3)
    march_row = data.debts[0].monthly_debt_planning_id
    april_salary = march["salary"].replace("2024-03", "2024-04")

    with pytest.raises(InvalidAllocationError, match="outside the planning window"):
        await planner.update_debt_allocation(
            account_id, march["rent"].id, april_salary, "allocate", monthly_debt_planning_id=march_row
        )

async def test_planning_row_of_another_debt_is_rejected(planner, march, insurance):
    _, april_row = insurance

    with pytest.raises(InvalidAllocationError, match="does not belong"):
        await planner.update_debt_allocation(
            march["account_id"], march["rent"].id, march["salary"], "allocate", monthly_debt_planning_id=april_row
        )

async def test_unknown_planning_row_is_not_found(planner, march):
    with pytest.raises(NotFoundError):
        await planner.update_debt_allocation(
            march["account_id"], march["rent"].id, march["salary"], "allocate", monthly_debt_planning_id=9999
        )
