"""Shared fixtures: in-memory SQLite database and seed helpers."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models
from app.core.database import Base
from app.models import (
    BudgetAccount,
    BudgetAccountMember,
    Debt,
    IncomeSource,
    User
)
from app.services.paycheck_planner import PaycheckPlanner

TODAY = date(2024, 3, 10)

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session

@pytest.fixture
async def account(db):
    """A user who is the only member of one budget account"""
    user = User(email="pat@example.com", name="Pat", phone_number="+15551234567")
    budget_account = BudgetAccount(name="Household")
    db.add_all([user, budget_account])
    await db.flush()

    db.add(BudgetAccountMember(budget_account_id=budget_account.id, user_id=user.id))
    user.default_budget_account_id = budget_account.id
    await db.commit()
    return budget_account.id, user.id

@pytest.fixture
def planner(db, account):
    _, user_id = account
    return PaycheckPlanner(db, user_id, today=TODAY)

@pytest.fixture
def make_income(db, account):
    """Factory for active income sources of the seeded account"""
    async def make(name="Salary", amount="1000.00", frequency="monthly", start=date(2024, 1, 15), end=None):
        account_id, user_id = account
        source = IncomeSource(
            budget_account_id=account_id,
            user_id=user_id,
            name=name,
            amount=Decimal(amount),
            frequency=frequency,
            start_date=start,
            end_date=end,
            is_active=True
        )
        db.add(source)
        await db.commit()
        return source
    return make

@pytest.fixture
def make_debt(db, account):
    async def make(name="Rent", amount="800.00", due=date(2024, 1, 20), frequency="monthly"):
        account_id, user_id = account
        debt = Debt(
            budget_account_id=account_id,
            created_by_user_id=user_id,
            name=name,
            payment_amount=Decimal(amount),
            interest_rate=Decimal("0"),
            due_date=due,
            frequency=frequency,
            has_balance=False
        )
        db.add(debt)
        await db.commit()
        return debt
    return make
