from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, DateTime, Date, Text, UniqueConstraint
from app.core.database import Base
from app.core.datetime_utils import utcnow

DEBT_FREQUENCIES = ("monthly", "once")

class Debt(Base):
    __tablename__ = "debts"

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(100), nullable=False)
    payment_amount = Column(Numeric(10, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), default=0, nullable=False)
    due_date = Column(Date, nullable=False)  # first due date; its day-of-month repeats
    frequency = Column(String(20), default="monthly", nullable=False)  # monthly, once
    has_balance = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class MonthlyDebtPlanning(Base):
    """A debt materialized into one month; hidden with is_active instead of deleted"""
    __tablename__ = "monthly_debt_planning"
    __table_args__ = (
        UniqueConstraint("budget_account_id", "debt_id", "year", "month", name="uq_monthly_debt_planning_month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    debt_id = Column(Integer, ForeignKey("debts.id", ondelete="CASCADE"), nullable=False, index=True)

    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class DebtAllocation(Base):
    """
    Assignment of a monthly debt to a paycheck occurrence

    One row per monthly planning row (unique), so a debt has at most one
    allocation per month. paycheck_id is NULL once unallocated.
    """
    __tablename__ = "debt_allocations"

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    debt_id = Column(Integer, ForeignKey("debts.id", ondelete="CASCADE"), nullable=False, index=True)
    monthly_debt_planning_id = Column(
        Integer,
        ForeignKey("monthly_debt_planning.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )

    paycheck_id = Column(String(64), nullable=True, index=True)  # "{income_source_id}-{YYYY-MM-DD}"
    payment_amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(Date, nullable=True)

    is_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    note = Column(Text, nullable=True)

    allocated_at = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class DismissedWarning(Base):
    __tablename__ = "dismissed_warnings"
    __table_args__ = (
        UniqueConstraint("budget_account_id", "user_id", "warning_type", "warning_key", name="uq_dismissed_warning"),
    )

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    warning_type = Column(String(50), nullable=False)
    warning_key = Column(String(100), nullable=False)

    dismissed_at = Column(DateTime, default=utcnow)
