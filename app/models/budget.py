from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from app.core.database import Base
from app.core.datetime_utils import utcnow

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(50), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class Budget(Base):
    """Monthly budget of a budget account; split per category by BudgetCategory"""
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("budget_account_id", "year", "month", name="uq_budget_month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)

    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class BudgetCategory(Base):
    __tablename__ = "budget_categories"

    id = Column(Integer, primary_key=True, index=True)
    budget_id = Column(Integer, ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
