from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, DateTime, Date, Text
from app.core.database import Base
from app.core.datetime_utils import utcnow

INCOME_FREQUENCIES = ("weekly", "bi-weekly", "monthly")

class IncomeSource(Base):
    """Recurring income; paychecks are projected from it, never stored"""
    __tablename__ = "income_sources"

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(100), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    frequency = Column(String(20), nullable=False)  # weekly, bi-weekly, monthly
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
