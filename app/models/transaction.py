from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey
from app.core.database import Base
from app.core.datetime_utils import utcnow

class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    debt_id = Column(Integer, ForeignKey("debts.id", ondelete="SET NULL"), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text)
    merchant_name = Column(String(200))
    type = Column(String(10), nullable=False)  # expense, income
    status = Column(String(20), default="completed", nullable=False)

    date = Column(DateTime, default=utcnow, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
