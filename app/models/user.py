from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.datetime_utils import utcnow

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100))
    phone_number = Column(String(20), unique=True, index=True)  # E.164, e.g. +15551234567

    default_budget_account_id = Column(Integer, ForeignKey("budget_accounts.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    memberships = relationship("BudgetAccountMember", back_populates="user", cascade="all, delete-orphan")
