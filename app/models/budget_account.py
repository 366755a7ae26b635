from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.datetime_utils import utcnow

class BudgetAccount(Base):
    """Ownership boundary grouping a household's financial data"""
    __tablename__ = "budget_accounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    members = relationship("BudgetAccountMember", back_populates="budget_account", cascade="all, delete-orphan")

class BudgetAccountMember(Base):
    __tablename__ = "budget_account_members"
    __table_args__ = (
        UniqueConstraint("budget_account_id", "user_id", name="uq_budget_account_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    budget_account_id = Column(Integer, ForeignKey("budget_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow)

    # Relationships
    budget_account = relationship("BudgetAccount", back_populates="members")
    user = relationship("User", back_populates="memberships")
