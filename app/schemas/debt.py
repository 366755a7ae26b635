from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from app.models.debt import DEBT_FREQUENCIES

class DebtBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    payment_amount: Decimal = Field(..., gt=0)
    interest_rate: Decimal = Field(Decimal('0'), ge=0)
    due_date: date
    frequency: str = "monthly"
    has_balance: bool = False
    category_id: Optional[int] = None

    @field_validator('frequency')
    @classmethod
    def check_frequency(cls, value: str) -> str:
        if value not in DEBT_FREQUENCIES:
            raise ValueError(f"frequency must be one of {', '.join(DEBT_FREQUENCIES)}")
        return value

class DebtCreate(DebtBase):
    pass

class DebtUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    payment_amount: Optional[Decimal] = Field(None, gt=0)
    interest_rate: Optional[Decimal] = Field(None, ge=0)
    due_date: Optional[date] = None
    has_balance: Optional[bool] = None
    category_id: Optional[int] = None

class DebtResponse(DebtBase):
    id: int
    budget_account_id: int
    created_by_user_id: int
    created_at: datetime

    class Config:
        from_attributes = True

class MonthlyDebtPlanningResponse(BaseModel):
    id: int
    debt_id: int
    year: int
    month: int
    due_date: date
    is_active: bool

    class Config:
        from_attributes = True
