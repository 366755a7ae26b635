from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from app.models.income import INCOME_FREQUENCIES

class IncomeSourceBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    notes: Optional[str] = None

    @field_validator('frequency')
    @classmethod
    def check_frequency(cls, value: str) -> str:
        if value not in INCOME_FREQUENCIES:
            raise ValueError(f"frequency must be one of {', '.join(INCOME_FREQUENCIES)}")
        return value

    @model_validator(mode='after')
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

class IncomeSourceCreate(IncomeSourceBase):
    pass

class IncomeSourceResponse(IncomeSourceBase):
    id: int
    budget_account_id: int
    user_id: int
    created_at: datetime

    class Config:
        from_attributes = True
