from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal

Frequency = Literal["weekly", "bi-weekly", "monthly"]
AllocationAction = Literal["allocate", "unallocate", "update"]
Severity = Literal["low", "medium", "high"]

class PaycheckInfo(BaseModel):
    id: str
    income_source_id: int
    user_id: Optional[int] = None
    name: str
    amount: Decimal
    date: date
    frequency: Frequency

class DebtInfo(BaseModel):
    id: int  # debt id
    monthly_debt_planning_id: int
    name: str
    amount: Decimal
    due_date: date
    original_due_date: date
    frequency: str
    has_balance: bool
    category_id: Optional[int] = None

class PlanningWarning(BaseModel):
    type: str
    message: str
    severity: Severity
    key: str
    debt_id: Optional[int] = None
    paycheck_id: Optional[str] = None

class PaycheckPlanningData(BaseModel):
    paychecks: List[PaycheckInfo]
    future_paychecks: List[PaycheckInfo]
    debts: List[DebtInfo]
    warnings: List[PlanningWarning]

class AllocatedDebt(BaseModel):
    debt_id: int
    monthly_debt_planning_id: int
    debt_name: str
    amount: Decimal
    due_date: date
    original_due_date: date
    payment_date: Optional[date] = None
    payment_amount: Decimal
    is_paid: bool
    payment_id: int

class PaycheckAllocationSummary(BaseModel):
    paycheck_id: str
    paycheck_date: date
    paycheck_amount: Decimal
    allocated_debts: List[AllocatedDebt]
    remaining_amount: Decimal

class DebtAllocationRequest(BaseModel):
    debt_id: int
    paycheck_id: str
    monthly_debt_planning_id: Optional[int] = None  # a later month's debt row; defaults to the paycheck's month
    action: AllocationAction
    payment_amount: Optional[Decimal] = None
    payment_date: Optional[date] = None

class MarkPaidRequest(BaseModel):
    payment_amount: Optional[Decimal] = Field(None, gt=0)
    payment_date: Optional[date] = None

class DebtAllocationResponse(BaseModel):
    id: int
    debt_id: int
    monthly_debt_planning_id: int
    paycheck_id: Optional[str] = None
    payment_amount: Decimal
    payment_date: Optional[date] = None
    is_paid: bool
    paid_at: Optional[datetime] = None
    note: Optional[str] = None

    class Config:
        from_attributes = True

class MonthlyDebtVisibilityUpdate(BaseModel):
    is_active: bool

class DismissWarningRequest(BaseModel):
    warning_type: str = Field(..., min_length=1, max_length=50)
    warning_key: str = Field(..., min_length=1, max_length=100)

class PopulateResponse(BaseModel):
    created: int
