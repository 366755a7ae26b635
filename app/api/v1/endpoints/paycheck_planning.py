"""
Paycheck Planning API Endpoints
"""

from fastapi import APIRouter, Depends, Path, Query
from typing import List, Optional

from app.api.deps import get_planner, get_planning_client
from app.config import settings
from app.schemas.debt import MonthlyDebtPlanningResponse
from app.schemas.paycheck_planning import (
    DebtAllocationRequest,
    DebtAllocationResponse,
    DebtInfo,
    DismissWarningRequest,
    MarkPaidRequest,
    MonthlyDebtVisibilityUpdate,
    PaycheckAllocationSummary,
    PaycheckPlanningData,
    PopulateResponse
)
from app.services.paycheck_planner import PaycheckPlanner
from app.services.planning_cache import CachedPlanningClient

router = APIRouter()

@router.get("/{budget_account_id}/{year}/{month}", response_model=PaycheckPlanningData)
async def get_planning_data(
    budget_account_id: int,
    year: int,
    month: int = Path(..., ge=1, le=12),
    planning_window_months: int = Query(0, ge=0, le=settings.MAX_PLANNING_WINDOW_MONTHS, description="Additional months of debts to include"),
    planner: PaycheckPlanner = Depends(get_planner),
    client: CachedPlanningClient = Depends(get_planning_client)
):
    """
    Paychecks, future paychecks, debts and warnings for a month
    """
    if planning_window_months:
        return await planner.get_paycheck_planning_data(budget_account_id, year, month, planning_window_months)
    return await client.get_planning_data(budget_account_id, year, month)

@router.get("/{budget_account_id}/{year}/{month}/allocations", response_model=List[PaycheckAllocationSummary])
async def get_allocations(
    budget_account_id: int,
    year: int,
    month: int = Path(..., ge=1, le=12),
    client: CachedPlanningClient = Depends(get_planning_client)
):
    """
    Allocation summary and remaining amount per paycheck
    """
    return await client.get_allocations(budget_account_id, year, month)

@router.get("/{budget_account_id}/{year}/{month}/hidden-debts", response_model=List[DebtInfo])
async def get_hidden_debts(
    budget_account_id: int,
    year: int,
    month: int = Path(..., ge=1, le=12),
    planning_window_months: int = Query(0, ge=0, le=settings.MAX_PLANNING_WINDOW_MONTHS, description="Additional months of debts to include"),
    planner: PaycheckPlanner = Depends(get_planner)
):
    """Monthly debts hidden from planning"""
    return await planner.get_hidden_monthly_debts(budget_account_id, year, month, planning_window_months)

@router.post("/{budget_account_id}/{year}/{month}/populate", response_model=PopulateResponse)
async def populate_monthly_debts(
    budget_account_id: int,
    year: int,
    month: int = Path(..., ge=1, le=12),
    planning_window_months: int = Query(0, ge=0, le=settings.MAX_PLANNING_WINDOW_MONTHS, description="Additional months of debts to include"),
    client: CachedPlanningClient = Depends(get_planning_client)
):
    """
    Create the missing monthly debt rows of the window
    """
    created = await client.populate(budget_account_id, year, month, planning_window_months)
    return PopulateResponse(created=created)

@router.post("/{budget_account_id}/allocations", response_model=Optional[DebtAllocationResponse])
async def update_allocation(
    budget_account_id: int,
    request: DebtAllocationRequest,
    client: CachedPlanningClient = Depends(get_planning_client)
):
    """
    Allocate, unallocate or update a debt payment on a paycheck

    Returns null when nothing changed.
    """
    return await client.update_debt_allocation(
        budget_account_id,
        request.debt_id,
        request.paycheck_id,
        request.action,
        payment_amount=request.payment_amount,
        payment_date=request.payment_date,
        monthly_debt_planning_id=request.monthly_debt_planning_id
    )

@router.post("/{budget_account_id}/allocations/{payment_id}/paid", response_model=DebtAllocationResponse)
async def mark_paid(
    budget_account_id: int,
    payment_id: int,
    request: MarkPaidRequest,
    client: CachedPlanningClient = Depends(get_planning_client)
):
    """Mark an allocated payment as paid"""
    return await client.mark_paid(
        budget_account_id,
        payment_id,
        payment_amount=request.payment_amount,
        payment_date=request.payment_date
    )

@router.patch("/{budget_account_id}/monthly-debts/{monthly_debt_planning_id}", response_model=MonthlyDebtPlanningResponse)
async def set_monthly_debt_visibility(
    budget_account_id: int,
    monthly_debt_planning_id: int,
    update: MonthlyDebtVisibilityUpdate,
    client: CachedPlanningClient = Depends(get_planning_client)
):
    """Hide or restore a debt for one month"""
    return await client.set_active(budget_account_id, monthly_debt_planning_id, update.is_active)

@router.post("/{budget_account_id}/warnings/dismiss")
async def dismiss_warning(
    budget_account_id: int,
    request: DismissWarningRequest,
    client: CachedPlanningClient = Depends(get_planning_client)
):
    created = await client.dismiss_warning(budget_account_id, request.warning_type, request.warning_key)
    return {"dismissed": True, "created": created}
