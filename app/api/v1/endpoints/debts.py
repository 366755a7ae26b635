"""
Debt API Endpoints
"""

import logging
from fastapi import APIRouter, Depends
from typing import List

from app.api.deps import get_planner, planning_cache
from app.core.errors import NotFoundError, persistence_errors
from app.models.debt import Debt
from app.schemas.debt import DebtCreate, DebtResponse, DebtUpdate
from app.services.paycheck_planner import PaycheckPlanner

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/{budget_account_id}", response_model=List[DebtResponse])
async def list_debts(
    budget_account_id: int,
    planner: PaycheckPlanner = Depends(get_planner)
):
    """Debt catalogue of a budget account, by due date"""
    await planner.ensure_member(budget_account_id)
    with persistence_errors("list debts"):
        return await planner.debts.list_debts(budget_account_id)

@router.post("/{budget_account_id}", response_model=DebtResponse, status_code=201)
async def create_debt(
    budget_account_id: int,
    debt: DebtCreate,
    planner: PaycheckPlanner = Depends(get_planner)
):
    """
    Create a debt

    Monthly rows are not created here; populate the planning window afterwards.
    """
    await planner.ensure_member(budget_account_id)
    with persistence_errors("create debt"):
        db_debt = await planner.debts.add_debt(Debt(
            budget_account_id=budget_account_id,
            created_by_user_id=planner.user_id,
            **debt.model_dump()
        ))
        await planner.db.commit()
        await planner.db.refresh(db_debt)

    logger.info("Debt %s created in budget account %s", db_debt.id, budget_account_id)
    return db_debt

@router.patch("/{budget_account_id}/{debt_id}", response_model=DebtResponse)
async def update_debt(
    budget_account_id: int,
    debt_id: int,
    update_data: DebtUpdate,
    planner: PaycheckPlanner = Depends(get_planner)
):
    await planner.ensure_member(budget_account_id)
    with persistence_errors("update debt"):
        debt = await planner.debts.get_debt(budget_account_id, debt_id)
        if debt is None:
            raise NotFoundError(f"Debt {debt_id} not found")

        for key, value in update_data.model_dump(exclude_unset=True).items():
            setattr(debt, key, value)

        await planner.db.commit()
        await planner.db.refresh(debt)

    planning_cache.invalidate_account(budget_account_id)
    return debt

@router.delete("/{budget_account_id}/{debt_id}")
async def delete_debt(
    budget_account_id: int,
    debt_id: int,
    planner: PaycheckPlanner = Depends(get_planner)
):
    """
    Delete a debt with its monthly rows and allocations
    """
    await planner.ensure_member(budget_account_id)
    with persistence_errors("delete debt"):
        debt = await planner.debts.get_debt(budget_account_id, debt_id)
        if debt is None:
            raise NotFoundError(f"Debt {debt_id} not found")
        await planner.debts.delete_debt(debt)
        await planner.db.commit()

    planning_cache.invalidate_account(budget_account_id)
    logger.info("Debt %s deleted from budget account %s", debt_id, budget_account_id)
    return {"message": "Debt deleted successfully"}
