"""
Income Source API Endpoints
"""

from fastapi import APIRouter, Depends
from typing import List

from app.api.deps import get_planner, planning_cache
from app.core.errors import NotFoundError, persistence_errors
from app.models.income import IncomeSource
from app.schemas.income import IncomeSourceCreate, IncomeSourceResponse
from app.services.paycheck_planner import PaycheckPlanner

router = APIRouter()

@router.get("/{budget_account_id}", response_model=List[IncomeSourceResponse])
async def list_income_sources(
    budget_account_id: int,
    planner: PaycheckPlanner = Depends(get_planner)
):
    await planner.ensure_member(budget_account_id)
    with persistence_errors("list income sources"):
        return await planner.income_sources.list_all(budget_account_id)

@router.post("/{budget_account_id}", response_model=IncomeSourceResponse, status_code=201)
async def create_income_source(
    budget_account_id: int,
    income_source: IncomeSourceCreate,
    planner: PaycheckPlanner = Depends(get_planner)
):
    """
    Add a recurring income source; its paychecks are projected on read
    """
    await planner.ensure_member(budget_account_id)
    with persistence_errors("create income source"):
        db_source = await planner.income_sources.add(IncomeSource(
            budget_account_id=budget_account_id,
            user_id=planner.user_id,
            **income_source.model_dump()
        ))
        await planner.db.commit()
        await planner.db.refresh(db_source)

    planning_cache.invalidate_account(budget_account_id)
    return db_source

@router.delete("/{budget_account_id}/{income_source_id}")
async def delete_income_source(
    budget_account_id: int,
    income_source_id: int,
    planner: PaycheckPlanner = Depends(get_planner)
):
    await planner.ensure_member(budget_account_id)
    with persistence_errors("delete income source"):
        source = await planner.income_sources.get(budget_account_id, income_source_id)
        if source is None:
            raise NotFoundError(f"Income source {income_source_id} not found")
        await planner.income_sources.delete(source)
        await planner.db.commit()

    planning_cache.invalidate_account(budget_account_id)
    return {"message": "Income source deleted successfully"}
