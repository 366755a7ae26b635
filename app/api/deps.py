"""
FastAPI Dependencies
"""

from typing import AsyncGenerator
from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import async_session
from app.models.user import User
from app.services.paycheck_planner import PaycheckPlanner
from app.services.planning_cache import CachedPlanningClient, PlanningCache

# Shared by every request of this process
planning_cache = PlanningCache(max_age_seconds=settings.PLANNING_CACHE_MAX_AGE_SECONDS)

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session dependency"""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()

async def get_current_user_id(
    x_user_id: int = Header(..., alias="X-User-Id", description="Authenticated user ID"),
    db: AsyncSession = Depends(get_db)
) -> int:
    """Current user, resolved from the X-User-Id header set by the auth layer"""
    result = await db.execute(select(User.id).where(User.id == x_user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return x_user_id

def get_planner(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
) -> PaycheckPlanner:
    return PaycheckPlanner(db, user_id)

def get_planning_client(planner: PaycheckPlanner = Depends(get_planner)) -> CachedPlanningClient:
    """Planner behind the process-wide planning cache"""
    return CachedPlanningClient(planner, planning_cache)
