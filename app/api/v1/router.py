"""
API v1 Router
"""

from fastapi import APIRouter
from app.api.v1.endpoints import paycheck_planning, debts, income_sources, sms

api_router = APIRouter()

api_router.include_router(
    paycheck_planning.router,
    prefix="/paycheck-planning",
    tags=["paycheck-planning"]
)

api_router.include_router(
    debts.router,
    prefix="/debts",
    tags=["debts"]
)

api_router.include_router(
    income_sources.router,
    prefix="/income-sources",
    tags=["income-sources"]
)

api_router.include_router(
    sms.router,
    prefix="/sms",
    tags=["sms"]
)
