"""Database models initialization."""

# Import all models to ensure they're registered with SQLAlchemy
from .user import User
from .budget_account import BudgetAccount, BudgetAccountMember
from .income import IncomeSource
from .debt import Debt, MonthlyDebtPlanning, DebtAllocation, DismissedWarning
from .budget import Category, Budget, BudgetCategory
from .transaction import Transaction

__all__ = [
    "User",
    "BudgetAccount",
    "BudgetAccountMember",
    "IncomeSource",
    "Debt",
    "MonthlyDebtPlanning",
    "DebtAllocation",
    "DismissedWarning",
    "Category",
    "Budget",
    "BudgetCategory",
    "Transaction"
]
