"""
SMS Processor
Turns an inbound text message into a reply: help, budget lookups, or a recorded transaction
"""

import logging
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import utcnow
from app.core.errors import persistence_errors
from app.models.budget import Budget, BudgetCategory, Category
from app.models.transaction import Transaction
from app.models.user import User
from app.services.sms_parser import SMSCommand, SMSCommandParser, format_phone_number

logger = logging.getLogger(__name__)

UNKNOWN_NUMBER_REPLY = (
    "Sorry, I don't recognize this phone number. "
    "Please make sure your phone number is added to your account profile."
)
NO_BUDGET_ACCOUNT_REPLY = "You need to set up a budget account first. Please log in and create a budget."
RECORD_FAILED_REPLY = "Sorry, I couldn't record that transaction. Please try again."

UNPARSED_TRANSACTION_REPLY = """I couldn't read that transaction. Try formats like:
- Spent $25 on groceries at Walmart
- Paid $50 for gas at Shell yesterday
- Income $500 freelance work 12/15"""

UNKNOWN_COMMAND_REPLY = """I didn't understand that. Send "help" for available commands.

Quick examples:
- Spent $25 on groceries
- Budget groceries
- Income $500 freelance work"""

HELP_REPLY = """SMS Budget Assistant

Record transactions:
- Spent $25 on groceries at Walmart
- Paid $50 for gas at Shell yesterday
- Income $500 freelance work 12/15
- $30 lunch at Chipotle on Monday

Check budgets:
- Budget: all categories this month
- Budget groceries: one category
- Balance gas: same as budget gas

Dates: yesterday, today, Monday, 3 days ago, 12/15, 12/15/24
Categories are created automatically. Reply "help" anytime."""

@dataclass
class CategoryBudget:
    category_id: int
    category_name: str
    allocated: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.allocated - self.spent

def _money(amount: Decimal) -> str:
    return f"${amount:,.2f}"

class SMSProcessor:
    """
    Handles one inbound SMS for the user owning the sending phone number
    """

    def __init__(self, db: AsyncSession, today: Optional[date] = None):
        self.db = db
        self.today = today or date.today()
        self.parser = SMSCommandParser()

    async def find_user_by_phone(self, phone_number: str) -> Optional[User]:
        """
        Exact E.164 match, then a best-effort match on the last ten digits
        """
        with persistence_errors("look up user by phone"):
            result = await self.db.execute(
                select(User).where(User.phone_number == phone_number).limit(1)
            )
            user = result.scalar_one_or_none()
        if user is not None:
            return user

        digits = ''.join(ch for ch in phone_number if ch.isdigit())
        if len(digits) < 10:
            return None
        try:
            result = await self.db.execute(
                select(User).where(User.phone_number.like(f"%{digits[-10:]}")).order_by(User.id).limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception("Fallback phone lookup failed for %s", phone_number)
            return None

    async def process_message(self, from_number: str, body: str) -> str:
        """
        Build the reply text for one message

        Args:
            from_number: sender phone number in any common format
            body: message text

        Returns:
            Reply text to send back
        """
        user = await self.find_user_by_phone(format_phone_number(from_number))
        if user is None:
            logger.info("SMS from unknown number %s", from_number)
            return UNKNOWN_NUMBER_REPLY

        command = self.parser.classify(body)
        logger.info("SMS %s from user %s", command.value, user.id)

        if command == SMSCommand.HELP:
            return HELP_REPLY
        if command == SMSCommand.UNKNOWN:
            return UNKNOWN_COMMAND_REPLY

        if user.default_budget_account_id is None:
            return NO_BUDGET_ACCOUNT_REPLY

        if command == SMSCommand.BUDGET_QUERY:
            return await self.handle_budget_query(user.default_budget_account_id, body)
        return await self.handle_transaction(user, user.default_budget_account_id, body)

    async def handle_budget_query(self, budget_account_id: int, message: str) -> str:
        year, month = self.today.year, self.today.month
        category_name = self.parser.query_category(message)

        with persistence_errors("query budgets"):
            budgets = await self.get_category_budgets(budget_account_id, year, month)

            if category_name is None:
                if not budgets:
                    return "No budgets set up for this month. Log in to create budget categories."
                lines = [f"Budget Summary ({month}/{year}):", ""]
                for budget in budgets:
                    lines.append(f"{budget.category_name}: {_money(budget.remaining)} remaining")
                return "\n".join(lines)

            for budget in budgets:
                if budget.category_name.lower() == category_name:
                    over = " (over budget)" if budget.remaining < 0 else ""
                    return (
                        f"{budget.category_name} Budget:\n"
                        f"Allocated: {_money(budget.allocated)}\n"
                        f"Spent: {_money(budget.spent)}\n"
                        f"Remaining: {_money(budget.remaining)}{over}"
                    )

            available = await self.available_categories(budget_account_id)
        return f'No budget found for "{category_name}" this month. Available categories: {available}'

    async def handle_transaction(self, user: User, budget_account_id: int, message: str) -> str:
        parsed = self.parser.parse_transaction(message, self.today)
        if parsed is None:
            return UNPARSED_TRANSACTION_REPLY

        try:
            category_id = None
            if parsed.category:
                category_id = await self.find_or_create_category(budget_account_id, parsed.category)

            self.db.add(Transaction(
                budget_account_id=budget_account_id,
                category_id=category_id,
                created_by_user_id=user.id,
                amount=parsed.amount,
                description=parsed.description,
                merchant_name=parsed.merchant,
                type=parsed.type,
                status='completed',
                date=datetime.combine(parsed.date, time()) if parsed.date else datetime.combine(self.today, utcnow().time())
            ))
            await self.db.flush()

            budget = None
            if category_id is not None and parsed.type == 'expense':
                budget = await self.get_category_budget(budget_account_id, category_id, self.today.year, self.today.month)
            await self.db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to record SMS transaction for user %s", user.id)
            await self.db.rollback()
            return RECORD_FAILED_REPLY

        logger.info("Recorded %s of %s from SMS for budget account %s", parsed.type, parsed.amount, budget_account_id)

        reply = f"{parsed.type.capitalize()} recorded: {_money(parsed.amount)} - {parsed.description}"
        if parsed.merchant:
            reply += f" at {parsed.merchant}"
        if parsed.category:
            reply += f" ({parsed.category})"
        if parsed.date and parsed.date != self.today:
            reply += f" on {parsed.date.strftime('%m/%d/%Y')}"

        if budget is not None:
            if budget.remaining > 0:
                reply += f"\n\n{parsed.category} budget remaining: {_money(budget.remaining)}"
            else:
                reply += f"\n\n{parsed.category} budget exceeded by {_money(-budget.remaining)}"

        return reply

    async def find_or_create_category(self, budget_account_id: int, name: str) -> int:
        result = await self.db.execute(
            select(Category.id).where(
                and_(
                    Category.budget_account_id == budget_account_id,
                    func.lower(Category.name) == name.lower()
                )
            ).limit(1)
        )
        category_id = result.scalar_one_or_none()
        if category_id is not None:
            return category_id

        category = Category(budget_account_id=budget_account_id, name=name)
        self.db.add(category)
        await self.db.flush()
        return category.id

    async def _spent_in_month(self, budget_account_id: int, category_id: int, year: int, month: int) -> Decimal:
        start = datetime(year, month, 1)
        end = datetime.combine(date(year, month, monthrange(year, month)[1]), time.max)
        result = await self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                and_(
                    Transaction.budget_account_id == budget_account_id,
                    Transaction.category_id == category_id,
                    Transaction.type == 'expense',
                    Transaction.date >= start,
                    Transaction.date <= end
                )
            )
        )
        return Decimal(str(result.scalar() or 0))

    async def get_category_budgets(self, budget_account_id: int, year: int, month: int) -> List[CategoryBudget]:
        """Allocated vs spent per budgeted category of a month, ordered by name"""
        result = await self.db.execute(
            select(Category.id, Category.name, BudgetCategory.amount)
            .join(BudgetCategory, BudgetCategory.category_id == Category.id)
            .join(Budget, Budget.id == BudgetCategory.budget_id)
            .where(
                and_(
                    Category.budget_account_id == budget_account_id,
                    Budget.budget_account_id == budget_account_id,
                    Budget.year == year,
                    Budget.month == month
                )
            )
            .order_by(Category.name)
        )

        budgets = []
        for category_id, name, allocated in result.all():
            budgets.append(CategoryBudget(
                category_id=category_id,
                category_name=name,
                allocated=Decimal(str(allocated)),
                spent=await self._spent_in_month(budget_account_id, category_id, year, month)
            ))
        return budgets

    async def get_category_budget(self, budget_account_id: int, category_id: int, year: int, month: int) -> Optional[CategoryBudget]:
        for budget in await self.get_category_budgets(budget_account_id, year, month):
            if budget.category_id == category_id:
                return budget
        return None

    async def available_categories(self, budget_account_id: int) -> str:
        result = await self.db.execute(
            select(Category.name)
            .where(Category.budget_account_id == budget_account_id)
            .order_by(Category.name)
            .limit(10)
        )
        names = [name for name in result.scalars().all()]
        return ", ".join(names) or "none"
