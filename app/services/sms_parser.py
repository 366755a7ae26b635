"""
SMS Command Parser for the budget text-message assistant
Understands help, budget queries and free-text transactions such as
"Spent $25 on groceries at Walmart yesterday"
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional, Tuple

class SMSCommand(Enum):
    HELP = "help"
    BUDGET_QUERY = "budget_query"
    TRANSACTION = "transaction"
    UNKNOWN = "unknown"

class TransactionType(Enum):
    EXPENSE = "expense"
    INCOME = "income"

@dataclass
class ParsedTransaction:
    amount: Decimal
    description: str
    type: str
    category: Optional[str] = None
    merchant: Optional[str] = None
    date: Optional[date] = None

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

def format_phone_number(phone_number: str) -> str:
    """
    Normalize a phone number to E.164

    10 digits are taken as a US number; longer numbers only gain a missing "+".
    """
    cleaned = re.sub(r'\D', '', phone_number or '')
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    if len(cleaned) > 10 and not phone_number.startswith('+'):
        return f"+{cleaned}"
    return phone_number

class SMSCommandParser:
    """
    Parses inbound SMS commands
    """

    def __init__(self):
        self.patterns = self._compile_patterns()

        self.help_commands = ['help', '?']
        self.query_keywords = ['budget', 'balance']
        self.transaction_keywords = ['spent', 'expense', 'paid', 'bought', 'income', 'earned']

    def _compile_patterns(self) -> Dict[str, list]:
        """
        Compile regex patterns for the message formats
        """
        patterns = {
            'income': [
                r'\b(?:income|earned|received|got|deposit)\b',
            ],

            # First "$" amount wins, otherwise the first bare number
            'amount': [
                r'\$(\d+(?:\.\d{2})?)\b',
                r'\b(\d+(?:\.\d{2})?)\b',
            ],

            # Checked in order; the first match is removed from the text
            'date': [
                r'\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b',  # MM/DD/YYYY, MM/DD/YY
                r'\b(\d{1,2})/(\d{1,2})\b',  # MM/DD, current year
                r'\b(yesterday|today|tomorrow)\b',
                r'\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b',
                r'\b(\d+)\s+days?\s+ago\b',
            ],

            'merchant': [
                r"\b(?:at|from)\s+([A-Za-z][A-Za-z0-9\s&'-]+?)(?:\s+(?:for|on|in)\s|\s*$)",
                r"\b(?:merchant|store|shop|restaurant|cafe)\s+([A-Za-z][A-Za-z0-9\s&'-]+?)(?:\s+(?:for|on|in)\s|\s*$)",
            ],

            'prefix': [
                r'^(?:spent|paid|bought|expense|income|earned|received|got|deposit|on|for|at|from)\s*',
            ],

            'category': [
                r'\b(?:on|for|in)\s+(.+?)(?:\s+(?:at|from)\s|\s*$)',
            ],
        }

        compiled = {}
        for key, pattern_list in patterns.items():
            compiled[key] = [re.compile(p, re.IGNORECASE) for p in pattern_list]

        return compiled

    def classify(self, message: str) -> SMSCommand:
        text = (message or '').strip().lower()
        if not text:
            return SMSCommand.UNKNOWN

        if text in self.help_commands:
            return SMSCommand.HELP

        if any(text.startswith(keyword) for keyword in self.query_keywords):
            return SMSCommand.BUDGET_QUERY

        if any(text.startswith(keyword) for keyword in self.transaction_keywords):
            return SMSCommand.TRANSACTION
        if '$' in text or re.search(r'\d', text):
            return SMSCommand.TRANSACTION

        return SMSCommand.UNKNOWN

    def query_category(self, message: str) -> Optional[str]:
        """Word following "budget"/"balance", e.g. "budget groceries" -> "groceries" """
        words = message.strip().lower().split()
        for index, word in enumerate(words):
            if word in self.query_keywords:
                return words[index + 1] if index + 1 < len(words) else None
        return None

    def parse_date(self, text: str, today: date) -> Optional[date]:
        """
        Resolve a date expression relative to today

        Weekday names mean the next such day, today included.
        """
        lowered = text.lower().strip()

        if lowered == 'yesterday':
            return today - timedelta(days=1)
        if lowered == 'today':
            return today
        if lowered == 'tomorrow':
            return today + timedelta(days=1)

        days_ago = re.match(r'(\d+)\s+days?\s+ago', lowered)
        if days_ago:
            return today - timedelta(days=int(days_ago.group(1)))

        if lowered in WEEKDAYS:
            days_ahead = (WEEKDAYS.index(lowered) - today.weekday()) % 7
            return today + timedelta(days=days_ahead)

        full_date = re.match(r'(\d{1,2})/(\d{1,2})/(\d{2,4})$', lowered)
        if full_date:
            month, day, year = (int(part) for part in full_date.groups())
            if year < 100:
                year += 2000 if year < 50 else 1900
            return self._safe_date(year, month, day)

        short_date = re.match(r'(\d{1,2})/(\d{1,2})$', lowered)
        if short_date:
            month, day = (int(part) for part in short_date.groups())
            return self._safe_date(today.year, month, day)

        return None

    def _safe_date(self, year: int, month: int, day: int) -> Optional[date]:
        try:
            return date(year, month, day)
        except ValueError:
            return None

    def _extract_date(self, text: str, today: date) -> Tuple[Optional[date], str]:
        """Find the first date expression; returns it and the text without it"""
        for pattern in self.patterns['date']:
            match = pattern.search(text)
            if match:
                remaining = (text[:match.start()] + text[match.end():]).strip()
                return self.parse_date(match.group(0), today), re.sub(r'\s+', ' ', remaining)
        return None, text

    def _extract_amount(self, text: str) -> Tuple[Optional[Decimal], str]:
        for pattern in self.patterns['amount']:
            match = pattern.search(text)
            if match:
                try:
                    amount = Decimal(match.group(1))
                except InvalidOperation:
                    continue
                remaining = (text[:match.start()] + text[match.end():]).strip()
                return amount, re.sub(r'\s+', ' ', remaining)
        return None, text

    def _extract_merchant(self, text: str) -> Tuple[Optional[str], str]:
        for pattern in self.patterns['merchant']:
            match = pattern.search(text)
            if match:
                merchant = match.group(1).strip()
                # Keep the "for/on/in" that terminated the merchant
                tail = match.group(0)[match.end(1) - match.start(0):].strip()
                remaining = f"{text[:match.start()]} {tail} {text[match.end():]}".strip()
                return merchant, re.sub(r'\s+', ' ', remaining)
        return None, text

    def parse_transaction(self, message: str, today: Optional[date] = None) -> Optional[ParsedTransaction]:
        """
        Parse a free-text transaction

        Args:
            message: SMS body
            today: reference date for relative dates

        Returns:
            ParsedTransaction, or None when no positive amount is present
        """
        today = today or date.today()
        text = (message or '').strip()

        is_income = self.patterns['income'][0].search(text) is not None
        trans_type = TransactionType.INCOME if is_income else TransactionType.EXPENSE

        transaction_date, text = self._extract_date(text, today)

        amount, text = self._extract_amount(text)
        if amount is None or amount <= 0:
            return None

        merchant, text = self._extract_merchant(text)

        description = text
        for pattern in self.patterns['prefix']:
            description = pattern.sub('', description).strip()

        category = None
        category_match = self.patterns['category'][0].search(description)
        if category_match:
            category = category_match.group(1).strip()
            description = description[:category_match.start()].strip()
        elif description and not merchant:
            words = description.split()
            # A short remainder is the category; otherwise its last two words are
            if len(words) <= 2:
                category = description
                description = ''
            else:
                category = ' '.join(words[-2:])
                description = ' '.join(words[:-2])

        return ParsedTransaction(
            amount=amount,
            description=description or f"{trans_type.value} via SMS",
            type=trans_type.value,
            category=category or None,
            merchant=merchant,
            date=transaction_date
        )
