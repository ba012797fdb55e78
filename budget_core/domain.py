from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import uuid4

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)

# category id used to address income transactions on delete
INCOME_CATEGORY = "income"
UNKNOWN_CATEGORY = "unknown-expenses"

ZERO = Decimal("0")


@dataclass(frozen=True)
class Transaction:
    id: str
    type: str          # "income" or "expense"
    amount: Decimal    # always non-negative, the type carries the sign
    category: str
    description: str
    date: str          # ISO timestamp, e.g. "2025-09-01T10:00:00"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    icon: str
    budget: Decimal = ZERO
    spent: Decimal = ZERO
    transactions: tuple[Transaction, ...] = ()


@dataclass(frozen=True)
class BudgetState:
    categories: tuple[Category, ...]
    total_budget: Decimal
    total_spent: Decimal
    total_income: Decimal
    remaining_balance: Decimal
    current_month: str   # "YYYY-MM"
    last_reset_date: str
    income_transactions: tuple[Transaction, ...] = ()


def to_money(value) -> Decimal:
    """Coerce ints, floats and numeric strings to Decimal; anything else is zero."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        money = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return money if money.is_finite() else ZERO


def current_month(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{now.year}-{now.month:02d}"


def new_transaction_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    return f"{millis}-{uuid4().hex[:9]}"
