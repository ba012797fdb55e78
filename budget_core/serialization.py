"""Conversion between ``BudgetState`` and the persisted JSON blob.

The blob keeps the camelCase keys written by earlier versions of the app.
``state_from_dict`` lists every optional field with its default so that
snapshots written before income tracking existed still load.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from budget_core.catalog import DEFAULT_CATEGORIES
from budget_core.domain import (
    EXPENSE,
    INCOME,
    BudgetState,
    Category,
    Transaction,
    current_month,
    to_money,
)
from budget_core.totals import compute_totals, income_total


def transaction_to_dict(t: Transaction) -> dict:
    return {
        "id": t.id,
        "type": t.type,
        "amount": str(t.amount),
        "category": t.category,
        "description": t.description,
        "date": t.date,
    }


def category_to_dict(c: Category) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "icon": c.icon,
        "budget": str(c.budget),
        "spent": str(c.spent),
        "transactions": [transaction_to_dict(t) for t in c.transactions],
    }


def state_to_dict(state: BudgetState) -> dict:
    return {
        "categories": [category_to_dict(c) for c in state.categories],
        "totalBudget": str(state.total_budget),
        "totalSpent": str(state.total_spent),
        "totalIncome": str(state.total_income),
        "remainingBalance": str(state.remaining_balance),
        "currentMonth": state.current_month,
        "lastResetDate": state.last_reset_date,
        "incomeTransactions": [transaction_to_dict(t) for t in state.income_transactions],
    }


def transaction_from_dict(data: Mapping[str, Any], default_type: str = EXPENSE) -> Transaction:
    tx_type = data.get("type")
    return Transaction(
        id=str(data.get("id", "")),
        type=tx_type if tx_type in (INCOME, EXPENSE) else default_type,
        amount=to_money(data.get("amount")),
        category=str(data.get("category", "")),
        description=str(data.get("description", "")),
        date=str(data.get("date", "")),
    )


def category_from_dict(data: Mapping[str, Any]) -> Category:
    return Category(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        icon=str(data.get("icon", "")),
        budget=to_money(data.get("budget")),
        spent=to_money(data.get("spent")),
        transactions=tuple(
            transaction_from_dict(t) for t in (data.get("transactions") or ())
        ),
    )


def _money_or(data: Mapping[str, Any], key: str, default: Decimal) -> Decimal:
    if data.get(key) is None:
        return default
    return to_money(data[key])


def state_from_dict(
    data: Mapping[str, Any],
    defaults: Optional[tuple[Category, ...]] = None,
    now: Optional[datetime] = None,
) -> BudgetState:
    """Build a fully populated ``BudgetState`` from a snapshot mapping.

    Missing fields fall back as follows:

    * ``categories`` -> the seed catalog (``defaults``)
    * ``category.transactions`` -> empty, ``budget``/``spent`` -> 0
    * ``incomeTransactions`` -> empty
    * ``totalIncome`` -> sum of the income transactions (0 for old snapshots)
    * ``totalBudget``/``totalSpent`` -> sums over the categories
    * ``remainingBalance`` -> ``totalIncome - totalSpent``
    * ``currentMonth`` -> the current month, ``lastResetDate`` -> now

    Totals present in the snapshot are kept as written.
    """
    now = now or datetime.now()
    raw_categories = data.get("categories")
    if raw_categories is None:
        categories = tuple(defaults if defaults is not None else DEFAULT_CATEGORIES)
    else:
        categories = tuple(category_from_dict(c) for c in raw_categories)

    income_transactions = tuple(
        transaction_from_dict(t, default_type=INCOME)
        for t in (data.get("incomeTransactions") or ())
    )
    total_income = _money_or(data, "totalIncome", income_total(income_transactions))
    derived = compute_totals(categories, total_income)

    return BudgetState(
        categories=categories,
        total_budget=_money_or(data, "totalBudget", derived.total_budget),
        total_spent=_money_or(data, "totalSpent", derived.total_spent),
        total_income=total_income,
        remaining_balance=_money_or(data, "remainingBalance", derived.remaining_balance),
        current_month=data.get("currentMonth") or current_month(now),
        last_reset_date=data.get("lastResetDate") or now.isoformat(),
        income_transactions=income_transactions,
    )


def _is_numeric(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    if isinstance(value, str):
        try:
            return Decimal(value).is_finite()
        except InvalidOperation:
            return False
    return False


def is_valid_snapshot(data) -> bool:
    if not isinstance(data, Mapping):
        return False
    if not isinstance(data.get("categories"), list):
        return False
    return all(
        _is_numeric(data.get(key))
        for key in ("totalBudget", "totalSpent", "remainingBalance")
    )


def _is_record_list(value) -> bool:
    return value is None or (
        isinstance(value, list) and all(isinstance(item, Mapping) for item in value)
    )


def is_loadable_snapshot(data) -> bool:
    """Shape check for ``state_from_dict``; totals may be missing."""
    if not isinstance(data, Mapping):
        return False
    categories = data.get("categories")
    if not _is_record_list(categories) or not _is_record_list(data.get("incomeTransactions")):
        return False
    return all(
        "id" in c and _is_record_list(c.get("transactions"))
        for c in categories or ()
    )
