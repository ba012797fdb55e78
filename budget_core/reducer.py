"""The budget state machine.

``budget_reducer`` maps ``(state, action)`` to the next state and is the only
writer of category and transaction data. It never raises: an action that
refers to a missing category, or an action it does not know, returns the
state it was given. Input validation happens before an action is built.
"""
from dataclasses import fields, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Mapping, Optional

from budget_core.actions import (
    AddTransaction,
    AllocateToSavings,
    CarryOverBalance,
    DeleteTransaction,
    LoadData,
    ResetMonthlyBudget,
    SetBudget,
    SetSpent,
    UpdateCategory,
)
from budget_core.catalog import DEFAULT_CATEGORIES
from budget_core.domain import (
    INCOME,
    INCOME_CATEGORY,
    ZERO,
    BudgetState,
    Category,
    current_month,
    to_money,
)
from budget_core.serialization import is_loadable_snapshot, state_from_dict
from budget_core.totals import category_spent, income_total, with_totals

_CATEGORY_FIELDS = {f.name for f in fields(Category)}


def initial_state(
    categories: tuple[Category, ...] = DEFAULT_CATEGORIES,
    now: Optional[datetime] = None,
) -> BudgetState:
    now = now or datetime.now()
    empty = BudgetState(
        categories=(),
        total_budget=ZERO,
        total_spent=ZERO,
        total_income=ZERO,
        remaining_balance=ZERO,
        current_month=current_month(now),
        last_reset_date=now.isoformat(),
        income_transactions=(),
    )
    return with_totals(empty, tuple(categories), ZERO)


def _update_category(
    state: BudgetState,
    category_id: str,
    change: Callable[[Category], Category],
) -> BudgetState:
    if not any(c.id == category_id for c in state.categories):
        return state
    categories = tuple(
        change(c) if c.id == category_id else c for c in state.categories
    )
    return with_totals(state, categories)


def _set_budget(state: BudgetState, action: SetBudget) -> BudgetState:
    amount = to_money(action.amount)
    return _update_category(state, action.category_id, lambda c: replace(c, budget=amount))


def _set_spent(state: BudgetState, action: SetSpent) -> BudgetState:
    # manual correction; drifts from the transaction sum until the next add/delete
    amount = max(ZERO, to_money(action.amount))
    return _update_category(state, action.category_id, lambda c: replace(c, spent=amount))


def _add_transaction(state: BudgetState, action: AddTransaction) -> BudgetState:
    tx = action.transaction
    if tx.type == INCOME:
        income = state.income_transactions + (tx,)
        return with_totals(
            replace(state, income_transactions=income),
            state.categories,
            income_total(income),
        )

    def append(c: Category) -> Category:
        transactions = c.transactions + (tx,)
        return replace(c, transactions=transactions, spent=category_spent(transactions))

    return _update_category(state, tx.category, append)


def _delete_transaction(state: BudgetState, action: DeleteTransaction) -> BudgetState:
    tx_id = action.transaction_id
    if action.category_id == INCOME_CATEGORY:
        income = tuple(t for t in state.income_transactions if t.id != tx_id)
        return with_totals(
            replace(state, income_transactions=income),
            state.categories,
            income_total(income),
        )

    def remove(c: Category) -> Category:
        transactions = tuple(t for t in c.transactions if t.id != tx_id)
        return replace(c, transactions=transactions, spent=category_spent(transactions))

    return _update_category(state, action.category_id, remove)


def _reset_monthly_budget(state: BudgetState, action: ResetMonthlyBudget) -> BudgetState:
    now = action.now or datetime.now()
    categories = tuple(replace(c, spent=ZERO, transactions=()) for c in state.categories)
    cleared = replace(
        state,
        income_transactions=(),
        current_month=current_month(now),
        last_reset_date=now.isoformat(),
    )
    return with_totals(cleared, categories, ZERO)


def _carry_over_balance(state: BudgetState, action: CarryOverBalance) -> BudgetState:
    carry = state.remaining_balance
    if carry <= 0 or not state.categories:
        return state
    share = carry / Decimal(len(state.categories))
    categories = tuple(replace(c, budget=c.budget + share) for c in state.categories)
    return with_totals(state, categories)


def _allocate_to_savings(state: BudgetState, action: AllocateToSavings) -> BudgetState:
    # bookkeeping only, categories and totalSpent are untouched
    remaining = max(ZERO, state.remaining_balance - to_money(action.amount))
    return replace(state, remaining_balance=remaining)


def _load_data(state: BudgetState, action: LoadData) -> BudgetState:
    snapshot = action.snapshot
    if isinstance(snapshot, BudgetState):
        return snapshot
    if isinstance(snapshot, Mapping) and is_loadable_snapshot(snapshot):
        return state_from_dict(snapshot)
    return state


def _coerce_category_field(name: str, value):
    if name in ("budget", "spent"):
        return to_money(value)
    if name == "transactions":
        return tuple(value or ())
    return value


def _update_category_fields(state: BudgetState, action: UpdateCategory) -> BudgetState:
    updates = {
        name: _coerce_category_field(name, value)
        for name, value in dict(action.updates).items()
        if name in _CATEGORY_FIELDS
    }
    return _update_category(state, action.category_id, lambda c: replace(c, **updates))


_HANDLERS = {
    SetBudget: _set_budget,
    SetSpent: _set_spent,
    AddTransaction: _add_transaction,
    DeleteTransaction: _delete_transaction,
    ResetMonthlyBudget: _reset_monthly_budget,
    CarryOverBalance: _carry_over_balance,
    AllocateToSavings: _allocate_to_savings,
    LoadData: _load_data,
    UpdateCategory: _update_category_fields,
}


def budget_reducer(state: BudgetState, action) -> BudgetState:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)
