from decimal import Decimal
from functools import reduce
from typing import Iterable, NamedTuple

from budget_core.domain import EXPENSE, ZERO, BudgetState, Category, Transaction


class Totals(NamedTuple):
    total_budget: Decimal
    total_spent: Decimal
    remaining_balance: Decimal


def compute_totals(categories: Iterable[Category], total_income=ZERO) -> Totals:
    cats = tuple(categories)
    total_budget = reduce(lambda acc, c: acc + c.budget, cats, ZERO)
    total_spent = reduce(lambda acc, c: acc + c.spent, cats, ZERO)
    # income anchored: a budget with no income nets negative
    return Totals(total_budget, total_spent, total_income - total_spent)


def category_spent(transactions: Iterable[Transaction]) -> Decimal:
    return reduce(
        lambda acc, t: acc + t.amount,
        filter(lambda t: t.type == EXPENSE, transactions),
        ZERO,
    )


def income_total(transactions: Iterable[Transaction]) -> Decimal:
    return reduce(lambda acc, t: acc + t.amount, transactions, ZERO)


def category_remaining(category: Category) -> Decimal:
    return category.budget - category.spent


def with_totals(
    state: BudgetState,
    categories: tuple[Category, ...],
    total_income=None,
) -> BudgetState:
    income = state.total_income if total_income is None else total_income
    totals = compute_totals(categories, income)
    return BudgetState(
        categories=categories,
        total_budget=totals.total_budget,
        total_spent=totals.total_spent,
        total_income=income,
        remaining_balance=totals.remaining_balance,
        current_month=state.current_month,
        last_reset_date=state.last_reset_date,
        income_transactions=state.income_transactions,
    )
