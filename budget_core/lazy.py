from decimal import Decimal
from itertools import chain, islice
from typing import Callable, Iterable, Iterator

from budget_core.domain import BudgetState, Transaction
from budget_core.functional import pipe


def iter_transactions(
    state: BudgetState, pred: Callable[[Transaction], bool] = lambda t: True
) -> Iterator[Transaction]:
    """Expenses category by category, then income, each in insertion order."""
    expenses = chain.from_iterable(c.transactions for c in state.categories)
    for t in chain(expenses, state.income_transactions):
        if pred(t):
            yield t


def by_type(tx_type: str):
    def _filter(t: Transaction) -> bool:
        return t.type == tx_type

    return _filter


def by_category(category_id: str):
    def _filter(t: Transaction) -> bool:
        return t.category == category_id

    return _filter


def by_month(month: str):
    def _filter(t: Transaction) -> bool:
        return t.date[:7] == month

    return _filter


def top_categories(state: BudgetState, k: int) -> Iterator[tuple[str, Decimal]]:
    ordered = sorted(
        ((c.name, c.spent) for c in state.categories if c.spent > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    for name, spent in ordered[: max(0, k)]:
        yield name, spent


def recent_transactions(state: BudgetState, limit: int = 10) -> list[Transaction]:
    # display ordering only, state keeps insertion order
    def newest_first(ts: Iterable[Transaction]) -> list[Transaction]:
        return sorted(ts, key=lambda t: t.date, reverse=True)

    return pipe(
        iter_transactions(state),
        newest_first,
        lambda ts: list(islice(ts, max(0, limit))),
    )
