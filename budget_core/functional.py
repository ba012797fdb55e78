from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar

from budget_core.domain import (
    INCOME,
    INCOME_CATEGORY,
    TRANSACTION_TYPES,
    BudgetState,
    Category,
    to_money,
)

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return self.bind(lambda value: Some(f(value)))

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return self.bind(lambda value: Right(f(value)))

    def is_left(self) -> bool:
        return not self.is_right()


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def safe_category(state: BudgetState, category_id: str) -> Maybe[Category]:
    for cat in state.categories:
        if cat.id == category_id:
            return Some(cat)
    return Nothing()


def validate_transaction_input(
    tx_type: str,
    amount: Any,
    category_id: Optional[str],
    description: Optional[str],
    state: BudgetState,
) -> Either[dict, dict]:
    """Check user input before an AddTransaction action is built.

    Returns the normalized fields on success. Income is always filed under
    the "income" category.
    """
    if tx_type not in TRANSACTION_TYPES:
        return Left({
            "error": "invalid_type",
            "message": f"Transaction type must be one of {', '.join(TRANSACTION_TYPES)}",
            "type": tx_type,
        })

    money = to_money(amount)
    if money <= 0:
        return Left({
            "error": "invalid_amount",
            "message": "Please enter a valid amount",
            "amount": amount,
        })

    text = (description or "").strip()
    if not text:
        return Left({
            "error": "missing_description",
            "message": "Please enter a description",
        })

    if tx_type == INCOME:
        category_id = INCOME_CATEGORY
    elif not category_id:
        return Left({
            "error": "missing_category",
            "message": "Please select a category",
        })
    elif safe_category(state, category_id).is_none():
        return Left({
            "error": "category_not_found",
            "message": f"Category with ID {category_id} does not exist",
            "category_id": category_id,
        })

    return Right({
        "type": tx_type,
        "amount": money,
        "category": category_id,
        "description": text,
    })


def compose(*funcs):
    """compose(f, g, h)(x) == f(g(h(x)))"""
    def _composed(x):
        res = x
        for f in reversed(funcs):
            res = f(res)
        return res
    return _composed


def pipe(x, *funcs):
    """pipe(x, f, g, h) == h(g(f(x)))"""
    res = x
    for f in funcs:
        res = f(res)
    return res
