from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from budget_core.domain import BudgetState, Transaction


@dataclass(frozen=True)
class SetBudget:
    category_id: str
    amount: Decimal


@dataclass(frozen=True)
class SetSpent:
    category_id: str
    amount: Decimal


@dataclass(frozen=True)
class AddTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class DeleteTransaction:
    transaction_id: str
    category_id: str   # "income" addresses income_transactions


@dataclass(frozen=True)
class ResetMonthlyBudget:
    # pins the clock; None reads the system time
    now: Optional[datetime] = None


@dataclass(frozen=True)
class CarryOverBalance:
    pass


@dataclass(frozen=True)
class AllocateToSavings:
    amount: Decimal


@dataclass(frozen=True)
class LoadData:
    snapshot: Union[BudgetState, Mapping[str, Any]]


@dataclass(frozen=True)
class UpdateCategory:
    category_id: str
    updates: Mapping[str, Any] = field(default_factory=dict)


Action = Union[
    SetBudget,
    SetSpent,
    AddTransaction,
    DeleteTransaction,
    ResetMonthlyBudget,
    CarryOverBalance,
    AllocateToSavings,
    LoadData,
    UpdateCategory,
]
