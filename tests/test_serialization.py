import json
from datetime import datetime
from decimal import Decimal

from budget_core.actions import AddTransaction, AllocateToSavings, SetBudget
from budget_core.catalog import DEFAULT_CATEGORIES
from budget_core.domain import Transaction
from budget_core.reducer import budget_reducer, initial_state
from budget_core.serialization import is_loadable_snapshot, is_valid_snapshot, state_from_dict, state_to_dict

NOW = datetime(2025, 6, 10, 12, 0)


def populated_state():
    state = initial_state(now=NOW)
    for action in (
        SetBudget("food", Decimal("4500.50")),
        AddTransaction(Transaction("t1", "expense", Decimal("120.75"), "food", "Swiggy", "2025-06-10T12:00:00")),
        AddTransaction(Transaction("i1", "income", Decimal("30000"), "income", "Salary", "2025-06-01T09:00:00")),
        AllocateToSavings(Decimal("1000")),
    ):
        state = budget_reducer(state, action)
    return state


def test_round_trip_through_json():
    state = populated_state()
    blob = json.dumps(state_to_dict(state))
    restored = state_from_dict(json.loads(blob))
    assert restored == state


def test_state_to_dict_uses_persisted_keys():
    data = state_to_dict(populated_state())
    assert set(data) == {
        "categories", "totalBudget", "totalSpent", "totalIncome",
        "remainingBalance", "currentMonth", "lastResetDate", "incomeTransactions",
    }
    assert data["incomeTransactions"][0]["amount"] == "30000"


def test_old_snapshot_without_income_fields_loads():
    old = {
        "categories": [
            {"id": "food", "name": "Food", "icon": "🍔", "budget": 1000, "spent": 250},
            {"id": "trip", "name": "Trip", "icon": "✈️", "budget": 500, "spent": 0},
        ],
        "totalBudget": 1500,
        "totalSpent": 250,
        "remainingBalance": 1250,
        "currentMonth": "2024-11",
        "lastResetDate": "2024-11-01T00:00:00",
    }
    state = state_from_dict(old, now=NOW)

    assert state.total_income == Decimal("0")
    assert state.income_transactions == ()
    assert all(c.transactions == () for c in state.categories)
    assert state.total_budget == Decimal("1500")
    assert state.remaining_balance == Decimal("1250")


def test_missing_fields_are_derived_or_defaulted():
    data = {
        "categories": [{"id": "food", "name": "Food", "budget": "200", "spent": "50"}],
        "incomeTransactions": [
            {"id": "i1", "amount": 75, "category": "income", "description": "Refund", "date": "2025-06-02"},
        ],
    }
    state = state_from_dict(data, now=NOW)

    assert state.categories[0].icon == ""
    assert state.income_transactions[0].type == "income"
    assert state.total_income == Decimal("75")
    assert state.total_budget == Decimal("200")
    assert state.total_spent == Decimal("50")
    assert state.remaining_balance == Decimal("25")
    assert state.current_month == "2025-06"
    assert state.last_reset_date == NOW.isoformat()


def test_missing_categories_fall_back_to_catalog():
    state = state_from_dict({}, now=NOW)
    assert state.categories == DEFAULT_CATEGORIES


def test_is_valid_snapshot():
    good = state_to_dict(initial_state(now=NOW))
    assert is_valid_snapshot(good)
    assert is_valid_snapshot({"categories": [], "totalBudget": 0, "totalSpent": 1.5, "remainingBalance": "-3"})

    assert not is_valid_snapshot(None)
    assert not is_valid_snapshot([])
    assert not is_valid_snapshot({**good, "categories": "food"})
    assert not is_valid_snapshot({**good, "totalSpent": "lots"})
    assert not is_valid_snapshot({**good, "remainingBalance": None})
    assert not is_valid_snapshot({**good, "totalBudget": True})


def test_is_loadable_snapshot_accepts_partial_blobs():
    assert is_loadable_snapshot({})
    assert is_loadable_snapshot({"categories": [{"id": "food"}], "incomeTransactions": None})
    assert not is_loadable_snapshot({"categories": [{"name": "no id"}]})
    assert not is_loadable_snapshot({"categories": [{"id": "food", "transactions": [1]}]})
    assert not is_loadable_snapshot({"incomeTransactions": "salary"})
    assert not is_loadable_snapshot(None)
