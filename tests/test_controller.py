from datetime import datetime
from decimal import Decimal

import pytest

from budget_core.config import load_settings
from budget_core.controller import BudgetController
from budget_core.events import MONTH_RESET, STATE_CHANGED
from budget_core.monthly import ReportTracker
from budget_core.sms_parser import ParsedSMS, parse_sms
from budget_core.storage import JsonFileStorage

NOW = datetime(2025, 7, 14, 11, 0)


def make_controller(tmp_path, save_delay="0", clock=lambda: NOW):
    settings = load_settings({"BUDGET_DATA_DIR": str(tmp_path), "BUDGET_SAVE_DELAY": save_delay})
    return BudgetController(settings=settings, clock=clock)


def test_add_transaction_stamps_id_and_date(tmp_path):
    controller = make_controller(tmp_path)
    tx = controller.add_transaction("expense", "250", "food", "Lunch")

    assert tx.id.startswith(str(int(NOW.timestamp() * 1000)))
    assert tx.date == NOW.isoformat()
    assert controller.state.categories[6].transactions == (tx,)
    assert controller.state.total_spent == Decimal("250")


def test_transaction_ids_are_unique_within_same_instant(tmp_path):
    controller = make_controller(tmp_path)
    ids = {controller.add_transaction("income", 1, "income", "x").id for _ in range(50)}
    assert len(ids) == 50


def test_every_settled_change_is_saved(tmp_path):
    controller = make_controller(tmp_path)
    controller.set_budget("food", 1000)

    reloaded = JsonFileStorage(controller.settings.snapshot_path).load().get_or_else(None)
    assert reloaded == controller.state


def test_debounced_save_waits_for_flush(tmp_path):
    controller = make_controller(tmp_path, save_delay="60")
    controller.set_budget("food", 1000)
    assert not controller.settings.snapshot_path.exists()

    controller.flush()
    assert controller.settings.snapshot_path.exists()


def test_noop_actions_do_not_publish(tmp_path):
    controller = make_controller(tmp_path)
    changes = []
    controller.bus.subscribe(STATE_CHANGED, lambda event, data: changes.append(data) or {})

    controller.set_budget("missing", 10)
    controller.carry_over_balance()
    assert changes == []

    controller.set_budget("food", 10)
    assert changes == [{"action": "SetBudget"}]


def test_handlers_may_dispatch_without_deadlock(tmp_path):
    controller = make_controller(tmp_path)

    def mirror_budget(event, data):
        if data["action"] == "SetBudget":
            controller.set_spent("food", 25)
        return {}

    controller.bus.subscribe(STATE_CHANGED, mirror_budget)
    controller.set_budget("food", 100)

    food = next(c for c in controller.state.categories if c.id == "food")
    assert food.budget == Decimal("100")
    assert food.spent == Decimal("25")


def test_budget_alert_collected(tmp_path):
    controller = make_controller(tmp_path)
    controller.set_budget("food", 100)
    controller.add_transaction("expense", 150, "food", "Dinner")

    assert len(controller.alerts) == 1
    assert "Food" in controller.alerts[0]


def test_hydrate_same_month_keeps_data(tmp_path):
    first = make_controller(tmp_path)
    first.add_transaction("income", 5000, "income", "Salary")

    second = make_controller(tmp_path)
    state = second.hydrate()
    assert state.total_income == Decimal("5000")
    assert state == first.state


def save_june(tmp_path):
    june = make_controller(tmp_path, clock=lambda: datetime(2025, 6, 20))
    june.set_budget("food", 3000)
    june.add_transaction("expense", 700, "food", "Groceries")


def test_hydrate_keeps_stale_month_loaded(tmp_path):
    save_june(tmp_path)

    controller = make_controller(tmp_path)
    state = controller.hydrate()

    assert controller.is_stale
    assert state.current_month == "2025-06"
    assert state.total_spent == Decimal("700")


def test_roll_over_resets_stale_month(tmp_path):
    save_june(tmp_path)
    controller = make_controller(tmp_path)
    controller.hydrate()
    resets = []
    controller.bus.subscribe(MONTH_RESET, lambda event, data: resets.append(data) or {})

    state = controller.roll_over()

    assert state.current_month == "2025-07"
    assert state.total_budget == Decimal("3000")
    assert state.total_spent == Decimal("0")
    assert resets == [{"month": "2025-07"}]
    assert controller.roll_over() is state


@pytest.mark.asyncio
async def test_monthly_check_reports_stale_month_before_reset(tmp_path):
    save_june(tmp_path)
    controller = make_controller(tmp_path, clock=lambda: datetime(2025, 7, 2, 8, 0))
    controller.hydrate()
    sent = []

    async def send(report):
        sent.append((report.month, report.total_spent))
        return {"success": True}

    tracker = ReportTracker(tmp_path / "reports.json")
    result = await controller.run_monthly_check(send, tracker)

    assert result == {"processed": True, "success": True}
    assert sent == [("2025-06", Decimal("700"))]
    assert tracker.last_report_month == "2025-06"
    assert controller.state.current_month == "2025-07"
    assert controller.state.total_spent == Decimal("0")
    assert controller.state.total_budget == Decimal("3000")


@pytest.mark.asyncio
async def test_monthly_check_failure_still_rolls_over(tmp_path):
    save_june(tmp_path)
    controller = make_controller(tmp_path)
    controller.hydrate()

    async def send(report):
        return {"success": False, "error": "offline"}

    tracker = ReportTracker()
    result = await controller.run_monthly_check(send, tracker)

    assert result == {"processed": True, "success": False, "error": "offline"}
    assert tracker.last_report_month is None
    assert controller.state.current_month == "2025-07"
    assert not controller.is_stale


@pytest.mark.asyncio
async def test_monthly_check_skipped_for_reported_month_still_rolls_over(tmp_path):
    save_june(tmp_path)
    controller = make_controller(tmp_path)
    controller.hydrate()
    tracker = ReportTracker()
    tracker.mark_sent("2025-06", datetime(2025, 6, 30))

    async def send(report):
        raise AssertionError("already reported")

    assert await controller.run_monthly_check(send, tracker) == {"processed": False}
    assert controller.state.current_month == "2025-07"


@pytest.mark.asyncio
async def test_send_report_does_not_reset(tmp_path):
    controller = make_controller(tmp_path)
    controller.add_transaction("expense", 120, "food", "Lunch")
    sent = []

    async def send(report):
        sent.append(report.month)
        return {"success": True}

    assert await controller.send_report(send) == {"success": True}
    assert sent == ["2025-07"]
    assert controller.state.total_spent == Decimal("120")


def test_hydrate_without_snapshot_keeps_initial_state(tmp_path):
    controller = make_controller(tmp_path)
    before = controller.state
    assert controller.hydrate() is before


def test_add_parsed_routes_by_type(tmp_path):
    controller = make_controller(tmp_path)
    controller.add_parsed(parse_sms("Rs.500 debited for purchase at AMAZON on your card"))
    controller.add_parsed(parse_sms("INR 25000 credited as salary"))
    controller.add_parsed(ParsedSMS(Decimal("40"), "expense", "Unknown spend"))

    state = controller.state
    shopping = next(c for c in state.categories if c.id == "shopping")
    unknown = next(c for c in state.categories if c.id == "unknown-expenses")
    assert shopping.spent == Decimal("500")
    assert unknown.spent == Decimal("40")
    assert state.total_income == Decimal("25000")
    assert state.income_transactions[0].category == "income"


def test_add_all_parsed_skips_faulty_candidates(tmp_path):
    controller = make_controller(tmp_path)
    candidates = [
        ParsedSMS(Decimal("10"), "expense", "First", "food"),
        None,
        ParsedSMS(Decimal("20"), "expense", "Third", "food"),
    ]
    assert controller.add_all_parsed(candidates) == 2

    food = next(c for c in controller.state.categories if c.id == "food")
    assert [t.description for t in food.transactions] == ["First", "Third"]


@pytest.mark.asyncio
async def test_run_monthly_check_once_per_session(tmp_path):
    controller = make_controller(tmp_path, clock=lambda: datetime(2025, 7, 31, 22, 0))
    controller.add_transaction("expense", 99, "food", "Snacks")
    sent = []

    async def send(report):
        sent.append(report.month)
        return {"success": True}

    tracker = ReportTracker(tmp_path / "reports.json")
    first = await controller.run_monthly_check(send, tracker)
    second = await controller.run_monthly_check(send, tracker)

    assert first == {"processed": True, "success": True}
    assert second == {"processed": False}
    assert sent == ["2025-07"]
    assert controller.state.total_spent == Decimal("0")
    assert tracker.last_report_month == "2025-07"
