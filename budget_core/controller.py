"""Host-side owner of the budget state.

The reducer is pure. ``BudgetController`` is where the side effects live:

* dispatches are serialized with a lock so two transitions never start
  from the same snapshot
* saves are debounced with a timer and run after the state settles
* the monthly report check runs at most once per session

A snapshot from an earlier month stays loaded after ``hydrate`` so the
monthly check can report it. ``run_monthly_check`` resets it through the
reducer, and ``roll_over`` does the same when no report is sent.

Every state it hands out is immutable. Readers may keep a reference while
later dispatches replace it.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from budget_core import monthly
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
from budget_core.config import Settings, load_settings
from budget_core.domain import (
    EXPENSE,
    INCOME,
    INCOME_CATEGORY,
    UNKNOWN_CATEGORY,
    BudgetState,
    Transaction,
    current_month,
    new_transaction_id,
    to_money,
)
from budget_core.events import (
    MONTH_RESET,
    STATE_CHANGED,
    TRANSACTION_ADDED,
    EventBus,
    register_default_handlers,
)
from budget_core.reducer import budget_reducer, initial_state
from budget_core.sms_parser import ParsedSMS
from budget_core.storage import JsonFileStorage

logger = logging.getLogger(__name__)


class BudgetController:

    def __init__(
        self,
        storage: Optional[JsonFileStorage] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
        bus: Optional[EventBus] = None,
    ):
        self.settings = settings or load_settings()
        self.storage = storage or JsonFileStorage(
            self.settings.snapshot_path, self.settings.max_snapshot_bytes
        )
        self.clock = clock
        self.bus = bus or register_default_handlers(EventBus())
        self.alerts: List[str] = []
        self.monthly_check_done = False
        self._state = initial_state(now=clock())
        self._lock = threading.Lock()
        self._save_timer: Optional[threading.Timer] = None

    @property
    def state(self) -> BudgetState:
        return self._state

    @property
    def is_stale(self) -> bool:
        return self._state.current_month != current_month(self.clock())

    def hydrate(self) -> BudgetState:
        """Load the persisted snapshot as is, without saving it back."""
        loaded = self.storage.load()
        if loaded.is_some():
            snapshot = loaded.get_or_else(None)
            with self._lock:
                self._state = budget_reducer(self._state, LoadData(snapshot))
            logger.info("Loaded budget data for %s", snapshot.current_month)
            if self.is_stale:
                logger.info("Snapshot for %s is from an earlier month", snapshot.current_month)
        return self._state

    def roll_over(self) -> BudgetState:
        """Reset a stale month; budgets carry over."""
        rolled = monthly.rolled_over_state(self._state, self.clock())
        if rolled is self._state:
            return rolled
        logger.info("New month detected, resetting %s", self._state.current_month)
        state = self.dispatch(LoadData(rolled))
        self.bus.publish(MONTH_RESET, {"month": state.current_month})
        return state

    def dispatch(self, action) -> BudgetState:
        with self._lock:
            previous = self._state
            self._state = budget_reducer(previous, action)
            changed = self._state is not previous
            current = self._state
        if changed:
            logger.debug("Applied %s", type(action).__name__)
            self.bus.publish(STATE_CHANGED, {"action": type(action).__name__})
            self._schedule_save()
        return current

    def set_budget(self, category_id: str, amount) -> BudgetState:
        return self.dispatch(SetBudget(category_id, to_money(amount)))

    def set_spent(self, category_id: str, amount) -> BudgetState:
        return self.dispatch(SetSpent(category_id, to_money(amount)))

    def update_category(self, category_id: str, **updates) -> BudgetState:
        return self.dispatch(UpdateCategory(category_id, updates))

    def add_transaction(self, tx_type: str, amount, category: str, description: str) -> Transaction:
        now = self.clock()
        tx = Transaction(
            id=new_transaction_id(now),
            type=tx_type,
            amount=to_money(amount),
            category=category,
            description=description,
            date=now.isoformat(),
        )
        state = self.dispatch(AddTransaction(tx))
        if tx.type == EXPENSE:
            self._check_budget(state, tx)
        return tx

    def delete_transaction(self, transaction_id: str, category_id: str) -> BudgetState:
        return self.dispatch(DeleteTransaction(transaction_id, category_id))

    def reset_monthly_budget(self) -> BudgetState:
        state = self.dispatch(ResetMonthlyBudget(now=self.clock()))
        self.bus.publish(MONTH_RESET, {"month": state.current_month})
        return state

    def carry_over_balance(self) -> BudgetState:
        return self.dispatch(CarryOverBalance())

    def allocate_to_savings(self, amount) -> BudgetState:
        return self.dispatch(AllocateToSavings(to_money(amount)))

    def add_parsed(self, parsed: ParsedSMS) -> Transaction:
        if parsed.type == INCOME:
            category = INCOME_CATEGORY
        else:
            category = parsed.category or UNKNOWN_CATEGORY
        return self.add_transaction(parsed.type, parsed.amount, category, parsed.description)

    def add_all_parsed(self, candidates: Iterable[ParsedSMS]) -> int:
        """Apply candidates one by one in input order; one failure does not stop the rest."""
        applied = 0
        for parsed in candidates:
            try:
                self.add_parsed(parsed)
            except (AttributeError, TypeError, ValueError):
                logger.exception("Skipping parsed transaction %r", parsed)
                continue
            applied += 1
        logger.info("Added %d parsed transaction(s)", applied)
        return applied

    async def run_monthly_check(
        self,
        send_report: monthly.SendReport,
        tracker: monthly.ReportTracker,
    ) -> dict:
        """Report the loaded month if it is due, then make sure the state is current.

        A successful report resets the month through ``reset_monthly_budget``.
        When the report is skipped or fails, a stale month is still rolled over.
        """
        if self.monthly_check_done:
            return {"processed": False}
        self.monthly_check_done = True
        result = await monthly.check_and_process_monthly_report(
            self._state, send_report, self.reset_monthly_budget, tracker, self.clock()
        )
        self.roll_over()
        return result

    async def send_report(self, send_report: monthly.SendReport) -> dict:
        return await monthly.send_monthly_report_manually(self._state, send_report)

    def flush(self) -> None:
        with self._lock:
            if self._save_timer is not None:
                self._save_timer.cancel()
                self._save_timer = None
        self._save()

    def close(self) -> None:
        self.flush()

    def _check_budget(self, state: BudgetState, tx: Transaction) -> None:
        category = next((c for c in state.categories if c.id == tx.category), None)
        if category is None:
            return
        payload = {
            "type": tx.type,
            "amount": tx.amount,
            "category_id": category.id,
            "category_name": category.name,
            "budget": category.budget,
            "spent": category.spent,
        }
        for result in self.bus.publish(TRANSACTION_ADDED, payload):
            if "alert" in result:
                logger.info(result["alert"])
                self.alerts.append(result["alert"])

    def _schedule_save(self) -> None:
        delay = self.settings.save_delay
        if delay <= 0:
            self._save()
            return
        with self._lock:
            if self._save_timer is not None:
                self._save_timer.cancel()
            self._save_timer = threading.Timer(delay, self._save)
            self._save_timer.daemon = True
            self._save_timer.start()

    def _save(self) -> None:
        result = self.storage.save(self._state)
        if result.is_left():
            logger.warning("Budget data not saved: %s", result.get_error())
