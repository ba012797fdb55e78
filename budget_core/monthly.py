"""Month-boundary handling and the monthly report input.

``generate_monthly_report`` is the read-only projection that report
renderers consume. The async helpers decide when a report is due, hand it
to an injected sender and reset the month through the reducer. They always
return a result dict and never raise.
"""
import calendar
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from budget_core.actions import ResetMonthlyBudget
from budget_core.domain import BudgetState, Transaction, current_month
from budget_core.reducer import budget_reducer

logger = logging.getLogger(__name__)

SendReport = Callable[["MonthlyReport"], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class CategoryReport:
    id: str
    name: str
    icon: str
    budget: Decimal
    spent: Decimal
    transactions: tuple[Transaction, ...]


@dataclass(frozen=True)
class MonthlyReport:
    month: str
    total_income: Decimal
    total_budget: Decimal
    total_spent: Decimal
    remaining_balance: Decimal
    categories: tuple[CategoryReport, ...]
    income_transactions: tuple[Transaction, ...]

    def to_dict(self) -> dict:
        def tx(t: Transaction) -> dict:
            return {
                "id": t.id, "type": t.type, "amount": str(t.amount),
                "category": t.category, "description": t.description, "date": t.date,
            }

        return {
            "month": self.month,
            "totalIncome": str(self.total_income),
            "totalBudget": str(self.total_budget),
            "totalSpent": str(self.total_spent),
            "remainingBalance": str(self.remaining_balance),
            "categories": [
                {
                    "id": c.id, "name": c.name, "icon": c.icon,
                    "budget": str(c.budget), "spent": str(c.spent),
                    "transactions": [tx(t) for t in c.transactions],
                }
                for c in self.categories
            ],
            "incomeTransactions": [tx(t) for t in self.income_transactions],
        }


def generate_monthly_report(state: BudgetState) -> MonthlyReport:
    return MonthlyReport(
        month=state.current_month,
        total_income=state.total_income,
        total_budget=state.total_budget,
        total_spent=state.total_spent,
        remaining_balance=state.remaining_balance,
        categories=tuple(
            CategoryReport(c.id, c.name, c.icon, c.budget, c.spent, c.transactions)
            for c in state.categories
        ),
        income_transactions=state.income_transactions,
    )


def is_new_month(month: str, last_report_month: Optional[str]) -> bool:
    if not last_report_month:
        return False
    return month != last_report_month


def is_end_of_month(now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return now.day == calendar.monthrange(now.year, now.month)[1]


def should_generate_monthly_report(
    state_month: str,
    last_report_month: Optional[str],
    now: Optional[datetime] = None,
) -> bool:
    """True on the last day of the state's month, or once the state's month is
    over and it was never reported (the app was not opened on the last day)."""
    now = now or datetime.now()
    if last_report_month and not is_new_month(state_month, last_report_month):
        return False

    this_month = current_month(now)
    if state_month == this_month:
        return is_end_of_month(now)
    return True


def rolled_over_state(state: BudgetState, now: Optional[datetime] = None) -> BudgetState:
    """Reset a snapshot loaded in a later month; budgets carry over."""
    now = now or datetime.now()
    if state.current_month == current_month(now):
        return state
    return budget_reducer(state, ResetMonthlyBudget(now=now))


class ReportTracker:
    """Remembers which month was last reported, in a small JSON file."""

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path is not None else None
        self._data: Dict[str, Optional[str]] = {"lastReportMonth": None, "lastCheck": None}
        self._load()

    @property
    def last_report_month(self) -> Optional[str]:
        return self._data.get("lastReportMonth")

    @property
    def last_check(self) -> Optional[str]:
        return self._data.get("lastCheck")

    def mark_sent(self, month: str, now: Optional[datetime] = None) -> None:
        self._data = {
            "lastReportMonth": month,
            "lastCheck": (now or datetime.now()).isoformat(),
        }
        self._store()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read report log %s: %s", self.path, e)
            return
        if isinstance(data, dict):
            self._data.update({k: data.get(k) for k in self._data})

    def _store(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as handle:
                json.dump(self._data, handle)
        except OSError as e:
            logger.error("Error marking report as sent: %s", e)


def file_report_sender(directory: Union[str, Path]) -> SendReport:
    """A sender that writes each report to ``budget_report_<month>.json``."""
    directory = Path(directory)

    async def send(report: MonthlyReport) -> Dict[str, Any]:
        path = directory / f"budget_report_{report.month}.json"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(report.to_dict(), handle, ensure_ascii=False, indent=2)
        except OSError as e:
            return {"success": False, "error": f"Could not write {path.name}: {e}"}
        logger.info("Monthly report written to %s", path)
        return {"success": True}

    return send


async def _send(report: MonthlyReport, send_report: SendReport) -> Dict[str, Any]:
    try:
        result = await send_report(report)
    except Exception as e:
        logger.exception("Report sender failed for %s", report.month)
        return {"success": False, "error": str(e) or "Failed to send monthly report"}

    if result.get("success"):
        return {"success": True}
    return {"success": False, "error": result.get("error") or "Failed to send email"}


async def process_monthly_report(
    state: BudgetState,
    send_report: SendReport,
    on_reset: Callable[[], None],
    tracker: ReportTracker,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    result = await _send(generate_monthly_report(state), send_report)
    if not result["success"]:
        logger.warning("Monthly report for %s not sent: %s", state.current_month, result["error"])
        return result

    tracker.mark_sent(state.current_month, now)
    on_reset()
    logger.info("Monthly report for %s sent, month reset", state.current_month)
    return result


async def check_and_process_monthly_report(
    state: BudgetState,
    send_report: SendReport,
    on_reset: Callable[[], None],
    tracker: ReportTracker,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    if not should_generate_monthly_report(state.current_month, tracker.last_report_month, now):
        return {"processed": False}

    result = await process_monthly_report(state, send_report, on_reset, tracker, now)
    return {"processed": True, **result}


async def send_monthly_report_manually(
    state: BudgetState,
    send_report: SendReport,
) -> Dict[str, Any]:
    """Send the report without resetting the month."""
    return await _send(generate_monthly_report(state), send_report)
