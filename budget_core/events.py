from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

from budget_core.domain import ZERO, to_money

__all__ = [
    'STATE_CHANGED', 'TRANSACTION_ADDED', 'BUDGET_ALERT', 'MONTH_RESET',
    'Event', 'EventBus', 'check_budget_handler', 'register_default_handlers',
]

STATE_CHANGED = "STATE_CHANGED"
TRANSACTION_ADDED = "TRANSACTION_ADDED"
BUDGET_ALERT = "BUDGET_ALERT"
MONTH_RESET = "MONTH_RESET"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = list(self._subscribers.get(name, ()))
        if not handlers:
            return []

        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        return [handler(event, payload) for handler in handlers]

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if handler in self._subscribers.get(name, ()):
            self._subscribers[name].remove(handler)


def check_budget_handler(event: Event, payload: dict) -> dict:
    if payload.get("type") != "expense":
        return {}

    category_id = payload.get("category_id", "")
    budget = to_money(payload.get("budget"))
    spent = to_money(payload.get("spent"))

    if budget > ZERO and spent > budget:
        return {
            "alert": f"Budget exceeded for {payload.get('category_name', category_id)}: {spent} / {budget}",
            "category_id": category_id,
            "spent": spent,
            "budget": budget,
            "over_budget": spent - budget,
        }
    return {}


def register_default_handlers(bus: EventBus) -> EventBus:
    bus.subscribe(TRANSACTION_ADDED, check_budget_handler)
    return bus
