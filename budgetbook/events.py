import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

from budgetbook.aggregates import budget_status

logger = logging.getLogger(__name__)

__all__ = [
    "Event", "EventBus", "default_bus",
    "TRANSACTION_ADDED", "BUDGET_ALERT", "BILL_PAID", "GOAL_COMPLETED", "MILESTONE_ACHIEVED",
]

TRANSACTION_ADDED = "TRANSACTION_ADDED"
BUDGET_ALERT = "BUDGET_ALERT"
BILL_PAID = "BILL_PAID"
GOAL_COMPLETED = "GOAL_COMPLETED"
MILESTONE_ACHIEVED = "MILESTONE_ACHIEVED"

ALERT_STATUSES = ("warning", "over-budget")


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._subscribers: Dict[str, List[Handler]] = {}
        self._clock = clock

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = list(self._subscribers.get(name, ()))
        if not handlers:
            return []
        event = Event(name=name, ts=self._clock().isoformat(), payload=payload)
        logger.debug("publishing %s to %d handler(s)", name, len(handlers))
        return [handler(event, payload) for handler in handlers]


def budget_alert_handler(event: Event, payload: dict) -> dict:
    status = budget_status(payload.get("total_spent", 0), payload.get("total_budget", 0))
    if status not in ALERT_STATUSES:
        return {}
    return {
        "alert": f"Budget {payload.get('name', '')} is {status}: "
                 f"{payload.get('total_spent')} / {payload.get('total_budget')}",
        "budget_id": payload.get("budget_id"),
        "status": status,
    }


def goal_completed_handler(event: Event, payload: dict) -> dict:
    return {"message": f"Goal {payload.get('name', '')} reached its target of {payload.get('target_amount')}"}


def milestone_handler(event: Event, payload: dict) -> dict:
    return {"message": f"Milestone {payload.get('milestone', '')} reached for goal {payload.get('goal', '')}"}


def default_bus(clock: Callable[[], datetime] = datetime.now) -> EventBus:
    bus = EventBus(clock)
    bus.subscribe(BUDGET_ALERT, budget_alert_handler)
    bus.subscribe(GOAL_COMPLETED, goal_completed_handler)
    bus.subscribe(MILESTONE_ACHIEVED, milestone_handler)
    return bus
