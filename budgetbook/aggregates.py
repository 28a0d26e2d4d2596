"""Pure aggregations over already-fetched records.

Nothing here filters by owner; callers hand in one owner's records.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

from budgetbook.domain import Bill, Budget, Contribution, GOAL_STATUSES, Goal, Transaction
from budgetbook.filters import iter_transactions, transaction_filter
from budgetbook.money import HUNDRED, ZERO, percentage, to_decimal, total
from budgetbook.periods import as_date, as_datetime, days_between, year_bounds

DUE_SOON_DAYS = 3

# (status, inclusive lower bound in percent), checked top to bottom
BUDGET_THRESHOLDS = (
    ("over-budget", Decimal("100")),
    ("warning", Decimal("80")),
    ("on-track", Decimal("50")),
)


def category_summary(
    trans: Iterable[Transaction], start: Optional[date], end: Optional[date]
) -> dict[tuple[str, str], dict[str, Any]]:
    """Totals per (category, type) within [start, end], largest total first."""
    buckets: dict[tuple[str, str], dict[str, Any]] = defaultdict(lambda: {"total": ZERO, "count": 0})
    for t in iter_transactions(trans, transaction_filter(start=start, end=end)):
        bucket = buckets[(t.category, t.type)]
        bucket["total"] += to_decimal(t.amount)
        bucket["count"] += 1

    ordered = sorted(buckets.items(), key=lambda item: item[1]["total"], reverse=True)
    return {
        key: {"total": b["total"], "count": b["count"], "avg": b["total"] / b["count"]}
        for key, b in ordered
    }


def monthly_summary(trans: Iterable[Transaction], year: int) -> dict[tuple[int, str], dict[str, Any]]:
    """Totals per (month, type) for one calendar year, January first."""
    start, end = year_bounds(year)
    buckets: dict[tuple[int, str], dict[str, Any]] = defaultdict(lambda: {"total": ZERO, "count": 0})
    for t in iter_transactions(trans, transaction_filter(start=start, end=end)):
        bucket = buckets[(as_date(t.date).month, t.type)]
        bucket["total"] += to_decimal(t.amount)
        bucket["count"] += 1
    return {key: dict(buckets[key]) for key in sorted(buckets)}


def budget_status(total_spent: Any, total_budget: Any) -> str:
    spent = to_decimal(total_spent) or ZERO
    budget = to_decimal(total_budget) or ZERO
    if budget <= ZERO:
        return "over-budget" if spent > ZERO else "under-budget"

    pct = percentage(spent, budget)
    for status, lower_bound in BUDGET_THRESHOLDS:
        if pct >= lower_bound:
            return status
    return "under-budget"


def bill_status(
    next_due_date: Optional[date], is_paid: bool, is_active: bool, now: Union[date, datetime]
) -> str:
    if not is_active:
        return "inactive"
    if is_paid:
        return "paid"
    if next_due_date is None:
        return "pending"
    days_left = (as_date(next_due_date) - as_date(now)).days
    if days_left < 0:
        return "overdue"
    if days_left <= DUE_SOON_DAYS:
        return "due-soon"
    return "pending"


def goal_progress_velocity(
    contributions: Iterable[Contribution], start_date: date, now: Union[date, datetime]
) -> Decimal:
    """Contributed amount per day since ``start_date`` (at least one day)."""
    contributed = total(c.amount for c in contributions)
    if contributed == ZERO:
        return ZERO
    days_active = max(1.0, days_between(start_date, now))
    return contributed / Decimal(str(days_active))


def projected_completion(remaining_amount: Any, velocity: Any, now: Union[date, datetime]) -> Optional[date]:
    speed = to_decimal(velocity) or ZERO
    if speed <= ZERO:
        return None
    remaining = max(ZERO, to_decimal(remaining_amount) or ZERO)
    days_needed = float(remaining / speed)
    # no calendar date can hold a projection past date.max
    if days_needed > (date.max - as_date(now)).days:
        return None
    return (as_datetime(now) + timedelta(days=days_needed)).date()


def transaction_overview(
    trans: Iterable[Transaction], start: Optional[date], end: Optional[date]
) -> dict[str, Any]:
    selected = tuple(iter_transactions(trans, transaction_filter(start=start, end=end)))
    income = total(t.amount for t in selected if t.type == "income")
    expense = total(t.amount for t in selected if t.type == "expense")
    return {
        "total_income": income,
        "total_expense": expense,
        "net_amount": income - expense,
        "transaction_count": len(selected),
        "category_breakdown": category_summary(selected, start, end),
    }


def budget_year_summary(budgets: Iterable[Budget], year: int) -> dict[str, Any]:
    selected = [b for b in budgets if b.year == year and b.is_active]
    if not selected:
        return {
            "total_budgeted": ZERO,
            "total_spent": ZERO,
            "avg_monthly_budget": ZERO,
            "avg_monthly_spent": ZERO,
            "months_with_budget": 0,
        }
    budgeted = total(b.total_budget for b in selected)
    spent = total(b.total_spent for b in selected)
    return {
        "total_budgeted": budgeted,
        "total_spent": spent,
        "avg_monthly_budget": budgeted / len(selected),
        "avg_monthly_spent": spent / len(selected),
        "months_with_budget": len(selected),
    }


def bills_summary(bills: Iterable[Bill], now: Union[date, datetime]) -> dict[str, Any]:
    active = [b for b in bills if b.is_active]
    amount = total(b.amount for b in active)
    return {
        "total_bills": len(active),
        "total_amount": amount,
        "paid_bills": sum(1 for b in active if b.is_paid),
        "overdue_bills": sum(
            1 for b in active if bill_status(b.next_due_date or b.due_date, b.is_paid, b.is_active, now) == "overdue"
        ),
        "avg_bill_amount": amount / len(active) if active else ZERO,
    }


def goals_summary(goals: Iterable[Goal]) -> dict[str, Any]:
    by_status = {s: {"count": 0, "total_target": ZERO, "total_current": ZERO} for s in GOAL_STATUSES}
    for g in goals:
        if g.is_archived or g.status not in by_status:
            continue
        bucket = by_status[g.status]
        bucket["count"] += 1
        bucket["total_target"] += to_decimal(g.target_amount)
        bucket["total_current"] += to_decimal(g.current_amount)

    target = total(b["total_target"] for b in by_status.values())
    current = total(b["total_current"] for b in by_status.values())
    return {
        "by_status": by_status,
        "totals": {
            "total_goals": sum(b["count"] for b in by_status.values()),
            "total_target_amount": target,
            "total_current_amount": current,
            "overall_progress": current * HUNDRED / target if target > ZERO else ZERO,
        },
    }
