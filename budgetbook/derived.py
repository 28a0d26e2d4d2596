"""Values computed on read from a stored record. None of these are persisted."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from budgetbook.aggregates import bill_status, budget_status, goal_progress_velocity, projected_completion
from budgetbook.domain import Bill, Budget, Goal
from budgetbook.money import HUNDRED, ZERO, percentage, to_decimal
from budgetbook.periods import as_date, period_label

Now = Union[date, datetime]

DAYS_PER_MONTH = Decimal("30")


def budget_period(budget: Budget) -> str:
    return period_label(budget.month, budget.year)


def remaining_budget(budget: Budget) -> Decimal:
    return max(ZERO, to_decimal(budget.total_budget) - to_decimal(budget.total_spent))


def overspent_amount(budget: Budget) -> Decimal:
    return max(ZERO, to_decimal(budget.total_spent) - to_decimal(budget.total_budget))


def budget_current_status(budget: Budget) -> str:
    return budget_status(budget.total_spent, budget.total_budget)


def days_until_due(bill: Bill, now: Now) -> int:
    return (as_date(_due(bill)) - as_date(now)).days


def is_bill_overdue(bill: Bill, now: Now) -> bool:
    return as_date(_due(bill)) < as_date(now) and not bill.is_paid and bill.is_active


def _due(bill: Bill) -> date:
    return bill.next_due_date or bill.due_date


def bill_current_status(bill: Bill, now: Now) -> str:
    return bill_status(_due(bill), bill.is_paid, bill.is_active, now)


def progress_percentage(goal: Goal) -> Decimal:
    return min(HUNDRED, percentage(goal.current_amount, goal.target_amount))


def remaining_amount(goal: Goal) -> Decimal:
    return max(ZERO, to_decimal(goal.target_amount) - to_decimal(goal.current_amount))


def days_remaining(goal: Goal, now: Now) -> int:
    return (as_date(goal.target_date) - as_date(now)).days


def required_monthly_contribution(goal: Goal, now: Now) -> Decimal:
    months_left = max(Decimal("1"), Decimal(days_remaining(goal, now)) / DAYS_PER_MONTH)
    return remaining_amount(goal) / months_left


def is_goal_completed(goal: Goal) -> bool:
    return to_decimal(goal.current_amount) >= to_decimal(goal.target_amount)


def is_goal_overdue(goal: Goal, now: Now) -> bool:
    return (
        as_date(goal.target_date) < as_date(now)
        and goal.status == "active"
        and progress_percentage(goal) < HUNDRED
    )


def goal_progress(goal: Goal, now: Now) -> dict[str, Any]:
    velocity = goal_progress_velocity(goal.contributions, goal.start_date, now)
    return {
        "current_amount": goal.current_amount,
        "target_amount": goal.target_amount,
        "progress_percentage": progress_percentage(goal),
        "remaining_amount": remaining_amount(goal),
        "days_remaining": days_remaining(goal, now),
        "required_monthly_contribution": required_monthly_contribution(goal, now),
        "is_overdue": is_goal_overdue(goal, now),
        "is_completed": is_goal_completed(goal),
        "progress_velocity": velocity,
        "projected_completion_date": projected_completion(remaining_amount(goal), velocity, now),
        "contributions": tuple(sorted(goal.contributions, key=lambda c: c.date, reverse=True)),
        "withdrawals": tuple(sorted(goal.withdrawals, key=lambda w: w.date, reverse=True)),
        "milestones": goal.milestones,
    }
