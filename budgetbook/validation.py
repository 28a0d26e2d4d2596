from datetime import date, datetime
from typing import Any, Optional, Sequence

from budgetbook.domain import (
    AUTO_CONTRIBUTE_FREQUENCIES,
    BILL_CATEGORIES,
    BILL_PAYMENT_METHODS,
    Bill,
    Budget,
    CATEGORIES_BY_TYPE,
    CONTRIBUTION_SOURCES,
    EXPENSE_CATEGORIES,
    FREQUENCIES,
    GOAL_CATEGORIES,
    GOAL_PRIORITIES,
    GOAL_STATUSES,
    GOAL_TYPES,
    Goal,
    MIN_BUDGET_YEAR,
    PAYMENT_METHODS,
    TRANSACTION_TYPES,
    Transaction,
)
from budgetbook.functional import Either, Right, chain, failure
from budgetbook.money import ZERO, to_decimal
from budgetbook.periods import as_date

MAX_REMINDER_DAYS = 30


def positive_amount(value: Any, field: str = "amount") -> Either:
    amount = to_decimal(value)
    if amount is None:
        return failure("invalid_amount", f"{field} must be a number", field=field, value=value)
    if amount <= ZERO:
        return failure("invalid_amount", f"{field} must be greater than 0", field=field, value=value)
    return Right(amount)


def non_negative_amount(value: Any, field: str = "amount") -> Either:
    amount = to_decimal(value)
    if amount is None or amount < ZERO:
        return failure("invalid_amount", f"{field} cannot be negative", field=field, value=value)
    return Right(amount)


def one_of(value: Any, allowed: Sequence[str], field: str) -> Either:
    if value not in allowed:
        return failure(f"invalid_{field}", f"Invalid {field}: {value}", field=field, value=value)
    return Right(value)


def required_text(value: Any, field: str, max_length: Optional[int] = None) -> Either:
    text = (value or "").strip() if isinstance(value, str) or value is None else None
    if not text:
        return failure("missing_field", f"{field} is required", field=field)
    if max_length is not None and len(text) > max_length:
        return failure(
            "too_long", f"{field} cannot exceed {max_length} characters", field=field, max_length=max_length
        )
    return Right(text)


def validate_transaction(t: Transaction, today: date) -> Either:
    def check_type(tx: Transaction) -> Either:
        return one_of(tx.type, TRANSACTION_TYPES, "type").map(lambda _: tx)

    def check_amount(tx: Transaction) -> Either:
        return positive_amount(tx.amount).map(lambda _: tx)

    def check_description(tx: Transaction) -> Either:
        return required_text(tx.description, "description", 200).map(lambda _: tx)

    def check_category(tx: Transaction) -> Either:
        if tx.category not in CATEGORIES_BY_TYPE[tx.type]:
            return failure(
                "category_type_mismatch",
                f"Category {tx.category} is not valid for {tx.type} transactions",
                category=tx.category,
                type=tx.type,
            )
        return Right(tx)

    def check_date(tx: Transaction) -> Either:
        if as_date(tx.date) > as_date(today):
            return failure("future_date", "Transaction date cannot be in the future", date=str(tx.date))
        return Right(tx)

    def check_payment_method(tx: Transaction) -> Either:
        return one_of(tx.payment_method, PAYMENT_METHODS, "payment_method").map(lambda _: tx)

    def check_recurring(tx: Transaction) -> Either:
        rec = tx.recurring
        if rec is None or not rec.is_recurring:
            return Right(tx)
        if rec.frequency is None:
            return failure("missing_field", "frequency is required for recurring transactions", field="frequency")
        if rec.frequency not in FREQUENCIES or rec.frequency == "one-time":
            return failure("invalid_frequency", f"Invalid frequency: {rec.frequency}", frequency=rec.frequency)
        if rec.end_date is not None and as_date(rec.end_date) <= as_date(tx.date):
            return failure("invalid_end_date", "End date must be after transaction date")
        return Right(tx)

    return chain(
        t, check_type, check_amount, check_description, check_category,
        check_date, check_payment_method, check_recurring,
    )


def validate_budget(b: Budget) -> Either:
    def check_name(budget: Budget) -> Either:
        return required_text(budget.name, "name", 100).map(lambda _: budget)

    def check_period(budget: Budget) -> Either:
        if not isinstance(budget.month, int) or not 1 <= budget.month <= 12:
            return failure("invalid_month", "Month must be between 1 and 12", month=budget.month)
        if not isinstance(budget.year, int) or budget.year < MIN_BUDGET_YEAR:
            return failure("invalid_year", f"Year must be {MIN_BUDGET_YEAR} or later", year=budget.year)
        return Right(budget)

    def check_categories(budget: Budget) -> Either:
        seen = set()
        for cat in budget.categories:
            if cat.category not in EXPENSE_CATEGORIES:
                return failure("invalid_category", f"Invalid category: {cat.category}", category=cat.category)
            if cat.category in seen:
                return failure("duplicate_category", f"Category {cat.category} listed twice", category=cat.category)
            seen.add(cat.category)
            for field, value in (("budget_amount", cat.budget_amount), ("spent_amount", cat.spent_amount)):
                checked = non_negative_amount(value, field)
                if checked.is_left():
                    return checked
        return Right(budget)

    return chain(b, check_name, check_period, check_categories)


def validate_bill(b: Bill) -> Either:
    def check_basics(bill: Bill) -> Either:
        return (
            required_text(bill.name, "name", 100)
            .bind(lambda _: positive_amount(bill.amount))
            .bind(lambda _: one_of(bill.category, BILL_CATEGORIES, "category"))
            .bind(lambda _: one_of(bill.frequency, FREQUENCIES, "frequency"))
            .bind(lambda _: one_of(bill.payment_method, BILL_PAYMENT_METHODS, "payment_method"))
            .map(lambda _: bill)
        )

    def check_dates(bill: Bill) -> Either:
        if bill.end_date is not None and as_date(bill.end_date) <= as_date(bill.due_date):
            return failure("invalid_end_date", "End date must be after due date")
        return Right(bill)

    def check_reminders(bill: Bill) -> Either:
        days = bill.reminders.days_before
        if not isinstance(days, int) or not 0 <= days <= MAX_REMINDER_DAYS:
            return failure(
                "invalid_reminder", f"Reminder days must be between 0 and {MAX_REMINDER_DAYS}", days_before=days
            )
        return Right(bill)

    return chain(b, check_basics, check_dates, check_reminders)


def validate_goal(g: Goal, now: datetime, is_new: bool = True) -> Either:
    def check_basics(goal: Goal) -> Either:
        return (
            required_text(goal.name, "name", 100)
            .bind(lambda _: positive_amount(goal.target_amount, "target_amount"))
            .bind(lambda _: non_negative_amount(goal.current_amount, "current_amount"))
            .bind(lambda _: one_of(goal.type, GOAL_TYPES, "type"))
            .bind(lambda _: one_of(goal.category, GOAL_CATEGORIES, "category"))
            .bind(lambda _: one_of(goal.priority, GOAL_PRIORITIES, "priority"))
            .bind(lambda _: one_of(goal.status, GOAL_STATUSES, "status"))
            .map(lambda _: goal)
        )

    def check_target_date(goal: Goal) -> Either:
        if is_new and as_date(goal.target_date) <= as_date(now):
            return failure("invalid_target_date", "Target date must be in the future")
        return Right(goal)

    def check_auto_contribute(goal: Goal) -> Either:
        auto = goal.auto_contribute
        if not auto.enabled:
            return Right(goal)
        return (
            one_of(auto.frequency, AUTO_CONTRIBUTE_FREQUENCIES, "frequency")
            .bind(lambda _: non_negative_amount(auto.amount if auto.amount is not None else 0, "auto_contribute.amount"))
            .map(lambda _: goal)
        )

    def check_milestones(goal: Goal) -> Either:
        for m in goal.milestones:
            checked = required_text(m.name, "milestone name", 50).bind(
                lambda _: non_negative_amount(m.target_amount, "milestone target_amount")
            )
            if checked.is_left():
                return checked
        return Right(goal)

    return chain(g, check_basics, check_target_date, check_auto_contribute, check_milestones)


def validate_source(source: str) -> Either:
    return one_of(source, CONTRIBUTION_SOURCES, "source")
