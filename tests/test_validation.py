from datetime import date, datetime
from decimal import Decimal

from budgetbook.domain import (
    AutoContribute,
    Bill,
    Budget,
    BudgetCategory,
    Goal,
    Milestone,
    Recurrence,
    ReminderSettings,
    Transaction,
)
from budgetbook.validation import (
    non_negative_amount,
    positive_amount,
    required_text,
    validate_bill,
    validate_budget,
    validate_goal,
    validate_transaction,
)

TODAY = date(2024, 1, 20)


def make_tx(**kw):
    base = dict(
        id="t1",
        owner_id="u1",
        type="expense",
        amount=Decimal("12.50"),
        description="Lunch",
        category="food",
        date=date(2024, 1, 19),
    )
    base.update(kw)
    return Transaction(**base)


def error_of(result):
    return result.get_error()["error"]


def test_amount_checks():
    assert positive_amount("12.5").get_or_else(None) == Decimal("12.5")
    assert positive_amount(0).is_left()
    assert positive_amount("abc").is_left()
    assert positive_amount(float("nan")).is_left()
    assert non_negative_amount(0).is_right()
    assert non_negative_amount(-1).is_left()


def test_required_text():
    assert required_text("  hi ", "name").get_or_else(None) == "hi"
    assert error_of(required_text("   ", "name")) == "missing_field"
    assert error_of(required_text("x" * 11, "name", 10)) == "too_long"


def test_valid_transaction_passes():
    assert validate_transaction(make_tx(), TODAY).is_right()


def test_transaction_failures():
    assert error_of(validate_transaction(make_tx(type="transfer"), TODAY)) == "invalid_type"
    assert error_of(validate_transaction(make_tx(category="salary"), TODAY)) == "category_type_mismatch"
    assert error_of(validate_transaction(make_tx(date=date(2024, 1, 21)), TODAY)) == "future_date"
    assert error_of(validate_transaction(make_tx(payment_method="barter"), TODAY)) == "invalid_payment_method"
    assert error_of(validate_transaction(make_tx(description="x" * 201), TODAY)) == "too_long"


def test_recurring_transaction_rules():
    missing = make_tx(recurring=Recurrence(is_recurring=True))
    assert error_of(validate_transaction(missing, TODAY)) == "missing_field"
    one_time = make_tx(recurring=Recurrence(is_recurring=True, frequency="one-time"))
    assert error_of(validate_transaction(one_time, TODAY)) == "invalid_frequency"
    ends_early = make_tx(recurring=Recurrence(is_recurring=True, frequency="weekly", end_date=date(2024, 1, 19)))
    assert error_of(validate_transaction(ends_early, TODAY)) == "invalid_end_date"
    ok = make_tx(recurring=Recurrence(is_recurring=True, frequency="weekly", end_date=date(2024, 6, 1)))
    assert validate_transaction(ok, TODAY).is_right()


def test_budget_rules():
    good = Budget("b1", "u1", "January", 1, 2024, categories=(BudgetCategory("food", Decimal("100")),))
    assert validate_budget(good).is_right()
    income_cat = Budget("b1", "u1", "January", 1, 2024, categories=(BudgetCategory("salary", Decimal("100")),))
    assert error_of(validate_budget(income_cat)) == "invalid_category"
    negative = Budget("b1", "u1", "January", 1, 2024, categories=(BudgetCategory("food", Decimal("-1")),))
    assert error_of(validate_budget(negative)) == "invalid_amount"
    assert error_of(validate_budget(Budget("b1", "u1", "", 1, 2024))) == "missing_field"


def test_bill_rules():
    bill = Bill("bl1", "u1", "Rent", Decimal("900"), "housing", date(2024, 2, 1))
    assert validate_bill(bill).is_right()
    weird = Bill("bl1", "u1", "Rent", Decimal("900"), "housing", date(2024, 2, 1), frequency="hourly")
    assert error_of(validate_bill(weird)) == "invalid_frequency"
    nagging = Bill(
        "bl1", "u1", "Rent", Decimal("900"), "housing", date(2024, 2, 1),
        reminders=ReminderSettings(days_before=31),
    )
    assert error_of(validate_bill(nagging)) == "invalid_reminder"


def test_goal_rules():
    now = datetime(2024, 1, 20, 9, 0)
    goal = Goal("g1", "u1", "Car", Decimal("5000"), date(2025, 1, 1), date(2024, 1, 20))
    assert validate_goal(goal, now).is_right()
    past = Goal("g1", "u1", "Car", Decimal("5000"), date(2024, 1, 20), date(2024, 1, 1))
    assert error_of(validate_goal(past, now)) == "invalid_target_date"
    assert validate_goal(past, now, is_new=False).is_right()
    daily = Goal(
        "g1", "u1", "Car", Decimal("5000"), date(2025, 1, 1), date(2024, 1, 20),
        auto_contribute=AutoContribute(enabled=True, amount=Decimal("10"), frequency="daily"),
    )
    assert error_of(validate_goal(daily, now)) == "invalid_frequency"
    unnamed = Goal(
        "g1", "u1", "Car", Decimal("5000"), date(2025, 1, 1), date(2024, 1, 20),
        milestones=(Milestone("", Decimal("100")),),
    )
    assert error_of(validate_goal(unnamed, now)) == "missing_field"
