from datetime import date, datetime
from decimal import Decimal

from budgetbook.aggregates import (
    bill_status,
    bills_summary,
    budget_status,
    budget_year_summary,
    category_summary,
    goal_progress_velocity,
    goals_summary,
    monthly_summary,
    projected_completion,
    transaction_overview,
)
from budgetbook.domain import Bill, Budget, Contribution, Goal, Transaction


def make_tx(id, type, amount, category, day, is_deleted=False):
    return Transaction(
        id=id,
        owner_id="u1",
        type=type,
        amount=Decimal(amount),
        description=id,
        category=category,
        date=day,
        is_deleted=is_deleted,
    )


def make_sample():
    return (
        make_tx("t1", "income", "3000", "salary", date(2024, 1, 1)),
        make_tx("t2", "expense", "120", "food", date(2024, 1, 5)),
        make_tx("t3", "expense", "80", "food", date(2024, 1, 20)),
        make_tx("t4", "expense", "500", "housing", date(2024, 2, 1)),
        make_tx("t5", "expense", "40", "food", date(2024, 2, 3), is_deleted=True),
        make_tx("t6", "income", "3000", "salary", date(2024, 2, 1)),
        make_tx("t7", "expense", "60", "food", date(2023, 12, 30)),
    )


def test_category_summary_totals_and_order():
    result = category_summary(make_sample(), date(2024, 1, 1), date(2024, 2, 29))
    keys = list(result)
    assert keys[0] == ("salary", "income")
    assert keys[1] == ("housing", "expense")
    food = result[("food", "expense")]
    assert food == {"total": Decimal("200"), "count": 2, "avg": Decimal("100")}


def test_category_summary_excludes_deleted_and_bounds_are_inclusive():
    result = category_summary(make_sample(), date(2024, 1, 5), date(2024, 1, 20))
    assert result == {("food", "expense"): {"total": Decimal("200"), "count": 2, "avg": Decimal("100")}}


def test_category_summary_empty_range():
    assert category_summary(make_sample(), date(2025, 1, 1), date(2025, 1, 31)) == {}


def test_monthly_summary_groups_by_month_and_type():
    result = monthly_summary(make_sample(), 2024)
    assert list(result) == [(1, "expense"), (1, "income"), (2, "expense"), (2, "income")]
    assert result[(1, "expense")] == {"total": Decimal("200"), "count": 2}
    assert result[(2, "expense")] == {"total": Decimal("500"), "count": 1}


def test_monthly_summary_other_year_is_empty():
    assert monthly_summary(make_sample(), 2022) == {}


def test_budget_status_thresholds():
    assert budget_status(Decimal("49.99"), 100) == "under-budget"
    assert budget_status(50, 100) == "on-track"
    assert budget_status(Decimal("79.99"), 100) == "on-track"
    assert budget_status(80, 100) == "warning"
    assert budget_status(Decimal("99.99"), 100) == "warning"
    assert budget_status(100, 100) == "over-budget"
    assert budget_status(150, 100) == "over-budget"


def test_budget_status_food_half_spent():
    assert budget_status(750, 1500) == "on-track"


def test_budget_status_zero_budget():
    assert budget_status(0, 0) == "under-budget"
    assert budget_status(10, 0) == "over-budget"


def test_bill_status_precedence():
    now = datetime(2024, 1, 10, 15, 0)
    assert bill_status(date(2024, 1, 1), False, False, now) == "inactive"
    assert bill_status(date(2024, 1, 1), True, True, now) == "paid"
    assert bill_status(date(2024, 1, 9), False, True, now) == "overdue"
    assert bill_status(date(2024, 1, 10), False, True, now) == "due-soon"
    assert bill_status(date(2024, 1, 13), False, True, now) == "due-soon"
    assert bill_status(date(2024, 1, 14), False, True, now) == "pending"


def test_goal_progress_velocity():
    contributions = (
        Contribution("c1", Decimal("100"), datetime(2024, 1, 2)),
        Contribution("c2", Decimal("200"), datetime(2024, 1, 5)),
    )
    velocity = goal_progress_velocity(contributions, date(2024, 1, 1), datetime(2024, 1, 11))
    assert velocity == Decimal("30")


def test_goal_progress_velocity_without_contributions():
    assert goal_progress_velocity((), date(2024, 1, 1), datetime(2024, 2, 1)) == Decimal("0")


def test_goal_progress_velocity_same_day_counts_one_day():
    contributions = (Contribution("c1", Decimal("50"), datetime(2024, 1, 1, 10)),)
    assert goal_progress_velocity(contributions, date(2024, 1, 1), datetime(2024, 1, 1, 12)) == Decimal("50")


def test_projected_completion():
    assert projected_completion(300, Decimal("30"), datetime(2024, 1, 11)) == date(2024, 1, 21)
    assert projected_completion(0, Decimal("30"), datetime(2024, 1, 11)) == date(2024, 1, 11)
    assert projected_completion(300, 0, datetime(2024, 1, 11)) is None


def test_projected_completion_beyond_calendar_is_none():
    assert projected_completion(Decimal("100000"), Decimal("0.01"), datetime(2024, 1, 1)) is None
    assert projected_completion(Decimal("1"), Decimal("1E-12"), datetime(2024, 1, 1)) is None
    assert projected_completion(10, 1, date(9999, 12, 21)) == date(9999, 12, 31)


def test_transaction_overview():
    result = transaction_overview(make_sample(), date(2024, 1, 1), date(2024, 1, 31))
    assert result["total_income"] == Decimal("3000")
    assert result["total_expense"] == Decimal("200")
    assert result["net_amount"] == Decimal("2800")
    assert result["transaction_count"] == 3
    assert ("food", "expense") in result["category_breakdown"]


def test_budget_year_summary():
    budgets = (
        Budget("b1", "u1", "Jan", 1, 2024, total_budget=Decimal("1000"), total_spent=Decimal("400")),
        Budget("b2", "u1", "Feb", 2, 2024, total_budget=Decimal("1200"), total_spent=Decimal("800")),
        Budget("b3", "u1", "Mar", 3, 2024, total_budget=Decimal("900"), is_active=False),
        Budget("b4", "u1", "Jan", 1, 2023, total_budget=Decimal("500")),
    )
    result = budget_year_summary(budgets, 2024)
    assert result["total_budgeted"] == Decimal("2200")
    assert result["total_spent"] == Decimal("1200")
    assert result["avg_monthly_budget"] == Decimal("1100")
    assert result["months_with_budget"] == 2
    assert budget_year_summary(budgets, 2030)["months_with_budget"] == 0


def test_bills_summary_counts_active_only():
    now = datetime(2024, 1, 10)
    bills = (
        Bill("bl1", "u1", "Rent", Decimal("1000"), "housing", date(2024, 1, 1), next_due_date=date(2024, 1, 1)),
        Bill("bl2", "u1", "Phone", Decimal("50"), "utilities", date(2024, 1, 20), next_due_date=date(2024, 1, 20)),
        Bill("bl3", "u1", "Old", Decimal("10"), "other-expense", date(2023, 1, 1),
             next_due_date=date(2023, 1, 1), is_active=False),
    )
    result = bills_summary(bills, now)
    assert result["total_bills"] == 2
    assert result["total_amount"] == Decimal("1050")
    assert result["overdue_bills"] == 1
    assert result["avg_bill_amount"] == Decimal("525")


def test_goals_summary_groups_by_status():
    goals = (
        Goal("g1", "u1", "Car", Decimal("1000"), date(2025, 1, 1), date(2024, 1, 1), current_amount=Decimal("250")),
        Goal("g2", "u1", "Trip", Decimal("500"), date(2025, 1, 1), date(2024, 1, 1),
             current_amount=Decimal("500"), status="completed"),
        Goal("g3", "u1", "Old", Decimal("900"), date(2025, 1, 1), date(2024, 1, 1), is_archived=True),
    )
    result = goals_summary(goals)
    assert result["by_status"]["active"]["count"] == 1
    assert result["by_status"]["completed"]["total_current"] == Decimal("500")
    assert result["totals"]["total_goals"] == 2
    assert result["totals"]["overall_progress"] == Decimal("50")
