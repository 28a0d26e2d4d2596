from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from budgetbook.domain import (
    Attachment,
    AutoContribute,
    Bill,
    Budget,
    BudgetCategory,
    Goal,
    Milestone,
    PaymentRecord,
    Recurrence,
    Transaction,
)
from budgetbook.errors import InvalidOperation, NotFoundError, ValidationError
from budgetbook.transforms import (
    add_contribution,
    add_withdrawal,
    archive_goal,
    copy_budget,
    mark_bill_paid,
    newly_achieved,
    normalize_tags,
    refresh_spent_amounts,
    remove_attachment,
    replace_budget_categories,
    schedule_auto_contribution,
    set_goal_status,
    soft_delete,
    with_recurrence_schedule,
)

NOW = datetime(2024, 1, 20, 10, 0)


def make_tx(id, amount, category, day, type="expense", owner_id="u1", is_deleted=False):
    return Transaction(
        id=id,
        owner_id=owner_id,
        type=type,
        amount=Decimal(amount),
        description=id,
        category=category,
        date=day,
        is_deleted=is_deleted,
    )


def make_budget():
    return replace_budget_categories(
        Budget("b1", "u1", "January", 1, 2024),
        (
            BudgetCategory("food", Decimal("1500")),
            BudgetCategory("housing", Decimal("1000"), spent_amount=Decimal("999")),
        ),
    )


def make_bill(**kw):
    base = dict(
        id="bl1",
        owner_id="u1",
        name="Internet",
        amount=Decimal("100"),
        category="utilities",
        due_date=date(2024, 1, 15),
        next_due_date=date(2024, 1, 15),
    )
    base.update(kw)
    return Bill(**base)


def make_goal(**kw):
    base = dict(
        id="g1",
        owner_id="u1",
        name="Bike",
        target_amount=Decimal("1000"),
        target_date=date(2024, 12, 31),
        start_date=date(2024, 1, 1),
        current_amount=Decimal("900"),
    )
    base.update(kw)
    return Goal(**base)


def test_normalize_tags_strips_and_dedupes():
    assert normalize_tags([" food ", "", "food", "weekly"]) == ("food", "weekly")


def test_with_recurrence_schedule_sets_next_due_date():
    t = make_tx("t1", "50", "food", date(2024, 1, 31))
    t = replace(t, recurring=Recurrence(is_recurring=True, frequency="monthly"))
    scheduled = with_recurrence_schedule(t)
    assert scheduled.recurring.next_due_date == date(2024, 2, 29)
    assert t.recurring.next_due_date is None


def test_soft_delete_returns_new_record():
    t = make_tx("t1", "50", "food", date(2024, 1, 2))
    deleted = soft_delete(t)
    assert deleted.is_deleted
    assert not t.is_deleted


def test_refresh_spent_amounts_from_month_expenses():
    trans = (
        make_tx("t1", "400", "food", date(2024, 1, 3)),
        make_tx("t2", "350", "food", date(2024, 1, 31)),
        make_tx("t3", "99", "food", date(2024, 2, 1)),
        make_tx("t4", "10", "food", date(2024, 1, 4), is_deleted=True),
        make_tx("t5", "20", "food", date(2024, 1, 4), owner_id="u2"),
        make_tx("t6", "3000", "salary", date(2024, 1, 1), type="income"),
        make_tx("t7", "45", "entertainment", date(2024, 1, 9)),
    )
    budget = refresh_spent_amounts(make_budget(), trans)
    spent = {c.category: c.spent_amount for c in budget.categories}
    assert spent == {"food": Decimal("750"), "housing": Decimal("0")}
    assert budget.total_spent == Decimal("750")
    assert budget.total_budget == Decimal("2500")


def test_refresh_spent_amounts_is_idempotent():
    trans = (make_tx("t1", "400", "food", date(2024, 1, 3)),)
    once = refresh_spent_amounts(make_budget(), trans)
    twice = refresh_spent_amounts(once, trans)
    assert once == twice


def test_copy_budget_resets_spending():
    source = refresh_spent_amounts(make_budget(), (make_tx("t1", "400", "food", date(2024, 1, 3)),))
    copied = copy_budget(source, "b2", 2, 2024)
    assert copied.id == "b2"
    assert (copied.month, copied.year) == (2, 2024)
    assert copied.name == "January"
    assert copied.total_spent == Decimal("0")
    assert copied.total_budget == source.total_budget
    assert copied.version == 0


def test_mark_bill_paid_advances_monthly_bill():
    paid = mark_bill_paid(make_bill(), NOW, "p1")
    assert paid.next_due_date == date(2024, 2, 15)
    assert paid.is_active
    assert not paid.is_paid
    assert len(paid.payment_history) == 1
    record = paid.payment_history[0]
    assert record.amount == Decimal("100")
    assert record.paid_date == NOW
    assert record.payment_method == "auto-pay"


def test_mark_bill_paid_appends_to_history():
    earlier = PaymentRecord("p0", Decimal("95"), datetime(2023, 12, 15), "auto-pay")
    paid = mark_bill_paid(make_bill(payment_history=(earlier,)), NOW, "p1", amount="110", payment_method="debit-card")
    assert [p.id for p in paid.payment_history] == ["p0", "p1"]
    assert paid.payment_history[-1].amount == Decimal("110")
    assert paid.payment_history[-1].payment_method == "debit-card"


def test_mark_bill_paid_one_time_finishes_series():
    paid = mark_bill_paid(make_bill(frequency="one-time"), NOW, "p1")
    assert paid.is_paid
    assert not paid.is_active
    assert paid.paid_amount == Decimal("100")
    assert paid.paid_date == NOW


def test_mark_bill_paid_stops_at_end_date():
    paid = mark_bill_paid(make_bill(end_date=date(2024, 2, 1)), NOW, "p1")
    assert not paid.is_active
    assert paid.is_paid


def test_mark_bill_paid_rejects_inactive_bill():
    with pytest.raises(InvalidOperation):
        mark_bill_paid(make_bill(is_active=False), NOW, "p1")


def test_mark_bill_paid_rejects_bad_amount():
    with pytest.raises(ValidationError):
        mark_bill_paid(make_bill(), NOW, "p1", amount=0)


def test_remove_attachment():
    bill = make_bill(attachments=(Attachment("a1", "scan.pdf", "/files/scan.pdf"),))
    assert remove_attachment(bill, "a1").attachments == ()
    with pytest.raises(NotFoundError):
        remove_attachment(bill, "missing")


def test_add_contribution_completes_goal():
    goal = add_contribution(make_goal(), 150, NOW, "c1")
    assert goal.current_amount == Decimal("1050")
    assert goal.status == "completed"
    assert goal.contributions[-1].amount == Decimal("150")
    assert goal.contributions[-1].source == "manual"


def test_add_contribution_marks_each_milestone():
    goal = make_goal(
        current_amount=Decimal("0"),
        milestones=(Milestone("quarter", Decimal("250")), Milestone("half", Decimal("500"))),
    )
    after = add_contribution(goal, 600, NOW, "c1")
    assert all(m.is_achieved for m in after.milestones)
    assert all(m.achieved_date == NOW for m in after.milestones)
    assert [m.name for m in newly_achieved(goal, after)] == ["quarter", "half"]


def test_add_contribution_rejects_invalid_input():
    with pytest.raises(ValidationError):
        add_contribution(make_goal(), -5, NOW, "c1")
    with pytest.raises(ValidationError):
        add_contribution(make_goal(), 5, NOW, "c1", source="lottery")
    with pytest.raises(InvalidOperation):
        add_contribution(make_goal(is_archived=True), 5, NOW, "c1")


def test_add_withdrawal_reopens_completed_goal():
    goal = add_contribution(make_goal(), 150, NOW, "c1")
    after = add_withdrawal(goal, 100, "car repair", NOW, "w1")
    assert after.current_amount == Decimal("950")
    assert after.status == "active"
    assert after.withdrawals[-1].reason == "car repair"


def test_contribution_then_withdrawal_restores_amount():
    goal = make_goal(status="paused")
    after = add_withdrawal(add_contribution(goal, 40, NOW, "c1"), 40, "changed my mind", NOW, "w1")
    assert after.current_amount == goal.current_amount
    assert after.status == "paused"


def test_contribution_then_withdrawal_restores_milestones():
    reached = datetime(2023, 11, 2, 9, 0)
    goal = make_goal(
        milestones=(
            Milestone("half", Decimal("500"), is_achieved=True, achieved_date=reached),
            Milestone("almost", Decimal("950")),
        )
    )
    funded = add_contribution(goal, 100, NOW, "c1")
    assert [m.is_achieved for m in funded.milestones] == [True, True]
    assert funded.status == "completed"

    after = add_withdrawal(funded, 100, "car repair", NOW, "w1")
    assert after.milestones == goal.milestones
    assert after.milestones[0].achieved_date == reached
    assert after.milestones[1].achieved_date is None
    assert after.status == goal.status
    assert after.current_amount == goal.current_amount


def test_add_withdrawal_cannot_overdraw():
    goal = make_goal()
    with pytest.raises(InvalidOperation) as exc:
        add_withdrawal(goal, 901, "too much", NOW, "w1")
    assert exc.value.details["error"] == "insufficient_funds"
    assert goal.current_amount == Decimal("900")


def test_add_withdrawal_requires_reason():
    with pytest.raises(ValidationError):
        add_withdrawal(make_goal(), 10, "  ", NOW, "w1")


def test_withdrawal_unmarks_milestones_above_balance():
    goal = make_goal(milestones=(Milestone("half", Decimal("500"), is_achieved=True, achieved_date=NOW),))
    after = add_withdrawal(goal, 500, "rent", NOW, "w1")
    assert not after.milestones[0].is_achieved
    assert after.milestones[0].achieved_date is None


def test_set_goal_status_rules():
    assert set_goal_status(make_goal(), "paused").status == "paused"
    with pytest.raises(InvalidOperation):
        set_goal_status(make_goal(), "completed")
    funded = make_goal(current_amount=Decimal("1000"), status="paused")
    assert set_goal_status(funded, "active").status == "completed"
    with pytest.raises(ValidationError):
        set_goal_status(make_goal(), "finished")


def test_archive_goal():
    assert archive_goal(make_goal()).is_archived


def test_schedule_auto_contribution():
    goal = make_goal(auto_contribute=AutoContribute(enabled=True, amount=Decimal("50"), frequency="weekly"))
    scheduled = schedule_auto_contribution(goal, NOW)
    assert scheduled.auto_contribute.next_contribution == date(2024, 1, 27)
    assert schedule_auto_contribution(make_goal(), NOW) == make_goal()
