import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import streamlit as st

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from datetime import date, timedelta

from budgetbook import derived
from budgetbook.config import Config, configure_logging
from budgetbook.domain import (
    BILL_CATEGORIES,
    BILL_PAYMENT_METHODS,
    CATEGORIES_BY_TYPE,
    CONTRIBUTION_SOURCES,
    FREQUENCIES,
    PAYMENT_METHODS,
    TRANSACTION_TYPES,
)
from budgetbook.errors import BudgetbookError
from budgetbook.events import default_bus
from budgetbook.frames import (
    bills_frame,
    budget_frame,
    category_frame,
    goals_frame,
    monthly_frame,
    transactions_frame,
)
from budgetbook.periods import MONTH_NAMES
from budgetbook.recurrence import occurrences, within_end_date
from budgetbook.services import build_services
from budgetbook.storage import InMemoryStorage, seed_storage

st.set_page_config(page_title="Budgetbook", layout="wide")

CURRENCY = Config.CURRENCY
OWNER = Config.OWNER_ID


def money(value) -> str:
    return f"{float(value):,.2f} {CURRENCY}"


if "services" not in st.session_state:
    configure_logging()
    storage = InMemoryStorage()
    if os.path.exists(Config.SEED_PATH):
        seed_storage(storage, Config.SEED_PATH)
    bus = default_bus()
    st.session_state.alerts = []
    st.session_state.services = build_services(storage, bus=bus)
    for seeded in st.session_state.services.budgets.list(OWNER):
        st.session_state.services.budgets.refresh(OWNER, seeded.id)

    def remember_alert(event, payload):
        subject = payload.get("milestone") or payload.get("name", "")
        st.session_state.alerts.append(f"{event.name.replace('_', ' ').title()}: {subject}")
        return {}

    for name in ("BUDGET_ALERT", "GOAL_COMPLETED", "MILESTONE_ACHIEVED", "BILL_PAID"):
        bus.subscribe(name, remember_alert)

svc = st.session_state.services
now = svc.bills.clock.now()


def run(action, success: str):
    """Run a service call, reporting domain failures in the page instead of crashing."""
    try:
        result = action()
    except BudgetbookError as exc:
        st.error(exc.message)
        return None
    st.success(success)
    return result


st.sidebar.markdown("### Budgetbook")
st.sidebar.caption(f"Signed in as **{OWNER}**")
if st.session_state.alerts:
    with st.sidebar.expander(f"Alerts ({len(st.session_state.alerts)})"):
        for alert in reversed(st.session_state.alerts[-10:]):
            st.write(alert)

menu = st.sidebar.radio(
    "Menu",
    ["🏠 Overview", "🧾 Transactions", "💰 Budgets", "📅 Bills", "🎯 Goals"]
)

if menu == "🏠 Overview":
    overview = svc.reports.overview(OWNER)
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Income (YTD)", money(overview["total_income"]))
    with k2:
        st.metric("Expenses (YTD)", money(overview["total_expense"]))
    with k3:
        st.metric("Net", money(overview["net_amount"]))
    with k4:
        st.metric("Transactions", overview["transaction_count"])

    monthly = monthly_frame(svc.reports.monthly(OWNER, now.year))
    labels = [MONTH_NAMES[m - 1][:3] for m in monthly.index]
    fig_ts = go.Figure()
    fig_ts.add_trace(go.Bar(x=labels, y=monthly["income"], name="Income"))
    fig_ts.add_trace(go.Bar(x=labels, y=monthly["expense"], name="Expense"))
    fig_ts.add_trace(go.Scatter(x=labels, y=monthly["net"], mode="lines+markers", name="Net"))
    fig_ts.update_layout(template="plotly_dark", barmode="group", margin=dict(t=30, b=10, l=10, r=10))
    st.plotly_chart(fig_ts, use_container_width=True)

    cats = category_frame(overview["category_breakdown"])
    expenses = cats[cats["type"] == "expense"]
    if not expenses.empty:
        fig_cat = px.pie(expenses, values="total", names="category", title="Spending by category")
        fig_cat.update_layout(template="plotly_dark", height=350)
        st.plotly_chart(fig_cat, use_container_width=True)

    col_bills, col_goals = st.columns(2)
    with col_bills:
        st.subheader("📅 Bills")
        summary = svc.bills.summary(OWNER)
        st.metric("Active bills", summary["total_bills"], f"{summary['overdue_bills']} overdue", delta_color="inverse")
        upcoming = bills_frame(svc.bills.upcoming(OWNER, days=14), now)
        if not upcoming.empty:
            st.table(upcoming[["name", "amount", "next_due_date", "status"]])
    with col_goals:
        st.subheader("🎯 Goals")
        totals = svc.goals.summary(OWNER)["totals"]
        st.metric("Saved toward goals", money(totals["total_current_amount"]),
                  f"{float(totals['overall_progress']):.0f}% of {money(totals['total_target_amount'])}")

elif menu == "🧾 Transactions":
    st.title("🧾 Transactions")

    tx_type = st.radio("Type", TRANSACTION_TYPES, index=1, horizontal=True)
    with st.form("input_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            tx_date = st.date_input("Date", value=now.date(), max_value=now.date())
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
        with col2:
            category = st.selectbox("Category", CATEGORIES_BY_TYPE[tx_type])
            method = st.selectbox("Payment method", PAYMENT_METHODS)
            tags = st.text_input("Tags (comma separated)")
        description = st.text_input("Description")
        submitted = st.form_submit_button("Add Transaction")

        if submitted:
            run(
                lambda: svc.transactions.create(
                    OWNER, tx_type, amount, description, category, date=tx_date,
                    payment_method=method, tags=[t for t in tags.split(",") if t.strip()],
                ),
                "Transaction added",
            )

    df = transactions_frame(svc.transactions.list(OWNER))
    if df.empty:
        st.info("No transactions yet.")
    else:
        col1, col2 = st.columns(2)
        with col1:
            types = st.multiselect("Type", TRANSACTION_TYPES, default=list(TRANSACTION_TYPES))
        with col2:
            chosen = st.multiselect("Category", sorted(df["category"].unique()), default=[])
        shown = df[df["type"].isin(types)]
        if chosen:
            shown = shown[shown["category"].isin(chosen)]
        display = shown.assign(
            date=shown["date"].dt.strftime("%Y-%m-%d"),
            amount=shown["signed_amount"].map(money),
        )[["date", "type", "category", "amount", "description", "payment_method", "tags"]]
        st.dataframe(display, use_container_width=True, hide_index=True)
        st.download_button("⬇ Download CSV", shown.to_csv(index=False), file_name="transactions.csv", mime="text/csv")

        with st.expander("Delete a transaction"):
            options = {f"{r.date:%Y-%m-%d} {r.description} ({money(r.amount)})": r.id for r in shown.itertuples()}
            picked = st.selectbox("Transaction", list(options))
            if st.button("Delete", key="btn_delete_tx") and picked:
                run(lambda: svc.transactions.soft_delete(OWNER, options[picked]), "Transaction deleted")

elif menu == "💰 Budgets":
    st.title("💰 Budgets")
    budgets = svc.budgets.list(OWNER)
    if not budgets:
        st.info("No budgets defined")
    for budget in budgets:
        status = derived.budget_current_status(budget)
        with st.expander(f"{derived.budget_period(budget)} · {budget.name} · {status}", expanded=budget is budgets[0]):
            st.metric(
                "Spent",
                f"{money(budget.total_spent)} / {money(budget.total_budget)}",
                f"{money(derived.remaining_budget(budget))} remaining",
            )
            frame = budget_frame(budget)
            for row in frame.itertuples():
                st.caption(f"{row.category}: {money(row.spent)} of {money(row.budget)}")
                st.progress(row.progress / 100)
            if st.button("🔄 Refresh spending", key=f"refresh_{budget.id}"):
                run(lambda b=budget: svc.budgets.refresh(OWNER, b.id), "Budget refreshed")
                st.rerun()

    st.subheader("Copy a budget")
    if budgets:
        with st.form("copy_budget"):
            source = st.selectbox("Source", budgets, format_func=lambda b: f"{derived.budget_period(b)} · {b.name}")
            month = st.selectbox("Month", range(1, 13), format_func=lambda m: MONTH_NAMES[m - 1])
            year = st.number_input("Year", min_value=2020, value=now.year, step=1)
            if st.form_submit_button("Copy"):
                run(lambda: svc.budgets.copy(OWNER, source.id, month, int(year)), "Budget copied")

elif menu == "📅 Bills":
    st.title("📅 Bills")
    bills = svc.bills.list(OWNER)
    frame = bills_frame(bills, now)
    if frame.empty:
        st.info("No bills yet.")
    else:
        st.dataframe(frame.drop(columns=["id"]), use_container_width=True, hide_index=True)

        with st.expander("Schedule for the next 90 days"):
            horizon = now.date() + timedelta(days=90)
            schedule = pd.DataFrame(
                [
                    {"due": due, "bill": b.name, "amount": float(b.amount)}
                    for b in bills
                    if b.is_active
                    for due in occurrences(b.next_due_date, b.frequency, horizon)
                    if within_end_date(due, b.end_date)
                ],
                columns=["due", "bill", "amount"],
            ).sort_values("due")
            st.dataframe(schedule, use_container_width=True, hide_index=True)
            st.metric("Due in the next 90 days", money(schedule["amount"].sum()))

    payable = [b for b in bills if b.is_active]
    if payable:
        with st.form("pay_bill"):
            bill = st.selectbox("Bill", payable, format_func=lambda b: f"{b.name} (due {b.next_due_date})")
            paid = st.number_input("Amount (0 = bill amount)", min_value=0.0, step=1.0, format="%.2f")
            method = st.selectbox("Payment method", BILL_PAYMENT_METHODS, index=BILL_PAYMENT_METHODS.index("auto-pay"))
            if st.form_submit_button("Mark as paid"):
                run(lambda: svc.bills.mark_as_paid(OWNER, bill.id, amount=paid or None, payment_method=method),
                    "Payment recorded")

    with st.form("new_bill", clear_on_submit=True):
        st.subheader("➕ New bill")
        name = st.text_input("Name")
        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
            category = st.selectbox("Category", BILL_CATEGORIES)
        with col2:
            due = st.date_input("Due date", value=now.date())
            frequency = st.selectbox("Frequency", [f for f in FREQUENCIES if f != "daily"], index=2)
        if st.form_submit_button("Add bill"):
            run(lambda: svc.bills.create(OWNER, name, amount, category, due, frequency=frequency), "Bill added")

elif menu == "🎯 Goals":
    st.title("🎯 Goals")
    goals = svc.goals.list(OWNER)
    frame = goals_frame(goals, now)
    if frame.empty:
        st.info("No goals yet.")
    else:
        fig = px.bar(frame, x="name", y=["current", "target"], barmode="overlay", template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)

    for goal in goals:
        progress = svc.goals.progress(OWNER, goal.id)
        with st.expander(f"{goal.name} · {goal.status} · {float(progress['progress_percentage']):.0f}%"):
            st.progress(float(progress["progress_percentage"]) / 100)
            c1, c2, c3 = st.columns(3)
            c1.metric("Saved", money(goal.current_amount), f"of {money(goal.target_amount)}")
            c2.metric("Needed per month", money(progress["required_monthly_contribution"]))
            projected = progress["projected_completion_date"]
            c3.metric("Projected completion", projected.isoformat() if projected else "n/a")
            for m in goal.milestones:
                st.caption(f"{'✅' if m.is_achieved else '⬜'} {m.name} ({money(m.target_amount)})")

            amount = st.number_input("Amount", min_value=0.0, step=10.0, key=f"amt_{goal.id}")
            source = st.selectbox("Source", CONTRIBUTION_SOURCES, key=f"src_{goal.id}")
            reason = st.text_input("Withdrawal reason", key=f"reason_{goal.id}")
            col_in, col_out = st.columns(2)
            if col_in.button("Contribute", key=f"in_{goal.id}"):
                run(lambda g=goal: svc.goals.add_contribution(OWNER, g.id, amount, source=source), "Contribution added")
            if col_out.button("Withdraw", key=f"out_{goal.id}"):
                run(lambda g=goal: svc.goals.add_withdrawal(OWNER, g.id, amount, reason), "Withdrawal recorded")

    with st.form("new_goal", clear_on_submit=True):
        st.subheader("➕ New goal")
        name = st.text_input("Name")
        target = st.number_input("Target amount", min_value=0.0, step=100.0)
        target_date = st.date_input("Target date", value=date(now.year + 1, now.month, 1))
        if st.form_submit_button("Create goal"):
            run(lambda: svc.goals.create(OWNER, name, target, target_date), "Goal created")
