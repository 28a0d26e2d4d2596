"""DataFrame shaping for the dashboard, kept free of Streamlit so it can be tested."""
from datetime import date, datetime
from typing import Iterable, Union

import numpy as np
import pandas as pd

from budgetbook import derived
from budgetbook.domain import Bill, Budget, Goal, Transaction

TRANSACTION_COLUMNS = [
    "id", "date", "type", "category", "amount", "signed_amount", "description", "payment_method", "tags",
]


def transactions_frame(trans: Iterable[Transaction]) -> pd.DataFrame:
    rows = [
        {
            "id": t.id,
            "date": t.date,
            "type": t.type,
            "category": t.category,
            "amount": float(t.amount),
            "description": t.description,
            "payment_method": t.payment_method,
            "tags": ", ".join(t.tags),
        }
        for t in trans
        if not t.is_deleted
    ]
    df = pd.DataFrame(rows, columns=[c for c in TRANSACTION_COLUMNS if c != "signed_amount"])
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df["amount"] = df["amount"].astype(float)
    df["signed_amount"] = np.where(df["type"] == "expense", -df["amount"], df["amount"])
    return df[TRANSACTION_COLUMNS].sort_values("date", ascending=False).reset_index(drop=True)


def monthly_frame(summary: dict) -> pd.DataFrame:
    """One row per calendar month with income, expense and net columns."""
    months = pd.Index(range(1, 13), name="month")
    df = pd.DataFrame(0.0, index=months, columns=["income", "expense"])
    for (month, tx_type), bucket in summary.items():
        df.loc[month, tx_type] = float(bucket["total"])
    df["net"] = df["income"] - df["expense"]
    return df


def category_frame(summary: dict) -> pd.DataFrame:
    rows = [
        {
            "category": category,
            "type": tx_type,
            "total": float(bucket["total"]),
            "count": bucket["count"],
            "avg": float(bucket["avg"]),
        }
        for (category, tx_type), bucket in summary.items()
    ]
    return pd.DataFrame(rows, columns=["category", "type", "total", "count", "avg"])


def budget_frame(budget: Budget) -> pd.DataFrame:
    df = pd.DataFrame(
        [
            {
                "category": c.category,
                "budget": float(c.budget_amount),
                "spent": float(c.spent_amount),
            }
            for c in budget.categories
        ],
        columns=["category", "budget", "spent"],
    )
    df["remaining"] = (df["budget"] - df["spent"]).clip(lower=0)
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(df["budget"] > 0, df["spent"] / df["budget"] * 100, 0.0)
    df["progress"] = np.clip(ratio, 0, 100)
    return df


def bills_frame(bills: Iterable[Bill], now: Union[date, datetime]) -> pd.DataFrame:
    rows = [
        {
            "id": b.id,
            "name": b.name,
            "category": b.category,
            "amount": float(b.amount),
            "next_due_date": b.next_due_date,
            "frequency": b.frequency,
            "status": derived.bill_current_status(b, now),
            "days_until_due": derived.days_until_due(b, now),
        }
        for b in bills
    ]
    columns = ["id", "name", "category", "amount", "next_due_date", "frequency", "status", "days_until_due"]
    return pd.DataFrame(rows, columns=columns)


def goals_frame(goals: Iterable[Goal], now: Union[date, datetime]) -> pd.DataFrame:
    rows = [
        {
            "id": g.id,
            "name": g.name,
            "priority": g.priority,
            "status": g.status,
            "target": float(g.target_amount),
            "current": float(g.current_amount),
            "progress": float(derived.progress_percentage(g)),
            "target_date": g.target_date,
            "is_overdue": derived.is_goal_overdue(g, now),
        }
        for g in goals
    ]
    columns = ["id", "name", "priority", "status", "target", "current", "progress", "target_date", "is_overdue"]
    return pd.DataFrame(rows, columns=columns)
