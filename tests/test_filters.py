from datetime import date
from decimal import Decimal
from itertools import islice

from budgetbook.domain import Transaction
from budgetbook.filters import by_date_range, iter_transactions, transaction_filter


def make_sample():
    return (
        Transaction("t1", "u1", "expense", Decimal("300"), "Groceries", "food", date(2025, 1, 1)),
        Transaction("t2", "u1", "expense", Decimal("200"), "Bus", "transportation", date(2025, 1, 2)),
        Transaction("t3", "u1", "income", Decimal("5000"), "Salary", "salary", date(2025, 1, 3)),
        Transaction("t4", "u2", "expense", Decimal("700"), "Restaurant", "food", date(2025, 1, 4)),
        Transaction("t5", "u1", "expense", Decimal("100"), "Taxi", "transportation", date(2025, 1, 5),
                    is_deleted=True),
    )


def test_iter_transactions_is_lazy_stop_early():
    trans = make_sample()
    calls = {"n": 0}

    def pred(t: Transaction) -> bool:
        calls["n"] += 1
        return t.type == "expense"

    first_two = list(islice(iter_transactions(trans, pred), 2))
    assert [t.id for t in first_two] == ["t1", "t2"]
    assert calls["n"] < len(trans)


def test_transaction_filter_combines_conditions():
    pred = transaction_filter(owner_id="u1", tx_type="expense")
    assert [t.id for t in iter_transactions(make_sample(), pred)] == ["t1", "t2"]
    pred = transaction_filter(category="food")
    assert [t.id for t in iter_transactions(make_sample(), pred)] == ["t1", "t4"]


def test_include_deleted():
    pred = transaction_filter(owner_id="u1", category="transportation", include_deleted=True)
    assert [t.id for t in iter_transactions(make_sample(), pred)] == ["t2", "t5"]


def test_date_range_is_inclusive_and_open_ended():
    trans = make_sample()
    assert [t.id for t in filter(by_date_range(date(2025, 1, 2), date(2025, 1, 3)), trans)] == ["t2", "t3"]
    assert [t.id for t in filter(by_date_range(date(2025, 1, 4), None), trans)] == ["t4", "t5"]
    assert [t.id for t in filter(by_date_range(None, date(2025, 1, 1)), trans)] == ["t1"]
