from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

TRANSACTION_TYPES = ("income", "expense")

INCOME_CATEGORIES = (
    "salary", "freelance", "business", "investment", "rental", "bonus", "gift", "other-income",
)

EXPENSE_CATEGORIES = (
    "food", "transportation", "housing", "utilities", "healthcare", "entertainment",
    "shopping", "education", "insurance", "debt", "savings", "investment-expense",
    "travel", "personal-care", "subscriptions", "taxes", "other-expense",
)

CATEGORIES_BY_TYPE = {"income": INCOME_CATEGORIES, "expense": EXPENSE_CATEGORIES}

BILL_CATEGORIES = (
    "housing", "utilities", "insurance", "healthcare", "subscriptions",
    "transportation", "education", "debt", "taxes", "other-expense",
)

PAYMENT_METHODS = (
    "cash", "credit-card", "debit-card", "bank-transfer", "check", "digital-wallet", "other",
)
BILL_PAYMENT_METHODS = PAYMENT_METHODS + ("auto-pay",)

FREQUENCIES = (
    "daily", "weekly", "bi-weekly", "monthly", "quarterly", "semi-annually", "annually", "one-time",
)
AUTO_CONTRIBUTE_FREQUENCIES = ("weekly", "bi-weekly", "monthly", "quarterly")

GOAL_TYPES = (
    "savings", "debt-payoff", "investment", "emergency-fund", "purchase",
    "vacation", "retirement", "education", "other",
)
GOAL_CATEGORIES = (
    "emergency", "vacation", "home", "car", "education", "retirement", "investment",
    "debt-reduction", "healthcare", "wedding", "baby", "business", "charity", "technology", "other",
)
GOAL_PRIORITIES = ("low", "medium", "high", "critical")
GOAL_STATUSES = ("active", "completed", "paused", "cancelled")
CONTRIBUTION_SOURCES = ("manual", "auto", "bonus", "transfer", "other")

BUDGET_STATUSES = ("under-budget", "on-track", "warning", "over-budget")
BILL_STATUSES = ("inactive", "paid", "overdue", "due-soon", "pending")

MIN_BUDGET_YEAR = 2020


@dataclass(frozen=True)
class Recurrence:
    is_recurring: bool = False
    frequency: Optional[str] = None
    end_date: Optional[date] = None
    next_due_date: Optional[date] = None


@dataclass(frozen=True)
class Transaction:
    id: str
    owner_id: str
    type: str                # "income" | "expense"
    amount: Decimal          # always positive, the type carries the sign
    description: str
    category: str
    date: date
    payment_method: str = "cash"
    tags: tuple[str, ...] = ()
    notes: str = ""
    recurring: Optional[Recurrence] = None
    is_deleted: bool = False
    version: int = 0


@dataclass(frozen=True)
class BudgetCategory:
    category: str
    budget_amount: Decimal
    spent_amount: Decimal = Decimal("0")
    rollover: bool = False


@dataclass(frozen=True)
class Budget:
    id: str
    owner_id: str
    name: str
    month: int
    year: int
    categories: tuple[BudgetCategory, ...] = ()
    total_budget: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    is_active: bool = True
    notes: str = ""
    version: int = 0


@dataclass(frozen=True)
class ReminderSettings:
    enabled: bool = True
    days_before: int = 3
    last_reminder_sent: Optional[datetime] = None


@dataclass(frozen=True)
class Attachment:
    id: str
    filename: str
    url: str
    original_name: str = ""
    mimetype: str = ""
    size: int = 0
    upload_date: Optional[datetime] = None


@dataclass(frozen=True)
class PaymentRecord:
    id: str
    amount: Decimal
    paid_date: datetime
    payment_method: str
    transaction_id: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class Bill:
    id: str
    owner_id: str
    name: str
    amount: Decimal
    category: str
    due_date: date
    frequency: str = "monthly"
    next_due_date: Optional[date] = None
    end_date: Optional[date] = None
    payment_method: str = "auto-pay"
    is_active: bool = True
    is_paid: bool = False
    paid_date: Optional[datetime] = None
    paid_amount: Optional[Decimal] = None
    description: str = ""
    notes: str = ""
    reminders: ReminderSettings = field(default_factory=ReminderSettings)
    attachments: tuple[Attachment, ...] = ()
    tags: tuple[str, ...] = ()
    payment_history: tuple[PaymentRecord, ...] = ()
    version: int = 0


@dataclass(frozen=True)
class AutoContribute:
    enabled: bool = False
    amount: Optional[Decimal] = None
    frequency: str = "monthly"
    next_contribution: Optional[date] = None


@dataclass(frozen=True)
class Milestone:
    name: str
    target_amount: Decimal
    is_achieved: bool = False
    achieved_date: Optional[datetime] = None
    reward: str = ""


@dataclass(frozen=True)
class Contribution:
    id: str
    amount: Decimal
    date: datetime
    source: str = "manual"
    transaction_id: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class Withdrawal:
    id: str
    amount: Decimal
    date: datetime
    reason: str
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class Goal:
    id: str
    owner_id: str
    name: str
    target_amount: Decimal
    target_date: date
    start_date: date
    type: str = "savings"
    current_amount: Decimal = Decimal("0")
    priority: str = "medium"
    status: str = "active"
    category: str = "other"
    description: str = ""
    auto_contribute: AutoContribute = field(default_factory=AutoContribute)
    milestones: tuple[Milestone, ...] = ()
    contributions: tuple[Contribution, ...] = ()
    withdrawals: tuple[Withdrawal, ...] = ()
    tags: tuple[str, ...] = ()
    notes: str = ""
    is_archived: bool = False
    version: int = 0
