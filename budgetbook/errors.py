from typing import Any, Optional


class BudgetbookError(Exception):
    """Base class for failures raised by the domain core."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BudgetbookError):
    """Malformed or out-of-range input. Never mutates state."""


class NotFoundError(BudgetbookError):
    """The entity does not exist or belongs to another owner."""


class InvalidOperation(BudgetbookError):
    """The mutation is illegal for the entity's current state."""


class ConflictError(BudgetbookError):
    """The stored entity changed since it was loaded."""
