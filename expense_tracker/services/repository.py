"""
Owner-scoped storage for expenses.

Every method takes the owner's id explicitly. A record that exists but belongs
to somebody else raises ExpenseAccessDeniedError; it is never hidden behind an
empty result or a silent no-op.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from sqlmodel import Session, select

from ..models.category import Category
from ..models.expense import Expense
from ..models.timestamps import utc_now


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"expense_date", "category", "amount", "description"}
MAX_DESCRIPTION_LENGTH = 100


class RepositoryError(Exception):
    """Base exception for expense storage errors"""

    def __init__(self, message: str, expense_id: Optional[uuid.UUID] = None):
        self.message = message
        self.expense_id = expense_id
        super().__init__(self.message)


class ExpenseNotFoundError(RepositoryError):
    """No expense exists with the requested id"""
    pass


class ExpenseAccessDeniedError(RepositoryError):
    """The expense exists but belongs to another user"""
    pass


class InvalidExpenseError(RepositoryError):
    """A field value was rejected before reaching the database"""
    pass


def _clean_category(value: Any) -> str:
    try:
        return Category(value).value
    except ValueError:
        raise InvalidExpenseError(f"Unknown category: {value!r}")


def _clean_amount(value: Any) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidExpenseError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise InvalidExpenseError(f"Amount must be a finite, non-negative number: {value!r}")
    return amount


def _clean_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidExpenseError(f"Invalid date: {value!r}")


def _clean_description(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidExpenseError("Description is required")
    if len(value) > MAX_DESCRIPTION_LENGTH:
        raise InvalidExpenseError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")
    return value


def _clean_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidExpenseError(f"Unknown fields: {', '.join(sorted(unknown))}")

    cleaned: Dict[str, Any] = {}
    for name, value in fields.items():
        if name == "category":
            cleaned[name] = _clean_category(value)
        elif name == "amount":
            cleaned[name] = _clean_amount(value)
        elif name == "expense_date":
            cleaned[name] = _clean_date(value)
        else:
            cleaned[name] = _clean_description(value)
    return cleaned


class ExpenseRepository:
    """Reads and writes one user's expenses through a SQLModel session."""

    def __init__(self, session: Session):
        self.session = session

    def _owned_query(self, owner_id: uuid.UUID):
        return (
            select(Expense)
            .where(Expense.user_id == owner_id)
            .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
        )

    def fetch_all(self, owner_id: uuid.UUID) -> List[Expense]:
        """All of the owner's expenses, newest date first."""
        return list(self.session.exec(self._owned_query(owner_id)).all())

    def fetch_by_date_range(self, owner_id: uuid.UUID, start_date: date, end_date: date) -> List[Expense]:
        """Expenses dated between start_date and end_date, both inclusive."""
        statement = self._owned_query(owner_id).where(
            Expense.expense_date >= start_date,
            Expense.expense_date <= end_date,
        )
        return list(self.session.exec(statement).all())

    def fetch_recent(self, owner_id: uuid.UUID, until: date, limit: int) -> List[Expense]:
        """The newest `limit` expenses dated on or before `until`."""
        statement = self._owned_query(owner_id).where(Expense.expense_date <= until).limit(limit)
        return list(self.session.exec(statement).all())

    def get(self, owner_id: uuid.UUID, expense_id: uuid.UUID) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if expense is None:
            raise ExpenseNotFoundError("Expense not found", expense_id)
        if expense.user_id != owner_id:
            logger.warning("User %s tried to access expense %s owned by another user", owner_id, expense_id)
            raise ExpenseAccessDeniedError("Expense belongs to another user", expense_id)
        return expense

    def insert(self, owner_id: uuid.UUID, fields: Mapping[str, Any]) -> Expense:
        cleaned = _clean_fields(fields)
        missing = {"category", "amount", "description"} - set(cleaned)
        if missing:
            raise InvalidExpenseError(f"Missing fields: {', '.join(sorted(missing))}")

        now = utc_now()
        expense = Expense(
            id=uuid.uuid4(),
            user_id=owner_id,
            expense_date=cleaned.get("expense_date") or date.today(),
            category=cleaned["category"],
            amount=cleaned["amount"],
            description=cleaned["description"],
            created_at=now,
            updated_at=now,
        )

        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        logger.info("Created expense %s for user %s", expense.id, owner_id)
        return expense

    def update(self, owner_id: uuid.UUID, expense_id: uuid.UUID, fields: Mapping[str, Any]) -> None:
        """Replace only the given fields."""
        expense = self.get(owner_id, expense_id)
        cleaned = _clean_fields(fields)
        if not cleaned:
            return

        for name, value in cleaned.items():
            setattr(expense, name, value)
        expense.updated_at = utc_now()

        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        logger.info("Updated expense %s (%s)", expense_id, ", ".join(sorted(cleaned)))

    def delete(self, owner_id: uuid.UUID, expense_id: uuid.UUID) -> None:
        expense = self.get(owner_id, expense_id)
        self.session.delete(expense)
        self.session.commit()
        logger.info("Deleted expense %s for user %s", expense_id, owner_id)
