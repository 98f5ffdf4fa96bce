import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import SQLModel, Field, Session

from ..database import get_session
from ..models.category import Category, DEFAULT_CATEGORY
from ..models.user import User
from ..core.security import get_current_user
from ..services import aggregator
from ..services.repository import (
    ExpenseAccessDeniedError,
    ExpenseNotFoundError,
    ExpenseRepository,
    InvalidExpenseError,
    RepositoryError,
)

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
)

# ─────────────────────────────
#   SCHEMAS (Pydantic/SQLModel)
# ─────────────────────────────

class ExpenseBase(SQLModel):
    expense_date: Optional[date] = Field(default=None)
    category: Category = Field(default=DEFAULT_CATEGORY)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: str = Field(min_length=1, max_length=100)


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(SQLModel):
    expense_date: Optional[date] = Field(default=None)
    category: Optional[Category] = Field(default=None)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, min_length=1, max_length=100)


class ExpenseRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    expense_date: date
    category: str
    amount: Decimal
    description: str
    created_at: datetime
    updated_at: datetime


def raise_for_repository_error(exc: RepositoryError) -> NoReturn:
    """Translate a storage error into the matching HTTP error."""
    if isinstance(exc, ExpenseNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    if isinstance(exc, ExpenseAccessDeniedError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access this expense",
        )
    if isinstance(exc, InvalidExpenseError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)


def get_repository(session: Session = Depends(get_session)) -> ExpenseRepository:
    return ExpenseRepository(session)


# ─────────────────────────────
#   ENDPOINTS
# ─────────────────────────────

@router.post(
    "",
    response_model=ExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense_in: ExpenseCreate,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """
    Record a new expense for the authenticated user.

    - user_id comes from the token via get_current_user.
    - expense_date defaults to today.
    """
    try:
        return repository.insert(current_user.id, expense_in.model_dump(exclude_none=True))
    except RepositoryError as exc:
        raise_for_repository_error(exc)


@router.get(
    "",
    response_model=List[ExpenseRead],
)
def list_expenses(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    q: Optional[str] = None,
    category: Optional[str] = None,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """
    List the authenticated user's expenses, newest first.

    - start_date / end_date narrow to an inclusive date range; either may be omitted.
    - q searches descriptions, category keeps one category ("All" keeps every one).
    """
    if start_date is None and end_date is None:
        expenses = repository.fetch_all(current_user.id)
    else:
        if start_date is not None and end_date is not None and start_date > end_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start_date must not be after end_date",
            )
        expenses = repository.fetch_by_date_range(
            current_user.id,
            start_date or date.min,
            end_date or date.max,
        )
    return aggregator.filter_expenses(expenses, query=q, category=category)


@router.get(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def get_expense(
    expense_id: uuid.UUID,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    try:
        return repository.get(current_user.id, expense_id)
    except RepositoryError as exc:
        raise_for_repository_error(exc)


@router.patch(
    "/{expense_id}",
    response_model=ExpenseRead,
)
def update_expense(
    expense_id: uuid.UUID,
    expense_in: ExpenseUpdate,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """Partially update one of the authenticated user's expenses."""
    fields = expense_in.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )

    try:
        repository.update(current_user.id, expense_id, fields)
        return repository.get(current_user.id, expense_id)
    except RepositoryError as exc:
        raise_for_repository_error(exc)


@router.delete(
    "/{expense_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_expense(
    expense_id: uuid.UUID,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """Permanently delete one of the authenticated user's expenses."""
    try:
        repository.delete(current_user.id, expense_id)
    except RepositoryError as exc:
        raise_for_repository_error(exc)
    return None
