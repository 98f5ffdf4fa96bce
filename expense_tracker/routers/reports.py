from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlmodel import SQLModel

from ..core.security import get_current_user
from ..models.user import User
from ..services import aggregator
from ..services.repository import ExpenseRepository
from .expenses import ExpenseRead, get_repository


router = APIRouter(
    prefix="/reports",
    tags=["reports"],
)

RECENT_EXPENSES_LIMIT = 5


class MonthTotal(SQLModel):
    label: str
    total: Decimal


class MonthBreakdownRead(SQLModel):
    month: int
    label: str
    total: Decimal
    percent_of_annual: Decimal
    transactions: int


class DashboardRead(SQLModel):
    year: int
    month: int
    monthly_total: Decimal
    previous_month_total: Decimal
    monthly_change: Decimal
    daily_average: Decimal
    last_expense_amount: Decimal
    top_category: str
    category_totals: Dict[str, Decimal]
    recent_expenses: List[ExpenseRead]


class MonthlyReportRead(SQLModel):
    year: int
    month: int
    total: Decimal
    top_category: str
    category_totals: Dict[str, Decimal]
    expenses: List[ExpenseRead]


class YearlyReportRead(SQLModel):
    year: int
    total: Decimal
    monthly_average: Decimal
    top_category: str
    category_totals: Dict[str, Decimal]
    monthly_totals: List[MonthTotal]
    months: List[MonthBreakdownRead]


def _check_month(month: int):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid month")


@router.get(
    "/dashboard",
    response_model=DashboardRead,
    status_code=status.HTTP_200_OK,
)
def dashboard(
    today: Optional[date] = None,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """
    Overview of the month containing ``today`` (defaults to the server date).

    Every figure, including the recent expenses, ignores anything dated
    after ``today``.
    """
    today = today or date.today()

    start, end = aggregator.month_bounds(today.year, today.month)
    this_month = repository.fetch_by_date_range(current_user.id, start, end)

    prev_year, prev_month = aggregator.previous_month(today.year, today.month)
    prev_start, prev_end = aggregator.month_bounds(prev_year, prev_month)
    last_month = repository.fetch_by_date_range(current_user.id, prev_start, prev_end)

    recent = repository.fetch_recent(current_user.id, today, RECENT_EXPENSES_LIMIT)

    monthly_total = aggregator.total(this_month)
    previous_total = aggregator.total(last_month)
    categories = aggregator.category_totals(this_month)

    return DashboardRead(
        year=today.year,
        month=today.month,
        monthly_total=monthly_total,
        previous_month_total=previous_total,
        monthly_change=aggregator.month_over_month_change(monthly_total, previous_total),
        daily_average=aggregator.daily_average(monthly_total, today),
        last_expense_amount=recent[0].amount if recent else aggregator.ZERO,
        top_category=aggregator.top_category(categories),
        category_totals=categories,
        recent_expenses=[ExpenseRead.model_validate(e) for e in recent],
    )


@router.get(
    "/monthly",
    response_model=MonthlyReportRead,
    status_code=status.HTTP_200_OK,
)
def monthly_report(
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(...),
    q: Optional[str] = None,
    category: Optional[str] = None,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """Totals for one month; q and category only narrow the listed expenses."""
    _check_month(month)
    start, end = aggregator.month_bounds(year, month)
    expenses = repository.fetch_by_date_range(current_user.id, start, end)
    categories = aggregator.category_totals(expenses)

    return MonthlyReportRead(
        year=year,
        month=month,
        total=aggregator.total(expenses),
        top_category=aggregator.top_category(categories),
        category_totals=categories,
        expenses=[
            ExpenseRead.model_validate(e)
            for e in aggregator.filter_expenses(expenses, query=q, category=category)
        ],
    )


@router.get(
    "/yearly",
    response_model=YearlyReportRead,
    status_code=status.HTTP_200_OK,
)
def yearly_report(
    year: int = Query(..., ge=1, le=9999),
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    expenses = repository.fetch_by_date_range(current_user.id, date(year, 1, 1), date(year, 12, 31))
    series = aggregator.month_series(expenses, year)
    categories = aggregator.category_totals(expenses)

    return YearlyReportRead(
        year=year,
        total=aggregator.total(expenses),
        monthly_average=aggregator.monthly_average(series),
        top_category=aggregator.top_category(categories),
        category_totals=categories,
        monthly_totals=[MonthTotal(label=label, total=amount) for label, amount in series],
        months=[
            MonthBreakdownRead(
                month=row.month,
                label=row.label,
                total=row.total,
                percent_of_annual=row.percent_of_annual,
                transactions=row.transactions,
            )
            for row in aggregator.month_breakdown(expenses, year)
        ],
    )


@router.get(
    "/yearly/{year}/export",
    response_class=Response,
    status_code=status.HTTP_200_OK,
)
def export_yearly_csv(
    year: int,
    repository: ExpenseRepository = Depends(get_repository),
    current_user: User = Depends(get_current_user),
):
    """Download the year's expenses as CSV, newest first."""
    if not 1 <= year <= 9999:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid year")
    expenses = repository.fetch_by_date_range(current_user.id, date(year, 1, 1), date(year, 12, 31))
    filename = aggregator.export_filename(year)
    return Response(
        content=aggregator.to_csv(expenses),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
