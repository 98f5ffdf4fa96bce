"""
Spending aggregations behind the dashboard, monthly and yearly reports.

Every function in this module is pure: it reads the expenses it is handed,
never mutates them, never queries the database and keeps no state between
calls. Amounts are accumulated as Decimal so currency values do not drift.

Expenses are duck-typed: anything exposing ``amount``, ``category``,
``description`` and ``expense_date`` works, which is what the ``Expense``
table model provides.
"""

import calendar
import csv
import io
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models.expense import Expense


MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Returned by top_category() when there is nothing to rank.
NO_CATEGORY = "None"

# Category filter value meaning "do not filter".
ALL_CATEGORIES = "All"

CSV_HEADER = ("Date", "Category", "Description", "Amount")

ZERO = Decimal("0")
CENTS = Decimal("0.01")
ONE_DECIMAL = Decimal("0.1")


@dataclass(frozen=True)
class MonthBreakdown:
    """One row of the yearly report table."""

    month: int
    label: str
    total: Decimal
    percent_of_annual: Decimal
    transactions: int


def to_decimal(value) -> Decimal:
    """Convert an amount to Decimal; floats go through str() to keep their printed value."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _category_label(category) -> str:
    if isinstance(category, Enum):
        return category.value
    return category


def total(expenses: Iterable[Expense]) -> Decimal:
    return sum((to_decimal(e.amount) for e in expenses), ZERO)


def category_totals(expenses: Iterable[Expense]) -> Dict[str, Decimal]:
    """Sum amounts per category.

    Only categories that occur get a key. Keys keep the order in which each
    category first appears in ``expenses``; top_category() relies on it.
    """
    totals: Dict[str, Decimal] = {}
    for expense in expenses:
        label = _category_label(expense.category)
        totals[label] = totals.get(label, ZERO) + to_decimal(expense.amount)
    return totals


def month_series(expenses: Iterable[Expense], year: int) -> List[Tuple[str, Decimal]]:
    """Twelve (label, total) pairs, January first. Expenses from other years are ignored."""
    buckets = [ZERO] * 12
    for expense in expenses:
        if expense.expense_date.year != year:
            continue
        buckets[expense.expense_date.month - 1] += to_decimal(expense.amount)
    return list(zip(MONTH_LABELS, buckets))


def month_over_month_change(current_total, previous_total) -> Decimal:
    """Percentage change from the previous month, rounded to one decimal.

    A change measured against a zero month is undefined; it is reported as 0
    so the dashboard shows no trend instead of an infinite one.
    """
    current = to_decimal(current_total)
    previous = to_decimal(previous_total)
    if previous == 0:
        return ZERO.quantize(ONE_DECIMAL)
    change = (current - previous) / previous * 100
    return change.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


def top_category(totals: Mapping[str, Decimal]) -> str:
    """Category with the largest total; on a tie the one that comes first in ``totals`` wins."""
    best = NO_CATEGORY
    best_total: Optional[Decimal] = None
    for category, amount in totals.items():
        amount = to_decimal(amount)
        if best_total is None or amount > best_total:
            best, best_total = _category_label(category), amount
    return best


def daily_average(monthly_total, reference_date: date) -> Decimal:
    """Average spend per elapsed day of the reference date's month, in cents."""
    amount = to_decimal(monthly_total)
    if amount == 0:
        return ZERO
    days_in_month = calendar.monthrange(reference_date.year, reference_date.month)[1]
    elapsed_days = min(reference_date.day, days_in_month)
    return (amount / elapsed_days).quantize(CENTS, rounding=ROUND_HALF_UP)


def monthly_average(series: Sequence[Tuple[str, Decimal]]) -> Decimal:
    """Yearly total spread over the months that had any spending."""
    active = [amount for _, amount in series if amount != 0]
    if not active:
        return ZERO
    return (sum(active, ZERO) / len(active)).quantize(CENTS, rounding=ROUND_HALF_UP)


def month_breakdown(expenses: Sequence[Expense], year: int) -> List[MonthBreakdown]:
    series = month_series(expenses, year)
    annual = sum((amount for _, amount in series), ZERO)

    counts = [0] * 12
    for expense in expenses:
        if expense.expense_date.year == year:
            counts[expense.expense_date.month - 1] += 1

    rows = []
    for index, (label, amount) in enumerate(series):
        if annual:
            share = (amount / annual * 100).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)
        else:
            share = ZERO.quantize(ONE_DECIMAL)
        rows.append(
            MonthBreakdown(
                month=index + 1,
                label=label,
                total=amount,
                percent_of_annual=share,
                transactions=counts[index],
            )
        )
    return rows


def filter_expenses(
    expenses: Iterable[Expense],
    query: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Expense]:
    """Case-insensitive description search plus an exact category match.

    An empty query, or a category of None/"" /"All", leaves that filter off.
    """
    needle = (query or "").lower()
    wanted = None if category in (None, "", ALL_CATEGORIES) else _category_label(category)

    matches = []
    for expense in expenses:
        if needle and needle not in (expense.description or "").lower():
            continue
        if wanted is not None and _category_label(expense.category) != wanted:
            continue
        matches.append(expense)
    return matches


def to_csv(expenses: Iterable[Expense]) -> str:
    """Serialize expenses in the given order.

    Callers sort first (the reports use newest first). Fields holding a comma,
    a quote or a line break are quoted and inner quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for expense in expenses:
        amount = to_decimal(expense.amount).quantize(CENTS, rounding=ROUND_HALF_UP)
        writer.writerow(
            [
                expense.expense_date.isoformat(),
                _category_label(expense.category),
                expense.description,
                f"{amount:f}",
            ]
        )
    return buffer.getvalue()


def export_filename(year: int) -> str:
    return f"expenses_{year}.csv"


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month, both inclusive."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
