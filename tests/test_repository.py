"""Tests for owner-scoped expense storage."""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from expense_tracker.models.category import Category
from expense_tracker.services.repository import (
    ExpenseAccessDeniedError,
    ExpenseNotFoundError,
    ExpenseRepository,
    InvalidExpenseError,
)


@pytest.fixture
def repository(session):
    return ExpenseRepository(session)


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com")


def _fields(**overrides):
    fields = {
        "expense_date": date(2024, 3, 5),
        "category": "Food",
        "amount": Decimal("12.50"),
        "description": "Groceries",
    }
    fields.update(overrides)
    return fields


class TestInsert:
    def test_assigns_id_and_owner(self, repository, alice):
        expense = repository.insert(alice.id, _fields())
        assert isinstance(expense.id, uuid.UUID)
        assert expense.user_id == alice.id
        assert expense.amount == Decimal("12.50")
        assert expense.category == "Food"

    def test_accepts_category_enum(self, repository, alice):
        expense = repository.insert(alice.id, _fields(category=Category.TRAVEL))
        assert expense.category == "Travel"

    def test_timestamps_are_stored_and_read_back(self, repository, alice):
        before = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(seconds=1)
        expense = repository.insert(alice.id, _fields())

        stored = repository.get(alice.id, expense.id)
        created = stored.created_at.replace(tzinfo=None)
        updated = stored.updated_at.replace(tzinfo=None)
        after = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=1)
        assert before <= created <= after
        assert updated == created

    def test_defaults_date_to_today(self, repository, alice):
        fields = _fields()
        del fields["expense_date"]
        assert repository.insert(alice.id, fields).expense_date == date.today()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"category": "Gambling"},
            {"amount": Decimal("-1")},
            {"amount": "NaN"},
            {"amount": "not a number"},
            {"expense_date": "2024-13-01"},
            {"description": ""},
            {"description": "x" * 101},
        ],
    )
    def test_rejects_invalid_fields(self, repository, alice, overrides):
        with pytest.raises(InvalidExpenseError):
            repository.insert(alice.id, _fields(**overrides))

    def test_rejects_unknown_and_missing_fields(self, repository, alice):
        with pytest.raises(InvalidExpenseError):
            repository.insert(alice.id, _fields(currency="CAD"))
        with pytest.raises(InvalidExpenseError):
            repository.insert(alice.id, {"category": "Food"})


class TestFetch:
    def test_fetch_all_is_owner_scoped_and_newest_first(self, repository, alice, bob):
        repository.insert(alice.id, _fields(expense_date=date(2024, 1, 1), description="old"))
        repository.insert(alice.id, _fields(expense_date=date(2024, 5, 1), description="new"))
        repository.insert(bob.id, _fields(description="bob's"))

        expenses = repository.fetch_all(alice.id)
        assert [e.description for e in expenses] == ["new", "old"]

    def test_date_range_is_inclusive(self, repository, alice):
        for day in (date(2024, 2, 29), date(2024, 3, 1), date(2024, 3, 31), date(2024, 4, 1)):
            repository.insert(alice.id, _fields(expense_date=day, description=day.isoformat()))

        expenses = repository.fetch_by_date_range(alice.id, date(2024, 3, 1), date(2024, 3, 31))
        assert [e.description for e in expenses] == ["2024-03-31", "2024-03-01"]

    def test_date_range_excludes_other_owners(self, repository, alice, bob):
        repository.insert(bob.id, _fields())
        assert repository.fetch_by_date_range(alice.id, date(2024, 1, 1), date(2024, 12, 31)) == []

    def test_recent_stops_at_date_and_limit(self, repository, alice, bob):
        for day in (date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3), date(2024, 2, 1)):
            repository.insert(alice.id, _fields(expense_date=day, description=day.isoformat()))
        repository.insert(bob.id, _fields(expense_date=date(2024, 1, 2), description="bob's"))

        recent = repository.fetch_recent(alice.id, date(2024, 1, 31), 2)
        assert [e.description for e in recent] == ["2024-01-03", "2024-01-02"]
        assert repository.fetch_recent(alice.id, date(2023, 12, 31), 5) == []

    def test_get_missing(self, repository, alice):
        with pytest.raises(ExpenseNotFoundError):
            repository.get(alice.id, uuid.uuid4())

    def test_get_other_owners_record_is_denied(self, repository, alice, bob):
        expense = repository.insert(bob.id, _fields())
        with pytest.raises(ExpenseAccessDeniedError):
            repository.get(alice.id, expense.id)


class TestUpdate:
    def test_replaces_only_given_fields(self, repository, alice):
        expense = repository.insert(alice.id, _fields())
        before = expense.updated_at

        repository.update(alice.id, expense.id, {"amount": Decimal("20"), "category": "Shopping"})

        updated = repository.get(alice.id, expense.id)
        assert updated.amount == Decimal("20")
        assert updated.category == "Shopping"
        assert updated.description == "Groceries"
        assert updated.expense_date == date(2024, 3, 5)
        assert updated.updated_at >= before

    def test_other_owner_cannot_update(self, repository, alice, bob):
        expense = repository.insert(alice.id, _fields())
        with pytest.raises(ExpenseAccessDeniedError):
            repository.update(bob.id, expense.id, {"amount": Decimal("1")})
        assert repository.get(alice.id, expense.id).amount == Decimal("12.50")

    def test_invalid_value_leaves_record_untouched(self, repository, alice):
        expense = repository.insert(alice.id, _fields())
        with pytest.raises(InvalidExpenseError):
            repository.update(alice.id, expense.id, {"category": "Nope"})
        assert repository.get(alice.id, expense.id).category == "Food"


class TestDelete:
    def test_deletes_outright(self, repository, alice):
        expense = repository.insert(alice.id, _fields())
        repository.delete(alice.id, expense.id)
        with pytest.raises(ExpenseNotFoundError):
            repository.get(alice.id, expense.id)
        assert repository.fetch_all(alice.id) == []

    def test_other_owner_cannot_delete(self, repository, alice, bob):
        expense = repository.insert(alice.id, _fields())
        with pytest.raises(ExpenseAccessDeniedError):
            repository.delete(bob.id, expense.id)
        assert len(repository.fetch_all(alice.id)) == 1

    def test_missing(self, repository, alice):
        with pytest.raises(ExpenseNotFoundError):
            repository.delete(alice.id, uuid.uuid4())
