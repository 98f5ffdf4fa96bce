"""
Shared fixtures.

The application talks to an in-memory SQLite database shared through a
StaticPool; get_session is overridden so every request sees the same data
as the test's own session.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from expense_tracker.database import get_session, init_db
from expense_tracker.main import app
from expense_tracker.models.expense import Expense
from expense_tracker.models.user import User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user and return bearer headers for them."""

    def _register(email: str = "alice@example.com", password: str = "secret123") -> dict:
        response = client.post("/auth/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        response = client.post("/auth/token", data={"username": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _register


@pytest.fixture
def auth_headers(register):
    return register()


@pytest.fixture
def make_user(session):
    def _make_user(email: str) -> User:
        user = User(email=email, hashed_password="x")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


def make_expense(
    amount,
    category: str = "Food",
    expense_date: date = date(2024, 3, 5),
    description: str = "Groceries",
) -> Expense:
    """Build an unsaved Expense for aggregation tests."""
    return Expense(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        expense_date=expense_date,
        category=category,
        amount=amount if isinstance(amount, Decimal) else Decimal(str(amount)),
        description=description,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
