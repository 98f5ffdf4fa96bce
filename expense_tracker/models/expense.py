import uuid
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

from .timestamps import utc_now


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True
    )

    expense_date: date = Field(default_factory=date.today, index=True)
    # Category.value; kept as plain text so new categories need no migration
    category: str = Field(default="Other", max_length=50)
    amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    description: str = Field(max_length=100)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
