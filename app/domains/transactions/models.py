# app/domains/transactions/models.py

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator, model_validator

DESCRIPTION_MAX_LENGTH = 200

# Decimal in memory, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


CATEGORIES: Dict[TransactionType, List[str]] = {
    TransactionType.EXPENSE: [
        "Food",
        "Transportation",
        "Housing",
        "Utilities",
        "Entertainment",
        "Healthcare",
        "Shopping",
        "Education",
        "Travel",
        "Other",
    ],
    TransactionType.INCOME: [
        "Salary",
        "Freelance",
        "Investment",
        "Business",
        "Gift",
        "Other",
    ],
}


def _check_not_future(value: Optional[dt.date]) -> Optional[dt.date]:
    if value is not None and value > dt.date.today():
        raise ValueError("date must not be in the future")
    return value


def _check_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("description must not be empty")
    if len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"description must be at most {DESCRIPTION_MAX_LENGTH} characters")
    return value


class TransactionCreate(BaseModel):
    """Client-writable fields of a transaction.

    Server-assigned fields (``id``, ``owner_id``, ``created_at``) are dropped
    silently if a client sends them.
    """

    model_config = ConfigDict(extra="ignore")

    type: TransactionType
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    category: str
    description: str
    date: dt.date

    @field_validator("date")
    @classmethod
    def date_not_in_future(cls, value):
        return _check_not_future(value)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value):
        return _check_description(value)

    @model_validator(mode="after")
    def category_matches_type(self) -> "TransactionCreate":
        if self.category not in CATEGORIES[self.type]:
            allowed = ", ".join(CATEGORIES[self.type])
            raise ValueError(
                f"category '{self.category}' is not valid for {self.type.value} (expected one of: {allowed})"
            )
        return self


class TransactionUpdate(BaseModel):
    """Partial update. Only fields the client actually sends are merged."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None

    @field_validator("date")
    @classmethod
    def date_not_in_future(cls, value):
        return _check_not_future(value)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value):
        return _check_description(value)


class Transaction(BaseModel):
    id: str
    owner_id: str
    type: TransactionType
    amount: Money
    category: str
    description: str
    date: dt.date
    created_at: dt.datetime


class TypeTotals(BaseModel):
    income: Money = Decimal("0")
    expense: Money = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


class CategoryShare(BaseModel):
    category: str
    amount: Money
    percentage: float


class MonthlyTotals(BaseModel):
    year: int
    month: int
    income: Money = Decimal("0")
    expense: Money = Decimal("0")

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class Summary(BaseModel):
    balance: Money
    income: Money
    expense: Money
    transaction_count: int
    categories: List[CategoryShare]
    monthly: List[MonthlyTotals]
