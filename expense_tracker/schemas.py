"""Pydantic schemas for serialising expense tracking data.

Money fields are ``Decimal`` and leave the API as JSON strings (``"135.49"``)
so no precision is lost; only ``CategoryTotal.percentage`` is a float.
"""
from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExpenseCategory(str, Enum):
    EAT = "eat"
    SHOP = "shop"
    SUBSCRIPTION = "subscription"
    OTHERS = "others"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"
    CHECK = "check"
    OTHERS = "others"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert aware datetimes to naive UTC; naive values are assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ExpenseBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    date: datetime
    description: str = Field(..., min_length=1, max_length=255)
    category: ExpenseCategory
    payment_method: PaymentMethod

    @field_validator("date")
    @classmethod
    def _normalise_date(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class ExpenseCreate(ExpenseBase):
    pass


class ExpenseUpdate(BaseModel):
    """Partial update; fields left unset keep their stored value."""

    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    date: Optional[datetime] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[ExpenseCategory] = None
    payment_method: Optional[PaymentMethod] = None

    # ``None`` only means "unset"; an explicit null is not a clearing update.
    @field_validator("amount", "date", "description", "category", "payment_method", mode="before")
    @classmethod
    def _reject_null(cls, value: object) -> object:
        if value is None:
            raise ValueError("field may be omitted but not null")
        return value

    @field_validator("date")
    @classmethod
    def _normalise_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class ExpenseRead(ExpenseBase, ORMModel):
    id: int
    created_at: datetime
    updated_at: datetime


class SummaryFilter(BaseModel):
    """Optional predicates combined with AND; date bounds are inclusive."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category: Optional[ExpenseCategory] = None
    payment_method: Optional[PaymentMethod] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalise_bounds(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class ExpenseFilter(SummaryFilter):
    min_amount: Optional[Decimal] = Field(None, gt=0)
    max_amount: Optional[Decimal] = Field(None, gt=0)


class GroupTotal(BaseModel):
    total_amount: Decimal
    count: int


class SummaryPeriod(BaseModel):
    start_date: datetime
    end_date: datetime


class ExpenseSummary(BaseModel):
    total_amount: Decimal
    total_count: int
    average_amount: Decimal
    by_category: Dict[ExpenseCategory, GroupTotal]
    by_payment_method: Dict[PaymentMethod, GroupTotal]
    period: SummaryPeriod


class CategoryTotal(BaseModel):
    category: ExpenseCategory
    total_amount: Decimal
    count: int
    percentage: float


class MonthlySummary(BaseModel):
    year: int
    month: int = Field(..., ge=1, le=12)
    total_amount: Decimal
    total_count: int
    by_category: Dict[ExpenseCategory, GroupTotal]
