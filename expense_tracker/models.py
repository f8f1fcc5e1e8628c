"""SQLAlchemy models for the expense tracker."""
from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Column, DateTime, Enum, Integer, Numeric, String

from .database import Base
from .schemas import ExpenseCategory, PaymentMethod


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the stored column values."""
    return datetime.now(UTC).replace(tzinfo=None)


def _enum_values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


class Expense(Base):
    __tablename__ = "expenses"

    id: int = Column(Integer, primary_key=True, index=True)
    amount: Decimal = Column(Numeric(10, 2), nullable=False)
    date: datetime = Column(DateTime, nullable=False, index=True)
    description: str = Column(String(255), nullable=False)
    category: ExpenseCategory = Column(
        Enum(ExpenseCategory, name="expense_category", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    payment_method: PaymentMethod = Column(
        Enum(PaymentMethod, name="payment_method", values_callable=_enum_values),
        nullable=False,
    )
    created_at: datetime = Column(DateTime, nullable=False, default=utcnow)
    updated_at: datetime = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Expense id={self.id} amount={self.amount} category={self.category}>"
