"""CRUD helper functions for the expense tracker."""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import models, schemas

LOG = logging.getLogger(__name__)


class EntityNotFoundError(RuntimeError):
    """Raised when an entity cannot be located in the database."""


def list_expenses(session: Session, filters: Optional[schemas.ExpenseFilter] = None) -> List[models.Expense]:
    """Return expenses matching every provided predicate, most recent first."""
    stmt = select(models.Expense)
    if filters is not None:
        if filters.category is not None:
            stmt = stmt.where(models.Expense.category == filters.category)
        if filters.payment_method is not None:
            stmt = stmt.where(models.Expense.payment_method == filters.payment_method)
        if filters.start_date is not None:
            stmt = stmt.where(models.Expense.date >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(models.Expense.date <= filters.end_date)
        if filters.min_amount is not None:
            stmt = stmt.where(models.Expense.amount >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(models.Expense.amount <= filters.max_amount)
    stmt = stmt.order_by(models.Expense.date.desc(), models.Expense.id.desc())
    return list(session.scalars(stmt))


def find_expense(session: Session, expense_id: int) -> Optional[models.Expense]:
    return session.get(models.Expense, expense_id)


def get_expense(session: Session, expense_id: int) -> models.Expense:
    expense = find_expense(session, expense_id)
    if expense is None:
        raise EntityNotFoundError(f"Expense {expense_id} not found")
    return expense


def create_expense(session: Session, expense_in: schemas.ExpenseCreate) -> models.Expense:
    now = models.utcnow()
    expense = models.Expense(**expense_in.model_dump(), created_at=now, updated_at=now)
    session.add(expense)
    session.flush()
    session.refresh(expense)
    LOG.info(
        "Created expense %s (%s %s)",
        expense.id,
        expense.category.value,
        expense.amount,
        extra={"expense_id": expense.id},
    )
    return expense


def update_expense(session: Session, expense_id: int, update_in: schemas.ExpenseUpdate) -> models.Expense:
    expense = get_expense(session, expense_id)
    changes = update_in.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(expense, field, value)
    # Bumped explicitly: an empty patch emits no UPDATE, so ``onupdate`` would not fire.
    expense.updated_at = max(models.utcnow(), expense.created_at)
    session.flush()
    session.refresh(expense)
    LOG.info("Updated expense %s fields=%s", expense.id, sorted(changes), extra={"expense_id": expense.id})
    return expense


def delete_expense(session: Session, expense_id: int) -> bool:
    """Delete an expense and report whether a row existed."""
    expense = find_expense(session, expense_id)
    if expense is None:
        LOG.info("Delete skipped, expense %s not found", expense_id)
        return False
    session.delete(expense)
    session.flush()
    LOG.info("Deleted expense %s", expense_id, extra={"expense_id": expense_id})
    return True


class SqlExpenseStore:
    """Expense source backed by an open SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def query_expenses(self, filters: Optional[schemas.ExpenseFilter] = None) -> List[models.Expense]:
        return list_expenses(self.session, filters)
