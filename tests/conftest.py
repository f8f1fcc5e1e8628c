"""Shared pytest configuration: in-memory database, API client and sample data."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest


def _insert_repo_root() -> None:
    """Make the repository root importable when the package is not installed."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()
# The API lifespan creates tables on the default engine; keep it in memory.
os.environ.setdefault("EXPENSE_DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import expense_tracker.models  # noqa: E402,F401  # Ensure models are registered with metadata
from expense_tracker import crud, database, schemas  # noqa: E402
from expense_tracker.database import Base  # noqa: E402
from expense_tracker.server import app  # noqa: E402


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    log_level = os.environ.get("EXPENSE_LOG_LEVEL", "INFO")
    return [f"expense-tracker repo: {Path.cwd()}", f"EXPENSE_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_verbose_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSE_LOG_LEVEL", "INFO")


@pytest.fixture(scope="session")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def client(db_session) -> Iterator[TestClient]:
    def override_get_db():
        yield db_session

    app.dependency_overrides[database.get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def store(db_session) -> crud.SqlExpenseStore:
    return crud.SqlExpenseStore(db_session)


@pytest.fixture()
def add_expense(db_session) -> Callable[..., expense_tracker.models.Expense]:
    """Insert an expense through the CRUD layer with sensible defaults."""

    def _add(
        amount: str,
        category: str = "eat",
        payment_method: str = "card",
        date: datetime | str = "2024-01-15T12:00:00",
        description: str = "Sample expense",
    ) -> expense_tracker.models.Expense:
        expense_in = schemas.ExpenseCreate(
            amount=Decimal(amount),
            date=date,
            description=description,
            category=category,
            payment_method=payment_method,
        )
        return crud.create_expense(db_session, expense_in)

    return _add
