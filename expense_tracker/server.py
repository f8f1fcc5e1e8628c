"""FastAPI application exposing expense tracking endpoints."""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import __version__, crud, database, reporting, schemas
from .config import get_settings
from .logging import setup_logger

LOG = setup_logger("expense_tracker")


@asynccontextmanager
async def lifespan(_: FastAPI):
    database.init_db()
    LOG.info("Expense tracker API %s ready", __version__)
    yield


app = FastAPI(title="Expense Tracker", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def expense_filter(
    category: Optional[schemas.ExpenseCategory] = None,
    payment_method: Optional[schemas.PaymentMethod] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    min_amount: Optional[Decimal] = Query(None, gt=0),
    max_amount: Optional[Decimal] = Query(None, gt=0),
) -> schemas.ExpenseFilter:
    return schemas.ExpenseFilter(
        category=category,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
    )


def summary_filter(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category: Optional[schemas.ExpenseCategory] = None,
    payment_method: Optional[schemas.PaymentMethod] = None,
) -> schemas.SummaryFilter:
    return schemas.SummaryFilter(
        start_date=start_date,
        end_date=end_date,
        category=category,
        payment_method=payment_method,
    )


@app.get("/expenses", response_model=List[schemas.ExpenseRead])
def list_expenses(
    filters: schemas.ExpenseFilter = Depends(expense_filter),
    db: Session = Depends(database.get_db),
) -> List[schemas.ExpenseRead]:
    return crud.list_expenses(db, filters)


@app.post(
    "/expenses",
    response_model=schemas.ExpenseRead,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(expense_in: schemas.ExpenseCreate, db: Session = Depends(database.get_db)) -> schemas.ExpenseRead:
    return crud.create_expense(db, expense_in)


@app.get("/expenses/{expense_id}", response_model=schemas.ExpenseRead)
def get_expense(expense_id: int, db: Session = Depends(database.get_db)) -> schemas.ExpenseRead:
    try:
        return crud.get_expense(db, expense_id)
    except crud.EntityNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.api_route("/expenses/{expense_id}", methods=["PUT", "PATCH"], response_model=schemas.ExpenseRead)
def update_expense(
    expense_id: int,
    update_in: schemas.ExpenseUpdate,
    db: Session = Depends(database.get_db),
) -> schemas.ExpenseRead:
    try:
        return crud.update_expense(db, expense_id, update_in)
    except crud.EntityNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(expense_id: int, db: Session = Depends(database.get_db)) -> Response:
    if not crud.delete_expense(db, expense_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Expense {expense_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/summary", response_model=schemas.ExpenseSummary)
def get_summary(
    filters: schemas.SummaryFilter = Depends(summary_filter),
    db: Session = Depends(database.get_db),
) -> schemas.ExpenseSummary:
    return reporting.get_expense_summary(crud.SqlExpenseStore(db), filters)


@app.get("/summary/categories", response_model=List[schemas.CategoryTotal])
def get_category_totals(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(database.get_db),
) -> List[schemas.CategoryTotal]:
    return reporting.get_category_totals(crud.SqlExpenseStore(db), start_date, end_date)


@app.get("/summary/monthly", response_model=List[schemas.MonthlySummary])
def get_monthly_summaries(
    year: Optional[int] = Query(None, ge=1, le=9999),
    limit: int = Query(reporting.DEFAULT_MONTH_LIMIT, ge=1),
    db: Session = Depends(database.get_db),
) -> List[schemas.MonthlySummary]:
    return reporting.get_monthly_summaries(crud.SqlExpenseStore(db), year=year, limit=limit)


@app.get("/health", tags=["system"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}
