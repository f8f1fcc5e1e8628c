"""Aggregation engine for expense summaries, category totals and monthly trends.

The pure helpers (:func:`summarise_expenses`, :func:`rank_category_totals`,
:func:`group_monthly`) work on any iterable of records exposing ``amount``,
``date``, ``category`` and ``payment_method``. The ``get_*`` entry points
fetch those records from an injected :class:`ExpenseSource` and never write
back to it; store errors propagate unchanged.

Money is accumulated as :class:`~decimal.Decimal`. Only percentages leave the
engine as floats, after rounding to two decimals.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Final, Protocol

from expense_tracker.schemas import (
    CategoryTotal,
    ExpenseCategory,
    ExpenseFilter,
    ExpenseSummary,
    GroupTotal,
    MonthlySummary,
    PaymentMethod,
    SummaryFilter,
    SummaryPeriod,
    to_naive_utc,
)

__all__ = [
    "DEFAULT_MONTH_LIMIT",
    "ExpenseRecord",
    "ExpenseSource",
    "get_category_totals",
    "get_expense_summary",
    "get_monthly_summaries",
    "group_monthly",
    "rank_category_totals",
    "summarise_expenses",
]

LOG = logging.getLogger(__name__)

CENT: Final[Decimal] = Decimal("0.01")
ZERO: Final[Decimal] = Decimal("0.00")
HUNDRED: Final[Decimal] = Decimal("100")
DEFAULT_MONTH_LIMIT: Final[int] = 12

# Tie-break for equal category totals: declaration order of the enum.
_CATEGORY_ORDER: Final[dict[ExpenseCategory, int]] = {
    category: index for index, category in enumerate(ExpenseCategory)
}


class ExpenseRecord(Protocol):
    amount: Decimal
    date: datetime
    category: ExpenseCategory
    payment_method: PaymentMethod


class ExpenseSource(Protocol):
    """Anything able to return the expenses matching an :class:`ExpenseFilter`."""

    def query_expenses(self, filters: ExpenseFilter | None = None) -> Sequence[ExpenseRecord]: ...


@dataclass(slots=True)
class _Bucket:
    total: Decimal = ZERO
    count: int = 0

    def add(self, amount: Decimal) -> None:
        self.total += amount
        self.count += 1

    def as_group(self) -> GroupTotal:
        return GroupTotal(total_amount=self.total, count=self.count)


def _utcnow() -> datetime:
    return to_naive_utc(datetime.now(UTC))


def _as_decimal(value: Decimal | float | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _percentage(part: Decimal, whole: Decimal) -> float:
    share = (part / whole * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return float(share)


def _log_computation(kind: str, rows: int, started: float) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    LOG.debug(
        "Computed %s report over %d expenses",
        kind,
        rows,
        extra={"report": kind, "rows_processed": rows, "process_time_ms": elapsed_ms},
    )


def summarise_expenses(
    expenses: Iterable[ExpenseRecord],
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    now: datetime | None = None,
) -> ExpenseSummary:
    """Aggregate totals, averages and breakdowns over already-selected expenses.

    Args:
      expenses: Records to aggregate; every record is counted.
      start_date: Filter bound reported as the period start when ``expenses``
        is empty.
      end_date: Filter bound reported as the period end when ``expenses`` is
        empty.
      now: Clock used for missing bounds on an empty selection. Defaults to
        the current UTC time.

    Returns:
      Summary whose breakdowns only contain categories and payment methods
      that occur in ``expenses``. The period spans the earliest and latest
      expense dates of a non-empty selection.
    """

    overall = _Bucket()
    by_category: dict[ExpenseCategory, _Bucket] = {}
    by_payment_method: dict[PaymentMethod, _Bucket] = {}
    earliest: datetime | None = None
    latest: datetime | None = None

    for record in expenses:
        amount = _as_decimal(record.amount)
        occurred = to_naive_utc(record.date)
        overall.add(amount)
        by_category.setdefault(ExpenseCategory(record.category), _Bucket()).add(amount)
        by_payment_method.setdefault(PaymentMethod(record.payment_method), _Bucket()).add(amount)
        earliest = occurred if earliest is None else min(earliest, occurred)
        latest = occurred if latest is None else max(latest, occurred)

    if earliest is None or latest is None:
        moment = to_naive_utc(now) if now is not None else _utcnow()
        earliest = to_naive_utc(start_date) if start_date is not None else moment
        latest = to_naive_utc(end_date) if end_date is not None else moment

    average = ZERO
    if overall.count:
        average = (overall.total / overall.count).quantize(CENT, rounding=ROUND_HALF_UP)

    return ExpenseSummary(
        total_amount=overall.total,
        total_count=overall.count,
        average_amount=average,
        by_category={
            category: by_category[category].as_group()
            for category in ExpenseCategory
            if category in by_category
        },
        by_payment_method={
            method: by_payment_method[method].as_group()
            for method in PaymentMethod
            if method in by_payment_method
        },
        period=SummaryPeriod(start_date=earliest, end_date=latest),
    )


def rank_category_totals(expenses: Iterable[ExpenseRecord]) -> list[CategoryTotal]:
    """Return per-category totals with their share of the grand total.

    Categories without expenses are omitted and an empty selection yields an
    empty list. Results are ordered by ``total_amount`` descending, then by
    the declaration order of :class:`ExpenseCategory`.
    """

    groups: dict[ExpenseCategory, _Bucket] = {}
    for record in expenses:
        groups.setdefault(ExpenseCategory(record.category), _Bucket()).add(_as_decimal(record.amount))

    grand_total = sum((bucket.total for bucket in groups.values()), ZERO)
    if grand_total == 0:
        return []

    ranked = sorted(groups.items(), key=lambda item: (-item[1].total, _CATEGORY_ORDER[item[0]]))
    return [
        CategoryTotal(
            category=category,
            total_amount=bucket.total,
            count=bucket.count,
            percentage=_percentage(bucket.total, grand_total),
        )
        for category, bucket in ranked
    ]


def group_monthly(
    expenses: Iterable[ExpenseRecord],
    *,
    limit: int = DEFAULT_MONTH_LIMIT,
) -> list[MonthlySummary]:
    """Group expenses by calendar month, most recent month first.

    Every emitted month carries all four categories in ``by_category``, with
    zero totals for inactive ones. Months without expenses are not emitted.

    Raises:
      ValueError: If ``limit`` is smaller than one.
    """

    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")

    months: dict[tuple[int, int], dict[ExpenseCategory, _Bucket]] = {}
    for record in expenses:
        occurred = to_naive_utc(record.date)
        buckets = months.setdefault(
            (occurred.year, occurred.month),
            {category: _Bucket() for category in ExpenseCategory},
        )
        buckets[ExpenseCategory(record.category)].add(_as_decimal(record.amount))

    summaries: list[MonthlySummary] = []
    for year, month in sorted(months, reverse=True)[:limit]:
        buckets = months[(year, month)]
        summaries.append(
            MonthlySummary(
                year=year,
                month=month,
                total_amount=sum((bucket.total for bucket in buckets.values()), ZERO),
                total_count=sum(bucket.count for bucket in buckets.values()),
                by_category={category: bucket.as_group() for category, bucket in buckets.items()},
            )
        )
    return summaries


def get_expense_summary(
    store: ExpenseSource,
    filters: SummaryFilter | None = None,
    *,
    now: datetime | None = None,
) -> ExpenseSummary:
    """Summarise the expenses selected by ``filters`` (AND semantics, inclusive dates)."""

    filters = filters or SummaryFilter()
    started = time.perf_counter()
    expenses = store.query_expenses(ExpenseFilter.model_validate(filters.model_dump()))
    summary = summarise_expenses(
        expenses,
        start_date=filters.start_date,
        end_date=filters.end_date,
        now=now,
    )
    _log_computation("summary", summary.total_count, started)
    return summary


def get_category_totals(
    store: ExpenseSource,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[CategoryTotal]:
    """Rank categories by spend between two optional inclusive bounds."""

    started = time.perf_counter()
    expenses = store.query_expenses(ExpenseFilter(start_date=start_date, end_date=end_date))
    totals = rank_category_totals(expenses)
    _log_computation("category totals", len(expenses), started)
    return totals


def get_monthly_summaries(
    store: ExpenseSource,
    year: int | None = None,
    limit: int = DEFAULT_MONTH_LIMIT,
    *,
    now: datetime | None = None,
) -> list[MonthlySummary]:
    """Return up to ``limit`` monthly summaries for ``year`` (UTC, current year by default).

    Raises:
      ValueError: If ``limit`` is smaller than one or ``year`` falls outside
        ``datetime.MINYEAR..datetime.MAXYEAR``.
    """

    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")
    target_year = year if year is not None else (to_naive_utc(now) if now is not None else _utcnow()).year
    if not MINYEAR <= target_year <= MAXYEAR:
        raise ValueError(f"year must be between {MINYEAR} and {MAXYEAR}, got {target_year}")
    filters = ExpenseFilter(
        start_date=datetime(target_year, 1, 1),
        end_date=datetime(target_year, 12, 31, 23, 59, 59, 999999),
    )
    started = time.perf_counter()
    expenses = store.query_expenses(filters)
    summaries = group_monthly(expenses, limit=limit)
    _log_computation("monthly", len(expenses), started)
    return summaries
