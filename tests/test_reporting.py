from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from expense_tracker import reporting, schemas
from expense_tracker.schemas import ExpenseCategory, PaymentMethod


def _record(amount: str, category: str, payment_method: str, date: str) -> schemas.ExpenseCreate:
    return schemas.ExpenseCreate(
        amount=Decimal(amount),
        date=date,
        description="fixture",
        category=category,
        payment_method=payment_method,
    )


@pytest.fixture()
def january_records() -> list[schemas.ExpenseCreate]:
    return [
        _record("25.50", "eat", "card", "2024-01-15"),
        _record("100.00", "shop", "cash", "2024-01-16"),
        _record("9.99", "subscription", "card", "2024-01-17"),
    ]


def test_summarise_expenses_concrete_scenario(january_records) -> None:
    summary = reporting.summarise_expenses(january_records)

    assert summary.total_amount == Decimal("135.49")
    assert summary.total_count == 3
    assert summary.average_amount == Decimal("45.16")
    assert summary.period.start_date == datetime(2024, 1, 15)
    assert summary.period.end_date == datetime(2024, 1, 17)
    assert summary.by_category[ExpenseCategory.EAT].total_amount == Decimal("25.50")
    assert summary.by_category[ExpenseCategory.SHOP].count == 1
    assert summary.by_payment_method[PaymentMethod.CARD].total_amount == Decimal("35.49")
    assert summary.by_payment_method[PaymentMethod.CARD].count == 2
    assert summary.by_payment_method[PaymentMethod.CASH].total_amount == Decimal("100.00")


def test_summarise_expenses_omits_absent_groups(january_records) -> None:
    summary = reporting.summarise_expenses(january_records)

    assert ExpenseCategory.OTHERS not in summary.by_category
    assert set(summary.by_payment_method) == {PaymentMethod.CARD, PaymentMethod.CASH}


def test_summarise_expenses_empty_selection_is_zero() -> None:
    now = datetime(2024, 5, 1, 9, 30)
    summary = reporting.summarise_expenses([], now=now)

    assert summary.total_amount == 0
    assert summary.total_count == 0
    assert summary.average_amount == 0
    assert summary.by_category == {}
    assert summary.by_payment_method == {}
    assert summary.period.start_date == now
    assert summary.period.end_date == now


def test_summarise_expenses_empty_selection_uses_filter_bounds() -> None:
    now = datetime(2024, 5, 1)
    summary = reporting.summarise_expenses(
        [],
        start_date=datetime(2024, 2, 1),
        now=now,
    )

    assert summary.period.start_date == datetime(2024, 2, 1)
    assert summary.period.end_date == now


def test_rank_category_totals_percentages_and_order() -> None:
    records = [
        _record("15.00", "eat", "card", "2024-01-02"),
        _record("25.00", "eat", "cash", "2024-01-03"),
        _record("50.00", "shop", "card", "2024-01-04"),
    ]

    totals = reporting.rank_category_totals(records)

    assert [item.category for item in totals] == [ExpenseCategory.SHOP, ExpenseCategory.EAT]
    assert totals[0].total_amount == Decimal("50.00")
    assert totals[0].count == 1
    assert totals[0].percentage == pytest.approx(55.56)
    assert totals[1].total_amount == Decimal("40.00")
    assert totals[1].count == 2
    assert totals[1].percentage == pytest.approx(44.44)


def test_rank_category_totals_empty_input_returns_empty_list() -> None:
    assert reporting.rank_category_totals([]) == []


def test_rank_category_totals_breaks_ties_by_category_order() -> None:
    records = [
        _record("10.00", "others", "card", "2024-01-02"),
        _record("10.00", "shop", "card", "2024-01-03"),
        _record("10.00", "eat", "card", "2024-01-04"),
    ]

    totals = reporting.rank_category_totals(records)

    assert [item.category for item in totals] == [
        ExpenseCategory.EAT,
        ExpenseCategory.SHOP,
        ExpenseCategory.OTHERS,
    ]
    assert sum(item.percentage for item in totals) == pytest.approx(100, abs=0.1)


def test_group_monthly_zero_fills_categories() -> None:
    records = [
        _record("25.99", "eat", "card", "2024-01-15"),
        _record("120.50", "shop", "card", "2024-01-20"),
        _record("45.75", "eat", "cash", "2024-02-10"),
        _record("15.00", "eat", "card", "2024-02-14"),
    ]

    summaries = reporting.group_monthly(records)

    assert [(item.year, item.month) for item in summaries] == [(2024, 2), (2024, 1)]
    february = summaries[0]
    assert february.total_amount == Decimal("60.75")
    assert february.total_count == 2
    assert set(february.by_category) == set(ExpenseCategory)
    assert february.by_category[ExpenseCategory.SHOP].total_amount == 0
    assert february.by_category[ExpenseCategory.SHOP].count == 0
    for month in summaries:
        category_sum = sum(group.total_amount for group in month.by_category.values())
        assert category_sum == month.total_amount


def test_group_monthly_applies_limit() -> None:
    records = [_record("1.00", "others", "check", f"2024-{month:02d}-01") for month in range(1, 7)]

    summaries = reporting.group_monthly(records, limit=4)

    assert [item.month for item in summaries] == [6, 5, 4, 3]


def test_group_monthly_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        reporting.group_monthly([], limit=0)


def test_get_expense_summary_applies_every_filter(store, add_expense) -> None:
    add_expense("25.50", "eat", "card", "2024-01-15")
    add_expense("100.00", "shop", "cash", "2024-01-16")
    add_expense("9.99", "subscription", "card", "2024-01-17")
    add_expense("12.00", "eat", "cash", "2024-02-01")

    filters = schemas.SummaryFilter(
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 31),
        payment_method=PaymentMethod.CARD,
    )
    summary = reporting.get_expense_summary(store, filters)

    assert summary.total_amount == Decimal("35.49")
    assert summary.total_count == 2
    assert set(summary.by_category) == {ExpenseCategory.EAT, ExpenseCategory.SUBSCRIPTION}


def test_get_expense_summary_date_bounds_are_inclusive(store, add_expense) -> None:
    add_expense("10.00", date="2024-03-01T00:00:00")
    add_expense("20.00", date="2024-03-31T00:00:00")
    add_expense("40.00", date="2024-04-01T00:00:00")

    filters = schemas.SummaryFilter(start_date=datetime(2024, 3, 1), end_date=datetime(2024, 3, 31))
    summary = reporting.get_expense_summary(store, filters)

    assert summary.total_amount == Decimal("30.00")
    assert summary.period.start_date == datetime(2024, 3, 1)
    assert summary.period.end_date == datetime(2024, 3, 31)


def test_combined_filters_never_widen_selection(store, add_expense) -> None:
    add_expense("5.00", "eat", "card", "2024-01-10")
    add_expense("7.00", "eat", "cash", "2024-03-10")
    add_expense("9.00", "shop", "card", "2024-01-20")

    by_category = reporting.get_expense_summary(store, schemas.SummaryFilter(category="eat"))
    by_range = reporting.get_expense_summary(
        store,
        schemas.SummaryFilter(start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 31)),
    )
    combined = reporting.get_expense_summary(
        store,
        schemas.SummaryFilter(
            category="eat",
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 1, 31),
        ),
    )

    assert combined.total_count <= min(by_category.total_count, by_range.total_count)
    assert combined.total_amount == Decimal("5.00")


def test_get_category_totals_respects_date_window(store, add_expense) -> None:
    add_expense("30.00", "eat", date="2024-01-05")
    add_expense("70.00", "shop", date="2024-02-05")

    totals = reporting.get_category_totals(store, start_date=datetime(2024, 2, 1))

    assert len(totals) == 1
    assert totals[0].category == ExpenseCategory.SHOP
    assert totals[0].percentage == pytest.approx(100.0)


def test_get_category_totals_without_expenses(store) -> None:
    assert reporting.get_category_totals(store) == []


def test_get_monthly_summaries_restricts_to_year(store, add_expense) -> None:
    add_expense("11.00", "eat", date="2023-12-31T23:59:59")
    add_expense("22.00", "shop", date="2024-01-01T00:00:00")
    add_expense("33.00", "others", date="2024-12-31T23:59:59")
    add_expense("44.00", "eat", date="2025-01-01T00:00:00")

    summaries = reporting.get_monthly_summaries(store, year=2024)

    assert [(item.year, item.month) for item in summaries] == [(2024, 12), (2024, 1)]
    assert summaries[0].total_amount == Decimal("33.00")
    assert summaries[1].by_category[ExpenseCategory.SHOP].count == 1


def test_get_monthly_summaries_defaults_to_current_year(store, add_expense) -> None:
    add_expense("8.00", "eat", date="2024-06-10")
    add_expense("9.00", "eat", date="2023-06-10")

    summaries = reporting.get_monthly_summaries(store, now=datetime(2024, 7, 1))

    assert [(item.year, item.month) for item in summaries] == [(2024, 6)]


def test_get_monthly_summaries_rejects_invalid_limit(store) -> None:
    with pytest.raises(ValueError):
        reporting.get_monthly_summaries(store, year=2024, limit=0)


@pytest.mark.parametrize("year", [0, 10000])
def test_get_monthly_summaries_rejects_year_out_of_range(store, year: int) -> None:
    with pytest.raises(ValueError, match="year must be between 1 and 9999"):
        reporting.get_monthly_summaries(store, year=year)
