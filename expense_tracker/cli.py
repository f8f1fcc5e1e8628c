"""Command-line interface for recording expenses and printing reports."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from datetime import MAXYEAR, MINYEAR, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd
from pydantic import BaseModel, ValidationError
from sqlalchemy.engine import Engine

from expense_tracker import __version__, crud, database, reporting, schemas
from expense_tracker.config import get_settings
from expense_tracker.logging import configure_cli_logging

DESCRIPTION = "Personal expense tracker"
PROG = "expense-tracker"
EXPORT_COLUMNS = [
    "id",
    "amount",
    "date",
    "description",
    "category",
    "payment_method",
    "created_at",
    "updated_at",
]


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Expected YYYY-MM-DD or ISO 8601 timestamp") from exc


def _parse_amount(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise argparse.ArgumentTypeError("Amount must be a positive number")
    return amount


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("Value must be a positive integer")
    return number


def _year(value: str) -> int:
    number = _positive_int(value)
    if number > MAXYEAR:
        raise argparse.ArgumentTypeError(f"Year must be between {MINYEAR} and {MAXYEAR}")
    return number


def _add_date_range(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--from",
        dest="start_date",
        type=_parse_datetime,
        help="Earliest expense date, inclusive (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--to",
        dest="end_date",
        type=_parse_datetime,
        help="Latest expense date, inclusive (YYYY-MM-DD)",
    )


def _add_classification_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--category",
        choices=[category.value for category in schemas.ExpenseCategory],
        help="Only include this category",
    )
    parser.add_argument(
        "--payment-method",
        dest="payment_method",
        choices=[method.value for method in schemas.PaymentMethod],
        help="Only include this payment method",
    )


def _add_amount_range(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--min-amount", dest="min_amount", type=_parse_amount, help="Minimum amount, inclusive")
    parser.add_argument("--max-amount", dest="max_amount", type=_parse_amount, help="Maximum amount, inclusive")


def _add_add_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    add = subparsers.add_parser("add", help="Record a new expense")
    add.add_argument("--amount", required=True, type=_parse_amount, help="Positive amount, two decimals max")
    add.add_argument("--date", required=True, type=_parse_datetime, help="When the expense occurred")
    add.add_argument("--description", required=True, help="Free-text description")
    add.add_argument(
        "--category",
        required=True,
        choices=[category.value for category in schemas.ExpenseCategory],
    )
    add.add_argument(
        "--payment-method",
        dest="payment_method",
        required=True,
        choices=[method.value for method in schemas.PaymentMethod],
    )


def _add_list_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    listing = subparsers.add_parser("list", help="Print matching expenses as JSON")
    _add_date_range(listing)
    _add_classification_filters(listing)
    _add_amount_range(listing)


def _add_lookup_subparsers(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    show = subparsers.add_parser("show", help="Print a single expense as JSON")
    show.add_argument("expense_id", type=_positive_int, help="Expense identifier")
    delete = subparsers.add_parser("delete", help="Delete an expense")
    delete.add_argument("expense_id", type=_positive_int, help="Expense identifier")


def _add_summary_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    summary = subparsers.add_parser("summary", help="Totals, average and breakdowns")
    _add_date_range(summary)
    _add_classification_filters(summary)


def _add_categories_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    categories = subparsers.add_parser("categories", help="Category totals with percentages")
    _add_date_range(categories)


def _add_monthly_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    monthly = subparsers.add_parser("monthly", help="Monthly summaries, most recent first")
    monthly.add_argument("--year", type=_year, help="Calendar year (default: current UTC year)")
    monthly.add_argument(
        "--limit",
        type=_positive_int,
        default=reporting.DEFAULT_MONTH_LIMIT,
        help="Maximum number of months to print",
    )


def _add_export_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    export = subparsers.add_parser("export", help="Write matching expenses to a CSV file")
    export.add_argument("--output", required=True, type=Path, help="Destination CSV path")
    _add_date_range(export)
    _add_classification_filters(export)
    _add_amount_range(export)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=PROG, description=DESCRIPTION)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        help="SQLAlchemy database URL (default: configured EXPENSE_DATABASE_URL)",
    )
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Mirror logs to the configured log directory in JSON format",
    )
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default: configured level)")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("init-db", help="Create the expense table if missing")
    _add_add_subparser(sub)
    _add_list_subparser(sub)
    _add_lookup_subparsers(sub)
    _add_summary_subparser(sub)
    _add_categories_subparser(sub)
    _add_monthly_subparser(sub)
    _add_export_subparser(sub)
    return parser


def _expense_filter(args: argparse.Namespace) -> schemas.ExpenseFilter:
    return schemas.ExpenseFilter(
        start_date=args.start_date,
        end_date=args.end_date,
        category=args.category,
        payment_method=args.payment_method,
        min_amount=getattr(args, "min_amount", None),
        max_amount=getattr(args, "max_amount", None),
    )


def _print_json(payload: BaseModel | Sequence[BaseModel]) -> None:
    if isinstance(payload, BaseModel):
        print(payload.model_dump_json(indent=2))
        return
    print(json.dumps([item.model_dump(mode="json") for item in payload], indent=2))


def _handle_add(args: argparse.Namespace, engine: Engine) -> None:
    expense_in = schemas.ExpenseCreate(
        amount=args.amount,
        date=args.date,
        description=args.description,
        category=args.category,
        payment_method=args.payment_method,
    )
    with database.session_scope(engine) as session:
        expense = crud.create_expense(session, expense_in)
        _print_json(schemas.ExpenseRead.model_validate(expense))


def _handle_list(args: argparse.Namespace, engine: Engine) -> None:
    with database.session_scope(engine) as session:
        expenses = crud.list_expenses(session, _expense_filter(args))
        _print_json([schemas.ExpenseRead.model_validate(expense) for expense in expenses])


def _handle_show(args: argparse.Namespace, engine: Engine) -> None:
    with database.session_scope(engine) as session:
        _print_json(schemas.ExpenseRead.model_validate(crud.get_expense(session, args.expense_id)))


def _handle_delete(args: argparse.Namespace, engine: Engine) -> None:
    with database.session_scope(engine) as session:
        if not crud.delete_expense(session, args.expense_id):
            raise crud.EntityNotFoundError(f"Expense {args.expense_id} not found")
    print(f"[{PROG}] deleted expense id={args.expense_id}")


def _handle_summary(args: argparse.Namespace, engine: Engine) -> None:
    filters = schemas.SummaryFilter(
        start_date=args.start_date,
        end_date=args.end_date,
        category=args.category,
        payment_method=args.payment_method,
    )
    with database.session_scope(engine) as session:
        _print_json(reporting.get_expense_summary(crud.SqlExpenseStore(session), filters))


def _handle_categories(args: argparse.Namespace, engine: Engine) -> None:
    with database.session_scope(engine) as session:
        totals = reporting.get_category_totals(crud.SqlExpenseStore(session), args.start_date, args.end_date)
        _print_json(totals)


def _handle_monthly(args: argparse.Namespace, engine: Engine) -> None:
    with database.session_scope(engine) as session:
        summaries = reporting.get_monthly_summaries(
            crud.SqlExpenseStore(session),
            year=args.year,
            limit=args.limit,
        )
        _print_json(summaries)


def _handle_export(args: argparse.Namespace, engine: Engine) -> None:
    with database.session_scope(engine) as session:
        expenses = crud.list_expenses(session, _expense_filter(args))
        rows = [schemas.ExpenseRead.model_validate(expense).model_dump(mode="json") for expense in expenses]
    frame = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(args.output, index=False)
    print(f"[{PROG}] export rows={len(frame)} path={args.output}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_cli_logging(json_logs=bool(args.json_logs), level=args.log_level)

    url = args.database_url or get_settings().database_url
    engine = database.build_engine(url)
    database.init_db(engine)
    try:
        if args.cmd == "init-db":
            print(f"[{PROG}] database ready url={engine.url.render_as_string(hide_password=True)}")
        elif args.cmd == "add":
            _handle_add(args, engine)
        elif args.cmd == "list":
            _handle_list(args, engine)
        elif args.cmd == "show":
            _handle_show(args, engine)
        elif args.cmd == "delete":
            _handle_delete(args, engine)
        elif args.cmd == "summary":
            _handle_summary(args, engine)
        elif args.cmd == "categories":
            _handle_categories(args, engine)
        elif args.cmd == "monthly":
            _handle_monthly(args, engine)
        elif args.cmd == "export":
            _handle_export(args, engine)
        else:  # pragma: no cover - argparse enforces the choices
            parser.error(f"unknown command {args.cmd!r}")
    except crud.EntityNotFoundError as exc:
        logger.error("%s", exc)
        print(f"[{PROG}] {exc}", file=sys.stderr)
        return 1
    except ValidationError as exc:
        logger.error("Invalid input: %s", exc)
        print(f"[{PROG}] invalid input: {exc}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
