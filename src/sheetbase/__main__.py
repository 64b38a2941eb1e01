"""CLI entry point for sheetbase.

Usage:
    python -m sheetbase tables <spreadsheet_id_or_url>
    python -m sheetbase show <spreadsheet_id_or_url> <table>
    python -m sheetbase add-table <spreadsheet_id_or_url> <table> <column>...
    python -m sheetbase drop-table <spreadsheet_id_or_url> <table>
    python -m sheetbase rename-table <spreadsheet_id_or_url> <table> <new_name>
    python -m sheetbase delete-rows <spreadsheet_id_or_url> <table> <index>...
    python -m sheetbase shrink <spreadsheet_id_or_url> <table>
    python -m sheetbase set-token <access_token>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence

from sheetbase.config import Settings, store_access_token
from sheetbase.database import Database
from sheetbase.exceptions import SheetbaseError
from sheetbase.transport import Transport
from sheetbase.utils import parse_spreadsheet_id


def _create_transport(args: argparse.Namespace) -> Transport:
    settings = Settings.load(access_token=args.token, api_key=args.api_key)
    return settings.create_transport()


async def _with_database(
    args: argparse.Namespace,
    action: Callable[[Database], Awaitable[int]],
    with_data: bool = True,
) -> int:
    """Open the spreadsheet, run action and report errors on stderr."""
    try:
        transport = _create_transport(args)
    except ValueError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1

    db = Database(parse_spreadsheet_id(args.spreadsheet), transport)
    try:
        await db.load_data(with_data=with_data)
        return await action(db)
    except SheetbaseError as e:
        print(f"Error: {e}", file=sys.stderr)
        for note in getattr(e, "__notes__", []):
            print(f"  {note}", file=sys.stderr)
        return 1
    finally:
        await db.close()


async def cmd_tables(args: argparse.Namespace) -> int:
    """List the tables of a spreadsheet."""

    async def action(db: Database) -> int:
        print(f"{db.title} ({db.spreadsheet_id})")
        for table in db.tables_by_index:
            columns = ", ".join(table.column_names) or "-"
            print(
                f"  {table.title}: {table.last_row_with_values} rows, "
                f"{table.row_count}x{table.column_count} grid, columns: {columns}"
            )
        return 0

    return await _with_database(args, action)


async def cmd_show(args: argparse.Namespace) -> int:
    """Print the records of a table as JSON."""

    async def action(db: Database) -> int:
        table = db.get_table(args.table)
        if args.array:
            output: object = {"columns": table.column_names, "rows": table.get_data_array()}
        else:
            output = table.get_data()
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return 0

    return await _with_database(args, action)


async def cmd_add_table(args: argparse.Namespace) -> int:
    """Create a table with a header row."""

    async def action(db: Database) -> int:
        table = await db.add_table(args.table, args.columns, row_count=args.rows)
        print(f"Created table {table.title} (sheetId {table.sheet_id})")
        return 0

    return await _with_database(args, action, with_data=False)


async def cmd_drop_table(args: argparse.Namespace) -> int:
    """Delete a table."""

    async def action(db: Database) -> int:
        await db.drop_table(args.table)
        print(f"Dropped table {args.table}")
        return 0

    return await _with_database(args, action, with_data=False)


async def cmd_rename_table(args: argparse.Namespace) -> int:
    """Rename a table."""

    async def action(db: Database) -> int:
        await db.rename_table(args.table, args.new_name)
        print(f"Renamed table {args.table} to {args.new_name}")
        return 0

    return await _with_database(args, action, with_data=False)


async def cmd_delete_rows(args: argparse.Namespace) -> int:
    """Delete records of a table by index."""

    async def action(db: Database) -> int:
        table = db.get_table(args.table)
        await table.delete_rows(args.indices)
        print(f"Deleted {len(set(args.indices))} rows from {table.title}")
        return 0

    return await _with_database(args, action)


async def cmd_shrink(args: argparse.Namespace) -> int:
    """Resize a table's grid to fit its records and columns."""

    async def action(db: Database) -> int:
        table = db.get_table(args.table)
        await table.shrink_sheet_to_fit_table()
        print(f"Resized {table.title} to {table.row_count}x{table.column_count}")
        return 0

    return await _with_database(args, action)


async def cmd_set_token(args: argparse.Namespace) -> int:
    """Save an access token in the OS keyring."""
    store_access_token(args.access_token)
    print("Token saved to OS keyring")
    return 0


def _add_spreadsheet_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "spreadsheet",
        help="Spreadsheet ID or full Google Sheets URL",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every subcommand."""
    parser = argparse.ArgumentParser(
        prog="sheetbase",
        description="Use Google Sheets tabs as database tables",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log API calls",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="OAuth2 access token (defaults to SHEETBASE_ACCESS_TOKEN)",
    )
    parser.add_argument(
        "--api-key",
        default=None,
        help="API key for read-only access (defaults to SHEETBASE_API_KEY)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # tables subcommand
    tables_parser = subparsers.add_parser("tables", help="List tables")
    _add_spreadsheet_argument(tables_parser)
    tables_parser.set_defaults(func=cmd_tables)

    # show subcommand
    show_parser = subparsers.add_parser("show", help="Print the records of a table")
    _add_spreadsheet_argument(show_parser)
    show_parser.add_argument("table", help="Table name")
    show_parser.add_argument(
        "--array",
        action="store_true",
        help="Print rows as arrays instead of objects",
    )
    show_parser.set_defaults(func=cmd_show)

    # add-table subcommand
    add_parser = subparsers.add_parser("add-table", help="Create a table")
    _add_spreadsheet_argument(add_parser)
    add_parser.add_argument("table", help="Table name")
    add_parser.add_argument("columns", nargs="+", help="Column names")
    add_parser.add_argument(
        "--rows",
        type=int,
        default=20,
        help="Initial number of rows of the sheet (default: 20)",
    )
    add_parser.set_defaults(func=cmd_add_table)

    # drop-table subcommand
    drop_parser = subparsers.add_parser("drop-table", help="Delete a table")
    _add_spreadsheet_argument(drop_parser)
    drop_parser.add_argument("table", help="Table name")
    drop_parser.set_defaults(func=cmd_drop_table)

    # rename-table subcommand
    rename_parser = subparsers.add_parser("rename-table", help="Rename a table")
    _add_spreadsheet_argument(rename_parser)
    rename_parser.add_argument("table", help="Current table name")
    rename_parser.add_argument("new_name", help="New table name")
    rename_parser.set_defaults(func=cmd_rename_table)

    # delete-rows subcommand
    delete_parser = subparsers.add_parser(
        "delete-rows", help="Delete records by 0-based index"
    )
    _add_spreadsheet_argument(delete_parser)
    delete_parser.add_argument("table", help="Table name")
    delete_parser.add_argument("indices", nargs="+", type=int, help="Record indices")
    delete_parser.set_defaults(func=cmd_delete_rows)

    # shrink subcommand
    shrink_parser = subparsers.add_parser(
        "shrink", help="Resize the sheet to fit the table"
    )
    _add_spreadsheet_argument(shrink_parser)
    shrink_parser.add_argument("table", help="Table name")
    shrink_parser.set_defaults(func=cmd_shrink)

    # set-token subcommand
    token_parser = subparsers.add_parser(
        "set-token", help="Save an access token in the OS keyring"
    )
    token_parser.add_argument("access_token", help="OAuth2 access token")
    token_parser.set_defaults(func=cmd_set_token)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    result: int = asyncio.run(args.func(args))
    return result


if __name__ == "__main__":
    sys.exit(main())
