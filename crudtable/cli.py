"""
crudtable CLI — Drive a configured table from the terminal.

Commands:
- crudtable show <table>                      — fetch and print rows
- crudtable add <table> --set k=v ...         — Add dialog, stage fields, Confirm
- crudtable edit <table> <index> --set k=v    — select row, Edit, stage fields, Confirm
- crudtable delete <table> <index> [...]      — select rows, Delete
- crudtable validate                          — validate crudtable.yaml
- crudtable logs [requests|tables|system]     — print a day's structured log entries
- crudtable run                               — start the Reflex dev server

The table commands walk the same controller gestures the web page uses.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import yaml

from crudtable.engine.errors import CrudTableError
from crudtable.engine.logging import OBJECT_TYPES

logger = logging.getLogger("crudtable.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="crudtable",
        description="crudtable — generic CRUD table over HTTP endpoints",
    )
    parser.add_argument("--config", default=None, help="Path to crudtable.yaml (default: auto-discover)")
    parser.add_argument("--base-url", default=None, help="Override client.base_url")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    show_parser = subparsers.add_parser("show", help="Fetch and print a table")
    show_parser.add_argument("table", help="Table name (e.g., tasks)")

    add_parser = subparsers.add_parser("add", help="Add a record")
    add_parser.add_argument("table", help="Table name")
    add_parser.add_argument("--set", dest="fields", action="append", default=[], metavar="FIELD=VALUE")

    edit_parser = subparsers.add_parser("edit", help="Edit the record at a row index")
    edit_parser.add_argument("table", help="Table name")
    edit_parser.add_argument("index", type=int, help="Row index as printed by 'show'")
    edit_parser.add_argument("--set", dest="fields", action="append", default=[], metavar="FIELD=VALUE")

    delete_parser = subparsers.add_parser("delete", help="Delete the records at row indices")
    delete_parser.add_argument("table", help="Table name")
    delete_parser.add_argument("indices", type=int, nargs="+", help="Row indices")

    subparsers.add_parser("validate", help="Validate crudtable.yaml")

    logs_parser = subparsers.add_parser("logs", help="Print a day's structured log entries")
    logs_parser.add_argument("object_type", nargs="?", default="requests", choices=list(OBJECT_TYPES))
    logs_parser.add_argument("--table", default=None, help="Only entries for this table")
    logs_parser.add_argument("--date", default=None, help="YYYY-MM-DD (default: today)")
    logs_parser.add_argument("--errors", action="store_true", help="Only ERROR entries")
    logs_parser.add_argument("--search", default=None, help="Case-insensitive text match on the entry")

    run_parser = subparsers.add_parser("run", help="Start the Reflex dev server")
    run_parser.add_argument("--host", default="0.0.0.0", help="Backend host to bind (default: 0.0.0.0)")
    run_parser.add_argument("--port", type=int, default=3000, help="Frontend port (default: 3000)")
    run_parser.add_argument("--backend-port", type=int, default=8000, help="Backend port (default: 8000)")
    run_parser.add_argument("--env", choices=["dev", "prod"], default="dev", help="Environment (default: dev)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "show":
        return cmd_show(args)
    elif args.command == "add":
        return cmd_add(args)
    elif args.command == "edit":
        return cmd_edit(args)
    elif args.command == "delete":
        return cmd_delete(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "logs":
        return cmd_logs(args)
    elif args.command == "run":
        return cmd_run(args)
    else:
        parser.print_help()
        return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_assignments(items: List[str]) -> Dict[str, Any]:
    """
    Parse ``FIELD=VALUE`` pairs. Values are read as YAML scalars, so
    ``type=2`` stages the integer 2 and ``name='2'`` the string "2".
    """
    result: Dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise ValueError(f"Expected FIELD=VALUE, got '{item}'")
        key, raw = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Empty field name in '{item}'")
        try:
            value = yaml.safe_load(raw) if raw.strip() else ""
        except yaml.YAMLError:
            value = raw
        result[key] = value
    return result


def _make_controller(args: argparse.Namespace, failures: List[Tuple[str, CrudTableError]]):
    """Load config and build a controller that records swallowed failures."""
    from crudtable.engine.config import load_config, get_table_config
    from crudtable.table.controller import build_controller

    config = load_config(args.config)
    client = config.client
    if args.base_url:
        client = client.model_copy(update={"base_url": args.base_url})

    return build_controller(
        args.table,
        get_table_config(args.table),
        client_config=client,
        log_payloads=config.logging.log_payloads,
        on_request_failed=lambda operation, error: failures.append((operation, error)),
    )


def _print_table(controller) -> None:
    header = ["#"] + [name for name, _tooltip in controller.header_cells()]
    rows = [
        [str(index)] + ["" if c is None else str(c) for c in cells]
        for index, cells in enumerate(controller.table_cells())
    ]
    widths = [max(len(r[i]) for r in [header] + rows) for i in range(len(header))]
    print("  ".join(h.ljust(w) for h, w in zip(header, widths)))
    print("  ".join("-" * w for w in widths))
    for row in rows:
        print("  ".join(c.ljust(w) for c, w in zip(row, widths)))
    print(f"\n{len(rows)} row(s)")


def _report(failures: List[Tuple[str, CrudTableError]]) -> int:
    if not failures:
        return 0
    for operation, error in failures:
        print(f"[ERROR] {operation}: {error.message}")
    return 1


def _run(args: argparse.Namespace, gesture) -> int:
    """Build a controller, run ``gesture(controller)`` on a fresh loop, report failures."""
    failures: List[Tuple[str, CrudTableError]] = []

    async def _session() -> None:
        controller = _make_controller(args, failures)
        try:
            await gesture(controller)
            await controller.wait_idle()
        finally:
            await controller.aclose()

    try:
        asyncio.run(_session())
    except CrudTableError as e:
        print(f"[ERROR] {e.message}")
        return 1
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1
    return _report(failures)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_show(args: argparse.Namespace) -> int:
    """Fetch and print the table."""
    async def gesture(controller) -> None:
        if await controller.fetch_data():
            _print_table(controller)

    return _run(args, gesture)


def cmd_add(args: argparse.Namespace) -> int:
    """Open the Add dialog, stage each --set field, Confirm."""
    try:
        assignments = parse_assignments(args.fields)
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1

    async def gesture(controller) -> None:
        controller.open_dialog("add")
        for key, value in assignments.items():
            controller.update_field(key, value)
        controller.close_dialog_submit()
        print(f"[OK] Add submitted to {args.table}")

    return _run(args, gesture)


def cmd_edit(args: argparse.Namespace) -> int:
    """Select one row, open Edit, stage each --set field, Confirm."""
    try:
        assignments = parse_assignments(args.fields)
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1

    async def gesture(controller) -> None:
        if not await controller.fetch_data():
            return
        if args.index not in controller.handle_row_selection([args.index]):
            raise ValueError(f"Row {args.index} does not exist in {args.table}")
        controller.open_dialog("edit")
        for key, value in assignments.items():
            controller.update_field(key, value)
        controller.close_dialog_submit()
        print(f"[OK] Edit of row {args.index} submitted to {args.table}")

    return _run(args, gesture)


def cmd_delete(args: argparse.Namespace) -> int:
    """Select the given rows and Delete them."""
    async def gesture(controller) -> None:
        if not await controller.fetch_data():
            return
        selected = controller.handle_row_selection(args.indices)
        if not selected:
            raise ValueError(f"None of rows {args.indices} exist in {args.table}")
        controller.delete_selected()
        print(f"[OK] Delete of {len(selected)} row(s) submitted to {args.table}")

    return _run(args, gesture)


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate crudtable.yaml and list its tables."""
    from crudtable.engine.config import load_config

    try:
        config = load_config(args.config)
    except CrudTableError as e:
        print(f"[ERROR] {e.message}")
        return 1

    print(f"[OK] Config valid — client: {config.client.base_url}")
    if not config.tables:
        print("  No tables configured; built-in 'tasks' table will be used.")
    for name, table in sorted(config.tables.items()):
        print(f"  {name}: {len(table.table_fields)} column(s), primary field '{table.primary_field}'")
    return 0


def _format_log_entry(entry: Dict[str, Any]) -> str:
    head = f"{entry.get('timestamp', '-')}  {entry.get('level', '-'):<5}  {entry.get('table', '-')}"
    if entry.get("event") == "table_request":
        line = (
            f"{head}  {entry.get('operation')} {entry.get('method')} {entry.get('url')}"
            f" -> {entry.get('status_code')} ({entry.get('duration_ms')}ms)"
        )
        if entry.get("error"):
            line += f"  {entry['error']}"
        return line
    line = f"{head}  {entry.get('event')}"
    if entry.get("details"):
        line += f"  {json.dumps(entry['details'], default=str)}"
    return line


def cmd_logs(args: argparse.Namespace) -> int:
    """Print one day's entries of one log type, oldest first."""
    from crudtable.engine.config import load_config
    from crudtable.engine.logging import FileLogger

    try:
        config = load_config(args.config)
    except CrudTableError as e:
        print(f"[ERROR] {e.message}")
        return 1

    day = None
    if args.date:
        try:
            day = date.fromisoformat(args.date)
        except ValueError:
            print(f"[ERROR] Invalid date '{args.date}', expected YYYY-MM-DD")
            return 1

    filters: Dict[str, Any] = {}
    if args.table:
        filters["table"] = args.table
    if args.errors:
        filters["level"] = "ERROR"

    entries = FileLogger(config.logging.directory).read(args.object_type, day=day, filters=filters)
    if args.search:
        needle = args.search.lower()
        entries = [e for e in entries if needle in json.dumps(e, default=str).lower()]

    if not entries:
        print(f"No {args.object_type} log entries for {(day or date.today()).isoformat()}")
        return 0
    for entry in entries:
        print(_format_log_entry(entry))
    print(f"\n{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Start the Reflex dev server."""
    import subprocess

    print("Starting crudtable (Reflex) server...")
    try:
        cmd = [
            "reflex", "run",
            "--backend-host", args.host,
            "--frontend-port", str(args.port),
            "--backend-port", str(args.backend_port),
            "--env", args.env,
        ]
        result = subprocess.run(cmd, check=True)
        return result.returncode
    except FileNotFoundError:
        print("[ERROR] 'reflex' command not found. Install: pip install reflex")
        return 1
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
