#!/usr/bin/env python3
"""CLI entry point for rxfold package.

Usage:
    python -m rxfold import <file> [--format auto] [--db rxfold.db] [--json]
    python -m rxfold summary [--db rxfold.db]
    python -m rxfold medicines [--db rxfold.db] [--user-id local]
    python -m rxfold logs [--db rxfold.db] [--user-id local] [--limit 20]
    python -m rxfold init-config [--output rxfold.toml]
    python -m rxfold serve-mcp [--db rxfold.db]
"""

import argparse
import json
import sys

DEFAULT_DB = "rxfold.db"
DEFAULT_CONFIG = "rxfold.toml"


def main():
    parser = argparse.ArgumentParser(
        prog="rxfold",
        description="Import pharmacy prescription exports into a family medicine record.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # --- import ---
    import_parser = sub.add_parser("import", help="Import a pharmacy CSV/XLSX export")
    import_parser.add_argument("file", help="Path to the export file")
    import_parser.add_argument(
        "--format",
        default="",
        choices=["", "auto", "walgreens", "cvs", "generic"],
        help="Pharmacy format (default: from config, usually auto-detect)",
    )
    import_parser.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")
    import_parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to rxfold.toml")
    import_parser.add_argument("--user-id", default="", help="Import on behalf of this user")
    import_parser.add_argument("--first-name", default="", help="Requesting user's first name")
    import_parser.add_argument("--last-name", default="", help="Requesting user's last name")
    import_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    # --- summary ---
    summary_parser = sub.add_parser("summary", help="Show database summary")
    summary_parser.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")

    # --- medicines ---
    meds_parser = sub.add_parser("medicines", help="List medicines")
    meds_parser.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")
    meds_parser.add_argument("--user-id", default="local", help="User whose medicines to list")

    # --- logs ---
    logs_parser = sub.add_parser("logs", help="List medication log entries")
    logs_parser.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")
    logs_parser.add_argument("--user-id", default="local", help="User whose logs to list")
    logs_parser.add_argument("--limit", type=int, default=20, help="Max entries to show")

    # --- init-config ---
    config_parser = sub.add_parser("init-config", help="Write a default rxfold.toml")
    config_parser.add_argument("--output", default=DEFAULT_CONFIG, help="Config file output path")

    # --- serve-mcp ---
    mcp_parser = sub.add_parser("serve-mcp", help="Start MCP server")
    mcp_parser.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")

    args = parser.parse_args()

    from rxfold.logging_config import setup_logging

    setup_logging("DEBUG" if args.verbose else "WARNING")

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    from rxfold.errors import RxfoldError

    try:
        if args.command == "import":
            _handle_import(args)
        elif args.command == "summary":
            _handle_summary(args)
        elif args.command == "medicines":
            _handle_medicines(args)
        elif args.command == "logs":
            _handle_logs(args)
        elif args.command == "init-config":
            _handle_init_config(args)
        elif args.command == "serve-mcp":
            _handle_serve_mcp(args)
    except RxfoldError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _handle_import(args):
    from rxfold.config import get_import_settings, get_user, load_config
    from rxfold.db import RxfoldDB
    from rxfold.importer import import_pharmacy_file

    config = load_config(args.config)
    settings = get_import_settings(config)
    user = get_user(config)
    if args.user_id:
        user.id = args.user_id
    if args.first_name:
        user.first_name = args.first_name
    if args.last_name:
        user.last_name = args.last_name

    with RxfoldDB(args.db) as db:
        db.init_schema()
        result = import_pharmacy_file(
            args.file, user, db, format_hint=args.format or settings.default_format,
            settings=settings,
        )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    _print_import_result(result)


def _print_import_result(result):
    print(f"\n--- Imported {result.source_format} export ---")
    if result.patient and result.patient.name:
        print(f"  Patient: {result.patient.name}")
    for key, value in result.summary().items():
        print(f"  {key:<20} {value:>6}")
    for warning in result.warnings:
        print(f"  WARNING: {warning}")
    for error in result.errors:
        print(f"  ERROR: {error}")


def _handle_summary(args):
    from rxfold.db import RxfoldDB

    with RxfoldDB(args.db) as db:
        db.init_schema()
        _print_db_summary(db)


def _print_db_summary(db):
    summary = db.summary()
    print(f"\n{'='*40}")
    print("Database Summary")
    print(f"{'='*40}")
    for table, count in summary.items():
        print(f"  {table:<25} {count:>6}")

    imports = db.imports()
    if imports:
        print("\nImport History:")
        for imp in imports[:10]:
            print(
                f"  {imp['imported_at'][:19]}  {imp['source_format']:<10} "
                f"records={imp['total_records']} errors={imp['errors_count']}  {imp['file_path']}"
            )


def _handle_medicines(args):
    from rxfold.db import RxfoldDB

    with RxfoldDB(args.db) as db:
        db.init_schema()
        members = {m.id: m for m in db.list_family_members(args.user_id)}
        medicines = db.list_medicines(args.user_id)

    if not medicines:
        print("No medicines found.")
        return

    print(f"\n  {'Name':<25} {'Strength':<10} {'Form':<10} {'Member':<20} {'Rx #':<14} Prescriber")
    print(f"  {'-'*25} {'-'*10} {'-'*10} {'-'*20} {'-'*14} {'-'*15}")
    for med in medicines:
        member = members.get(med.family_member_id)
        member_name = member.full_name if member else "?"
        print(
            f"  {med.name[:25]:<25} {med.strength:<10} {med.form:<10} "
            f"{member_name[:20]:<20} {med.prescription_number:<14} {med.prescriber}"
        )


def _handle_logs(args):
    from rxfold.db import RxfoldDB

    with RxfoldDB(args.db) as db:
        db.init_schema()
        logs = db.list_medication_logs(args.user_id)[: args.limit]
        names = {m.id: m.name for m in db.list_medicines(args.user_id)}

    if not logs:
        print("No medication log entries found.")
        return

    for log in logs:
        print(f"  {log.taken_at}  {names.get(log.medicine_id, '?'):<25} {log.notes}")


def _handle_init_config(args):
    from rxfold.config import generate_config

    path = generate_config(config_path=args.output)
    print(f"Config written to {path}")


def _handle_serve_mcp(args):
    import os

    os.environ["RXFOLD_DB"] = args.db
    from rxfold.mcp.server import mcp

    mcp.run()


if __name__ == "__main__":
    main()
