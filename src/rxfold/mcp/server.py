"""MCP server for rxfold: import pharmacy exports and browse medicines via tools.

Run with: python -m rxfold.mcp.server
Configure env: RXFOLD_DB=/path/to/rxfold.db
"""

from __future__ import annotations

import os
from dataclasses import asdict

from mcp.server.fastmcp import FastMCP

from rxfold.config import ImportSettings
from rxfold.db import RxfoldDB
from rxfold.errors import RxfoldError
from rxfold.importer import import_pharmacy_file
from rxfold.models import User

DB_PATH = os.environ.get("RXFOLD_DB", "rxfold.db")

mcp = FastMCP(
    "rxfold",
    instructions=(
        "Family medicine record built from pharmacy prescription exports.\n\n"
        "Key capabilities:\n"
        "- import_pharmacy_records: Import a Walgreens or generic CSV/XLSX export\n"
        "- list_family_members: People whose medicines a user tracks\n"
        "- list_medicines: Medicines per user, optionally per family member\n"
        "- get_medication_logs: Pharmacy fill history, optionally for one medicine\n"
        "- get_database_summary: Table counts and import history\n\n"
        "Imported medicines have placeholder dosage ('1 tablet', as-needed); "
        "confirm the real schedule with the user before relying on it."
    ),
)


def _get_db() -> RxfoldDB:
    db = RxfoldDB(DB_PATH)
    db.init_schema()
    return db


@mcp.tool()
def import_pharmacy_records(
    file_path: str,
    user_id: str = "local",
    first_name: str = "",
    last_name: str = "",
    format: str = "auto",
    dedupe_logs: bool = False,
) -> dict | str:
    """Import a pharmacy export (CSV or XLSX) for a user.

    Args:
        file_path: Path to the export on the server's filesystem.
        user_id: User the records belong to.
        first_name: The user's first name (used to recognize their own exports).
        last_name: The user's last name.
        format: "auto", "walgreens", "cvs" or "generic".
        dedupe_logs: Skip logging a fill that is already logged.

    Returns the import result with summary counters. Check errorsCount in the
    summary: success is true whenever the file itself could be read.
    """
    user = User(id=user_id, first_name=first_name, last_name=last_name)
    db = _get_db()
    try:
        result = import_pharmacy_file(
            file_path, user, db, format_hint=format,
            settings=ImportSettings(dedupe_logs=dedupe_logs),
        )
        return result.to_dict()
    except RxfoldError as e:
        return f"Error: {e}"
    finally:
        db.close()


@mcp.tool()
def list_family_members(user_id: str = "local") -> list[dict]:
    """List the family members recorded for a user, including "self"."""
    db = _get_db()
    try:
        return [asdict(m) for m in db.list_family_members(user_id)]
    finally:
        db.close()


@mcp.tool()
def list_medicines(user_id: str = "local", family_member_id: int = 0) -> list[dict]:
    """List medicines for a user.

    Args:
        user_id: User whose medicines to list.
        family_member_id: Restrict to one family member (0 = all members).
    """
    db = _get_db()
    try:
        medicines = db.list_medicines(user_id, family_member_id or None)
        return [asdict(m) for m in medicines]
    finally:
        db.close()


@mcp.tool()
def get_medication_logs(user_id: str = "local", medicine_name: str = "") -> list[dict]:
    """Get medication log entries (pharmacy fills), newest first.

    Args:
        user_id: User whose logs to list.
        medicine_name: Partial, case-insensitive medicine name filter.
    """
    db = _get_db()
    try:
        logs = db.list_medication_logs(user_id)
        if medicine_name:
            wanted = {
                m.id for m in db.list_medicines(user_id)
                if medicine_name.lower() in m.name.lower()
            }
            logs = [log for log in logs if log.medicine_id in wanted]
        return [asdict(log) for log in logs]
    finally:
        db.close()


@mcp.tool()
def get_database_summary() -> dict:
    """Get an overview of what data is in the database."""
    db = _get_db()
    try:
        return {"table_counts": db.summary(), "import_history": db.imports()}
    finally:
        db.close()


def main():
    mcp.run()


if __name__ == "__main__":
    main()
