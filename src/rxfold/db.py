"""SQLite database layer for rxfold.

RxfoldDB wraps a SQLite database with:
- Schema initialization from schema.sql
- Family member, medicine and medication log persistence, including the
  case-insensitive name lookups the importer reconciles against
- Read-only query helper returning list[dict]
- Import logging for audit trail
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path

from rxfold.models import (
    RELATIONSHIPS,
    FamilyMember,
    ImportResult,
    MedicationLog,
    Medicine,
    User,
)

DEFAULT_SELF_FIRST_NAME = "User"
DEFAULT_SELF_LAST_NAME = "Name"


def _get_schema_sql() -> str:
    """Read the schema.sql file bundled with the package."""
    schema_path = Path(__file__).parent / "schema.sql"
    return schema_path.read_text()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _regexp(pattern: str, value: str | None) -> bool:
    """SQLite REGEXP implementation: case-insensitive search."""
    if value is None:
        return False
    return re.search(pattern, value, re.IGNORECASE) is not None


def name_pattern(name: str) -> str:
    """Regex matching `name` anywhere in a stored value, literally."""
    return re.escape(name.strip())


def _insert_columns(record) -> tuple[list[str], list]:
    """Column names and values for INSERT, excluding the autoincrement id."""
    row = asdict(record)
    row.pop("id", None)
    return list(row.keys()), list(row.values())


def _row_to(dc_type: type, row: sqlite3.Row):
    names = {f.name for f in fields(dc_type)}
    data = {k: row[k] for k in row.keys() if k in names}
    for flag in ("is_active", "was_scheduled"):
        if flag in data:
            data[flag] = bool(data[flag])
    return dc_type(**data)


class RxfoldDB:
    """SQLite-backed store for family members, medicines and medication logs."""

    def __init__(self, db_path: str = "rxfold.db"):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.create_function("REGEXP", 2, _regexp, deterministic=True)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")

    def init_schema(self) -> None:
        """Create all tables from schema.sql (IF NOT EXISTS)."""
        self.conn.executescript(_get_schema_sql())

    def _insert(self, table: str, record) -> int:
        cols, values = _insert_columns(record)
        placeholders = ", ".join("?" for _ in cols)
        with self.conn:
            cursor = self.conn.execute(
                f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})",
                values,
            )
        # lastrowid is always int after INSERT
        return cursor.lastrowid or 0

    # --- Family members ---

    def find_self(self, user_id: str) -> FamilyMember | None:
        row = self.conn.execute(
            "SELECT * FROM family_members WHERE user_id = ? AND relationship = 'self'",
            (user_id,),
        ).fetchone()
        return _row_to(FamilyMember, row) if row else None

    def find_or_create_self(self, user: User) -> FamilyMember:
        """Return the user's "self" member, creating it on first use.

        Safe to call repeatedly: the schema allows one self member per user.
        """
        member = self.find_self(user.id)
        if member is not None:
            return member
        member = FamilyMember(
            user_id=user.id,
            first_name=user.first_name or DEFAULT_SELF_FIRST_NAME,
            last_name=user.last_name or DEFAULT_SELF_LAST_NAME,
            relationship="self",
        )
        return self.create_family_member(member)

    def find_family_member(
        self, user_id: str, first_name: str, last_name: str
    ) -> FamilyMember | None:
        """First member of the user whose names contain first/last (case-insensitive)."""
        row = self.conn.execute(
            "SELECT * FROM family_members "
            "WHERE user_id = ? AND first_name REGEXP ? AND last_name REGEXP ? "
            "ORDER BY id LIMIT 1",
            (user_id, name_pattern(first_name), name_pattern(last_name)),
        ).fetchone()
        return _row_to(FamilyMember, row) if row else None

    def create_family_member(self, member: FamilyMember) -> FamilyMember:
        if member.relationship not in RELATIONSHIPS:
            raise ValueError(f"Unknown relationship: {member.relationship!r}")
        member.created_at = member.created_at or _now()
        member.id = self._insert("family_members", member)
        return member

    def list_family_members(self, user_id: str) -> list[FamilyMember]:
        rows = self.conn.execute(
            "SELECT * FROM family_members WHERE user_id = ? "
            "ORDER BY relationship, first_name",
            (user_id,),
        ).fetchall()
        return [_row_to(FamilyMember, r) for r in rows]

    # --- Medicines ---

    def find_medicine(self, user_id: str, family_member_id: int, name: str) -> Medicine | None:
        """First medicine of the member whose name contains `name` (case-insensitive)."""
        row = self.conn.execute(
            "SELECT * FROM medicines "
            "WHERE user_id = ? AND family_member_id = ? AND name REGEXP ? "
            "ORDER BY id LIMIT 1",
            (user_id, family_member_id, name_pattern(name)),
        ).fetchone()
        return _row_to(Medicine, row) if row else None

    def create_medicine(self, medicine: Medicine) -> Medicine:
        now = _now()
        medicine.created_at = medicine.created_at or now
        medicine.updated_at = now
        medicine.id = self._insert("medicines", medicine)
        return medicine

    def save_medicine(self, medicine: Medicine) -> Medicine:
        """Write every column of an existing medicine back to the database."""
        if medicine.id is None:
            raise ValueError("Cannot save a medicine that was never created")
        medicine.updated_at = _now()
        cols, values = _insert_columns(medicine)
        assignments = ", ".join(f"{c} = ?" for c in cols)
        with self.conn:
            self.conn.execute(
                f"UPDATE medicines SET {assignments} WHERE id = ?",
                values + [medicine.id],
            )
        return medicine

    def list_medicines(self, user_id: str, family_member_id: int | None = None) -> list[Medicine]:
        if family_member_id is None:
            rows = self.conn.execute(
                "SELECT * FROM medicines WHERE user_id = ? ORDER BY name", (user_id,)
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM medicines WHERE user_id = ? AND family_member_id = ? ORDER BY name",
                (user_id, family_member_id),
            ).fetchall()
        return [_row_to(Medicine, r) for r in rows]

    # --- Medication logs ---

    def create_medication_log(self, log: MedicationLog) -> MedicationLog:
        log.created_at = log.created_at or _now()
        log.id = self._insert("medication_logs", log)
        return log

    def find_medication_log(
        self, medicine_id: int, taken_at: str, prescription_number: str
    ) -> MedicationLog | None:
        """Existing log for the same fill event, used only when dedupe is enabled."""
        row = self.conn.execute(
            "SELECT * FROM medication_logs "
            "WHERE medicine_id = ? AND taken_at = ? AND prescription_number = ? "
            "ORDER BY id LIMIT 1",
            (medicine_id, taken_at, prescription_number),
        ).fetchone()
        return _row_to(MedicationLog, row) if row else None

    def list_medication_logs(self, user_id: str, medicine_id: int | None = None) -> list[MedicationLog]:
        if medicine_id is None:
            rows = self.conn.execute(
                "SELECT * FROM medication_logs WHERE user_id = ? ORDER BY taken_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM medication_logs WHERE user_id = ? AND medicine_id = ? "
                "ORDER BY taken_at DESC, id DESC",
                (user_id, medicine_id),
            ).fetchall()
        return [_row_to(MedicationLog, r) for r in rows]

    # --- Import audit ---

    def log_import(
        self, user_id: str, file_path: str, result: ImportResult, duration: float
    ) -> int:
        """Record one import call in the import_log table."""
        with self.conn:
            cursor = self.conn.execute(
                """INSERT INTO import_log (
                    user_id, file_path, source_format, imported_at, duration_seconds,
                    total_records, medicines_created, medicines_updated,
                    logs_created, errors_count
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    user_id,
                    file_path,
                    result.source_format,
                    _now(),
                    duration,
                    result.total_records,
                    result.medicines_created,
                    result.medicines_updated,
                    result.logs_created,
                    result.errors_count,
                ),
            )
        return cursor.lastrowid or 0

    def imports(self, user_id: str | None = None) -> list[dict]:
        """Return import history, newest first."""
        if user_id is None:
            return self.query("SELECT * FROM import_log ORDER BY id DESC")
        return self.query(
            "SELECT * FROM import_log WHERE user_id = ? ORDER BY id DESC", (user_id,)
        )

    def query(self, sql: str, params: tuple = ()) -> list[dict]:
        """Execute a read-only SQL query and return results as list of dicts."""
        cursor = self.conn.execute(sql, params)
        columns = [desc[0] for desc in cursor.description] if cursor.description else []
        return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]

    def summary(self) -> dict[str, int]:
        """Return row counts for all tables (auto-discovered from schema)."""
        rows = self.query(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' "
            "ORDER BY name"
        )
        result = {}
        for r in rows:
            table = r["name"]
            row = self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            result[table] = row[0]
        return result

    def close(self) -> None:
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
