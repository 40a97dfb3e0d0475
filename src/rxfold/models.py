"""Data model for pharmacy imports.

The first group of dataclasses is produced by the source parsers and lives
only for the duration of one import. The entity dataclasses (FamilyMember,
Medicine, MedicationLog) map 1:1 to SQLite tables in schema.sql.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal

# Forms a medication string can resolve to; "tablet" is the default.
MEDICATION_FORMS = (
    "tablet",
    "capsule",
    "liquid",
    "cream",
    "ointment",
    "drops",
    "spray",
    "patch",
    "injection",
)

RELATIONSHIPS = (
    "self",
    "spouse",
    "partner",
    "child",
    "parent",
    "sibling",
    "grandparent",
    "grandchild",
    "other",
)

DOSAGE_FREQUENCIES = (
    "once-daily",
    "twice-daily",
    "three-times-daily",
    "four-times-daily",
    "every-other-day",
    "weekly",
    "as-needed",
    "custom",
)

# Header-mapped row from a tabular file. Preamble lines of a Walgreens export
# are surfaced as {"_patient_info": line, "_patient_line_index": n}.
RawRow = dict[str, str]

PATIENT_INFO_KEY = "_patient_info"
PATIENT_LINE_INDEX_KEY = "_patient_line_index"
# 1-based row of a table record in the source grid
ROW_NUMBER_KEY = "_row_number"


@dataclass
class PatientProfile:
    """Best-effort patient facts from an export preamble. Every field is optional."""

    name: str = ""
    address: str = ""
    phone: str = ""  # 10 digits
    date_of_birth: date | None = None
    gender: str = ""  # "Male", "Female" or ""

    def name_parts(self) -> tuple[str, str] | None:
        """Return (first, last) when the name has at least two tokens."""
        tokens = self.name.split()
        if len(tokens) < 2:
            return None
        return tokens[0], tokens[-1]


@dataclass
class ParsedMedication:
    """A "Name Strength Form" string split into its parts."""

    name: str = ""
    strength: str = ""  # e.g. "10mg"
    form: str = "tablet"  # one of MEDICATION_FORMS
    dosage: str = ""


@dataclass
class PrescriptionFillRecord:
    """One validated prescription fill from a pharmacy export."""

    medication: ParsedMedication
    fill_date: date
    quantity: int = 0
    prescriber: str = ""
    prescription_number: str = ""
    price: Decimal = Decimal("0")
    ndc: str = ""
    raw_medication: str = ""  # source text before parsing
    row_number: int = 0  # 1-based row in the source file


@dataclass
class User:
    """The user an import runs on behalf of."""

    id: str
    first_name: str = ""
    last_name: str = ""


@dataclass
class FamilyMember:
    """A person whose medicines the user tracks, including the user ("self")."""

    user_id: str
    first_name: str
    last_name: str
    relationship: str = "self"  # one of RELATIONSHIPS
    phone: str = ""
    date_of_birth: str = ""  # ISO YYYY-MM-DD
    gender: str = ""  # male, female, other, prefer-not-to-say
    notes: str = ""
    is_active: bool = True
    id: int | None = None
    created_at: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Medicine:
    """A medicine tracked for one family member."""

    user_id: str
    family_member_id: int
    name: str
    strength: str = ""
    form: str = "tablet"
    prescription_number: str = ""
    prescriber: str = ""  # prescribedBy.doctorName
    total_pills: int = 0
    remaining_pills: int = 0
    dosage_amount: str = "1 tablet"
    dosage_frequency: str = "as-needed"
    prescription_date: str = ""  # ISO YYYY-MM-DD
    start_date: str = ""  # ISO YYYY-MM-DD
    copay: float = 0.0
    pharmacy_name: str = ""
    pharmacy_ndc: str = ""
    status: str = "active"
    notes: str = ""
    id: int | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class MedicationLog:
    """Append-only record of a dose or, for imports, a pharmacy fill."""

    medicine_id: int
    user_id: str
    family_member_id: int
    taken_at: str  # ISO YYYY-MM-DD
    recorded_by: str = "import"
    dose_amount: str = "Prescription filled"
    was_scheduled: bool = False
    prescription_number: str = ""
    notes: str = ""
    id: int | None = None
    created_at: str = ""


def _jsonable(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class ImportResult:
    """Everything one import produced. Returned to the caller, never stored."""

    source_format: str = ""
    success: bool = True
    patient: PatientProfile | None = None
    medicines: list[Medicine] = field(default_factory=list)
    logs: list[MedicationLog] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_records: int = 0
    medicines_created: int = 0
    medicines_updated: int = 0
    logs_created: int = 0
    errors_count: int = 0

    def record_error(self, row: int, message: str) -> None:
        self.errors.append(f"Row {row}: {message}")
        self.errors_count += 1

    def summary(self) -> dict[str, int]:
        """Counters keyed the way the upload UI expects them."""
        return {
            "totalRecords": self.total_records,
            "medicinesCreated": self.medicines_created,
            "medicinesUpdated": self.medicines_updated,
            "logsCreated": self.logs_created,
            "errorsCount": self.errors_count,
        }

    def to_dict(self) -> dict:
        """JSON-ready rendering (dates as ISO strings, Decimals as floats)."""
        return {
            "success": self.success,
            "format": self.source_format,
            "patient": _jsonable(asdict(self.patient)) if self.patient else None,
            "medicines": [_jsonable(asdict(m)) for m in self.medicines],
            "logs": [_jsonable(asdict(log)) for log in self.logs],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "summary": self.summary(),
        }
