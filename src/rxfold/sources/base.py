"""Pharmacy format configs and format auto-detection."""

from __future__ import annotations

from dataclasses import dataclass, field

from rxfold.models import PATIENT_INFO_KEY, RawRow

AUTO = "auto"
WALGREENS = "walgreens"
CVS = "cvs"
GENERIC = "generic"

SOURCE_FORMATS = (WALGREENS, CVS, GENERIC)


@dataclass
class PharmacyConfig:
    """Layout facts for one pharmacy chain's export."""

    name: str  # format tag, one of SOURCE_FORMATS
    display_name: str  # stored as Medicine.pharmacy_name
    # Lower-cased header names that identify the chain on their own
    header_markers: list[str] = field(default_factory=list)
    # Substring that identifies the chain when found in any cell
    content_marker: str = ""
    # Known pharmacist initials printed in the "Pharmacist" column
    operator_initials: list[str] = field(default_factory=list)
    # Exact first cell of the prescription table header row
    header_token: str = ""
    # Preamble lines that are boilerplate rather than patient info
    banner_patterns: list[str] = field(default_factory=list)
    # First-cell prefixes of summary/footer rows after the table
    trailer_labels: list[str] = field(default_factory=list)


WALGREENS_CONFIG = PharmacyConfig(
    name=WALGREENS,
    display_name="Walgreens",
    header_markers=["fill date", "rx #", "ndc#"],
    content_marker="Walgreens",
    operator_initials=["SMM"],
    header_token="Fill Date",
    banner_patterns=[
        r"Confidential Prescription Records",
        r"Showing\s+Prescriptions",
    ],
    trailer_labels=[
        "Total",
        "Generics Saved You",
        "Insurance Saved You",
        "Please be aware",
        "Thank you",
        "Walgreen Co.",
    ],
)

CVS_CONFIG = PharmacyConfig(
    name=CVS,
    display_name="CVS",
    header_markers=["date filled", "prescription number"],
    content_marker="CVS",
)

GENERIC_CONFIG = PharmacyConfig(name=GENERIC, display_name="")

PHARMACY_CONFIGS = {c.name: c for c in (WALGREENS_CONFIG, CVS_CONFIG, GENERIC_CONFIG)}


def _headers(records: list[RawRow]) -> set[str]:
    headers: set[str] = set()
    for r in records:
        headers.update(k.strip().lower() for k in r if not k.startswith("_"))
    return headers


def _any_value_contains(records: list[RawRow], needle: str) -> bool:
    return any(needle in str(v) for r in records for v in r.values())


def detect_format(
    records: list[RawRow], operator_initials: list[str] | None = None
) -> str:
    """Classify rows as 'walgreens', 'cvs' or 'generic'.

    Each signal is weak on its own and any one is enough: real exports vary
    in header casing and spacing. Walgreens is checked before CVS.
    """
    if not records:
        return GENERIC

    headers = _headers(records)
    initials = set(
        WALGREENS_CONFIG.operator_initials if operator_initials is None else operator_initials
    )

    if (
        any(PATIENT_INFO_KEY in r for r in records)
        or headers & set(WALGREENS_CONFIG.header_markers)
        or any(str(r.get("Pharmacist", "")).strip() in initials for r in records if initials)
        or _any_value_contains(records, WALGREENS_CONFIG.content_marker)
    ):
        return WALGREENS

    if headers & set(CVS_CONFIG.header_markers) or _any_value_contains(
        records, CVS_CONFIG.content_marker
    ):
        return CVS

    return GENERIC
