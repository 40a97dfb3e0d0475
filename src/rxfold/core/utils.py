"""Shared parsing helpers: medication strings, dates, prices, quantities."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from rxfold.models import MEDICATION_FORMS, ParsedMedication

_MONTHS = {
    "january": "01",
    "february": "02",
    "march": "03",
    "april": "04",
    "may": "05",
    "june": "06",
    "july": "07",
    "august": "08",
    "september": "09",
    "october": "10",
    "november": "11",
    "december": "12",
}

US_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")
PHONE_RE = re.compile(r"^\d{10}$")

_STRENGTH_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(mg|mcg|g|ml|units?)", re.IGNORECASE)
_FORM_RE = re.compile(
    r"(tablets?|capsules?|liquid|cream|ointment|drops|spray|patch|injection)",
    re.IGNORECASE,
)


def parse_medication_string(text: str | None) -> ParsedMedication:
    """Split "Cyclobenzaprine 10mg Tablets" into name, strength and form.

    Never raises. The name is whatever precedes the earliest of the strength
    and form matches; when that prefix is empty (or nothing matched) the
    whole trimmed input is the name.
    """
    result = ParsedMedication()
    if not text:
        return result

    s = text.strip()
    cut_points = []

    strength = _STRENGTH_RE.search(s)
    if strength:
        result.strength = strength.group(0)
        cut_points.append(strength.start())

    form = _FORM_RE.search(s)
    if form:
        result.form = _normalize_form(form.group(1))
        cut_points.append(form.start())

    name = s[: min(cut_points)].strip() if cut_points else s
    result.name = name or s
    return result


def _normalize_form(word: str) -> str:
    """Lowercase and singularize a form word, keeping it inside MEDICATION_FORMS."""
    form = word.lower()
    if form in MEDICATION_FORMS:
        return form
    if form.endswith("s") and form[:-1] in MEDICATION_FORMS:
        return form[:-1]
    return "tablet"


def parse_fill_date(value: str | None) -> date | None:
    """Parse a strict MM/DD/YYYY string. Returns None for anything else.

    Strings that match the pattern but name no calendar day (13/45/2025)
    also return None.
    """
    if not value:
        return None
    s = value.strip()
    if not US_DATE_RE.match(s):
        return None
    month, day, year = (int(part) for part in s.split("/"))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_us_date(d: date) -> str:
    """Inverse of parse_fill_date."""
    return f"{d.month:02d}/{d.day:02d}/{d.year:04d}"


def parse_price(value: str | None) -> Decimal:
    """Parse "$1,234.50" into a Decimal. Unparseable or negative input gives 0."""
    if not value:
        return Decimal("0")
    cleaned = re.sub(r"[$,\s]", "", str(value))
    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    if not price.is_finite() or price < 0:
        return Decimal("0")
    return price


def parse_quantity(value: str | None) -> int:
    """Leading integer of a quantity cell ("90", "90.0", "30 tabs"). Default 0."""
    if not value:
        return 0
    m = re.match(r"\s*(\d+)", str(value))
    return int(m.group(1)) if m else 0


def normalize_date_to_iso(dt_str: str) -> str:
    """Convert a common date format to ISO 8601 YYYY-MM-DD.

    Supported formats:
    - YYYY-MM-DD (optionally followed by a time)
    - MM/DD/YYYY or M/D/YYYY
    - YYYYMMDD
    - Month DDth, YYYY

    Returns empty string for empty/unparseable input.
    """
    if not dt_str or not dt_str.strip():
        return ""
    s = dt_str.strip()

    m = re.match(r"(\d{4})-(\d{2})-(\d{2})", s)
    if m:
        return f"{m.group(1)}-{m.group(2)}-{m.group(3)}"

    m = re.match(r"(\d{1,2})/(\d{1,2})/(\d{4})", s)
    if m:
        return f"{m.group(3)}-{int(m.group(1)):02d}-{int(m.group(2)):02d}"

    m = re.match(r"(\d{4})(\d{2})(\d{2})$", s)
    if m:
        return f"{m.group(1)}-{m.group(2)}-{m.group(3)}"

    return parse_narrative_date(s)


def parse_narrative_date(text: str) -> str:
    """Parse dates like 'November 23rd, 2021' -> '2021-11-23'."""
    m = re.match(
        r"(\w+)\s+(\d{1,2})(?:st|nd|rd|th)?,?\s*(\d{4})",
        text.strip(),
        re.IGNORECASE,
    )
    if m:
        month = _MONTHS.get(m.group(1).lower())
        if month:
            return f"{m.group(3)}-{month}-{int(m.group(2)):02d}"
    return ""


def parse_loose_date(value: str | None) -> date | None:
    """Best-effort date parse for generic exports; None when unparseable."""
    iso = normalize_date_to_iso(value or "")
    if not iso:
        return None
    try:
        return date.fromisoformat(iso)
    except ValueError:
        return None
