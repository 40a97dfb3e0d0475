"""Generic header-driven parser for pharmacy exports of unknown origin.

Columns are found by keyword: the first column whose name mentions
medication, prescription, drug or medicine (and has a value in that row)
holds the medication string. Fill date, quantity, prescriber, Rx number,
price and NDC are picked up the same way when present.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date

from rxfold.core.utils import (
    parse_fill_date,
    parse_loose_date,
    parse_medication_string,
    parse_price,
    parse_quantity,
)
from rxfold.models import ROW_NUMBER_KEY, PrescriptionFillRecord, RawRow

logger = logging.getLogger(__name__)

MEDICATION_KEYWORDS = ("medication", "prescription", "drug", "medicine")

# Optional columns: field -> header keywords, first match wins
_OPTIONAL_COLUMNS: dict[str, tuple[str, ...]] = {
    "fill_date": ("date",),
    "quantity": ("qty", "quantity"),
    "prescriber": ("prescriber", "doctor"),
    "prescription_number": ("rx",),
    "price": ("price", "copay", "cost"),
    "ndc": ("ndc",),
}


def find_medication_field(record: RawRow) -> str | None:
    """First column naming a medication keyword that has a value in this row."""
    for key, value in record.items():
        if key.startswith("_"):
            continue
        lowered = key.lower()
        if any(k in lowered for k in MEDICATION_KEYWORDS) and str(value).strip():
            return key
    return None


def _find_value(record: RawRow, keywords: tuple[str, ...], exclude: str) -> str:
    for key, value in record.items():
        if key == exclude or key.startswith("_"):
            continue
        lowered = key.lower()
        if any(k in lowered for k in keywords) and str(value).strip():
            return str(value).strip()
    return ""


def _row_number(record: RawRow, index: int) -> int:
    """Source row of a record; records built by hand fall back to header + index."""
    if record.get(ROW_NUMBER_KEY, "").isdigit():
        return int(record[ROW_NUMBER_KEY])
    return index + 2


def extract_rows(
    records: list[RawRow], import_date: date | None = None
) -> Iterator[PrescriptionFillRecord]:
    """Yield one fill per row that has a medication column value.

    Rows without a parseable date column are dated `import_date` (today by
    default). Blank rows and rows with no medication column are skipped.
    """
    import_date = import_date or date.today()

    for i, record in enumerate(records):
        if not any(str(v).strip() for k, v in record.items() if not k.startswith("_")):
            continue
        med_field = find_medication_field(record)
        if med_field is None:
            logger.debug("Skipping record %d: no medication column", i + 1)
            continue

        medication_text = str(record[med_field]).strip()
        values = {
            name: _find_value(record, keywords, exclude=med_field)
            for name, keywords in _OPTIONAL_COLUMNS.items()
        }
        fill_text = values["fill_date"]
        fill_date = parse_fill_date(fill_text) or parse_loose_date(fill_text) or import_date

        yield PrescriptionFillRecord(
            medication=parse_medication_string(medication_text),
            fill_date=fill_date,
            quantity=parse_quantity(values["quantity"]),
            prescriber=values["prescriber"],
            prescription_number=values["prescription_number"],
            price=parse_price(values["price"]),
            ndc=values["ndc"],
            raw_medication=medication_text,
            row_number=_row_number(record, i),
        )
