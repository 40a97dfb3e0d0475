"""Walgreens prescription-history export parser.

Handles the "Confidential Prescription Records" export, CSV or XLSX.
Key characteristics:
- Free-text patient block at the top, one fact per row, first column only
  (name, street, "city, ST zip", phone, DOB, gender) in no fixed positions
- Title banner and a "Showing  Prescriptions, Sorted By ..." banner
- Table header: Fill Date, Prescription, Rx #, Qty, Prescriber, Pharmacist,
  NDC#, Insurance, Claim Reference #, Price
- Trailer rows after the table: Total, Generics Saved You, Insurance Saved
  You, then a disclaimer and thank-you text
- Some exports repeat the header row inside the table
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from rxfold.core.utils import (
    PHONE_RE,
    US_DATE_RE,
    parse_fill_date,
    parse_medication_string,
    parse_price,
    parse_quantity,
)
from rxfold.models import PatientProfile, PrescriptionFillRecord
from rxfold.sources.base import WALGREENS_CONFIG, PharmacyConfig
from rxfold.sources.reader import clean_header, find_header_row, is_banner, map_row, row_to_line

logger = logging.getLogger(__name__)

FILL_DATE = "Fill Date"
PRESCRIPTION = "Prescription"
RX_NUMBER = "Rx #"
QUANTITY = "Qty"
PRESCRIBER = "Prescriber"
NDC = "NDC#"
PRICE = "Price"

_NAME_RE = re.compile(r"^[A-Za-z\s]+$")
_STREET_RE = re.compile(r"\d+.*[A-Za-z]")
_CITY_STATE_RE = re.compile(r"[A-Za-z]+,\s*[A-Z]{2}")


def is_name_line(line: str) -> bool:
    return bool(_NAME_RE.match(line)) and 3 < len(line) < 50


def is_street_line(line: str) -> bool:
    return bool(_STREET_RE.search(line)) and not is_phone_line(line) and not is_date_line(line)


def is_city_state_line(line: str) -> bool:
    return bool(_CITY_STATE_RE.search(line))


def is_phone_line(line: str) -> bool:
    return bool(PHONE_RE.match(line))


def is_date_line(line: str) -> bool:
    return bool(US_DATE_RE.match(line))


def is_gender_line(line: str) -> bool:
    return line in ("Male", "Female")


@dataclass(frozen=True)
class ProfileRule:
    """Fills one PatientProfile field from the first line that matches."""

    field: str
    matches: Callable[[str], bool]
    convert: Callable[[str], object] = str.strip


PROFILE_RULES: tuple[ProfileRule, ...] = (
    ProfileRule("name", is_name_line),
    ProfileRule("address", is_street_line),
    ProfileRule("phone", is_phone_line),
    ProfileRule("date_of_birth", is_date_line, parse_fill_date),
    ProfileRule("gender", is_gender_line),
)


def extract_patient_profile(lines: list[str]) -> PatientProfile:
    """Apply PROFILE_RULES to preamble lines, top to bottom.

    A "city, ST zip" line after the street is appended to the address as
    long as the address has no comma yet.
    """
    profile = PatientProfile()
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        for rule in PROFILE_RULES:
            if not getattr(profile, rule.field) and rule.matches(line):
                setattr(profile, rule.field, rule.convert(line))
            if (
                rule.field == "address"
                and profile.address
                and "," not in profile.address
                and is_city_state_line(line)
            ):
                profile.address = f"{profile.address}, {line}"
    return profile


def preamble_lines(grid: list[list[str]], header_row_index: int,
                   config: PharmacyConfig = WALGREENS_CONFIG) -> list[str]:
    """Candidate patient-info lines above the header row."""
    end = header_row_index if header_row_index >= 0 else len(grid)
    lines = []
    for row in grid[:end]:
        if is_banner(row, config.banner_patterns):
            continue
        line = row_to_line(row)
        if line:
            lines.append(line)
    return lines


def split_preamble_and_table(
    grid: list[list[str]], config: PharmacyConfig = WALGREENS_CONFIG
) -> tuple[PatientProfile, int]:
    """Separate the patient block from the prescription table.

    Returns the extracted profile and the header row index (-1 when the
    file has no prescription table header).
    """
    header_row_index = find_header_row(grid, config.header_token)
    if header_row_index == -1:
        logger.warning("No '%s' header row found in Walgreens export", config.header_token)
    profile = extract_patient_profile(preamble_lines(grid, header_row_index, config))
    logger.debug("Patient profile: %s", profile)
    return profile, header_row_index


def _is_trailer(first_cell: str, config: PharmacyConfig) -> bool:
    return any(label in first_cell for label in config.trailer_labels)


def extract_rows(
    grid: list[list[str]],
    header_row_index: int,
    config: PharmacyConfig = WALGREENS_CONFIG,
) -> Iterator[PrescriptionFillRecord]:
    """Yield validated prescription fills from the rows below the header.

    Trailer rows, blank rows, rows without a strict MM/DD/YYYY fill date,
    rows with an empty Prescription cell and repeated header rows are
    skipped without error.
    """
    if header_row_index < 0 or header_row_index >= len(grid):
        return

    headers = [clean_header(h) for h in grid[header_row_index]]

    for i in range(header_row_index + 1, len(grid)):
        row = grid[i]
        first = row[0].strip() if row else ""
        if not first or _is_trailer(first, config):
            continue

        record = map_row(headers, row)
        fill_text = record.get(FILL_DATE, "").strip()
        medication_text = record.get(PRESCRIPTION, "").strip()

        if fill_text == FILL_DATE or not medication_text:
            logger.debug("Skipping row %d: not a prescription row", i + 1)
            continue
        fill_date = parse_fill_date(fill_text)
        if fill_date is None:
            logger.debug("Skipping row %d: fill date %r", i + 1, fill_text)
            continue

        yield PrescriptionFillRecord(
            medication=parse_medication_string(medication_text),
            fill_date=fill_date,
            quantity=parse_quantity(record.get(QUANTITY)),
            prescriber=record.get(PRESCRIBER, "").strip(),
            prescription_number=record.get(RX_NUMBER, "").strip(),
            price=parse_price(record.get(PRICE)),
            ndc=record.get(NDC, "").strip(),
            raw_medication=medication_text,
            row_number=i + 1,
        )
