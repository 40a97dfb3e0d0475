"""Import a pharmacy export file into the entity store.

    result = import_pharmacy_file("walgreens.csv", user, db)

Whole-file failures raise (see rxfold.errors). Anything that goes wrong
while applying a single row is recorded on the result as "Row <n>: ..."
and the import moves on to the next row.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from rxfold.config import ImportSettings
from rxfold.errors import UnknownFormatError
from rxfold.models import ImportResult, PatientProfile, PrescriptionFillRecord, User
from rxfold.reconcile import EntityReconciler, EntityStore
from rxfold.sources import cvs, generic, walgreens
from rxfold.sources.base import (
    AUTO,
    CVS,
    GENERIC,
    PHARMACY_CONFIGS,
    SOURCE_FORMATS,
    WALGREENS,
    detect_format,
)
from rxfold.sources.reader import read_grid, rows_to_records

logger = logging.getLogger(__name__)


def resolve_format(format_hint: str, records: list[dict], settings: ImportSettings) -> str:
    """Turn a format hint ('auto' or a format name) into a concrete format."""
    fmt = (format_hint or AUTO).lower()
    if fmt == AUTO:
        return detect_format(records, settings.operator_initials)
    if fmt not in SOURCE_FORMATS:
        raise UnknownFormatError(f"Unsupported format: {format_hint}")
    return fmt


def extract_fills(
    fmt: str, grid: list[list[str]], records: list[dict], result: ImportResult
) -> tuple[PatientProfile | None, Iterable[PrescriptionFillRecord]]:
    """Run the format's extractor. Returns (patient profile, fills)."""
    if fmt == WALGREENS:
        profile, header_idx = walgreens.split_preamble_and_table(grid)
        if header_idx == -1:
            result.warnings.append(
                "No prescription table header ('Fill Date') found; nothing to import"
            )
        return profile, walgreens.extract_rows(grid, header_idx)
    if fmt == CVS:
        return None, cvs.extract_rows(records)
    if fmt == GENERIC:
        return None, generic.extract_rows(records)
    raise UnknownFormatError(f"Unsupported format: {fmt}")


def import_pharmacy_file(
    file_path: str,
    user: User,
    store: EntityStore,
    format_hint: str = AUTO,
    settings: ImportSettings | None = None,
) -> ImportResult:
    """Read, detect, extract and reconcile one pharmacy export.

    Rows are applied strictly in file order: a family member or medicine
    created for one row must be visible to the next row's lookups.
    """
    settings = settings or ImportSettings()
    start = time.monotonic()

    grid = read_grid(file_path)
    records = rows_to_records(grid)
    fmt = resolve_format(format_hint, records, settings)
    logger.info("Importing %s as %s (%d rows)", file_path, fmt, len(grid))

    result = ImportResult(source_format=fmt)
    profile, fills = extract_fills(fmt, grid, records, result)
    result.patient = profile

    reconciler = EntityReconciler(
        store, pharmacy_name=PHARMACY_CONFIGS[fmt].display_name, settings=settings
    )

    for fill in fills:
        result.total_records += 1
        try:
            outcome = reconciler.reconcile(fill, profile, user)
        except Exception as e:
            # Row failures are reported, never fatal to the file
            logger.warning("Row %d (%s) failed: %s", result.total_records, fill.raw_medication, e)
            result.record_error(result.total_records, str(e))
            continue

        result.medicines.append(outcome.medicine)
        if outcome.is_new:
            result.medicines_created += 1
        else:
            result.medicines_updated += 1

        if outcome.log_reused:
            result.warnings.append(
                f"Row {result.total_records}: fill of {outcome.medicine.name} on "
                f"{fill.fill_date.isoformat()} already logged; skipped duplicate log"
            )
        elif outcome.log is not None:
            result.logs.append(outcome.log)
            result.logs_created += 1

    if result.total_records == 0:
        result.warnings.append("No prescription records found in file")

    duration = time.monotonic() - start
    log_import = getattr(store, "log_import", None)
    if log_import is not None:
        log_import(user.id, file_path, result, duration)

    logger.info(
        "Imported %s: %d records, %d medicines created, %d updated, %d logs, %d errors",
        file_path,
        result.total_records,
        result.medicines_created,
        result.medicines_updated,
        result.logs_created,
        result.errors_count,
    )
    return result
