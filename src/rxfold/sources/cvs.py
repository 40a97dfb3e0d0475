"""CVS pharmacy export parser.

CVS exports are recognized by format detection ("Date Filled" and
"Prescription Number" headers, or the chain name in the data) but no
extractor exists yet. Routing a file here fails loudly instead of importing
nothing.
"""

from __future__ import annotations

from collections.abc import Iterator

from rxfold.errors import FormatNotImplementedError
from rxfold.models import PrescriptionFillRecord, RawRow


def extract_rows(records: list[RawRow]) -> Iterator[PrescriptionFillRecord]:
    # TODO: map CVS "Date Filled"/"Prescription Number"/"Drug Name" columns once a sample export is available
    raise FormatNotImplementedError("CVS format parsing not yet implemented")
