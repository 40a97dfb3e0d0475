"""Shared test fixtures for rxfold tests."""

import pytest

from rxfold.db import RxfoldDB
from rxfold.models import User

WALGREENS_CSV = """\
Confidential Prescription Records,,,,,,,,,
,,,,,,,,,
Rune Larsen,,,,,,,,,
555 n danebo ave spc 34,,,,,,,,,
"eugene, OR 974022230",,,,,,,,,
5416062179,,,,,,,,,
01/14/1971,,,,,,,,,
Male,,,,,,,,,
,,,,,,,,,
09/08/2025 to 09/13/2025,,,,,,,,,"Showing  Prescriptions, Sorted By fill date (09/08/2025 to 09/13/2025)"
Fill Date,Prescription,Rx #,Qty,Prescriber,Pharmacist,NDC#,Insurance,Claim Reference #,Price
09/08/2025,Cyclobenzaprine 10mg Tablets,185848411643,90,"Wilson,Erica",SMM,29300041510,APM,252514899525277999,$0.00
,,,,,,,,Total ,$0.00
,,,,,,,,Generics Saved You ,$0.00
,,,,,,,,Insurance Saved You ,$35.39
"""

WALGREENS_HEADER = [
    "Fill Date", "Prescription", "Rx #", "Qty", "Prescriber",
    "Pharmacist", "NDC#", "Insurance", "Claim Reference #", "Price",
]

CYCLOBENZAPRINE_ROW = [
    "09/08/2025", "Cyclobenzaprine 10mg Tablets", "185848411643", "90", "Wilson,Erica",
    "SMM", "29300041510", "APM", "252514899525277999", "$0.00",
]

GENERIC_CSV = """\
Drug Name,Date,Quantity,Doctor,Copay
Lisinopril 20mg Tablet,2025-03-01,30,Dr. Adams,$4.00
,,,,
Metformin 500 mg,03/15/2025,60,Dr. Adams,$0.00
"""


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite database with schema initialized."""
    db_path = str(tmp_path / "test.db")
    db = RxfoldDB(db_path)
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def user():
    return User(id="user-1", first_name="Test", last_name="User")


@pytest.fixture
def walgreens_csv(tmp_path):
    """A Walgreens export written to disk as CSV."""
    path = tmp_path / "walgreens.csv"
    path.write_text(WALGREENS_CSV)
    return str(path)


@pytest.fixture
def generic_csv(tmp_path):
    path = tmp_path / "generic.csv"
    path.write_text(GENERIC_CSV)
    return str(path)


def write_xlsx(path, rows):
    """Write rows (lists of cell values) to the first sheet of a new workbook."""
    import openpyxl

    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return str(path)


@pytest.fixture
def walgreens_xlsx(tmp_path):
    """The same Walgreens export as an Excel workbook, patient info in column A."""
    rows = [
        ["Confidential Prescription Records"],
        [],
        ["Rune Larsen"],
        ["555 n danebo ave spc 34"],
        ["eugene, OR 974022230"],
        [5416062179],
        ["01/14/1971"],
        ["Male"],
        [],
        ["Showing  Prescriptions, Sorted By fill date (09/08/2025 to 09/13/2025)"],
        WALGREENS_HEADER,
        CYCLOBENZAPRINE_ROW,
        [None, None, None, None, None, None, None, None, "Total ", "$0.00"],
        ["Please be aware that this list may not include all prescriptions"],
        ["Thank you for choosing Walgreens"],
    ]
    return write_xlsx(tmp_path / "walgreens.xlsx", rows)
