"""Tests for the generic header-driven parser."""

from datetime import date
from decimal import Decimal

from rxfold.sources.generic import extract_rows, find_medication_field
from rxfold.sources.reader import read_records


class TestFindMedicationField:
    def test_keyword_match(self):
        assert find_medication_field({"Date": "x", "Drug Name": "Aspirin"}) == "Drug Name"
        assert find_medication_field({"MEDICATION": "Aspirin"}) == "MEDICATION"

    def test_empty_value_skipped(self):
        record = {"Medication": "", "Prescription Drug": "Aspirin"}
        assert find_medication_field(record) == "Prescription Drug"

    def test_no_match(self):
        assert find_medication_field({"Item": "Aspirin"}) is None

    def test_tagged_keys_ignored(self):
        assert find_medication_field({"_patient_info": "Medicine Man"}) is None


class TestExtractRows:
    def test_generic_csv(self, generic_csv):
        fills = list(extract_rows(read_records(generic_csv)))
        assert [f.medication.name for f in fills] == ["Lisinopril", "Metformin"]

        lisinopril, metformin = fills
        assert lisinopril.fill_date == date(2025, 3, 1)
        assert lisinopril.quantity == 30
        assert lisinopril.prescriber == "Dr. Adams"
        assert lisinopril.price == Decimal("4.00")
        assert lisinopril.row_number == 2

        assert metformin.medication.strength == "500 mg"
        assert metformin.fill_date == date(2025, 3, 15)
        assert metformin.row_number == 4

    def test_row_number_counts_blank_lines(self, tmp_path):
        path = tmp_path / "gap.csv"
        path.write_text("Drug,Qty\n,\nAspirin,1\n")
        fill = next(extract_rows(read_records(str(path))))
        assert fill.row_number == 3

    def test_missing_date_uses_import_date(self):
        records = [{"Medicine": "Aspirin 81mg"}]
        fills = list(extract_rows(records, import_date=date(2025, 1, 2)))
        assert fills[0].fill_date == date(2025, 1, 2)

    def test_unparseable_date_uses_import_date(self):
        records = [{"Medicine": "Aspirin", "Fill Date": "soon"}]
        fills = list(extract_rows(records, import_date=date(2025, 1, 2)))
        assert fills[0].fill_date == date(2025, 1, 2)

    def test_rx_and_ndc_columns(self):
        records = [{"Drug": "Aspirin", "Rx Number": "123", "NDC": "456", "Cost": "$1,200.50"}]
        fill = next(extract_rows(records))
        assert fill.prescription_number == "123"
        assert fill.ndc == "456"
        assert fill.price == Decimal("1200.50")

    def test_rows_without_medication_skipped(self):
        records = [{"Item": "Aspirin"}, {"Drug": ""}, {"Drug": " "}]
        assert list(extract_rows(records)) == []
