"""Tests for the entity reconciler."""

from datetime import date
from decimal import Decimal

import pytest

from rxfold.config import ImportSettings
from rxfold.models import ParsedMedication, PatientProfile, PrescriptionFillRecord, User
from rxfold.reconcile import EntityReconciler


def _fill(name="Cyclobenzaprine", rx="185848411643", fill_date=date(2025, 9, 8), **kwargs):
    return PrescriptionFillRecord(
        medication=ParsedMedication(name=name, strength="10mg", form="tablet"),
        fill_date=fill_date,
        quantity=kwargs.pop("quantity", 90),
        prescriber=kwargs.pop("prescriber", "Wilson,Erica"),
        prescription_number=rx,
        price=kwargs.pop("price", Decimal("0.00")),
        ndc=kwargs.pop("ndc", "29300041510"),
        **kwargs,
    )


@pytest.fixture
def reconciler(tmp_db):
    return EntityReconciler(tmp_db, pharmacy_name="Walgreens")


@pytest.fixture
def rune():
    return PatientProfile(
        name="Rune Larsen",
        address="555 n danebo ave spc 34, eugene, OR 974022230",
        phone="5416062179",
        date_of_birth=date(1971, 1, 14),
        gender="Male",
    )


class TestResolveFamilyMember:
    def test_no_profile_is_self(self, reconciler, user):
        member = reconciler.resolve_family_member(None, user)
        assert member.relationship == "self"

    def test_single_token_name_is_self(self, reconciler, user):
        member = reconciler.resolve_family_member(PatientProfile(name="Rune"), user)
        assert member.relationship == "self"

    def test_own_name_is_self(self, reconciler, user):
        member = reconciler.resolve_family_member(PatientProfile(name="test user"), user)
        assert member.relationship == "self"

    def test_creates_relative(self, reconciler, tmp_db, user, rune):
        member = reconciler.resolve_family_member(rune, user)
        assert member.id is not None
        assert (member.first_name, member.last_name) == ("Rune", "Larsen")
        assert member.relationship == "other"
        assert member.phone == "5416062179"
        assert member.date_of_birth == "1971-01-14"
        assert member.gender == "male"
        assert member.notes == (
            "Auto-created from pharmacy import: 555 n danebo ave spc 34, eugene, OR 974022230"
        )

    def test_reuses_relative(self, reconciler, tmp_db, user, rune):
        first = reconciler.resolve_family_member(rune, user)
        second = reconciler.resolve_family_member(PatientProfile(name="RUNE LARSEN"), user)
        assert first.id == second.id
        assert tmp_db.summary()["family_members"] == 1

    def test_middle_name_ignored(self, reconciler, user):
        member = reconciler.resolve_family_member(PatientProfile(name="Rune Erik Larsen"), user)
        assert (member.first_name, member.last_name) == ("Rune", "Larsen")


class TestResolveMedicine:
    def test_creates_medicine(self, reconciler, user):
        member = reconciler.resolve_family_member(None, user)
        medicine, is_new = reconciler.resolve_medicine(_fill(), member, user)
        assert is_new
        assert medicine.name == "Cyclobenzaprine"
        assert medicine.strength == "10mg"
        assert medicine.total_pills == 90
        assert medicine.remaining_pills == 90
        assert medicine.dosage_amount == "1 tablet"
        assert medicine.dosage_frequency == "as-needed"
        assert medicine.prescription_date == "2025-09-08"
        assert medicine.start_date == "2025-09-08"
        assert medicine.pharmacy_name == "Walgreens"
        assert medicine.pharmacy_ndc == "29300041510"
        assert medicine.copay == 0.0
        assert medicine.status == "active"
        assert medicine.notes.startswith("Imported from pharmacy records on ")

    def test_existing_medicine_only_rx_and_prescriber_updated(self, reconciler, tmp_db, user):
        member = reconciler.resolve_family_member(None, user)
        created, _ = reconciler.resolve_medicine(_fill(), member, user)
        updated, is_new = reconciler.resolve_medicine(
            _fill(rx="999", prescriber="Dr. Who", quantity=30), member, user
        )
        assert not is_new
        assert updated.id == created.id
        assert updated.prescription_number == "999"
        assert updated.prescriber == "Dr. Who"
        assert updated.total_pills == 90
        stored = tmp_db.find_medicine(user.id, member.id, "Cyclobenzaprine")
        assert stored.prescription_number == "999"

    def test_blank_rx_keeps_existing(self, reconciler, user):
        member = reconciler.resolve_family_member(None, user)
        reconciler.resolve_medicine(_fill(), member, user)
        updated, _ = reconciler.resolve_medicine(_fill(rx="", prescriber=""), member, user)
        assert updated.prescription_number == "185848411643"
        assert updated.prescriber == "Wilson,Erica"

    def test_empty_name_rejected(self, reconciler, user):
        member = reconciler.resolve_family_member(None, user)
        with pytest.raises(ValueError):
            reconciler.resolve_medicine(_fill(name=""), member, user)

    def test_configured_dosage_defaults(self, tmp_db, user):
        settings = ImportSettings(dosage_amount="2 tablets", dosage_frequency="once-daily")
        reconciler = EntityReconciler(tmp_db, settings=settings)
        member = reconciler.resolve_family_member(None, user)
        medicine, _ = reconciler.resolve_medicine(_fill(), member, user)
        assert medicine.dosage_amount == "2 tablets"
        assert medicine.dosage_frequency == "once-daily"


class TestAppendLog:
    def test_log_fields(self, reconciler, user):
        outcome = reconciler.reconcile(_fill(), None, user)
        log = outcome.log
        assert log.id is not None
        assert log.medicine_id == outcome.medicine.id
        assert log.taken_at == "2025-09-08"
        assert log.recorded_by == "import"
        assert log.dose_amount == "Prescription filled"
        assert log.was_scheduled is False
        assert log.notes == "Prescription filled at pharmacy. Rx#: 185848411643, Qty: 90"

    def test_logs_not_deduplicated_by_default(self, reconciler, tmp_db, user):
        reconciler.reconcile(_fill(), None, user)
        outcome = reconciler.reconcile(_fill(), None, user)
        assert not outcome.log_reused
        assert tmp_db.summary()["medication_logs"] == 2

    def test_dedupe_reuses_identical_fill(self, tmp_db, user):
        reconciler = EntityReconciler(tmp_db, settings=ImportSettings(dedupe_logs=True))
        first = reconciler.reconcile(_fill(), None, user)
        second = reconciler.reconcile(_fill(), None, user)
        third = reconciler.reconcile(_fill(fill_date=date(2025, 10, 8)), None, user)
        assert second.log_reused
        assert second.log.id == first.log.id
        assert not third.log_reused
        assert tmp_db.summary()["medication_logs"] == 2


class TestReconcile:
    def test_relative_owns_medicine_and_log(self, reconciler, user, rune):
        outcome = reconciler.reconcile(_fill(), rune, user)
        assert outcome.is_new
        assert outcome.medicine.family_member_id == outcome.log.family_member_id
        assert outcome.log.user_id == user.id

    def test_same_medicine_for_different_members(self, reconciler, tmp_db, user, rune):
        reconciler.reconcile(_fill(), rune, user)
        outcome = reconciler.reconcile(_fill(), None, user)
        assert outcome.is_new
        assert tmp_db.summary()["medicines"] == 2

    def test_other_user_is_isolated(self, reconciler, tmp_db, user):
        reconciler.reconcile(_fill(), None, user)
        outcome = reconciler.reconcile(_fill(), None, User(id="user-2"))
        assert outcome.is_new
