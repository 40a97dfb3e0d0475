"""Reconcile extracted prescription fills against stored entities.

For each fill: resolve the family member the export belongs to, find or
create the medicine, then append a medication log entry for the fill event.
Lookups are case-insensitive substring matches on names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from rxfold.config import ImportSettings
from rxfold.models import (
    FamilyMember,
    MedicationLog,
    Medicine,
    PatientProfile,
    PrescriptionFillRecord,
    User,
)

logger = logging.getLogger(__name__)


class FamilyMemberStore(Protocol):
    def find_or_create_self(self, user: User) -> FamilyMember: ...

    def find_family_member(
        self, user_id: str, first_name: str, last_name: str
    ) -> FamilyMember | None: ...

    def create_family_member(self, member: FamilyMember) -> FamilyMember: ...


class MedicineStore(Protocol):
    def find_medicine(
        self, user_id: str, family_member_id: int, name: str
    ) -> Medicine | None: ...

    def create_medicine(self, medicine: Medicine) -> Medicine: ...

    def save_medicine(self, medicine: Medicine) -> Medicine: ...


class MedicationLogStore(Protocol):
    def create_medication_log(self, log: MedicationLog) -> MedicationLog: ...

    def find_medication_log(
        self, medicine_id: int, taken_at: str, prescription_number: str
    ) -> MedicationLog | None: ...


class EntityStore(FamilyMemberStore, MedicineStore, MedicationLogStore, Protocol):
    """Everything the reconciler reads and writes. RxfoldDB implements it."""


@dataclass
class ReconcileOutcome:
    medicine: Medicine
    is_new: bool
    log: MedicationLog | None
    log_reused: bool = False


class EntityReconciler:
    """Applies one fill record at a time to the entity store."""

    def __init__(
        self,
        store: EntityStore,
        pharmacy_name: str = "",
        settings: ImportSettings | None = None,
    ):
        self.store = store
        self.pharmacy_name = pharmacy_name
        self.settings = settings or ImportSettings()

    def resolve_family_member(self, profile: PatientProfile | None, user: User) -> FamilyMember:
        """Member the export belongs to: the user themself, or a relative.

        A profile name that matches the user's own name, or one too short to
        split into first and last names, resolves to the "self" member.
        """
        parts = profile.name_parts() if profile else None
        if parts is None:
            return self.store.find_or_create_self(user)

        first, last = parts
        if first.lower() == user.first_name.lower() and last.lower() == user.last_name.lower():
            return self.store.find_or_create_self(user)

        member = self.store.find_family_member(user.id, first, last)
        if member is not None:
            logger.debug("Matched family member %s (id=%s)", member.full_name, member.id)
            return member

        member = FamilyMember(
            user_id=user.id,
            first_name=first,
            last_name=last,
            relationship="other",
            phone=profile.phone,
            date_of_birth=profile.date_of_birth.isoformat() if profile.date_of_birth else "",
            gender=profile.gender.lower(),
            notes=f"Auto-created from pharmacy import: {profile.address}",
        )
        member = self.store.create_family_member(member)
        logger.info("Created family member %s (id=%s)", member.full_name, member.id)
        return member

    def _new_medicine(
        self, fill: PrescriptionFillRecord, member: FamilyMember, user: User
    ) -> Medicine:
        parsed = fill.medication
        fill_date = fill.fill_date.isoformat()
        return Medicine(
            user_id=user.id,
            family_member_id=member.id,
            name=parsed.name,
            strength=parsed.strength,
            form=parsed.form,
            prescription_number=fill.prescription_number,
            prescriber=fill.prescriber,
            total_pills=fill.quantity,
            remaining_pills=fill.quantity,
            dosage_amount=parsed.dosage or self.settings.dosage_amount,
            dosage_frequency=self.settings.dosage_frequency,
            prescription_date=fill_date,
            start_date=fill_date,
            copay=float(fill.price),
            pharmacy_name=self.pharmacy_name,
            pharmacy_ndc=fill.ndc,
            status="active",
            notes=f"Imported from pharmacy records on {date.today().strftime('%m/%d/%Y')}",
        )

    def resolve_medicine(
        self, fill: PrescriptionFillRecord, member: FamilyMember, user: User
    ) -> tuple[Medicine, bool]:
        """Find-and-update or create the medicine. Returns (medicine, is_new).

        Only the Rx number and prescriber are refreshed on an existing
        medicine; quantity and dosage belong to the user once it exists.
        """
        if not fill.medication.name:
            raise ValueError("Medication name is empty")

        medicine = self.store.find_medicine(user.id, member.id, fill.medication.name)
        if medicine is None:
            medicine = self.store.create_medicine(self._new_medicine(fill, member, user))
            logger.debug("Created medicine %s (id=%s)", medicine.name, medicine.id)
            return medicine, True

        if fill.prescription_number:
            medicine.prescription_number = fill.prescription_number
        if fill.prescriber:
            medicine.prescriber = fill.prescriber
        medicine = self.store.save_medicine(medicine)
        logger.debug("Updated medicine %s (id=%s)", medicine.name, medicine.id)
        return medicine, False

    def append_log(
        self, fill: PrescriptionFillRecord, medicine: Medicine, member: FamilyMember, user: User
    ) -> tuple[MedicationLog, bool]:
        """Record the fill event. Returns (log, reused)."""
        taken_at = fill.fill_date.isoformat()
        if self.settings.dedupe_logs:
            existing = self.store.find_medication_log(
                medicine.id, taken_at, fill.prescription_number
            )
            if existing is not None:
                return existing, True

        log = MedicationLog(
            medicine_id=medicine.id,
            user_id=user.id,
            family_member_id=member.id,
            taken_at=taken_at,
            recorded_by="import",
            dose_amount="Prescription filled",
            was_scheduled=False,
            prescription_number=fill.prescription_number,
            notes=(
                f"Prescription filled at pharmacy. Rx#: {fill.prescription_number}, "
                f"Qty: {fill.quantity}"
            ),
        )
        return self.store.create_medication_log(log), False

    def reconcile(
        self, fill: PrescriptionFillRecord, profile: PatientProfile | None, user: User
    ) -> ReconcileOutcome:
        member = self.resolve_family_member(profile, user)
        medicine, is_new = self.resolve_medicine(fill, member, user)
        log, reused = self.append_log(fill, medicine, member, user)
        return ReconcileOutcome(medicine=medicine, is_new=is_new, log=log, log_reused=reused)
