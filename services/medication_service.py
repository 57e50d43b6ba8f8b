"""
Medication Service
Owns the medication collection and its dose-status ledger
"""

import logging
import uuid
from typing import Callable, Dict, List, Optional, Tuple, Union
from datetime import datetime, date

from config import DocumentKeys
from models import DoseStatus
from api.schemas.medication import (
    Medication,
    MedicationCreate,
    MedicationUpdate,
    PRNConfig,
    PRNCheck,
)
from services.storage_service import SnapshotStore, snapshot_store
from services.undo_service import UndoService, UndoAction
from services.prn_service import PRNService
from tools.scheduler import occurrence_key


logger = logging.getLogger(__name__)


class MedicationNotFoundError(LookupError):
    """No medication with the requested id"""


class InvalidRefillQuantityError(ValueError):
    """Refill quantity was not a non-negative whole number"""


def apply_status_transition(
    medication: Medication,
    key: str,
    status: Optional[DoseStatus]
) -> Tuple[Medication, Optional[DoseStatus]]:
    """
    Set or clear one ledger entry, adjusting quantity on taken transitions

    Returns the updated medication and the status that was replaced. Setting
    the status that already holds changes nothing.
    """
    old_status = medication.dose_status.get(key)
    dose_status = dict(medication.dose_status)
    if status is None:
        dose_status.pop(key, None)
    else:
        dose_status[key] = status

    quantity = medication.quantity
    if quantity is not None:
        if status == DoseStatus.TAKEN and old_status != DoseStatus.TAKEN:
            quantity -= 1
        elif old_status == DoseStatus.TAKEN and status != DoseStatus.TAKEN:
            quantity += 1

    updated = medication.model_copy(update={"dose_status": dose_status, "quantity": quantity})
    return updated, old_status


def needs_refill(medication: Medication) -> bool:
    """True exactly when quantity has fallen to the refill threshold"""
    if medication.quantity is None or medication.refill_threshold is None:
        return False
    return medication.quantity <= medication.refill_threshold


class MedicationService:
    """
    Service for medication-related operations

    This is the only mutation surface for the collection. Every mutation is
    written back to the snapshot store before the call returns.
    """

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        undo_service: Optional[UndoService] = None,
        behavior_tracker=None,
        prn_service: Optional[PRNService] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.store = store or snapshot_store
        self.clock = clock
        self.undo_service = undo_service or UndoService(clock=clock)
        self.prn_service = prn_service or PRNService(self.store)
        if behavior_tracker is None:
            from actions.reminder_engine import NotificationBehaviorTracker
            behavior_tracker = NotificationBehaviorTracker(self.store)
        self.behavior_tracker = behavior_tracker
        self._medications: Optional[List[Medication]] = None

    # ==================== PERSISTENCE ====================

    def _load(self) -> List[Medication]:
        raw = self.store.load(DocumentKeys.MEDICATIONS, [])
        if not isinstance(raw, list):
            logger.warning("Medication snapshot is not a list, starting empty")
            return []

        medications = []
        for item in raw:
            try:
                medications.append(Medication.model_validate(item))
            except ValueError as e:
                logger.warning(f"Skipping unreadable medication record: {e}")
        return medications

    @property
    def medications(self) -> List[Medication]:
        if self._medications is None:
            self._medications = self._load()
            logger.info(f"Loaded {len(self._medications)} medication(s)")
        return self._medications

    def reload(self) -> None:
        """Drop the in-memory copy so the next read comes from the store"""
        self._medications = None

    def _persist(self) -> None:
        self.store.save(
            DocumentKeys.MEDICATIONS,
            [m.model_dump(mode="json") for m in self.medications]
        )

    def _replace(self, updated: Medication) -> Medication:
        meds = self.medications
        for i, med in enumerate(meds):
            if med.id == updated.id:
                meds[i] = updated
                self._persist()
                return updated
        raise MedicationNotFoundError(f"Medication {updated.id} not found")

    # ==================== CRUD ====================

    def list_medications(self) -> List[Medication]:
        return list(self.medications)

    def get_medication(self, medication_id: str) -> Medication:
        """
        Get medication by ID

        Raises:
            MedicationNotFoundError: unknown id
        """
        for med in self.medications:
            if med.id == medication_id:
                return med
        raise MedicationNotFoundError(f"Medication {medication_id} not found")

    def add_medication(self, data: MedicationCreate) -> Medication:
        """Add a new medication with a fresh opaque id"""
        medication = Medication(id=uuid.uuid4().hex, **data.model_dump())
        self.medications.append(medication)
        self._persist()
        logger.info(f"Added medication {medication.name} ({medication.id})")
        return medication

    def update_medication(self, medication_id: str, data: MedicationUpdate) -> Medication:
        """Update the editable fields of a medication"""
        medication = self.get_medication(medication_id)
        changes = data.model_dump(exclude_unset=True)
        updated = Medication.model_validate({**medication.model_dump(), **changes})
        self._replace(updated)
        logger.info(f"Updated medication {updated.name} ({medication_id}): {sorted(changes)}")
        return updated

    def delete_medication(self, medication_id: str) -> Medication:
        medication = self.get_medication(medication_id)
        self._medications = [m for m in self.medications if m.id != medication_id]
        self._persist()
        self.behavior_tracker.forget(medication_id)
        self.prn_service.remove_config(medication_id)
        logger.info(f"Deleted medication {medication.name} ({medication_id})")
        return medication

    # ==================== DOSE LEDGER ====================

    def set_dose_status(
        self,
        medication_id: str,
        day: date,
        time_str: str,
        status: Optional[DoseStatus]
    ) -> UndoAction:
        """
        Mark a dose taken or skipped, or clear its status

        Args:
            medication_id: Medication ID
            day: Scheduled date of the occurrence
            time_str: Scheduled "HH:MM" of the occurrence
            status: DoseStatus, or None to unmark

        Returns:
            The undo action now on offer
        """
        medication = self.get_medication(medication_id)
        key = occurrence_key(day, time_str)
        status = DoseStatus(status) if status is not None else None

        updated, old_status = apply_status_transition(medication, key, status)
        self._replace(updated)

        # Only a fresh taken mark on the scheduled day says how late the user was
        if status == DoseStatus.TAKEN and old_status != DoseStatus.TAKEN and self.clock().date() == day:
            self.behavior_tracker.record_dose_taken(updated, time_str, self.clock())

        logger.info(
            f"Dose {key} of {medication.name}: "
            f"{old_status.value if old_status else 'none'} -> {status.value if status else 'none'}"
        )

        if status == DoseStatus.TAKEN:
            action_type = "dose_taken"
        elif status == DoseStatus.SKIPPED:
            action_type = "dose_skipped"
        else:
            action_type = "dose_cleared"

        return self.undo_service.register(
            action_type,
            undo=lambda: self._restore_status(medication_id, key, old_status),
            data={
                "medication_id": medication_id,
                "date": day.isoformat(),
                "time": time_str,
                "old_status": old_status.value if old_status else None
            }
        )

    def _restore_status(
        self,
        medication_id: str,
        key: str,
        status: Optional[DoseStatus]
    ) -> Medication:
        medication = self.get_medication(medication_id)
        updated, _ = apply_status_transition(medication, key, status)
        return self._replace(updated)

    def undo(self, action_id: Optional[str] = None) -> Medication:
        """
        Reverse the most recent status change

        Raises:
            UndoUnavailableError: window expired or a newer change superseded it
        """
        return self.undo_service.undo(action_id)

    def save_missed_dose_reasons(
        self,
        reasons: Dict[str, Dict[str, str]]
    ) -> List[Medication]:
        """Merge free-text missed-dose reasons, keyed by medication then dose key"""
        updated = []
        for med_id, med_reasons in reasons.items():
            medication = self.get_medication(med_id)
            merged = {**medication.missed_dose_reasons, **med_reasons}
            updated.append(medication.model_copy(update={"missed_dose_reasons": merged}))

        for medication in updated:
            self._replace(medication)
        return updated

    # ==================== REFILLS ====================

    def log_refill(self, medication_id: str, new_quantity: Union[int, str]) -> Medication:
        """
        Record a refill

        Raises:
            InvalidRefillQuantityError: non-numeric or negative quantity
        """
        medication = self.get_medication(medication_id)

        if isinstance(new_quantity, bool) or not isinstance(new_quantity, (int, str)):
            raise InvalidRefillQuantityError("Please enter a valid number.")
        try:
            quantity = int(str(new_quantity).strip())
        except ValueError:
            raise InvalidRefillQuantityError("Please enter a valid number.")
        if quantity < 0:
            raise InvalidRefillQuantityError("Please enter a valid number.")

        updated = medication.model_copy(update={
            "quantity": quantity,
            "refill_history": [*medication.refill_history, self.clock().date()],
            "refill_notified": False
        })
        self._replace(updated)
        logger.info(f"Refill logged for {medication.name}: quantity {quantity}")
        return updated

    def set_refill_notified(self, medication_id: str, notified: bool) -> Medication:
        medication = self.get_medication(medication_id)
        return self._replace(medication.model_copy(update={"refill_notified": notified}))

    def list_refills_needed(self) -> List[Medication]:
        return [m for m in self.medications if needs_refill(m)]

    # ==================== PRN ====================

    def configure_prn(
        self,
        medication_id: str,
        min_interval_hours: float,
        max_per_day: int
    ) -> PRNConfig:
        """Mark a medication as-needed, keeping today's count if already configured"""
        self.get_medication(medication_id)
        existing = self.prn_service.get_config(medication_id)
        config = (existing or PRNConfig(medication_id=medication_id)).model_copy(update={
            "min_interval_hours": min_interval_hours,
            "max_per_day": max_per_day
        })
        return self.prn_service.save_config(config)

    def check_prn(self, medication_id: str) -> PRNCheck:
        self.get_medication(medication_id)
        return self.prn_service.check(medication_id, self.clock())

    def take_prn_dose(self, medication_id: str) -> Medication:
        """
        Take an as-needed dose now

        Raises:
            PRNNotAllowedError: interval or daily maximum not satisfied
        """
        medication = self.get_medication(medication_id)
        self.prn_service.record_dose(medication_id, self.clock())

        if medication.quantity is not None:
            medication = self._replace(
                medication.model_copy(update={"quantity": medication.quantity - 1})
            )
        return medication


# Singleton instance
medication_service = MedicationService()
