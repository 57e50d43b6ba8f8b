"""
Reminder Engine
Decides which dose and refill reminders are due on each notification tick
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from config import tracker_config, DocumentKeys
from api.schemas.medication import Medication, NotificationBehavior
from services.storage_service import SnapshotStore, snapshot_store
from tools.scheduler import DoseScheduler, dose_scheduler, format_minutes, to_minutes


logger = logging.getLogger(__name__)


class ReminderType(str, Enum):
    """Types of reminders"""
    MEDICATION_DUE = "medication_due"
    REFILL_REMINDER = "refill_reminder"


@dataclass
class Reminder:
    """Reminder handed to the delivery callable"""
    reminder_type: ReminderType
    medication_id: str
    title: str
    message: str
    scheduled_time: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reminder_type": self.reminder_type.value,
            "medication_id": self.medication_id,
            "title": self.title,
            "message": self.message,
            "scheduled_time": self.scheduled_time.isoformat(),
            "metadata": self.metadata
        }


# ==================== ADAPTIVE TIMING ====================

class AdaptiveTimingStrategy(ABC):
    """Decides when a reminder fires relative to the scheduled dose time"""

    @abstractmethod
    def adjusted_time(
        self,
        medication: Medication,
        scheduled_time: str,
        behavior: Optional[NotificationBehavior]
    ) -> str:
        ...

    @abstractmethod
    def record_response(
        self,
        medication: Medication,
        scheduled_time: str,
        actual_time: str,
        behavior: NotificationBehavior
    ) -> NotificationBehavior:
        ...


class FixedTimingStrategy(AdaptiveTimingStrategy):
    """Reminders always fire at the scheduled time"""

    def adjusted_time(self, medication, scheduled_time, behavior):
        return scheduled_time

    def record_response(self, medication, scheduled_time, actual_time, behavior):
        return behavior


class LatenessShiftStrategy(AdaptiveTimingStrategy):
    """
    Moves reminders earlier for users who tend to take doses late.

    The running average lateness is tracked per medication; each late dose
    pulls that slot's reminder earlier, never more than `max_shift` minutes
    before the scheduled time.
    """

    def __init__(
        self,
        threshold_minutes: float = tracker_config.ADAPTIVE_LATENESS_THRESHOLD_MINUTES,
        max_shift_minutes: int = tracker_config.ADAPTIVE_MAX_SHIFT_MINUTES
    ):
        self.threshold = threshold_minutes
        self.max_shift = max_shift_minutes

    def _slot(self, medication: Medication, scheduled_time: str) -> Optional[int]:
        try:
            return medication.times.index(scheduled_time)
        except ValueError:
            return None

    def _clamp(self, scheduled_time: str, minutes: int) -> str:
        scheduled = to_minutes(scheduled_time)
        return format_minutes(max(minutes, scheduled - self.max_shift))

    def adjusted_time(self, medication, scheduled_time, behavior):
        if behavior is None:
            return scheduled_time

        slot = self._slot(medication, scheduled_time)
        if slot is not None and slot in behavior.adjusted_times:
            return behavior.adjusted_times[slot]

        if behavior.average_response_time > self.threshold:
            shift = min(round(behavior.average_response_time), self.max_shift)
            return format_minutes(to_minutes(scheduled_time) - shift)

        return scheduled_time

    def record_response(self, medication, scheduled_time, actual_time, behavior):
        diff = to_minutes(actual_time) - to_minutes(scheduled_time)
        if diff <= 0:
            return behavior

        behavior = behavior.model_copy(deep=True)
        behavior.late_dose_count += 1
        behavior.average_response_time = (
            behavior.average_response_time * (behavior.late_dose_count - 1) + diff
        ) / behavior.late_dose_count

        slot = self._slot(medication, scheduled_time)
        if slot is not None:
            base = behavior.adjusted_times.get(slot, scheduled_time)
            shift = min(round(behavior.average_response_time), self.max_shift)
            behavior.adjusted_times[slot] = self._clamp(scheduled_time, to_minutes(base) - shift)

        return behavior


class NotificationBehaviorTracker:
    """
    Persists per-medication reminder behaviour and applies the timing strategy
    """

    def __init__(
        self,
        store: Optional[SnapshotStore] = None,
        strategy: Optional[AdaptiveTimingStrategy] = None
    ):
        self.store = store or snapshot_store
        self.adaptive_strategy = strategy or LatenessShiftStrategy()
        self.fixed_strategy = FixedTimingStrategy()

    @property
    def adaptive_enabled(self) -> bool:
        prefs = self.store.load(DocumentKeys.PREFERENCES, {})
        if not isinstance(prefs, dict):
            return True
        return bool(prefs.get("adaptive_notifications", True))

    def set_adaptive_enabled(self, enabled: bool) -> None:
        prefs = self.store.load(DocumentKeys.PREFERENCES, {})
        if not isinstance(prefs, dict):
            prefs = {}
        prefs["adaptive_notifications"] = enabled
        self.store.save(DocumentKeys.PREFERENCES, prefs)
        logger.info(f"Adaptive notifications {'enabled' if enabled else 'disabled'}")

    @property
    def strategy(self) -> AdaptiveTimingStrategy:
        return self.adaptive_strategy if self.adaptive_enabled else self.fixed_strategy

    def _load_all(self) -> Dict[str, NotificationBehavior]:
        raw = self.store.load(DocumentKeys.NOTIFICATION_BEHAVIOR, {})
        behaviors = {}
        for med_id, data in (raw or {}).items():
            try:
                behaviors[med_id] = NotificationBehavior.model_validate(data)
            except ValueError as e:
                logger.warning(f"Dropping unreadable notification behavior for {med_id}: {e}")
        return behaviors

    def get_behavior(self, medication_id: str) -> Optional[NotificationBehavior]:
        return self._load_all().get(medication_id)

    def adjusted_time(self, medication: Medication, scheduled_time: str) -> str:
        return self.strategy.adjusted_time(
            medication, scheduled_time, self.get_behavior(medication.id)
        )

    def record_dose_taken(
        self,
        medication: Medication,
        scheduled_time: str,
        taken_at: datetime
    ) -> None:
        """Feed a taken dose's actual time back into the strategy"""
        if not self.adaptive_enabled:
            return

        behaviors = self._load_all()
        current = behaviors.get(medication.id) or NotificationBehavior()
        updated = self.adaptive_strategy.record_response(
            medication, scheduled_time, taken_at.strftime("%H:%M"), current
        )
        if updated is current:
            return

        behaviors[medication.id] = updated
        self.store.save(
            DocumentKeys.NOTIFICATION_BEHAVIOR,
            {med_id: b.model_dump(mode="json") for med_id, b in behaviors.items()}
        )

    def forget(self, medication_id: str) -> None:
        behaviors = self._load_all()
        if behaviors.pop(medication_id, None) is not None:
            self.store.save(
                DocumentKeys.NOTIFICATION_BEHAVIOR,
                {med_id: b.model_dump(mode="json") for med_id, b in behaviors.items()}
            )


# ==================== ENGINE ====================

def _log_delivery(reminder: Reminder) -> None:
    logger.info(f"Reminder: {reminder.title} - {reminder.message}")


class ReminderEngine:
    """
    Engine run once per notification tick

    Responsibilities:
    - Report dose reminders whose (adjusted) time is the current minute
    - Report refill reminders once a day and keep the notified flag in sync
    - Hand reminders to a delivery callable
    """

    TICK_SECONDS = tracker_config.NOTIFICATION_TICK_SECONDS

    def __init__(
        self,
        medication_service=None,
        behavior_tracker: Optional[NotificationBehaviorTracker] = None,
        scheduler: Optional[DoseScheduler] = None,
        deliver: Callable[[Reminder], None] = _log_delivery,
        refill_check_time: str = tracker_config.REFILL_CHECK_TIME
    ):
        self._medication_service = medication_service
        self.behavior_tracker = behavior_tracker or NotificationBehaviorTracker()
        self.scheduler = scheduler or dose_scheduler
        self.deliver = deliver
        self.refill_check_time = refill_check_time

    @property
    def medication_service(self):
        if self._medication_service is None:
            from services.medication_service import medication_service
            self._medication_service = medication_service
        return self._medication_service

    def due_reminders(
        self,
        medications: List[Medication],
        now: datetime
    ) -> List[Reminder]:
        """
        Dose reminders due at `now` (minute resolution)

        A reminder is due when the occurrence's adjusted reminder time equals
        the current HH:MM and the dose has no recorded status yet.
        """
        current_time = now.strftime("%H:%M")
        reminders = []

        for med in medications:
            for occurrence in self.scheduler.occurrences_on(med, now.date()):
                if med.dose_status.get(occurrence.key):
                    continue
                if self.behavior_tracker.adjusted_time(med, occurrence.time) != current_time:
                    continue
                reminders.append(Reminder(
                    reminder_type=ReminderType.MEDICATION_DUE,
                    medication_id=med.id,
                    title=f"Time for your {med.name}",
                    message=f"It's time to take your {occurrence.dosage} dose.",
                    scheduled_time=occurrence.scheduled_at,
                    metadata={"date": occurrence.date.isoformat(), "time": occurrence.time}
                ))

        return reminders

    def refill_reminders(self, medications: List[Medication], now: datetime) -> List[Reminder]:
        """
        Refill reminders, checked once a day at the refill check time

        Flags each notified medication so it is reminded only once, and
        clears the flag once stock is back above the threshold.
        """
        if now.strftime("%H:%M") != self.refill_check_time:
            return []

        service = self.medication_service
        reminders = []
        for med in medications:
            if med.quantity is None or med.refill_threshold is None:
                continue

            if med.quantity <= med.refill_threshold and not med.refill_notified:
                reminders.append(Reminder(
                    reminder_type=ReminderType.REFILL_REMINDER,
                    medication_id=med.id,
                    title=f"Refill {med.name}",
                    message=f"You have {med.quantity} pills left. Time to get a refill.",
                    scheduled_time=now,
                    metadata={"quantity": med.quantity}
                ))
                service.set_refill_notified(med.id, True)
            elif med.quantity > med.refill_threshold and med.refill_notified:
                service.set_refill_notified(med.id, False)

        return reminders

    def tick(self, now: Optional[datetime] = None) -> List[Reminder]:
        """Run one notification check and deliver what is due"""
        now = now or datetime.now()
        medications = self.medication_service.list_medications()
        reminders = self.due_reminders(medications, now)
        reminders.extend(self.refill_reminders(medications, now))

        for reminder in reminders:
            try:
                self.deliver(reminder)
            except Exception as e:
                logger.error(f"Failed to deliver reminder {reminder.id}: {e}")

        return reminders


# Singleton instance
reminder_engine = ReminderEngine()
