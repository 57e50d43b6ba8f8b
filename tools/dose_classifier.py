"""
Missed-Dose Classifier
Classifies dose occurrences as scheduled, taken, skipped or missed

Two missed-dose policies are in use and must stay distinct:
- STRICT: reports, history and adherence counting. Anything at or before
  "now" without a recorded status is missed.
- GRACE: the proactive missed-doses banner. A dose is only surfaced once it
  is more than MISSED_DOSE_GRACE_MINUTES overdue.
"""

import logging
from typing import List, Iterable, Optional
from dataclasses import dataclass
from datetime import datetime, timedelta

from config import tracker_config
from models import DoseClassification, DoseStatus, MissedDosePolicy
from api.schemas.medication import Medication
from tools.scheduler import DoseOccurrence, DoseScheduler, dose_scheduler


logger = logging.getLogger(__name__)


@dataclass
class MissedDose:
    """A due dose with no recorded status"""
    occurrence: DoseOccurrence
    reason: Optional[str] = None


def recorded_status(medication: Medication, occurrence: DoseOccurrence) -> Optional[DoseStatus]:
    """Ledger status for an occurrence, None when not acted on"""
    status = medication.dose_status.get(occurrence.key)
    return DoseStatus(status) if status else None


def classify(
    medication: Medication,
    occurrence: DoseOccurrence,
    now: datetime
) -> DoseClassification:
    """
    Classify a single occurrence

    Recorded status always wins; otherwise a strictly future dose is
    scheduled and anything else is missed.
    """
    status = recorded_status(medication, occurrence)
    if status == DoseStatus.TAKEN:
        return DoseClassification.TAKEN
    if status == DoseStatus.SKIPPED:
        return DoseClassification.SKIPPED
    if occurrence.scheduled_at > now:
        return DoseClassification.SCHEDULED
    return DoseClassification.MISSED


def is_missed(
    medication: Medication,
    occurrence: DoseOccurrence,
    now: datetime,
    policy: MissedDosePolicy = MissedDosePolicy.STRICT,
    grace_minutes: int = tracker_config.MISSED_DOSE_GRACE_MINUTES
) -> bool:
    """Whether an occurrence counts as missed under the given policy"""
    if policy == MissedDosePolicy.GRACE:
        cutoff = now - timedelta(minutes=grace_minutes)
        if occurrence.scheduled_at >= cutoff:
            return False
    return classify(medication, occurrence, now) == DoseClassification.MISSED


class MissedDoseDetector:
    """
    Scans medications for missed doses
    """

    def __init__(
        self,
        scheduler: Optional[DoseScheduler] = None,
        grace_minutes: int = tracker_config.MISSED_DOSE_GRACE_MINUTES
    ):
        self.scheduler = scheduler or dose_scheduler
        self.grace_minutes = grace_minutes

    def find_missed_doses(
        self,
        medications: Iterable[Medication],
        now: datetime,
        policy: MissedDosePolicy = MissedDosePolicy.STRICT,
        days: int = 1
    ) -> List[MissedDose]:
        """
        Find missed doses from today back over the given number of days

        Args:
            medications: Medications to scan
            now: Current local time
            policy: STRICT or GRACE
            days: 1 scans today only, 2 adds yesterday, and so on

        Returns:
            Missed doses, most recent first
        """
        missed: List[MissedDose] = []
        for med in medications:
            for offset in range(days):
                day = now.date() - timedelta(days=offset)
                for occurrence in self.scheduler.occurrences_on(med, day):
                    if is_missed(med, occurrence, now, policy, self.grace_minutes):
                        missed.append(MissedDose(
                            occurrence=occurrence,
                            reason=med.missed_dose_reasons.get(occurrence.key)
                        ))

        missed.sort(key=lambda m: m.occurrence.scheduled_at, reverse=True)
        return missed

    def banner_missed_doses(
        self,
        medications: Iterable[Medication],
        now: datetime
    ) -> List[MissedDose]:
        """Missed doses for today's banner (GRACE policy)"""
        return self.find_missed_doses(medications, now, MissedDosePolicy.GRACE, days=1)


class SessionMissedDoseScan:
    """
    One-time startup scan of today and yesterday

    The first run in a session returns what it found; every later run
    returns an empty list until reset.
    """

    SCAN_DAYS = 2

    def __init__(self, detector: Optional[MissedDoseDetector] = None):
        self.detector = detector or MissedDoseDetector()
        self._has_run = False

    @property
    def has_run(self) -> bool:
        return self._has_run

    def run(self, medications: Iterable[Medication], now: datetime) -> List[MissedDose]:
        if self._has_run:
            return []
        self._has_run = True

        missed = self.detector.find_missed_doses(
            medications, now, MissedDosePolicy.STRICT, days=self.SCAN_DAYS
        )
        if missed:
            logger.info(f"Session scan found {len(missed)} missed dose(s)")
        return missed

    def reset(self) -> None:
        self._has_run = False


# Singleton instance
missed_dose_detector = MissedDoseDetector()
