"""
Tools Package
Schedule expansion, dose classification and the interaction advisory
"""

from .scheduler import (
    DoseScheduler,
    DoseOccurrence,
    dose_scheduler,
    occurrences_on,
    occurrence_key,
)

from .dose_classifier import (
    MissedDose,
    MissedDoseDetector,
    SessionMissedDoseScan,
    classify,
    is_missed,
    missed_dose_detector,
)

from .interaction_checker import (
    InteractionChecker,
    InteractionMonitor,
    interaction_checker,
    interaction_monitor,
    check_interactions,
)

__all__ = [
    # Scheduler
    "DoseScheduler",
    "DoseOccurrence",
    "dose_scheduler",
    "occurrences_on",
    "occurrence_key",

    # Dose Classifier
    "MissedDose",
    "MissedDoseDetector",
    "SessionMissedDoseScan",
    "classify",
    "is_missed",
    "missed_dose_detector",

    # Interaction Checker
    "InteractionChecker",
    "InteractionMonitor",
    "interaction_checker",
    "interaction_monitor",
    "check_interactions",
]
