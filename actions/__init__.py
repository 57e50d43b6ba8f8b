"""
Actions Module
Reminder engine and adaptive reminder timing
"""

from .reminder_engine import (
    Reminder,
    ReminderType,
    AdaptiveTimingStrategy,
    FixedTimingStrategy,
    LatenessShiftStrategy,
    NotificationBehaviorTracker,
    ReminderEngine,
)


__all__ = [
    "Reminder",
    "ReminderType",
    "AdaptiveTimingStrategy",
    "FixedTimingStrategy",
    "LatenessShiftStrategy",
    "NotificationBehaviorTracker",
    "ReminderEngine",
]
