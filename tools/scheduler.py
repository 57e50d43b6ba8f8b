"""
Dose Schedule Expander
Derives the dose occurrences a medication has on a given calendar date
"""

import logging
from typing import List, Optional, Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta

from config import tracker_config
from api.schemas.medication import Medication


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DoseOccurrence:
    """One scheduled instance of taking a medication"""
    medication_id: str
    medication_name: str
    date: date
    time: str  # "HH:MM", local wall-clock
    dosage: str

    @property
    def key(self) -> str:
        return occurrence_key(self.date, self.time)

    @property
    def scheduled_at(self) -> datetime:
        return occurrence_datetime(self.date, self.time)


def parse_time(value: str) -> time:
    """Parse an "HH:MM" string"""
    return datetime.strptime(value, "%H:%M").time()


def format_minutes(total_minutes: int) -> str:
    """Format minutes since midnight as "HH:MM" (wraps around midnight)"""
    total_minutes %= 24 * 60
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def to_minutes(value: str) -> int:
    t = parse_time(value)
    return t.hour * 60 + t.minute


def occurrence_key(day: date, time_str: str) -> str:
    """Ledger key for an occurrence, e.g. "2024-01-01T08:00" """
    return f"{day.isoformat()}T{time_str}"


def occurrence_datetime(day: date, time_str: str) -> datetime:
    return datetime.combine(day, parse_time(time_str))


def date_range(start: date, end: date) -> Iterator[date]:
    """Every calendar date from start to end inclusive"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class DoseScheduler:
    """
    Expands fixed-time and tapering schedules into dose occurrences
    """

    def __init__(
        self,
        window_start: str = tracker_config.TAPER_WINDOW_START,
        window_end: str = tracker_config.TAPER_WINDOW_END
    ):
        self.window_start = to_minutes(window_start)
        self.window_end = to_minutes(window_end)

    def occurrences_on(self, medication: Medication, day: date) -> List[DoseOccurrence]:
        """
        Get the ordered dose occurrences for a medication on a date

        Args:
            medication: Medication definition
            day: Calendar date

        Returns:
            Occurrences sorted by time of day
        """
        if medication.is_tapering:
            times = self._tapering_times(medication, day)
            if not times:
                return []
            tablets = len(times)
            label = f"{tablets} tablet" if tablets == 1 else f"{tablets} tablets"
        else:
            times = sorted(medication.times)
            label = medication.dosage

        return [
            DoseOccurrence(
                medication_id=medication.id,
                medication_name=medication.name,
                date=day,
                time=t,
                dosage=label
            )
            for t in times
        ]

    def times_on(self, medication: Medication, day: date) -> List[str]:
        """Just the "HH:MM" times due on a date"""
        return [o.time for o in self.occurrences_on(medication, day)]

    def day_number(self, medication: Medication, day: date) -> Optional[int]:
        """1-based day of the tapering schedule (day 1 is the start date)"""
        if medication.start_date is None:
            return None
        return (day - medication.start_date).days + 1

    def _tapering_times(self, medication: Medication, day: date) -> List[str]:
        """Times for a tapering day, empty outside the table"""
        day_number = self.day_number(medication, day)
        if day_number is None or day_number < 1:
            return []

        steps = medication.tapering_schedule or []
        last_day = max(step.day for step in steps)
        if day_number > last_day:
            return []

        entry = next((s for s in steps if s.day == day_number), None)
        if entry is None or entry.tablets <= 0:
            return []

        return self._distribute_evenly(entry.tablets)

    def _distribute_evenly(self, count: int) -> List[str]:
        """Spread doses across the window, both endpoints included"""
        if count == 1:
            return [format_minutes(self.window_start)]

        interval = (self.window_end - self.window_start) / (count - 1)
        times = []
        for i in range(count):
            minutes = self.window_start + i * interval
            # Round half up to the nearest minute
            times.append(format_minutes(int(minutes + 0.5)))
        return times

    def occurrences_between(
        self,
        medications: Iterable[Medication],
        start: date,
        end: date
    ) -> List[DoseOccurrence]:
        """All occurrences for every medication over a date range"""
        occurrences = []
        medications = list(medications)
        for day in date_range(start, end):
            for med in medications:
                occurrences.extend(self.occurrences_on(med, day))
        return occurrences

    def upcoming_occurrences(
        self,
        medications: Iterable[Medication],
        now: datetime,
        days: int = 7,
        limit: Optional[int] = 5
    ) -> List[DoseOccurrence]:
        """Next occurrences from now, soonest first"""
        end = now.date() + timedelta(days=days - 1)
        upcoming = [
            o for o in self.occurrences_between(medications, now.date(), end)
            if o.scheduled_at > now
        ]
        upcoming.sort(key=lambda o: (o.scheduled_at, o.medication_name))
        return upcoming[:limit] if limit else upcoming

    def get_next_dose(
        self,
        medications: Iterable[Medication],
        now: Optional[datetime] = None
    ) -> Optional[DoseOccurrence]:
        """Get the next scheduled dose"""
        upcoming = self.upcoming_occurrences(medications, now or datetime.now(), days=2, limit=1)
        return upcoming[0] if upcoming else None


# Singleton instance
dose_scheduler = DoseScheduler()


def occurrences_on(medication: Medication, day: date) -> List[DoseOccurrence]:
    """Convenience function to expand a schedule"""
    return dose_scheduler.occurrences_on(medication, day)
