"""
Adherence Service
Derived adherence views: windowed rollups, streaks, weekly coaching, history

Everything here is a pure function of the medication collection and "now".
Nothing computed here is stored; callers recompute on every read.
"""

import logging
import math
from typing import Dict, List, Optional, Iterable, Tuple
from datetime import datetime, date, timedelta

from config import tracker_config
from models import (
    DoseClassification,
    DoseStatus,
    MilestoneType,
    MissedDosePolicy,
    TimeWindow,
)
from api.schemas.medication import Medication
from api.schemas.adherence import (
    AdherenceDashboard,
    AdherenceStreak,
    AdherenceSummary,
    DailyAdherence,
    DoseHistoryEntry,
    DoseOccurrenceResponse,
    MedicationAdherence,
    Milestone,
    MissedDoseResponse,
    TimeWindowAdherence,
    WeeklyCoachingSummary,
)
from tools.scheduler import DoseOccurrence, DoseScheduler, dose_scheduler, date_range, parse_time
from tools.dose_classifier import MissedDose, MissedDoseDetector, classify


logger = logging.getLogger(__name__)


NOT_AVAILABLE = "N/A"


def adherence_percentage(taken: int, scheduled: int) -> int:
    """round(100 * taken / scheduled), half up; 0 when nothing was scheduled"""
    if scheduled <= 0:
        return 0
    return min(100, max(0, math.floor(100 * taken / scheduled + 0.5)))


def time_window_for(time_str: str) -> TimeWindow:
    """Bucket an "HH:MM" time into morning, afternoon or evening"""
    hour = parse_time(time_str).hour
    morning_start, morning_end = tracker_config.MORNING_HOURS
    afternoon_start, afternoon_end = tracker_config.AFTERNOON_HOURS
    if morning_start <= hour < morning_end:
        return TimeWindow.MORNING
    if afternoon_start <= hour < afternoon_end:
        return TimeWindow.AFTERNOON
    return TimeWindow.EVENING


def current_week_start(today: date) -> date:
    """The Sunday on or before `today`"""
    return today - timedelta(days=(today.weekday() + 1) % 7)


def missed_dose_response(missed: MissedDose) -> MissedDoseResponse:
    o = missed.occurrence
    return MissedDoseResponse(
        medication_id=o.medication_id,
        medication_name=o.medication_name,
        date=o.date,
        time=o.time,
        dosage=o.dosage,
        reason=missed.reason
    )


class AdherenceService:
    """
    Service for adherence analysis over the medication collection
    """

    def __init__(
        self,
        scheduler: Optional[DoseScheduler] = None,
        detector: Optional[MissedDoseDetector] = None
    ):
        self.scheduler = scheduler or dose_scheduler
        self.detector = detector or MissedDoseDetector(self.scheduler)

    # ==================== OCCURRENCES ====================

    def _due_occurrences(
        self,
        medications: Iterable[Medication],
        start: date,
        end: date,
        now: datetime
    ) -> Iterable[Tuple[Medication, DoseOccurrence]]:
        """Occurrences in the window whose time is at or before now"""
        medications = list(medications)
        for day in date_range(start, end):
            if day > now.date():
                break
            for med in medications:
                for occurrence in self.scheduler.occurrences_on(med, day):
                    if occurrence.scheduled_at <= now:
                        yield med, occurrence

    def occurrences_for_date(
        self,
        medications: Iterable[Medication],
        day: date,
        now: datetime
    ) -> List[DoseOccurrenceResponse]:
        """Every occurrence on a date with its classification, in time order"""
        results = []
        for med in medications:
            for occurrence in self.scheduler.occurrences_on(med, day):
                status = classify(med, occurrence, now)
                results.append(DoseOccurrenceResponse(
                    medication_id=med.id,
                    medication_name=med.name,
                    date=day,
                    time=occurrence.time,
                    dosage=occurrence.dosage,
                    status=status,
                    reason=med.missed_dose_reasons.get(occurrence.key)
                ))
        results.sort(key=lambda r: (r.time, r.medication_name))
        return results

    def upcoming(
        self,
        medications: Iterable[Medication],
        now: datetime,
        days: int = 7,
        limit: int = 5
    ) -> List[DoseOccurrenceResponse]:
        """Next doses after now"""
        return [
            DoseOccurrenceResponse(
                medication_id=o.medication_id,
                medication_name=o.medication_name,
                date=o.date,
                time=o.time,
                dosage=o.dosage,
                status=DoseClassification.SCHEDULED
            )
            for o in self.scheduler.upcoming_occurrences(medications, now, days, limit)
        ]

    # ==================== ROLLUPS ====================

    def aggregate(
        self,
        medications: Iterable[Medication],
        start: date,
        end: date,
        now: datetime
    ) -> AdherenceSummary:
        """
        Roll up adherence over [start, end]

        Args:
            medications: Medications to include
            start: First date of the window
            end: Last date of the window (inclusive)
            now: Current local time; later doses are not counted

        Returns:
            AdherenceSummary with counts and percentage
        """
        scheduled = taken = skipped = missed = 0

        for med, occurrence in self._due_occurrences(medications, start, end, now):
            scheduled += 1
            status = classify(med, occurrence, now)
            if status == DoseClassification.TAKEN:
                taken += 1
            elif status == DoseClassification.SKIPPED:
                skipped += 1
            elif status == DoseClassification.MISSED:
                missed += 1

        return AdherenceSummary(
            start_date=start,
            end_date=end,
            scheduled_count=scheduled,
            taken_count=taken,
            skipped_count=skipped,
            missed_count=missed,
            percentage=adherence_percentage(taken, scheduled)
        )

    def window_summary(
        self,
        medications: Iterable[Medication],
        now: datetime,
        days: int = tracker_config.WEEKLY_WINDOW_DAYS
    ) -> AdherenceSummary:
        """Rollup for the last `days` days ending today"""
        end = now.date()
        return self.aggregate(medications, end - timedelta(days=days - 1), end, now)

    def adherence_by_medication(
        self,
        medications: Iterable[Medication],
        now: datetime,
        days: int = tracker_config.REPORT_WINDOW_DAYS
    ) -> List[MedicationAdherence]:
        """Per-medication rollup, sorted by name"""
        results = []
        for med in medications:
            summary = self.window_summary([med], now, days)
            results.append(MedicationAdherence(
                medication_id=med.id,
                medication_name=med.name,
                scheduled_count=summary.scheduled_count,
                taken_count=summary.taken_count,
                percentage=summary.percentage
            ))
        results.sort(key=lambda r: r.medication_name.lower())
        return results

    def daily_breakdown(
        self,
        medications: Iterable[Medication],
        now: datetime,
        days: int = tracker_config.WEEKLY_WINDOW_DAYS
    ) -> List[DailyAdherence]:
        """Per-day adherence for the last `days` days, oldest first"""
        medications = list(medications)
        series = []
        for offset in range(days - 1, -1, -1):
            day = now.date() - timedelta(days=offset)
            summary = self.aggregate(medications, day, day, now)
            series.append(DailyAdherence(
                date=day,
                day=day.strftime("%a"),
                scheduled_count=summary.scheduled_count,
                taken_count=summary.taken_count,
                adherence=(
                    round(100 * summary.taken_count / summary.scheduled_count, 1)
                    if summary.scheduled_count else 0.0
                )
            ))
        return series

    # ==================== STREAKS ====================

    def _day_is_clean(
        self,
        medications: List[Medication],
        day: date,
        now: datetime
    ) -> bool:
        """Every dose due strictly before now on `day` was taken"""
        for med in medications:
            for occurrence in self.scheduler.occurrences_on(med, day):
                if occurrence.scheduled_at >= now:
                    continue
                if med.dose_status.get(occurrence.key) != DoseStatus.TAKEN:
                    return False
        return True

    def _history_start(
        self,
        medications: List[Medication],
        today: date,
        lookback_days: int
    ) -> Optional[date]:
        """
        Earliest day worth walking back to, None when there is no history

        History begins at the first ledger entry or tapering start. Without
        either, the first day that had a dose due within the lookback is
        used instead.
        """
        floor = today - timedelta(days=lookback_days - 1)
        known: List[date] = []
        for med in medications:
            if med.is_tapering:
                known.append(med.start_date)
            for key in med.dose_status:
                try:
                    known.append(date.fromisoformat(key.split("T")[0]))
                except ValueError:
                    logger.warning(f"Ignoring malformed ledger key {key!r} on {med.id}")
        if known:
            return max(floor, min(known))

        for day in date_range(floor, today):
            if any(self.scheduler.occurrences_on(med, day) for med in medications):
                return day
        return None

    def calculate_streak(
        self,
        medications: Iterable[Medication],
        now: datetime,
        lookback_days: int = tracker_config.STREAK_LOOKBACK_DAYS
    ) -> AdherenceStreak:
        """
        Current and longest streak of days with no missed due dose

        A day with nothing due continues the streak. Today never breaks it:
        a miss today just means today does not count yet.
        """
        medications = list(medications)
        today = now.date()
        total_taken = sum(
            1 for med in medications
            for status in med.dose_status.values()
            if status == DoseStatus.TAKEN
        )

        start = self._history_start(medications, today, lookback_days) if medications else None
        if start is None:
            return AdherenceStreak(
                current_streak=0,
                longest_streak=0,
                total_doses_taken=total_taken,
                milestones=self._milestones(0, total_taken),
                message=self.motivational_message(0)
            )

        clean_days: Dict[date, bool] = {
            day: self._day_is_clean(medications, day, now)
            for day in date_range(start, today)
        }

        current = 0
        for offset in range((today - start).days + 1):
            day = today - timedelta(days=offset)
            if not clean_days[day]:
                if day == today:
                    continue
                break
            current += 1

        longest = run = 0
        for day in date_range(start, today):
            if clean_days[day]:
                run += 1
                longest = max(longest, run)
            elif day != today:
                run = 0

        longest = max(longest, current)
        return AdherenceStreak(
            current_streak=current,
            longest_streak=longest,
            total_doses_taken=total_taken,
            milestones=self._milestones(longest, total_taken),
            message=self.motivational_message(current)
        )

    def _milestones(self, longest_streak: int, total_taken: int) -> List[Milestone]:
        milestones = [
            Milestone(
                id=f"days-{target}",
                type=MilestoneType.DAYS,
                target=target,
                achieved=longest_streak >= target
            )
            for target in tracker_config.STREAK_DAY_MILESTONES
        ]
        milestones.extend(
            Milestone(
                id=f"doses-{target}",
                type=MilestoneType.DOSES,
                target=target,
                achieved=total_taken >= target
            )
            for target in tracker_config.STREAK_DOSE_MILESTONES
        )
        return milestones

    @staticmethod
    def motivational_message(current_streak: int) -> str:
        if current_streak >= 30:
            return f"Incredible! {current_streak} days in a row. You've built a real habit."
        if current_streak >= 7:
            return f"{current_streak} days strong. Keep the momentum going!"
        if current_streak >= 3:
            return f"{current_streak}-day streak. You're on a roll!"
        if current_streak >= 1:
            return "Great start! Take today's doses to keep your streak alive."
        return "Every dose counts. Start your streak today!"

    # ==================== WEEKLY COACHING ====================

    def weekly_coaching_summary(
        self,
        medications: Iterable[Medication],
        week_start: date,
        now: datetime
    ) -> WeeklyCoachingSummary:
        """
        Rollup of the 7 days from `week_start` with a time-of-day breakdown
        """
        medications = list(medications)
        week_end = week_start + timedelta(days=6)
        summary = self.aggregate(medications, week_start, week_end, now)

        buckets: Dict[TimeWindow, List[int]] = {w: [0, 0] for w in TimeWindow}
        for med, occurrence in self._due_occurrences(medications, week_start, week_end, now):
            bucket = buckets[time_window_for(occurrence.time)]
            bucket[0] += 1
            if med.dose_status.get(occurrence.key) == DoseStatus.TAKEN:
                bucket[1] += 1

        windows = [
            TimeWindowAdherence(
                window=window.value,
                scheduled_count=due,
                taken_count=taken,
                percentage=adherence_percentage(taken, due) if due else None
            )
            for window, (due, taken) in buckets.items()
        ]

        rated = [w for w in windows if w.percentage is not None]
        best = max(rated, key=lambda w: w.percentage).window if rated else NOT_AVAILABLE
        worst = min(rated, key=lambda w: w.percentage).window if rated else NOT_AVAILABLE
        # Several buckets all at the same percentage have no worst one
        if len(rated) > 1 and len({w.percentage for w in rated}) == 1:
            worst = NOT_AVAILABLE

        streak = self.calculate_streak(medications, now)

        return WeeklyCoachingSummary(
            week_start=week_start,
            week_end=week_end,
            total_doses=summary.scheduled_count,
            taken_doses=summary.taken_count,
            missed_doses=summary.missed_count,
            skipped_doses=summary.skipped_count,
            adherence_percentage=summary.percentage,
            best_time_window=best,
            worst_time_window=worst,
            time_windows=windows,
            achievements=self._achievements(summary, streak),
            suggestions=self._suggestions(summary, rated, worst)
        )

    def _achievements(self, summary: AdherenceSummary, streak: AdherenceStreak) -> List[str]:
        achievements = []
        if summary.scheduled_count and summary.percentage == 100:
            achievements.append("Perfect week! Every dose taken.")
        elif summary.percentage >= 90:
            achievements.append("Over 90% adherence this week.")
        if streak.current_streak >= 7:
            achievements.append(f"{streak.current_streak}-day streak")
        return achievements

    def _suggestions(
        self,
        summary: AdherenceSummary,
        rated: List[TimeWindowAdherence],
        worst: str
    ) -> List[str]:
        if not summary.scheduled_count:
            return ["Add dose times to your medications to start tracking your week."]

        suggestions = []
        if len(rated) > 1 and worst != NOT_AVAILABLE:
            worst_window = next(w for w in rated if w.window == worst)
            if worst_window.percentage < 80:
                suggestions.append(
                    f"{worst} doses are the hardest for you. Try pairing them with a daily routine."
                )
        if summary.missed_count:
            suggestions.append(
                f"You missed {summary.missed_count} dose(s). Reminders can help you stay on track."
            )
        if summary.skipped_count >= 3:
            suggestions.append("You skipped several doses. Consider discussing this with your provider.")
        return suggestions

    # ==================== MISSED DOSES & HISTORY ====================

    def missed_doses(
        self,
        medications: Iterable[Medication],
        now: datetime,
        policy: MissedDosePolicy = MissedDosePolicy.GRACE,
        days: int = 1
    ) -> List[MissedDoseResponse]:
        return [
            missed_dose_response(m)
            for m in self.detector.find_missed_doses(medications, now, policy, days)
        ]

    def dose_history(
        self,
        medications: Iterable[Medication],
        now: datetime,
        days: int = tracker_config.REPORT_WINDOW_DAYS
    ) -> List[DoseHistoryEntry]:
        """Due doses over the window, strictly classified, newest first"""
        end = now.date()
        start = end - timedelta(days=days - 1)
        history = []
        for med, occurrence in self._due_occurrences(medications, start, end, now):
            status = classify(med, occurrence, now)
            history.append(DoseHistoryEntry(
                medication_id=med.id,
                medication_name=med.name,
                scheduled_at=occurrence.scheduled_at,
                status=status,
                reason=(
                    med.missed_dose_reasons.get(occurrence.key)
                    if status == DoseClassification.MISSED else None
                )
            ))
        history.sort(key=lambda h: h.scheduled_at, reverse=True)
        return history

    def dashboard(self, medications: Iterable[Medication], now: datetime) -> AdherenceDashboard:
        medications = list(medications)
        return AdherenceDashboard(
            generated_at=now,
            weekly=self.window_summary(medications, now, tracker_config.WEEKLY_WINDOW_DAYS),
            monthly=self.window_summary(medications, now, tracker_config.REPORT_WINDOW_DAYS),
            streak=self.calculate_streak(medications, now),
            missed_today=self.missed_doses(medications, now, MissedDosePolicy.GRACE),
            upcoming=self.upcoming(medications, now)
        )


# Singleton instance
adherence_service = AdherenceService()
