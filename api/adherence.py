"""
Adherence API Router
Read-only derived views: rollups, streaks, weekly coaching, missed doses
"""

from typing import List, Optional
from datetime import datetime, date
from fastapi import APIRouter, Depends, HTTPException, status, Query

from api.deps import (
    get_adherence_service,
    get_medication_service,
    get_now,
    get_session_scan,
)
from api.schemas.adherence import (
    AdherenceDashboard,
    AdherenceStreak,
    AdherenceSummary,
    DailyAdherence,
    DoseHistoryEntry,
    DoseOccurrenceResponse,
    MedicationAdherence,
    MissedDoseList,
    OccurrenceList,
    WeeklyCoachingSummary,
)
from config import tracker_config
from models import MissedDosePolicy
from services.adherence_service import AdherenceService, current_week_start, missed_dose_response
from services.medication_service import MedicationService
from tools.dose_classifier import SessionMissedDoseScan


router = APIRouter(prefix="/adherence", tags=["adherence"])


@router.get("/summary", response_model=AdherenceSummary)
async def get_adherence_summary(
    days: int = Query(tracker_config.WEEKLY_WINDOW_DAYS, ge=1, le=365),
    start_date: Optional[date] = Query(None, description="Window start; overrides days"),
    end_date: Optional[date] = Query(None, description="Window end, inclusive"),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Scheduled, taken, skipped and missed counts over a window

    Only doses already due are counted.
    """
    medications = medication_service.list_medications()

    if start_date is not None:
        end = end_date or now.date()
        if end < start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_date must not be before start_date"
            )
        return adherence_service.aggregate(medications, start_date, end, now)

    return adherence_service.window_summary(medications, now, days)


@router.get("/by-medication", response_model=List[MedicationAdherence])
async def get_adherence_by_medication(
    days: int = Query(tracker_config.REPORT_WINDOW_DAYS, ge=1, le=365),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Adherence breakdown by medication
    """
    return adherence_service.adherence_by_medication(
        medication_service.list_medications(), now, days
    )


@router.get("/daily", response_model=List[DailyAdherence])
async def get_daily_adherence(
    days: int = Query(tracker_config.WEEKLY_WINDOW_DAYS, ge=1, le=90),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Per-day adherence series, oldest first
    """
    return adherence_service.daily_breakdown(medication_service.list_medications(), now, days)


@router.get("/streak", response_model=AdherenceStreak)
async def get_adherence_streak(
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Current and longest streak with milestones
    """
    return adherence_service.calculate_streak(medication_service.list_medications(), now)


@router.get("/weekly", response_model=WeeklyCoachingSummary)
async def get_weekly_summary(
    week_start: Optional[date] = Query(None, description="Defaults to this week's Sunday"),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Weekly coaching summary with best and worst time of day
    """
    return adherence_service.weekly_coaching_summary(
        medication_service.list_medications(),
        week_start or current_week_start(now.date()),
        now
    )


@router.get("/missed", response_model=MissedDoseList)
async def get_missed_doses(
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Today's missed doses for the banner, once they are past the grace period
    """
    missed = adherence_service.missed_doses(
        medication_service.list_medications(), now, MissedDosePolicy.GRACE
    )
    return MissedDoseList(
        policy=MissedDosePolicy.GRACE.value,
        missed_doses=missed,
        total=len(missed)
    )


@router.post("/missed/session-scan", response_model=MissedDoseList)
async def run_session_scan(
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    session_scan: SessionMissedDoseScan = Depends(get_session_scan)
):
    """
    One-time scan of today and yesterday; later calls return nothing
    """
    missed = [
        missed_dose_response(m)
        for m in session_scan.run(medication_service.list_medications(), now)
    ]
    return MissedDoseList(
        policy=MissedDosePolicy.STRICT.value,
        missed_doses=missed,
        total=len(missed)
    )


@router.get("/history", response_model=List[DoseHistoryEntry])
async def get_dose_history(
    days: int = Query(tracker_config.REPORT_WINDOW_DAYS, ge=1, le=365),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Due doses with their outcome, newest first
    """
    return adherence_service.dose_history(medication_service.list_medications(), now, days)


@router.get("/occurrences", response_model=OccurrenceList)
async def get_occurrences(
    day: Optional[date] = Query(None, alias="date"),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    All dose occurrences on a date with their classification
    """
    day = day or now.date()
    return OccurrenceList(
        date=day,
        occurrences=adherence_service.occurrences_for_date(
            medication_service.list_medications(), day, now
        )
    )


@router.get("/upcoming", response_model=List[DoseOccurrenceResponse])
async def get_upcoming_doses(
    limit: int = Query(5, ge=1, le=50),
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Next doses after now
    """
    return adherence_service.upcoming(medication_service.list_medications(), now, limit=limit)


@router.get("/dashboard", response_model=AdherenceDashboard)
async def get_adherence_dashboard(
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    adherence_service: AdherenceService = Depends(get_adherence_service)
):
    """
    Comprehensive adherence dashboard data
    """
    return adherence_service.dashboard(medication_service.list_medications(), now)
