"""
Adherence Schemas
Pydantic models for derived adherence views
"""

from typing import Optional, List
from datetime import datetime, date
from pydantic import BaseModel, Field

from models import DoseClassification, MilestoneType


# ==================== OCCURRENCES ====================

class DoseOccurrenceResponse(BaseModel):
    """A dose occurrence with its derived classification"""
    medication_id: str
    medication_name: str
    date: date
    time: str
    dosage: str
    status: DoseClassification
    reason: Optional[str] = None


class OccurrenceList(BaseModel):
    date: date
    occurrences: List[DoseOccurrenceResponse]


class MissedDoseResponse(BaseModel):
    """A due dose with no recorded status"""
    medication_id: str
    medication_name: str
    date: date
    time: str
    dosage: str
    reason: Optional[str] = None


class MissedDoseList(BaseModel):
    policy: str
    missed_doses: List[MissedDoseResponse]
    total: int


# ==================== AGGREGATES ====================

class AdherenceSummary(BaseModel):
    """Counts over a date window; only doses already due are counted"""
    start_date: date
    end_date: date
    scheduled_count: int = 0
    taken_count: int = 0
    skipped_count: int = 0
    missed_count: int = 0
    percentage: int = Field(default=0, ge=0, le=100)


class MedicationAdherence(BaseModel):
    """Adherence breakdown by medication"""
    medication_id: str
    medication_name: str
    scheduled_count: int
    taken_count: int
    percentage: int = Field(..., ge=0, le=100)


class DailyAdherence(BaseModel):
    """One day of a daily adherence series"""
    date: date
    day: str
    scheduled_count: int
    taken_count: int
    adherence: float = Field(..., ge=0, le=100)


class Milestone(BaseModel):
    id: str
    type: MilestoneType
    target: int
    achieved: bool


class AdherenceStreak(BaseModel):
    """Adherence streak information"""
    current_streak: int
    longest_streak: int
    total_doses_taken: int
    milestones: List[Milestone]
    message: Optional[str] = None


class TimeWindowAdherence(BaseModel):
    window: str
    scheduled_count: int
    taken_count: int
    percentage: Optional[int] = None


class WeeklyCoachingSummary(BaseModel):
    """Weekly rollup with best and worst time of day"""
    week_start: date
    week_end: date
    total_doses: int
    taken_doses: int
    missed_doses: int
    skipped_doses: int
    adherence_percentage: int = Field(..., ge=0, le=100)
    best_time_window: str
    worst_time_window: str
    time_windows: List[TimeWindowAdherence]
    achievements: List[str]
    suggestions: List[str]


class DoseHistoryEntry(BaseModel):
    """A past dose and what happened to it"""
    medication_id: str
    medication_name: str
    scheduled_at: datetime
    status: DoseClassification
    reason: Optional[str] = None


class AdherenceDashboard(BaseModel):
    """Everything the dashboard shows in one response"""
    generated_at: datetime
    weekly: AdherenceSummary
    monthly: AdherenceSummary
    streak: AdherenceStreak
    missed_today: List[MissedDoseResponse]
    upcoming: List[DoseOccurrenceResponse]
