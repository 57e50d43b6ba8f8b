"""
Medication Schemas
Pydantic models for the medication record, its ledger and related requests
"""

import re
from typing import Any, Optional, List, Dict
from datetime import datetime, date
from pydantic import BaseModel, Field, field_validator

from models import DoseStatus, FoodInstruction, InteractionSeverity


TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _validate_times(values: List[str]) -> List[str]:
    for value in values:
        if not TIME_PATTERN.match(value):
            raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return values


# ==================== BASE SCHEMAS ====================

class TaperingStep(BaseModel):
    """One row of a tapering table"""
    day: int
    tablets: int


class MedicationBase(BaseModel):
    """Fields a user edits on a medication"""
    name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(default="", max_length=100)
    food: FoodInstruction = FoodInstruction.NONE
    times: List[str] = Field(default_factory=list)
    quantity: Optional[int] = None
    refill_threshold: Optional[int] = Field(None, ge=0)
    tapering_schedule: Optional[List[TaperingStep]] = None
    start_date: Optional[date] = None
    drug_class: Optional[str] = None
    side_effects: Optional[str] = None
    usage_note: Optional[str] = None

    @field_validator("times")
    @classmethod
    def check_times(cls, values: List[str]) -> List[str]:
        return _validate_times(values)


# ==================== REQUEST SCHEMAS ====================

class MedicationCreate(MedicationBase):
    """Schema for creating a new medication"""
    pass


class MedicationUpdate(BaseModel):
    """Schema for updating medication"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[str] = Field(None, max_length=100)
    food: Optional[FoodInstruction] = None
    times: Optional[List[str]] = None
    quantity: Optional[int] = None
    refill_threshold: Optional[int] = Field(None, ge=0)
    tapering_schedule: Optional[List[TaperingStep]] = None
    start_date: Optional[date] = None
    drug_class: Optional[str] = None
    side_effects: Optional[str] = None
    usage_note: Optional[str] = None

    @field_validator("name", "dosage", "frequency", "food", "times")
    @classmethod
    def reject_null(cls, value, info):
        # Omit a field to leave it unchanged; these ones cannot be cleared
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("times")
    @classmethod
    def check_times(cls, values: Optional[List[str]]) -> Optional[List[str]]:
        if values is None:
            return values
        return _validate_times(values)


class DoseStatusUpdate(BaseModel):
    """Mark, re-mark or unmark a single dose occurrence"""
    date: date
    time: str
    status: Optional[DoseStatus] = None

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str) -> str:
        return _validate_times([value])[0]


class RefillRequest(BaseModel):
    """New on-hand quantity after a refill; validated by the service"""
    quantity: Any


class MissedDoseReasons(BaseModel):
    """medication_id -> {"YYYY-MM-DDTHH:MM": reason}"""
    reasons: Dict[str, Dict[str, str]]


# ==================== DOMAIN RECORDS ====================

class Medication(MedicationBase):
    """A medication as owned by the store, including its dose ledger"""
    id: str
    dose_status: Dict[str, DoseStatus] = Field(default_factory=dict)
    missed_dose_reasons: Dict[str, str] = Field(default_factory=dict)
    refill_notified: bool = False
    refill_history: List[date] = Field(default_factory=list)

    @property
    def is_tapering(self) -> bool:
        return bool(self.tapering_schedule) and self.start_date is not None


class NotificationBehavior(BaseModel):
    """Observed reminder response behaviour for one medication"""
    average_response_time: float = 0.0
    late_dose_count: int = 0
    adjusted_times: Dict[int, str] = Field(default_factory=dict)


class PRNConfig(BaseModel):
    """Limits for an as-needed medication"""
    medication_id: str
    min_interval_hours: float = Field(default=4.0, ge=0)
    max_per_day: int = Field(default=4, ge=1)
    taken_today: int = 0
    last_taken: Optional[datetime] = None
    last_reset_date: Optional[date] = None


class PRNConfigRequest(BaseModel):
    min_interval_hours: float = Field(default=4.0, ge=0)
    max_per_day: int = Field(default=4, ge=1)


# ==================== RESPONSE SCHEMAS ====================

class MedicationList(BaseModel):
    """List of medications"""
    medications: List[Medication]
    total: int


class UndoResponse(BaseModel):
    """Undo handle returned after a status change"""
    action_id: str
    action_type: str
    expires_at: datetime
    medication: Medication


class RefillNeeded(BaseModel):
    """Medication needing refill"""
    medication_id: str
    medication_name: str
    quantity_remaining: int
    refill_threshold: int


class PRNCheck(BaseModel):
    """Whether an as-needed dose may be taken now"""
    can_take: bool
    reason: Optional[str] = None
    next_available_time: Optional[datetime] = None
    remaining_today: int = 0


class InteractionDetail(BaseModel):
    """One interaction reported by the advisory"""
    description: str
    severity: InteractionSeverity = InteractionSeverity.UNKNOWN
    management: str = ""
    interacting_drugs: List[str] = Field(default_factory=list)

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, value):
        if isinstance(value, InteractionSeverity):
            return value
        for severity in InteractionSeverity:
            if str(value).strip().lower() == severity.value.lower():
                return severity
        return InteractionSeverity.UNKNOWN


class InteractionResult(BaseModel):
    """Structured interaction advisory"""
    has_interactions: bool
    summary: str
    details: List[InteractionDetail] = Field(default_factory=list)
