"""
Reminders API Router
Reminders due now and adaptive timing preferences
"""

from typing import List, Dict, Any
from datetime import datetime
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_medication_service, get_now, get_reminder_engine
from actions.reminder_engine import ReminderEngine
from services.medication_service import MedicationService


router = APIRouter(prefix="/reminders", tags=["reminders"])


class ReminderPreferences(BaseModel):
    adaptive_notifications: bool


@router.get("/due", response_model=List[Dict[str, Any]])
async def get_due_reminders(
    now: datetime = Depends(get_now),
    medication_service: MedicationService = Depends(get_medication_service),
    reminder_engine: ReminderEngine = Depends(get_reminder_engine)
):
    """
    Dose reminders whose (adjusted) time is the current minute
    """
    reminders = reminder_engine.due_reminders(medication_service.list_medications(), now)
    return [r.to_dict() for r in reminders]


@router.post("/tick", response_model=List[Dict[str, Any]])
async def run_notification_tick(
    now: datetime = Depends(get_now),
    reminder_engine: ReminderEngine = Depends(get_reminder_engine)
):
    """
    Run one notification check, delivering dose and refill reminders
    """
    return [r.to_dict() for r in reminder_engine.tick(now)]


@router.get("/preferences", response_model=ReminderPreferences)
async def get_reminder_preferences(
    reminder_engine: ReminderEngine = Depends(get_reminder_engine)
):
    return ReminderPreferences(
        adaptive_notifications=reminder_engine.behavior_tracker.adaptive_enabled
    )


@router.put("/preferences", response_model=ReminderPreferences)
async def update_reminder_preferences(
    preferences: ReminderPreferences,
    reminder_engine: ReminderEngine = Depends(get_reminder_engine)
):
    """
    Turn adaptive reminder timing on or off
    """
    reminder_engine.behavior_tracker.set_adaptive_enabled(preferences.adaptive_notifications)
    return preferences
