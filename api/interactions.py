"""
Interactions API Router
Drug interaction advisory for the current medication list
"""

from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_interaction_monitor, get_medication_service
from api.schemas.medication import InteractionResult
from services.medication_service import MedicationService
from tools.interaction_checker import InteractionMonitor


router = APIRouter(prefix="/interactions", tags=["interactions"])


class InteractionAdvisory(BaseModel):
    """Advisory wrapper; result is null when no advisory is available"""
    medication_count: int
    available: bool
    result: Optional[InteractionResult] = None


@router.get("/", response_model=InteractionAdvisory)
async def get_interaction_advisory(
    refresh: bool = False,
    medication_service: MedicationService = Depends(get_medication_service),
    monitor: InteractionMonitor = Depends(get_interaction_monitor)
):
    """
    Check the current medications for interactions

    The advisory is only re-requested when the medication list changed,
    unless **refresh** is set.
    """
    medications = medication_service.list_medications()
    if refresh:
        monitor.reset()
    result = await monitor.refresh(medications)
    return InteractionAdvisory(
        medication_count=len(medications),
        available=result is not None,
        result=result
    )
