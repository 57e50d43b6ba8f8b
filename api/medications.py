"""
Medications API Router
Endpoints for medication management and the dose-status ledger
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_medication_service
from api.schemas.medication import (
    DoseStatusUpdate,
    Medication,
    MedicationCreate,
    MedicationList,
    MedicationUpdate,
    MissedDoseReasons,
    PRNCheck,
    PRNConfig,
    PRNConfigRequest,
    RefillNeeded,
    RefillRequest,
    UndoResponse,
)
from services.medication_service import (
    MedicationService,
    MedicationNotFoundError,
    InvalidRefillQuantityError,
)
from services.undo_service import UndoUnavailableError
from services.prn_service import PRNNotAllowedError


router = APIRouter(prefix="/medications", tags=["medications"])


def _not_found(e: MedicationNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/", response_model=MedicationList)
async def list_medications(
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Get all medications
    """
    medications = medication_service.list_medications()
    return MedicationList(medications=medications, total=len(medications))


@router.post("/", response_model=Medication, status_code=status.HTTP_201_CREATED)
async def create_medication(
    medication_data: MedicationCreate,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Add a new medication

    - **name**: Medication name
    - **dosage**: Dosage (e.g., "500mg")
    - **times**: Daily dose times as HH:MM
    - **tapering_schedule**: Optional per-day tablet counts, used with **start_date**
    """
    return medication_service.add_medication(medication_data)


@router.get("/refills/needed", response_model=List[RefillNeeded])
async def get_refills_needed(
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Medications whose quantity is at or below their refill threshold
    """
    return [
        RefillNeeded(
            medication_id=m.id,
            medication_name=m.name,
            quantity_remaining=m.quantity,
            refill_threshold=m.refill_threshold
        )
        for m in medication_service.list_refills_needed()
    ]


@router.post("/missed-reasons", response_model=MedicationList)
async def save_missed_dose_reasons(
    request: MissedDoseReasons,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Save free-text reasons for missed doses
    """
    try:
        updated = medication_service.save_missed_dose_reasons(request.reasons)
    except MedicationNotFoundError as e:
        raise _not_found(e)
    return MedicationList(medications=updated, total=len(updated))


@router.post("/undo", response_model=Medication)
async def undo_last_action(
    action_id: Optional[str] = None,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Undo the most recent dose status change while its window is open
    """
    try:
        return medication_service.undo(action_id)
    except UndoUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    except MedicationNotFoundError as e:
        raise _not_found(e)


@router.get("/{medication_id}", response_model=Medication)
async def get_medication(
    medication_id: str,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Get a medication with its dose ledger
    """
    try:
        return medication_service.get_medication(medication_id)
    except MedicationNotFoundError as e:
        raise _not_found(e)


@router.put("/{medication_id}", response_model=Medication)
async def update_medication(
    medication_id: str,
    update_data: MedicationUpdate,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Update medication details
    """
    try:
        return medication_service.update_medication(medication_id, update_data)
    except MedicationNotFoundError as e:
        raise _not_found(e)


@router.delete("/{medication_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medication(
    medication_id: str,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Remove a medication and its reminder history
    """
    try:
        medication_service.delete_medication(medication_id)
    except MedicationNotFoundError as e:
        raise _not_found(e)


@router.post("/{medication_id}/doses", response_model=UndoResponse)
async def set_dose_status(
    medication_id: str,
    request: DoseStatusUpdate,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Mark a dose taken or skipped, or clear it with a null status

    The response carries an undo handle valid for a few seconds.
    """
    try:
        action = medication_service.set_dose_status(
            medication_id, request.date, request.time, request.status
        )
        medication = medication_service.get_medication(medication_id)
    except MedicationNotFoundError as e:
        raise _not_found(e)

    return UndoResponse(
        action_id=action.id,
        action_type=action.action_type,
        expires_at=action.expires_at,
        medication=medication
    )


@router.post("/{medication_id}/refill", response_model=Medication)
async def log_refill(
    medication_id: str,
    request: RefillRequest,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Record a refill with the new on-hand quantity
    """
    try:
        return medication_service.log_refill(medication_id, request.quantity)
    except MedicationNotFoundError as e:
        raise _not_found(e)
    except InvalidRefillQuantityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ==================== PRN ====================

@router.put("/{medication_id}/prn", response_model=PRNConfig)
async def configure_prn(
    medication_id: str,
    request: PRNConfigRequest,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Configure an as-needed medication's interval and daily maximum
    """
    try:
        return medication_service.configure_prn(
            medication_id, request.min_interval_hours, request.max_per_day
        )
    except MedicationNotFoundError as e:
        raise _not_found(e)


@router.get("/{medication_id}/prn", response_model=PRNCheck)
async def check_prn(
    medication_id: str,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Whether an as-needed dose may be taken now
    """
    try:
        return medication_service.check_prn(medication_id)
    except MedicationNotFoundError as e:
        raise _not_found(e)


@router.post("/{medication_id}/prn/take", response_model=Medication)
async def take_prn_dose(
    medication_id: str,
    medication_service: MedicationService = Depends(get_medication_service)
):
    """
    Take an as-needed dose now
    """
    try:
        return medication_service.take_prn_dose(medication_id)
    except MedicationNotFoundError as e:
        raise _not_found(e)
    except PRNNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
