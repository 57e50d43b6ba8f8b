"""
Services Module
Business logic layer for the PillPal application
"""

from services.storage_service import SnapshotStore, snapshot_store
from services.undo_service import UndoService, UndoAction, UndoUnavailableError
from services.prn_service import PRNService, PRNNotAllowedError
from services.llm_service import LLMService, llm_service
from services.medication_service import (
    MedicationService,
    MedicationNotFoundError,
    InvalidRefillQuantityError,
    medication_service,
)
from services.adherence_service import AdherenceService, adherence_service


__all__ = [
    # Service classes
    "SnapshotStore",
    "UndoService",
    "PRNService",
    "LLMService",
    "MedicationService",
    "AdherenceService",
    # Errors
    "UndoAction",
    "UndoUnavailableError",
    "PRNNotAllowedError",
    "MedicationNotFoundError",
    "InvalidRefillQuantityError",
    # Singleton instances
    "snapshot_store",
    "llm_service",
    "medication_service",
    "adherence_service",
]
