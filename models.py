"""
Database Models
SQLAlchemy ORM model and shared enums for PillPal
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime
from enum import Enum as PyEnum

from database import Base


# ==================== ENUMS ====================

class DoseStatus(str, PyEnum):
    """Status recorded in a medication's dose ledger"""
    TAKEN = "taken"
    SKIPPED = "skipped"


class DoseClassification(str, PyEnum):
    """Derived state of a single dose occurrence"""
    SCHEDULED = "scheduled"
    TAKEN = "taken"
    SKIPPED = "skipped"
    MISSED = "missed"


class MissedDosePolicy(str, PyEnum):
    """How eagerly a past-due dose is reported as missed"""
    STRICT = "strict"   # Reports and history: anything past due
    GRACE = "grace"     # Banner: only doses older than the grace period


class FoodInstruction(str, PyEnum):
    """Food instruction tag"""
    WITH_FOOD = "with_food"
    WITHOUT_FOOD = "without_food"
    NONE = "none"


class InteractionSeverity(str, PyEnum):
    """Severity levels reported by the interaction advisory"""
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"
    UNKNOWN = "Unknown"


class TimeWindow(str, PyEnum):
    """Coarse time-of-day buckets"""
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"


class MilestoneType(str, PyEnum):
    DAYS = "days"
    DOSES = "doses"


# ==================== MODELS ====================

class StoredDocument(Base):
    """Whole-document JSON snapshot keyed by logical name"""
    __tablename__ = "stored_documents"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, index=True, nullable=False)
    payload = Column(Text, nullable=False, default="null")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StoredDocument(key='{self.key}', updated_at={self.updated_at})>"
