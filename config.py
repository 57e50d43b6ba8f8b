"""
Configuration management for PillPal
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "PillPal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Snapshot storage
    DATABASE_URL: str = "sqlite:///./pillpal.db"
    DATABASE_ECHO: bool = False

    # LLM Configuration (interaction advisory)
    LLM_PROVIDER: str = "cerebras"
    CEREBRAS_API_KEY: Optional[str] = None
    CEREBRAS_BASE_URL: str = "https://api.cerebras.ai/v1"
    LLM_MODEL: str = "llama3.1-8b"
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int = 2048
    LLM_TIMEOUT_SECONDS: int = 30

    # Background notification tick
    REMINDER_LOOP_ENABLED: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class TrackerConfig:
    """Tuning constants for scheduling, classification and reminders"""

    # Tapering schedules spread a day's tablets across this window
    TAPER_WINDOW_START: str = "08:00"
    TAPER_WINDOW_END: str = "22:00"

    # Missed-dose banner only surfaces doses older than this
    MISSED_DOSE_GRACE_MINUTES: int = 30

    # Undo is offered for this long after a status change
    UNDO_WINDOW_SECONDS: int = 5

    # Reminder loop
    NOTIFICATION_TICK_SECONDS: int = 60
    REFILL_CHECK_TIME: str = "09:00"

    # Adaptive reminders
    ADAPTIVE_LATENESS_THRESHOLD_MINUTES: float = 5.0
    ADAPTIVE_MAX_SHIFT_MINUTES: int = 15

    # Time-of-day buckets (start hour inclusive, end hour exclusive)
    MORNING_HOURS: tuple[int, int] = (5, 12)
    AFTERNOON_HOURS: tuple[int, int] = (12, 17)

    # Streaks
    STREAK_LOOKBACK_DAYS: int = 365
    STREAK_DAY_MILESTONES: list[int] = [3, 7, 14, 30, 60, 90]
    STREAK_DOSE_MILESTONES: list[int] = [10, 50, 100, 500]

    # Reports
    REPORT_WINDOW_DAYS: int = 30
    WEEKLY_WINDOW_DAYS: int = 7


# Snapshot document keys
class DocumentKeys:
    MEDICATIONS = "medications"
    NOTIFICATION_BEHAVIOR = "notification_behavior"
    PREFERENCES = "preferences"
    SYMPTOM_ENTRIES = "symptom_entries"
    EMERGENCY_INFO = "emergency_info"
    SECURITY = "security"
    PRN_CONFIGS = "prn_configs"


settings = get_settings()
tracker_config = TrackerConfig()
