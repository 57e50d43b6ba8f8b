"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from datetime import datetime


def get_now() -> datetime:
    """Current local wall-clock time; overridden in tests"""
    return datetime.now()


class ServiceDependency:
    """
    Dependency injection for services
    """

    _session_scan = None

    @staticmethod
    def get_medication_service():
        from services.medication_service import medication_service
        return medication_service

    @staticmethod
    def get_adherence_service():
        from services.adherence_service import adherence_service
        return adherence_service

    @staticmethod
    def get_interaction_monitor():
        from tools.interaction_checker import interaction_monitor
        return interaction_monitor

    @staticmethod
    def get_missed_dose_detector():
        from tools.dose_classifier import missed_dose_detector
        return missed_dose_detector

    @classmethod
    def get_session_scan(cls):
        if cls._session_scan is None:
            from tools.dose_classifier import SessionMissedDoseScan
            cls._session_scan = SessionMissedDoseScan(cls.get_missed_dose_detector())
        return cls._session_scan

    @staticmethod
    def get_reminder_engine():
        from actions.reminder_engine import reminder_engine
        return reminder_engine


# Service dependency instances
services = ServiceDependency()


def get_medication_service():
    return services.get_medication_service()


def get_adherence_service():
    return services.get_adherence_service()


def get_interaction_monitor():
    return services.get_interaction_monitor()


def get_session_scan():
    return services.get_session_scan()


def get_reminder_engine():
    return services.get_reminder_engine()
