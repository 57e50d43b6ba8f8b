"""
Test Tools Package
Tests for the tools module (scheduler, dose classifier, interaction checker)
"""

__all__ = [
    "test_scheduler",
    "test_dose_classifier",
    "test_interaction_checker",
]
