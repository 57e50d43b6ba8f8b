"""
PillPal Test Suite
==================

This package contains all tests for the PillPal medication tracker.

Test Structure:
- test_api/: API endpoint tests for FastAPI routes
- test_services/: Medication, adherence, storage and PRN service tests
- test_tools/: Scheduler, missed-dose classifier and interaction checker tests
- test_actions/: Reminder engine tests
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_api/

    # Run with verbose output
    pytest -v

    # Run only marked tests
    pytest -m "api"
"""

# Test configuration
TEST_DATABASE_URL = "sqlite:///:memory:"

# Common test data
SAMPLE_MEDICATIONS = [
    {"name": "Metformin", "dosage": "500mg", "times": ["08:00", "20:00"]},
    {"name": "Lisinopril", "dosage": "10mg", "times": ["08:00"]},
    {"name": "Atorvastatin", "dosage": "20mg", "times": ["21:00"]},
]

__all__ = [
    "TEST_DATABASE_URL",
    "SAMPLE_MEDICATIONS",
]
