"""
Tests for Missed-Dose Classifier
Tests occurrence classification, the two missed policies and the session scan
"""

import pytest
from datetime import datetime, date, timedelta

from models import DoseClassification, DoseStatus, MissedDosePolicy
from tools.scheduler import dose_scheduler
from tools.dose_classifier import (
    MissedDoseDetector,
    SessionMissedDoseScan,
    classify,
    is_missed,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def detector():
    return MissedDoseDetector()


def occurrence_at(medication, day, time_str):
    return next(o for o in dose_scheduler.occurrences_on(medication, day) if o.time == time_str)


# =============================================================================
# classify
# =============================================================================

class TestClassify:
    """Tests for single-occurrence classification"""

    def test_future_dose_is_scheduled(self, make_medication):
        med = make_medication(times=["20:00"])
        occ = occurrence_at(med, date(2024, 1, 1), "20:00")

        assert classify(med, occ, datetime(2024, 1, 1, 19, 59)) == DoseClassification.SCHEDULED

    def test_dose_due_now_is_missed(self, make_medication):
        med = make_medication(times=["20:00"])
        occ = occurrence_at(med, date(2024, 1, 1), "20:00")

        assert classify(med, occ, datetime(2024, 1, 1, 20, 0)) == DoseClassification.MISSED

    def test_recorded_status_wins(self, make_medication):
        med = make_medication(
            times=["08:00", "20:00"],
            dose_status={"2024-01-01T08:00": "taken", "2024-01-01T20:00": "skipped"}
        )
        now = datetime(2024, 1, 1, 7, 0)

        assert classify(med, occurrence_at(med, date(2024, 1, 1), "08:00"), now) == DoseClassification.TAKEN
        assert classify(med, occurrence_at(med, date(2024, 1, 1), "20:00"), now) == DoseClassification.SKIPPED

    def test_skipped_is_not_missed(self, make_medication):
        med = make_medication(times=["08:00"], dose_status={"2024-01-01T08:00": DoseStatus.SKIPPED})
        occ = occurrence_at(med, date(2024, 1, 1), "08:00")

        assert not is_missed(med, occ, datetime(2024, 1, 2, 12, 0))


# =============================================================================
# Missed policies
# =============================================================================

class TestMissedPolicies:
    """STRICT counts anything past due; GRACE waits out the grace period"""

    def test_strict_counts_just_passed_dose(self, make_medication):
        med = make_medication(times=["20:00"])
        occ = occurrence_at(med, date(2024, 1, 1), "20:00")

        assert is_missed(med, occ, datetime(2024, 1, 1, 20, 10), MissedDosePolicy.STRICT)

    def test_grace_hides_recent_dose(self, make_medication):
        med = make_medication(times=["20:00"])
        occ = occurrence_at(med, date(2024, 1, 1), "20:00")

        assert not is_missed(med, occ, datetime(2024, 1, 1, 20, 10), MissedDosePolicy.GRACE)
        assert not is_missed(med, occ, datetime(2024, 1, 1, 20, 30), MissedDosePolicy.GRACE)

    def test_grace_reports_after_thirty_minutes(self, make_medication):
        med = make_medication(times=["20:00"])
        occ = occurrence_at(med, date(2024, 1, 1), "20:00")

        assert is_missed(med, occ, datetime(2024, 1, 1, 20, 31), MissedDosePolicy.GRACE)

    def test_banner_uses_grace(self, detector, make_medication):
        med = make_medication(times=["08:00", "20:00"])
        missed = detector.banner_missed_doses([med], datetime(2024, 1, 1, 20, 15))

        assert [m.occurrence.time for m in missed] == ["08:00"]

    def test_find_missed_most_recent_first(self, detector, make_medication):
        med = make_medication(times=["08:00", "12:00", "20:00"])
        missed = detector.find_missed_doses([med], datetime(2024, 1, 1, 21, 0))

        assert [m.occurrence.time for m in missed] == ["20:00", "12:00", "08:00"]

    def test_find_missed_includes_reason(self, detector, make_medication):
        med = make_medication(
            times=["08:00"],
            missed_dose_reasons={"2024-01-01T08:00": "Forgot"}
        )
        missed = detector.find_missed_doses([med], datetime(2024, 1, 1, 9, 0))

        assert missed[0].reason == "Forgot"

    def test_tapering_missed_uses_expanded_times(self, detector, tapering_medication):
        # Day one of the taper: 08:00, 15:00, 22:00
        now = datetime.combine(tapering_medication.start_date, datetime.min.time()) + timedelta(hours=16)
        missed = detector.find_missed_doses([tapering_medication], now)

        assert [m.occurrence.time for m in missed] == ["15:00", "08:00"]
        assert missed[0].occurrence.dosage == "3 tablets"


# =============================================================================
# Session scan
# =============================================================================

class TestSessionMissedDoseScan:
    """Tests for the once-per-session scan"""

    def test_scans_today_and_yesterday(self, detector, make_medication):
        med = make_medication(times=["08:00"])
        scan = SessionMissedDoseScan(detector)

        missed = scan.run([med], datetime(2024, 1, 2, 9, 0))

        assert [m.occurrence.date for m in missed] == [date(2024, 1, 2), date(2024, 1, 1)]

    def test_strict_within_session_scan(self, detector, make_medication):
        med = make_medication(times=["08:00"])
        scan = SessionMissedDoseScan(detector)

        missed = scan.run([med], datetime(2024, 1, 1, 8, 5))

        assert missed[0].occurrence.key == "2024-01-01T08:00"

    def test_runs_once(self, detector, make_medication):
        med = make_medication(times=["08:00"])
        scan = SessionMissedDoseScan(detector)
        now = datetime(2024, 1, 2, 9, 0)

        assert scan.run([med], now)
        assert scan.has_run
        assert scan.run([med], now) == []

    def test_reset_allows_another_scan(self, detector, make_medication):
        med = make_medication(times=["08:00"])
        scan = SessionMissedDoseScan(detector)
        now = datetime(2024, 1, 2, 9, 0)

        scan.run([med], now)
        scan.reset()

        assert len(scan.run([med], now)) == 2
