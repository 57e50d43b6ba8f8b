"""
Tests for Medications API
==========================

Tests medication CRUD, the dose ledger with undo, refills and PRN dosing.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient


# ==================== FIXTURES ====================

@pytest.fixture
def created_medication(client: TestClient, sample_medication_data):
    """Medication created through the API"""
    response = client.post("/api/v1/medications/", json=sample_medication_data)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def mark_dose(client, medication_id, time_str="08:00", dose_status="taken", day="2024-01-01"):
    return client.post(
        f"/api/v1/medications/{medication_id}/doses",
        json={"date": day, "time": time_str, "status": dose_status}
    )


# ==================== CRUD TESTS ====================

class TestMedicationCrud:
    """Tests for create, read, update and delete"""

    @pytest.mark.api
    def test_create_medication(self, client: TestClient, sample_medication_data):
        response = client.post("/api/v1/medications/", json=sample_medication_data)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["name"] == "Metformin"
        assert data["times"] == ["08:00", "20:00"]
        assert data["dose_status"] == {}
        assert data["id"]

    @pytest.mark.api
    def test_create_rejects_bad_time(self, client: TestClient, sample_medication_data):
        sample_medication_data["times"] = ["8am"]
        response = client.post("/api/v1/medications/", json=sample_medication_data)

        assert response.status_code == 422

    @pytest.mark.api
    def test_create_rejects_missing_name(self, client: TestClient):
        response = client.post("/api/v1/medications/", json={"dosage": "10mg"})

        assert response.status_code == 422

    @pytest.mark.api
    def test_create_tapering_medication(self, client: TestClient):
        response = client.post("/api/v1/medications/", json={
            "name": "Prednisone",
            "dosage": "5mg",
            "tapering_schedule": [{"day": 1, "tablets": 3}, {"day": 2, "tablets": 1}],
            "start_date": "2024-01-01"
        })

        assert response.status_code == status.HTTP_201_CREATED
        assert len(response.json()["tapering_schedule"]) == 2

    @pytest.mark.api
    def test_list_medications(self, client: TestClient, created_medication):
        response = client.get("/api/v1/medications/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 1
        assert data["medications"][0]["id"] == created_medication["id"]

    @pytest.mark.api
    def test_get_medication(self, client: TestClient, created_medication):
        response = client.get(f"/api/v1/medications/{created_medication['id']}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Metformin"

    @pytest.mark.api
    def test_get_unknown_medication(self, client: TestClient):
        response = client.get("/api/v1/medications/does-not-exist")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] is True

    @pytest.mark.api
    def test_update_medication(self, client: TestClient, created_medication):
        response = client.put(
            f"/api/v1/medications/{created_medication['id']}",
            json={"dosage": "1000mg", "times": ["09:00"]}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["dosage"] == "1000mg"
        assert data["times"] == ["09:00"]
        assert data["name"] == "Metformin"

    @pytest.mark.api
    def test_update_keeps_ledger(self, client: TestClient, created_medication):
        mark_dose(client, created_medication["id"])
        response = client.put(
            f"/api/v1/medications/{created_medication['id']}",
            json={"frequency": "Daily"}
        )

        assert response.json()["dose_status"] == {"2024-01-01T08:00": "taken"}

    @pytest.mark.api
    @pytest.mark.parametrize("field", ["name", "dosage", "frequency", "food", "times"])
    def test_update_rejects_null_required_field(self, client: TestClient, created_medication, field):
        response = client.put(
            f"/api/v1/medications/{created_medication['id']}",
            json={field: None}
        )

        assert response.status_code == 422
        stored = client.get(f"/api/v1/medications/{created_medication['id']}").json()
        assert stored[field] == created_medication[field]

    @pytest.mark.api
    def test_update_clears_nullable_field(self, client: TestClient, created_medication):
        response = client.put(
            f"/api/v1/medications/{created_medication['id']}",
            json={"refill_threshold": None}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["refill_threshold"] is None

    @pytest.mark.api
    def test_delete_medication(self, client: TestClient, created_medication):
        response = client.delete(f"/api/v1/medications/{created_medication['id']}")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get("/api/v1/medications/").json()["total"] == 0

    @pytest.mark.api
    def test_delete_unknown_medication(self, client: TestClient):
        response = client.delete("/api/v1/medications/does-not-exist")
        assert response.status_code == status.HTTP_404_NOT_FOUND


# ==================== DOSE LEDGER TESTS ====================

class TestDoseLedger:
    """Tests for marking doses and undo"""

    @pytest.mark.api
    def test_mark_taken_decrements_quantity(self, client: TestClient, created_medication):
        response = mark_dose(client, created_medication["id"])

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["action_type"] == "dose_taken"
        assert data["medication"]["quantity"] == 29
        assert data["medication"]["dose_status"] == {"2024-01-01T08:00": "taken"}

    @pytest.mark.api
    def test_mark_taken_twice_is_idempotent(self, client: TestClient, created_medication):
        mark_dose(client, created_medication["id"])
        response = mark_dose(client, created_medication["id"])

        assert response.json()["medication"]["quantity"] == 29

    @pytest.mark.api
    def test_taken_to_skipped_restores_quantity(self, client: TestClient, created_medication):
        mark_dose(client, created_medication["id"])
        response = mark_dose(client, created_medication["id"], dose_status="skipped")

        assert response.json()["medication"]["quantity"] == 30
        assert response.json()["action_type"] == "dose_skipped"

    @pytest.mark.api
    def test_clear_status(self, client: TestClient, created_medication):
        mark_dose(client, created_medication["id"])
        response = mark_dose(client, created_medication["id"], dose_status=None)

        assert response.json()["medication"]["dose_status"] == {}
        assert response.json()["action_type"] == "dose_cleared"

    @pytest.mark.api
    def test_invalid_dose_time(self, client: TestClient, created_medication):
        response = mark_dose(client, created_medication["id"], time_str="25:00")
        assert response.status_code == 422

    @pytest.mark.api
    def test_mark_unknown_medication(self, client: TestClient):
        response = mark_dose(client, "does-not-exist")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_undo_within_window(self, client: TestClient, created_medication, clock):
        action = mark_dose(client, created_medication["id"]).json()
        clock.advance(seconds=4)

        response = client.post("/api/v1/medications/undo", params={"action_id": action["action_id"]})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["dose_status"] == {}
        assert response.json()["quantity"] == 30

    @pytest.mark.api
    def test_undo_after_window(self, client: TestClient, created_medication, clock):
        mark_dose(client, created_medication["id"])
        clock.advance(seconds=5)

        response = client.post("/api/v1/medications/undo")

        assert response.status_code == status.HTTP_410_GONE
        assert client.get(
            f"/api/v1/medications/{created_medication['id']}"
        ).json()["quantity"] == 29

    @pytest.mark.api
    def test_undo_superseded_action(self, client: TestClient, created_medication):
        first = mark_dose(client, created_medication["id"]).json()
        mark_dose(client, created_medication["id"], time_str="20:00")

        response = client.post("/api/v1/medications/undo", params={"action_id": first["action_id"]})

        assert response.status_code == status.HTTP_410_GONE

    @pytest.mark.api
    def test_undo_only_once(self, client: TestClient, created_medication):
        mark_dose(client, created_medication["id"])

        assert client.post("/api/v1/medications/undo").status_code == status.HTTP_200_OK
        assert client.post("/api/v1/medications/undo").status_code == status.HTTP_410_GONE

    @pytest.mark.api
    def test_save_missed_reasons(self, client: TestClient, created_medication):
        response = client.post("/api/v1/medications/missed-reasons", json={
            "reasons": {created_medication["id"]: {"2024-01-01T08:00": "Forgot"}}
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["medications"][0]["missed_dose_reasons"] == {
            "2024-01-01T08:00": "Forgot"
        }

    @pytest.mark.api
    def test_missed_reasons_unknown_medication(self, client: TestClient):
        response = client.post("/api/v1/medications/missed-reasons", json={
            "reasons": {"does-not-exist": {"2024-01-01T08:00": "Forgot"}}
        })
        assert response.status_code == status.HTTP_404_NOT_FOUND


# ==================== REFILL TESTS ====================

class TestRefills:
    """Tests for refill logging and refill-needed listing"""

    @pytest.mark.api
    def test_log_refill(self, client: TestClient, created_medication):
        response = client.post(
            f"/api/v1/medications/{created_medication['id']}/refill",
            json={"quantity": 60}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["quantity"] == 60
        assert data["refill_history"] == ["2024-01-01"]

    @pytest.mark.api
    def test_log_refill_accepts_numeric_string(self, client: TestClient, created_medication):
        response = client.post(
            f"/api/v1/medications/{created_medication['id']}/refill",
            json={"quantity": " 12 "}
        )
        assert response.json()["quantity"] == 12

    @pytest.mark.api
    @pytest.mark.parametrize("quantity", ["abc", "-1", -3, "2.5", True, False, 12.0, None])
    def test_log_refill_rejects_invalid(self, client: TestClient, created_medication, quantity):
        response = client.post(
            f"/api/v1/medications/{created_medication['id']}/refill",
            json={"quantity": quantity}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Please enter a valid number."
        assert client.get(
            f"/api/v1/medications/{created_medication['id']}"
        ).json()["quantity"] == 30

    @pytest.mark.api
    def test_refills_needed(self, client: TestClient, created_medication):
        assert client.get("/api/v1/medications/refills/needed").json() == []

        client.post(f"/api/v1/medications/{created_medication['id']}/refill", json={"quantity": 5})
        response = client.get("/api/v1/medications/refills/needed")

        assert response.json() == [{
            "medication_id": created_medication["id"],
            "medication_name": "Metformin",
            "quantity_remaining": 5,
            "refill_threshold": 5
        }]


# ==================== PRN TESTS ====================

class TestPRN:
    """Tests for as-needed dosing"""

    @pytest.fixture
    def prn_medication(self, client: TestClient):
        response = client.post("/api/v1/medications/", json={
            "name": "Ibuprofen",
            "dosage": "200mg",
            "quantity": 20
        })
        med = response.json()
        client.put(
            f"/api/v1/medications/{med['id']}/prn",
            json={"min_interval_hours": 6, "max_per_day": 3}
        )
        return med

    @pytest.mark.api
    def test_configure_prn(self, client: TestClient, prn_medication):
        response = client.put(
            f"/api/v1/medications/{prn_medication['id']}/prn",
            json={"min_interval_hours": 4, "max_per_day": 2}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["max_per_day"] == 2

    @pytest.mark.api
    def test_configure_rejects_zero_max(self, client: TestClient, prn_medication):
        response = client.put(
            f"/api/v1/medications/{prn_medication['id']}/prn",
            json={"max_per_day": 0}
        )
        assert response.status_code == 422

    @pytest.mark.api
    def test_take_prn_dose(self, client: TestClient, prn_medication):
        response = client.post(f"/api/v1/medications/{prn_medication['id']}/prn/take")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["quantity"] == 19

        check = client.get(f"/api/v1/medications/{prn_medication['id']}/prn").json()
        assert check["can_take"] is False
        assert check["remaining_today"] == 2

    @pytest.mark.api
    def test_take_prn_too_soon(self, client: TestClient, prn_medication, clock):
        client.post(f"/api/v1/medications/{prn_medication['id']}/prn/take")
        clock.advance(hours=1)

        response = client.post(f"/api/v1/medications/{prn_medication['id']}/prn/take")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "interval" in response.json()["message"]

    @pytest.mark.api
    def test_take_prn_after_interval(self, client: TestClient, prn_medication, clock):
        client.post(f"/api/v1/medications/{prn_medication['id']}/prn/take")
        clock.advance(hours=6)

        response = client.post(f"/api/v1/medications/{prn_medication['id']}/prn/take")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["quantity"] == 18

    @pytest.mark.api
    def test_prn_unknown_medication(self, client: TestClient):
        response = client.get("/api/v1/medications/does-not-exist/prn")
        assert response.status_code == status.HTTP_404_NOT_FOUND
