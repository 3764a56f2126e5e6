"""
Tests for prescriptions and veterinary alerts
Run with: pytest tests/test_veterinary_router.py -v
"""

import pytest
from fastapi.testclient import TestClient
from datetime import date, timedelta
import uuid
from unittest.mock import AsyncMock, patch

from farmkonnect.api.main import app

client = TestClient(app, raise_server_exceptions=False)

TODAY = date.today()


def prescription_body(farm_id, **overrides):
    body = {
        "farm_id": farm_id,
        "veterinarian_name": "Dr. Mensah",
        "medication_name": "Oxytetracycline",
        "dosage": "10 ml",
        "frequency": "twice daily",
        "duration_days": 5,
        "route": "injection",
        "quantity": 2,
        "prescription_date": (TODAY - timedelta(days=10)).isoformat(),
        "expiry_date": (TODAY + timedelta(days=20)).isoformat(),
        "cost": 50,
    }
    body.update(overrides)
    return body


def create_prescription(headers, farm_id, **overrides):
    response = client.post(
        "/api/v1/veterinary/prescriptions", json=prescription_body(farm_id, **overrides), headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def farm(farmer):
    _, headers = farmer
    return client.post("/api/v1/farms/", json={"farm_name": "Cattle Ranch", "farm_type": "livestock"},
                       headers=headers).json()


class TestPrescriptions:
    """Test prescription records"""

    def test_create(self, farmer, farm):
        _, headers = farmer
        prescription = create_prescription(headers, farm["id"])

        assert prescription["status"] == "active"
        assert prescription["medication_name"] == "Oxytetracycline"

        response = client.get(f"/api/v1/veterinary/prescriptions/{prescription['id']}", headers=headers)
        assert response.status_code == 200

    @pytest.mark.parametrize("expiry_offset", [0, -1])
    def test_expiry_must_follow_prescription_date(self, farmer, farm, expiry_offset):
        _, headers = farmer
        body = prescription_body(
            farm["id"],
            prescription_date=TODAY.isoformat(),
            expiry_date=(TODAY + timedelta(days=expiry_offset)).isoformat(),
        )
        response = client.post("/api/v1/veterinary/prescriptions", json=body, headers=headers)
        assert response.status_code == 422

    def test_animal_must_be_on_farm(self, farmer, farm):
        _, headers = farmer
        other = client.post("/api/v1/farms/", json={"farm_name": "Other"}, headers=headers).json()
        animal = client.post("/api/v1/livestock/", json={
            "farm_id": other["id"], "tag_id": "GH-001", "species": "cattle",
        }, headers=headers).json()

        response = client.post(
            "/api/v1/veterinary/prescriptions",
            json=prescription_body(farm["id"], animal_id=animal["id"]),
            headers=headers
        )
        assert response.status_code == 404

    def test_other_users_farm(self, farm, make_user):
        _, other_headers = make_user()
        response = client.post(
            "/api/v1/veterinary/prescriptions", json=prescription_body(farm["id"]), headers=other_headers
        )
        assert response.status_code == 404

    def test_update(self, farmer, farm):
        _, headers = farmer
        prescription = create_prescription(headers, farm["id"])

        response = client.put(
            f"/api/v1/veterinary/prescriptions/{prescription['id']}",
            json={"status": "fulfilled", "dosage": "5 ml"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "fulfilled"
        assert response.json()["dosage"] == "5 ml"

        response = client.put(
            f"/api/v1/veterinary/prescriptions/{prescription['id']}",
            json={"expiry_date": (TODAY - timedelta(days=30)).isoformat()},
            headers=headers
        )
        assert response.status_code == 422

    def test_expiring_and_expired(self, farmer, farm):
        _, headers = farmer
        soon = create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=3)).isoformat())
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=60)).isoformat())
        lapsed = create_prescription(
            headers, farm["id"],
            prescription_date=(TODAY - timedelta(days=40)).isoformat(),
            expiry_date=(TODAY - timedelta(days=1)).isoformat(),
        )

        response = client.get(
            f"/api/v1/veterinary/prescriptions/expiring?farm_id={farm['id']}&days=7", headers=headers
        )
        assert [p["id"] for p in response.json()] == [soon["id"]]

        response = client.get(f"/api/v1/veterinary/prescriptions/expired?farm_id={farm['id']}", headers=headers)
        assert [p["id"] for p in response.json()] == [lapsed["id"]]

    def test_list_ordered_by_expiry(self, farmer, farm):
        _, headers = farmer
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=30)).isoformat())
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=5)).isoformat())

        response = client.get(f"/api/v1/veterinary/prescriptions?farm_id={farm['id']}", headers=headers)
        data = response.json()
        assert data["total"] == 2
        expiries = [p["expiry_date"] for p in data["prescriptions"]]
        assert expiries == sorted(expiries)

    def test_statistics(self, farmer, farm):
        _, headers = farmer
        create_prescription(headers, farm["id"], cost=30)
        create_prescription(headers, farm["id"], cost=90)
        done = create_prescription(headers, farm["id"], cost=None)
        client.put(f"/api/v1/veterinary/prescriptions/{done['id']}", json={"status": "fulfilled"}, headers=headers)

        response = client.get(
            f"/api/v1/veterinary/prescriptions/statistics?farm_id={farm['id']}", headers=headers
        )
        assert response.status_code == 200
        assert response.json() == {
            "total": 3,
            "active": 2,
            "fulfilled": 1,
            "expired": 0,
            "cancelled": 0,
            "total_cost": 120.0,
            "average_cost": 60.0,
        }


class TestAlerts:
    """Test the alert lifecycle"""

    def create_alert(self, headers, farm_id, **overrides):
        body = {
            "farm_id": farm_id,
            "alert_type": "disease_outbreak",
            "severity": "medium",
            "title": "Newcastle disease nearby",
            "message": "Vaccinate poultry this week.",
        }
        body.update(overrides)
        return client.post("/api/v1/veterinary/alerts", json=body, headers=headers)

    def test_acknowledge_then_resolve(self, farmer, farm):
        _, headers = farmer
        alert = self.create_alert(headers, farm["id"]).json()
        assert alert["status"] == "active"

        response = client.post(f"/api/v1/veterinary/alerts/{alert['id']}/acknowledge", headers=headers)
        assert response.status_code == 200
        assert response.json()["acknowledged_at"] is not None

        response = client.post(f"/api/v1/veterinary/alerts/{alert['id']}/acknowledge", headers=headers)
        assert response.status_code == 409

        response = client.post(f"/api/v1/veterinary/alerts/{alert['id']}/resolve", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "resolved"

        response = client.post(f"/api/v1/veterinary/alerts/{alert['id']}/resolve", headers=headers)
        assert response.status_code == 409

    def test_invalid_severity(self, farmer, farm):
        _, headers = farmer
        response = self.create_alert(headers, farm["id"], severity="apocalyptic")
        assert response.status_code == 422

    def test_urgent_alert_is_pushed(self, farmer, farm):
        _, headers = farmer
        self.create_alert(headers, farm["id"], severity="low")
        self.create_alert(headers, farm["id"], severity="critical")

        response = client.get("/api/v1/notifications/history?notification_type=veterinary_alert", headers=headers)
        assert response.json()["total"] == 1

    def test_list_filters(self, farmer, farm):
        _, headers = farmer
        self.create_alert(headers, farm["id"], severity="low")
        self.create_alert(headers, farm["id"], severity="high")

        response = client.get(f"/api/v1/veterinary/alerts?farm_id={farm['id']}&severity=high", headers=headers)
        assert response.json()["total"] == 1

    def test_other_users_alert(self, farmer, farm, make_user):
        _, headers = farmer
        alert = self.create_alert(headers, farm["id"]).json()

        _, other_headers = make_user()
        response = client.post(f"/api/v1/veterinary/alerts/{alert['id']}/resolve", headers=other_headers)
        assert response.status_code == 404

    def test_unknown_alert(self, farmer):
        _, headers = farmer
        response = client.post(f"/api/v1/veterinary/alerts/{uuid.uuid4()}/acknowledge", headers=headers)
        assert response.status_code == 404


class TestGeneratedAlerts:
    """Test expiry alerts generated from prescriptions"""

    def test_generate_once(self, farmer, farm):
        _, headers = farmer
        urgent = create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=1)).isoformat())
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=5)).isoformat())
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=40)).isoformat())

        response = client.post(f"/api/v1/veterinary/alerts/generate?farm_id={farm['id']}&days=7", headers=headers)
        assert response.status_code == 200
        alerts = response.json()
        assert len(alerts) == 2
        assert alerts[0]["prescription_id"] == urgent["id"]
        assert alerts[0]["severity"] == "high"
        assert alerts[1]["severity"] == "medium"
        assert all(a["alert_type"] == "prescription_expiry" for a in alerts)

        response = client.post(f"/api/v1/veterinary/alerts/generate?farm_id={farm['id']}&days=7", headers=headers)
        assert response.json() == []

    def test_urgent_generated_alerts_are_pushed(self, farmer, farm):
        user, headers = farmer
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=1)).isoformat())
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=5)).isoformat())

        with patch("farmkonnect.api.routers.veterinary.notify_user", new=AsyncMock()) as notify:
            response = client.post(
                f"/api/v1/veterinary/alerts/generate?farm_id={farm['id']}&days=7", headers=headers
            )

        assert response.status_code == 200
        assert notify.await_count == 1
        args, kwargs = notify.await_args
        assert args[1] == user.id
        assert kwargs["notification_type"] == "veterinary_alert"
        assert kwargs["data"]["alert_id"] == response.json()[0]["id"]

    def test_generated_alert_lands_in_history(self, farmer, farm):
        _, headers = farmer
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=2)).isoformat())

        client.post(f"/api/v1/veterinary/alerts/generate?farm_id={farm['id']}", headers=headers)

        response = client.get("/api/v1/notifications/history?notification_type=veterinary_alert", headers=headers)
        assert response.json()["total"] == 1

    def test_resolved_alert_allows_new_one(self, farmer, farm):
        _, headers = farmer
        create_prescription(headers, farm["id"], expiry_date=(TODAY + timedelta(days=1)).isoformat())

        alerts = client.post(f"/api/v1/veterinary/alerts/generate?farm_id={farm['id']}", headers=headers).json()
        client.post(f"/api/v1/veterinary/alerts/{alerts[0]['id']}/resolve", headers=headers)

        response = client.post(f"/api/v1/veterinary/alerts/generate?farm_id={farm['id']}", headers=headers)
        assert len(response.json()) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
