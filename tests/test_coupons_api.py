"""
HTTP tests for the coupons blueprint.
"""

import json

import pytest

from init_db import seed_coupons


@pytest.fixture
def seeded(db):
    seed_coupons(db.session)
    db.session.commit()


@pytest.mark.api
@pytest.mark.coupons
class TestCouponEndpoints:
    def test_available_for_client(self, client, seeded, users, auth_headers):
        response = client.get("/api/coupons", headers=auth_headers(users.client))
        codes = {c["code"] for c in json.loads(response.data)["data"]}

        assert response.status_code == 200
        assert "WELCOME10" in codes
        assert "NEWYEAR2026" not in codes

    def test_restricted_coupon_visibility(self, client, seeded, users, auth_headers):
        client.post(
            "/api/coupons",
            json={
                "code": "ANGIFT",
                "type": "fixed",
                "value": 25000,
                "expiry_date": "2026-12-31",
                "description": "Birthday gift",
                "customer_id": users.client.id,
            },
            headers=auth_headers(users.admin),
        )

        own = client.get("/api/coupons", headers=auth_headers(users.client))
        other = client.get("/api/coupons", headers=auth_headers(users.other_client))

        assert "ANGIFT" in {c["code"] for c in json.loads(own.data)["data"]}
        assert "ANGIFT" not in {c["code"] for c in json.loads(other.data)["data"]}

    def test_all_is_admin_only(self, client, seeded, users, auth_headers):
        forbidden = client.get("/api/coupons/all", headers=auth_headers(users.client))
        allowed = client.get("/api/coupons/all", headers=auth_headers(users.admin))
        coupons = {c["code"]: c for c in json.loads(allowed.data)["data"]}

        assert forbidden.status_code == 403
        assert allowed.status_code == 200
        assert coupons["NEWYEAR2026"]["is_expired"] is True

    def test_create_update_delete(self, client, seeded, users, auth_headers):
        headers = auth_headers(users.admin)

        created = client.post(
            "/api/coupons",
            json={
                "code": "spring15",
                "type": "percentage",
                "value": 15,
                "expiry_date": "2026-12-01",
                "description": "Spring promo",
            },
            headers=headers,
        )
        assert created.status_code == 201
        assert json.loads(created.data)["data"]["code"] == "SPRING15"

        duplicate = client.post(
            "/api/coupons",
            json={
                "code": "SPRING15",
                "type": "fixed",
                "value": 1,
                "expiry_date": "2026-12-01",
                "description": "Again",
            },
            headers=headers,
        )
        assert duplicate.status_code == 422

        updated = client.put("/api/coupons/SPRING15", json={"value": 20}, headers=headers)
        assert json.loads(updated.data)["data"]["value"] == 20.0

        deleted = client.delete("/api/coupons/SPRING15", headers=headers)
        missing = client.delete("/api/coupons/SPRING15", headers=headers)
        assert deleted.status_code == 200
        assert missing.status_code == 404

    def test_create_validation(self, client, seeded, users, auth_headers):
        response = client.post(
            "/api/coupons",
            json={"code": "X", "type": "bogus", "value": 5},
            headers=auth_headers(users.admin),
        )
        data = json.loads(response.data)

        assert response.status_code == 400
        assert {"type", "expiry_date", "description"} <= set(data["errors"])

    def test_validate(self, client, seeded, users, auth_headers):
        response = client.post(
            "/api/coupons/validate",
            json={"code": "WELCOME10", "total_amount": 100000},
            headers=auth_headers(users.client),
        )
        data = json.loads(response.data)["data"]

        assert response.status_code == 200
        assert data["discount"] == 10000.0
        assert data["final_amount"] == 90000.0

    def test_validate_expired(self, client, seeded, users, auth_headers):
        response = client.post(
            "/api/coupons/validate",
            json={"code": "NEWYEAR2026", "total_amount": 400000},
            headers=auth_headers(users.client),
        )
        assert response.status_code == 422
        assert json.loads(response.data)["message"] == "Coupon has expired"

    def test_validate_requires_total(self, client, seeded, users, auth_headers):
        response = client.post(
            "/api/coupons/validate",
            json={"code": "WELCOME10"},
            headers=auth_headers(users.client),
        )
        assert response.status_code == 400
