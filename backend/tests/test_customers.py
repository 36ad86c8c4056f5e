"""Tests for customers, their numbered addresses and the staff directory."""
from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from backend.app.models.audit import AuditLog
from backend.app.models.customer import Customer
from backend.app.models.user import User


def _create(client: TestClient, **overrides: object) -> dict:
    payload = {
        "name": "Verma Cold Storage",
        "email": "Ops@VermaCold.in",
        "phone": "9876500000",
        "customerType": "telecom",
        "addresses": [
            {"address": "NH-44, Sonipat", "state": "Haryana", "pincode": "131001"},
        ],
    }
    payload.update(overrides)
    resp = client.post("/api/v1/customers", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateCustomer:
    def test_create_normalises_email_and_numbers_address(
        self, client: TestClient, db: Session
    ) -> None:
        body = _create(client)
        assert body["email"] == "ops@vermacold.in"
        assert body["customer_type"] == "telecom"
        assert body["addresses"][0]["id"] == 1
        assert body["addresses"][0]["is_primary"] is True

        log = db.query(AuditLog).filter(AuditLog.action == "CUSTOMER_CREATED").one()
        assert log.record_id == body["id"]

    def test_address_requires_state(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/customers",
            json={"name": "X", "addresses": [{"address": "Somewhere"}]},
        )
        assert resp.status_code == 422
        assert resp.json()["errors"] == [
            {"field": "addresses.0.state", "message": "State is required"}
        ]


class TestAddresses:
    def test_second_primary_address_demotes_first(self, client: TestClient) -> None:
        customer = _create(client)
        resp = client.post(
            f"/api/v1/customers/{customer['id']}/addresses",
            json={"address": "Plot 7, Kundli", "state": "Haryana", "isPrimary": True},
        )
        assert resp.status_code == 201
        addresses = resp.json()["addresses"]
        assert [a["id"] for a in addresses] == [1, 2]
        assert [a["is_primary"] for a in addresses] == [False, True]

    def test_non_primary_address_keeps_existing_primary(self, client: TestClient) -> None:
        customer = _create(client)
        resp = client.post(
            f"/api/v1/customers/{customer['id']}/addresses",
            json={"address": "Site office", "state": "Delhi"},
        )
        addresses = resp.json()["addresses"]
        assert [a["is_primary"] for a in addresses] == [True, False]

    def test_unknown_customer(self, client: TestClient) -> None:
        resp = client.post(
            f"/api/v1/customers/{uuid.uuid4()}/addresses",
            json={"address": "Site office", "state": "Delhi"},
        )
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Customer not found"


class TestListAndUpdate:
    def test_search_by_name_email_or_phone(self, client: TestClient, customer: Customer) -> None:
        _create(client)
        by_name = client.get("/api/v1/customers", params={"q": "sharma"}).json()
        by_phone = client.get("/api/v1/customers", params={"q": "98765"}).json()
        assert [c["name"] for c in by_name] == ["Sharma Textiles"]
        assert [c["name"] for c in by_phone] == ["Verma Cold Storage"]

    def test_deactivated_customers_hidden_from_active_list(self, client: TestClient) -> None:
        body = _create(client)
        resp = client.patch(f"/api/v1/customers/{body['id']}", json={"isActive": False})
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False

        active = client.get("/api/v1/customers", params={"active": True}).json()
        assert active == []

    def test_get_missing_customer(self, client: TestClient) -> None:
        resp = client.get(f"/api/v1/customers/{uuid.uuid4()}")
        assert resp.status_code == 404


class TestUsers:
    def test_engineers_list_only_active_field_engineers(
        self, client: TestClient, engineer: User
    ) -> None:
        client.post(
            "/api/v1/users",
            json={"firstName": "Anita", "email": "anita@powergen.test", "role": "manager"},
        )
        resp = client.get("/api/v1/users/engineers")
        assert resp.status_code == 200
        assert [u["full_name"] for u in resp.json()] == ["Ravi Kumar"]

    def test_duplicate_email_rejected(self, client: TestClient, engineer: User) -> None:
        resp = client.post(
            "/api/v1/users",
            json={"firstName": "Ravi", "email": "RAVI.KUMAR@powergen.test"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "A user with this email already exists"

    def test_invalid_role(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/users",
            json={"firstName": "Sam", "email": "sam@powergen.test", "role": "cashier"},
        )
        assert resp.status_code == 422
        assert resp.json()["errors"][0]["message"].startswith("Role must be one of:")
