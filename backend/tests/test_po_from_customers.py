"""Tests for purchase orders received from customers."""
from __future__ import annotations

import io
import uuid
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from backend.app.models.customer import Customer

D = Decimal


def _item(**overrides: object) -> dict:
    item = {
        "product": "62.5 kVA DG set",
        "description": "Silent DG set with AMF panel",
        "subject": "Supply of DG set",
        "quantity": "1",
        "unitPrice": "650000",
        "kva": "62.5",
        "phase": "3",
        "annexureRating": "62.5 kVA",
        "dgModel": "C62D5P",
        "numberOfCylinders": 4,
    }
    item.update(overrides)
    return item


def _payload(customer: Customer, **overrides: object) -> dict:
    data = {
        "customer": str(customer.id),
        "billToAddress": {"id": 1},
        "shipToAddress": {"id": 1},
        "dgQuotationNumber": "QTN-2026-0001",
        "items": [_item()],
    }
    data.update(overrides)
    return data


def _create(client: TestClient, payload: dict) -> dict:
    resp = client.post("/api/v1/po-from-customers", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _move(client: TestClient, po_id: str, new_status: str, **extra: object):
    return client.patch(
        f"/api/v1/po-from-customers/{po_id}/status", json={"status": new_status, **extra}
    )


class TestCreatePO:
    def test_generated_number_and_totals(self, client: TestClient, customer: Customer) -> None:
        body = _create(client, _payload(customer))
        assert body["po_number"].startswith("DGPO-")
        assert body["po_number"].endswith("-0001")
        assert body["status"] == "draft"
        assert body["next_status"] == "sent_to_customer"
        assert body["department"] == "retail"
        assert body["priority"] == "medium"
        assert body["customer_email"] == "accounts@sharmatex.in"
        assert D(body["tax_amount"]) == D("117000")
        assert D(body["total_amount"]) == D("767000")
        assert body["order_date"] == date.today().isoformat()

    def test_customer_po_number_kept_and_unique(
        self, client: TestClient, customer: Customer
    ) -> None:
        body = _create(client, _payload(customer, poNumber="SHT/PO/778"))
        assert body["po_number"] == "SHT/PO/778"

        dup = client.post(
            "/api/v1/po-from-customers", json=_payload(customer, poNumber="SHT/PO/778")
        )
        assert dup.status_code == 400
        assert dup.json()["detail"] == "PO number 'SHT/PO/778' already exists"

        generated = _create(client, _payload(customer))
        assert generated["po_number"].endswith("-0001")

    def test_address_must_belong_to_customer(
        self, client: TestClient, customer: Customer
    ) -> None:
        resp = client.post(
            "/api/v1/po-from-customers", json=_payload(customer, billToAddress={"id": 5})
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Bill to address 5 not found for this customer"

    def test_paid_more_than_total(self, client: TestClient, customer: Customer) -> None:
        resp = client.post(
            "/api/v1/po-from-customers", json=_payload(customer, paidAmount="800000")
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Paid amount cannot exceed the total amount"

    def test_gst_pending_is_preserved(self, client: TestClient, customer: Customer) -> None:
        body = _create(
            client, _payload(customer, paidAmount="650000", paymentStatus="gst_pending")
        )
        assert body["payment_status"] == "gst_pending"
        assert D(body["remaining_amount"]) == D("117000")

    def test_unknown_customer(self, client: TestClient, customer: Customer) -> None:
        payload = _payload(customer)
        payload["customer"] = str(uuid.uuid4())
        resp = client.post("/api/v1/po-from-customers", json=payload)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Customer not found"


class TestWorkflow:
    def test_forward_one_step_at_a_time(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        assert _move(client, po["id"], "sent_to_customer").status_code == 200

        skipped = _move(client, po["id"], "in_production")
        assert skipped.status_code == 400
        assert skipped.json()["detail"] == (
            "Invalid status transition from sent_to_customer to in_production"
        )

    def test_full_flow_to_delivery(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        for step in (
            "sent_to_customer",
            "customer_approved",
            "in_production",
            "ready_for_delivery",
            "delivered",
        ):
            resp = _move(client, po["id"], step)
            assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["next_status"] is None
        assert body["actual_delivery_date"] == date.today().isoformat()

        edit = client.put(f"/api/v1/po-from-customers/{po['id']}", json={"notes": "late"})
        assert edit.status_code == 400
        assert edit.json()["detail"] == "Cannot edit a purchase order that is delivered"
        assert _move(client, po["id"], "cancelled").status_code == 400

    def test_cancel_from_open_state_appends_notes(
        self, client: TestClient, customer: Customer
    ) -> None:
        po = _create(client, _payload(customer, notes="Urgent order"))
        _move(client, po["id"], "sent_to_customer")
        body = _move(client, po["id"], "cancelled", notes="Customer withdrew").json()
        assert body["status"] == "cancelled"
        assert body["notes"] == "Urgent order\nCustomer withdrew"

    def test_same_status_rejected(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        resp = _move(client, po["id"], "draft")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Purchase order is already draft"


class TestPayments:
    def test_partial_then_paid(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        url = f"/api/v1/po-from-customers/{po['id']}/payment"

        partial = client.patch(
            url, json={"paidAmount": "500000", "paymentMethod": "bank_transfer"}
        ).json()
        assert partial["payment_status"] == "partial"
        assert partial["payment_method"] == "bank_transfer"
        assert partial["payment_date"] == date.today().isoformat()

        paid = client.patch(url, json={"paidAmount": "767000"}).json()
        assert paid["payment_status"] == "paid"
        assert D(paid["remaining_amount"]) == D("0")

    def test_no_payment_on_cancelled(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        _move(client, po["id"], "cancelled")
        resp = client.patch(
            f"/api/v1/po-from-customers/{po['id']}/payment", json={"paidAmount": "1"}
        )
        assert resp.status_code == 400


class TestUpdatePO:
    def test_tax_rate_change_recomputes(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        resp = client.put(f"/api/v1/po-from-customers/{po['id']}", json={"taxRate": "0"})
        assert resp.status_code == 200, resp.text
        assert D(resp.json()["total_amount"]) == D("650000")

    def test_blank_transport_rejected(self, client: TestClient, customer: Customer) -> None:
        po = _create(client, _payload(customer))
        resp = client.put(f"/api/v1/po-from-customers/{po['id']}", json={"transport": "  "})
        assert resp.status_code == 422
        assert resp.json()["errors"] == [
            {"field": "transport", "message": "Transport cannot be empty"}
        ]

    def test_renumber_clash(self, client: TestClient, customer: Customer) -> None:
        _create(client, _payload(customer, poNumber="SHT/PO/778"))
        po = _create(client, _payload(customer))
        resp = client.put(
            f"/api/v1/po-from-customers/{po['id']}", json={"poNumber": "SHT/PO/778"}
        )
        assert resp.status_code == 400


class TestListAndExport:
    @pytest.fixture()
    def orders(self, client: TestClient, customer: Customer) -> list[dict]:
        return [
            _create(client, _payload(customer)),
            _create(
                client,
                _payload(customer, department="corporate", items=[_item(unitPrice="100000")]),
            ),
        ]

    def test_sort_by_total(self, client: TestClient, orders: list[dict]) -> None:
        page = client.get("/api/v1/po-from-customers", params={"sort": "totalAmount"}).json()
        assert [p["id"] for p in page["data"]] == [orders[1]["id"], orders[0]["id"]]

    def test_unknown_sort_key(self, client: TestClient, orders: list[dict]) -> None:
        resp = client.get("/api/v1/po-from-customers", params={"sort": "colour"})
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Sort must be one of:")

    def test_department_filter(self, client: TestClient, orders: list[dict]) -> None:
        page = client.get(
            "/api/v1/po-from-customers", params={"department": "corporate"}
        ).json()
        assert [p["department"] for p in page["data"]] == ["corporate"]

    def test_export_workbook(self, client: TestClient, orders: list[dict]) -> None:
        resp = client.get("/api/v1/po-from-customers/export")
        assert resp.status_code == 200
        assert 'filename="dg-purchase-orders-' in resp.headers["content-disposition"]

        ws = load_workbook(io.BytesIO(resp.content)).active
        assert ws["A1"].value == "DG Purchase Orders"
        assert ws["A4"].value == "PO Number"
        assert {ws["A5"].value, ws["A6"].value} == {o["po_number"] for o in orders}
        assert ws["A7"].value == "Total (2)"
