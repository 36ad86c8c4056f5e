"""Tests for DG set invoices, their payments and the spreadsheet export."""
from __future__ import annotations

import io
import uuid
from decimal import Decimal

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
        "gstRate": "18",
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
        "dgQuotationNumber": "QTN-2026-0001",
        "invoiceDate": "2026-10-01",
        "dueDate": "2026-10-31",
        "items": [_item()],
    }
    data.update(overrides)
    return data


def _create(client: TestClient, payload: dict) -> dict:
    resp = client.post("/api/v1/dg-invoices", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateInvoice:
    def test_totals_and_customer_fallbacks(self, client: TestClient, customer: Customer) -> None:
        body = _create(client, _payload(customer))
        assert body["invoice_number"].startswith("DGINV-")
        assert body["status"] == "Draft"
        assert body["payment_status"] == "Pending"
        assert D(body["total_tax"]) == D("117000")
        assert D(body["grand_total"]) == D("767000")
        assert D(body["balance_amount"]) == D("767000")
        assert body["customer_email"] == "accounts@sharmatex.in"
        assert body["billing_address"]["state"] == "Haryana"
        assert body["billing_address"]["gst_number"] == "06AAACS1234F1Z5"
        assert body["items"][0]["dg_model"] == "C62D5P"

    def test_client_totals_are_ignored(self, client: TestClient, customer: Customer) -> None:
        payload = _payload(customer, items=[_item(totalPrice="1", gstAmount="1")])
        body = _create(client, payload)
        assert D(body["items"][0]["total_price"]) == D("767000")

    def test_additional_and_transport_charges(
        self, client: TestClient, customer: Customer
    ) -> None:
        body = _create(
            client,
            _payload(
                customer,
                additionalCharges={"freight": "1000"},
                transportCharges={"quantity": "1", "unitPrice": "5000", "gstRate": "18"},
            ),
        )
        assert D(body["additional_charges_total"]) == D("1000")
        assert D(body["transport_charges"]["gst_amount"]) == D("900")
        assert D(body["transport_charges"]["total_amount"]) == D("5900")
        assert D(body["grand_total"]) == D("773900")

    def test_due_date_before_invoice_date(self, client: TestClient, customer: Customer) -> None:
        resp = client.post(
            "/api/v1/dg-invoices", json=_payload(customer, dueDate="2026-09-30")
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Due date cannot be before invoice date"

    def test_unknown_customer(self, client: TestClient, customer: Customer) -> None:
        payload = _payload(customer)
        payload["customer"] = str(uuid.uuid4())
        resp = client.post("/api/v1/dg-invoices", json=payload)
        assert resp.status_code == 404

    def test_bad_customer_email(self, client: TestClient, customer: Customer) -> None:
        resp = client.post(
            "/api/v1/dg-invoices", json=_payload(customer, customerEmail="nobody")
        )
        assert resp.status_code == 422
        assert resp.json()["errors"][0]["field"] == "customerEmail"


class TestInvoiceLifecycle:
    def test_update_items_recomputes(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        resp = client.put(
            f"/api/v1/dg-invoices/{inv['id']}",
            json={"items": [_item(quantity="2", discount="10")]},
        )
        assert resp.status_code == 200, resp.text
        assert D(resp.json()["grand_total"]) == D("1380600")

    def test_update_charges_keeps_stored_items(
        self, client: TestClient, customer: Customer
    ) -> None:
        inv = _create(client, _payload(customer))
        resp = client.put(
            f"/api/v1/dg-invoices/{inv['id']}",
            json={"additionalCharges": {"packing": "500"}},
        )
        assert D(resp.json()["grand_total"]) == D("767500")

    def test_partial_then_full_payment(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        url = f"/api/v1/dg-invoices/{inv['id']}/payment"

        partial = client.patch(url, json={"paidAmount": "300000", "paymentMethod": "cheque"})
        assert partial.json()["payment_status"] == "Partial"
        assert D(partial.json()["balance_amount"]) == D("467000")

        paid = client.patch(url, json={"paidAmount": "767000"}).json()
        assert paid["payment_status"] == "Paid"
        assert paid["status"] == "Paid"

        locked = client.put(f"/api/v1/dg-invoices/{inv['id']}", json={"notes": "x"})
        assert locked.status_code == 400
        assert locked.json()["detail"] == "Cannot edit an invoice that is Paid"

    def test_overpayment_rejected(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        resp = client.patch(
            f"/api/v1/dg-invoices/{inv['id']}/payment", json={"paidAmount": "800000"}
        )
        assert resp.status_code == 400

    def test_marking_paid_settles_balance(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        body = client.patch(
            f"/api/v1/dg-invoices/{inv['id']}/status", json={"status": "Paid"}
        ).json()
        assert body["payment_status"] == "Paid"
        assert D(body["balance_amount"]) == D("0")

    def test_overdue_flags_payment(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        body = client.patch(
            f"/api/v1/dg-invoices/{inv['id']}/status", json={"status": "Overdue"}
        ).json()
        assert body["payment_status"] == "Overdue"

    def test_cancelled_invoice_is_frozen(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        client.patch(f"/api/v1/dg-invoices/{inv['id']}/status", json={"status": "Cancelled"})

        status_change = client.patch(
            f"/api/v1/dg-invoices/{inv['id']}/status", json={"status": "Sent"}
        )
        assert status_change.status_code == 400
        assert status_change.json()["detail"] == "Cannot change status of a cancelled invoice"

        payment = client.patch(
            f"/api/v1/dg-invoices/{inv['id']}/payment", json={"paidAmount": "1"}
        )
        assert payment.status_code == 400

    def test_only_drafts_can_be_deleted(self, client: TestClient, customer: Customer) -> None:
        sent = _create(client, _payload(customer, status="Sent"))
        resp = client.delete(f"/api/v1/dg-invoices/{sent['id']}")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Only draft invoices can be deleted"

        draft = _create(client, _payload(customer))
        assert client.delete(f"/api/v1/dg-invoices/{draft['id']}").status_code == 204
        assert client.get(f"/api/v1/dg-invoices/{draft['id']}").status_code == 404


class TestListAndExport:
    def test_filters(self, client: TestClient, customer: Customer) -> None:
        first = _create(client, _payload(customer))
        _create(client, _payload(customer, dgQuotationNumber="QTN-2026-0002"))
        client.patch(f"/api/v1/dg-invoices/{first['id']}/payment", json={"paidAmount": "100"})

        partial = client.get("/api/v1/dg-invoices", params={"paymentStatus": "Partial"}).json()
        assert [i["id"] for i in partial["data"]] == [first["id"]]

        by_quote = client.get("/api/v1/dg-invoices", params={"search": "0002"}).json()
        assert by_quote["pagination"]["total"] == 1

        by_date = client.get("/api/v1/dg-invoices", params={"startDate": "2026-10-02"}).json()
        assert by_date["data"] == []

    def test_export_workbook(self, client: TestClient, customer: Customer) -> None:
        inv = _create(client, _payload(customer))
        resp = client.get("/api/v1/dg-invoices/export", params={"status": "Draft"})
        assert resp.status_code == 200
        assert "spreadsheetml" in resp.headers["content-type"]
        assert 'filename="dg-invoices-' in resp.headers["content-disposition"]

        ws = load_workbook(io.BytesIO(resp.content)).active
        assert ws["A1"].value == "DG Invoices"
        assert ws["A4"].value == "Invoice No"
        assert ws["A5"].value == inv["invoice_number"]
        assert ws["D5"].value == "Sharma Textiles"
        assert ws["A6"].value == "Total (1)"
        assert ws["O6"].value == 767000.0

    def test_export_rejects_bad_filter(self, client: TestClient) -> None:
        resp = client.get("/api/v1/dg-invoices/export", params={"startDate": "soon"})
        assert resp.status_code == 422
        assert resp.json()["errors"] == [
            {"field": "startDate", "message": "Start date must be a valid date"}
        ]
