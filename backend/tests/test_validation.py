"""Tests for request validators and their field-level messages."""
from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient

from backend.app.core.exceptions import PayloadValidationError
from backend.app.schemas.amc import AMCQuotationCreate
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.customer import CustomerCreate
from backend.app.schemas.dg_invoice import DGInvoiceCreate
from backend.app.schemas.po_from_customer import POCreate, POStatusUpdate
from backend.app.schemas.quotes import QuotationCreate, QuotationStatusUpdate
from backend.app.schemas.validation import collect_errors, validate_payload


def _messages(model: type, data: dict) -> dict[str, str]:
    return {e.field: e.message for e in collect_errors(model, data)}


def _address() -> dict:
    return {"address": "12 Mall Road", "state": "Punjab"}


def _quotation(**overrides: object) -> dict:
    data = {
        "customer": str(uuid.uuid4()),
        "location": str(uuid.uuid4()),
        "billToAddress": _address(),
        "shipToAddress": _address(),
        "items": [
            {"product": str(uuid.uuid4()), "quantity": "1", "unitPrice": "100"},
        ],
    }
    data.update(overrides)
    return data


def _invoice_item(**overrides: object) -> dict:
    item = {
        "product": "62.5 kVA DG set",
        "description": "Silent DG set with AMF panel",
        "quantity": "1",
        "unitPrice": "650000",
        "kva": "62.5",
        "phase": "3",
        "annexureRating": "62.5 kVA",
        "dgModel": "C62D5P",
        "numberOfCylinders": 4,
        "subject": "Supply of DG set",
    }
    item.update(overrides)
    return item


# ─── Line items ──────────────────────────────────────────────────────────────


class TestQuotationLines:
    def test_valid_quotation_has_no_errors(self) -> None:
        assert collect_errors(QuotationCreate, _quotation()) == []

    def test_quantity_must_be_positive(self) -> None:
        data = _quotation(items=[{"product": str(uuid.uuid4()), "quantity": "-1"}])
        assert _messages(QuotationCreate, data)["items.0.quantity"] == (
            "Quantity must be greater than 0"
        )

    def test_negative_price_rejected(self) -> None:
        data = _quotation(
            items=[{"product": str(uuid.uuid4()), "quantity": "1", "unitPrice": "-5"}]
        )
        assert _messages(QuotationCreate, data)["items.0.unitPrice"] == (
            "Unit price must be non-negative"
        )

    @pytest.mark.parametrize("discount", ["0", "100"])
    def test_discount_bounds_inclusive(self, discount: str) -> None:
        data = _quotation(
            items=[{"product": str(uuid.uuid4()), "quantity": "1", "discount": discount}]
        )
        assert collect_errors(QuotationCreate, data) == []

    def test_discount_over_100_rejected(self) -> None:
        data = _quotation(
            items=[{"product": str(uuid.uuid4()), "quantity": "1", "discount": "100.5"}]
        )
        assert _messages(QuotationCreate, data)["items.0.discount"] == (
            "Discount must be between 0 and 100%"
        )

    def test_missing_product(self) -> None:
        data = _quotation(items=[{"quantity": "1"}])
        assert _messages(QuotationCreate, data)["items.0.product"] == "Product is required"

    def test_non_numeric_quantity(self) -> None:
        data = _quotation(items=[{"product": str(uuid.uuid4()), "quantity": "lots"}])
        assert _messages(QuotationCreate, data)["items.0.quantity"] == "Quantity must be a number"


class TestDocuments:
    def test_missing_customer_and_location(self) -> None:
        data = _quotation()
        del data["customer"]
        del data["location"]
        messages = _messages(QuotationCreate, data)
        assert messages["customer"] == "Customer name is required"
        assert messages["location"] == "From location is required"

    def test_unknown_quotation_type(self) -> None:
        messages = _messages(QuotationCreate, _quotation(quotationType="rental"))
        assert messages["quotationType"].startswith("Quotation type must be one of:")

    def test_invoice_without_items(self) -> None:
        data = {
            "customer": str(uuid.uuid4()),
            "dgQuotationNumber": "QTN-2026-0001",
            "invoiceDate": "2026-10-01",
            "dueDate": "2026-10-31",
        }
        assert _messages(DGInvoiceCreate, data)["items"] == "Items are required"

    def test_invoice_with_empty_items(self) -> None:
        data = {
            "customer": str(uuid.uuid4()),
            "dgQuotationNumber": "QTN-2026-0001",
            "invoiceDate": "2026-10-01",
            "dueDate": "2026-10-31",
            "items": [],
        }
        assert _messages(DGInvoiceCreate, data)["items"] == "At least one item is required"

    def test_invoice_item_dg_fields_required(self) -> None:
        data = {
            "customer": str(uuid.uuid4()),
            "dgQuotationNumber": "QTN-2026-0001",
            "invoiceDate": "2026-10-01",
            "dueDate": "2026-10-31",
            "items": [_invoice_item(kva="  ", dgModel=None)],
        }
        messages = _messages(DGInvoiceCreate, data)
        assert messages["items.0.kva"] == "KVA is required"
        assert "items.0.dgModel" in messages

    def test_invoice_bad_date(self) -> None:
        data = {
            "customer": str(uuid.uuid4()),
            "dgQuotationNumber": "QTN-2026-0001",
            "invoiceDate": "31/10/2026",
            "dueDate": "2026-10-31",
            "items": [_invoice_item()],
        }
        assert _messages(DGInvoiceCreate, data)["invoiceDate"] == (
            "Invoice date must be a valid date"
        )

    def test_po_department_outside_set(self) -> None:
        data = {
            "customer": str(uuid.uuid4()),
            "billToAddress": {"id": 1},
            "shipToAddress": {"id": 1},
            "items": [_invoice_item()],
            "department": "sales",
        }
        assert _messages(POCreate, data)["department"] == (
            "Department must be one of: retail, corporate, industrial_marine, others"
        )

    def test_blank_customer_name(self) -> None:
        assert _messages(CustomerCreate, {"name": "   "})["name"] == "Customer name is required"

    def test_bad_email(self) -> None:
        messages = _messages(CustomerCreate, {"name": "Acme", "email": "not-an-email"})
        assert messages["email"] == "Please provide a valid email address"


class TestStatusFields:
    def test_quotation_status_outside_set(self) -> None:
        messages = _messages(QuotationStatusUpdate, {"status": "archived"})
        assert messages["status"] == (
            "Status must be one of: draft, sent, accepted, rejected, expired"
        )

    def test_po_status_required(self) -> None:
        assert _messages(POStatusUpdate, {})["status"] == "Status is required"

    def test_payment_method_outside_set(self) -> None:
        messages = _messages(PaymentUpdate, {"paidAmount": "10", "paymentMethod": "bitcoin"})
        assert messages["paymentMethod"].startswith("Payment method must be one of:")

    def test_negative_payment(self) -> None:
        messages = _messages(PaymentUpdate, {"paidAmount": "-1"})
        assert messages["paidAmount"] == "Paid amount cannot be negative"


def _invoice(*items: dict, **overrides: object) -> dict:
    data = {
        "customer": str(uuid.uuid4()),
        "dgQuotationNumber": "QTN-2026-0001",
        "invoiceDate": "2026-10-01",
        "dueDate": "2026-10-31",
        "items": list(items) or [_invoice_item()],
    }
    data.update(overrides)
    return data


def _po(**overrides: object) -> dict:
    data = {
        "customer": str(uuid.uuid4()),
        "billToAddress": {"id": 1},
        "shipToAddress": {"id": 1},
        "items": [_invoice_item()],
    }
    data.update(overrides)
    return data


class TestInvoiceLines:
    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("quantity", "-1", "Quantity cannot be negative"),
            ("unitPrice", "-0.01", "Unit price cannot be negative"),
            ("discount", "100.5", "Discount cannot exceed 100%"),
            ("discount", "-5", "Discount cannot be negative"),
            ("gstRate", "101", "GST rate cannot exceed 100%"),
        ],
    )
    def test_out_of_range(self, field: str, value: str, message: str) -> None:
        messages = _messages(DGInvoiceCreate, _invoice(_invoice_item(**{field: value})))
        assert messages == {f"items.0.{field}": message}

    @pytest.mark.parametrize(
        "overrides",
        [
            {"quantity": "0"},
            {"unitPrice": "0"},
            {"discount": "0"},
            {"discount": "100"},
            {"gstRate": "100"},
        ],
    )
    def test_boundaries_accepted(self, overrides: dict) -> None:
        assert _messages(DGInvoiceCreate, _invoice(_invoice_item(**overrides))) == {}


class TestEnumFields:
    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("status", "Archived", "Status must be one of: Draft, Sent, Paid, Overdue, Cancelled"),
            (
                "paymentStatus",
                "Refunded",
                "Payment status must be one of: Pending, Partial, Paid, Overdue",
            ),
        ],
    )
    def test_invoice_value_outside_set(self, field: str, value: str, message: str) -> None:
        assert _messages(DGInvoiceCreate, _invoice(**{field: value})) == {field: message}

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("priority", "critical", "Priority must be one of: low, medium, high, urgent"),
            (
                "paymentStatus",
                "refunded",
                "Payment status must be one of: pending, partial, paid, gst_pending",
            ),
            (
                "department",
                "sales",
                "Department must be one of: retail, corporate, industrial_marine, others",
            ),
        ],
    )
    def test_po_value_outside_set(self, field: str, value: str, message: str) -> None:
        assert _messages(POCreate, _po(**{field: value})) == {field: message}

    @pytest.mark.parametrize("priority", ["low", "medium", "high", "urgent"])
    def test_po_priorities_accepted(self, priority: str) -> None:
        assert _messages(POCreate, _po(priority=priority)) == {}


class TestBlankText:
    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_required_text_reads_as_required(self, blank: str) -> None:
        messages = _messages(DGInvoiceCreate, _invoice(_invoice_item(kva=blank, phase=blank)))
        assert messages == {
            "items.0.kva": "KVA is required",
            "items.0.phase": "Phase is required",
        }

    def test_blank_nested_address(self) -> None:
        messages = _messages(CustomerCreate, {"name": "Acme", "addresses": [{"address": " "}]})
        assert messages["addresses.0.address"] == "Address is required"

    def test_empty_list_still_reports_min_items(self) -> None:
        assert _messages(DGInvoiceCreate, _invoice(items=[]))["items"] == (
            "At least one item is required"
        )


class TestAMC:
    def _data(self, **overrides: object) -> dict:
        data = {
            "customer": str(uuid.uuid4()),
            "billToAddress": _address(),
            "shipToAddress": _address(),
            "paymentTermsText": "100% advance",
            "validityText": "30 days",
            "offerItems": [
                {
                    "make": "Cummins",
                    "engineSlNo": "25XXXX01",
                    "dgRatingKva": "125",
                    "typeOfVisits": 12,
                    "qty": "1",
                    "amcCostPerDg": "18000",
                }
            ],
        }
        data.update(overrides)
        return data

    def test_valid_amc(self) -> None:
        assert collect_errors(AMCQuotationCreate, self._data()) == []

    def test_offer_items_required(self) -> None:
        messages = _messages(AMCQuotationCreate, self._data(offerItems=[]))
        assert "At least one DG set offer item is required" in messages.values()

    def test_camc_requires_spares(self) -> None:
        messages = _messages(AMCQuotationCreate, self._data(amcType="CAMC"))
        assert "At least one spare item is required for CAMC contract" in messages.values()

    def test_zero_cost_rejected(self) -> None:
        data = self._data()
        data["offerItems"][0]["amcCostPerDg"] = "0"
        assert "AMC cost per DG must be greater than 0" in _messages(
            AMCQuotationCreate, data
        ).values()


# ─── Raising API ─────────────────────────────────────────────────────────────


def test_validate_payload_raises_with_all_errors() -> None:
    with pytest.raises(PayloadValidationError) as exc_info:
        validate_payload(CustomerCreate, {"name": "", "email": "x"})
    fields = {e["field"] for e in exc_info.value.errors}
    assert fields == {"name", "email"}


def test_api_returns_422_with_field_list(client: TestClient) -> None:
    resp = client.post("/api/v1/customers", json={"name": ""})
    assert resp.status_code == 422
    body = resp.json()
    assert body["detail"] == "Validation failed"
    assert body["errors"] == [{"field": "name", "message": "Customer name is required"}]


def test_invalid_json_body(client: TestClient) -> None:
    resp = client.post(
        "/api/v1/customers",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 422
    assert resp.json()["errors"][0]["message"] == "Request body must be valid JSON"


def test_query_validation(client: TestClient) -> None:
    resp = client.get("/api/v1/dg-invoices", params={"limit": 500})
    assert resp.status_code == 422
    assert resp.json()["errors"] == [{"field": "limit", "message": "Limit cannot exceed 100"}]


def test_path_validation(client: TestClient) -> None:
    resp = client.get("/api/v1/quotations/not-a-uuid")
    assert resp.status_code == 422
    assert resp.json()["errors"][0]["field"] == "quotation_id"
