"""Tests for the quotation / AMC form sessions against a fake back office."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import date
from decimal import Decimal
from typing import Any

import httpx
import pytest

from backend.app.client.api_client import ApiClient
from backend.app.client.forms import (
    AMCQuotationFormSession,
    DropdownState,
    QuotationFormSession,
    _FormSession,
    sanitize,
)

D = Decimal
BASE_URL = "http://backoffice.test/api/v1"

CUSTOMER_ID = "5b0e2c1a-7d4f-4e8a-9c3b-2f6a1d8e4c70"
FILTER_ID = "0c9d8e7f-6a5b-4c3d-8e2f-1a0b9c8d7e6f"
BATTERY_ID = "7e6d5c4b-3a29-4810-b7f6-e5d4c3b2a190"
MAIN_OFFICE_ID = "a1b2c3d4-e5f6-4a7b-8c9d-0e1f2a3b4c5d"
WAREHOUSE_ID = "d4c3b2a1-f6e5-4b7a-9d8c-5c4b3a2f1e0d"

MAIN_OFFICE = {"id": MAIN_OFFICE_ID, "name": "Main Office", "type": "main_office"}
WAREHOUSE = {"id": WAREHOUSE_ID, "name": "Faridabad Warehouse", "type": "warehouse"}

CUSTOMER = {
    "id": CUSTOMER_ID,
    "name": "Sharma Textiles",
    "email": "accounts@sharmatex.in",
    "phone": "9810012345",
    "addresses": [
        {"id": 1, "address": "Plot 12, Phase II", "state": "Haryana", "is_primary": False},
        {"id": 2, "address": "Unit 4, Sector 37", "state": "Haryana", "is_primary": True},
    ],
}

FILTER = {
    "id": FILTER_ID,
    "name": "Fuel Filter",
    "part_no": "FF-5052",
    "category": "Filters",
    "brand": "Cummins",
    "hsn_number": "84212300",
    "uom": "nos",
    "price": "100.0000",
    "gst_rate": "18.0000",
}
BATTERY = {
    "id": BATTERY_ID,
    "name": "Starter Battery 12V 150Ah",
    "part_no": "BAT-150",
    "category": "Batteries",
    "brand": "Exide",
    "hsn_number": "85071000",
    "uom": "nos",
    "price": "9500.0000",
    "gst_rate": "28.0000",
}

STOCK = {
    MAIN_OFFICE_ID: [
        {"product_id": FILTER_ID, "available_quantity": 10},
        {"product_id": BATTERY_ID, "available_quantity": 2},
    ],
    WAREHOUSE_ID: [{"product_id": FILTER_ID, "available_quantity": 3}],
}


# ─── Fake back office ───────────────────────────────────────────────────────


class FakeBackOffice:
    """Mock transport handler routing on method and path."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_engineers = False
        self.reject_with: tuple[int, dict] | None = None
        self.documents: dict[str, dict] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/v1")
        method = request.method

        if method == "GET" and path == "/customers":
            return httpx.Response(200, json=[CUSTOMER])
        if method == "GET" and path == "/inventory/products":
            return httpx.Response(200, json=[FILTER, BATTERY])
        if method == "GET" and path == "/inventory/locations":
            return httpx.Response(200, json=[WAREHOUSE, MAIN_OFFICE])
        if method == "GET" and path == "/users/engineers":
            if self.fail_engineers:
                return httpx.Response(500, json={"detail": "Internal server error"})
            return httpx.Response(200, json=[{"id": "eng-1", "full_name": "Ravi Kumar"}])
        if method == "GET" and path == "/general-settings":
            return httpx.Response(200, json={"company_name": "PowerGen Services"})
        if method == "GET" and path == "/inventory/stock/summary":
            return httpx.Response(200, json=STOCK.get(request.url.params.get("location"), []))

        if method in ("POST", "PUT") and self.reject_with:
            status_code, body = self.reject_with
            return httpx.Response(status_code, json=body)
        if method == "POST" and path in ("/quotations", "/amc-quotations"):
            return httpx.Response(201, json={"id": "doc-1", **json.loads(request.content)})
        if method == "PUT" and path.startswith(("/quotations/", "/amc-quotations/")):
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[1]})
        if method == "GET" and path.rsplit("/", 1)[0] in ("/quotations", "/amc-quotations"):
            document = self.documents.get(path.rsplit("/", 1)[1])
            if document is None:
                return httpx.Response(404, json={"detail": "Quotation not found"})
            return httpx.Response(200, json=document)
        return httpx.Response(404, json={"detail": "Not found"})

    def sent(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]


def _run(
    backend: Callable[[httpx.Request], httpx.Response],
    scenario: Callable[[ApiClient], Awaitable[Any]],
) -> Any:
    async def _main() -> Any:
        async with ApiClient(BASE_URL, transport=httpx.MockTransport(backend)) as api:
            return await scenario(api)

    return asyncio.run(_main())


def _filled(session: QuotationFormSession, quantity: str = "2") -> None:
    session.select_customer(CUSTOMER_ID)
    session.select_product(0, FILTER_ID)
    session.update_item(0, "quantity", D(quantity))
    session.update_item(0, "discount", D("10"))


# ─── Helpers ────────────────────────────────────────────────────────────────


class TestSanitize:
    def test_strips_drops_and_camel_cases(self) -> None:
        data = {
            "subject": "  Quarterly service  ",
            "notes": "",
            "assigned_engineer": None,
            "issue_date": date(2026, 10, 1),
            "items": [
                {
                    "product": "p1",
                    "unit_price": D("100"),
                    "total_price": D("118"),
                    "id": "line-1",
                }
            ],
            "gst_included": False,
        }
        assert sanitize(data) == {
            "subject": "Quarterly service",
            "issueDate": "2026-10-01",
            "items": [{"product": "p1", "unitPrice": "100"}],
            "gstIncluded": False,
        }


class TestDropdown:
    def test_keyboard_navigation_wraps(self) -> None:
        dropdown = DropdownState(["Cummins", "Kirloskar", "Mahindra"])
        assert dropdown.handle_key("ArrowDown") is None
        assert dropdown.is_open
        dropdown.handle_key("ArrowUp")
        assert dropdown.highlighted == 2
        dropdown.handle_key("ArrowDown")
        assert dropdown.highlighted == 0
        assert dropdown.handle_key("Enter") == "Cummins"
        assert dropdown.selected == "Cummins"
        assert not dropdown.is_open

    def test_search_filters_and_escape_closes(self) -> None:
        dropdown = DropdownState(
            [FILTER, BATTERY], label=lambda p: f"{p['name']} {p['part_no']}"
        )
        dropdown.search("bat")
        assert [p["id"] for p in dropdown.filtered] == [BATTERY_ID]
        dropdown.handle_key("ArrowDown")
        dropdown.handle_key("Escape")
        assert not dropdown.is_open
        assert dropdown.highlighted == -1
        assert dropdown.selected is None

    def test_enter_without_highlight_picks_nothing(self) -> None:
        dropdown = DropdownState(["a", "b"])
        dropdown.open()
        assert dropdown.handle_key("Enter") is None
        assert dropdown.is_open


# ─── Quotation session ──────────────────────────────────────────────────────


class TestQuotationLoad:
    def test_reference_data_and_default_location(self) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> QuotationFormSession:
            session = QuotationFormSession(api)
            await session.load()
            return session

        session = _run(backend, scenario)
        assert session.mode == "create"
        assert [c["name"] for c in session.customers] == ["Sharma Textiles"]
        assert len(session.products) == 2
        assert session.engineers == [{"id": "eng-1", "full_name": "Ravi Kumar"}]
        assert session.data["location"] == MAIN_OFFICE_ID
        assert session.available_quantity(FILTER_ID) == 10
        assert session.available_quantity("prod-unknown") == 0

    def test_failed_fetch_leaves_empty_list(self, caplog: pytest.LogCaptureFixture) -> None:
        backend = FakeBackOffice()
        backend.fail_engineers = True

        async def scenario(api: ApiClient) -> QuotationFormSession:
            session = QuotationFormSession(api)
            await session.load()
            return session

        session = _run(backend, scenario)
        assert session.engineers == []
        assert len(session.customers) == 1
        assert "Failed to load engineers" in caplog.text

    def test_location_change_reloads_stock(self) -> None:
        async def scenario(api: ApiClient) -> QuotationFormSession:
            session = QuotationFormSession(api)
            await session.load()
            await session.select_location(WAREHOUSE_ID)
            return session

        session = _run(FakeBackOffice(), scenario)
        assert session.stock == {FILTER_ID: 3}


class TestQuotationEditing:
    @pytest.fixture()
    def session(self) -> QuotationFormSession:
        async def scenario(api: ApiClient) -> QuotationFormSession:
            s = QuotationFormSession(api)
            await s.load()
            return s

        return _run(FakeBackOffice(), scenario)

    def test_customer_defaults_to_primary_address(self, session: QuotationFormSession) -> None:
        session.select_customer(CUSTOMER_ID)
        assert session.data["customer"] == CUSTOMER_ID
        assert session.data["bill_to_address"]["address"] == "Unit 4, Sector 37"
        assert session.data["ship_to_address"] == session.data["bill_to_address"]

        session.select_customer(CUSTOMER_ID, address_id=1)
        assert session.data["bill_to_address"]["address"] == "Plot 12, Phase II"

    def test_unknown_customer(self, session: QuotationFormSession) -> None:
        with pytest.raises(ValueError):
            session.select_customer("nobody")

    def test_product_fills_line_and_totals(self, session: QuotationFormSession) -> None:
        _filled(session)
        line = session.data["items"][0]
        assert line["description"] == "Fuel Filter"
        assert line["part_no"] == "FF-5052"
        assert line["unit_price"] == D("100.0000")
        assert session.totals.grand_total == D("212.40")

    def test_service_charge_buyback_and_discount(self, session: QuotationFormSession) -> None:
        _filled(session)
        session.add_service_charge()
        session.update_service_charge(0, "description", "Service visit")
        session.update_service_charge(0, "unit_price", D("500"))
        session.set_battery_buy_back(description="Old battery", unit_price=D("200"))
        session.set_overall_discount(D("10"))
        assert session.totals.grand_total == D("522.16")

        session.clear_battery_buy_back()
        session.remove_service_charge(0)
        session.set_overall_discount(D("0"))
        assert session.totals.grand_total == D("212.40")

    def test_last_item_row_is_kept(self, session: QuotationFormSession) -> None:
        session.remove_item(0)
        assert len(session.data["items"]) == 1
        session.add_item()
        session.remove_item(1)
        assert len(session.data["items"]) == 1

    def test_stock_errors_sum_rows_of_same_product(
        self, session: QuotationFormSession
    ) -> None:
        _filled(session, quantity="6")
        session.add_item()
        session.select_product(1, FILTER_ID)
        session.update_item(1, "quantity", D("5"))
        errors = session.stock_errors()
        assert errors == [
            {"field": "items.0.quantity", "message": "Quantity (6) exceeds available stock (10)"},
            {"field": "items.1.quantity", "message": "Quantity (5) exceeds available stock (10)"},
        ]

    def test_search(self, session: QuotationFormSession) -> None:
        assert [p["id"] for p in session.search_products("exide")] == [BATTERY_ID]
        assert [p["id"] for p in session.search_products("ff-50")] == [FILTER_ID]
        assert session.search_customers("98100") == [CUSTOMER]
        assert session.search_customers("  ") == [CUSTOMER]


class TestQuotationSubmit:
    def test_validation_errors_block_the_request(self) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> Any:
            session = QuotationFormSession(api)
            await session.load()
            return await session.submit()

        result = _run(backend, scenario)
        assert not result.ok
        fields = {e["field"] for e in result.errors}
        assert "customer" in fields
        assert "items.0.product" in fields
        assert backend.sent("POST") == []

    def test_stock_shortfall_blocks_the_request(self) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> Any:
            session = QuotationFormSession(api)
            await session.load()
            _filled(session, quantity="11")
            return await session.submit()

        result = _run(backend, scenario)
        assert result.errors == [
            {"field": "items.0.quantity", "message": "Quantity (11) exceeds available stock (10)"}
        ]
        assert backend.sent("POST") == []

    def test_create_sends_clean_payload(self) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> tuple[Any, QuotationFormSession]:
            session = QuotationFormSession(api)
            await session.load()
            _filled(session)
            return await session.submit(), session

        result, session = _run(backend, scenario)
        assert result.ok
        assert result.message == "Document created successfully"
        assert session.document_id == "doc-1"
        assert session.mode == "edit"

        sent = json.loads(backend.sent("POST")[0].content)
        assert sent["customer"] == CUSTOMER_ID
        assert sent["location"] == MAIN_OFFICE_ID
        assert sent["billToAddress"]["address"] == "Unit 4, Sector 37"
        assert sent["items"][0]["unitPrice"] == "100.0000"
        assert "assignedEngineer" not in sent
        assert "totalPrice" not in sent["items"][0]

    def test_server_rejection_is_reported(self) -> None:
        backend = FakeBackOffice()
        backend.reject_with = (
            400,
            {"detail": "Quantity (2) exceeds available stock (1) for Fuel Filter"},
        )

        async def scenario(api: ApiClient) -> Any:
            session = QuotationFormSession(api)
            await session.load()
            _filled(session)
            return await session.submit()

        result = _run(backend, scenario)
        assert not result.ok
        assert result.message == "Quantity (2) exceeds available stock (1) for Fuel Filter"

    def test_network_failure(self) -> None:
        backend = FakeBackOffice()

        def flaky(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                raise httpx.ConnectError("connection refused", request=request)
            return backend(request)

        async def scenario(api: ApiClient) -> Any:
            session = QuotationFormSession(api)
            await session.load()
            _filled(session)
            return await session.submit()

        result = _run(flaky, scenario)
        assert not result.ok
        assert result.message == "Failed to create document"

    def test_edit_mode_loads_and_updates(self) -> None:
        backend = FakeBackOffice()
        backend.documents["q-7"] = {
            "id": "q-7",
            "quotation_type": "spares",
            "customer_id": CUSTOMER_ID,
            "location_id": WAREHOUSE_ID,
            "assigned_engineer_id": None,
            "subject": "Filter replacement",
            "issue_date": "2026-10-01",
            "validity_period": 30,
            "bill_to_address": {"address": "Unit 4, Sector 37", "state": "Haryana"},
            "ship_to_address": {"address": "Unit 4, Sector 37", "state": "Haryana"},
            "items": [
                {
                    "id": "line-1",
                    "product_id": FILTER_ID,
                    "product_name": "Fuel Filter",
                    "description": "Fuel Filter",
                    "quantity": "2.0000",
                    "unit_price": "100.0000",
                    "discount": "0.0000",
                    "tax_rate": "18.0000",
                    "total_price": "236.0000",
                }
            ],
            "service_charges": [],
            "battery_buy_back": None,
            "overall_discount": "0.0000",
        }

        async def scenario(api: ApiClient) -> tuple[Any, QuotationFormSession]:
            session = QuotationFormSession(api, document_id="q-7")
            await session.load()
            return await session.submit(), session

        result, session = _run(backend, scenario)
        assert session.data["location"] == WAREHOUSE_ID
        assert session.data["items"][0]["product"] == FILTER_ID
        assert session.totals.grand_total == D("236.00")
        assert result.ok
        assert result.message == "Document updated successfully"

        put = backend.sent("PUT")[0]
        assert put.url.path == "/api/v1/quotations/q-7"
        body = json.loads(put.content)
        assert body["items"][0] == {
            "product": FILTER_ID,
            "description": "Fuel Filter",
            "quantity": "2.0000",
            "unitPrice": "100.0000",
            "discount": "0.0000",
            "taxRate": "18.0000",
        }

    def test_second_submit_updates(self) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> tuple[Any, Any]:
            session = QuotationFormSession(api)
            await session.load()
            _filled(session)
            first = await session.submit()
            session.update_item(0, "quantity", D("3"))
            return first, await session.submit()

        first, second = _run(backend, scenario)
        assert first.message == "Document created successfully"
        assert second.message == "Document updated successfully"
        assert [r.url.path for r in backend.sent("PUT")] == ["/api/v1/quotations/doc-1"]

    def test_missing_document_blocks_submit(self, caplog: pytest.LogCaptureFixture) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> tuple[Any, QuotationFormSession]:
            session = QuotationFormSession(api, document_id="q-404")
            await session.load()
            return await session.submit(), session

        result, session = _run(backend, scenario)
        assert session.load_error == "Quotation not found"
        assert len(session.customers) == 1
        assert not result.ok
        assert result.message == "Quotation not found"
        assert backend.sent("PUT") == []
        assert "Failed to load document q-404" in caplog.text

    def test_unreachable_document(self) -> None:
        backend = FakeBackOffice()

        def offline(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/api/v1/quotations/"):
                raise httpx.ConnectError("connection refused", request=request)
            return backend(request)

        async def scenario(api: ApiClient) -> QuotationFormSession:
            session = QuotationFormSession(api, document_id="q-7")
            await session.load()
            return session

        assert _run(offline, scenario).load_error == "Failed to load document"


def test_base_session_is_abstract() -> None:
    with pytest.raises(TypeError):
        _FormSession(ApiClient(BASE_URL))


# ─── AMC session ────────────────────────────────────────────────────────────


class TestAMCSession:
    @pytest.fixture()
    def session(self) -> AMCQuotationFormSession:
        async def scenario(api: ApiClient) -> AMCQuotationFormSession:
            s = AMCQuotationFormSession(api)
            await s.load()
            return s

        return _run(FakeBackOffice(), scenario)

    def _offer(self, session: AMCQuotationFormSession) -> None:
        session.select_customer(CUSTOMER_ID)
        for field_name, value in (
            ("make", "Cummins"),
            ("engine_sl_no", "25XXXX01"),
            ("dg_rating_kva", D("125")),
            ("type_of_visits", 12),
            ("qty", D("2")),
            ("amc_cost_per_dg", D("10000")),
        ):
            session.update_offer_item(0, field_name, value)

    def test_defaults(self, session: AMCQuotationFormSession) -> None:
        assert session.data["amc_type"] == "AMC"
        assert session.data["validity_text"] == "30 days from the date of quotation"
        assert session.gst_rate == D("18")

    def test_totals_follow_gst_toggle(self, session: AMCQuotationFormSession) -> None:
        self._offer(session)
        assert session.totals.grand_total == D("23600.00")
        session.set_gst_included(False)
        assert session.totals.grand_total == D("20000.00")

    def test_camc_opens_spares_table(self, session: AMCQuotationFormSession) -> None:
        self._offer(session)
        session.set_amc_type("CAMC")
        assert len(session.data["spares_items"]) == 1
        session.select_spare_product(0, FILTER_ID)
        session.update_spare(0, "qty", D("2"))
        session.update_spare(0, "discount", D("10"))
        spare = session.data["spares_items"][0]
        assert spare["hsn_code"] == "84212300"
        assert session.totals.spares_total == D("212.40")
        assert session.totals.grand_total == D("23812.40")
        assert session.validate() == []

    def test_spares_dropped_for_plain_amc(self, session: AMCQuotationFormSession) -> None:
        self._offer(session)
        session.set_amc_type("CAMC")
        session.select_spare_product(0, FILTER_ID)
        session.set_amc_type("AMC")
        assert session.payload()["sparesItems"] == []

    def test_last_offer_row_is_kept(self, session: AMCQuotationFormSession) -> None:
        session.remove_offer_item(0)
        assert len(session.data["offer_items"]) == 1

    def test_submit_creates(self) -> None:
        backend = FakeBackOffice()

        async def scenario(api: ApiClient) -> Any:
            session = AMCQuotationFormSession(api)
            await session.load()
            self._offer(session)
            return await session.submit()

        result = _run(backend, scenario)
        assert result.ok, result.errors
        sent = json.loads(backend.sent("POST")[0].content)
        assert backend.sent("POST")[0].url.path == "/api/v1/amc-quotations"
        assert sent["amcType"] == "AMC"
        assert sent["offerItems"][0]["amcCostPerDg"] == "10000"
        assert sent["paymentTermsText"] == "100% advance along with the work order"
