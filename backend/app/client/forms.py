"""Form sessions: the state behind the quotation and AMC quotation editors.

A session loads its reference data through :class:`ApiClient`, keeps the
document being edited as a plain snake_case dict, recomputes totals after
every line edit and finally sanitises the dict and submits it.

Reference data is fetched concurrently. A fetch that fails is logged and
leaves an empty list behind so the rest of the form stays usable. In edit
mode a document that cannot be fetched sets ``load_error`` and blocks submit.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Generic, TypeVar

import httpx
from pydantic.alias_generators import to_camel

from backend.app.client.api_client import ApiClient, ApiError
from backend.app.core.config import settings
from backend.app.schemas.amc import AMCQuotationCreate
from backend.app.schemas.quotes import QuotationCreate
from backend.app.schemas.validation import collect_errors
from backend.app.services.totals import (
    AMCTotals,
    DocumentTotals,
    calculate_amc_totals,
    calculate_totals,
    to_decimal,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Derived values the server recomputes; never sent back
_COMPUTED_FIELDS = {
    "id",
    "discounted_amount",
    "tax_amount",
    "total_price",
    "amount",
    "total_amc_amount_per_dg",
    "gst_amount",
    "total_amc_cost",
    "product_name",
}


@dataclass
class SubmitResult:
    ok: bool
    data: dict | None = None
    message: str = ""
    errors: list[dict[str, str]] = field(default_factory=list)


def _format_qty(value: Any) -> str:
    return format(to_decimal(value).normalize(), "f")


def sanitize(value: Any) -> Any:
    """Strip strings, drop blanks and derived fields, camelCase the keys."""
    if isinstance(value, dict):
        clean: dict[str, Any] = {}
        for key, item in value.items():
            if key in _COMPUTED_FIELDS:
                continue
            item = sanitize(item)
            if item is None or item == "":
                continue
            clean[to_camel(key)] = item
        return clean
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _matches(term: str, *values: Any) -> bool:
    needle = term.strip().lower()
    return any(needle in str(v).lower() for v in values if v)


def _address_snapshot(address: dict | None) -> dict:
    if not address:
        return {}
    return {
        "address": address.get("address", ""),
        "district": address.get("district"),
        "state": address.get("state"),
        "pincode": address.get("pincode"),
        "gst_number": address.get("gst_number"),
    }


# ─── Dropdown ─────────────────────────────────────────────────────────────────


class DropdownState(Generic[T]):
    """Searchable dropdown: open flag, filter text and keyboard highlight.

    ``label`` renders an option for filtering. Arrow keys wrap around the
    filtered options, Enter picks the highlighted one and closes, Escape
    closes without picking.
    """

    def __init__(self, options: list[T] | None = None, label: Callable[[T], str] = str) -> None:
        self.options: list[T] = list(options or [])
        self.label = label
        self.is_open = False
        self.query = ""
        self.highlighted = -1
        self.selected: T | None = None

    @property
    def filtered(self) -> list[T]:
        if not self.query.strip():
            return list(self.options)
        return [o for o in self.options if _matches(self.query, self.label(o))]

    def set_options(self, options: list[T]) -> None:
        self.options = list(options)
        self.highlighted = -1

    def open(self) -> None:
        self.is_open = True
        self.highlighted = -1

    def close(self) -> None:
        self.is_open = False
        self.highlighted = -1

    def search(self, text: str) -> None:
        self.query = text
        self.is_open = True
        self.highlighted = -1

    def select(self, option: T) -> T:
        self.selected = option
        self.query = ""
        self.close()
        return option

    def handle_key(self, key: str) -> T | None:
        """Apply one key press; returns the option chosen with Enter."""
        options = self.filtered
        if key == "Escape":
            self.close()
            return None
        if not self.is_open:
            if key in ("ArrowDown", "ArrowUp", "Enter"):
                self.open()
            return None
        if key == "ArrowDown" and options:
            self.highlighted = (self.highlighted + 1) % len(options)
        elif key == "ArrowUp" and options:
            self.highlighted = (
                len(options) - 1 if self.highlighted <= 0 else self.highlighted - 1
            )
        elif key == "Enter" and 0 <= self.highlighted < len(options):
            return self.select(options[self.highlighted])
        return None


# ─── Base session ─────────────────────────────────────────────────────────────


class _FormSession(ABC):
    """Reference data, location-scoped stock and submit plumbing."""

    def __init__(self, api: ApiClient, document_id: str | None = None) -> None:
        self.api = api
        self.document_id = document_id
        self.customers: list[dict] = []
        self.products: list[dict] = []
        self.locations: list[dict] = []
        self.engineers: list[dict] = []
        self.general_settings: dict = {}
        self.stock: dict[str, int] = {}
        self.data: dict[str, Any] = self.default_data()
        self.errors: list[dict[str, str]] = []
        self.load_error: str | None = None

    @property
    def mode(self) -> str:
        return "edit" if self.document_id else "create"

    @abstractmethod
    def default_data(self) -> dict[str, Any]: ...

    # ── Loading ──────────────────────────────────────────────────────────────

    async def _safe(self, label: str, call: Awaitable[Any], default: Any) -> Any:
        try:
            result = await call
        except (ApiError, httpx.HTTPError) as exc:
            logger.warning("Failed to load %s: %s", label, exc)
            return default
        return default if result is None else result

    async def load(self) -> None:
        """Fetch all reference data concurrently, then stock for the location."""
        (
            self.customers,
            self.products,
            self.locations,
            self.engineers,
            self.general_settings,
        ) = await asyncio.gather(
            self._safe("customers", self.api.customers.list(), []),
            self._safe("products", self.api.products.list(), []),
            self._safe("locations", self.api.locations.list(), []),
            self._safe("engineers", self.api.users.engineers(), []),
            self._safe("general settings", self.api.general_settings.get(), {}),
        )

        if self.document_id:
            try:
                document = await self.fetch_document()
            except (ApiError, httpx.HTTPError) as exc:
                logger.warning("Failed to load document %s: %s", self.document_id, exc)
                self.load_error = (
                    exc.message if isinstance(exc, ApiError) else "Failed to load document"
                )
                return
            self.data = self.from_document(document)

        if not self.data.get("location"):
            default = self.default_location()
            if default:
                self.data["location"] = default["id"]

        await self.refresh_stock()
        self.recalculate()

    @abstractmethod
    async def fetch_document(self) -> dict: ...

    @abstractmethod
    def from_document(self, document: dict) -> dict[str, Any]: ...

    def default_location(self) -> dict | None:
        offices = [loc for loc in self.locations if loc.get("type") == "main_office"]
        for loc in offices:
            if loc.get("name") == settings.DEFAULT_LOCATION_NAME:
                return loc
        if offices:
            return offices[0]
        return self.locations[0] if self.locations else None

    async def refresh_stock(self) -> None:
        """Reload available quantities for the selected location.

        Overlapping refreshes are not ordered: whichever response arrives
        last is the one kept.
        """
        location = self.data.get("location")
        if not location:
            self.stock = {}
            return
        rows = await self._safe("stock", self.api.stock.summary(location=location), [])
        self.stock = {
            str(row["product_id"]): int(row.get("available_quantity") or 0) for row in rows
        }

    async def select_location(self, location_id: str) -> None:
        self.data["location"] = location_id
        await self.refresh_stock()

    # ── Lookups ──────────────────────────────────────────────────────────────

    def available_quantity(self, product_id: str | None) -> int:
        if not product_id:
            return 0
        return self.stock.get(str(product_id), 0)

    def product(self, product_id: str | None) -> dict | None:
        return next((p for p in self.products if str(p["id"]) == str(product_id)), None)

    def customer(self, customer_id: str | None) -> dict | None:
        return next((c for c in self.customers if str(c["id"]) == str(customer_id)), None)

    def search_products(self, term: str) -> list[dict]:
        if not term.strip():
            return list(self.products)
        return [
            p
            for p in self.products
            if _matches(term, p.get("name"), p.get("part_no"), p.get("category"), p.get("brand"))
        ]

    def search_customers(self, term: str) -> list[dict]:
        if not term.strip():
            return list(self.customers)
        return [
            c
            for c in self.customers
            if _matches(term, c.get("name"), c.get("email"), c.get("phone"))
        ]

    def select_customer(self, customer_id: str, address_id: int | None = None) -> None:
        """Pick a customer; bill-to and ship-to default to the chosen address."""
        customer = self.customer(customer_id)
        if customer is None:
            raise ValueError(f"Customer {customer_id} is not loaded")
        addresses = customer.get("addresses") or []
        chosen = None
        if address_id is not None:
            chosen = next((a for a in addresses if a.get("id") == address_id), None)
        if chosen is None:
            chosen = next((a for a in addresses if a.get("is_primary")), None)
        if chosen is None and addresses:
            chosen = addresses[0]
        self.data["customer"] = customer["id"]
        self.data["bill_to_address"] = _address_snapshot(chosen)
        self.data["ship_to_address"] = _address_snapshot(chosen)

    # ── Validation / submit ──────────────────────────────────────────────────

    schema: type

    @abstractmethod
    def recalculate(self) -> None: ...

    def payload(self) -> dict:
        return sanitize(self.data)

    def stock_errors(self) -> list[dict[str, str]]:
        return []

    def validate(self) -> list[dict[str, str]]:
        errors = [e.as_dict() for e in collect_errors(self.schema, self.payload())]
        errors.extend(self.stock_errors())
        self.errors = errors
        return errors

    @abstractmethod
    async def _create(self, payload: dict) -> dict: ...

    @abstractmethod
    async def _update(self, document_id: str, payload: dict) -> dict: ...

    async def submit(self) -> SubmitResult:
        """Validate, then create or update; failures come back in the result."""
        if self.load_error:
            return SubmitResult(ok=False, message=self.load_error)
        errors = self.validate()
        if errors:
            return SubmitResult(ok=False, message="Please fix the validation errors", errors=errors)

        payload = self.payload()
        verb = self._verb()
        try:
            if self.document_id:
                saved = await self._update(self.document_id, payload)
            else:
                saved = await self._create(payload)
        except ApiError as exc:
            logger.warning("Submit failed (%s): %s", exc.status_code, exc.message)
            self.errors = exc.errors
            return SubmitResult(ok=False, message=exc.message, errors=exc.errors)
        except httpx.HTTPError as exc:
            logger.error("Submit failed: %s", exc)
            return SubmitResult(ok=False, message=f"Failed to {verb} document")

        self.document_id = str(saved["id"])
        self.errors = []
        return SubmitResult(ok=True, data=saved, message=f"Document {verb}d successfully")

    def _verb(self) -> str:
        return "update" if self.mode == "edit" else "create"


# ─── Quotation ────────────────────────────────────────────────────────────────


def blank_item() -> dict[str, Any]:
    return {
        "product": "",
        "description": "",
        "part_no": "",
        "hsn_number": "",
        "uom": "nos",
        "quantity": Decimal("1"),
        "unit_price": Decimal("0"),
        "discount": Decimal("0"),
        "tax_rate": Decimal(settings.DEFAULT_GST_RATE),
    }


def blank_service_charge() -> dict[str, Any]:
    return {
        "description": "",
        "hsn_number": "",
        "quantity": Decimal("1"),
        "unit_price": Decimal("0"),
        "discount": Decimal("0"),
        "tax_rate": Decimal(settings.DEFAULT_GST_RATE),
    }


class QuotationFormSession(_FormSession):
    """Service / spares / sales quotation editor."""

    schema = QuotationCreate

    def __init__(self, api: ApiClient, document_id: str | None = None) -> None:
        self.totals = DocumentTotals()
        super().__init__(api, document_id)

    def default_data(self) -> dict[str, Any]:
        return {
            "quotation_type": "service",
            "customer": "",
            "location": "",
            "assigned_engineer": "",
            "subject": "",
            "issue_date": date.today(),
            "validity_period": settings.DEFAULT_VALIDITY_DAYS,
            "bill_to_address": {},
            "ship_to_address": {},
            "items": [blank_item()],
            "service_charges": [],
            "battery_buy_back": None,
            "overall_discount": Decimal("0"),
            "notes": "",
            "terms": "",
        }

    async def fetch_document(self) -> dict:
        return await self.api.quotations.get(self.document_id)

    def from_document(self, document: dict) -> dict[str, Any]:
        data = self.default_data()
        for key in data:
            if key in document and document[key] is not None:
                data[key] = document[key]
        data["customer"] = document.get("customer_id") or ""
        data["location"] = document.get("location_id") or ""
        data["assigned_engineer"] = document.get("assigned_engineer_id") or ""
        data["items"] = [
            {**{k: v for k, v in row.items() if k != "product_id"}, "product": row["product_id"]}
            for row in document.get("items", [])
        ] or [blank_item()]
        data["service_charges"] = list(document.get("service_charges", []))
        return data

    # ── Lines ────────────────────────────────────────────────────────────────

    def add_item(self) -> None:
        self.data["items"].append(blank_item())
        self.recalculate()

    def update_item(self, index: int, field_name: str, value: Any) -> None:
        self.data["items"][index][field_name] = value
        self.recalculate()

    def remove_item(self, index: int) -> None:
        """The last remaining row is kept so the table never goes empty."""
        if len(self.data["items"]) > 1:
            del self.data["items"][index]
            self.recalculate()

    def select_product(self, index: int, product_id: str) -> None:
        product = self.product(product_id)
        if product is None:
            raise ValueError(f"Product {product_id} is not loaded")
        self.data["items"][index].update(
            product=product["id"],
            description=product.get("name") or "",
            part_no=product.get("part_no") or "",
            hsn_number=product.get("hsn_number") or "",
            uom=product.get("uom") or "nos",
            unit_price=to_decimal(product.get("price")),
            tax_rate=to_decimal(product.get("gst_rate", settings.DEFAULT_GST_RATE)),
        )
        self.recalculate()

    def add_service_charge(self) -> None:
        self.data["service_charges"].append(blank_service_charge())
        self.recalculate()

    def update_service_charge(self, index: int, field_name: str, value: Any) -> None:
        self.data["service_charges"][index][field_name] = value
        self.recalculate()

    def remove_service_charge(self, index: int) -> None:
        del self.data["service_charges"][index]
        self.recalculate()

    def set_battery_buy_back(self, **values: Any) -> None:
        row = self.data.get("battery_buy_back") or {
            "description": "",
            "quantity": Decimal("1"),
            "unit_price": Decimal("0"),
            "discount": Decimal("0"),
        }
        row.update(values)
        self.data["battery_buy_back"] = row
        self.recalculate()

    def clear_battery_buy_back(self) -> None:
        self.data["battery_buy_back"] = None
        self.recalculate()

    def set_overall_discount(self, value: Any) -> None:
        self.data["overall_discount"] = value
        self.recalculate()

    def recalculate(self) -> None:
        self.totals = calculate_totals(
            self.data["items"],
            self.data["service_charges"],
            self.data.get("battery_buy_back"),
            self.data.get("overall_discount"),
        )

    def stock_errors(self) -> list[dict[str, str]]:
        requested: dict[str, Decimal] = {}
        for row in self.data["items"]:
            if row.get("product"):
                key = str(row["product"])
                requested[key] = requested.get(key, Decimal("0")) + to_decimal(row.get("quantity"))

        errors = []
        for index, row in enumerate(self.data["items"]):
            if not row.get("product"):
                continue
            available = self.available_quantity(row["product"])
            if requested[str(row["product"])] > available:
                errors.append({
                    "field": f"items.{index}.quantity",
                    "message": (
                        f"Quantity ({_format_qty(row.get('quantity'))}) "
                        f"exceeds available stock ({available})"
                    ),
                })
        return errors

    async def _create(self, payload: dict) -> dict:
        return await self.api.quotations.create(payload)

    async def _update(self, document_id: str, payload: dict) -> dict:
        return await self.api.quotations.update(document_id, payload)


# ─── AMC / CAMC quotation ─────────────────────────────────────────────────────


def blank_offer_item() -> dict[str, Any]:
    return {
        "make": "",
        "engine_sl_no": "",
        "dg_rating_kva": Decimal("0"),
        "type_of_visits": 0,
        "qty": Decimal("1"),
        "amc_cost_per_dg": Decimal("0"),
    }


def blank_spare() -> dict[str, Any]:
    return {
        "product": "",
        "part_no": "",
        "description": "",
        "hsn_code": "",
        "uom": "nos",
        "qty": Decimal("1"),
        "unit_price": Decimal("0"),
        "gst_rate": Decimal(settings.DEFAULT_GST_RATE),
        "discount": Decimal("0"),
    }


class AMCQuotationFormSession(_FormSession):
    """AMC / CAMC quotation editor: DG offer rows plus (for CAMC) spares."""

    schema = AMCQuotationCreate

    def __init__(self, api: ApiClient, document_id: str | None = None) -> None:
        self.totals = AMCTotals()
        super().__init__(api, document_id)

    def default_data(self) -> dict[str, Any]:
        return {
            "amc_type": "AMC",
            "customer": "",
            "location": "",
            "assigned_engineer": "",
            "subject": "",
            "ref_of_quote": "",
            "issue_date": date.today(),
            "bill_to_address": {},
            "ship_to_address": {},
            "contract_duration": 12,
            "contract_start_date": None,
            "billing_cycle": "yearly",
            "number_of_visits": 12,
            "number_of_oil_services": 4,
            "response_time": 24,
            "coverage_area": "",
            "emergency_contact_hours": "24/7",
            "exclusions": "",
            "payment_terms_text": "100% advance along with the work order",
            "validity_text": f"{settings.DEFAULT_VALIDITY_DAYS} days from the date of quotation",
            "gst_included": True,
            "offer_items": [blank_offer_item()],
            "spares_items": [],
            "notes": "",
        }

    async def fetch_document(self) -> dict:
        return await self.api.amc_quotations.get(self.document_id)

    def from_document(self, document: dict) -> dict[str, Any]:
        data = self.default_data()
        for key in data:
            if key in document and document[key] is not None:
                data[key] = document[key]
        for key in ("contract_end_date", "amc_period_from", "amc_period_to", "valid_until"):
            data[key] = document.get(key)
        data["gst_rate"] = document.get("gst_rate")
        data["customer"] = document.get("customer_id") or ""
        data["location"] = document.get("location_id") or ""
        data["assigned_engineer"] = document.get("assigned_engineer_id") or ""
        data["offer_items"] = list(document.get("offer_items", [])) or [blank_offer_item()]
        data["spares_items"] = [
            {**{k: v for k, v in row.items() if k != "product_id"}, "product": row.get("product_id")}
            for row in document.get("spares_items", [])
        ]
        return data

    @property
    def gst_rate(self) -> Decimal:
        return to_decimal(self.data.get("gst_rate") or settings.DEFAULT_GST_RATE)

    def set_amc_type(self, amc_type: str) -> None:
        """Switching to CAMC opens the spares table with one row."""
        self.data["amc_type"] = amc_type
        if amc_type == "CAMC" and not self.data["spares_items"]:
            self.data["spares_items"].append(blank_spare())
        self.recalculate()

    def set_gst_included(self, included: bool) -> None:
        self.data["gst_included"] = included
        self.recalculate()

    # ── Offer rows ───────────────────────────────────────────────────────────

    def add_offer_item(self) -> None:
        self.data["offer_items"].append(blank_offer_item())
        self.recalculate()

    def update_offer_item(self, index: int, field_name: str, value: Any) -> None:
        self.data["offer_items"][index][field_name] = value
        self.recalculate()

    def remove_offer_item(self, index: int) -> None:
        if len(self.data["offer_items"]) > 1:
            del self.data["offer_items"][index]
            self.recalculate()

    # ── Spares ───────────────────────────────────────────────────────────────

    def add_spare(self) -> None:
        self.data["spares_items"].append(blank_spare())
        self.recalculate()

    def update_spare(self, index: int, field_name: str, value: Any) -> None:
        self.data["spares_items"][index][field_name] = value
        self.recalculate()

    def remove_spare(self, index: int) -> None:
        del self.data["spares_items"][index]
        self.recalculate()

    def select_spare_product(self, index: int, product_id: str) -> None:
        product = self.product(product_id)
        if product is None:
            raise ValueError(f"Product {product_id} is not loaded")
        self.data["spares_items"][index].update(
            product=product["id"],
            part_no=product.get("part_no") or "",
            description=product.get("name") or "",
            hsn_code=product.get("hsn_number") or "",
            uom=product.get("uom") or "nos",
            unit_price=to_decimal(product.get("price")),
            gst_rate=to_decimal(product.get("gst_rate", settings.DEFAULT_GST_RATE)),
        )
        self.recalculate()

    def recalculate(self) -> None:
        self.totals = calculate_amc_totals(
            self.data["offer_items"],
            self.data["spares_items"],
            gst_included=bool(self.data.get("gst_included")),
            gst_rate=self.gst_rate,
        )

    def payload(self) -> dict:
        data = dict(self.data)
        # Spares only travel with a comprehensive contract
        if data.get("amc_type") != "CAMC":
            data["spares_items"] = []
        data.pop("gst_rate", None)
        return sanitize(data)

    async def _create(self, payload: dict) -> dict:
        return await self.api.amc_quotations.create(payload)

    async def _update(self, document_id: str, payload: dict) -> dict:
        return await self.api.amc_quotations.update(document_id, payload)
