from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from backend.app.models.quotes import QuotationStatus, QuotationType
from backend.app.schemas.common import (
    NonNegative,
    OptionalDate,
    Percent,
    RequiredText,
    Text,
)
from backend.app.schemas.validation import ApiModel

_LINE_MESSAGES: dict[str, dict[str, str]] = {
    "product": {"required": "Product is required", "type": "Product is required"},
    "quantity": {
        "required": "Quantity must be greater than 0",
        "min": "Quantity must be greater than 0",
        "type": "Quantity must be a number",
    },
    "unit_price": {
        "min": "Unit price must be non-negative",
        "type": "Unit price must be a number",
    },
    "discount": {
        "min": "Discount must be between 0 and 100%",
        "max": "Discount must be between 0 and 100%",
    },
    "tax_rate": {
        "min": "Tax rate must be between 0 and 100%",
        "max": "Tax rate must be between 0 and 100%",
    },
    "uom": {"required": "Unit of measure is required"},
    "description": {"required": "Description is required"},
}


# ─── Lines ────────────────────────────────────────────────────────────────────


class QuotationItemIn(ApiModel):
    product: UUID
    description: Text | None = None
    part_no: Text | None = None
    hsn_number: Text | None = None
    uom: RequiredText = "nos"
    quantity: Decimal = Field(gt=0)
    unit_price: NonNegative = Decimal("0")
    discount: Percent = Decimal("0")
    tax_rate: Percent = Decimal("18")

    error_messages = _LINE_MESSAGES


class ServiceChargeIn(ApiModel):
    description: RequiredText
    hsn_number: Text | None = None
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_price: NonNegative = Decimal("0")
    discount: Percent = Decimal("0")
    tax_rate: Percent = Decimal("18")

    error_messages = _LINE_MESSAGES


class BatteryBuyBackIn(ApiModel):
    description: Text | None = None
    quantity: NonNegative = Decimal("1")
    unit_price: NonNegative = Decimal("0")
    discount: Percent = Decimal("0")

    error_messages = _LINE_MESSAGES


class QuoteAddressIn(ApiModel):
    address: RequiredText
    district: Text | None = None
    state: Text | None = None
    pincode: Text | None = None
    gst_number: Text | None = None


# ─── Create / Update ──────────────────────────────────────────────────────────

_DOCUMENT_MESSAGES: dict[str, dict[str, str]] = {
    "customer": {
        "required": "Customer name is required",
        "type": "Customer must be a valid id",
    },
    "location": {
        "required": "From location is required",
        "type": "From location must be a valid id",
    },
    "bill_to_address": {"required": "Bill to address is required"},
    "ship_to_address": {"required": "Ship to address is required"},
    "validity_period": {"min": "Validity period must be at least 1 day"},
    "overall_discount": {
        "min": "Overall discount must be between 0 and 100%",
        "max": "Overall discount must be between 0 and 100%",
    },
    "quotation_type": {
        "enum": "Quotation type must be one of: "
        + ", ".join(t.value for t in QuotationType),
    },
}


class QuotationCreate(ApiModel):
    quotation_type: QuotationType = QuotationType.SERVICE
    customer: UUID
    location: UUID
    assigned_engineer: UUID | None = None
    subject: Text | None = None
    issue_date: OptionalDate = None
    validity_period: int = Field(default=30, ge=1)
    valid_until: OptionalDate = None
    bill_to_address: QuoteAddressIn
    ship_to_address: QuoteAddressIn
    engine_serial_number: Text | None = None
    kva: Text | None = None
    hour_meter_reading: Text | None = None
    service_request_date: OptionalDate = None
    items: list[QuotationItemIn] = Field(default_factory=list)
    service_charges: list[ServiceChargeIn] = Field(default_factory=list)
    battery_buy_back: BatteryBuyBackIn | None = None
    overall_discount: Percent = Decimal("0")
    notes: Text | None = None
    terms: Text | None = None
    qr_code_image: Text | None = None

    error_messages = _DOCUMENT_MESSAGES


class QuotationUpdate(ApiModel):
    quotation_type: QuotationType | None = None
    customer: UUID | None = None
    location: UUID | None = None
    assigned_engineer: UUID | None = None
    subject: Text | None = None
    issue_date: OptionalDate = None
    validity_period: int | None = Field(default=None, ge=1)
    valid_until: OptionalDate = None
    bill_to_address: QuoteAddressIn | None = None
    ship_to_address: QuoteAddressIn | None = None
    engine_serial_number: Text | None = None
    kva: Text | None = None
    hour_meter_reading: Text | None = None
    service_request_date: OptionalDate = None
    items: list[QuotationItemIn] | None = None
    service_charges: list[ServiceChargeIn] | None = None
    battery_buy_back: BatteryBuyBackIn | None = None
    overall_discount: Percent | None = None
    notes: Text | None = None
    terms: Text | None = None
    qr_code_image: Text | None = None

    error_messages = _DOCUMENT_MESSAGES


class QuotationStatusUpdate(ApiModel):
    status: QuotationStatus

    error_messages = {
        "status": {
            "required": "Status is required",
            "enum": "Status must be one of: " + ", ".join(s.value for s in QuotationStatus),
        },
    }


class TotalsRequest(ApiModel):
    """Ad-hoc totals preview; nothing is stored."""

    items: list[QuotationItemIn] = Field(default_factory=list)
    service_charges: list[ServiceChargeIn] = Field(default_factory=list)
    battery_buy_back: BatteryBuyBackIn | None = None
    overall_discount: Percent = Decimal("0")

    error_messages = _DOCUMENT_MESSAGES


class QuotationListQuery(ApiModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    search: str | None = None
    status: QuotationStatus | None = None
    quotation_type: QuotationType | None = None
    customer: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None

    error_messages = {
        "page": {"min": "Page must be at least 1"},
        "limit": {"min": "Limit must be at least 1", "max": "Limit cannot exceed 100"},
    }
