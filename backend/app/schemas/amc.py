from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import Field, ValidationInfo, field_validator

from backend.app.models.amc import AMCType, BillingCycle
from backend.app.schemas.common import (
    NonNegative,
    OptionalDate,
    Percent,
    RequiredText,
    Text,
)
from backend.app.schemas.quotes import QuoteAddressIn
from backend.app.schemas.validation import ApiModel


class AMCOfferItemIn(ApiModel):
    make: RequiredText
    engine_sl_no: RequiredText
    dg_rating_kva: Decimal = Field(gt=0)
    type_of_visits: int = Field(gt=0)
    qty: Decimal = Field(default=Decimal("1"), gt=0)
    amc_cost_per_dg: Decimal = Field(gt=0)

    error_messages = {
        "make": {"required": "DG make is required"},
        "engine_sl_no": {"required": "Engine serial number is required"},
        "dg_rating_kva": {
            "required": "DG rating must be greater than 0 KVA",
            "min": "DG rating must be greater than 0 KVA",
        },
        "type_of_visits": {
            "required": "No of visits must be greater than 0",
            "min": "No of visits must be greater than 0",
        },
        "qty": {"min": "Quantity must be greater than 0"},
        "amc_cost_per_dg": {
            "required": "AMC cost per DG must be greater than 0",
            "min": "AMC cost per DG must be greater than 0",
        },
    }


class AMCSparesItemIn(ApiModel):
    product: UUID | None = None
    part_no: RequiredText
    description: Text | None = None
    hsn_code: RequiredText
    uom: RequiredText = "nos"
    qty: Decimal = Field(default=Decimal("1"), gt=0)
    unit_price: NonNegative = Decimal("0")
    gst_rate: Percent = Decimal("18")
    discount: Percent = Decimal("0")

    error_messages = {
        "part_no": {"required": "Part number is required"},
        "hsn_code": {"required": "HSN code is required"},
        "qty": {"min": "Quantity must be greater than 0"},
        "unit_price": {"min": "Unit price must be non-negative"},
        "gst_rate": {
            "min": "GST rate must be between 0 and 100%",
            "max": "GST rate must be between 0 and 100%",
        },
        "discount": {
            "min": "Discount must be between 0 and 100%",
            "max": "Discount must be between 0 and 100%",
        },
        "uom": {"required": "Unit of measure is required"},
    }


_DOCUMENT_MESSAGES: dict[str, dict[str, str]] = {
    "customer": {
        "required": "Customer name is required",
        "type": "Customer must be a valid id",
    },
    "bill_to_address": {"required": "Bill to address is required"},
    "ship_to_address": {"required": "Ship to address is required"},
    "amc_type": {"enum": "AMC type must be one of: AMC, CAMC"},
    "billing_cycle": {
        "enum": "Billing cycle must be one of: " + ", ".join(c.value for c in BillingCycle),
    },
    "offer_items": {
        "required": "At least one DG set offer item is required",
        "min_items": "At least one DG set offer item is required",
    },
    "contract_duration": {"min": "Contract duration must be at least 1 month"},
    "number_of_visits": {"min": "Number of visits cannot be negative"},
    "number_of_oil_services": {"min": "Number of oil services cannot be negative"},
    "response_time": {
        "required": "Response time must be greater than 0 hours",
        "min": "Response time must be greater than 0 hours",
    },
    "emergency_contact_hours": {"required": "Emergency contact hours is required"},
    "payment_terms_text": {"required": "Payment terms are required"},
    "validity_text": {"required": "Validity terms are required"},
}


class AMCQuotationCreate(ApiModel):
    amc_type: AMCType = AMCType.AMC
    customer: UUID
    location: UUID | None = None
    assigned_engineer: UUID | None = None
    subject: Text | None = None
    ref_of_quote: Text | None = None
    issue_date: OptionalDate = None
    valid_until: OptionalDate = None
    bill_to_address: QuoteAddressIn
    ship_to_address: QuoteAddressIn
    contract_duration: int = Field(default=12, ge=1)
    contract_start_date: OptionalDate = None
    contract_end_date: OptionalDate = None
    amc_period_from: OptionalDate = None
    amc_period_to: OptionalDate = None
    billing_cycle: BillingCycle = BillingCycle.YEARLY
    number_of_visits: int = Field(default=12, ge=0)
    number_of_oil_services: int = Field(default=4, ge=0)
    response_time: int = Field(default=24, gt=0)
    coverage_area: Text | None = None
    emergency_contact_hours: RequiredText = "24/7"
    exclusions: Text | None = None
    payment_terms_text: RequiredText
    validity_text: RequiredText
    gst_included: bool = True
    offer_items: list[AMCOfferItemIn] = Field(min_length=1)
    spares_items: list[AMCSparesItemIn] = Field(default_factory=list, validate_default=True)
    notes: Text | None = None

    error_messages = _DOCUMENT_MESSAGES

    @field_validator("spares_items")
    @classmethod
    def camc_needs_spares(
        cls, v: list[AMCSparesItemIn], info: ValidationInfo
    ) -> list[AMCSparesItemIn]:
        if info.data.get("amc_type") == AMCType.CAMC and not v:
            raise ValueError("At least one spare item is required for CAMC contract")
        return v


class AMCQuotationUpdate(ApiModel):
    amc_type: AMCType | None = None
    customer: UUID | None = None
    location: UUID | None = None
    assigned_engineer: UUID | None = None
    subject: Text | None = None
    ref_of_quote: Text | None = None
    issue_date: OptionalDate = None
    valid_until: OptionalDate = None
    bill_to_address: QuoteAddressIn | None = None
    ship_to_address: QuoteAddressIn | None = None
    contract_duration: int | None = Field(default=None, ge=1)
    contract_start_date: OptionalDate = None
    contract_end_date: OptionalDate = None
    amc_period_from: OptionalDate = None
    amc_period_to: OptionalDate = None
    billing_cycle: BillingCycle | None = None
    number_of_visits: int | None = Field(default=None, ge=0)
    number_of_oil_services: int | None = Field(default=None, ge=0)
    response_time: int | None = Field(default=None, gt=0)
    coverage_area: Text | None = None
    emergency_contact_hours: RequiredText | None = None
    exclusions: Text | None = None
    payment_terms_text: RequiredText | None = None
    validity_text: RequiredText | None = None
    gst_included: bool | None = None
    offer_items: list[AMCOfferItemIn] | None = None
    spares_items: list[AMCSparesItemIn] | None = None
    notes: Text | None = None

    error_messages = _DOCUMENT_MESSAGES
