from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import Field, field_validator

from backend.app.models.po_from_customer import (
    Department,
    PaymentMethod,
    POPaymentStatus,
    POStatus,
    Priority,
)
from backend.app.schemas.common import (
    NonNegative,
    OptionalDate,
    Percent,
    RequiredText,
    Text,
    check_email,
)
from backend.app.schemas.validation import ApiModel


def _one_of(enum_cls: type) -> str:
    return ", ".join(m.value for m in enum_cls)


# ─── Nested shapes ────────────────────────────────────────────────────────────


class POItemIn(ApiModel):
    product: RequiredText
    description: RequiredText
    quantity: NonNegative
    unit_price: NonNegative
    total_price: NonNegative | None = None
    uom: Text = "nos"
    discount: Percent = Decimal("0")
    discounted_amount: NonNegative = Decimal("0")
    kva: RequiredText
    phase: RequiredText
    annexure_rating: RequiredText
    dg_model: RequiredText
    number_of_cylinders: int = Field(ge=0)
    subject: RequiredText
    is_active: bool = True
    hsn_number: Text | None = None

    error_messages = {
        "product": {"required": "Product is required"},
        "description": {"required": "Description is required"},
        "quantity": {
            "required": "Quantity is required",
            "min": "Quantity must be greater than or equal to 0",
            "type": "Quantity must be a number",
        },
        "unit_price": {
            "required": "Unit price is required",
            "min": "Unit price must be greater than or equal to 0",
            "type": "Unit price must be a number",
        },
        "total_price": {"min": "Total price must be greater than or equal to 0"},
        "discount": {
            "min": "Discount cannot be negative",
            "max": "Discount cannot exceed 100%",
        },
        "kva": {"required": "KVA is required"},
        "phase": {"required": "Phase is required"},
        "annexure_rating": {"required": "Annexure rating is required"},
        "dg_model": {"required": "DG Model is required"},
        "number_of_cylinders": {
            "required": "Number of cylinders is required",
            "min": "Number of cylinders must be greater than or equal to 0",
        },
        "subject": {"required": "Subject is required"},
    }


class AddressRef(ApiModel):
    """Reference to one of the customer's numbered addresses."""

    id: int

    error_messages = {
        "id": {
            "required": "Address ID is required",
            "type": "Address ID must be a number",
        },
    }


# ─── Create / Update ──────────────────────────────────────────────────────────

_DOCUMENT_MESSAGES: dict[str, dict[str, str]] = {
    "po_number": {"required": "PO number cannot be empty"},
    "customer": {
        "required": "Customer is required",
        "type": "Customer must be a valid id",
    },
    "bill_to_address": {"required": "Bill to address is required"},
    "ship_to_address": {"required": "Ship to address is required"},
    "items": {
        "required": "Items are required",
        "min_items": "At least one item is required",
    },
    "tax_rate": {
        "min": "Tax rate cannot be negative",
        "max": "Tax rate cannot exceed 100%",
    },
    "paid_amount": {"min": "Paid amount cannot be negative"},
    "remaining_amount": {"min": "Remaining amount cannot be negative"},
    "status": {"enum": f"Status must be one of: {_one_of(POStatus)}"},
    "department": {"enum": f"Department must be one of: {_one_of(Department)}"},
    "priority": {"enum": f"Priority must be one of: {_one_of(Priority)}"},
    "payment_status": {"enum": f"Payment status must be one of: {_one_of(POPaymentStatus)}"},
    "payment_method": {"enum": f"Payment method must be one of: {_one_of(PaymentMethod)}"},
    "order_date": {"type": "Order date must be a valid date"},
    "expected_delivery_date": {"type": "Expected delivery date must be a valid date"},
    "actual_delivery_date": {"type": "Actual delivery date must be a valid date"},
}


class POCreate(ApiModel):
    po_number: RequiredText | None = None
    customer: UUID
    customer_email: str | None = None
    bill_to_address: AddressRef
    ship_to_address: AddressRef
    dg_quotation_number: RequiredText | None = None
    items: list[POItemIn] = Field(min_length=1)
    tax_rate: Percent = Decimal("18")
    status: POStatus = POStatus.DRAFT
    order_date: OptionalDate = None
    expected_delivery_date: OptionalDate = None
    actual_delivery_date: OptionalDate = None
    department: Department = Department.RETAIL
    priority: Priority = Priority.MEDIUM
    notes: Text | None = None
    transport: Text | None = None
    unloading: Text | None = None
    scope_of_work: Text | None = None
    paid_amount: NonNegative = Decimal("0")
    payment_status: POPaymentStatus = POPaymentStatus.PENDING
    payment_method: PaymentMethod | None = None
    payment_date: OptionalDate = None
    po_pdf: Text | None = None
    dg_enquiry: RequiredText | None = None

    error_messages = _DOCUMENT_MESSAGES

    @field_validator("customer_email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class POUpdate(ApiModel):
    po_number: RequiredText | None = None
    customer: UUID | None = None
    customer_email: str | None = None
    bill_to_address: AddressRef | None = None
    ship_to_address: AddressRef | None = None
    dg_quotation_number: RequiredText | None = None
    items: Annotated[list[POItemIn], Field(min_length=1)] | None = None
    tax_rate: Percent | None = None
    order_date: OptionalDate = None
    expected_delivery_date: OptionalDate = None
    actual_delivery_date: OptionalDate = None
    department: Department | None = None
    priority: Priority | None = None
    notes: Text | None = None
    transport: RequiredText | None = None
    unloading: RequiredText | None = None
    scope_of_work: RequiredText | None = None
    po_pdf: Text | None = None
    dg_enquiry: RequiredText | None = None

    error_messages = {
        **_DOCUMENT_MESSAGES,
        "customer": {"required": "Customer cannot be empty", "type": "Customer must be a valid id"},
        "transport": {"required": "Transport cannot be empty"},
        "unloading": {"required": "Unloading cannot be empty"},
        "scope_of_work": {"required": "Scope of work cannot be empty"},
    }

    @field_validator("customer_email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class POStatusUpdate(ApiModel):
    status: POStatus
    notes: Text | None = None

    error_messages = {
        "status": {
            "required": "Status is required",
            "enum": f"Status must be one of: {_one_of(POStatus)}",
        },
    }


# ─── Query strings ────────────────────────────────────────────────────────────


class POExportQuery(ApiModel):
    search: str | None = None
    status: POStatus | None = None
    customer: UUID | None = None
    department: Department | None = None
    start_date: date | None = None
    end_date: date | None = None

    error_messages = {
        "status": {"enum": f"Status must be one of: {_one_of(POStatus)}"},
        "department": {"enum": f"Department must be one of: {_one_of(Department)}"},
        "start_date": {"type": "Start date must be a valid date"},
        "end_date": {"type": "End date must be a valid date"},
    }


class POListQuery(POExportQuery):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort: str = "-createdAt"

    error_messages = {
        **POExportQuery.error_messages,
        "page": {"min": "Page must be at least 1"},
        "limit": {
            "min": "Limit must be at least 1",
            "max": "Limit cannot exceed 100",
        },
    }
