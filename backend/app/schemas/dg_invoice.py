from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import Field, field_validator

from backend.app.models.dg_invoice import DGInvoiceStatus, DGPaymentStatus
from backend.app.schemas.common import (
    NonNegative,
    OptionalDate,
    Percent,
    RequiredText,
    Text,
    check_email,
)
from backend.app.schemas.validation import ApiModel

_STATUS_VALUES = ", ".join(s.value for s in DGInvoiceStatus)
_PAYMENT_VALUES = ", ".join(s.value for s in DGPaymentStatus)


# ─── Nested shapes ────────────────────────────────────────────────────────────


class DGInvoiceItemIn(ApiModel):
    product: RequiredText
    description: RequiredText
    quantity: NonNegative
    unit_price: NonNegative
    total_price: NonNegative | None = None
    uom: Text = "nos"
    discount: Percent = Decimal("0")
    discounted_amount: NonNegative = Decimal("0")
    gst_rate: Percent = Decimal("18")
    gst_amount: NonNegative = Decimal("0")
    kva: RequiredText
    phase: RequiredText
    annexure_rating: RequiredText
    dg_model: RequiredText
    number_of_cylinders: int = Field(ge=0)
    subject: RequiredText
    is_active: bool = True
    hsn_number: Text | None = None

    error_messages = {
        "product": {"required": "Product name is required"},
        "description": {"required": "Product description is required"},
        "quantity": {
            "required": "Quantity is required",
            "min": "Quantity cannot be negative",
            "type": "Quantity must be a number",
        },
        "unit_price": {
            "required": "Unit price is required",
            "min": "Unit price cannot be negative",
            "type": "Unit price must be a number",
        },
        "total_price": {"min": "Total price cannot be negative"},
        "discount": {
            "min": "Discount cannot be negative",
            "max": "Discount cannot exceed 100%",
        },
        "discounted_amount": {"min": "Discounted amount cannot be negative"},
        "gst_rate": {
            "min": "GST rate cannot be negative",
            "max": "GST rate cannot exceed 100%",
        },
        "gst_amount": {"min": "GST amount cannot be negative"},
        "kva": {"required": "KVA is required"},
        "phase": {"required": "Phase is required"},
        "annexure_rating": {"required": "Annexure rating is required"},
        "dg_model": {"required": "DG Model is required"},
        "number_of_cylinders": {
            "required": "Number of cylinders is required",
            "min": "Number of cylinders cannot be negative",
        },
        "subject": {"required": "Subject is required"},
    }


class AddressIn(ApiModel):
    address: RequiredText
    district: RequiredText
    state: RequiredText
    pincode: RequiredText
    gst_number: Text | None = None

    error_messages = {
        "address": {"required": "Address is required"},
        "district": {"required": "District is required"},
        "state": {"required": "State is required"},
        "pincode": {"required": "Pincode is required"},
    }


class AdditionalChargesIn(ApiModel):
    freight: NonNegative = Decimal("0")
    insurance: NonNegative = Decimal("0")
    packing: NonNegative = Decimal("0")
    other: NonNegative = Decimal("0")

    error_messages = {
        "freight": {"min": "Freight cannot be negative"},
        "insurance": {"min": "Insurance cannot be negative"},
        "packing": {"min": "Packing cannot be negative"},
        "other": {"min": "Other charges cannot be negative"},
    }


class TransportChargesIn(ApiModel):
    amount: NonNegative = Decimal("0")
    quantity: NonNegative = Decimal("0")
    unit_price: NonNegative = Decimal("0")
    hsn_number: Text = "998399"
    gst_rate: Percent = Decimal("18")
    gst_amount: NonNegative = Decimal("0")
    total_amount: NonNegative = Decimal("0")

    error_messages = {
        "amount": {"min": "Transport amount cannot be negative"},
        "quantity": {"min": "Transport quantity cannot be negative"},
        "unit_price": {"min": "Transport unit price cannot be negative"},
        "gst_rate": {
            "min": "Transport GST rate cannot be negative",
            "max": "Transport GST rate cannot exceed 100%",
        },
        "gst_amount": {"min": "Transport GST amount cannot be negative"},
        "total_amount": {"min": "Transport total amount cannot be negative"},
    }


# ─── Create / Update ──────────────────────────────────────────────────────────

_DOCUMENT_MESSAGES: dict[str, dict[str, str]] = {
    "customer": {
        "required": "Customer is required",
        "type": "Customer must be a valid id",
    },
    "dg_quotation_number": {"required": "DG Quotation is required"},
    "invoice_date": {
        "required": "Invoice date is required",
        "type": "Invoice date must be a valid date",
    },
    "due_date": {
        "required": "Due date is required",
        "type": "Due date must be a valid date",
    },
    "status": {"enum": f"Status must be one of: {_STATUS_VALUES}"},
    "payment_status": {"enum": f"Payment status must be one of: {_PAYMENT_VALUES}"},
    "items": {
        "required": "Items are required",
        "min_items": "At least one item is required",
    },
    "tax_rate": {
        "min": "Tax rate cannot be negative",
        "max": "Tax rate cannot exceed 100%",
    },
    "ack_date": {"type": "ACK Date must be a valid date"},
}


class DGInvoiceCreate(ApiModel):
    customer: UUID
    customer_email: str | None = None
    customer_address: AddressIn | None = None
    billing_address: AddressIn | None = None
    shipping_address: AddressIn | None = None
    dg_quotation_number: RequiredText
    po_number: Text | None = None
    po_from_customer: str | None = None
    invoice_date: date
    due_date: date
    status: DGInvoiceStatus = DGInvoiceStatus.DRAFT
    payment_status: DGPaymentStatus = DGPaymentStatus.PENDING
    payment_terms: Text | None = None
    notes: Text | None = None
    delivery_notes: Text | None = None
    reference_number: Text | None = None
    reference_date: OptionalDate = None
    buyers_order_number: Text | None = None
    buyers_order_date: OptionalDate = None
    dispatch_doc_no: Text | None = None
    dispatch_doc_date: OptionalDate = None
    destination: Text | None = None
    delivery_note_date: OptionalDate = None
    dispatched_through: Text | None = None
    terms_of_delivery: Text | None = None
    items: list[DGInvoiceItemIn] = Field(min_length=1)
    additional_charges: AdditionalChargesIn | None = None
    transport_charges: TransportChargesIn | None = None
    tax_rate: Percent = Decimal("18")
    dg_enquiry: str | None = None
    irn: Text | None = None
    ack_number: Text | None = None
    ack_date: OptionalDate = None
    qr_code_invoice: Text | None = None
    proforma_reference: Text | None = None

    error_messages = _DOCUMENT_MESSAGES

    @field_validator("customer_email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class DGInvoiceUpdate(ApiModel):
    customer: UUID | None = None
    customer_email: str | None = None
    customer_address: AddressIn | None = None
    billing_address: AddressIn | None = None
    shipping_address: AddressIn | None = None
    dg_quotation_number: RequiredText | None = None
    po_number: Text | None = None
    po_from_customer: str | None = None
    invoice_date: date | None = None
    due_date: date | None = None
    status: DGInvoiceStatus | None = None
    payment_status: DGPaymentStatus | None = None
    payment_terms: Text | None = None
    notes: Text | None = None
    delivery_notes: Text | None = None
    reference_number: Text | None = None
    reference_date: OptionalDate = None
    buyers_order_number: Text | None = None
    buyers_order_date: OptionalDate = None
    dispatch_doc_no: Text | None = None
    dispatch_doc_date: OptionalDate = None
    destination: Text | None = None
    delivery_note_date: OptionalDate = None
    dispatched_through: Text | None = None
    terms_of_delivery: Text | None = None
    items: Annotated[list[DGInvoiceItemIn], Field(min_length=1)] | None = None
    additional_charges: AdditionalChargesIn | None = None
    transport_charges: TransportChargesIn | None = None
    tax_rate: Percent | None = None
    dg_enquiry: str | None = None
    irn: Text | None = None
    ack_number: Text | None = None
    ack_date: OptionalDate = None
    qr_code_invoice: Text | None = None
    proforma_reference: Text | None = None

    error_messages = _DOCUMENT_MESSAGES

    @field_validator("customer_email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class DGInvoiceStatusUpdate(ApiModel):
    status: DGInvoiceStatus

    error_messages = {
        "status": {
            "required": "Status is required",
            "enum": f"Status must be one of: {_STATUS_VALUES}",
        },
    }


# ─── Query strings ────────────────────────────────────────────────────────────


class DGInvoiceExportQuery(ApiModel):
    search: str | None = None
    status: DGInvoiceStatus | None = None
    payment_status: DGPaymentStatus | None = None
    customer: UUID | None = None
    start_date: OptionalDate = None
    end_date: OptionalDate = None

    error_messages = {
        "status": {"enum": f"Status must be one of: {_STATUS_VALUES}"},
        "payment_status": {"enum": f"Payment status must be one of: {_PAYMENT_VALUES}"},
        "start_date": {"type": "Start date must be a valid date"},
        "end_date": {"type": "End date must be a valid date"},
    }


class DGInvoiceListQuery(DGInvoiceExportQuery):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    error_messages = {
        **DGInvoiceExportQuery.error_messages,
        "page": {"min": "Page must be at least 1"},
        "limit": {
            "min": "Limit must be at least 1",
            "max": "Limit cannot exceed 100",
        },
    }
