from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


# ─── Enums ────────────────────────────────────────────────────────────────────


class DGInvoiceStatus(str, enum.Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class DGPaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"


def _money(default: str = "0") -> Any:
    return mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal(default)
    )


# ─── DG Invoice ───────────────────────────────────────────────────────────────


class DGInvoice(Base):
    __tablename__ = "dg_invoices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    billing_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    shipping_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    dg_quotation_number: Mapped[str] = mapped_column(String(100), nullable=False)
    po_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    po_from_customer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dg_enquiry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    proforma_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[DGInvoiceStatus] = mapped_column(
        Enum(DGInvoiceStatus), nullable=False, default=DGInvoiceStatus.DRAFT
    )
    payment_status: Mapped[DGPaymentStatus] = mapped_column(
        Enum(DGPaymentStatus), nullable=False, default=DGPaymentStatus.PENDING
    )
    payment_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Dispatch details
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    buyers_order_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    buyers_order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    dispatch_doc_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dispatch_doc_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    destination: Mapped[str | None] = mapped_column(String(255), nullable=True)
    delivery_note_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    dispatched_through: Mapped[str | None] = mapped_column(String(255), nullable=True)
    terms_of_delivery: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Extra charges
    freight: Mapped[Decimal] = _money()
    insurance: Mapped[Decimal] = _money()
    packing: Mapped[Decimal] = _money()
    other_charges: Mapped[Decimal] = _money()
    transport_quantity: Mapped[Decimal] = _money()
    transport_unit_price: Mapped[Decimal] = _money()
    transport_amount: Mapped[Decimal] = _money()
    transport_hsn_number: Mapped[str] = mapped_column(String(20), nullable=False, default="998399")
    transport_gst_rate: Mapped[Decimal] = _money("18")
    transport_gst_amount: Mapped[Decimal] = _money()
    transport_total: Mapped[Decimal] = _money()

    # GST e-invoice
    irn: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ack_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ack_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    qr_code_invoice: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Derived totals
    tax_rate: Mapped[Decimal] = _money("18")
    subtotal: Mapped[Decimal] = _money()
    total_discount: Mapped[Decimal] = _money()
    total_tax: Mapped[Decimal] = _money()
    additional_charges_total: Mapped[Decimal] = _money()
    grand_total: Mapped[Decimal] = _money()
    round_off: Mapped[Decimal] = _money()
    paid_amount: Mapped[Decimal] = _money()
    balance_amount: Mapped[Decimal] = _money()

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    customer: Mapped["Customer"] = relationship()  # noqa: F821
    items: Mapped[list[DGInvoiceItem]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="DGInvoiceItem.position",
    )

    __table_args__ = (
        Index("ix_dg_invoices_number", "invoice_number"),
        Index("ix_dg_invoices_status", "status"),
        Index("ix_dg_invoices_payment_status", "payment_status"),
        Index("ix_dg_invoices_customer", "customer_id"),
        Index("ix_dg_invoices_date", "invoice_date"),
    )


class DGInvoiceItem(Base):
    __tablename__ = "dg_invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("dg_invoices.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    hsn_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="nos")
    kva: Mapped[str | None] = mapped_column(String(20), nullable=True)
    phase: Mapped[str | None] = mapped_column(String(20), nullable=True)
    annexure_rating: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dg_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    number_of_cylinders: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    quantity: Mapped[Decimal] = _money()
    unit_price: Mapped[Decimal] = _money()
    discount: Mapped[Decimal] = _money()
    gst_rate: Mapped[Decimal] = _money("18")
    discounted_amount: Mapped[Decimal] = _money()
    gst_amount: Mapped[Decimal] = _money()
    total_price: Mapped[Decimal] = _money()

    invoice: Mapped[DGInvoice] = relationship(back_populates="items")

    __table_args__ = (Index("ix_dg_invoice_items_invoice", "invoice_id"),)
