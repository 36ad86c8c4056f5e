from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
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


class POStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT_TO_CUSTOMER = "sent_to_customer"
    CUSTOMER_APPROVED = "customer_approved"
    IN_PRODUCTION = "in_production"
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Department(str, enum.Enum):
    RETAIL = "retail"
    CORPORATE = "corporate"
    INDUSTRIAL_MARINE = "industrial_marine"
    OTHERS = "others"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class POPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    GST_PENDING = "gst_pending"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CHEQUE = "cheque"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CARD = "card"
    RAZORPAY = "razorpay"
    OTHER = "other"


# Allowed forward moves; CANCELLED is reachable from any non-terminal state
STATUS_FLOW: dict[POStatus, POStatus] = {
    POStatus.DRAFT: POStatus.SENT_TO_CUSTOMER,
    POStatus.SENT_TO_CUSTOMER: POStatus.CUSTOMER_APPROVED,
    POStatus.CUSTOMER_APPROVED: POStatus.IN_PRODUCTION,
    POStatus.IN_PRODUCTION: POStatus.READY_FOR_DELIVERY,
    POStatus.READY_FOR_DELIVERY: POStatus.DELIVERED,
}
TERMINAL_STATUSES = frozenset({POStatus.DELIVERED, POStatus.CANCELLED})


def _money(default: str = "0") -> Any:
    return mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal(default)
    )


# ─── Purchase order received from a customer ──────────────────────────────────


class DGPoFromCustomer(Base):
    __tablename__ = "dg_po_from_customers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    po_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bill_to_address_id: Mapped[int] = mapped_column(Integer, nullable=False)
    ship_to_address_id: Mapped[int] = mapped_column(Integer, nullable=False)
    dg_quotation_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dg_enquiry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[POStatus] = mapped_column(
        Enum(POStatus), nullable=False, default=POStatus.DRAFT
    )
    department: Mapped[Department] = mapped_column(
        Enum(Department), nullable=False, default=Department.RETAIL
    )
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority), nullable=False, default=Priority.MEDIUM
    )
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Totals
    tax_rate: Mapped[Decimal] = _money("18")
    subtotal: Mapped[Decimal] = _money()
    total_discount: Mapped[Decimal] = _money()
    tax_amount: Mapped[Decimal] = _money()
    total_amount: Mapped[Decimal] = _money()

    # Payments
    paid_amount: Mapped[Decimal] = _money()
    remaining_amount: Mapped[Decimal] = _money()
    payment_status: Mapped[POPaymentStatus] = mapped_column(
        Enum(POPaymentStatus), nullable=False, default=POPaymentStatus.PENDING
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        Enum(PaymentMethod), nullable=True
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    transport: Mapped[str | None] = mapped_column(Text, nullable=True)
    unloading: Mapped[str | None] = mapped_column(Text, nullable=True)
    scope_of_work: Mapped[str | None] = mapped_column(Text, nullable=True)
    po_pdf: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    customer: Mapped["Customer"] = relationship()  # noqa: F821
    items: Mapped[list[DGPoFromCustomerItem]] = relationship(
        back_populates="po",
        cascade="all, delete-orphan",
        order_by="DGPoFromCustomerItem.position",
    )

    __table_args__ = (
        Index("ix_dg_po_number", "po_number"),
        Index("ix_dg_po_status", "status"),
        Index("ix_dg_po_customer", "customer_id"),
        Index("ix_dg_po_department", "department"),
        Index("ix_dg_po_order_date", "order_date"),
    )


class DGPoFromCustomerItem(Base):
    __tablename__ = "dg_po_from_customer_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    po_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("dg_po_from_customers.id"), nullable=False
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
    discounted_amount: Mapped[Decimal] = _money()
    total_price: Mapped[Decimal] = _money()

    po: Mapped[DGPoFromCustomer] = relationship(back_populates="items")

    __table_args__ = (Index("ix_dg_po_items_po", "po_id"),)
