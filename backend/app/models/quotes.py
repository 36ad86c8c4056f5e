from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
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


class QuotationType(str, enum.Enum):
    SERVICE = "service"
    SPARES = "spares"
    SALES = "sales"


class QuotationStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class QuotationPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    FAILED = "failed"


def _money(**kw: Any) -> Any:
    return mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0"), **kw
    )


# ─── Quotation ────────────────────────────────────────────────────────────────


class Quotation(Base):
    __tablename__ = "quotations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    quotation_type: Mapped[QuotationType] = mapped_column(
        Enum(QuotationType), nullable=False, default=QuotationType.SERVICE
    )
    status: Mapped[QuotationStatus] = mapped_column(
        Enum(QuotationStatus), nullable=False, default=QuotationStatus.DRAFT
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    location_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("stock_locations.id"), nullable=True
    )
    assigned_engineer_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    validity_period: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)
    bill_to_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ship_to_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Service ticket details
    engine_serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    kva: Mapped[str | None] = mapped_column(String(20), nullable=True)
    hour_meter_reading: Mapped[str | None] = mapped_column(String(50), nullable=True)
    service_request_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Battery buy-back deduction line
    battery_buyback_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    battery_buyback_quantity: Mapped[Decimal] = _money()
    battery_buyback_unit_price: Mapped[Decimal] = _money()
    battery_buyback_discount: Mapped[Decimal] = _money()

    # Derived totals
    overall_discount: Mapped[Decimal] = _money()
    subtotal: Mapped[Decimal] = _money()
    total_discount: Mapped[Decimal] = _money()
    overall_discount_amount: Mapped[Decimal] = _money()
    battery_buyback_amount: Mapped[Decimal] = _money()
    total_tax: Mapped[Decimal] = _money()
    grand_total: Mapped[Decimal] = _money()
    round_off: Mapped[Decimal] = _money()

    # Payments
    paid_amount: Mapped[Decimal] = _money()
    remaining_amount: Mapped[Decimal] = _money()
    payment_status: Mapped[QuotationPaymentStatus] = mapped_column(
        Enum(QuotationPaymentStatus), nullable=False, default=QuotationPaymentStatus.PENDING
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    qr_code_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    customer: Mapped["Customer"] = relationship()  # noqa: F821
    location: Mapped["StockLocation | None"] = relationship()  # noqa: F821
    assigned_engineer: Mapped["User | None"] = relationship()  # noqa: F821
    items: Mapped[list[QuotationItem]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.position",
    )
    service_charges: Mapped[list[QuotationServiceCharge]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationServiceCharge.position",
    )

    __table_args__ = (
        Index("ix_quotations_number", "quotation_number"),
        Index("ix_quotations_status", "status"),
        Index("ix_quotations_customer", "customer_id"),
        Index("ix_quotations_created_at", "created_at"),
    )


# ─── Lines ────────────────────────────────────────────────────────────────────


class QuotationItem(Base):
    __tablename__ = "quotation_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quotations.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    part_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    hsn_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="nos")
    quantity: Mapped[Decimal] = _money()
    unit_price: Mapped[Decimal] = _money()
    discount: Mapped[Decimal] = _money()
    tax_rate: Mapped[Decimal] = _money()
    discounted_amount: Mapped[Decimal] = _money()
    tax_amount: Mapped[Decimal] = _money()
    total_price: Mapped[Decimal] = _money()

    quotation: Mapped[Quotation] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()  # noqa: F821

    __table_args__ = (
        Index("ix_quotation_items_quotation", "quotation_id"),
        Index("ix_quotation_items_product", "product_id"),
    )


class QuotationServiceCharge(Base):
    __tablename__ = "quotation_service_charges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quotations.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    hsn_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantity: Mapped[Decimal] = _money()
    unit_price: Mapped[Decimal] = _money()
    discount: Mapped[Decimal] = _money()
    tax_rate: Mapped[Decimal] = _money()
    discounted_amount: Mapped[Decimal] = _money()
    tax_amount: Mapped[Decimal] = _money()
    total_price: Mapped[Decimal] = _money()

    quotation: Mapped[Quotation] = relationship(back_populates="service_charges")
