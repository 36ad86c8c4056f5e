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
from backend.app.models.quotes import QuotationStatus


class AMCType(str, enum.Enum):
    AMC = "AMC"
    CAMC = "CAMC"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    HALF_YEARLY = "half-yearly"
    YEARLY = "yearly"


def _money() -> Any:
    return mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )


# ─── AMC Quotation ────────────────────────────────────────────────────────────


class AMCQuotation(Base):
    __tablename__ = "amc_quotations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    amc_type: Mapped[AMCType] = mapped_column(Enum(AMCType), nullable=False, default=AMCType.AMC)
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
    ref_of_quote: Mapped[str | None] = mapped_column(String(255), nullable=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)
    bill_to_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ship_to_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Contract terms
    contract_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    contract_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    contract_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amc_period_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    amc_period_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        Enum(BillingCycle), nullable=False, default=BillingCycle.YEARLY
    )
    number_of_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    number_of_oil_services: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    response_time: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    coverage_area: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_contact_hours: Mapped[str] = mapped_column(String(50), nullable=False, default="24/7")
    exclusions: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_terms_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    validity_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    gst_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    gst_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("18")
    )

    # Derived totals
    offer_subtotal: Mapped[Decimal] = _money()
    offer_tax: Mapped[Decimal] = _money()
    offer_total: Mapped[Decimal] = _money()
    spares_total: Mapped[Decimal] = _money()
    grand_total: Mapped[Decimal] = _money()

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    customer: Mapped["Customer"] = relationship()  # noqa: F821
    offer_items: Mapped[list[AMCOfferItem]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="AMCOfferItem.position",
    )
    spares_items: Mapped[list[AMCSparesItem]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="AMCSparesItem.position",
    )

    __table_args__ = (
        Index("ix_amc_quotations_number", "quotation_number"),
        Index("ix_amc_quotations_customer", "customer_id"),
        Index("ix_amc_quotations_status", "status"),
    )


# ─── Offer (one row per DG set covered) ───────────────────────────────────────


class AMCOfferItem(Base):
    __tablename__ = "amc_offer_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("amc_quotations.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    make: Mapped[str] = mapped_column(String(100), nullable=False)
    engine_sl_no: Mapped[str] = mapped_column(String(100), nullable=False)
    dg_rating_kva: Mapped[Decimal] = _money()
    type_of_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qty: Mapped[Decimal] = _money()
    amc_cost_per_dg: Mapped[Decimal] = _money()
    total_amc_amount_per_dg: Mapped[Decimal] = _money()
    gst_amount: Mapped[Decimal] = _money()
    total_amc_cost: Mapped[Decimal] = _money()

    quotation: Mapped[AMCQuotation] = relationship(back_populates="offer_items")


# ─── Spares (CAMC only) ───────────────────────────────────────────────────────


class AMCSparesItem(Base):
    __tablename__ = "amc_spares_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("amc_quotations.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("products.id"), nullable=True
    )
    part_no: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    hsn_code: Mapped[str] = mapped_column(String(20), nullable=False)
    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="nos")
    qty: Mapped[Decimal] = _money()
    unit_price: Mapped[Decimal] = _money()
    gst_rate: Mapped[Decimal] = _money()
    discount: Mapped[Decimal] = _money()
    discounted_amount: Mapped[Decimal] = _money()
    tax_amount: Mapped[Decimal] = _money()
    total_price: Mapped[Decimal] = _money()

    quotation: Mapped[AMCQuotation] = relationship(back_populates="spares_items")
