from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class LocationType(str, enum.Enum):
    MAIN_OFFICE = "main_office"
    WAREHOUSE = "warehouse"
    SERVICE_CENTER = "service_center"


class Product(Base):
    """Catalogue entry: spare part, consumable or a DG set."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    part_no: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    hsn_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    uom: Mapped[str] = mapped_column(String(20), nullable=False, default="nos")
    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    gst_rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("18")
    )
    # DG set attributes
    kva: Mapped[str | None] = mapped_column(String(20), nullable=True)
    phase: Mapped[str | None] = mapped_column(String(20), nullable=True)
    dg_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    annexure_rating: Mapped[str | None] = mapped_column(String(100), nullable=True)
    number_of_cylinders: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_stock_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
        Index("ix_products_part_no", "part_no"),
        Index("ix_products_category", "category"),
    )


# ─── Stock locations ──────────────────────────────────────────────────────────


class StockLocation(Base):
    __tablename__ = "stock_locations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[LocationType] = mapped_column(
        Enum(LocationType), nullable=False, default=LocationType.WAREHOUSE
    )
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    rooms: Mapped[list[StockRoom]] = relationship(back_populates="location")


class StockRoom(Base):
    __tablename__ = "stock_rooms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stock_locations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    location: Mapped[StockLocation] = relationship(back_populates="rooms")
    racks: Mapped[list[StockRack]] = relationship(back_populates="room")

    __table_args__ = (
        UniqueConstraint("location_id", "name", name="uq_room_location_name"),
    )


class StockRack(Base):
    __tablename__ = "stock_racks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stock_locations.id"), nullable=False
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stock_rooms.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    room: Mapped[StockRoom] = relationship(back_populates="racks")

    __table_args__ = (
        UniqueConstraint("room_id", "name", name="uq_rack_room_name"),
    )


class Stock(Base):
    """Quantity of one product at one location (optionally room / rack)."""

    __tablename__ = "stock"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stock_locations.id"), nullable=False
    )
    room_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("stock_rooms.id"), nullable=True
    )
    rack_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("stock_racks.id"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    product: Mapped[Product] = relationship()
    location: Mapped[StockLocation] = relationship()
    room: Mapped[StockRoom | None] = relationship()
    rack: Mapped[StockRack | None] = relationship()

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_qty_non_negative"),
        CheckConstraint("available_quantity >= 0", name="ck_stock_available_non_negative"),
        UniqueConstraint(
            "product_id", "location_id", "room_id", "rack_id", name="uq_stock_slot"
        ),
        Index("ix_stock_product", "product_id"),
        Index("ix_stock_location", "location_id"),
    )

    def recompute_available(self) -> None:
        self.available_quantity = max(self.quantity - self.reserved_quantity, 0)
