from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.inventory import LocationType
from backend.app.schemas.common import NonNegative, Percent, RequiredText, Text
from backend.app.schemas.validation import ApiModel


# ─── Products ─────────────────────────────────────────────────────────────────


class ProductCreate(ApiModel):
    name: RequiredText
    part_no: RequiredText
    category: Text | None = None
    brand: Text | None = None
    description: Text | None = None
    hsn_number: Text | None = None
    uom: RequiredText = "nos"
    price: NonNegative = Decimal("0")
    gst_rate: Percent = Decimal("18")
    kva: Text | None = None
    phase: Text | None = None
    dg_model: Text | None = None
    annexure_rating: Text | None = None
    number_of_cylinders: int | None = Field(default=None, ge=0)
    min_stock_level: int = Field(default=0, ge=0)

    error_messages = {
        "name": {"required": "Product name is required"},
        "part_no": {"required": "Part number is required"},
        "uom": {"required": "Unit of measure is required"},
        "price": {"min": "Price cannot be negative", "type": "Price must be a number"},
        "gst_rate": {
            "min": "GST rate must be between 0 and 100%",
            "max": "GST rate must be between 0 and 100%",
        },
    }


class ProductUpdate(ApiModel):
    name: RequiredText | None = None
    category: Text | None = None
    brand: Text | None = None
    description: Text | None = None
    hsn_number: Text | None = None
    uom: RequiredText | None = None
    price: NonNegative | None = None
    gst_rate: Percent | None = None
    kva: Text | None = None
    phase: Text | None = None
    dg_model: Text | None = None
    annexure_rating: Text | None = None
    number_of_cylinders: int | None = Field(default=None, ge=0)
    min_stock_level: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    error_messages = ProductCreate.error_messages


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    part_no: str
    category: str | None
    brand: str | None
    description: str | None
    hsn_number: str | None
    uom: str
    price: Decimal
    gst_rate: Decimal
    kva: str | None
    phase: str | None
    dg_model: str | None
    annexure_rating: str | None
    number_of_cylinders: int | None
    min_stock_level: int
    is_active: bool


# ─── Locations / rooms / racks ────────────────────────────────────────────────


class LocationCreate(ApiModel):
    name: RequiredText
    address: Text | None = None
    type: LocationType = LocationType.WAREHOUSE
    contact_person: Text | None = None
    phone: Text | None = None

    error_messages = {
        "name": {"required": "Location name is required"},
        "type": {
            "enum": "Location type must be one of: " + ", ".join(t.value for t in LocationType),
        },
    }


class LocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    address: str | None
    type: LocationType
    contact_person: str | None
    phone: str | None
    is_active: bool


class RoomCreate(ApiModel):
    name: RequiredText

    error_messages = {"name": {"required": "Room name is required"}}


class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_id: UUID
    name: str
    is_active: bool


class RackCreate(ApiModel):
    name: RequiredText

    error_messages = {"name": {"required": "Rack name is required"}}


class RackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_id: UUID
    room_id: UUID
    name: str
    is_active: bool


# ─── Stock ────────────────────────────────────────────────────────────────────


class StockAdjustment(ApiModel):
    product: UUID
    location: UUID
    room: UUID | None = None
    rack: UUID | None = None
    quantity: int
    reason: Text | None = None

    error_messages = {
        "product": {"required": "Product is required", "type": "Product must be a valid id"},
        "location": {"required": "Location is required", "type": "Location must be a valid id"},
        "quantity": {"required": "Quantity is required", "type": "Quantity must be a whole number"},
    }


class StockOut(BaseModel):
    id: UUID
    product_id: UUID
    product_name: str
    part_no: str
    location_id: UUID
    location_name: str
    room_name: str | None
    rack_name: str | None
    quantity: int
    reserved_quantity: int
    available_quantity: int
    min_stock_level: int


class StockSummaryOut(BaseModel):
    product_id: UUID
    product_name: str
    part_no: str
    location_id: UUID | None
    total_quantity: int
    reserved_quantity: int
    available_quantity: int
