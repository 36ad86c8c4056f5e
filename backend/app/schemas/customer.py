from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.models.customer import CustomerType
from backend.app.schemas.common import RequiredText, Text, check_email
from backend.app.schemas.validation import ApiModel


# ─── Addresses ────────────────────────────────────────────────────────────────


class CustomerAddressCreate(ApiModel):
    address: RequiredText
    district: Text | None = None
    state: RequiredText
    pincode: Text | None = None
    gst_number: Text | None = None
    is_primary: bool = False

    error_messages = {
        "address": {"required": "Address is required"},
        "state": {"required": "State is required"},
    }


class CustomerAddressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    address: str
    district: str | None
    state: str
    pincode: str | None
    gst_number: str | None
    is_primary: bool


# ─── Customer CRUD ────────────────────────────────────────────────────────────


class CustomerCreate(ApiModel):
    name: RequiredText
    email: str | None = None
    phone: Text | None = None
    pan_number: Text | None = None
    gst_number: Text | None = None
    customer_type: CustomerType = CustomerType.RETAIL
    notes: Text | None = None
    addresses: list[CustomerAddressCreate] = []

    error_messages = {
        "name": {"required": "Customer name is required"},
        "customer_type": {
            "enum": "Customer type must be one of: " + ", ".join(t.value for t in CustomerType),
        },
    }

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class CustomerUpdate(ApiModel):
    name: RequiredText | None = None
    email: str | None = None
    phone: Text | None = None
    pan_number: Text | None = None
    gst_number: Text | None = None
    customer_type: CustomerType | None = None
    notes: Text | None = None
    is_active: bool | None = None

    error_messages = CustomerCreate.error_messages

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class CustomerOut(BaseModel):
    id: UUID
    name: str
    email: str | None
    phone: str | None
    pan_number: str | None
    gst_number: str | None
    customer_type: CustomerType
    notes: str | None
    is_active: bool
    created_at: datetime | None
    addresses: list[CustomerAddressOut] = []
