from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.schemas.common import RequiredText, Text, check_email
from backend.app.schemas.validation import ApiModel


class GeneralSettingsUpdate(ApiModel):
    company_name: RequiredText | None = None
    company_address: Text | None = None
    company_phone: Text | None = None
    company_email: str | None = None
    company_pan: Text | None = None
    company_gst_number: Text | None = None
    bank_name: Text | None = None
    bank_account_no: Text | None = None
    bank_ifsc: Text | None = None
    bank_branch: Text | None = None

    error_messages = {"company_name": {"required": "Company name is required"}}

    @field_validator("company_email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return check_email(v)


class GeneralSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_name: str
    company_address: str | None
    company_phone: str | None
    company_email: str | None
    company_pan: str | None
    company_gst_number: str | None
    bank_name: str | None
    bank_account_no: str | None
    bank_ifsc: str | None
    bank_branch: str | None


class QRCodeUploadOut(BaseModel):
    filename: str
    url: str
    size: int
    content_type: str
