from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from backend.app.models.user import RoleEnum
from backend.app.schemas.common import RequiredText, Text, check_email
from backend.app.schemas.validation import ApiModel

_ROLE_MESSAGE = "Role must be one of: " + ", ".join(r.value for r in RoleEnum)


class UserCreate(ApiModel):
    first_name: RequiredText
    last_name: Text | None = None
    email: str
    phone: Text | None = None
    role: RoleEnum = RoleEnum.FIELD_ENGINEER

    error_messages = {
        "first_name": {"required": "First name is required"},
        "email": {"required": "Email is required"},
        "role": {"enum": _ROLE_MESSAGE},
    }

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        email = check_email(v)
        if email is None:
            raise ValueError("Email is required")
        return email


class UserUpdate(ApiModel):
    first_name: RequiredText | None = None
    last_name: Text | None = None
    phone: Text | None = None
    role: RoleEnum | None = None
    is_active: bool | None = None

    error_messages = {
        "first_name": {"required": "First name is required"},
        "role": {"enum": _ROLE_MESSAGE},
    }


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str | None
    full_name: str
    email: str
    phone: str | None
    role: RoleEnum
    is_active: bool
