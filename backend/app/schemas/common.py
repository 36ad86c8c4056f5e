"""Annotated field types and small shared request shapes."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from backend.app.models.po_from_customer import PaymentMethod
from backend.app.schemas.validation import ApiModel

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def strip_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def check_email(value: str | None) -> str | None:
    """Lower-case and validate an optional email; blank becomes ``None``."""
    if value is None or not value.strip():
        return None
    value = value.strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValueError("Please provide a valid email address")
    return value


# Dates that the front end sends as "" when a picker is cleared
OptionalDate = Annotated[date | None, BeforeValidator(blank_to_none)]
Text = Annotated[str, BeforeValidator(strip_text)]
RequiredText = Annotated[str, BeforeValidator(strip_text), Field(min_length=1)]
NonNegative = Annotated[Decimal, Field(ge=0)]
Percent = Annotated[Decimal, Field(ge=0, le=100)]


class PaymentUpdate(ApiModel):
    paid_amount: NonNegative
    payment_method: PaymentMethod | None = None
    payment_date: OptionalDate = None
    notes: str | None = None

    error_messages = {
        "paid_amount": {
            "required": "Paid amount is required",
            "min": "Paid amount cannot be negative",
            "type": "Paid amount must be a number",
        },
        "payment_method": {
            "enum": "Payment method must be one of: "
            + ", ".join(m.value for m in PaymentMethod),
        },
    }
