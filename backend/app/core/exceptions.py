"""Domain exceptions shared by services and endpoints.

Services raise plain ``ValueError`` for business-rule violations (mapped to
400) and ``NotFoundError`` when a referenced record does not exist (mapped
to 404). Request-shape failures are collected into a
``PayloadValidationError`` carrying one entry per offending field.
"""

from __future__ import annotations

from typing import Any


class NotFoundError(ValueError):
    """A referenced record does not exist."""

    status_code: int = 404

    def __init__(self, detail: str = "Resource not found") -> None:
        self.detail = detail
        super().__init__(detail)


class PayloadValidationError(ValueError):
    """Request payload failed field-level validation."""

    status_code: int = 422

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        first = errors[0]["message"] if errors else "Validation failed"
        super().__init__(first)
