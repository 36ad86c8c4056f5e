"""Sequential document numbers of the form ``PREFIX-YYYY-NNNN``."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import InstrumentedAttribute, Session

QUOTATION_PREFIX = "QTN"
AMC_QUOTATION_PREFIX = "AMCQ"
DG_INVOICE_PREFIX = "DGINV"
DG_PO_PREFIX = "DGPO"


def format_number(prefix: str, sequence: int, year: int | None = None) -> str:
    """Return a formatted number like QTN-2026-0001."""
    if year is None:
        year = datetime.now().year
    return f"{prefix}-{year}-{sequence:04d}"


def next_number(
    db: Session,
    column: InstrumentedAttribute,
    prefix: str,
    year: int | None = None,
) -> str:
    """Next free number for *prefix* in *year*, based on the highest issued one.

    Numbers that do not follow the pattern (e.g. a PO number typed in by the
    user) are ignored.
    """
    if year is None:
        year = datetime.now().year
    stem = f"{prefix}-{year}-"
    highest = 0
    for (value,) in db.query(column).filter(column.like(f"{stem}%")).all():
        suffix = value[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return format_number(prefix, highest + 1, year)
