"""Excel exports for DG invoices and customer purchase orders using openpyxl."""
from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

# ── Shared styling constants ────────────────────────────────────────────────

_HEADER_FONT = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
_HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
_TOTAL_FONT = Font(name="Calibri", bold=True, size=11)
_TOTAL_BORDER = Border(
    top=Side(style="thin"),
    bottom=Side(style="double"),
)
_CURRENCY_FMT = '#,##0.00'
_DATE_FMT = "DD-MM-YYYY"
_RIGHT = Alignment(horizontal="right")
_LEFT = Alignment(horizontal="left")

# (row key, column heading, is_money)
DG_INVOICE_COLUMNS: list[tuple[str, str, bool]] = [
    ("invoice_number", "Invoice No", False),
    ("invoice_date", "Invoice Date", False),
    ("due_date", "Due Date", False),
    ("customer_name", "Customer", False),
    ("customer_email", "Customer Email", False),
    ("dg_quotation_number", "DG Quotation", False),
    ("po_number", "PO Number", False),
    ("status", "Status", False),
    ("payment_status", "Payment Status", False),
    ("subtotal", "Subtotal", True),
    ("total_discount", "Discount", True),
    ("total_tax", "GST", True),
    ("additional_charges_total", "Additional Charges", True),
    ("transport_total", "Transport", True),
    ("grand_total", "Grand Total", True),
    ("paid_amount", "Paid", True),
    ("balance_amount", "Balance", True),
    ("irn", "IRN", False),
]

PO_COLUMNS: list[tuple[str, str, bool]] = [
    ("po_number", "PO Number", False),
    ("order_date", "Order Date", False),
    ("customer_name", "Customer", False),
    ("customer_email", "Customer Email", False),
    ("dg_quotation_number", "DG Quotation", False),
    ("status", "Status", False),
    ("department", "Department", False),
    ("priority", "Priority", False),
    ("expected_delivery_date", "Expected Delivery", False),
    ("subtotal", "Subtotal", True),
    ("total_discount", "Discount", True),
    ("tax_amount", "Tax", True),
    ("total_amount", "Total", True),
    ("paid_amount", "Paid", True),
    ("remaining_amount", "Remaining", True),
    ("payment_status", "Payment Status", False),
]


def _auto_width(ws: Any) -> None:
    """Auto-fit column widths based on content."""
    for col_idx in range(1, ws.max_column + 1):
        max_len = 0
        col_letter = get_column_letter(col_idx)
        for row in ws.iter_rows(min_col=col_idx, max_col=col_idx, values_only=False):
            cell = row[0]
            if cell.value is not None:
                max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[col_letter].width = min(max_len + 4, 40)


def _write_header_row(ws: Any, row: int, values: list[str]) -> None:
    """Write a styled header row."""
    for col, val in enumerate(values, 1):
        cell = ws.cell(row=row, column=col, value=val)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _LEFT


def _write_title(ws: Any, title: str, subtitle: str) -> int:
    """Write report title and subtitle, return next available row."""
    ws.cell(row=1, column=1, value=title).font = Font(name="Calibri", bold=True, size=14)
    ws.cell(row=2, column=1, value=subtitle).font = Font(name="Calibri", size=10, italic=True)
    return 4


def _to_workbook(ws: Any, wb: Workbook) -> io.BytesIO:
    """Finalize workbook and return as BytesIO."""
    _auto_width(ws)
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


def _cell_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _subtitle(filters: dict[str, Any]) -> str:
    applied = [f"{k}: {v}" for k, v in filters.items() if v not in (None, "")]
    generated = f"Generated {datetime.now():%d-%m-%Y %H:%M}"
    return " | ".join([generated, *applied])


def _export_table(
    title: str,
    columns: list[tuple[str, str, bool]],
    rows: list[dict[str, Any]],
    filters: dict[str, Any],
) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    row = _write_title(ws, title, _subtitle(filters))
    _write_header_row(ws, row, [heading for _, heading, _ in columns])
    row += 1
    first_data_row = row

    for record in rows:
        for col, (key, _, is_money) in enumerate(columns, 1):
            c = ws.cell(row=row, column=col, value=_cell_value(record.get(key)))
            if is_money:
                c.number_format = _CURRENCY_FMT
                c.alignment = _RIGHT
            elif isinstance(record.get(key), date):
                c.number_format = _DATE_FMT
        row += 1

    # Totals row for the money columns
    ws.cell(row=row, column=1, value=f"Total ({len(rows)})").font = _TOTAL_FONT
    for col, (key, _, is_money) in enumerate(columns, 1):
        if not is_money:
            continue
        total = sum((Decimal(r.get(key) or 0) for r in rows), Decimal("0"))
        c = ws.cell(row=row, column=col, value=float(total))
        c.number_format = _CURRENCY_FMT
        c.font = _TOTAL_FONT
        c.border = _TOTAL_BORDER
        c.alignment = _RIGHT

    ws.freeze_panes = ws.cell(row=first_data_row, column=1)
    return _to_workbook(ws, wb)


# ── 1. DG Invoices ──────────────────────────────────────────────────────────


def export_dg_invoices_excel(rows: list[dict[str, Any]], filters: dict[str, Any]) -> io.BytesIO:
    return _export_table("DG Invoices", DG_INVOICE_COLUMNS, rows, filters)


# ── 2. Purchase orders from customers ───────────────────────────────────────


def export_pos_excel(rows: list[dict[str, Any]], filters: dict[str, Any]) -> io.BytesIO:
    return _export_table("DG Purchase Orders", PO_COLUMNS, rows, filters)
