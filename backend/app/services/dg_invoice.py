from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import desc, or_
from sqlalchemy.orm import Query, Session

from backend.app.core.exceptions import NotFoundError
from backend.app.models.customer import Customer
from backend.app.models.dg_invoice import (
    DGInvoice,
    DGInvoiceItem,
    DGInvoiceStatus,
    DGPaymentStatus,
)
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.dg_invoice import (
    DGInvoiceCreate,
    DGInvoiceExportQuery,
    DGInvoiceItemIn,
    DGInvoiceListQuery,
    DGInvoiceUpdate,
)
from backend.app.services.audit import log_action
from backend.app.services.numbering import DG_INVOICE_PREFIX, next_number
from backend.app.services.paging import paginate
from backend.app.services.totals import InvoiceTotals, calculate_invoice_totals

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
LOCKED_STATUSES = frozenset({DGInvoiceStatus.PAID, DGInvoiceStatus.CANCELLED})


def _get_invoice(db: Session, invoice_id: UUID) -> DGInvoice:
    invoice = db.query(DGInvoice).filter(DGInvoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError("DG invoice not found")
    return invoice


def _require_customer(db: Session, customer_id: UUID) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _primary_address(customer: Customer) -> dict | None:
    """Snapshot of the customer's primary (or first) address."""
    if not customer.addresses:
        return None
    chosen = next((a for a in customer.addresses if a.is_primary), customer.addresses[0])
    return {
        "address": chosen.address,
        "district": chosen.district,
        "state": chosen.state,
        "pincode": chosen.pincode,
        "gst_number": chosen.gst_number or customer.gst_number,
    }


def _payment_status(paid: Decimal, total: Decimal) -> DGPaymentStatus:
    if paid <= 0:
        return DGPaymentStatus.PENDING
    if paid >= total:
        return DGPaymentStatus.PAID
    return DGPaymentStatus.PARTIAL


# ─── Lines and charges ────────────────────────────────────────────────────────


def _replace_items(invoice: DGInvoice, items: list[DGInvoiceItemIn], totals: InvoiceTotals) -> None:
    invoice.items.clear()
    for position, (item, line) in enumerate(zip(items, totals.items)):
        invoice.items.append(DGInvoiceItem(
            position=position,
            product=item.product,
            description=item.description,
            subject=item.subject,
            hsn_number=item.hsn_number,
            uom=item.uom or "nos",
            kva=item.kva,
            phase=item.phase,
            annexure_rating=item.annexure_rating,
            dg_model=item.dg_model,
            number_of_cylinders=item.number_of_cylinders,
            is_active=item.is_active,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount=item.discount,
            gst_rate=item.gst_rate,
            discounted_amount=line.discounted_amount,
            gst_amount=line.tax_amount,
            total_price=line.total_price,
        ))


def _set_charges(invoice: DGInvoice, additional: Any | None, transport: Any | None) -> None:
    if additional is not None:
        invoice.freight = additional.freight
        invoice.insurance = additional.insurance
        invoice.packing = additional.packing
        invoice.other_charges = additional.other
    if transport is not None:
        invoice.transport_quantity = transport.quantity
        invoice.transport_unit_price = transport.unit_price
        invoice.transport_amount = transport.amount
        invoice.transport_hsn_number = transport.hsn_number
        invoice.transport_gst_rate = transport.gst_rate


def _stored_charges(invoice: DGInvoice) -> tuple[dict, dict]:
    additional = {
        "freight": invoice.freight,
        "insurance": invoice.insurance,
        "packing": invoice.packing,
        "other": invoice.other_charges,
    }
    transport = {
        "quantity": invoice.transport_quantity,
        "unit_price": invoice.transport_unit_price,
        "amount": invoice.transport_amount,
        "gst_rate": invoice.transport_gst_rate,
    }
    return additional, transport


def _apply_totals(invoice: DGInvoice, totals: InvoiceTotals) -> None:
    invoice.subtotal = totals.subtotal
    invoice.total_discount = totals.total_discount
    invoice.total_tax = totals.total_tax
    invoice.additional_charges_total = totals.additional_charges
    invoice.transport_amount = totals.transport_amount
    invoice.transport_gst_amount = totals.transport_gst
    invoice.transport_total = totals.transport_total
    invoice.grand_total = totals.grand_total
    invoice.round_off = totals.round_off
    paid = invoice.paid_amount or ZERO
    invoice.balance_amount = max(totals.grand_total - paid, ZERO)
    invoice.payment_status = _payment_status(paid, totals.grand_total)


# ─── Create / Update ──────────────────────────────────────────────────────────


def create_dg_invoice(
    db: Session,
    *,
    data: DGInvoiceCreate,
    ip_address: str | None = None,
) -> dict:
    """Create a DG invoice. Totals are always recomputed from the lines."""
    customer = _require_customer(db, data.customer)
    if data.due_date < data.invoice_date:
        raise ValueError("Due date cannot be before invoice date")

    totals = calculate_invoice_totals(data.items, data.additional_charges, data.transport_charges)
    fallback_address = _primary_address(customer)

    def snapshot(address: Any) -> dict | None:
        return address.model_dump(mode="json") if address else fallback_address

    invoice = DGInvoice(
        invoice_number=next_number(db, DGInvoice.invoice_number, DG_INVOICE_PREFIX),
        customer_id=customer.id,
        customer_email=data.customer_email or customer.email,
        customer_address=snapshot(data.customer_address),
        billing_address=snapshot(data.billing_address),
        shipping_address=snapshot(data.shipping_address),
        dg_quotation_number=data.dg_quotation_number,
        po_number=data.po_number,
        po_from_customer=data.po_from_customer,
        dg_enquiry=data.dg_enquiry,
        proforma_reference=data.proforma_reference,
        invoice_date=data.invoice_date,
        due_date=data.due_date,
        status=data.status,
        payment_terms=data.payment_terms,
        notes=data.notes,
        delivery_notes=data.delivery_notes,
        reference_number=data.reference_number,
        reference_date=data.reference_date,
        buyers_order_number=data.buyers_order_number,
        buyers_order_date=data.buyers_order_date,
        dispatch_doc_no=data.dispatch_doc_no,
        dispatch_doc_date=data.dispatch_doc_date,
        destination=data.destination,
        delivery_note_date=data.delivery_note_date,
        dispatched_through=data.dispatched_through,
        terms_of_delivery=data.terms_of_delivery,
        irn=data.irn,
        ack_number=data.ack_number,
        ack_date=data.ack_date,
        qr_code_invoice=data.qr_code_invoice,
        tax_rate=data.tax_rate,
        paid_amount=ZERO,
    )
    _set_charges(invoice, data.additional_charges, data.transport_charges)
    _replace_items(invoice, data.items, totals)
    _apply_totals(invoice, totals)
    db.add(invoice)
    db.flush()

    log_action(
        db,
        action="DG_INVOICE_CREATED",
        resource_type="dg_invoices",
        resource_id=invoice.invoice_number,
        ip_address=ip_address,
        changes={
            "invoice_number": invoice.invoice_number,
            "customer_id": str(customer.id),
            "grand_total": str(totals.grand_total),
            "item_count": len(data.items),
        },
    )

    db.commit()
    logger.info("Created DG invoice %s", invoice.invoice_number)
    return _invoice_to_dict(invoice)


_SIMPLE_FIELDS = (
    "customer_email",
    "dg_quotation_number",
    "po_number",
    "po_from_customer",
    "dg_enquiry",
    "proforma_reference",
    "invoice_date",
    "due_date",
    "status",
    "payment_terms",
    "notes",
    "delivery_notes",
    "reference_number",
    "reference_date",
    "buyers_order_number",
    "buyers_order_date",
    "dispatch_doc_no",
    "dispatch_doc_date",
    "destination",
    "delivery_note_date",
    "dispatched_through",
    "terms_of_delivery",
    "irn",
    "ack_number",
    "ack_date",
    "qr_code_invoice",
    "tax_rate",
)


def update_dg_invoice(
    db: Session,
    invoice_id: UUID,
    *,
    data: DGInvoiceUpdate,
    ip_address: str | None = None,
) -> dict:
    invoice = _get_invoice(db, invoice_id)
    if invoice.status in LOCKED_STATUSES:
        raise ValueError(f"Cannot edit an invoice that is {invoice.status.value}")

    supplied = data.model_fields_set
    if data.customer:
        invoice.customer_id = _require_customer(db, data.customer).id
    for name in _SIMPLE_FIELDS:
        if name in supplied and getattr(data, name) is not None:
            setattr(invoice, name, getattr(data, name))
    for name in ("customer_address", "billing_address", "shipping_address"):
        address = getattr(data, name)
        if address is not None:
            setattr(invoice, name, address.model_dump(mode="json"))
    if invoice.due_date < invoice.invoice_date:
        raise ValueError("Due date cannot be before invoice date")

    _set_charges(invoice, data.additional_charges, data.transport_charges)
    additional, transport = _stored_charges(invoice)
    items: list[Any] = data.items if data.items is not None else list(invoice.items)
    totals = calculate_invoice_totals(items, additional, transport)
    if data.items is not None:
        _replace_items(invoice, data.items, totals)
    _apply_totals(invoice, totals)

    log_action(
        db,
        action="DG_INVOICE_UPDATED",
        resource_type="dg_invoices",
        resource_id=invoice.invoice_number,
        ip_address=ip_address,
        changes={"fields": sorted(supplied), "grand_total": str(totals.grand_total)},
    )

    db.commit()
    db.refresh(invoice)
    return _invoice_to_dict(invoice)


def delete_dg_invoice(db: Session, invoice_id: UUID, ip_address: str | None = None) -> None:
    invoice = _get_invoice(db, invoice_id)
    if invoice.status != DGInvoiceStatus.DRAFT:
        raise ValueError("Only draft invoices can be deleted")

    log_action(
        db,
        action="DG_INVOICE_DELETED",
        resource_type="dg_invoices",
        resource_id=invoice.invoice_number,
        ip_address=ip_address,
        changes={"grand_total": str(invoice.grand_total)},
    )
    db.delete(invoice)
    db.commit()


def update_dg_invoice_status(
    db: Session,
    invoice_id: UUID,
    new_status: DGInvoiceStatus,
    ip_address: str | None = None,
) -> dict:
    """Change status; marking an invoice Paid settles the balance."""
    invoice = _get_invoice(db, invoice_id)
    if invoice.status == DGInvoiceStatus.CANCELLED and new_status != invoice.status:
        raise ValueError("Cannot change status of a cancelled invoice")

    old_status = invoice.status.value
    invoice.status = new_status
    if new_status == DGInvoiceStatus.PAID:
        invoice.paid_amount = invoice.grand_total
        invoice.balance_amount = ZERO
        invoice.payment_status = DGPaymentStatus.PAID
    elif new_status == DGInvoiceStatus.OVERDUE and invoice.payment_status != DGPaymentStatus.PAID:
        invoice.payment_status = DGPaymentStatus.OVERDUE

    log_action(
        db,
        action="DG_INVOICE_STATUS_UPDATED",
        resource_type="dg_invoices",
        resource_id=invoice.invoice_number,
        ip_address=ip_address,
        changes={"old_status": old_status, "new_status": new_status.value},
    )

    db.commit()
    db.refresh(invoice)
    return _invoice_to_dict(invoice)


def record_dg_invoice_payment(
    db: Session,
    invoice_id: UUID,
    *,
    payment: PaymentUpdate,
    ip_address: str | None = None,
) -> dict:
    invoice = _get_invoice(db, invoice_id)
    if invoice.status == DGInvoiceStatus.CANCELLED:
        raise ValueError("Cannot record a payment on a cancelled invoice")
    if payment.paid_amount > invoice.grand_total:
        raise ValueError("Paid amount cannot exceed the grand total")

    invoice.paid_amount = payment.paid_amount
    invoice.balance_amount = invoice.grand_total - payment.paid_amount
    invoice.payment_status = _payment_status(payment.paid_amount, invoice.grand_total)
    if invoice.payment_status == DGPaymentStatus.PAID:
        invoice.status = DGInvoiceStatus.PAID

    log_action(
        db,
        action="DG_INVOICE_PAYMENT_RECORDED",
        resource_type="dg_invoices",
        resource_id=invoice.invoice_number,
        ip_address=ip_address,
        changes={
            "paid_amount": str(payment.paid_amount),
            "payment_method": payment.payment_method.value if payment.payment_method else None,
            "payment_status": invoice.payment_status.value,
        },
    )

    db.commit()
    db.refresh(invoice)
    return _invoice_to_dict(invoice)


# ─── Queries ──────────────────────────────────────────────────────────────────


def get_dg_invoice(db: Session, invoice_id: UUID) -> dict:
    return _invoice_to_dict(_get_invoice(db, invoice_id))


def _filtered(db: Session, params: DGInvoiceExportQuery) -> Query:
    query = db.query(DGInvoice).join(Customer, DGInvoice.customer_id == Customer.id)
    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            or_(
                DGInvoice.invoice_number.ilike(like),
                DGInvoice.dg_quotation_number.ilike(like),
                DGInvoice.po_number.ilike(like),
                Customer.name.ilike(like),
            )
        )
    if params.status:
        query = query.filter(DGInvoice.status == params.status)
    if params.payment_status:
        query = query.filter(DGInvoice.payment_status == params.payment_status)
    if params.customer:
        query = query.filter(DGInvoice.customer_id == params.customer)
    if params.start_date:
        query = query.filter(DGInvoice.invoice_date >= params.start_date)
    if params.end_date:
        query = query.filter(DGInvoice.invoice_date <= params.end_date)
    return query.order_by(desc(DGInvoice.invoice_date), desc(DGInvoice.invoice_number))


def list_dg_invoices(db: Session, params: DGInvoiceListQuery) -> dict:
    rows, meta = paginate(_filtered(db, params), params.page, params.limit)
    return {
        "data": [
            {
                "id": str(inv.id),
                "invoice_number": inv.invoice_number,
                "customer_id": str(inv.customer_id),
                "customer_name": inv.customer.name,
                "dg_quotation_number": inv.dg_quotation_number,
                "invoice_date": inv.invoice_date.isoformat(),
                "due_date": inv.due_date.isoformat(),
                "status": inv.status.value,
                "payment_status": inv.payment_status.value,
                "grand_total": str(inv.grand_total),
                "paid_amount": str(inv.paid_amount),
                "balance_amount": str(inv.balance_amount),
            }
            for inv in rows
        ],
        "pagination": meta,
    }


def export_rows(db: Session, params: DGInvoiceExportQuery) -> list[dict]:
    """Flat rows for the spreadsheet export, one per invoice."""
    return [
        {
            "invoice_number": inv.invoice_number,
            "invoice_date": inv.invoice_date,
            "due_date": inv.due_date,
            "customer_name": inv.customer.name,
            "customer_email": inv.customer_email,
            "dg_quotation_number": inv.dg_quotation_number,
            "po_number": inv.po_number,
            "status": inv.status.value,
            "payment_status": inv.payment_status.value,
            "subtotal": inv.subtotal,
            "total_discount": inv.total_discount,
            "total_tax": inv.total_tax,
            "additional_charges_total": inv.additional_charges_total,
            "transport_total": inv.transport_total,
            "grand_total": inv.grand_total,
            "paid_amount": inv.paid_amount,
            "balance_amount": inv.balance_amount,
            "irn": inv.irn,
        }
        for inv in _filtered(db, params).all()
    ]


def _iso(value: Any) -> str | None:
    return value.isoformat() if value else None


def _invoice_to_dict(inv: DGInvoice) -> dict:
    """Convert a DGInvoice ORM object to a response dict."""
    return {
        "id": str(inv.id),
        "invoice_number": inv.invoice_number,
        "customer_id": str(inv.customer_id),
        "customer_name": inv.customer.name if inv.customer else None,
        "customer_email": inv.customer_email,
        "customer_address": inv.customer_address,
        "billing_address": inv.billing_address,
        "shipping_address": inv.shipping_address,
        "dg_quotation_number": inv.dg_quotation_number,
        "po_number": inv.po_number,
        "po_from_customer": inv.po_from_customer,
        "dg_enquiry": inv.dg_enquiry,
        "proforma_reference": inv.proforma_reference,
        "invoice_date": inv.invoice_date.isoformat(),
        "due_date": inv.due_date.isoformat(),
        "status": inv.status.value,
        "payment_status": inv.payment_status.value,
        "payment_terms": inv.payment_terms,
        "notes": inv.notes,
        "delivery_notes": inv.delivery_notes,
        "reference_number": inv.reference_number,
        "reference_date": _iso(inv.reference_date),
        "buyers_order_number": inv.buyers_order_number,
        "buyers_order_date": _iso(inv.buyers_order_date),
        "dispatch_doc_no": inv.dispatch_doc_no,
        "dispatch_doc_date": _iso(inv.dispatch_doc_date),
        "destination": inv.destination,
        "delivery_note_date": _iso(inv.delivery_note_date),
        "dispatched_through": inv.dispatched_through,
        "terms_of_delivery": inv.terms_of_delivery,
        "items": [
            {
                "id": str(i.id),
                "product": i.product,
                "description": i.description,
                "subject": i.subject,
                "hsn_number": i.hsn_number,
                "uom": i.uom,
                "kva": i.kva,
                "phase": i.phase,
                "annexure_rating": i.annexure_rating,
                "dg_model": i.dg_model,
                "number_of_cylinders": i.number_of_cylinders,
                "is_active": i.is_active,
                "quantity": str(i.quantity),
                "unit_price": str(i.unit_price),
                "discount": str(i.discount),
                "gst_rate": str(i.gst_rate),
                "discounted_amount": str(i.discounted_amount),
                "gst_amount": str(i.gst_amount),
                "total_price": str(i.total_price),
            }
            for i in inv.items
        ],
        "additional_charges": {
            "freight": str(inv.freight),
            "insurance": str(inv.insurance),
            "packing": str(inv.packing),
            "other": str(inv.other_charges),
        },
        "transport_charges": {
            "quantity": str(inv.transport_quantity),
            "unit_price": str(inv.transport_unit_price),
            "amount": str(inv.transport_amount),
            "hsn_number": inv.transport_hsn_number,
            "gst_rate": str(inv.transport_gst_rate),
            "gst_amount": str(inv.transport_gst_amount),
            "total_amount": str(inv.transport_total),
        },
        "irn": inv.irn,
        "ack_number": inv.ack_number,
        "ack_date": _iso(inv.ack_date),
        "qr_code_invoice": inv.qr_code_invoice,
        "tax_rate": str(inv.tax_rate),
        "subtotal": str(inv.subtotal),
        "total_discount": str(inv.total_discount),
        "total_tax": str(inv.total_tax),
        "additional_charges_total": str(inv.additional_charges_total),
        "grand_total": str(inv.grand_total),
        "round_off": str(inv.round_off),
        "paid_amount": str(inv.paid_amount),
        "balance_amount": str(inv.balance_amount),
        "created_at": inv.created_at.isoformat(timespec="seconds") if inv.created_at else "",
    }
