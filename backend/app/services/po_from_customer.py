from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Query, Session

from backend.app.core.exceptions import NotFoundError
from backend.app.models.customer import Customer
from backend.app.models.po_from_customer import (
    STATUS_FLOW,
    TERMINAL_STATUSES,
    DGPoFromCustomer,
    DGPoFromCustomerItem,
    POPaymentStatus,
    POStatus,
)
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.po_from_customer import (
    POCreate,
    POExportQuery,
    POItemIn,
    POListQuery,
    POUpdate,
)
from backend.app.services.audit import log_action
from backend.app.services.numbering import DG_PO_PREFIX, next_number
from backend.app.services.paging import paginate
from backend.app.services.totals import POTotals, calculate_po_totals

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# camelCase sort keys accepted by the list endpoint
_SORT_COLUMNS = {
    "createdAt": DGPoFromCustomer.created_at,
    "orderDate": DGPoFromCustomer.order_date,
    "poNumber": DGPoFromCustomer.po_number,
    "totalAmount": DGPoFromCustomer.total_amount,
    "status": DGPoFromCustomer.status,
    "priority": DGPoFromCustomer.priority,
}


def _get_po(db: Session, po_id: UUID) -> DGPoFromCustomer:
    po = db.query(DGPoFromCustomer).filter(DGPoFromCustomer.id == po_id).first()
    if not po:
        raise NotFoundError("Purchase order not found")
    return po


def _require_customer(db: Session, customer_id: UUID) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _check_address(customer: Customer, address_id: int, label: str) -> None:
    if not any(a.position == address_id for a in customer.addresses):
        raise ValueError(f"{label} address {address_id} not found for this customer")


def _derive_payment_status(paid: Decimal, total: Decimal) -> POPaymentStatus:
    if paid <= 0:
        return POPaymentStatus.PENDING
    if paid >= total:
        return POPaymentStatus.PAID
    return POPaymentStatus.PARTIAL


def _replace_items(po: DGPoFromCustomer, items: list[POItemIn], totals: POTotals) -> None:
    po.items.clear()
    for position, (item, line) in enumerate(zip(items, totals.items)):
        po.items.append(DGPoFromCustomerItem(
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
            discounted_amount=line.discounted_amount,
            total_price=line.discounted_amount,
        ))


def _apply_totals(po: DGPoFromCustomer, totals: POTotals) -> None:
    if (po.paid_amount or ZERO) > totals.total_amount:
        raise ValueError("Paid amount cannot exceed the total amount")
    po.subtotal = totals.subtotal
    po.total_discount = totals.total_discount
    po.tax_amount = totals.tax_amount
    po.total_amount = totals.total_amount
    po.remaining_amount = totals.total_amount - (po.paid_amount or ZERO)
    if po.payment_status != POPaymentStatus.GST_PENDING:
        po.payment_status = _derive_payment_status(po.paid_amount or ZERO, totals.total_amount)


# ─── Create / Update ──────────────────────────────────────────────────────────


def create_po(
    db: Session,
    *,
    data: POCreate,
    ip_address: str | None = None,
) -> dict:
    """Record a purchase order received from a customer."""
    customer = _require_customer(db, data.customer)
    _check_address(customer, data.bill_to_address.id, "Bill to")
    _check_address(customer, data.ship_to_address.id, "Ship to")

    po_number = data.po_number or next_number(db, DGPoFromCustomer.po_number, DG_PO_PREFIX)
    if db.query(DGPoFromCustomer).filter(DGPoFromCustomer.po_number == po_number).first():
        raise ValueError(f"PO number '{po_number}' already exists")

    totals = calculate_po_totals(data.items, data.tax_rate)

    po = DGPoFromCustomer(
        po_number=po_number,
        customer_id=customer.id,
        customer_email=data.customer_email or customer.email,
        bill_to_address_id=data.bill_to_address.id,
        ship_to_address_id=data.ship_to_address.id,
        dg_quotation_number=data.dg_quotation_number,
        dg_enquiry=data.dg_enquiry,
        status=data.status,
        department=data.department,
        priority=data.priority,
        order_date=data.order_date or date.today(),
        expected_delivery_date=data.expected_delivery_date,
        actual_delivery_date=data.actual_delivery_date,
        tax_rate=data.tax_rate,
        paid_amount=data.paid_amount,
        payment_status=data.payment_status,
        payment_method=data.payment_method,
        payment_date=data.payment_date,
        notes=data.notes,
        transport=data.transport,
        unloading=data.unloading,
        scope_of_work=data.scope_of_work,
        po_pdf=data.po_pdf,
    )
    _replace_items(po, data.items, totals)
    _apply_totals(po, totals)
    db.add(po)
    db.flush()

    log_action(
        db,
        action="PO_FROM_CUSTOMER_CREATED",
        resource_type="dg_po_from_customers",
        resource_id=po.po_number,
        ip_address=ip_address,
        changes={
            "po_number": po.po_number,
            "customer_id": str(customer.id),
            "total_amount": str(totals.total_amount),
            "item_count": len(data.items),
        },
    )

    db.commit()
    logger.info("Recorded customer PO %s", po.po_number)
    return _po_to_dict(po)


_SIMPLE_FIELDS = (
    "customer_email",
    "dg_quotation_number",
    "dg_enquiry",
    "order_date",
    "expected_delivery_date",
    "actual_delivery_date",
    "department",
    "priority",
    "tax_rate",
    "notes",
    "transport",
    "unloading",
    "scope_of_work",
    "po_pdf",
)


def update_po(
    db: Session,
    po_id: UUID,
    *,
    data: POUpdate,
    ip_address: str | None = None,
) -> dict:
    po = _get_po(db, po_id)
    if po.status in TERMINAL_STATUSES:
        raise ValueError(f"Cannot edit a purchase order that is {po.status.value}")

    supplied = data.model_fields_set
    if data.po_number and data.po_number != po.po_number:
        clash = (
            db.query(DGPoFromCustomer)
            .filter(DGPoFromCustomer.po_number == data.po_number, DGPoFromCustomer.id != po.id)
            .first()
        )
        if clash:
            raise ValueError(f"PO number '{data.po_number}' already exists")
        po.po_number = data.po_number

    customer = _require_customer(db, data.customer) if data.customer else po.customer
    po.customer_id = customer.id
    if data.bill_to_address is not None:
        po.bill_to_address_id = data.bill_to_address.id
    if data.ship_to_address is not None:
        po.ship_to_address_id = data.ship_to_address.id
    if data.customer or data.bill_to_address or data.ship_to_address:
        _check_address(customer, po.bill_to_address_id, "Bill to")
        _check_address(customer, po.ship_to_address_id, "Ship to")

    for name in _SIMPLE_FIELDS:
        if name in supplied and getattr(data, name) is not None:
            setattr(po, name, getattr(data, name))

    items: list[Any] = data.items if data.items is not None else list(po.items)
    totals = calculate_po_totals(items, po.tax_rate)
    if data.items is not None:
        _replace_items(po, data.items, totals)
    _apply_totals(po, totals)

    log_action(
        db,
        action="PO_FROM_CUSTOMER_UPDATED",
        resource_type="dg_po_from_customers",
        resource_id=po.po_number,
        ip_address=ip_address,
        changes={"fields": sorted(supplied), "total_amount": str(totals.total_amount)},
    )

    db.commit()
    db.refresh(po)
    return _po_to_dict(po)


def transition_po_status(
    db: Session,
    po_id: UUID,
    new_status: POStatus,
    notes: str | None = None,
    ip_address: str | None = None,
) -> dict:
    """Move one step along the workflow, or cancel from any open state."""
    po = _get_po(db, po_id)
    current = po.status
    if current in TERMINAL_STATUSES:
        raise ValueError(f"Cannot change status of a purchase order that is {current.value}")
    if new_status == current:
        raise ValueError(f"Purchase order is already {current.value}")
    if new_status != POStatus.CANCELLED and STATUS_FLOW.get(current) != new_status:
        raise ValueError(
            f"Invalid status transition from {current.value} to {new_status.value}"
        )

    po.status = new_status
    if new_status == POStatus.DELIVERED and po.actual_delivery_date is None:
        po.actual_delivery_date = date.today()
    if notes:
        po.notes = f"{po.notes}\n{notes}" if po.notes else notes

    log_action(
        db,
        action="PO_FROM_CUSTOMER_STATUS_UPDATED",
        resource_type="dg_po_from_customers",
        resource_id=po.po_number,
        ip_address=ip_address,
        changes={"old_status": current.value, "new_status": new_status.value},
    )

    db.commit()
    db.refresh(po)
    return _po_to_dict(po)


def record_po_payment(
    db: Session,
    po_id: UUID,
    *,
    payment: PaymentUpdate,
    ip_address: str | None = None,
) -> dict:
    po = _get_po(db, po_id)
    if po.status == POStatus.CANCELLED:
        raise ValueError("Cannot record a payment on a cancelled purchase order")
    if payment.paid_amount > po.total_amount:
        raise ValueError("Paid amount cannot exceed the total amount")

    po.paid_amount = payment.paid_amount
    po.remaining_amount = po.total_amount - payment.paid_amount
    po.payment_status = _derive_payment_status(payment.paid_amount, po.total_amount)
    if payment.payment_method:
        po.payment_method = payment.payment_method
    po.payment_date = payment.payment_date or date.today()

    log_action(
        db,
        action="PO_FROM_CUSTOMER_PAYMENT_RECORDED",
        resource_type="dg_po_from_customers",
        resource_id=po.po_number,
        ip_address=ip_address,
        changes={
            "paid_amount": str(payment.paid_amount),
            "payment_status": po.payment_status.value,
        },
    )

    db.commit()
    db.refresh(po)
    return _po_to_dict(po)


# ─── Queries ──────────────────────────────────────────────────────────────────


def get_po(db: Session, po_id: UUID) -> dict:
    return _po_to_dict(_get_po(db, po_id))


def _filtered(db: Session, params: POExportQuery) -> Query:
    query = db.query(DGPoFromCustomer).join(Customer, DGPoFromCustomer.customer_id == Customer.id)
    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            or_(
                DGPoFromCustomer.po_number.ilike(like),
                DGPoFromCustomer.dg_quotation_number.ilike(like),
                Customer.name.ilike(like),
            )
        )
    if params.status:
        query = query.filter(DGPoFromCustomer.status == params.status)
    if params.customer:
        query = query.filter(DGPoFromCustomer.customer_id == params.customer)
    if params.department:
        query = query.filter(DGPoFromCustomer.department == params.department)
    if params.start_date:
        query = query.filter(DGPoFromCustomer.order_date >= params.start_date)
    if params.end_date:
        query = query.filter(DGPoFromCustomer.order_date <= params.end_date)
    return query


def _ordering(sort: str) -> Any:
    descending = sort.startswith("-")
    column = _SORT_COLUMNS.get(sort.lstrip("-+"))
    if column is None:
        raise ValueError(
            f"Sort must be one of: {', '.join(_SORT_COLUMNS)} (prefix '-' for descending)"
        )
    return desc(column) if descending else asc(column)


def list_pos(db: Session, params: POListQuery) -> dict:
    query = _filtered(db, params).order_by(_ordering(params.sort), desc(DGPoFromCustomer.po_number))
    rows, meta = paginate(query, params.page, params.limit)
    return {
        "data": [
            {
                "id": str(po.id),
                "po_number": po.po_number,
                "customer_id": str(po.customer_id),
                "customer_name": po.customer.name,
                "status": po.status.value,
                "department": po.department.value,
                "priority": po.priority.value,
                "order_date": po.order_date.isoformat(),
                "total_amount": str(po.total_amount),
                "payment_status": po.payment_status.value,
            }
            for po in rows
        ],
        "pagination": meta,
    }


def export_rows(db: Session, params: POExportQuery) -> list[dict]:
    """Flat rows for the spreadsheet export, newest order first."""
    query = _filtered(db, params).order_by(
        desc(DGPoFromCustomer.order_date), desc(DGPoFromCustomer.po_number)
    )
    return [
        {
            "po_number": po.po_number,
            "order_date": po.order_date,
            "customer_name": po.customer.name,
            "customer_email": po.customer_email,
            "dg_quotation_number": po.dg_quotation_number,
            "status": po.status.value,
            "department": po.department.value,
            "priority": po.priority.value,
            "expected_delivery_date": po.expected_delivery_date,
            "subtotal": po.subtotal,
            "total_discount": po.total_discount,
            "tax_amount": po.tax_amount,
            "total_amount": po.total_amount,
            "paid_amount": po.paid_amount,
            "remaining_amount": po.remaining_amount,
            "payment_status": po.payment_status.value,
        }
        for po in query.all()
    ]


def _iso(value: Any) -> str | None:
    return value.isoformat() if value else None


def _po_to_dict(po: DGPoFromCustomer) -> dict:
    return {
        "id": str(po.id),
        "po_number": po.po_number,
        "customer_id": str(po.customer_id),
        "customer_name": po.customer.name if po.customer else None,
        "customer_email": po.customer_email,
        "bill_to_address": {"id": po.bill_to_address_id},
        "ship_to_address": {"id": po.ship_to_address_id},
        "dg_quotation_number": po.dg_quotation_number,
        "dg_enquiry": po.dg_enquiry,
        "status": po.status.value,
        "next_status": STATUS_FLOW[po.status].value if po.status in STATUS_FLOW else None,
        "department": po.department.value,
        "priority": po.priority.value,
        "order_date": po.order_date.isoformat(),
        "expected_delivery_date": _iso(po.expected_delivery_date),
        "actual_delivery_date": _iso(po.actual_delivery_date),
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
                "discounted_amount": str(i.discounted_amount),
                "total_price": str(i.total_price),
            }
            for i in po.items
        ],
        "tax_rate": str(po.tax_rate),
        "subtotal": str(po.subtotal),
        "total_discount": str(po.total_discount),
        "tax_amount": str(po.tax_amount),
        "total_amount": str(po.total_amount),
        "paid_amount": str(po.paid_amount),
        "remaining_amount": str(po.remaining_amount),
        "payment_status": po.payment_status.value,
        "payment_method": po.payment_method.value if po.payment_method else None,
        "payment_date": _iso(po.payment_date),
        "notes": po.notes,
        "transport": po.transport,
        "unloading": po.unloading,
        "scope_of_work": po.scope_of_work,
        "po_pdf": po.po_pdf,
        "created_at": po.created_at.isoformat(timespec="seconds") if po.created_at else "",
    }
