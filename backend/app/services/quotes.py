from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundError
from backend.app.models.customer import Customer
from backend.app.models.inventory import Product, StockLocation
from backend.app.models.quotes import (
    Quotation,
    QuotationItem,
    QuotationPaymentStatus,
    QuotationServiceCharge,
    QuotationStatus,
    QuotationType,
)
from backend.app.models.user import User
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.quotes import (
    QuotationCreate,
    QuotationItemIn,
    QuotationListQuery,
    QuotationUpdate,
    ServiceChargeIn,
    TotalsRequest,
)
from backend.app.services.audit import log_action
from backend.app.services.inventory import available_quantity
from backend.app.services.numbering import QUOTATION_PREFIX, next_number
from backend.app.services.paging import paginate
from backend.app.services.totals import DocumentTotals, calculate_totals

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
LOCKED_STATUSES = frozenset({QuotationStatus.ACCEPTED, QuotationStatus.REJECTED})


def _qty(value: Decimal) -> str:
    return format(value.normalize(), "f")


# ─── Lookups ──────────────────────────────────────────────────────────────────


def _get_quotation(db: Session, quotation_id: UUID) -> Quotation:
    quotation = db.query(Quotation).filter(Quotation.id == quotation_id).first()
    if not quotation:
        raise NotFoundError("Quotation not found")
    return quotation


def _require_customer(db: Session, customer_id: UUID) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _require_location(db: Session, location_id: UUID) -> StockLocation:
    location = db.query(StockLocation).filter(StockLocation.id == location_id).first()
    if not location:
        raise NotFoundError("Location not found")
    return location


def _require_engineer(db: Session, user_id: UUID) -> User:
    engineer = db.query(User).filter(User.id == user_id).first()
    if not engineer:
        raise NotFoundError("Engineer not found")
    return engineer


# ─── Lines ────────────────────────────────────────────────────────────────────


def _check_items(
    db: Session,
    items: list[QuotationItemIn],
    location_id: UUID | None,
) -> dict[UUID, Product]:
    """Resolve products and make sure each line fits the stock at the location."""
    products: dict[UUID, Product] = {}
    for item in items:
        product = db.query(Product).filter(Product.id == item.product).first()
        if not product:
            raise NotFoundError(f"Product {item.product} not found")
        products[product.id] = product

    if location_id is None:
        return products

    requested: dict[UUID, Decimal] = {}
    for item in items:
        requested[item.product] = requested.get(item.product, ZERO) + item.quantity
    for product_id, quantity in requested.items():
        available = available_quantity(db, product_id, location_id)
        if quantity > available:
            raise ValueError(
                f"Quantity ({_qty(quantity)}) exceeds available stock ({available}) "
                f"for {products[product_id].name}"
            )
    return products


def _replace_items(
    quotation: Quotation,
    items: list[QuotationItemIn],
    products: dict[UUID, Product],
    totals: DocumentTotals,
) -> None:
    quotation.items.clear()
    for position, (item, line) in enumerate(zip(items, totals.items)):
        product = products[item.product]
        quotation.items.append(QuotationItem(
            position=position,
            product_id=product.id,
            description=item.description or product.description or product.name,
            part_no=item.part_no or product.part_no,
            hsn_number=item.hsn_number or product.hsn_number,
            uom=item.uom or product.uom,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount=item.discount,
            tax_rate=item.tax_rate,
            discounted_amount=line.discounted_amount,
            tax_amount=line.tax_amount,
            total_price=line.total_price,
        ))


def _replace_service_charges(
    quotation: Quotation,
    charges: list[ServiceChargeIn],
    totals: DocumentTotals,
) -> None:
    quotation.service_charges.clear()
    for position, (charge, line) in enumerate(zip(charges, totals.service_charges)):
        quotation.service_charges.append(QuotationServiceCharge(
            position=position,
            description=charge.description,
            hsn_number=charge.hsn_number,
            quantity=charge.quantity,
            unit_price=charge.unit_price,
            discount=charge.discount,
            tax_rate=charge.tax_rate,
            discounted_amount=line.discounted_amount,
            tax_amount=line.tax_amount,
            total_price=line.total_price,
        ))


def _buyback_row(quotation: Quotation) -> dict | None:
    if not quotation.battery_buyback_unit_price and not quotation.battery_buyback_description:
        return None
    return {
        "quantity": quotation.battery_buyback_quantity,
        "unit_price": quotation.battery_buyback_unit_price,
        "discount": quotation.battery_buyback_discount,
    }


def _apply_totals(quotation: Quotation, totals: DocumentTotals) -> None:
    quotation.subtotal = totals.subtotal
    quotation.total_discount = totals.total_discount
    quotation.overall_discount_amount = totals.overall_discount_amount
    quotation.battery_buyback_amount = totals.battery_buyback_amount
    quotation.total_tax = totals.total_tax
    quotation.grand_total = totals.grand_total
    quotation.round_off = totals.round_off
    quotation.remaining_amount = max(totals.grand_total - (quotation.paid_amount or ZERO), ZERO)


# ─── Create / Update ──────────────────────────────────────────────────────────


def create_quotation(
    db: Session,
    *,
    data: QuotationCreate,
    ip_address: str | None = None,
) -> dict:
    """Create a service/spares quotation with server-side totals."""
    if not data.items and not data.service_charges:
        raise ValueError("Quotation must have at least one item or service charge")

    _require_customer(db, data.customer)
    _require_location(db, data.location)
    if data.assigned_engineer:
        _require_engineer(db, data.assigned_engineer)
    products = _check_items(db, data.items, data.location)

    totals = calculate_totals(
        data.items, data.service_charges, data.battery_buy_back, data.overall_discount
    )

    issue_date = data.issue_date or date.today()
    validity = data.validity_period or settings.DEFAULT_VALIDITY_DAYS
    buyback = data.battery_buy_back

    quotation = Quotation(
        quotation_number=next_number(db, Quotation.quotation_number, QUOTATION_PREFIX),
        quotation_type=data.quotation_type,
        status=QuotationStatus.DRAFT,
        customer_id=data.customer,
        location_id=data.location,
        assigned_engineer_id=data.assigned_engineer,
        subject=data.subject,
        issue_date=issue_date,
        validity_period=validity,
        valid_until=data.valid_until or issue_date + timedelta(days=validity),
        bill_to_address=data.bill_to_address.model_dump(mode="json"),
        ship_to_address=data.ship_to_address.model_dump(mode="json"),
        engine_serial_number=data.engine_serial_number,
        kva=data.kva,
        hour_meter_reading=data.hour_meter_reading,
        service_request_date=data.service_request_date,
        battery_buyback_description=buyback.description if buyback else None,
        battery_buyback_quantity=buyback.quantity if buyback else ZERO,
        battery_buyback_unit_price=buyback.unit_price if buyback else ZERO,
        battery_buyback_discount=buyback.discount if buyback else ZERO,
        overall_discount=data.overall_discount,
        paid_amount=ZERO,
        payment_status=QuotationPaymentStatus.PENDING,
        notes=data.notes,
        terms=data.terms,
        qr_code_image=data.qr_code_image,
    )
    _replace_items(quotation, data.items, products, totals)
    _replace_service_charges(quotation, data.service_charges, totals)
    _apply_totals(quotation, totals)
    db.add(quotation)
    db.flush()

    log_action(
        db,
        action="QUOTATION_CREATED",
        resource_type="quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={
            "quotation_number": quotation.quotation_number,
            "customer_id": str(data.customer),
            "grand_total": str(totals.grand_total),
            "item_count": len(data.items),
        },
    )

    db.commit()
    logger.info("Created quotation %s", quotation.quotation_number)
    return _quotation_to_dict(quotation)


_SIMPLE_FIELDS = (
    "quotation_type",
    "subject",
    "issue_date",
    "validity_period",
    "valid_until",
    "engine_serial_number",
    "kva",
    "hour_meter_reading",
    "service_request_date",
    "overall_discount",
    "notes",
    "terms",
    "qr_code_image",
)


def update_quotation(
    db: Session,
    quotation_id: UUID,
    *,
    data: QuotationUpdate,
    ip_address: str | None = None,
) -> dict:
    """Apply the supplied fields and recompute every derived total."""
    quotation = _get_quotation(db, quotation_id)
    if quotation.status in LOCKED_STATUSES:
        raise ValueError(f"Cannot edit a quotation that is {quotation.status.value}")

    supplied = data.model_fields_set

    if "customer" in supplied and data.customer:
        _require_customer(db, data.customer)
        quotation.customer_id = data.customer
    if "location" in supplied and data.location:
        _require_location(db, data.location)
        quotation.location_id = data.location
    if "assigned_engineer" in supplied:
        if data.assigned_engineer:
            _require_engineer(db, data.assigned_engineer)
        quotation.assigned_engineer_id = data.assigned_engineer
    for name in _SIMPLE_FIELDS:
        if name in supplied and getattr(data, name) is not None:
            setattr(quotation, name, getattr(data, name))
    if "validity_period" in supplied and "valid_until" not in supplied and data.validity_period:
        quotation.valid_until = quotation.issue_date + timedelta(days=data.validity_period)
    if data.bill_to_address is not None:
        quotation.bill_to_address = data.bill_to_address.model_dump(mode="json")
    if data.ship_to_address is not None:
        quotation.ship_to_address = data.ship_to_address.model_dump(mode="json")
    if "battery_buy_back" in supplied:
        buyback = data.battery_buy_back
        quotation.battery_buyback_description = buyback.description if buyback else None
        quotation.battery_buyback_quantity = buyback.quantity if buyback else ZERO
        quotation.battery_buyback_unit_price = buyback.unit_price if buyback else ZERO
        quotation.battery_buyback_discount = buyback.discount if buyback else ZERO

    items: list[Any] = data.items if data.items is not None else list(quotation.items)
    charges: list[Any] = (
        data.service_charges if data.service_charges is not None else list(quotation.service_charges)
    )
    if not items and not charges:
        raise ValueError("Quotation must have at least one item or service charge")

    totals = calculate_totals(items, charges, _buyback_row(quotation), quotation.overall_discount)
    if data.items is not None:
        products = _check_items(db, data.items, quotation.location_id)
        _replace_items(quotation, data.items, products, totals)
    if data.service_charges is not None:
        _replace_service_charges(quotation, data.service_charges, totals)
    _apply_totals(quotation, totals)

    log_action(
        db,
        action="QUOTATION_UPDATED",
        resource_type="quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={
            "fields": sorted(supplied),
            "grand_total": str(totals.grand_total),
        },
    )

    db.commit()
    db.refresh(quotation)
    return _quotation_to_dict(quotation)


def update_quotation_status(
    db: Session,
    quotation_id: UUID,
    new_status: QuotationStatus,
    ip_address: str | None = None,
) -> dict:
    quotation = _get_quotation(db, quotation_id)
    if quotation.status in LOCKED_STATUSES and new_status != quotation.status:
        raise ValueError(f"Cannot change status of a quotation that is {quotation.status.value}")

    old_status = quotation.status.value
    quotation.status = new_status

    log_action(
        db,
        action="QUOTATION_STATUS_UPDATED",
        resource_type="quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={"old_status": old_status, "new_status": new_status.value},
    )

    db.commit()
    db.refresh(quotation)
    return _quotation_to_dict(quotation)


def record_quotation_payment(
    db: Session,
    quotation_id: UUID,
    *,
    payment: PaymentUpdate,
    ip_address: str | None = None,
) -> dict:
    """Set the amount received so far; remaining and payment status follow."""
    quotation = _get_quotation(db, quotation_id)
    if payment.paid_amount > quotation.grand_total:
        raise ValueError("Paid amount cannot exceed the grand total")

    quotation.paid_amount = payment.paid_amount
    quotation.remaining_amount = quotation.grand_total - payment.paid_amount
    if payment.paid_amount == 0:
        quotation.payment_status = QuotationPaymentStatus.PENDING
    elif quotation.remaining_amount == 0:
        quotation.payment_status = QuotationPaymentStatus.PAID
    else:
        quotation.payment_status = QuotationPaymentStatus.PARTIAL

    log_action(
        db,
        action="QUOTATION_PAYMENT_RECORDED",
        resource_type="quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={
            "paid_amount": str(payment.paid_amount),
            "payment_method": payment.payment_method.value if payment.payment_method else None,
            "payment_status": quotation.payment_status.value,
        },
    )

    db.commit()
    db.refresh(quotation)
    return _quotation_to_dict(quotation)


def preview_totals(data: TotalsRequest) -> dict:
    """Totals for an unsaved document, as shown live while editing."""
    totals = calculate_totals(
        data.items, data.service_charges, data.battery_buy_back, data.overall_discount
    )
    return totals.as_dict()


# ─── Queries ──────────────────────────────────────────────────────────────────


def get_quotation(db: Session, quotation_id: UUID) -> dict:
    return _quotation_to_dict(_get_quotation(db, quotation_id))


def list_quotations(db: Session, params: QuotationListQuery) -> dict:
    query = db.query(Quotation).join(Customer, Quotation.customer_id == Customer.id)
    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            or_(
                Quotation.quotation_number.ilike(like),
                Quotation.subject.ilike(like),
                Customer.name.ilike(like),
            )
        )
    if params.status:
        query = query.filter(Quotation.status == params.status)
    if params.quotation_type:
        query = query.filter(Quotation.quotation_type == params.quotation_type)
    if params.customer:
        query = query.filter(Quotation.customer_id == params.customer)
    if params.start_date:
        query = query.filter(Quotation.issue_date >= params.start_date)
    if params.end_date:
        query = query.filter(Quotation.issue_date <= params.end_date)

    rows, meta = paginate(
        query.order_by(desc(Quotation.created_at), desc(Quotation.quotation_number)),
        params.page,
        params.limit,
    )
    return {
        "data": [
            {
                "id": str(q.id),
                "quotation_number": q.quotation_number,
                "quotation_type": q.quotation_type.value,
                "customer_id": str(q.customer_id),
                "customer_name": q.customer.name,
                "status": q.status.value,
                "issue_date": q.issue_date.isoformat(),
                "valid_until": q.valid_until.isoformat(),
                "grand_total": str(q.grand_total),
                "payment_status": q.payment_status.value,
                "item_count": len(q.items),
            }
            for q in rows
        ],
        "pagination": meta,
    }


def _quotation_to_dict(quotation: Quotation) -> dict:
    """Convert a Quotation ORM object to a response dict."""
    buyback = None
    if _buyback_row(quotation) is not None:
        buyback = {
            "description": quotation.battery_buyback_description,
            "quantity": str(quotation.battery_buyback_quantity),
            "unit_price": str(quotation.battery_buyback_unit_price),
            "discount": str(quotation.battery_buyback_discount),
            "amount": str(quotation.battery_buyback_amount),
        }

    return {
        "id": str(quotation.id),
        "quotation_number": quotation.quotation_number,
        "quotation_type": quotation.quotation_type.value,
        "status": quotation.status.value,
        "customer_id": str(quotation.customer_id),
        "customer_name": quotation.customer.name if quotation.customer else None,
        "location_id": str(quotation.location_id) if quotation.location_id else None,
        "assigned_engineer_id": (
            str(quotation.assigned_engineer_id) if quotation.assigned_engineer_id else None
        ),
        "subject": quotation.subject,
        "issue_date": quotation.issue_date.isoformat(),
        "validity_period": quotation.validity_period,
        "valid_until": quotation.valid_until.isoformat(),
        "bill_to_address": quotation.bill_to_address,
        "ship_to_address": quotation.ship_to_address,
        "engine_serial_number": quotation.engine_serial_number,
        "kva": quotation.kva,
        "hour_meter_reading": quotation.hour_meter_reading,
        "service_request_date": (
            quotation.service_request_date.isoformat() if quotation.service_request_date else None
        ),
        "items": [
            {
                "id": str(i.id),
                "product_id": str(i.product_id),
                "product_name": i.product.name if i.product else "Unknown",
                "description": i.description,
                "part_no": i.part_no,
                "hsn_number": i.hsn_number,
                "uom": i.uom,
                "quantity": str(i.quantity),
                "unit_price": str(i.unit_price),
                "discount": str(i.discount),
                "tax_rate": str(i.tax_rate),
                "discounted_amount": str(i.discounted_amount),
                "tax_amount": str(i.tax_amount),
                "total_price": str(i.total_price),
            }
            for i in quotation.items
        ],
        "service_charges": [
            {
                "id": str(c.id),
                "description": c.description,
                "hsn_number": c.hsn_number,
                "quantity": str(c.quantity),
                "unit_price": str(c.unit_price),
                "discount": str(c.discount),
                "tax_rate": str(c.tax_rate),
                "discounted_amount": str(c.discounted_amount),
                "tax_amount": str(c.tax_amount),
                "total_price": str(c.total_price),
            }
            for c in quotation.service_charges
        ],
        "battery_buy_back": buyback,
        "overall_discount": str(quotation.overall_discount),
        "subtotal": str(quotation.subtotal),
        "total_discount": str(quotation.total_discount),
        "overall_discount_amount": str(quotation.overall_discount_amount),
        "battery_buyback_amount": str(quotation.battery_buyback_amount),
        "total_tax": str(quotation.total_tax),
        "grand_total": str(quotation.grand_total),
        "round_off": str(quotation.round_off),
        "paid_amount": str(quotation.paid_amount),
        "remaining_amount": str(quotation.remaining_amount),
        "payment_status": quotation.payment_status.value,
        "notes": quotation.notes,
        "terms": quotation.terms,
        "qr_code_image": quotation.qr_code_image,
        "created_at": (
            quotation.created_at.isoformat(timespec="seconds") if quotation.created_at else ""
        ),
    }
