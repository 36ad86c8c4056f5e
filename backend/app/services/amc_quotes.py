from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundError
from backend.app.models.amc import AMCOfferItem, AMCQuotation, AMCSparesItem, AMCType
from backend.app.models.customer import Customer
from backend.app.models.inventory import Product, StockLocation
from backend.app.models.quotes import QuotationStatus
from backend.app.models.user import User
from backend.app.schemas.amc import (
    AMCOfferItemIn,
    AMCQuotationCreate,
    AMCQuotationUpdate,
    AMCSparesItemIn,
)
from backend.app.schemas.quotes import QuotationListQuery
from backend.app.services.audit import log_action
from backend.app.services.numbering import AMC_QUOTATION_PREFIX, next_number
from backend.app.services.paging import paginate
from backend.app.services.totals import AMCTotals, calculate_amc_totals

logger = logging.getLogger(__name__)


def add_months(start: date, months: int) -> date:
    """Same day *months* later, clamped to the end of a shorter month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _get_amc(db: Session, quotation_id: UUID) -> AMCQuotation:
    quotation = db.query(AMCQuotation).filter(AMCQuotation.id == quotation_id).first()
    if not quotation:
        raise NotFoundError("AMC quotation not found")
    return quotation


def _check_references(
    db: Session,
    *,
    customer_id: UUID | None,
    location_id: UUID | None,
    engineer_id: UUID | None,
    spares: list[AMCSparesItemIn] | None,
) -> None:
    if customer_id and not db.query(Customer).filter(Customer.id == customer_id).first():
        raise NotFoundError("Customer not found")
    if location_id and not db.query(StockLocation).filter(StockLocation.id == location_id).first():
        raise NotFoundError("Location not found")
    if engineer_id and not db.query(User).filter(User.id == engineer_id).first():
        raise NotFoundError("Engineer not found")
    for item in spares or []:
        if item.product and not db.query(Product).filter(Product.id == item.product).first():
            raise NotFoundError(f"Product {item.product} not found")


def _replace_lines(
    quotation: AMCQuotation,
    offers: list[AMCOfferItemIn] | None,
    spares: list[AMCSparesItemIn] | None,
    totals: AMCTotals,
) -> None:
    if offers is not None:
        quotation.offer_items.clear()
        for position, (item, line) in enumerate(zip(offers, totals.offer_items)):
            quotation.offer_items.append(AMCOfferItem(
                position=position,
                make=item.make,
                engine_sl_no=item.engine_sl_no,
                dg_rating_kva=item.dg_rating_kva,
                type_of_visits=item.type_of_visits,
                qty=item.qty,
                amc_cost_per_dg=item.amc_cost_per_dg,
                total_amc_amount_per_dg=line.amount,
                gst_amount=line.gst_amount,
                total_amc_cost=line.total,
            ))
    else:
        for row, line in zip(quotation.offer_items, totals.offer_items):
            row.total_amc_amount_per_dg = line.amount
            row.gst_amount = line.gst_amount
            row.total_amc_cost = line.total
    if spares is not None:
        quotation.spares_items.clear()
        for position, (item, line) in enumerate(zip(spares, totals.spares_items)):
            quotation.spares_items.append(AMCSparesItem(
                position=position,
                product_id=item.product,
                part_no=item.part_no,
                description=item.description,
                hsn_code=item.hsn_code,
                uom=item.uom,
                qty=item.qty,
                unit_price=item.unit_price,
                gst_rate=item.gst_rate,
                discount=item.discount,
                discounted_amount=line.discounted_amount,
                tax_amount=line.tax_amount,
                total_price=line.total_price,
            ))


def _apply_totals(quotation: AMCQuotation, totals: AMCTotals) -> None:
    quotation.offer_subtotal = totals.offer_subtotal
    quotation.offer_tax = totals.offer_tax
    quotation.offer_total = totals.offer_total
    quotation.spares_total = totals.spares_total
    quotation.grand_total = totals.grand_total


def _fill_contract_dates(quotation: AMCQuotation) -> None:
    if quotation.contract_start_date and not quotation.contract_end_date:
        quotation.contract_end_date = (
            add_months(quotation.contract_start_date, quotation.contract_duration)
            - timedelta(days=1)
        )
    if quotation.amc_period_from is None:
        quotation.amc_period_from = quotation.contract_start_date
    if quotation.amc_period_to is None:
        quotation.amc_period_to = quotation.contract_end_date
    if (
        quotation.contract_start_date
        and quotation.contract_end_date
        and quotation.contract_end_date < quotation.contract_start_date
    ):
        raise ValueError("Contract end date cannot be before the start date")


# ─── Create / Update ──────────────────────────────────────────────────────────


def create_amc_quotation(
    db: Session,
    *,
    data: AMCQuotationCreate,
    ip_address: str | None = None,
) -> dict:
    """Create an AMC/CAMC quotation; GST on the offer follows ``gst_included``."""
    _check_references(
        db,
        customer_id=data.customer,
        location_id=data.location,
        engineer_id=data.assigned_engineer,
        spares=data.spares_items,
    )

    gst_rate = Decimal(settings.DEFAULT_GST_RATE)
    totals = calculate_amc_totals(
        data.offer_items, data.spares_items, gst_included=data.gst_included, gst_rate=gst_rate
    )
    issue_date = data.issue_date or date.today()

    quotation = AMCQuotation(
        quotation_number=next_number(db, AMCQuotation.quotation_number, AMC_QUOTATION_PREFIX),
        amc_type=data.amc_type,
        status=QuotationStatus.DRAFT,
        customer_id=data.customer,
        location_id=data.location,
        assigned_engineer_id=data.assigned_engineer,
        subject=data.subject,
        ref_of_quote=data.ref_of_quote,
        issue_date=issue_date,
        valid_until=data.valid_until
        or issue_date + timedelta(days=settings.DEFAULT_VALIDITY_DAYS),
        bill_to_address=data.bill_to_address.model_dump(mode="json"),
        ship_to_address=data.ship_to_address.model_dump(mode="json"),
        contract_duration=data.contract_duration,
        contract_start_date=data.contract_start_date,
        contract_end_date=data.contract_end_date,
        amc_period_from=data.amc_period_from,
        amc_period_to=data.amc_period_to,
        billing_cycle=data.billing_cycle,
        number_of_visits=data.number_of_visits,
        number_of_oil_services=data.number_of_oil_services,
        response_time=data.response_time,
        coverage_area=data.coverage_area,
        emergency_contact_hours=data.emergency_contact_hours,
        exclusions=data.exclusions,
        payment_terms_text=data.payment_terms_text,
        validity_text=data.validity_text,
        gst_included=data.gst_included,
        gst_rate=gst_rate,
        notes=data.notes,
    )
    _fill_contract_dates(quotation)
    _replace_lines(quotation, data.offer_items, data.spares_items, totals)
    _apply_totals(quotation, totals)
    db.add(quotation)
    db.flush()

    log_action(
        db,
        action="AMC_QUOTATION_CREATED",
        resource_type="amc_quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={
            "amc_type": data.amc_type.value,
            "customer_id": str(data.customer),
            "grand_total": str(totals.grand_total),
        },
    )

    db.commit()
    logger.info("Created %s quotation %s", data.amc_type.value, quotation.quotation_number)
    return _amc_to_dict(quotation)


_SIMPLE_FIELDS = (
    "amc_type",
    "subject",
    "ref_of_quote",
    "issue_date",
    "valid_until",
    "contract_duration",
    "contract_start_date",
    "contract_end_date",
    "amc_period_from",
    "amc_period_to",
    "billing_cycle",
    "number_of_visits",
    "number_of_oil_services",
    "response_time",
    "coverage_area",
    "emergency_contact_hours",
    "exclusions",
    "payment_terms_text",
    "validity_text",
    "gst_included",
    "notes",
)


def update_amc_quotation(
    db: Session,
    quotation_id: UUID,
    *,
    data: AMCQuotationUpdate,
    ip_address: str | None = None,
) -> dict:
    quotation = _get_amc(db, quotation_id)
    if quotation.status == QuotationStatus.ACCEPTED:
        raise ValueError("Cannot edit a quotation that is accepted")

    supplied = data.model_fields_set
    _check_references(
        db,
        customer_id=data.customer,
        location_id=data.location,
        engineer_id=data.assigned_engineer,
        spares=data.spares_items,
    )
    if data.customer:
        quotation.customer_id = data.customer
    if "location" in supplied:
        quotation.location_id = data.location
    if "assigned_engineer" in supplied:
        quotation.assigned_engineer_id = data.assigned_engineer
    for name in _SIMPLE_FIELDS:
        if name in supplied and getattr(data, name) is not None:
            setattr(quotation, name, getattr(data, name))
    if data.bill_to_address is not None:
        quotation.bill_to_address = data.bill_to_address.model_dump(mode="json")
    if data.ship_to_address is not None:
        quotation.ship_to_address = data.ship_to_address.model_dump(mode="json")
    _fill_contract_dates(quotation)

    if data.offer_items is not None and not data.offer_items:
        raise ValueError("At least one DG set offer item is required")
    offers: list[Any] = data.offer_items if data.offer_items is not None else list(quotation.offer_items)
    spares: list[Any] = (
        data.spares_items if data.spares_items is not None else list(quotation.spares_items)
    )
    if quotation.amc_type == AMCType.CAMC and not spares:
        raise ValueError("At least one spare item is required for CAMC contract")

    totals = calculate_amc_totals(
        offers, spares, gst_included=quotation.gst_included, gst_rate=quotation.gst_rate
    )
    _replace_lines(quotation, data.offer_items, data.spares_items, totals)
    _apply_totals(quotation, totals)

    log_action(
        db,
        action="AMC_QUOTATION_UPDATED",
        resource_type="amc_quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={"fields": sorted(supplied), "grand_total": str(totals.grand_total)},
    )

    db.commit()
    db.refresh(quotation)
    return _amc_to_dict(quotation)


def update_amc_status(
    db: Session,
    quotation_id: UUID,
    new_status: QuotationStatus,
    ip_address: str | None = None,
) -> dict:
    quotation = _get_amc(db, quotation_id)
    if quotation.status in (QuotationStatus.ACCEPTED, QuotationStatus.REJECTED) and (
        new_status != quotation.status
    ):
        raise ValueError(f"Cannot change status of a quotation that is {quotation.status.value}")

    old_status = quotation.status.value
    quotation.status = new_status
    log_action(
        db,
        action="AMC_QUOTATION_STATUS_UPDATED",
        resource_type="amc_quotations",
        resource_id=quotation.quotation_number,
        ip_address=ip_address,
        changes={"old_status": old_status, "new_status": new_status.value},
    )
    db.commit()
    db.refresh(quotation)
    return _amc_to_dict(quotation)


# ─── Queries ──────────────────────────────────────────────────────────────────


def get_amc_quotation(db: Session, quotation_id: UUID) -> dict:
    return _amc_to_dict(_get_amc(db, quotation_id))


def list_amc_quotations(
    db: Session, params: QuotationListQuery, amc_type: AMCType | None = None
) -> dict:
    query = db.query(AMCQuotation).join(Customer, AMCQuotation.customer_id == Customer.id)
    if params.search:
        like = f"%{params.search}%"
        query = query.filter(
            or_(
                AMCQuotation.quotation_number.ilike(like),
                AMCQuotation.subject.ilike(like),
                Customer.name.ilike(like),
            )
        )
    if params.status:
        query = query.filter(AMCQuotation.status == params.status)
    if amc_type:
        query = query.filter(AMCQuotation.amc_type == amc_type)
    if params.customer:
        query = query.filter(AMCQuotation.customer_id == params.customer)
    if params.start_date:
        query = query.filter(AMCQuotation.issue_date >= params.start_date)
    if params.end_date:
        query = query.filter(AMCQuotation.issue_date <= params.end_date)

    rows, meta = paginate(
        query.order_by(desc(AMCQuotation.created_at), desc(AMCQuotation.quotation_number)),
        params.page,
        params.limit,
    )
    return {
        "data": [
            {
                "id": str(q.id),
                "quotation_number": q.quotation_number,
                "amc_type": q.amc_type.value,
                "customer_name": q.customer.name,
                "status": q.status.value,
                "issue_date": q.issue_date.isoformat(),
                "grand_total": str(q.grand_total),
            }
            for q in rows
        ],
        "pagination": meta,
    }


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _amc_to_dict(q: AMCQuotation) -> dict:
    return {
        "id": str(q.id),
        "quotation_number": q.quotation_number,
        "amc_type": q.amc_type.value,
        "status": q.status.value,
        "customer_id": str(q.customer_id),
        "customer_name": q.customer.name if q.customer else None,
        "location_id": str(q.location_id) if q.location_id else None,
        "assigned_engineer_id": str(q.assigned_engineer_id) if q.assigned_engineer_id else None,
        "subject": q.subject,
        "ref_of_quote": q.ref_of_quote,
        "issue_date": q.issue_date.isoformat(),
        "valid_until": q.valid_until.isoformat(),
        "bill_to_address": q.bill_to_address,
        "ship_to_address": q.ship_to_address,
        "contract_duration": q.contract_duration,
        "contract_start_date": _iso(q.contract_start_date),
        "contract_end_date": _iso(q.contract_end_date),
        "amc_period_from": _iso(q.amc_period_from),
        "amc_period_to": _iso(q.amc_period_to),
        "billing_cycle": q.billing_cycle.value,
        "number_of_visits": q.number_of_visits,
        "number_of_oil_services": q.number_of_oil_services,
        "response_time": q.response_time,
        "coverage_area": q.coverage_area,
        "emergency_contact_hours": q.emergency_contact_hours,
        "exclusions": q.exclusions,
        "payment_terms_text": q.payment_terms_text,
        "validity_text": q.validity_text,
        "gst_included": q.gst_included,
        "gst_rate": str(q.gst_rate),
        "offer_items": [
            {
                "id": str(o.id),
                "make": o.make,
                "engine_sl_no": o.engine_sl_no,
                "dg_rating_kva": str(o.dg_rating_kva),
                "type_of_visits": o.type_of_visits,
                "qty": str(o.qty),
                "amc_cost_per_dg": str(o.amc_cost_per_dg),
                "total_amc_amount_per_dg": str(o.total_amc_amount_per_dg),
                "gst_amount": str(o.gst_amount),
                "total_amc_cost": str(o.total_amc_cost),
            }
            for o in q.offer_items
        ],
        "spares_items": [
            {
                "id": str(s.id),
                "product_id": str(s.product_id) if s.product_id else None,
                "part_no": s.part_no,
                "description": s.description,
                "hsn_code": s.hsn_code,
                "uom": s.uom,
                "qty": str(s.qty),
                "unit_price": str(s.unit_price),
                "gst_rate": str(s.gst_rate),
                "discount": str(s.discount),
                "discounted_amount": str(s.discounted_amount),
                "tax_amount": str(s.tax_amount),
                "total_price": str(s.total_price),
            }
            for s in q.spares_items
        ],
        "offer_subtotal": str(q.offer_subtotal),
        "offer_tax": str(q.offer_tax),
        "offer_total": str(q.offer_total),
        "spares_total": str(q.spares_total),
        "grand_total": str(q.grand_total),
        "notes": q.notes,
        "created_at": q.created_at.isoformat(timespec="seconds") if q.created_at else "",
    }
