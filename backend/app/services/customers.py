from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.app.core.exceptions import NotFoundError
from backend.app.models.customer import Customer, CustomerAddress
from backend.app.schemas.customer import (
    CustomerAddressCreate,
    CustomerCreate,
    CustomerUpdate,
)
from backend.app.services.audit import log_action

logger = logging.getLogger(__name__)


def _get_customer(db: Session, customer_id: UUID) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _append_address(customer: Customer, data: CustomerAddressCreate) -> CustomerAddress:
    """Addresses are numbered 1, 2, ... per customer; at most one is primary."""
    position = max((a.position for a in customer.addresses), default=0) + 1
    is_primary = data.is_primary or not customer.addresses
    if is_primary:
        for existing in customer.addresses:
            existing.is_primary = False
    address = CustomerAddress(
        position=position,
        address=data.address,
        district=data.district,
        state=data.state,
        pincode=data.pincode,
        gst_number=data.gst_number,
        is_primary=is_primary,
    )
    customer.addresses.append(address)
    return address


def list_customers(db: Session, q: str | None = None, active_only: bool = False) -> list[dict]:
    query = db.query(Customer)
    if active_only:
        query = query.filter(Customer.is_active.is_(True))
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like))
        )
    return [_customer_to_dict(c) for c in query.order_by(Customer.name).all()]


def get_customer(db: Session, customer_id: UUID) -> dict:
    return _customer_to_dict(_get_customer(db, customer_id))


def create_customer(db: Session, *, data: CustomerCreate, ip_address: str | None = None) -> dict:
    customer = Customer(**data.model_dump(exclude={"addresses"}))
    for address in data.addresses:
        _append_address(customer, address)
    db.add(customer)
    db.flush()

    log_action(
        db,
        action="CUSTOMER_CREATED",
        resource_type="customers",
        resource_id=str(customer.id),
        ip_address=ip_address,
        changes={"name": customer.name, "addresses": len(data.addresses)},
    )
    db.commit()
    db.refresh(customer)
    return _customer_to_dict(customer)


def update_customer(
    db: Session, customer_id: UUID, *, data: CustomerUpdate, ip_address: str | None = None
) -> dict:
    customer = _get_customer(db, customer_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name", "") is None:
        changes.pop("name")
    for field, value in changes.items():
        setattr(customer, field, value)

    log_action(
        db,
        action="CUSTOMER_UPDATED",
        resource_type="customers",
        resource_id=str(customer.id),
        ip_address=ip_address,
        changes={k: str(v) for k, v in changes.items()},
    )
    db.commit()
    db.refresh(customer)
    return _customer_to_dict(customer)


def add_address(
    db: Session,
    customer_id: UUID,
    *,
    data: CustomerAddressCreate,
    ip_address: str | None = None,
) -> dict:
    customer = _get_customer(db, customer_id)
    address = _append_address(customer, data)
    db.flush()

    log_action(
        db,
        action="CUSTOMER_ADDRESS_ADDED",
        resource_type="customers",
        resource_id=str(customer.id),
        ip_address=ip_address,
        changes={"address_id": address.position, "state": address.state},
    )
    db.commit()
    db.refresh(customer)
    return _customer_to_dict(customer)


def _customer_to_dict(c: Customer) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "pan_number": c.pan_number,
        "gst_number": c.gst_number,
        "customer_type": c.customer_type,
        "notes": c.notes,
        "is_active": c.is_active,
        "created_at": c.created_at,
        "addresses": [
            {
                "id": a.position,
                "address": a.address,
                "district": a.district,
                "state": a.state,
                "pincode": a.pincode,
                "gst_number": a.gst_number,
                "is_primary": a.is_primary,
            }
            for a in c.addresses
        ],
    }
