from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundError
from backend.app.models.inventory import (
    LocationType,
    Product,
    Stock,
    StockLocation,
    StockRack,
    StockRoom,
)
from backend.app.services.audit import log_action
from backend.app.services.paging import paginate

logger = logging.getLogger(__name__)


# ─── Products ─────────────────────────────────────────────────────────────────


def search_products(
    db: Session,
    *,
    q: str | None = None,
    category: str | None = None,
    active_only: bool = True,
) -> list[Product]:
    """Case-insensitive match on name, part number, category or brand."""
    query = db.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Product.name.ilike(like),
                Product.part_no.ilike(like),
                Product.category.ilike(like),
                Product.brand.ilike(like),
            )
        )
    return query.order_by(Product.name).all()


def get_product(db: Session, product_id: UUID) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def create_product(db: Session, data: dict, ip_address: str | None = None) -> Product:
    if db.query(Product).filter(Product.part_no == data["part_no"]).first():
        raise ValueError(f"Part number '{data['part_no']}' already exists")

    product = Product(**data)
    db.add(product)
    db.flush()

    log_action(
        db,
        action="PRODUCT_CREATED",
        resource_type="products",
        resource_id=str(product.id),
        ip_address=ip_address,
        changes={"name": product.name, "part_no": product.part_no},
    )
    db.commit()
    db.refresh(product)
    return product


def update_product(
    db: Session, product_id: UUID, changes: dict, ip_address: str | None = None
) -> Product:
    product = get_product(db, product_id)
    for field, value in changes.items():
        setattr(product, field, value)

    log_action(
        db,
        action="PRODUCT_UPDATED",
        resource_type="products",
        resource_id=str(product.id),
        ip_address=ip_address,
        changes={k: str(v) for k, v in changes.items()},
    )
    db.commit()
    db.refresh(product)
    return product


# ─── Locations ────────────────────────────────────────────────────────────────


def list_locations(db: Session, *, active_only: bool = True) -> list[StockLocation]:
    query = db.query(StockLocation)
    if active_only:
        query = query.filter(StockLocation.is_active.is_(True))
    return query.order_by(StockLocation.name).all()


def get_location(db: Session, location_id: UUID) -> StockLocation:
    location = db.query(StockLocation).filter(StockLocation.id == location_id).first()
    if not location:
        raise NotFoundError("Location not found")
    return location


def default_location(db: Session) -> StockLocation | None:
    """The active main office named after the configured default, else any main office."""
    base = db.query(StockLocation).filter(
        StockLocation.is_active.is_(True),
        StockLocation.type == LocationType.MAIN_OFFICE,
    )
    named = base.filter(StockLocation.name == settings.DEFAULT_LOCATION_NAME).first()
    return named or base.order_by(StockLocation.name).first()


def create_location(db: Session, data: dict, ip_address: str | None = None) -> StockLocation:
    if db.query(StockLocation).filter(StockLocation.name == data["name"]).first():
        raise ValueError(f"Location '{data['name']}' already exists")

    location = StockLocation(**data)
    db.add(location)
    db.flush()

    log_action(
        db,
        action="LOCATION_CREATED",
        resource_type="stock_locations",
        resource_id=str(location.id),
        ip_address=ip_address,
        changes={"name": location.name, "type": location.type.value},
    )
    db.commit()
    db.refresh(location)
    return location


def create_room(db: Session, location_id: UUID, name: str) -> StockRoom:
    get_location(db, location_id)
    room = StockRoom(location_id=location_id, name=name)
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def list_rooms(db: Session, location_id: UUID) -> list[StockRoom]:
    return (
        db.query(StockRoom)
        .filter(StockRoom.location_id == location_id)
        .order_by(StockRoom.name)
        .all()
    )


def create_rack(db: Session, location_id: UUID, room_id: UUID, name: str) -> StockRack:
    room = db.query(StockRoom).filter(StockRoom.id == room_id).first()
    if not room or room.location_id != location_id:
        raise NotFoundError("Room not found at this location")
    rack = StockRack(location_id=location_id, room_id=room_id, name=name)
    db.add(rack)
    db.commit()
    db.refresh(rack)
    return rack


def list_racks(db: Session, room_id: UUID) -> list[StockRack]:
    return (
        db.query(StockRack)
        .filter(StockRack.room_id == room_id)
        .order_by(StockRack.name)
        .all()
    )


# ─── Stock ────────────────────────────────────────────────────────────────────


def _stock_to_dict(s: Stock) -> dict:
    return {
        "id": s.id,
        "product_id": s.product_id,
        "product_name": s.product.name,
        "part_no": s.product.part_no,
        "location_id": s.location_id,
        "location_name": s.location.name,
        "room_name": s.room.name if s.room else None,
        "rack_name": s.rack.name if s.rack else None,
        "quantity": s.quantity,
        "reserved_quantity": s.reserved_quantity,
        "available_quantity": s.available_quantity,
        "min_stock_level": s.product.min_stock_level,
    }


def list_stock(
    db: Session,
    *,
    location_id: UUID | None = None,
    product_id: UUID | None = None,
    search: str | None = None,
    low_stock: bool = False,
    page: int = 1,
    limit: int = 50,
) -> dict:
    """Paged stock rows, one per product/location/room/rack slot."""
    query = db.query(Stock).join(Product, Stock.product_id == Product.id)
    if location_id:
        query = query.filter(Stock.location_id == location_id)
    if product_id:
        query = query.filter(Stock.product_id == product_id)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.part_no.ilike(like)))
    if low_stock:
        query = query.filter(Stock.available_quantity <= Product.min_stock_level)

    rows, meta = paginate(query.order_by(Product.name), page, limit)
    return {"data": [_stock_to_dict(s) for s in rows], "pagination": meta}


def stock_summary(db: Session, *, location_id: UUID | None = None) -> list[dict]:
    """Total / reserved / available quantity per product, summed over slots."""
    query = (
        db.query(
            Product.id,
            Product.name,
            Product.part_no,
            func.coalesce(func.sum(Stock.quantity), 0),
            func.coalesce(func.sum(Stock.reserved_quantity), 0),
            func.coalesce(func.sum(Stock.available_quantity), 0),
        )
        .join(Stock, Stock.product_id == Product.id)
        .group_by(Product.id, Product.name, Product.part_no)
    )
    if location_id:
        query = query.filter(Stock.location_id == location_id)

    return [
        {
            "product_id": pid,
            "product_name": name,
            "part_no": part_no,
            "location_id": location_id,
            "total_quantity": int(total),
            "reserved_quantity": int(reserved),
            "available_quantity": int(available),
        }
        for pid, name, part_no, total, reserved, available in query.order_by(Product.name).all()
    ]


def available_quantity(db: Session, product_id: UUID, location_id: UUID) -> int:
    total = (
        db.query(func.coalesce(func.sum(Stock.available_quantity), 0))
        .filter(Stock.product_id == product_id, Stock.location_id == location_id)
        .scalar()
    )
    return int(total or 0)


def adjust_stock(
    db: Session,
    *,
    product_id: UUID,
    location_id: UUID,
    room_id: UUID | None,
    rack_id: UUID | None,
    quantity: int,
    reason: str | None = None,
    ip_address: str | None = None,
) -> dict:
    """Add (positive) or remove (negative) stock at one slot."""
    if quantity == 0:
        raise ValueError("Adjustment quantity cannot be zero")
    product = get_product(db, product_id)
    get_location(db, location_id)

    stock = (
        db.query(Stock)
        .filter(
            Stock.product_id == product_id,
            Stock.location_id == location_id,
            Stock.room_id.is_(None) if room_id is None else Stock.room_id == room_id,
            Stock.rack_id.is_(None) if rack_id is None else Stock.rack_id == rack_id,
        )
        .first()
    )
    if stock is None:
        stock = Stock(
            product_id=product_id,
            location_id=location_id,
            room_id=room_id,
            rack_id=rack_id,
            quantity=0,
            reserved_quantity=0,
            available_quantity=0,
        )
        db.add(stock)

    new_quantity = stock.quantity + quantity
    if new_quantity < 0:
        raise ValueError(
            f"Insufficient stock for {product.name}: "
            f"have {stock.quantity}, cannot remove {-quantity}"
        )
    stock.quantity = new_quantity
    stock.recompute_available()
    db.flush()

    log_action(
        db,
        action="STOCK_ADJUSTED",
        resource_type="stock",
        resource_id=str(stock.id),
        ip_address=ip_address,
        changes={
            "product": product.part_no,
            "quantity": quantity,
            "new_quantity": new_quantity,
            "reason": reason,
        },
    )
    db.commit()
    db.refresh(stock)
    logger.info("Stock for %s adjusted by %d to %d", product.part_no, quantity, new_quantity)
    return _stock_to_dict(stock)
