from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.models.inventory import Product, StockLocation, StockRack, StockRoom
from backend.app.schemas.inventory import (
    LocationCreate,
    LocationOut,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    RackCreate,
    RackOut,
    RoomCreate,
    RoomOut,
    StockAdjustment,
    StockOut,
    StockSummaryOut,
)
from backend.app.schemas.validation import validated_body
from backend.app.services import inventory as inventory_service

router = APIRouter()


# ─── Products ─────────────────────────────────────────────────────────────────


@router.get("/products", response_model=list[ProductOut])
def list_products(
    q: str | None = Query(None, description="Search by name, part no, category or brand"),
    category: str | None = Query(None),
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
) -> list[Product]:
    return inventory_service.search_products(
        db, q=q, category=category, active_only=not include_inactive
    )


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    request: Request,
    payload: ProductCreate = Depends(validated_body(ProductCreate)),
    db: Session = Depends(get_db),
) -> Product:
    try:
        return inventory_service.create_product(
            db, payload.model_dump(), ip_address=client_ip(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: UUID, db: Session = Depends(get_db)) -> Product:
    try:
        return inventory_service.get_product(db, product_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: UUID,
    request: Request,
    payload: ProductUpdate = Depends(validated_body(ProductUpdate)),
    db: Session = Depends(get_db),
) -> Product:
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    try:
        return inventory_service.update_product(
            db, product_id, changes, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


# ─── Locations / rooms / racks ────────────────────────────────────────────────


@router.get("/locations", response_model=list[LocationOut])
def list_locations(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
) -> list[StockLocation]:
    return inventory_service.list_locations(db, active_only=not include_inactive)


@router.get("/locations/default", response_model=LocationOut)
def get_default_location(db: Session = Depends(get_db)) -> StockLocation:
    location = inventory_service.default_location(db)
    if location is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No main office location configured"
        )
    return location


@router.post("/locations", response_model=LocationOut, status_code=status.HTTP_201_CREATED)
def create_location(
    request: Request,
    payload: LocationCreate = Depends(validated_body(LocationCreate)),
    db: Session = Depends(get_db),
) -> StockLocation:
    try:
        return inventory_service.create_location(
            db, payload.model_dump(), ip_address=client_ip(request)
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/locations/{location_id}/rooms", response_model=list[RoomOut])
def list_rooms(location_id: UUID, db: Session = Depends(get_db)) -> list[StockRoom]:
    return inventory_service.list_rooms(db, location_id)


@router.post(
    "/locations/{location_id}/rooms",
    response_model=RoomOut,
    status_code=status.HTTP_201_CREATED,
)
def create_room(
    location_id: UUID,
    payload: RoomCreate = Depends(validated_body(RoomCreate)),
    db: Session = Depends(get_db),
) -> StockRoom:
    try:
        return inventory_service.create_room(db, location_id, payload.name)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.get("/locations/{location_id}/rooms/{room_id}/racks", response_model=list[RackOut])
def list_racks(location_id: UUID, room_id: UUID, db: Session = Depends(get_db)) -> list[StockRack]:
    return inventory_service.list_racks(db, room_id)


@router.post(
    "/locations/{location_id}/rooms/{room_id}/racks",
    response_model=RackOut,
    status_code=status.HTTP_201_CREATED,
)
def create_rack(
    location_id: UUID,
    room_id: UUID,
    payload: RackCreate = Depends(validated_body(RackCreate)),
    db: Session = Depends(get_db),
) -> StockRack:
    try:
        return inventory_service.create_rack(db, location_id, room_id, payload.name)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


# ─── Stock ────────────────────────────────────────────────────────────────────


@router.get("/stock")
def list_stock(
    location: UUID | None = Query(None),
    product: UUID | None = Query(None),
    search: str | None = Query(None),
    low_stock: bool = Query(False, alias="lowStock"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> dict:
    result = inventory_service.list_stock(
        db,
        location_id=location,
        product_id=product,
        search=search,
        low_stock=low_stock,
        page=page,
        limit=limit,
    )
    result["data"] = [StockOut(**row).model_dump(mode="json") for row in result["data"]]
    return result


@router.get("/stock/summary", response_model=list[StockSummaryOut])
def stock_summary(
    location: UUID | None = Query(None),
    db: Session = Depends(get_db),
) -> list[dict]:
    return inventory_service.stock_summary(db, location_id=location)


@router.post("/stock/adjust", response_model=StockOut)
def adjust_stock(
    request: Request,
    payload: StockAdjustment = Depends(validated_body(StockAdjustment)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return inventory_service.adjust_stock(
            db,
            product_id=payload.product,
            location_id=payload.location,
            room_id=payload.room,
            rack_id=payload.rack,
            quantity=payload.quantity,
            reason=payload.reason,
            ip_address=client_ip(request),
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
