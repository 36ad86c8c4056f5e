from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.schemas.customer import (
    CustomerAddressCreate,
    CustomerCreate,
    CustomerOut,
    CustomerUpdate,
)
from backend.app.schemas.validation import validated_body
from backend.app.services import customers as customer_service

router = APIRouter()


@router.get("", response_model=list[CustomerOut])
def list_customers(
    q: str | None = Query(None, description="Search by name, email, or phone"),
    active: bool = Query(False, description="Only active customers"),
    db: Session = Depends(get_db),
) -> list[dict]:
    return customer_service.list_customers(db, q=q, active_only=active)


@router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    request: Request,
    payload: CustomerCreate = Depends(validated_body(CustomerCreate)),
    db: Session = Depends(get_db),
) -> dict:
    return customer_service.create_customer(db, data=payload, ip_address=client_ip(request))


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
) -> dict:
    try:
        return customer_service.get_customer(db, customer_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: UUID,
    request: Request,
    payload: CustomerUpdate = Depends(validated_body(CustomerUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return customer_service.update_customer(
            db, customer_id, data=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.post(
    "/{customer_id}/addresses",
    response_model=CustomerOut,
    status_code=status.HTTP_201_CREATED,
)
def add_customer_address(
    customer_id: UUID,
    request: Request,
    payload: CustomerAddressCreate = Depends(validated_body(CustomerAddressCreate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return customer_service.add_address(
            db, customer_id, data=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
