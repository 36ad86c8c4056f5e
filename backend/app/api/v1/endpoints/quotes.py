from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.quotes import (
    QuotationCreate,
    QuotationListQuery,
    QuotationStatusUpdate,
    QuotationUpdate,
    TotalsRequest,
)
from backend.app.schemas.validation import validated_body, validated_query
from backend.app.services.quotes import (
    create_quotation,
    get_quotation,
    list_quotations,
    preview_totals,
    record_quotation_payment,
    update_quotation,
    update_quotation_status,
)

router = APIRouter()


@router.post("/calculate")
def calculate_quotation_totals(
    payload: TotalsRequest = Depends(validated_body(TotalsRequest)),
) -> dict:
    """Totals for the lines as currently entered; nothing is saved."""
    return preview_totals(payload)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_new_quotation(
    request: Request,
    payload: QuotationCreate = Depends(validated_body(QuotationCreate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return create_quotation(db, data=payload, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("")
def get_quotations(
    params: QuotationListQuery = Depends(validated_query(QuotationListQuery)),
    db: Session = Depends(get_db),
) -> dict:
    return list_quotations(db, params)


@router.get("/{quotation_id}")
def get_single_quotation(
    quotation_id: UUID,
    db: Session = Depends(get_db),
) -> dict:
    try:
        return get_quotation(db, quotation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.put("/{quotation_id}")
def put_quotation(
    quotation_id: UUID,
    request: Request,
    payload: QuotationUpdate = Depends(validated_body(QuotationUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return update_quotation(db, quotation_id, data=payload, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{quotation_id}/status")
def patch_quotation_status(
    quotation_id: UUID,
    request: Request,
    payload: QuotationStatusUpdate = Depends(validated_body(QuotationStatusUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return update_quotation_status(
            db, quotation_id, payload.status, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{quotation_id}/payment")
def patch_quotation_payment(
    quotation_id: UUID,
    request: Request,
    payload: PaymentUpdate = Depends(validated_body(PaymentUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return record_quotation_payment(
            db, quotation_id, payment=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
