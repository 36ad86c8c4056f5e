from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.models.amc import AMCType
from backend.app.schemas.amc import AMCQuotationCreate, AMCQuotationUpdate
from backend.app.schemas.quotes import QuotationListQuery, QuotationStatusUpdate
from backend.app.schemas.validation import validated_body, validated_query
from backend.app.services.amc_quotes import (
    create_amc_quotation,
    get_amc_quotation,
    list_amc_quotations,
    update_amc_quotation,
    update_amc_status,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_new_amc_quotation(
    request: Request,
    payload: AMCQuotationCreate = Depends(validated_body(AMCQuotationCreate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return create_amc_quotation(db, data=payload, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("")
def get_amc_quotations(
    amc_type: AMCType | None = Query(None, alias="amcType"),
    params: QuotationListQuery = Depends(validated_query(QuotationListQuery)),
    db: Session = Depends(get_db),
) -> dict:
    return list_amc_quotations(db, params, amc_type=amc_type)


@router.get("/{quotation_id}")
def get_single_amc_quotation(
    quotation_id: UUID,
    db: Session = Depends(get_db),
) -> dict:
    try:
        return get_amc_quotation(db, quotation_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.put("/{quotation_id}")
def put_amc_quotation(
    quotation_id: UUID,
    request: Request,
    payload: AMCQuotationUpdate = Depends(validated_body(AMCQuotationUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return update_amc_quotation(
            db, quotation_id, data=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{quotation_id}/status")
def patch_amc_status(
    quotation_id: UUID,
    request: Request,
    payload: QuotationStatusUpdate = Depends(validated_body(QuotationStatusUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return update_amc_status(db, quotation_id, payload.status, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
