from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip, export_response
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.po_from_customer import (
    POCreate,
    POExportQuery,
    POListQuery,
    POStatusUpdate,
    POUpdate,
)
from backend.app.schemas.validation import validated_body, validated_query
from backend.app.services import po_from_customer as po_service
from backend.app.services.audit import log_action
from backend.app.services.export_excel import export_pos_excel

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_po(
    request: Request,
    payload: POCreate = Depends(validated_body(POCreate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return po_service.create_po(db, data=payload, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("")
def list_pos(
    params: POListQuery = Depends(validated_query(POListQuery)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return po_service.list_pos(db, params)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/export")
def export_pos(
    request: Request,
    params: POExportQuery = Depends(validated_query(POExportQuery)),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    rows = po_service.export_rows(db, params)
    buf = export_pos_excel(rows, params.model_dump(mode="json", by_alias=True))
    log_action(
        db,
        action="PO_FROM_CUSTOMERS_EXPORTED",
        resource_type="dg_po_from_customers",
        resource_id="export",
        ip_address=client_ip(request),
        changes={"rows": len(rows)},
    )
    db.commit()
    return export_response(buf, "dg-purchase-orders")


@router.get("/{po_id}")
def get_po(po_id: UUID, db: Session = Depends(get_db)) -> dict:
    try:
        return po_service.get_po(db, po_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.put("/{po_id}")
def update_po(
    po_id: UUID,
    request: Request,
    payload: POUpdate = Depends(validated_body(POUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return po_service.update_po(db, po_id, data=payload, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{po_id}/status")
def patch_po_status(
    po_id: UUID,
    request: Request,
    payload: POStatusUpdate = Depends(validated_body(POStatusUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return po_service.transition_po_status(
            db, po_id, payload.status, notes=payload.notes, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{po_id}/payment")
def patch_po_payment(
    po_id: UUID,
    request: Request,
    payload: PaymentUpdate = Depends(validated_body(PaymentUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return po_service.record_po_payment(
            db, po_id, payment=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
