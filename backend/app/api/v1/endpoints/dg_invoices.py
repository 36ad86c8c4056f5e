from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip, export_response
from backend.app.core.database import get_db
from backend.app.core.exceptions import NotFoundError
from backend.app.schemas.common import PaymentUpdate
from backend.app.schemas.dg_invoice import (
    DGInvoiceCreate,
    DGInvoiceExportQuery,
    DGInvoiceListQuery,
    DGInvoiceStatusUpdate,
    DGInvoiceUpdate,
)
from backend.app.schemas.validation import validated_body, validated_query
from backend.app.services import dg_invoice as invoice_service
from backend.app.services.audit import log_action
from backend.app.services.export_excel import export_dg_invoices_excel

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_dg_invoice(
    request: Request,
    payload: DGInvoiceCreate = Depends(validated_body(DGInvoiceCreate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return invoice_service.create_dg_invoice(db, data=payload, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("")
def list_dg_invoices(
    params: DGInvoiceListQuery = Depends(validated_query(DGInvoiceListQuery)),
    db: Session = Depends(get_db),
) -> dict:
    return invoice_service.list_dg_invoices(db, params)


@router.get("/export")
def export_dg_invoices(
    request: Request,
    params: DGInvoiceExportQuery = Depends(validated_query(DGInvoiceExportQuery)),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    rows = invoice_service.export_rows(db, params)
    buf = export_dg_invoices_excel(rows, params.model_dump(mode="json", by_alias=True))
    log_action(
        db,
        action="DG_INVOICES_EXPORTED",
        resource_type="dg_invoices",
        resource_id="export",
        ip_address=client_ip(request),
        changes={"rows": len(rows)},
    )
    db.commit()
    return export_response(buf, "dg-invoices")


@router.get("/{invoice_id}")
def get_dg_invoice(invoice_id: UUID, db: Session = Depends(get_db)) -> dict:
    try:
        return invoice_service.get_dg_invoice(db, invoice_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)


@router.put("/{invoice_id}")
def update_dg_invoice(
    invoice_id: UUID,
    request: Request,
    payload: DGInvoiceUpdate = Depends(validated_body(DGInvoiceUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return invoice_service.update_dg_invoice(
            db, invoice_id, data=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dg_invoice(
    invoice_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
) -> None:
    try:
        invoice_service.delete_dg_invoice(db, invoice_id, ip_address=client_ip(request))
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{invoice_id}/status")
def patch_dg_invoice_status(
    invoice_id: UUID,
    request: Request,
    payload: DGInvoiceStatusUpdate = Depends(validated_body(DGInvoiceStatusUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return invoice_service.update_dg_invoice_status(
            db, invoice_id, payload.status, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{invoice_id}/payment")
def patch_dg_invoice_payment(
    invoice_id: UUID,
    request: Request,
    payload: PaymentUpdate = Depends(validated_body(PaymentUpdate)),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return invoice_service.record_dg_invoice_payment(
            db, invoice_id, payment=payload, ip_address=client_ip(request)
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
