from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from backend.app.api.deps import client_ip
from backend.app.core.database import get_db
from backend.app.models.general_settings import GeneralSetting
from backend.app.schemas.general_settings import GeneralSettingsOut, GeneralSettingsUpdate
from backend.app.schemas.validation import validated_body
from backend.app.services.general_settings import (
    get_general_settings,
    update_general_settings,
)

router = APIRouter()


@router.get("", response_model=GeneralSettingsOut)
def read_general_settings(db: Session = Depends(get_db)) -> GeneralSetting:
    return get_general_settings(db)


@router.put("", response_model=GeneralSettingsOut)
def put_general_settings(
    request: Request,
    payload: GeneralSettingsUpdate = Depends(validated_body(GeneralSettingsUpdate)),
    db: Session = Depends(get_db),
) -> GeneralSetting:
    return update_general_settings(db, data=payload, ip_address=client_ip(request))
