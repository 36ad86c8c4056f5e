from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.models.general_settings import GeneralSetting
from backend.app.schemas.general_settings import GeneralSettingsUpdate
from backend.app.services.audit import log_action

logger = logging.getLogger(__name__)


def get_general_settings(db: Session) -> GeneralSetting:
    """Return the company profile, creating it from configured defaults on first use."""
    row = db.query(GeneralSetting).first()
    if row is None:
        row = GeneralSetting(
            company_name=settings.COMPANY_NAME,
            company_address=settings.COMPANY_ADDRESS or None,
            company_phone=settings.COMPANY_PHONE or None,
            company_email=settings.COMPANY_EMAIL or None,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("Created default general settings for %s", row.company_name)
    return row


def update_general_settings(
    db: Session,
    *,
    data: GeneralSettingsUpdate,
    ip_address: str | None = None,
) -> GeneralSetting:
    row = get_general_settings(db)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("company_name") is None:
        changes.pop("company_name", None)
    for field, value in changes.items():
        setattr(row, field, value)

    log_action(
        db,
        action="GENERAL_SETTINGS_UPDATED",
        resource_type="general_settings",
        resource_id=str(row.id),
        ip_address=ip_address,
        changes=changes,
    )
    db.commit()
    db.refresh(row)
    return row
