from __future__ import annotations

import logging
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy.orm import Session

from backend.app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    *,
    action: str,
    resource_type: str,
    resource_id: Any,
    changes: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> None:
    """Stage an audit row in the caller's transaction; the caller commits.

    ``changes`` may carry Decimals, dates, UUIDs or enums; they are stored
    in their JSON form.
    """
    values = to_jsonable_python(changes) if changes is not None else None
    db.add(
        AuditLog(
            resource_type=resource_type,
            record_id=str(resource_id),
            action=action,
            new_values=values,
            ip_address=ip_address,
        )
    )
    logger.info("%s %s/%s", action, resource_type, resource_id)
