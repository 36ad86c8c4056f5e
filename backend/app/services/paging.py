from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Query


def paginate(query: Query, page: int, limit: int) -> tuple[list[Any], dict]:
    """Return one page of *query* plus the pagination block sent to clients."""
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    meta = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }
    return rows, meta
