from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Request
from fastapi.responses import StreamingResponse

from backend.app.services.file_service import FileStorageService

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def client_ip(request: Request) -> str | None:
    """Caller address recorded on audit rows."""
    return request.client.host if request.client else None


def get_file_storage() -> FileStorageService:
    return FileStorageService()


def export_response(buf: Any, stem: str) -> StreamingResponse:
    """Spreadsheet download named ``<stem>-<today>.xlsx``."""
    filename = f"{stem}-{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        buf,
        media_type=XLSX_MIME,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
