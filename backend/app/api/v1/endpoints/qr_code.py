from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from backend.app.api.deps import get_file_storage
from backend.app.core.config import settings
from backend.app.schemas.general_settings import QRCodeUploadOut
from backend.app.services.file_service import FileStorageService

router = APIRouter()


@router.post("/upload", response_model=QRCodeUploadOut, status_code=status.HTTP_201_CREATED)
async def upload_qr_code(
    file: UploadFile = File(...),
    storage: FileStorageService = Depends(get_file_storage),
) -> dict:
    # At most one byte past the limit is read
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    try:
        return storage.save_qr_image(file.filename, file.content_type, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
