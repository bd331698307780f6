from fastapi import APIRouter, Depends, UploadFile, File, status
from typing import Annotated

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.permissions import Actor
from app.api.deps import get_current_actor
from app.schemas.attachment import StoredFile
from app.services.storage_service import storage_service

router = APIRouter()


@router.post("", response_model=StoredFile, status_code=status.HTTP_201_CREATED)
async def upload_file(
    actor: Annotated[Actor, Depends(get_current_actor)],
    file: Annotated[UploadFile, File()],
):
    """Host an uploaded file and return the reference to put in ``files``"""
    mime_type = file.content_type or "application/octet-stream"
    if mime_type not in settings.ALLOWED_MIME_TYPES:
        raise ValidationError(f"Mime type not allowed: {mime_type}")

    data = await file.read()
    max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if len(data) > max_size:
        raise ValidationError(f"File too large. Max size: {settings.MAX_UPLOAD_SIZE_MB}MB")

    return storage_service.store(actor.id, file.filename or "upload", data, mime_type)
