from pydantic import BaseModel
from typing import Optional

from app.models.enums import AttachmentType


class AttachmentIn(BaseModel):
    """Inline attachment declaration as sent by a client.

    ``type`` is deliberately a plain string: declarations of an unknown
    kind are dropped during normalization instead of failing the request.
    """
    type: str
    content: str = ""
    filename: Optional[str] = None
    original_name: Optional[str] = None


class StoredFile(BaseModel):
    """Reference to a file already hosted by the storage service."""
    url: str
    filename: str
    original_name: str
    mime_type: str
    size_bytes: Optional[int] = None


class Attachment(BaseModel):
    type: AttachmentType
    content: str
    filename: Optional[str] = None
    original_name: Optional[str] = None

    class Config:
        from_attributes = True
