from typing import Optional
from urllib.parse import quote
from uuid import uuid4
from minio import Minio
from minio.error import S3Error
import io
import logging

from app.core import clock
from app.core.config import settings
from app.core.errors import InternalError
from app.schemas.attachment import StoredFile

logger = logging.getLogger(__name__)


class StorageService:
    def __init__(self):
        self.client = Minio(
            settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        self.bucket = settings.MINIO_BUCKET
        self._bucket_ready = False

    def ensure_bucket(self):
        if self._bucket_ready:
            return
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)
        self._bucket_ready = True

    def build_storage_key(self, owner_id, filename: str) -> str:
        day = clock.utcnow().strftime("%Y/%m/%d")
        return f"{owner_id}/{day}/{uuid4()}/{filename}"

    def public_url(self, storage_key: str) -> str:
        base = settings.MINIO_PUBLIC_URL
        if not base:
            scheme = "https" if settings.MINIO_SECURE else "http"
            base = f"{scheme}://{settings.MINIO_ENDPOINT}"
        return f"{base.rstrip('/')}/{self.bucket}/{quote(storage_key)}"

    def upload_file(
        self,
        storage_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        self.client.put_object(
            self.bucket,
            storage_key,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    def store(
        self,
        owner_id,
        original_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> StoredFile:
        """Upload raw bytes and return the hosted reference attachments point to."""
        content_type = content_type or "application/octet-stream"
        storage_key = self.build_storage_key(owner_id, original_name)
        try:
            self.ensure_bucket()
            self.upload_file(storage_key, data, content_type)
        except S3Error as e:
            logger.error(f"Failed to store {original_name} for {owner_id}: {e}")
            raise InternalError("File storage is unavailable")

        return StoredFile(
            url=self.public_url(storage_key),
            filename=storage_key,
            original_name=original_name,
            mime_type=content_type,
            size_bytes=len(data),
        )


storage_service = StorageService()
