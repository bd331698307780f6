from typing import Iterable, Optional
import logging

from app.models.enums import AttachmentType
from app.schemas.attachment import Attachment, AttachmentIn, StoredFile

logger = logging.getLogger(__name__)

INLINE_TYPES = {AttachmentType.TEXT.value, AttachmentType.LINK.value}
HOSTED_TYPES = {AttachmentType.IMAGE.value, AttachmentType.FILE.value}


class AttachmentService:
    """Turns uploaded file references and inline declarations into one
    ordered attachment list. Uploaded files come first, then declarations
    in the order they were sent."""

    def from_file(self, stored: StoredFile) -> Attachment:
        kind = AttachmentType.IMAGE if stored.mime_type.startswith("image/") else AttachmentType.FILE
        return Attachment(
            type=kind,
            content=stored.url,
            filename=stored.filename,
            original_name=stored.original_name,
        )

    def from_declaration(self, item: AttachmentIn) -> Optional[Attachment]:
        kind = (item.type or "").strip().lower()
        content = item.content or ""

        if not content.strip():
            return None

        if kind in INLINE_TYPES:
            return Attachment(type=AttachmentType(kind), content=content)

        # Previously uploaded files may be re-sent as-is; raw data: payloads are not hosted
        if kind in HOSTED_TYPES and content.startswith(("http://", "https://")):
            return Attachment(
                type=AttachmentType(kind),
                content=content,
                filename=item.filename,
                original_name=item.original_name,
            )

        return None

    def normalize(
        self,
        files: Optional[Iterable[StoredFile]] = None,
        declarations: Optional[Iterable[AttachmentIn]] = None,
    ) -> list[Attachment]:
        attachments = [self.from_file(stored) for stored in files or []]

        for item in declarations or []:
            attachment = self.from_declaration(item)
            if attachment is None:
                logger.debug(f"Dropping unrecognized attachment declaration of type {item.type!r}")
                continue
            attachments.append(attachment)

        return attachments

    def to_column(self, attachments: list[Attachment]) -> list[dict]:
        return [a.model_dump(mode="json", exclude_none=True) for a in attachments]


attachment_service = AttachmentService()
