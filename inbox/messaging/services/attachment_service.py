"""Attachment placeholder.

Uploads are measured and described, never stored: the conversation gets a
text message naming the file, tagged with the attachment kind.
"""

import logging
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy.orm import Session

from inbox.auth.models.user import User
from inbox.core.config import settings
from inbox.core.constants import (
    ATTACHMENT_DEFAULT_ICON,
    ATTACHMENT_ICONS,
    ATTACHMENT_KINDS,
    ATTACHMENT_PREFIX,
)
from inbox.core.exceptions import PayloadTooLargeError, ValidationError
from inbox.messaging.schemas.attachment import AttachmentResponse
from inbox.messaging.services.message_service import MessageService

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def infer_kind(content_type: str | None) -> str:
    major = (content_type or "").split("/", 1)[0].lower()
    if major in ("image", "video", "audio"):
        return major
    return "document"


def describe_attachment(file_name: str, size_bytes: int, kind: str) -> str:
    icon = ATTACHMENT_ICONS.get(kind, ATTACHMENT_DEFAULT_ICON)
    size_mb = size_bytes / 1024 / 1024
    return f"{ATTACHMENT_PREFIX} {icon} {file_name} ({size_mb:.2f} MB)"


async def measure_upload(upload: UploadFile, limit_bytes: int) -> int:
    """Count the upload's bytes without keeping them; stop once over the limit."""
    size = 0
    while chunk := await upload.read(_CHUNK_SIZE):
        size += len(chunk)
        if size > limit_bytes:
            raise PayloadTooLargeError(
                f"File size must be less than {settings.MAX_ATTACHMENT_SIZE_MB}MB",
                limit_mb=settings.MAX_ATTACHMENT_SIZE_MB,
            )
    return size


class AttachmentService:
    def __init__(self, db: Session) -> None:
        self.messages = MessageService(db)

    async def record_attachment(
        self,
        conversation_id: UUID,
        sender: User,
        upload: UploadFile,
        kind: str | None = None,
        client_id: str | None = None,
    ) -> AttachmentResponse:
        if kind is not None and kind not in ATTACHMENT_KINDS:
            raise ValidationError(f"Unsupported attachment kind: {kind}", field="kind")
        resolved_kind = kind or infer_kind(upload.content_type)

        self.messages.conversations.require_participant(conversation_id, sender.id)

        limit_bytes = settings.MAX_ATTACHMENT_SIZE_MB * 1024 * 1024
        size = await measure_upload(upload, limit_bytes)
        file_name = upload.filename or "file"

        record, _ = await self.messages.send_message(
            conversation_id,
            sender,
            describe_attachment(file_name, size, resolved_kind),
            client_id=client_id,
            message_type=resolved_kind,
        )
        logger.info(
            "Attachment placeholder %s (%d bytes, %s) in conversation %s",
            file_name,
            size,
            resolved_kind,
            conversation_id,
        )

        return AttachmentResponse(
            file_name=file_name,
            size_bytes=size,
            kind=resolved_kind,  # type: ignore[arg-type]
            message=record,
        )
