from typing import Literal

from pydantic import BaseModel

from inbox.messaging.schemas.message import MessageRecord

AttachmentKind = Literal["image", "video", "audio", "document"]


class AttachmentResponse(BaseModel):
    """Result of the attachment placeholder: only the descriptive message is kept."""

    file_name: str
    size_bytes: int
    kind: AttachmentKind
    message: MessageRecord
