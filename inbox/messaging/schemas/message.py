from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from inbox.core.constants import MESSAGE_MAX_LENGTH
from inbox.core.datetime_utils import UTCDatetime

MessageType = Literal["text", "image", "video", "audio", "document"]


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    # Client-generated correlation id; resending the same id is a no-op
    client_id: str | None = Field(None, min_length=1, max_length=64)


class MessageRecord(BaseModel):
    """A message row as returned by queries and pushed on the change feed."""

    id: UUID
    conversation_id: UUID
    sender_id: UUID
    sender_name: str
    content: str
    message_type: MessageType = "text"
    client_id: str | None = None
    created_at: UTCDatetime

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    messages: list[MessageRecord]
    total: int
