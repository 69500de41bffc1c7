from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from inbox.core.datetime_utils import UTCDatetime

ConversationKind = Literal["individual", "group"]


class ConversationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    kind: ConversationKind = "individual"
    participant_ids: list[UUID] = Field(default_factory=list, max_length=256)


class MessagePreview(BaseModel):
    content: str
    sender_name: str
    created_at: UTCDatetime


class ConversationListItem(BaseModel):
    id: UUID
    name: str
    kind: ConversationKind
    created_at: UTCDatetime
    last_message: MessagePreview | None = None
    # Preview text for the sidebar, a placeholder when there are no messages
    last_message_text: str

    class Config:
        from_attributes = True


class ConversationListResponse(BaseModel):
    conversations: list[ConversationListItem]
    total: int


def matches_search(item: ConversationListItem, search: str | None) -> bool:
    """Case-insensitive match on the conversation name or its last message."""
    if not search:
        return True
    needle = search.strip().lower()
    return needle in item.name.lower() or needle in item.last_message_text.lower()
