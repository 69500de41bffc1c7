"""Local inbox view state held by a client.

Optimistic messages carry a ``client_id``. The confirmed row from the API
and the same row arriving over the realtime feed both reconcile against it,
so the sender never sees their own message twice.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Literal

from inbox.messaging.schemas.conversation import ConversationListItem, matches_search
from inbox.messaging.schemas.message import MessageRecord, MessageType

MessageStatus = Literal["pending", "confirmed", "failed"]


@dataclass(frozen=True)
class LocalMessage:
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    sender_name: str
    content: str
    created_at: datetime
    message_type: MessageType = "text"
    id: uuid.UUID | None = None
    client_id: str | None = None
    status: MessageStatus = "confirmed"

    @classmethod
    def from_record(cls, record: MessageRecord) -> "LocalMessage":
        return cls(
            id=record.id,
            conversation_id=record.conversation_id,
            sender_id=record.sender_id,
            sender_name=record.sender_name,
            content=record.content,
            message_type=record.message_type,
            client_id=record.client_id,
            created_at=record.created_at,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


@dataclass
class InboxState:
    conversations: list[ConversationListItem] = field(default_factory=list)
    selected_id: uuid.UUID | None = None
    messages: list[LocalMessage] = field(default_factory=list)

    @property
    def selected(self) -> ConversationListItem | None:
        return next((c for c in self.conversations if c.id == self.selected_id), None)

    def set_conversations(self, conversations: list[ConversationListItem]) -> None:
        self.conversations = list(conversations)

    def select(self, conversation_id: uuid.UUID | None) -> bool:
        """Switch the open conversation. Returns False when nothing changed."""
        if conversation_id == self.selected_id:
            return False
        self.selected_id = conversation_id
        self.messages = []
        return True

    def load_messages(self, records: list[MessageRecord]) -> None:
        self.messages = [
            LocalMessage.from_record(r) for r in records if r.conversation_id == self.selected_id
        ]

    def add_optimistic(
        self,
        content: str,
        sender_id: uuid.UUID,
        sender_name: str,
        message_type: MessageType = "text",
        client_id: str | None = None,
    ) -> LocalMessage:
        if self.selected_id is None:
            raise ValueError("No conversation selected")

        message = LocalMessage(
            conversation_id=self.selected_id,
            sender_id=sender_id,
            sender_name=sender_name,
            content=content,
            message_type=message_type,
            created_at=datetime.now(UTC),
            client_id=client_id or uuid.uuid4().hex,
            status="pending",
        )
        self.messages.append(message)
        return message

    def confirm(self, client_id: str, record: MessageRecord) -> LocalMessage:
        """Replace the optimistic copy with the stored row, keeping its position."""
        confirmed = LocalMessage.from_record(record)
        index = self._index_by_client_id(client_id)
        if index is None:
            self.apply_insert(record)
            return confirmed
        self.messages[index] = confirmed
        self._drop_duplicates_of(index)
        return confirmed

    def mark_failed(self, client_id: str) -> LocalMessage | None:
        """Flag a pending message as failed. None if it is no longer shown."""
        index = self._index_by_client_id(client_id)
        if index is None:
            return None
        if self.messages[index].is_pending:
            self.messages[index] = replace(self.messages[index], status="failed")
        return self.messages[index]

    def apply_insert(self, record: MessageRecord) -> bool:
        """Merge a row from the change feed. Returns True if the view changed."""
        if record.conversation_id != self.selected_id:
            return False

        incoming = LocalMessage.from_record(record)

        index = self._index_by_client_id(record.client_id) if record.client_id else None
        if index is None:
            index = next((i for i, m in enumerate(self.messages) if m.id == record.id), None)

        if index is None:
            self.messages.append(incoming)
            return True
        if self.messages[index] == incoming:
            return False
        self.messages[index] = incoming
        self._drop_duplicates_of(index)
        return True

    def filtered_conversations(self, query: str | None) -> list[ConversationListItem]:
        return [c for c in self.conversations if matches_search(c, query)]

    def _index_by_client_id(self, client_id: str | None) -> int | None:
        if client_id is None:
            return None
        for i, message in enumerate(self.messages):
            if message.client_id == client_id:
                return i
        return None

    def _drop_duplicates_of(self, index: int) -> None:
        kept = self.messages[index]
        self.messages = [
            m
            for i, m in enumerate(self.messages)
            if i == index or kept.id is None or m.id != kept.id
        ]
