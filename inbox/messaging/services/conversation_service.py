"""Conversation listing, creation and membership checks."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inbox.auth.models.user import User
from inbox.core.config import settings
from inbox.core.constants import (
    CONVERSATION_KINDS,
    MESSAGE_PREVIEW_MAX_LENGTH,
    NO_MESSAGES_PREVIEW,
)
from inbox.core.exceptions import ForbiddenError, NotFoundError
from inbox.messaging.models.conversation import Conversation
from inbox.messaging.models.conversation_participant import ConversationParticipant
from inbox.messaging.models.message import Message
from inbox.messaging.schemas.conversation import (
    ConversationCreate,
    ConversationListItem,
    ConversationListResponse,
    MessagePreview,
    matches_search,
)

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_conversations(
        self, user: User, search: str | None = None, seed_when_empty: bool = True
    ) -> ConversationListResponse:
        """Conversations the user participates in, in the order they were joined.

        A failed query yields an empty list. A user with no conversations at
        all gets the configured demo conversations.
        """
        try:
            conversations = self._query_user_conversations(user.id)
            if not conversations and seed_when_empty:
                conversations = self.seed_conversations(user)
            items = [self._build_list_item(conv) for conv in conversations]
        except SQLAlchemyError:
            logger.exception("Failed to load conversations for user %s", user.id)
            self.db.rollback()
            return ConversationListResponse(conversations=[], total=0)

        items = [item for item in items if matches_search(item, search)]
        return ConversationListResponse(conversations=items, total=len(items))

    def create_conversation(self, creator: User, data: ConversationCreate) -> ConversationListItem:
        member_ids = [creator.id]
        for participant_id in data.participant_ids:
            if participant_id not in member_ids:
                member_ids.append(participant_id)

        found = self.db.query(func.count(User.id)).filter(User.id.in_(member_ids)).scalar() or 0
        if found != len(member_ids):
            raise NotFoundError("One or more participants do not exist", resource="user")

        conversation = self._insert_conversation(data.name.strip(), data.kind, member_ids)
        self.db.commit()
        self.db.refresh(conversation)

        logger.info(
            "Conversation %s created by %s with %d participants",
            conversation.id,
            creator.id,
            len(member_ids),
        )
        return self._build_list_item(conversation)

    def seed_conversations(self, user: User) -> list[Conversation]:
        """Create the configured demo conversations for a user who has none."""
        fixtures = settings.demo_conversations
        if not fixtures:
            return []

        created = []
        for fixture in fixtures:
            kind = fixture.get("kind", "individual")
            if kind not in CONVERSATION_KINDS:
                kind = "individual"
            created.append(self._insert_conversation(str(fixture["name"])[:255], kind, [user.id]))
        self.db.commit()

        logger.info("Seeded %d demo conversations for user %s", len(created), user.id)
        return created

    def get_conversation(self, conversation_id: UUID) -> Conversation:
        conversation = (
            self.db.query(Conversation).filter(Conversation.id == conversation_id).first()
        )
        if not conversation:
            raise NotFoundError("Conversation not found", resource="conversation")
        return conversation

    def is_participant(self, conversation_id: UUID, user_id: UUID) -> bool:
        return (
            self.db.query(ConversationParticipant.id)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .first()
            is not None
        )

    def require_participant(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        conversation = self.get_conversation(conversation_id)
        if not self.is_participant(conversation_id, user_id):
            raise ForbiddenError("You are not a participant of this conversation")
        return conversation

    def _query_user_conversations(self, user_id: UUID) -> list[Conversation]:
        rows = (
            self.db.query(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .filter(ConversationParticipant.user_id == user_id)
            .order_by(ConversationParticipant.joined_at.asc(), Conversation.created_at.asc())
            .all()
        )
        return list(rows)

    def _insert_conversation(self, name: str, kind: str, member_ids: list[UUID]) -> Conversation:
        conversation = Conversation(name=name, kind=kind)
        self.db.add(conversation)
        self.db.flush()
        for member_id in member_ids:
            self.db.add(
                ConversationParticipant(conversation_id=conversation.id, user_id=member_id)
            )
        self.db.flush()
        return conversation

    def _build_list_item(self, conversation: Conversation) -> ConversationListItem:
        last_msg = (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation.id)
            .order_by(Message.created_at.desc())
            .first()
        )

        preview = None
        if last_msg:
            preview = MessagePreview(
                content=last_msg.content[:MESSAGE_PREVIEW_MAX_LENGTH],
                sender_name=last_msg.sender_name,
                created_at=last_msg.created_at,
            )

        return ConversationListItem(
            id=conversation.id,
            name=conversation.name,
            kind=conversation.kind,  # type: ignore[arg-type]
            created_at=conversation.created_at,
            last_message=preview,
            last_message_text=preview.content if preview else NO_MESSAGES_PREVIEW,
        )
