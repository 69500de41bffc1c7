import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inbox.auth.models.user import User
from inbox.core.exceptions import ConflictError, ValidationError
from inbox.messaging.models.message import Message
from inbox.messaging.schemas.message import MessageListResponse, MessageRecord
from inbox.messaging.services.conversation_service import ConversationService
from inbox.realtime.feed import ChangeEvent, ChangeFeed, change_feed

logger = logging.getLogger(__name__)


def to_record(message: Message) -> MessageRecord:
    return MessageRecord.model_validate(message)


class MessageService:
    def __init__(self, db: Session, feed: ChangeFeed | None = None) -> None:
        self.db = db
        self.feed = feed or change_feed
        self.conversations = ConversationService(db)

    def list_messages(self, conversation_id: UUID, user_id: UUID) -> MessageListResponse:
        """All messages of a conversation, oldest first.

        Membership is checked first and its errors propagate; a failed message
        query yields an empty list.
        """
        self.conversations.require_participant(conversation_id, user_id)

        try:
            messages = (
                self.db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Failed to load messages for conversation %s", conversation_id)
            self.db.rollback()
            return MessageListResponse(messages=[], total=0)

        records = [to_record(m) for m in messages]
        return MessageListResponse(messages=records, total=len(records))

    async def send_message(
        self,
        conversation_id: UUID,
        sender: User,
        content: str,
        client_id: str | None = None,
        message_type: str = "text",
    ) -> tuple[MessageRecord, bool]:
        """Insert a message and announce it on the change feed.

        Returns the stored record and whether it was newly created. Sending
        again with the same ``client_id`` returns the stored row and
        publishes nothing.
        """
        text = content.strip()
        if not text:
            raise ValidationError("Message content cannot be empty", field="content")

        self.conversations.require_participant(conversation_id, sender.id)

        if client_id:
            existing = self._find_by_client_id(sender.id, client_id)
            if existing is not None:
                return self._check_same_conversation(existing, conversation_id), False

        message = Message(
            conversation_id=conversation_id,
            sender_id=sender.id,
            sender_name=sender.display_name,
            content=text,
            message_type=message_type,
            client_id=client_id,
        )
        self.db.add(message)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent retry of the same client_id
            self.db.rollback()
            existing = self._find_by_client_id(sender.id, client_id) if client_id else None
            if existing is None:
                raise
            return self._check_same_conversation(existing, conversation_id), False
        self.db.refresh(message)

        record = to_record(message)
        delivered = await self.feed.publish(
            ChangeEvent(conversation_id=conversation_id, record=record.model_dump(mode="json"))
        )
        logger.info(
            "Message %s sent to conversation %s (type=%s, local_subscribers=%d)",
            record.id,
            conversation_id,
            message_type,
            delivered,
        )
        return record, True

    def _find_by_client_id(self, sender_id: UUID, client_id: str) -> Message | None:
        return (
            self.db.query(Message)
            .filter(Message.sender_id == sender_id, Message.client_id == client_id)
            .first()
        )

    @staticmethod
    def _check_same_conversation(message: Message, conversation_id: UUID) -> MessageRecord:
        if message.conversation_id != conversation_id:
            raise ConflictError(
                "client_id was already used in another conversation", resource="message"
            )
        return to_record(message)
