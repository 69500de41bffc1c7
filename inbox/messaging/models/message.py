import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inbox.core.datetime_utils import utcnow
from inbox.db.session import Base


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        # NULLs are distinct, so messages sent without a correlation id never collide
        UniqueConstraint("sender_id", "client_id", name="uq_messages_sender_client_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE")
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    sender_name: Mapped[str] = mapped_column(String(255))

    content: Mapped[str] = mapped_column(Text)
    # "text", or the attachment kind for placeholder file messages
    message_type: Mapped[str] = mapped_column(String(20), default="text")
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")
