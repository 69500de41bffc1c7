"""
Database base module - imports all models for Alembic migration detection.

While the imports appear unused, they register every table on
``Base.metadata`` for autogenerate and for the test suite's ``create_all``.
"""

from inbox.auth.models.user import User
from inbox.db.session import Base
from inbox.messaging.models.conversation import Conversation
from inbox.messaging.models.conversation_participant import ConversationParticipant
from inbox.messaging.models.message import Message

__all__ = [
    "Base",
    "User",
    "Conversation",
    "ConversationParticipant",
    "Message",
]
