from inbox.messaging.models.conversation import Conversation
from inbox.messaging.models.conversation_participant import ConversationParticipant
from inbox.messaging.models.message import Message

__all__ = ["Conversation", "ConversationParticipant", "Message"]
