"""Diagnostics for development: what the database holds for the current user.

Only mounted when ``DEBUG`` is on.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox.auth.dependencies import get_current_user
from inbox.auth.models.user import User
from inbox.auth.schemas.user import build_user_response
from inbox.db.session import get_db
from inbox.messaging.models.conversation_participant import ConversationParticipant
from inbox.messaging.models.message import Message
from inbox.messaging.schemas.conversation import ConversationCreate, ConversationListItem
from inbox.messaging.services.conversation_service import ConversationService
from inbox.messaging.services.message_service import to_record

router = APIRouter()


@router.get("/snapshot")
def snapshot(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    conversations = ConversationService(db).list_conversations(
        current_user, seed_when_empty=False
    )
    conversation_ids = [c.id for c in conversations.conversations]

    participants = (
        db.query(ConversationParticipant)
        .filter(ConversationParticipant.conversation_id.in_(conversation_ids))
        .order_by(ConversationParticipant.joined_at)
        .all()
    )
    messages = (
        db.query(Message)
        .filter(Message.conversation_id.in_(conversation_ids))
        .order_by(Message.created_at)
        .all()
    )

    return {
        "user": build_user_response(current_user).model_dump(),
        "conversations": [c.model_dump(mode="json") for c in conversations.conversations],
        "participants": [
            {
                "id": str(p.id),
                "conversation_id": str(p.conversation_id),
                "user_id": str(p.user_id),
                "joined_at": p.joined_at.isoformat(),
            }
            for p in participants
        ],
        "messages": [to_record(m).model_dump(mode="json") for m in messages],
    }


@router.post("/test-conversation", response_model=ConversationListItem, status_code=201)
def create_test_conversation(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConversationListItem:
    stamp = int(datetime.now(UTC).timestamp() * 1000)
    data = ConversationCreate(name=f"Test Chat {stamp}", kind="individual")
    return ConversationService(db).create_conversation(current_user, data)
