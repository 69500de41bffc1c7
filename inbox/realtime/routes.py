import asyncio
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, WebSocket, status
from sqlalchemy.orm import Session, sessionmaker

from inbox.auth.session import session_from_connection
from inbox.db.session import get_session_factory
from inbox.messaging.services.conversation_service import ConversationService
from inbox.realtime.connection import RealtimeConnection
from inbox.realtime.feed import change_feed

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/realtime")
async def realtime(
    websocket: WebSocket,
    sessions: sessionmaker[Session] = Depends(get_session_factory),
) -> None:
    session = session_from_connection(websocket)
    if session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = session.user_id

    # Short-lived session per check
    def is_participant(conversation_id: UUID) -> bool:
        with sessions() as db:
            return ConversationService(db).is_participant(conversation_id, user_id)

    async def can_access(conversation_id: UUID) -> bool:
        return await asyncio.to_thread(is_participant, conversation_id)

    await websocket.accept()
    connection = RealtimeConnection(websocket, session, change_feed, can_access)
    logger.info("realtime_connected", user_id=str(user_id))
    try:
        await connection.run()
    finally:
        logger.info("realtime_disconnected", user_id=str(user_id))
