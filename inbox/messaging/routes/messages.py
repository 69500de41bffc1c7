from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from inbox.auth.dependencies import get_current_user
from inbox.auth.models.user import User
from inbox.db.session import get_db
from inbox.messaging.schemas.attachment import AttachmentKind, AttachmentResponse
from inbox.messaging.schemas.conversation import (
    ConversationCreate,
    ConversationListItem,
    ConversationListResponse,
)
from inbox.messaging.schemas.message import MessageCreate, MessageListResponse, MessageRecord
from inbox.messaging.services.attachment_service import AttachmentService
from inbox.messaging.services.conversation_service import ConversationService
from inbox.messaging.services.message_service import MessageService

router = APIRouter()


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    search: str | None = Query(None, max_length=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConversationListResponse:
    service = ConversationService(db)
    return service.list_conversations(current_user, search=search)


@router.post("/conversations", response_model=ConversationListItem, status_code=201)
def create_conversation(
    data: ConversationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConversationListItem:
    service = ConversationService(db)
    return service.create_conversation(current_user, data)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
def list_messages(
    conversation_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageListResponse:
    service = MessageService(db)
    return service.list_messages(conversation_id, current_user.id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageRecord,
    status_code=201,
)
async def send_message(
    conversation_id: UUID,
    data: MessageCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageRecord:
    service = MessageService(db)
    record, created = await service.send_message(
        conversation_id, current_user, data.content, client_id=data.client_id
    )
    if not created:
        response.status_code = 200
    return record


@router.post(
    "/conversations/{conversation_id}/attachments",
    response_model=AttachmentResponse,
    status_code=201,
)
async def upload_attachment(
    conversation_id: UUID,
    file: UploadFile = File(...),
    kind: AttachmentKind | None = Form(None),
    client_id: str | None = Form(None, max_length=64),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AttachmentResponse:
    service = AttachmentService(db)
    return await service.record_attachment(
        conversation_id, current_user, file, kind=kind, client_id=client_id
    )
