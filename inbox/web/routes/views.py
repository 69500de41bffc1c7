import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from inbox.auth.models.user import User
from inbox.auth.services.auth_service import (
    AuthError,
    AuthService,
    issue_session_tokens,
    revoke_refresh_token,
)
from inbox.auth.session import AuthSession
from inbox.core import security
from inbox.core.config import settings
from inbox.core.constants import (
    AUTH_ERROR_FALLBACK_MESSAGE,
    AUTH_ERROR_MESSAGES,
    CONFIRMATION_PENDING_MESSAGE,
)
from inbox.core.exceptions import AppError
from inbox.core.rate_limit import limiter
from inbox.db.session import get_db
from inbox.messaging.services.conversation_service import ConversationService
from inbox.messaging.services.message_service import MessageService
from inbox.web.gate import CHAT_PATH, LOGIN_PATH
from inbox.web.pages import render_auth_error, render_chat, render_login

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)


def auth_error_message(code: str | None) -> str:
    if code is None:
        return AUTH_ERROR_FALLBACK_MESSAGE
    return AUTH_ERROR_MESSAGES.get(code, AUTH_ERROR_FALLBACK_MESSAGE)


def _session(request: Request) -> AuthSession | None:
    return getattr(request.state, "session", None)


async def _signed_in_redirect(user: User, target: str = CHAT_PATH) -> RedirectResponse:
    access_token, refresh_token = await issue_session_tokens(user)
    response = RedirectResponse(url=target, status_code=303)
    security.set_auth_cookies(response, access_token, refresh_token)
    return response


def _signed_out_redirect() -> RedirectResponse:
    """Back to login, dropping cookies whose user is gone or deactivated."""
    response = RedirectResponse(url=LOGIN_PATH, status_code=303)
    security.clear_auth_cookies(response)
    return response


@router.get("/", response_class=HTMLResponse)
def login_view(mode: Literal["signin", "signup"] = "signin") -> HTMLResponse:
    return HTMLResponse(render_login(mode=mode))


@router.post("/", response_model=None)
@limiter.limit("10/minute")
async def submit_login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    mode: Literal["signin", "signup"] = Form("signin"),
    db: Session = Depends(get_db),
) -> HTMLResponse | RedirectResponse:
    service = AuthService(db)

    if mode == "signup":
        try:
            user = await service.sign_up(email, password)
        except AuthError as e:
            return HTMLResponse(
                render_login(e.message, mode=mode, email=email), status_code=e.status_code
            )
        if not settings.EMAIL_CONFIRMATION_REQUIRED:
            return await _signed_in_redirect(user)
        return HTMLResponse(render_login(CONFIRMATION_PENDING_MESSAGE, mode=mode, email=email))

    try:
        user = service.authenticate(email, password)
    except AuthError as e:
        return HTMLResponse(
            render_login(e.message, mode=mode, email=email), status_code=e.status_code
        )
    return await _signed_in_redirect(user)


@router.get("/chat", response_class=HTMLResponse, response_model=None)
def chat_view(
    request: Request,
    chat: UUID | None = None,
    q: str = Query("", max_length=100),
    db: Session = Depends(get_db),
) -> HTMLResponse | RedirectResponse:
    session = _session(request)
    user = AuthService(db).get_active_user(str(session.user_id)) if session else None
    if user is None:
        return _signed_out_redirect()

    listing = ConversationService(db).list_conversations(user, search=q or None)
    conversations = listing.conversations

    selected = next((c for c in conversations if c.id == chat), None)
    if selected is None and conversations:
        selected = conversations[0]

    messages = []
    if selected is not None:
        try:
            messages = MessageService(db).list_messages(selected.id, user.id).messages
        except AppError as e:
            logger.warning("Could not load messages for %s: %s", selected.id, e.message)

    return HTMLResponse(render_chat(session, conversations, selected, messages, q=q))


@router.post("/chat/{conversation_id}/messages")
async def submit_message(
    request: Request,
    conversation_id: UUID,
    content: str = Form(""),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    session = _session(request)
    user = AuthService(db).get_active_user(str(session.user_id)) if session else None
    if user is None:
        return _signed_out_redirect()

    if content.strip():
        try:
            await MessageService(db).send_message(conversation_id, user, content)
        except AppError as e:
            logger.warning("Message to %s not sent: %s", conversation_id, e.message)

    return RedirectResponse(url=f"{CHAT_PATH}?chat={conversation_id}", status_code=303)


@router.post("/logout")
async def logout_view(request: Request) -> RedirectResponse:
    refresh = request.cookies.get(security.REFRESH_COOKIE)
    if refresh:
        await revoke_refresh_token(refresh)
    response = RedirectResponse(url=LOGIN_PATH, status_code=303)
    security.clear_auth_cookies(response)
    return response


@router.get(settings.AUTH_CALLBACK_PATH)
async def auth_callback(
    token: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """Target of the emailed confirmation link."""
    if error:
        code = "access_denied" if error == "access_denied" else "auth_error"
        return RedirectResponse(url=f"/auth/error?error={code}", status_code=303)
    if not token:
        return RedirectResponse(url="/auth/error?error=auth_error", status_code=303)

    try:
        user = AuthService(db).confirm_email(token)
    except AuthError as e:
        logger.info("Email confirmation failed: %s", e.message)
        return RedirectResponse(url="/auth/error?error=auth_error", status_code=303)

    return await _signed_in_redirect(user)


@router.get("/auth/error", response_class=HTMLResponse)
def auth_error_view(error: str | None = None) -> HTMLResponse:
    return HTMLResponse(render_auth_error(auth_error_message(error)))
