import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from inbox.auth.dependencies import (
    get_current_user,
    get_optional_session,
    get_refresh_token_from_cookie,
)
from inbox.auth.models.user import User
from inbox.auth.schemas.auth import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RefreshResponse,
    SessionInfo,
    SessionResponse,
    SignUpRequest,
    SignUpResponse,
)
from inbox.auth.schemas.user import UserResponse, build_user_response
from inbox.auth.services.auth_service import (
    AuthError,
    AuthService,
    is_refresh_token_live,
    issue_session_tokens,
    revoke_refresh_token,
)
from inbox.auth.session import AuthSession
from inbox.core import security
from inbox.core.config import settings
from inbox.core.constants import CONFIRMATION_PENDING_MESSAGE
from inbox.core.rate_limit import limiter
from inbox.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/signup", response_model=SignUpResponse, status_code=201)
@limiter.limit("5/minute")
async def sign_up(
    request: Request,
    data: SignUpRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> SignUpResponse:
    service = AuthService(db)
    try:
        user = await service.sign_up(data.email, data.password, data.full_name)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    if settings.EMAIL_CONFIRMATION_REQUIRED:
        return SignUpResponse(message=CONFIRMATION_PENDING_MESSAGE)

    access_token, refresh_token = await issue_session_tokens(user)
    security.set_auth_cookies(response, access_token, refresh_token)
    return SignUpResponse(
        message="Signed up", confirmation_required=False, user=build_user_response(user)
    )


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> LoginResponse:
    service = AuthService(db)
    try:
        user = service.authenticate(credentials.email, credentials.password)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    access_token, refresh_token = await issue_session_tokens(user)
    security.set_auth_cookies(response, access_token, refresh_token)

    return LoginResponse(user=build_user_response(user))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    response: Response,
    refresh_token: str = Depends(get_refresh_token_from_cookie),
    db: Session = Depends(get_db),
) -> RefreshResponse:
    payload = security.decode_token(refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not await is_refresh_token_live(refresh_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token has been revoked or expired",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = AuthService(db).get_active_user(str(payload.get("sub")))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    # Rotate: the old refresh token is single use
    await revoke_refresh_token(refresh_token)
    access_token, new_refresh_token = await issue_session_tokens(user)
    security.set_auth_cookies(response, access_token, new_refresh_token)

    return RefreshResponse()


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
) -> LogoutResponse:
    refresh = request.cookies.get(security.REFRESH_COOKIE)
    if refresh:
        await revoke_refresh_token(refresh)

    security.clear_auth_cookies(response)
    logger.info("User signed out: %s", current_user.id)

    return LogoutResponse()


@router.get("/session", response_model=SessionResponse)
async def get_session(
    session: AuthSession | None = Depends(get_optional_session),
) -> SessionResponse:
    if session is None:
        return SessionResponse(session=None)
    return SessionResponse(
        session=SessionInfo(
            user_id=str(session.user_id),
            email=session.email,
            display_name=session.display_name,
            expires_at=session.expires_at.isoformat(),
        )
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    return build_user_response(current_user)
