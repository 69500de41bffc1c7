"""Password sign-up, sign-in and email confirmation."""

import logging

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inbox.auth.models.user import User
from inbox.auth.services.email_service import build_confirmation_email, get_email_service
from inbox.auth.session import token_claims
from inbox.core import redis as redis_module
from inbox.core import security
from inbox.core.config import settings
from inbox.core.constants import (
    EMAIL_NOT_CONFIRMED_MESSAGE,
    INVALID_CREDENTIALS_MESSAGE,
    USER_ALREADY_REGISTERED_MESSAGE,
)
from inbox.core.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Auth failure whose message is shown to the user as-is."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthService:
    def __init__(self, db: Session) -> None:
        self.db = db

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> User:
        """Create an account; sends the confirmation link when confirmation is required."""
        email = email.strip().lower()
        if self.db.query(User).filter(User.email == email).first():
            raise AuthError(USER_ALREADY_REGISTERED_MESSAGE)

        user = User(
            email=email,
            hashed_password=security.get_password_hash(password),
            full_name=(full_name or "").strip() or email.split("@")[0],
        )

        raw_token: str | None = None
        if settings.EMAIL_CONFIRMATION_REQUIRED:
            raw_token, hashed_token, expiry = security.generate_confirmation_token()
            user.confirmation_token = hashed_token
            user.confirmation_token_expires = expiry.replace(tzinfo=None)
        else:
            user.email_confirmed_at = utcnow()

        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise AuthError(USER_ALREADY_REGISTERED_MESSAGE) from e
        self.db.refresh(user)

        if raw_token:
            email_message = build_confirmation_email(
                name=user.display_name, email=str(user.email), token=raw_token
            )
            sent = await get_email_service().send_email(email_message)
            if not sent:
                logger.warning("Confirmation email not delivered to %s", user.email)

        logger.info("User signed up: %s (confirmed=%s)", user.id, user.is_confirmed)
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()

        # Same message for unknown email and wrong password
        if not user or not security.verify_password(password, str(user.hashed_password)):
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_confirmed:
            raise AuthError(EMAIL_NOT_CONFIRMED_MESSAGE)

        if not user.is_active:
            raise AuthError("User is banned", status_code=status.HTTP_403_FORBIDDEN)

        user.last_sign_in_at = utcnow()
        self.db.commit()
        return user

    def confirm_email(self, raw_token: str) -> User:
        hashed_token = security.hash_token(raw_token)
        user = self.db.query(User).filter(User.confirmation_token == hashed_token).first()
        if not user:
            raise AuthError("Invalid or expired confirmation link")

        now = utcnow()
        if user.confirmation_expired(now):
            user.confirmation_token = None
            user.confirmation_token_expires = None
            self.db.commit()
            raise AuthError("Invalid or expired confirmation link")

        user.email_confirmed_at = now
        user.last_sign_in_at = now
        user.confirmation_token = None
        user.confirmation_token_expires = None
        self.db.commit()
        self.db.refresh(user)
        logger.info("Email confirmed for user %s", user.id)
        return user

    def get_active_user(self, user_id: str) -> User | None:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            return None
        return user


async def issue_session_tokens(user: User) -> tuple[str, str]:
    """Create an access/refresh pair and register the refresh token.

    Redis being down does not block sign-in: the refresh token just won't
    be accepted later.
    """
    claims = token_claims(user.id, str(user.email), user.display_name)
    access_token = security.create_access_token(claims)
    refresh_token = security.create_refresh_token(claims)

    ttl_seconds = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
    try:
        await redis_module.store_refresh_token(
            security.hash_token(refresh_token), str(user.id), ttl_seconds
        )
    except Exception:
        logger.warning("redis_unavailable_storing_refresh_token", extra={"user_id": str(user.id)})

    return access_token, refresh_token


async def is_refresh_token_live(refresh_token: str) -> bool:
    try:
        data = await redis_module.get_refresh_token(security.hash_token(refresh_token))
    except Exception:
        logger.warning("redis_unavailable_validating_refresh_token")
        return False
    return data is not None


async def revoke_refresh_token(refresh_token: str) -> None:
    try:
        await redis_module.revoke_refresh_token(security.hash_token(refresh_token))
    except Exception:
        logger.warning("redis_unavailable_revoking_refresh_token")
