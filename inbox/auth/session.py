"""The signed-in identity for one request.

The session is resolved once, by the session gate, from the access token
cookie and stored on ``request.state.session``. Views and API dependencies
read it from there. Resolution never raises: anything that is not a valid,
unexpired access token means "no session".
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from starlette.requests import HTTPConnection

from inbox.core import security


@dataclass(frozen=True)
class AuthSession:
    user_id: UUID
    email: str
    display_name: str
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= datetime.now(UTC)


def token_claims(user_id: UUID | str, email: str, display_name: str) -> dict[str, Any]:
    """Claims carried by both access and refresh tokens."""
    return {"sub": str(user_id), "email": email, "name": display_name}


def resolve_session(access_token: str | None) -> AuthSession | None:
    if not access_token:
        return None

    payload = security.decode_token(access_token)
    if payload is None or payload.get("type") != "access":
        return None

    try:
        user_id = UUID(str(payload["sub"]))
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
    except (KeyError, TypeError, ValueError):
        return None

    email = str(payload.get("email") or "")
    session = AuthSession(
        user_id=user_id,
        email=email,
        display_name=str(payload.get("name") or email),
        expires_at=expires_at,
    )
    if session.is_expired:
        return None
    return session


def session_from_connection(conn: HTTPConnection) -> AuthSession | None:
    """Session already resolved by the gate, or resolved now from the cookie.

    WebSocket connections and API routes excluded from the gate fall back to
    reading the cookie here.
    """
    cached = getattr(conn.state, "session", None)
    if cached is not None:
        return cached
    session = resolve_session(conn.cookies.get(security.ACCESS_COOKIE))
    conn.state.session = session
    return session
