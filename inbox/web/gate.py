from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from inbox.auth.session import AuthSession, resolve_session
from inbox.core import security
from inbox.core.config import settings

LOGIN_PATH = "/"
CHAT_PATH = "/chat"

# Paths the gate never redirects
UNGATED_PREFIXES: tuple[str, ...] = (
    settings.API_V1_PREFIX,
    "/static",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
)


def is_gated(path: str) -> bool:
    return not path.startswith(UNGATED_PREFIXES)


def gate_redirect(path: str, session: AuthSession | None) -> str | None:
    """Where the gate sends a visitor, or None to let the request through."""
    if session is None and path.startswith(CHAT_PATH):
        return LOGIN_PATH
    if session is not None and path == LOGIN_PATH:
        return CHAT_PATH
    return None


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Resolve the session once per request and keep visitors on the right view.

    Signed-out visitors are sent from the conversation view to the login
    view, signed-in visitors from the login view to the conversation view.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        session = resolve_session(request.cookies.get(security.ACCESS_COOKIE))
        request.state.session = session

        path = request.url.path
        if is_gated(path):
            target = gate_redirect(path, session)
            if target is not None:
                await structlog.get_logger("gate").adebug(
                    "gate_redirect", path=path, target=target, signed_in=session is not None
                )
                return RedirectResponse(url=target, status_code=307)

        return await call_next(request)
