import re
from typing import Any

import httpx
from jose import jwt

from inbox.auth.services.email_service import EmailMessage, EmailService
from inbox.core.config import settings
from inbox.core.security import ACCESS_COOKIE, REFRESH_COOKIE


class RecordingEmailService(EmailService):
    """Keeps sent messages instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []

    async def send_email(self, message: EmailMessage) -> bool:
        self.sent.append(message)
        return True

    def confirmation_token(self, to: str) -> str:
        for message in reversed(self.sent):
            if message.to == to:
                match = re.search(r"token=(\S+)", message.body_text)
                if match:
                    return match.group(1)
        raise AssertionError(f"No confirmation email sent to {to}")


def assert_login_response_valid(
    data: dict[str, Any], response: httpx.Response | None = None
) -> None:
    """Assert that login response is valid.

    Tokens travel in httpOnly cookies, so the JSON only carries the user.
    """
    assert "user" in data

    if response is not None:
        cookies = response.cookies
        assert ACCESS_COOKIE in cookies
        assert REFRESH_COOKIE in cookies


def assert_user_response_valid(data: dict[str, Any]) -> None:
    assert "id" in data
    assert "email" in data
    assert "user_metadata" in data
    assert "email_confirmed_at" in data


def extract_token_from_cookie(response: httpx.Response, cookie_name: str) -> str:
    """Extract JWT token from response cookies."""
    cookies = response.cookies
    token = cookies.get(cookie_name)
    if not token:
        raise ValueError(f"Cookie {cookie_name} not found in response")
    return token


def decode_jwt_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def set_auth_cookies(client: httpx.AsyncClient, access_token: str, refresh_token: str) -> None:
    """Set authentication cookies on the test client."""
    client.cookies.set(ACCESS_COOKIE, access_token)
    client.cookies.set(REFRESH_COOKIE, refresh_token)


def set_access_token_cookie(client: httpx.AsyncClient, access_token: str) -> None:
    """Set only the access token cookie on the test client."""
    client.cookies.set(ACCESS_COOKIE, access_token)
