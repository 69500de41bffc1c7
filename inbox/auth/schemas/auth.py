from pydantic import BaseModel, EmailStr, Field

from inbox.auth.schemas.user import UserResponse


class SignUpRequest(BaseModel):
    """Sign-up request schema"""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str | None = Field(None, max_length=255)


class SignUpResponse(BaseModel):
    """
    Returned after sign-up. ``user`` is only set when confirmation is
    disabled and the account is usable right away.
    """

    message: str
    confirmation_required: bool = True
    user: UserResponse | None = None


class LoginRequest(BaseModel):
    """Password sign-in request schema"""

    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    user: UserResponse


class SessionInfo(BaseModel):
    user_id: str
    email: str
    display_name: str
    expires_at: str


class SessionResponse(BaseModel):
    """Current session, ``session`` is null when signed out"""

    session: SessionInfo | None = None


class RefreshResponse(BaseModel):
    message: str = "Token refreshed"


class LogoutResponse(BaseModel):
    message: str = "Successfully logged out"
