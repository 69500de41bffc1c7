from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from inbox.auth.models.user import User


class UserMetadata(BaseModel):
    full_name: str | None = None


class UserResponse(BaseModel):
    id: str
    email: str
    user_metadata: UserMetadata
    email_confirmed_at: str | None = None
    last_sign_in_at: str | None = None
    created_at: str | None = None

    class Config:
        from_attributes = True


def build_user_response(user: "User") -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=str(user.email),
        user_metadata=UserMetadata(full_name=user.full_name),
        email_confirmed_at=user.email_confirmed_at.isoformat()
        if user.email_confirmed_at
        else None,
        last_sign_in_at=user.last_sign_in_at.isoformat() if user.last_sign_in_at else None,
        created_at=user.created_at.isoformat() if user.created_at else None,
    )
