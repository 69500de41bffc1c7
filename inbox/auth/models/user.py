import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from inbox.core.datetime_utils import utcnow
from inbox.db.session import Base


class User(Base):
    """
    Account that signs in to the inbox.

    Attributes:
        id: Unique UUID primary key
        email: Unique email address (indexed for fast lookups)
        hashed_password: Argon2 hashed password
        full_name: Profile display name, defaults to the email local part
        is_active: Whether the account may sign in
        email_confirmed_at: Set when the emailed confirmation link is opened
        confirmation_token: SHA-256 hash of the pending confirmation token
        confirmation_token_expires: Expiry of that token
        last_sign_in_at: Last successful password sign-in or confirmation
    """

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    email_confirmed_at = Column(DateTime, nullable=True)
    confirmation_token = Column(String(255), nullable=True, index=True)
    confirmation_token_expires = Column(DateTime, nullable=True)

    last_sign_in_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

    @property
    def display_name(self) -> str:
        return str(self.full_name or self.email)

    def confirmation_expired(self, now: datetime) -> bool:
        return self.confirmation_token_expires is None or self.confirmation_token_expires < now

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
