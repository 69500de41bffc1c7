"""Application-wide constants.

For environment-specific configuration, see config.py.
"""

# =============================================================================
# Auth messages
# =============================================================================

# Surfaced verbatim by clients, keep the wording stable
INVALID_CREDENTIALS_MESSAGE: str = "Invalid login credentials"
EMAIL_NOT_CONFIRMED_MESSAGE: str = "Email not confirmed"
USER_ALREADY_REGISTERED_MESSAGE: str = "User already registered"
CONFIRMATION_PENDING_MESSAGE: str = (
    "Check your email for the confirmation link! "
    "After clicking it, you'll be redirected back here."
)

# Auth error view codes and their fixed messages
AUTH_ERROR_MESSAGES: dict[str, str] = {
    "auth_error": "There was an error confirming your email. Please try signing up again.",
    "access_denied": "Access was denied. Please check your email and try again.",
}
AUTH_ERROR_FALLBACK_MESSAGE: str = "An unexpected error occurred during authentication."

# =============================================================================
# Conversations and messages
# =============================================================================

CONVERSATION_KINDS: tuple[str, ...] = ("individual", "group")

MESSAGE_TYPES: tuple[str, ...] = ("text", "image", "video", "audio", "document")
ATTACHMENT_KINDS: tuple[str, ...] = ("image", "video", "audio", "document")

ATTACHMENT_ICONS: dict[str, str] = {
    "image": "🖼️",
    "video": "🎥",
    "audio": "🎵",
}
ATTACHMENT_DEFAULT_ICON: str = "📄"
ATTACHMENT_PREFIX: str = "📎"

MESSAGE_MAX_LENGTH: int = 5000
NO_MESSAGES_PREVIEW: str = "No messages yet"
MESSAGE_PREVIEW_MAX_LENGTH: int = 100

# =============================================================================
# Realtime
# =============================================================================

# Per-subscriber queue bound; a full queue drops the subscriber
REALTIME_QUEUE_SIZE: int = 256
