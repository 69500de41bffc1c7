import json

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str

    REDIS_URL: str = "redis://redis:6379/0"

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Sign-up requires clicking the emailed link before password sign-in works
    EMAIL_CONFIRMATION_REQUIRED: bool = True
    EMAIL_CONFIRMATION_TOKEN_EXPIRE_HOURS: int = 24

    EMAIL_BACKEND: str = "console"
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = "noreply@inbox.local"
    SMTP_FROM_NAME: str = "Inbox"

    SITE_URL: str = "http://localhost:8000"
    AUTH_CALLBACK_PATH: str = "/auth/callback"

    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000","http://localhost:8000"]'

    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Inbox API"
    DEBUG: bool = False

    MAX_ATTACHMENT_SIZE_MB: int = 10

    # JSON list of {"name": ..., "kind": ...} created for users without conversations
    DEMO_CONVERSATIONS: str = "[]"

    REALTIME_CHANNEL_PREFIX: str = "inbox:messages"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def cors_origins(self) -> list[str]:
        try:
            parsed: list[str] = json.loads(self.BACKEND_CORS_ORIGINS)
            return parsed
        except json.JSONDecodeError:
            return ["http://localhost:3000", "http://localhost:8000"]

    @property
    def demo_conversations(self) -> list[dict[str, str]]:
        try:
            parsed = json.loads(self.DEMO_CONVERSATIONS)
        except json.JSONDecodeError:
            return []
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if isinstance(item, dict) and item.get("name")]

    @property
    def email_redirect_url(self) -> str:
        return f"{self.SITE_URL.rstrip('/')}{self.AUTH_CALLBACK_PATH}"


settings = Settings()
