"""
Core application configuration using Pydantic Settings.

All environment variables are loaded here and validated.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App Configuration
    APP_NAME: str = "Posty"
    APP_URL: str = "http://localhost:8000"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str

    # Security & Encryption
    SECRET_KEY: str  # For JWT signing
    ENCRYPTION_KEY: str  # For Fernet encryption of stored SMTP passwords (44-char base64)
    AUTH_TOKEN_EXPIRE_DAYS: int = 7

    # Redis (OAuth state store)
    REDIS_URL: str = "redis://localhost:6379/0"
    OAUTH_STATE_TTL_SECONDS: int = 600  # 10 minutes

    # OAuth - Google
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REDIRECT_URI: Optional[str] = None

    # OAuth - Apple
    APPLE_CLIENT_ID: Optional[str] = None
    APPLE_TEAM_ID: Optional[str] = None
    APPLE_KEY_ID: Optional[str] = None
    APPLE_PRIVATE_KEY: Optional[str] = None
    APPLE_REDIRECT_URI: Optional[str] = None

    # OpenAI API
    OPENAI_API_KEY: str
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT_SECONDS: float = 120.0

    # SMTP defaults (used when a user has no SMTP config of their own)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    SMTP_TIMEOUT_SECONDS: float = 30.0
    FROM_NAME: str = "Posty"
    FROM_EMAIL: Optional[str] = None

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Sentry Monitoring
    SENTRY_DSN: Optional[str] = None

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Derive OAuth redirect URIs from APP_URL if not set
        if not self.GOOGLE_REDIRECT_URI:
            self.GOOGLE_REDIRECT_URI = f"{self.APP_URL}/api/auth/google/callback"
        if not self.APPLE_REDIRECT_URI:
            self.APPLE_REDIRECT_URI = f"{self.APP_URL}/api/auth/apple/callback"
        # Sender address falls back to the SMTP login
        if not self.FROM_EMAIL:
            self.FROM_EMAIL = self.SMTP_USER

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def database_url_sync(self) -> str:
        """Get synchronous database URL (for Alembic migrations)."""
        return self.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://")


# Global settings instance
settings = Settings()
