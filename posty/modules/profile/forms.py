"""Pydantic models for profile, settings and account requests."""

from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field, field_validator

from posty.modules.auth.schemas import CamelModel


class ProfileUpdate(CamelModel):
    """Model for updating the user's profile."""

    first_name: str = Field(min_length=1, max_length=50, description="First name")
    last_name: str = Field(min_length=1, max_length=50, description="Last name")
    email: EmailStr = Field(description="Contact and login email")


class PasswordChange(CamelModel):
    """Model for changing an email/password account's password."""

    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128, description="At least 8 characters")
    confirm_password: str = Field(min_length=1)


class SettingsUpdate(CamelModel):
    """Partial settings update (only fields present are applied)."""

    theme: Optional[str] = Field(None, pattern="^(light|dark|system)$")
    language: Optional[str] = Field(None, min_length=2, max_length=10)
    timezone: Optional[str] = Field(None, max_length=64)
    email_notifications: Optional[bool] = None
    reminder_notifications: Optional[bool] = None
    weekly_digest: Optional[bool] = None
    auto_delete_old_items: Optional[bool] = None

    def to_updates(self) -> dict:
        return {key: value for key, value in self.model_dump(exclude_unset=True).items() if value is not None}


class EmailSettingsUpdate(CamelModel):
    """Per-user SMTP configuration. The password is encrypted before storage."""

    smtp_host: str = Field(min_length=1, max_length=255)
    smtp_port: int = Field(ge=1, le=65535)
    smtp_secure: bool = False
    smtp_username: str = Field(min_length=1, max_length=255)
    smtp_password: str = Field(min_length=1, max_length=255)
    smtp_from_name: Optional[str] = Field(None, max_length=100)
    smtp_from_email: Optional[EmailStr] = None

    @field_validator("smtp_host")
    @classmethod
    def validate_host(cls, v):
        """Reject hosts containing whitespace or URL schemes."""
        v = v.strip()
        if any(ch.isspace() for ch in v) or "://" in v:
            raise ValueError("SMTP host must be a bare hostname")
        return v


class AccountDelete(CamelModel):
    confirm_delete: Optional[str] = None


class SettingsResponse(CamelModel):
    theme: str
    language: str
    timezone: str
    email_notifications: bool
    reminder_notifications: bool
    weekly_digest: bool
    auto_delete_old_items: bool
    smtp_configured: bool = False
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_secure: bool = False
    smtp_username: Optional[str] = None
    smtp_from_name: Optional[str] = None
    smtp_from_email: Optional[str] = None

    @classmethod
    def from_settings(cls, user_settings) -> "SettingsResponse":
        """Build from a UserSettings row (the encrypted password is never exposed)."""
        return cls(
            theme=user_settings.theme,
            language=user_settings.language,
            timezone=user_settings.timezone,
            email_notifications=user_settings.email_notifications,
            reminder_notifications=user_settings.reminder_notifications,
            weekly_digest=user_settings.weekly_digest,
            auto_delete_old_items=user_settings.auto_delete_old_items,
            smtp_configured=user_settings.has_smtp_config,
            smtp_host=user_settings.smtp_host,
            smtp_port=user_settings.smtp_port,
            smtp_secure=bool(user_settings.smtp_secure),
            smtp_username=user_settings.smtp_username,
            smtp_from_name=user_settings.smtp_from_name,
            smtp_from_email=user_settings.smtp_from_email,
        )


class ProfileResponse(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    login_method: str
    created_at: Optional[datetime] = None
    settings: Optional[SettingsResponse] = None
