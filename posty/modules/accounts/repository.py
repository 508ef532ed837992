"""
User and settings persistence.

Deleting a user relies on ON DELETE CASCADE for mail items and settings.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from posty.models.user import User
from posty.models.user_settings import UserSettings

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("email", "first_name", "last_name", "profile_image_url")
SETTINGS_FIELDS = (
    "theme",
    "language",
    "timezone",
    "email_notifications",
    "reminder_notifications",
    "weekly_digest",
    "auto_delete_old_items",
)
SMTP_FIELDS = (
    "smtp_host",
    "smtp_port",
    "smtp_secure",
    "smtp_username",
    "encrypted_smtp_password",
    "smtp_from_name",
    "smtp_from_email",
)


class EmailInUseError(Exception):
    """Another account already owns this email address."""


class UserRepository:
    """
    Async CRUD for users and their settings row.

    Usage:
        users = UserRepository(db)
        user = await users.get_by_email("a@example.com")
        user_settings = await users.get_or_create_settings(user.id)
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> User:
        """Insert a user plus default settings."""
        user = User(**fields)
        self.db.add(user)
        await self.db.flush()

        self.db.add(UserSettings(user_id=user.id))
        await self.db.flush()

        logger.info(f"Created user {user.id}", extra={"user_id": user.id, "provider": user.provider})
        return user

    async def upsert_oauth_user(self, user_id: str, **fields: Any) -> User:
        """
        Create or refresh an OAuth user keyed by its provider-namespaced id.

        Raises:
            EmailInUseError: If the email belongs to a different account
        """
        email = fields.get("email")
        if email:
            owner = await self.get_by_email(email)
            if owner is not None and owner.id != user_id:
                raise EmailInUseError(email)

        user = await self.get(user_id)
        if user is None:
            return await self.create(id=user_id, **fields)

        for key, value in fields.items():
            # Apple only sends name/email on first sign-in
            if value is not None:
                setattr(user, key, value)
        user.updated_at = datetime.utcnow()
        await self.db.flush()

        if await self.get_settings(user.id) is None:
            self.db.add(UserSettings(user_id=user.id))
            await self.db.flush()
        return user

    async def update_profile(self, user: User, updates: Dict[str, Any]) -> User:
        """
        Apply a partial profile update.

        Raises:
            EmailInUseError: If the new email belongs to another account
        """
        new_email = updates.get("email")
        if new_email and new_email != user.email:
            owner = await self.get_by_email(new_email)
            if owner is not None and owner.id != user.id:
                raise EmailInUseError(new_email)

        for key in PROFILE_FIELDS:
            if key in updates:
                setattr(user, key, updates[key])
        user.updated_at = datetime.utcnow()
        await self.db.flush()
        return user

    async def set_password_hash(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        user.updated_at = datetime.utcnow()
        await self.db.flush()

    async def delete(self, user_id: str) -> bool:
        """Delete a user; the database cascades to mail items and settings."""
        result = await self.db.execute(delete(User).where(User.id == user_id))
        await self.db.flush()
        # Drop stale identity-map entries for the removed rows
        self.db.expunge_all()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted user {user_id}", extra={"user_id": user_id})
        return deleted

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        result = await self.db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_or_create_settings(self, user_id: str) -> UserSettings:
        """Settings are created lazily with defaults on first access."""
        user_settings = await self.get_settings(user_id)
        if user_settings is None:
            user_settings = UserSettings(user_id=user_id)
            self.db.add(user_settings)
            await self.db.flush()
            await self.db.refresh(user_settings)
        return user_settings

    async def update_settings(self, user_id: str, updates: Dict[str, Any]) -> UserSettings:
        """Partial update of preference and SMTP fields (unknown keys ignored)."""
        user_settings = await self.get_or_create_settings(user_id)
        for key in SETTINGS_FIELDS + SMTP_FIELDS:
            if key in updates:
                setattr(user_settings, key, updates[key])
        user_settings.updated_at = datetime.utcnow()
        await self.db.flush()
        return user_settings

    async def clear_smtp_settings(self, user_id: str) -> UserSettings:
        user_settings = await self.get_or_create_settings(user_id)
        for key in SMTP_FIELDS:
            setattr(user_settings, key, False if key == "smtp_secure" else None)
        user_settings.updated_at = datetime.utcnow()
        await self.db.flush()
        return user_settings
