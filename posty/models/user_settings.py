"""
UserSettings model - per-user preferences and optional SMTP configuration.
"""

from datetime import datetime
from sqlalchemy import Column, String, Boolean, ForeignKey, Integer, Text, DateTime
from sqlalchemy.orm import relationship

from posty.core.database import Base


class UserSettings(Base):
    """
    User preferences.

    Created lazily on first settings read/write.
    """

    __tablename__ = "user_settings"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    # Appearance / locale
    theme = Column(String, default="system", nullable=False)  # 'light' | 'dark' | 'system'
    language = Column(String, default="en", nullable=False)
    timezone = Column(String, default="UTC", nullable=False)

    # Notification toggles
    email_notifications = Column(Boolean, default=True, nullable=False)
    reminder_notifications = Column(Boolean, default=True, nullable=False)
    weekly_digest = Column(Boolean, default=False, nullable=False)

    # Retention
    auto_delete_old_items = Column(Boolean, default=False, nullable=False)

    # Per-user SMTP configuration (falls back to process-wide defaults when incomplete)
    smtp_host = Column(String, nullable=True)
    smtp_port = Column(Integer, nullable=True)
    smtp_secure = Column(Boolean, default=False, nullable=False)
    smtp_username = Column(String, nullable=True)
    encrypted_smtp_password = Column(Text, nullable=True)  # Fernet
    smtp_from_name = Column(String, nullable=True)
    smtp_from_email = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="settings")

    def __repr__(self):
        return f"<UserSettings user_id={self.user_id}>"

    @property
    def has_smtp_config(self) -> bool:
        """Check if the user has a complete SMTP configuration of their own."""
        return bool(
            self.smtp_host
            and self.smtp_port
            and self.smtp_username
            and self.encrypted_smtp_password
        )
