"""
User model - represents application users.

Users sign in with email/password, Google or Apple. Each user owns their
mail items and a single settings row.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Text
from sqlalchemy.orm import relationship

from posty.core.database import Base


class User(Base):
    """
    Application user.

    Exactly one authentication method is authoritative: password_hash is
    set only for provider='email'.
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True)  # 'google_<sub>' | 'apple_<sub>' | 'email_<hex>'
    email = Column(String, unique=True, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    provider = Column(String, nullable=False)  # 'google' | 'apple' | 'email'
    provider_id = Column(String, nullable=True)
    password_hash = Column(Text, nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships (rows removed by ON DELETE CASCADE in the database)
    mail_items = relationship("MailItem", back_populates="user", passive_deletes=True)
    settings = relationship("UserSettings", back_populates="user", uselist=False, passive_deletes=True)

    def __repr__(self):
        return f"<User {self.id} provider={self.provider}>"

    @property
    def display_name(self) -> str:
        """First name if known, else the email local part, else 'there'."""
        if self.first_name:
            return self.first_name
        if self.email:
            return self.email.split("@", 1)[0]
        return "there"
