"""
Database models package.

Import all models here so Alembic can discover them for migrations.
"""

from posty.models.user import User
from posty.models.user_settings import UserSettings
from posty.models.mail_item import MailItem, MailItemCategory

__all__ = [
    "User",
    "UserSettings",
    "MailItem",
    "MailItemCategory",
]
