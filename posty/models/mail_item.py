"""
MailItem model - one uploaded document plus its derived metadata.

Every query against this table must be filtered by user_id.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Text, Integer, Date, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from posty.core.database import Base


class MailItem(Base):
    """A scanned letter or document owned by a single user."""

    __tablename__ = "mail_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    summary = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)  # Primary category (Category enum value)
    reminder_date = Column(Date, nullable=True)
    image_url = Column(Text, nullable=False)  # '/uploads/<stored name>'
    file_name = Column(Text, nullable=False)  # Original filename
    extracted_text = Column(Text, nullable=True)
    upload_date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="mail_items")
    labels = relationship(
        "MailItemCategory",
        back_populates="mail_item",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="MailItemCategory.id",
    )

    def __repr__(self):
        return f"<MailItem {self.id} user={self.user_id} category={self.category}>"

    @property
    def categories(self) -> list[str]:
        """Additional standard category labels."""
        return [label.label for label in self.labels if not label.is_custom]

    @property
    def custom_categories(self) -> list[str]:
        """User-defined custom labels."""
        return [label.label for label in self.labels if label.is_custom]

    @property
    def stored_file_name(self) -> str:
        """Name of the stored upload on disk (last path segment of image_url)."""
        return self.image_url.rsplit("/", 1)[-1]


class MailItemCategory(Base):
    """
    Additional category label attached to a mail item.

    is_custom distinguishes user-defined labels from standard categories.
    """

    __tablename__ = "mail_item_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mail_item_id = Column(Integer, ForeignKey("mail_items.id", ondelete="CASCADE"), nullable=False)
    label = Column(String, nullable=False)
    is_custom = Column(Boolean, default=False, nullable=False)

    mail_item = relationship("MailItem", back_populates="labels")

    __table_args__ = (
        UniqueConstraint("mail_item_id", "label", name="uq_mail_item_categories_item_label"),
        Index("ix_mail_item_categories_label", "label"),
    )

    def __repr__(self):
        return f"<MailItemCategory {self.label} custom={self.is_custom}>"
