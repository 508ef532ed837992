"""
Mail item persistence.

Access control lives here: every statement is filtered by the owning
user's id, so a caller can never read or change another user's rows.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from posty.models.category import Category
from posty.models.mail_item import MailItem, MailItemCategory

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "summary", "category", "reminder_date")


def build_labels(categories: Iterable[str] = (), custom_categories: Iterable[str] = ()) -> List[MailItemCategory]:
    """
    Label rows for a mail item (deduplicated, order preserved).

    A custom label naming a standard category is stored as that standard
    label; custom labels that repeat an earlier label are dropped.
    """
    labels: List[MailItemCategory] = []
    seen = set()
    for value in categories or ():
        label = Category.coerce(value).value
        if label not in seen:
            seen.add(label)
            labels.append(MailItemCategory(label=label, is_custom=False))
    standard = set(Category.values())
    for value in custom_categories or ():
        label = (value or "").strip()
        is_custom = label.lower() not in standard
        if not is_custom:
            label = label.lower()
        if label and label not in seen:
            seen.add(label)
            labels.append(MailItemCategory(label=label, is_custom=is_custom))
    return labels


class MailItemRepository:
    """
    User-scoped CRUD for mail items.

    Usage:
        items = MailItemRepository(db)
        mine = await items.list(user.id)
        item = await items.get(item_id, user.id)  # None if not mine
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _owned(self, user_id: str):
        return select(MailItem).where(MailItem.user_id == user_id)

    async def _all(self, stmt) -> List[MailItem]:
        result = await self.db.execute(stmt.order_by(MailItem.upload_date.desc(), MailItem.id.desc()))
        return list(result.scalars().all())

    async def list(self, user_id: str) -> List[MailItem]:
        """All of a user's items, newest first."""
        return await self._all(self._owned(user_id))

    async def get(self, item_id: int, user_id: str) -> Optional[MailItem]:
        result = await self.db.execute(
            self._owned(user_id)
            .where(MailItem.id == item_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        user_id: str,
        title: str,
        summary: str,
        category: str,
        image_url: str,
        file_name: str,
        reminder_date: Optional[date] = None,
        extracted_text: Optional[str] = None,
        categories: Iterable[str] = (),
        custom_categories: Iterable[str] = (),
    ) -> MailItem:
        """Insert an item; id and upload_date are assigned by the server."""
        item = MailItem(
            user_id=user_id,
            title=title,
            summary=summary,
            category=Category.coerce(category).value,
            reminder_date=reminder_date,
            image_url=image_url,
            file_name=file_name,
            extracted_text=extracted_text,
        )
        item.labels = build_labels(categories, custom_categories)
        self.db.add(item)
        await self.db.flush()

        logger.info(
            f"Created mail item {item.id} for user {user_id}",
            extra={"user_id": user_id, "mail_item_id": item.id, "category": item.category},
        )
        return await self.get(item.id, user_id)

    async def update(self, item_id: int, user_id: str, updates: Dict[str, Any]) -> Optional[MailItem]:
        """
        Partial-field merge, then re-fetch.

        Returns:
            The updated item, or None if it does not exist for this user
        """
        item = await self.get(item_id, user_id)
        if item is None:
            return None

        previous_category = item.category
        for key in EDITABLE_FIELDS:
            if key in updates:
                value = updates[key]
                if key == "category":
                    value = Category.coerce(value).value
                setattr(item, key, value)

        recategorized = "categories" not in updates and item.category != previous_category

        if recategorized or "categories" in updates or "custom_categories" in updates:
            if recategorized:
                # The primary category leads the standard labels; the old primary is dropped.
                categories = [item.category] + [
                    label for label in item.categories if label not in (previous_category, item.category)
                ]
            else:
                categories = updates.get("categories", item.categories)
            custom = updates.get("custom_categories", item.custom_categories)
            self._sync_labels(item, build_labels(categories or (), custom or ()))

        await self.db.flush()
        return await self.get(item_id, user_id)

    @staticmethod
    def _sync_labels(item: MailItem, desired: List[MailItemCategory]) -> None:
        """
        Reconcile label rows in place.

        Existing rows are reused by label text so the (mail_item_id, label)
        unique constraint never sees a delete-then-insert of the same label.
        """
        existing = {label.label: label for label in item.labels}
        labels = []
        for wanted in desired:
            row = existing.get(wanted.label)
            if row is None:
                row = wanted
            else:
                row.is_custom = wanted.is_custom
            labels.append(row)
        item.labels = labels

    async def delete(self, item_id: int, user_id: str) -> bool:
        result = await self.db.execute(
            delete(MailItem)
            .where(MailItem.id == item_id, MailItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        return result.rowcount > 0

    async def delete_all(self, user_id: str) -> int:
        """Bulk delete; returns the number of rows removed."""
        result = await self.db.execute(
            delete(MailItem)
            .where(MailItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        logger.info(f"Deleted {result.rowcount} mail items for user {user_id}", extra={"user_id": user_id})
        return result.rowcount

    async def search(self, query: str, user_id: str) -> List[MailItem]:
        """Case-insensitive substring match over title, summary, category and extracted text."""
        pattern = f"%{query}%"
        return await self._all(
            self._owned(user_id).where(
                or_(
                    MailItem.title.ilike(pattern),
                    MailItem.summary.ilike(pattern),
                    MailItem.category.ilike(pattern),
                    MailItem.extracted_text.ilike(pattern),
                )
            )
        )

    async def by_category(self, category: str, user_id: str) -> List[MailItem]:
        """Items whose primary category or any attached label equals category."""
        has_label = exists().where(
            MailItemCategory.mail_item_id == MailItem.id,
            MailItemCategory.label == category,
        )
        return await self._all(
            self._owned(user_id).where(or_(MailItem.category == category, has_label))
        )

    async def custom_labels(self, user_id: str) -> List[str]:
        """Distinct custom labels used across a user's items."""
        result = await self.db.execute(
            select(MailItemCategory.label)
            .distinct()
            .join(MailItem, MailItem.id == MailItemCategory.mail_item_id)
            .where(MailItem.user_id == user_id, MailItemCategory.is_custom == True)  # noqa: E712
            .order_by(MailItemCategory.label)
        )
        return list(result.scalars().all())

    async def stored_file_names(self, user_id: str) -> List[str]:
        """Stored upload names for a user's items (for file cleanup)."""
        result = await self.db.execute(select(MailItem.image_url).where(MailItem.user_id == user_id))
        return [url.rsplit("/", 1)[-1] for url in result.scalars().all()]

    async def owner_of_upload(self, stored_name: str, user_id: str) -> bool:
        """Whether stored_name belongs to one of the user's items."""
        result = await self.db.execute(
            select(MailItem.id).where(
                MailItem.user_id == user_id,
                MailItem.image_url == f"/uploads/{stored_name}",
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None
