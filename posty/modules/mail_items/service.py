"""
Upload orchestration: intake -> analyze -> persist -> notify -> response.

Analysis and notification are best-effort; only intake and persistence
errors reach the caller.
"""

import logging
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from posty.models.mail_item import MailItem
from posty.models.user import User
from posty.modules.accounts.repository import UserRepository
from posty.modules.analyzer.analyzer import DocumentAnalyzer
from posty.modules.mail_items.intake import discard_upload, store_upload
from posty.modules.mail_items.repository import MailItemRepository
from posty.modules.notifications.email_service import send_letter_notification

logger = logging.getLogger(__name__)


class UploadProcessor:
    """
    Turns an uploaded file into a persisted, notified MailItem.

    Usage:
        item = await UploadProcessor(db).process(user, upload_file)
    """

    def __init__(self, db: AsyncSession, analyzer: Optional[DocumentAnalyzer] = None):
        self.db = db
        self.analyzer = analyzer or DocumentAnalyzer()
        self.items = MailItemRepository(db)
        self.users = UserRepository(db)

    async def process(self, user: User, file: UploadFile) -> MailItem:
        """
        Run the full upload pipeline for one file.

        Raises:
            HTTPException: 400/413 from intake, 500 if the item cannot be saved
        """
        stored = await store_upload(file)

        outcome = await self.analyzer.analyze(stored.path, stored.original_name)
        if outcome.is_degraded:
            logger.warning(
                f"Analysis degraded for upload {stored.stored_name}: {outcome.reason.value}",
                extra={"user_id": user.id, "reason": outcome.reason.value},
            )
        result = outcome.result

        try:
            item = await self.items.create(
                user_id=user.id,
                title=result.title,
                summary=result.summary,
                category=result.category.value,
                reminder_date=result.reminder_date,
                image_url=stored.url,
                file_name=stored.original_name,
                extracted_text=result.extracted_text,
                categories=result.categories,
                custom_categories=result.custom_categories,
            )
            await self.db.commit()
        except Exception as e:
            logger.error(
                f"Failed to save mail item for upload {stored.stored_name}: {e}",
                extra={"user_id": user.id},
                exc_info=True,
            )
            await self.db.rollback()
            discard_upload(stored.stored_name)
            raise HTTPException(status_code=500, detail="Failed to save mail item")

        user_settings = await self.users.get_settings(user.id)
        notification = await send_letter_notification(user, item, user_settings)
        logger.info(
            f"Processed upload {stored.stored_name} as mail item {item.id}",
            extra={
                "user_id": user.id,
                "mail_item_id": item.id,
                "analysis": outcome.status.value,
                "notification": notification.status.value,
                "notification_reason": notification.reason.value if notification.reason else None,
            },
        )
        return item
