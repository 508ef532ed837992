"""
Email diagnostics routes.

Endpoints:
- GET /api/email/test-config - Verify the effective SMTP configuration
- POST /api/email/test-send - Send a test email to the current user
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from posty.core.database import get_db
from posty.models.user import User
from posty.modules.accounts.repository import UserRepository
from posty.modules.auth.dependencies import get_current_user
from posty.modules.notifications.email_service import (
    resolve_smtp_config,
    send_test_email,
    verify_email_configuration,
)

logger = logging.getLogger(__name__)

TEST_SEND_FAILED = "Failed to send test email - check your SMTP settings"

router = APIRouter(prefix="/api/email", tags=["email"])


@router.get("/test-config")
async def check_email_config(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Connect and log in with the user's SMTP settings (or the defaults)."""
    user_settings = await UserRepository(db).get_settings(user.id)
    return await verify_email_configuration(resolve_smtp_config(user_settings))


@router.post("/test-send")
async def send_test_message(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Send a test email to the current user's address. 500 on any failure."""
    user_settings = await UserRepository(db).get_settings(user.id)
    try:
        await send_test_email(user.email or "", resolve_smtp_config(user_settings))
    except ValueError as e:
        logger.warning(f"Test email not sent for user {user.id}: {e}", extra={"user_id": user.id})
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        # Server and socket errors stay in the log
        logger.error(f"Test email failed for user {user.id}: {e}", extra={"user_id": user.id})
        raise HTTPException(status_code=500, detail=TEST_SEND_FAILED)

    return {"success": True, "message": f"Test email sent to {user.email}"}
