"""
Profile, settings and account routes.

Endpoints:
- GET/PUT /api/profile - Profile (+ settings)
- PUT /api/profile/password - Change password (email accounts only)
- GET/PUT /api/settings - Preferences (created lazily)
- PUT/DELETE /api/settings/email - Per-user SMTP configuration
- DELETE /api/account - Delete account and all data
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from posty.core.database import get_db
from posty.core.security import encrypt_secret, hash_password, verify_password
from posty.core.session import clear_auth_cookie
from posty.models.user import User
from posty.modules.accounts.repository import EmailInUseError, UserRepository
from posty.modules.auth.dependencies import get_current_user
from posty.modules.auth.schemas import UserResponse
from posty.modules.mail_items.intake import discard_upload
from posty.modules.mail_items.repository import MailItemRepository
from posty.modules.profile.forms import (
    AccountDelete,
    EmailSettingsUpdate,
    PasswordChange,
    ProfileResponse,
    ProfileUpdate,
    SettingsResponse,
    SettingsUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/profile", response_model=ProfileResponse, response_model_by_alias=True)
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_settings = await UserRepository(db).get_or_create_settings(user.id)
    await db.commit()
    return ProfileResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_image_url=user.profile_image_url,
        login_method="email" if user.password_hash else "oauth",
        created_at=user.created_at,
        settings=SettingsResponse.from_settings(user_settings),
    )


@router.put("/profile", response_model=UserResponse, response_model_by_alias=True)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        updated = await UserRepository(db).update_profile(user, body.model_dump())
    except EmailInUseError:
        raise HTTPException(status_code=400, detail="Email already in use")
    await db.commit()
    return UserResponse.model_validate(updated)


@router.put("/profile/password")
async def change_password(
    body: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change password. 400 for OAuth accounts, a wrong current password or a mismatch."""
    if not user.password_hash:
        raise HTTPException(status_code=400, detail="Password change not available for OAuth users")

    if body.new_password != body.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords don't match")

    if not verify_password(body.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    await UserRepository(db).set_password_hash(user, hash_password(body.new_password))
    await db.commit()
    logger.info(f"Password changed for user {user.id}", extra={"user_id": user.id})
    return {"message": "Password updated successfully"}


@router.get("/settings", response_model=SettingsResponse, response_model_by_alias=True)
async def get_settings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_settings = await UserRepository(db).get_or_create_settings(user.id)
    await db.commit()
    return SettingsResponse.from_settings(user_settings)


@router.put("/settings", response_model=SettingsResponse, response_model_by_alias=True)
async def update_settings(
    body: SettingsUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_settings = await UserRepository(db).update_settings(user.id, body.to_updates())
    await db.commit()
    return SettingsResponse.from_settings(user_settings)


@router.put("/settings/email", response_model=SettingsResponse, response_model_by_alias=True)
async def update_email_settings(
    body: EmailSettingsUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Store per-user SMTP settings (password encrypted with Fernet)."""
    updates = body.model_dump(exclude={"smtp_password"})
    updates["encrypted_smtp_password"] = encrypt_secret(body.smtp_password)
    user_settings = await UserRepository(db).update_settings(user.id, updates)
    await db.commit()
    logger.info(f"SMTP settings updated for user {user.id}", extra={"user_id": user.id})
    return SettingsResponse.from_settings(user_settings)


@router.delete("/settings/email", response_model=SettingsResponse, response_model_by_alias=True)
async def delete_email_settings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_settings = await UserRepository(db).clear_smtp_settings(user.id)
    await db.commit()
    return SettingsResponse.from_settings(user_settings)


@router.delete("/account")
async def delete_account(
    response: Response,
    body: Optional[AccountDelete] = Body(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete the account. Requires {"confirmDelete": "DELETE"}.

    Mail items and settings are removed by the database cascade; stored
    uploads are removed from disk afterwards.
    """
    if body is None or body.confirm_delete != "DELETE":
        raise HTTPException(status_code=400, detail="Account deletion requires confirmation")

    user_id = user.id
    stored_names = await MailItemRepository(db).stored_file_names(user_id)
    if not await UserRepository(db).delete(user_id):
        raise HTTPException(status_code=500, detail="Failed to delete account")
    await db.commit()

    for name in stored_names:
        discard_upload(name)

    clear_auth_cookie(response)
    logger.info(f"Account deleted: {user_id}", extra={"user_id": user_id, "files": len(stored_names)})
    return {"message": "Account deleted successfully"}
