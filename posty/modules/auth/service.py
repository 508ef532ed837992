"""
Account creation and sign-in.

Email users get a random id and a werkzeug password hash; OAuth users are
keyed by provider subject id and never carry a password hash.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from posty.core.security import (
    create_auth_token,
    generate_user_id,
    hash_password,
    mask_email,
    verify_password,
)
from posty.models.user import User
from posty.modules.accounts.repository import UserRepository

logger = logging.getLogger(__name__)


class EmailAlreadyRegisteredError(Exception):
    pass


async def register_email_user(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> tuple[User, str]:
    """
    Create an email/password user with default settings.

    Returns:
        (user, auth token)

    Raises:
        EmailAlreadyRegisteredError: If any account already uses the email
    """
    users = UserRepository(db)
    if await users.get_by_email(email):
        raise EmailAlreadyRegisteredError(email)

    user = await users.create(
        id=generate_user_id("email"),
        email=email,
        first_name=first_name,
        last_name=last_name,
        provider="email",
        password_hash=hash_password(password),
        email_verified=False,
    )
    logger.info(f"Registered email user {mask_email(email)}", extra={"user_id": user.id})
    return user, create_auth_token(user.id, user.email, user.provider)


async def authenticate_email_user(db: AsyncSession, email: str, password: str) -> Optional[tuple[User, str]]:
    """
    Check email/password credentials.

    Returns:
        (user, auth token), or None for unknown email, non-email provider
        or wrong password
    """
    user = await UserRepository(db).get_by_email(email)
    if not user or user.provider != "email" or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        logger.info(f"Failed login for {mask_email(email)}")
        return None
    return user, create_auth_token(user.id, user.email, user.provider)


async def sign_in_oauth_user(db: AsyncSession, provider: str, profile: dict) -> tuple[User, str]:
    """
    Upsert an OAuth user from a provider profile.

    Raises:
        EmailInUseError: If the profile email belongs to another account
    """
    provider_id = profile["provider_id"]
    fields = {key: value for key, value in profile.items() if key != "provider_id"}
    user = await UserRepository(db).upsert_oauth_user(
        generate_user_id(provider, provider_id),
        provider=provider,
        provider_id=provider_id,
        **fields,
    )
    logger.info(f"OAuth sign-in via {provider}", extra={"user_id": user.id, "provider": provider})
    return user, create_auth_token(user.id, user.email, user.provider)
