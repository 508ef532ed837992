"""Authentication dependencies for API routes.

Provides get_current_user for protecting routes.
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from posty.core.database import get_db
from posty.core.security import verify_auth_token
from posty.core.session import get_request_token
from posty.models.user import User
from posty.modules.accounts.repository import UserRepository

logger = logging.getLogger(__name__)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency to get the currently authenticated user.

    Token comes from the Authorization: Bearer header or the auth cookie.

    Raises:
        HTTPException: 401 if no token, 403 if the token is invalid or
            expired, 401 if the token's user no longer exists

    Usage:
        @router.get("/api/mail-items")
        async def list_items(user: User = Depends(get_current_user)):
            ...
    """
    token = get_request_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_auth_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )

    user = await UserRepository(db).get(payload["userId"])
    if not user:
        logger.warning(f"Token for unknown user {payload['userId']}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user
