"""
Authentication routes - email/password, Google and Apple sign-in.

Endpoints:
- POST /api/auth/register - Create an email/password account
- POST /api/auth/login - Sign in with email/password
- POST /api/auth/logout - Clear the auth cookie
- GET /api/auth/user - Current user
- GET /api/auth/google - Redirect to Google consent
- GET /api/auth/google/callback - Handle Google callback
- GET /api/auth/apple - Redirect to Apple sign-in
- POST /api/auth/apple/callback - Handle Apple form_post callback
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from posty.core.database import get_db
from posty.core.session import clear_auth_cookie, set_auth_cookie
from posty.models.user import User
from posty.modules.accounts.repository import EmailInUseError
from posty.modules.auth.apple_oauth import apple_oauth
from posty.modules.auth.dependencies import get_current_user
from posty.modules.auth.google_oauth import google_oauth
from posty.modules.auth.schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from posty.modules.auth.service import (
    EmailAlreadyRegisteredError,
    authenticate_email_user,
    register_email_user,
    sign_in_oauth_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


def _signed_in_redirect(provider: str, token: str) -> RedirectResponse:
    response = _redirect(f"/?auth=success&provider={provider}")
    set_auth_cookie(response, token)
    return response


@router.post("/register", response_model=AuthResponse, response_model_by_alias=True)
async def register(
    body: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create an email/password account, default settings and a session."""
    try:
        user, token = await register_email_user(
            db,
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
        )
    except EmailAlreadyRegisteredError:
        raise HTTPException(status_code=400, detail="User already exists with this email")

    await db.commit()
    set_auth_cookie(response, token)
    return AuthResponse(user=UserResponse.model_validate(user), token=token)


@router.post("/login", response_model=AuthResponse, response_model_by_alias=True)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Sign in with email/password. 401 on any credential mismatch."""
    result = await authenticate_email_user(db, body.email, body.password)
    if result is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    user, token = result
    set_auth_cookie(response, token)
    return AuthResponse(user=UserResponse.model_validate(user), token=token)


@router.post("/logout")
async def logout(response: Response):
    """Clear the auth cookie."""
    clear_auth_cookie(response)
    return {"success": True}


@router.get("/user", response_model=UserResponse, response_model_by_alias=True)
async def current_user(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.get("/google")
async def login_with_google():
    """Redirect to the Google consent screen."""
    if not google_oauth.configured:
        logger.error("Google OAuth credentials missing")
        raise HTTPException(status_code=500, detail="Google OAuth not configured")

    auth_url = await google_oauth.get_authorization_url()
    return _redirect(auth_url)


@router.get("/google/callback")
async def google_oauth_callback(
    code: Optional[str] = Query(None, description="Authorization code"),
    state: Optional[str] = Query(None, description="CSRF state token"),
    error: Optional[str] = Query(None, description="Error from Google"),
    db: AsyncSession = Depends(get_db),
):
    """
    Handle OAuth callback from Google.

    This endpoint:
    1. Consumes the state token (CSRF protection)
    2. Exchanges the code and loads the Google profile
    3. Upserts the user (default settings on first sign-in)
    4. Sets the auth cookie and redirects home

    Errors redirect to /?error=oauth_denied|invalid_state|email_in_use|oauth_failed
    """
    if error:
        logger.warning(f"Google OAuth error: {error}")
        return _redirect("/?error=oauth_denied")

    if not code or not await google_oauth.verify_state(state):
        logger.warning("Invalid Google OAuth state", extra={"has_code": bool(code), "has_state": bool(state)})
        return _redirect("/?error=invalid_state")

    try:
        profile = await google_oauth.fetch_profile(code)
        user, token = await sign_in_oauth_user(db, "google", profile)
        await db.commit()
    except EmailInUseError:
        await db.rollback()
        return _redirect("/?error=email_in_use")
    except Exception as e:
        # Log error (but NOT the code or tokens!)
        logger.error(f"Google OAuth callback failed: {type(e).__name__}: {e}")
        await db.rollback()
        return _redirect("/?error=oauth_failed")

    return _signed_in_redirect("google", token)


@router.get("/apple")
async def login_with_apple():
    """Redirect to Sign in with Apple (callback arrives as form_post)."""
    if not apple_oauth.configured:
        raise HTTPException(status_code=500, detail="Apple OAuth not configured")

    auth_url = await apple_oauth.get_authorization_url()
    return _redirect(auth_url)


@router.post("/apple/callback")
async def apple_oauth_callback(
    code: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    user: Optional[str] = Form(None),
    error: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    """Handle the Apple form_post callback."""
    if error:
        logger.warning(f"Apple OAuth error: {error}")
        return _redirect("/?error=oauth_denied")

    if not code or not await apple_oauth.verify_state(state):
        return _redirect("/?error=invalid_state")

    try:
        profile = await apple_oauth.fetch_profile(code, user)
        db_user, token = await sign_in_oauth_user(db, "apple", profile)
        await db.commit()
    except EmailInUseError:
        await db.rollback()
        return _redirect("/?error=email_in_use")
    except Exception as e:
        logger.error(f"Apple OAuth callback failed: {type(e).__name__}: {e}")
        await db.rollback()
        return _redirect("/?error=oauth_failed")

    return _signed_in_redirect("apple", token)
