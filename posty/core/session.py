"""Auth cookie helpers for the JWT-in-cookie session."""

from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from posty.core.config import settings

AUTH_COOKIE_NAME = "auth_token"


def get_request_token(request: Request) -> Optional[str]:
    """
    Get the auth token from the request.

    A bearer token in the Authorization header wins over the cookie.

    Args:
        request: The incoming request

    Returns:
        Raw token string if present, None otherwise
    """
    auth_header = request.headers.get("authorization")
    if auth_header:
        scheme, _, credentials = auth_header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()

    return request.cookies.get(AUTH_COOKIE_NAME) or None


def set_auth_cookie(response: Response, token: str) -> None:
    """
    Store the auth token in a secure HttpOnly cookie.

    Args:
        response: The outgoing response
        token: Signed auth token
    """
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.AUTH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
        secure=settings.is_production,  # Only send over HTTPS in production
        httponly=True,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    """
    Clear the auth cookie (used for logout and account deletion).

    Args:
        response: The outgoing response
    """
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        secure=settings.is_production,
        httponly=True,
        samesite="strict",
    )
