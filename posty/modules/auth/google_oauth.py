"""
Google sign-in using Authlib (OpenID Connect authorization-code flow).

CRITICAL SECURITY:
- NEVER log tokens or authorization codes
- Always consume the state token before exchanging the code
"""

import asyncio
import logging
from typing import Optional
from authlib.integrations.requests_client import OAuth2Session

from posty.core.config import settings
from posty.modules.auth.state_store import OAuthStateStore, oauth_state_store

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = ["openid", "profile", "email"]

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

PROVIDER = "google"


class GoogleOAuthManager:
    """
    Manages the Google OAuth flow.

    Usage:
        auth_url = await google_oauth.get_authorization_url()
        # User consents, Google redirects back with code + state
        if await google_oauth.verify_state(state):
            profile = await google_oauth.fetch_profile(code)
    """

    def __init__(self, state_store: Optional[OAuthStateStore] = None):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = settings.GOOGLE_REDIRECT_URI
        self.state_store = state_store or oauth_state_store

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _session(self, **kwargs) -> OAuth2Session:
        return OAuth2Session(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            **kwargs,
        )

    async def get_authorization_url(self) -> str:
        """Generate the consent URL with a fresh state token stored in Redis."""
        state = await self.state_store.issue(PROVIDER)

        auth_url, _ = self._session(scope=GOOGLE_SCOPES).create_authorization_url(
            GOOGLE_AUTHORIZE_URL,
            state=state,
        )
        logger.info(f"Google OAuth initiated with redirect URI: {self.redirect_uri}")
        return auth_url

    async def verify_state(self, state: Optional[str]) -> bool:
        """One-time state check. CRITICAL: call before exchanging the code."""
        return await self.state_store.consume(state, PROVIDER)

    def _exchange_and_fetch_profile(self, code: str) -> dict:
        session = self._session()
        token = session.fetch_token(GOOGLE_TOKEN_URL, code=code, timeout=30)
        if not token.get("access_token"):
            raise ValueError("Failed to get access token")

        response = session.get(GOOGLE_USERINFO_URL, timeout=30)
        response.raise_for_status()
        return response.json()

    async def fetch_profile(self, code: str) -> dict:
        """
        Exchange the authorization code and load the user's Google profile.

        Returns:
            Dict with provider_id, email, first_name, last_name,
            profile_image_url, email_verified

        Raises:
            Exception: Any token-exchange or userinfo failure (caller redirects)
        """
        profile = await asyncio.to_thread(self._exchange_and_fetch_profile, code)
        if not profile.get("id"):
            raise ValueError("Google profile response missing id")

        return {
            "provider_id": str(profile["id"]),
            "email": profile.get("email"),
            "first_name": profile.get("given_name"),
            "last_name": profile.get("family_name"),
            "profile_image_url": profile.get("picture"),
            "email_verified": bool(profile.get("verified_email", False)),
        }


# Global Google OAuth manager instance
google_oauth = GoogleOAuthManager()
