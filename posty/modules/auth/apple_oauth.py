"""
Sign in with Apple.

Apple posts the callback as a form (response_mode=form_post). The code is
exchanged with a short-lived ES256 client secret signed with the team's
private key; the user's stable id is the `sub` claim of the returned
id_token. Name and email arrive in the `user` form field on first sign-in
only.
"""

import asyncio
import json
import logging
import time
from typing import Optional
from authlib.integrations.requests_client import OAuth2Session
from jose import jwt

from posty.core.config import settings
from posty.modules.auth.state_store import OAuthStateStore, oauth_state_store

logger = logging.getLogger(__name__)

APPLE_AUTHORIZE_URL = "https://appleid.apple.com/auth/authorize"
APPLE_TOKEN_URL = "https://appleid.apple.com/auth/token"
APPLE_AUDIENCE = "https://appleid.apple.com"
APPLE_SCOPES = ["name", "email"]
CLIENT_SECRET_TTL_SECONDS = 300

PROVIDER = "apple"


class AppleOAuthManager:
    """
    Manages the Apple sign-in flow.

    Usage:
        auth_url = await apple_oauth.get_authorization_url()
        if await apple_oauth.verify_state(form["state"]):
            profile = await apple_oauth.fetch_profile(form["code"], form.get("user"))
    """

    def __init__(self, state_store: Optional[OAuthStateStore] = None):
        self.client_id = settings.APPLE_CLIENT_ID
        self.team_id = settings.APPLE_TEAM_ID
        self.key_id = settings.APPLE_KEY_ID
        self.private_key = settings.APPLE_PRIVATE_KEY
        self.redirect_uri = settings.APPLE_REDIRECT_URI
        self.state_store = state_store or oauth_state_store

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.team_id and self.key_id and self.private_key)

    def build_client_secret(self, now: Optional[int] = None) -> str:
        """Signed ES256 JWT used as client_secret for the token endpoint."""
        issued_at = now or int(time.time())
        claims = {
            "iss": self.team_id,
            "iat": issued_at,
            "exp": issued_at + CLIENT_SECRET_TTL_SECONDS,
            "aud": APPLE_AUDIENCE,
            "sub": self.client_id,
        }
        # Env vars often carry the PEM with escaped newlines
        key = (self.private_key or "").replace("\\n", "\n")
        return jwt.encode(claims, key, algorithm="ES256", headers={"kid": self.key_id})

    async def get_authorization_url(self) -> str:
        state = await self.state_store.issue(PROVIDER)
        session = OAuth2Session(
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scope=APPLE_SCOPES,
        )
        auth_url, _ = session.create_authorization_url(
            APPLE_AUTHORIZE_URL,
            state=state,
            response_mode="form_post",
        )
        return auth_url

    async def verify_state(self, state: Optional[str]) -> bool:
        return await self.state_store.consume(state, PROVIDER)

    def _exchange_code(self, code: str) -> dict:
        session = OAuth2Session(
            client_id=self.client_id,
            client_secret=self.build_client_secret(),
            redirect_uri=self.redirect_uri,
            token_endpoint_auth_method="client_secret_post",
        )
        return session.fetch_token(APPLE_TOKEN_URL, code=code, timeout=30)

    async def fetch_profile(self, code: str, user_json: Optional[str] = None) -> dict:
        """
        Exchange the code and read identity claims.

        The id_token comes straight from Apple's token endpoint over TLS, so
        its claims are read without re-verifying the signature.

        Raises:
            Exception: Token exchange failure or missing id_token
        """
        token = await asyncio.to_thread(self._exchange_code, code)
        id_token = token.get("id_token")
        if not id_token:
            raise ValueError("Apple token response missing id_token")

        claims = jwt.get_unverified_claims(id_token)
        subject = claims.get("sub")
        if not subject:
            raise ValueError("Apple id_token missing sub claim")

        user_info = {}
        if user_json:
            try:
                user_info = json.loads(user_json)
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed Apple user payload")
        name = user_info.get("name") or {}

        return {
            "provider_id": str(subject),
            "email": claims.get("email") or user_info.get("email"),
            "first_name": name.get("firstName"),
            "last_name": name.get("lastName"),
            "email_verified": True,  # Apple verifies emails
        }


# Global Apple OAuth manager instance
apple_oauth = AppleOAuthManager()
