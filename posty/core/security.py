"""
Security utilities for secret encryption, JWT handling, and password hashing.

CRITICAL SECURITY REQUIREMENTS:
1. NEVER log auth tokens, OAuth codes or passwords
2. ALWAYS encrypt stored SMTP passwords before database storage
3. ALWAYS use parameterized queries (SQLAlchemy ORM handles this)
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from cryptography.fernet import Fernet
from jose import jwt, JWTError
from werkzeug.security import check_password_hash, generate_password_hash

from posty.core.config import settings

JWT_ALGORITHM = "HS256"


class SecretEncryption:
    """
    Symmetric encryption for stored secrets using Fernet (AES-128-CBC + HMAC).

    Used for per-user SMTP passwords, which must be recoverable to log in
    to the user's mail server (so they cannot be hashed).
    """

    def __init__(self, encryption_key: str):
        """
        Initialize with encryption key.

        Key must be 44-character base64-encoded string.
        Generate with: Fernet.generate_key().decode()
        """
        self._fernet = Fernet(encryption_key.encode())

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt plaintext string.

        Returns:
            Base64-encoded encrypted string (safe for database storage)
        """
        if not plaintext:
            raise ValueError("Cannot encrypt empty string")

        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt ciphertext string.

        Raises:
            cryptography.fernet.InvalidToken: If decryption fails
        """
        if not ciphertext:
            raise ValueError("Cannot decrypt empty string")

        return self._fernet.decrypt(ciphertext.encode()).decode()


# Global encryption instance
secret_encryptor = SecretEncryption(settings.ENCRYPTION_KEY)


def encrypt_secret(value: str) -> str:
    """
    Encrypt a secret for database storage.

    Usage:
        user_settings.encrypted_smtp_password = encrypt_secret(form.password)
    """
    return secret_encryptor.encrypt(value)


def decrypt_secret(encrypted_value: str) -> str:
    """
    Decrypt a stored secret.

    WARNING: Never log the decrypted value!
    """
    return secret_encryptor.decrypt(encrypted_value)


def hash_password(password: str) -> str:
    """Hash a password for storage (salted, werkzeug default method)."""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash."""
    return check_password_hash(password_hash, password)


def create_auth_token(
    user_id: str,
    email: Optional[str],
    provider: str,
    expires_days: Optional[int] = None,
) -> str:
    """
    Create the signed session token carried in the auth cookie.

    Args:
        user_id: User id (provider-namespaced)
        email: User email, if known
        provider: Auth provider tag ('google' | 'apple' | 'email')
        expires_days: Token lifetime (defaults to AUTH_TOKEN_EXPIRE_DAYS)

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    days = expires_days if expires_days is not None else settings.AUTH_TOKEN_EXPIRE_DAYS
    payload = {
        "userId": user_id,
        "email": email,
        "provider": provider,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_auth_token(token: str) -> Optional[dict]:
    """
    Verify and decode an auth token.

    Returns:
        Decoded payload dict if valid, None if invalid/expired
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None

    if not payload.get("userId"):
        return None
    return payload


def generate_state_token() -> str:
    """
    Generate secure random state token for OAuth flow (CSRF protection).

    Returns:
        64-character hex string
    """
    return secrets.token_hex(32)


def generate_user_id(provider: str, provider_id: Optional[str] = None) -> str:
    """
    Build the provider-namespaced user id.

    OAuth users get a stable id derived from the provider's subject id;
    email users get a random one (their email is the unique login key).
    """
    if provider_id:
        return f"{provider}_{provider_id}"
    return f"{provider}_{secrets.token_hex(12)}"


def mask_email(email_address: Optional[str]) -> str:
    """
    Mask an email address for safe logging.

    e.g., "seb***@example.com"
    """
    if not email_address or "@" not in email_address:
        return "***@unknown"
    local, domain = email_address.split("@", 1)
    masked_local = local[:3] + "***" if len(local) > 3 else "***"
    return f"{masked_local}@{domain}"
