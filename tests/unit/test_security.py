"""Unit tests for secret encryption, password hashing and auth tokens."""

import pytest
from cryptography.fernet import InvalidToken
from jose import jwt

from posty.core.config import settings
from posty.core.security import (
    create_auth_token,
    decrypt_secret,
    encrypt_secret,
    generate_state_token,
    generate_user_id,
    hash_password,
    mask_email,
    verify_auth_token,
    verify_password,
)


class TestSecretEncryption:

    def test_encrypt_decrypt(self):
        ciphertext = encrypt_secret("smtp-app-password")

        assert ciphertext != "smtp-app-password"
        assert decrypt_secret(ciphertext) == "smtp-app-password"

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            encrypt_secret("")

    def test_tampered_ciphertext(self):
        ciphertext = encrypt_secret("secret")

        with pytest.raises(InvalidToken):
            decrypt_secret(ciphertext[:-4] + "AAAA")


class TestPasswords:

    def test_hash_is_salted_and_verifies(self):
        first = hash_password("correct-horse")
        second = hash_password("correct-horse")

        assert first != second
        assert verify_password("correct-horse", first)
        assert not verify_password("wrong", first)


class TestAuthToken:

    def test_round_trip_claims(self):
        token = create_auth_token("email_abc", "a@example.com", "email")

        payload = verify_auth_token(token)

        assert payload["userId"] == "email_abc"
        assert payload["email"] == "a@example.com"
        assert payload["provider"] == "email"
        assert payload["exp"] - payload["iat"] == settings.AUTH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    def test_expired_token_rejected(self):
        token = create_auth_token("email_abc", None, "email", expires_days=-1)

        assert verify_auth_token(token) is None

    def test_wrong_signature_rejected(self):
        token = jwt.encode({"userId": "email_abc"}, "another-key", algorithm="HS256")

        assert verify_auth_token(token) is None

    def test_token_without_user_rejected(self):
        token = jwt.encode({"email": "a@example.com"}, settings.SECRET_KEY, algorithm="HS256")

        assert verify_auth_token(token) is None

    def test_garbage_rejected(self):
        assert verify_auth_token("not-a-token") is None


class TestIdentifiers:

    def test_state_token_is_random_hex(self):
        first, second = generate_state_token(), generate_state_token()

        assert len(first) == 64
        assert first != second

    def test_oauth_user_id_is_stable(self):
        assert generate_user_id("google", "1234") == "google_1234"

    def test_email_user_id_is_random(self):
        assert generate_user_id("email") != generate_user_id("email")
        assert generate_user_id("email").startswith("email_")

    @pytest.mark.parametrize(
        "email, expected",
        [("sebastian@example.com", "seb***@example.com"), ("ab@x.io", "***@x.io"), (None, "***@unknown")],
    )
    def test_mask_email(self, email, expected):
        assert mask_email(email) == expected
