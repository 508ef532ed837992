"""Unit tests for UserRepository (users and their settings row)."""

import pytest

from posty.modules.accounts.repository import EmailInUseError, UserRepository


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_adds_default_settings(self, db):
        users = UserRepository(db)

        user = await users.create(id="email_abc", email="new@example.com", provider="email")
        await db.commit()

        user_settings = await users.get_settings(user.id)
        assert user_settings.theme == "system"
        assert user_settings.email_notifications is True
        assert user_settings.has_smtp_config is False


class TestUpsertOAuthUser:

    @pytest.mark.asyncio
    async def test_first_sign_in_creates_user(self, db):
        users = UserRepository(db)

        user = await users.upsert_oauth_user(
            "google_123", provider="google", provider_id="123", email="g@example.com", first_name="Grace"
        )
        await db.commit()

        assert user.id == "google_123"
        assert (await users.get_by_email("g@example.com")).id == "google_123"

    @pytest.mark.asyncio
    async def test_repeat_sign_in_keeps_known_fields(self, db):
        users = UserRepository(db)
        await users.upsert_oauth_user(
            "apple_9", provider="apple", provider_id="9", email="a@example.com", first_name="Alan"
        )
        await db.commit()

        # Apple omits name on later sign-ins
        user = await users.upsert_oauth_user(
            "apple_9", provider="apple", provider_id="9", email="a@example.com", first_name=None
        )

        assert user.first_name == "Alan"

    @pytest.mark.asyncio
    async def test_email_owned_by_other_account(self, db, make_user):
        await make_user(email="taken@example.com")
        users = UserRepository(db)

        with pytest.raises(EmailInUseError):
            await users.upsert_oauth_user("google_1", provider="google", provider_id="1", email="taken@example.com")


class TestProfileAndSettings:

    @pytest.mark.asyncio
    async def test_update_profile_rejects_taken_email(self, db, make_user):
        await make_user(email="one@example.com")
        await make_user(email="two@example.com")
        users = UserRepository(db)
        two = await users.get_by_email("two@example.com")

        with pytest.raises(EmailInUseError):
            await users.update_profile(two, {"email": "one@example.com"})

    @pytest.mark.asyncio
    async def test_update_settings_ignores_unknown_keys(self, db, make_user):
        user = await make_user()
        users = UserRepository(db)

        user_settings = await users.update_settings(user.id, {"theme": "dark", "password_hash": "x"})

        assert user_settings.theme == "dark"
        assert (await users.get(user.id)).password_hash != "x"

    @pytest.mark.asyncio
    async def test_get_or_create_settings_returns_existing_row(self, db):
        users = UserRepository(db)
        await users.upsert_oauth_user("google_5", provider="google", provider_id="5", email=None)
        await db.commit()

        user_settings = await users.get_or_create_settings("google_5")

        assert user_settings.language == "en"

    @pytest.mark.asyncio
    async def test_clear_smtp_settings(self, db, make_user):
        user = await make_user(
            smtp_host="smtp.example.com",
            smtp_port=465,
            smtp_secure=True,
            smtp_username="mailer",
            encrypted_smtp_password="ciphertext",
        )
        users = UserRepository(db)

        user_settings = await users.clear_smtp_settings(user.id)

        assert user_settings.smtp_host is None
        assert user_settings.smtp_secure is False
        assert user_settings.has_smtp_config is False
