"""
RentalHub Backend — Security & Auth Service Unit Tests
========================================================

What we test:
    ✅ bcrypt hash/verify, malformed hashes fail closed
    ✅ Access vs refresh token types, expiry, tampering
    ✅ Register: duplicate email, email normalisation, phone sanitising
    ✅ Login and refresh against a mocked session
"""

from uuid import uuid4

import pytest
from jose import jwt

from rentalhub.config import settings
from rentalhub.exceptions import AuthenticationError, ConflictError
from rentalhub.schemas.auth import RegisterRequest, sanitize_phone
from rentalhub.security import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    _create_token,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from rentalhub.services.auth_service import AuthService


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("password123")
        assert hashed != "password123"
        assert verify_password("password123", hashed) is True
        assert verify_password("password124", hashed) is False

    def test_malformed_hash_is_rejected(self):
        assert verify_password("password123", "not-a-bcrypt-hash") is False


class TestTokens:

    def test_access_token_claims(self):
        user_id = str(uuid4())
        payload = decode_token(create_access_token(user_id, "test@example.com", "user"))

        assert payload["sub"] == user_id
        assert payload["email"] == "test@example.com"
        assert payload["role"] == "user"
        assert payload["type"] == TOKEN_TYPE_ACCESS
        assert payload["exp"] - payload["iat"] == settings.access_token_expire_seconds

    def test_refresh_token_is_not_an_access_token(self):
        token = create_refresh_token(str(uuid4()))

        assert decode_token(token, expected_type=TOKEN_TYPE_REFRESH)["type"] == TOKEN_TYPE_REFRESH
        with pytest.raises(AuthenticationError, match="Invalid token type"):
            decode_token(token)

    def test_expired_token(self):
        token = _create_token(str(uuid4()), TOKEN_TYPE_ACCESS, expires_in=-30)
        with pytest.raises(AuthenticationError, match="expired"):
            decode_token(token)

    def test_foreign_signature(self):
        token = jwt.encode({"sub": str(uuid4()), "type": "access"}, "some-other-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError, match="Invalid authentication token"):
            decode_token(token)

    def test_garbage_token(self):
        with pytest.raises(AuthenticationError):
            decode_token("definitely.not.ajwt")


class TestPhoneSanitising:

    def test_formatting_is_stripped(self):
        assert sanitize_phone("+91 (987) 654-3210") == "+919876543210"

    def test_unusable_number_becomes_none(self):
        assert sanitize_phone("call me maybe") is None
        assert sanitize_phone("") is None


class TestAuthService:

    def setup_method(self):
        self.service = AuthService()

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=uuid4())
        payload = RegisterRequest(email="Test@Example.com", password="password123", full_name="Test User")

        with pytest.raises(ConflictError) as exc_info:
            await self.service.register(mock_db_session, payload)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_register_normalises_input(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=None)
        payload = RegisterRequest(
            email="New.User@Example.com",
            password="password123",
            full_name="  New User ",
            phone="98765 43210",
        )

        result = await self.service.register(mock_db_session, payload)

        assert result.email == "new.user@example.com"
        assert result.full_name == "New User"
        assert result.phone == "9876543210"
        assert result.role == "user"
        stored = mock_db_session.added[0]
        assert verify_password("password123", stored.password_hash)

    @pytest.mark.asyncio
    async def test_login_with_wrong_password(self, mock_db_session, make_result, regular_user):
        regular_user.password_hash = hash_password("password123")
        mock_db_session.execute.return_value = make_result(scalar=regular_user)

        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await self.service.login(mock_db_session, "test@example.com", "wrong-password")

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, mock_db_session, make_result):
        mock_db_session.execute.return_value = make_result(scalar=None)

        with pytest.raises(AuthenticationError):
            await self.service.login(mock_db_session, "ghost@example.com", "password123")

    @pytest.mark.asyncio
    async def test_login_issues_both_tokens(self, mock_db_session, make_result, regular_user):
        regular_user.password_hash = hash_password("password123")
        mock_db_session.execute.return_value = make_result(scalar=regular_user)

        result = await self.service.login(mock_db_session, "TEST@example.com", "password123")

        assert result.user.id == regular_user.id
        assert decode_token(result.tokens.access_token)["sub"] == str(regular_user.id)
        assert decode_token(result.tokens.refresh_token, expected_type=TOKEN_TYPE_REFRESH)
        assert result.tokens.token_type == "bearer"

    @pytest.mark.asyncio
    async def test_refresh_returns_new_access_token_only(self, mock_db_session, make_result, regular_user):
        mock_db_session.execute.return_value = make_result(scalar=regular_user)

        user, tokens = await self.service.refresh(mock_db_session, create_refresh_token(str(regular_user.id)))

        assert user is regular_user
        assert tokens.refresh_token is None
        assert decode_token(tokens.access_token)["role"] == regular_user.role

    @pytest.mark.asyncio
    async def test_refresh_rejects_access_token(self, mock_db_session, regular_user):
        access = create_access_token(str(regular_user.id), regular_user.email, regular_user.role)
        with pytest.raises(AuthenticationError):
            await self.service.refresh(mock_db_session, access)
        mock_db_session.execute.assert_not_awaited()
