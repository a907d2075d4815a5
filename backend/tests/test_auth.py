"""
Authentication Test Suite

Tests for local JWT issuing and validation and the get_current_user_id
dependency: valid tokens, expiry, wrong secret or issuer, and missing
credentials.
"""

from datetime import UTC, datetime, timedelta

import pytest

from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from app.config import Settings
from app.core.auth import create_access_token, decode_access_token, get_current_user_id
from app.core.exceptions import Unauthenticated


def _encode(settings: Settings, **claims) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": "user-1",
        "iat": now,
        "exp": now + timedelta(hours=1),
        "iss": settings.app_name,
    }
    payload.update(claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


class TestTokens:
    """create_access_token / decode_access_token."""

    def test_round_trip(self, test_settings: Settings) -> None:
        token = create_access_token("user-1", test_settings)
        claims = decode_access_token(token, test_settings)

        assert claims["sub"] == "user-1"
        assert claims["iss"] == test_settings.app_name
        assert claims["exp"] - claims["iat"] == test_settings.jwt_expiration_hours * 3600

    def test_expired_token(self, test_settings: Settings) -> None:
        past = datetime.now(UTC) - timedelta(hours=2)
        token = _encode(test_settings, iat=past, exp=past + timedelta(minutes=5))

        with pytest.raises(Unauthenticated) as exc_info:
            decode_access_token(token, test_settings)

        assert exc_info.value.status_code == 401

    def test_wrong_secret(self, test_settings: Settings) -> None:
        other = test_settings.model_copy(
            update={"secret_key": "a-completely-different-secret-key-of-32+"}
        )
        token = create_access_token("user-1", other)

        with pytest.raises(Unauthenticated):
            decode_access_token(token, test_settings)

    def test_wrong_issuer(self, test_settings: Settings) -> None:
        with pytest.raises(Unauthenticated):
            decode_access_token(_encode(test_settings, iss="someone-else"), test_settings)

    def test_missing_subject(self, test_settings: Settings) -> None:
        with pytest.raises(Unauthenticated):
            decode_access_token(_encode(test_settings, sub=""), test_settings)

    def test_garbage_token(self, test_settings: Settings) -> None:
        with pytest.raises(Unauthenticated):
            decode_access_token("not.a.jwt", test_settings)


class TestCurrentUserDependency:
    """get_current_user_id."""

    @pytest.mark.asyncio
    async def test_returns_subject(self, test_settings: Settings) -> None:
        credentials = HTTPAuthorizationCredentials(
            scheme="Bearer", credentials=create_access_token("user-42", test_settings)
        )

        assert await get_current_user_id(credentials, test_settings) == "user-42"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_settings: Settings) -> None:
        with pytest.raises(Unauthenticated) as exc_info:
            await get_current_user_id(None, test_settings)

        assert exc_info.value.message == "Couldn't find JWT"
