"""Property-based tests for bearer token validation."""

import uuid
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from hypothesis import given, settings, strategies as st
from jose import jwt

from omihorizn.core.config import settings as app_settings
from omihorizn.modules.auth.jwt import (
    create_access_token,
    decode_access_token,
    get_current_user,
    require_admin,
)

uuid_strategy = st.uuids()
role_strategy = st.sampled_from(["user", "admin"])


class TestAccessTokenValidity:
    """Property tests for access token round trips."""

    @given(user_id=uuid_strategy, role=role_strategy)
    @settings(max_examples=100)
    def test_token_identifies_caller(self, user_id: uuid.UUID, role: str) -> None:
        token = create_access_token(user_id, role=role, email="student@example.com")
        user = decode_access_token(token)

        assert user is not None, "Token should be decodable"
        assert user.id == user_id
        assert user.role == role
        assert user.email == "student@example.com"
        assert user.is_admin is (role == "admin")

    @given(user_id=uuid_strategy)
    @settings(max_examples=50)
    def test_expired_token_is_rejected(self, user_id: uuid.UUID) -> None:
        token = create_access_token(user_id, expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None

    @given(user_id=uuid_strategy)
    @settings(max_examples=50)
    def test_token_signed_with_other_key_is_rejected(self, user_id: uuid.UUID) -> None:
        token = jwt.encode(
            {"sub": str(user_id), "type": "access"},
            "another-secret",
            algorithm=app_settings.JWT_ALGORITHM,
        )

        assert decode_access_token(token) is None

    @given(user_id=uuid_strategy)
    @settings(max_examples=50)
    def test_refresh_token_is_not_an_access_token(self, user_id: uuid.UUID) -> None:
        token = jwt.encode(
            {"sub": str(user_id), "type": "refresh"},
            app_settings.SECRET_KEY,
            algorithm=app_settings.JWT_ALGORITHM,
        )

        assert decode_access_token(token) is None

    @pytest.mark.parametrize("subject", ["not-a-uuid", ""])
    def test_malformed_subject_is_rejected(self, subject: str) -> None:
        token = jwt.encode(
            {"sub": subject, "type": "access"},
            app_settings.SECRET_KEY,
            algorithm=app_settings.JWT_ALGORITHM,
        )

        assert decode_access_token(token) is None


class TestDependencies:

    @pytest.mark.asyncio
    async def test_invalid_token_raises_unauthorized(self) -> None:
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="garbage")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_require_admin_rejects_regular_user(self) -> None:
        token = create_access_token(uuid.uuid4(), role="user")
        user = await get_current_user(
            HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
        )

        with pytest.raises(HTTPException) as exc_info:
            await require_admin(user)

        assert exc_info.value.status_code == 403
