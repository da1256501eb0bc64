# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for JWT validation."""

from unittest.mock import MagicMock

import pytest
from pydantic import SecretStr

from src.domains.auth.jwt import InvalidTokenError, JWTManager, TokenExpiredError


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("unit-test-secret")
    settings.algorithm = "HS256"
    settings.access_token_expire_minutes = 30
    return settings


@pytest.fixture
def jwt_manager(jwt_settings) -> JWTManager:
    return JWTManager(jwt_settings)


class TestJWTManager:
    """Tests for token creation and validation."""

    def test_access_token_carries_role(self, jwt_manager) -> None:
        token = jwt_manager.create_access_token("user-123", user_type="therapist")

        payload = jwt_manager.decode_token(token, expected_type="access")

        assert payload.sub == "user-123"
        assert payload.type == "access"
        assert payload.user_type == "therapist"
        assert payload.exp > payload.iat
        assert payload.jti

    def test_each_token_has_unique_id(self, jwt_manager) -> None:
        first = jwt_manager.decode_token(jwt_manager.create_access_token("u1"))
        second = jwt_manager.decode_token(jwt_manager.create_access_token("u1"))

        assert first.jti != second.jti
        assert first.user_type is None

    def test_expired_token(self, jwt_manager) -> None:
        token = jwt_manager.create_access_token("user-123", expires_in_minutes=-1)

        with pytest.raises(TokenExpiredError):
            jwt_manager.decode_token(token)

    def test_wrong_secret(self, jwt_manager, jwt_settings) -> None:
        token = jwt_manager.create_access_token("user-123")
        other_settings = MagicMock()
        other_settings.secret_key = SecretStr("a-different-secret")
        other_settings.algorithm = jwt_settings.algorithm

        with pytest.raises(InvalidTokenError):
            JWTManager(other_settings).decode_token(token)

    def test_wrong_token_type(self, jwt_manager) -> None:
        token = jwt_manager.create_access_token("user-123")

        with pytest.raises(InvalidTokenError, match="Expected refresh token"):
            jwt_manager.decode_token(token, expected_type="refresh")

    def test_garbage_token(self, jwt_manager) -> None:
        with pytest.raises(InvalidTokenError):
            jwt_manager.decode_token("not-a-jwt")
