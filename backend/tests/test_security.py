"""
Tests for bearer token encoding, decoding and the identity dependency.
"""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from freightdesk.api.deps import get_current_identity
from freightdesk.core.config import get_settings
from freightdesk.core.security import TokenError, create_access_token, decode_token


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


# ============================================================================
# Token encoding and decoding
# ============================================================================


class TestAccessTokens:
    """Test suite for access token round trips and rejection."""

    def test_claims(self):
        token = create_access_token("dispatcher-7", role="dispatcher")

        payload = decode_token(token)

        assert payload["sub"] == "dispatcher-7"
        assert payload["role"] == "dispatcher"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_role_is_optional(self):
        payload = decode_token(create_access_token("svc-import"))

        assert "role" not in payload

    def test_expired_token(self):
        token = create_access_token("dispatcher-7", expires_delta=timedelta(seconds=-5))

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_secret(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "intruder", "type": "access"},
            "not-the-secret-" * 3,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_INVALID"

    def test_refresh_token_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "dispatcher-7", "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_TYPE"

    @pytest.mark.parametrize("token", ["", "not.a.jwt"])
    def test_malformed(self, token: str):
        with pytest.raises(TokenError):
            decode_token(token)


# ============================================================================
# Identity dependency
# ============================================================================


class TestCurrentIdentity:
    """Test suite for the bearer token dependency."""

    async def test_identity_from_token(self):
        token = create_access_token("dispatcher-7", role="dispatcher")

        identity = await get_current_identity(_credentials(token))

        assert identity.subject == "dispatcher-7"
        assert identity.role == "dispatcher"

    async def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_identity(None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers["WWW-Authenticate"] == "Bearer"

    async def test_invalid_token(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_identity(_credentials("garbage"))

        assert exc_info.value.status_code == 401

    async def test_token_without_subject(self):
        settings = get_settings()
        token = jwt.encode(
            {"type": "access"}, settings.secret_key, algorithm=settings.jwt_algorithm
        )

        with pytest.raises(HTTPException):
            await get_current_identity(_credentials(token))
