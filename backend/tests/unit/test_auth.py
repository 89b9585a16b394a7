"""Tests for bearer-token verification."""

import jwt
import pytest

from api.auth import TokenVerificationError, decode_access_token
from tests.fixtures import make_access_token


class TestDecodeAccessToken:
    def test_valid_token(self):
        principal = decode_access_token(
            make_access_token("user-42", scope="plaid:read plaid:write", client_id="claude")
        )
        assert principal.user_id == "user-42"
        assert principal.email == "alice@example.com"
        assert principal.name == "Alice"
        assert principal.scopes == ["plaid:read", "plaid:write"]
        assert principal.client_id == "claude"
        assert principal.expires_at is not None

    def test_expired(self):
        with pytest.raises(TokenVerificationError, match="expired"):
            decode_access_token(make_access_token(expires_in=-120))

    def test_wrong_audience(self):
        with pytest.raises(TokenVerificationError):
            decode_access_token(make_access_token(aud="someone-else"))

    def test_wrong_issuer(self):
        with pytest.raises(TokenVerificationError):
            decode_access_token(make_access_token(iss="https://evil.example"))

    def test_wrong_secret(self, test_settings):
        token = make_access_token()
        test_settings.AUTH_JWT_SECRET = "a-completely-different-secret-0123456789"
        with pytest.raises(TokenVerificationError):
            decode_access_token(token)

    def test_missing_subject(self, test_settings):
        token = jwt.encode(
            {"exp": 9999999999, "aud": test_settings.AUTH_JWT_AUDIENCE, "iss": test_settings.AUTH_JWT_ISSUER},
            test_settings.AUTH_JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenVerificationError):
            decode_access_token(token)

    def test_secret_not_configured(self, test_settings):
        token = make_access_token()
        test_settings.AUTH_JWT_SECRET = ""
        with pytest.raises(TokenVerificationError, match="not configured"):
            decode_access_token(token)
