"""Tests for session credential issuance and verification."""

from __future__ import annotations

import time
import uuid

import pytest

from smartclaims.exceptions import (
    ConfigurationError,
    TokenExpired,
    TokenMalformed,
    TokenVerificationFailed,
)
from smartclaims.models import User
from smartclaims.services.tokens import DEFAULT_EXPIRES_IN, SessionTokenService


@pytest.fixture
def user() -> User:
    return User(
        id=uuid.uuid4(),
        email="a@x.com",
        name="A",
        avatar_url="https://img.test/a.png",
    )


class TestIssue:
    def test_round_trip(self, tokens, user) -> None:
        claims = tokens.verify(tokens.issue(user, ["google", "github"]))

        assert claims["sub"] == str(user.id)
        assert claims["email"] == "a@x.com"
        assert claims["name"] == "A"
        assert claims["avatar"] == "https://img.test/a.png"
        assert claims["providers"] == ["google", "github"]
        assert claims["iss"] == "oauth-backend"
        assert claims["aud"] == "oauth-frontend"
        assert claims["exp"] - claims["iat"] == 3600

    def test_token_is_compact_string(self, tokens, user) -> None:
        token = tokens.issue(user, ["google"])
        assert isinstance(token, str)
        assert token.count(".") == 2

    def test_default_lifetime_is_seven_days(self, user) -> None:
        service = SessionTokenService("secret")
        claims = service.verify(service.issue(user, []))
        assert claims["exp"] - claims["iat"] == DEFAULT_EXPIRES_IN == 7 * 24 * 3600

    def test_missing_avatar_is_empty_string(self, tokens, user) -> None:
        user.avatar_url = None
        assert tokens.verify(tokens.issue(user, []))["avatar"] == ""

    def test_empty_secret_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            SessionTokenService("")


class TestVerify:
    def test_expired(self, user) -> None:
        service = SessionTokenService("secret")
        token = service.issue(user, ["google"], now=time.time() - 8 * 24 * 3600)

        with pytest.raises(TokenExpired) as excinfo:
            service.verify(token)
        assert excinfo.value.code == "token_expired"

    def test_valid_until_expiry(self, tokens, user) -> None:
        issued = time.time()
        token = tokens.issue(user, [], now=issued)
        assert tokens.verify(token, now=issued + 3599)["sub"] == str(user.id)
        with pytest.raises(TokenExpired):
            tokens.verify(token, now=issued + 3601)

    def test_tampered_signature(self, tokens, user) -> None:
        header, payload, signature = tokens.issue(user, ["google"]).split(".")
        swapped = "A" if signature[0] != "A" else "B"
        tampered = ".".join([header, payload, swapped + signature[1:]])

        with pytest.raises(TokenMalformed) as excinfo:
            tokens.verify(tampered)
        assert excinfo.value.code == "invalid_token"
        assert excinfo.value.kind == "malformed"

    def test_garbage(self, tokens) -> None:
        with pytest.raises(TokenMalformed):
            tokens.verify("not-a-token")

    def test_wrong_secret(self, tokens, user) -> None:
        foreign = SessionTokenService("another-secret", expires_in=3600)
        with pytest.raises(TokenMalformed):
            tokens.verify(foreign.issue(user, []))

    def test_wrong_audience(self, tokens, user) -> None:
        other = SessionTokenService("test-jwt-secret", expires_in=3600, audience="someone-else")
        with pytest.raises(TokenVerificationFailed) as excinfo:
            tokens.verify(other.issue(user, []))
        assert excinfo.value.code == "invalid_token"

    def test_wrong_issuer(self, tokens, user) -> None:
        other = SessionTokenService("test-jwt-secret", expires_in=3600, issuer="elsewhere")
        with pytest.raises(TokenVerificationFailed):
            tokens.verify(other.issue(user, []))
