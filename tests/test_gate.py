"""Unit tests for auth/dependencies.py -- the Authorization header gate.

Covers:
- token_from_header() accepts only the exact "Token " scheme
- authorize_required() raises Unauthorized for every failure kind
- authorize_optional() falls back to anonymous instead of rejecting
"""

import pytest

from auth.dependencies import authorize_optional, authorize_required, token_from_header
from auth.models import User
from auth.tokens import TokenService
from core.errors import Unauthorized

SECRET = "gate-test-secret-that-is-at-least-32-chars"


@pytest.fixture
def tokens():
    return TokenService(secret_key=SECRET, expire_seconds=3600, clock=lambda: 1_700_000_000)


@pytest.fixture
def expired_token():
    old = TokenService(secret_key=SECRET, expire_seconds=60, clock=lambda: 1_600_000_000)
    return old.issue(User(username="ana", email="ana@example.com", id=1))


@pytest.fixture
def valid_token(tokens):
    return tokens.issue(User(username="ana", email="ana@example.com", id=1))


class TestTokenFromHeader:
    def test_token_scheme(self):
        assert token_from_header("Token abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("value", [None, "", "Token ", "Bearer abc.def.ghi", "token abc.def.ghi", "Tokenabc"])
    def test_rejected_values(self, value):
        assert token_from_header(value) is None


class TestRequiredGate:
    def test_valid_token(self, tokens, valid_token):
        claims = authorize_required(f"Token {valid_token}", tokens)
        assert claims.id == 1
        assert claims.username == "ana"

    def test_missing_header(self, tokens):
        with pytest.raises(Unauthorized):
            authorize_required(None, tokens)

    def test_bearer_prefix(self, tokens, valid_token):
        with pytest.raises(Unauthorized):
            authorize_required(f"Bearer {valid_token}", tokens)

    def test_expired_token(self, tokens, expired_token):
        with pytest.raises(Unauthorized):
            authorize_required(f"Token {expired_token}", tokens)

    def test_garbage_token(self, tokens):
        with pytest.raises(Unauthorized):
            authorize_required("Token garbage", tokens)


class TestOptionalGate:
    def test_valid_token(self, tokens, valid_token):
        assert authorize_optional(f"Token {valid_token}", tokens).id == 1

    def test_missing_header_is_anonymous(self, tokens):
        assert authorize_optional(None, tokens) is None

    def test_expired_token_is_anonymous(self, tokens, expired_token):
        assert authorize_optional(f"Token {expired_token}", tokens) is None

    def test_garbage_token_is_anonymous(self, tokens):
        assert authorize_optional("Token garbage", tokens) is None
