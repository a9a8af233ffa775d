"""Unit tests for auth/tokens.py.

Covers:
- Access token claims {userId, email, type="access"} and 1h lifetime
- Refresh token claims {userId, type="refresh"}, no email, 7d lifetime
- Expired vs malformed vs forged tokens raise distinct TokenError subclasses
- extract_user_id requires a string userId
- Reset secrets are unique; the HMAC lookup digest is deterministic and keyed
"""

import pytest
from jose import jwt

from auth.tokens import InvalidTokenError, TokenError, TokenExpiredError, TokenService

SECRET = "unit-test-signing-secret-0123456789"


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(SECRET)


class TestIssue:
    def test_access_token_claims(self, tokens: TokenService) -> None:
        claims = tokens.validate_token(tokens.generate_access_token("user-1", "a@b.com"))
        assert claims["userId"] == "user-1"
        assert claims["email"] == "a@b.com"
        assert claims["type"] == "access"
        assert claims["exp"] - claims["iat"] == 3600

    def test_refresh_token_claims(self, tokens: TokenService) -> None:
        claims = tokens.validate_token(tokens.generate_refresh_token("user-1"))
        assert claims["userId"] == "user-1"
        assert claims["type"] == "refresh"
        assert "email" not in claims
        assert claims["exp"] - claims["iat"] == 604800

    def test_same_second_tokens_are_distinct(self, tokens: TokenService) -> None:
        assert tokens.generate_refresh_token("user-1") != tokens.generate_refresh_token("user-1")

    def test_signed_with_hs256(self, tokens: TokenService) -> None:
        assert jwt.get_unverified_header(tokens.generate_access_token("u", "a@b.com"))["alg"] == "HS256"


class TestValidate:
    def test_expired_token(self) -> None:
        expired = TokenService(SECRET, access_expire_seconds=-10)
        token = expired.generate_access_token("user-1", "a@b.com")
        with pytest.raises(TokenExpiredError):
            TokenService(SECRET).validate_token(token)

    def test_wrong_key(self, tokens: TokenService) -> None:
        forged = TokenService("another-secret-another-secret-0000").generate_access_token("user-1", "a@b.com")
        with pytest.raises(InvalidTokenError):
            tokens.validate_token(forged)

    @pytest.mark.parametrize("garbage", ["", "not.a.jwt", "abc", None, 123])
    def test_garbage(self, tokens: TokenService, garbage) -> None:
        with pytest.raises(InvalidTokenError):
            tokens.validate_token(garbage)

    def test_both_failures_share_base_class(self) -> None:
        assert issubclass(TokenExpiredError, TokenError)
        assert issubclass(InvalidTokenError, TokenError)


class TestExtractUserId:
    def test_returns_user_id(self, tokens: TokenService) -> None:
        assert tokens.extract_user_id(tokens.generate_refresh_token("user-9")) == "user-9"

    def test_missing_user_id(self, tokens: TokenService) -> None:
        token = jwt.encode({"type": "access", "exp": 9999999999}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            tokens.extract_user_id(token)

    def test_non_string_user_id(self, tokens: TokenService) -> None:
        token = jwt.encode({"userId": 42, "type": "access", "exp": 9999999999}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            tokens.extract_user_id(token)


class TestResetSecrets:
    def test_reset_tokens_are_unique(self, tokens: TokenService) -> None:
        generated = {tokens.generate_reset_token() for _ in range(50)}
        assert len(generated) == 50

    def test_lookup_hash_deterministic(self, tokens: TokenService) -> None:
        assert tokens.reset_lookup_hash("secret") == tokens.reset_lookup_hash("secret")
        assert len(tokens.reset_lookup_hash("secret")) == 64

    def test_lookup_hash_keyed(self, tokens: TokenService) -> None:
        other = TokenService("another-secret-another-secret-0000")
        assert tokens.reset_lookup_hash("secret") != other.reset_lookup_hash("secret")
