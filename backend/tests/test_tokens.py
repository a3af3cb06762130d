"""Tests for access/refresh token issuance and validation."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from reward_service.auth.tokens import JWT_ALGORITHM, TokenIssuer
from reward_service.errors import (
    InvalidRefreshTokenError,
    RandomSourceError,
    TokenExpiredError,
    TokenIssueError,
    TokenValidationError,
)

from conftest import TEST_SECRET

USER_ID = 42


def _b64url(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _issuer_at(verifier, offset: timedelta) -> TokenIssuer:
    """Issuer whose clock is shifted, so tokens look issued ``offset`` ago."""
    return TokenIssuer(verifier, now=lambda: datetime.now(timezone.utc) - offset)


class TestIssue:
    """Tests for TokenIssuer.issue."""

    def test_issue_returns_all_parts(self, issuer, validator):
        """Test that an access token, refresh token and hash are produced."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)

        assert tokens.user_id == USER_ID
        assert tokens.access_token
        assert tokens.refresh_token
        assert tokens.hashed_refresh_token != tokens.refresh_token
        validator.validate_refresh_token(tokens.hashed_refresh_token, tokens.refresh_token)

    def test_access_token_claims(self, issuer):
        """Test the algorithm header and the sub/exp claims."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)

        header = jwt.get_unverified_header(tokens.access_token)
        claims = jwt.get_unverified_claims(tokens.access_token)

        assert header["alg"] == "HS512"
        assert claims["sub"] == str(USER_ID)
        assert claims["exp"] - claims["iat"] == 15 * 60

    def test_refresh_token_is_32_random_bytes(self, issuer):
        """Test that the refresh token is base64 of 32 bytes and unique per call."""
        first = issuer.issue(USER_ID, TEST_SECRET)
        second = issuer.issue(USER_ID, TEST_SECRET)

        assert len(base64.b64decode(first.refresh_token)) == 32
        assert first.refresh_token != second.refresh_token

    def test_repr_hides_secrets(self, issuer):
        """Test that tokens do not leak through repr (logs, tracebacks)."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)

        assert tokens.refresh_token not in repr(tokens)
        assert tokens.access_token not in repr(tokens)

    def test_empty_secret_rejected(self, issuer):
        """Test that signing with an empty secret fails."""
        with pytest.raises(TokenIssueError):
            issuer.issue(USER_ID, "")

    def test_random_source_failure_is_fatal(self, verifier):
        """Test that a failing random source aborts the whole issue call."""
        def _broken(n):
            raise OSError("entropy exhausted")

        issuer = TokenIssuer(verifier, random_bytes=_broken)

        with pytest.raises(RandomSourceError):
            issuer.issue(USER_ID, TEST_SECRET)


class TestValidate:
    """Tests for TokenValidator.validate."""

    def test_valid_token_returns_subject(self, issuer, validator):
        """Test that a fresh token yields the integer subject id."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)

        assert validator.validate(tokens.access_token, TEST_SECRET) == USER_ID

    def test_valid_fourteen_minutes_later(self, verifier, validator):
        """Test that a token issued 14 minutes ago still validates."""
        tokens = _issuer_at(verifier, timedelta(minutes=14)).issue(USER_ID, TEST_SECRET)

        assert validator.validate(tokens.access_token, TEST_SECRET) == USER_ID

    def test_expired_sixteen_minutes_later(self, verifier, validator):
        """Test that a token issued 16 minutes ago is expired."""
        tokens = _issuer_at(verifier, timedelta(minutes=16)).issue(USER_ID, TEST_SECRET)

        with pytest.raises(TokenExpiredError):
            validator.validate(tokens.access_token, TEST_SECRET)

    def test_expired_is_a_validation_error(self):
        """Test that callers catching the generic error also catch expiry."""
        assert issubclass(TokenExpiredError, TokenValidationError)

    def test_wrong_secret_rejected(self, issuer, validator):
        """Test that a token signed with another secret fails."""
        tokens = issuer.issue(USER_ID, "some-other-secret-value")

        with pytest.raises(TokenValidationError) as exc_info:
            validator.validate(tokens.access_token, TEST_SECRET)

        assert not isinstance(exc_info.value, TokenExpiredError)

    def test_alg_none_rejected(self, validator):
        """Test that an unsigned token with alg=none is a forgery."""
        exp = int((datetime.now(timezone.utc) + timedelta(minutes=10)).timestamp())
        forged = (
            _b64url({"alg": "none", "typ": "JWT"})
            + "."
            + _b64url({"sub": str(USER_ID), "exp": exp})
            + "."
        )

        with pytest.raises(TokenValidationError):
            validator.validate(forged, TEST_SECRET)

    def test_other_hmac_algorithm_rejected(self, validator):
        """Test that HS256 with the right secret is still rejected."""
        exp = datetime.now(timezone.utc) + timedelta(minutes=10)
        token = jwt.encode({"sub": str(USER_ID), "exp": exp}, TEST_SECRET, algorithm="HS256")

        with pytest.raises(TokenValidationError):
            validator.validate(token, TEST_SECRET)

    def test_tampered_payload_rejected(self, issuer, validator):
        """Test that swapping the payload breaks the signature."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)
        header, _, signature = tokens.access_token.split(".")
        claims = jwt.get_unverified_claims(tokens.access_token)
        claims["sub"] = "1"
        forged = f"{header}.{_b64url(claims)}.{signature}"

        with pytest.raises(TokenValidationError):
            validator.validate(forged, TEST_SECRET)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "eyJhbGciOiJIUzUxMiJ9.e30."])
    def test_malformed_token_rejected(self, validator, token):
        """Test that malformed input fails with the generic message."""
        with pytest.raises(TokenValidationError) as exc_info:
            validator.validate(token, TEST_SECRET)

        assert str(exc_info.value) == "token validation failed"

    def test_non_integer_subject_rejected(self, validator):
        """Test that a signed token with a non-numeric subject fails."""
        exp = datetime.now(timezone.utc) + timedelta(minutes=10)
        token = jwt.encode({"sub": "alice", "exp": exp}, TEST_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(TokenValidationError):
            validator.validate(token, TEST_SECRET)

    def test_missing_expiry_rejected(self, validator):
        """Test that a token without exp never validates."""
        token = jwt.encode({"sub": str(USER_ID)}, TEST_SECRET, algorithm=JWT_ALGORITHM)

        with pytest.raises(TokenValidationError):
            validator.validate(token, TEST_SECRET)

    def test_empty_secret_rejected(self, issuer, validator):
        """Test that validation refuses to run without a secret."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)

        with pytest.raises(TokenValidationError):
            validator.validate(tokens.access_token, "")


class TestRefreshTokenValidation:
    """Tests for TokenValidator.validate_refresh_token."""

    def test_wrong_refresh_token_rejected(self, issuer, validator):
        """Test that another token does not match the stored hash."""
        first = issuer.issue(USER_ID, TEST_SECRET)
        second = issuer.issue(USER_ID, TEST_SECRET)

        with pytest.raises(InvalidRefreshTokenError):
            validator.validate_refresh_token(first.hashed_refresh_token, second.refresh_token)

    def test_corrupt_hash_rejected(self, issuer, validator):
        """Test that an unreadable stored hash is reported as an invalid token."""
        tokens = issuer.issue(USER_ID, TEST_SECRET)

        with pytest.raises(InvalidRefreshTokenError):
            validator.validate_refresh_token("corrupt", tokens.refresh_token)
