"""Tests for JWT issuance and purpose-checked verification."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from common.auth import PASSWORD_RESET_PURPOSE, InvalidTokenError, TokenService

SECRET = "test-secret"


@pytest.fixture
def tokens():
    return TokenService(secret=SECRET)


class TestIssue:
    def test_login_token_round_trip(self, tokens, sample_user_id):
        claims = tokens.verify(tokens.issue_login_token(sample_user_id))

        assert claims.subject_id == sample_user_id
        assert claims.purpose is None

    def test_login_token_expires_in_one_day(self, tokens, sample_user_id):
        payload = jwt.get_unverified_claims(tokens.issue_login_token(sample_user_id))

        assert payload["exp"] - payload["iat"] == int(timedelta(days=1).total_seconds())
        assert "purpose" not in payload

    def test_reset_token_carries_purpose_and_short_ttl(self, tokens, sample_user_id):
        payload = jwt.get_unverified_claims(tokens.issue_reset_token(sample_user_id))

        assert payload["purpose"] == PASSWORD_RESET_PURPOSE
        assert payload["exp"] - payload["iat"] == int(timedelta(minutes=15).total_seconds())

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService(secret="")


class TestVerify:
    def test_reset_token_rejected_as_login_token(self, tokens, sample_user_id):
        with pytest.raises(InvalidTokenError):
            tokens.verify(tokens.issue_reset_token(sample_user_id))

    def test_login_token_rejected_as_reset_token(self, tokens, sample_user_id):
        with pytest.raises(InvalidTokenError):
            tokens.verify(tokens.issue_login_token(sample_user_id), expected_purpose=PASSWORD_RESET_PURPOSE)

    def test_reset_token_accepted_with_expected_purpose(self, tokens, sample_user_id):
        claims = tokens.verify(tokens.issue_reset_token(sample_user_id), expected_purpose=PASSWORD_RESET_PURPOSE)

        assert claims.subject_id == sample_user_id

    def test_expired_token(self, tokens, sample_user_id):
        token = tokens.issue(sample_user_id, ttl=timedelta(seconds=-1))

        with pytest.raises(InvalidTokenError):
            tokens.verify(token)

    def test_wrong_signature(self, sample_user_id):
        token = TokenService(secret="other-secret").issue_login_token(sample_user_id)

        with pytest.raises(InvalidTokenError):
            TokenService(secret=SECRET).verify(token)

    @pytest.mark.parametrize("token", ["", "not.a.jwt", "abc"])
    def test_malformed(self, tokens, token):
        with pytest.raises(InvalidTokenError):
            tokens.verify(token)

    def test_missing_subject(self, tokens):
        now = datetime.now(timezone.utc)
        token = jwt.encode({"iat": now, "exp": now + timedelta(hours=1)}, SECRET, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            tokens.verify(token)

    def test_failures_share_one_message(self, tokens, sample_user_id):
        messages = set()
        for token in ("garbage", tokens.issue_reset_token(sample_user_id), tokens.issue(sample_user_id, ttl=timedelta(seconds=-1))):
            with pytest.raises(InvalidTokenError) as exc_info:
                tokens.verify(token)
            messages.add(str(exc_info.value))

        assert messages == {"Invalid token"}
