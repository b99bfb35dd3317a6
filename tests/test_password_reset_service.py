"""Tests for the OTP password reset flow."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from common.auth import TokenService
from common.utils.exceptions import (
    BadRequestException,
    InternalServerException,
    RateLimitException,
    ValidationException,
)
from common.utils.password import hash_password, verify_password
from smartfinance.services.auth.password_reset_service import (
    STATE_REQUESTED,
    STATE_VERIFIED,
    PasswordResetService,
)
from smartfinance.services.auth.session_manager import SessionManager
from smartfinance.services.auth.token_hasher import TokenHasher
from smartfinance.services.user.user_service import UserService

EMAIL = "anna@example.com"
NEW_PASSWORD = "N3w!Passw0rd"


@pytest.fixture
def email_service():
    service = MagicMock()
    service.send_password_reset_otp = AsyncMock(return_value={"success": True})
    return service


@pytest.fixture
def token_service():
    return TokenService(secret="test-secret")


@pytest.fixture
def service(fake_db, email_service, token_service, clock):
    return PasswordResetService(
        db=fake_db,
        user_service=UserService(fake_db),
        session_manager=SessionManager(fake_db, clock=clock),
        token_service=token_service,
        email_service=email_service,
        clock=clock,
    )


@pytest.fixture
def user(users_collection, session_factory, now):
    return users_collection.add_user(
        email=EMAIL,
        passwordHash=hash_password("0ld!Passw0rd"),
        activeSessions=[session_factory("A", now), session_factory("B", now)],
    )


def _stored(users_collection, user):
    return users_collection.docs[user["_id"]]


def _sent_otp(email_service):
    return email_service.send_password_reset_otp.call_args.args[1]


# ─────────────────────────────────────────────────────────────────
# request_reset
# ─────────────────────────────────────────────────────────────────


class TestRequestReset:
    @pytest.mark.asyncio
    async def test_stores_hash_and_emails_plain_code(self, service, email_service, users_collection, user, now):
        await service.request_reset(EMAIL)

        otp = _sent_otp(email_service)
        stored = _stored(users_collection, user)

        assert len(otp) == 6 and otp.isdigit()
        assert stored["resetPasswordOtpHash"] == TokenHasher.hash_token(otp)
        assert stored["resetPasswordOtpHash"] != otp
        assert stored["resetPasswordOtpExpiresAt"] == now + timedelta(minutes=10)
        assert stored["resetPasswordOtpRetryCount"] == 0
        assert stored["resetPasswordState"] == STATE_REQUESTED
        email_service.send_password_reset_otp.assert_awaited_once_with(EMAIL, otp, expires_minutes=10)

    @pytest.mark.asyncio
    async def test_unknown_email_is_silent(self, service, email_service):
        await service.request_reset("nobody@example.com")

        email_service.send_password_reset_otp.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_email_lookup_ignores_case(self, service, email_service, user):
        await service.request_reset("  Anna@Example.COM ")

        email_service.send_password_reset_otp.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fourth_request_in_window_is_rate_limited(self, service, user, clock):
        for _ in range(3):
            await service.request_reset(EMAIL)
            clock.advance(minutes=1)

        with pytest.raises(RateLimitException) as exc_info:
            await service.request_reset(EMAIL)

        assert exc_info.value.status_code == 429
        assert exc_info.value.code == "RESET_RATE_LIMITED"
        assert exc_info.value.retry_after == 7 * 60

    @pytest.mark.asyncio
    async def test_window_resets_after_expiry(self, service, email_service, user, clock):
        for _ in range(3):
            await service.request_reset(EMAIL)
        clock.advance(minutes=10)

        await service.request_reset(EMAIL)

        assert email_service.send_password_reset_otp.await_count == 4

    @pytest.mark.asyncio
    async def test_send_failure_raises(self, service, email_service, user):
        email_service.send_password_reset_otp.return_value = {"success": False, "error": "refused"}

        with pytest.raises(InternalServerException) as exc_info:
            await service.request_reset(EMAIL)

        assert exc_info.value.code == "EMAIL_SEND_FAILED"


# ─────────────────────────────────────────────────────────────────
# verify_otp
# ─────────────────────────────────────────────────────────────────


class TestVerifyOtp:
    @pytest.mark.asyncio
    async def test_correct_code_returns_reset_token(
        self, service, email_service, token_service, users_collection, user,
    ):
        await service.request_reset(EMAIL)

        reset_token = await service.verify_otp(EMAIL, _sent_otp(email_service))

        claims = token_service.verify(reset_token, expected_purpose="password_reset")
        assert claims.subject_id == str(user["_id"])

        stored = _stored(users_collection, user)
        assert stored["resetPasswordState"] == STATE_VERIFIED
        assert stored["resetPasswordOtpHash"] is None

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, service, email_service, user):
        await service.request_reset(EMAIL)
        otp = _sent_otp(email_service)
        await service.verify_otp(EMAIL, otp)

        with pytest.raises(BadRequestException) as exc_info:
            await service.verify_otp(EMAIL, otp)

        assert exc_info.value.code == "INVALID_OTP"

    @pytest.mark.asyncio
    async def test_without_pending_reset(self, service, user):
        with pytest.raises(BadRequestException) as exc_info:
            await service.verify_otp(EMAIL, "123456")

        assert exc_info.value.code == "INVALID_OTP"

    @pytest.mark.asyncio
    async def test_expired_code_clears_reset(self, service, email_service, users_collection, user, clock):
        await service.request_reset(EMAIL)
        clock.advance(minutes=10)

        with pytest.raises(BadRequestException) as exc_info:
            await service.verify_otp(EMAIL, _sent_otp(email_service))

        assert exc_info.value.code == "OTP_EXPIRED"
        assert _stored(users_collection, user)["resetPasswordState"] is None

    @pytest.mark.asyncio
    async def test_wrong_code_counts_attempts(self, service, email_service, users_collection, user):
        await service.request_reset(EMAIL)
        wrong = "000000" if _sent_otp(email_service) != "000000" else "111111"

        with pytest.raises(BadRequestException) as exc_info:
            await service.verify_otp(EMAIL, wrong)

        assert exc_info.value.code == "INVALID_OTP"
        assert exc_info.value.detail["details"] == {"attemptsRemaining": 4}
        assert _stored(users_collection, user)["resetPasswordOtpRetryCount"] == 1

    @pytest.mark.asyncio
    async def test_fifth_wrong_code_cancels_reset(self, service, email_service, users_collection, user):
        await service.request_reset(EMAIL)
        otp = _sent_otp(email_service)
        wrong = "000000" if otp != "000000" else "111111"

        for _ in range(4):
            with pytest.raises(BadRequestException):
                await service.verify_otp(EMAIL, wrong)

        with pytest.raises(BadRequestException) as exc_info:
            await service.verify_otp(EMAIL, wrong)
        assert exc_info.value.code == "OTP_ATTEMPTS_EXCEEDED"

        # Even the right code is useless now
        with pytest.raises(BadRequestException) as exc_info:
            await service.verify_otp(EMAIL, otp)
        assert exc_info.value.code == "INVALID_OTP"


# ─────────────────────────────────────────────────────────────────
# reset_password
# ─────────────────────────────────────────────────────────────────


class TestResetPassword:
    async def _verified_token(self, service, email_service):
        await service.request_reset(EMAIL)
        return await service.verify_otp(EMAIL, _sent_otp(email_service))

    @pytest.mark.asyncio
    async def test_sets_password_and_signs_out_everywhere(
        self, service, email_service, users_collection, user,
    ):
        reset_token = await self._verified_token(service, email_service)

        await service.reset_password(reset_token, NEW_PASSWORD)

        stored = _stored(users_collection, user)
        assert verify_password(NEW_PASSWORD, stored["passwordHash"])
        assert stored["activeSessions"] == []
        assert stored["resetPasswordState"] is None

    @pytest.mark.asyncio
    async def test_token_cannot_be_reused(self, service, email_service, user):
        reset_token = await self._verified_token(service, email_service)
        await service.reset_password(reset_token, NEW_PASSWORD)

        with pytest.raises(BadRequestException) as exc_info:
            await service.reset_password(reset_token, "An0ther!Pass")

        assert exc_info.value.code == "INVALID_RESET_TOKEN"

    @pytest.mark.asyncio
    async def test_login_token_is_rejected(self, service, token_service, user):
        with pytest.raises(BadRequestException) as exc_info:
            await service.reset_password(token_service.issue_login_token(str(user["_id"])), NEW_PASSWORD)

        assert exc_info.value.code == "INVALID_RESET_TOKEN"

    @pytest.mark.asyncio
    async def test_weak_password_keeps_reset_pending(self, service, email_service, users_collection, user):
        reset_token = await self._verified_token(service, email_service)

        with pytest.raises(ValidationException):
            await service.reset_password(reset_token, "weak")

        stored = _stored(users_collection, user)
        assert stored["resetPasswordState"] == STATE_VERIFIED
        assert len(stored["activeSessions"]) == 2
