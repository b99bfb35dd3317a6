"""
Password reset via emailed one-time code.

Flow:
    1. request_reset(email): rate-limited; stores a hashed 6-digit OTP and
       emails the plain code. Unknown emails are a silent no-op.
    2. verify_otp(email, otp): checks the code (limited attempts) and
       returns a short-lived reset token.
    3. reset_password(reset_token, new_password): stores the new password,
       clears the reset state and signs the user out of every device.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import PASSWORD_RESET_PURPOSE, InvalidTokenError, TokenService
from common.utils.exceptions import (
    BadRequestException,
    InternalServerException,
    RateLimitException,
)
from smartfinance.services.auth.session_collection import as_utc
from smartfinance.services.auth.session_manager import SessionManager
from smartfinance.services.auth.token_hasher import TokenHasher
from smartfinance.services.email.email_service import EmailService
from smartfinance.services.user.user_service import UserService, reset_fields_cleared

logger = logging.getLogger(__name__)

STATE_REQUESTED = "requested"
STATE_VERIFIED = "verified"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PasswordResetService:
    """
    Runs the three-step password reset flow.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        user_service: UserService,
        session_manager: SessionManager,
        token_service: TokenService,
        email_service: EmailService,
        otp_length: int = 6,
        otp_ttl: timedelta = timedelta(minutes=10),
        max_verify_attempts: int = 5,
        request_limit: int = 3,
        request_window: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize PasswordResetService.

        Args:
            db: MongoDB database connection
            user_service: For user lookups and password updates
            session_manager: To sign the user out everywhere after a reset
            token_service: Issues and verifies reset tokens
            email_service: Delivers the OTP
            otp_length: Digits per code
            otp_ttl: Code lifetime
            max_verify_attempts: Wrong codes allowed before the reset is cancelled
            request_limit: Codes a user may request per window
            request_window: Rate-limit window
            clock: Returns the current UTC time
        """
        self._users_collection = db["users"]
        self._user_service = user_service
        self._session_manager = session_manager
        self._token_service = token_service
        self._email_service = email_service
        self._otp_length = otp_length
        self._otp_ttl = otp_ttl
        self._max_verify_attempts = max_verify_attempts
        self._request_limit = request_limit
        self._request_window = request_window
        self._clock = clock

    async def request_reset(self, email: str) -> None:
        """
        Generate and email a reset code.

        Raises:
            RateLimitException: Too many codes requested in the current window
            InternalServerException: The email could not be sent (the code
                is already stored at that point)
        """
        user = await self._user_service.get_user_by_email(email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        now = self._clock()
        window_start = user.get("resetOtpRequestWindowStart")
        request_count = user.get("resetOtpRequestCount") or 0

        if window_start is not None and now - as_utc(window_start) < self._request_window:
            if request_count >= self._request_limit:
                retry_after = self._request_window - (now - as_utc(window_start))
                raise RateLimitException(
                    message="Too many reset requests. Please try again later.",
                    code="RESET_RATE_LIMITED",
                    retry_after=max(1, int(retry_after.total_seconds())),
                )
            request_count += 1
        else:
            window_start = now
            request_count = 1

        otp = TokenHasher.generate_otp(self._otp_length)

        await self._users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {
                "resetPasswordOtpHash": TokenHasher.hash_token(otp),
                "resetPasswordOtpExpiresAt": now + self._otp_ttl,
                "resetPasswordOtpRetryCount": 0,
                "resetPasswordState": STATE_REQUESTED,
                "resetOtpRequestCount": request_count,
                "resetOtpRequestWindowStart": window_start,
                "updatedAt": now,
            }}
        )

        result = await self._email_service.send_password_reset_otp(
            user["email"],
            otp,
            expires_minutes=int(self._otp_ttl.total_seconds() // 60),
        )
        if not result.get("success"):
            logger.error(f"Failed to send reset OTP to user {user['_id']}: {result.get('error')}")
            raise InternalServerException(
                message="Failed to send reset email. Please try again later.",
                code="EMAIL_SEND_FAILED",
            )

        logger.info(f"Password reset OTP issued for user {user['_id']}")

    async def verify_otp(self, email: str, otp: str) -> str:
        """
        Check a reset code.

        Returns:
            Reset token for reset_password

        Raises:
            BadRequestException: No pending reset, expired code, wrong code,
                or too many wrong attempts
        """
        user = await self._user_service.get_user_by_email(email)
        if (
            not user
            or user.get("resetPasswordState") != STATE_REQUESTED
            or not user.get("resetPasswordOtpHash")
        ):
            raise BadRequestException(message="Invalid or expired OTP", code="INVALID_OTP")

        now = self._clock()
        expires_at = user.get("resetPasswordOtpExpiresAt")
        if expires_at is None or as_utc(expires_at) <= now:
            await self._clear_reset_state(user, now)
            raise BadRequestException(message="OTP has expired", code="OTP_EXPIRED")

        if not TokenHasher.matches(otp, user["resetPasswordOtpHash"]):
            attempts = (user.get("resetPasswordOtpRetryCount") or 0) + 1

            if attempts >= self._max_verify_attempts:
                await self._clear_reset_state(user, now)
                logger.warning(f"Password reset cancelled after {attempts} failed attempts for user {user['_id']}")
                raise BadRequestException(
                    message="Too many failed attempts. Please request a new OTP.",
                    code="OTP_ATTEMPTS_EXCEEDED",
                )

            await self._users_collection.update_one(
                {"_id": user["_id"]},
                {"$set": {"resetPasswordOtpRetryCount": attempts, "updatedAt": now}}
            )
            raise BadRequestException(
                message="Invalid or expired OTP",
                code="INVALID_OTP",
                details={"attemptsRemaining": self._max_verify_attempts - attempts},
            )

        await self._users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {
                "resetPasswordOtpHash": None,
                "resetPasswordOtpExpiresAt": None,
                "resetPasswordOtpRetryCount": 0,
                "resetPasswordState": STATE_VERIFIED,
                "updatedAt": now,
            }}
        )

        logger.info(f"Password reset OTP verified for user {user['_id']}")
        return self._token_service.issue_reset_token(str(user["_id"]))

    async def reset_password(self, reset_token: str, new_password: str) -> None:
        """
        Set a new password using a reset token.

        Every session of the user is removed afterwards.

        Raises:
            BadRequestException: Invalid/expired token or no verified reset
            ValidationException: Weak password
        """
        try:
            claims = self._token_service.verify(reset_token, expected_purpose=PASSWORD_RESET_PURPOSE)
        except InvalidTokenError:
            raise BadRequestException(
                message="Invalid or expired reset token",
                code="INVALID_RESET_TOKEN",
            )

        user = await self._user_service.get_user_by_id(claims.subject_id)
        if not user or user.get("resetPasswordState") != STATE_VERIFIED:
            raise BadRequestException(
                message="Invalid or expired reset token",
                code="INVALID_RESET_TOKEN",
            )

        await self._user_service.update_password(claims.subject_id, new_password)
        await self._clear_reset_state(user, self._clock())
        await self._session_manager.remove_all(claims.subject_id)

        logger.info(f"Password reset completed for user {claims.subject_id}")

    async def _clear_reset_state(self, user: dict, now: datetime) -> None:
        fields = reset_fields_cleared()
        fields["updatedAt"] = now
        await self._users_collection.update_one({"_id": user["_id"]}, {"$set": fields})
