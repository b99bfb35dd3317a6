"""
FastAPI router for auth endpoints.

Provides registration, login, account info/deletion and the password reset
flow. Login and registration register the calling device as a session.
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from common.auth import TokenService
from common.tasks import DetachedTaskRunner
from common.utils import GatewayTimeoutException, NotFoundException, success_response
from smartfinance.config import settings
from smartfinance.dependencies import (
    get_client_ip,
    get_email_service,
    get_fingerprinter,
    get_password_reset_service,
    get_session_manager,
    get_task_runner,
    get_token_service,
    get_user_agent,
    get_user_service,
    require_auth,
)
from smartfinance.middleware.auth import AuthContext
from smartfinance.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyResetOtpRequest,
)
from smartfinance.services.auth.device_detector import DeviceFingerprinter
from smartfinance.services.auth.password_reset_service import PasswordResetService
from smartfinance.services.auth.security_analyzer import check_new_location_suspicion
from smartfinance.services.auth.session_manager import SessionManager
from smartfinance.services.email.email_service import EmailService
from smartfinance.services.user.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _start_session(
    request: Request,
    user: dict,
    fingerprinter: DeviceFingerprinter,
    session_manager: SessionManager,
) -> dict:
    """Fingerprint the calling device and register it as a session."""
    user_id = str(user["_id"])
    fingerprint = await fingerprinter.identify(
        get_user_agent(request),
        get_client_ip(request),
    )

    suspicion = check_new_location_suspicion(
        fingerprint["location"],
        user.get("activeSessions") or [],
    )
    if suspicion["isSuspicious"]:
        logger.warning(
            f"Suspicious login for user {user_id} ({suspicion['riskLevel']}): "
            f"{'; '.join(suspicion['reasons'])}"
        )

    return await session_manager.upsert(user_id, fingerprint)


def _device_summary(session: dict) -> dict:
    return {
        "deviceId": session["deviceId"],
        "deviceName": session.get("deviceName"),
        "location": (session.get("location") or {}).get("formatted"),
    }


@router.post("/register", status_code=201)
async def register(
    request: Request,
    body: RegisterRequest,
    user_service: Annotated[UserService, Depends(get_user_service)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    fingerprinter: Annotated[DeviceFingerprinter, Depends(get_fingerprinter)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
    task_runner: Annotated[DetachedTaskRunner, Depends(get_task_runner)],
):
    """
    Register a new user account.

    Creates the account, signs the user in on this device and sends a
    welcome email in the background.
    """
    user = await user_service.create_user(body.username, body.email, body.password)
    session = await _start_session(request, user, fingerprinter, session_manager)
    token = token_service.issue_login_token(str(user["_id"]))

    task_runner.spawn(
        email_service.send_welcome_email(user["email"], user["username"]),
        name=f"welcome-email-{user['_id']}",
    )

    return success_response(
        {
            "user": user_service.public_profile(user),
            "token": token,
            "device": _device_summary(session),
        },
        message="User registered",
    )


@router.post("/login")
async def login(
    request: Request,
    body: LoginRequest,
    user_service: Annotated[UserService, Depends(get_user_service)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
    fingerprinter: Annotated[DeviceFingerprinter, Depends(get_fingerprinter)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
):
    """
    Login to an existing account.

    Authenticates user with email and password and registers (or refreshes)
    the session for the calling device.
    """
    user = await user_service.verify_credentials(body.email, body.password)
    session = await _start_session(request, user, fingerprinter, session_manager)
    token = token_service.issue_login_token(str(user["_id"]))

    logger.info(f"User {user['_id']} logged in from device {session['deviceId']}")

    return success_response({
        "user": user_service.public_profile(user),
        "token": token,
        "device": _device_summary(session),
    })


@router.get("/me")
async def get_me(
    auth: Annotated[AuthContext, Depends(require_auth)],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """
    Get current user info.
    """
    user = await user_service.get_user_by_id(auth.user_id)
    if not user:
        raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

    return success_response({
        "user": user_service.public_profile(user),
        "deviceId": auth.device_id,
    })


@router.delete("/account")
async def delete_account(
    auth: Annotated[AuthContext, Depends(require_auth)],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """
    Delete the current account and all of its sessions.

    Tokens issued before the deletion are rejected from then on.
    """
    if not await user_service.delete_user(auth.user_id):
        raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

    return success_response(message="Account deleted")


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    reset_service: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """
    Request a password reset code.

    Always answers the same way whether or not the email is registered.
    """
    try:
        await asyncio.wait_for(
            reset_service.request_reset(body.email),
            timeout=settings.FORGOT_PASSWORD_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        # Anything already written (e.g. the OTP hash) stays in place
        logger.error("Forgot-password request timed out")
        raise GatewayTimeoutException(
            message="Request timed out. Please try again.",
            code="REQUEST_TIMEOUT",
        )

    return success_response(message="If the email exists, an OTP has been sent")


@router.post("/verify-reset-otp")
async def verify_reset_otp(
    body: VerifyResetOtpRequest,
    reset_service: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """
    Exchange a valid reset code for a short-lived reset token.
    """
    reset_token = await reset_service.verify_otp(body.email, body.otp)
    return success_response({"resetToken": reset_token}, message="OTP verified")


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    reset_service: Annotated[PasswordResetService, Depends(get_password_reset_service)],
):
    """
    Set a new password. Signs the user out of every device.
    """
    await reset_service.reset_password(body.resetToken, body.newPassword)
    return success_response(message="Password reset successful. Please log in again.")
