"""
FastAPI dependencies for the SmartFinance API.

Services are built once at startup by init_services() and handed to route
handlers through Depends(). Tests swap them with app.dependency_overrides.
"""

from datetime import timedelta
from typing import Annotated, Optional

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import TokenService
from common.tasks import DetachedTaskRunner
from smartfinance.config import Settings
from smartfinance.middleware.auth import AuthContext, AuthMiddleware
from smartfinance.services.auth.device_detector import (
    DeviceDetector,
    DeviceFingerprinter,
    resolve_client_ip,
)
from smartfinance.services.auth.geo_ip_service import GeoIPService, LocationCache
from smartfinance.services.auth.password_reset_service import PasswordResetService
from smartfinance.services.auth.session_manager import SessionManager
from smartfinance.services.email.email_service import EmailService
from smartfinance.services.user.user_service import UserService

_NOT_INITIALIZED = "Services not initialized. Call init_services first."

_token_service: Optional[TokenService] = None
_user_service: Optional[UserService] = None
_session_manager: Optional[SessionManager] = None
_geo_service: Optional[GeoIPService] = None
_fingerprinter: Optional[DeviceFingerprinter] = None
_email_service: Optional[EmailService] = None
_password_reset_service: Optional[PasswordResetService] = None
_task_runner: Optional[DetachedTaskRunner] = None
_auth_middleware: Optional[AuthMiddleware] = None


def init_services(db: AsyncIOMotorDatabase, settings: Settings) -> None:
    """
    Initialize services with database and settings.

    Called once at application startup.

    Args:
        db: MongoDB database connection
        settings: Application settings
    """
    global _token_service, _user_service, _session_manager, _geo_service
    global _fingerprinter, _email_service, _password_reset_service
    global _task_runner, _auth_middleware

    _token_service = TokenService(
        secret=settings.get_jwt_secret(),
        algorithm=settings.JWT_ALGORITHM,
        login_token_ttl=timedelta(days=settings.LOGIN_TOKEN_EXPIRE_DAYS),
        reset_token_ttl=timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
    )

    _user_service = UserService(db)

    _session_manager = SessionManager(
        db=db,
        max_sessions=settings.MAX_SESSIONS_PER_USER,
        active_window=timedelta(minutes=settings.SESSION_ACTIVE_WINDOW_MINUTES),
        retention=timedelta(days=settings.SESSION_RETENTION_DAYS),
    )

    _geo_service = GeoIPService(
        cache=LocationCache(
            ttl_seconds=settings.GEO_CACHE_TTL_HOURS * 3600,
            max_entries=settings.GEO_CACHE_MAX_ENTRIES,
        ),
        timeout=settings.GEO_LOOKUP_TIMEOUT_SECONDS,
        primary_url=settings.GEO_PRIMARY_URL,
        fallback_url=settings.GEO_FALLBACK_URL,
        user_agent=settings.GEO_USER_AGENT,
    )
    _fingerprinter = DeviceFingerprinter(DeviceDetector(), _geo_service)

    _email_service = EmailService(
        mode=settings.EMAIL_MODE,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
        app_url=settings.FRONTEND_URL,
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        timeout=settings.EMAIL_SEND_TIMEOUT_SECONDS,
    )

    _password_reset_service = PasswordResetService(
        db=db,
        user_service=_user_service,
        session_manager=_session_manager,
        token_service=_token_service,
        email_service=_email_service,
        otp_length=settings.OTP_LENGTH,
        otp_ttl=timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        max_verify_attempts=settings.OTP_MAX_VERIFY_ATTEMPTS,
        request_limit=settings.OTP_REQUEST_LIMIT,
        request_window=timedelta(minutes=settings.OTP_REQUEST_WINDOW_MINUTES),
    )

    _task_runner = DetachedTaskRunner()

    _auth_middleware = AuthMiddleware(
        token_service=_token_service,
        user_service=_user_service,
        session_manager=_session_manager,
        task_runner=_task_runner,
    )


async def shutdown_services() -> None:
    """Finish detached work and release HTTP clients."""
    if _task_runner is not None:
        await _task_runner.drain(timeout=5.0)
    if _geo_service is not None:
        await _geo_service.close()


def get_token_service() -> TokenService:
    """Get token service instance."""
    if _token_service is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _token_service


def get_user_service() -> UserService:
    """Get user service instance."""
    if _user_service is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _user_service


def get_session_manager() -> SessionManager:
    """Get session manager instance."""
    if _session_manager is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_manager


def get_fingerprinter() -> DeviceFingerprinter:
    """Get device fingerprinter instance."""
    if _fingerprinter is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _fingerprinter


def get_email_service() -> EmailService:
    """Get email service instance."""
    if _email_service is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _email_service


def get_password_reset_service() -> PasswordResetService:
    """Get password reset service instance."""
    if _password_reset_service is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _password_reset_service


def get_task_runner() -> DetachedTaskRunner:
    """Get detached task runner instance."""
    if _task_runner is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _task_runner


def get_auth_middleware() -> AuthMiddleware:
    """Get auth middleware instance."""
    if _auth_middleware is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _auth_middleware


async def require_auth(
    request: Request,
    auth_middleware: Annotated[AuthMiddleware, Depends(get_auth_middleware)]
) -> AuthContext:
    """
    Dependency that requires authentication.

    Usage:
        @router.get("/protected")
        async def protected_route(auth: Annotated[AuthContext, Depends(require_auth)]):
            return {"user_id": auth.user_id}
    """
    return await auth_middleware.require_auth(request)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    return resolve_client_ip(
        request.client.host if request.client else None,
        request.headers,
    )


def get_user_agent(request: Request) -> str:
    """Extract User-Agent from request."""
    return request.headers.get("User-Agent", "")
