"""
SmartFinance application settings.

Extends the base settings with session, token and password-reset
configuration.
"""

from typing import Optional
from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """SmartFinance-specific settings."""

    # ==========================================================================
    # Tokens
    # ==========================================================================
    # Used only when JWT_SECRET is unset outside production
    DEV_JWT_SECRET: str = "dev-only-change-me"
    LOGIN_TOKEN_EXPIRE_DAYS: int = 1
    RESET_TOKEN_EXPIRE_MINUTES: int = 15

    # ==========================================================================
    # Sessions
    # ==========================================================================
    MAX_SESSIONS_PER_USER: int = 5
    SESSION_ACTIVE_WINDOW_MINUTES: int = 30
    SESSION_RETENTION_DAYS: int = 7
    SESSION_CLEANUP_INTERVAL_HOURS: int = 24

    # ==========================================================================
    # Geolocation
    # ==========================================================================
    GEO_CACHE_TTL_HOURS: int = 24
    GEO_CACHE_MAX_ENTRIES: int = 10_000
    GEO_LOOKUP_TIMEOUT_SECONDS: float = 5.0
    GEO_PRIMARY_URL: str = "https://ipapi.co/{ip}/json/"
    GEO_FALLBACK_URL: str = "http://ip-api.com/json/{ip}"
    GEO_USER_AGENT: str = "SmartFinance/1.0"

    # ==========================================================================
    # Password reset
    # ==========================================================================
    OTP_LENGTH: int = 6
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_VERIFY_ATTEMPTS: int = 5
    OTP_REQUEST_LIMIT: int = 3
    OTP_REQUEST_WINDOW_MINUTES: int = 10
    FORGOT_PASSWORD_TIMEOUT_SECONDS: float = 60.0

    # ==========================================================================
    # Email Settings (password reset OTP, welcome mail)
    # ==========================================================================
    EMAIL_MODE: str = "console"  # console | smtp
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@smartfinance.app"
    SMTP_FROM_NAME: str = "SmartFinance"
    EMAIL_SEND_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # Frontend URL (for email links)
    # ==========================================================================
    FRONTEND_URL: str = "http://localhost:5173"

    def get_jwt_secret(self) -> str:
        """JWT secret, falling back to a development value outside production."""
        if self.JWT_SECRET:
            return self.JWT_SECRET
        if self.is_production():
            raise ValueError("JWT_SECRET is required in production")
        return self.DEV_JWT_SECRET


# Global settings instance
settings = Settings()
