"""
SmartFinance Services.

All service classes organized by feature.
"""

# Auth services
from smartfinance.services.auth.device_detector import DeviceDetector, DeviceFingerprinter
from smartfinance.services.auth.geo_ip_service import GeoIPService, LocationCache
from smartfinance.services.auth.session_manager import SessionManager
from smartfinance.services.auth.password_reset_service import PasswordResetService

# User services
from smartfinance.services.user.user_service import UserService

# Email services
from smartfinance.services.email.email_service import EmailService

__all__ = [
    "DeviceDetector",
    "DeviceFingerprinter",
    "GeoIPService",
    "LocationCache",
    "SessionManager",
    "PasswordResetService",
    "UserService",
    "EmailService",
]
