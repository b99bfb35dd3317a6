"""Auth services."""

from smartfinance.services.auth.token_hasher import TokenHasher
from smartfinance.services.auth.device_detector import DeviceDetector, DeviceFingerprinter
from smartfinance.services.auth.geo_ip_service import GeoIPService, LocationCache
from smartfinance.services.auth.session_collection import SessionCollection
from smartfinance.services.auth.session_manager import SessionManager

__all__ = [
    "TokenHasher",
    "DeviceDetector",
    "DeviceFingerprinter",
    "GeoIPService",
    "LocationCache",
    "SessionCollection",
    "SessionManager",
]
