"""
Device detection and fingerprinting.

DeviceDetector classifies a User-Agent with ordered substring rules (pure,
no I/O). DeviceFingerprinter combines that classification with the client
IP to derive the deviceId that keys a user's sessions, and attaches an
approximate location from the GeoIP service.
"""

import hashlib
import logging
from typing import Iterable, Mapping, Optional, Tuple, TypedDict

from smartfinance.services.auth.geo_ip_service import GeoIPService, LocationInfo

logger = logging.getLogger(__name__)

LOOPBACK_IP = "127.0.0.1"
DEVICE_ID_LENGTH = 16


class DeviceInfo(TypedDict):
    """Device information extracted from User-Agent."""
    deviceType: str
    os: str
    browser: str
    deviceName: str


class DeviceFingerprint(TypedDict):
    """Everything a session records about the device behind a request."""
    deviceId: str
    deviceName: str
    deviceType: str
    browser: str
    os: str
    location: LocationInfo


class DeviceDetector:
    """
    Extracts device type and details from User-Agent header.

    Each rule list is checked in order and the first match wins.
    """

    # Any of these tokens means a phone. Checked before the tablet rules, so
    # every Android device with or without "mobile" lands here first.
    _MOBILE_TOKENS = (
        "mobile",
        "android",
        "iphone",
        "ipod",
        "blackberry",
        "iemobile",
        "opera mini",
    )

    _TABLET_TOKENS = (
        "tablet",
        "ipad",
    )

    # (tokens, excluded tokens, label)
    _BROWSER_RULES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...], str], ...] = (
        (("edg",), (), "Edge"),
        (("opr/", "opera"), (), "Opera"),
        (("chrome", "crios"), ("edg",), "Chrome"),
        (("firefox", "fxios"), (), "Firefox"),
        (("safari",), ("chrome", "crios"), "Safari"),
    )

    # Android and iOS user agents also contain "linux" / "mac os x"
    _OS_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
        (("windows",), "Windows"),
        (("android",), "Android"),
        (("iphone", "ipad", "ipod"), "iOS"),
        (("mac os", "macos"), "macOS"),
        (("cros ",), "Chrome OS"),
        (("linux",), "Linux"),
    )

    UNKNOWN_BROWSER = "Unknown Browser"
    UNKNOWN_OS = "Unknown OS"

    def detect(self, user_agent: str) -> DeviceInfo:
        """
        Parse User-Agent and return device information.

        Args:
            user_agent: HTTP User-Agent header value

        Returns:
            dict with fields:
                - deviceType: "mobile" | "tablet" | "desktop"
                - os: "Windows" | "Android" | "iOS" | "macOS" | "Linux" | ...
                - browser: "Chrome" | "Safari" | "Firefox" | "Edge" | ...
                - deviceName: e.g. "Windows Desktop (Chrome)"
        """
        device_type = self.detect_device_type(user_agent)
        os_name = self.detect_os(user_agent)
        browser = self.detect_browser(user_agent)

        return DeviceInfo(
            deviceType=device_type,
            os=os_name,
            browser=browser,
            deviceName=self.device_name(os_name, device_type, browser),
        )

    def detect_device_type(self, user_agent: str) -> str:
        ua = (user_agent or "").lower()

        if _contains_any(ua, self._MOBILE_TOKENS):
            return "mobile"
        if _contains_any(ua, self._TABLET_TOKENS):
            return "tablet"
        return "desktop"

    def detect_browser(self, user_agent: str) -> str:
        ua = (user_agent or "").lower()

        for tokens, excluded, label in self._BROWSER_RULES:
            if _contains_any(ua, tokens) and not _contains_any(ua, excluded):
                return label
        return self.UNKNOWN_BROWSER

    def detect_os(self, user_agent: str) -> str:
        ua = (user_agent or "").lower()

        for tokens, label in self._OS_RULES:
            if _contains_any(ua, tokens):
                return label
        return self.UNKNOWN_OS

    @staticmethod
    def device_name(os_name: str, device_type: str, browser: str) -> str:
        return f"{os_name} {device_type.capitalize()} ({browser})"


def _contains_any(haystack: str, needles: Iterable[str]) -> bool:
    return any(needle in haystack for needle in needles)


def _normalize_ip(ip_address: Optional[str]) -> Optional[str]:
    if not ip_address:
        return None
    ip_address = ip_address.strip()
    if ip_address.startswith("::ffff:"):
        ip_address = ip_address[len("::ffff:"):]
    return ip_address or None


def resolve_client_ip(
    client_host: Optional[str],
    headers: Mapping[str, str],
) -> str:
    """
    Pick the client IP for fingerprinting.

    Candidates in order: the (proxy-aware) request client address, the first
    X-Forwarded-For entry, X-Real-IP, CF-Connecting-IP. Loopback values are
    skipped; if nothing else is left the loopback address is returned.

    Args:
        client_host: request.client.host (None for some test transports)
        headers: Request headers (case-insensitive mapping)
    """
    forwarded_for = headers.get("x-forwarded-for") or ""
    candidates = [
        client_host,
        forwarded_for.split(",")[0] if forwarded_for else None,
        headers.get("x-real-ip"),
        headers.get("cf-connecting-ip"),
    ]

    for candidate in candidates:
        ip_address = _normalize_ip(candidate)
        if ip_address and ip_address not in (LOOPBACK_IP, "::1", "localhost"):
            return ip_address

    return LOOPBACK_IP


class DeviceFingerprinter:
    """
    Derives a stable device identity for a request.

    The deviceId is a truncated MD5 of user-agent + IP, so the same browser
    on a different network is a different device.
    """

    def __init__(
        self,
        device_detector: DeviceDetector,
        geo_service: GeoIPService,
    ):
        """
        Initialize DeviceFingerprinter.

        Args:
            device_detector: Service for parsing User-Agent
            geo_service: Service for IP-to-location lookup
        """
        self._device_detector = device_detector
        self._geo_service = geo_service

    @staticmethod
    def compute_device_id(user_agent: str, ip_address: str) -> str:
        """Deterministic short hash of user-agent + IP."""
        digest = hashlib.md5(
            f"{user_agent or ''}{ip_address}".encode("utf-8"),
            usedforsecurity=False,
        ).hexdigest()
        return digest[:DEVICE_ID_LENGTH]

    async def identify(self, user_agent: str, ip_address: str) -> DeviceFingerprint:
        """
        Build the full fingerprint for a request.

        Location lookup is best-effort; the GeoIP service degrades to an
        "Unknown" location rather than raising.

        Args:
            user_agent: HTTP User-Agent header value
            ip_address: Resolved client IP (see resolve_client_ip)

        Returns:
            DeviceFingerprint
        """
        device_info = self._device_detector.detect(user_agent)
        location = await self._geo_service.lookup(ip_address)

        return DeviceFingerprint(
            deviceId=self.compute_device_id(user_agent, ip_address),
            deviceName=device_info["deviceName"],
            deviceType=device_info["deviceType"],
            browser=device_info["browser"],
            os=device_info["os"],
            location=location,
        )
