"""
GeoIP lookup service for IP-to-location mapping.

Queries two public IP-geolocation HTTP providers in order (ipapi.co, then
ip-api.com) and caches successful answers per IP. Lookups are best-effort:
private addresses never leave the process, and provider failures degrade to
an "Unknown" location instead of raising.
"""

import ipaddress
import logging
import time
from typing import Callable, Dict, Optional, Tuple, TypedDict

import httpx

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
LOCAL_NETWORK = "Local Network"


class LocationInfo(TypedDict):
    """Geographic location information."""
    ip: str
    country: str
    city: str
    region: str
    timezone: str
    isp: str
    latitude: Optional[float]
    longitude: Optional[float]
    formatted: str


class GeoLookupError(Exception):
    """All providers failed to resolve an IP address."""


def format_location(location: Optional[dict]) -> str:
    """Join city, region and country for display, skipping unknown parts."""
    if not location:
        return "Unknown Location"

    parts = [
        location.get(key)
        for key in ("city", "region", "country")
        if location.get(key) and location.get(key) != UNKNOWN
    ]
    return ", ".join(parts) if parts else "Unknown Location"


def unknown_location(ip_address: str) -> LocationInfo:
    """Location record used when a lookup fails or is impossible."""
    return LocationInfo(
        ip=ip_address,
        country=UNKNOWN,
        city=UNKNOWN,
        region=UNKNOWN,
        timezone="UTC",
        isp=UNKNOWN,
        latitude=None,
        longitude=None,
        formatted="Unknown Location",
    )


def local_network_location(ip_address: str) -> LocationInfo:
    """Pseudo-location for private and loopback addresses."""
    return LocationInfo(
        ip=ip_address,
        country=LOCAL_NETWORK,
        city=LOCAL_NETWORK,
        region=LOCAL_NETWORK,
        timezone="UTC",
        isp=LOCAL_NETWORK,
        latitude=None,
        longitude=None,
        formatted=LOCAL_NETWORK,
    )


class LocationCache:
    """
    Process-wide IP → location cache with a freshness window.

    Entries are kept in insertion order, which is also age order, so expired
    and overflow entries are always at the front. The clock is injectable so
    expiry can be tested without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = 10_000,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[float, LocationInfo]] = {}

    def get(self, ip_address: str) -> Optional[LocationInfo]:
        entry = self._entries.get(ip_address)
        if entry is None:
            return None

        stored_at, location = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[ip_address]
            return None
        return location

    def set(self, ip_address: str, location: LocationInfo) -> None:
        now = self._clock()
        self._entries.pop(ip_address, None)
        self._prune(now)
        self._entries[ip_address] = (now, location)

    def _prune(self, now: float) -> None:
        while self._entries:
            oldest_ip, (stored_at, _) = next(iter(self._entries.items()))
            if now - stored_at < self._ttl and len(self._entries) < self._max_entries:
                return
            del self._entries[oldest_ip]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullLocationCache(LocationCache):
    """Cache that never stores anything."""

    def get(self, ip_address: str) -> Optional[LocationInfo]:
        return None

    def set(self, ip_address: str, location: LocationInfo) -> None:
        return None


class GeoIPService:
    """
    IP-to-location lookup service.
    """

    # Private IP ranges that should never be sent to a provider
    _PRIVATE_RANGES = [
        ipaddress.ip_network("10.0.0.0/8"),
        ipaddress.ip_network("172.16.0.0/12"),
        ipaddress.ip_network("192.168.0.0/16"),
        ipaddress.ip_network("127.0.0.0/8"),
        ipaddress.ip_network("169.254.0.0/16"),
        ipaddress.ip_network("::1/128"),
        ipaddress.ip_network("fc00::/7"),
        ipaddress.ip_network("fe80::/10"),
    ]

    def __init__(
        self,
        cache: Optional[LocationCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        primary_url: str = "https://ipapi.co/{ip}/json/",
        fallback_url: str = "http://ip-api.com/json/{ip}",
        user_agent: str = "SmartFinance/1.0",
    ):
        """
        Initialize GeoIP service.

        Args:
            cache: Location cache (a fresh 24h cache if omitted)
            http_client: Shared httpx client; one is created lazily if omitted
            timeout: Hard per-call timeout in seconds
            primary_url: ipapi.co-compatible URL template with "{ip}"
            fallback_url: ip-api.com-compatible URL template with "{ip}"
            user_agent: User-Agent sent to the providers
        """
        self._cache = cache if cache is not None else LocationCache()
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout
        self._primary_url = primary_url
        self._fallback_url = fallback_url
        self._user_agent = user_agent

    async def lookup(self, ip_address: str) -> LocationInfo:
        """
        Get location for an IP address.

        Never raises: private IPs return the "Local Network" pseudo-location,
        unparseable IPs and provider outages return an "Unknown" location.

        Args:
            ip_address: IPv4 or IPv6 address

        Returns:
            LocationInfo
        """
        if not ip_address:
            return unknown_location("")

        try:
            ip = ipaddress.ip_address(ip_address)
        except ValueError:
            logger.debug(f"Not an IP address, skipping geolocation: {ip_address!r}")
            return unknown_location(ip_address)

        if self._is_private_ip(ip):
            return local_network_location(ip_address)

        cached = self._cache.get(ip_address)
        if cached is not None:
            return cached

        try:
            location = await self._resolve(ip_address)
        except GeoLookupError as e:
            logger.warning(f"GeoIP lookup failed for {ip_address}: {e}")
            return unknown_location(ip_address)

        # Only successful answers are cached so an outage is not remembered
        self._cache.set(ip_address, location)
        return location

    async def _resolve(self, ip_address: str) -> LocationInfo:
        """Try each provider in order; raise GeoLookupError if none answers."""
        errors = []
        for provider in (self._query_primary, self._query_fallback):
            try:
                location = await provider(ip_address)
            except (httpx.HTTPError, ValueError) as e:
                errors.append(f"{provider.__name__}: {e!r}")
                continue

            if location is not None:
                return location
            errors.append(f"{provider.__name__}: no result")

        raise GeoLookupError("; ".join(errors))

    async def _query_primary(self, ip_address: str) -> Optional[LocationInfo]:
        data = await self._get_json(self._primary_url.format(ip=ip_address))
        if not data or data.get("error"):
            return None

        return self._build_location(
            ip_address,
            country=data.get("country_name"),
            city=data.get("city"),
            region=data.get("region"),
            timezone=data.get("timezone"),
            isp=data.get("org"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )

    async def _query_fallback(self, ip_address: str) -> Optional[LocationInfo]:
        data = await self._get_json(self._fallback_url.format(ip=ip_address))
        if not data or data.get("status") != "success":
            return None

        return self._build_location(
            ip_address,
            country=data.get("country"),
            city=data.get("city"),
            region=data.get("regionName"),
            timezone=data.get("timezone"),
            isp=data.get("isp"),
            latitude=data.get("lat"),
            longitude=data.get("lon"),
        )

    async def _get_json(self, url: str) -> Optional[dict]:
        client = self._get_client()
        response = await client.get(
            url,
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
        )
        response.raise_for_status()
        data = response.json()
        return data if isinstance(data, dict) else None

    @staticmethod
    def _build_location(ip_address: str, **fields) -> LocationInfo:
        location = LocationInfo(
            ip=ip_address,
            country=fields.get("country") or UNKNOWN,
            city=fields.get("city") or UNKNOWN,
            region=fields.get("region") or UNKNOWN,
            timezone=fields.get("timezone") or "UTC",
            isp=fields.get("isp") or "Unknown ISP",
            latitude=fields.get("latitude"),
            longitude=fields.get("longitude"),
            formatted="",
        )
        location["formatted"] = format_location(location)
        return location

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _is_private_ip(self, ip) -> bool:
        """Check if an IP address is private/localhost."""
        if isinstance(ip, str):
            try:
                ip = ipaddress.ip_address(ip)
            except ValueError:
                return False
        return any(
            ip.version == network.version and ip in network
            for network in self._PRIVATE_RANGES
        )

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
