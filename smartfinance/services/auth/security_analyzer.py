"""
Security heuristics over a user's device sessions.

Pure functions: they read session dicts (as stored in `activeSessions`) and
return plain dicts ready to be serialized to the client.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from smartfinance.services.auth.geo_ip_service import UNKNOWN
from smartfinance.services.auth.session_collection import as_utc

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"

RECENT_WINDOW = timedelta(hours=24)
RAPID_CHANGE_WINDOW = timedelta(hours=1)
MAX_DISTINCT_IPS = 3
MAX_DISTINCT_TIMEZONES = 2
MONITOR_IP_THRESHOLD = 5


def _unique(values: Iterable) -> List:
    """Distinct values in first-seen order."""
    return list(dict.fromkeys(values))


def _location(session: dict) -> dict:
    return session.get("location") or {}


def _raise_to(current: str, level: str) -> str:
    order = (RISK_LOW, RISK_MEDIUM, RISK_HIGH)
    return level if order.index(level) > order.index(current) else current


def analyze_session_security(sessions: List[dict], now: Optional[datetime] = None) -> dict:
    """
    Classify the risk of a user's current set of sessions.

    Each rule is evaluated independently and can only raise the risk level.

    Args:
        sessions: Session dicts
        now: Reference time (defaults to current UTC time)

    Returns:
        dict with riskLevel, alerts, suspiciousActivity and stats
    """
    sessions = list(sessions or [])
    now = now or datetime.now(timezone.utc)

    alerts: List[dict] = []
    risk_level = RISK_LOW

    locations = [_location(s) for s in sessions]

    unique_locations = _unique(f"{loc.get('country')}-{loc.get('city')}" for loc in locations)
    countries = _unique(
        loc.get("country") for loc in locations if loc.get("country") != UNKNOWN
    )
    ips = _unique(loc.get("ip") for loc in locations)
    active_sessions = [s for s in sessions if s.get("isActive")]

    if len(sessions) > 1:
        if len(countries) > 1:
            alerts.append({
                "type": "multiple_countries",
                "severity": RISK_MEDIUM,
                "message": (
                    f"Account accessed from {len(countries)} different countries: "
                    f"{', '.join(countries)}"
                ),
                "countries": countries,
            })
            risk_level = _raise_to(risk_level, RISK_MEDIUM)

        recent = [
            s for s in sessions
            if now - as_utc(s.get("lastActive")) <= RECENT_WINDOW
        ]
        recent_countries = _unique(_location(s).get("country") for s in recent)
        if len(recent_countries) > 1:
            alerts.append({
                "type": "rapid_location_change",
                "severity": RISK_HIGH,
                "message": (
                    "Rapid location changes detected in last 24 hours: "
                    f"{' -> '.join(str(c) for c in recent_countries)}"
                ),
                "countries": recent_countries,
            })
            risk_level = _raise_to(risk_level, RISK_HIGH)

        if len(ips) > MAX_DISTINCT_IPS:
            alerts.append({
                "type": "multiple_ips",
                "severity": RISK_MEDIUM,
                "message": f"Account accessed from {len(ips)} different IP addresses",
                "ipCount": len(ips),
            })
            risk_level = _raise_to(risk_level, RISK_MEDIUM)

        if len(active_sessions) > 1:
            active_countries = _unique(_location(s).get("country") for s in active_sessions)
            if len(active_countries) > 1:
                alerts.append({
                    "type": "concurrent_different_locations",
                    "severity": RISK_HIGH,
                    "message": (
                        "Concurrent sessions from different locations: "
                        f"{', '.join(str(c) for c in active_countries)}"
                    ),
                    "countries": active_countries,
                })
                risk_level = _raise_to(risk_level, RISK_HIGH)

        timezones = _unique(
            loc.get("timezone") for loc in locations if loc.get("timezone") != "UTC"
        )
        if len(timezones) > MAX_DISTINCT_TIMEZONES:
            alerts.append({
                "type": "multiple_timezones",
                "severity": RISK_MEDIUM,
                "message": f"Account accessed from {len(timezones)} different timezones",
                "timezones": timezones,
            })
            risk_level = _raise_to(risk_level, RISK_MEDIUM)

    return {
        "riskLevel": risk_level,
        "alerts": alerts,
        "suspiciousActivity": [],
        "stats": {
            "totalSessions": len(sessions),
            "uniqueLocations": len(unique_locations),
            "uniqueCountries": len(countries),
            "uniqueIPs": len(ips),
            "activeSessions": len(active_sessions),
        },
    }


def get_security_recommendations(analysis: dict) -> List[dict]:
    """Map a security analysis to user-facing recommendations, highest priority first."""
    recommendations = []
    alert_types = {alert.get("type") for alert in analysis.get("alerts", [])}

    if analysis.get("riskLevel") == RISK_HIGH:
        recommendations.append({
            "priority": "high",
            "action": "immediate_attention",
            "message": "High-risk activity detected. Consider changing password and reviewing all sessions.",
            "icon": "alert-triangle",
        })

    if "concurrent_different_locations" in alert_types:
        recommendations.append({
            "priority": "high",
            "action": "review_sessions",
            "message": "Review and remove sessions from unfamiliar locations.",
            "icon": "shield",
        })

    if "multiple_countries" in alert_types:
        recommendations.append({
            "priority": "medium",
            "action": "enable_2fa",
            "message": "Consider enabling two-factor authentication for additional security.",
            "icon": "key",
        })

    if analysis.get("stats", {}).get("uniqueIPs", 0) > MONITOR_IP_THRESHOLD:
        recommendations.append({
            "priority": "medium",
            "action": "monitor_activity",
            "message": "Monitor account activity regularly and remove unused devices.",
            "icon": "eye",
        })

    return recommendations


def check_new_location_suspicion(
    new_location: dict,
    existing_sessions: List[dict],
    now: Optional[datetime] = None,
) -> dict:
    """
    Judge whether a login from new_location looks unusual for this user.

    Args:
        new_location: LocationInfo of the incoming login
        existing_sessions: The user's sessions before this login
        now: Reference time (defaults to current UTC time)

    Returns:
        dict with isSuspicious, reasons and riskLevel
    """
    result = {"isSuspicious": False, "reasons": [], "riskLevel": RISK_LOW}
    if not existing_sessions:
        return result

    now = now or datetime.now(timezone.utc)
    new_location = new_location or {}
    country = new_location.get("country")
    city = new_location.get("city")

    known_countries = {_location(s).get("country") for s in existing_sessions}
    known_cities = {_location(s).get("city") for s in existing_sessions}

    if country not in known_countries and country != UNKNOWN:
        result["isSuspicious"] = True
        result["reasons"].append(f"New country: {country}")
        result["riskLevel"] = RISK_MEDIUM

    if city not in known_cities and city != UNKNOWN:
        result["reasons"].append(f"New city: {city}")

    recent_countries = {
        _location(s).get("country")
        for s in existing_sessions
        if now - as_utc(s.get("lastActive")) <= RAPID_CHANGE_WINDOW
    }
    if recent_countries and country not in recent_countries:
        result["isSuspicious"] = True
        result["reasons"].append("Rapid location change detected")
        result["riskLevel"] = RISK_HIGH

    return result
