"""
Bounded, ordered collection of a user's device sessions.

This is the in-memory form of the `activeSessions` array embedded in a user
document. All session mutation rules live here (upsert by deviceId with
loginTime preserved, eviction down to the size cap by recency, activity flag
recomputation) so the registry only has to load, mutate and write back.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, List, Optional

MAX_SESSIONS_PER_USER = 5

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> datetime:
    """Normalize stored timestamps (naive values are UTC) for comparison."""
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _recency_key(session: dict) -> datetime:
    return as_utc(session.get("lastActive"))


class SessionCollection:
    """
    A user's sessions, keyed by deviceId and capped at `max_size`.
    """

    def __init__(
        self,
        sessions: Optional[Iterable[dict]] = None,
        max_size: int = MAX_SESSIONS_PER_USER,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._sessions: List[dict] = [dict(s) for s in (sessions or [])]
        self._max_size = max_size

    @classmethod
    def from_user(cls, user: dict, max_size: int = MAX_SESSIONS_PER_USER) -> "SessionCollection":
        return cls(user.get("activeSessions") or [], max_size=max_size)

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[dict]:
        return iter(self._sessions)

    def __contains__(self, device_id: object) -> bool:
        return self.find(device_id) is not None

    def find(self, device_id) -> Optional[dict]:
        for session in self._sessions:
            if session.get("deviceId") == device_id:
                return session
        return None

    def upsert(self, fingerprint: dict, now: datetime) -> dict:
        """
        Insert or replace the session for fingerprint["deviceId"].

        An existing entry keeps its loginTime; every other field is replaced.
        If the collection then exceeds the cap, only the most recently active
        sessions are kept.

        Returns:
            The stored session record
        """
        device_id = fingerprint["deviceId"]
        existing_index = next(
            (i for i, s in enumerate(self._sessions) if s.get("deviceId") == device_id),
            None,
        )

        session = {
            "deviceId": device_id,
            "deviceName": fingerprint.get("deviceName"),
            "deviceType": fingerprint.get("deviceType"),
            "browser": fingerprint.get("browser"),
            "os": fingerprint.get("os"),
            "location": dict(fingerprint.get("location") or {}),
            "lastActive": now,
            "isActive": True,
            "loginTime": (
                self._sessions[existing_index].get("loginTime") or now
                if existing_index is not None
                else now
            ),
        }

        if existing_index is not None:
            self._sessions[existing_index] = session
        else:
            self._sessions.append(session)

        self.evict_overflow()
        return session

    def evict_overflow(self) -> List[dict]:
        """
        Trim to the cap, keeping the most recently active sessions.

        Returns:
            The evicted sessions
        """
        if len(self._sessions) <= self._max_size:
            return []

        ordered = sorted(self._sessions, key=_recency_key, reverse=True)
        self._sessions = ordered[:self._max_size]
        return ordered[self._max_size:]

    def remove(self, device_id: str) -> bool:
        """Drop the session for device_id. Returns whether one was removed."""
        before = len(self._sessions)
        self._sessions = [s for s in self._sessions if s.get("deviceId") != device_id]
        return len(self._sessions) < before

    def retain_only(self, device_id: str) -> int:
        """Drop every session except device_id's. Returns how many were removed."""
        before = len(self._sessions)
        self._sessions = [s for s in self._sessions if s.get("deviceId") == device_id]
        return before - len(self._sessions)

    def refresh_activity(self, now: datetime, active_window: timedelta) -> int:
        """
        Flag sessions idle for longer than `active_window` as inactive.

        Flags are only ever cleared here; touch/upsert set them again.

        Returns:
            Number of sessions whose flag changed
        """
        threshold = now - active_window
        changed = 0
        for session in self._sessions:
            if _recency_key(session) < threshold and session.get("isActive", True):
                session["isActive"] = False
                changed += 1
        return changed

    def sorted_by_recency(self) -> List[dict]:
        """Sessions ordered by lastActive, most recent first."""
        return sorted(self._sessions, key=_recency_key, reverse=True)

    def to_documents(self) -> List[dict]:
        """Sessions in storage order, ready to be written back."""
        return [dict(s) for s in self._sessions]
