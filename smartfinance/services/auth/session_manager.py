"""
Session management for user authentication.

Manages device sessions stored in the User document's embedded
`activeSessions` array. The manager holds no state of its own; each
operation reads the user document, applies the change through
SessionCollection and writes the whole array back. touch is the exception: it
runs detached alongside the request that triggered it, so it updates only the
matching array element in place.

Known race: upsert and list are whole-array read-modify-write operations
without a version check. Two concurrent requests for the same user (for
example logins from two devices) can interleave, and the later write wins at
the document level. This is accepted for this domain.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.database import to_object_id
from common.utils.exceptions import NotFoundException
from smartfinance.services.auth.session_collection import (
    MAX_SESSIONS_PER_USER,
    SessionCollection,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """
    Handles session CRUD operations.
    Sessions are stored as embedded array in user document.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        max_sessions: int = MAX_SESSIONS_PER_USER,
        active_window: timedelta = timedelta(minutes=30),
        retention: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize SessionManager.

        Args:
            db: MongoDB database connection
            max_sessions: Per-user session cap
            active_window: Idle time after which a session reads as inactive
            retention: Idle time after which the sweep deletes a session
            clock: Returns the current UTC time
        """
        self._db = db
        self._users_collection = db["users"]
        self._max_sessions = max_sessions
        self._active_window = active_window
        self._retention = retention
        self._clock = clock

    async def _load(self, user_id, projection: Optional[dict] = None) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return await self._users_collection.find_one(
            {"_id": oid},
            projection or {"activeSessions": 1},
        )

    async def _save(self, user: dict, sessions: SessionCollection, now: datetime) -> None:
        await self._users_collection.update_one(
            {"_id": user["_id"]},
            {"$set": {"activeSessions": sessions.to_documents(), "updatedAt": now}},
        )

    def _collection(self, user: dict) -> SessionCollection:
        return SessionCollection.from_user(user, max_size=self._max_sessions)

    async def upsert(self, user_id: str, fingerprint: dict) -> dict:
        """
        Register a login from a device, or refresh the existing session.

        Args:
            user_id: MongoDB user ID
            fingerprint: DeviceFingerprint for the request

        Returns:
            The stored session record

        Raises:
            NotFoundException: User doesn't exist
        """
        user = await self._load(user_id)
        if not user:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        now = self._clock()
        sessions = self._collection(user)
        is_new = fingerprint["deviceId"] not in sessions

        before = {s.get("deviceId") for s in sessions}
        session = sessions.upsert(fingerprint, now)
        evicted = before - {s.get("deviceId") for s in sessions}

        await self._save(user, sessions, now)

        if is_new:
            logger.info(f"Session created for user {user_id} on device {session['deviceId']}")
        if evicted:
            logger.info(f"Evicted {len(evicted)} least recently active sessions for user {user_id}")

        return session

    async def touch(self, user_id: str, device_id: str) -> None:
        """
        Refresh lastActive for a session.

        Only the matching array element is updated, so a concurrent remove of
        this or any other session is never written back. A missing user or
        session matches nothing. Failures are logged instead of raised.
        """
        oid = to_object_id(user_id)
        if oid is None:
            return

        now = self._clock()
        try:
            await self._users_collection.update_one(
                {"_id": oid, "activeSessions.deviceId": device_id},
                {"$set": {
                    "activeSessions.$.lastActive": now,
                    "activeSessions.$.isActive": True,
                }},
            )
        except Exception as e:
            logger.warning(f"Failed to refresh activity for user {user_id}: {e}")

    async def list_sessions(self, user_id: str) -> List[dict]:
        """
        Get a user's sessions, most recently active first.

        isActive is recomputed against the activity window and the
        recomputed flags are persisted.

        Returns:
            List of session dicts (empty if the user doesn't exist)
        """
        user = await self._load(user_id)
        if not user:
            return []

        now = self._clock()
        sessions = self._collection(user)
        if sessions.refresh_activity(now, self._active_window):
            await self._save(user, sessions, now)

        return sessions.sorted_by_recency()

    async def remove(self, user_id: str, device_id: str) -> bool:
        """
        Remove one session.

        Returns:
            True if the user exists (whether or not the device had a
            session), False otherwise
        """
        user = await self._load(user_id)
        if not user:
            return False

        sessions = self._collection(user)
        if sessions.remove(device_id):
            await self._save(user, sessions, self._clock())
            logger.info(f"Session {device_id} removed for user {user_id}")

        return True

    async def remove_others(self, user_id: str, keep_device_id: str) -> bool:
        """
        Remove every session except keep_device_id's.

        Returns:
            True if the user exists, False otherwise
        """
        user = await self._load(user_id)
        if not user:
            return False

        sessions = self._collection(user)
        removed = sessions.retain_only(keep_device_id)
        if removed:
            await self._save(user, sessions, self._clock())
        logger.info(f"Removed {removed} other sessions for user {user_id}")

        return True

    async def remove_all(self, user_id: str) -> bool:
        """Remove every session of a user. Returns whether the user exists."""
        oid = to_object_id(user_id)
        if oid is None:
            return False

        result = await self._users_collection.update_one(
            {"_id": oid},
            {"$set": {"activeSessions": [], "updatedAt": self._clock()}},
        )
        return result.matched_count > 0

    async def exists(self, user_id: str, device_id: str) -> bool:
        """
        Check that a device still has a registered session.

        Errors propagate so callers on the authentication path fail closed.
        """
        oid = to_object_id(user_id)
        if oid is None:
            return False

        user = await self._users_collection.find_one(
            {"_id": oid, "activeSessions.deviceId": device_id},
            {"_id": 1},
        )
        return user is not None

    async def sweep_stale(self) -> int:
        """
        Delete sessions idle longer than the retention window, for all users.

        Returns:
            Number of user documents modified
        """
        cutoff = self._clock() - self._retention

        result = await self._users_collection.update_many(
            {"activeSessions.lastActive": {"$lt": cutoff}},
            {"$pull": {"activeSessions": {"lastActive": {"$lt": cutoff}}}},
        )

        logger.info(
            f"Cleaned up inactive sessions older than {cutoff.isoformat()} "
            f"({result.modified_count} users affected)"
        )
        return result.modified_count
