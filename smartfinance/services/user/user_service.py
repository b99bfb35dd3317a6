"""
User service for identity management.

Handles registration, credential checks, lookups and account deletion.
Device sessions live embedded in the same document (`activeSessions`) and
are managed by SessionManager.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from common.database import to_object_id
from common.utils.exceptions import (
    ConflictException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from common.utils.password import hash_password, validate_password, verify_password

logger = logging.getLogger(__name__)


class UserService:
    """
    Manages user lifecycle and data.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize UserService.

        Args:
            db: MongoDB database connection
        """
        self._db = db
        self._users_collection = db["users"]

    async def ensure_indexes(self) -> None:
        """Create the unique email index and the session sweep index."""
        await self._users_collection.create_index([("email", ASCENDING)], unique=True)
        await self._users_collection.create_index([("activeSessions.lastActive", ASCENDING)])

    async def create_user(self, username: str, email: str, password: str) -> dict:
        """
        Create a new user record.

        Args:
            username: Display name
            email: User's email address (stored lowercased)
            password: Plain password, checked against the strength rules

        Returns:
            Created user document

        Raises:
            ValidationException: Weak password
            ConflictException: Email already registered
        """
        is_valid, errors = validate_password(password)
        if not is_valid:
            raise ValidationException(
                message="Password does not meet requirements",
                code="WEAK_PASSWORD",
                details={"errors": errors}
            )

        email = email.strip().lower()
        if await self._users_collection.find_one({"email": email}, {"_id": 1}):
            raise ConflictException(
                message="User with this email already exists",
                code="EMAIL_EXISTS"
            )

        now = datetime.now(timezone.utc)
        user_doc = {
            "username": username.strip(),
            "email": email,
            "passwordHash": hash_password(password),
            "activeSessions": [],
            "resetPasswordOtpHash": None,
            "resetPasswordOtpExpiresAt": None,
            "resetPasswordOtpRetryCount": 0,
            "resetPasswordState": None,
            "resetOtpRequestCount": 0,
            "resetOtpRequestWindowStart": None,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await self._users_collection.insert_one(user_doc)
        except DuplicateKeyError:
            raise ConflictException(
                message="User with this email already exists",
                code="EMAIL_EXISTS"
            )
        user_doc["_id"] = result.inserted_id

        logger.info(f"User created: {result.inserted_id}")
        return user_doc

    async def get_user_by_id(self, user_id: str) -> Optional[dict]:
        """
        Load user by MongoDB ID.

        Args:
            user_id: MongoDB ObjectId as string

        Returns:
            User document or None if not found (or the ID is malformed)
        """
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return await self._users_collection.find_one({"_id": oid})

    async def get_user_by_email(self, email: str) -> Optional[dict]:
        """
        Load user by email address.

        Args:
            email: User's email address

        Returns:
            User document or None if not found
        """
        return await self._users_collection.find_one({"email": email.strip().lower()})

    async def exists(self, user_id: str) -> bool:
        """
        Check that an account still exists.

        Database errors propagate; the auth gate treats them as a rejection.
        """
        oid = to_object_id(user_id)
        if oid is None:
            return False
        return await self._users_collection.find_one({"_id": oid}, {"_id": 1}) is not None

    async def verify_credentials(self, email: str, password: str) -> dict:
        """
        Check an email/password pair.

        Raises:
            UnauthorizedException: Unknown email or wrong password (same
                error for both)
        """
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.get("passwordHash", "")):
            raise UnauthorizedException(
                message="Invalid email or password",
                code="INVALID_CREDENTIALS"
            )
        return user

    async def update_password(self, user_id: str, new_password: str) -> None:
        """
        Replace a user's password.

        Raises:
            ValidationException: Weak password
            NotFoundException: User doesn't exist
        """
        is_valid, errors = validate_password(new_password)
        if not is_valid:
            raise ValidationException(
                message="Password does not meet requirements",
                code="WEAK_PASSWORD",
                details={"errors": errors}
            )

        oid = to_object_id(user_id)
        result = None
        if oid is not None:
            result = await self._users_collection.update_one(
                {"_id": oid},
                {"$set": {
                    "passwordHash": hash_password(new_password),
                    "updatedAt": datetime.now(timezone.utc),
                }}
            )

        if result is None or result.matched_count == 0:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        logger.info(f"Password updated for user {user_id}")

    async def delete_user(self, user_id: str) -> bool:
        """
        Delete a user document, and with it every embedded session.

        Returns:
            True if a document was deleted
        """
        oid = to_object_id(user_id)
        if oid is None:
            return False

        result = await self._users_collection.delete_one({"_id": oid})
        if result.deleted_count:
            logger.info(f"User deleted: {user_id}")
        return result.deleted_count > 0

    @staticmethod
    def public_profile(user: dict) -> dict:
        """Fields safe to return to the client."""
        created_at = user.get("createdAt")
        return {
            "id": str(user["_id"]),
            "username": user.get("username"),
            "email": user.get("email"),
            "createdAt": created_at.isoformat() if isinstance(created_at, datetime) else created_at,
        }


def reset_fields_cleared() -> dict:
    """$set payload that wipes any in-progress password reset."""
    return {
        "resetPasswordOtpHash": None,
        "resetPasswordOtpExpiresAt": None,
        "resetPasswordOtpRetryCount": 0,
        "resetPasswordState": None,
    }

