"""Tests for UserService."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import (
    ConflictException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from common.utils.password import verify_password
from smartfinance.services.user.user_service import UserService, reset_fields_cleared

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def service(fake_db):
    return UserService(fake_db)


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_creates_user_with_hashed_password(self, service, users_collection):
        user = await service.create_user("Anna", "Anna@Example.com", PASSWORD)

        stored = users_collection.docs[user["_id"]]
        assert stored["email"] == "anna@example.com"
        assert stored["passwordHash"] != PASSWORD
        assert verify_password(PASSWORD, stored["passwordHash"])
        assert stored["activeSessions"] == []
        assert stored["resetPasswordState"] is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, service):
        await service.create_user("Anna", "anna@example.com", PASSWORD)

        with pytest.raises(ConflictException) as exc_info:
            await service.create_user("Other", "ANNA@example.com", PASSWORD)

        assert exc_info.value.code == "EMAIL_EXISTS"

    @pytest.mark.asyncio
    async def test_duplicate_key_race(self, mock_db, mock_collection):
        mock_collection.find_one.return_value = None
        mock_collection.insert_one.side_effect = DuplicateKeyError("E11000")

        with pytest.raises(ConflictException):
            await UserService(mock_db).create_user("Anna", "anna@example.com", PASSWORD)

    @pytest.mark.asyncio
    async def test_weak_password(self, service, users_collection):
        with pytest.raises(ValidationException) as exc_info:
            await service.create_user("Anna", "anna@example.com", "password")

        assert exc_info.value.code == "WEAK_PASSWORD"
        assert exc_info.value.detail["details"]["errors"]
        assert users_collection.docs == {}


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_user_by_id(self, service, users_collection):
        user = users_collection.add_user()

        assert (await service.get_user_by_id(str(user["_id"])))["_id"] == user["_id"]
        assert await service.get_user_by_id(str(ObjectId())) is None
        assert await service.get_user_by_id("not-an-id") is None

    @pytest.mark.asyncio
    async def test_exists(self, service, users_collection):
        user = users_collection.add_user()

        assert await service.exists(str(user["_id"])) is True
        assert await service.exists(str(ObjectId())) is False
        assert await service.exists("bogus") is False

    @pytest.mark.asyncio
    async def test_exists_propagates_database_errors(self, mock_db, mock_collection, sample_user_id):
        mock_collection.find_one = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(RuntimeError):
            await UserService(mock_db).exists(sample_user_id)


class TestVerifyCredentials:
    @pytest.mark.asyncio
    async def test_valid(self, service):
        created = await service.create_user("Anna", "anna@example.com", PASSWORD)

        user = await service.verify_credentials("ANNA@example.com", PASSWORD)

        assert user["_id"] == created["_id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,password", [
        ("anna@example.com", "Wr0ng!Pass"),
        ("nobody@example.com", PASSWORD),
    ])
    async def test_invalid_share_one_error(self, service, email, password):
        await service.create_user("Anna", "anna@example.com", PASSWORD)

        with pytest.raises(UnauthorizedException) as exc_info:
            await service.verify_credentials(email, password)

        assert exc_info.value.code == "INVALID_CREDENTIALS"


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_password(self, service, users_collection):
        user = await service.create_user("Anna", "anna@example.com", PASSWORD)

        await service.update_password(str(user["_id"]), "N3w!Passw0rd")

        assert verify_password("N3w!Passw0rd", users_collection.docs[user["_id"]]["passwordHash"])

    @pytest.mark.asyncio
    async def test_update_password_missing_user(self, service):
        with pytest.raises(NotFoundException):
            await service.update_password(str(ObjectId()), "N3w!Passw0rd")

    @pytest.mark.asyncio
    async def test_delete_user(self, service, users_collection):
        user = users_collection.add_user()

        assert await service.delete_user(str(user["_id"])) is True
        assert await service.delete_user(str(user["_id"])) is False
        assert users_collection.docs == {}


class TestPublicProfile:
    def test_only_safe_fields(self):
        user = {
            "_id": ObjectId(),
            "username": "Anna",
            "email": "anna@example.com",
            "passwordHash": "secret",
            "createdAt": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }

        profile = UserService.public_profile(user)

        assert set(profile) == {"id", "username", "email", "createdAt"}
        assert profile["createdAt"] == "2026-01-01T00:00:00+00:00"

    def test_reset_fields_cleared(self):
        assert reset_fields_cleared()["resetPasswordState"] is None
