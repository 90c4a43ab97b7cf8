"""
Tests for account registration and authentication.
"""

import pytest
from bson import ObjectId

from catalog.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from catalog.models import Role
from catalog.users import UserManager


@pytest.fixture
def manager(users_collection):
    # Minimum bcrypt cost keeps hashing fast in tests
    return UserManager(users_collection, bcrypt_rounds=4)


@pytest.fixture
def registration():
    return {"email": "reader@example.com", "password": "secret1", "name": "Reader"}


class TestRegister:
    """Test cases for registration."""

    @pytest.mark.asyncio
    async def test_register_hashes_password(self, manager, registration, users_collection):
        user = await manager.register(registration)

        stored = users_collection.documents[0]
        assert user.email == "reader@example.com"
        assert user.role == Role.USER
        assert user.bookmarks == []
        assert stored["password"] != "secret1"
        assert manager.verify_password("secret1", stored["password"])

    @pytest.mark.asyncio
    async def test_register_admin(self, manager, registration):
        user = await manager.register({**registration, "role": "Admin"})
        assert user.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, manager, registration):
        await manager.register(registration)

        with pytest.raises(ConflictError):
            await manager.register({**registration, "email": "READER@example.com"})

    @pytest.mark.asyncio
    async def test_invalid_registration(self, manager, registration):
        with pytest.raises(ValidationError):
            await manager.register({**registration, "password": "123"})


class TestAuthenticate:
    """Test cases for credential checks."""

    @pytest.mark.asyncio
    async def test_valid_credentials(self, manager, registration):
        registered = await manager.register(registration)

        user = await manager.authenticate("Reader@Example.com", "secret1")

        assert user.id == registered.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, manager, registration):
        await manager.register(registration)

        with pytest.raises(UnauthorizedError) as exc_info:
            await manager.authenticate("reader@example.com", "wrong-password")
        assert exc_info.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unknown_email(self, manager):
        with pytest.raises(UnauthorizedError):
            await manager.authenticate("nobody@example.com", "secret1")


class TestGetUser:
    """Test cases for user lookup."""

    @pytest.mark.asyncio
    async def test_get_user(self, manager, registration):
        registered = await manager.register(registration)
        assert (await manager.get_user(registered.id)).email == registration["email"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [str(ObjectId()), "bad-id"])
    async def test_missing_user(self, manager, user_id):
        with pytest.raises(NotFoundError):
            await manager.get_user(user_id)
