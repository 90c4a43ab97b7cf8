"""
User accounts: registration, credential checks and lookup.
Passwords are stored as bcrypt hashes and never leave this module.
"""

from datetime import datetime
from typing import Any, Mapping, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from catalog.database import parse_object_id
from catalog.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from catalog.models import User, UserRegistration

logger = structlog.get_logger(__name__)


class UserManager:
    """Account operations over the users collection."""

    def __init__(self, users: AsyncIOMotorCollection, bcrypt_rounds: int = 10):
        self.users = users
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds)

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return self.pwd_context.verify(plain_password, hashed_password)

    async def register(self, registration: Union[UserRegistration, Mapping[str, Any]]) -> User:
        """
        Create a user with an empty bookmark list.

        Raises:
            ValidationError: If email, password or name are malformed
            ConflictError: If the email is already registered
        """
        try:
            data = registration if isinstance(registration, UserRegistration) else UserRegistration(**registration)
        except PydanticValidationError as e:
            problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            raise ValidationError("Invalid registration data", detail=problems) from e

        if await self.users.find_one({"email": data.email}, {"_id": 1}):
            raise ConflictError("Email already registered")

        now = datetime.utcnow()
        document = {
            "email": data.email,
            "password": self.hash_password(data.password),
            "name": data.name,
            "role": data.role.value,
            "bookmarks": [],
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await self.users.insert_one(document)
        except DuplicateKeyError as e:
            raise ConflictError("Email already registered") from e

        document["_id"] = result.inserted_id
        logger.info("User registered", user_id=str(result.inserted_id), role=data.role.value)
        return User.from_document(document)

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials.

        Raises:
            UnauthorizedError: If the email is unknown or the password is wrong
        """
        document = await self.users.find_one({"email": (email or "").strip().lower()})
        hashed = document.get("password") if document else None
        if not hashed or not self.verify_password(password or "", hashed):
            logger.warning("Login rejected", email=email)
            raise UnauthorizedError("Invalid credentials")

        logger.info("User logged in", user_id=str(document["_id"]))
        return User.from_document(document)

    async def get_user(self, user_id: str) -> User:
        """
        Fetch a user by identifier.

        Raises:
            NotFoundError: If no user has this identifier
        """
        object_id = parse_object_id(user_id)
        document = None
        if object_id is not None:
            document = await self.users.find_one({"_id": object_id})
        if document is None:
            raise NotFoundError("User not found", detail=f"No user exists with ID '{user_id}'")
        return User.from_document(document)
