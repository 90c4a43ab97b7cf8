"""
MongoDB database utilities for async operations.
Handles connection and indexing for the users and books collections.
"""

from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, TEXT
from pymongo.errors import ConnectionFailure

logger = structlog.get_logger(__name__)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """
    Convert a client supplied identifier to an ObjectId.

    Returns None when the value is not a valid ObjectId, so callers can
    treat it like an identifier that matches nothing.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class CatalogDatabase:
    """
    Async MongoDB manager for the catalog.
    Owns the client and exposes the users and books collections.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        users_collection: str = "users",
        books_collection: str = "books",
    ):
        """
        Initialize the database manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            users_collection: Name of the users collection
            books_collection: Name of the books collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.users_collection_name = users_collection
        self.books_collection_name = books_collection
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.users: Optional[AsyncIOMotorCollection] = None
        self.books: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and ensure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.users = self.database[self.users_collection_name]
            self.books = self.database[self.books_collection_name]

            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self.create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def create_indexes(self) -> None:
        """
        Create the uniqueness and lookup indexes the catalog relies on.
        """
        try:
            await self.users.create_index("email", unique=True)

            await self.books.create_index("isbn", unique=True)
            await self.books.create_index("title")
            await self.books.create_index("author")
            await self.books.create_index("genre")
            await self.books.create_index([("createdAt", DESCENDING)])
            await self.books.create_index([("isBestSeller", ASCENDING), ("createdAt", DESCENDING)])
            await self.books.create_index([("isFeatured", ASCENDING), ("createdAt", DESCENDING)])

            # Full-text index backing the catalog listing search
            await self.books.create_index(
                [("title", TEXT), ("author", TEXT), ("notes", TEXT)],
                name="books_text",
            )

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.books.count_documents({})
            users_count = await self.users.count_documents({})

            return {
                "status": "healthy",
                "books_count": books_count,
                "users_count": users_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    async def get_database_stats(self) -> Dict[str, Any]:
        """Get database statistics for monitoring."""
        try:
            stats = await self.database.command("dbStats")

            return {
                "database_size": stats.get("dataSize", 0),
                "total_books": await self.books.estimated_document_count(),
                "total_users": await self.users.estimated_document_count(),
                "genres": sorted(g for g in await self.books.distinct("genre") if g),
                "last_updated": datetime.utcnow().isoformat()
            }

        except Exception as e:
            logger.error("Failed to get database stats", error=str(e))
            raise
