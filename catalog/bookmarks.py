"""
Bookmark management between users and books.

Bookmarks are an ordered list of book ids stored on the user document.
Books are not back-linked, and deleting a book leaves stale ids behind;
those are dropped when bookmarks are expanded for reading.
"""

from datetime import datetime
from typing import Any, Dict, List

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection

from catalog.database import parse_object_id
from catalog.errors import NotFoundError
from catalog.models import BookmarkEntry, ToggleAction, ToggleResult, User, UserWithBookmarks

logger = structlog.get_logger(__name__)

BOOKMARK_PROJECTION = {
    "title": 1,
    "author": 1,
    "isbn": 1,
    "read_status": 1,
    "notes": 1,
    "coverImageUrl": 1,
}


class BookmarkManager:
    """Maintains user bookmarks with toggle semantics."""

    def __init__(self, users: AsyncIOMotorCollection, books: AsyncIOMotorCollection):
        self.users = users
        self.books = books

    async def _fetch_user(self, user_id: str) -> Dict[str, Any]:
        object_id = parse_object_id(user_id)
        document = None
        if object_id is not None:
            document = await self.users.find_one({"_id": object_id})
        if document is None:
            logger.warning("User not found", user_id=user_id)
            raise NotFoundError("User not found", detail=f"No user exists with ID '{user_id}'")
        return document

    async def _require_book(self, book_id: str) -> ObjectId:
        object_id = parse_object_id(book_id)
        document = None
        if object_id is not None:
            document = await self.books.find_one({"_id": object_id}, {"_id": 1})
        if document is None:
            raise NotFoundError("Book not found", detail=f"No book exists with ID '{book_id}'")
        return object_id

    async def get_bookmarks(self, user_id: str) -> UserWithBookmarks:
        """
        Fetch a user with bookmarked books expanded.

        Entries keep the bookmark list's order. Ids of books that no longer
        exist are left out.

        Raises:
            NotFoundError: If the user does not exist
        """
        document = await self._fetch_user(user_id)
        references: List[ObjectId] = document.get("bookmarks") or []

        found: Dict[ObjectId, BookmarkEntry] = {}
        if references:
            cursor = self.books.find({"_id": {"$in": references}}, BOOKMARK_PROJECTION)
            for book in await cursor.to_list(length=None):
                found[book["_id"]] = BookmarkEntry.from_document(book)

        entries = [found[ref] for ref in references if ref in found]
        if len(entries) < len(references):
            logger.debug("Dropped stale bookmarks", user_id=user_id, stale=len(references) - len(entries))

        user = User.from_document(document)
        return UserWithBookmarks(**user.model_dump(exclude={"bookmarks"}), bookmarks=entries)

    async def add_bookmark(self, user_id: str, book_id: str, allow_duplicate: bool = True) -> User:
        """
        Append a book to the user's bookmarks.

        Args:
            user_id: Bookmark owner
            book_id: Book to bookmark; must exist
            allow_duplicate: When False the append only happens if the book
                is not already bookmarked, checked in the same write

        Raises:
            NotFoundError: If the user or the book does not exist
        """
        user = await self._fetch_user(user_id)
        book_object_id = await self._require_book(book_id)

        selector: Dict[str, Any] = {"_id": user["_id"]}
        if not allow_duplicate:
            selector["bookmarks"] = {"$ne": book_object_id}

        await self.users.update_one(
            selector,
            {"$push": {"bookmarks": book_object_id}, "$set": {"updatedAt": datetime.utcnow()}},
        )
        logger.info("Book added to bookmarks", user_id=user_id, book_id=book_id)
        return User.from_document(await self._fetch_user(user_id))

    async def remove_bookmark(self, user_id: str, book_id: str) -> User:
        """
        Remove every occurrence of a book from the user's bookmarks.
        The book itself is not looked up, so ids of deleted books can be removed.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = await self._fetch_user(user_id)
        book_object_id = parse_object_id(book_id)

        if book_object_id is not None:
            await self.users.update_one(
                {"_id": user["_id"]},
                {"$pull": {"bookmarks": book_object_id}, "$set": {"updatedAt": datetime.utcnow()}},
            )
        logger.info("Book removed from bookmarks", user_id=user_id, book_id=book_id)
        return User.from_document(await self._fetch_user(user_id))

    async def toggle_bookmark(self, user_id: str, book_id: str) -> ToggleResult:
        """
        Remove the book if it is bookmarked, add it otherwise.

        Membership is read first and the write follows in a second round
        trip. The add path only pushes when the id is still absent.

        Raises:
            NotFoundError: If the user does not exist, or the book does not
                exist when it is being added
        """
        user = await self._fetch_user(user_id)
        object_id = parse_object_id(book_id)
        if object_id is not None:
            book_id = str(object_id)

        if object_id is not None and object_id in (user.get("bookmarks") or []):
            updated = await self.remove_bookmark(user_id, book_id)
            action = ToggleAction.REMOVED
        else:
            updated = await self.add_bookmark(user_id, book_id, allow_duplicate=False)
            action = ToggleAction.ADDED

        return ToggleResult(action=action, book_id=book_id, bookmarks=updated.bookmarks)
