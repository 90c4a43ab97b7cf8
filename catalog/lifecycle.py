"""
Book lifecycle management.

Creates, reads, updates and deletes single books, keeping the stored file
asset in step with the catalog record.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from catalog.database import parse_object_id
from catalog.errors import ConflictError, NotFoundError, ValidationError
from catalog.models import Book, BookCreate, BookUpdate
from catalog.storage import FileStorage

logger = structlog.get_logger(__name__)


def _validation_error(exc: PydanticValidationError) -> ValidationError:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return ValidationError("Invalid book data", detail=problems)


def parse_book_create(fields: Union[BookCreate, Mapping[str, Any]]) -> BookCreate:
    """Validate fields for a new book, raising the catalog ValidationError."""
    if isinstance(fields, BookCreate):
        return fields
    try:
        return BookCreate(**fields)
    except PydanticValidationError as e:
        raise _validation_error(e) from e


def parse_book_update(fields: Union[BookUpdate, Mapping[str, Any], None]) -> BookUpdate:
    """Validate a partial book update, raising the catalog ValidationError."""
    if isinstance(fields, BookUpdate):
        return fields
    try:
        return BookUpdate(**dict(fields or {}))
    except PydanticValidationError as e:
        raise _validation_error(e) from e


class BookLifecycleManager:
    """Single-book create/read/update/delete with file asset cleanup."""

    def __init__(self, books: AsyncIOMotorCollection, storage: FileStorage):
        self.books = books
        self.storage = storage

    async def _fetch(self, book_id: str) -> Dict[str, Any]:
        object_id = parse_object_id(book_id)
        document = None
        if object_id is not None:
            document = await self.books.find_one({"_id": object_id})
        if document is None:
            raise NotFoundError("Book not found", detail=f"No book exists with ID '{book_id}'")
        return document

    async def create(
        self,
        fields: Union[BookCreate, Mapping[str, Any]],
        file_url: Optional[str] = None,
    ) -> Book:
        """
        Add a book to the catalog.

        Args:
            fields: Book fields, validated before anything is written
            file_url: URL of the uploaded book file

        Returns:
            The stored book

        Raises:
            ValidationError: If required fields are missing or malformed
            ConflictError: If the ISBN is already in the catalog
        """
        book_in = parse_book_create(fields)

        now = datetime.utcnow()
        document = book_in.to_document()
        document.update({"file_url": file_url, "createdAt": now, "updatedAt": now})

        try:
            result = await self.books.insert_one(document)
        except DuplicateKeyError as e:
            logger.warning("Duplicate ISBN", isbn=book_in.isbn)
            raise ConflictError("Book already exists", detail=f"ISBN '{book_in.isbn}' is already in the catalog") from e

        document["_id"] = result.inserted_id
        logger.info("Book added", book_id=str(result.inserted_id), title=book_in.title)
        return Book.from_document(document)

    async def get(self, book_id: str) -> Book:
        """
        Fetch a book by identifier.

        Raises:
            NotFoundError: If no book has this identifier
        """
        return Book.from_document(await self._fetch(book_id))

    async def update(
        self,
        book_id: str,
        fields: Union[BookUpdate, Mapping[str, Any], None] = None,
        new_file_url: Optional[str] = None,
    ) -> Book:
        """
        Update a book.

        When a new file URL is supplied the previous file is removed after the
        record has been written, on a best-effort basis: a failed removal is
        logged and the update goes on. A failed write leaves the old file in place.
        Without a new file URL the stored one is left untouched.

        Raises:
            NotFoundError: If the book does not exist
            ValidationError: If a supplied field is malformed
            ConflictError: If the new ISBN belongs to another book
        """
        existing = await self._fetch(book_id)

        changes = parse_book_update(fields)
        update = changes.to_update_document()

        old_file_url = existing.get("file_url")
        if new_file_url:
            update["file_url"] = new_file_url

        update["updatedAt"] = datetime.utcnow()

        try:
            document = await self.books.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise ConflictError("Book already exists", detail=f"ISBN '{update.get('isbn')}' is already in the catalog") from e

        if document is None:
            raise NotFoundError("Book not found", detail=f"No book exists with ID '{book_id}'")

        # The old file goes only once the record points at the new one
        if new_file_url and old_file_url and old_file_url != new_file_url:
            try:
                await self.storage.delete(old_file_url)
            except Exception as e:
                logger.warning("Failed to delete old file", book_id=book_id, file_url=old_file_url, error=str(e))

        logger.info("Book updated", book_id=book_id, fields=sorted(update))
        return Book.from_document(document)

    async def delete(self, book_id: str) -> None:
        """
        Delete a book and its file.

        The file is removed first; if that fails the error propagates and the
        book record is kept.

        Raises:
            NotFoundError: If the book does not exist
            DependencyFailureError: If the file cannot be removed
        """
        existing = await self._fetch(book_id)

        file_url = existing.get("file_url")
        if file_url:
            await self.storage.delete(file_url)

        await self.books.delete_one({"_id": existing["_id"]})
        logger.info("Book deleted", book_id=book_id)
