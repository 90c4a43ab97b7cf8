"""
Tests for bookmark management.
"""

from datetime import datetime

import pytest
from bson import ObjectId

from catalog.bookmarks import BookmarkManager
from catalog.errors import NotFoundError
from catalog.models import ToggleAction


@pytest.fixture
def reader(users_collection):
    """Insert a user and return their id."""
    document = {
        "_id": ObjectId(),
        "email": "reader@example.com",
        "password": "$2b$04$notarealhash",
        "name": "Reader",
        "role": "User",
        "bookmarks": [],
        "createdAt": datetime(2024, 1, 1),
        "updatedAt": datetime(2024, 1, 1),
    }
    users_collection.documents.append(document)
    return str(document["_id"])


@pytest.fixture
def manager(users_collection, books_collection):
    return BookmarkManager(users_collection, books_collection)


def stored_bookmarks(users_collection, user_id):
    document = next(d for d in users_collection.documents if str(d["_id"]) == user_id)
    return [str(ref) for ref in document["bookmarks"]]


class TestToggle:
    """Test cases for toggling bookmarks."""

    @pytest.mark.asyncio
    async def test_toggle_adds_absent_book(self, manager, reader, sample_books, users_collection):
        book_id = str(sample_books[0]["_id"])

        result = await manager.toggle_bookmark(reader, book_id)

        assert result.action == ToggleAction.ADDED
        assert result.bookmarks == [book_id]
        assert stored_bookmarks(users_collection, reader) == [book_id]

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_membership(self, manager, reader, sample_books, users_collection):
        existing = str(sample_books[1]["_id"])
        await manager.add_bookmark(reader, existing)
        before = stored_bookmarks(users_collection, reader)
        book_id = str(sample_books[0]["_id"])

        first = await manager.toggle_bookmark(reader, book_id)
        second = await manager.toggle_bookmark(reader, book_id)

        assert first.action == ToggleAction.ADDED
        assert second.action == ToggleAction.REMOVED
        assert stored_bookmarks(users_collection, reader) == before

    @pytest.mark.asyncio
    async def test_toggle_removes_deleted_book(self, manager, reader, sample_books, users_collection, books_collection):
        book_id = sample_books[0]["_id"]
        await manager.add_bookmark(reader, str(book_id))
        await books_collection.delete_one({"_id": book_id})

        result = await manager.toggle_bookmark(reader, str(book_id))

        assert result.action == ToggleAction.REMOVED
        assert stored_bookmarks(users_collection, reader) == []

    @pytest.mark.asyncio
    async def test_toggle_missing_book(self, manager, reader):
        with pytest.raises(NotFoundError) as exc_info:
            await manager.toggle_bookmark(reader, str(ObjectId()))
        assert exc_info.value.message == "Book not found"

    @pytest.mark.asyncio
    async def test_toggle_missing_user(self, manager, sample_books):
        with pytest.raises(NotFoundError) as exc_info:
            await manager.toggle_bookmark(str(ObjectId()), str(sample_books[0]["_id"]))
        assert exc_info.value.message == "User not found"

    @pytest.mark.asyncio
    async def test_guarded_add_does_not_duplicate(self, manager, reader, sample_books, users_collection):
        book_id = str(sample_books[0]["_id"])
        await manager.add_bookmark(reader, book_id)

        await manager.add_bookmark(reader, book_id, allow_duplicate=False)

        assert stored_bookmarks(users_collection, reader) == [book_id]

    @pytest.mark.asyncio
    async def test_toggle_accepts_uppercase_id(self, manager, reader, sample_books, users_collection):
        book_id = str(sample_books[0]["_id"])

        first = await manager.toggle_bookmark(reader, book_id.upper())
        second = await manager.toggle_bookmark(reader, book_id.upper())

        assert first.action == ToggleAction.ADDED
        assert first.book_id == book_id
        assert second.action == ToggleAction.REMOVED
        assert second.book_id == book_id
        assert stored_bookmarks(users_collection, reader) == []


class TestAddRemove:
    """Test cases for the direct add and remove operations."""

    @pytest.mark.asyncio
    async def test_add_appends_in_order(self, manager, reader, sample_books):
        first, second = str(sample_books[2]["_id"]), str(sample_books[0]["_id"])

        await manager.add_bookmark(reader, first)
        user = await manager.add_bookmark(reader, second)

        assert user.bookmarks == [first, second]

    @pytest.mark.asyncio
    async def test_add_allows_duplicates(self, manager, reader, sample_books):
        book_id = str(sample_books[0]["_id"])

        await manager.add_bookmark(reader, book_id)
        user = await manager.add_bookmark(reader, book_id)

        assert user.bookmarks == [book_id, book_id]

    @pytest.mark.asyncio
    async def test_remove_pulls_all_occurrences(self, manager, reader, sample_books):
        book_id = str(sample_books[0]["_id"])
        other = str(sample_books[1]["_id"])
        for ref in (book_id, other, book_id):
            await manager.add_bookmark(reader, ref)

        user = await manager.remove_bookmark(reader, book_id)

        assert user.bookmarks == [other]

    @pytest.mark.asyncio
    async def test_remove_missing_user(self, manager, sample_books):
        with pytest.raises(NotFoundError):
            await manager.remove_bookmark(str(ObjectId()), str(sample_books[0]["_id"]))

    @pytest.mark.asyncio
    async def test_add_invalid_book_id(self, manager, reader):
        with pytest.raises(NotFoundError):
            await manager.add_bookmark(reader, "not-an-id")


class TestGetBookmarks:
    """Test cases for expanding bookmarks."""

    @pytest.mark.asyncio
    async def test_expands_in_bookmark_order(self, manager, reader, sample_books):
        for doc in (sample_books[3], sample_books[0]):
            await manager.add_bookmark(reader, str(doc["_id"]))

        user = await manager.get_bookmarks(reader)

        assert user.email == "reader@example.com"
        assert [entry.title for entry in user.bookmarks] == ["Children of Dune", "Dune"]
        assert user.bookmarks[1].isbn == "0441172717"
        assert user.bookmarks[1].read_status is True

    @pytest.mark.asyncio
    async def test_projection_excludes_other_fields(self, manager, reader, sample_books):
        await manager.add_bookmark(reader, str(sample_books[0]["_id"]))

        user = await manager.get_bookmarks(reader)
        data = user.bookmarks[0].model_dump()

        assert "file_url" not in data
        assert "genre" not in data

    @pytest.mark.asyncio
    async def test_deleted_books_are_omitted(self, manager, reader, sample_books, books_collection):
        kept, deleted = sample_books[1]["_id"], sample_books[0]["_id"]
        await manager.add_bookmark(reader, str(deleted))
        await manager.add_bookmark(reader, str(kept))
        await books_collection.delete_one({"_id": deleted})

        user = await manager.get_bookmarks(reader)

        assert [entry.id for entry in user.bookmarks] == [str(kept)]

    @pytest.mark.asyncio
    async def test_empty_bookmarks(self, manager, reader):
        user = await manager.get_bookmarks(reader)
        assert user.bookmarks == []

    @pytest.mark.asyncio
    async def test_missing_user(self, manager):
        with pytest.raises(NotFoundError):
            await manager.get_bookmarks(str(ObjectId()))
