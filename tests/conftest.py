"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from catalog.storage import FileStorage
from tests.fakes import FakeCollection, make_book_document


@pytest.fixture
def book_document():
    return make_book_document


@pytest.fixture
def sample_books():
    """A small catalog with distinct titles, authors and flags."""
    base = datetime(2024, 1, 1)
    return [
        make_book_document(title="Dune", author="Frank Herbert", isbn="0441172717",
                           genre="Science Fiction", read_status=True, user_rating=5,
                           isBestSeller=True, createdAt=base),
        make_book_document(title="Emma", author="Jane Austen", isbn="9780141439587",
                           genre="Classic", createdAt=base + timedelta(days=1)),
        make_book_document(title="Persuasion", author="Jane Austen", isbn="9780141439686",
                           genre="Classic", read_status=True, user_rating=4,
                           isFeatured=True, createdAt=base + timedelta(days=2)),
        make_book_document(title="Children of Dune", author="Frank Herbert", isbn="0441104029",
                           genre="Science Fiction", createdAt=base + timedelta(days=3)),
        make_book_document(title="C++ Primer", author="Stanley Lippman", isbn="978-0-321-71411-4",
                           genre="Technology", isBestSeller=True, isFeatured=True,
                           createdAt=base + timedelta(days=4)),
    ]


@pytest.fixture
def books_collection(sample_books):
    return FakeCollection(sample_books, unique=("isbn",))


@pytest.fixture
def users_collection():
    return FakeCollection(unique=("email",))


@pytest.fixture
def mock_storage():
    """Mock object storage."""
    storage = AsyncMock(spec=FileStorage)
    storage.upload.return_value = "http://localhost:8000/uploads/new.pdf"
    storage.delete.return_value = None
    return storage
