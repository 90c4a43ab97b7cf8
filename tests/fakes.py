"""
In-memory test doubles for motor collections and cursors.
"""

import copy
import re
from datetime import datetime
from types import SimpleNamespace

from bson import ObjectId
from pymongo.errors import DuplicateKeyError


def matches(document, query):
    """Evaluate the subset of MongoDB query operators the catalog uses."""
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue

        value = document.get(key)
        if isinstance(condition, dict) and "$regex" in condition:
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(condition["$regex"], value, flags):
                return False
        elif isinstance(condition, dict) and "$gte" in condition:
            if value is None or value < condition["$gte"]:
                return False
        elif isinstance(condition, dict) and "$in" in condition:
            if value not in condition["$in"]:
                return False
        elif isinstance(condition, dict) and "$ne" in condition:
            if isinstance(value, list):
                if condition["$ne"] in value:
                    return False
            elif value == condition["$ne"]:
                return False
        elif value != condition:
            return False
    return True


def project(document, projection):
    document = copy.deepcopy(document)
    if not projection:
        return document
    keep = {key for key, flag in projection.items() if flag}
    return {key: value for key, value in document.items() if key == "_id" or key in keep}


class FakeCursor:
    """Chainable cursor applying sort and limit on to_list."""

    def __init__(self, documents):
        self.documents = documents
        self.sort_spec = None
        self.limit_value = None

    def sort(self, spec):
        self.sort_spec = spec
        return self

    def limit(self, value):
        self.limit_value = value
        return self

    async def to_list(self, length=None):
        documents = list(self.documents)
        for key, direction in reversed(self.sort_spec or []):
            documents.sort(
                key=lambda d: (d.get(key) is None, d.get(key)),
                reverse=direction == -1,
            )
        if self.limit_value:
            documents = documents[:self.limit_value]
        return documents


class FakeCollection:
    """In-memory stand-in for a motor collection."""

    def __init__(self, documents=(), unique=()):
        self.documents = [copy.deepcopy(d) for d in documents]
        self.unique = unique

    def _check_unique(self, document, ignore_id=None):
        for field in self.unique:
            for other in self.documents:
                if other["_id"] != ignore_id and field in document and other.get(field) == document[field]:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {field}")

    @staticmethod
    def _apply(document, update):
        for key, value in update.get("$set", {}).items():
            document[key] = value
        for key, value in update.get("$push", {}).items():
            document[key] = list(document.get(key) or []) + [value]
        for key, value in update.get("$pull", {}).items():
            document[key] = [item for item in document.get(key) or [] if item != value]

    def find(self, query=None, projection=None):
        return FakeCursor([project(d, projection) for d in self.documents if matches(d, query)])

    async def find_one(self, query, projection=None):
        for document in self.documents:
            if matches(document, query):
                return project(document, projection)
        return None

    async def insert_one(self, document):
        stored = copy.deepcopy(document)
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.documents.append(stored)
        document.setdefault("_id", stored["_id"])
        return SimpleNamespace(inserted_id=stored["_id"])

    async def update_one(self, selector, update):
        for document in self.documents:
            if matches(document, selector):
                self._apply(document, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, selector, update, return_document=None):
        for document in self.documents:
            if matches(document, selector):
                candidate = copy.deepcopy(document)
                self._apply(candidate, update)
                self._check_unique(candidate, ignore_id=document["_id"])
                document.clear()
                document.update(candidate)
                return copy.deepcopy(document)
        return None

    async def delete_one(self, selector):
        for index, document in enumerate(self.documents):
            if matches(document, selector):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


def make_book_document(**overrides):
    """Stored book document with sensible defaults."""
    document = {
        "_id": ObjectId(),
        "title": "The Pragmatic Programmer",
        "author": "David Thomas",
        "isbn": "978-0-13-595705-9",
        "genre": "Technology",
        "read_status": False,
        "user_rating": None,
        "notes": None,
        "file_url": "http://localhost:8000/uploads/pragmatic.pdf",
        "coverImageUrl": None,
        "isBestSeller": False,
        "isFeatured": False,
        "createdAt": datetime(2024, 1, 1),
        "updatedAt": datetime(2024, 1, 1),
    }
    document.update(overrides)
    return document


