"""
Pydantic models for catalog data validation and serialization.
Field aliases match the names stored in MongoDB documents.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

# 10 or 13 digits in groups separated by single hyphens
ISBN_PATTERN = re.compile(r"^(?=(?:\D*\d){10}(?:(?:\D*\d){3})?$)\d+(?:-\d+)*$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Role(str, Enum):
    """User role enumeration."""
    USER = "User"
    ADMIN = "Admin"


class SearchScope(str, Enum):
    """Fields a free-text search can target."""
    TITLE = "title"
    AUTHOR = "author"
    ALL = "all"


class SortOrder(str, Enum):
    """Sort order options."""
    ASC = "asc"
    DESC = "desc"


class ToggleAction(str, Enum):
    """Outcome of a bookmark toggle."""
    ADDED = "added"
    REMOVED = "removed"


def _validate_isbn(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not ISBN_PATTERN.match(v):
        raise ValueError('Invalid ISBN format')
    return v


class BookCreate(BaseModel):
    """Fields accepted when a book is added to the catalog."""
    title: str = Field(..., min_length=1, description="Title of the book")
    author: str = Field(..., min_length=1, description="Author of the book")
    isbn: str = Field(..., description="ISBN-10 or ISBN-13, hyphens allowed")
    genre: str = Field(..., min_length=1, description="Genre of the book")
    read_status: bool = Field(False, description="Whether the book has been read")
    user_rating: Optional[int] = Field(None, ge=1, le=5, description="User rating (1-5)")
    notes: Optional[str] = Field(None, description="Additional notes about the book")
    cover_image_url: Optional[str] = Field(None, alias="coverImageUrl")
    is_best_seller: bool = Field(False, alias="isBestSeller")
    is_featured: bool = Field(False, alias="isFeatured")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator('isbn')
    @classmethod
    def validate_isbn(cls, v):
        return _validate_isbn(v)

    def to_document(self) -> Dict[str, Any]:
        """Dump to a MongoDB document using stored field names."""
        return self.model_dump(by_alias=True)


class BookUpdate(BaseModel):
    """
    Partial book update. Only fields explicitly provided are written.
    The file URL is not part of this model: it only changes when a new
    file asset is supplied.
    """
    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    isbn: Optional[str] = None
    genre: Optional[str] = Field(None, min_length=1)
    read_status: Optional[bool] = None
    user_rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None
    cover_image_url: Optional[str] = Field(None, alias="coverImageUrl")
    is_best_seller: Optional[bool] = Field(None, alias="isBestSeller")
    is_featured: Optional[bool] = Field(None, alias="isFeatured")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator('title', 'author', 'isbn', 'genre', 'read_status', 'is_best_seller', 'is_featured')
    @classmethod
    def reject_null(cls, v, info):
        """Required book fields may be changed but never cleared."""
        if v is None:
            raise ValueError(f'{info.field_name} cannot be null')
        return v

    @field_validator('isbn')
    @classmethod
    def validate_isbn(cls, v):
        return _validate_isbn(v)

    def to_update_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class Book(BaseModel):
    """Book as stored in the catalog."""
    id: str = Field(..., description="Unique book identifier")
    title: str
    author: str
    isbn: str
    genre: Optional[str] = None
    read_status: bool = False
    user_rating: Optional[int] = None
    notes: Optional[str] = None
    file_url: Optional[str] = None
    cover_image_url: Optional[str] = Field(None, alias="coverImageUrl")
    is_best_seller: bool = Field(False, alias="isBestSeller")
    is_featured: bool = Field(False, alias="isFeatured")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Book":
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class BookmarkEntry(BaseModel):
    """Projection of a bookmarked book."""
    id: str
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    read_status: Optional[bool] = None
    notes: Optional[str] = None
    cover_image_url: Optional[str] = Field(None, alias="coverImageUrl")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "BookmarkEntry":
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class BookListFilters(BaseModel):
    """Optional constraints for a catalog listing. All present filters are AND-ed."""
    search: Optional[str] = Field(None, description="Full-text search over title, author and notes")
    author: Optional[str] = Field(None, description="Case-insensitive author substring")
    read: Optional[bool] = Field(None, description="Exact read status")
    min_rating: Optional[int] = Field(None, ge=1, le=5, description="Minimum user rating")


class BookFilterParams(BaseModel):
    """Parameters for the filter-and-sort view."""
    author: Optional[str] = None
    read: Optional[bool] = None
    sort_by: Optional[str] = Field(None, description="title, author or createdAt")
    order: SortOrder = SortOrder.ASC


class SpecialSets(BaseModel):
    """Curated bounded views over the catalog."""
    new_arrivals: List[Book] = Field(default_factory=list, alias="newArrivals")
    best_sellers: List[Book] = Field(default_factory=list, alias="bestSellers")
    featured_books: List[Book] = Field(default_factory=list, alias="featuredBooks")

    model_config = {"populate_by_name": True}


class UserRegistration(BaseModel):
    """Fields accepted when registering a user."""
    email: str
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    role: Role = Role.USER

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError('Invalid email address')
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('name must not be empty')
        return v.strip()


class UserProfile(BaseModel):
    """User fields safe to expose. The password hash is never part of it."""
    id: str
    email: str
    name: str
    role: Role = Role.USER
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


class User(UserProfile):
    """User with raw bookmark references."""
    bookmarks: List[str] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "User":
        data = {k: v for k, v in document.items() if k != "password"}
        data["id"] = str(data.pop("_id"))
        data["bookmarks"] = [str(ref) for ref in data.get("bookmarks") or []]
        return cls(**data)


class UserWithBookmarks(UserProfile):
    """User with bookmark references expanded into book projections."""
    bookmarks: List[BookmarkEntry] = Field(default_factory=list)


class ToggleResult(BaseModel):
    """Result of a bookmark toggle."""
    action: ToggleAction
    book_id: str = Field(..., alias="bookId")
    bookmarks: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}
