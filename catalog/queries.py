"""
Book query engine.

Translates optional query parameters into a single read against the books
collection. Query documents are built by plain functions so they can be
composed and inspected independently of the database.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection

from catalog.models import (
    Book, BookFilterParams, BookListFilters, SearchScope, SortOrder, SpecialSets
)

logger = structlog.get_logger(__name__)

SPECIAL_SET_SIZE = 6


def substring_match(term: Optional[str]) -> Dict[str, str]:
    """
    Case-insensitive substring condition for a text field.

    User input is escaped so it is always matched literally. An empty or
    missing term yields an empty pattern, which matches every value.
    """
    return {"$regex": re.escape(term or ""), "$options": "i"}


def build_search_query(term: Optional[str], scope: SearchScope = SearchScope.ALL) -> Dict[str, Any]:
    """Build the query document for a title/author search."""
    if scope == SearchScope.TITLE:
        return {"title": substring_match(term)}
    if scope == SearchScope.AUTHOR:
        return {"author": substring_match(term)}
    return {
        "$or": [
            {"title": substring_match(term)},
            {"author": substring_match(term)},
        ]
    }


def build_filter_query(author: Optional[str] = None, read: Optional[bool] = None) -> Dict[str, Any]:
    """Build a conjunctive query from the author and read status filters."""
    query: Dict[str, Any] = {}
    if author:
        query["author"] = substring_match(author)
    if read is not None:
        query["read_status"] = read
    return query


def build_list_query(filters: Optional[BookListFilters] = None) -> Dict[str, Any]:
    """Build the catalog listing query. An empty filter matches every book."""
    if filters is None:
        return {}
    query = build_filter_query(author=filters.author, read=filters.read)
    if filters.search:
        query["$text"] = {"$search": filters.search}
    if filters.min_rating is not None:
        query["user_rating"] = {"$gte": filters.min_rating}
    return query


def build_sort(sort_by: Optional[str], order: SortOrder = SortOrder.ASC) -> Optional[List[Tuple[str, int]]]:
    """
    Build a single-key sort specification.

    The key is passed through as given; a key that names no stored field
    leaves documents in store-default order. Keys the server would reject
    (operator-like or containing NUL) are dropped the same way.
    """
    if not sort_by or sort_by.startswith("$") or "\0" in sort_by:
        return None
    direction = -1 if order == SortOrder.DESC else 1
    return [(sort_by, direction)]


class BookQueryEngine:
    """Read-only views over the books collection."""

    def __init__(self, books: AsyncIOMotorCollection, special_set_size: int = SPECIAL_SET_SIZE):
        self.books = books
        self.special_set_size = special_set_size

    async def _find(
        self,
        query: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Book]:
        cursor = self.books.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        documents = await cursor.to_list(length=limit)
        return [Book.from_document(doc) for doc in documents]

    async def list_books(self, filters: Optional[BookListFilters] = None) -> List[Book]:
        """
        List books in store-default order.

        Args:
            filters: Optional search, author, read status and rating filters

        Returns:
            Matching books
        """
        query = build_list_query(filters)
        try:
            books = await self._find(query)
        except Exception as e:
            logger.error("Failed to list books", error=str(e), query=query)
            raise
        logger.debug("Listed books", count=len(books))
        return books

    async def search_books(self, term: Optional[str], scope: SearchScope = SearchScope.ALL) -> List[Book]:
        """
        Search books by title, author, or either.

        Args:
            term: Substring to look for, matched case-insensitively
            scope: Field(s) to search

        Returns:
            Matching books in store-default order
        """
        query = build_search_query(term, scope)
        try:
            books = await self._find(query)
        except Exception as e:
            logger.error("Failed to search books", error=str(e), term=term, scope=scope.value)
            raise
        logger.debug("Search completed", term=term, scope=scope.value, count=len(books))
        return books

    async def filter_books(self, params: BookFilterParams) -> List[Book]:
        """
        Filter books by author and read status, with an optional sort.

        Args:
            params: Author, read status, sort key and order

        Returns:
            Matching books
        """
        query = build_filter_query(author=params.author, read=params.read)
        sort = build_sort(params.sort_by, params.order)
        try:
            books = await self._find(query, sort=sort)
        except Exception as e:
            logger.error("Failed to filter books", error=str(e), params=params.model_dump())
            raise
        return books

    async def books_by_genre(self, genre: str) -> List[Book]:
        """Books whose genre equals the given value exactly."""
        try:
            return await self._find({"genre": genre})
        except Exception as e:
            logger.error("Failed to get books by genre", genre=genre, error=str(e))
            raise

    async def special_sets(self) -> SpecialSets:
        """
        Newest books overall, newest best sellers and newest featured books.
        Each view is limited independently; a book may appear in several.
        """
        newest_first = [("createdAt", -1)]
        try:
            new_arrivals = await self._find({}, sort=newest_first, limit=self.special_set_size)
            best_sellers = await self._find({"isBestSeller": True}, sort=newest_first, limit=self.special_set_size)
            featured_books = await self._find({"isFeatured": True}, sort=newest_first, limit=self.special_set_size)
        except Exception as e:
            logger.error("Failed to get special books", error=str(e))
            raise

        return SpecialSets(
            new_arrivals=new_arrivals,
            best_sellers=best_sellers,
            featured_books=featured_books,
        )
