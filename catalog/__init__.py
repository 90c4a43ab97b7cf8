"""
Catalog package: the book catalog core.

This package contains:
- Book and user data models
- MongoDB connection and index management
- Book query engine (search, filter, special sets)
- Book lifecycle management with file asset cleanup
- Bookmark management between users and books
- Account registration and authentication
"""

__version__ = "1.0.0"
