"""
FastAPI RESTful API for the Book Library catalog.

This module provides a REST API for:
- Registration, login and bearer token authentication
- Book catalog browsing, search and filtering
- Book upload, update and deletion
- User bookmarks
"""
