"""
Error taxonomy for catalog operations.

Every error carries a stable ``kind`` and a human-readable message so the
transport layer can answer with a structured failure envelope.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog errors."""

    kind = "catalog_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        """Failure envelope fields for this error."""
        return {"message": self.message, "error": self.detail, "kind": self.kind}


class ValidationError(CatalogError):
    """Raised when a required field is missing or malformed."""

    kind = "validation_error"


class NotFoundError(CatalogError):
    """Raised when a referenced user or book does not exist."""

    kind = "not_found"


class ConflictError(CatalogError):
    """Raised when a unique field (email, isbn) is already taken."""

    kind = "conflict"


class DependencyFailureError(CatalogError):
    """Raised when the object store fails on a path that must not ignore it."""

    kind = "dependency_failure"


class UnauthorizedError(CatalogError):
    """Raised on credential mismatch."""

    kind = "unauthorized"
