"""
File asset storage for uploaded book files.

Objects are written to a local directory and addressed by a public URL
whose last path segment is the object name.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Optional, Union

import structlog

from catalog.errors import DependencyFailureError

logger = structlog.get_logger(__name__)

ALLOWED_BOOK_MIME_TYPES = {
    "application/pdf": ".pdf",
    "application/epub+zip": ".epub",
    "application/x-mobipocket-ebook": ".mobi",
    "application/vnd.amazon.ebook": ".azw",
    "text/plain": ".txt",
    "application/rtf": ".rtf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}


class FileStorage:
    """Async facade over a directory of uploaded objects."""

    def __init__(self, root: Union[str, Path], public_base_url: str):
        """
        Args:
            root: Directory holding stored objects
            public_base_url: URL prefix objects are served under
        """
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _object_name(self, filename: Optional[str], content_type: str) -> str:
        suffix = Path(filename).suffix.lower() if filename else ""
        if not suffix:
            suffix = ALLOWED_BOOK_MIME_TYPES.get(content_type, "")
        return f"{uuid.uuid4().hex}{suffix}"

    def object_name_from_url(self, file_url: str) -> str:
        """Derive the stored object name from its URL."""
        return file_url.rstrip("/").split("/")[-1].split("?")[0]

    def url_for(self, object_name: str) -> str:
        return f"{self.public_base_url}/{object_name}"

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def upload(self, data: bytes, content_type: str, filename: Optional[str] = None) -> str:
        """
        Store a binary payload.

        Args:
            data: File contents
            content_type: MIME type of the payload
            filename: Original filename, used for the extension

        Returns:
            Durable URL of the stored object

        Raises:
            DependencyFailureError: If the object cannot be written
        """
        object_name = self._object_name(filename, content_type)
        path = self.root / object_name
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            logger.error("Failed to store file", object_name=object_name, error=str(e))
            raise DependencyFailureError("Failed to upload file", detail=str(e)) from e

        url = self.url_for(object_name)
        logger.info("Stored file", object_name=object_name, content_type=content_type, size=len(data))
        return url

    async def delete(self, file_url: Optional[str]) -> None:
        """
        Delete the object a URL points to. Deleting a missing object succeeds.

        Raises:
            DependencyFailureError: If an existing object cannot be removed
        """
        if not file_url:
            return

        object_name = self.object_name_from_url(file_url)
        if not object_name:
            return
        path = self.root / object_name

        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            logger.debug("File already absent", object_name=object_name)
            return
        except OSError as e:
            logger.error("Failed to delete file", object_name=object_name, error=str(e))
            raise DependencyFailureError("Failed to delete file", detail=str(e)) from e

        logger.info("Deleted file", object_name=object_name)
