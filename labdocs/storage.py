"""
File store of rendered PDF documents.
"""

import logging
import os
import re
import tempfile
from pathlib import Path

from .exceptions import StorageError

logger = logging.getLogger(__name__)

DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class DocumentStore:
    """Directory of PDF files named <document id>.pdf."""

    def __init__(self, base_path: str = "certificates"):
        self.base_path = Path(base_path)

    def path_for(self, document_id: str) -> Path:
        """
        Returns the file path of a document.

        Raises:
            StorageError: If the ID cannot be used as a file name
        """
        if not document_id or not DOCUMENT_ID_PATTERN.match(document_id):
            raise StorageError(f"Invalid document ID: {document_id!r}")
        return self.base_path / f"{document_id}.pdf"

    def save(self, document_id: str, data: bytes) -> Path:
        """
        Writes a document, replacing any previous version.

        The file is written under a temporary name and moved into place, so
        readers never see a partial document.

        Args:
            document_id: Document ID
            data: PDF bytes

        Returns:
            Path: Path of the saved file

        Raises:
            StorageError: If the file cannot be written
        """
        file_path = self.path_for(document_id)

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{document_id}-", suffix=".tmp", dir=self.base_path)
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, file_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Error saving document {file_path}: {e}")

        logger.info(f"Document saved: {file_path} ({len(data)} bytes)")
        return file_path

    def exists(self, document_id: str) -> bool:
        """A document exists only as a non-empty file."""
        file_path = self.path_for(document_id)
        try:
            return file_path.is_file() and file_path.stat().st_size > 0
        except OSError:
            return False

    def load(self, document_id: str) -> bytes:
        """
        Reads a document.

        Raises:
            StorageError: If the document is missing or cannot be read
        """
        file_path = self.path_for(document_id)
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise StorageError(f"Error reading document {file_path}: {e}")

    def delete(self, document_id: str) -> bool:
        """
        Removes a document.

        Returns:
            bool: True if a file was removed
        """
        file_path = self.path_for(document_id)
        try:
            file_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Error deleting document {file_path}: {e}")

        logger.info(f"Document deleted: {file_path}")
        return True

    def get_storage_stats(self) -> dict:
        """Number and total size of stored documents."""
        if not self.base_path.is_dir():
            return {"path": str(self.base_path), "documents": 0, "total_size": 0}

        files = [p for p in self.base_path.glob("*.pdf") if p.is_file()]
        return {
            "path": str(self.base_path),
            "documents": len(files),
            "total_size": sum(p.stat().st_size for p in files)
        }
