"""
Storage Base Classes — interfaces for the blob store and the repository.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..models.attachment import Attachment


class PersistenceError(Exception):
    """Saving bytes or the record failed. The only fatal ingestion error."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


@dataclass(frozen=True)
class StoredBlob:
    """Where a blob ended up."""

    key: str
    url: str
    size_bytes: int
    content_type: str


class BlobStore(ABC):
    """
    Durable object storage.

    Keys are chosen by the caller and must be stored as given (no random
    suffix), so a key identifies exactly one upload.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Store identifier (e.g. 'local', 'vercel')."""
        pass

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
        """
        Store bytes under `key`.

        Raises PersistenceError on failure.
        """
        pass


class AttachmentRepository(ABC):
    """Owner of Attachment records."""

    @abstractmethod
    def save(self, attachment: Attachment) -> Attachment:
        """
        Persist a new record and return it as stored.

        Raises PersistenceError on failure.
        """
        pass

    @abstractmethod
    def get(self, attachment_id: str) -> Optional[Attachment]:
        pass
