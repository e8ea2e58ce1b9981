"""
In-memory storage — non-durable stores for tests and dry runs.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..models.attachment import Attachment
from .base import AttachmentRepository, BlobStore, PersistenceError, StoredBlob

logger = logging.getLogger(__name__)


class InMemoryBlobStore(BlobStore):
    """Keeps blobs in a dict. `fail_on` makes put() raise for matching keys."""

    def __init__(self, base_url: str = "memory://blobs", fail_on: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.fail_on = fail_on
        self.blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    @property
    def name(self) -> str:
        return "memory"

    def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
        if self.fail_on is not None and self.fail_on in key:
            raise PersistenceError(f"simulated failure storing {key}", key=key)
        if key in self.blobs:
            raise PersistenceError(f"key already exists: {key}", key=key)

        self.blobs[key] = bytes(data)
        self.content_types[key] = content_type
        logger.debug(f"[memory] Stored {key} ({len(data):,} bytes, {content_type})")
        return StoredBlob(
            key=key,
            url=f"{self.base_url}/{key}",
            size_bytes=len(data),
            content_type=content_type,
        )


class InMemoryAttachmentRepository(AttachmentRepository):
    """Keeps records in insertion order."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records: Dict[str, Attachment] = {}

    def save(self, attachment: Attachment) -> Attachment:
        if self.fail:
            raise PersistenceError("simulated repository failure", key=attachment.id)
        if attachment.id in self.records:
            raise PersistenceError(f"attachment already exists: {attachment.id}", key=attachment.id)
        self.records[attachment.id] = attachment
        return attachment

    def get(self, attachment_id: str) -> Optional[Attachment]:
        return self.records.get(attachment_id)

    def all(self) -> List[Attachment]:
        return list(self.records.values())
