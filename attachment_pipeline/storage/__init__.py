"""
Storage collaborators — where stored bytes and attachment records go.

The ingestor only sees the two narrow interfaces in `base`.
"""

from .base import AttachmentRepository, BlobStore, PersistenceError, StoredBlob
from .local import JsonAttachmentRepository, LocalBlobStore
from .memory import InMemoryAttachmentRepository, InMemoryBlobStore
from .vercel import VercelBlobStore

__all__ = [
    "AttachmentRepository",
    "BlobStore",
    "PersistenceError",
    "StoredBlob",
    "JsonAttachmentRepository",
    "LocalBlobStore",
    "InMemoryAttachmentRepository",
    "InMemoryBlobStore",
    "VercelBlobStore",
]
