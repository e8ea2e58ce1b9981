"""
Local storage — blobs on disk, records in a JSON file.

Meant for a single host (development, self-hosting). Blobs are written
to a temp file and renamed into place, so a crash never leaves a
half-written object under its final key.

## Layout

    <root>/attachments/<id>.jpg
    <root>/attachments/<id>-thumb.jpg
    <root>/documents/<id>.pdf
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.attachment import Attachment
from .base import AttachmentRepository, BlobStore, PersistenceError, StoredBlob

logger = logging.getLogger(__name__)

REPOSITORY_VERSION = 1


class LocalBlobStore(BlobStore):
    """Write blobs under a root directory; URLs are `<public_base_url>/<key>`."""

    def __init__(self, root: Path, public_base_url: Optional[str] = None):
        self.root = Path(root)
        self.public_base_url = (public_base_url or self.root.resolve().as_uri()).rstrip("/")

    @property
    def name(self) -> str:
        return "local"

    def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
        target = self._path_for(key)
        if target.exists():
            raise PersistenceError(f"key already exists: {key}", key=key)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload_")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"failed to write {key}: {e}", key=key) from e

        logger.debug(f"[local] Stored {key} ({len(data):,} bytes)")
        return StoredBlob(
            key=key,
            url=f"{self.public_base_url}/{key}",
            size_bytes=len(data),
            content_type=content_type,
        )

    def _path_for(self, key: str) -> Path:
        root = self.root.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            raise PersistenceError(f"key escapes storage root: {key}", key=key)
        return path


class JsonAttachmentRepository(AttachmentRepository):
    """
    Attachment records in one JSON file.

    Writes are serialized with a lock and replace the file atomically.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def save(self, attachment: Attachment) -> Attachment:
        with self._lock:
            records = self._load()
            if any(r.get("id") == attachment.id for r in records):
                raise PersistenceError(
                    f"attachment already exists: {attachment.id}", key=attachment.id
                )
            records.append(attachment.model_dump(mode="json"))
            self._write(records)
        logger.debug(f"Saved attachment {attachment.id} → {self.path}")
        return attachment

    def get(self, attachment_id: str) -> Optional[Attachment]:
        for record in self._load():
            if record.get("id") == attachment_id:
                return Attachment.model_validate(record)
        return None

    def all(self) -> List[Attachment]:
        return [Attachment.model_validate(r) for r in self._load()]

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"cannot read {self.path}: {e}") from e
        return list(data.get("attachments", []))

    def _write(self, records: List[Dict[str, Any]]) -> None:
        payload = {"version": REPOSITORY_VERSION, "attachments": records}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"cannot write {self.path}: {e}") from e
