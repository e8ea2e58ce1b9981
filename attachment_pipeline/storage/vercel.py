"""
Vercel Blob Store — durable public object storage over HTTP.

    PUT https://blob.vercel-storage.com/<pathname>

Random suffixes are disabled so the key we choose is the pathname
that gets stored.

## Environment Variables

- BLOB_READ_WRITE_TOKEN: store token (see config.loader)
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .base import BlobStore, PersistenceError, StoredBlob

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://blob.vercel-storage.com"
API_VERSION = "7"


class VercelBlobStore(BlobStore):
    """Upload blobs to Vercel Blob with public access."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        if not token:
            raise ValueError("token is required")
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        return "vercel"

    def put(self, key: str, data: bytes, content_type: str) -> StoredBlob:
        try:
            response = self._client.put(
                f"{self._api_url}/{key}",
                content=data,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "x-api-version": API_VERSION,
                    "x-content-type": content_type,
                    "x-add-random-suffix": "0",
                },
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise PersistenceError(
                f"blob upload failed for {key}: HTTP {e.response.status_code}", key=key
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"blob upload failed for {key}: {e}", key=key) from e

        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise PersistenceError(f"blob upload for {key} returned no url", key=key)

        logger.info(f"[vercel] Stored {key} ({len(data):,} bytes)")
        return StoredBlob(key=key, url=url, size_bytes=len(data), content_type=content_type)
