"""
Shared value types for the optimizers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

MAX_WIDTH = 1920           # px
MAX_HEIGHT = 1920          # px
IMAGE_QUALITY = 80         # JPEG/WEBP/AVIF quality
THUMBNAIL_SIZE = 400       # px, square side
THUMBNAIL_QUALITY = 70     # thumbnails are always JPEG


@dataclass(frozen=True)
class ImageOptions:
    """Knobs for ImageOptimizer. Defaults match the upload path."""

    max_width: int = MAX_WIDTH
    max_height: int = MAX_HEIGHT
    quality: int = IMAGE_QUALITY
    thumbnail_width: int = THUMBNAIL_SIZE
    thumbnail_height: int = THUMBNAIL_SIZE
    generate_thumbnail: bool = True


@dataclass
class OptimizationResult:
    """
    Output of one optimizer run.

    Created and consumed inside a single ingestion; never cached.
    `output_format` is a short format name ("jpeg", "png", "webp",
    "avif", "pdf") or None when the bytes are an untouched passthrough.
    """

    optimized_bytes: bytes
    thumbnail_bytes: Optional[bytes]
    original_size: int
    output_format: Optional[str] = None
    width: int = 0
    height: int = 0

    @property
    def optimized_size(self) -> int:
        return len(self.optimized_bytes)

    @property
    def thumbnail_size(self) -> Optional[int]:
        if self.thumbnail_bytes is None:
            return None
        return len(self.thumbnail_bytes)

    @property
    def compression_ratio(self) -> int:
        return get_compression_ratio(self.original_size, self.optimized_size)

    @classmethod
    def passthrough(cls, data: bytes, output_format: Optional[str] = None) -> "OptimizationResult":
        """The original bytes, untouched, with no thumbnail."""
        return cls(
            optimized_bytes=data,
            thumbnail_bytes=None,
            original_size=len(data),
            output_format=output_format,
        )


def get_compression_ratio(original_size: int, optimized_size: int) -> int:
    """Percentage saved, rounded half up. Zero when the original is empty."""
    if original_size == 0:
        return 0
    return math.floor((1 - optimized_size / original_size) * 100 + 0.5)


def format_bytes(size: int) -> str:
    """Human readable size: 0 Bytes, 512 Bytes, 1.5 KB, 2.25 MB."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
