"""
File Classifier — route a declared MIME type to an optimizer.

Pure function, computed once per ingestion. Unknown types fall through
to OTHER and are stored as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

SVG_MIME = "image/svg+xml"
PDF_MIME = "application/pdf"


class FileKind(str, Enum):
    """Closed set of routes through the pipeline."""
    IMAGE = "image"
    PDF = "pdf"
    OTHER = "other"


@dataclass(frozen=True)
class FileClass:
    """Result of classification. `subtype` is set for images only."""

    kind: FileKind
    subtype: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.kind is FileKind.IMAGE

    @property
    def is_pdf(self) -> bool:
        return self.kind is FileKind.PDF


def classify(mime_type: Optional[str]) -> FileClass:
    """
    Classify a declared MIME type.

    image/* (except SVG) → IMAGE(subtype), application/pdf → PDF,
    anything else → OTHER. Parameters such as "; charset=..." are ignored.
    """
    mime = (mime_type or "").split(";", 1)[0].strip().lower()

    if mime.startswith("image/") and mime != SVG_MIME:
        return FileClass(FileKind.IMAGE, subtype=mime[len("image/"):])
    if mime == PDF_MIME:
        return FileClass(FileKind.PDF)
    return FileClass(FileKind.OTHER)
