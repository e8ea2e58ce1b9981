"""
Upload Ingestor — classify, optimize, store, record.

Pipeline (strictly sequential, one upload per call):
1. Validate input and assign a fresh attachment id
2. Classify the declared MIME type (image / pdf / other)
3. Run the matching optimizer under the fallback policy
4. Store the resulting bytes (and thumbnail) under deterministic keys
5. Save and return the Attachment record

Nothing is shared between calls except the collaborators, so
concurrent ingestions need no locking here. Only PersistenceError
escapes; every optimizer failure degrades to the original bytes.

## Usage

    ingestor = UploadIngestor.from_settings(load_settings(), project_root)
    attachment = ingestor.ingest(data, "image/jpeg", "receipt.jpg",
                                 file_type=FileType.RECEIPT)
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from pathlib import Path
from typing import Callable, Optional, Tuple, Union
from uuid import uuid4

from .config.loader import PipelineSettings
from .media.classifier import FileClass, FileKind, classify
from .media.cloudconvert import CloudConvertClient
from .media.fallback import OptimizationOutcome, Ok, run_with_fallback
from .media.image_optimize import FORMAT_EXTENSIONS, FORMAT_MIME_TYPES, optimize_image
from .media.pdf_optimize import PdfOptimizer
from .media.types import ImageOptions, OptimizationResult, format_bytes
from .models.attachment import AssociationContext, Attachment, DocumentMetadata, FileType
from .storage.base import AttachmentRepository, BlobStore, PersistenceError
from .storage.local import JsonAttachmentRepository, LocalBlobStore
from .storage.vercel import VercelBlobStore
from .validation import validate_file_type, validate_upload

logger = logging.getLogger(__name__)

ATTACHMENTS_PREFIX = "attachments"
DOCUMENTS_PREFIX = "documents"
THUMBNAIL_SUFFIX = "-thumb.jpg"
FALLBACK_EXTENSION = ".bin"


class UploadIngestor:
    """Turns one upload into a stored artifact plus an Attachment record."""

    def __init__(
        self,
        blob_store: BlobStore,
        repository: AttachmentRepository,
        *,
        pdf_optimizer: Optional[PdfOptimizer] = None,
        image_options: Optional[ImageOptions] = None,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.blob_store = blob_store
        self.repository = repository
        self.pdf_optimizer = pdf_optimizer
        self.image_options = image_options or ImageOptions()
        self._new_id = id_factory

    @classmethod
    def from_settings(cls, settings: PipelineSettings, root: Path) -> "UploadIngestor":
        """Wire collaborators from configuration."""
        if settings.blob_store == "vercel":
            blob_store: BlobStore = VercelBlobStore(
                settings.blob_read_write_token or "",
                timeout=settings.http_timeout_seconds,
            )
        else:
            blob_store = LocalBlobStore(
                settings.resolve_path(settings.blob_local_dir, root),
                public_base_url=settings.blob_public_base_url,
            )

        repository = JsonAttachmentRepository(settings.resolve_path(settings.attachments_db, root))

        pdf_optimizer = None
        if settings.has_conversion():
            client = CloudConvertClient(
                settings.cloudconvert_api_key or "",
                api_url=settings.cloudconvert_api_url,
                timeout=settings.http_timeout_seconds,
            )
            pdf_optimizer = PdfOptimizer(
                client,
                timeout=settings.conversion_timeout_seconds,
                poll_initial=settings.conversion_poll_initial_seconds,
                poll_max=settings.conversion_poll_max_seconds,
                thumbnail_size=settings.thumbnail_size,
            )
        else:
            logger.info("Conversion service not configured — PDFs will be stored as-is")

        image_options = ImageOptions(
            max_width=settings.image_max_width,
            max_height=settings.image_max_height,
            thumbnail_width=settings.thumbnail_size,
            thumbnail_height=settings.thumbnail_size,
        )
        return cls(blob_store, repository, pdf_optimizer=pdf_optimizer, image_options=image_options)

    def ingest(
        self,
        data: bytes,
        declared_mime: str,
        file_name: str,
        association: Optional[AssociationContext] = None,
        file_type: Union[FileType, str] = FileType.DOCUMENT,
        document: Optional[DocumentMetadata] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> Attachment:
        """
        Ingest one upload.

        Raises:
            ValidationError: missing/empty file or unknown file type.
            PersistenceError: the blob store or repository failed.
        """
        validate_upload(data, file_name)
        if not isinstance(file_type, FileType):
            file_type = validate_file_type(file_type)
        association = association or AssociationContext()

        attachment_id = self._new_id()
        file_class = self._route(classify(declared_mime))

        outcome = self._optimize(file_class, data, declared_mime, file_name, attachment_id, cancel_event)
        result = outcome.result

        extension, content_type = _storage_format(file_class, outcome, file_name, declared_mime)
        prefix = DOCUMENTS_PREFIX if document is not None else ATTACHMENTS_PREFIX

        stored = self.blob_store.put(
            f"{prefix}/{attachment_id}{extension}", result.optimized_bytes, content_type
        )
        thumbnail_url = self._store_thumbnail(prefix, attachment_id, result)

        attachment = Attachment(
            id=attachment_id,
            purchase_id=association.purchase_id,
            line_item_id=association.line_item_id,
            room_id=association.room_id,
            file_url=stored.url,
            thumbnail_url=thumbnail_url,
            file_name=file_name,
            file_type=file_type,
            file_size_bytes=result.optimized_size,
            house_document_type=document.category if document else None,
            document_title=(document.title or file_name) if document else None,
            document_description=document.description if document else None,
            expires_at=document.expires_at if document else None,
        )

        try:
            saved = self.repository.save(attachment)
        except PersistenceError:
            logger.error(
                f"Failed to save attachment record {attachment_id} "
                f"(blob already stored at {stored.key})",
                exc_info=True,
                extra={"attachment_id": attachment_id},
            )
            raise

        outcome_name = "degraded" if outcome.degraded else "optimized"
        logger.info(
            f"Ingested {attachment_id} ({file_name}, {file_class.kind.value}): "
            f"{format_bytes(len(data))} → {format_bytes(result.optimized_size)} "
            f"({result.compression_ratio}% saved, {outcome_name})",
            extra={
                "attachment_id": attachment_id,
                "original_size": len(data),
                "optimized_size": result.optimized_size,
                "compression_ratio": result.compression_ratio,
                "outcome": outcome_name,
            },
        )
        return saved

    # ── Internal helpers ─────────────────────────────────────

    def _route(self, file_class: FileClass) -> FileClass:
        """Without a conversion service, PDFs are plain passthrough files."""
        if file_class.is_pdf and self.pdf_optimizer is None:
            return FileClass(FileKind.OTHER)
        return file_class

    def _optimize(
        self,
        file_class: FileClass,
        data: bytes,
        declared_mime: str,
        file_name: str,
        attachment_id: str,
        cancel_event: Optional[threading.Event],
    ) -> OptimizationOutcome:
        if file_class.kind is FileKind.IMAGE:
            return run_with_fallback(
                lambda: optimize_image(data, declared_mime, self.image_options),
                data,
                label="Image",
                attachment_id=attachment_id,
            )
        if file_class.kind is FileKind.PDF and self.pdf_optimizer is not None:
            pdf_optimizer = self.pdf_optimizer
            return run_with_fallback(
                lambda: pdf_optimizer.optimize(data, file_name, cancel_event=cancel_event),
                data,
                label="PDF",
                attachment_id=attachment_id,
            )
        return Ok(OptimizationResult.passthrough(data))

    def _store_thumbnail(
        self, prefix: str, attachment_id: str, result: OptimizationResult
    ) -> Optional[str]:
        """Thumbnails are secondary: a failed upload leaves the record without one."""
        if result.thumbnail_bytes is None:
            return None
        try:
            stored = self.blob_store.put(
                f"{prefix}/{attachment_id}{THUMBNAIL_SUFFIX}",
                result.thumbnail_bytes,
                "image/jpeg",
            )
        except PersistenceError as e:
            logger.warning(
                f"Thumbnail not stored for {attachment_id}: {e}",
                extra={"attachment_id": attachment_id},
            )
            return None
        return stored.url


def _storage_format(
    file_class: FileClass,
    outcome: OptimizationOutcome,
    file_name: str,
    declared_mime: str,
) -> Tuple[str, str]:
    """(extension, content type) of the bytes actually being stored."""
    fmt = outcome.result.output_format
    if file_class.kind is FileKind.IMAGE and not outcome.degraded and fmt in FORMAT_EXTENSIONS:
        return FORMAT_EXTENSIONS[fmt], FORMAT_MIME_TYPES[fmt]
    if file_class.kind is FileKind.PDF:
        return ".pdf", "application/pdf"
    return _original_extension(file_name, declared_mime), declared_mime or "application/octet-stream"


def _original_extension(file_name: str, declared_mime: str) -> str:
    suffix = Path(file_name).suffix.lower()
    if suffix:
        return suffix
    mime = (declared_mime or "").split(";", 1)[0].strip()
    return mimetypes.guess_extension(mime) or FALLBACK_EXTENSION
