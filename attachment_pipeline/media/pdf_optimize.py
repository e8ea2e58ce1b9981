"""
PDF Optimizer — compress PDFs and render a first-page thumbnail remotely.

Pipeline (one conversion job, five cooperating tasks):
1. import-pdf        upload the raw bytes (base64)
2. optimize-pdf      compression profile tuned for on-screen viewing
3. thumbnail-pdf     page 1 only, JPEG, fit inside 400x400
4. export-pdf        expose the compressed PDF as a URL
5. export-thumbnail  expose the thumbnail as a URL

PDFs under 100 KB are not worth the round trip and come back untouched.

The compressed PDF is the primary artifact: a failed job, an
unresolvable URL or a failed download raises ConversionJobError. The
thumbnail is secondary: any failure fetching it is logged and the
result carries no thumbnail.
"""

from __future__ import annotations

import base64
import logging
import threading
from typing import Any, Dict, Optional, Tuple

import httpx

from .cloudconvert import (
    POLL_INITIAL_SECONDS,
    POLL_MAX_SECONDS,
    WAIT_TIMEOUT_SECONDS,
    CloudConvertClient,
    ConversionJob,
    JobState,
)
from .errors import ConversionCancelled, ConversionJobError, ConversionTimeout, ThumbnailError
from .types import THUMBNAIL_SIZE, OptimizationResult

logger = logging.getLogger(__name__)

SKIP_BELOW_BYTES = 100 * 1024  # 100 KB
OPTIMIZE_PROFILE = "web"

TASK_IMPORT = "import-pdf"
TASK_OPTIMIZE = "optimize-pdf"
TASK_THUMBNAIL = "thumbnail-pdf"
TASK_EXPORT_PDF = "export-pdf"
TASK_EXPORT_THUMBNAIL = "export-thumbnail"


def build_job_tasks(
    data: bytes,
    filename: str,
    thumbnail_size: int = THUMBNAIL_SIZE,
) -> Dict[str, Dict[str, Any]]:
    """The task graph submitted for one PDF."""
    return {
        TASK_IMPORT: {
            "operation": "import/base64",
            "file": base64.b64encode(data).decode("ascii"),
            "filename": filename,
        },
        TASK_OPTIMIZE: {
            "operation": "optimize",
            "input": [TASK_IMPORT],
            "input_format": "pdf",
            "profile": OPTIMIZE_PROFILE,
        },
        TASK_THUMBNAIL: {
            "operation": "thumbnail",
            "input": [TASK_IMPORT],
            "output_format": "jpg",
            "width": thumbnail_size,
            "height": thumbnail_size,
            "fit": "max",
            "count": 1,  # first page only
        },
        TASK_EXPORT_PDF: {
            "operation": "export/url",
            "input": [TASK_OPTIMIZE],
            "inline": False,
            "archive_multiple_files": False,
        },
        TASK_EXPORT_THUMBNAIL: {
            "operation": "export/url",
            "input": [TASK_THUMBNAIL],
            "inline": False,
            "archive_multiple_files": False,
        },
    }


def resolve_export_urls(job: ConversionJob) -> Tuple[Optional[str], Optional[str]]:
    """
    Find the (pdf_url, thumbnail_url) pair in a finished job.

    First pass matches exported file names by extension. Whatever is
    still missing is looked up on the named export task's first file.
    The two passes are independent; nothing requires them to agree.
    """
    pdf_url: Optional[str] = None
    thumbnail_url: Optional[str] = None

    for f in job.export_urls():
        name = (f.get("filename") or "").lower()
        if name.endswith(".pdf"):
            pdf_url = f.get("url") or None
        elif name.endswith(".jpg"):
            thumbnail_url = f.get("url") or None

    if not pdf_url:
        pdf_url = _first_file_url(job, TASK_EXPORT_PDF)
    if not thumbnail_url:
        thumbnail_url = _first_file_url(job, TASK_EXPORT_THUMBNAIL)

    return pdf_url, thumbnail_url


def _first_file_url(job: ConversionJob, task_name: str) -> Optional[str]:
    task = job.task(task_name)
    if not task or task.get("status") != "finished":
        return None
    files = (task.get("result") or {}).get("files") or []
    if not files:
        return None
    return files[0].get("url") or None


class PdfOptimizer:
    """Runs the conversion job for one PDF at a time; holds no per-upload state."""

    def __init__(
        self,
        client: CloudConvertClient,
        *,
        timeout: float = WAIT_TIMEOUT_SECONDS,
        poll_initial: float = POLL_INITIAL_SECONDS,
        poll_max: float = POLL_MAX_SECONDS,
        thumbnail_size: int = THUMBNAIL_SIZE,
        skip_below: int = SKIP_BELOW_BYTES,
    ):
        self.client = client
        self.timeout = timeout
        self.poll_initial = poll_initial
        self.poll_max = poll_max
        self.thumbnail_size = thumbnail_size
        self.skip_below = skip_below

    def optimize(
        self,
        data: bytes,
        filename: str,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> OptimizationResult:
        """
        Compress a PDF via the conversion service.

        Returns:
            OptimizationResult; for small inputs the original bytes
            with no thumbnail.

        Raises:
            ConversionJobError: job errored, timed out, was cancelled,
                or the compressed PDF could not be resolved/downloaded.
        """
        original_size = len(data)

        if original_size < self.skip_below:
            logger.info(f"PDF too small to optimize ({original_size:,} bytes), skipping")
            return OptimizationResult.passthrough(data, output_format="pdf")

        # One budget covers polling and both downloads
        deadline = self.client.deadline(self.timeout)
        job = self.client.create_job(build_job_tasks(data, filename, self.thumbnail_size))
        job = self.client.wait(
            job,
            deadline=deadline,
            initial_delay=self.poll_initial,
            max_delay=self.poll_max,
            cancel_event=cancel_event,
        )

        if job.state is JobState.ERRORED:
            raise ConversionJobError(
                f"conversion job failed: {job.failure_message()}", job_id=job.id
            )

        pdf_url, thumbnail_url = resolve_export_urls(job)
        logger.debug(f"Conversion job {job.id}: pdf={pdf_url} thumbnail={thumbnail_url}")

        if not pdf_url:
            raise ConversionJobError("no optimized PDF URL in job result", job_id=job.id)

        _check_cancelled(cancel_event, job.id)
        try:
            optimized = self.client.download(pdf_url, deadline=deadline)
        except httpx.HTTPError as e:
            raise ConversionJobError(
                f"failed to download optimized PDF: {e}", job_id=job.id
            ) from e

        thumbnail: Optional[bytes] = None
        if thumbnail_url:
            try:
                thumbnail = self._fetch_thumbnail(thumbnail_url, deadline)
                logger.info(f"PDF thumbnail generated: {len(thumbnail):,} bytes")
            except ThumbnailError as e:
                logger.warning(f"PDF thumbnail unavailable: {e}", extra={"job_id": job.id})

        # Caller went away while downloading; store nothing.
        _check_cancelled(cancel_event, job.id)

        result = OptimizationResult(
            optimized_bytes=optimized,
            thumbnail_bytes=thumbnail,
            original_size=original_size,
            output_format="pdf",
        )
        logger.info(
            f"PDF optimized: {original_size:,} → {result.optimized_size:,} bytes "
            f"({result.compression_ratio}% saved)",
            extra={"job_id": job.id},
        )
        return result

    def _fetch_thumbnail(self, url: str, deadline: float) -> bytes:
        try:
            return self.client.download(url, deadline=deadline)
        except (httpx.HTTPError, ConversionTimeout) as e:
            raise ThumbnailError(f"download failed: {e}") from e


def _check_cancelled(cancel_event: Optional[threading.Event], job_id: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ConversionCancelled("cancelled before artifacts were stored", job_id=job_id)
