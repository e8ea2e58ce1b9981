"""
Optimizer errors.

Everything here is recoverable: the fallback wrapper catches
DecodeError and ConversionJobError and stores the original upload.
ThumbnailError never leaves the optimizer that raised it.
"""

from __future__ import annotations

from typing import Optional


class OptimizationError(Exception):
    """Base class for a failed optimization step."""


class DecodeError(OptimizationError):
    """The bytes are not a valid image for the declared type."""

    def __init__(self, message: str, mime_type: Optional[str] = None):
        self.mime_type = mime_type
        super().__init__(message)


class ConversionJobError(OptimizationError):
    """The external conversion job failed or its primary artifact is unusable."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        self.job_id = job_id
        super().__init__(message)


class ConversionTimeout(ConversionJobError):
    """The job did not reach a terminal state within the wall-clock budget."""


class ConversionCancelled(ConversionJobError):
    """The caller cancelled while the job was still running."""


class ThumbnailError(OptimizationError):
    """A secondary artifact (thumbnail) could not be produced or fetched."""
