"""
Media Pipeline — classify, optimize and degrade uploaded files.

The optimizers take the original bytes in and hand optimized bytes out.
The ingestor decides where they are stored.
"""

from .classifier import FileClass, FileKind, classify
from .errors import (
    ConversionCancelled,
    ConversionJobError,
    ConversionTimeout,
    DecodeError,
    OptimizationError,
    ThumbnailError,
)
from .fallback import Degraded, Ok, OptimizationOutcome, run_with_fallback
from .types import ImageOptions, OptimizationResult, format_bytes, get_compression_ratio

__all__ = [
    "FileClass",
    "FileKind",
    "classify",
    "OptimizationError",
    "DecodeError",
    "ConversionJobError",
    "ConversionTimeout",
    "ConversionCancelled",
    "ThumbnailError",
    "Ok",
    "Degraded",
    "OptimizationOutcome",
    "run_with_fallback",
    "ImageOptions",
    "OptimizationResult",
    "get_compression_ratio",
    "format_bytes",
]
