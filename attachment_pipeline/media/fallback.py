"""
Fallback Policy — optimization is best effort, never a precondition.

Every optimizer call goes through run_with_fallback(). It returns either

    Ok(result)                    the optimizer's output
    Degraded(original, reason)    the untouched upload, no thumbnail

so the ingestor has a single place that decides what gets stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .errors import OptimizationError
from .types import OptimizationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    """Optimization succeeded."""

    value: OptimizationResult

    @property
    def degraded(self) -> bool:
        return False

    @property
    def result(self) -> OptimizationResult:
        return self.value


@dataclass(frozen=True)
class Degraded:
    """Optimization failed; store the original bytes as they arrived."""

    original: bytes
    reason: str
    error: Optional[Exception] = None

    @property
    def degraded(self) -> bool:
        return True

    @property
    def result(self) -> OptimizationResult:
        return OptimizationResult.passthrough(self.original)


OptimizationOutcome = Union[Ok, Degraded]


def run_with_fallback(
    optimize: Callable[[], OptimizationResult],
    original: bytes,
    *,
    label: str,
    attachment_id: Optional[str] = None,
) -> OptimizationOutcome:
    """
    Run one optimizer, degrading to the original bytes on any error.

    Known optimizer failures (bad image, failed conversion job) are
    logged as warnings; anything unexpected is logged with traceback.
    Neither reaches the caller.
    """
    extra = {"attachment_id": attachment_id, "outcome": "degraded"}
    try:
        return Ok(optimize())
    except OptimizationError as e:
        logger.warning(
            f"{label} optimization failed: {e} — storing original "
            f"({len(original):,} bytes)",
            extra=extra,
        )
        return Degraded(original, str(e), e)
    except Exception as e:
        logger.error(
            f"{label} optimization failed unexpectedly: {e} — storing original "
            f"({len(original):,} bytes)",
            exc_info=True,
            extra=extra,
        )
        return Degraded(original, f"{type(e).__name__}: {e}", e)
