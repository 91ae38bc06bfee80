"""Deterministic pipeline failure classification for task records."""

from __future__ import annotations

from dataclasses import dataclass

from onedrop.tasks.errors import DownloadFailedError, PipelineError, SeparationFailedError
from onedrop.tasks.models import FailureClass

_SOURCE_UNAVAILABLE_PATTERNS: tuple[str, ...] = (
    "video unavailable",
    "private video",
    "has been removed",
    "not available in your country",
    "sign in to confirm your age",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "http error 429",
    "too many requests",
)
_NETWORK_PATTERNS: tuple[str, ...] = (
    "unable to download webpage",
    "connection reset",
    "temporary failure in name resolution",
    "timed out",
)
_RESOURCE_PATTERNS: tuple[str, ...] = (
    "out of memory",
    "memoryerror",
    "no space left on device",
    "resourceexhaustederror",
)


@dataclass(slots=True)
class PipelineFailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_pattern: str | None
    error_summary: str


def classify_pipeline_failure(error: BaseException) -> PipelineFailureClassification:
    """Map an exception raised inside the pipeline to a failure class."""

    if not isinstance(error, PipelineError):
        return PipelineFailureClassification(
            failure_class=FailureClass.UNEXPECTED,
            reason_code="unexpected_error",
            matched_pattern=None,
            error_summary=f"{type(error).__name__}: {error}",
        )

    failure_class = error.failure_class
    reason_code = failure_class.value
    pattern: str | None = None
    summary = str(error)
    stderr_tail: list[str] = []
    if isinstance(error, DownloadFailedError | SeparationFailedError):
        stderr_tail = error.stderr_tail

    if isinstance(error, DownloadFailedError):
        haystack = _normalize_text(stderr_tail)
        for patterns, suffix in (
            (_SOURCE_UNAVAILABLE_PATTERNS, "source_unavailable"),
            (_RATE_LIMIT_PATTERNS, "rate_limited"),
            (_NETWORK_PATTERNS, "network"),
        ):
            pattern = _first_match(haystack, patterns)
            if pattern is not None:
                reason_code = f"download_{suffix}"
                break
    elif isinstance(error, SeparationFailedError):
        pattern = _first_match(_normalize_text(stderr_tail), _RESOURCE_PATTERNS)
        if pattern is not None:
            reason_code = "separation_resources_exhausted"

    if stderr_tail:
        summary = f"{summary} Last stderr: {stderr_tail[-1]}"
    return PipelineFailureClassification(
        failure_class=failure_class,
        reason_code=reason_code,
        matched_pattern=pattern,
        error_summary=summary,
    )


def _normalize_text(lines: list[str]) -> str:
    return "\n".join(lines).lower()


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
