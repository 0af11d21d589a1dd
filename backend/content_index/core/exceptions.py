"""
Error taxonomy for the indexing pipeline.

Only two conditions ever reach a caller as exceptions:

  SourceUnavailableError  — the storage layer could not hand over the bytes.
                            Aborts that one file; batch callers record it.
  ProviderExhaustedError  — every embedding provider failed, including the
                            local fallback. Indicates a defect.

Unsupported formats, degraded extraction and numeric edge cases in scoring
are defined outcomes, not exceptions.
"""

from __future__ import annotations


class ContentIndexError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailableError(ContentIndexError):
    def __init__(self, file_id: str, reason: str = "") -> None:
        self.file_id = file_id
        self.reason = reason
        super().__init__(f"Source bytes unavailable for file {file_id}: {reason}")


class ProviderExhaustedError(ContentIndexError, RuntimeError):
    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(
            "All embedding providers failed. Errors:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
