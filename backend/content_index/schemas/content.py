"""
Content Index — Pydantic Schemas and Enumerations

Covers everything that crosses the package boundary:
  - extraction method / status enums (persisted in the content cache)
  - embedding provider enum
  - ExtractionSummary returned by extract_and_cache()
  - BatchExtractionReport returned by extract_all()
  - RankedResult / SearchResults returned by search()

Design decisions:
  - Scores are plain floats; semantic_score is None on keyword-only hits.
  - The two result lists are never blended here; the search orchestrator
    that consumes SearchResults owns interleaving and caps.
  - All timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ExtractionMethod(str, Enum):
    """Which strategy produced the cached text."""
    STRUCTURAL_PRIMARY   = "structural-primary"     # PyMuPDF text layer / python-docx
    STRUCTURAL_SECONDARY = "structural-secondary"   # pypdf page walk / HTML conversion
    OCR                  = "ocr"                    # rendered + recognized
    RAW_DECODE           = "raw-decode"             # text-like formats
    UNSUPPORTED          = "unsupported"            # no strategy for this MIME type


class ExtractionStatus(str, Enum):
    """
    Outcome recorded next to the cached text.
    completed → text found | empty → every method came back empty | skipped → unsupported
    """
    COMPLETED = "completed"
    EMPTY     = "empty"
    SKIPPED   = "skipped"


class EmbeddingProvider(str, Enum):
    HUGGINGFACE = "huggingface"
    OPENAI      = "openai"
    LOCAL       = "local"
    NONE        = "none"       # empty text, nothing embedded


class ResultSource(str, Enum):
    SEMANTIC = "semantic"
    CONTENT  = "content"       # keyword hit in extracted text
    FILENAME = "filename"      # keyword hit in display name only


# ---------------------------------------------------------------------------
# extract_and_cache / extract_all
# ---------------------------------------------------------------------------

class ExtractionSummary(BaseModel):
    file_id:       str
    method:        ExtractionMethod
    char_count:    int = Field(ge=0)
    status:        ExtractionStatus
    provider_used: EmbeddingProvider
    dimension:     int = Field(ge=0)
    extracted_at:  datetime
    cached:        bool = Field(
        default=False,
        description="True when the summary was served from the cache without recompute",
    )


class BatchFailure(BaseModel):
    file_id: str
    error:   str


class BatchExtractionReport(BaseModel):
    extracted: int = 0
    skipped:   int = 0
    empty:     int = 0
    cached:    int = 0
    failed:    list[BatchFailure] = Field(default_factory=list)
    summaries: list[ExtractionSummary] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------

class RankedResult(BaseModel):
    file_id:        str
    semantic_score: float | None = Field(default=None, ge=0.0, le=1.0)
    keyword_score:  float = Field(default=0.0, ge=0.0)
    source:         ResultSource


class SearchResults(BaseModel):
    semantic: list[RankedResult] = Field(default_factory=list)
    keyword:  list[RankedResult] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.semantic and not self.keyword
