"""
Format-Aware Text Extractor
═══════════════════════════

Routes (bytes, MIME type) to an extraction strategy cascade:

  PDF        1. PyMuPDF full-document text layer        (structural-primary)
             2. pypdf independent page-by-page walk     (structural-secondary)
             3. OCR over rendered pages                 (ocr)
                — step 2 runs when step 1 is below min_content_chars,
                — step 3 runs when BOTH are below it, regardless of page count
                  (near-empty text layers are the signature of scanned PDFs)

  Word       1. python-docx raw paragraph text          (structural-primary)
             2. mammoth HTML conversion → strip tags    (structural-secondary)

  Text-like  UTF-8 decode (latin-1 fallback)            (raw-decode)
  Image      OCR at native resolution                   (ocr)
  Other      ""                                         (unsupported)

Contract: extract() never raises and always returns a string. Each method's
exception is logged and treated as empty output from that method so the
cascade can continue. Only the aggregate outcome reaches the caller.

Extraction is pure: nothing is persisted here. The indexing service decides
whether and how to cache the result.
"""

from __future__ import annotations

import asyncio
import html
import io
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from content_index.core.config import Settings
from content_index.processing.ocr import OcrRenderer
from content_index.schemas.content import ExtractionMethod

logger = logging.getLogger(__name__)

_TAG_RE        = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

_TEXT_LIKE_MARKERS = ("json", "xml", "javascript", "css", "html")
_WORD_MARKERS      = ("word", "document", "wordprocessingml")
_FAMILY_WILDCARDS  = frozenset({"image", "text"})


# ---------------------------------------------------------------------------
# MIME routing
# ---------------------------------------------------------------------------

class MimeCategory(str, Enum):
    PDF         = "pdf"
    WORD        = "word"
    TEXT        = "text"
    IMAGE       = "image"
    UNSUPPORTED = "unsupported"


def classify_mime(mime_type: str) -> MimeCategory:
    """
    Map a declared MIME type to an extraction category.

    Order matters: Office Open XML types contain both "document" and "xml",
    and must be routed to the Word strategy before the text-like check.
    """
    mime = (mime_type or "").lower().strip()
    if not mime:
        return MimeCategory.UNSUPPORTED
    if "pdf" in mime:
        return MimeCategory.PDF
    if any(marker in mime for marker in _WORD_MARKERS):
        return MimeCategory.WORD
    if mime.startswith("text/") or any(marker in mime for marker in _TEXT_LIKE_MARKERS):
        return MimeCategory.TEXT
    if mime.startswith("image/"):
        return MimeCategory.IMAGE
    return MimeCategory.UNSUPPORTED


def is_mime_supported(mime_type: str, supported: list[str]) -> bool:
    """
    Default storage-layer classification: match against the configured list,
    or the same image/text family as any entry ("image/webp" is accepted
    because "image/png" is listed). "application/*" is never matched by
    family alone.
    """
    mime = (mime_type or "").lower().strip()
    if not mime:
        return False
    for entry in supported:
        entry = entry.lower().strip()
        family = entry.split("/")[0]
        if entry in mime:
            return True
        if family in _FAMILY_WILDCARDS and mime.startswith(family + "/"):
            return True
    return False


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class ExtractionOutcome:
    """
    Aggregate result of one extraction cascade.

    text        : best text found ("" when nothing was recoverable)
    method      : strategy that produced `text` (or the last one attempted)
    attempts    : every method tried, in order
    degraded    : True when escalation ran but output stayed below threshold
    elapsed_ms  : total wall time of the cascade
    """
    text:       str
    method:     ExtractionMethod
    attempts:   list[ExtractionMethod] = field(default_factory=list)
    degraded:   bool  = False
    elapsed_ms: float = 0.0

    @property
    def char_count(self) -> int:
        return len(self.text)

    @property
    def used_ocr(self) -> bool:
        return ExtractionMethod.OCR in self.attempts


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class ContentExtractor:
    """
    Stateless, format-aware extractor.

    Constructor args:
        settings : injected configuration (min_content_chars, ...)
        ocr      : OcrRenderer used for scans and images; built from
                   settings when not supplied

    Usage:
        extractor = ContentExtractor(settings)
        outcome = await extractor.extract(data, "application/pdf")
        outcome.text, outcome.method
    """

    def __init__(self, settings: Settings, ocr: OcrRenderer | None = None) -> None:
        self._min_chars = settings.min_content_chars
        self._ocr       = ocr or OcrRenderer(settings)

    async def extract(self, data: bytes, mime_type: str) -> ExtractionOutcome:
        t0 = time.monotonic()
        category = classify_mime(mime_type)

        try:
            if category is MimeCategory.PDF:
                outcome = await self._extract_pdf(data)
            elif category is MimeCategory.WORD:
                outcome = await self._extract_word(data)
            elif category is MimeCategory.TEXT:
                outcome = ExtractionOutcome(
                    text=self._decode_text(data),
                    method=ExtractionMethod.RAW_DECODE,
                    attempts=[ExtractionMethod.RAW_DECODE],
                )
            elif category is MimeCategory.IMAGE:
                text = await self._ocr.recognize_image(data)
                outcome = ExtractionOutcome(
                    text=text.strip(),
                    method=ExtractionMethod.OCR,
                    attempts=[ExtractionMethod.OCR],
                )
            else:
                outcome = ExtractionOutcome(text="", method=ExtractionMethod.UNSUPPORTED)
        except Exception as exc:
            # Every strategy absorbs its own errors; this only guards the routing code.
            logger.error("Extraction | unexpected failure mime=%s: %s", mime_type, exc, exc_info=True)
            outcome = ExtractionOutcome(text="", method=ExtractionMethod.UNSUPPORTED)

        outcome.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "Extraction | mime=%s category=%s method=%s chars=%d degraded=%s elapsed_ms=%.0f",
            mime_type, category.value, outcome.method.value,
            outcome.char_count, outcome.degraded, outcome.elapsed_ms,
        )
        return outcome

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    async def _extract_pdf(self, data: bytes) -> ExtractionOutcome:
        attempts = [ExtractionMethod.STRUCTURAL_PRIMARY]
        best_text = await self._run_blocking("pymupdf", self._pymupdf_text, data)
        best_method = ExtractionMethod.STRUCTURAL_PRIMARY

        if len(best_text) >= self._min_chars:
            return ExtractionOutcome(text=best_text, method=best_method, attempts=attempts)

        logger.info(
            "PDF text layer below threshold (%d < %d chars) — trying page walk",
            len(best_text), self._min_chars,
        )
        attempts.append(ExtractionMethod.STRUCTURAL_SECONDARY)
        secondary = await self._run_blocking("pypdf", self._pypdf_text, data)
        if len(secondary) > len(best_text):
            best_text, best_method = secondary, ExtractionMethod.STRUCTURAL_SECONDARY

        if len(best_text) >= self._min_chars:
            return ExtractionOutcome(text=best_text, method=best_method, attempts=attempts)

        logger.info(
            "PDF appears scanned (%d < %d chars after both structural methods) — escalating to OCR",
            len(best_text), self._min_chars,
        )
        attempts.append(ExtractionMethod.OCR)
        ocr_text = (await self._ocr.recognize_document(data)).strip()

        if ocr_text and (len(ocr_text) >= len(best_text) or not best_text.strip()):
            best_text, best_method = ocr_text, ExtractionMethod.OCR
        elif not best_text:
            # Nothing anywhere: report the escalation as the final attempt.
            best_method = ExtractionMethod.OCR

        return ExtractionOutcome(
            text=best_text,
            method=best_method,
            attempts=attempts,
            degraded=len(best_text) < self._min_chars,
        )

    @staticmethod
    def _pymupdf_text(data: bytes) -> str:
        import fitz  # PyMuPDF

        with fitz.open(stream=data, filetype="pdf") as doc:
            return "\n".join(page.get_text("text") or "" for page in doc).strip()

    @staticmethod
    def _pypdf_text(data: bytes) -> str:
        from pypdf import PdfReader

        reader = PdfReader(io.BytesIO(data))
        pages: list[str] = []
        for page_number, page in enumerate(reader.pages, start=1):
            try:
                page_text = (page.extract_text() or "").strip()
            except Exception as exc:
                logger.debug("pypdf | page %d failed: %s", page_number, exc)
                continue
            if page_text:
                pages.append(page_text)
        return "\n".join(pages).strip()

    # ------------------------------------------------------------------
    # Word
    # ------------------------------------------------------------------

    async def _extract_word(self, data: bytes) -> ExtractionOutcome:
        text = await self._run_blocking("python-docx", self._docx_text, data)
        if text:
            return ExtractionOutcome(
                text=text,
                method=ExtractionMethod.STRUCTURAL_PRIMARY,
                attempts=[ExtractionMethod.STRUCTURAL_PRIMARY],
            )

        logger.info("Word raw text empty — falling back to HTML conversion")
        text = await self._run_blocking("mammoth", self._docx_html_text, data)
        return ExtractionOutcome(
            text=text,
            method=ExtractionMethod.STRUCTURAL_SECONDARY,
            attempts=[ExtractionMethod.STRUCTURAL_PRIMARY, ExtractionMethod.STRUCTURAL_SECONDARY],
        )

    @staticmethod
    def _docx_text(data: bytes) -> str:
        import docx

        document = docx.Document(io.BytesIO(data))
        return "\n".join(p.text for p in document.paragraphs if p.text.strip()).strip()

    @staticmethod
    def _docx_html_text(data: bytes) -> str:
        import mammoth

        result = mammoth.convert_to_html(io.BytesIO(data))
        return strip_markup(result.value or "")

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_text(data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return data.decode("latin-1", errors="replace")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _run_blocking(label: str, func: Callable[[bytes], str], data: bytes) -> str:
        """Run a blocking parser in the thread executor; any failure means ""."""
        if not data:
            return ""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, func, data) or ""
        except Exception as exc:
            logger.warning("%s extraction failed: %s", label, exc)
            return ""


def strip_markup(markup: str) -> str:
    """Drop tags, unescape entities, collapse whitespace."""
    text = _TAG_RE.sub(" ", markup)
    return _WHITESPACE_RE.sub(" ", html.unescape(text)).strip()
