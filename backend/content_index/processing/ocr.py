"""
OCR Renderer  —  Text Recognition for Scans and Images
═══════════════════════════════════════════════════════

Design: capability-checked Strategy
───────────────────────────────────
Every OCR backend implements OcrEngine:

    available() -> bool      checked ONCE when the renderer is built
    run(image)  -> str       recognize one PIL image

OcrRenderer keeps only the engines that reported themselves available. If
none did (e.g. the tesseract binary is missing from the container), every
call returns "" so the caller treats the document as having no recoverable
text. Missing OCR is a checked deployment condition, never a crash.

Multi-page documents
────────────────────
  1. Render each page with PyMuPDF at a fixed zoom (3× by default)
  2. OCR each page independently (bounded concurrency, per-page timeout)
  3. Join in page order with a "--- Page N ---" marker
  4. Never process more than ocr_max_pages pages

A render or recognition failure on one page is logged and that page is
skipped; the remaining pages still run.

Page segmentation is fixed to Tesseract mode 1 (automatic page segmentation
with orientation and script detection). The language comes from Settings.
"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from content_index.core.config import Settings

if TYPE_CHECKING:
    from PIL import Image

logger = logging.getLogger(__name__)

# Automatic page segmentation with OSD
TESSERACT_PAGE_SEGMENTATION = "--psm 1"

PAGE_MARKER = "--- Page {page_number} ---"


# ---------------------------------------------------------------------------
# Engine interface
# ---------------------------------------------------------------------------

class OcrEngine(ABC):
    """
    A single OCR backend.

    Implementations must be safe to call from worker threads: run() is
    always executed inside the default thread executor.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    def available(self) -> bool:
        """True if the backend can run in this deployment."""

    @abstractmethod
    def run(self, image: "Image.Image") -> str:
        """Recognize the text in one image. May raise; the renderer absorbs it."""


class TesseractEngine(OcrEngine):
    """
    Local Tesseract via pytesseract.

    Requires the tesseract binary and the configured language pack in the
    container. available() asks the binary for its version, which fails
    cleanly when it is not installed.
    """

    def __init__(self, language: str = "eng") -> None:
        self._language = language

    @property
    def name(self) -> str:
        return "tesseract"

    def available(self) -> bool:
        try:
            import pytesseract

            version = pytesseract.get_tesseract_version()
        except Exception as exc:
            logger.warning("Tesseract unavailable — OCR disabled: %s", exc)
            return False
        logger.info("Tesseract available | version=%s lang=%s", version, self._language)
        return True

    def run(self, image: "Image.Image") -> str:
        import pytesseract

        return pytesseract.image_to_string(
            image,
            lang=self._language,
            config=TESSERACT_PAGE_SEGMENTATION,
        ) or ""


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class OcrRenderer:
    """
    Rasterize-and-recognize front end over the available OcrEngines.

    Both public coroutines are total: they log failures and return "" rather
    than raising.

    Usage:
        renderer = OcrRenderer(settings)
        text = await renderer.recognize_document(pdf_bytes)
        text = await renderer.recognize_image(png_bytes)
    """

    def __init__(self, settings: Settings, engines: list[OcrEngine] | None = None) -> None:
        self._zoom        = settings.ocr_zoom
        self._max_pages   = settings.ocr_max_pages
        self._concurrency = max(1, settings.ocr_page_concurrency)
        self._timeout     = settings.ocr_timeout_seconds

        candidates = engines if engines is not None else [TesseractEngine(settings.ocr_language)]
        self._engines = [engine for engine in candidates if self._probe(engine)]

        if not self._engines:
            logger.warning("OcrRenderer | no OCR engine available — OCR output will be empty")

    @staticmethod
    def _probe(engine: OcrEngine) -> bool:
        try:
            return bool(engine.available())
        except Exception as exc:
            logger.warning("OCR engine %s availability check failed: %s", engine.name, exc)
            return False

    @property
    def available(self) -> bool:
        return bool(self._engines)

    # ------------------------------------------------------------------
    # Standalone images
    # ------------------------------------------------------------------

    async def recognize_image(self, image_bytes: bytes) -> str:
        """OCR a standalone image at native resolution (no rendering step)."""
        if not self._engines or not image_bytes:
            return ""

        loop = asyncio.get_event_loop()
        t0 = time.monotonic()
        try:
            text = await asyncio.wait_for(
                loop.run_in_executor(None, self._recognize_image_sync, image_bytes),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Image OCR timed out after %ds", self._timeout)
            return ""
        except Exception as exc:
            logger.error("Image OCR failed: %s", exc, exc_info=True)
            return ""

        logger.info(
            "Image OCR | chars=%d elapsed_ms=%.0f",
            len(text), (time.monotonic() - t0) * 1000,
        )
        return text

    def _recognize_image_sync(self, image_bytes: bytes) -> str:
        from PIL import Image

        with Image.open(io.BytesIO(image_bytes)) as image:
            image.load()
            return self._run_engines(image)

    # ------------------------------------------------------------------
    # Multi-page documents
    # ------------------------------------------------------------------

    async def recognize_document(self, pdf_bytes: bytes) -> str:
        """Render up to ocr_max_pages pages and OCR each independently."""
        if not self._engines or not pdf_bytes:
            return ""

        loop = asyncio.get_event_loop()
        t0 = time.monotonic()

        try:
            total_pages = await loop.run_in_executor(None, self._page_count_sync, pdf_bytes)
        except Exception as exc:
            logger.error("PDF OCR | cannot open document: %s", exc)
            return ""

        pages_to_process = min(total_pages, self._max_pages)
        logger.info(
            "PDF OCR | processing %d of %d pages zoom=%.1f",
            pages_to_process, total_pages, self._zoom,
        )

        semaphore = asyncio.Semaphore(self._concurrency)
        page_texts = await asyncio.gather(*[
            self._recognize_page(pdf_bytes, index, semaphore)
            for index in range(pages_to_process)
        ])

        # gather() preserves submission order, so page order is kept
        parts = [
            f"{PAGE_MARKER.format(page_number=index + 1)}\n\n{text}"
            for index, text in enumerate(page_texts)
            if text
        ]
        result = "\n\n".join(parts).strip()

        logger.info(
            "PDF OCR done | pages=%d with_text=%d chars=%d elapsed_ms=%.0f",
            pages_to_process, len(parts), len(result), (time.monotonic() - t0) * 1000,
        )
        return result

    async def _recognize_page(
        self,
        pdf_bytes: bytes,
        index:     int,
        semaphore: asyncio.Semaphore,
    ) -> str:
        loop = asyncio.get_event_loop()
        async with semaphore:
            try:
                text = await asyncio.wait_for(
                    loop.run_in_executor(None, self._recognize_page_sync, pdf_bytes, index),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("PDF OCR | page %d timed out after %ds", index + 1, self._timeout)
                return ""
            except Exception as exc:
                logger.warning("PDF OCR | page %d failed: %s", index + 1, exc)
                return ""

        if not text:
            logger.debug("PDF OCR | page %d: no text found", index + 1)
        return text

    @staticmethod
    def _page_count_sync(pdf_bytes: bytes) -> int:
        import fitz  # PyMuPDF

        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            return doc.page_count

    def _recognize_page_sync(self, pdf_bytes: bytes, index: int) -> str:
        """Render one page to PNG and OCR it. Runs in a worker thread."""
        import fitz  # PyMuPDF
        from PIL import Image

        # Each call opens its own document object, so pages can run concurrently.
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            page = doc.load_page(index)
            pix = page.get_pixmap(matrix=fitz.Matrix(self._zoom, self._zoom))
            png = pix.tobytes("png")

        with Image.open(io.BytesIO(png)) as image:
            image.load()
            return self._run_engines(image)

    def _run_engines(self, image: "Image.Image") -> str:
        """First engine with non-empty output wins."""
        for engine in self._engines:
            try:
                text = (engine.run(image) or "").strip()
            except Exception as exc:
                logger.warning("OCR engine %s failed: %s", engine.name, exc)
                continue
            if text:
                return text
        return ""
