"""
Unit Tests — OcrRenderer and TesseractEngine
═════════════════════════════════════════════
Engines are FakeOcrEngine instances from conftest.py; pytesseract is only
patched, never executed, so no tesseract binary is required.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from content_index.processing.ocr import (
    PAGE_MARKER,
    TESSERACT_PAGE_SEGMENTATION,
    OcrRenderer,
    TesseractEngine,
)


# ─────────────────────────────────────────────────────────────────────────────
# Engine capability checks
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestEngineSelection:

    def test_unavailable_engines_are_dropped(self, settings, make_ocr_engine):
        renderer = OcrRenderer(settings, engines=[make_ocr_engine(available=False)])
        assert not renderer.available

    def test_availability_check_that_raises_counts_as_unavailable(self, settings, make_ocr_engine):
        engine = make_ocr_engine()
        with patch.object(engine, "available", side_effect=OSError("no binary")):
            renderer = OcrRenderer(settings, engines=[engine])
        assert not renderer.available

    async def test_no_engine_yields_empty_text(self, settings, scanned_pdf_bytes, sample_png_bytes):
        renderer = OcrRenderer(settings, engines=[])

        assert await renderer.recognize_document(scanned_pdf_bytes) == ""
        assert await renderer.recognize_image(sample_png_bytes) == ""

    async def test_first_non_empty_engine_wins(self, settings, make_ocr_engine, sample_png_bytes):
        failing = make_ocr_engine(error=RuntimeError("crash"), name="broken")
        blank   = make_ocr_engine(text="   ", name="blank")
        good    = make_ocr_engine(text="hello world", name="good")
        renderer = OcrRenderer(settings, engines=[failing, blank, good])

        assert await renderer.recognize_image(sample_png_bytes) == "hello world"
        assert failing.runs == blank.runs == good.runs == 1


# ─────────────────────────────────────────────────────────────────────────────
# Images
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestImageRecognition:

    async def test_native_resolution(self, settings, make_ocr_engine, sample_png_bytes):
        engine = make_ocr_engine(text="invoice")
        renderer = OcrRenderer(settings, engines=[engine])

        assert await renderer.recognize_image(sample_png_bytes) == "invoice"
        assert engine.sizes == [(64, 32)]

    async def test_undecodable_image_returns_empty(self, settings, make_ocr_engine):
        renderer = OcrRenderer(settings, engines=[make_ocr_engine()])
        assert await renderer.recognize_image(b"not an image") == ""

    async def test_empty_bytes(self, settings, make_ocr_engine):
        engine = make_ocr_engine()
        renderer = OcrRenderer(settings, engines=[engine])
        assert await renderer.recognize_image(b"") == ""
        assert engine.runs == 0


# ─────────────────────────────────────────────────────────────────────────────
# Multi-page documents
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestDocumentRecognition:

    async def test_pages_joined_in_order_with_markers(self, settings, make_ocr_engine, scanned_pdf_bytes):
        renderer = OcrRenderer(settings, engines=[make_ocr_engine(text="page body")])
        text = await renderer.recognize_document(scanned_pdf_bytes)

        expected = "\n\n".join(
            f"{PAGE_MARKER.format(page_number=n)}\n\npage body" for n in (1, 2, 3)
        )
        assert text == expected

    async def test_pages_rendered_at_zoom(self, make_settings, make_ocr_engine, pdf_factory):
        engine = make_ocr_engine()
        renderer = OcrRenderer(make_settings(ocr_zoom=2.0), engines=[engine])
        await renderer.recognize_document(pdf_factory([""]))

        # Default page is A4 at 72 dpi (595 × 842 pt)
        width, height = engine.sizes[0]
        assert width == pytest.approx(595 * 2, abs=2)
        assert height == pytest.approx(842 * 2, abs=2)

    async def test_page_cap(self, make_settings, make_ocr_engine, pdf_factory):
        engine = make_ocr_engine(text="scan")
        renderer = OcrRenderer(make_settings(ocr_max_pages=2, ocr_zoom=1.0), engines=[engine])
        text = await renderer.recognize_document(pdf_factory(["", "", "", ""]))

        assert engine.runs == 2
        assert "--- Page 2 ---" in text
        assert "--- Page 3 ---" not in text

    async def test_failed_pages_are_skipped(self, make_settings, make_ocr_engine, scanned_pdf_bytes):
        engine = make_ocr_engine(error=RuntimeError("engine crashed"))
        renderer = OcrRenderer(make_settings(ocr_zoom=1.0), engines=[engine])

        assert await renderer.recognize_document(scanned_pdf_bytes) == ""
        assert engine.runs == 3

    async def test_unreadable_document(self, settings, make_ocr_engine):
        renderer = OcrRenderer(settings, engines=[make_ocr_engine()])
        assert await renderer.recognize_document(b"garbage") == ""


# ─────────────────────────────────────────────────────────────────────────────
# Tesseract adapter
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestTesseractEngine:

    def test_missing_binary_is_unavailable(self):
        with patch("pytesseract.get_tesseract_version", side_effect=OSError("tesseract not found")):
            assert TesseractEngine("eng").available() is False

    def test_available_when_version_reported(self):
        with patch("pytesseract.get_tesseract_version", return_value="5.3.0"):
            assert TesseractEngine("eng").available() is True

    def test_run_uses_language_and_page_segmentation(self):
        with patch("pytesseract.image_to_string", return_value="text") as mock_ocr:
            assert TesseractEngine("deu").run(object()) == "text"

        _, kwargs = mock_ocr.call_args
        assert kwargs["lang"] == "deu"
        assert kwargs["config"] == TESSERACT_PAGE_SEGMENTATION == "--psm 1"
