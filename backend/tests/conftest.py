"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : settings, make_settings, make_provider, make_ocr_engine,
                    file_source, make_service, sql_cache, sample documents

Environment strategy:
  - Settings are built with _env_file=None so a developer's .env never leaks in.
  - No network: Hugging Face is disabled and no OpenAI key is set, so the
    default embedding chain is the local term-frequency provider only.
  - No tesseract binary needed: OCR tests inject FakeOcrEngine.
  - SQL cache tests run on a throwaway sqlite+aiosqlite file under tmp_path.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # full pipeline on the SQL cache
  pytest backend/tests/unit/test_search.py
"""

from __future__ import annotations

import asyncio
import io
import textwrap
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio

from content_index.core.config import Settings
from content_index.core.exceptions import SourceUnavailableError
from content_index.processing.embeddings import EmbeddingProviderBase
from content_index.processing.ocr import OcrEngine
from content_index.schemas.content import EmbeddingProvider
from content_index.services.indexing import FileSource


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────

def _test_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        cache_backend="memory",
        huggingface_enabled=False,
        huggingface_api_key="",
        openai_api_key="",
        embedding_timeout_seconds=2.0,
        ocr_timeout_seconds=10,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return _test_settings()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Factory: make_settings(max_text_length=50, ...) with offline defaults."""
    return _test_settings


# ─────────────────────────────────────────────────────────────────────────────
# Fake embedding provider
# ─────────────────────────────────────────────────────────────────────────────

class FakeEmbeddingProvider(EmbeddingProviderBase):
    """
    Scripted provider. `result` is either a vector to return or an exception
    instance to raise. Every input text is recorded in .calls.
    """

    def __init__(
        self,
        provider: EmbeddingProvider = EmbeddingProvider.HUGGINGFACE,
        result:   list[float] | Exception | None = None,
        delay:    float = 0.0,
    ) -> None:
        self._provider = provider
        self._result   = [0.1, 0.2, 0.3] if result is None else result
        self._delay    = delay
        self.calls: list[str] = []

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(self._result, Exception):
            raise self._result
        return list(self._result)


@pytest.fixture
def make_provider() -> Callable[..., FakeEmbeddingProvider]:
    return FakeEmbeddingProvider


# ─────────────────────────────────────────────────────────────────────────────
# Fake OCR engine
# ─────────────────────────────────────────────────────────────────────────────

class FakeOcrEngine(OcrEngine):
    """Returns fixed text (or raises) for every image; counts invocations."""

    def __init__(
        self,
        text:      str = "recognized text",
        available: bool = True,
        error:     Exception | None = None,
        name:      str = "fake",
    ) -> None:
        self._text      = text
        self._available = available
        self._error     = error
        self._name      = name
        self.runs       = 0
        self.sizes: list[tuple[int, int]] = []

    @property
    def name(self) -> str:
        return self._name

    def available(self) -> bool:
        return self._available

    def run(self, image) -> str:
        self.runs += 1
        self.sizes.append(image.size)
        if self._error is not None:
            raise self._error
        return self._text


@pytest.fixture
def make_ocr_engine() -> Callable[..., FakeOcrEngine]:
    return FakeOcrEngine


# ─────────────────────────────────────────────────────────────────────────────
# In-memory FileSource
# ─────────────────────────────────────────────────────────────────────────────

class InMemoryFileSource(FileSource):
    """Storage-layer stand-in: file_id → (bytes, mime_type, display_name)."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, str, str | None]] = {}
        self.reads: dict[str, int] = {}
        self.broken: dict[str, Exception] = {}

    def add(self, file_id: str, data: bytes, mime_type: str, name: str | None = None) -> None:
        self.files[file_id] = (data, mime_type, name)

    async def get_file_bytes(self, file_id: str) -> tuple[bytes, str]:
        self.reads[file_id] = self.reads.get(file_id, 0) + 1
        if file_id in self.broken:
            raise self.broken[file_id]
        if file_id not in self.files:
            raise SourceUnavailableError(file_id, "not found")
        data, mime_type, _ = self.files[file_id]
        return data, mime_type

    async def get_display_name(self, file_id: str) -> str | None:
        entry = self.files.get(file_id)
        return entry[2] if entry else None


@pytest.fixture
def file_source() -> InMemoryFileSource:
    return InMemoryFileSource()


# ─────────────────────────────────────────────────────────────────────────────
# Service factory
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_service(settings, file_source, make_ocr_engine):
    """
    make_service(providers=None, ocr_text="...", cache=None, settings_override=None)

    Builds a ContentIndexService on the in-memory cache with a fake OCR
    engine. Without providers the chain is built from settings (local only).
    """
    from content_index.cache.memory import InMemoryContentCache
    from content_index.processing.embeddings import EmbeddingProviderChain
    from content_index.processing.extractor import ContentExtractor
    from content_index.processing.ocr import OcrRenderer
    from content_index.services.indexing import ContentIndexService

    def _make(
        providers=None,
        ocr_text: str = "recognized text",
        cache=None,
        settings_override: Settings | None = None,
    ) -> ContentIndexService:
        cfg = settings_override or settings
        ocr = OcrRenderer(cfg, engines=[make_ocr_engine(text=ocr_text)])
        return ContentIndexService(
            cfg,
            file_source,
            cache=cache or InMemoryContentCache(),
            extractor=ContentExtractor(cfg, ocr=ocr),
            embedder=EmbeddingProviderChain(cfg, providers=providers),
        )

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# SQL cache
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def sql_cache(tmp_path) -> AsyncGenerator:
    from content_index.cache.sql import SqlContentCache

    cfg = _test_settings(
        cache_backend="sql",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'content_cache.db'}",
    )
    cache = SqlContentCache.from_settings(cfg)
    await cache.initialize()
    yield cache
    await cache.close()


# ─────────────────────────────────────────────────────────────────────────────
# Sample documents
# ─────────────────────────────────────────────────────────────────────────────

LONG_TEXT = (
    "Quarterly Budget Report 2024. Revenue grew across every region while "
    "operating costs stayed flat. The finance team recommends increasing the "
    "research allocation for the next fiscal year."
)


def make_pdf(pages: list[str]) -> bytes:
    """One page per entry; empty strings give pages with no text layer."""
    import fitz  # PyMuPDF

    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            # Wrap so long strings stay on the page
            page.insert_text((72, 72), "\n".join(textwrap.wrap(text, 70)), fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    return make_pdf([LONG_TEXT])


@pytest.fixture
def scanned_pdf_bytes() -> bytes:
    """Three pages, no text layer: the signature of a scanned document."""
    return make_pdf(["", "", ""])


@pytest.fixture
def sample_png_bytes() -> bytes:
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", (64, 32), "white").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_docx_bytes() -> bytes:
    import docx

    document = docx.Document()
    document.add_paragraph("Meeting notes for the budget review.")
    document.add_paragraph("Action items: approve the research allocation.")
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


@pytest.fixture
def pdf_factory() -> Callable[[list[str]], bytes]:
    return make_pdf
