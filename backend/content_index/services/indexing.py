"""
Content Indexing Service

The single entry point used by the storage layer and the search front end.

Extraction pipeline (extract_and_cache):
  1. Serve the cached record unless force_recompute is set
  2. Pull bytes + MIME type from the FileSource
     (any read failure → SourceUnavailableError, this file only)
  3. Unsupported MIME → record status=skipped, method=unsupported
  4. Extract text (structural → OCR escalation)
  5. Truncate once to max_text_length and embed via the provider chain
  6. Overwrite the cache record; return an ExtractionSummary

Search (search):
  1. Load cached (text, vector) for the caller-authorized file ids
  2. Attach display names for the filename fallback
  3. HybridRanker → two independent lists

Lifecycle hooks:
  forget(file_id) must be called by the storage layer when it deletes a
  source file; nothing else ever deletes a cache record.

Error semantics:
  SourceUnavailableError aborts one file. ProviderExhaustedError means the
  local embedding fallback failed and propagates from single-file calls;
  extract_all records it against the file like any other failure.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from content_index.cache.base import CachedContent, ContentCacheBase
from content_index.cache.factory import get_content_cache
from content_index.core.config import DEFAULT_SUPPORTED_MIME_TYPES, Settings
from content_index.core.exceptions import ProviderExhaustedError, SourceUnavailableError
from content_index.observability.tracing import traced
from content_index.processing.embeddings import EmbeddingProviderChain, truncate_for_embedding
from content_index.processing.extractor import ContentExtractor, is_mime_supported
from content_index.schemas.content import (
    BatchExtractionReport,
    BatchFailure,
    EmbeddingProvider,
    ExtractionMethod,
    ExtractionStatus,
    ExtractionSummary,
    SearchResults,
)
from content_index.search.ranker import Candidate, HybridRanker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage-layer interface
# ---------------------------------------------------------------------------

class FileSource(ABC):
    """
    Read-only view of the external file store.

    Implementations must supply get_file_bytes(). is_mime_supported() and
    get_display_name() have usable defaults; override them when the store
    has its own notion of supported formats or human-readable names.
    """

    supported_mime_types: list[str] | tuple[str, ...] = DEFAULT_SUPPORTED_MIME_TYPES

    @abstractmethod
    async def get_file_bytes(self, file_id: str) -> tuple[bytes, str]:
        """
        Return (bytes, mime_type).

        Raises:
            SourceUnavailableError (or any exception) when the bytes cannot be read.
        """

    def is_mime_supported(self, mime_type: str) -> bool:
        return is_mime_supported(mime_type, list(self.supported_mime_types))

    async def get_display_name(self, file_id: str) -> str | None:
        return None


def _status_for(method: ExtractionMethod, text: str) -> ExtractionStatus:
    if method is ExtractionMethod.UNSUPPORTED:
        return ExtractionStatus.SKIPPED
    return ExtractionStatus.COMPLETED if text.strip() else ExtractionStatus.EMPTY


def _summary(content: CachedContent, cached: bool = False) -> ExtractionSummary:
    return ExtractionSummary(
        file_id=content.file_id,
        method=content.method,
        char_count=content.char_count,
        status=content.status,
        provider_used=content.provider_used,
        dimension=content.dimension,
        extracted_at=content.extracted_at,
        cached=cached,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ContentIndexService:
    """
    Wires FileSource → ContentExtractor → EmbeddingProviderChain → cache,
    and cache → HybridRanker at query time.

    Every collaborator can be injected; anything omitted is built from
    Settings. Call initialize() once before use when the cache needs schema
    setup (SQL backend).

    Usage:
        service = ContentIndexService(settings, source)
        await service.initialize()
        summary = await service.extract_and_cache("file-123")
        results = await service.search("budget report", ["file-123", "file-456"])
    """

    def __init__(
        self,
        settings:  Settings,
        source:    FileSource,
        cache:     ContentCacheBase | None = None,
        extractor: ContentExtractor | None = None,
        embedder:  EmbeddingProviderChain | None = None,
        ranker:    HybridRanker | None = None,
    ) -> None:
        self._settings  = settings
        self._source    = source
        self._cache     = cache or get_content_cache(settings)
        self._extractor = extractor or ContentExtractor(settings)
        self._embedder  = embedder or EmbeddingProviderChain(settings)
        self._ranker    = ranker or HybridRanker(settings, self._embedder)

    @property
    def cache(self) -> ContentCacheBase:
        return self._cache

    async def initialize(self) -> None:
        await self._cache.initialize()

    async def health(self) -> dict:
        return await self._cache.health()

    async def close(self) -> None:
        await self._cache.close()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    @traced("extract_and_cache")
    async def extract_and_cache(
        self,
        file_id:         str,
        force_recompute: bool = False,
    ) -> ExtractionSummary:
        """
        Extract, embed and cache one file.

        Without force_recompute an existing record is returned untouched
        (cached=True) and the source is not re-read. Records whose extraction
        came back empty are retried, since the bytes may not have been
        complete (or OCR available) at the time.

        Raises:
            SourceUnavailableError: the FileSource could not provide bytes.
            ProviderExhaustedError: no embedding provider produced a vector.
        """
        if not force_recompute:
            existing = await self._cache.get(file_id)
            if existing is not None and existing.status is not ExtractionStatus.EMPTY:
                logger.debug("Extraction cache hit | file=%s status=%s", file_id, existing.status.value)
                return _summary(existing, cached=True)

        data, mime_type = await self._read_source(file_id)

        if not self._source.is_mime_supported(mime_type):
            logger.info("Extraction skipped | file=%s mime=%s (unsupported)", file_id, mime_type)
            content = CachedContent(
                file_id=file_id,
                text="",
                method=ExtractionMethod.UNSUPPORTED,
                status=ExtractionStatus.SKIPPED,
                extracted_at=datetime.now(timezone.utc),
            )
            await self._cache.put(content)
            return _summary(content)

        outcome = await self._extractor.extract(data, mime_type)
        status = _status_for(outcome.method, outcome.text)
        extracted_at = datetime.now(timezone.utc)

        vector: list[float] = []
        provider = EmbeddingProvider.NONE
        computed_at = None
        if status is ExtractionStatus.COMPLETED:
            embedding = await self._embedder.embed(
                truncate_for_embedding(outcome.text, self._settings.max_text_length)
            )
            vector, provider = embedding.vector, embedding.provider
            computed_at = datetime.now(timezone.utc)

        content = CachedContent(
            file_id=file_id,
            text=outcome.text,
            method=outcome.method,
            status=status,
            extracted_at=extracted_at,
            vector=vector,
            provider_used=provider,
            computed_at=computed_at,
        )
        await self._cache.put(content)

        logger.info(
            "Extraction cached | file=%s method=%s status=%s chars=%d provider=%s dims=%d",
            file_id, content.method.value, status.value, content.char_count,
            provider.value, content.dimension,
        )
        return _summary(content)

    @traced("extract_all")
    async def extract_all(
        self,
        file_ids:        list[str],
        force_recompute: bool = False,
    ) -> BatchExtractionReport:
        """
        Run extract_and_cache over many files with bounded concurrency.

        One file's failure never stops the batch; it is reported in
        report.failed with the error text.
        """
        unique_ids = list(dict.fromkeys(file_ids))
        semaphore = asyncio.Semaphore(max(1, self._settings.extraction_concurrency))

        async def _one(file_id: str) -> ExtractionSummary:
            async with semaphore:
                return await self.extract_and_cache(file_id, force_recompute=force_recompute)

        results = await asyncio.gather(*[_one(fid) for fid in unique_ids], return_exceptions=True)

        report = BatchExtractionReport()
        for file_id, result in zip(unique_ids, results):
            if isinstance(result, BaseException):
                if isinstance(result, ProviderExhaustedError):
                    logger.critical("Batch extraction | file=%s embedding chain exhausted", file_id)
                else:
                    logger.warning("Batch extraction | file=%s failed: %s", file_id, result)
                report.failed.append(BatchFailure(file_id=file_id, error=str(result)))
                continue

            report.summaries.append(result)
            if result.cached:
                report.cached += 1
            elif result.status is ExtractionStatus.SKIPPED:
                report.skipped += 1
            elif result.status is ExtractionStatus.EMPTY:
                report.empty += 1
            else:
                report.extracted += 1

        logger.info(
            "Batch extraction done | total=%d extracted=%d empty=%d skipped=%d cached=%d failed=%d",
            len(unique_ids), report.extracted, report.empty, report.skipped,
            report.cached, len(report.failed),
        )
        return report

    async def _read_source(self, file_id: str) -> tuple[bytes, str]:
        try:
            data, mime_type = await self._source.get_file_bytes(file_id)
        except SourceUnavailableError:
            raise
        except Exception as exc:
            raise SourceUnavailableError(file_id, str(exc)) from exc
        return data or b"", mime_type or ""

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @traced("search")
    async def search(self, query_text: str, candidate_file_ids: list[str]) -> SearchResults:
        """
        Rank the caller-authorized files against query_text.

        Files without a cache record still take part through the filename
        fallback of keyword scoring.
        """
        unique_ids = list(dict.fromkeys(candidate_file_ids))
        if not unique_ids:
            return SearchResults()

        records = {record.file_id: record for record in await self._cache.get_many(unique_ids)}
        names = await asyncio.gather(*[self._display_name(fid) for fid in unique_ids])

        candidates = []
        for file_id, name in zip(unique_ids, names):
            record = records.get(file_id)
            candidates.append(Candidate(
                file_id=file_id,
                text=record.text if record else "",
                vector=record.vector if record else [],
                display_name=name,
            ))

        return await self._ranker.rank(query_text, candidates)

    async def _display_name(self, file_id: str) -> str | None:
        try:
            return await self._source.get_display_name(file_id)
        except Exception as exc:
            logger.warning("Display name lookup failed | file=%s: %s", file_id, exc)
            return None

    # ------------------------------------------------------------------
    # Cache access / lifecycle
    # ------------------------------------------------------------------

    async def get_content(self, file_id: str) -> CachedContent | None:
        return await self._cache.get(file_id)

    async def forget(self, file_id: str) -> None:
        """Purge hook: drop the cached text and vector of a deleted source file."""
        removed = await self._cache.delete(file_id)
        logger.info("Content forgotten | file=%s existed=%s", file_id, removed)
