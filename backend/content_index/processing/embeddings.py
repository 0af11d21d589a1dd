"""
Embedding Provider Chain  —  Ordered Failover to an Always-Succeeding Fallback
══════════════════════════════════════════════════════════════════════════════

Provider order (first non-empty vector wins):
  1. huggingface  — hosted feature-extraction endpoint, keyless free tier
  2. openai       — paid; registered ONLY when an API key is configured
  3. local        — deterministic term-frequency vector; cannot fail

Failure handling:
  Every provider error (network, HTTP 429/5xx, malformed payload, timeout,
  empty vector) is logged and the chain advances. ProviderExhaustedError is
  raised only if the local fallback also failed — a defect, not a runtime
  condition.

Truncation:
  The chain NEVER truncates. Callers pass text already cut to
  Settings.max_text_length via truncate_for_embedding(), exactly once,
  so every provider sees the same input.

Dimensions:
  Providers return vectors of different sizes (384 for MiniLM, 1536 for
  ada-002, ≤100 for local). No renormalization happens here; comparison
  handles mismatches by prefix truncation (see search/similarity.py).

Circuit breaker:
  A remote provider that fails circuit_failure_threshold times in a row is
  skipped for circuit_reset_seconds. The state lives on the chain instance.
  The local provider is never skipped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Any

import httpx

from content_index.core.config import Settings
from content_index.core.exceptions import ProviderExhaustedError
from content_index.schemas.content import EmbeddingProvider

logger = logging.getLogger(__name__)


def truncate_for_embedding(text: str, max_length: int) -> str:
    """The single truncation point applied before any provider sees text."""
    if max_length > 0 and len(text) > max_length:
        return text[:max_length]
    return text


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclass
class EmbeddingOutcome:
    vector:     list[float]
    provider:   EmbeddingProvider
    elapsed_ms: float = 0.0

    @property
    def dimension(self) -> int:
        return len(self.vector)


# ---------------------------------------------------------------------------
# Response-shape normalization
# ---------------------------------------------------------------------------

def _as_float_vector(values: Any) -> list[float]:
    if not isinstance(values, list):
        raise ValueError(f"expected a list of numbers, got {type(values).__name__}")
    vector: list[float] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValueError(f"non-numeric embedding component: {value!r}")
        vector.append(float(value))
    return vector


def normalize_feature_extraction(payload: Any) -> list[float]:
    """
    Flatten a feature-extraction payload to one vector.

    Accepted shapes:
        [0.1, 0.2, ...]               sentence embedding (flat)
        [[0.1, 0.2, ...]]             batched sentence embedding
        [[[0.1, ...], [0.3, ...]]]    token embeddings — first row is used
    Anything else raises ValueError.
    """
    current = payload
    while isinstance(current, list) and current and isinstance(current[0], list):
        current = current[0]
    if isinstance(current, dict) and "error" in current:
        raise ValueError(f"provider error payload: {current['error']}")
    return _as_float_vector(current)


# ---------------------------------------------------------------------------
# Provider adapters
# ---------------------------------------------------------------------------

class EmbeddingProviderBase(ABC):
    """
    One embedding backend.

    embed() may raise; the chain catches everything. Adapters own the
    translation of their provider's response shape to list[float].
    """

    uses_circuit_breaker: bool = True

    @property
    @abstractmethod
    def provider(self) -> EmbeddingProvider:
        """Enum value recorded as providerUsed."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding of `text`."""


class HuggingFaceEmbedder(EmbeddingProviderBase):
    """
    Hugging Face hosted inference (feature-extraction pipeline).

    Works without a token on the free tier; a token raises rate limits.
    The endpoint may answer with a flat or nested array depending on the
    model, which normalize_feature_extraction() hides.
    """

    def __init__(
        self,
        model:     str,
        base_url:  str,
        api_key:   str = "",
        timeout:   float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url       = f"{base_url.rstrip('/')}/{model}/pipeline/feature-extraction"
        self._api_key   = api_key
        self._timeout   = timeout
        self._transport = transport

    @property
    def provider(self) -> EmbeddingProvider:
        return EmbeddingProvider.HUGGINGFACE

    async def embed(self, text: str) -> list[float]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as http:
            response = await http.post(
                self._url,
                json={"inputs": text, "options": {"wait_for_model": True}},
                headers=headers,
            )
            response.raise_for_status()
            payload = response.json()

        return normalize_feature_extraction(payload)


class OpenAIEmbedder(EmbeddingProviderBase):
    """Paid OpenAI embeddings. Only constructed when an API key exists."""

    def __init__(self, api_key: str, model: str, client: Any | None = None) -> None:
        self._api_key = api_key
        self._model   = model
        self._client  = client

    @property
    def provider(self) -> EmbeddingProvider:
        return EmbeddingProvider.OPENAI

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        response = await self._get_client().embeddings.create(
            model=self._model,
            input=text,
        )
        if not response.data:
            raise ValueError("OpenAI returned no embedding data")
        return _as_float_vector(list(response.data[0].embedding))


def term_frequency_vector(text: str, max_words: int) -> list[float]:
    """
    Relative frequency of each of the first `max_words` distinct words,
    in first-occurrence order. Deterministic; no model involved.
    """
    words = text.lower().split()
    if not words:
        return []
    frequencies: dict[str, int] = {}
    for word in words:
        frequencies[word] = frequencies.get(word, 0) + 1
    total = len(words)
    return [count / total for count in list(frequencies.values())[:max_words]]


class LocalTermFrequencyEmbedder(EmbeddingProviderBase):
    """Last-resort provider. Its unconditional success makes the chain total."""

    uses_circuit_breaker = False

    def __init__(self, max_words: int = 100) -> None:
        self._max_words = max_words

    @property
    def provider(self) -> EmbeddingProvider:
        return EmbeddingProvider.LOCAL

    async def embed(self, text: str) -> list[float]:
        return term_frequency_vector(text, self._max_words)


def build_default_providers(
    settings:  Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[EmbeddingProviderBase]:
    """Ordered provider list from configuration."""
    providers: list[EmbeddingProviderBase] = []

    if settings.huggingface_enabled:
        providers.append(HuggingFaceEmbedder(
            model=settings.huggingface_embedding_model,
            base_url=settings.huggingface_base_url,
            api_key=settings.huggingface_api_key,
            timeout=settings.embedding_timeout_seconds,
            transport=transport,
        ))

    if settings.openai_api_key:
        providers.append(OpenAIEmbedder(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
        ))
    else:
        logger.info("OpenAI embeddings not configured — provider skipped")

    providers.append(LocalTermFrequencyEmbedder(settings.simple_embedding_max_words))
    return providers


# ---------------------------------------------------------------------------
# Circuit breaker (in-process, per chain instance)
# ---------------------------------------------------------------------------

@dataclass
class _CircuitState:
    failures:   int   = 0
    open_until: float = 0.0    # monotonic time after which to retry


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

class EmbeddingProviderChain:
    """
    Ordered chain of embedding providers with automatic failover.

    Usage::

        chain = EmbeddingProviderChain(settings)
        text = truncate_for_embedding(raw_text, settings.max_text_length)
        outcome = await chain.embed(text)
        outcome.vector, outcome.provider

    Inject `providers` to replace the configured list (tests, custom stacks).
    """

    def __init__(
        self,
        settings:  Settings,
        providers: list[EmbeddingProviderBase] | None = None,
    ) -> None:
        self._providers = providers if providers is not None else build_default_providers(settings)
        self._timeout   = settings.embedding_timeout_seconds
        self._threshold = settings.circuit_failure_threshold
        self._reset     = settings.circuit_reset_seconds
        self._circuits: dict[EmbeddingProvider, _CircuitState] = {
            p.provider: _CircuitState() for p in self._providers
        }

    @property
    def providers(self) -> list[EmbeddingProvider]:
        return [p.provider for p in self._providers]

    async def embed(self, text: str) -> EmbeddingOutcome:
        """
        Embed `text` with the first provider that returns a non-empty vector.

        Raises:
            ProviderExhaustedError: every provider failed (defect).
        """
        if not text or not text.strip():
            return EmbeddingOutcome(vector=[], provider=EmbeddingProvider.NONE)

        t0 = time.monotonic()
        errors: list[str] = []

        for adapter in self._providers:
            name = adapter.provider.value
            if adapter.uses_circuit_breaker and self._is_circuit_open(adapter.provider):
                logger.debug("EmbeddingChain | skipping provider=%s (circuit open)", name)
                errors.append(f"{name}: circuit open")
                continue

            try:
                vector = await asyncio.wait_for(adapter.embed(text), timeout=self._timeout)
            except asyncio.TimeoutError:
                err = f"{name}: timed out after {self._timeout}s"
                logger.warning("EmbeddingChain | %s", err)
                self._record_failure(adapter)
                errors.append(err)
                continue
            except Exception as exc:
                err = f"{name}: {type(exc).__name__}: {exc}"
                logger.warning("EmbeddingChain | provider failed — %s", err)
                self._record_failure(adapter)
                errors.append(err)
                continue

            if not vector:
                err = f"{name}: empty vector"
                logger.warning("EmbeddingChain | %s", err)
                self._record_failure(adapter)
                errors.append(err)
                continue

            self._record_success(adapter)
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.info(
                "EmbeddingChain | provider=%s dims=%d chars=%d elapsed_ms=%.0f",
                name, len(vector), len(text), elapsed_ms,
            )
            return EmbeddingOutcome(vector=vector, provider=adapter.provider, elapsed_ms=elapsed_ms)

        logger.critical("EmbeddingChain | all providers failed: %s", errors)
        raise ProviderExhaustedError(errors)

    # ------------------------------------------------------------------
    # Circuit breaker helpers
    # ------------------------------------------------------------------

    def _is_circuit_open(self, provider: EmbeddingProvider) -> bool:
        state = self._circuits[provider]
        if state.failures < self._threshold:
            return False
        if time.monotonic() >= state.open_until:
            state.failures = 0     # reset — let it try again
            return False
        return True

    def _record_failure(self, adapter: EmbeddingProviderBase) -> None:
        if not adapter.uses_circuit_breaker:
            return
        state = self._circuits[adapter.provider]
        state.failures  += 1
        state.open_until = time.monotonic() + self._reset
        if state.failures >= self._threshold:
            logger.warning(
                "Circuit breaker | provider=%s failures=%d open_for=%ds",
                adapter.provider.value, state.failures, self._reset,
            )

    def _record_success(self, adapter: EmbeddingProviderBase) -> None:
        self._circuits[adapter.provider].failures = 0
