"""
Observability — logging setup and span timing.

configure_logging() is called once by the embedding host (worker, API
process, test session). The @traced decorator instruments async pipeline
steps with timing and error logging through the standard logging module,
so it is always active regardless of deployment.

Usage::

    @traced("extract_and_cache")
    async def extract_and_cache(self, file_id: str) -> ExtractionSummary:
        ...
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

from content_index.core.config import Settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def configure_logging(settings: Settings) -> None:
    """Install the root handler. Safe to call more than once."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.debug("Logging configured | level=%s debug=%s", settings.log_level, settings.debug)


def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Decorator that instruments an async function with timing and error logging.

        @traced("hybrid_rank")
        async def rank(query: str, candidates: list[Candidate]) -> RankedResults:
            ...

        @traced()   # uses function name as span name
        async def embed(text: str) -> EmbeddingOutcome:
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            except Exception as exc:
                logger.error(
                    "Span failed | span=%s ms=%.1f error=%s",
                    span_name, (time.perf_counter() - started) * 1000, exc, exc_info=True,
                )
                raise
            finally:
                logger.debug(
                    "Span done | span=%s ms=%.1f", span_name, (time.perf_counter() - started) * 1000,
                )

        return wrapper  # type: ignore[return-value]
    return decorator
