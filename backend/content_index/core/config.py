"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Components never read the environment themselves: a Settings instance is
built once and injected into the extractor, the OCR renderer, the embedding
chain and the ranker at construction time.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Formats the storage layer treats as indexable unless configured otherwise
DEFAULT_SUPPORTED_MIME_TYPES: tuple[str, ...] = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/html",
    "text/css",
    "text/javascript",
    "application/json",
    "application/xml",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/tiff",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Content cache
    # ------------------------------------------------------------------
    cache_backend: str = "sql"   # "sql" | "memory"
    database_url: str = "sqlite+aiosqlite:///./content_index.db"
    db_echo_sql: bool = False    # set True in local dev to log queries

    # ------------------------------------------------------------------
    # Embeddings — provider chain (huggingface → openai → local)
    # ------------------------------------------------------------------
    huggingface_api_key:         str = ""   # empty = keyless free tier
    huggingface_embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    huggingface_base_url:        str = "https://router.huggingface.co/hf-inference/models"
    huggingface_enabled:         bool = True

    openai_api_key:         str = ""   # empty = provider not registered
    openai_embedding_model: str = "text-embedding-ada-002"

    max_text_length:            int   = 8000   # chars sent to any provider
    simple_embedding_max_words: int   = Field(default=100, ge=1)
    embedding_timeout_seconds:  float = 30.0

    circuit_failure_threshold: int = 3
    circuit_reset_seconds:     int = 60

    # ------------------------------------------------------------------
    # Extraction / OCR
    # ------------------------------------------------------------------
    min_content_chars:     int   = 100   # below this a PDF is treated as scanned
    ocr_language:          str   = "eng"
    ocr_zoom:              float = 3.0
    ocr_max_pages:         int   = Field(default=20, ge=1)
    ocr_page_concurrency:  int   = 2
    ocr_timeout_seconds:   int   = 120
    extraction_concurrency: int  = 4

    supported_mime_types: list[str] = list(DEFAULT_SUPPORTED_MIME_TYPES)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    min_similarity_threshold: float = 0.1

    # Keyword weights. Content weights must all exceed the filename weights.
    score_exact_phrase:     float = 50.0
    score_whole_word:       float = 1.5
    score_partial_word:     float = 0.5
    score_exact_filename:   float = 0.4
    score_partial_filename: float = 0.2

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    debug: bool = False
    log_level: str = "INFO"        # ignored when debug is on

    @model_validator(mode="after")
    def _filename_weights_below_content(self) -> "Settings":
        lowest_content = min(
            self.score_exact_phrase, self.score_whole_word, self.score_partial_word,
        )
        highest_filename = max(self.score_exact_filename, self.score_partial_filename)
        if highest_filename >= lowest_content:
            raise ValueError(
                "filename scoring weights must be strictly lower than every "
                f"content weight ({highest_filename} >= {lowest_content})"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
