"""
Content Processing Package
══════════════════════════

Turns stored file bytes into searchable material:

  Format routing → Structural extraction → OCR escalation → Embedding

Modules
───────
  extractor.py   MIME-routed extraction cascade (PyMuPDF → pypdf → OCR, docx → HTML)
  ocr.py         Capability-checked OCR engines over rendered pages and images
  embeddings.py  Ordered provider chain (Hugging Face → OpenAI → local term frequency)

Design principles
─────────────────
  • Every component is dependency-injected with Settings at construction.
  • Extraction and OCR are total: failures degrade to "", never raise.
  • Blocking parsers run in the default thread executor.
"""

from content_index.processing.embeddings import (
    EmbeddingOutcome,
    EmbeddingProviderChain,
    truncate_for_embedding,
)
from content_index.processing.extractor import ContentExtractor, ExtractionOutcome
from content_index.processing.ocr import OcrRenderer

__all__ = [
    "ContentExtractor",
    "ExtractionOutcome",
    "OcrRenderer",
    "EmbeddingOutcome",
    "EmbeddingProviderChain",
    "truncate_for_embedding",
]
