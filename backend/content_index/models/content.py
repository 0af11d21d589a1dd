"""
SQLAlchemy ORM Model — Extracted File Content

One row per source file (UNIQUE file_id). A forced recompute overwrites the
row in place; the row is deleted only through the purge hook when the
storage layer removes the source file.

The embedding vector is stored as a JSON array so the same table works on
PostgreSQL and SQLite. Vectors are read back whole and compared in-process;
no in-database similarity search is performed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class FileContent(Base):
    """
    Cached extraction + embedding for one file.

    status column:
        completed — text recovered (char_count > 0)
        empty     — supported format, every method came back empty
        skipped   — unsupported MIME type, nothing attempted
    """

    __tablename__ = "file_contents"
    __table_args__ = (
        CheckConstraint(
            "status IN ('completed', 'empty', 'skipped')",
            name="file_contents_status_check",
        ),
        CheckConstraint("char_count >= 0", name="file_contents_char_count_positive"),
        UniqueConstraint("file_id", name="uq_file_contents_file_id"),
        Index("idx_file_contents_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Opaque identifier owned by the storage layer
    file_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Extraction
    text:         Mapped[str] = mapped_column(Text, nullable=False, default="")
    method:       Mapped[str] = mapped_column(String(32), nullable=False)
    status:       Mapped[str] = mapped_column(String(16), nullable=False)
    char_count:   Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extracted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(),
    )

    # Embedding
    vector:        Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    dimension:     Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    provider_used: Mapped[str] = mapped_column(String(16), nullable=False, default="none")
    computed_at:   Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:  # pragma: no cover
        return f"<FileContent file_id={self.file_id} status={self.status} chars={self.char_count}>"
