"""Data models used by the ingestion pipeline."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True)
class SourceDocument:
    """A user-selected file, held only for the duration of one ingestion."""

    file_name: str
    media_type: str | None
    data: bytes
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class PageContent:
    """Represents text extracted from a page in the source document."""

    page_number: int
    text: str


@dataclass(slots=True)
class RasterPage:
    """A rendered page image encoded as PNG."""

    page_number: int
    png: bytes
    width: int
    height: int


@dataclass(slots=True)
class IngestOutcome:
    """Successful result of turning a document into a corpus."""

    text: str
    page_count: int
    ocr_performed: bool
    large_file: bool
    duration_seconds: float


class IngestEvent(str, Enum):
    """Progress notifications emitted while a document is ingested."""

    LARGE_FILE = "large_file"
    EXTRACTING = "extracting"
    OCR_FALLBACK = "ocr_fallback"
