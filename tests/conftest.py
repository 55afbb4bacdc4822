"""Shared fixtures and lightweight fakes for the ingestion and chat tests."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import fitz  # PyMuPDF
import pytest

from mindset.ingest import IngestPipeline, IngestPipelineConfig, OcrEngine, PageContent, RasterPage
from mindset.llm import CompletionClient, MockCompletionClient
from mindset.presentation import TypingPresenter, zero_delay
from mindset.services.chat import ChatSession


def _pdf_with_pages(texts: List[Optional[str]]) -> bytes:
    document = fitz.open()
    try:
        for text in texts:
            page = document.new_page(width=300, height=300)
            if text:
                page.insert_text((36, 72), text, fontsize=12)
            else:
                # Vector drawing only: something to render, nothing to extract.
                page.draw_rect(fitz.Rect(20, 20, 120, 80), color=(0, 0, 0), fill=(0.6, 0.6, 0.6))
        return document.tobytes()
    finally:
        document.close()


@pytest.fixture
def text_pdf_bytes() -> bytes:
    return _pdf_with_pages(["Hello PDF", "Second page"])


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    return _pdf_with_pages([None, None])


class FakeTextExtractor:
    """Return fixed page texts regardless of the payload."""

    def __init__(self, pages: List[str], error: Optional[Exception] = None) -> None:
        self.pages = pages
        self.error = error
        self.calls = 0

    def iter_pages(self, data: bytes) -> Iterator[PageContent]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        for index, text in enumerate(self.pages, start=1):
            yield PageContent(page_number=index, text=text)


@dataclass
class RasterLedger:
    rendered: List[int] = field(default_factory=list)
    released: List[int] = field(default_factory=list)
    opened: int = 0
    closed: int = 0


class FakeRasterizer:
    """Stand-in for :class:`PageRasterizer` that records acquisition and release."""

    def __init__(self, page_count: int, ledger: RasterLedger) -> None:
        self._page_count = page_count
        self.ledger = ledger
        self.scale: Optional[float] = None

    def __call__(self, data: bytes, scale: float) -> "FakeRasterizer":
        self.scale = scale
        return self

    def __enter__(self) -> "FakeRasterizer":
        self.ledger.opened += 1
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.ledger.closed += 1

    @property
    def page_count(self) -> int:
        return self._page_count

    @contextmanager
    def render(self, index: int) -> Iterator[RasterPage]:
        self.ledger.rendered.append(index)
        try:
            yield RasterPage(page_number=index + 1, png=b"png", width=10, height=10)
        finally:
            self.ledger.released.append(index)


class FakeOcrEngine(OcrEngine):
    """OCR engine returning scripted texts per page."""

    def __init__(self, texts: Dict[int, str], fail_on: Optional[int] = None) -> None:
        self.texts = texts
        self.fail_on = fail_on
        self.recognized: List[int] = []
        self.started = 0
        self.closed = 0

    async def start(self) -> None:
        self.started += 1

    async def close(self) -> None:
        self.closed += 1

    async def recognize(self, raster: RasterPage) -> str:
        self.recognized.append(raster.page_number)
        if self.fail_on == raster.page_number:
            raise RuntimeError(f"recognition failed on page {raster.page_number}")
        return self.texts.get(raster.page_number, "")


def make_pipeline(
    text_pages: List[str],
    *,
    ocr_engine: Optional[FakeOcrEngine] = None,
    page_count: Optional[int] = None,
    ledger: Optional[RasterLedger] = None,
    config: Optional[IngestPipelineConfig] = None,
    extractor_error: Optional[Exception] = None,
) -> IngestPipeline:
    engine = ocr_engine or FakeOcrEngine({})
    return IngestPipeline(
        config,
        text_extractor=FakeTextExtractor(text_pages, error=extractor_error),
        rasterizer_factory=FakeRasterizer(
            len(text_pages) if page_count is None else page_count, ledger or RasterLedger()
        ),
        ocr_engine_factory=lambda: engine,
    )


def make_session(
    pipeline: IngestPipeline,
    client: Optional[CompletionClient] = None,
    *,
    max_context_chars: int = 120_000,
) -> ChatSession:
    return ChatSession(
        pipeline,
        client or MockCompletionClient("Blue."),
        TypingPresenter(zero_delay()),
        max_context_chars=max_context_chars,
    )
