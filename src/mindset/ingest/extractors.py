"""Extractors for the PDF text layer and page rasters."""
from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import fitz  # PyMuPDF
from PyPDF2 import PdfReader

from .models import PageContent, RasterPage

LOGGER = logging.getLogger(__name__)


class PDFTextExtractor:
    """Read the embedded text layer of a PDF page by page."""

    def iter_pages(self, data: bytes) -> Iterator[PageContent]:
        """Yield the text layer of every page in document order.

        Text items reported by the layout visitor are joined with single
        spaces. Parser errors propagate to the caller.
        """

        if not data:
            return

        reader = PdfReader(io.BytesIO(data))
        LOGGER.debug("Reading text layer of %s pages", len(reader.pages))
        for index, page in enumerate(reader.pages, start=1):
            yield PageContent(page_number=index, text=self._page_text(page))

    def extract_pages(self, data: bytes) -> List[PageContent]:
        return list(self.iter_pages(data))

    def extract(self, data: bytes) -> str:
        pages = self.extract_pages(data)
        return " ".join(page.text for page in pages).strip()

    @staticmethod
    def _page_text(page) -> str:
        items: List[str] = []

        def visitor(text, cm, tm, font_dict, font_size):  # noqa: ANN001 - PyPDF2 callback
            del cm, tm, font_dict, font_size
            item = text.strip()
            if item:
                items.append(item)

        page.extract_text(visitor_text=visitor)
        return " ".join(items)


class PageRasterizer:
    """Render PDF pages to PNG images, one page at a time.

    Use as a context manager; the underlying document is closed on exit.
    """

    def __init__(self, data: bytes, scale: float = 2.0) -> None:
        self._data = data
        self.scale = scale
        self._document: Optional["fitz.Document"] = None

    def __enter__(self) -> "PageRasterizer":
        if self._data:
            self._document = fitz.open(stream=self._data, filetype="pdf")
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._document is not None:
            self._document.close()
            self._document = None

    @property
    def page_count(self) -> int:
        if self._document is None:
            return 0
        return self._document.page_count

    @contextmanager
    def render(self, index: int) -> Iterator[RasterPage]:
        """Yield the page at ``index`` (zero-based) rendered at ``scale``."""

        if self._document is None:
            raise IndexError(f"page {index} out of range")

        page = self._document.load_page(index)
        pixmap = page.get_pixmap(matrix=fitz.Matrix(self.scale, self.scale))
        try:
            yield RasterPage(
                page_number=index + 1,
                png=pixmap.tobytes("png"),
                width=pixmap.width,
                height=pixmap.height,
            )
        finally:
            # Drop the native buffers before the next page is rendered.
            pixmap = None
            page = None
