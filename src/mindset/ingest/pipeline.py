"""High level ingestion pipeline entry point."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from mindset.config import DEFAULT_LARGE_FILE_BYTES, ChatSettings
from mindset.errors import ExtractionFailedError, NoExtractableTextError, OcrFailedError
from mindset.logging_config import AUDIT_LOGGER_NAME
from mindset.telemetry import emit_exception, emit_ingest_event, emit_ocr_page_event

from .extractors import PageRasterizer, PDFTextExtractor
from .format_detection import ensure_pdf
from .models import IngestEvent, IngestOutcome, SourceDocument
from .ocr import OcrEngine, TesseractOcrEngine

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

EventCallback = Callable[[IngestEvent], None]
RasterizerFactory = Callable[[bytes, float], PageRasterizer]
OcrEngineFactory = Callable[[], OcrEngine]


@dataclass(slots=True)
class IngestPipelineConfig:
    large_file_bytes: int = DEFAULT_LARGE_FILE_BYTES
    ocr_language: str = "eng"
    ocr_render_scale: float = 2.0
    ocr_page_timeout_seconds: float | None = 120.0

    @classmethod
    def from_settings(cls, settings: ChatSettings) -> "IngestPipelineConfig":
        return cls(
            large_file_bytes=settings.large_file_bytes,
            ocr_language=settings.ocr_language,
            ocr_render_scale=settings.ocr_render_scale,
            ocr_page_timeout_seconds=settings.ocr_page_timeout_seconds,
        )


class IngestPipeline:
    """Turn one PDF into a flat text corpus, falling back to OCR when needed."""

    def __init__(
        self,
        config: Optional[IngestPipelineConfig] = None,
        *,
        text_extractor: Optional[PDFTextExtractor] = None,
        rasterizer_factory: Optional[RasterizerFactory] = None,
        ocr_engine_factory: Optional[OcrEngineFactory] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.text_extractor = text_extractor or PDFTextExtractor()
        self._rasterizer_factory = rasterizer_factory or PageRasterizer
        self._ocr_engine_factory = ocr_engine_factory or self._default_ocr_engine

    def _default_ocr_engine(self) -> OcrEngine:
        return TesseractOcrEngine(
            language=self.config.ocr_language,
            timeout_seconds=self.config.ocr_page_timeout_seconds,
        )

    async def ingest(
        self,
        document: SourceDocument,
        on_event: Optional[EventCallback] = None,
    ) -> IngestOutcome:
        """Extract the text of ``document``.

        Raises one of the :class:`~mindset.errors.IngestError` subclasses on
        failure. ``on_event`` receives progress notifications in order.
        """

        ensure_pdf(document.file_name, document.media_type)
        notify = on_event or (lambda _event: None)
        started = time.perf_counter()
        large_file = document.size_bytes > self.config.large_file_bytes

        emit_ingest_event(
            "ingest.start",
            document_id=document.document_id,
            file_name=document.file_name,
            size_bytes=document.size_bytes,
            large_file=large_file,
        )
        if large_file:
            LOGGER.warning(
                "File %s is %s bytes; extraction may take a long time",
                document.file_name,
                document.size_bytes,
            )
            notify(IngestEvent.LARGE_FILE)

        try:
            notify(IngestEvent.EXTRACTING)
            text, page_count = await self._extract_text_layer(document)
            ocr_performed = False
            if not text:
                LOGGER.info("No text layer found in %s, attempting OCR fallback", document.file_name)
                notify(IngestEvent.OCR_FALLBACK)
                text, page_count = await self._perform_ocr(document)
                ocr_performed = True
                if not text:
                    raise NoExtractableTextError(
                        f"No readable text in {document.file_name} after OCR"
                    )
        except Exception as error:
            duration = time.perf_counter() - started
            emit_ingest_event(
                "ingest.failed",
                document_id=document.document_id,
                level="warning",
                duration_ms=duration * 1000.0,
                file_name=document.file_name,
                error=type(error).__name__,
            )
            AUDIT_LOGGER.info(
                {
                    "event": "ingest",
                    "document_id": document.document_id,
                    "file_name": document.file_name,
                    "status": "failed",
                    "error": type(error).__name__,
                }
            )
            raise

        duration = time.perf_counter() - started
        emit_ingest_event(
            "ingest.complete",
            document_id=document.document_id,
            duration_ms=duration * 1000.0,
            file_name=document.file_name,
            pages=page_count,
            ocr=ocr_performed,
            chars=len(text),
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "document_id": document.document_id,
                "file_name": document.file_name,
                "status": "ok",
                "pages": page_count,
                "ocr": ocr_performed,
                "chars": len(text),
            }
        )
        return IngestOutcome(
            text=text,
            page_count=page_count,
            ocr_performed=ocr_performed,
            large_file=large_file,
            duration_seconds=duration,
        )

    async def _extract_text_layer(self, document: SourceDocument) -> tuple[str, int]:
        page_texts: list[str] = []
        try:
            for page in self.text_extractor.iter_pages(document.data):
                page_texts.append(page.text)
                await asyncio.sleep(0)
        except Exception as error:
            emit_exception(
                module=f"{__name__}.text_layer",
                error=error,
                document_id=document.document_id,
            )
            raise ExtractionFailedError(
                f"Failed to read the text layer of {document.file_name}", cause=error
            ) from error
        return " ".join(page_texts).strip(), len(page_texts)

    async def _perform_ocr(self, document: SourceDocument) -> tuple[str, int]:
        page_texts: list[str] = []
        try:
            with self._rasterizer_factory(document.data, self.config.ocr_render_scale) as rasterizer:
                page_count = rasterizer.page_count
                async with self._ocr_engine_factory() as engine:
                    for index in range(page_count):
                        page_started = time.perf_counter()
                        with rasterizer.render(index) as raster:
                            text = await engine.recognize(raster)
                            width, height = raster.width, raster.height
                        emit_ocr_page_event(
                            document_id=document.document_id,
                            page=index + 1,
                            duration_ms=(time.perf_counter() - page_started) * 1000.0,
                            chars=len(text),
                            width=width,
                            height=height,
                        )
                        page_texts.append(text)
                        await asyncio.sleep(0)
        except Exception as error:
            emit_exception(
                module=f"{__name__}.ocr",
                error=error,
                document_id=document.document_id,
            )
            raise OcrFailedError(f"OCR failed for {document.file_name}", cause=error) from error
        return " ".join(page_texts).strip(), page_count
