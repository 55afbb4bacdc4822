"""Document ingestion: PDF validation, text-layer extraction and OCR fallback."""
from __future__ import annotations

from .extractors import PageRasterizer, PDFTextExtractor
from .format_detection import PDF_MEDIA_TYPE, ensure_pdf, is_pdf
from .models import IngestEvent, IngestOutcome, PageContent, RasterPage, SourceDocument
from .ocr import OcrEngine, TesseractOcrEngine
from .pipeline import IngestPipeline, IngestPipelineConfig

__all__ = [
    "IngestEvent",
    "IngestOutcome",
    "IngestPipeline",
    "IngestPipelineConfig",
    "OcrEngine",
    "PDF_MEDIA_TYPE",
    "PDFTextExtractor",
    "PageContent",
    "PageRasterizer",
    "RasterPage",
    "SourceDocument",
    "TesseractOcrEngine",
    "ensure_pdf",
    "is_pdf",
]
