"""Mindset document chat: PDF ingestion with OCR fallback and question answering."""

__version__ = "0.1.0"
