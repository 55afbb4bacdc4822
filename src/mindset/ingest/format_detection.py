"""Validation of the declared media type of selected files."""
from __future__ import annotations

from typing import Optional

from mindset.errors import UnsupportedTypeError

PDF_MEDIA_TYPE = "application/pdf"


def normalize_media_type(media_type: Optional[str]) -> str:
    """Return the bare, lower-cased media type without parameters."""

    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


def is_pdf(media_type: Optional[str]) -> bool:
    return normalize_media_type(media_type) == PDF_MEDIA_TYPE


def ensure_pdf(file_name: str, media_type: Optional[str]) -> None:
    """Raise :class:`UnsupportedTypeError` unless the declared type is PDF.

    Only the declared media type is consulted. The check is advisory and is
    not a substitute for the parser rejecting malformed input later on.
    """

    if not is_pdf(media_type):
        raise UnsupportedTypeError(
            f"Unsupported media type {media_type or '<none>'!r} for {file_name}"
        )
