"""Optical character recognition engines for rasterized PDF pages."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from .models import RasterPage

LOGGER = logging.getLogger(__name__)


class OcrEngine(ABC):
    """Abstract interface for OCR backends.

    Engines are acquired with ``async with`` so that any process or model
    resources are released whether recognition succeeds or fails.
    """

    async def __aenter__(self) -> "OcrEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        """Allocate engine resources."""

    async def close(self) -> None:
        """Release engine resources."""

    @abstractmethod
    async def recognize(self, raster: RasterPage) -> str:
        """Return the text recognized on the provided page image."""


class TesseractOcrEngine(OcrEngine):
    """Run the ``tesseract`` binary on each page image."""

    def __init__(self, language: str = "eng", timeout_seconds: float | None = 120.0) -> None:
        self.language = language
        self.timeout_seconds = timeout_seconds

    async def recognize(self, raster: RasterPage) -> str:
        cmd = ["tesseract", "stdin", "stdout", "-l", self.language]
        LOGGER.debug("Running OCR command on page %s: %s", raster.page_number, " ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:  # pragma: no cover - depends on environment
            raise RuntimeError("tesseract is not installed") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(raster.png), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise RuntimeError(
                f"tesseract timed out after {self.timeout_seconds}s on page {raster.page_number}"
            ) from exc

        if process.returncode != 0:
            raise RuntimeError(
                f"tesseract exited with code {process.returncode} on page {raster.page_number}: "
                f"{stderr.decode(errors='ignore').strip()}"
            )
        return stdout.decode("utf-8", errors="ignore").strip()
