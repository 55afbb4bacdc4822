"""Environment driven settings for the document chat service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.together.xyz/v1"
DEFAULT_MODEL = "mistralai/Mistral-7B-Instruct-v0.2"
DEFAULT_LARGE_FILE_BYTES = 25 * 1024 * 1024


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True, frozen=True)
class ChatSettings:
    """Configuration shared by the ingestion pipeline, completion client and presenter."""

    api_key: str = ""
    llm_provider: str = "together"
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 700
    temperature: float = 0.1
    top_p: float = 0.9
    request_timeout_seconds: float = 60.0
    max_context_chars: int = 120_000
    large_file_bytes: int = DEFAULT_LARGE_FILE_BYTES
    ocr_language: str = "eng"
    ocr_render_scale: float = 2.0
    ocr_page_timeout_seconds: float = 120.0
    typing_delay_min_ms: int = 50
    typing_delay_max_ms: int = 100

    @property
    def uses_mock_llm(self) -> bool:
        return self.llm_provider == "mock"

    @classmethod
    def from_env(cls) -> "ChatSettings":
        """Read every setting from the process environment."""

        delay_min = max(0, _env_int("TYPING_DELAY_MIN_MS", 50))
        delay_max = max(delay_min, _env_int("TYPING_DELAY_MAX_MS", 100))
        return cls(
            api_key=os.getenv("TOGETHER_API_KEY", "").strip(),
            llm_provider=_env_str("LLM_PROVIDER", "together").lower(),
            base_url=_env_str("LLM_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            model=_env_str("LLM_MODEL", DEFAULT_MODEL),
            max_tokens=_env_int("LLM_MAX_TOKENS", 700),
            temperature=_env_float("LLM_TEMPERATURE", 0.1),
            top_p=_env_float("LLM_TOP_P", 0.9),
            request_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 60.0),
            max_context_chars=_env_int("MAX_CONTEXT_CHARS", 120_000),
            large_file_bytes=_env_int("LARGE_FILE_BYTES", DEFAULT_LARGE_FILE_BYTES),
            ocr_language=_env_str("OCR_LANG", "eng"),
            ocr_render_scale=_env_float("OCR_RENDER_SCALE", 2.0),
            ocr_page_timeout_seconds=_env_float("OCR_PAGE_TIMEOUT_SECONDS", 120.0),
            typing_delay_min_ms=delay_min,
            typing_delay_max_ms=delay_max,
        )


@lru_cache(maxsize=1)
def get_settings() -> ChatSettings:
    """Return the process-wide settings, loaded once on first use."""

    return ChatSettings.from_env()


__all__ = ["ChatSettings", "get_settings"]
