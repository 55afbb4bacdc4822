"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import socket
import subprocess
import sys
import traceback
from pathlib import Path
from typing import Any, Optional

LOGGER = logging.getLogger("mindset.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "LLM_PROVIDER",
    "LLM_BASE_URL",
    "LLM_MODEL",
    "LLM_MAX_TOKENS",
    "LLM_TEMPERATURE",
    "LLM_TOP_P",
    "LLM_TIMEOUT_SECONDS",
    "MAX_CONTEXT_CHARS",
    "LARGE_FILE_BYTES",
    "OCR_LANG",
    "OCR_RENDER_SCALE",
    "OCR_PAGE_TIMEOUT_SECONDS",
    "TYPING_DELAY_MIN_MS",
    "TYPING_DELAY_MAX_MS",
)


def _run_command(command: list[str], *, timeout: float = 5.0) -> tuple[int, str, str]:
    try:
        completed = subprocess.run(
            command,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except Exception as error:  # pragma: no cover - depends on runtime
        return 1, "", str(error)
    return completed.returncode, completed.stdout.strip(), completed.stderr.strip()


def _resolve_git_commit() -> Optional[str]:
    returncode, stdout, _ = _run_command(["git", "rev-parse", "HEAD"])
    if returncode != 0:
        return None
    return stdout or None


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    document_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if document_id:
        event["document_id"] = document_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "api_key_configured": bool(os.getenv("TOGETHER_API_KEY")),
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    log_event(
        LOGGER,
        "app.startup",
        details=details,
        commit=_resolve_git_commit(),
        pid=os.getpid(),
        hostname=socket.gethostname(),
        cwd=str(Path.cwd()),
    )


def emit_ingest_event(
    step: str,
    *,
    document_id: str,
    level: str = "info",
    duration_ms: float | None = None,
    **details: Any,
) -> None:
    log_event(
        LOGGER,
        step,
        level=level,
        document_id=document_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_ocr_page_event(
    *,
    document_id: str,
    page: int,
    duration_ms: float,
    chars: int,
    width: int | None = None,
    height: int | None = None,
) -> None:
    details = {"page": page, "chars": chars, "width": width, "height": height}
    log_event(LOGGER, "ingest.ocr.page", level="debug", document_id=document_id, duration_ms=duration_ms, details=details)


def emit_completion_request(
    *,
    req_id: str,
    model: str,
    prompt_preview: str,
    prompt_len: int,
    max_tokens: int,
    temperature: float,
    top_p: float,
) -> None:
    details = {
        "model": model,
        "prompt_preview": prompt_preview[:120],
        "prompt_len": prompt_len,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "top_p": top_p,
    }
    log_event(LOGGER, "completion.request", req_id=req_id, details=details)


def emit_completion_result(
    *,
    req_id: str,
    duration_ms: float,
    status_code: int | None,
    outcome: str,
    answer_preview: str | None = None,
) -> None:
    details: dict[str, Any] = {"status_code": status_code, "outcome": outcome}
    if answer_preview is not None:
        details["answer_preview"] = answer_preview[:120]
    level = "info" if outcome == "ok" else "warning"
    log_event(LOGGER, "completion.result", level=level, req_id=req_id, duration_ms=duration_ms, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    document_id: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        document_id=document_id,
        details=details,
        exc=error,
    )


__all__ = [
    "emit_app_startup_event",
    "emit_completion_request",
    "emit_completion_result",
    "emit_exception",
    "emit_ingest_event",
    "emit_ocr_page_event",
    "log_event",
]
