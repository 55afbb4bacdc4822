"""Completion client for the Together AI chat-completions endpoint."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

import httpx

from mindset.config import ChatSettings
from mindset.errors import (
    AuthError,
    ContextTooLargeError,
    EmptyResponseError,
    NetworkError,
    RateLimitedError,
    ServerError,
)
from mindset.telemetry import emit_completion_request, emit_completion_result

from .base import CompletionClient

LOGGER = logging.getLogger(__name__)

_CONTEXT_LIMIT_MARKERS = ("limit", "context window", "length", "token")


def _error_message(response: httpx.Response) -> str:
    """Pull a human readable message out of an error response body."""

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
        error = payload.get("error")
        if isinstance(error, dict):
            nested = error.get("message")
            if isinstance(nested, str) and nested:
                return nested
        elif isinstance(error, str) and error:
            return error

    return response.reason_phrase or f"HTTP {response.status_code}"


def _extract_content(payload: Any) -> Optional[str]:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content.strip() or None


class TogetherCompletionClient(CompletionClient):
    """Send one chat-completion request per prompt, without retries."""

    def __init__(
        self,
        settings: ChatSettings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_seconds)
        )

    @property
    def model_name(self) -> str:
        return self._settings.model

    @property
    def endpoint(self) -> str:
        return f"{self._settings.base_url}/chat/completions"

    def build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._settings.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._settings.max_tokens,
            "temperature": self._settings.temperature,
            "top_p": self._settings.top_p,
        }

    async def complete(self, prompt: str) -> str:
        if not self._settings.api_key:
            raise AuthError("TOGETHER_API_KEY is not configured")

        req_id = uuid.uuid4().hex
        emit_completion_request(
            req_id=req_id,
            model=self.model_name,
            prompt_preview=prompt,
            prompt_len=len(prompt),
            max_tokens=self._settings.max_tokens,
            temperature=self._settings.temperature,
            top_p=self._settings.top_p,
        )
        headers = {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
        }

        started = time.perf_counter()
        try:
            response = await self._client.post(
                self.endpoint, json=self.build_payload(prompt), headers=headers
            )
        except httpx.TransportError as exc:
            self._record(req_id, started, None, "network_error")
            raise NetworkError(f"No response from {self.endpoint}: {exc}", cause=exc) from exc

        status = response.status_code
        if status >= 400:
            message = _error_message(response)
            self._record(req_id, started, status, "http_error")
            raise self._classify(status, message)

        try:
            payload = response.json()
        except ValueError as exc:
            self._record(req_id, started, status, "malformed")
            raise ServerError("Completion response is not valid JSON", status_code=status, cause=exc) from exc

        content = _extract_content(payload)
        if content is None:
            self._record(req_id, started, status, "empty")
            raise EmptyResponseError("Completion response carried no content")

        self._record(req_id, started, status, "ok", answer_preview=content)
        return content

    @staticmethod
    def _classify(status: int, message: str) -> Exception:
        if status in (401, 403):
            return AuthError(f"Credential rejected ({status}): {message}")
        lowered = message.lower()
        if status == 413 or (
            status == 400 and any(marker in lowered for marker in _CONTEXT_LIMIT_MARKERS)
        ):
            return ContextTooLargeError(f"Prompt rejected as too large ({status}): {message}")
        if status == 429:
            return RateLimitedError(f"Rate limited: {message}")
        return ServerError(f"API error ({status}): {message}", status_code=status)

    def _record(
        self,
        req_id: str,
        started: float,
        status: int | None,
        outcome: str,
        answer_preview: str | None = None,
    ) -> None:
        emit_completion_result(
            req_id=req_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            status_code=status,
            outcome=outcome,
            answer_preview=answer_preview,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
