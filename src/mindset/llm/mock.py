"""Mock completion client for tests and offline development."""
from __future__ import annotations

from typing import List, Optional

from mindset.errors import CompletionError

from .base import CompletionClient


class MockCompletionClient(CompletionClient):
    """Return a canned answer (or raise a canned error) for any prompt."""

    def __init__(
        self,
        answer: Optional[str] = None,
        *,
        error: Optional[CompletionError] = None,
    ) -> None:
        self.answer = answer
        self.error = error
        self.prompts: List[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if self.answer is not None:
            return self.answer
        return f"MOCK_ANSWER: {prompt[-100:]}"
