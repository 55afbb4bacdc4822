"""Base interface for chat-completion clients."""

from __future__ import annotations

from abc import ABC, abstractmethod

__all__ = ["CompletionClient"]


class CompletionClient(ABC):
    """Abstract interface for single-turn language model completions."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the model's answer to ``prompt``.

        Implementations raise a :class:`~mindset.errors.CompletionError`
        subclass instead of returning an empty answer.
        """

    async def aclose(self) -> None:
        """Release any network resources held by the client."""
