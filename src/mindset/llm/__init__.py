"""Completion clients for the hosted language model."""

from mindset.config import ChatSettings

from .base import CompletionClient
from .mock import MockCompletionClient
from .together import TogetherCompletionClient


def create_completion_client(settings: ChatSettings) -> CompletionClient:
    """Return the client selected by ``settings.llm_provider``."""

    if settings.uses_mock_llm:
        return MockCompletionClient()
    return TogetherCompletionClient(settings)


__all__ = [
    "CompletionClient",
    "MockCompletionClient",
    "TogetherCompletionClient",
    "create_completion_client",
]
