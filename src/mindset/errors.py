"""Error taxonomy for document ingestion and completion requests."""
from __future__ import annotations


class MindsetError(RuntimeError):
    """Base class for failures that are reported back into the conversation."""

    user_message = "Sorry, an unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, *, cause: Exception | None = None) -> None:
        super().__init__(message or self.user_message)
        self.__cause__ = cause


class IngestError(MindsetError):
    """Raised when a document cannot be turned into a text corpus."""

    user_message = "Sorry, I encountered an error processing that PDF. Please try again later."


class UnsupportedTypeError(IngestError):
    """Raised when the selected file is not a PDF."""

    user_message = "Please upload a PDF file."


class ExtractionFailedError(IngestError):
    """Raised when reading the PDF text layer fails."""


class OcrFailedError(IngestError):
    """Raised when OCR fails on any page."""


class NoExtractableTextError(IngestError):
    """Raised when neither the text layer nor OCR yields any text."""

    user_message = "Sorry, I was unable to extract any readable text from that PDF."


class CompletionError(MindsetError):
    """Raised when the language model does not return a usable answer."""

    user_message = "Sorry, I encountered an error. Please try again."


class AuthError(CompletionError):
    """The completion endpoint rejected (or never received) the credential."""

    user_message = "Configuration error: My AI access is not set up correctly."


class ContextTooLargeError(CompletionError):
    """The prompt exceeded the model's length or token limits."""

    user_message = "Sorry, the document plus your question is too large for me to process at once."


class RateLimitedError(CompletionError):
    """The completion endpoint throttled the request."""


class ServerError(CompletionError):
    """The completion endpoint answered with an unexpected status or body."""

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code


class NetworkError(CompletionError):
    """No response was received from the completion endpoint."""

    user_message = (
        "Sorry, I could not reach the AI service. Please check your connection and try again."
    )


class EmptyResponseError(CompletionError):
    """The completion succeeded but carried no content."""

    user_message = "Sorry, I received an empty response from the AI. Could you please try again?"


__all__ = [
    "AuthError",
    "CompletionError",
    "ContextTooLargeError",
    "EmptyResponseError",
    "ExtractionFailedError",
    "IngestError",
    "MindsetError",
    "NetworkError",
    "NoExtractableTextError",
    "OcrFailedError",
    "RateLimitedError",
    "ServerError",
    "UnsupportedTypeError",
]
