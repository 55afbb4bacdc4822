"""Chat session orchestrating ingestion, prompting, completion and presentation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from mindset.config import ChatSettings, get_settings
from mindset.conversation import ConversationEntry, ConversationLog, Role
from mindset.errors import (
    CompletionError,
    EmptyResponseError,
    IngestError,
    MindsetError,
    UnsupportedTypeError,
)
from mindset.ingest import (
    IngestEvent,
    IngestOutcome,
    IngestPipeline,
    IngestPipelineConfig,
    SourceDocument,
    ensure_pdf,
)
from mindset.llm import CompletionClient, create_completion_client
from mindset.presentation import TypingPresenter
from mindset.prompt_builder import MAX_CONTEXT_CHARS, build_prompt, fit_context
from mindset.telemetry import emit_exception, emit_ingest_event

LOGGER = logging.getLogger(__name__)

LARGE_FILE_MESSAGE = "Warning: This is a large file. Extraction or OCR may take a long time."
OCR_FALLBACK_MESSAGE = "No text layer found. Trying to read text from images (OCR)..."
BUSY_MESSAGE = "I am currently processing. Please wait."
NO_DOCUMENT_MESSAGE = "Sorry, I cannot answer questions because I have no extracted document text."
TRUNCATION_NOTICE = "Note: Document text was truncated to fit the AI context window."


class PipelineState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    OCR_FALLBACK = "ocr-fallback"
    READY = "ready"
    PROCESSING_QUESTION = "processing-question"
    ERROR = "error"


_BUSY_STATES = frozenset(
    {PipelineState.EXTRACTING, PipelineState.OCR_FALLBACK, PipelineState.PROCESSING_QUESTION}
)


@dataclass(slots=True)
class SessionSnapshot:
    state: PipelineState
    document_name: Optional[str]
    corpus_chars: int
    last_error: Optional[str]
    messages: List[ConversationEntry]


class ChatSession:
    """Single-document chat: one corpus, one pipeline state, one conversation log.

    All mutation happens on the event loop. Results of an ingestion or a
    question are dropped when another document was selected in the meantime.
    """

    def __init__(
        self,
        pipeline: IngestPipeline,
        completion_client: CompletionClient,
        presenter: Optional[TypingPresenter] = None,
        *,
        max_context_chars: int = MAX_CONTEXT_CHARS,
    ) -> None:
        self.pipeline = pipeline
        self.completion_client = completion_client
        self.presenter = presenter or TypingPresenter()
        self.max_context_chars = max_context_chars
        self.log = ConversationLog()
        self.last_error: Optional[str] = None
        self._state = PipelineState.IDLE
        self._corpus = ""
        self._document_name: Optional[str] = None
        self._generation = 0
        self._completion_pending = False

    @classmethod
    def from_settings(cls, settings: ChatSettings) -> "ChatSession":
        return cls(
            IngestPipeline(IngestPipelineConfig.from_settings(settings)),
            create_completion_client(settings),
            TypingPresenter.from_settings(settings),
            max_context_chars=settings.max_context_chars,
        )

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def corpus(self) -> str:
        return self._corpus

    @property
    def document_name(self) -> Optional[str]:
        return self._document_name

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            document_name=self._document_name,
            corpus_chars=len(self._corpus),
            last_error=self.last_error,
            messages=self.log.entries,
        )

    def _say(self, content: str, produced: Optional[List[ConversationEntry]] = None) -> None:
        entry = self.log.append(Role.BOT, content)
        if produced is not None:
            produced.append(entry)

    # Ingestion ------------------------------------------------------------------
    async def select_document(self, document: SourceDocument) -> PipelineState:
        """Replace the current document with ``document`` and extract its text."""

        try:
            ensure_pdf(document.file_name, document.media_type)
        except UnsupportedTypeError as error:
            LOGGER.info("Rejected %s: %s", document.file_name, error)
            self._say(error.user_message)
            return self._state

        self._generation += 1
        generation = self._generation
        self.log.reset()
        self._corpus = ""
        self._document_name = document.file_name
        self.last_error = None
        self._state = PipelineState.EXTRACTING

        def on_event(event: IngestEvent) -> None:
            if generation != self._generation:
                return
            if event is IngestEvent.LARGE_FILE:
                self._say(LARGE_FILE_MESSAGE)
            elif event is IngestEvent.EXTRACTING:
                self._say(f'PDF "{document.file_name}" selected. Attempting to extract text...')
            elif event is IngestEvent.OCR_FALLBACK:
                self._state = PipelineState.OCR_FALLBACK
                self._say(OCR_FALLBACK_MESSAGE)

        try:
            outcome = await self.pipeline.ingest(document, on_event=on_event)
        except Exception as error:
            if not self._is_current(generation, document):
                return self._state
            if not isinstance(error, IngestError):
                emit_exception(
                    module=f"{__name__}.ingest",
                    error=error,
                    document_id=document.document_id,
                )
                error = IngestError(f"Failed to process PDF file: {error}", cause=error)
            self._fail_ingestion(error)
            return self._state

        if self._is_current(generation, document):
            self._accept(document, outcome)
        return self._state

    def _is_current(self, generation: int, document: SourceDocument) -> bool:
        if generation == self._generation:
            return True
        emit_ingest_event(
            "ingest.stale",
            document_id=document.document_id,
            file_name=document.file_name,
        )
        return False

    def _accept(self, document: SourceDocument, outcome: IngestOutcome) -> None:
        self._corpus = outcome.text
        self._state = PipelineState.READY
        prefix = "OCR completed. " if outcome.ocr_performed else ""
        self._say(
            f'{prefix}Text extracted from "{document.file_name}". '
            "You can now ask me questions about its content."
        )

    def _fail_ingestion(self, error: IngestError) -> None:
        LOGGER.warning("Ingestion of %s failed: %s", self._document_name, error)
        self._corpus = ""
        self._state = PipelineState.ERROR
        self.last_error = str(error)
        self._say(error.user_message)

    # Questions ------------------------------------------------------------------
    async def ask(self, question: str) -> List[ConversationEntry]:
        """Answer ``question`` from the current corpus.

        Returns the entries this question added to the log, in order.
        """

        question = question.strip()
        if not question:
            return []

        produced: List[ConversationEntry] = [self.log.append(Role.USER, question)]
        if self._state in _BUSY_STATES or self._completion_pending:
            self._say(BUSY_MESSAGE, produced)
            return produced
        if self._state is not PipelineState.READY or not self._corpus:
            self._say(NO_DOCUMENT_MESSAGE, produced)
            return produced

        generation = self._generation
        self._state = PipelineState.PROCESSING_QUESTION
        try:
            _, truncated = fit_context(self._corpus, self.max_context_chars)
            if truncated:
                self._say(TRUNCATION_NOTICE, produced)
            prompt = build_prompt(self._corpus, question, self.max_context_chars)

            # One outstanding request per session, across document changes.
            self._completion_pending = True
            try:
                answer = await self.completion_client.complete(prompt)
            except Exception as error:
                if generation != self._generation:
                    return produced
                if not isinstance(error, CompletionError):
                    emit_exception(module=f"{__name__}.completion", error=error)
                    error = MindsetError(f"Unexpected error: {error}", cause=error)
                self._report(error, produced)
                return produced
            finally:
                self._completion_pending = False

            if generation != self._generation:
                return produced
            if not answer.strip():
                self._report(EmptyResponseError("Completion client returned a blank answer"), produced)
                return produced
            await self._reveal(answer, generation, produced)
        finally:
            if generation == self._generation and self._state is PipelineState.PROCESSING_QUESTION:
                self._state = PipelineState.READY
        return produced

    async def _reveal(self, answer: str, generation: int, produced: List[ConversationEntry]) -> None:
        entry = self.log.begin(Role.BOT)
        produced.append(entry)
        async for partial in self.presenter.present(answer):
            if generation != self._generation:
                return
            self.log.update(partial)
        if generation == self._generation:
            self.log.finalize()

    def _report(self, error: MindsetError, produced: List[ConversationEntry]) -> None:
        LOGGER.warning("Question failed: %s", error)
        self.last_error = str(error)
        self._say(error.user_message, produced)


_chat_session: Optional[ChatSession] = None


def get_chat_session() -> ChatSession:
    """FastAPI dependency returning the shared :class:`ChatSession` instance."""

    global _chat_session
    if _chat_session is None:
        _chat_session = ChatSession.from_settings(get_settings())
    return _chat_session
