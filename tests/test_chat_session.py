"""Conversation-level behaviour of the chat session."""
from __future__ import annotations

import asyncio
from typing import Dict, List, Tuple

import httpx
import pytest

from conftest import FakeOcrEngine, make_pipeline, make_session
from mindset.config import ChatSettings
from mindset.conversation import WELCOME_MESSAGE, Role
from mindset.errors import AuthError, NoExtractableTextError
from mindset.ingest import IngestEvent, IngestOutcome, IngestPipelineConfig, SourceDocument
from mindset.llm import MockCompletionClient, TogetherCompletionClient
from mindset.services.chat import (
    BUSY_MESSAGE,
    LARGE_FILE_MESSAGE,
    NO_DOCUMENT_MESSAGE,
    OCR_FALLBACK_MESSAGE,
    TRUNCATION_NOTICE,
    ChatSession,
    PipelineState,
)


def _pdf(name: str = "sky.pdf", data: bytes = b"%PDF-1.7") -> SourceDocument:
    return SourceDocument(file_name=name, media_type="application/pdf", data=data)


def _contents(session: ChatSession) -> List[str]:
    return [entry.content for entry in session.log.entries]


class GatedPipeline:
    """Pipeline whose ingestion of selected files waits until released."""

    def __init__(self, corpora: Dict[str, str], gated: Tuple[str, ...] = ()) -> None:
        self.corpora = corpora
        self.gates = {name: asyncio.Event() for name in gated}

    async def ingest(self, document: SourceDocument, on_event=None) -> IngestOutcome:  # noqa: ANN001
        if on_event is not None:
            on_event(IngestEvent.EXTRACTING)
        gate = self.gates.get(document.file_name)
        if gate is not None:
            await gate.wait()
        return IngestOutcome(
            text=self.corpora[document.file_name],
            page_count=1,
            ocr_performed=False,
            large_file=False,
            duration_seconds=0.0,
        )


class GatedClient(MockCompletionClient):
    def __init__(self, answer: str) -> None:
        super().__init__(answer)
        self.release = asyncio.Event()

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await self.release.wait()
        return self.answer or ""


def test_text_layer_document_answers_question() -> None:
    client = MockCompletionClient("Blue.")
    session = make_session(make_pipeline(["The sky is blue."]), client)

    async def scenario() -> list:
        await session.select_document(_pdf())
        return await session.ask("What color is the sky?")

    added = asyncio.run(scenario())

    assert session.state is PipelineState.READY
    assert session.corpus == "The sky is blue."
    assert client.call_count == 1
    assert "The sky is blue." in client.prompts[0]
    assert "What color is the sky?" in client.prompts[0]
    assert [entry.role for entry in added] == [Role.USER, Role.BOT]
    assert added[-1].content == "Blue."
    assert added[-1].id is not None
    assert _contents(session) == [
        WELCOME_MESSAGE,
        'PDF "sky.pdf" selected. Attempting to extract text...',
        'Text extracted from "sky.pdf". You can now ask me questions about its content.',
        "What color is the sky?",
        "Blue.",
    ]


def test_empty_pdf_reports_no_extractable_text() -> None:
    client = MockCompletionClient("unused")
    session = make_session(make_pipeline([], page_count=0), client)

    async def scenario() -> None:
        await session.select_document(_pdf("empty.pdf", b""))
        await session.ask("Anything?")

    asyncio.run(scenario())

    assert session.state is PipelineState.ERROR
    assert session.corpus == ""
    assert client.call_count == 0
    contents = _contents(session)
    assert OCR_FALLBACK_MESSAGE in contents
    assert contents.count(NoExtractableTextError.user_message) == 1
    assert contents[-1] == NO_DOCUMENT_MESSAGE


def test_scanned_document_is_read_through_ocr() -> None:
    engine = FakeOcrEngine({1: "Scanned words", 2: "more words"})
    session = make_session(make_pipeline(["", ""], ocr_engine=engine))

    state = asyncio.run(session.select_document(_pdf("scan.pdf")))

    assert state is PipelineState.READY
    assert session.corpus == "Scanned words more words"
    assert _contents(session)[-2:] == [
        OCR_FALLBACK_MESSAGE,
        'OCR completed. Text extracted from "scan.pdf". You can now ask me questions about its content.',
    ]


def test_large_file_warning_precedes_selection_message() -> None:
    pipeline = make_pipeline(["text"], config=IngestPipelineConfig(large_file_bytes=4))
    session = make_session(pipeline)

    asyncio.run(session.select_document(_pdf("big.pdf", b"%PDF-1.7 and more")))

    contents = _contents(session)
    assert contents[1] == LARGE_FILE_MESSAGE
    assert contents[2] == 'PDF "big.pdf" selected. Attempting to extract text...'


def test_newer_document_wins_over_slow_ingestion() -> None:
    pipeline = GatedPipeline({"a.pdf": "Alpha text", "b.pdf": "Beta text"}, gated=("a.pdf",))
    session = make_session(pipeline)

    async def scenario() -> None:
        slow = asyncio.create_task(session.select_document(_pdf("a.pdf")))
        await asyncio.sleep(0)
        await session.select_document(_pdf("b.pdf"))
        pipeline.gates["a.pdf"].set()
        await slow

    asyncio.run(scenario())

    assert session.state is PipelineState.READY
    assert session.corpus == "Beta text"
    assert session.document_name == "b.pdf"
    assert not any("a.pdf" in content for content in _contents(session))


def test_question_asked_during_extraction_gets_busy_message() -> None:
    pipeline = GatedPipeline({"a.pdf": "Alpha text"}, gated=("a.pdf",))
    client = MockCompletionClient("unused")
    session = make_session(pipeline, client)

    async def scenario() -> list:
        task = asyncio.create_task(session.select_document(_pdf("a.pdf")))
        await asyncio.sleep(0)
        added = await session.ask("Too early?")
        pipeline.gates["a.pdf"].set()
        await task
        return added

    added = asyncio.run(scenario())

    assert [entry.content for entry in added] == ["Too early?", BUSY_MESSAGE]
    assert client.call_count == 0
    assert session.state is PipelineState.READY


def test_answer_for_replaced_document_is_dropped() -> None:
    pipeline = GatedPipeline({"a.pdf": "Alpha text", "b.pdf": "Beta text"})
    client = GatedClient("Old answer")
    session = make_session(pipeline, client)

    async def scenario() -> None:
        await session.select_document(_pdf("a.pdf"))
        question = asyncio.create_task(session.ask("About alpha?"))
        await asyncio.sleep(0)
        await session.select_document(_pdf("b.pdf"))
        client.release.set()
        await question

    asyncio.run(scenario())

    assert session.corpus == "Beta text"
    assert session.state is PipelineState.READY
    contents = _contents(session)
    assert "Old answer" not in contents
    assert "About alpha?" not in contents


def test_second_question_while_first_is_outstanding_gets_busy_message() -> None:
    client = GatedClient("First answer.")
    session = make_session(make_pipeline(["The sky is blue."]), client)

    async def scenario() -> list:
        await session.select_document(_pdf())
        first = asyncio.create_task(session.ask("First?"))
        await asyncio.sleep(0)
        second = await session.ask("Second?")
        client.release.set()
        await first
        return second

    second = asyncio.run(scenario())

    assert [entry.content for entry in second] == ["Second?", BUSY_MESSAGE]
    assert client.call_count == 1
    assert _contents(session)[-1] == "First answer."
    assert session.state is PipelineState.READY


def test_new_document_does_not_allow_a_second_outstanding_request() -> None:
    pipeline = GatedPipeline({"a.pdf": "Alpha text", "b.pdf": "Beta text"})
    client = GatedClient("Late answer.")
    session = make_session(pipeline, client)

    async def scenario() -> tuple:
        await session.select_document(_pdf("a.pdf"))
        first = asyncio.create_task(session.ask("About alpha?"))
        await asyncio.sleep(0)
        await session.select_document(_pdf("b.pdf"))
        blocked = await session.ask("About beta?")
        client.release.set()
        await first
        retried = await session.ask("About beta, again?")
        return blocked, retried

    blocked, retried = asyncio.run(scenario())

    assert [entry.content for entry in blocked] == ["About beta?", BUSY_MESSAGE]
    assert client.call_count == 2
    assert "Beta text" in client.prompts[1]
    assert retried[-1].content == "Late answer."
    assert "About alpha?" not in _contents(session)


def test_unexpected_completion_failure_uses_generic_message() -> None:
    class BrokenClient(MockCompletionClient):
        async def complete(self, prompt: str) -> str:
            raise ValueError("socket exploded")

    session = make_session(make_pipeline(["The sky is blue."]), BrokenClient())

    async def scenario() -> list:
        await session.select_document(_pdf())
        return await session.ask("What color is the sky?")

    added = asyncio.run(scenario())

    assert added[-1].content == "Sorry, an unexpected error occurred. Please try again."
    assert "socket exploded" in (session.last_error or "")
    assert session.state is PipelineState.READY


def test_missing_credential_keeps_document_ready() -> None:
    client = MockCompletionClient(error=AuthError("TOGETHER_API_KEY is not configured"))
    session = make_session(make_pipeline(["The sky is blue."]), client)

    async def scenario() -> list:
        await session.select_document(_pdf())
        return await session.ask("What color is the sky?")

    added = asyncio.run(scenario())

    assert added[-1].content == AuthError.user_message
    assert session.state is PipelineState.READY
    assert session.corpus == "The sky is blue."
    assert session.last_error == "TOGETHER_API_KEY is not configured"


def test_rejected_credential_allows_asking_again() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(401, json={"error": {"message": "invalid api key"}})
    )
    client = TogetherCompletionClient(
        ChatSettings(api_key="wrong"),
        http_client=httpx.AsyncClient(transport=transport),
    )
    session = make_session(make_pipeline(["The sky is blue."]), client)

    async def scenario() -> tuple:
        await session.select_document(_pdf())
        first = await session.ask("What color is the sky?")
        second = await session.ask("And the grass?")
        return first, second

    first, second = asyncio.run(scenario())

    assert first[-1].content == "Configuration error: My AI access is not set up correctly."
    assert second[-1].content == first[-1].content
    assert session.state is PipelineState.READY
    assert session.corpus == "The sky is blue."


def test_non_pdf_is_rejected_without_touching_session() -> None:
    session = make_session(make_pipeline(["The sky is blue."]))
    asyncio.run(session.select_document(_pdf()))
    before = _contents(session)

    state = asyncio.run(
        session.select_document(SourceDocument("notes.txt", "text/plain", b"plain text"))
    )

    assert state is PipelineState.READY
    assert session.corpus == "The sky is blue."
    assert session.document_name == "sky.pdf"
    assert _contents(session) == before + ["Please upload a PDF file."]


def test_question_without_document() -> None:
    client = MockCompletionClient("unused")
    session = make_session(make_pipeline([]), client)

    added = asyncio.run(session.ask("Hello?"))

    assert [entry.content for entry in added] == ["Hello?", NO_DOCUMENT_MESSAGE]
    assert client.call_count == 0
    assert session.state is PipelineState.IDLE


def test_blank_question_is_ignored() -> None:
    session = make_session(make_pipeline([]))

    assert asyncio.run(session.ask("   ")) == []
    assert _contents(session) == [WELCOME_MESSAGE]


def test_long_corpus_is_truncated_with_notice() -> None:
    client = MockCompletionClient("Short.")
    session = make_session(make_pipeline(["a" * 40 + "b" * 40]), client, max_context_chars=40)

    async def scenario() -> list:
        await session.select_document(_pdf())
        return await session.ask("Letters?")

    added = asyncio.run(scenario())

    assert [entry.content for entry in added] == ["Letters?", TRUNCATION_NOTICE, "Short."]
    assert "b" not in client.prompts[0].split("'''")[1]


@pytest.mark.parametrize("answer", ("", "   "))
def test_blank_answer_is_reported(answer: str) -> None:
    session = make_session(make_pipeline(["The sky is blue."]), MockCompletionClient(answer))

    async def scenario() -> list:
        await session.select_document(_pdf())
        return await session.ask("What color is the sky?")

    added = asyncio.run(scenario())

    assert added[-1].content == (
        "Sorry, I received an empty response from the AI. Could you please try again?"
    )
    assert session.state is PipelineState.READY


def test_unexpected_ingest_failure_is_wrapped() -> None:
    class BrokenPipeline:
        async def ingest(self, document, on_event=None):  # noqa: ANN001
            raise ValueError("unexpected")

    session = make_session(BrokenPipeline())  # type: ignore[arg-type]

    state = asyncio.run(session.select_document(_pdf()))

    assert state is PipelineState.ERROR
    assert "unexpected" in (session.last_error or "")
    assert _contents(session)[-1] == (
        "Sorry, I encountered an error processing that PDF. Please try again later."
    )


def test_snapshot_reflects_session() -> None:
    session = make_session(make_pipeline(["The sky is blue."]))
    asyncio.run(session.select_document(_pdf()))

    snapshot = session.snapshot()

    assert snapshot.state is PipelineState.READY
    assert snapshot.document_name == "sky.pdf"
    assert snapshot.corpus_chars == len("The sky is blue.")
    assert snapshot.last_error is None
    assert len(snapshot.messages) == 3
