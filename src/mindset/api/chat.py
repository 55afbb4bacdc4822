"""API router exposing document selection and question endpoints for the chat session."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from mindset.conversation import ConversationEntry
from mindset.ingest import SourceDocument
from mindset.services.chat import ChatSession, SessionSnapshot, get_chat_session

router = APIRouter(prefix="/chat", tags=["chat"])


class MessageModel(BaseModel):
    """Single conversation entry as shown to the user."""

    id: Optional[str]
    role: str
    content: str
    timestamp: datetime
    in_progress: bool


class SessionStateResponse(BaseModel):
    """Pipeline state of the chat session."""

    state: str
    document_name: Optional[str]
    corpus_chars: int
    last_error: Optional[str]


class SessionResponse(SessionStateResponse):
    messages: list[MessageModel]


class QuestionRequest(BaseModel):
    """Request body accepted by the question endpoint."""

    question: str = Field(..., min_length=1, description="Question about the selected document.")


class QuestionResponse(BaseModel):
    """Entries added by the question, plus the resulting session state."""

    added: list[MessageModel]
    session: SessionStateResponse


def _serialise_entry(entry: ConversationEntry) -> MessageModel:
    return MessageModel(
        id=entry.id,
        role=entry.role.value,
        content=entry.content,
        timestamp=entry.timestamp,
        in_progress=entry.in_progress,
    )


def _serialise_state(snapshot: SessionSnapshot) -> SessionStateResponse:
    return SessionStateResponse(
        state=snapshot.state.value,
        document_name=snapshot.document_name,
        corpus_chars=snapshot.corpus_chars,
        last_error=snapshot.last_error,
    )


def _serialise_session(snapshot: SessionSnapshot) -> SessionResponse:
    return SessionResponse(
        state=snapshot.state.value,
        document_name=snapshot.document_name,
        corpus_chars=snapshot.corpus_chars,
        last_error=snapshot.last_error,
        messages=[_serialise_entry(entry) for entry in snapshot.messages],
    )


@router.post("/document", response_model=SessionResponse)
async def select_document(
    file: UploadFile = File(...),
    session: ChatSession = Depends(get_chat_session),
) -> SessionResponse:
    """Replace the session's document with the uploaded PDF and extract its text."""

    data = await file.read()
    document = SourceDocument(
        file_name=file.filename or "document.pdf",
        media_type=file.content_type,
        data=data,
    )
    await session.select_document(document)
    return _serialise_session(session.snapshot())


@router.post("/questions", response_model=QuestionResponse)
async def ask_question(
    request: QuestionRequest,
    session: ChatSession = Depends(get_chat_session),
) -> QuestionResponse:
    """Ask a question about the current document."""

    if not request.question.strip():
        raise HTTPException(status_code=422, detail="Question must not be empty")

    added = await session.ask(request.question)
    return QuestionResponse(
        added=[_serialise_entry(entry) for entry in added],
        session=_serialise_state(session.snapshot()),
    )


@router.get("/messages", response_model=list[MessageModel])
def list_messages(session: ChatSession = Depends(get_chat_session)) -> list[MessageModel]:
    """Return the conversation log, including an answer that is still being revealed."""

    return [_serialise_entry(entry) for entry in session.log.entries]


@router.get("/state", response_model=SessionStateResponse)
def session_state(session: ChatSession = Depends(get_chat_session)) -> SessionStateResponse:
    return _serialise_state(session.snapshot())
