"""In-memory conversation log shown to the user."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

WELCOME_MESSAGE = "Hello! Upload a PDF document, and I can answer questions about its content."


class Role(str, Enum):
    USER = "user"
    BOT = "bot"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class ConversationEntry:
    """A single message; ``id`` stays ``None`` while the entry is still being typed."""

    role: Role
    content: str
    id: Optional[str] = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)

    @property
    def in_progress(self) -> bool:
        return self.id is None


class ConversationLog:
    """Ordered, append-only list of entries with at most one in-progress entry."""

    def __init__(self, welcome: str = WELCOME_MESSAGE) -> None:
        self._welcome = welcome
        self._entries: List[ConversationEntry] = []
        self._pending: Optional[ConversationEntry] = None
        self.reset()

    def reset(self) -> None:
        """Drop everything except a fresh welcome entry."""

        self._entries = [ConversationEntry(role=Role.BOT, content=self._welcome, id="welcome")]
        self._pending = None

    @property
    def entries(self) -> List[ConversationEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, role: Role, content: str) -> ConversationEntry:
        entry = ConversationEntry(role=role, content=content)
        self._entries.append(entry)
        return entry

    def begin(self, role: Role = Role.BOT) -> ConversationEntry:
        """Open the in-progress entry that :meth:`update` will overwrite."""

        if self._pending is not None:
            raise RuntimeError("an in-progress entry is already open")
        entry = ConversationEntry(role=role, content="", id=None)
        self._entries.append(entry)
        self._pending = entry
        return entry

    def update(self, content: str) -> None:
        if self._pending is None:
            raise RuntimeError("no in-progress entry to update")
        self._pending.content = content

    def finalize(self) -> ConversationEntry:
        """Assign the permanent id to the in-progress entry and close it."""

        if self._pending is None:
            raise RuntimeError("no in-progress entry to finalize")
        entry = self._pending
        entry.id = _new_id()
        self._pending = None
        return entry
