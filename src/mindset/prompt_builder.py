"""Utilities for constructing document question-answering prompts."""
from __future__ import annotations

from pathlib import Path

MAX_CONTEXT_CHARS = 120_000

_TEMPLATE_PATH = Path(__file__).resolve().parent / "prompts" / "document_qa.txt"


def _load_template(path: Path) -> str:
    """Read and trim the contents of a template file."""
    return path.read_text(encoding="utf-8").strip()


_PROMPT_TEMPLATE = _load_template(_TEMPLATE_PATH)


def fit_context(corpus: str, max_chars: int = MAX_CONTEXT_CHARS) -> tuple[str, bool]:
    """Return the leading ``max_chars`` characters of ``corpus`` and whether it was cut."""

    if max_chars < 0:
        raise ValueError("max_chars must not be negative")
    if len(corpus) > max_chars:
        return corpus[:max_chars], True
    return corpus, False


def build_prompt(corpus: str, question: str, max_chars: int = MAX_CONTEXT_CHARS) -> str:
    """Compose the prompt asking the model to answer ``question`` from ``corpus`` only.

    The result depends on the arguments alone: identical inputs always give a
    byte-identical prompt.
    """

    if corpus is None or question is None:
        raise ValueError("corpus and question must not be None")

    document, _ = fit_context(corpus, max_chars)
    return _PROMPT_TEMPLATE.format(document=document, question=question)


__all__ = ["MAX_CONTEXT_CHARS", "build_prompt", "fit_context"]
