"""Word-by-word reveal of finished answers, simulating live generation."""
from __future__ import annotations

import asyncio
import random
import re
from typing import AsyncIterator, Awaitable, Callable, Optional

DelayStrategy = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

_TOKEN_RE = re.compile(r"\s*\S+")


def random_delay(low: float = 0.05, high: float = 0.10, *, rng: Optional[random.Random] = None) -> DelayStrategy:
    """Return a strategy drawing delays uniformly from ``[low, high)`` seconds."""

    if low < 0 or high < low:
        raise ValueError("expected 0 <= low <= high")
    source = rng or random.Random()

    def _delay() -> float:
        return low + source.random() * (high - low)

    return _delay


def zero_delay() -> DelayStrategy:
    return lambda: 0.0


class TypingPresenter:
    """Reveal a text token by token on a cooperative schedule."""

    def __init__(self, delay: Optional[DelayStrategy] = None, sleep: Sleeper = asyncio.sleep) -> None:
        self._delay = delay or random_delay()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings) -> "TypingPresenter":  # noqa: ANN001 - ChatSettings
        return cls(
            random_delay(
                settings.typing_delay_min_ms / 1000.0,
                settings.typing_delay_max_ms / 1000.0,
            )
        )

    async def present(self, text: str) -> AsyncIterator[str]:
        """Yield growing prefixes of ``text``, one whitespace-delimited token at a time.

        The last prefix equals ``text.rstrip()``. Nothing is yielded for text
        without any tokens.
        """

        matches = list(_TOKEN_RE.finditer(text))
        for index, match in enumerate(matches):
            if index:
                await self._sleep(self._delay())
            yield text[: match.end()]
