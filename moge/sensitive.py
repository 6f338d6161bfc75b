"""Sensitive-word detection and masking for user-entered text."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_WORDS = ["暴力", "血腥", "色情", "fuck", "操"]

# Batch size for add_words_async; the event loop runs between batches
WORD_BATCH_SIZE = 1000


@dataclass
class FilterResult:
    """Result of masking sensitive words."""

    text: str
    words: list[str] = field(default_factory=list)
    passed: bool = True


def load_words(path: Path) -> list[str]:
    """Load a word list file: one word per line, `#` starts a comment."""
    if not path.exists():
        raise FileNotFoundError(f"Word list not found: {path}")

    words = []
    for line in path.read_text(encoding="utf-8").splitlines():
        word = line.split("#", 1)[0].strip()
        if word:
            words.append(word)
    return words


class SensitiveFilter:
    """Case-insensitive matcher over a word list."""

    def __init__(self, words: list[str] | None = None) -> None:
        self._words: list[str] = []
        self._pattern: re.Pattern[str] | None = None
        self.add_words(DEFAULT_WORDS if words is None else words)

    @property
    def words(self) -> list[str]:
        return list(self._words)

    def add_words(self, words: list[str]) -> None:
        """Extend the word list and rebuild the matcher."""
        self._merge(words)
        self._rebuild()

    async def add_words_async(self, words: list[str], batch_size: int = WORD_BATCH_SIZE) -> None:
        """
        Extend the word list in batches, yielding to the event loop between them.

        The matcher is rebuilt once, after the last batch.
        """
        for start in range(0, len(words), batch_size):
            self._merge(words[start : start + batch_size])
            await asyncio.sleep(0)
        self._rebuild()

    def _merge(self, words: list[str]) -> None:
        known = {w.lower() for w in self._words}
        for word in words:
            word = word.strip()
            if word and word.lower() not in known:
                known.add(word.lower())
                self._words.append(word)

    def _rebuild(self) -> None:
        if not self._words:
            self._pattern = None
            return

        # Longest first so overlapping words mask the widest span
        alternation = "|".join(
            re.escape(w) for w in sorted(self._words, key=len, reverse=True)
        )
        self._pattern = re.compile(alternation, re.IGNORECASE)
        logger.debug("Sensitive word list has %d entries", len(self._words))

    def check(self, text: str) -> bool:
        """Return True if text contains any sensitive word."""
        if self._pattern is None:
            return False
        return self._pattern.search(text) is not None

    def replace(self, text: str) -> FilterResult:
        """Mask every character of each hit with `*`."""
        if self._pattern is None:
            return FilterResult(text=text)

        found: list[str] = []

        def mask(match: re.Match[str]) -> str:
            if match.group(0) not in found:
                found.append(match.group(0))
            return "*" * len(match.group(0))

        masked = self._pattern.sub(mask, text)
        return FilterResult(text=masked, words=found, passed=not found)

    async def check_async(self, text: str, chunk_size: int = 4096) -> bool:
        """
        Check large text without blocking the event loop.

        The text is scanned in overlapping chunks with a yield between
        chunks, so a word spanning a chunk boundary is still found.
        """
        if self._pattern is None:
            return False

        overlap = max(len(w) for w in self._words) - 1
        step = max(chunk_size, overlap + 1)

        for start in range(0, len(text), step):
            if self._pattern.search(text[start : start + step + overlap]):
                return True
            await asyncio.sleep(0)
        return False
