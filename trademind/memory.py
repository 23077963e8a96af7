"""
MemoryStrategy interface for the agent's conversation memory.

Conversation memory is a single plain-text blob carried from one model call to
the next. It is overwritten on each save (no history of earlier states) and is
held to a word ceiling: when a save exceeds it, the oldest words are dropped
and only the trailing ``max_words`` words are kept.

Two included implementations:
1. InMemoryConversationMemory - held in process memory
2. FileConversationMemory - UTF-8 text file, parent directory created on save
"""

import asyncio
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from trademind.logging_utils import log_deterministic, log_warning

DEFAULT_MAX_WORDS = 1000


@dataclass(frozen=True, slots=True)
class MemorySaveResult:
    """What was actually stored, and whether words had to be dropped."""

    content: str
    truncated: bool


def truncate_to_max_words(content: str, max_words: int) -> MemorySaveResult:
    """Keep the trailing ``max_words`` whitespace-separated words of ``content``.

    Content within the ceiling is returned unchanged (including its original
    spacing). Over the ceiling, the kept words are joined with single spaces.
    """

    if max_words <= 0:
        raise ValueError("max_words must be positive")

    words = content.split()
    if len(words) <= max_words:
        return MemorySaveResult(content=content, truncated=False)

    return MemorySaveResult(content=" ".join(words[-max_words:]), truncated=True)


class MemoryStrategy(ABC):
    """Abstract base class for conversation memory backends."""

    def __init__(self, max_words: int = DEFAULT_MAX_WORDS) -> None:
        if max_words <= 0:
            raise ValueError("max_words must be positive")
        self.max_words = max_words

    @abstractmethod
    async def load_memory(self) -> str:
        """Return the stored memory, or '' when nothing has been saved yet."""

    @abstractmethod
    async def _store(self, content: str) -> None:
        """Persist already-truncated content, replacing what was there."""

    async def save_memory(self, content: str) -> MemorySaveResult:
        """Truncate ``content`` to the word ceiling and persist it.

        Returns:
            MemorySaveResult with the stored text and the truncated flag
        """

        result = truncate_to_max_words(content, self.max_words)
        await self._store(result.content)
        if result.truncated:
            log_warning(
                f"[Memory] Truncated to the last {self.max_words} words "
                f"({len(content.split())} given)"
            )
        else:
            log_deterministic(f"[Memory] Saved {len(result.content.split())} words")
        return result

    def word_limit_info(self) -> str:
        """One-line description of the ceiling, for inclusion in prompts."""

        return f"Memory word limit: {self.max_words} words"


class InMemoryConversationMemory(MemoryStrategy):
    def __init__(self, max_words: int = DEFAULT_MAX_WORDS) -> None:
        super().__init__(max_words)
        self.content = ""

    async def load_memory(self) -> str:
        return self.content

    async def _store(self, content: str) -> None:
        self.content = content


class FileConversationMemory(MemoryStrategy):
    """Memory kept in a UTF-8 text file with no internal structure.

    Bytes are read and written as-is, so line endings survive a round trip.

    Writes go through a sibling ``.tmp`` file and an atomic rename, the same
    discipline the command ledger uses.
    """

    def __init__(self, path: Path | str = "data/memory.txt", max_words: int = DEFAULT_MAX_WORDS) -> None:
        super().__init__(max_words)
        self.path = Path(path)

    async def load_memory(self) -> str:
        if not self.path.exists():
            return ""
        raw = await asyncio.to_thread(self.path.read_bytes)
        return raw.decode("utf-8")

    async def _store(self, content: str) -> None:
        def _write() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                temp_path.write_bytes(content.encode("utf-8"))
                os.replace(temp_path, self.path)
            except OSError:
                temp_path.unlink(missing_ok=True)
                raise

        await asyncio.to_thread(_write)
