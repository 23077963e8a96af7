"""Separate a model's reasoning block from its user-facing content.

Some models wrap their chain of thought in literal markers such as
``<thinking> ... </thinking>``. Only the first marker pair is consumed; any
later occurrences stay embedded in the returned content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_START_MARKER = "<thinking>"
DEFAULT_END_MARKER = "</thinking>"

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


@dataclass(frozen=True, slots=True)
class ThinkingSplit:
    """Result of splitting one completion."""

    has_thinking: bool
    thinking: str
    content: str


def split_thinking(
    text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> ThinkingSplit:
    """Split ``text`` into reasoning and content.

    Markers are literal and case-sensitive. When either marker is missing, or
    the first end marker does not come after the first start marker, the text
    is returned unchanged as content. Otherwise the trimmed inner text is the
    reasoning and the trimmed prefix and suffix are joined with one space,
    leaving out whichever side is empty.
    """

    if not start_marker or not end_marker:
        raise ValueError("Thinking markers must be non-empty strings")

    if not text:
        return ThinkingSplit(has_thinking=False, thinking="", content=text)

    start_idx = text.find(start_marker)
    end_idx = text.find(end_marker)
    inner_start = start_idx + len(start_marker)

    if start_idx == -1 or end_idx == -1 or end_idx < inner_start:
        return ThinkingSplit(has_thinking=False, thinking="", content=text)

    thinking = text[inner_start:end_idx].strip()
    before = text[:start_idx].strip()
    after = text[end_idx + len(end_marker):].strip()

    content = " ".join(part for part in (before, after) if part)
    return ThinkingSplit(has_thinking=True, thinking=thinking, content=content)


def extract_thinking(
    text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> tuple[bool, str]:
    """Return ``(has_thinking, thinking_text)``."""

    split = split_thinking(text, start_marker, end_marker)
    return split.has_thinking, split.thinking


def remove_thinking_tags(
    text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> str:
    return split_thinking(text, start_marker, end_marker).content


def is_thinking_response(
    text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> bool:
    """True when both markers occur somewhere in ``text`` (order not checked)."""

    return start_marker in text and end_marker in text


def format_thinking(
    thinking_text: str,
    start_marker: str = DEFAULT_START_MARKER,
    end_marker: str = DEFAULT_END_MARKER,
) -> str:
    """Wrap reasoning in markers, one per line. Empty reasoning yields ''."""

    if not thinking_text:
        return ""
    return f"{start_marker}\n{thinking_text.strip()}\n{end_marker}"


def clean_thinking_text(text: str) -> str:
    """Trim, normalize line endings, and collapse runs of blank lines."""

    if not text:
        return ""
    text = text.strip().replace("\r\n", "\n")
    return _EXCESS_NEWLINES.sub("\n\n", text)


__all__ = [
    "DEFAULT_START_MARKER",
    "DEFAULT_END_MARKER",
    "ThinkingSplit",
    "split_thinking",
    "extract_thinking",
    "remove_thinking_tags",
    "is_thinking_response",
    "format_thinking",
    "clean_thinking_text",
]
