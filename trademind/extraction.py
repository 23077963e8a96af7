"""Extract a structured Decision from noisy model output.

Models rarely return clean JSON. They wrap the object in prose or code fences,
use single quotes, leave trailing commas, paste raw line breaks into string
values, or escape underscores (``open\\_long``). This module isolates the first
balanced ``{...}`` span, repairs those artifacts with a single string-aware
scan, and validates the result against the Decision schema.

Two failure kinds are kept apart so callers can apply different policies:

* ``NoObjectFoundError`` - the text holds no object at all (re-prompt or drop).
* ``InvalidObjectError`` - an object was found but could not be decoded or
  validated (often worth a corrective retry).

Nothing here guesses intent: anything ambiguous fails closed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from trademind.schemas import Decision

DECISION_SECTIONS = ("thoughts", "action", "memory")

_CLOSERS = ",}]:"
_OPENERS = "\"'{"
_SCALAR_CHARS = "+-."
_FENCE = "```"


class ResultParseError(ValueError):
    """Base class for Decision extraction failures."""


class NoObjectFoundError(ResultParseError):
    """Raised when the text contains no balanced JSON-like object."""

    def __init__(self, text: str) -> None:
        self.text = text
        preview = text.strip().replace("\n", " ")
        if len(preview) > 80:
            preview = preview[:77] + "..."
        super().__init__(f"No JSON object located in model output: {preview!r}")


class InvalidObjectError(ResultParseError):
    """Raised when an object was located but is not a valid Decision."""

    def __init__(self, fragment: str, reason: str) -> None:
        self.fragment = fragment
        self.reason = reason
        super().__init__(f"Located JSON object is invalid: {reason}")


@dataclass(frozen=True, slots=True)
class ParseOutcome:
    """Value-style result of try_parse_result; exactly one field is set."""

    decision: Optional[Decision] = None
    error: Optional[ResultParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ============================================================================
# Scanning helpers
# ============================================================================


def _next_significant(text: str, index: int) -> int:
    """Index of the next character at or after ``index`` that is neither
    whitespace nor part of a comment."""

    while index < len(text):
        if text[index].isspace():
            index += 1
            continue
        comment_end = _comment_end(text, index)
        if comment_end is None:
            break
        index = comment_end
    return index


def _starts_on_new_line(text: str, index: int) -> bool:
    """Whether a line break separates ``index`` from the next significant character."""

    following = _next_significant(text, index)
    return following < len(text) and text[following] in _OPENERS and "\n" in text[index:following]


def _ends_value(text: str, index: int) -> bool:
    """Whether the character at ``index`` (outside a string) closes a value."""

    char = text[index]
    if char in "}]":
        return True
    if not (char.isalnum() or char in _SCALAR_CHARS):
        return False
    following = index + 1
    return following >= len(text) or not (text[following].isalnum() or text[following] in _SCALAR_CHARS)


def _closes_single_quote(text: str, index: int) -> bool:
    """Whether the ``'`` at ``index`` ends a single-quoted literal.

    Apostrophes inside a value (``'it's late'``) are followed by letters, while
    a real closing quote is followed by a structural character, the end, or a
    line break before the next key.
    """

    following = _next_significant(text, index + 1)
    if following >= len(text) or text[following] in _CLOSERS:
        return True
    return _starts_on_new_line(text, index + 1)


def _comment_end(text: str, index: int) -> Optional[int]:
    """If a comment starts at ``index``, return the index just past it."""

    if text.startswith("//", index):
        newline = text.find("\n", index)
        return len(text) if newline == -1 else newline
    if text.startswith("/*", index):
        close = text.find("*/", index + 2)
        return len(text) if close == -1 else close + 2
    return None


def _fence_end(text: str, index: int) -> Optional[int]:
    """If a code fence (with optional language tag) starts at ``index``, skip it."""

    if not text.startswith(_FENCE, index):
        return None
    index += len(_FENCE)
    while index < len(text) and (text[index].isalnum() or text[index] in "_-"):
        index += 1
    return index


# ============================================================================
# Public API
# ============================================================================


def locate_object(text: str) -> Optional[str]:
    """Return the first ``{`` through its balanced ``}``, or None.

    Braces inside string literals (double or single quoted) and comments do
    not count toward the balance.
    """

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    quote: Optional[str] = None
    escape = False
    index = start
    while index < len(text):
        char = text[index]

        if quote is not None:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == quote and (quote == '"' or _closes_single_quote(text, index)):
                quote = None
            index += 1
            continue

        comment_end = _comment_end(text, index)
        if comment_end is not None:
            index = comment_end
            continue

        if char in "\"'":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
        index += 1

    return None


def normalize_object(fragment: str) -> str:
    """Rewrite a located object span into strict JSON text.

    Repairs applied in one pass:
    - code-fence delimiters are dropped
    - ``//`` and ``/* */`` comments outside strings are dropped
    - single-quoted keys/values become double-quoted (embedded ``"`` escaped)
    - ``\\_`` becomes ``_`` and ``\\'`` becomes ``'``
    - raw CR, LF, TAB and other control characters inside strings are escaped
    - commas directly before ``}`` or ``]`` are removed, comments in between
      included
    - a missing comma is inserted when a value ends a line and the next line
      starts another key or object
    """

    out: list[str] = []
    quote: Optional[str] = None
    index = 0
    length = len(fragment)

    while index < length:
        char = fragment[index]

        if quote is None:
            skip_to = _fence_end(fragment, index)
            if skip_to is None:
                skip_to = _comment_end(fragment, index)
            if skip_to is not None:
                index = skip_to
                continue

            if char in "\"'":
                quote = char
                out.append('"')
            elif char == ",":
                following = _next_significant(fragment, index + 1)
                if following >= length or fragment[following] not in "}]":
                    out.append(char)
            else:
                out.append(char)
                if _ends_value(fragment, index) and _starts_on_new_line(fragment, index + 1):
                    out.append(",")
            index += 1
            continue

        # Inside a string literal
        if char == "\\":
            escaped = fragment[index + 1] if index + 1 < length else ""
            if escaped in ("_", "'"):
                out.append(escaped)
            elif escaped == "":
                out.append("\\\\")
            else:
                out.append(char + escaped)
            index += 2
            continue

        if char == quote and (quote == '"' or _closes_single_quote(fragment, index)):
            out.append('"')
            quote = None
            if _starts_on_new_line(fragment, index + 1):
                out.append(",")
        elif char == '"':
            out.append('\\"')
        elif char == "\r":
            if fragment.startswith("\r\n", index):
                out.append("\\n")
                index += 1
            else:
                out.append("\\r")
        elif char == "\n":
            out.append("\\n")
        elif char == "\t":
            out.append("\\t")
        elif ord(char) < 0x20:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(char)
        index += 1

    return "".join(out)


def parse_result(text: str) -> Decision:
    """Decode the Decision embedded in ``text``.

    Raises:
        NoObjectFoundError: No balanced object exists in the text.
        InvalidObjectError: The object could not be decoded, holds none of the
            decision sections, or fails schema validation.
    """

    fragment = locate_object(text)
    if fragment is None:
        raise NoObjectFoundError(text)

    normalized = normalize_object(fragment)
    try:
        payload = json.loads(normalized)
    except json.JSONDecodeError as exc:
        raise InvalidObjectError(normalized, f"JSON decode failed: {exc}") from exc

    if not isinstance(payload, dict):
        raise InvalidObjectError(normalized, "top-level value is not an object")

    if not any(section in payload for section in DECISION_SECTIONS):
        raise InvalidObjectError(
            normalized,
            f"object has none of the sections {', '.join(DECISION_SECTIONS)}",
        )

    try:
        return Decision.model_validate(
            {section: payload.get(section) for section in DECISION_SECTIONS}
        )
    except ValidationError as exc:
        issues = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', [])) or 'root'}: {err.get('msg')}"
            for err in exc.errors(include_url=False)
        )
        raise InvalidObjectError(normalized, f"schema validation failed: {issues}") from exc


def try_parse_result(text: str) -> ParseOutcome:
    """Like parse_result, but returns the typed error instead of raising it."""

    try:
        return ParseOutcome(decision=parse_result(text))
    except ResultParseError as exc:
        return ParseOutcome(error=exc)


__all__ = [
    "DECISION_SECTIONS",
    "ResultParseError",
    "NoObjectFoundError",
    "InvalidObjectError",
    "ParseOutcome",
    "locate_object",
    "normalize_object",
    "parse_result",
    "try_parse_result",
]
