"""Calls to models served locally by Ollama.

Reasoning models on recent Ollama builds return their chain of thought in a
separate ``message.thinking`` field. It is folded back into the completion
between thinking markers so every backend hands the agent the same shape of
text.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Mapping, Sequence
from urllib import error, request

from trademind.thinking import DEFAULT_END_MARKER, DEFAULT_START_MARKER, format_thinking

DEFAULT_OLLAMA_BASE_URL = "http://127.0.0.1:11434"
OLLAMA_CHAT_PATH = "/api/chat"


class LocalLLMError(RuntimeError):
    """Raised when the local model server cannot produce a completion."""


def _post_chat(payload: Mapping[str, Any], base_url: str, timeout: float) -> dict[str, Any]:
    """POST ``payload`` to the chat endpoint and return the decoded body."""

    endpoint = base_url.rstrip("/") + OLLAMA_CHAT_PATH
    http_request = request.Request(
        endpoint,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with request.urlopen(http_request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        raise LocalLLMError(f"Ollama returned HTTP {exc.code}: {detail or exc.reason}") from exc
    except error.URLError as exc:
        raise LocalLLMError(f"Ollama unreachable at {endpoint}: {exc.reason}") from exc

    try:
        decoded = json.loads(body)
    except json.JSONDecodeError as exc:
        raise LocalLLMError("Ollama answered with a body that is not JSON") from exc
    if not isinstance(decoded, dict):
        raise LocalLLMError("Ollama answered with an unexpected JSON shape")
    return decoded


def _completion_text(body: Mapping[str, Any], start_marker: str, end_marker: str) -> str:
    """Assistant text from a chat response, with any separate reasoning re-attached."""

    if body.get("error"):
        raise LocalLLMError(f"Ollama reported an error: {body['error']}")

    message = body.get("message") or {}
    content = (message.get("content") or "").strip()
    if not content:
        raise LocalLLMError("Ollama response did not include assistant content")

    reasoning = format_thinking((message.get("thinking") or "").strip(), start_marker, end_marker)
    return f"{reasoning}\n{content}" if reasoning else content


def build_chat_messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
    """Chat turns for one decision: an optional system turn, then the user turn."""

    if not user_prompt.strip():
        raise LocalLLMError("Refusing to call Ollama without a user prompt")

    turns = [{"role": "user", "content": user_prompt.strip()}]
    if system_prompt.strip():
        turns.insert(0, {"role": "system", "content": system_prompt.strip()})
    return turns


async def call_ollama_chat(
    *,
    messages: Sequence[Mapping[str, str]],
    llm_model: str,
    base_url: str | None = None,
    timeout: float = 120.0,
    options: Mapping[str, Any] | None = None,
    thinking_start: str = DEFAULT_START_MARKER,
    thinking_end: str = DEFAULT_END_MARKER,
) -> str:
    """Run one non-streaming chat completion and return the raw text.

    The blocking HTTP call runs on a worker thread. Splitting reasoning and
    extracting the decision are left to the calling agent.
    """

    server = base_url or os.getenv("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL
    payload: dict[str, Any] = {
        "model": llm_model,
        "messages": [dict(turn) for turn in messages],
        "stream": False,
    }
    if options:
        payload["options"] = dict(options)

    body = await asyncio.to_thread(_post_chat, payload, server.rstrip("/"), timeout)
    return _completion_text(body, thinking_start, thinking_end)


__all__ = ["DEFAULT_OLLAMA_BASE_URL", "LocalLLMError", "build_chat_messages", "call_ollama_chat"]
