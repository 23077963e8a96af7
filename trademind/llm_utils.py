"""Helper utilities for raw model calls and parse-error feedback."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

from mirascope import llm

from trademind.extraction import InvalidObjectError
from trademind.local_llm import LocalLLMError, build_chat_messages, call_ollama_chat
from trademind.logging_utils import log_error
from trademind.thinking import DEFAULT_END_MARKER, DEFAULT_START_MARKER

LLM_TIMEOUT_SECONDS = 120.0


@dataclass(slots=True)
class ParseFeedback:
    """Corrective guidance for a model whose JSON could not be decoded."""

    llm_text: str
    issue: str


def _truncate_preview(value: str, *, limit: int = 200) -> str:
    """Return a compact preview of the offending fragment."""

    text = value.replace("\n", " ")
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def inject_parse_feedback(error: InvalidObjectError) -> ParseFeedback:
    """Produce retry guidance from a located-but-invalid object.

    The feedback is appended to the original prompt (not replacing it) so the
    model keeps its full context while seeing what to fix.
    """

    instructions = [
        "Your previous JSON response could not be decoded as a decision.",
        "Produce a corrected response containing exactly one valid JSON object.",
        "Use double quotes, no trailing commas, no comments, and string values for every action argument.",
        f"Problem: {error.reason}",
        f"Fragment received: {_truncate_preview(error.fragment)}",
    ]
    return ParseFeedback(llm_text="\n".join(instructions), issue=error.reason)


def append_feedback(user_prompt: str, feedback: ParseFeedback | None) -> str:
    sections = [user_prompt.strip()]
    if feedback is not None:
        sections.append(feedback.llm_text)
    return "\n\n".join(section for section in sections if section)


async def call_llm_text(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    timeout: float = LLM_TIMEOUT_SECONDS,
    base_url: str | None = None,
    call_params: dict[str, Any] | None = None,
    thinking_start: str = DEFAULT_START_MARKER,
    thinking_end: str = DEFAULT_END_MARKER,
) -> str:
    """Invoke a model and return its raw completion text.

    Hosted providers go through mirascope; ``ollama`` goes through the local
    HTTP helper, which re-attaches separately returned reasoning between the
    thinking markers. Every call is bounded by ``timeout``. Provider failures are
    not retried here: failing over to another backend is the keeper's job.

    Raises:
        asyncio.TimeoutError: The call exceeded ``timeout``
        RuntimeError: The local provider failed
    """

    system_prompt = system_prompt.strip()
    user_prompt = user_prompt.strip()

    if llm_provider.lower() == "ollama":
        try:
            return await asyncio.wait_for(
                call_ollama_chat(
                    messages=build_chat_messages(system_prompt, user_prompt),
                    llm_model=llm_model,
                    base_url=base_url,
                    timeout=timeout,
                    options=call_params,
                    thinking_start=thinking_start,
                    thinking_end=thinking_end,
                ),
                timeout=timeout,
            )
        except LocalLLMError as exc:
            raise RuntimeError(f"Local LLM provider error ({llm_provider}): {exc}") from exc

    decorator_kwargs: dict[str, Any] = {"provider": llm_provider, "model": llm_model}
    if call_params:
        decorator_kwargs["call_params"] = call_params

    @llm.call(**decorator_kwargs)
    async def _invoke(prompt: str) -> str:
        return prompt

    remote_invoke: Callable[[str], Any] = _invoke
    combined = "\n\n".join(section for section in (system_prompt, user_prompt) if section)

    try:
        response = await asyncio.wait_for(remote_invoke(combined), timeout=timeout)
    except asyncio.TimeoutError:
        log_error(f"LLM call timed out after {int(timeout)}s ({llm_provider}/{llm_model}).")
        raise
    return response.content
