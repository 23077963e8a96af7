"""Agent backed by a single language model."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from trademind.config import Config
from trademind.extraction import InvalidObjectError, parse_result
from trademind.llm_utils import (
    LLM_TIMEOUT_SECONDS,
    ParseFeedback,
    append_feedback,
    call_llm_text,
    inject_parse_feedback,
)
from trademind.logging_utils import debug_llm_enabled, log_agent, log_error
from trademind.prompts import DEFAULT_PROMPTS, HUMAN_LABEL, PromptTemplate, render_prompt
from trademind.schemas import ActionDescriptor, Decision, Message
from trademind.thinking import DEFAULT_END_MARKER, DEFAULT_START_MARKER, split_thinking

from .base import Session


class LLMAgent:
    """Turns a session transcript into a Decision with one provider/model.

    Each call renders the prompt, asks the model, splits off the reasoning
    block, and extracts the Decision from what remains. A located-but-invalid
    object is retried with corrective feedback up to ``max_attempts`` times;
    output with no object at all, timeouts, and provider errors propagate at
    once so a keeper can fail over.

    On success the exchanged turns are appended to the session transcript.

    Example:
        agent = LLMAgent(
            name="claude",
            llm_provider="anthropic",
            llm_model="claude-sonnet-4-5",
            background="You trade BTCUSDT perpetuals.",
        )
    """

    def __init__(
        self,
        *,
        name: str,
        llm_provider: str,
        llm_model: str,
        background: str = "",
        template: Optional[PromptTemplate] = None,
        max_attempts: int = 3,
        max_context_length: Optional[int] = None,
        timeout: float = LLM_TIMEOUT_SECONDS,
        thinking_start: str = DEFAULT_START_MARKER,
        thinking_end: str = DEFAULT_END_MARKER,
        base_url: Optional[str] = None,
        call_params: Optional[Dict[str, Any]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._name = name
        self.llm_provider = llm_provider
        self.llm_model = llm_model
        self.background = background
        self.template = template or DEFAULT_PROMPTS.get("decision")
        self.max_attempts = max_attempts
        self.max_context_length = max_context_length
        self.timeout = timeout
        self.thinking_start = thinking_start
        self.thinking_end = thinking_end
        self.base_url = base_url
        self.call_params = call_params
        self.actions: List[ActionDescriptor] = []

    @classmethod
    def from_config(cls, name: str, **overrides: Any) -> "LLMAgent":
        """Build an agent from the environment-driven Config defaults."""

        settings: Dict[str, Any] = {
            "llm_provider": Config.LLM_PROVIDER,
            "llm_model": Config.LLM_MODEL,
            "timeout": Config.LLM_TIMEOUT_SECONDS,
            "thinking_start": Config.THINKING_START_MARKER,
            "thinking_end": Config.THINKING_END_MARKER,
            "base_url": Config.OLLAMA_BASE_URL,
        }
        settings.update(overrides)
        return cls(name=name, **settings)

    @property
    def name(self) -> str:
        return self._name

    def register_actions(self, actions: Sequence[ActionDescriptor]) -> None:
        """Add commands to the catalog shown to the model (later names win)."""

        by_name = {action.name: action for action in self.actions}
        for action in actions:
            by_name[action.name] = action
        self.actions = list(by_name.values())

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def gen_actions(self, session: Session, messages: Sequence[Message]) -> Decision:
        rendered = render_prompt(
            self.template,
            background=self.background,
            chats=session.get_chats(),
            messages=messages,
            actions=self.actions,
            thinking_start=self.thinking_start,
            thinking_end=self.thinking_end,
            max_context_length=self.max_context_length,
        )

        debug_llm = debug_llm_enabled()
        if debug_llm:
            print(f"\n{'='*80}")
            print(f"[LLM AGENT] {self.name} ({self.llm_provider}/{self.llm_model}) session {session.id}")
            print(f"{'='*80}")
            print("\n[SYSTEM PROMPT]")
            print(f"{'-'*80}")
            print(rendered.system)
            print("\n[USER PROMPT]")
            print(f"{'-'*80}")
            print(rendered.user)
            print(f"{'='*80}\n")

        feedback: Optional[ParseFeedback] = None
        attempt_number = 0
        content = ""
        decision: Optional[Decision] = None

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(InvalidObjectError),
            stop=stop_after_attempt(self.max_attempts),
            reraise=True,
        ):
            with attempt:
                attempt_number += 1
                if attempt_number > 1:
                    log_agent(
                        f"[{self.name}] Retry {attempt_number}/{self.max_attempts}; "
                        "asking the model to correct its JSON."
                    )
                raw_text = await call_llm_text(
                    system_prompt=rendered.system,
                    user_prompt=append_feedback(rendered.user, feedback),
                    llm_provider=self.llm_provider,
                    llm_model=self.llm_model,
                    timeout=self.timeout,
                    base_url=self.base_url,
                    call_params=self.call_params,
                    thinking_start=self.thinking_start,
                    thinking_end=self.thinking_end,
                )

                if debug_llm:
                    print(f"\n[LLM RESPONSE] {self.name}")
                    print(f"{'-'*80}")
                    print(raw_text)
                    print(f"{'='*80}\n")

                split = split_thinking(raw_text, self.thinking_start, self.thinking_end)
                content = split.content
                try:
                    decision = parse_result(content)
                except InvalidObjectError as exc:
                    feedback = inject_parse_feedback(exc)
                    log_error(
                        f"[{self.name}] Decision JSON invalid "
                        f"(attempt {attempt_number}/{self.max_attempts}): {exc.reason}"
                    )
                    raise

                decision = decision.model_copy(
                    update={
                        "reasoning": split.thinking if split.has_thinking else None,
                        "model": self.name,
                    }
                )

        if decision is None:  # pragma: no cover - AsyncRetrying either returns or raises
            raise RuntimeError("LLM retry mechanism exited unexpectedly")

        for message in messages:
            session.add_chat(f"{HUMAN_LABEL}:{message.text}")
        session.add_chat(f"{self.name}:{content}")

        return decision
