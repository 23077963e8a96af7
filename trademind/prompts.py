"""Prompt templates and rendering for decision agents."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, Sequence

from trademind.schemas import ActionDescriptor, Message

HUMAN_LABEL = "You"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


@dataclass
class PromptTemplate:
    """Represents a templated prompt with placeholders."""

    name: str
    system: str
    user: str
    description: str = ""


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]


DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="decision",
        system=(
            "{{background}}\n\n"
            "You decide the next trading step. You may reason privately between "
            "{{thinking_start}} and {{thinking_end}}; that text is never shown to the user.\n"
            "After reasoning, respond with exactly one JSON object of this shape:\n"
            "{\n"
            "  \"thoughts\": {\n"
            "    \"plan\": \"short bulleted plan\",\n"
            "    \"analyze\": \"analysis of the market data\",\n"
            "    \"detail\": \"details behind the decision\",\n"
            "    \"reflection\": \"constructive self-criticism\",\n"
            "    \"speak\": \"summary to say to the user\"\n"
            "  },\n"
            "  \"action\": {\"name\": \"entity.command\", \"args\": {\"arg_name\": \"value\"}},\n"
            "  \"memory\": {\"content\": \"notes to remember for the next decision\"}\n"
            "}\n"
            "Every section is optional. Omit \"action\" when nothing should be executed. "
            "All argument values must be strings.\n\n"
            "{{action_catalog}}"
        ),
        user=(
            "{{chat_history}}\n\n"
            "{{messages}}\n\n"
            "Respond with the JSON object only."
        ),
        description="Default trading decision template.",
    )
)


@dataclass
class RenderedPrompt:
    system: str
    user: str


def _catalog_entry(label: str, description: str) -> str:
    return f"{label}: {description}" if description else label


def fill_placeholders(text: str, values: Dict[str, str]) -> str:
    """Replace every known ``{{name}}`` in one pass; unknown names are left as-is.

    Substituted values are never scanned again, so a message that quotes a
    placeholder stays literal.
    """

    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1), match.group(0)), text)


def format_action_catalog(actions: Sequence[ActionDescriptor]) -> str:
    """Render registered commands as a catalog the model can choose from."""

    if not actions:
        return ""

    lines = ["Commands (choose at most one):"]
    for action in actions:
        lines.append(_catalog_entry(f"- {action.name}", action.description))
        for arg in action.args:
            lines.append(_catalog_entry(f"    {arg.name}", arg.description))
        for sample in action.samples:
            lines.append(f"    Example: {json.dumps(sample, ensure_ascii=False)}")
    return "\n".join(lines)


def trim_chats_to_length(chats: Sequence[str], max_length: int) -> list[str]:
    """Keep the newest chats whose combined length (plus newlines) fits ``max_length``."""

    length = 0
    for index in range(len(chats) - 1, -1, -1):
        length += len(chats[index]) + 1
        if length > max_length:
            return list(chats[index + 1:])
    return list(chats)


def render_prompt(
    template: PromptTemplate,
    *,
    background: str,
    chats: Sequence[str],
    messages: Sequence[Message],
    actions: Sequence[ActionDescriptor] = (),
    thinking_start: str = "<thinking>",
    thinking_end: str = "</thinking>",
    max_context_length: int | None = None,
) -> RenderedPrompt:
    """Render a template with the session transcript and new messages.

    When ``max_context_length`` is set the transcript is trimmed from its
    oldest end so the user prompt stays within that many characters; the new
    messages are never trimmed.

    Raises:
        ValueError: If the new messages alone exceed ``max_context_length``
    """

    message_text = "\n".join(f"{HUMAN_LABEL}:{message.text}" for message in messages)
    values: Dict[str, str] = {
        "background": background,
        "thinking_start": thinking_start,
        "thinking_end": thinking_end,
        "action_catalog": format_action_catalog(actions),
        "messages": message_text,
    }
    system = fill_placeholders(template.system, values)

    history = list(chats)
    if max_context_length is not None:
        fixed_length = len(fill_placeholders(template.user, {**values, "chat_history": ""}))
        budget = max_context_length - fixed_length
        if budget < 0:
            raise ValueError(
                f"Current messages too long: {fixed_length} characters, max {max_context_length}"
            )
        history = trim_chats_to_length(history, budget)

    user = fill_placeholders(template.user, {**values, "chat_history": "\n".join(history)})
    return RenderedPrompt(system=system.strip(), user=user.strip())
