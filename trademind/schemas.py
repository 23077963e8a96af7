"""
Pydantic schemas for trademind.

Design Philosophy:
- A Decision is everything one model completion may ask for: thoughts to show,
  an action to execute, and a memory update to keep.
- Free-form thought fields are an explicit discriminated value (text vs
  structured) with one canonicalization routine, so nothing a model writes is
  dropped on its way to storage or display.
- PendingCommand records are the unit of durable execution tracking; their
  JSON shape is the on-disk ledger format.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Decision Schemas
# ============================================================================


class TextThought(BaseModel):
    """A thought field the model wrote as a plain string."""

    kind: Literal["text"] = "text"
    text: str

    def canonical(self) -> str:
        return self.text


class StructuredThought(BaseModel):
    """A thought field the model wrote as a list, object, number, or bool.

    The raw JSON value is kept as-is; canonical() renders it for display and
    substring matching without losing any nested content.
    """

    kind: Literal["structured"] = "structured"
    value: Any = None

    def canonical(self) -> str:
        value = self.value
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return ", ".join(value)
        return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


ThoughtValue = Annotated[Union[TextThought, StructuredThought], Field(discriminator="kind")]


def to_thought_value(raw: Any) -> Any:
    """Wrap a raw model value into the ThoughtValue union.

    Values that already carry a ThoughtValue shape (e.g. a reloaded Decision)
    pass through untouched.
    """

    if raw is None:
        return None
    if isinstance(raw, (TextThought, StructuredThought)):
        return raw.model_dump()
    if isinstance(raw, str):
        return {"kind": "text", "text": raw}
    if isinstance(raw, dict) and raw.get("kind") == "text" and set(raw) == {"kind", "text"}:
        return raw
    if isinstance(raw, dict) and raw.get("kind") == "structured" and set(raw) == {"kind", "value"}:
        return raw
    return {"kind": "structured", "value": raw}


def canonical_thought(value: Optional[Union[TextThought, StructuredThought]]) -> str:
    """Render an optional thought the way it is stored and displayed."""

    if value is None:
        return "none"
    return value.canonical()


class Thoughts(BaseModel):
    """The model's visible reasoning, one field per section of the response format.

    Unknown keys (models often add "text" or "criticism") are collected in
    ``extra`` instead of being discarded.
    """

    plan: Optional[ThoughtValue] = None
    analyze: Optional[ThoughtValue] = None
    detail: Optional[ThoughtValue] = None
    reflection: Optional[ThoughtValue] = None
    speak: Optional[ThoughtValue] = None
    extra: Dict[str, ThoughtValue] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _wrap_raw_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        known = {"plan", "analyze", "detail", "reflection", "speak"}
        wrapped: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "extra" and isinstance(value, dict):
                extra.update(value)
            elif key in known:
                wrapped[key] = to_thought_value(value)
            elif value is not None:
                extra[key] = value
        wrapped["extra"] = {key: to_thought_value(value) for key, value in extra.items()}
        return wrapped

    def to_human_text(self) -> str:
        """Render all sections as labelled lines for chat replies."""

        lines = [
            f"Plan: {canonical_thought(self.plan)}",
            f"Analyze: {canonical_thought(self.analyze)}",
            f"Detail: {canonical_thought(self.detail)}",
            f"Reflection: {canonical_thought(self.reflection)}",
            f"Speak: {canonical_thought(self.speak)}",
        ]
        for key, value in self.extra.items():
            lines.append(f"{key.replace('_', ' ').title()}: {canonical_thought(value)}")
        return "\n".join(lines) + "\n"


class Action(BaseModel):
    """A command the model wants executed.

    ``name`` is usually dotted as ``<entity>.<command>``
    (e.g. ``exchange.open_long_position``).
    """

    name: str = Field(..., min_length=1, description="Command to execute")
    args: Dict[str, str] = Field(default_factory=dict, description="Command arguments")

    @field_validator("args", mode="before")
    @classmethod
    def _null_args_are_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def entity_id(self) -> Optional[str]:
        entity, sep, _ = self.name.partition(".")
        return entity if sep and entity else None

    @property
    def command_name(self) -> str:
        entity, sep, command = self.name.partition(".")
        return command if sep and entity and command else self.name


class MemoryUpdate(BaseModel):
    content: str


class Decision(BaseModel):
    """Structured result of one model completion.

    Every section is optional and independent. ``reasoning`` and ``model`` are
    filled in by the agent that produced the decision, never by the model's JSON.
    """

    thoughts: Optional[Thoughts] = None
    action: Optional[Action] = None
    memory: Optional[MemoryUpdate] = None
    reasoning: Optional[str] = Field(None, description="Text found between thinking markers")
    model: Optional[str] = Field(None, description="Name of the agent that produced this decision")

    def has_action(self) -> bool:
        return self.action is not None


# ============================================================================
# Transcript Schemas
# ============================================================================


class Message(BaseModel):
    """One inbound message for the agent (chat text, event prompt, memory)."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    text: str


class ArgumentDescriptor(BaseModel):
    name: str
    description: str = ""


class ActionDescriptor(BaseModel):
    """Describes a command the model may choose; rendered into the prompt catalog."""

    name: str
    description: str = ""
    args: List[ArgumentDescriptor] = Field(default_factory=list)
    samples: List[Dict[str, Any]] = Field(default_factory=list)

    def arg_names(self) -> List[str]:
        return [arg.name for arg in self.args]


# ============================================================================
# Command Ledger Schemas
# ============================================================================


class CommandStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PendingCommand(BaseModel):
    """A command tracked by the ledger until it completes or exhausts retries.

    Lifecycle: pending -> (failed <-> pending while retry_count < max_retries)
    -> completed, or failed for good once retry_count >= max_retries.
    The ``mark_*`` helpers return updated copies; callers save them through
    the ledger.
    """

    id: str
    entity_id: str
    command_name: str
    args: Dict[str, str] = Field(default_factory=dict)
    status: CommandStatus = CommandStatus.PENDING
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    error: Optional[str] = None

    @classmethod
    def create(
        cls,
        entity_id: str,
        command_name: str,
        args: Optional[Dict[str, str]] = None,
        *,
        max_retries: int = 3,
        command_id: Optional[str] = None,
    ) -> "PendingCommand":
        now = utc_now()
        return cls(
            id=command_id or str(uuid4()),
            entity_id=entity_id,
            command_name=command_name,
            args=dict(args or {}),
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
        )

    def is_retryable(self) -> bool:
        """True for pending commands and failed ones that still have retries left."""

        if self.status == CommandStatus.PENDING:
            return True
        return self.status == CommandStatus.FAILED and self.retry_count < self.max_retries

    def mark_completed(self) -> "PendingCommand":
        return self.model_copy(
            update={"status": CommandStatus.COMPLETED, "error": None, "updated_at": utc_now()}
        )

    def mark_failed(self, error: str) -> "PendingCommand":
        return self.model_copy(
            update={
                "status": CommandStatus.FAILED,
                "retry_count": self.retry_count + 1,
                "error": error,
                "updated_at": utc_now(),
            }
        )

    def mark_pending(self) -> "PendingCommand":
        return self.model_copy(update={"status": CommandStatus.PENDING, "updated_at": utc_now()})


class CommandStore(BaseModel):
    """The persisted ledger document: three disjoint lists keyed by command id."""

    pending: List[PendingCommand] = Field(default_factory=list)
    completed: List[PendingCommand] = Field(default_factory=list)
    failed: List[PendingCommand] = Field(default_factory=list)
