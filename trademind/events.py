"""Events fed to the decision layer by surrounding entities.

Each variant implements the Event protocol on its own; there is no shared base
whose fields leak into every event. ``to_prompts`` is what the model sees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence, runtime_checkable
from uuid import uuid4

from trademind.schemas import Message


@runtime_checkable
class Event(Protocol):
    @property
    def id(self) -> str:
        ...

    @property
    def type(self) -> str:
        ...

    @property
    def data(self) -> Any:
        ...

    def to_prompts(self) -> List[str]:
        ...


def _new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class MessageEvent:
    """Free text from a chat channel."""

    text: str
    id: str = field(default_factory=_new_id)
    type: Literal["text_message"] = "text_message"

    @property
    def data(self) -> str:
        return self.text

    def to_prompts(self) -> List[str]:
        return [self.text] if self.text.strip() else []


@dataclass(frozen=True)
class CommandResultEvent:
    """Outcome of executing a command, reported back so the model can react."""

    command_name: str
    args: Dict[str, str]
    success: bool
    reason: Optional[str] = None
    id: str = field(default_factory=_new_id)
    type: Literal["command_result"] = "command_result"

    @property
    def data(self) -> Dict[str, Any]:
        return {
            "command_name": self.command_name,
            "args": dict(self.args),
            "success": self.success,
            "reason": self.reason,
        }

    def to_prompts(self) -> List[str]:
        rendered_args = ", ".join(f"{key}={value}" for key, value in sorted(self.args.items()))
        if self.success:
            return [f"Command: /{self.command_name} [{rendered_args}] executed successfully by entity."]
        return [
            f"Command: /{self.command_name} [{rendered_args}] failed to execute by entity, "
            f"reason: {self.reason or 'unknown'}"
        ]


@dataclass(frozen=True)
class PositionChangedEvent:
    """Snapshot of an open position on a trading symbol."""

    symbol: str
    side: Literal["long", "short", "flat"]
    quantity: float
    entry_price: Optional[float] = None
    unrealized_pnl: Optional[float] = None
    id: str = field(default_factory=_new_id)
    type: Literal["position_changed"] = "position_changed"

    @property
    def data(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "unrealized_pnl": self.unrealized_pnl,
        }

    def to_prompts(self) -> List[str]:
        if self.side == "flat" or self.quantity == 0:
            return [f"There is no open position on {self.symbol}."]
        line = f"Current {self.side} position on {self.symbol}: quantity {self.quantity}"
        if self.entry_price is not None:
            line += f", entry price {self.entry_price}"
        if self.unrealized_pnl is not None:
            line += f", unrealized PnL {self.unrealized_pnl}"
        return [line + "."]


def events_to_messages(events: Sequence[Event]) -> List[Message]:
    """Flatten event prompts into messages, preserving event order."""

    messages: List[Message] = []
    for event in events:
        for prompt in event.to_prompts():
            messages.append(Message(text=prompt))
    return messages
