"""Capabilities consumed by the decision layer.

Concrete agents (hosted models, local models, the keeper itself) and session
stores live elsewhere; this module only fixes the seams they plug into.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence, runtime_checkable

from trademind.schemas import Decision, Message


@runtime_checkable
class Session(Protocol):
    """A conversation whose transcript the agent reads and extends."""

    @property
    def id(self) -> str:
        ...

    def get_chats(self) -> List[str]:
        """Return the transcript, oldest line first."""
        ...

    def add_chat(self, chat: str) -> None:
        ...


@runtime_checkable
class Agent(Protocol):
    """A backend that turns a transcript plus new messages into a Decision.

    ``gen_actions`` may perform billed network calls; timeouts and
    cancellation are the implementation's responsibility and must honor
    asyncio task cancellation.
    """

    @property
    def name(self) -> str:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def gen_actions(self, session: Session, messages: Sequence[Message]) -> Decision:
        ...
