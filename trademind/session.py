"""In-process session holding a conversation transcript."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

ROLE_ADMIN = "admin"


@dataclass
class ChatSession:
    """Transcript plus light per-session state.

    ``max_chats`` bounds the transcript; the oldest lines are dropped first.
    Roles gate what a session may trigger (only sessions holding the
    orchestrator's required role get their actions recorded).
    """

    id: str = field(default_factory=lambda: str(uuid4()))
    chats: List[str] = field(default_factory=list)
    roles: Set[str] = field(default_factory=set)
    attributes: Dict[str, Any] = field(default_factory=dict)
    max_chats: Optional[int] = None

    def get_chats(self) -> List[str]:
        return list(self.chats)

    def add_chat(self, chat: str) -> None:
        self.chats.append(chat)
        if self.max_chats is not None and len(self.chats) > self.max_chats:
            del self.chats[: len(self.chats) - self.max_chats]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def set_roles(self, roles: List[str]) -> None:
        self.roles = set(roles)
