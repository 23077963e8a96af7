"""
TradeMind - interpretation and resilience layer for LLM trading decisions.

Turns free-form model output into structured trading decisions and keeps
the decision loop running when a model backend fails.

No global state. Ledger and memory backends are injected by the user.
"""

__version__ = "0.1.0"

# Main orchestration
from .orchestrator import Orchestrator, StepResult

# Agents and failover
from .agents import (
    Agent,
    Session,
    AgentKeeper,
    AgentNotFoundError,
    AgentStartError,
    LLMAgent,
)

# Output interpretation
from .thinking import ThinkingSplit, split_thinking
from .extraction import (
    ResultParseError,
    NoObjectFoundError,
    InvalidObjectError,
    ParseOutcome,
    parse_result,
    try_parse_result,
)

# Storage interfaces
from .persistence import (
    CommandLedger,
    CommandStoreError,
    InMemoryCommandLedger,
    JsonCommandLedger,
)
from .memory import (
    MemoryStrategy,
    MemorySaveResult,
    InMemoryConversationMemory,
    FileConversationMemory,
)

# Sessions and events
from .session import ChatSession
from .events import (
    Event,
    MessageEvent,
    CommandResultEvent,
    PositionChangedEvent,
    events_to_messages,
)

# Core schemas
from .schemas import (
    Action,
    ActionDescriptor,
    ArgumentDescriptor,
    CommandStatus,
    CommandStore,
    Decision,
    MemoryUpdate,
    Message,
    PendingCommand,
    StructuredThought,
    TextThought,
    Thoughts,
)

__all__ = [
    # Main class
    "Orchestrator",
    "StepResult",
    # Agents
    "Agent",
    "Session",
    "AgentKeeper",
    "AgentNotFoundError",
    "AgentStartError",
    "LLMAgent",
    # Interpretation
    "ThinkingSplit",
    "split_thinking",
    "ResultParseError",
    "NoObjectFoundError",
    "InvalidObjectError",
    "ParseOutcome",
    "parse_result",
    "try_parse_result",
    # Storage
    "CommandLedger",
    "CommandStoreError",
    "InMemoryCommandLedger",
    "JsonCommandLedger",
    "MemoryStrategy",
    "MemorySaveResult",
    "InMemoryConversationMemory",
    "FileConversationMemory",
    # Sessions and events
    "ChatSession",
    "Event",
    "MessageEvent",
    "CommandResultEvent",
    "PositionChangedEvent",
    "events_to_messages",
    # Schemas
    "Action",
    "ActionDescriptor",
    "ArgumentDescriptor",
    "CommandStatus",
    "CommandStore",
    "Decision",
    "MemoryUpdate",
    "Message",
    "PendingCommand",
    "StructuredThought",
    "TextThought",
    "Thoughts",
]
