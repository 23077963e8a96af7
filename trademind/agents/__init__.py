"""Agent capabilities, the failover keeper, and the model-backed agent."""

from .base import Agent, Session
from .keeper import (
    AgentKeeper,
    AgentNotFoundError,
    AgentStartError,
    find_agents,
    resolve_agent,
)
from .llm_agent import LLMAgent

__all__ = [
    "Agent",
    "Session",
    "AgentKeeper",
    "AgentNotFoundError",
    "AgentStartError",
    "find_agents",
    "resolve_agent",
    "LLMAgent",
]
