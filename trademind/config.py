"""
trademind Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists
load_dotenv()


def _split_names(raw: str) -> List[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


class KeeperConfig(BaseModel):
    """Leader/follower chain for the AgentKeeper, by registry name."""

    enabled: bool = True
    leader: str
    followers: List[str] = Field(default_factory=list)


class Config:
    """Application configuration loaded from environment variables."""

    # LLM Provider Configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Local models served by Ollama
    OLLAMA_BASE_URL: str | None = os.getenv("OLLAMA_BASE_URL")

    # Failover chain. Names refer to keys of the agent registry handed to
    # AgentKeeper; order of followers is the failover priority.
    KEEPER_ENABLED: bool = os.getenv("KEEPER_ENABLED", "true").lower() in ("1", "true", "yes")
    KEEPER_LEADER: str = os.getenv("KEEPER_LEADER", "primary")
    KEEPER_FOLLOWERS: List[str] = _split_names(os.getenv("KEEPER_FOLLOWERS", ""))

    # Command ledger
    COMMAND_STORE_PATH: Path = Path(os.getenv("COMMAND_STORE_PATH", "data/commands.json"))
    COMMAND_MAX_RETRIES: int = int(os.getenv("COMMAND_MAX_RETRIES", "3"))
    COMMAND_ARCHIVE_LIMIT: int = int(os.getenv("COMMAND_ARCHIVE_LIMIT", "50"))

    # Conversation memory
    MEMORY_PATH: Path = Path(os.getenv("MEMORY_PATH", "data/memory.txt"))
    MEMORY_MAX_WORDS: int = int(os.getenv("MEMORY_MAX_WORDS", "1000"))

    # Reasoning markers emitted by "thinking" models
    THINKING_START_MARKER: str = os.getenv("THINKING_START_MARKER", "<thinking>")
    THINKING_END_MARKER: str = os.getenv("THINKING_END_MARKER", "</thinking>")

    @classmethod
    def keeper_config(cls) -> KeeperConfig:
        """Build the keeper chain from KEEPER_ENABLED, KEEPER_LEADER and KEEPER_FOLLOWERS."""
        return KeeperConfig(
            enabled=cls.KEEPER_ENABLED,
            leader=cls.KEEPER_LEADER,
            followers=list(cls.KEEPER_FOLLOWERS),
        )

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

        if not cls.KEEPER_LEADER:
            raise ValueError("KEEPER_LEADER must name the leader agent")

        if cls.COMMAND_MAX_RETRIES < 0:
            raise ValueError("COMMAND_MAX_RETRIES must be zero or positive")

        if cls.COMMAND_ARCHIVE_LIMIT < 0:
            raise ValueError("COMMAND_ARCHIVE_LIMIT must be zero or positive")

        if cls.MEMORY_MAX_WORDS <= 0:
            raise ValueError("MEMORY_MAX_WORDS must be positive")

        if not cls.THINKING_START_MARKER or not cls.THINKING_END_MARKER:
            raise ValueError("Thinking markers must be non-empty strings")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        followers = ", ".join(cls.KEEPER_FOLLOWERS) or "(none)"
        lines = [
            "trademind Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Keeper: leader={cls.KEEPER_LEADER} followers={followers}",
            f"  Command Store: {cls.COMMAND_STORE_PATH} (max retries {cls.COMMAND_MAX_RETRIES})",
            f"  Memory: {cls.MEMORY_PATH} (max {cls.MEMORY_MAX_WORDS} words)",
        ]
        return "\n".join(lines)
