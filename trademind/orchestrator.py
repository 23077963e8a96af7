"""
Decision orchestrator.

Decoupled from file I/O and global config: the agent, the command ledger and
the conversation memory are all injected by the caller.

Coordinates one decision step:
1. Load conversation memory and prepend it to the incoming messages
2. Ask the agent (usually an AgentKeeper) for a Decision
3. Record the chosen action in the ledger as a pending command
4. Save the updated conversation memory
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from .agents.base import Agent, Session
from .agents.keeper import resolve_agent
from .config import Config
from .events import Event, events_to_messages
from .logging_utils import (
    log_deterministic,
    log_info,
    log_success,
    log_warning,
)
from .memory import FileConversationMemory, InMemoryConversationMemory, MemoryStrategy
from .persistence import CommandLedger, InMemoryCommandLedger, JsonCommandLedger
from .prompts import HUMAN_LABEL
from .schemas import Decision, Message, PendingCommand

MEMORY_PREFIX = "Memory from previous decisions:"


@dataclass
class StepResult:
    """Outcome of a single orchestrated decision."""

    decision: Decision
    command: Optional[PendingCommand] = None
    memory_truncated: bool = False


def memory_message(content: str) -> Optional[Message]:
    """Wrap stored memory as a message, or None when there is nothing stored."""

    if not content.strip():
        return None
    return Message(text=f"{MEMORY_PREFIX}\n{content.strip()}")


def exchanged_turns(messages: Sequence[Message], decision: Decision, agent_name: str) -> List[str]:
    """Transcript lines for one exchange, used when the model sent no memory update."""

    lines = [f"{HUMAN_LABEL}:{message.text}" for message in messages]
    speaker = decision.model or agent_name
    if decision.thoughts is not None:
        lines.append(f"{speaker}:{decision.thoughts.to_human_text().strip()}")
    if decision.action is not None:
        lines.append(f"{speaker}:/{decision.action.name} {decision.action.args}")
    return lines


class Orchestrator:
    """
    Runs decision steps against an agent, a command ledger and a memory store.

    Fully decoupled - accepts all dependencies as parameters.
    """

    def __init__(
        self,
        agent: Agent,
        ledger: Optional[CommandLedger] = None,
        memory: Optional[MemoryStrategy] = None,
        *,
        default_entity_id: str = "exchange",
        max_retries: int = 3,
        required_role: Optional[str] = None,
    ):
        """Initialize orchestrator with all dependencies injected.

        Args:
            agent: Agent to ask for decisions (an AgentKeeper for failover)
            ledger: Optional command ledger (defaults to InMemory)
            memory: Optional conversation memory (defaults to InMemory)
            default_entity_id: Entity used for action names without an "entity." prefix
            max_retries: Failure budget given to each new pending command
            required_role: When set, actions are only recorded for sessions holding it
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.agent = agent
        self.ledger = ledger or InMemoryCommandLedger()
        self.memory = memory or InMemoryConversationMemory()
        self.default_entity_id = default_entity_id
        self.max_retries = max_retries
        self.required_role = required_role

    @classmethod
    def from_config(
        cls,
        agents: Mapping[str, Agent],
        *,
        required_role: Optional[str] = None,
    ) -> "Orchestrator":
        """Build file-backed storage and the keeper chain from Config.

        Convenience for applications; library users inject their own backends.
        """
        return cls(
            resolve_agent(Config.keeper_config(), agents),
            JsonCommandLedger(Config.COMMAND_STORE_PATH, archive_limit=Config.COMMAND_ARCHIVE_LIMIT),
            FileConversationMemory(Config.MEMORY_PATH, max_words=Config.MEMORY_MAX_WORDS),
            max_retries=Config.COMMAND_MAX_RETRIES,
            required_role=required_role,
        )

    async def start(self) -> None:
        """Prepare the ledger and start the agent (leader first when it is a keeper)."""
        await self.ledger.initialize()
        await self.agent.start()
        log_info(f"[Orchestrator] Started agent '{self.agent.name}'")

    async def stop(self) -> None:
        try:
            await self.agent.stop()
        finally:
            await self.ledger.close()

    def _may_record(self, session: Session) -> bool:
        if self.required_role is None:
            return True
        has_role = getattr(session, "has_role", None)
        return bool(has_role and has_role(self.required_role))

    def _command_for(self, decision: Decision) -> PendingCommand:
        action = decision.action
        return PendingCommand.create(
            action.entity_id or self.default_entity_id,
            action.command_name,
            dict(action.args),
            max_retries=self.max_retries,
        )

    async def step(self, session: Session, messages: Sequence[Message]) -> StepResult:
        """Run one decision for ``session`` and record its side effects.

        Agent errors propagate unchanged; nothing is written to the ledger or
        memory when the agent fails.
        """
        previous_memory = await self.memory.load_memory()
        prompt_messages: List[Message] = []
        memory_msg = memory_message(previous_memory)
        if memory_msg is not None:
            prompt_messages.append(memory_msg)
        prompt_messages.extend(messages)

        decision = await self.agent.gen_actions(session, prompt_messages)

        command: Optional[PendingCommand] = None
        if decision.has_action():
            if self._may_record(session):
                command = self._command_for(decision)
                await self.ledger.save_commands([command])
                log_deterministic(
                    f"[Orchestrator] Recorded /{command.entity_id}.{command.command_name} "
                    f"as pending ({command.id})"
                )
            else:
                log_warning(
                    f"[Orchestrator] Session {session.id} lacks role "
                    f"'{self.required_role}'; action '{decision.action.name}' not recorded"
                )

        if decision.memory is not None:
            new_memory = decision.memory.content
        else:
            turns = exchanged_turns(messages, decision, self.agent.name)
            new_memory = "\n".join(part for part in [previous_memory.strip(), *turns] if part)
        saved = await self.memory.save_memory(new_memory)

        return StepResult(decision=decision, command=command, memory_truncated=saved.truncated)

    async def step_events(self, session: Session, events: Sequence[Event]) -> Optional[StepResult]:
        """Turn events into messages and run a step; None when no event has a prompt."""
        messages = events_to_messages(events)
        if not messages:
            return None
        return await self.step(session, messages)

    async def resume_pending_commands(self) -> List[PendingCommand]:
        """Commands left pending (and still retryable) by a previous run."""
        pending = await self.ledger.load_pending_commands()
        if pending:
            log_info(f"[Orchestrator] Resuming {len(pending)} pending command(s)")
        return pending

    async def complete_command(self, command: PendingCommand) -> PendingCommand:
        completed = command.mark_completed()
        await self.ledger.save_commands([completed])
        await self.ledger.archive_completed_commands()
        log_success(f"[Orchestrator] Command {command.id} completed")
        return completed

    async def fail_command(self, command: PendingCommand, error: str) -> PendingCommand:
        """Record a failed execution; the command stays pending while retries remain."""
        failed = command.mark_failed(error)
        await self.ledger.save_commands([failed])
        if failed.is_retryable():
            log_warning(
                f"[Orchestrator] Command {command.id} failed "
                f"({failed.retry_count}/{failed.max_retries}): {error}"
            )
        else:
            log_warning(f"[Orchestrator] Command {command.id} exhausted its retries: {error}")
        return failed

