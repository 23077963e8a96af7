"""
CommandLedger interface for durable command tracking.

Every action a Decision asks for becomes a PendingCommand. The ledger keeps
those commands in three disjoint lists - pending, completed, failed - so a
restarted process can pick up exactly the work that was still outstanding,
without losing or repeating commands.

Two included implementations:
1. InMemoryCommandLedger - Plain lists in process memory, data lost on exit (tests, dry runs)
2. JsonCommandLedger - One JSON document rewritten atomically on every mutation

Status dispatch in save_commands():
- pending   -> upsert into pending by id
- completed -> remove from pending, upsert into completed
- failed    -> retries exhausted: remove from pending, upsert into failed
               otherwise: upsert the updated record back into pending

Concurrency: each ledger instance serializes its own read-modify-write cycles
with an asyncio.Lock. Separate processes sharing one file are not coordinated.

Usage pattern:
    ledger = JsonCommandLedger("data/commands.json")
    await ledger.initialize()

    await ledger.save_commands([PendingCommand.create("exchange", "close_position")])
    outstanding = await ledger.load_pending_commands()

    await ledger.close()
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List

from pydantic import ValidationError

from trademind.logging_utils import log_deterministic, log_error
from trademind.schemas import CommandStatus, CommandStore, PendingCommand

DEFAULT_ARCHIVE_LIMIT = 50


class CommandStoreError(RuntimeError):
    """Raised when the command store cannot be read, parsed, or written."""


# ============================================================================
# Pure store operations (shared by every backend)
# ============================================================================


def select_pending(store: CommandStore) -> List[PendingCommand]:
    """Commands that still need work: pending ones and retryable failures."""

    return [command for command in store.pending if command.is_retryable()]


def _upsert(commands: List[PendingCommand], command: PendingCommand) -> None:
    for index, existing in enumerate(commands):
        if existing.id == command.id:
            commands[index] = command
            return
    commands.append(command)


def _remove(commands: List[PendingCommand], command_id: str) -> None:
    commands[:] = [existing for existing in commands if existing.id != command_id]


def apply_commands(store: CommandStore, commands: Iterable[PendingCommand]) -> CommandStore:
    """Return a new store with ``commands`` dispatched by status.

    Commands are applied in order, so two records with the same id in one batch
    resolve last-write-wins.
    """

    updated = store.model_copy(deep=True)
    for command in commands:
        if command.status == CommandStatus.PENDING:
            _upsert(updated.pending, command)
        elif command.status == CommandStatus.COMPLETED:
            _remove(updated.pending, command.id)
            _upsert(updated.completed, command)
        elif command.status == CommandStatus.FAILED:
            if command.retry_count >= command.max_retries:
                _remove(updated.pending, command.id)
                _upsert(updated.failed, command)
            else:
                _upsert(updated.pending, command)
    return updated


def archive_store(store: CommandStore, limit: int = DEFAULT_ARCHIVE_LIMIT) -> CommandStore:
    """Keep only the newest ``limit`` completed and failed entries.

    Lists are append-ordered, so the oldest entries are at the front. Pending
    commands are never trimmed.
    """

    if limit < 0:
        raise ValueError("archive limit must be zero or positive")

    def _tail(commands: List[PendingCommand]) -> List[PendingCommand]:
        return list(commands[len(commands) - limit:]) if len(commands) > limit else list(commands)

    return CommandStore(
        pending=list(store.pending),
        completed=_tail(store.completed),
        failed=_tail(store.failed),
    )


# ============================================================================
# Strategy interface
# ============================================================================


class CommandLedger(ABC):
    """Abstract base class for command ledger backends.

    All methods are async so file-backed ledgers can push blocking I/O onto a
    worker thread. Persistence errors always propagate as CommandStoreError;
    a failed write must never look like a successful one.
    """

    def __init__(self, *, archive_limit: int = DEFAULT_ARCHIVE_LIMIT) -> None:
        if archive_limit < 0:
            raise ValueError("archive_limit must be zero or positive")
        self.archive_limit = archive_limit
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Prepare the backend. Default: nothing to do."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing to do."""

    @abstractmethod
    async def _read(self) -> CommandStore:
        """Return the current store (empty when nothing was saved yet)."""

    @abstractmethod
    async def _write(self, store: CommandStore) -> None:
        """Replace the persisted store with ``store``."""

    async def load_store(self) -> CommandStore:
        """Return a snapshot of the full store (all three lists)."""

        async with self._lock:
            return await self._read()

    async def load_pending_commands(self) -> List[PendingCommand]:
        """Return pending commands plus failed commands that can still be retried.

        Commands whose retries are exhausted are never returned.
        """

        async with self._lock:
            store = await self._read()
        return select_pending(store)

    async def save_commands(self, commands: Iterable[PendingCommand]) -> None:
        """Persist a batch of command states, organizing them by status."""

        batch = list(commands)
        async with self._lock:
            store = await self._read()
            await self._write(apply_commands(store, batch))
        log_deterministic(f"[Ledger] Saved {len(batch)} command(s)")

    async def archive_completed_commands(self) -> None:
        """Trim completed and failed lists to the newest ``archive_limit`` entries."""

        async with self._lock:
            store = await self._read()
            await self._write(archive_store(store, self.archive_limit))


class InMemoryCommandLedger(CommandLedger):
    """Ledger kept in process memory; nothing survives a restart."""

    def __init__(self, *, archive_limit: int = DEFAULT_ARCHIVE_LIMIT) -> None:
        super().__init__(archive_limit=archive_limit)
        self.store = CommandStore()

    async def _read(self) -> CommandStore:
        return self.store.model_copy(deep=True)

    async def _write(self, store: CommandStore) -> None:
        self.store = store.model_copy(deep=True)


class JsonCommandLedger(CommandLedger):
    """Ledger stored as one pretty-printed JSON document.

    Document shape::

        {
          "pending":   [{"id": ..., "entity_id": ..., "command_name": ..., "args": {...},
                         "status": "pending", "retry_count": 0, "max_retries": 3,
                         "created_at": ..., "updated_at": ..., "error": ...}],
          "completed": [...],
          "failed":    [...]
        }

    Every write goes to ``<path>.tmp`` and is then renamed over ``<path>``, so
    a crash mid-write leaves the previous document intact. A missing file is
    an empty store; an unreadable or corrupted file raises CommandStoreError.
    """

    def __init__(
        self,
        path: Path | str = "data/commands.json",
        *,
        archive_limit: int = DEFAULT_ARCHIVE_LIMIT,
    ) -> None:
        super().__init__(archive_limit=archive_limit)
        self.path = Path(path)

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    async def initialize(self) -> None:
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)

    async def _read(self) -> CommandStore:
        return await asyncio.to_thread(self._read_sync)

    async def _write(self, store: CommandStore) -> None:
        await asyncio.to_thread(self._write_sync, store)

    def _read_sync(self) -> CommandStore:
        if not self.path.exists():
            return CommandStore()

        try:
            raw = self.path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as exc:
            log_error(f"[Ledger] Command file {self.path} is not valid UTF-8")
            raise CommandStoreError(f"Failed to decode command file {self.path}: {exc}") from exc
        except OSError as exc:
            raise CommandStoreError(f"Failed to read command file {self.path}: {exc}") from exc

        try:
            return CommandStore.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            log_error(f"[Ledger] Command file {self.path} is corrupted")
            raise CommandStoreError(f"Failed to parse command file {self.path}: {exc}") from exc

    def _write_sync(self, store: CommandStore) -> None:
        payload = store.model_dump(mode="json", exclude_none=True)
        data = json.dumps(payload, indent=2)
        temp_path = self.temp_path

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self.path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise CommandStoreError(f"Failed to write command file {self.path}: {exc}") from exc
