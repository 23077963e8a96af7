"""Tests for the command ledger backends and store operations."""

import json

import pytest

from trademind.persistence import (
    CommandStoreError,
    InMemoryCommandLedger,
    JsonCommandLedger,
    apply_commands,
    archive_store,
)
from trademind.schemas import CommandStatus, CommandStore, PendingCommand


def make_command(command_id: str = "cmd1", *, max_retries: int = 3) -> PendingCommand:
    return PendingCommand.create(
        "exchange",
        "open_long_position",
        {"stop_loss_trigger_price": "1.3095"},
        max_retries=max_retries,
        command_id=command_id,
    )


@pytest.mark.asyncio
async def test_missing_file_means_no_pending_commands(tmp_path):
    ledger = JsonCommandLedger(tmp_path / "commands.json")

    assert await ledger.load_pending_commands() == []
    assert not (tmp_path / "commands.json").exists()


@pytest.mark.asyncio
async def test_pending_then_completed(tmp_path):
    ledger = JsonCommandLedger(tmp_path / "commands.json")
    command = make_command()

    await ledger.save_commands([command])
    pending = await ledger.load_pending_commands()
    assert [item.id for item in pending] == ["cmd1"]
    assert pending[0].args == {"stop_loss_trigger_price": "1.3095"}

    completed = command.mark_completed()
    await ledger.save_commands([completed])
    await ledger.save_commands([completed])

    store = await ledger.load_store()
    assert store.pending == []
    assert len(store.completed) == 1
    assert store.completed[0].status == CommandStatus.COMPLETED


@pytest.mark.asyncio
async def test_failures_until_retries_are_exhausted(tmp_path):
    ledger = JsonCommandLedger(tmp_path / "commands.json")
    command = make_command(max_retries=2)
    await ledger.save_commands([command])

    first_failure = command.mark_failed("exchange timeout")
    await ledger.save_commands([first_failure])
    pending = await ledger.load_pending_commands()
    assert [(item.id, item.retry_count) for item in pending] == [("cmd1", 1)]

    second_failure = first_failure.mark_failed("exchange timeout")
    await ledger.save_commands([second_failure])

    assert await ledger.load_pending_commands() == []
    store = await ledger.load_store()
    assert store.pending == []
    assert [item.retry_count for item in store.failed] == [2]


@pytest.mark.asyncio
async def test_pending_list_never_returns_exhausted_commands():
    ledger = InMemoryCommandLedger()
    exhausted = make_command("stale", max_retries=1).model_copy(
        update={"status": CommandStatus.FAILED, "retry_count": 1}
    )
    ledger.store = CommandStore(pending=[exhausted, make_command("fresh")])

    pending = await ledger.load_pending_commands()

    assert [item.id for item in pending] == ["fresh"]


@pytest.mark.asyncio
async def test_archive_keeps_newest_fifty(tmp_path):
    ledger = JsonCommandLedger(tmp_path / "commands.json")
    completed = [make_command(f"done-{index}").mark_completed() for index in range(60)]
    failed = [
        make_command(f"bad-{index}", max_retries=0).mark_failed("rejected") for index in range(55)
    ]
    await ledger.save_commands(completed + failed)

    await ledger.archive_completed_commands()

    store = await ledger.load_store()
    assert len(store.completed) == 50
    assert len(store.failed) == 50
    assert store.completed[0].id == "done-10"
    assert store.completed[-1].id == "done-59"
    assert store.failed[0].id == "bad-5"


@pytest.mark.asyncio
async def test_written_document_shape_and_no_leftover_temp_file(tmp_path):
    path = tmp_path / "nested" / "commands.json"
    ledger = JsonCommandLedger(path)
    await ledger.initialize()

    await ledger.save_commands([make_command()])

    assert path.exists()
    assert not ledger.temp_path.exists()
    document = json.loads(path.read_text("utf-8"))
    assert set(document) == {"pending", "completed", "failed"}
    assert document["pending"][0]["command_name"] == "open_long_position"
    assert document["pending"][0]["retry_count"] == 0


@pytest.mark.asyncio
async def test_corrupted_file_is_surfaced(tmp_path):
    path = tmp_path / "commands.json"
    path.write_text("{not json", "utf-8")
    ledger = JsonCommandLedger(path)

    with pytest.raises(CommandStoreError):
        await ledger.load_pending_commands()
    with pytest.raises(CommandStoreError):
        await ledger.save_commands([make_command()])

    assert path.read_text("utf-8") == "{not json"


@pytest.mark.asyncio
async def test_undecodable_file_is_surfaced(tmp_path):
    path = tmp_path / "commands.json"
    path.write_bytes(b"\xff\xfe{")

    with pytest.raises(CommandStoreError, match="decode"):
        await JsonCommandLedger(path).load_pending_commands()


@pytest.mark.asyncio
async def test_failed_write_is_surfaced_and_cleans_up(tmp_path, monkeypatch):
    ledger = JsonCommandLedger(tmp_path / "commands.json")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("trademind.persistence.os.replace", broken_replace)

    with pytest.raises(CommandStoreError):
        await ledger.save_commands([make_command()])

    assert not ledger.temp_path.exists()
    assert not ledger.path.exists()


@pytest.mark.asyncio
async def test_in_memory_ledger_hands_out_copies():
    ledger = InMemoryCommandLedger()
    await ledger.save_commands([make_command()])

    store = await ledger.load_store()
    store.pending.clear()

    assert len((await ledger.load_store()).pending) == 1


def test_apply_commands_is_last_write_wins_within_a_batch():
    command = make_command()
    store = apply_commands(CommandStore(), [command, command.mark_failed("x"), command.mark_completed()])

    assert store.pending == []
    assert [item.id for item in store.completed] == ["cmd1"]


def test_apply_commands_does_not_mutate_input():
    original = CommandStore()

    apply_commands(original, [make_command()])

    assert original.pending == []


def test_archive_store_rejects_negative_limit():
    with pytest.raises(ValueError):
        archive_store(CommandStore(), -1)
