"""Tests for decision and command schemas."""

import pytest
from pydantic import ValidationError

from trademind.schemas import (
    Action,
    ActionDescriptor,
    ArgumentDescriptor,
    CommandStatus,
    CommandStore,
    Decision,
    PendingCommand,
    StructuredThought,
    TextThought,
    Thoughts,
    canonical_thought,
)


def test_thought_values_are_discriminated():
    thoughts = Thoughts(plan="buy the dip", analyze=["rsi low", "volume up"], detail={"rsi": 28})

    assert isinstance(thoughts.plan, TextThought)
    assert isinstance(thoughts.analyze, StructuredThought)
    assert thoughts.analyze.canonical() == "rsi low, volume up"
    assert thoughts.detail.canonical() == '{"rsi":28}'
    assert canonical_thought(thoughts.speak) == "none"


def test_thoughts_survive_a_dump_and_reload():
    thoughts = Thoughts(plan="p", speak={"en": "hi"}, criticism="too eager")

    reloaded = Thoughts.model_validate(thoughts.model_dump())

    assert reloaded == thoughts
    assert reloaded.extra["criticism"].canonical() == "too eager"


def test_unknown_null_thoughts_are_ignored():
    thoughts = Thoughts.model_validate({"speak": "ok", "text": None})

    assert thoughts.extra == {}


def test_to_human_text_lists_every_section():
    thoughts = Thoughts(plan="hold", speak="waiting", criticism="slow")

    assert thoughts.to_human_text() == (
        "Plan: hold\n"
        "Analyze: none\n"
        "Detail: none\n"
        "Reflection: none\n"
        "Speak: waiting\n"
        "Criticism: slow\n"
    )


def test_action_name_parts():
    dotted = Action(name="exchange.open_long_position")
    bare = Action(name="wait")

    assert dotted.entity_id == "exchange"
    assert dotted.command_name == "open_long_position"
    assert bare.entity_id is None
    assert bare.command_name == "wait"


def test_action_rejects_empty_name_and_non_string_args():
    with pytest.raises(ValidationError):
        Action(name="")
    with pytest.raises(ValidationError):
        Action(name="exchange.buy", args={"qty": 1})


def test_decision_has_action():
    assert Decision().has_action() is False
    assert Decision(action=Action(name="exchange.wait")).has_action() is True


def test_action_descriptor_arg_names():
    descriptor = ActionDescriptor(
        name="exchange.open_long_position",
        args=[ArgumentDescriptor(name="stop_loss_trigger_price"), ArgumentDescriptor(name="take_profit_trigger_price")],
    )

    assert descriptor.arg_names() == ["stop_loss_trigger_price", "take_profit_trigger_price"]


def test_pending_command_lifecycle():
    command = PendingCommand.create("exchange", "close_position", {"symbol": "BTCUSDT"}, max_retries=2)

    assert command.status == CommandStatus.PENDING
    assert command.retry_count == 0
    assert command.is_retryable()

    failed = command.mark_failed("timeout")
    assert failed.status == CommandStatus.FAILED
    assert failed.retry_count == 1
    assert failed.error == "timeout"
    assert failed.is_retryable()
    assert command.retry_count == 0

    exhausted = failed.mark_failed("timeout again")
    assert exhausted.retry_count == 2
    assert not exhausted.is_retryable()

    completed = failed.mark_completed()
    assert completed.status == CommandStatus.COMPLETED
    assert completed.error is None
    assert not completed.is_retryable()

    assert failed.mark_pending().status == CommandStatus.PENDING


def test_command_store_json_shape():
    command = PendingCommand.create("exchange", "wait", command_id="cmd1")
    store = CommandStore(pending=[command])

    payload = store.model_dump(mode="json")

    assert set(payload) == {"pending", "completed", "failed"}
    entry = payload["pending"][0]
    assert entry["id"] == "cmd1"
    assert entry["status"] == "pending"
    assert set(entry) == {
        "id",
        "entity_id",
        "command_name",
        "args",
        "status",
        "retry_count",
        "max_retries",
        "created_at",
        "updated_at",
        "error",
    }
    assert CommandStore.model_validate(payload) == store
