"""Tests for the model-backed agent: prompting, splitting, extraction and retries."""

from typing import List

import pytest

from trademind.agents import LLMAgent
from trademind.extraction import InvalidObjectError, NoObjectFoundError
from trademind.schemas import ActionDescriptor, ArgumentDescriptor, Message
from trademind.session import ChatSession


def script_responses(monkeypatch, responses: List[str]) -> List[dict]:
    """Replace the model call with canned completions; returns the recorded calls."""

    calls: List[dict] = []
    remaining = list(responses)

    async def fake_call_llm_text(**kwargs):
        calls.append(kwargs)
        return remaining.pop(0)

    monkeypatch.setattr("trademind.agents.llm_agent.call_llm_text", fake_call_llm_text)
    return calls


def make_agent(**overrides) -> LLMAgent:
    settings = {
        "name": "primary",
        "llm_provider": "openai",
        "llm_model": "gpt-4o-mini",
        "background": "You trade BTCUSDT perpetual futures.",
    }
    settings.update(overrides)
    return LLMAgent(**settings)


@pytest.mark.asyncio
async def test_gen_actions_splits_reasoning_and_parses_decision(monkeypatch):
    content = '{"thoughts": {"speak": "Opening long"}, "action": {"name": "exchange.open_long_position", "args": {"stop_loss_trigger_price": "1.3095"}}}'
    calls = script_responses(monkeypatch, [f"<thinking>RSI is recovering.</thinking>\n{content}"])
    agent = make_agent()
    session = ChatSession()

    decision = await agent.gen_actions(session, [Message(text="BTCUSDT close 64000")])

    assert decision.action.name == "exchange.open_long_position"
    assert decision.reasoning == "RSI is recovering."
    assert decision.model == "primary"
    assert session.get_chats() == ["You:BTCUSDT close 64000", f"primary:{content}"]

    assert len(calls) == 1
    assert calls[0]["llm_provider"] == "openai"
    assert "You trade BTCUSDT perpetual futures." in calls[0]["system_prompt"]
    assert "<thinking>" in calls[0]["system_prompt"]
    assert "You:BTCUSDT close 64000" in calls[0]["user_prompt"]


@pytest.mark.asyncio
async def test_previous_chats_are_included_in_prompt(monkeypatch):
    calls = script_responses(monkeypatch, ['{"thoughts": {"speak": "ok"}}'])
    session = ChatSession(chats=["You:earlier question", "primary:earlier answer"])

    decision = await make_agent().gen_actions(session, [Message(text="now")])

    assert decision.reasoning is None
    assert "You:earlier question\nprimary:earlier answer" in calls[0]["user_prompt"]


@pytest.mark.asyncio
async def test_invalid_object_is_retried_with_feedback(monkeypatch):
    calls = script_responses(
        monkeypatch,
        [
            '{"action": {"name": "exchange.open_long_position", "args": {"qty": 1}}}',
            '{"action": {"name": "exchange.open_long_position", "args": {"qty": "1"}}}',
        ],
    )
    session = ChatSession()

    decision = await make_agent(max_attempts=3).gen_actions(session, [Message(text="go")])

    assert decision.action.args == {"qty": "1"}
    assert len(calls) == 2
    assert "could not be decoded as a decision" not in calls[0]["user_prompt"]
    assert "could not be decoded as a decision" in calls[1]["user_prompt"]
    assert "action.args.qty" in calls[1]["user_prompt"]
    # Only the successful exchange lands in the transcript
    assert len(session.get_chats()) == 2


@pytest.mark.asyncio
async def test_invalid_object_after_last_attempt_is_raised(monkeypatch):
    calls = script_responses(monkeypatch, ['{"unrelated": 1}', '{"unrelated": 2}'])
    session = ChatSession()

    with pytest.raises(InvalidObjectError):
        await make_agent(max_attempts=2).gen_actions(session, [Message(text="go")])

    assert len(calls) == 2
    assert session.get_chats() == []


@pytest.mark.asyncio
async def test_missing_object_is_not_retried(monkeypatch):
    calls = script_responses(monkeypatch, ["I would rather not trade today.", "unused"])

    with pytest.raises(NoObjectFoundError):
        await make_agent().gen_actions(ChatSession(), [Message(text="go")])

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_provider_errors_propagate(monkeypatch):
    async def failing_call(**kwargs):
        raise RuntimeError("rate limited")

    monkeypatch.setattr("trademind.agents.llm_agent.call_llm_text", failing_call)

    with pytest.raises(RuntimeError, match="rate limited"):
        await make_agent().gen_actions(ChatSession(), [Message(text="go")])


@pytest.mark.asyncio
async def test_registered_actions_appear_in_catalog(monkeypatch):
    calls = script_responses(monkeypatch, ['{"thoughts": {"speak": "ok"}}'])
    agent = make_agent()
    agent.register_actions(
        [
            ActionDescriptor(
                name="exchange.close_position",
                description="Close the open position",
                args=[ArgumentDescriptor(name="symbol", description="Trading pair")],
                samples=[{"name": "exchange.close_position", "args": {"symbol": "BTCUSDT"}}],
            )
        ]
    )
    agent.register_actions([ActionDescriptor(name="exchange.close_position", description="Close now")])

    await agent.gen_actions(ChatSession(), [Message(text="go")])

    assert len(agent.actions) == 1
    system_prompt = calls[0]["system_prompt"]
    assert "- exchange.close_position: Close now" in system_prompt


@pytest.mark.asyncio
async def test_context_budget_trims_oldest_chats(monkeypatch):
    calls = script_responses(monkeypatch, ['{"thoughts": {"speak": "ok"}}'])
    session = ChatSession(chats=["You:" + "x" * 500, "You:recent"])

    await make_agent(max_context_length=200).gen_actions(session, [Message(text="go")])

    user_prompt = calls[0]["user_prompt"]
    assert "You:recent" in user_prompt
    assert "x" * 500 not in user_prompt


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        make_agent(max_attempts=0)
