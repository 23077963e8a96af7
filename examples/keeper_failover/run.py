"""
Example: Decision Loop with Failover
====================================

WHAT THIS SHOWS:
- Two model-backed agents chained by an AgentKeeper (leader + follower)
- Market events turned into prompts
- Chosen actions recorded as pending commands in a JSON ledger
- Conversation memory carried between decisions

REQUIRES:
- LLM_PROVIDER / LLM_MODEL for the leader (e.g., "anthropic" / "claude-sonnet-4-5")
- API key for that provider
- Optional: a local Ollama server for the follower (FOLLOWER_MODEL, default llama3.1)

RUN:
    export LLM_PROVIDER=anthropic
    export LLM_MODEL=claude-sonnet-4-5
    export ANTHROPIC_API_KEY=your_key
    export KEEPER_LEADER=primary KEEPER_FOLLOWERS=local
    python -m examples.keeper_failover.run
"""

import asyncio
import os

from trademind import (
    ActionDescriptor,
    ArgumentDescriptor,
    ChatSession,
    CommandResultEvent,
    LLMAgent,
    Orchestrator,
    PositionChangedEvent,
)
from trademind.config import Config
from trademind.session import ROLE_ADMIN

ACTIONS = [
    ActionDescriptor(
        name="exchange.open_long_position",
        description="Open a long position at market price",
        args=[
            ArgumentDescriptor(name="stop_loss_trigger_price", description="Price that closes the position at a loss"),
            ArgumentDescriptor(name="take_profit_trigger_price", description="Price that closes the position in profit"),
        ],
        samples=[
            {
                "name": "exchange.open_long_position",
                "args": {"stop_loss_trigger_price": "1.3095", "take_profit_trigger_price": "1.4850"},
            }
        ],
    ),
    ActionDescriptor(name="exchange.close_position", description="Close the open position"),
]

BACKGROUND = (
    "You are a disciplined futures trader on BTCUSDT. Use a 3% trailing stop loss "
    "and a 10% take profit. Do nothing when the signal is unclear."
)


async def main():
    try:
        Config.validate()
    except ValueError as exc:
        print(f"❌ {exc}")
        return

    print(Config.display())
    print()

    primary = LLMAgent.from_config("primary", background=BACKGROUND)
    local = LLMAgent.from_config(
        "local",
        llm_provider="ollama",
        llm_model=os.getenv("FOLLOWER_MODEL", "llama3.1"),
        background=BACKGROUND,
    )
    for agent in (primary, local):
        agent.register_actions(ACTIONS)

    orchestrator = Orchestrator.from_config({"primary": primary, "local": local}, required_role=ROLE_ADMIN)
    await orchestrator.start()

    for command in await orchestrator.resume_pending_commands():
        print(f"  Pending from a previous run: /{command.entity_id}.{command.command_name} {command.args}")

    session = ChatSession(roles={ROLE_ADMIN})
    events = [
        PositionChangedEvent(symbol="BTCUSDT", side="flat", quantity=0),
        CommandResultEvent(command_name="exchange.close_position", args={"symbol": "BTCUSDT"}, success=True),
    ]

    try:
        result = await orchestrator.step_events(session, events)
    finally:
        await orchestrator.stop()

    if result is None:
        print("No prompts produced by events.")
        return

    decision = result.decision
    if decision.thoughts is not None:
        print(decision.thoughts.to_human_text())
    if result.command is not None:
        print(f"Recorded command {result.command.id}: /{decision.action.name} {decision.action.args}")
    else:
        print("No command this time.")
    if result.memory_truncated:
        print(f"Memory was truncated to {Config.MEMORY_MAX_WORDS} words.")


if __name__ == "__main__":
    asyncio.run(main())
