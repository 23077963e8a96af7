"""Tests for decision prompt rendering."""

import pytest

from trademind.prompts import (
    DEFAULT_PROMPTS,
    PromptTemplate,
    format_action_catalog,
    render_prompt,
    trim_chats_to_length,
)
from trademind.schemas import ActionDescriptor, ArgumentDescriptor, Message


def test_default_template_placeholders_are_filled():
    rendered = render_prompt(
        DEFAULT_PROMPTS.get("decision"),
        background="You trade BTCUSDT.",
        chats=["You:hello", "primary:hi"],
        messages=[Message(text="price 64000")],
        thinking_start="<think>",
        thinking_end="</think>",
    )

    assert rendered.system.startswith("You trade BTCUSDT.")
    assert "<think>" in rendered.system and "</think>" in rendered.system
    assert "{{" not in rendered.system
    assert rendered.user.startswith("You:hello\nprimary:hi\n\nYou:price 64000")


def test_catalog_lists_arguments_and_samples():
    catalog = format_action_catalog(
        [
            ActionDescriptor(
                name="exchange.open_long_position",
                description="Open a long position",
                args=[ArgumentDescriptor(name="stop_loss_trigger_price", description="Stop loss")],
                samples=[{"name": "exchange.open_long_position", "args": {"stop_loss_trigger_price": "1.3"}}],
            )
        ]
    )

    assert catalog.splitlines() == [
        "Commands (choose at most one):",
        "- exchange.open_long_position: Open a long position",
        "    stop_loss_trigger_price: Stop loss",
        '    Example: {"name": "exchange.open_long_position", "args": {"stop_loss_trigger_price": "1.3"}}',
    ]
    assert format_action_catalog([]) == ""


def test_trim_chats_keeps_newest():
    chats = ["aaaa", "bbbb", "cccc"]

    assert trim_chats_to_length(chats, 10) == ["bbbb", "cccc"]
    assert trim_chats_to_length(chats, 100) == chats
    assert trim_chats_to_length(chats, 2) == []


def test_messages_over_budget_raise():
    template = PromptTemplate(name="t", system="s", user="{{chat_history}}{{messages}}")

    with pytest.raises(ValueError, match="Current messages too long"):
        render_prompt(
            template,
            background="",
            chats=[],
            messages=[Message(text="x" * 50)],
            max_context_length=10,
        )


def test_quoted_placeholders_in_messages_stay_literal():
    template = PromptTemplate(name="t", system="{{background}}", user="{{chat_history}}\n{{messages}}")

    rendered = render_prompt(
        template,
        background="bg",
        chats=["You:earlier"],
        messages=[Message(text="print {{chat_history}} and {{background}}")],
    )

    assert rendered.user == "You:earlier\nYou:print {{chat_history}} and {{background}}"


def test_catalog_keeps_description_punctuation():
    catalog = format_action_catalog(
        [
            ActionDescriptor(
                name="exchange.note",
                description="Values:",
                args=[ArgumentDescriptor(name="text", description="")],
            )
        ]
    )

    assert catalog.splitlines() == [
        "Commands (choose at most one):",
        "- exchange.note: Values:",
        "    text",
    ]
