"""Tests for environment-driven configuration."""

import pytest

from trademind.config import Config, KeeperConfig, _split_names


def test_split_names_ignores_blanks():
    assert _split_names(" gpt, ,local ,") == ["gpt", "local"]
    assert _split_names("") == []


def test_keeper_config_from_class_attributes(monkeypatch):
    monkeypatch.setattr(Config, "KEEPER_ENABLED", True)
    monkeypatch.setattr(Config, "KEEPER_LEADER", "claude")
    monkeypatch.setattr(Config, "KEEPER_FOLLOWERS", ["gpt", "local"])

    assert Config.keeper_config() == KeeperConfig(enabled=True, leader="claude", followers=["gpt", "local"])


def test_validate_rejects_unusable_values(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "ollama")
    Config.validate()

    monkeypatch.setattr(Config, "MEMORY_MAX_WORDS", 0)
    with pytest.raises(ValueError, match="MEMORY_MAX_WORDS"):
        Config.validate()


def test_validate_requires_provider_key(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "anthropic")
    monkeypatch.setattr(Config, "ANTHROPIC_API_KEY", None)

    with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
        Config.validate()


def test_display_mentions_keeper_chain(monkeypatch):
    monkeypatch.setattr(Config, "KEEPER_LEADER", "claude")
    monkeypatch.setattr(Config, "KEEPER_FOLLOWERS", [])

    assert "Keeper: leader=claude followers=(none)" in Config.display()
