"""Tests for environment configuration loading."""

from __future__ import annotations

import pytest

from src.config import load_config_from_env
from src.errors import ConfigError

REQUIRED_ENV = {
    "VERIFY_TOKEN": "verify",
    "META_APP_SECRET": "secret",
    "META_PERM_TOKEN": "perm",
    "META_PHONE_NUMBER_ID": "111",
    "OPENAI_ENDPOINT": "http://n8n.test/ai",
}


def _env(**kwargs: str) -> dict[str, str]:
    return {**REQUIRED_ENV, **kwargs}


def test_minimal_config() -> None:
    config = load_config_from_env(_env())
    assert config.verify_token == "verify"
    assert config.app_secret == "secret"
    assert config.sender.phone_number_id == "111"
    assert config.sender.access_token == "perm"
    assert config.observers == []
    assert config.bridge is None
    assert config.http_timeout == 10.0
    assert config.graph_api_base.startswith("https://graph.facebook.com/")


def test_missing_required_lists_every_key() -> None:
    env = _env()
    del env["META_APP_SECRET"]
    env["VERIFY_TOKEN"] = "   "
    with pytest.raises(ConfigError) as exc_info:
        load_config_from_env(env)
    assert exc_info.value.missing == ["VERIFY_TOKEN", "META_APP_SECRET"]


def test_chatwoot_observer_with_token() -> None:
    config = load_config_from_env(_env(
        CHATWOOT_WEBHOOK_URL="http://chatwoot.test/hook",
        CHATWOOT_WEBHOOK_TOKEN="cw",
    ))
    assert len(config.observers) == 1
    assert config.observers[0].name == "chatwoot"
    assert config.observers[0].extra_headers == {"X-Chatwoot-Webhook-Token": "cw"}


def test_extra_observers() -> None:
    config = load_config_from_env(_env(
        OBSERVER_WEBHOOK_URLS="http://a.test, http://b.test ,",
    ))
    assert [o.url for o in config.observers] == ["http://a.test", "http://b.test"]
    assert all(o.extra_headers == {} for o in config.observers)


def test_bridge_absent_without_keywords() -> None:
    config = load_config_from_env(_env(
        HANDOFF_KEYWORDS=" , ",
        AGENT_BRIDGE_WEBHOOK_URL="http://bridge.test",
    ))
    assert config.bridge is None


def test_bridge_with_alternate_sender() -> None:
    config = load_config_from_env(_env(
        HANDOFF_KEYWORDS="human, agent",
        HANDOFF_PHONE_NUMBER_ID="222",
        HANDOFF_PERM_TOKEN="handoff",
        AGENT_BRIDGE_WEBHOOK_URL="http://bridge.test",
        AGENT_BRIDGE_TOKEN="bt",
        SUMMARY_ENDPOINT="http://sum.test",
        HANDOFF_TEMPLATE_NAME="agent_joining",
    ))
    bridge = config.bridge
    assert bridge is not None
    assert bridge.keywords == ["human", "agent"]
    assert bridge.sender.phone_number_id == "222"
    assert bridge.agent_target is not None
    assert bridge.agent_target.extra_headers == {"Authorization": "Bearer bt"}
    assert bridge.summary_endpoint == "http://sum.test"
    assert bridge.template_name == "agent_joining"
    assert bridge.template_language == "en"


def test_bridge_sender_falls_back_to_primary() -> None:
    config = load_config_from_env(_env(
        HANDOFF_KEYWORDS="human",
        HANDOFF_PHONE_NUMBER_ID="222",
    ))
    assert config.bridge is not None
    assert config.bridge.sender == config.sender
    assert config.bridge.agent_target is None


@pytest.mark.parametrize("raw", ["soon", "0", "-1", "nan", "inf"])
def test_invalid_timeout(raw: str) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_config_from_env(_env(HTTP_TIMEOUT_SECONDS=raw))
    assert exc_info.value.missing == ["HTTP_TIMEOUT_SECONDS"]


@pytest.mark.parametrize("raw", ["", "   "])
def test_blank_timeout_uses_default(raw: str) -> None:
    assert load_config_from_env(_env(HTTP_TIMEOUT_SECONDS=raw)).http_timeout == 10.0


def test_custom_timeout() -> None:
    assert load_config_from_env(_env(HTTP_TIMEOUT_SECONDS="2.5")).http_timeout == 2.5


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("AUDIT_LOG_PATH", "/tmp/router-audit.jsonl")
    config = load_config_from_env()
    assert config.audit_log_path == "/tmp/router-audit.jsonl"
