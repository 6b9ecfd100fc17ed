"""Router configuration loaded from environment variables."""

from __future__ import annotations

import math
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from src.errors import ConfigError
from src.models import ForwardTarget, SenderIdentity
from src.routing.intent import parse_keywords
from src.webhook.whatsapp import DEFAULT_GRAPH_API_BASE

_REQUIRED = (
    "VERIFY_TOKEN",
    "META_APP_SECRET",
    "META_PERM_TOKEN",
    "META_PHONE_NUMBER_ID",
    "OPENAI_ENDPOINT",
)


class BridgeConfig(BaseModel):
    """Human-agent handoff settings; absent when no keywords are configured."""

    model_config = ConfigDict(frozen=True)

    keywords: list[str]
    sender: SenderIdentity
    agent_target: ForwardTarget | None = None
    summary_endpoint: str | None = None
    template_name: str | None = None
    template_language: str = "en"
    handoff_message: str | None = None
    summary_fallback: str | None = None


class RouterConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    verify_token: str
    app_secret: str
    sender: SenderIdentity
    ai_endpoint: str
    ai_basic_user: str | None = None
    ai_basic_pass: str | None = None
    observers: list[ForwardTarget] = Field(default_factory=list)
    bridge: BridgeConfig | None = None
    graph_api_base: str = DEFAULT_GRAPH_API_BASE
    http_timeout: float = Field(default=10.0, gt=0)
    audit_log_path: str | None = None


def _opt(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key, "").strip()
    return value or None


def _observers(env: Mapping[str, str]) -> list[ForwardTarget]:
    observers: list[ForwardTarget] = []
    chatwoot_url = _opt(env, "CHATWOOT_WEBHOOK_URL")
    if chatwoot_url:
        token = _opt(env, "CHATWOOT_WEBHOOK_TOKEN")
        observers.append(ForwardTarget(
            name="chatwoot",
            url=chatwoot_url,
            extra_headers={"X-Chatwoot-Webhook-Token": token} if token else {},
        ))
    urls = [u.strip() for u in env.get("OBSERVER_WEBHOOK_URLS", "").split(",") if u.strip()]
    for i, url in enumerate(urls, start=1):
        observers.append(ForwardTarget(name=f"observer-{i}", url=url))
    return observers


def _bridge(env: Mapping[str, str], primary: SenderIdentity) -> BridgeConfig | None:
    keywords = parse_keywords(env.get("HANDOFF_KEYWORDS"))
    if not keywords:
        return None

    phone_number_id = _opt(env, "HANDOFF_PHONE_NUMBER_ID")
    access_token = _opt(env, "HANDOFF_PERM_TOKEN")
    if phone_number_id and access_token:
        sender = SenderIdentity(phone_number_id=phone_number_id, access_token=access_token)
    else:
        sender = primary

    agent_target: ForwardTarget | None = None
    bridge_url = _opt(env, "AGENT_BRIDGE_WEBHOOK_URL")
    if bridge_url:
        token = _opt(env, "AGENT_BRIDGE_TOKEN")
        agent_target = ForwardTarget(
            name="agent-bridge",
            url=bridge_url,
            extra_headers={"Authorization": f"Bearer {token}"} if token else {},
        )

    return BridgeConfig(
        keywords=keywords,
        sender=sender,
        agent_target=agent_target,
        summary_endpoint=_opt(env, "SUMMARY_ENDPOINT"),
        template_name=_opt(env, "HANDOFF_TEMPLATE_NAME"),
        template_language=_opt(env, "HANDOFF_TEMPLATE_LANGUAGE") or "en",
        handoff_message=_opt(env, "HANDOFF_MESSAGE"),
        summary_fallback=_opt(env, "SUMMARY_FALLBACK_MESSAGE"),
    )


def load_config_from_env(env: Mapping[str, str] | None = None) -> RouterConfig:
    """Build RouterConfig from the process environment (or a given mapping).

    Raises ConfigError naming every missing mandatory variable.
    """
    env = os.environ if env is None else env
    missing = [key for key in _REQUIRED if not _opt(env, key)]
    if missing:
        raise ConfigError(missing)

    sender = SenderIdentity(
        phone_number_id=env["META_PHONE_NUMBER_ID"].strip(),
        access_token=env["META_PERM_TOKEN"].strip(),
    )
    try:
        timeout = float(_opt(env, "HTTP_TIMEOUT_SECONDS") or "10")
    except ValueError as exc:
        raise ConfigError(["HTTP_TIMEOUT_SECONDS"]) from exc
    if not math.isfinite(timeout) or timeout <= 0:
        raise ConfigError(["HTTP_TIMEOUT_SECONDS"])

    return RouterConfig(
        verify_token=env["VERIFY_TOKEN"].strip(),
        app_secret=env["META_APP_SECRET"].strip(),
        sender=sender,
        ai_endpoint=env["OPENAI_ENDPOINT"].strip(),
        ai_basic_user=_opt(env, "N8N_BASIC_USER"),
        ai_basic_pass=_opt(env, "N8N_BASIC_PASS"),
        observers=_observers(env),
        bridge=_bridge(env, sender),
        graph_api_base=_opt(env, "GRAPH_API_BASE") or DEFAULT_GRAPH_API_BASE,
        http_timeout=timeout,
        audit_log_path=_opt(env, "AUDIT_LOG_PATH"),
    )
