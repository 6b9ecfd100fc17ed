"""Shared test fixtures for wa-handoff-router."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.audit.logger import AuditLogger
from src.config import BridgeConfig, RouterConfig
from src.models import ForwardTarget, SenderIdentity

APP_SECRET = "test_app_secret"
VERIFY_TOKEN = "test_verify_token"
WA_ID = "15551234567"


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def sign_body(body: bytes, secret: str = APP_SECRET) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def make_payload(
    text: str = "hello",
    wa_id: str = WA_ID,
    msg_type: str = "text",
    extra_messages: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """WhatsApp Cloud API webhook payload with one inbound message."""
    message: dict[str, Any] = {
        "from": wa_id,
        "id": "wamid.TEST",
        "timestamp": "1700000000",
        "type": msg_type,
    }
    if msg_type == "text":
        message["text"] = {"body": text}
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": "PHONE_ID"},
                            "messages": [message, *(extra_messages or [])],
                        },
                        "field": "messages",
                    }
                ],
            }
        ],
    }


def make_body(**kwargs: Any) -> bytes:
    return json.dumps(make_payload(**kwargs)).encode()


def make_config(**kwargs: Any) -> RouterConfig:
    defaults: dict[str, Any] = {
        "verify_token": VERIFY_TOKEN,
        "app_secret": APP_SECRET,
        "sender": SenderIdentity(phone_number_id="PRIMARY_ID", access_token="primary_token"),
        "ai_endpoint": "http://n8n.test/webhook/ai",
        "observers": [],
        "bridge": None,
    }
    defaults.update(kwargs)
    return RouterConfig(**defaults)


def make_bridge_config(**kwargs: Any) -> BridgeConfig:
    defaults: dict[str, Any] = {
        "keywords": ["human", "agent"],
        "sender": SenderIdentity(phone_number_id="HANDOFF_ID", access_token="handoff_token"),
        "agent_target": ForwardTarget(
            name="agent-bridge",
            url="http://bridge.test/hook",
            extra_headers={"Authorization": "Bearer bridge_token"},
        ),
    }
    defaults.update(kwargs)
    return BridgeConfig(**defaults)


def mock_async_client(post: AsyncMock) -> MagicMock:
    """httpx.AsyncClient stand-in usable as ``async with``."""
    client = AsyncMock()
    client.post = post
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=client)


def http_response(status_code: int = 200, json_body: Any = None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text if text else (json.dumps(json_body) if json_body is not None else "")
    if json_body is not None:
        resp.json.return_value = json_body
    else:
        resp.json.side_effect = json.JSONDecodeError("Expecting value", resp.text, 0)
    return resp
