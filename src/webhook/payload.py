"""Payload helpers for message extraction and agent summary injection."""

from __future__ import annotations

import json
import logging
from typing import Any

from src.models import MessageKind, ParsedMessage

logger = logging.getLogger(__name__)

SUMMARY_DELIMITER = "\n\n--- Agent summary ---\n"


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def extract_messages(payload: Any) -> list[ParsedMessage]:
    """Extract messages from a WhatsApp Business API webhook payload.

    Walks every ``entry[].changes[].value.messages[]``. Status updates
    (delivered, read, ...) carry no ``messages`` and yield nothing.
    Unexpected shapes degrade to an empty list.
    """
    messages: list[ParsedMessage] = []
    for entry in _as_list(_as_dict(payload).get("entry")):
        for change in _as_list(_as_dict(entry).get("changes")):
            value = _as_dict(_as_dict(change).get("value"))
            for msg in _as_list(value.get("messages")):
                msg = _as_dict(msg)
                is_text = msg.get("type") == "text"
                body = _as_dict(msg.get("text")).get("body") if is_text else ""
                messages.append(ParsedMessage(
                    conversation_id=str(msg.get("from") or ""),
                    kind=MessageKind.TEXT if is_text else MessageKind.OTHER,
                    text=body.strip() if isinstance(body, str) else "",
                    message_id=str(msg.get("id") or ""),
                ))
    return messages


def _first_text_message(payload: dict[str, Any]) -> dict[str, Any] | None:
    entries = _as_list(payload.get("entry"))
    if not entries:
        return None
    changes = _as_list(_as_dict(entries[0]).get("changes"))
    if not changes:
        return None
    value = _as_dict(_as_dict(changes[0]).get("value"))
    for msg in _as_list(value.get("messages")):
        if isinstance(msg, dict) and msg.get("type") == "text":
            text = msg.get("text")
            if isinstance(text, dict) and isinstance(text.get("body", ""), str):
                return msg
    return None


def inject_summary(body: bytes, summary: str) -> bytes:
    """Return a copy of ``body`` with an agent summary appended to the first text message.

    Only the first change of the first entry is considered. When the body
    cannot be parsed or holds no text message, the original bytes are
    returned unchanged. The input is never modified.
    """
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as exc:
        logger.warning("Summary injection skipped, payload not JSON: %s", exc)
        return body
    if not isinstance(payload, dict):
        return body

    msg = _first_text_message(payload)
    if msg is None:
        return body

    msg["text"]["body"] = f"{msg['text'].get('body', '')}{SUMMARY_DELIMITER}{summary}"
    return json.dumps(payload).encode()
