"""Shared Pydantic data models for wa-handoff-router."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class MessageKind(str, Enum):
    TEXT = "text"
    OTHER = "other"


class RoutingAction(str, Enum):
    AI_REPLY = "ai_reply"
    NO_REPLY = "no_reply"
    HANDOFF = "handoff"
    SUPPRESSED = "suppressed"


class AuditEventType(str, Enum):
    AUTH_FAILURE = "auth_failure"
    WEBHOOK_ACK = "webhook_ack"
    FANOUT_DELIVERY = "fanout_delivery"
    MALFORMED_PAYLOAD = "malformed_payload"
    AI_REPLY = "ai_reply"
    NO_REPLY = "no_reply"
    HANDOFF = "handoff"
    REPLY_SUPPRESSED = "reply_suppressed"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Webhook Models ---


class ParsedMessage(BaseModel):
    """Read-only view of one message extracted from an inbound event."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    kind: MessageKind
    text: str = ""
    message_id: str = ""


class ForwardTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: str | None = None
    extra_headers: dict[str, str] = Field(default_factory=dict)


class ForwardResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str
    ok: bool
    status_code: int | None = None
    error: str | None = None
    skipped: bool = False


class ChallengeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: int
    content: str = ""


# --- Routing Models ---


class SenderIdentity(BaseModel):
    """Phone number id + access token pair used for outbound sends."""

    model_config = ConfigDict(frozen=True)

    phone_number_id: str
    access_token: str


class RoutingOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    action: RoutingAction
    detail: str | None = None


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    conversation_id: str | None = None
    action: str
    result: str  # "success" | "failure" | "skipped"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
