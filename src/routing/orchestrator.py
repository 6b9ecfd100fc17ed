"""Reply orchestrator — per-message AI reply vs. human handoff routing.

For every text message in an event:

1. Handoff intent: mark the conversation as handed off, brief the agent
   bridge with an annotated copy of the event, open the user window from
   the handoff sender, then send the conversation summary (or a fallback
   phrase). The AI backend is not called.
2. Otherwise, if the conversation is not handed off: ask the AI backend for
   a reply and relay it to the user.
3. Handed-off conversations receive no automated action.

Downstream failures and unexpected routing errors are logged and treated as
"no result"; they never stop the remaining messages of the event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.errors import DownstreamError
from src.models import (
    AuditEvent,
    AuditEventType,
    ForwardTarget,
    MessageKind,
    ParsedMessage,
    RiskLevel,
    RoutingAction,
    RoutingOutcome,
)
from src.webhook.payload import extract_messages, inject_summary

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.routing.backends import AIReplyClient, SummaryClient
    from src.routing.intent import HandoffIntentClassifier
    from src.routing.state import ConversationStateStore
    from src.webhook.fanout import FanOutForwarder
    from src.webhook.whatsapp import WhatsAppClient

logger = logging.getLogger(__name__)

DEFAULT_HANDOFF_MESSAGE = "Thanks for reaching out. A member of our team will join this chat shortly."
DEFAULT_SUMMARY_FALLBACK = "Summary unavailable; please review the conversation history."
DEFAULT_SUMMARY_PLACEHOLDER = "Customer requested a human agent."


@dataclass
class HandoffBridge:
    """Collaborators used only when a conversation is handed to a human."""

    sender: WhatsAppClient
    agent_target: ForwardTarget | None = None
    summary_client: SummaryClient | None = None
    handoff_message: str = DEFAULT_HANDOFF_MESSAGE
    template_name: str | None = None
    template_language: str = "en"
    summary_fallback: str = DEFAULT_SUMMARY_FALLBACK
    summary_placeholder: str = DEFAULT_SUMMARY_PLACEHOLDER


class ReplyOrchestrator:
    """Routes user text messages to the AI backend or to a human agent."""

    def __init__(
        self,
        store: ConversationStateStore,
        classifier: HandoffIntentClassifier,
        ai_client: AIReplyClient,
        messenger: WhatsAppClient,
        forwarder: FanOutForwarder,
        bridge: HandoffBridge | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._ai = ai_client
        self._messenger = messenger
        self._forwarder = forwarder
        self._bridge = bridge
        self._audit = audit_logger

    async def handle_event(self, raw: bytes, payload: object) -> list[RoutingOutcome]:
        """Route every text message in a parsed event, in order."""
        outcomes: list[RoutingOutcome] = []
        for message in extract_messages(payload):
            if message.kind != MessageKind.TEXT:
                continue
            if not message.conversation_id or not message.text:
                continue
            try:
                outcome = await self.route_message(raw, message)
            except Exception as exc:
                logger.exception("Routing crashed for %s", message.conversation_id)
                outcome = RoutingOutcome(
                    conversation_id=message.conversation_id,
                    action=RoutingAction.NO_REPLY,
                    detail=repr(exc),
                )
            outcomes.append(outcome)
            self._log_outcome(outcome)
        return outcomes

    async def route_message(self, raw: bytes, message: ParsedMessage) -> RoutingOutcome:
        conversation_id = message.conversation_id

        if self._classifier.is_handoff_intent(message.text):
            return await self._handoff(raw, conversation_id)

        if self._store.get(conversation_id):
            return RoutingOutcome(
                conversation_id=conversation_id, action=RoutingAction.SUPPRESSED,
            )

        try:
            reply = await self._ai.get_reply(conversation_id, message.text)
        except DownstreamError as exc:
            return RoutingOutcome(
                conversation_id=conversation_id,
                action=RoutingAction.NO_REPLY,
                detail=str(exc),
            )
        if not reply:
            return RoutingOutcome(conversation_id=conversation_id, action=RoutingAction.NO_REPLY)

        try:
            await self._messenger.send_text(conversation_id, reply)
        except DownstreamError as exc:
            return RoutingOutcome(
                conversation_id=conversation_id,
                action=RoutingAction.NO_REPLY,
                detail=str(exc),
            )
        return RoutingOutcome(conversation_id=conversation_id, action=RoutingAction.AI_REPLY)

    async def _handoff(self, raw: bytes, conversation_id: str) -> RoutingOutcome:
        first = self._store.set_handoff(conversation_id)
        logger.info(
            "Handoff requested for %s (%s)",
            conversation_id, "new" if first else "already active",
        )
        failures: list[str] = []
        bridge = self._bridge

        summary: str | None = None
        if bridge and bridge.summary_client:
            try:
                summary = await bridge.summary_client.get_summary(conversation_id)
            except DownstreamError as exc:
                failures.append(str(exc))

        if bridge and bridge.agent_target and bridge.agent_target.url:
            annotated = inject_summary(raw, summary or bridge.summary_placeholder)
            try:
                result = await self._forwarder.forward(bridge.agent_target, annotated)
            except Exception as exc:
                logger.exception("Agent bridge forward crashed for %s", conversation_id)
                failures.append(f"{bridge.agent_target.name} forward failed: {exc!r}")
            else:
                if not result.ok:
                    failures.append(f"{result.target} forward failed")

        sender = bridge.sender if bridge else self._messenger
        message = bridge.handoff_message if bridge else DEFAULT_HANDOFF_MESSAGE
        try:
            if bridge:
                await sender.send_template_or_text(
                    conversation_id,
                    message,
                    template_name=bridge.template_name,
                    language=bridge.template_language,
                )
            else:
                await sender.send_text(conversation_id, message)
        except DownstreamError as exc:
            failures.append(str(exc))

        if bridge and bridge.summary_client:
            try:
                await sender.send_text(conversation_id, summary or bridge.summary_fallback)
            except DownstreamError as exc:
                failures.append(str(exc))

        return RoutingOutcome(
            conversation_id=conversation_id,
            action=RoutingAction.HANDOFF,
            detail="; ".join(failures) or None,
        )

    def _log_outcome(self, outcome: RoutingOutcome) -> None:
        logger.info("Routed %s: %s", outcome.conversation_id, outcome.action.value)
        if not self._audit:
            return
        event_type = {
            RoutingAction.AI_REPLY: AuditEventType.AI_REPLY,
            RoutingAction.NO_REPLY: AuditEventType.NO_REPLY,
            RoutingAction.HANDOFF: AuditEventType.HANDOFF,
            RoutingAction.SUPPRESSED: AuditEventType.REPLY_SUPPRESSED,
        }[outcome.action]
        if outcome.detail:
            result = "failure"
        elif outcome.action == RoutingAction.NO_REPLY:
            result = "skipped"
        else:
            result = "success"
        self._audit.log(AuditEvent(
            event_type=event_type,
            conversation_id=outcome.conversation_id,
            action=outcome.action.value,
            result=result,
            risk_level=RiskLevel.INFO,
            details={"detail": outcome.detail} if outcome.detail else None,
        ))
