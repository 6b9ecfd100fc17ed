"""FastAPI webhook router application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from src.audit.logger import AuditLogger
from src.config import RouterConfig, load_config_from_env
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.proxy.dispatcher import Dispatcher
from src.routing.backends import AIReplyClient, SummaryClient, basic_auth_header
from src.routing.intent import HandoffIntentClassifier
from src.routing.orchestrator import (
    DEFAULT_HANDOFF_MESSAGE,
    DEFAULT_SUMMARY_FALLBACK,
    HandoffBridge,
    ReplyOrchestrator,
)
from src.routing.state import ConversationStateStore, InMemoryConversationStateStore
from src.webhook.fanout import FanOutForwarder
from src.webhook.signature import SIGNATURE_HEADER, answer_challenge, verify_signature
from src.webhook.whatsapp import WhatsAppClient

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/wa"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config_from_env()
    audit_logger = (
        AuditLogger.from_env(config.audit_log_path) if config.audit_log_path else None
    )
    return create_app(config, audit_logger=audit_logger)


def _build_bridge(
    config: RouterConfig, timeout: float,
) -> HandoffBridge | None:
    bridge = config.bridge
    if bridge is None:
        return None
    summary_client = None
    if bridge.summary_endpoint:
        summary_client = SummaryClient(bridge.summary_endpoint, timeout=timeout)
    return HandoffBridge(
        sender=WhatsAppClient(
            bridge.sender, api_base=config.graph_api_base, timeout=timeout,
        ),
        agent_target=bridge.agent_target,
        summary_client=summary_client,
        handoff_message=bridge.handoff_message or DEFAULT_HANDOFF_MESSAGE,
        template_name=bridge.template_name,
        template_language=bridge.template_language,
        summary_fallback=bridge.summary_fallback or DEFAULT_SUMMARY_FALLBACK,
    )


def build_dispatcher(
    config: RouterConfig,
    store: ConversationStateStore | None = None,
    audit_logger: AuditLogger | None = None,
) -> Dispatcher:
    """Wire the fan-out forwarder and reply orchestrator from config."""
    timeout = config.http_timeout
    forwarder = FanOutForwarder(timeout=timeout)
    orchestrator = ReplyOrchestrator(
        store=store if store is not None else InMemoryConversationStateStore(),
        classifier=HandoffIntentClassifier(config.bridge.keywords if config.bridge else []),
        ai_client=AIReplyClient(
            config.ai_endpoint,
            headers=basic_auth_header(config.ai_basic_user, config.ai_basic_pass),
            timeout=timeout,
        ),
        messenger=WhatsAppClient(config.sender, api_base=config.graph_api_base, timeout=timeout),
        forwarder=forwarder,
        bridge=_build_bridge(config, timeout),
        audit_logger=audit_logger,
    )
    return Dispatcher(
        forwarder=forwarder,
        orchestrator=orchestrator,
        observers=config.observers,
        audit_logger=audit_logger,
    )


def create_app(
    config: RouterConfig,
    store: ConversationStateStore | None = None,
    audit_logger: AuditLogger | None = None,
    dispatcher: Dispatcher | None = None,
) -> FastAPI:
    """Create the webhook router app."""
    if dispatcher is None:
        dispatcher = build_dispatcher(config, store=store, audit_logger=audit_logger)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "WA router ready; observers=%d handoff=%s",
            len(config.observers), config.bridge is not None,
        )
        yield
        await dispatcher.drain()

    app = FastAPI(docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.dispatcher = dispatcher

    @app.get("/healthz")
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get(WEBHOOK_PATH)
    async def verify_subscription(request: Request) -> Response:
        params = request.query_params
        result = answer_challenge(
            params.get("hub.mode"),
            params.get("hub.verify_token"),
            params.get("hub.challenge"),
            config.verify_token,
        )
        if result.status_code != 200:
            return Response(status_code=result.status_code)
        return PlainTextResponse(result.content)

    @app.post(WEBHOOK_PATH)
    async def receive_event(request: Request) -> Response:
        raw = await request.body()
        if not verify_signature(raw, request.headers.get(SIGNATURE_HEADER), config.app_secret):
            if audit_logger:
                audit_logger.log(AuditEvent(
                    event_type=AuditEventType.AUTH_FAILURE,
                    source_ip=request.client.host if request.client else None,
                    action=f"{request.method} {request.url.path}",
                    result="failure",
                    risk_level=RiskLevel.HIGH,
                    details={"reason": "invalid_signature"},
                ))
            return JSONResponse({"error": "Invalid webhook signature"}, status_code=401)

        dispatcher.submit(raw)
        if audit_logger:
            audit_logger.log(AuditEvent(
                event_type=AuditEventType.WEBHOOK_ACK,
                source_ip=request.client.host if request.client else None,
                action=f"{request.method} {request.url.path}",
                result="success",
                risk_level=RiskLevel.INFO,
            ))
        return Response(status_code=200)

    return app
