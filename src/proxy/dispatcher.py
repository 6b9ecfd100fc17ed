"""Post-acknowledgment dispatch of verified webhook events.

The request handler only calls ``Dispatcher.submit``, which spawns one
background task per event and returns immediately, so the source gets its
200 before any downstream call starts. Inside the task the observer
fan-out and the reply routing run concurrently; their settled results are
logged and kept in a bounded history for inspection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.models import (
    AuditEvent,
    AuditEventType,
    ForwardResult,
    ForwardTarget,
    RiskLevel,
    RoutingOutcome,
)

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.routing.orchestrator import ReplyOrchestrator
    from src.webhook.fanout import FanOutForwarder

logger = logging.getLogger(__name__)

_HISTORY_SIZE = 100


@dataclass
class DispatchReport:
    """Settled outcome of one dispatched event."""

    fanout: list[ForwardResult] = field(default_factory=list)
    routing: list[RoutingOutcome] = field(default_factory=list)
    malformed: bool = False
    errors: list[str] = field(default_factory=list)


class Dispatcher:
    """Runs fan-out and routing for acknowledged events as background tasks."""

    def __init__(
        self,
        forwarder: FanOutForwarder,
        orchestrator: ReplyOrchestrator,
        observers: list[ForwardTarget] | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._forwarder = forwarder
        self._orchestrator = orchestrator
        self._observers = list(observers or [])
        self._audit = audit_logger
        self._tasks: set[asyncio.Task[DispatchReport]] = set()
        self.history: deque[DispatchReport] = deque(maxlen=_HISTORY_SIZE)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, raw: bytes) -> asyncio.Task[DispatchReport]:
        """Schedule processing of ``raw`` without awaiting it."""
        task = asyncio.create_task(self.dispatch(raw))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight event to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def dispatch(self, raw: bytes) -> DispatchReport:
        report = DispatchReport()
        fanout, routing = await asyncio.gather(
            self._forwarder.forward_all(self._observers, raw),
            self._route(raw, report),
            return_exceptions=True,
        )

        if isinstance(fanout, BaseException):
            logger.error("Fan-out failed: %r", fanout)
            report.errors.append(f"fanout: {fanout!r}")
        else:
            report.fanout = fanout
            self._audit_fanout(fanout)

        if isinstance(routing, BaseException):
            logger.error("Routing failed: %r", routing, exc_info=routing)
            report.errors.append(f"routing: {routing!r}")
        else:
            report.routing = routing

        self.history.append(report)
        return report

    async def _route(self, raw: bytes, report: DispatchReport) -> list[RoutingOutcome]:
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            payload = None
            logger.error("JSON parse error: %s", exc)
        if not isinstance(payload, dict):
            report.malformed = True
            if self._audit:
                self._audit.log(AuditEvent(
                    event_type=AuditEventType.MALFORMED_PAYLOAD,
                    action="parse",
                    result="failure",
                    risk_level=RiskLevel.LOW,
                    details={"size": len(raw)},
                ))
            return []
        return await self._orchestrator.handle_event(raw, payload)

    def _audit_fanout(self, results: list[ForwardResult]) -> None:
        if not self._audit:
            return
        for result in results:
            if result.skipped:
                continue
            self._audit.log(AuditEvent(
                event_type=AuditEventType.FANOUT_DELIVERY,
                action=f"forward:{result.target}",
                result="success" if result.ok else "failure",
                risk_level=RiskLevel.INFO if result.ok else RiskLevel.MEDIUM,
                details={
                    "status_code": result.status_code,
                    "error": result.error,
                },
            ))
