"""Best-effort fan-out of raw webhook events to observer endpoints.

Every configured target receives the same bytes in parallel. A failing
target is logged and reported in its ForwardResult; it never raises past
this module and never affects delivery to the other targets.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from src.errors import excerpt
from src.models import ForwardResult, ForwardTarget

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 10.0


class FanOutForwarder:
    """POSTs raw event bytes to configured ForwardTargets."""

    def __init__(self, timeout: float = _DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout

    async def forward(self, target: ForwardTarget, body: bytes) -> ForwardResult:
        """Deliver ``body`` verbatim to one target."""
        if not target.url:
            return ForwardResult(target=target.name, ok=True, skipped=True)

        headers = {"Content-Type": "application/json", **target.extra_headers}
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    target.url, content=body, headers=headers, timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            logger.error("Forward exception %s (%s): %s", target.name, target.url, exc)
            return ForwardResult(target=target.name, ok=False, error=str(exc) or type(exc).__name__)

        if resp.status_code >= 400:
            logger.error(
                "Forward error %s (%s): status=%s body=%s",
                target.name, target.url, resp.status_code, excerpt(resp.text),
            )
            return ForwardResult(
                target=target.name, ok=False, status_code=resp.status_code,
            )
        return ForwardResult(target=target.name, ok=True, status_code=resp.status_code)

    async def forward_all(
        self, targets: Sequence[ForwardTarget], body: bytes,
    ) -> list[ForwardResult]:
        """Start every delivery at once and wait for all of them to settle."""
        if not targets:
            return []
        settled = await asyncio.gather(
            *(self.forward(t, body) for t in targets), return_exceptions=True,
        )
        results: list[ForwardResult] = []
        for target, outcome in zip(targets, settled, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("Forward crashed %s: %r", target.name, outcome)
                results.append(ForwardResult(
                    target=target.name, ok=False, error=repr(outcome),
                ))
            else:
                results.append(outcome)
        return results
