"""HTTP clients for the AI-reply and summary workflow backends."""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from src.errors import DownstreamError, excerpt

logger = logging.getLogger(__name__)


def basic_auth_header(user: str | None, password: str | None) -> dict[str, str]:
    """Return a Basic Authorization header when both credentials are set."""
    if not user or not password:
        return {}
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


class _JSONBackend:
    service = "backend"

    def __init__(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = endpoint
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout

    async def _post(self, request_body: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self._endpoint,
                    json=request_body,
                    headers=self._headers,
                    timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            logger.error("%s endpoint exception: %s", self.service, exc)
            raise DownstreamError(self.service, reason=str(exc) or type(exc).__name__) from exc

        if resp.status_code >= 400:
            logger.error(
                "%s endpoint error: status=%s body=%s",
                self.service, resp.status_code, excerpt(resp.text),
            )
            raise DownstreamError(self.service, status_code=resp.status_code, body=resp.text)

        try:
            data = resp.json()
        except (ValueError, RecursionError) as exc:
            logger.error(
                "%s endpoint returned invalid JSON: body=%s", self.service, excerpt(resp.text),
            )
            raise DownstreamError(
                self.service, status_code=resp.status_code, body=resp.text, reason="invalid JSON",
            ) from exc
        if not isinstance(data, dict):
            raise DownstreamError(
                self.service, status_code=resp.status_code, reason="unexpected JSON shape",
            )
        return data


class AIReplyClient(_JSONBackend):
    """Asks the conversational-AI workflow for a reply to one user message."""

    service = "ai"

    async def get_reply(self, conversation_id: str, text: str) -> str | None:
        """Return the reply text, or None when the backend has nothing to say."""
        data = await self._post({"conversationId": conversation_id, "text": text})
        reply = data.get("reply")
        if isinstance(reply, str) and reply.strip():
            return reply
        return None


class SummaryClient(_JSONBackend):
    """Fetches a conversation summary for the human agent."""

    service = "summary"

    async def get_summary(self, conversation_id: str) -> str | None:
        data = await self._post({"conversationId": conversation_id})
        summary = data.get("summary")
        if isinstance(summary, str) and summary.strip():
            return summary
        return None
