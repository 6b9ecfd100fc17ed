"""WhatsApp Cloud API outbound client.

Sends free-form text and template messages through the Graph API
``/{phone_number_id}/messages`` endpoint with bearer-token auth. Each
client is bound to one sender identity; the handoff path uses a second
client bound to an alternate identity.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.errors import DownstreamError, excerpt
from src.models import SenderIdentity

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_API_BASE = "https://graph.facebook.com/v21.0"


class WhatsAppClient:
    """Sends messages to WhatsApp users from a single sender identity."""

    def __init__(
        self,
        sender: SenderIdentity,
        api_base: str = DEFAULT_GRAPH_API_BASE,
        timeout: float = 10.0,
    ) -> None:
        self._sender = sender
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    @property
    def sender(self) -> SenderIdentity:
        return self._sender

    @property
    def messages_url(self) -> str:
        return f"{self._api_base}/{self._sender.phone_number_id}/messages"

    async def send_text(self, to: str, body: str) -> None:
        """Send a free-form text message. Raises DownstreamError on failure."""
        await self._post({
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body},
        })

    async def send_template(self, to: str, name: str, language: str = "en") -> None:
        """Send a pre-approved template message. Raises DownstreamError on failure."""
        await self._post({
            "messaging_product": "whatsapp",
            "to": to,
            "type": "template",
            "template": {"name": name, "language": {"code": language}},
        })

    async def send_template_or_text(
        self,
        to: str,
        fallback_text: str,
        template_name: str | None = None,
        language: str = "en",
    ) -> str:
        """Send a template, falling back to free-form text if it is rejected.

        Returns ``"template"`` or ``"text"`` for whichever was delivered.
        Only the fallback failure propagates.
        """
        if template_name:
            try:
                await self.send_template(to, template_name, language)
                return "template"
            except DownstreamError as exc:
                logger.warning(
                    "Template %s to %s rejected, sending free-form text: %s",
                    template_name, to, exc,
                )
        await self.send_text(to, fallback_text)
        return "text"

    async def _post(self, payload: dict[str, Any]) -> None:
        headers = {
            "Authorization": f"Bearer {self._sender.access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.post(
                    self.messages_url, json=payload, headers=headers, timeout=self._timeout,
                )
        except httpx.HTTPError as exc:
            logger.error("WA send exception: %s", exc)
            raise DownstreamError("whatsapp", reason=str(exc) or type(exc).__name__) from exc

        if resp.status_code >= 400:
            logger.error(
                "WA send error: status=%s body=%s", resp.status_code, excerpt(resp.text),
            )
            raise DownstreamError("whatsapp", status_code=resp.status_code, body=resp.text)
