"""Exceptions shared across the router."""

from __future__ import annotations

_EXCERPT_LIMIT = 300


def excerpt(text: str | None, limit: int = _EXCERPT_LIMIT) -> str:
    """Bound a downstream response body for logging."""
    return (text or "")[:limit]


class ConfigError(Exception):
    """Raised at startup when mandatory configuration is missing or invalid."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class DownstreamError(Exception):
    """Raised when an outbound HTTP call fails or returns an unusable response."""

    def __init__(
        self,
        service: str,
        status_code: int | None = None,
        body: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        self.body = excerpt(body)
        self.reason = reason
        detail = reason or f"status={status_code}"
        super().__init__(f"{service} failed: {detail}")
