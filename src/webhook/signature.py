"""WhatsApp webhook authentication: signature check and the Meta verification handshake."""

from __future__ import annotations

import hashlib
import hmac

from src.models import ChallengeResult

SIGNATURE_HEADER = "x-hub-signature-256"
_SIGNATURE_PREFIX = "sha256="
_SUBSCRIBE_MODE = "subscribe"


def verify_signature(
    body: bytes, signature_header: str | None, app_secret: str | None,
) -> bool:
    """Verify an ``X-Hub-Signature-256`` header against the raw request body.

    The HMAC is computed over the exact received bytes, before any parsing.
    Comparison is constant-time via hmac.compare_digest. Any missing or
    malformed input yields False rather than an exception.
    """
    if not signature_header or not app_secret:
        return False
    if not signature_header.startswith(_SIGNATURE_PREFIX):
        return False

    expected = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    try:
        return hmac.compare_digest(
            signature_header[len(_SIGNATURE_PREFIX):].encode("ascii"),
            expected.encode("ascii"),
        )
    except UnicodeEncodeError:
        return False


def answer_challenge(
    mode: str | None,
    token: str | None,
    challenge: str | None,
    verify_token: str,
) -> ChallengeResult:
    """Answer the Meta webhook subscription handshake (GET).

    Returns the challenge with 200 only for mode ``subscribe`` and a
    matching verify token; anything else is a bodiless 403.
    """
    if mode != _SUBSCRIBE_MODE or not token or not verify_token:
        return ChallengeResult(status_code=403)
    if not hmac.compare_digest(token.encode(), verify_token.encode()):
        return ChallengeResult(status_code=403)
    return ChallengeResult(status_code=200, content=challenge or "")
