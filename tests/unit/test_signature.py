"""Tests for webhook signature verification and the subscription handshake."""

from __future__ import annotations

from unittest.mock import patch

from src.webhook.signature import answer_challenge, verify_signature
from tests.conftest import APP_SECRET, make_body, sign_body


class TestVerifySignature:
    def test_valid_signature_accepted(self) -> None:
        body = make_body()
        assert verify_signature(body, sign_body(body), APP_SECRET) is True

    def test_signature_over_exact_bytes(self) -> None:
        """Whitespace differences change the signature; no re-serialisation."""
        body = b'{"entry": [ ]}'
        assert verify_signature(body, sign_body(body), APP_SECRET) is True
        assert verify_signature(b'{"entry":[]}', sign_body(body), APP_SECRET) is False

    def test_every_single_byte_body_mutation_rejected(self) -> None:
        body = b'{"object":"whatsapp_business_account"}'
        signature = sign_body(body)
        for i in range(len(body)):
            mutated = body[:i] + bytes([body[i] ^ 0x01]) + body[i + 1:]
            assert verify_signature(mutated, signature, APP_SECRET) is False

    def test_every_single_char_signature_mutation_rejected(self) -> None:
        body = make_body()
        signature = sign_body(body)
        prefix = len("sha256=")
        for i in range(prefix, len(signature)):
            replacement = "0" if signature[i] != "0" else "1"
            mutated = signature[:i] + replacement + signature[i + 1:]
            assert verify_signature(body, mutated, APP_SECRET) is False

    def test_wrong_secret_rejected(self) -> None:
        body = make_body()
        assert verify_signature(body, sign_body(body, "other"), APP_SECRET) is False

    def test_missing_header_rejected(self) -> None:
        assert verify_signature(b"body", None, APP_SECRET) is False
        assert verify_signature(b"body", "", APP_SECRET) is False

    def test_missing_secret_rejected(self) -> None:
        body = b"body"
        assert verify_signature(body, sign_body(body), None) is False
        assert verify_signature(body, sign_body(body), "") is False

    def test_missing_prefix_rejected(self) -> None:
        body = b"body"
        bare = sign_body(body)[len("sha256="):]
        assert verify_signature(body, bare, APP_SECRET) is False

    def test_non_ascii_header_rejected(self) -> None:
        assert verify_signature(b"body", "sha256=éé", APP_SECRET) is False

    def test_constant_time_comparison(self) -> None:
        body = b"data"
        with patch(
            "src.webhook.signature.hmac.compare_digest", return_value=True,
        ) as mock_cmp:
            verify_signature(body, sign_body(body), APP_SECRET)
            mock_cmp.assert_called_once()


class TestAnswerChallenge:
    def test_subscribe_with_valid_token_returns_challenge(self) -> None:
        result = answer_challenge("subscribe", "tok", "challenge_123", "tok")
        assert result.status_code == 200
        assert result.content == "challenge_123"

    def test_wrong_token_forbidden(self) -> None:
        result = answer_challenge("subscribe", "wrong", "ch", "tok")
        assert result.status_code == 403
        assert result.content == ""

    def test_wrong_mode_forbidden(self) -> None:
        result = answer_challenge("unsubscribe", "tok", "ch", "tok")
        assert result.status_code == 403

    def test_missing_params_forbidden(self) -> None:
        assert answer_challenge(None, None, None, "tok").status_code == 403

    def test_empty_configured_token_never_matches(self) -> None:
        assert answer_challenge("subscribe", "", "ch", "").status_code == 403
