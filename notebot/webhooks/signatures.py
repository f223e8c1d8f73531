"""Webhook authentication — HMAC signatures and shared-secret tokens.

All comparisons use ``hmac.compare_digest``.
"""

from __future__ import annotations

import hashlib
import hmac
import time

# Slack requests older (or newer) than this are rejected as replays.
SLACK_TIMESTAMP_TOLERANCE = 300  # seconds


def _hmac_sha256_hex(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_shared_secret(provided: str, expected: str) -> bool:
    """Constant-time token check (Telegram secret token, X-Webhook-Secret)."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_github_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Check an ``X-Hub-Signature-256`` header (``sha256=<hex>``)."""
    if not signature or not secret:
        return False
    expected = f"sha256={_hmac_sha256_hex(secret, payload)}"
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def verify_slack_signature(
    payload: bytes,
    timestamp: str,
    signature: str,
    signing_secret: str,
    *,
    now: float | None = None,
) -> bool:
    """Check ``X-Slack-Signature`` over ``v0:<timestamp>:<body>``.

    Timestamps more than :data:`SLACK_TIMESTAMP_TOLERANCE` seconds away from
    *now* are rejected.
    """
    if not signature or not timestamp or not signing_secret:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > SLACK_TIMESTAMP_TOLERANCE:
        return False
    basestring = b"v0:" + timestamp.encode("utf-8") + b":" + payload
    expected = f"v0={_hmac_sha256_hex(signing_secret, basestring)}"
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))
