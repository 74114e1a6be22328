"""Webhook signature validation: constant-time HMAC over the raw body.

Security contract:
- Comparison uses hmac.compare_digest() (constant-time, no timing attacks)
- Missing secret or header -> validation always fails (fail-closed)
- Never raises; every rejection is logged at warning level
- Header format: "<algorithm>=<hex digest>", algorithm sha256 or sha1
"""

from __future__ import annotations

import hashlib
import hmac

import structlog

logger = structlog.get_logger()

# Header names in order of preference
SIGNATURE_HEADER = "X-Hub-Signature-256"
LEGACY_SIGNATURE_HEADER = "X-Hub-Signature"

_DIGESTS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings without leaking where they first differ.

    Length is checked first; equal-length inputs are always scanned in full.
    """
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_signature(secret: str, raw_body: str | bytes, algorithm: str = "sha256") -> str:
    """Lowercase hex HMAC of the body, keyed with the app secret."""
    body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
    return hmac.new(secret.encode("utf-8"), body, _DIGESTS[algorithm]).hexdigest()


def validate_signature(secret: str, raw_body: str | bytes, signature_header: str | None) -> bool:
    """Validate a Meta webhook signature header against the raw request body.

    Args:
        secret: App secret shared with Meta
        raw_body: Body exactly as transmitted (str is UTF-8 encoded)
        signature_header: Value of X-Hub-Signature-256 / X-Hub-Signature

    Returns:
        True if the signature is valid
    """
    if not secret:
        logger.error("App secret not configured - cannot validate signature")
        return False
    if not signature_header:
        logger.warning("Signature header is missing or empty")
        return False

    parts = signature_header.split("=", 1)
    if len(parts) != 2:
        logger.warning("Malformed signature header")
        return False

    algorithm = parts[0].strip().lower()
    if algorithm not in _DIGESTS:
        logger.warning("Unsupported signature method", method=algorithm)
        return False

    expected = compute_signature(secret, raw_body, algorithm)
    if not constant_time_equals(expected, parts[1].lower()):
        logger.warning("Signature mismatch", method=algorithm)
        return False
    return True


def pick_signature_header(headers) -> str | None:
    """Prefer X-Hub-Signature-256, fall back to the legacy sha1 header."""
    return headers.get(SIGNATURE_HEADER) or headers.get(LEGACY_SIGNATURE_HEADER) or None
