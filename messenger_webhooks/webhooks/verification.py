"""Subscription handshake (GET /webhook).

Meta proves it is talking to us by sending hub.mode=subscribe, our verify
token and a challenge; we echo the challenge only when both match.
"""

from __future__ import annotations

import hmac

import structlog

from messenger_webhooks.config import MetaConfig

logger = structlog.get_logger()

SUBSCRIBE_MODE = "subscribe"


def verify_subscription(
    config: MetaConfig,
    mode: str | None,
    verify_token: str | None,
    challenge: str | None,
) -> str | None:
    """
    Check a verification request.

    Args:
        config: Configured Meta secrets
        mode: hub.mode, expected to be "subscribe"
        verify_token: hub.verify_token sent by Meta
        challenge: hub.challenge to echo back

    Returns:
        The stripped challenge if verification passes, None otherwise
    """
    mode = (mode or "").strip()
    verify_token = (verify_token or "").strip()
    challenge = (challenge or "").strip()

    expected = config.verify_token
    token_match = bool(expected) and hmac.compare_digest(
        verify_token.encode("utf-8"), expected.encode("utf-8")
    )

    if mode == SUBSCRIBE_MODE and token_match:
        logger.info("Webhook verified")
        return challenge

    logger.warning(
        "Webhook verification failed",
        mode=mode,
        token_match=token_match,
        token_configured=bool(expected),
    )
    return None
