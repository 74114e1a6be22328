"""
Webhook Router

FastAPI router for the Meta Messenger webhook: subscription handshake,
signed event delivery and an unsigned test hook for local development.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from messenger_webhooks.config import MetaConfig, get_settings
from messenger_webhooks.kernel.errors import (
    InvalidSignatureError,
    MalformedBodyError,
    MissingSignatureError,
    NotFoundError,
    VerificationFailedError,
)
from messenger_webhooks.kernel.serialization import json_loads
from messenger_webhooks.storage.event_store import EventStore
from messenger_webhooks.storage.file_log import WebhookFileLog
from messenger_webhooks.webhooks.handler import MessengerWebhookHandler
from messenger_webhooks.webhooks.signature import pick_signature_header, validate_signature
from messenger_webhooks.webhooks.verification import verify_subscription

logger = structlog.get_logger()

router = APIRouter(prefix="/webhook", tags=["Webhook"])


def get_meta_config() -> MetaConfig:
    return MetaConfig.from_settings(get_settings())


def get_webhook_handler() -> MessengerWebhookHandler:
    settings = get_settings()
    return MessengerWebhookHandler(
        file_log=WebhookFileLog(settings.webhook_storage_dir),
        store=EventStore(),
    )


def _decode_body(body: bytes) -> tuple[dict[str, Any], str]:
    """Decode a webhook body into (payload, body text) or raise MalformedBodyError."""
    try:
        raw_body = body.decode("utf-8")
        payload = json_loads(raw_body)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedBodyError(meta={"reason": "invalid_json"}) from e

    if not isinstance(payload, dict):
        raise MalformedBodyError(meta={"reason": "not_an_object"})
    if "entry" in payload and not isinstance(payload["entry"], list):
        raise MalformedBodyError(meta={"reason": "entry_not_a_list"})

    return payload, raw_body


# =============================================================================
# SUBSCRIPTION HANDSHAKE
# =============================================================================


@router.get("", response_class=PlainTextResponse)
async def verify_webhook(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
    config: MetaConfig = Depends(get_meta_config),
):
    """
    Answer Meta's verification request.

    Echoes hub.challenge as text/plain when the mode is "subscribe" and the
    verify token matches ours.
    """
    challenge = verify_subscription(config, hub_mode, hub_verify_token, hub_challenge)
    if challenge is None:
        raise VerificationFailedError()
    return PlainTextResponse(content=challenge)


# =============================================================================
# EVENT DELIVERY
# =============================================================================


@router.post("")
async def receive_webhook(
    request: Request,
    config: MetaConfig = Depends(get_meta_config),
    handler: MessengerWebhookHandler = Depends(get_webhook_handler),
):
    """
    Receive a signed webhook delivery.

    The signature is checked over the body bytes exactly as received,
    before the body is parsed.
    """
    body = await request.body()

    signature = pick_signature_header(request.headers)
    if not signature:
        logger.warning("Missing webhook signature header")
        raise MissingSignatureError()

    if not validate_signature(config.app_secret, body, signature):
        raise InvalidSignatureError()

    payload, raw_body = _decode_body(body)

    logger.info("Webhook received", object=payload.get("object"))
    await handler.handle_webhook(payload, raw_body)

    return {"status": "received"}


@router.post("/test")
async def receive_test_webhook(
    request: Request,
    handler: MessengerWebhookHandler = Depends(get_webhook_handler),
):
    """
    Run a body through the pipeline without signature validation.

    Answers 404 in production.
    """
    if get_settings().environment == "production":
        raise NotFoundError()

    payload, raw_body = _decode_body(await request.body())

    logger.info("Test webhook received", object=payload.get("object"))
    await handler.handle_webhook(payload, raw_body)

    return {
        "status": "received",
        "object": payload.get("object"),
        "entries": len(payload.get("entry") or []),
    }
