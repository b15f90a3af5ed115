"""
WhatsApp Webhook Router

Handles incoming webhooks from Wassenger:
- POST /api/whatsapp/webhook - Message reception endpoint

The response status code mirrors the pipeline outcome so that the platform
redelivers events that failed.
"""

import json
import logging
from functools import lru_cache
from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import JSONResponse

from .. import config
from ..models import WebhookResponse
from ..services.store import DomainStore
from ..services.whatsapp.client import WassengerClient, verify_signature
from ..services.whatsapp.dedup import DeliveryGuard
from ..services.whatsapp.intent import IntentResolver
from ..services.whatsapp.pipeline import WebhookPipeline

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/whatsapp")

@lru_cache(maxsize=1)
def get_delivery_guard() -> DeliveryGuard:
    """
    Process-wide guard, built on first use so REDIS_URL and
    DEDUP_TTL_SECONDS from .env are already loaded.

    Claims must outlive a single request for the in-memory fallback to work.
    """
    return DeliveryGuard()


def get_pipeline(guard: DeliveryGuard = Depends(get_delivery_guard)) -> WebhookPipeline:
    return WebhookPipeline(
        store=DomainStore(),
        client=WassengerClient(),
        resolver=IntentResolver(),
        guard=guard,
    )


def _check_signature(request: Request, body_bytes: bytes) -> None:
    secret = config.webhook_secret()
    if not secret:
        if config.is_production():
            logger.error("WASSENGER_WEBHOOK_SECRET not set, rejecting webhook in production")
            raise HTTPException(status_code=403, detail="Webhook verification not configured")
        logger.warning("WASSENGER_WEBHOOK_SECRET not set, skipping signature verification")
        return

    signature = request.headers.get(config.webhook_signature_header(), "")
    if not verify_signature(signature, body_bytes, secret):
        logger.warning("Invalid webhook signature")
        raise HTTPException(status_code=403, detail="Invalid signature")


@router.post("/webhook", response_model=WebhookResponse)
async def receive_webhook(request: Request, pipeline: WebhookPipeline = Depends(get_pipeline)):
    """
    Webhook endpoint for receiving WhatsApp messages.

    Returns {"status": ..., "message": ...} with the outcome's status code.
    """
    body_bytes = await request.body()
    _check_signature(request, body_bytes)

    try:
        body = json.loads(body_bytes or b"{}")
    except ValueError as e:
        logger.error(f"Failed to parse webhook body: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON")

    logger.debug(f"Received webhook: {body}")

    outcome = await pipeline.handle(body)
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_dict())
