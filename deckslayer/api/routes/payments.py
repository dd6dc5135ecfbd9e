"""
Payment Endpoints

Hosted checkout creation and the provider's signed webhook.
"""
import json
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from loguru import logger

from deckslayer.api.dependencies import get_current_user
from deckslayer.config import settings
from deckslayer.core.exceptions import InvalidInputError
from deckslayer.models.payment import CheckoutRequest
from deckslayer.services.auth_service import AuthenticatedUser
from deckslayer.services.payment_service import PaymentService
from deckslayer.utils.webhook_signature import WebhookSignatureValidator

router = APIRouter(tags=["Payments"])


@router.post("/checkout")
async def create_checkout(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user)
):
    """
    JSON body: {product_id, analysis_id?} (or productId/roastId).

    Returns the hosted checkout URL.
    """
    try:
        raw = await request.body()
        payload = CheckoutRequest.model_validate_json(raw or b"{}")
    except (ValueError, ValidationError) as e:
        raise InvalidInputError("Invalid checkout request", detail=str(e)) from e

    payment_service: PaymentService = request.app.state.payment_service
    url = await payment_service.create_checkout(user.id, payload.product_id, payload.analysis_id)

    return {"url": url}


@router.post("/webhook")
async def payment_webhook(request: Request):
    """
    Payment provider webhook (Standard Webhooks signature scheme).

    Flow:
    1. Refuse to run without a configured secret (500)
    2. Verify webhook-id / webhook-timestamp / webhook-signature (401)
    3. Parse the JSON body (400)
    4. Fulfil payment.succeeded, idempotently per webhook-id
    """
    secret = settings.dodo_webhook_secret
    if not secret:
        logger.error("Payment webhook secret not configured")
        return JSONResponse(status_code=500, content={"error": "Webhook key missing"})

    body = await request.body()
    webhook_id = request.headers.get("webhook-id")
    timestamp = request.headers.get("webhook-timestamp")
    signature = request.headers.get("webhook-signature")

    if not webhook_id or not timestamp or not signature:
        logger.warning("Payment webhook missing signature headers")
        return JSONResponse(status_code=401, content={"error": "Missing signature headers"})

    validator = WebhookSignatureValidator(secret, tolerance_seconds=settings.webhook_tolerance_seconds)
    if not validator.validate(webhook_id, timestamp, body, signature):
        logger.warning(f"Invalid payment webhook signature for {webhook_id}")
        return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning(f"Payment webhook {webhook_id} body is not JSON")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    payment_service: PaymentService = request.app.state.payment_service
    await payment_service.handle_event(webhook_id, payload)

    return {"received": True}
