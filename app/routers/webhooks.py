"""
Stripe webhook receiver.

Verify the signature before touching any state, then fulfill
checkout.session.completed synchronously. Stripe redelivers on non-2xx, which
is what drives retries of failed sessions.
"""
import json
import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.webhooks import (
    CheckoutSessionPayload,
    StripeEventPayload,
    WebhookErrorResponse,
    WebhookResponse,
)
from app.integrations.stripe import CHECKOUT_SESSION_COMPLETED, SignatureError, verify_event
from app.services.errors import FulfillmentError
from app.services.fulfillment import fulfill_checkout_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "/stripe",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses={400: {"model": WebhookErrorResponse}, 500: {"model": WebhookErrorResponse}},
)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Receive Stripe webhook events.
    Validates the Stripe-Signature header, then fulfills completed checkouts.
    """
    body = await request.body()
    signature = request.headers.get("Stripe-Signature")

    if not signature:
        logger.error("Missing Stripe signature")
        return _error(status.HTTP_400_BAD_REQUEST, "Missing signature")

    try:
        verify_event(body, signature)
    except SignatureError as e:
        logger.error("Webhook signature verification failed: %s", e)
        return _error(status.HTTP_400_BAD_REQUEST, f"Webhook Error: {e}")

    try:
        event = StripeEventPayload.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        logger.error("Malformed Stripe event: %s", e)
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid event payload")

    if event.type != CHECKOUT_SESSION_COMPLETED:
        logger.info("Unhandled event type: %s", event.type)
        return WebhookResponse(received=True)

    try:
        checkout = CheckoutSessionPayload.model_validate(event.data.get("object") or {})
    except ValidationError as e:
        logger.error("Malformed checkout session in event %s: %s", event.id, e)
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid checkout session payload")

    try:
        outcome = await run_in_threadpool(fulfill_checkout_session, db, checkout, event.id)
    except FulfillmentError as e:
        logger.error("Fulfillment failed for session %s: %s", checkout.id, e)
        return _error(e.status_code, str(e))
    except Exception as e:
        logger.error("Fulfillment crashed for session %s: %s", checkout.id, e)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process checkout session")

    logger.info(
        "Session %s handled: %s (count=%s, event %s)",
        checkout.id, outcome.status, outcome.count, event.id,
    )
    return WebhookResponse(received=True, status=outcome.status, count=outcome.count)
