"""
Stripe webhook verification and Checkout API client.

Webhook auth: Stripe-Signature header, HMAC over the raw body with the
endpoint secret (stripe.Webhook.construct_event).
Line items are fetched separately from the event to avoid payload size limits.
"""
import logging
from typing import List

import stripe

from app.config import settings

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class SignatureError(Exception):
    """Raised when a webhook body cannot be verified against its signature"""


def verify_event(payload: bytes, signature: str) -> stripe.Event:
    """
    Verify the Stripe-Signature header against the configured secret.
    Raises SignatureError for bad signatures or unparseable bodies.
    """
    try:
        return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise SignatureError(str(e)) from e


def list_line_items(session_id: str) -> List:
    """
    Fetch every line item of a checkout session with price.product expanded,
    following pagination.
    """
    line_items = stripe.checkout.Session.list_line_items(
        session_id,
        expand=["data.price.product"],
        limit=100,
        api_key=settings.stripe_secret_key,
    )
    items = list(line_items.auto_paging_iter())
    logger.info("Fetched %d line items for session %s", len(items), session_id)
    return items
