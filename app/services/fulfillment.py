"""
Checkout fulfillment orchestrator.

Runs once per delivery of a checkout.session.completed event. Deliveries are
at-least-once and may overlap; every step below is safe to repeat:

    start/resume state → (already completed? stop)
    → customer email → line items → products
    → licenses (keyed per unit) → stock (claim once) → email (claim once)
    → completed

Errors mark the session failed and propagate; the provider's redelivery is the
retry mechanism.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.integrations.stripe import list_line_items
from app.models.fulfillment import FulfillmentStatus
from app.schemas.webhooks import CheckoutSessionPayload
from app.services import fulfillment_state
from app.services.catalog import lookup_products
from app.services.errors import FulfillmentError, MissingCustomerEmailError, UnknownProductError
from app.services.inventory import decrement_inventory_once
from app.services.licensing import issue_licenses
from app.services.line_items import resolve_line_items
from app.services.notifications import send_confirmation_once

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already_processed"
NO_LICENSES = "no_licenses"
LICENSES_CREATED = "licenses_created"


@dataclass
class FulfillmentOutcome:
    status: str
    count: Optional[int] = None


def fulfill_checkout_session(
    db: Session,
    checkout: CheckoutSessionPayload,
    event_id: str,
) -> FulfillmentOutcome:
    session_id = checkout.id

    record = fulfillment_state.start(db, session_id, event_id)
    if record.status == FulfillmentStatus.COMPLETED:
        return FulfillmentOutcome(status=ALREADY_PROCESSED)

    try:
        return _fulfill(db, checkout, session_id)
    except FulfillmentError as e:
        fulfillment_state.mark_failed(db, session_id, str(e))
        raise
    except Exception as e:
        logger.exception("Unexpected error fulfilling session %s", session_id)
        fulfillment_state.mark_failed(db, session_id, f"{type(e).__name__}: {e}")
        raise


def _fulfill(db: Session, checkout: CheckoutSessionPayload, session_id: str) -> FulfillmentOutcome:
    customer_email = checkout.resolved_email
    if not customer_email:
        raise MissingCustomerEmailError("No customer email")

    items = resolve_line_items(list_line_items(session_id))
    if not items:
        logger.info("Session %s has no licensable line items", session_id)
        fulfillment_state.mark_completed(db, session_id)
        return FulfillmentOutcome(status=NO_LICENSES)

    products = lookup_products(db, [item.product_reference for item in items])
    missing = sorted({item.product_reference for item in items} - set(products))
    if missing:
        raise UnknownProductError(f"Product not found for slug(s): {', '.join(missing)}")

    issued = issue_licenses(db, session_id, customer_email, items, products)

    if issued.legacy:
        fulfillment_state.mark_completed(db, session_id)
        return FulfillmentOutcome(status=ALREADY_PROCESSED)

    if not issued.licenses:
        fulfillment_state.mark_completed(db, session_id)
        return FulfillmentOutcome(status=NO_LICENSES)

    decrement_inventory_once(db, session_id, items, products)
    send_confirmation_once(db, session_id, checkout, customer_email, issued.licenses)

    fulfillment_state.mark_completed(db, session_id)
    return FulfillmentOutcome(status=LICENSES_CREATED, count=len(issued.licenses))
