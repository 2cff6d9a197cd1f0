"""
Purchase confirmation email.

Sent at most once per session, gated by the email_sent_at claim. The claim is
taken before sending, so a failed send is logged and not retried here.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.integrations.resend import send_email
from app.models.license import License
from app.schemas.webhooks import CheckoutSessionPayload
from app.services.fulfillment_state import claim_once

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_NAME = "Product"

CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£"}


@dataclass
class LicenseSummary:
    code: str
    product_name: str
    claim_url: Optional[str] = None


@dataclass
class PurchaseConfirmation:
    to: str
    order_total: str
    customer_name: Optional[str] = None
    licenses: List[LicenseSummary] = field(default_factory=list)

    @property
    def subject(self) -> str:
        count = len(self.licenses)
        return f"Your order is confirmed! ({count} license{'s' if count != 1 else ''})"


def format_price(cents: int, currency: Optional[str] = "usd") -> str:
    """9900, "usd" -> "$99.00"; unknown currencies are suffixed with their code."""
    amount = (cents or 0) / 100
    code = (currency or "usd").lower()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{amount:.2f}"
    return f"{amount:.2f} {code.upper()}"


def build_confirmation(
    checkout: CheckoutSessionPayload,
    customer_email: str,
    licenses: List[License],
) -> PurchaseConfirmation:
    summaries = [
        LicenseSummary(
            code=lic.code,
            product_name=lic.product.name if lic.product else DEFAULT_PRODUCT_NAME,
            claim_url=f"{settings.site_url}/claim/{lic.claim_token}" if lic.claim_token else None,
        )
        for lic in licenses
    ]
    return PurchaseConfirmation(
        to=customer_email,
        order_total=format_price(checkout.amount_total or 0, checkout.currency),
        customer_name=checkout.customer_name,
        licenses=summaries,
    )


def render_text(confirmation: PurchaseConfirmation) -> str:
    greeting = f"Hi {confirmation.customer_name}," if confirmation.customer_name else "Hi,"
    lines = [
        greeting,
        "",
        f"Thanks for your order. Total: {confirmation.order_total}",
        "",
        "Your license codes:",
    ]
    for lic in confirmation.licenses:
        lines.append(f"- {lic.product_name}: {lic.code}")
        if lic.claim_url:
            lines.append(f"  Claim it: {lic.claim_url}")
    return "\n".join(lines)


def send_confirmation_once(
    db: Session,
    session_id: str,
    checkout: CheckoutSessionPayload,
    customer_email: str,
    licenses: List[License],
) -> bool:
    """
    Send one confirmation email if this attempt wins the claim.
    Returns True if this attempt held the claim, whether or not the send succeeded.
    """
    if not claim_once(db, session_id, "email_sent_at"):
        return False

    try:
        confirmation = build_confirmation(checkout, customer_email, licenses)
        send_email(confirmation.to, confirmation.subject, render_text(confirmation))
        logger.info("Purchase confirmation sent to %s for session %s", customer_email, session_id)
    except Exception as e:
        logger.error(
            "Failed to send purchase confirmation for session %s: %s",
            session_id, e,
        )
    return True
