from pydantic import BaseModel
from typing import Optional, Any, Dict


class StripeEventPayload(BaseModel):
    """Verified Stripe event envelope - only the fields the receiver reads"""
    id: str
    type: str
    data: Dict[str, Any] = {}

    class Config:
        extra = "allow"


class CustomerDetails(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class CheckoutSessionPayload(BaseModel):
    """data.object of a checkout.session.completed event"""
    id: str
    customer_email: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None

    @property
    def resolved_email(self) -> Optional[str]:
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return self.customer_email or None

    @property
    def customer_name(self) -> Optional[str]:
        if self.customer_details:
            return self.customer_details.name
        return None


class WebhookResponse(BaseModel):
    received: bool = True
    status: Optional[str] = None
    count: Optional[int] = None


class WebhookErrorResponse(BaseModel):
    error: str
