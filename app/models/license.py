"""
Redeemable product licenses.

Rows created by checkout fulfillment are never auto-assigned: owner_id stays
NULL until the customer claims the license with its claim_token.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class LicenseStatus(str, enum.Enum):
    PENDING = "pending"
    CLAIMED = "claimed"


class LicenseSource(str, enum.Enum):
    ONLINE_PURCHASE = "online_purchase"


class License(Base):
    __tablename__ = "licenses"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    owner_id = Column(Integer, nullable=True, index=True)
    source = Column(String(50), nullable=False, default=LicenseSource.ONLINE_PURCHASE.value)
    stripe_session_id = Column(String(255), nullable=True, index=True)
    customer_email = Column(String(255), nullable=True)
    claim_token = Column(String(64), nullable=True)
    status = Column(Enum(LicenseStatus), nullable=False, default=LicenseStatus.PENDING)

    # "<session_id>:<line_item_id>:<unit_index>"; NULL on rows that predate unit keys
    purchase_item_ref = Column(String(512), nullable=True)

    claimed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product", back_populates="licenses")

    __table_args__ = (
        UniqueConstraint("code", name="uq_licenses_code"),
        UniqueConstraint("claim_token", name="uq_licenses_claim_token"),
        UniqueConstraint("purchase_item_ref", name="uq_licenses_purchase_item_ref"),
    )
