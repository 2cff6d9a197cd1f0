"""
One durable row per checkout session.

Mutated only by the fulfillment state tracker and the claim gate
(app/services/fulfillment_state.py). Never deleted.
"""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, Enum
from sqlalchemy.sql import func

from .base import Base


class FulfillmentStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FulfillmentRecord(Base):
    __tablename__ = "fulfillment_records"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(255), unique=True, nullable=False, index=True)
    event_id = Column(String(255), nullable=True)
    status = Column(Enum(FulfillmentStatus), nullable=False, default=FulfillmentStatus.PROCESSING)
    attempt_count = Column(Integer, nullable=False, default=1)
    last_error = Column(Text, nullable=True)

    # Claim flags: written once, by whichever attempt wins the conditional update
    stock_decremented_at = Column(DateTime(timezone=True), nullable=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
