"""
Per-session fulfillment state and the claim-once gate.

Every call commits immediately: concurrent deliveries of the same session
coordinate only through the unique session_id and conditional updates.

States: processing → completed | failed
        failed | processing → processing (redelivery)
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.fulfillment import FulfillmentRecord, FulfillmentStatus

logger = logging.getLogger(__name__)

CLAIM_FIELDS = {"stock_decremented_at", "email_sent_at"}

MAX_ERROR_LENGTH = 2000


def _get_record(db: Session, session_id: str) -> FulfillmentRecord | None:
    return db.query(FulfillmentRecord).filter(FulfillmentRecord.session_id == session_id).first()


def start(db: Session, session_id: str, event_id: str) -> FulfillmentRecord:
    """
    Create the record for a session, or resume it on redelivery.

    A completed record is returned unchanged; the caller must treat it as
    already processed. Any other record goes back to processing with its
    attempt count incremented and last_error cleared.
    """
    record = FulfillmentRecord(
        session_id=session_id,
        event_id=event_id,
        status=FulfillmentStatus.PROCESSING,
        attempt_count=1,
    )
    db.add(record)
    try:
        db.commit()
        db.refresh(record)
        logger.info("Fulfillment started for session %s (event %s)", session_id, event_id)
        return record
    except IntegrityError:
        db.rollback()

    db.query(FulfillmentRecord).filter(
        FulfillmentRecord.session_id == session_id,
        FulfillmentRecord.status != FulfillmentStatus.COMPLETED,
    ).update(
        {
            FulfillmentRecord.status: FulfillmentStatus.PROCESSING,
            FulfillmentRecord.attempt_count: FulfillmentRecord.attempt_count + 1,
            FulfillmentRecord.last_error: None,
            FulfillmentRecord.event_id: event_id,
        },
        synchronize_session=False,
    )
    db.commit()

    existing = _get_record(db, session_id)
    if existing is None:
        raise RuntimeError(f"Fulfillment record for session {session_id} vanished after conflict")
    db.refresh(existing)

    if existing.status == FulfillmentStatus.COMPLETED:
        logger.info("Session %s already fulfilled, event %s is a redelivery", session_id, event_id)
    else:
        logger.info(
            "Fulfillment resumed for session %s (event %s, attempt %d)",
            session_id, event_id, existing.attempt_count,
        )
    return existing


def mark_failed(db: Session, session_id: str, message: str) -> None:
    """
    Record a failed attempt. Never raises: the caller is already handling
    an error and must still be able to respond.
    """
    try:
        db.rollback()
        db.query(FulfillmentRecord).filter(
            FulfillmentRecord.session_id == session_id,
            FulfillmentRecord.status != FulfillmentStatus.COMPLETED,
        ).update(
            {
                FulfillmentRecord.status: FulfillmentStatus.FAILED,
                FulfillmentRecord.last_error: (message or "Unknown error")[:MAX_ERROR_LENGTH],
            },
            synchronize_session=False,
        )
        db.commit()
        logger.warning("Fulfillment failed for session %s: %s", session_id, message)
    except Exception as e:
        db.rollback()
        logger.error("Could not mark session %s as failed (%s). Original error: %s", session_id, e, message)


def mark_completed(db: Session, session_id: str) -> None:
    """Finalize a session. No-op when it is already completed."""
    updated = db.query(FulfillmentRecord).filter(
        FulfillmentRecord.session_id == session_id,
        FulfillmentRecord.status != FulfillmentStatus.COMPLETED,
    ).update(
        {
            FulfillmentRecord.status: FulfillmentStatus.COMPLETED,
            FulfillmentRecord.processed_at: datetime.now(timezone.utc),
            FulfillmentRecord.last_error: None,
        },
        synchronize_session=False,
    )
    db.commit()
    if updated:
        logger.info("Fulfillment completed for session %s", session_id)


def claim_once(db: Session, session_id: str, field: str) -> bool:
    """
    Set a claim timestamp if and only if it is still NULL.

    Returns True for exactly one caller per (session_id, field), however many
    attempts race for it.
    """
    if field not in CLAIM_FIELDS:
        raise ValueError(f"Unknown claim field: {field}")

    column = getattr(FulfillmentRecord, field)
    updated = db.query(FulfillmentRecord).filter(
        FulfillmentRecord.session_id == session_id,
        column.is_(None),
    ).update({column: datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()

    claimed = updated == 1
    if not claimed:
        logger.info("Claim %s for session %s already taken", field, session_id)
    return claimed
