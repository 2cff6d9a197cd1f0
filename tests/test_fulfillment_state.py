"""Tests for fulfillment state tracker and claim gate (app/services/fulfillment_state.py)"""
import pytest
from unittest.mock import MagicMock

from app.models.fulfillment import FulfillmentRecord, FulfillmentStatus
from app.services import fulfillment_state


def _record(db, session_id="sess_A"):
    db.expire_all()
    return db.query(FulfillmentRecord).filter(FulfillmentRecord.session_id == session_id).one()


class TestStart:
    def test_first_delivery_creates_processing_record(self, db):
        record = fulfillment_state.start(db, "sess_A", "evt_1")

        assert record.status == FulfillmentStatus.PROCESSING
        assert record.attempt_count == 1
        assert record.event_id == "evt_1"
        assert record.last_error is None
        assert db.query(FulfillmentRecord).count() == 1

    def test_redelivery_after_failure_resumes_processing(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_failed(db, "sess_A", "boom")

        record = fulfillment_state.start(db, "sess_A", "evt_2")

        assert record.status == FulfillmentStatus.PROCESSING
        assert record.attempt_count == 2
        assert record.last_error is None
        assert record.event_id == "evt_2"
        assert db.query(FulfillmentRecord).count() == 1

    def test_redelivery_while_processing_increments_attempts(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        record = fulfillment_state.start(db, "sess_A", "evt_1")

        assert record.status == FulfillmentStatus.PROCESSING
        assert record.attempt_count == 2

    def test_completed_record_is_returned_unchanged(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_completed(db, "sess_A")

        record = fulfillment_state.start(db, "sess_A", "evt_2")

        assert record.status == FulfillmentStatus.COMPLETED
        assert record.attempt_count == 1
        assert record.event_id == "evt_1"

    def test_sessions_are_tracked_independently(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        other = fulfillment_state.start(db, "sess_B", "evt_2")

        assert other.attempt_count == 1
        assert db.query(FulfillmentRecord).count() == 2


class TestMarkFailed:
    def test_sets_failed_status_and_error(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_failed(db, "sess_A", "Product not found for slug(s): ghost")

        record = _record(db)
        assert record.status == FulfillmentStatus.FAILED
        assert record.last_error == "Product not found for slug(s): ghost"

    def test_long_messages_are_truncated(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_failed(db, "sess_A", "x" * 5000)

        assert len(_record(db).last_error) == fulfillment_state.MAX_ERROR_LENGTH

    def test_does_not_overwrite_completed_record(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_completed(db, "sess_A")
        fulfillment_state.mark_failed(db, "sess_A", "late failure from a concurrent attempt")

        record = _record(db)
        assert record.status == FulfillmentStatus.COMPLETED
        assert record.last_error is None

    def test_storage_error_is_swallowed(self):
        db = MagicMock()
        db.query.side_effect = RuntimeError("connection lost")

        fulfillment_state.mark_failed(db, "sess_A", "boom")

        assert db.rollback.call_count == 2
        db.commit.assert_not_called()


class TestMarkCompleted:
    def test_sets_completed_and_processed_at(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_completed(db, "sess_A")

        record = _record(db)
        assert record.status == FulfillmentStatus.COMPLETED
        assert record.processed_at is not None

    def test_clears_previous_error(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_failed(db, "sess_A", "boom")
        fulfillment_state.start(db, "sess_A", "evt_2")
        fulfillment_state.mark_completed(db, "sess_A")

        assert _record(db).last_error is None

    def test_is_idempotent(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.mark_completed(db, "sess_A")
        first_processed_at = _record(db).processed_at

        fulfillment_state.mark_completed(db, "sess_A")

        record = _record(db)
        assert record.status == FulfillmentStatus.COMPLETED
        assert record.processed_at == first_processed_at


class TestClaimOnce:
    def test_first_claim_wins_and_later_claims_lose(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")

        results = [fulfillment_state.claim_once(db, "sess_A", "stock_decremented_at") for _ in range(5)]

        assert results == [True, False, False, False, False]
        assert _record(db).stock_decremented_at is not None

    def test_claim_survives_restart(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        assert fulfillment_state.claim_once(db, "sess_A", "email_sent_at") is True
        fulfillment_state.mark_failed(db, "sess_A", "boom")
        fulfillment_state.start(db, "sess_A", "evt_2")

        assert fulfillment_state.claim_once(db, "sess_A", "email_sent_at") is False

    def test_fields_are_claimed_independently(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")

        assert fulfillment_state.claim_once(db, "sess_A", "stock_decremented_at") is True
        assert fulfillment_state.claim_once(db, "sess_A", "email_sent_at") is True

    def test_claim_first_timestamp_is_kept(self, db):
        fulfillment_state.start(db, "sess_A", "evt_1")
        fulfillment_state.claim_once(db, "sess_A", "email_sent_at")
        first = _record(db).email_sent_at

        fulfillment_state.claim_once(db, "sess_A", "email_sent_at")

        assert _record(db).email_sent_at == first

    def test_unknown_session_cannot_be_claimed(self, db):
        assert fulfillment_state.claim_once(db, "sess_missing", "email_sent_at") is False

    def test_unknown_field_raises(self, db):
        with pytest.raises(ValueError):
            fulfillment_state.claim_once(db, "sess_A", "processed_at")
