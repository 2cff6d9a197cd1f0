"""Tests for purchase confirmation email (app/services/notifications.py)"""
import pytest
from unittest.mock import patch

from app.integrations.resend import EmailDeliveryError
from app.models.fulfillment import FulfillmentRecord
from app.services import fulfillment_state
from app.services.licensing import issue_licenses
from app.services.line_items import ResolvedLineItem
from app.services.notifications import (
    build_confirmation,
    format_price,
    render_text,
    send_confirmation_once,
)


@pytest.fixture
def issued(db, make_product):
    product = make_product(slug="robot-kit", name="Robot Arm Kit")
    fulfillment_state.start(db, "sess_A", "evt_1")
    items = [ResolvedLineItem(product_reference="robot-kit", quantity=2, line_item_id="li_1")]
    return issue_licenses(db, "sess_A", "buyer@example.com", items, {"robot-kit": product}).licenses


class TestFormatPrice:
    def test_usd(self):
        assert format_price(9900, "usd") == "$99.00"

    def test_defaults_to_usd(self):
        assert format_price(1999) == "$19.99"

    def test_unknown_currency_uses_code(self):
        assert format_price(12345, "brl") == "123.45 BRL"

    def test_missing_amount_is_zero(self):
        assert format_price(None, "eur") == "€0.00"


class TestBuildConfirmation:
    def test_summary_lists_every_license(self, db, issued, checkout_session):
        confirmation = build_confirmation(checkout_session(), "buyer@example.com", issued)

        assert confirmation.to == "buyer@example.com"
        assert confirmation.order_total == "$198.00"
        assert confirmation.customer_name == "Ada Lovelace"
        assert [s.code for s in confirmation.licenses] == [lic.code for lic in issued]
        assert all(s.product_name == "Robot Arm Kit" for s in confirmation.licenses)
        assert confirmation.subject == "Your order is confirmed! (2 licenses)"

    def test_claim_links_use_site_url(self, db, issued, checkout_session):
        with patch("app.services.notifications.settings") as mock_settings:
            mock_settings.site_url = "https://shop.example.com"
            confirmation = build_confirmation(checkout_session(), "buyer@example.com", issued)

        assert confirmation.licenses[0].claim_url == f"https://shop.example.com/claim/{issued[0].claim_token}"

    def test_rendered_text_contains_codes(self, db, issued, checkout_session):
        text = render_text(build_confirmation(checkout_session(), "buyer@example.com", issued))

        assert text.startswith("Hi Ada Lovelace,")
        for lic in issued:
            assert lic.code in text


class TestSendConfirmationOnce:
    def test_sends_exactly_one_email(self, db, issued, checkout_session):
        with patch("app.services.notifications.send_email") as mock_send:
            first = send_confirmation_once(db, "sess_A", checkout_session(), "buyer@example.com", issued)
            second = send_confirmation_once(db, "sess_A", checkout_session(), "buyer@example.com", issued)

        assert first is True
        assert second is False
        mock_send.assert_called_once()
        to, subject, text = mock_send.call_args[0]
        assert to == "buyer@example.com"
        assert "2 licenses" in subject
        assert issued[0].code in text

    def test_send_failure_is_swallowed_and_claim_kept(self, db, issued, checkout_session):
        with patch("app.services.notifications.send_email", side_effect=EmailDeliveryError("Resend returned 500")):
            result = send_confirmation_once(db, "sess_A", checkout_session(), "buyer@example.com", issued)

        assert result is True
        db.expire_all()
        record = db.query(FulfillmentRecord).filter(FulfillmentRecord.session_id == "sess_A").one()
        assert record.email_sent_at is not None

    def test_build_failure_is_swallowed_and_claim_kept(self, db, issued, checkout_session):
        with patch("app.services.notifications.build_confirmation", side_effect=RuntimeError("lazy load failed")), \
                patch("app.services.notifications.send_email") as mock_send:
            result = send_confirmation_once(db, "sess_A", checkout_session(), "buyer@example.com", issued)

        assert result is True
        mock_send.assert_not_called()
        db.expire_all()
        record = db.query(FulfillmentRecord).filter(FulfillmentRecord.session_id == "sess_A").one()
        assert record.email_sent_at is not None
