"""
Unit tests for Stripe payments.

Individual stripe functions are patched so stripe's exception classes
stay real.
"""

import pytest
import stripe
from unittest.mock import MagicMock, patch

from core.exceptions import ConfigurationError, EmailError, PaymentError, ValidationError
from models.quote import QuoteResult
from models.records import OrderRecord
from services.payment_service import PaymentService
from services.quote_store import QuoteStore


# Fixtures

@pytest.fixture
def quote_store(app_ctx):
    return QuoteStore()


@pytest.fixture
def quoted_id(quote_store, quote_request, calculator):
    """A priced quote: 1.0 page Spanish -> English, USCIS = $85."""
    quote_id = quote_store.create_quote(quote_request)
    files = [calculator.build_file_analysis(f"{quote_id}/a.pdf", "a.pdf", [200])]
    totals = calculator.calculate_quote(files, "Spanish", "English", "USCIS")
    quote_store.save_quote_result(QuoteResult(quote_id=quote_id, totals=totals, files=files))
    return quote_id


@pytest.fixture
def email_service():
    return MagicMock()


@pytest.fixture
def payments(quote_store, email_service):
    return PaymentService(quote_store, secret_key="sk_test_123", webhook_secret="whsec_123",
                          email_service=email_service)


def event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


class TestCheckout:
    """Test checkout sessions and payment intents."""

    def test_checkout_session(self, payments, quoted_id):
        with patch("stripe.checkout.Session.create") as create:
            create.return_value = MagicMock(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")
            checkout = payments.create_checkout_session(quoted_id, "https://ok", "https://cancel")

        assert checkout == {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}
        kwargs = create.call_args[1]
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 8500
        assert kwargs["line_items"][0]["price_data"]["product_data"]["description"].endswith(
            "Standard certification")
        assert kwargs["metadata"] == {"quote_id": quoted_id}

        order = OrderRecord.query.filter_by(stripe_session_id="cs_test_1").one()
        assert order.status == "pending"
        assert order.amount_cents == 8500

    def test_unpriced_quote_is_not_payable(self, payments, quote_store, quote_request):
        quote_id = quote_store.create_quote(quote_request)
        with pytest.raises(ValidationError):
            payments.create_checkout_session(quote_id, "https://ok", "https://cancel")

    def test_no_secret_key(self, quote_store, quoted_id):
        with pytest.raises(ConfigurationError):
            PaymentService(quote_store).create_payment_intent(quoted_id)

    def test_stripe_error(self, payments, quoted_id):
        with patch("stripe.checkout.Session.create",
                   side_effect=stripe.InvalidRequestError("No such price", "price", http_status=400)):
            with pytest.raises(PaymentError) as exc_info:
                payments.create_checkout_session(quoted_id, "https://ok", "https://cancel")
        assert exc_info.value.http_status == 400

    def test_payment_intent(self, payments, quoted_id):
        with patch("stripe.PaymentIntent.create") as create:
            create.return_value = MagicMock(id="pi_1", client_secret="pi_1_secret")
            intent = payments.create_payment_intent(quoted_id)

        assert intent == {"client_secret": "pi_1_secret", "payment_intent_id": "pi_1",
                          "amount": 8500, "currency": "usd"}
        assert create.call_args[1]["automatic_payment_methods"] == {"enabled": True}


class TestWebhook:
    """Test webhook verification and paid-state updates."""

    def test_requires_secret(self, quote_store):
        with pytest.raises(ConfigurationError):
            PaymentService(quote_store, secret_key="sk").handle_webhook(b"{}", "sig")

    def test_bad_signature(self, payments):
        with patch("stripe.Webhook.construct_event",
                   side_effect=stripe.SignatureVerificationError("bad", "sig")):
            with pytest.raises(ValidationError) as exc_info:
                payments.handle_webhook(b"{}", "sig")
        assert "signature" in exc_info.value.errors

    def test_bad_payload(self, payments):
        with patch("stripe.Webhook.construct_event", side_effect=ValueError("not json")):
            with pytest.raises(ValidationError):
                payments.handle_webhook(b"nope", "sig")

    def test_checkout_completed_marks_paid_once(self, payments, quote_store, quoted_id, email_service):
        with patch("stripe.checkout.Session.create") as create:
            create.return_value = MagicMock(id="cs_test_1", url="https://checkout")
            payments.create_checkout_session(quoted_id, "https://ok", "https://cancel")

        completed = event("checkout.session.completed", {
            "id": "cs_test_1", "payment_intent": "pi_9", "amount_total": 8500,
            "metadata": {"quote_id": quoted_id},
        })
        with patch("stripe.Webhook.construct_event", return_value=completed):
            assert payments.handle_webhook(b"{}", "sig") == "checkout.session.completed"
            payments.handle_webhook(b"{}", "sig")

        order = OrderRecord.query.filter_by(stripe_session_id="cs_test_1").one()
        assert order.status == "paid"
        assert order.stripe_payment_intent == "pi_9"
        assert order.paid_at is not None
        assert quote_store.get_quote(quoted_id)["status"] == "paid"
        email_service.send_payment_receipt.assert_called_once()

    def test_payment_intent_without_order_uses_metadata(self, payments, quote_store, quoted_id):
        succeeded = event("payment_intent.succeeded", {
            "id": "pi_2", "amount_received": 8500, "metadata": {"quote_id": quoted_id},
        })
        with patch("stripe.Webhook.construct_event", return_value=succeeded):
            payments.handle_webhook(b"{}", "sig")

        order = OrderRecord.query.filter_by(stripe_payment_intent="pi_2").one()
        assert order.quote_id == quoted_id
        assert order.amount_cents == 8500
        assert quote_store.get_quote(quoted_id)["status"] == "paid"

    def test_receipt_failure_is_not_fatal(self, payments, quote_store, quoted_id, email_service):
        email_service.send_payment_receipt.side_effect = EmailError("Brevo down")
        succeeded = event("payment_intent.succeeded", {
            "id": "pi_3", "amount": 8500, "metadata": {"quote_id": quoted_id},
        })
        with patch("stripe.Webhook.construct_event", return_value=succeeded):
            payments.handle_webhook(b"{}", "sig")

        assert quote_store.get_quote(quoted_id)["status"] == "paid"

    def test_other_events_are_ignored(self, payments):
        with patch("stripe.Webhook.construct_event",
                   return_value=event("customer.created", {"id": "cus_1"})):
            assert payments.handle_webhook(b"{}", "sig") == "customer.created"
