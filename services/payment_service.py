"""
Stripe payments for priced quotes.

Two flows:
    - Checkout: create_checkout_session() -> redirect to Stripe -> webhook
    - Embedded: create_payment_intent() -> client_secret for Stripe.js -> webhook

Either way the ``checkout.session.completed`` or ``payment_intent.succeeded``
webhook marks the order and the quote paid and emails a receipt.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import stripe

from core.exceptions import CertQuoteError, ConfigurationError, PaymentError, ValidationError
from logging_config import get_logger
from models.records import db, OrderRecord
from modules.pricing import QuoteCalculator, to_cents


# Module logger
logger = get_logger(__name__)

PAYABLE_STATUSES = ("quoted",)


class PaymentService:
    """
    Creates Stripe payments for quotes and applies webhook results.

    Args:
        quote_store: QuoteStore
        secret_key: STRIPE_SECRET_KEY
        webhook_secret: STRIPE_WEBHOOK_SECRET
        currency: ISO currency code (STRIPE_CURRENCY)
        email_service: Optional EmailService for receipts
    """

    def __init__(
        self,
        quote_store,
        secret_key: str = "",
        webhook_secret: str = "",
        currency: str = "usd",
        email_service=None,
    ) -> None:
        self.quote_store = quote_store
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.email_service = email_service

    @classmethod
    def from_config(cls, config: Mapping[str, Any], quote_store, email_service=None) -> "PaymentService":
        return cls(
            quote_store,
            secret_key=config.get("STRIPE_SECRET_KEY", ""),
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET", ""),
            currency=config.get("STRIPE_CURRENCY", "usd"),
            email_service=email_service,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _require_key(self) -> str:
        if not self.secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY", "Stripe")
        return self.secret_key

    def _payable_quote(self, quote_id: str) -> Dict[str, Any]:
        quote = self.quote_store.get_quote(quote_id)
        if quote.get("status") not in PAYABLE_STATUSES or not quote.get("quote_total"):
            raise ValidationError({"quote_id": f"Quote {quote_id} is not ready for payment"})
        return quote

    # -------------------------------------------------------------------------
    # Checkout / payment intent
    # -------------------------------------------------------------------------

    def create_checkout_session(self, quote_id: str, success_url: str, cancel_url: str) -> Dict[str, Any]:
        """
        Start a Stripe Checkout session for the quote total.

        Returns:
            Dict with session id and url (redirect the browser there)

        Raises:
            ConfigurationError: No Stripe key
            ValidationError: Quote not priced yet
            PaymentError: Stripe rejected the request
        """
        api_key = self._require_key()
        quote = self._payable_quote(quote_id)
        amount_cents = to_cents(quote["quote_total"])

        try:
            session = stripe.checkout.Session.create(
                api_key=api_key,
                mode="payment",
                customer_email=quote.get("email") or None,
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": amount_cents,
                        "product_data": {
                            "name": f"Certified translation {quote_id}",
                            "description": (
                                f"{quote.get('source_language')} to {quote.get('target_language')}, "
                                f"{quote.get('total_billable_pages')} page(s), "
                                f"{QuoteCalculator.certification_label(quote.get('cert_type') or '')}"
                            ),
                        },
                    },
                    "quantity": 1,
                }],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"quote_id": quote_id},
            )
        except stripe.StripeError as e:
            logger.error(f"Checkout session failed for {quote_id}: {e}")
            raise PaymentError(f"Stripe checkout failed: {e.user_message or e}",
                               http_status=e.http_status)

        db.session.add(OrderRecord(
            quote_id=quote_id,
            stripe_session_id=session.id,
            amount_cents=amount_cents,
            currency=self.currency,
            status="pending",
            customer_email=quote.get("email"),
        ))
        db.session.commit()
        logger.info(f"Checkout session {session.id} for {quote_id} ({amount_cents} cents)")
        return {"id": session.id, "url": session.url}

    def create_payment_intent(self, quote_id: str) -> Dict[str, Any]:
        """
        Create a PaymentIntent for an embedded payment form.

        Returns:
            Dict with client_secret, payment_intent_id, amount, currency
        """
        api_key = self._require_key()
        quote = self._payable_quote(quote_id)
        amount_cents = to_cents(quote["quote_total"])

        try:
            intent = stripe.PaymentIntent.create(
                api_key=api_key,
                amount=amount_cents,
                currency=self.currency,
                receipt_email=quote.get("email") or None,
                metadata={"quote_id": quote_id},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"PaymentIntent failed for {quote_id}: {e}")
            raise PaymentError(f"Stripe payment failed: {e.user_message or e}",
                               http_status=e.http_status)

        db.session.add(OrderRecord(
            quote_id=quote_id,
            stripe_payment_intent=intent.id,
            amount_cents=amount_cents,
            currency=self.currency,
            status="pending",
            customer_email=quote.get("email"),
        ))
        db.session.commit()
        logger.info(f"PaymentIntent {intent.id} for {quote_id} ({amount_cents} cents)")
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "amount": amount_cents,
            "currency": self.currency,
        }

    # -------------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------------

    def handle_webhook(self, payload: bytes, sig_header: Optional[str]) -> str:
        """
        Verify and apply a Stripe webhook.

        Returns:
            The event type (unhandled types are acknowledged and ignored)

        Raises:
            ConfigurationError: No webhook secret
            ValidationError: Bad payload or signature
        """
        if not self.webhook_secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET", "Stripe webhooks")

        try:
            event = stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except ValueError:
            raise ValidationError({"payload": "Invalid payload"})
        except stripe.SignatureVerificationError:
            raise ValidationError({"signature": "Invalid signature"})

        event_type = event["type"]
        data = event["data"]["object"]
        logger.info(f"Stripe webhook: {event_type} ({event['id']})")

        if event_type == "checkout.session.completed":
            order = OrderRecord.query.filter_by(stripe_session_id=data["id"]).first()
            self._mark_paid(order, data.get("metadata") or {},
                            payment_intent=data.get("payment_intent"),
                            amount_cents=data.get("amount_total"))
        elif event_type == "payment_intent.succeeded":
            order = OrderRecord.query.filter_by(stripe_payment_intent=data["id"]).first()
            self._mark_paid(order, data.get("metadata") or {},
                            payment_intent=data["id"],
                            amount_cents=data.get("amount_received") or data.get("amount"))
        else:
            logger.debug(f"Ignoring Stripe event {event_type}")

        return event_type

    def _mark_paid(self, order: Optional[OrderRecord], metadata: Mapping[str, Any],
                   payment_intent: Optional[str], amount_cents: Optional[int]) -> None:
        quote_id = order.quote_id if order else metadata.get("quote_id")
        if not quote_id:
            logger.warning("Paid event without a known order or quote_id metadata")
            return

        if order is None:
            order = OrderRecord(
                quote_id=quote_id,
                amount_cents=amount_cents or 0,
                currency=self.currency,
            )
            db.session.add(order)
        elif order.status == "paid":
            logger.info(f"Order for {quote_id} already paid")
            return

        order.status = "paid"
        order.paid_at = datetime.now(timezone.utc)
        if payment_intent:
            order.stripe_payment_intent = payment_intent
        if amount_cents:
            order.amount_cents = amount_cents
        db.session.commit()

        self.quote_store.set_status(quote_id, "paid")
        logger.info(f"Quote {quote_id} paid ({order.amount_cents} cents)")

        if self.email_service is not None:
            try:
                self.email_service.send_payment_receipt(
                    self.quote_store.get_quote(quote_id), order.amount_cents, order.currency
                )
            except CertQuoteError as e:
                logger.warning(f"Receipt email failed for {quote_id}: {e}")
