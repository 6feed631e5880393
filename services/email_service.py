"""
Transactional email through Brevo.

Two messages: "your quote is ready" (sent by the job thread once a quote
is priced) and the payment receipt (sent from the Stripe webhook). Email
is optional: without BREVO_API_KEY the service logs and returns False.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from core.exceptions import EmailError
from core.vendor_client import VendorHTTPClient
from logging_config import get_logger
from models.quote import QuoteResult
from modules.pricing import QuoteCalculator


class BrevoClient(VendorHTTPClient):
    """Brevo SMTP API (``POST /v3/smtp/email``)."""

    vendor = "brevo"
    error_class = EmailError

    SEND_URL = "https://api.brevo.com/v3/smtp/email"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.session.headers.update({
            "api-key": api_key,
            "accept": "application/json",
            "content-type": "application/json",
        })

    def send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return self.post_json(self.SEND_URL, json=message)


class EmailService:
    """
    Builds and sends customer emails.

    A BrevoClient is created per send, since the job thread and webhook
    requests can send at the same time.
    """

    def __init__(
        self,
        api_key: str = "",
        sender_email: str = "",
        sender_name: str = "Certified Translations",
        timeout: float = 60,
    ) -> None:
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = timeout
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EmailService":
        return cls(
            api_key=config.get("BREVO_API_KEY", ""),
            sender_email=config.get("BREVO_SENDER_EMAIL", ""),
            sender_name=config.get("BREVO_SENDER_NAME", "Certified Translations"),
            timeout=config.get("VENDOR_TIMEOUT_SECONDS", 60),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.sender_email)

    def _send(self, to_email: str, to_name: str, subject: str, html: str) -> bool:
        if not self.is_configured:
            self.logger.info(f"Email not configured, skipping '{subject}' to {to_email}")
            return False

        message = {
            "sender": {"email": self.sender_email, "name": self.sender_name},
            "to": [{"email": to_email, "name": to_name or to_email}],
            "subject": subject,
            "htmlContent": html,
        }
        client = BrevoClient(self.api_key, timeout=self.timeout)
        try:
            response = client.send(message)
        finally:
            client.close()
        self.logger.info(f"Email '{subject}' sent to {to_email} (id={response.get('messageId')})")
        return True

    def send_quote_ready(self, to_email: str, to_name: str, result: QuoteResult,
                         quote_url: Optional[str] = None) -> bool:
        """
        Email the priced quote.

        Returns:
            True if sent, False if email is not configured

        Raises:
            EmailError: Brevo rejected the message
        """
        totals = result.totals
        link = f'<p><a href="{quote_url}">View and pay your quote</a></p>' if quote_url else ""
        html = (
            f"<p>Hello {to_name},</p>"
            f"<p>Your certified translation quote <strong>{result.quote_id}</strong> is ready.</p>"
            "<ul>"
            f"<li>Billable pages: {totals.total_billable_pages:.1f}</li>"
            f"<li>Rate per page: ${totals.per_page_rate:.2f}</li>"
            f"<li>{QuoteCalculator.certification_label(totals.cert_type)}: ${totals.cert_price:.2f}</li>"
            f"<li><strong>Total: ${totals.quote_total:.2f}</strong></li>"
            "</ul>"
            f"{link}"
        )
        return self._send(to_email, to_name, f"Your translation quote {result.quote_id}", html)

    def send_payment_receipt(self, quote: Mapping[str, Any], amount_cents: int,
                             currency: str = "usd") -> bool:
        """
        Email a payment confirmation for a quote (``QuoteRecord.to_dict()``).

        Returns:
            True if sent, False if email is not configured
        """
        html = (
            f"<p>Hello {quote.get('name', '')},</p>"
            f"<p>We received your payment of {amount_cents / 100:.2f} {currency.upper()} "
            f"for quote <strong>{quote.get('quote_id')}</strong>.</p>"
            "<p>Our translators will start on your documents shortly.</p>"
        )
        return self._send(
            quote.get("email", ""),
            quote.get("name", ""),
            f"Payment received for quote {quote.get('quote_id')}",
            html,
        )
