"""
Payment routes.

Handles:
- /quote/<quote_id>/pay - Start Stripe Checkout (303 redirect)
- /payment/success - Return page after Checkout
- /payment/cancel - Checkout abandoned, back to the quote
- /stripe-webhook - Stripe event receiver
"""

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)

from core.exceptions import CertQuoteError, ConfigurationError, QuoteNotFoundError, ValidationError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

payment_bp = Blueprint("payment", __name__)


@payment_bp.route("/quote/<quote_id>/pay", methods=["POST"])
def pay(quote_id: str):
    """Create a Checkout session and send the browser to Stripe."""
    payment_service = current_app.config["PAYMENT_SERVICE"]

    success_url = url_for("payment.success", quote_id=quote_id, _external=True)
    cancel_url = url_for("payment.cancel", quote_id=quote_id, _external=True)

    try:
        checkout = payment_service.create_checkout_session(quote_id, success_url, cancel_url)
    except QuoteNotFoundError:
        flash(f"Quote {quote_id} was not found.", "warning")
        return redirect(url_for("upload.upload"))
    except CertQuoteError as e:
        logger.error(f"Checkout failed for {quote_id}: {e}")
        flash(f"Payment could not be started: {e.message}", "error")
        return redirect(url_for("quote.show", quote_id=quote_id))

    return redirect(checkout["url"], code=303)


@payment_bp.route("/payment/success", methods=["GET"])
def success():
    """
    Thank-you page.

    The webhook may arrive after the redirect, so the quote can still show
    as unpaid here.
    """
    quote_id = request.args.get("quote_id", "")
    quote_store = current_app.config["QUOTE_STORE"]
    try:
        quote = quote_store.get_quote(quote_id)
    except QuoteNotFoundError:
        flash("Payment received. We could not find the quote reference.", "warning")
        return redirect(url_for("upload.upload"))
    return render_template("payment_success.html", quote=quote)


@payment_bp.route("/payment/cancel", methods=["GET"])
def cancel():
    quote_id = request.args.get("quote_id", "")
    flash("Payment cancelled. Your quote is still available.", "info")
    if not quote_id:
        return redirect(url_for("upload.upload"))
    return redirect(url_for("quote.show", quote_id=quote_id))


@payment_bp.route("/stripe-webhook", methods=["POST"])
def stripe_webhook():
    """Handle Stripe webhook events"""
    payment_service = current_app.config["PAYMENT_SERVICE"]
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")

    try:
        event_type = payment_service.handle_webhook(payload, sig_header)
    except ValidationError as e:
        return {"error": e.message}, 400
    except ConfigurationError as e:
        logger.error(f"Webhook received but not configured: {e}")
        return {"error": e.message}, 500

    return {"status": "success", "type": event_type}, 200
