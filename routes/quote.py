"""
Quote pages.

Handles:
- /quote/<quote_id>/processing - Progress page polling the job status
- /quote/<quote_id> - Priced quote with per-page breakdown and pay button
"""

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    session,
    url_for,
)

from core.exceptions import QuoteNotFoundError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

quote_bp = Blueprint("quote", __name__)


@quote_bp.route("/quote/<quote_id>/processing", methods=["GET"])
def processing(quote_id: str):
    """
    Display the processing page.

    JavaScript polls /api/quote-status every POLL_INTERVAL_MS and moves on
    to the quote page once the job completes.
    """
    quote_store = current_app.config["QUOTE_STORE"]
    job_store = current_app.config["JOB_STORE"]

    try:
        quote = quote_store.get_quote(quote_id)
    except QuoteNotFoundError:
        flash(f"Quote {quote_id} was not found.", "warning")
        return redirect(url_for("upload.upload"))

    job_id = session.get("job_id") if session.get("quote_id") == quote_id else None
    job_id = job_id or job_store.latest_job_id(quote_id)
    if not job_id:
        flash("This quote has not been submitted for processing.", "warning")
        return redirect(url_for("upload.upload"))

    return render_template("processing.html", quote=quote, job_id=job_id)


@quote_bp.route("/quote/<quote_id>", methods=["GET"])
def show(quote_id: str):
    """
    Display the priced quote.

    Shows every file and page with word count, complexity, multiplier,
    weighted words, and billable pages, then the totals.
    """
    quote_store = current_app.config["QUOTE_STORE"]
    payment_service = current_app.config["PAYMENT_SERVICE"]

    try:
        quote = quote_store.get_quote(quote_id)
        result = quote_store.get_result(quote_id)
    except QuoteNotFoundError:
        flash(f"Quote {quote_id} was not found.", "warning")
        return redirect(url_for("upload.upload"))

    if result is None:
        if quote["status"] == "failed":
            flash(f"We could not prepare this quote: {quote.get('error') or 'unknown error'}", "error")
            return redirect(url_for("upload.upload"))
        return redirect(url_for("quote.processing", quote_id=quote_id))

    files = quote_store.list_files(quote_id)
    detected = {
        row["file_name"]: row["detected_language"]
        for row in files
        if row.get("detected_language") not in (None, "", "unknown")
    }

    return render_template(
        "quote.html",
        quote=quote,
        result=result,
        detected_languages=detected,
        can_pay=payment_service.is_configured and quote["status"] == "quoted",
    )
