"""
Main routes (home, start over).

Simple landing redirect and session reset.
"""

from flask import Blueprint, flash, redirect, session, url_for

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    """Redirect root to the quote form."""
    return redirect(url_for("upload.upload"))


@main_bp.route("/start-over", methods=["GET", "POST"])
def start_over():
    """Clear the current quote from the session and show an empty form."""
    quote_id = session.pop("quote_id", None)
    session.pop("job_id", None)
    if quote_id:
        logger.info(f"Session cleared (was quote {quote_id})")

    flash("Session cleared. Start a new quote.", "success")
    return redirect(url_for("upload.upload"))
