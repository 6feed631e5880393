"""
Quote request form.

Collects customer details and documents, stores them, starts the
processing job, and redirects to the processing page.
"""

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from core.exceptions import CertQuoteError, ValidationError
from logging_config import get_logger
from services.intake_service import IncomingFile


# Module logger
logger = get_logger(__name__)

upload_bp = Blueprint("upload", __name__)

FORM_FIELDS = ("name", "email", "phone", "source_language", "target_language", "intended_use")


@upload_bp.route("/upload", methods=["GET", "POST"])
def upload():
    """
    Handle the quote request form.

    GET: Display the form
    POST: Validate, store files, start processing, redirect to progress page
    """
    if request.method == "POST":
        form = {key: request.form.get(key, "") for key in FORM_FIELDS}
        files = [
            IncomingFile(
                file_name=f.filename,
                data=f.read(),
                content_type=f.mimetype or "",
            )
            for f in request.files.getlist("files")
            if f and f.filename
        ]

        intake_service = current_app.config["INTAKE_SERVICE"]

        try:
            quote_id, job_id = intake_service.submit(form, files)

        except ValidationError as e:
            for message in e.errors.values():
                flash(message, "error")
            return _render_form(form, e.errors), 400

        except CertQuoteError as e:
            logger.error(f"Quote submission failed: {e}")
            flash(f"Failed to submit your documents: {e.message}", "error")
            return _render_form(form), e.status_code

        # Remember the quote for this browser
        session["quote_id"] = quote_id
        session["job_id"] = job_id
        session.modified = True

        flash("Documents uploaded. Preparing your quote...", "success")
        return redirect(url_for("quote.processing", quote_id=quote_id))

    # GET request - display upload form
    return _render_form({})


def _render_form(form, errors=None):
    calculator = current_app.config["QUOTE_CALCULATOR"]
    return render_template(
        "upload.html",
        form=form,
        errors=errors or {},
        pricing=calculator.pricing_table(),
    )
