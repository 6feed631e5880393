"""
API routes (JSON endpoints).

Handles:
- /api/ping - Liveness check
- /api/quotes - Create a draft quote
- /api/quote-start - Create a quote from base64 files and start processing
- /api/storage/signed-url - Signed upload / read URLs for direct browser uploads
- /api/process-documents - Start processing an existing quote
- /api/quote-status - Poll job status (processing page)
- /api/quote-files - Per-file OCR / analysis rows
- /api/payment-intent - Stripe PaymentIntent for an embedded payment form
- /health - Health check endpoint

CertQuoteError subclasses raised here are turned into ``{"error": ...}``
bodies with the exception's status code by the app error handler.
"""

from typing import Any, Dict

from flask import Blueprint, current_app, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import ValidationError
from logging_config import get_logger
from models.records import db
from services.intake_service import decode_base64_files


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError({"body": "Expected a JSON object"})
    return body


def _require(value: Any, field: str) -> str:
    if not value:
        raise ValidationError({field: f"{field} is required"})
    return str(value)


@api_bp.route("/api/ping", methods=["GET"])
def ping():
    return {"message": "pong"}


@api_bp.route("/api/quotes", methods=["POST"])
def create_quote():
    """Create a draft quote from customer fields; returns its id."""
    intake_service = current_app.config["INTAKE_SERVICE"]
    quote_request = intake_service.validate_request(_json_body())
    quote_id = intake_service.create_quote(quote_request)
    return {"quoteId": quote_id}


@api_bp.route("/api/quote-start", methods=["POST"])
def quote_start():
    """
    Create a quote, store base64-encoded files, and start processing.

    Body: customer fields plus ``files: [{fileName, fileType, fileBase64}]``
    """
    body = _json_body()
    items = body.get("files")
    if not isinstance(items, list) or not items:
        raise ValidationError({"files": "At least one file is required."})

    intake_service = current_app.config["INTAKE_SERVICE"]
    quote_id, job_id = intake_service.submit(body, decode_base64_files(items))
    return {"jobId": job_id, "quoteId": quote_id}


@api_bp.route("/api/storage/signed-url", methods=["POST"])
def signed_url():
    """
    Signed URL for ``<quote_id>/<filename>``.

    ``operation`` is "upload" (default) or "read".
    """
    body = _json_body()
    filename = _require(body.get("filename"), "filename")
    quote_id = _require(body.get("quote_id"), "quote_id")
    operation = body.get("operation") or "upload"

    storage_service = current_app.config["STORAGE_SERVICE"]

    if operation == "read":
        signed = storage_service.signed_read(quote_id, filename)
        return {
            "signedUrl": signed["signed_url"],
            "path": signed["path"],
            "expiresIn": signed["expires_in"],
            "storageBackend": signed["storage_backend"],
            "sourceUri": signed["source_uri"],
        }

    if operation != "upload":
        raise ValidationError({"operation": f"Unknown operation: {operation}"})

    signed = storage_service.create_signed_upload_url(quote_id, filename)
    return {
        "uploadUrl": signed["upload_url"],
        "token": signed["token"],
        "path": signed["path"],
        "storageBackend": signed["storage_backend"],
        "sourceUri": signed["source_uri"],
    }


@api_bp.route("/api/process-documents", methods=["POST"])
def process_documents():
    """Start processing for a quote whose files are already in storage."""
    body = _json_body()
    quote_id = _require(body.get("quote_id") or body.get("quoteId"), "quote_id")

    intake_service = current_app.config["INTAKE_SERVICE"]
    job_id = intake_service.start_processing(quote_id)
    return {"jobId": job_id, "quoteId": quote_id}


@api_bp.route("/api/quote-status", methods=["GET"])
def quote_status():
    """
    AJAX endpoint to check job processing status.

    Reads the job row and its events from the database, so any worker
    process can answer. Returns ``{job, events, result}``.
    """
    job_id = _require(request.args.get("job_id") or request.args.get("jobId"), "job_id")

    job_store = current_app.config["JOB_STORE"]
    return job_store.get_status(job_id).to_dict()


@api_bp.route("/api/quote-files", methods=["GET"])
def quote_files():
    """Per-file OCR and analysis rows, ordered by file name."""
    quote_id = _require(request.args.get("quote_id"), "quote_id")

    quote_store = current_app.config["QUOTE_STORE"]
    return {"status": "ok", "rows": quote_store.list_files(quote_id)}


@api_bp.route("/api/payment-intent", methods=["POST"])
def payment_intent():
    """Client secret for Stripe.js."""
    body = _json_body()
    quote_id = _require(body.get("quote_id") or body.get("quoteId"), "quote_id")

    payment_service = current_app.config["PAYMENT_SERVICE"]
    return payment_service.create_payment_intent(quote_id)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Database
    try:
        db.session.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database failure: {e}")
        health_status["checks"]["database"] = "error"
        health_status["status"] = "degraded"

    # Storage is required to accept uploads
    storage_service = current_app.config.get("STORAGE_SERVICE")
    if storage_service and storage_service.is_configured:
        health_status["checks"]["storage"] = "configured"
    else:
        health_status["checks"]["storage"] = "not_configured"
        health_status["status"] = "degraded"

    # OCR provider credentials
    config = current_app.config
    provider = (config.get("OCR_PROVIDER") or "vision").lower()
    ocr_ready = {
        "vision": bool(config.get("GOOGLE_API_KEY")),
        "adobe": bool(config.get("ADOBE_PDF_CLIENT_ID") and config.get("ADOBE_PDF_CLIENT_SECRET")),
        "pdf_text": True,
    }.get(provider, False)
    health_status["checks"]["ocr"] = f"{provider}:{'configured' if ocr_ready else 'not_configured'}"
    if not ocr_ready:
        health_status["status"] = "degraded"

    # Optional integrations (reported, not required)
    analysis_ready = bool(config.get("GEMINI_API_KEY") or config.get("GOOGLE_API_KEY"))
    health_status["checks"]["analysis"] = "configured" if analysis_ready else "not_configured"

    payment_service = config.get("PAYMENT_SERVICE")
    health_status["checks"]["payments"] = (
        "configured" if payment_service and payment_service.is_configured else "not_configured"
    )

    email_service = config.get("EMAIL_SERVICE")
    health_status["checks"]["email"] = (
        "configured" if email_service and email_service.is_configured else "not_configured"
    )

    # Job service
    if config.get("JOB_SERVICE"):
        health_status["checks"]["job_service"] = "ok"
    else:
        health_status["checks"]["job_service"] = "not_available"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
