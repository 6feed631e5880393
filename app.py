"""
CertQuoteWeb - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration (.env + config classes)
2. Creates the database tables
3. Wires the services (storage, quote store, jobs, payments, email)
4. Registers route blueprints
5. Sets up error handlers and context processors

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (form, JSON API, Stripe webhook)
    └── Cleanup on shutdown (join job threads)

    Job Threads (one per quote)
    └── Own app context and DB session
        └── FileWorker pool: OCR + analysis per file, no DB access

Vendor credentials are read lazily; a missing key disables that feature
(reported by /health) instead of stopping the app.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, flash, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.exceptions import CertQuoteError
from models.records import db
from modules.document_analysis import GeminiAnalyzer
from modules.document_processor import DocumentProcessor
from modules.languages import supported_languages, to_language_name
from modules.ocr import build_ocr_client
from modules.pricing import QuoteCalculator
from services import (
    EmailService,
    IntakeService,
    JobService,
    JobStore,
    PaymentService,
    QuoteStore,
    StorageService,
)
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In a frozen bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def _wants_json() -> bool:
    return request.path.startswith("/api/") or request.path == "/health"


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_name: "development", "production", or "testing"
            (default: FLASK_ENV, then "development")

    Returns:
        Configured Flask application
    """
    # Load .env from base path
    # Use override=True so .env file always takes precedence over shell environment
    base_path = _get_base_path()
    env_file = base_path / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    from config import CONFIGS

    config_name = config_name or os.environ.get("FLASK_ENV", "development")
    config_class = CONFIGS.get(config_name, CONFIGS["development"])

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production" and not app.config.get("TESTING")

    root_logger = setup_logging(
        app_name="cert_quote_web",
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting CertQuoteWeb ({config_class.__name__})")

    # =========================================================================
    # DATABASE
    # =========================================================================

    db.init_app(app)
    with app.app_context():
        db.create_all()

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    config = app.config

    storage_service = StorageService.from_config(config)
    calculator = QuoteCalculator.from_config(config)
    email_service = EmailService.from_config(config)
    quote_store = QuoteStore()
    job_store = JobStore()

    # Each file worker builds its own vendor clients from a config snapshot
    vendor_config = dict(config)
    processor = DocumentProcessor(
        fetch_bytes=storage_service.fetch_bytes,
        ocr_factory=lambda: build_ocr_client(vendor_config),
        analyzer_factory=lambda: GeminiAnalyzer.from_config(vendor_config),
        calculator=calculator,
    )

    job_service = JobService(
        app,
        job_store,
        quote_store,
        processor,
        calculator,
        email_service=email_service,
        max_file_workers=config.get("MAX_FILE_WORKERS", 4),
    )
    intake_service = IntakeService(quote_store, storage_service, job_store, job_service)
    payment_service = PaymentService.from_config(config, quote_store, email_service)

    # Store in app config for access by routes
    app.config["STORAGE_SERVICE"] = storage_service
    app.config["QUOTE_CALCULATOR"] = calculator
    app.config["EMAIL_SERVICE"] = email_service
    app.config["QUOTE_STORE"] = quote_store
    app.config["JOB_STORE"] = job_store
    app.config["DOCUMENT_PROCESSOR"] = processor
    app.config["JOB_SERVICE"] = job_service
    app.config["INTAKE_SERVICE"] = intake_service
    app.config["PAYMENT_SERVICE"] = payment_service
    logger.info(
        f"Services initialized (ocr={config.get('OCR_PROVIDER')}, "
        f"storage={'on' if storage_service.is_configured else 'off'}, "
        f"payments={'on' if payment_service.is_configured else 'off'}, "
        f"email={'on' if email_service.is_configured else 'off'})"
    )

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        job_service.shutdown()
        logger.info("Shutdown complete")

    if not app.config.get("TESTING"):
        atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # CONTEXT PROCESSORS
    # =========================================================================

    @app.context_processor
    def inject_site_config():
        """Inject form options and client settings into all templates."""
        return {
            "supported_languages": supported_languages(),
            "intended_uses": list(QuoteCalculator.CERTIFICATION_MAP),
            "certification_label": QuoteCalculator.certification_label,
            "language_name": to_language_name,
            "poll_interval_ms": app.config.get("POLL_INTERVAL_MS", 2000),
            "stripe_publishable_key": app.config.get("STRIPE_PUBLISHABLE_KEY", ""),
        }

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(CertQuoteError)
    def handle_app_error(e: CertQuoteError):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__} on {request.path}: {e}")
        else:
            logger.info(f"{type(e).__name__} on {request.path}: {e.message}")
        if _wants_json():
            return jsonify({"error": e.message, "details": e.details}), e.status_code
        flash(e.message, "error")
        return redirect(url_for("upload.upload"))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 16 * 1024 * 1024) / (1024 * 1024)
        message = f"Upload too large. Maximum upload size is {max_mb:.0f} MB."
        if _wants_json():
            return jsonify({"error": message}), 413
        flash(message, "error")
        return redirect(url_for("upload.upload"))

    @app.errorhandler(404)
    def handle_not_found(e):
        if _wants_json():
            return jsonify({"error": "Not found"}), 404
        flash("Page not found.", "warning")
        return redirect(url_for("upload.upload"))

    @app.errorhandler(405)
    def handle_method_not_allowed(e: HTTPException):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        if _wants_json():
            return jsonify({"error": "Internal server error"}), 500
        return render_template("error.html", message="An unexpected error occurred. Please try again."), 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
