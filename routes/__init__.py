"""
Flask route blueprints for CertQuoteWeb.

This module contains all route handlers organized by functionality:
- main: Home redirect and start over
- upload: Quote request form
- quote: Processing and quote pages
- payment: Stripe checkout, return pages, webhook
- api: JSON endpoints (intake, signing, status polling, health)

Each blueprint is registered with the Flask app in create_app().
"""

from .main import main_bp
from .upload import upload_bp
from .quote import quote_bp
from .payment import payment_bp
from .api import api_bp

__all__ = [
    "main_bp",
    "upload_bp",
    "quote_bp",
    "payment_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(main_bp)
    app.register_blueprint(upload_bp)
    app.register_blueprint(quote_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(api_bp)
