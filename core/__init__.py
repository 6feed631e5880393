"""
Core module for CertQuoteWeb.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- vendor_client: Shared requests plumbing for vendor REST APIs
"""

from .exceptions import (
    CertQuoteError,
    ConfigurationError,
    ValidationError,
    QuoteNotFoundError,
    StorageError,
    VendorAPIError,
    OCRError,
    AnalysisError,
    PaymentError,
    EmailError,
    VendorTimeoutError,
)
from .vendor_client import VendorHTTPClient

__all__ = [
    "CertQuoteError",
    "ConfigurationError",
    "ValidationError",
    "QuoteNotFoundError",
    "StorageError",
    "VendorAPIError",
    "OCRError",
    "AnalysisError",
    "PaymentError",
    "EmailError",
    "VendorTimeoutError",
    "VendorHTTPClient",
]
