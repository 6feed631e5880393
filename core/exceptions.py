"""
Custom exceptions for CertQuoteWeb.

Exception Hierarchy:
    CertQuoteError (base)
    ├── ConfigurationError     - Vendor credentials or provider missing
    ├── ValidationError        - Bad form / API input
    ├── QuoteNotFoundError     - Unknown quote or job id
    ├── StorageError           - Supabase Storage call failed
    ├── VendorTimeoutError     - Vendor polling exceeded its deadline
    └── VendorAPIError         - Vendor HTTP/SDK call failed
        ├── OCRError           - Vision / Adobe extraction failed
        ├── AnalysisError      - Gemini analysis failed
        ├── PaymentError       - Stripe call failed
        └── EmailError         - Brevo send failed

Usage:
    Per-file vendor failures (OCRError, AnalysisError, ConfigurationError)
    are caught by the document processor and recorded as file statuses.
    Everything else propagates to the job thread or the route handler,
    which turns it into a failed job, a flash message, or a JSON error.
"""

from typing import Optional, Dict, Any


class CertQuoteError(Exception):
    """
    Base exception for all CertQuoteWeb errors.

    Carries a human-readable ``message`` and a ``details`` dict that ends up
    in logs and JSON error bodies.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION / INPUT ERRORS
# =============================================================================

class ConfigurationError(CertQuoteError):
    """
    A vendor integration is used without its credentials.

    Raised lazily on first use, not at startup, so the app can serve the
    form and report the gap through /health.
    """

    def __init__(self, setting: str, service: str):
        message = f"{service} is not configured ({setting} is missing)"
        details = {
            "setting": setting,
            "service": service,
            "resolution": f"Set {setting} in .env"
        }
        super().__init__(message, details)
        self.setting = setting
        self.service = service


class ValidationError(CertQuoteError):
    """
    Submitted form or API payload failed validation.

    ``errors`` maps field name to message; the first one becomes ``message``.
    """

    status_code = 400

    def __init__(self, errors: Dict[str, str]):
        first = next(iter(errors.values()), "Invalid input")
        super().__init__(first, {"fields": dict(errors)})
        self.errors = dict(errors)


class QuoteNotFoundError(CertQuoteError):
    """No quote (or job) exists with the given id."""

    status_code = 404

    def __init__(self, identifier: str, kind: str = "quote"):
        super().__init__(f"No {kind} found with id {identifier}", {kind: identifier})
        self.identifier = identifier
        self.kind = kind


class StorageError(CertQuoteError):
    """Supabase Storage rejected an upload, sign, list, or download."""

    status_code = 502

    def __init__(self, message: str, path: Optional[str] = None):
        details = {"path": path} if path else {}
        super().__init__(message, details)
        self.path = path


# =============================================================================
# VENDOR ERRORS - recorded per file or surfaced as 502
# =============================================================================

class VendorAPIError(CertQuoteError):
    """
    A third-party API returned an error or an unreadable body.

    Attributes:
        vendor: Short vendor name ("vision", "adobe", "gemini", "stripe", "brevo")
        http_status: HTTP status from the vendor, when there was one
        body: First 500 characters of the response body
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        vendor: str,
        http_status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"vendor": vendor}
        if http_status is not None:
            details["http_status"] = http_status
        if body:
            details["body"] = body[:500]
        super().__init__(message, details)
        self.vendor = vendor
        self.http_status = http_status
        self.body = body


class OCRError(VendorAPIError):
    """OCR provider failed for a file."""


class AnalysisError(VendorAPIError):
    """LLM analysis failed for a file (including payload-too-large)."""


class PaymentError(VendorAPIError):
    """Stripe rejected a checkout, payment intent, or webhook."""

    def __init__(self, message: str, vendor: str = "stripe",
                 http_status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message, vendor, http_status, body)


class EmailError(VendorAPIError):
    """Brevo rejected a transactional email."""

    def __init__(self, message: str, vendor: str = "brevo",
                 http_status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message, vendor, http_status, body)


class VendorTimeoutError(CertQuoteError):
    """
    An asynchronous vendor operation did not finish in time.

    Used for Adobe PDF Services, where extraction is started and then
    polled until it reports "done".
    """

    status_code = 504

    def __init__(self, vendor: str, operation: str, timeout_seconds: float):
        message = f"{vendor} {operation} timed out after {timeout_seconds:.1f}s"
        details = {
            "vendor": vendor,
            "operation": operation,
            "timeout_seconds": timeout_seconds,
        }
        super().__init__(message, details)
        self.vendor = vendor
        self.operation = operation
        self.timeout_seconds = timeout_seconds
