"""
Services layer for CertQuoteWeb.

This module contains the business logic services:
- StorageService: Supabase Storage uploads, signed URLs, downloads
- QuoteStore: Quote and file rows
- JobStore / JobService: Processing jobs (one thread per quote) and their events
- IntakeService: Form / API validation and job start
- PaymentService: Stripe checkout, payment intents, webhooks
- EmailService: Brevo transactional email

Thread Model:
    Main Thread (Flask)
    └── JobService threads (one per quote)
        └── FileWorker threads (one per file, bounded pool)

Only request threads and job threads touch the database; file workers
just call vendors and return results.
"""

from .storage_service import StorageService
from .quote_store import QuoteStore
from .job_service import JobService, JobStore
from .intake_service import IntakeService
from .payment_service import PaymentService
from .email_service import EmailService

__all__ = [
    "StorageService",
    "QuoteStore",
    "JobService",
    "JobStore",
    "IntakeService",
    "PaymentService",
    "EmailService",
]
