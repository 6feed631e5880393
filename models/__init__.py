"""
Data models for CertQuoteWeb.

This package contains:
- QuoteRequest / FrozenSubmission: customer input, frozen for the job thread
- OCRResult, DocumentAnalysis, ProcessedFile: normalized vendor results
- PageAnalysis, FileAnalysis, QuoteTotals, QuoteResult: priced quote
- JobStatus, JobEvent, JobState: background job progress
- records: Flask-SQLAlchemy tables (import from models.records)

Dataclasses passed to worker threads are frozen or owned by one thread.
"""

from .quote import PageAnalysis, FileAnalysis, QuoteTotals, QuoteResult
from .document import (
    StepStatus,
    OCRResult,
    PageInsight,
    DocumentAnalysis,
    StoredFile,
    ProcessedFile,
)
from .submission import QuoteRequest, FrozenSubmission
from .job_result import JobStatus, JobEvent, JobState

__all__ = [
    # Quote models
    "PageAnalysis",
    "FileAnalysis",
    "QuoteTotals",
    "QuoteResult",
    # Document models
    "StepStatus",
    "OCRResult",
    "PageInsight",
    "DocumentAnalysis",
    "StoredFile",
    "ProcessedFile",
    # Submission models
    "QuoteRequest",
    "FrozenSubmission",
    # Job models
    "JobStatus",
    "JobEvent",
    "JobState",
]
