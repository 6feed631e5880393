"""
Quote processing service with thread-per-job architecture.

Turning uploads into a price takes several vendor round-trips per file
(download, OCR, LLM analysis), far longer than a request should block.
Each quote therefore gets its own background thread; the browser polls
the job's status from the database.

Thread Safety:
    - FrozenSubmission is immutable, safe to hand to the job thread
    - The job thread pushes its own Flask app context, so it gets its own
      SQLAlchemy session
    - File workers (DocumentProcessor) never touch the database; only the
      job thread writes file results, events, and the final quote

Flow:
    1. Request thread creates the quote, stores files, calls init_job()
    2. Request thread calls job_service.submit_job(job_id, frozen_submission)
    3. Job thread: start event -> process files concurrently -> persist
       file results -> price -> save quote -> email -> end event
    4. Processing page polls /api/quote-status?job_id=... until the job is
       completed or failed

Usage:
    # At app startup
    job_service = JobService(app, job_store, quote_store, processor, calculator, email_service)

    # On submission (request thread)
    job_id = job_store.init_job(quote_id)
    job_service.submit_job(job_id, request.freeze())

    # Polling (request thread)
    state = job_store.get_status(job_id)

    # At app shutdown
    job_service.shutdown()
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from flask import Flask

from core.exceptions import CertQuoteError, QuoteNotFoundError
from logging_config import get_logger, get_job_logger, set_thread_name
from models.document import ProcessedFile
from models.job_result import JobEvent, JobState, JobStatus
from models.quote import QuoteResult
from models.records import db, QuoteJob, QuoteJobEvent
from models.submission import FrozenSubmission
from modules.document_processor import DocumentProcessor
from modules.pricing import QuoteCalculator


# Module logger
logger = get_logger(__name__)


class JobStore:
    """
    Job rows and progress events in the database.

    The status endpoint reads from here, so polling works from any worker
    process, not only the one running the job thread.
    """

    def init_job(self, quote_id: str) -> str:
        """Create a pending job for a quote and return its id (UUID)."""
        job_id = str(uuid.uuid4())
        db.session.add(QuoteJob(id=job_id, quote_id=quote_id, status=JobStatus.PENDING.value))
        db.session.commit()
        logger.debug(f"Created job {job_id[:8]} for quote {quote_id}")
        return job_id

    def _get(self, job_id: str) -> QuoteJob:
        job = db.session.get(QuoteJob, job_id)
        if job is None:
            raise QuoteNotFoundError(job_id, "job")
        return job

    def log_event(self, job_id: str, step: str, message: str, progress: Optional[int] = None) -> None:
        db.session.add(QuoteJobEvent(job_id=job_id, step=step, message=message, progress=progress))
        db.session.commit()

    def mark_running(self, job_id: str) -> None:
        job = self._get(job_id)
        job.status = JobStatus.RUNNING.value
        db.session.commit()

    def end_job(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        result: Optional[Dict] = None,
    ) -> None:
        job = self._get(job_id)
        job.status = status.value
        job.error = error
        job.result = result
        job.updated_at = datetime.now(timezone.utc)
        db.session.commit()

    def get_status(self, job_id: str) -> JobState:
        """
        Job, events (oldest first), and result.

        Raises:
            QuoteNotFoundError: Unknown job id
        """
        job = self._get(job_id)
        events = [
            JobEvent(step=e.step, message=e.message or "", progress=e.progress, ts=e.ts)
            for e in job.events.order_by(QuoteJobEvent.id).all()
        ]
        return JobState(
            job_id=job.id,
            quote_id=job.quote_id,
            status=JobStatus(job.status),
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
            events=events,
            result=job.result,
        )

    def latest_job_id(self, quote_id: str) -> Optional[str]:
        job = (QuoteJob.query.filter_by(quote_id=quote_id)
               .order_by(QuoteJob.created_at.desc()).first())
        return job.id if job else None


class JobService:
    """
    Runs quote jobs in background threads.

    Each thread:
    1. Pushes a Flask app context (own DB session)
    2. Processes every file through the DocumentProcessor
    3. Stores per-file OCR / analysis results
    4. Prices the quote and saves it
    5. Emails the customer (best effort)
    6. Ends the job as completed or failed
    """

    def __init__(
        self,
        app: Flask,
        job_store: JobStore,
        quote_store,
        processor: DocumentProcessor,
        calculator: QuoteCalculator,
        email_service=None,
        max_file_workers: int = 4,
    ):
        """
        Args:
            app: Flask app, used to push an app context in job threads
            job_store: JobStore for status and events
            quote_store: QuoteStore for file rows and the final quote
            processor: Per-file OCR + analysis pipeline
            calculator: QuoteCalculator for quote totals
            email_service: Optional EmailService for the "quote ready" email
            max_file_workers: Concurrent files per job
        """
        self._app = app
        self._job_store = job_store
        self._quote_store = quote_store
        self._processor = processor
        self._calculator = calculator
        self._email_service = email_service
        self._max_file_workers = max_file_workers

        # Track active job threads for cleanup
        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info(f"JobService initialized (max_file_workers={max_file_workers})")

    @property
    def job_store(self) -> JobStore:
        return self._job_store

    def submit_job(self, job_id: str, submission: FrozenSubmission) -> str:
        """
        Start processing a quote in the background.

        Returns immediately; poll job_store.get_status(job_id).
        """
        logger.info(
            f"Submitting job {job_id[:8]} for quote {submission.quote_id} "
            f"({submission.file_count} file(s))"
        )

        thread = threading.Thread(
            target=self.run_job,
            args=(job_id, submission),
            name=f"Job-{job_id[:8]}",
            daemon=True
        )

        with self._threads_lock:
            self._active_threads[job_id] = thread

        thread.start()
        return job_id

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """Wait for active job threads; call during application shutdown."""
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active job threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} job threads to complete...")
        for job_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Job thread {job_id[:8]} did not complete in time")

        logger.info("Job service shutdown complete")

    def run_job(self, job_id: str, submission: FrozenSubmission) -> None:
        """
        Job thread body. Also callable directly (tests run it inline).

        Never raises: every failure ends the job as failed.
        """
        set_thread_name(f"Job-{job_id[:8]}")
        job_logger = get_job_logger(job_id)
        store = self._job_store

        with self._app.app_context():
            job_logger.info(f"Job thread starting for quote {submission.quote_id}")
            try:
                # =============================================================
                # STEP 1: Mark running
                # =============================================================
                store.mark_running(job_id)
                self._quote_store.set_status(submission.quote_id, "processing")
                store.log_event(job_id, "start",
                                f"Analyzing {submission.file_count} document(s)", 5)

                # =============================================================
                # STEP 2: OCR + analysis for every file (concurrent)
                # =============================================================
                def on_file_done(processed: ProcessedFile, done: int, total: int) -> None:
                    if processed.error_summary:
                        job_logger.warning(f"{processed.file.file_name}: {processed.error_summary}")
                    self._quote_store.update_file_result(submission.quote_id, processed)
                    store.log_event(
                        job_id,
                        "ocr",
                        self._file_message(processed),
                        10 + int(70 * done / total),
                    )

                processed_files = self._processor.process_all(
                    list(submission.files),
                    max_workers=self._max_file_workers,
                    on_file_done=on_file_done,
                )

                usable = [p for p in processed_files if p.has_pages]
                if not usable:
                    raise CertQuoteError(self._no_pages_message(processed_files))

                # =============================================================
                # STEP 3: Price
                # =============================================================
                file_analyses = [p.file_analysis for p in processed_files if p.file_analysis is not None]
                totals = self._calculator.calculate_quote(
                    file_analyses,
                    submission.source_language,
                    submission.target_language,
                    submission.intended_use,
                )
                result = QuoteResult(quote_id=submission.quote_id, totals=totals, files=file_analyses)
                self._quote_store.save_quote_result(result)
                store.log_event(
                    job_id, "pricing",
                    f"{totals.total_billable_pages:.1f} billable page(s) at "
                    f"${totals.per_page_rate:.2f}/page",
                    90,
                )

                # =============================================================
                # STEP 4: Notify customer (best effort)
                # =============================================================
                self._send_quote_email(job_id, submission, result, job_logger)

                store.end_job(job_id, JobStatus.COMPLETED, result=result.to_dict())
                store.log_event(job_id, "end", "Quote ready", 100)
                job_logger.info(f"Job completed: quote total {totals.quote_total:.2f}")

            except Exception as e:
                job_logger.error(f"Job failed: {e}")
                db.session.rollback()
                message = e.message if isinstance(e, CertQuoteError) else str(e)
                store.end_job(job_id, JobStatus.FAILED, error=message)
                store.log_event(job_id, "end", f"Failed: {message}", 100)
                self._quote_store.mark_quote_failed(submission.quote_id, message)

            finally:
                with self._threads_lock:
                    self._active_threads.pop(job_id, None)
                db.session.remove()
                job_logger.info("Job thread exiting")

    def _send_quote_email(self, job_id: str, submission: FrozenSubmission,
                          result: QuoteResult, job_logger) -> None:
        if self._email_service is None:
            return
        try:
            sent = self._email_service.send_quote_ready(
                submission.email, submission.name, result
            )
        except CertQuoteError as e:
            job_logger.warning(f"Quote email failed: {e}")
            self._job_store.log_event(job_id, "email", f"Email not sent: {e.message}", 95)
            return
        if sent:
            self._job_store.log_event(job_id, "email", f"Quote emailed to {submission.email}", 95)

    @staticmethod
    def _file_message(processed: ProcessedFile) -> str:
        name = processed.file.file_name
        if processed.has_pages:
            return (f"{name}: {processed.ocr.page_count} page(s), "
                    f"{processed.ocr.total_word_count} words "
                    f"(analysis {processed.analysis_status.value})")
        return f"{name}: OCR {processed.ocr_status.value} {processed.ocr_message}".strip()

    @staticmethod
    def _no_pages_message(processed_files: List[ProcessedFile]) -> str:
        if not processed_files:
            return "No files to process"
        details = "; ".join(
            f"{p.file.file_name}: {p.ocr_message or p.ocr_status.value}" for p in processed_files
        )
        return f"No text could be extracted from the uploaded documents ({details})"
