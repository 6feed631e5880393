"""
Quote persistence.

Thin layer over the ``quotes``, ``quote_files``, and ``orders`` tables.
All methods need a Flask app context; job threads push one before calling.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from core.exceptions import QuoteNotFoundError
from logging_config import get_logger
from models.document import ProcessedFile, StoredFile
from models.quote import QuoteResult
from models.records import db, QuoteRecord, QuoteFileRecord
from models.submission import QuoteRequest
from modules.file_naming import format_quote_id, parse_quote_number

logger = get_logger(__name__)


class QuoteStore:
    """Creates quotes, records file results, and saves priced totals."""

    # Two requests can read the same "last id"; the unique key makes the
    # second insert fail and we try the next number.
    MAX_ID_ATTEMPTS = 5

    def next_quote_id(self) -> str:
        """Sequential id after the most recently created quote (CS00001 first)."""
        last = QuoteRecord.query.order_by(QuoteRecord.id.desc()).first()
        return format_quote_id(parse_quote_number(last.quote_id if last else None) + 1)

    def create_quote(self, request: QuoteRequest) -> str:
        """
        Insert a draft quote and assign its id.

        Returns:
            The new quote id (also written to ``request.quote_id``)
        """
        for attempt in range(1, self.MAX_ID_ATTEMPTS + 1):
            quote_id = self.next_quote_id()
            record = QuoteRecord(
                quote_id=quote_id,
                name=request.name,
                email=request.email,
                phone=request.phone or None,
                source_language=request.source_language,
                target_language=request.target_language,
                intended_use=request.intended_use,
                status="draft",
            )
            db.session.add(record)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                logger.warning(f"Quote id {quote_id} taken (attempt {attempt}), retrying")
                continue
            request.quote_id = quote_id
            logger.info(f"Created quote {quote_id} for {request.source_language} -> {request.target_language}")
            return quote_id
        raise RuntimeError("Could not allocate a quote id")

    def get_record(self, quote_id: str) -> QuoteRecord:
        record = QuoteRecord.query.filter_by(quote_id=quote_id).first()
        if record is None:
            raise QuoteNotFoundError(quote_id)
        return record

    def get_quote(self, quote_id: str) -> Dict[str, Any]:
        return self.get_record(quote_id).to_dict()

    def get_request(self, quote_id: str) -> QuoteRequest:
        """Rebuild the customer request, with its recorded files."""
        record = self.get_record(quote_id)
        return QuoteRequest(
            name=record.name,
            email=record.email,
            phone=record.phone or "",
            source_language=record.source_language,
            target_language=record.target_language,
            intended_use=record.intended_use,
            quote_id=record.quote_id,
            files=[
                StoredFile(
                    file_name=f.file_name,
                    storage_path=f.storage_path,
                    mime_type=f.mime_type or "application/octet-stream",
                    size=f.size or 0,
                )
                for f in record.files
            ],
        )

    def get_result(self, quote_id: str) -> Optional[QuoteResult]:
        record = self.get_record(quote_id)
        if not record.result:
            return None
        return QuoteResult.from_dict(record.result)

    def set_status(self, quote_id: str, status: str, error: Optional[str] = None) -> None:
        """Change a quote's status. A paid quote keeps its status."""
        record = self.get_record(quote_id)
        if record.status == "paid" and status != "paid":
            logger.warning(f"Quote {quote_id} is paid; ignoring status change to {status}")
            return
        record.status = status
        if error is not None:
            record.error = error
        db.session.commit()

    def mark_quote_failed(self, quote_id: str, error: str) -> None:
        self.set_status(quote_id, "failed", error=error)
        logger.warning(f"Quote {quote_id} failed: {error}")

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    def _file_row(self, quote_id: str, file_name: str) -> Optional[QuoteFileRecord]:
        return QuoteFileRecord.query.filter_by(quote_id=quote_id, file_name=file_name).first()

    def record_file(self, quote_id: str, stored: StoredFile) -> None:
        """Upsert a file row in the pending state."""
        row = self._file_row(quote_id, stored.file_name)
        if row is None:
            row = QuoteFileRecord(quote_id=quote_id, file_name=stored.file_name)
            db.session.add(row)
        row.storage_path = stored.storage_path
        row.mime_type = stored.mime_type
        row.size = stored.size
        row.ocr_status = "pending"
        row.analysis_status = "pending"
        db.session.commit()

    def update_file_result(self, quote_id: str, processed: ProcessedFile) -> None:
        """Upsert the OCR and analysis outcome for one file."""
        stored = processed.file
        row = self._file_row(quote_id, stored.file_name)
        if row is None:
            row = QuoteFileRecord(quote_id=quote_id, file_name=stored.file_name,
                                  storage_path=stored.storage_path)
            db.session.add(row)

        row.mime_type = stored.mime_type
        row.ocr_status = processed.ocr_status.value
        row.ocr_message = processed.ocr_message or None
        row.ocr_provider = processed.ocr.provider or None
        row.page_count = processed.ocr.page_count
        row.words_per_page = list(processed.ocr.words_per_page)
        row.total_word_count = processed.ocr.total_word_count
        row.detected_language = processed.ocr.detected_language

        row.analysis_status = processed.analysis_status.value
        row.analysis_message = processed.analysis_message or None
        analysis = processed.analysis
        if analysis is not None:
            row.languages_all = list(analysis.languages_all)
            row.page_complexity = analysis.page_field("complexity")
            row.page_doc_types = analysis.page_field("document_type")
            row.page_names = analysis.page_field("names")
            row.page_languages = analysis.page_field("languages")
            row.page_confidence = analysis.page_field("confidence")
        db.session.commit()

    def list_files(self, quote_id: str) -> List[Dict[str, Any]]:
        """File rows for a quote, ordered by file name."""
        rows = (QuoteFileRecord.query
                .filter_by(quote_id=quote_id)
                .order_by(QuoteFileRecord.file_name)
                .all())
        return [r.to_dict() for r in rows]

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def save_quote_result(self, result: QuoteResult) -> None:
        """Store totals and mark the quote payable. A paid quote keeps the price it was paid at."""
        record = self.get_record(result.quote_id)
        if record.status == "paid":
            logger.warning(f"Quote {result.quote_id} is paid; new result not saved")
            return
        totals = result.totals
        record.per_page_rate = totals.per_page_rate
        record.total_billable_pages = totals.total_billable_pages
        record.cert_type = totals.cert_type
        record.cert_price = totals.cert_price
        record.quote_total = totals.quote_total
        record.result = result.to_dict()
        record.status = "quoted"
        record.error = None
        db.session.commit()
        logger.info(f"Quote {result.quote_id} saved: total={totals.quote_total:.2f}")
