"""
Quote intake: validate customer input, store files, start processing.

Both the HTML form (routes/upload.py) and the JSON API (routes/api.py)
go through here, so the two surfaces apply the same rules.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Set, Tuple

import bleach

from core.exceptions import ValidationError
from logging_config import get_logger
from models.document import StoredFile
from models.submission import QuoteRequest
from modules.file_naming import file_name_from_path, guess_mime, unique_file_name
from modules.languages import is_supported
from modules.pricing import QuoteCalculator


# Module logger
logger = get_logger(__name__)

# Constants
ALLOWED_EXTENSIONS = {"pdf", "png", "jpg", "jpeg", "tif", "tiff"}
MAX_FILENAME_LENGTH = 255
MAX_NAME_LENGTH = 200
MAX_EMAIL_LENGTH = 254
MAX_PHONE_LENGTH = 50
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Quotes in these states cannot be (re)processed
LOCKED_STATUSES = ("paid", "processing")


class IncomingFile(NamedTuple):
    """A file received from the browser, before it is stored."""
    file_name: str
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text to prevent XSS and injection attacks.

    Args:
        text: Raw input text
        max_length: Optional maximum length to enforce

    Returns:
        Sanitized text safe for storage and display
    """
    if not text:
        return ""

    text = bleach.clean(str(text).strip(), tags=[], strip=True)

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def decode_base64_files(items: Iterable[Mapping[str, Any]]) -> List[IncomingFile]:
    """
    Decode the JSON API's file list.

    Each item is ``{fileName, fileType, fileBase64}``; items missing any of
    the three are ignored.

    Raises:
        ValidationError: A fileBase64 value is not valid base64
    """
    files = []
    for item in items:
        name = item.get("fileName") or item.get("file_name")
        content_type = item.get("fileType") or item.get("file_type")
        encoded = item.get("fileBase64") or item.get("file_base64")
        if not name or not content_type or not encoded:
            continue
        # Browsers may send a data: URL
        if isinstance(encoded, str) and encoded.startswith("data:") and "," in encoded:
            encoded = encoded.split(",", 1)[1]
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError({"files": f"{name} is not valid base64"})
        files.append(IncomingFile(file_name=str(name), data=data, content_type=str(content_type)))
    return files


class IntakeService:
    """
    Creates quotes from customer input and starts their processing jobs.

    Args:
        quote_store: QuoteStore
        storage: StorageService
        job_store: JobStore
        job_service: JobService
    """

    def __init__(self, quote_store, storage, job_store, job_service) -> None:
        self.quote_store = quote_store
        self.storage = storage
        self.job_store = job_store
        self.job_service = job_service

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_request(self, data: Mapping[str, Any]) -> QuoteRequest:
        """
        Build a QuoteRequest from form fields or a JSON body.

        Raises:
            ValidationError: With one message per invalid field
        """
        request = QuoteRequest.from_dict(dict(data))
        request.name = sanitize_text(request.name, MAX_NAME_LENGTH)
        request.email = sanitize_text(request.email, MAX_EMAIL_LENGTH)
        request.phone = sanitize_text(request.phone, MAX_PHONE_LENGTH)
        request.source_language = sanitize_text(request.source_language)
        request.target_language = sanitize_text(request.target_language)
        request.intended_use = sanitize_text(request.intended_use)
        request.quote_id = ""

        errors: Dict[str, str] = {}
        if not request.name:
            errors["name"] = "Full name is required."
        if not request.email:
            errors["email"] = "Email is required."
        elif not EMAIL_PATTERN.match(request.email):
            errors["email"] = "Email is invalid."
        if not request.source_language:
            errors["source_language"] = "Source language is required."
        elif not is_supported(request.source_language):
            errors["source_language"] = f"Unsupported source language: {request.source_language}"
        if not request.target_language:
            errors["target_language"] = "Target language is required."
        elif not is_supported(request.target_language):
            errors["target_language"] = f"Unsupported target language: {request.target_language}"
        if not request.intended_use:
            errors["intended_use"] = "Intended use is required."
        elif request.intended_use not in QuoteCalculator.CERTIFICATION_MAP:
            errors["intended_use"] = f"Unsupported intended use: {request.intended_use}"

        if errors:
            logger.info(f"Quote request rejected: {sorted(errors)}")
            raise ValidationError(errors)
        return request

    def validate_files(self, files: Iterable[IncomingFile]) -> List[IncomingFile]:
        """
        Drop duplicates (same name and size) and check types.

        Raises:
            ValidationError: No files, or a file with a disallowed type
        """
        seen = set()
        accepted = []
        for f in files:
            if not f.file_name:
                continue
            key = f"{f.file_name}:{f.size}"
            if key in seen:
                logger.debug(f"Duplicate file ignored: {f.file_name}")
                continue
            seen.add(key)
            if not allowed_file(f.file_name):
                raise ValidationError({
                    "files": f"Unsupported file type: {f.file_name}. "
                             "Please upload PDF, PNG, JPG, or TIFF files."
                })
            if len(f.file_name) > MAX_FILENAME_LENGTH:
                raise ValidationError({
                    "files": f"Filename too long. Maximum {MAX_FILENAME_LENGTH} characters."
                })
            accepted.append(f)

        if not accepted:
            raise ValidationError({"files": "At least one file is required."})
        return accepted

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create_quote(self, request: QuoteRequest) -> str:
        return self.quote_store.create_quote(request)

    def store_files(self, quote_id: str, files: Iterable[IncomingFile]) -> List[StoredFile]:
        """
        Upload files to ``<quote_id>/<sanitized name>`` and record them.

        Different files that sanitize to the same name are numbered
        (``scan.pdf``, ``scan-2.pdf``) so none overwrites another.

        Raises:
            StorageError: An upload failed (files before it stay stored)
        """
        stored = []
        taken: Set[str] = set()
        for f in files:
            content_type = f.content_type or guess_mime(f.file_name)
            name = unique_file_name(f.file_name, taken)
            taken.add(name)
            path = self.storage.upload(quote_id, name, f.data, content_type)
            stored_file = StoredFile(
                file_name=file_name_from_path(path),
                storage_path=path,
                mime_type=content_type,
                size=f.size,
            )
            self.quote_store.record_file(quote_id, stored_file)
            stored.append(stored_file)
        logger.info(f"Stored {len(stored)} file(s) for quote {quote_id}")
        return stored

    def start_processing(self, quote_id: str) -> str:
        """
        Start the processing job for a stored quote.

        Files come from the ``quote_files`` rows; when there are none (the
        browser uploaded straight to storage with signed URLs) the storage
        prefix ``<quote_id>/`` is listed and recorded instead.

        Returns:
            Job id

        Raises:
            QuoteNotFoundError: Unknown quote
            ValidationError: The quote is paid or already processing, or
                no files were found for it
        """
        status = self.quote_store.get_quote(quote_id)["status"]
        if status in LOCKED_STATUSES:
            raise ValidationError({"quote": f"Quote {quote_id} is {status} and cannot be processed again"})

        request = self.quote_store.get_request(quote_id)

        if not request.files:
            for obj in self.storage.list_quote_objects(quote_id):
                stored_file = StoredFile.from_dict(obj)
                self.quote_store.record_file(quote_id, stored_file)
                request.files.append(stored_file)

        if not request.files:
            raise ValidationError({"files": f"No files uploaded for quote {quote_id}"})

        self.quote_store.set_status(quote_id, "processing")
        job_id = self.job_store.init_job(quote_id)
        self.job_store.log_event(job_id, "upload", f"Received {len(request.files)} file(s)", 5)
        self.job_service.submit_job(job_id, request.freeze())
        return job_id

    def submit(self, data: Mapping[str, Any], files: Iterable[IncomingFile]) -> Tuple[str, str]:
        """
        Full intake: validate, create the quote, store files, start the job.

        Returns:
            (quote_id, job_id)
        """
        request = self.validate_request(data)
        accepted = self.validate_files(files)
        quote_id = self.create_quote(request)
        self.store_files(quote_id, accepted)
        job_id = self.start_processing(quote_id)
        logger.info(f"Quote {quote_id} submitted, job {job_id[:8]}")
        return quote_id, job_id
