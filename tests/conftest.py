"""
Shared fixtures.

The app is built with TestingConfig: in-memory SQLite shared across
threads, no vendor credentials. Vendor-facing services are replaced with
MagicMocks per test where a call would otherwise leave the process.
"""

import pytest
from unittest.mock import MagicMock

from app import create_app
from models.document import OCRResult, ProcessedFile, StepStatus, StoredFile
from models.quote import FileAnalysis
from models.records import db
from models.submission import QuoteRequest
from modules.pricing import QuoteCalculator


@pytest.fixture
def app():
    """Flask app with a fresh in-memory database."""
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def calculator():
    return QuoteCalculator()


@pytest.fixture
def quote_request():
    """A valid customer request (no files)."""
    return QuoteRequest(
        name="Ana Lopez",
        email="ana@example.com",
        phone="555-0100",
        source_language="Spanish",
        target_language="English",
        intended_use="USCIS",
    )


@pytest.fixture
def mock_storage():
    """StorageService stand-in: uploads return ``<quote_id>/<name>``."""
    storage = MagicMock()
    storage.is_configured = True
    storage.upload.side_effect = lambda quote_id, name, data, content_type=None: f"{quote_id}/{name}"
    storage.list_quote_objects.return_value = []
    return storage


def make_processed(calculator, name="doc.pdf", quote_id="CS00001", words=(200,),
                   ocr_status=StepStatus.COMPLETED, ocr_message=""):
    """ProcessedFile with OCR counts and Medium complexity pricing."""
    stored = StoredFile(file_name=name, storage_path=f"{quote_id}/{name}",
                        mime_type="application/pdf", size=1234)
    processed = ProcessedFile(file=stored, ocr_status=ocr_status, ocr_message=ocr_message)
    if ocr_status is StepStatus.COMPLETED:
        processed.ocr = OCRResult.from_page_counts(list(words), "es", "vision")
        processed.analysis_status = StepStatus.SKIPPED
        processed.file_analysis = calculator.build_file_analysis(
            stored.storage_path, name, list(words)
        )
    else:
        processed.analysis_status = StepStatus.SKIPPED
        processed.file_analysis = FileAnalysis(file_id=stored.storage_path, filename=name)
    return processed


@pytest.fixture
def processed_factory(calculator):
    """Build ProcessedFile results priced with the default calculator."""
    def factory(**kwargs):
        return make_processed(calculator, **kwargs)
    return factory
