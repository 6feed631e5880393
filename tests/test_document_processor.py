"""
Unit tests for the per-file document pipeline.

OCR clients and analyzers are MagicMocks built by the factories, so no
vendor is contacted.
"""

import httpx
import pytest
from unittest.mock import MagicMock

from core.exceptions import AnalysisError, ConfigurationError, OCRError, StorageError
from models.document import DocumentAnalysis, OCRResult, PageInsight, StepStatus, StoredFile
from modules.document_analysis import GeminiAnalyzer
from modules.document_processor import DocumentProcessor


# Fixtures

@pytest.fixture
def stored_pdf():
    return StoredFile(file_name="acta.pdf", storage_path="CS00001/acta.pdf",
                      mime_type="application/pdf", size=2048)


@pytest.fixture
def ocr_client():
    client = MagicMock()
    client.vendor = "vision"
    client.supports.return_value = True
    client.extract.return_value = OCRResult.from_page_counts([200, 100], "es", "vision")
    return client


@pytest.fixture
def analyzer():
    analyzer = MagicMock()
    analyzer.too_large.return_value = False
    analyzer.analyze.return_value = DocumentAnalysis(
        languages_all=["Spanish"],
        pages={1: PageInsight(complexity="Easy"), 2: PageInsight(complexity="Hard")},
        model="gemini-2.5-flash",
    )
    return analyzer


@pytest.fixture
def processor(calculator, ocr_client, analyzer):
    return DocumentProcessor(
        fetch_bytes=lambda path: b"%PDF-1.4 fake",
        ocr_factory=lambda: ocr_client,
        analyzer_factory=lambda: analyzer,
        calculator=calculator,
    )


class TestProcessSingleFile:
    """Test process() stage outcomes."""

    def test_happy_path_prices_with_page_complexities(self, processor, stored_pdf, ocr_client):
        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.COMPLETED
        assert result.analysis_status is StepStatus.COMPLETED
        assert result.has_pages
        pages = result.file_analysis.pages
        assert [p.complexity for p in pages] == ["Easy", "Hard"]
        assert pages[0].billable_pages == pytest.approx(0.9)
        assert pages[1].billable_pages == pytest.approx(0.5)
        ocr_client.close.assert_called_once()

    def test_missing_analysis_defaults_to_medium(self, processor, stored_pdf, analyzer):
        analyzer.analyze.side_effect = AnalysisError("bad gateway", "gemini", 502)

        result = processor.process(stored_pdf)

        assert result.analysis_status is StepStatus.FAILED
        assert result.analysis_message == "bad gateway"
        assert [p.complexity for p in result.file_analysis.pages] == ["Medium", "Medium"]

    def test_analysis_not_configured_is_skipped(self, processor, stored_pdf, analyzer):
        analyzer.analyze.side_effect = ConfigurationError("GEMINI_API_KEY", "Gemini")

        result = processor.process(stored_pdf)

        assert result.analysis_status is StepStatus.SKIPPED
        assert "GEMINI_API_KEY" in result.analysis_message

    def test_large_file_skips_analysis(self, processor, stored_pdf, analyzer):
        analyzer.too_large.return_value = True

        result = processor.process(stored_pdf)

        assert result.analysis_status is StepStatus.SKIPPED
        assert "too large" in result.analysis_message
        analyzer.analyze.assert_not_called()

    def test_ocr_failure_is_recorded(self, processor, stored_pdf, ocr_client, analyzer):
        ocr_client.extract.side_effect = OCRError("Vision returned 403", "vision", 403)

        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.FAILED
        assert result.ocr_message == "Vision returned 403"
        assert result.analysis_status is StepStatus.SKIPPED
        assert not result.has_pages
        assert result.file_analysis.pages == []
        analyzer.analyze.assert_not_called()
        assert "OCR: Vision returned 403" in result.error_summary

    def test_ocr_not_configured_is_skipped(self, processor, stored_pdf, ocr_client):
        ocr_client.extract.side_effect = ConfigurationError("GOOGLE_API_KEY", "Google Vision")

        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.SKIPPED

    def test_unsupported_type_skips_ocr(self, processor, ocr_client):
        ocr_client.supports.return_value = False
        stored = StoredFile(file_name="scan.tiff", storage_path="CS00001/scan.tiff",
                            mime_type="image/tiff")

        result = processor.process(stored)

        assert result.ocr_status is StepStatus.SKIPPED
        assert "image/tiff" in result.ocr_message
        ocr_client.extract.assert_not_called()

    def test_octet_stream_mime_is_guessed_from_name(self, processor, ocr_client):
        stored = StoredFile(file_name="photo.jpg", storage_path="CS00001/photo.jpg")

        processor.process(stored)

        ocr_client.supports.assert_called_once_with("image/jpeg")

    def test_zero_pages_is_completed_without_pages(self, processor, stored_pdf, ocr_client):
        ocr_client.extract.return_value = OCRResult.from_page_counts([], "unknown", "vision")

        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.COMPLETED
        assert result.ocr_message == "No text detected in document"
        assert not result.has_pages

    def test_download_failure(self, calculator, ocr_client, analyzer, stored_pdf):
        def fetch(path):
            raise StorageError("Object not found", path)

        processor = DocumentProcessor(fetch, lambda: ocr_client, lambda: analyzer, calculator)
        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.FAILED
        assert result.ocr_message.startswith("Download failed")
        assert result.file_analysis.filename == "acta.pdf"
        ocr_client.extract.assert_not_called()


    def test_unexpected_analysis_error_fails_only_analysis(self, processor, stored_pdf, analyzer):
        analyzer.analyze.side_effect = RuntimeError("boom")

        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.COMPLETED
        assert result.analysis_status is StepStatus.FAILED
        assert result.analysis_message == "Unexpected error: boom"
        assert [p.complexity for p in result.file_analysis.pages] == ["Medium", "Medium"]

    def test_unexpected_ocr_error_is_recorded(self, processor, stored_pdf, ocr_client):
        ocr_client.extract.side_effect = ValueError("bad page tree")

        result = processor.process(stored_pdf)

        assert result.ocr_status is StepStatus.FAILED
        assert result.ocr_message == "Unexpected error: bad page tree"
        assert result.analysis_status is StepStatus.SKIPPED
        assert result.file_analysis.pages == []
        ocr_client.close.assert_called_once()

    def test_pages_missing_from_analysis_are_medium(self, processor, stored_pdf, analyzer):
        analyzer.analyze.return_value = DocumentAnalysis(pages={2: PageInsight(complexity="Hard")})

        result = processor.process(stored_pdf)

        assert [p.complexity for p in result.file_analysis.pages] == ["Medium", "Hard"]


class TestProcessAll:
    """Test concurrent batch processing."""

    def test_results_in_input_order_with_callbacks(self, processor):
        files = [
            StoredFile(file_name=f"doc{i}.pdf", storage_path=f"CS00001/doc{i}.pdf",
                       mime_type="application/pdf")
            for i in range(3)
        ]
        calls = []

        results = processor.process_all(
            files, max_workers=2,
            on_file_done=lambda processed, done, total: calls.append((done, total)),
        )

        assert [r.file.file_name for r in results] == ["doc0.pdf", "doc1.pdf", "doc2.pdf"]
        assert sorted(calls) == [(1, 3), (2, 3), (3, 3)]

    def test_empty_batch(self, processor):
        assert processor.process_all([]) == []

    def test_gemini_transport_error_does_not_abort_batch(self, calculator, ocr_client):
        genai_client = MagicMock()
        genai_client.models.generate_content.side_effect = httpx.ConnectError("timed out")
        processor = DocumentProcessor(
            fetch_bytes=lambda path: b"%PDF-1.4 fake",
            ocr_factory=lambda: ocr_client,
            analyzer_factory=lambda: GeminiAnalyzer(api_key="", client=genai_client),
            calculator=calculator,
        )
        files = [
            StoredFile(file_name=f"scan{i}.pdf", storage_path=f"CS00001/scan{i}.pdf",
                       mime_type="application/pdf")
            for i in range(2)
        ]

        results = processor.process_all(files, max_workers=2)

        assert len(results) == 2
        for result in results:
            assert result.ocr_status is StepStatus.COMPLETED
            assert result.analysis_status is StepStatus.FAILED
            assert "timed out" in result.analysis_message
            assert result.file_analysis.billable_pages > 0
