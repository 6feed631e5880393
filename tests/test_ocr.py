"""
Unit tests for the OCR adapters.

Vision and Adobe clients get a MagicMock session, so each test scripts
the vendor responses in call order.
"""

import io
import json
import zipfile

import pytest
from unittest.mock import MagicMock, patch

from core.exceptions import ConfigurationError, OCRError, VendorTimeoutError
from modules.ocr import (
    AdobeExtractClient,
    PdfTextExtractor,
    VisionOCRClient,
    build_ocr_client,
    count_words,
)


# Fixtures

def response(data=None, status=200, headers=None, content=b""):
    """requests.Response stand-in."""
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.json.return_value = data if data is not None else {}
    resp.text = json.dumps(data) if data is not None else ""
    resp.headers = headers or {}
    resp.content = content
    return resp


def annotation(words, language="es"):
    """One-page Vision fullTextAnnotation with ``words`` words."""
    return {
        "pages": [{
            "property": {"detectedLanguages": [{"languageCode": language}]},
            "blocks": [{"paragraphs": [{"words": [{"symbols": []}] * words}]}],
        }]
    }


def scripted_session(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return session


class TestVision:
    """Test Google Vision REST parsing and batching."""

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            VisionOCRClient("")
        assert exc_info.value.setting == "GOOGLE_API_KEY"

    def test_image(self):
        session = scripted_session(response({"responses": [{"fullTextAnnotation": annotation(42, "ja")}]}))
        client = VisionOCRClient("key", session=session)

        result = client.extract(b"\x89PNG", "image/png")

        assert result.words_per_page == [42]
        assert result.detected_language == "ja"
        assert result.provider == "vision"
        url = session.request.call_args[0][1]
        assert url.endswith("/images:annotate")
        assert session.request.call_args[1]["params"] == {"key": "key"}

    def test_pdf_is_requested_five_pages_at_a_time(self):
        first = response({"responses": [{
            "totalPages": 7,
            "responses": [{"fullTextAnnotation": annotation(n)} for n in (10, 20, 30, 40, 50)],
        }]})
        second = response({"responses": [{
            "totalPages": 7,
            "responses": [{"fullTextAnnotation": annotation(60)}, {}],
        }]})
        session = scripted_session(first, second)
        client = VisionOCRClient("key", session=session)

        result = client.extract(b"%PDF", "application/pdf")

        assert result.words_per_page == [10, 20, 30, 40, 50, 60, 0]
        assert result.page_count == 7
        assert result.total_word_count == 210
        assert result.detected_language == "es"
        bodies = [c[1]["json"] for c in session.request.call_args_list]
        assert bodies[0]["requests"][0]["pages"] == [1, 2, 3, 4, 5]
        assert bodies[1]["requests"][0]["pages"] == [6, 7]

    def test_no_text(self):
        session = scripted_session(response({"responses": [{}]}))
        client = VisionOCRClient("key", session=session)

        result = client.extract(b"\x89PNG", "image/png")

        assert result.page_count == 0
        assert result.detected_language == "unknown"

    def test_vision_error_in_body(self):
        session = scripted_session(response({"responses": [{"error": {"message": "Bad image data"}}]}))
        client = VisionOCRClient("key", session=session)

        with pytest.raises(OCRError) as exc_info:
            client.extract(b"\x89PNG", "image/png")
        assert "Bad image data" in exc_info.value.message

    def test_http_error(self):
        session = scripted_session(response({"error": "denied"}, status=403))
        client = VisionOCRClient("key", session=session)

        with pytest.raises(OCRError) as exc_info:
            client.extract(b"\x89PNG", "image/png")
        assert exc_info.value.http_status == 403

    def test_supported_types(self):
        client = VisionOCRClient("key", session=MagicMock())
        assert client.supports("application/pdf")
        assert client.supports("image/tiff")
        assert client.supports("image/jpeg")
        assert not client.supports("text/plain")


class TestAdobe:
    """Test Adobe PDF Services parsing and the REST flow."""

    STRUCTURED = {
        "elements": [
            {"Text": "Acta de nacimiento", "Page": 0},
            {"Text": "Nombre del registrado", "Page": 0},
            {"Text": "Firma", "Page": 2},
        ]
    }

    def test_words_per_page_zero_based_page_key(self):
        assert AdobeExtractClient.words_per_page(self.STRUCTURED) == [6, 0, 1]

    def test_words_per_page_one_based_keys(self):
        data = [{"text": "one two", "pageNumber": 2}, {"text": "three"}]
        assert AdobeExtractClient.words_per_page(data) == [1, 2]

    def test_words_per_page_empty(self):
        assert AdobeExtractClient.words_per_page({"elements": []}) == []

    def test_words_from_zip(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("structuredData.json", json.dumps(self.STRUCTURED))
        assert AdobeExtractClient.words_per_page_from_zip(buffer.getvalue()) == [6, 0, 1]

    def test_bad_zip(self):
        with pytest.raises(OCRError):
            AdobeExtractClient.words_per_page_from_zip(b"not a zip")

    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            AdobeExtractClient("id", "")

    def test_extract_flow(self):
        session = scripted_session(
            response({"access_token": "tok"}),
            response({"uploadUri": "https://upload", "assetID": "asset-1"}),
            response(),
            response(status=201, headers={"location": "https://status/1"}),
            response({"status": "in progress"}),
            response({"status": "done", "content": {"downloadUri": "https://download"}}),
            response(self.STRUCTURED),
        )
        client = AdobeExtractClient("id", "secret", poll_interval=0, session=session)

        result = client.extract(b"%PDF")

        assert result.words_per_page == [6, 0, 1]
        assert result.provider == "adobe"
        methods = [c[0][0] for c in session.request.call_args_list]
        assert methods == ["POST", "POST", "PUT", "POST", "GET", "GET", "GET"]

    def test_extract_failed_status(self):
        session = scripted_session(
            response({"access_token": "tok"}),
            response({"uploadUri": "https://upload", "assetID": "asset-1"}),
            response(),
            response(status=201, headers={"location": "https://status/1"}),
            response({"status": "failed", "error": {"message": "Corrupt PDF"}}),
        )
        client = AdobeExtractClient("id", "secret", poll_interval=0, session=session)

        with pytest.raises(OCRError) as exc_info:
            client.extract(b"%PDF")
        assert "Corrupt PDF" in exc_info.value.message

    def test_extract_times_out(self):
        session = MagicMock()
        session.request.side_effect = [
            response({"access_token": "tok"}),
            response({"uploadUri": "https://upload", "assetID": "asset-1"}),
            response(),
            response(status=201, headers={"location": "https://status/1"}),
        ] + [response({"status": "in progress"})] * 5
        client = AdobeExtractClient("id", "secret", poll_timeout=0, poll_interval=0, session=session)

        with pytest.raises(VendorTimeoutError):
            client.extract(b"%PDF")


class TestPdfText:
    """Test the local pypdf text layer extractor."""

    def test_counts_words_per_page(self):
        pages = [MagicMock(), MagicMock()]
        pages[0].extract_text.return_value = "Certificate of birth issued in Madrid"
        pages[1].extract_text.return_value = None
        with patch("modules.ocr.PdfReader") as reader_cls:
            reader_cls.return_value.pages = pages
            result = PdfTextExtractor().extract(b"%PDF")

        assert result.words_per_page == [6, 0]
        assert result.provider == "pdf_text"

    def test_unreadable_pdf(self):
        with patch("modules.ocr.PdfReader", side_effect=ValueError("EOF marker not found")):
            with pytest.raises(OCRError):
                PdfTextExtractor().extract(b"garbage")


class TestFactory:
    """Test provider selection."""

    def test_vision(self):
        client = build_ocr_client({"OCR_PROVIDER": "vision", "GOOGLE_API_KEY": "key"})
        assert isinstance(client, VisionOCRClient)
        client.close()

    def test_adobe(self):
        client = build_ocr_client({"OCR_PROVIDER": "Adobe", "ADOBE_PDF_CLIENT_ID": "id",
                                   "ADOBE_PDF_CLIENT_SECRET": "secret"})
        assert isinstance(client, AdobeExtractClient)
        client.close()

    def test_pdf_text(self):
        assert isinstance(build_ocr_client({"OCR_PROVIDER": "pdf_text"}), PdfTextExtractor)

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            build_ocr_client({"OCR_PROVIDER": "tesseract"})

    def test_vision_without_key(self):
        with pytest.raises(ConfigurationError):
            build_ocr_client({"OCR_PROVIDER": "vision"})

    def test_count_words(self):
        assert count_words("  one two\nthree ") == 3
        assert count_words("") == 0
