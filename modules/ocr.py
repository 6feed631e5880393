"""
OCR adapters.

Every provider turns a document into an OCRResult (page count, words per
page, detected language). The provider is picked by OCR_PROVIDER:

    vision    Google Cloud Vision REST, DOCUMENT_TEXT_DETECTION (PDF, TIFF, images)
    adobe     Adobe PDF Services Extract API (PDF only)
    pdf_text  Local text layer via pypdf, no vendor call (PDF only)

Clients are cheap to build and hold a requests.Session, so the document
processor builds one per file worker (see build_ocr_client).
"""

from __future__ import annotations

import base64
import io
import json
import zipfile
from typing import Any, Dict, List, Mapping, Optional

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from core.exceptions import ConfigurationError, OCRError
from core.vendor_client import VendorHTTPClient
from logging_config import get_logger
from models.document import OCRResult

logger = get_logger(__name__)

PDF_MIME = "application/pdf"
TIFF_MIMES = ("image/tiff", "image/tif")
IMAGE_MIMES = ("image/png", "image/jpeg", "image/jpg", "image/gif", "image/bmp", "image/webp")


def count_words(text: str) -> int:
    """Whitespace-separated word count."""
    return len(text.split()) if text else 0


# =============================================================================
# GOOGLE VISION
# =============================================================================

class VisionOCRClient(VendorHTTPClient):
    """
    Google Cloud Vision with an API key.

    Images go to ``images:annotate`` in one call. PDF and TIFF go to
    ``files:annotate``, which accepts at most 5 pages per request, so pages
    are requested in batches until ``totalPages`` is covered.
    """

    vendor = "vision"
    error_class = OCRError

    BASE_URL = "https://vision.googleapis.com/v1"
    FEATURE = "DOCUMENT_TEXT_DETECTION"
    PAGES_PER_REQUEST = 5
    MAX_PAGES = 200

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        if not api_key:
            raise ConfigurationError("GOOGLE_API_KEY", "Google Vision OCR")
        self.api_key = api_key

    def supports(self, mime_type: str) -> bool:
        return mime_type == PDF_MIME or mime_type in TIFF_MIMES or mime_type in IMAGE_MIMES

    def extract(self, content: bytes, mime_type: str) -> OCRResult:
        if mime_type == PDF_MIME or mime_type in TIFF_MIMES:
            annotations = self._annotate_file(content, mime_type)
        else:
            annotations = [self._annotate_image(content)]

        if not any(annotations):
            logger.info("Vision OCR: no text detected in document")
            return OCRResult.from_page_counts([], "unknown", self.vendor)

        counts: List[int] = []
        language = "unknown"
        for annotation in annotations:
            if not annotation:
                # Blank page: Vision omits fullTextAnnotation
                counts.append(0)
                continue
            pages = annotation.get("pages") or []
            if language == "unknown" and pages:
                language = self.detect_language(annotation)
            counts.extend(self.words_per_page(annotation) or [0])

        result = OCRResult.from_page_counts(counts, language, self.vendor)
        logger.info(
            f"Vision OCR: {result.page_count} page(s), {result.total_word_count} words, "
            f"language={result.detected_language}"
        )
        return result

    def _annotate_image(self, content: bytes) -> Dict[str, Any]:
        body = {
            "requests": [{
                "image": {"content": base64.b64encode(content).decode("ascii")},
                "features": [{"type": self.FEATURE}],
            }]
        }
        data = self.post_json(f"{self.BASE_URL}/images:annotate", params={"key": self.api_key}, json=body)
        response = (data.get("responses") or [{}])[0]
        self._check_error(response)
        return response.get("fullTextAnnotation") or {}

    def _annotate_file(self, content: bytes, mime_type: str) -> List[Dict[str, Any]]:
        encoded = base64.b64encode(content).decode("ascii")
        annotations: List[Dict[str, Any]] = []
        first_page = 1
        total_pages: Optional[int] = None

        while first_page <= min(total_pages or self.MAX_PAGES, self.MAX_PAGES):
            last_page = first_page + self.PAGES_PER_REQUEST - 1
            if total_pages:
                last_page = min(last_page, total_pages)
            body = {
                "requests": [{
                    "inputConfig": {"content": encoded, "mimeType": mime_type},
                    "features": [{"type": self.FEATURE}],
                    "pages": list(range(first_page, last_page + 1)),
                }]
            }
            data = self.post_json(f"{self.BASE_URL}/files:annotate", params={"key": self.api_key}, json=body)
            file_response = (data.get("responses") or [{}])[0]
            self._check_error(file_response)
            total_pages = int(file_response.get("totalPages") or 0)

            page_responses = file_response.get("responses") or []
            for page_response in page_responses:
                self._check_error(page_response)
                annotations.append(page_response.get("fullTextAnnotation") or {})

            logger.debug(f"Vision files:annotate pages {first_page}-{last_page} of {total_pages}")
            if not page_responses or total_pages == 0:
                break
            first_page = last_page + 1

        return annotations

    def _check_error(self, response: Mapping[str, Any]) -> None:
        error = response.get("error")
        if error:
            raise OCRError(
                f"Vision error: {error.get('message', 'unknown error')}",
                self.vendor,
                body=json.dumps(error),
            )

    @staticmethod
    def words_per_page(annotation: Mapping[str, Any]) -> List[int]:
        """Words per page: count of ``words`` across blocks and paragraphs."""
        counts = []
        for page in annotation.get("pages") or []:
            total = 0
            for block in page.get("blocks") or []:
                for paragraph in block.get("paragraphs") or []:
                    total += len(paragraph.get("words") or [])
            counts.append(total)
        return counts

    @staticmethod
    def detect_language(annotation: Mapping[str, Any]) -> str:
        """First detected language code of the first page, else 'unknown'."""
        pages = annotation.get("pages") or []
        if not pages:
            return "unknown"
        languages = (pages[0].get("property") or {}).get("detectedLanguages") or []
        if languages:
            return languages[0].get("languageCode") or "unknown"
        return "unknown"


# =============================================================================
# ADOBE PDF SERVICES
# =============================================================================

class AdobeExtractClient(VendorHTTPClient):
    """
    Adobe PDF Services Extract API over REST.

    Flow: token -> create asset -> PUT bytes -> start extractpdf ->
    poll the job location until "done" -> download the structured JSON.
    """

    vendor = "adobe"
    error_class = OCRError

    BASE_URL = "https://pdf-services.adobe.io"

    # Keys Adobe output may carry the page on; "Page" is 0-based
    ONE_BASED_PAGE_KEYS = ("pageNumber", "PageNumber", "page_index", "pageIndex")

    def __init__(self, client_id: str, client_secret: str,
                 poll_timeout: float = 180, poll_interval: float = 2.0, **kwargs):
        super().__init__(**kwargs)
        if not client_id:
            raise ConfigurationError("ADOBE_PDF_CLIENT_ID", "Adobe PDF Services")
        if not client_secret:
            raise ConfigurationError("ADOBE_PDF_CLIENT_SECRET", "Adobe PDF Services")
        self.client_id = client_id
        self.client_secret = client_secret
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval

    def supports(self, mime_type: str) -> bool:
        return mime_type == PDF_MIME

    def _access_token(self) -> str:
        data = self.post_json(
            f"{self.BASE_URL}/token",
            data={"client_id": self.client_id, "client_secret": self.client_secret},
        )
        token = data.get("access_token")
        if not token:
            raise OCRError("Adobe token response had no access_token", self.vendor)
        return token

    def extract(self, content: bytes, mime_type: str = PDF_MIME) -> OCRResult:
        headers = {"X-API-Key": self.client_id, "Authorization": f"Bearer {self._access_token()}"}

        asset = self.post_json(f"{self.BASE_URL}/assets", headers=headers, json={"mediaType": PDF_MIME})
        upload_uri, asset_id = asset.get("uploadUri"), asset.get("assetID")
        if not upload_uri or not asset_id:
            raise OCRError("Adobe asset response missing uploadUri/assetID", self.vendor)
        self.request("PUT", upload_uri, data=content, headers={"Content-Type": PDF_MIME})

        started = self.request(
            "POST",
            f"{self.BASE_URL}/operation/extractpdf",
            headers=headers,
            json={"assetID": asset_id, "elementsToExtract": ["text"]},
        )
        location = started.headers.get("location") or started.headers.get("Location")
        if not location:
            raise OCRError("Adobe extract response had no job location", self.vendor)

        status = self.wait_for(
            lambda: self.get_json(location, headers=headers),
            lambda s: s.get("status") in ("done", "failed"),
            timeout_seconds=self.poll_timeout,
            polling_interval_sec=self.poll_interval,
            operation="extractpdf",
        )
        if status.get("status") == "failed":
            error = status.get("error") or {}
            raise OCRError(f"Adobe extract failed: {error.get('message', 'unknown error')}",
                           self.vendor, body=json.dumps(error))

        if (status.get("content") or {}).get("downloadUri"):
            structured = self.get_json(status["content"]["downloadUri"])
            counts = self.words_per_page(structured)
        elif (status.get("resource") or {}).get("downloadUri"):
            archive = self.request("GET", status["resource"]["downloadUri"]).content
            counts = self.words_per_page_from_zip(archive)
        else:
            raise OCRError("Adobe extract finished without a download link", self.vendor)

        result = OCRResult.from_page_counts(counts, "unknown", self.vendor)
        logger.info(f"Adobe extract: {result.page_count} page(s), {result.total_word_count} words")
        return result

    @classmethod
    def _page_of(cls, node: Mapping[str, Any]) -> int:
        if node.get("Page") is not None:
            return int(node["Page"]) + 1
        for key in cls.ONE_BASED_PAGE_KEYS:
            if node.get(key) is not None:
                return int(node[key])
        return 1

    @classmethod
    def words_per_page(cls, structured: Any) -> List[int]:
        """
        Count words of every Text node, grouped by page.

        Returns counts for pages 1..max page seen; pages without text are 0.
        """
        per_page: Dict[int, int] = {}
        stack: List[Any] = [structured]
        while stack:
            node = stack.pop()
            if isinstance(node, list):
                stack.extend(node)
                continue
            if not isinstance(node, dict):
                continue
            text = node.get("Text") or node.get("text")
            if text:
                page = cls._page_of(node)
                per_page[page] = per_page.get(page, 0) + count_words(str(text))
            stack.extend(v for v in node.values() if isinstance(v, (dict, list)))

        if not per_page:
            return []
        return [per_page.get(n, 0) for n in range(1, max(per_page) + 1)]

    @classmethod
    def words_per_page_from_zip(cls, archive: bytes) -> List[int]:
        """Parse ``structuredData.json`` out of an Extract result ZIP."""
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                if "structuredData.json" not in zf.namelist():
                    return []
                structured = json.loads(zf.read("structuredData.json").decode("utf-8"))
        except (zipfile.BadZipFile, ValueError) as e:
            raise OCRError(f"Unreadable Adobe extract archive: {e}", "adobe")
        return cls.words_per_page(structured)


# =============================================================================
# PDF TEXT LAYER (pypdf)
# =============================================================================

class PdfTextExtractor:
    """
    Count words in a PDF's embedded text layer.

    No vendor call. Scanned PDFs have no text layer and come back with
    zero words per page, which prices at the one-page minimum.
    """

    vendor = "pdf_text"

    def supports(self, mime_type: str) -> bool:
        return mime_type == PDF_MIME

    def extract(self, content: bytes, mime_type: str = PDF_MIME) -> OCRResult:
        try:
            reader = PdfReader(io.BytesIO(content))
            counts = [count_words(page.extract_text() or "") for page in reader.pages]
        except (PyPdfError, ValueError, KeyError) as e:
            raise OCRError(f"PDF text extraction failed: {e}", self.vendor)
        result = OCRResult.from_page_counts(counts, "unknown", self.vendor)
        logger.info(f"PDF text layer: {result.page_count} page(s), {result.total_word_count} words")
        return result

    def close(self) -> None:
        pass


# =============================================================================
# FACTORY
# =============================================================================

OCR_PROVIDERS = ("vision", "adobe", "pdf_text")


def build_ocr_client(config: Mapping[str, Any]):
    """
    Build the OCR client selected by ``OCR_PROVIDER``.

    Raises:
        ConfigurationError: Unknown provider or missing credentials
    """
    provider = (config.get("OCR_PROVIDER") or "vision").lower()
    timeout = config.get("VENDOR_TIMEOUT_SECONDS", 60)

    if provider == "vision":
        return VisionOCRClient(config.get("GOOGLE_API_KEY", ""), timeout=timeout)
    if provider == "adobe":
        return AdobeExtractClient(
            config.get("ADOBE_PDF_CLIENT_ID", ""),
            config.get("ADOBE_PDF_CLIENT_SECRET", ""),
            poll_timeout=config.get("ADOBE_POLL_TIMEOUT_SECONDS", 180),
            timeout=timeout,
        )
    if provider == "pdf_text":
        return PdfTextExtractor()
    raise ConfigurationError("OCR_PROVIDER", f"OCR provider '{provider}'")
