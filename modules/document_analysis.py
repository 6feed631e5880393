"""
Gemini document analysis.

Sends the raw file to Gemini with a prompt asking, per page, for
complexity, document type, person names, languages, and a confidence
score. Model output is parsed leniently: code fences are stripped, the
first JSON object is decoded, and when no usable JSON comes back a
regex-based fallback still yields a single-page result.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from core.exceptions import AnalysisError, ConfigurationError
from logging_config import get_logger
from models.document import DocumentAnalysis, PageInsight
from modules.pricing import normalize_complexity

logger = get_logger(__name__)

ANALYSIS_PROMPT = """Analyze this document and provide a JSON response with the following structure:
{
  "languages_all": ["language1", "language2"],
  "pages": {
    "1": {
      "complexity": "Low|Medium|High",
      "document_type": "Contract|Legal Document|Certificate|Invoice|Other",
      "names": ["name1", "name2"],
      "languages": ["language1"],
      "confidence": 0.95
    }
  }
}

Include one entry under "pages" for every page of the document, keyed by page number.
Complexity reflects translation difficulty: Low for simple forms and certificates,
Medium for ordinary prose, High for dense legal, medical, or technical text and
handwriting. Identify all languages present, extract any person names, determine
the document type and complexity for each page, and provide confidence scores.
Respond with JSON only."""

# Gateway errors some proxies return as the model "text"
PAYLOAD_ERROR_MARKERS = ("Request Entity Too Large", "FUNCTION_PAYLOAD_TOO_LARGE")

FALLBACK_CONFIDENCE = 0.5


# =============================================================================
# OUTPUT PARSING
# =============================================================================

def extract_json_payload(raw_text: Optional[str]) -> Optional[Any]:
    """Decode the first JSON object in model output, ignoring code fences."""
    if not raw_text:
        return None
    text = raw_text.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if len(lines) >= 3 and lines[-1].strip() == "```":
            text = "\n".join(lines[1:-1]).strip()
    start = text.find("{")
    if start == -1:
        return None
    decoder = json.JSONDecoder()
    try:
        parsed, _ = decoder.raw_decode(text[start:])
        return parsed
    except json.JSONDecodeError:
        end = text.rfind("}")
        if end <= start:
            return None
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return []


def _confidence(value: Any) -> float:
    try:
        return min(max(float(value), 0.0), 1.0)
    except (TypeError, ValueError):
        return 0.0


def _page_insight(data: Mapping[str, Any]) -> PageInsight:
    return PageInsight(
        complexity=normalize_complexity(data.get("complexity")),
        document_type=str(data.get("document_type") or "Unknown Document"),
        names=_string_list(data.get("names")),
        languages=_string_list(data.get("languages")),
        confidence=_confidence(data.get("confidence")),
    )


def _pages_from_payload(raw_pages: Any) -> Dict[int, PageInsight]:
    pages: Dict[int, PageInsight] = {}
    if isinstance(raw_pages, Mapping):
        for key, value in raw_pages.items():
            match = re.search(r"\d+", str(key))
            if match and isinstance(value, Mapping):
                pages[int(match.group())] = _page_insight(value)
    elif isinstance(raw_pages, list):
        for index, value in enumerate(raw_pages, start=1):
            if isinstance(value, Mapping):
                number = value.get("page") or value.get("page_number") or index
                try:
                    pages[int(number)] = _page_insight(value)
                except (TypeError, ValueError):
                    pages[index] = _page_insight(value)
    return pages


def fallback_from_text(raw_text: str, parse_error: str) -> DocumentAnalysis:
    """
    Build a one-page analysis from free text.

    Looks for ``complexity: X``, ``document_type: Y``, and a ``languages``
    list; otherwise guesses complexity from the words high/complex and
    low/simple.
    """
    text = raw_text or ""
    lowered = text.lower()

    match = re.search(r"complexity[\"']?\s*[:=]\s*[\"']?([a-z_ ]+)", lowered)
    if match:
        complexity = normalize_complexity(match.group(1).strip())
    elif re.search(r"\b(high|complex)\b", lowered):
        complexity = "Hard"
    elif re.search(r"\b(low|simple)\b", lowered):
        complexity = "Easy"
    else:
        complexity = "Medium"

    match = re.search(r"document[_ ]type[\"']?\s*[:=]\s*[\"']?([^\"',\n}]+)", text, re.IGNORECASE)
    document_type = match.group(1).strip() if match else "Document"

    match = re.search(r"languages(?:_all)?[\"']?\s*[:=]\s*\[([^\]]*)\]", text, re.IGNORECASE)
    languages = re.findall(r"[\"']([^\"']+)[\"']", match.group(1)) if match else []
    languages = languages or ["unknown"]

    return DocumentAnalysis(
        languages_all=languages,
        pages={1: PageInsight(
            complexity=complexity,
            document_type=document_type,
            names=[],
            languages=list(languages),
            confidence=FALLBACK_CONFIDENCE,
        )},
        parse_error=parse_error,
        raw_text=text,
    )


def parse_analysis_text(raw_text: str, model: str = "") -> DocumentAnalysis:
    """
    Turn Gemini output into a DocumentAnalysis.

    Raises:
        AnalysisError: The text is a gateway payload-size error, not an answer
    """
    text = (raw_text or "").strip()
    if any(text.startswith(m) or m in text[:200] for m in PAYLOAD_ERROR_MARKERS):
        raise AnalysisError(f"Gemini API error: {text.splitlines()[0]}", "gemini", body=text)

    payload = extract_json_payload(text)
    if not isinstance(payload, Mapping):
        logger.info("Gemini output had no JSON object; using text fallback")
        analysis = fallback_from_text(text, "No JSON object in model output")
        analysis.model = model
        return analysis

    pages = _pages_from_payload(payload.get("pages"))
    if not pages:
        analysis = fallback_from_text(text, "JSON had no usable pages")
        analysis.model = model
        return analysis

    languages_all = _string_list(payload.get("languages_all"))
    if not languages_all:
        seen: List[str] = []
        for page in pages.values():
            for lang in page.languages:
                if lang not in seen:
                    seen.append(lang)
        languages_all = seen

    return DocumentAnalysis(languages_all=languages_all, pages=pages, model=model)


# =============================================================================
# GEMINI CLIENT
# =============================================================================

class GeminiAnalyzer:
    """
    Per-page document classification with Gemini.

    The file is sent inline, so files over ``max_inline_bytes`` are refused
    with ``too_large()`` before any call is made.
    """

    vendor = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        max_inline_bytes: int = 20 * 1024 * 1024,
        max_output_tokens: int = 8192,
        client: Optional[genai.Client] = None,
    ):
        if not api_key and client is None:
            raise ConfigurationError("GEMINI_API_KEY", "Gemini document analysis")
        self.model = model
        self.max_inline_bytes = max_inline_bytes
        self.max_output_tokens = max_output_tokens
        self._client = client or genai.Client(api_key=api_key)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GeminiAnalyzer":
        return cls(
            api_key=config.get("GEMINI_API_KEY") or config.get("GOOGLE_API_KEY", ""),
            model=config.get("GEMINI_MODEL", "gemini-1.5-flash"),
            max_inline_bytes=config.get("GEMINI_MAX_INLINE_BYTES", 20 * 1024 * 1024),
        )

    def too_large(self, size: int) -> bool:
        return size > self.max_inline_bytes

    def analyze(self, content: bytes, mime_type: str, file_name: str = "") -> DocumentAnalysis:
        """
        Classify every page of a document.

        Raises:
            AnalysisError: Gemini call failed, returned nothing, or returned
                a payload-size error
        """
        logger.info(f"Gemini analysis ({self.model}): {file_name or 'document'}, {len(content)} bytes")
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=[types.Content(role="user", parts=[
                    types.Part.from_bytes(data=content, mime_type=mime_type),
                    types.Part.from_text(text=ANALYSIS_PROMPT),
                ])],
                config=types.GenerateContentConfig(
                    temperature=0.1,
                    max_output_tokens=self.max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as e:
            raise AnalysisError(
                f"Gemini request failed: {e.message or e}",
                self.vendor,
                http_status=getattr(e, "code", None),
            )
        except httpx.HTTPError as e:
            raise AnalysisError(f"Gemini request failed: {e}", self.vendor)

        text = getattr(response, "text", None) or ""
        if not text.strip():
            raise AnalysisError("Gemini returned an empty response", self.vendor)

        logger.debug(f"Gemini raw response for {file_name}: {text[:500]}")
        return parse_analysis_text(text, self.model)
