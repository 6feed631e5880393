"""
Per-document vendor results.

OCR providers and the LLM analyzer each normalize their responses into the
types below, so the processor and the calculator never see vendor JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from .quote import FileAnalysis


class StepStatus(Enum):
    """
    Outcome of one pipeline stage (OCR or analysis) for one file.

    Stored as plain strings in ``quote_files.ocr_status`` and
    ``quote_files.analysis_status``.
    """

    PENDING = "pending"
    """Stage has not run yet."""

    COMPLETED = "completed"
    """Vendor returned a usable result."""

    FAILED = "failed"
    """Vendor call raised; the message column holds the error."""

    SKIPPED = "skipped"
    """Stage was not attempted (not configured, file too large, unsupported type)."""


@dataclass
class OCRResult:
    """Normalized OCR output for one file."""

    page_count: int = 0
    total_word_count: int = 0
    words_per_page: List[int] = field(default_factory=list)
    detected_language: str = "unknown"
    provider: str = ""

    @classmethod
    def from_page_counts(cls, counts: List[int], language: str = "unknown",
                         provider: str = "") -> "OCRResult":
        counts = [int(c) for c in counts]
        return cls(
            page_count=len(counts),
            total_word_count=sum(counts),
            words_per_page=counts,
            detected_language=language or "unknown",
            provider=provider,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_count": self.page_count,
            "total_word_count": self.total_word_count,
            "words_per_page": list(self.words_per_page),
            "detected_language": self.detected_language,
            "provider": self.provider,
        }


@dataclass
class PageInsight:
    """LLM classification of one page."""

    complexity: str = "Medium"
    """Easy, Medium, or Hard (already normalized)."""

    document_type: str = "Document"
    names: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complexity": self.complexity,
            "document_type": self.document_type,
            "names": list(self.names),
            "languages": list(self.languages),
            "confidence": self.confidence,
        }


@dataclass
class DocumentAnalysis:
    """
    LLM analysis for one file.

    ``pages`` is keyed by 1-based page number. ``parse_error`` and
    ``raw_text`` are set when the model output was not clean JSON and the
    fallback parser produced the result.
    """

    languages_all: List[str] = field(default_factory=list)
    pages: Dict[int, PageInsight] = field(default_factory=dict)
    model: str = ""
    parse_error: Optional[str] = None
    raw_text: Optional[str] = None

    def complexity_for(self, page_number: int, default: str = "Medium") -> str:
        insight = self.pages.get(page_number)
        return insight.complexity if insight else default

    def page_field(self, name: str) -> Dict[str, Any]:
        """Map of page number (as string) to one PageInsight attribute."""
        return {str(n): getattr(p, name) for n, p in sorted(self.pages.items())}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "languages_all": list(self.languages_all),
            "pages": {str(n): p.to_dict() for n, p in sorted(self.pages.items())},
            "model": self.model,
        }
        if self.parse_error:
            data["parse_error"] = self.parse_error
            data["raw_text"] = (self.raw_text or "")[:2000]
        return data


@dataclass
class StoredFile:
    """An uploaded file as it sits in object storage."""

    file_name: str
    storage_path: str
    mime_type: str = "application/octet-stream"
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "storage_path": self.storage_path,
            "mime_type": self.mime_type,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredFile":
        return cls(
            file_name=data.get("file_name", ""),
            storage_path=data.get("storage_path", ""),
            mime_type=data.get("mime_type", "application/octet-stream"),
            size=int(data.get("size", 0) or 0),
        )


@dataclass
class ProcessedFile:
    """
    Everything the pipeline learned about one file.

    Produced by a file worker thread and consumed by the job thread, which
    persists it and feeds ``file_analysis`` to the calculator.
    """

    file: StoredFile
    ocr_status: StepStatus = StepStatus.PENDING
    ocr_message: str = ""
    ocr: OCRResult = field(default_factory=OCRResult)
    analysis_status: StepStatus = StepStatus.PENDING
    analysis_message: str = ""
    analysis: Optional[DocumentAnalysis] = None
    file_analysis: Optional[FileAnalysis] = None
    """Priced pages built from OCR counts and page complexities."""

    @property
    def has_pages(self) -> bool:
        return self.ocr_status is StepStatus.COMPLETED and self.ocr.page_count > 0

    @property
    def error_summary(self) -> str:
        parts = []
        if self.ocr_status is StepStatus.FAILED:
            parts.append(f"OCR: {self.ocr_message}")
        if self.analysis_status is StepStatus.FAILED:
            parts.append(f"analysis: {self.analysis_message}")
        return "; ".join(parts)
