"""
Quote data models.

These models carry a priced quote from the calculator to the database,
the JSON API, and the quote page:

    PageAnalysis  -> one OCR page with its complexity and billable pages
    FileAnalysis  -> all pages of one uploaded file
    QuoteTotals   -> rate, certification, and grand total
    QuoteResult   -> totals + files, keyed by quote id

Numbers are stored unrounded; the display layer rounds to two decimals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any, List


@dataclass
class PageAnalysis:
    """
    Pricing breakdown for a single page.

    ``billable_pages`` is the only field the minimum-charge rule may
    change after creation.
    """

    page_number: int
    """1-based page number within the file."""

    word_count: int
    """Words reported by OCR for this page."""

    complexity: str
    """Easy, Medium, or Hard."""

    complexity_multiplier: float
    """1.0, 1.1, or 1.2 for the complexity above."""

    ppwc: float
    """Per-page weighted count: word_count x complexity_multiplier."""

    billable_pages: float
    """ppwc / words_per_page, rounded up to the next 0.1."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "word_count": self.word_count,
            "complexity": self.complexity,
            "complexity_multiplier": self.complexity_multiplier,
            "ppwc": self.ppwc,
            "billable_pages": self.billable_pages,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageAnalysis":
        return cls(
            page_number=int(data.get("page_number", 1)),
            word_count=int(data.get("word_count", 0)),
            complexity=data.get("complexity", "Medium"),
            complexity_multiplier=float(data.get("complexity_multiplier", 1.1)),
            ppwc=float(data.get("ppwc", 0.0)),
            billable_pages=float(data.get("billable_pages", 0.0)),
        )


@dataclass
class FileAnalysis:
    """All priced pages of one uploaded document."""

    file_id: str
    """Storage path of the file (``<quote_id>/<name>``)."""

    filename: str
    """Display name (sanitized original filename)."""

    page_count: int = 0
    """Pages reported by OCR (may exceed len(pages) for empty pages)."""

    pages: List[PageAnalysis] = field(default_factory=list)
    """One entry per OCR page, in page order."""

    @property
    def billable_pages(self) -> float:
        """Sum of the file's page billable counts (display only)."""
        return sum(p.billable_pages for p in self.pages)

    @property
    def word_count(self) -> int:
        return sum(p.word_count for p in self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "filename": self.filename,
            "page_count": self.page_count,
            "pages": [p.to_dict() for p in self.pages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileAnalysis":
        return cls(
            file_id=data.get("file_id", ""),
            filename=data.get("filename", ""),
            page_count=int(data.get("page_count", 0)),
            pages=[PageAnalysis.from_dict(p) for p in data.get("pages", [])],
        )


@dataclass
class QuoteTotals:
    """Quote-level money figures."""

    per_page_rate: float
    """Base rate x tier multiplier of the more expensive language."""

    total_billable_pages: float
    """Sum of all billable pages, never below 1.0."""

    cert_type: str
    """Certification type key, 'standard' or 'notarized'."""

    cert_price: float
    """Flat certification price, added once per quote."""

    quote_total: float
    """total_billable_pages x per_page_rate + cert_price."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "per_page_rate": self.per_page_rate,
            "total_billable_pages": self.total_billable_pages,
            "cert_type": self.cert_type,
            "cert_price": self.cert_price,
            "quote_total": self.quote_total,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteTotals":
        return cls(
            per_page_rate=float(data.get("per_page_rate", 0.0)),
            total_billable_pages=float(data.get("total_billable_pages", 0.0)),
            cert_type=data.get("cert_type", ""),
            cert_price=float(data.get("cert_price", 0.0)),
            quote_total=float(data.get("quote_total", 0.0)),
        )


@dataclass
class QuoteResult:
    """
    A complete priced quote.

    Stored as JSON on the job row (``result``) and on the quote row so the
    quote page can be rendered without re-running the pipeline.
    """

    quote_id: str
    totals: QuoteTotals
    files: List[FileAnalysis] = field(default_factory=list)

    @property
    def quote_total(self) -> float:
        return self.totals.quote_total

    def to_dict(self) -> Dict[str, Any]:
        data = {"quote_id": self.quote_id, "files": [f.to_dict() for f in self.files]}
        data.update(self.totals.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteResult":
        return cls(
            quote_id=data.get("quote_id", ""),
            totals=QuoteTotals.from_dict(data),
            files=[FileAnalysis.from_dict(f) for f in data.get("files", [])],
        )
