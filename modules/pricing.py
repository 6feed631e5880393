"""Quote calculator: turns per-page word counts and complexities into a price."""

from __future__ import annotations

from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Dict, Any, List, Mapping, Optional, Sequence, Tuple

from logging_config import get_logger
from models.quote import PageAnalysis, FileAnalysis, QuoteTotals
from modules.languages import LANGUAGE_TIERS, DEFAULT_TIER

COMPLEXITY_LEVELS = ("Easy", "Medium", "Hard")

# Vendor complexity labels -> pricing level
_COMPLEXITY_ALIASES = {
    "easy": "Easy",
    "low": "Easy",
    "simple": "Easy",
    "medium": "Medium",
    "moderate": "Medium",
    "standard": "Medium",
    "hard": "Hard",
    "high": "Hard",
    "complex": "Hard",
    "very_complex": "Hard",
    "very complex": "Hard",
}


def normalize_complexity(label: Optional[str]) -> str:
    """Map an LLM complexity label to Easy, Medium, or Hard (default Medium)."""
    if not label:
        return "Medium"
    return _COMPLEXITY_ALIASES.get(str(label).strip().lower(), "Medium")


def to_cents(amount: float) -> int:
    """Round a dollar amount to whole cents, half up."""
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


class QuoteCalculator:
    """
    Prices a quote from OCR page word counts.

    Billable pages are computed with Decimal so that exact multiples of 0.1
    (e.g. 264 weighted words / 240 = 1.1) are never pushed up an extra step
    by binary float error. Results are returned as floats.
    """

    COMPLEXITY_MULTIPLIERS = {
        "Easy": Decimal("1.0"),
        "Medium": Decimal("1.1"),
        "Hard": Decimal("1.2"),
    }

    TIER_MULTIPLIERS = {
        "A": Decimal("1.0"),
        "B": Decimal("1.2"),
        "C": Decimal("1.4"),
    }

    TIER_RANK = {"A": 1, "B": 2, "C": 3}

    # cert type -> (display name, price)
    CERTIFICATION_TYPES = {
        "standard": ("Standard certification", Decimal("20")),
        "notarized": ("Notarized certification", Decimal("40")),
    }

    # intended use -> cert key
    CERTIFICATION_MAP = {
        "USCIS": "standard",
        "Court": "notarized",
    }

    DEFAULT_CERTIFICATION = "standard"
    MINIMUM_BILLABLE_PAGES = Decimal("1.0")

    def __init__(
        self,
        base_rate: float = 65,
        words_per_page: int = 240,
        language_tiers: Optional[Mapping[str, str]] = None,
    ) -> None:
        if words_per_page <= 0:
            raise ValueError("words_per_page must be positive")
        self.base_rate = Decimal(str(base_rate))
        self.words_per_page = Decimal(int(words_per_page))
        self.language_tiers = dict(language_tiers or LANGUAGE_TIERS)
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "QuoteCalculator":
        """Build from a Flask config mapping (PRICING_* keys)."""
        return cls(
            base_rate=config.get("PRICING_BASE_RATE", 65),
            words_per_page=config.get("PRICING_WORDS_PER_PAGE", 240),
        )

    # -------------------------------------------------------------------------
    # Page / file level
    # -------------------------------------------------------------------------

    def complexity_multiplier(self, complexity: str) -> Decimal:
        return self.COMPLEXITY_MULTIPLIERS[normalize_complexity(complexity)]

    def _billable(self, ppwc: Decimal) -> Decimal:
        # ceil(ppwc / wpp * 10) / 10
        tenths = (ppwc * 10 / self.words_per_page).to_integral_value(rounding=ROUND_CEILING)
        return tenths / 10

    def analyze_page(self, page_number: int, word_count: int, complexity: str) -> PageAnalysis:
        """Price one page: weighted words, rounded up to the next 0.1 page."""
        level = normalize_complexity(complexity)
        multiplier = self.COMPLEXITY_MULTIPLIERS[level]
        ppwc = Decimal(max(int(word_count), 0)) * multiplier
        billable = self._billable(ppwc)
        return PageAnalysis(
            page_number=page_number,
            word_count=int(word_count),
            complexity=level,
            complexity_multiplier=float(multiplier),
            ppwc=float(ppwc),
            billable_pages=float(billable),
        )

    def build_file_analysis(
        self,
        file_id: str,
        filename: str,
        words_per_page: Sequence[int],
        complexities: Optional[Mapping[int, str]] = None,
    ) -> FileAnalysis:
        """
        Price every OCR page of one file.

        Args:
            file_id: Storage path of the file
            filename: Display name
            words_per_page: Word count per page, in page order
            complexities: Page number (1-based) -> complexity label;
                missing pages default to Medium
        """
        complexities = complexities or {}
        pages = [
            self.analyze_page(n, count, complexities.get(n, "Medium"))
            for n, count in enumerate(words_per_page, start=1)
        ]
        return FileAnalysis(
            file_id=file_id,
            filename=filename,
            page_count=len(words_per_page),
            pages=pages,
        )

    # -------------------------------------------------------------------------
    # Quote level
    # -------------------------------------------------------------------------

    def language_tier(self, language: str) -> str:
        return self.language_tiers.get(language, DEFAULT_TIER)

    def per_page_rate(self, source_language: str, target_language: str) -> float:
        """Base rate times the multiplier of the more expensive language tier."""
        return float(self._per_page_rate(source_language, target_language))

    def _per_page_rate(self, source_language: str, target_language: str) -> Decimal:
        tier = max(
            self.language_tier(source_language),
            self.language_tier(target_language),
            key=lambda t: self.TIER_RANK.get(t, 1),
        )
        return self.base_rate * self.TIER_MULTIPLIERS.get(tier, Decimal("1.0"))

    def certification_for(self, intended_use: str) -> Tuple[str, float]:
        """Return (cert type, price) for an intended use, e.g. ("standard", 20.0)."""
        cert_type, price = self._certification(intended_use)
        return cert_type, float(price)

    def _certification(self, intended_use: str) -> Tuple[str, Decimal]:
        cert_type = self.CERTIFICATION_MAP.get(intended_use, self.DEFAULT_CERTIFICATION)
        return cert_type, self.CERTIFICATION_TYPES[cert_type][1]

    @classmethod
    def certification_label(cls, cert_type: str) -> str:
        """Display name for a cert type; unknown values are shown as-is."""
        entry = cls.CERTIFICATION_TYPES.get(cert_type)
        return entry[0] if entry else cert_type

    def calculate_quote(
        self,
        files: List[FileAnalysis],
        source_language: str,
        target_language: str,
        intended_use: str,
    ) -> QuoteTotals:
        """
        Price a whole quote.

        Applies the one-page minimum charge: when the billable total is
        below 1.0, the difference is added to the first page of the first
        file that has pages (``files`` is modified in place) and the total
        is reported as exactly 1.0.
        """
        total = sum(
            (Decimal(str(p.billable_pages)) for f in files for p in f.pages),
            Decimal("0"),
        )

        if total < self.MINIMUM_BILLABLE_PAGES:
            deficit = self.MINIMUM_BILLABLE_PAGES - total
            first_page = next((f.pages[0] for f in files if f.pages), None)
            if first_page is not None:
                first_page.billable_pages = float(Decimal(str(first_page.billable_pages)) + deficit)
            self.logger.debug(f"Minimum charge applied: {total} -> {self.MINIMUM_BILLABLE_PAGES}")
            total = self.MINIMUM_BILLABLE_PAGES

        rate = self._per_page_rate(source_language, target_language)
        cert_type, cert_price = self._certification(intended_use)
        quote_total = total * rate + cert_price

        self.logger.debug(
            f"Quote priced: pages={total}, rate={rate}, cert={cert_type} ({cert_price}), "
            f"total={quote_total}"
        )

        return QuoteTotals(
            per_page_rate=float(rate),
            total_billable_pages=float(total),
            cert_type=cert_type,
            cert_price=float(cert_price),
            quote_total=float(quote_total),
        )

    def pricing_table(self) -> Dict[str, Any]:
        """Rate tables shown with the request form."""
        return {
            "base_rate": float(self.base_rate),
            "words_per_page": int(self.words_per_page),
            "languages": dict(self.language_tiers),
            "tiers": {k: float(v) for k, v in self.TIER_MULTIPLIERS.items()},
            "complexity": {k: float(v) for k, v in self.COMPLEXITY_MULTIPLIERS.items()},
            "certifications": {
                use: {"type": key, "label": self.CERTIFICATION_TYPES[key][0],
                      "price": float(self.CERTIFICATION_TYPES[key][1])}
                for use, key in self.CERTIFICATION_MAP.items()
            },
        }
