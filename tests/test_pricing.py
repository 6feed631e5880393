"""
Unit tests for the quote calculator.

Covers page rounding, language tiers, certification lookup, and the
one-page minimum charge.
"""

import itertools
from decimal import Decimal

import pytest

from models.quote import FileAnalysis
from modules.languages import supported_languages, to_language_name
from modules.pricing import QuoteCalculator, normalize_complexity, to_cents


class TestPageBilling:
    """Test per-page weighted words and billable rounding."""

    def test_medium_page_of_200_words(self, calculator):
        """200 words at Medium -> 220 weighted -> 1.0 billable page."""
        page = calculator.analyze_page(1, 200, "Medium")
        assert page.complexity_multiplier == pytest.approx(1.1)
        assert page.ppwc == pytest.approx(220.0)
        assert page.billable_pages == pytest.approx(1.0)

    def test_rounds_up_to_next_tenth(self, calculator):
        """241 words at Easy is just over one page -> 1.1."""
        page = calculator.analyze_page(1, 241, "Easy")
        assert page.billable_pages == pytest.approx(1.1)

    def test_exact_tenth_is_not_pushed_up(self, calculator):
        """240 words x 1.1 = 264 -> exactly 1.1 pages, not 1.2."""
        page = calculator.analyze_page(1, 240, "Medium")
        assert page.billable_pages == pytest.approx(1.1)

    def test_hard_multiplier(self, calculator):
        page = calculator.analyze_page(1, 100, "Hard")
        assert page.ppwc == pytest.approx(120.0)
        assert page.billable_pages == pytest.approx(0.5)

    def test_empty_page_bills_nothing(self, calculator):
        page = calculator.analyze_page(3, 0, "Medium")
        assert page.billable_pages == 0.0
        assert page.page_number == 3

    def test_build_file_analysis_uses_page_complexities(self, calculator):
        analysis = calculator.build_file_analysis(
            "CS00001/a.pdf", "a.pdf", [240, 240], {2: "High"}
        )
        assert analysis.page_count == 2
        assert [p.complexity for p in analysis.pages] == ["Medium", "Hard"]
        assert analysis.pages[1].billable_pages == pytest.approx(1.2)

    def test_custom_words_per_page(self):
        calculator = QuoteCalculator(words_per_page=250)
        page = calculator.analyze_page(1, 250, "Easy")
        assert page.billable_pages == pytest.approx(1.0)

    def test_invalid_words_per_page(self):
        with pytest.raises(ValueError):
            QuoteCalculator(words_per_page=0)


class TestRatesAndCertification:
    """Test language tiers and certification fees."""

    @pytest.mark.parametrize("source,target,rate", [
        ("English", "Spanish", 65.0),
        ("Spanish", "French", 78.0),
        ("German", "English", 78.0),
        ("English", "Japanese", 91.0),
        ("Japanese", "French", 91.0),
    ])
    def test_per_page_rate_uses_higher_tier(self, calculator, source, target, rate):
        assert calculator.per_page_rate(source, target) == pytest.approx(rate)

    def test_unknown_language_defaults_to_tier_a(self, calculator):
        assert calculator.language_tier("Klingon") == "A"
        assert calculator.per_page_rate("Klingon", "English") == pytest.approx(65.0)

    def test_certification_lookup(self, calculator):
        assert calculator.certification_for("USCIS") == ("standard", 20.0)
        assert calculator.certification_for("Court") == ("notarized", 40.0)

    def test_unknown_use_gets_standard_certification(self, calculator):
        assert calculator.certification_for("Personal") == ("standard", 20.0)

    def test_from_config(self):
        calculator = QuoteCalculator.from_config({"PRICING_BASE_RATE": 50, "PRICING_WORDS_PER_PAGE": 200})
        assert calculator.per_page_rate("English", "Spanish") == pytest.approx(50.0)
        assert calculator.analyze_page(1, 200, "Easy").billable_pages == pytest.approx(1.0)


class TestCalculateQuote:
    """Test whole-quote totals."""

    def test_single_page_japanese_uscis(self, calculator):
        """200 words, Medium, English -> Japanese, USCIS = 1.0 x 91 + 20 = 111."""
        files = [calculator.build_file_analysis("CS00001/a.pdf", "a.pdf", [200])]
        totals = calculator.calculate_quote(files, "English", "Japanese", "USCIS")

        assert totals.per_page_rate == pytest.approx(91.0)
        assert totals.total_billable_pages == pytest.approx(1.0)
        assert totals.cert_type == "standard"
        assert totals.cert_price == pytest.approx(20.0)
        assert totals.quote_total == pytest.approx(111.0)

    def test_minimum_charge_moves_deficit_to_first_page(self, calculator):
        """Pages of 0.3 and 0.4 bill as 0.6 and 0.4, totalling exactly 1.0."""
        files = [
            calculator.build_file_analysis("CS00001/a.pdf", "a.pdf", [60]),
            calculator.build_file_analysis("CS00001/b.pdf", "b.pdf", [80]),
        ]
        assert files[0].pages[0].billable_pages == pytest.approx(0.3)
        assert files[1].pages[0].billable_pages == pytest.approx(0.4)

        totals = calculator.calculate_quote(files, "English", "Spanish", "USCIS")

        assert files[0].pages[0].billable_pages == pytest.approx(0.6)
        assert files[1].pages[0].billable_pages == pytest.approx(0.4)
        assert totals.total_billable_pages == pytest.approx(1.0)
        assert sum(p.billable_pages for f in files for p in f.pages) == pytest.approx(1.0)
        assert totals.quote_total == pytest.approx(85.0)

    def test_minimum_charge_skips_files_without_pages(self, calculator):
        files = [
            FileAnalysis(file_id="CS00001/blank.png", filename="blank.png"),
            calculator.build_file_analysis("CS00001/b.pdf", "b.pdf", [80]),
        ]
        calculator.calculate_quote(files, "English", "Spanish", "Court")
        assert files[1].pages[0].billable_pages == pytest.approx(1.0)

    def test_no_pages_still_charges_one_page(self, calculator):
        totals = calculator.calculate_quote([], "French", "English", "Court")
        assert totals.total_billable_pages == pytest.approx(1.0)
        assert totals.quote_total == pytest.approx(78.0 + 40.0)

    def test_no_minimum_adjustment_above_one_page(self, calculator):
        files = [calculator.build_file_analysis("CS00001/a.pdf", "a.pdf", [240, 120])]
        totals = calculator.calculate_quote(files, "English", "Spanish", "USCIS")
        assert [p.billable_pages for p in files[0].pages] == pytest.approx([1.1, 0.6])
        assert totals.total_billable_pages == pytest.approx(1.7)
        assert totals.quote_total == pytest.approx(1.7 * 65 + 20)

    def test_pricing_table(self, calculator):
        table = calculator.pricing_table()
        assert table["base_rate"] == 65.0
        assert table["tiers"]["C"] == pytest.approx(1.4)
        assert table["certifications"]["Court"] == {
            "type": "notarized", "label": "Notarized certification", "price": 40.0,
        }

    def test_certification_label(self):
        assert QuoteCalculator.certification_label("standard") == "Standard certification"
        assert QuoteCalculator.certification_label("apostille") == "apostille"


class TestPricingProperties:
    """Rules that must hold for every word count and every small quote."""

    @pytest.mark.parametrize("complexity", ["Easy", "Medium", "Hard"])
    def test_billable_pages_cover_weighted_words(self, calculator, complexity):
        words_per_page = Decimal(240)
        for words in range(0, 2001):
            page = calculator.analyze_page(1, words, complexity)
            billable = Decimal(str(page.billable_pages))
            weighted = Decimal(words) * Decimal(str(page.complexity_multiplier))

            assert (billable * 10) % 1 == 0, f"{words} words billed {billable}"
            assert billable * words_per_page >= weighted, f"{words} words under-billed"
            # smallest tenth that covers the words
            assert (billable - Decimal("0.1")) * words_per_page < weighted or billable == 0

    def test_quote_total_is_at_least_one_page(self, calculator):
        word_counts = range(0, 241, 20)
        for counts in itertools.product(word_counts, repeat=3):
            files = [FileAnalysis(file_id="CS00001/blank.png", filename="blank.png")]
            files += [
                calculator.build_file_analysis(f"CS00001/{i}.pdf", f"{i}.pdf", [count])
                for i, count in enumerate(counts)
            ]
            before = [p.billable_pages for f in files for p in f.pages]
            raw_total = sum(Decimal(str(b)) for b in before)

            totals = calculator.calculate_quote(files, "English", "Spanish", "USCIS")

            after = [p.billable_pages for f in files for p in f.pages]
            page_sum = sum(Decimal(str(b)) for b in after)
            assert totals.total_billable_pages >= 1.0, counts
            assert page_sum == Decimal(str(totals.total_billable_pages)), counts
            if raw_total >= 1:
                assert after == before, counts
            else:
                assert after[1:] == before[1:], counts


class TestHelpers:
    """Test label normalization, cents rounding, and language names."""

    @pytest.mark.parametrize("label,expected", [
        ("Low", "Easy"),
        ("simple", "Easy"),
        ("Medium", "Medium"),
        ("moderate", "Medium"),
        ("High", "Hard"),
        ("very_complex", "Hard"),
        ("", "Medium"),
        (None, "Medium"),
        ("weird", "Medium"),
    ])
    def test_normalize_complexity(self, label, expected):
        assert normalize_complexity(label) == expected

    def test_to_cents_rounds_half_up(self):
        assert to_cents(111) == 11100
        assert to_cents(10.005) == 1001
        assert to_cents(85.0) == 8500

    def test_language_names(self):
        assert to_language_name("ja") == "Japanese"
        assert to_language_name("pt-BR") == "Portuguese"
        assert to_language_name("unknown") == "Unknown"
        assert to_language_name("") == ""

    def test_supported_languages(self):
        assert supported_languages() == ["English", "Spanish", "French", "German", "Japanese"]
