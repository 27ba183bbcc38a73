"""Tests for the markup-structure and deterministic fallback parsers."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.fallback.deterministic import DeterministicParser
from src.fallback.markup import MarkupStructureParser
from src.utils.exceptions import FallbackExtractionError


class TestMarkupStructureParser:
    def test_parse_markup(self, sample_markup):
        result = MarkupStructureParser().parse(sample_markup, "", 0.9)

        assert result.strategy == "markup_fallback"
        assert result.invoice.invoice_number == "INV-7"
        assert result.invoice.vendor_name == "ACME Corp"
        assert result.invoice.total == 120.0
        assert result.invoice.ocr_similarity_score == 0.9
        assert result.confidence == pytest.approx((0.85 + 0.8 + 0.9) / 3)

    def test_reports_only_found_fields(self, sample_markup):
        result = MarkupStructureParser().parse(sample_markup)
        assert result.get_field("invoice_date") is None
        assert result.get_field("vendor_name").source == "markup_header"

    def test_blank_markup(self):
        with pytest.raises(FallbackExtractionError):
            MarkupStructureParser().parse("   ", "Total: $5.00")

    def test_markup_without_fields(self):
        with pytest.raises(FallbackExtractionError):
            MarkupStructureParser().parse("just some words")


class TestDeterministicParser:
    def test_simple_invoice(self, simple_text):
        result = DeterministicParser().parse(simple_text, similarity_score=0.5)
        invoice = result.invoice

        assert result.strategy == "deterministic"
        assert invoice.invoice_number == "INV-1001"
        assert invoice.vendor_name == "ACME Corp"
        assert invoice.currency == "USD"
        assert invoice.total == 110.0

    def test_every_field_reported(self, simple_text):
        result = DeterministicParser().parse(simple_text)
        assert len(result.field_confidences) == 12
        assert result.get_field("invoice_date").value is None
        assert result.get_field("invoice_date").confidence == 0.0

    def test_confidence_formula(self, simple_text):
        result = DeterministicParser().parse(simple_text, similarity_score=0.5)
        expected = 0.8 * (0.8 + 0.9 + 0.9 + 0.85) / 12 + 0.2 * 0.5
        assert result.confidence == pytest.approx(expected)
        assert result.details["review_recommended"] is True

    def test_european_line_items(self, european_text):
        result = DeterministicParser().parse(european_text)
        invoice = result.invoice

        assert invoice.vendor_name == "Muster GmbH"
        assert invoice.currency == "EUR"
        assert invoice.total == 130.0
        assert [item.description for item in invoice.line_items] == ["Beratung"]
        assert invoice.line_items[0].amount == 130.0

    def test_sample_invoice(self, sample_invoice_text):
        invoice = DeterministicParser().parse(sample_invoice_text).invoice

        assert invoice.invoice_number == "INV-2024-001"
        assert invoice.invoice_date == "2024-03-15"
        assert invoice.subtotal == 50.0
        assert invoice.tax == 5.0
        assert invoice.total == 55.0
        assert len(invoice.line_items) == 2

    def test_empty_text_finds_nothing(self):
        result = DeterministicParser().parse("", similarity_score=0.0)
        assert result.confidence == pytest.approx(0.8 * 0.3 / 12)
        assert all(fc.value is None for fc in result.field_confidences)

    def test_missing_currency_keeps_default_confidence(self):
        result = DeterministicParser().parse("Globex LLC\nInvoice #: INV-77\nTotal: 40.00")
        currency = result.get_field("currency")

        assert currency.value is None
        assert currency.confidence == 0.3
        assert result.invoice.currency == "USD"
