"""Tests for candidate aggregation, invoice building and the invoice record."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.extraction.aggregator import CandidateAggregator
from src.extraction.builder import CanonicalInvoiceBuilder
from src.extraction.candidate import Candidate, FieldConfidence
from src.extraction.invoice import CanonicalInvoice, LineItem
from src.input_handler.document import RawDocument


class TestCandidateAggregator:
    def test_one_winner_per_field(self):
        candidates = [
            Candidate("total_amount", "10.00", 0.7, "a"),
            Candidate("total_amount", "20.00", 0.9, "b"),
            Candidate("total_amount", "30.00", 0.9, "c"),
            Candidate("invoice_number", "INV-1", 0.8, "a"),
        ]
        fields = CandidateAggregator().aggregate(candidates)

        assert [fc.field for fc in fields] == ["invoice_number", "total_amount"]
        total = fields[1]
        assert total.value == "20.00"
        assert total.source == "b"

    def test_deduplicate_returns_candidates(self):
        winners = CandidateAggregator().deduplicate([
            Candidate("vendor_name", "ACME", 0.6, "x"),
            Candidate("vendor_name", "ACME Corp", 0.85, "y"),
        ])
        assert len(winners) == 1
        assert winners[0].value == "ACME Corp"

    def test_overall_confidence_weights_critical_fields(self):
        fields = [
            FieldConfidence("invoice_number", "INV-1", 0.9, "a"),
            FieldConfidence("vendor_name", "ACME", 0.8, "a"),
            FieldConfidence("total_amount", "10.00", 0.7, "a"),
            FieldConfidence("invoice_date", "2024-01-01", 0.6, "a"),
        ]
        assert CandidateAggregator().overall_confidence(fields) == pytest.approx(0.7 * 0.8 + 0.3 * 0.6)

    def test_absent_group_contributes_zero(self):
        fields = [FieldConfidence("invoice_date", "2024-01-01", 0.6, "a")]
        assert CandidateAggregator().overall_confidence(fields) == pytest.approx(0.3 * 0.6)
        assert CandidateAggregator().overall_confidence([]) == 0.0

    def test_empty_values_not_counted(self):
        fields = [
            FieldConfidence("invoice_number", None, 0.0, "a"),
            FieldConfidence("total_amount", "10.00", 0.8, "a"),
        ]
        assert CandidateAggregator().overall_confidence(fields) == pytest.approx(0.7 * 0.8)


class TestCanonicalInvoiceBuilder:
    def test_money_parse_or_zero(self):
        invoice = CanonicalInvoiceBuilder().build([
            FieldConfidence("total_amount", "abc", 0.5, "a"),
            FieldConfidence("tax", "-5.00", 0.5, "a"),
            FieldConfidence("subtotal", "1,200.00", 0.5, "a"),
        ])
        assert invoice.total == 0.0
        assert invoice.tax == 0.0
        assert invoice.subtotal == 1200.0

    def test_currency_default_and_upper(self):
        builder = CanonicalInvoiceBuilder()
        assert builder.build([]).currency == "USD"
        assert builder.build([FieldConfidence("currency", "eur", 0.9, "a")]).currency == "EUR"

    def test_line_items_from_json(self):
        payload = json.dumps([
            {"line_number": 5, "description": "A", "amount": 1},
            {"line_number": 9, "description": "B", "amount": 2},
        ])
        invoice = CanonicalInvoiceBuilder().build([FieldConfidence("line_items", payload, 0.8, "a")])
        assert [item.line_number for item in invoice.line_items] == [1, 2]

    def test_invalid_line_items_json(self):
        invoice = CanonicalInvoiceBuilder().build([FieldConfidence("line_items", "{broken", 0.8, "a")])
        assert invoice.line_items == []

    def test_document_metadata_copied(self):
        document = RawDocument(text="Total: 5.00", markup="**5.00**", similarity_score=0.75)
        invoice = CanonicalInvoiceBuilder().build([FieldConfidence("total_amount", "5.00", 0.9, "a")], document)
        assert invoice.raw_ocr_text == "Total: 5.00"
        assert invoice.ocr_markup_text == "**5.00**"
        assert invoice.ocr_similarity_score == 0.75


class TestCanonicalInvoice:
    def test_json_round_trip(self, clean_invoice):
        assert CanonicalInvoice.from_json(clean_invoice.to_json()) == clean_invoice

    def test_copy_is_independent(self, clean_invoice):
        duplicate = clean_invoice.copy()
        duplicate.line_items.append(LineItem(2, "Extra", amount=1.0))
        assert len(clean_invoice.line_items) == 1

    def test_from_dict_ignores_unknown_keys(self):
        invoice = CanonicalInvoice.from_dict({"total": "12.5", "currency": None, "foo": "bar"})
        assert invoice.total == 12.5
        assert invoice.currency == "USD"

    def test_line_items_total(self, clean_invoice):
        assert clean_invoice.line_items_total == 100.0
