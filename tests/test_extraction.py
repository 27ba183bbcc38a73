"""Tests for structure analysis, label mapping and multi-layer candidate extraction."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.extraction.extractor import CandidateExtractor
from src.extraction.field_mapper import FieldMapper, FieldValueCleaner, normalize_label
from src.extraction.line_items import LineItemRowParser, line_items_from_json, line_items_to_json
from src.input_handler.document import RawDocument
from src.input_handler.structure import DocumentStructureAnalyzer, split_table_row
from src.utils.exceptions import NoCandidatesError


class TestDocumentStructureAnalyzer:
    def test_text_header_and_section(self):
        structure = DocumentStructureAnalyzer().analyze("ACME CORP\nBill To:\nJane Doe")
        assert structure.headers[0].text == "ACME CORP"
        assert structure.section("bill to") is not None
        assert structure.section("bill to").content == ["Bill To:", "Jane Doe"]

    def test_markup_table(self):
        markup = "| Item | Qty | Amount |\n|---|---|---|\n| Widget | 2 | $20.00 |"
        structure = DocumentStructureAnalyzer().analyze("", markup)
        assert len(structure.tables) == 1
        table = structure.tables[0]
        assert table.headers == ["Item", "Qty", "Amount"]
        assert table.rows == [["Widget", "2", "$20.00"]]

    def test_markup_heading(self):
        structure = DocumentStructureAnalyzer().analyze("", "## Globex LLC\ntext")
        assert structure.headers[0].from_markup
        assert structure.headers[0].level == 2

    def test_key_value_region(self):
        structure = DocumentStructureAnalyzer().analyze("Invoice: 1\nDate: 2\nplain line")
        assert structure.in_key_value_region(0)
        assert structure.in_key_value_region(1)
        assert not structure.in_key_value_region(2)

    def test_split_table_row(self):
        assert split_table_row("| a | b |") == ["a", "b"]
        assert split_table_row("not a row") is None


class TestFieldMapper:
    def test_exact_synonym(self):
        assert FieldMapper().canonicalize("Invoice No.") == "invoice_number"
        assert FieldMapper().canonicalize("Amount Due") == "total_amount"

    def test_canonical_name_maps_to_itself(self):
        assert FieldMapper().canonicalize("vendor_name") == "vendor_name"

    def test_similarity_match(self):
        assert FieldMapper().canonicalize("Invoice Numbr") == "invoice_number"

    def test_canonicalization_is_idempotent(self):
        mapper = FieldMapper()
        for label in ("Invoice No.", "Amount Due", "Invoice Numbr", "Payment Terms", "Ship To"):
            first = mapper.canonicalize(label)
            assert mapper.canonicalize(label) == first
            if first is not None:
                assert mapper.canonicalize(first) == first

    def test_unknown_label(self):
        assert FieldMapper().canonicalize("Payment Terms") is None
        assert FieldMapper().canonicalize("") is None

    def test_lookup_is_exact_only(self):
        mapper = FieldMapper()
        assert mapper.lookup("Bill To") == "bill_to"
        assert mapper.lookup("Invoice Numbr") is None

    def test_normalize_label(self):
        assert normalize_label("Invoice_Number:") == "invoice number"


class TestFieldValueCleaner:
    def test_money(self):
        assert FieldValueCleaner().clean("total_amount", "$1,234.50") == "1234.50"

    def test_short_invoice_number_rejected(self):
        assert FieldValueCleaner().clean("invoice_number", "#1") is None

    def test_date_strict_and_lenient(self):
        cleaner = FieldValueCleaner()
        assert cleaner.clean("invoice_date", "03/15/2024") == "2024-03-15"
        assert cleaner.clean("invoice_date", "13/45/2024", strict=True) is None
        assert cleaner.clean("invoice_date", "13/45/2024") == "13/45/2024"

    def test_currency_symbol(self):
        assert FieldValueCleaner().clean("currency", "€") == "EUR"

    def test_address_stops_at_next_section(self):
        value = FieldValueCleaner().clean("bill_to", "Jane Doe\n456 Oak Avenue\nInvoice Date: 03/15/2024")
        assert value == "Jane Doe\n456 Oak Avenue"


class TestLineItemRowParser:
    def test_us_text_row_with_quantity_column(self):
        item = LineItemRowParser().parse_text_row("Widget A    2    $10.00    $20.00", 1)
        assert item.description == "Widget A"
        assert item.qty == 2.0
        assert item.unit_price == 10.0
        assert item.amount == 20.0

    def test_european_text_row(self):
        item = LineItemRowParser().parse_text_row("Beratung  130,00 €  1  130,00 €", 1)
        assert item.description == "Beratung"
        assert item.amount == 130.0

    def test_summary_rows_ignored(self):
        assert LineItemRowParser().parse_text_row("Subtotal    $50.00    $50.00", 1) is None

    def test_table_row(self):
        item = LineItemRowParser().parse_table_row(["Widget", "2", "$20.00"], 3)
        assert item.line_number == 3
        assert item.unit_price == 10.0

    def test_json_renumbers_and_tolerates_garbage(self):
        items = LineItemRowParser().parse_text_row("Widget A    2    $10.00    $20.00", 7)
        restored = line_items_from_json(line_items_to_json([items, items]))
        assert [i.line_number for i in restored] == [1, 2]
        assert line_items_from_json("not json") == []
        assert line_items_from_json(json.dumps({"a": 1})) == []


class TestCandidateExtractor:
    def test_labeled_invoice_number(self):
        result = CandidateExtractor().extract(RawDocument(text="Invoice Number: INV-2024-001"))
        numbers = [c for c in result.candidates if c.field == "invoice_number"]
        best = max(numbers, key=lambda c: c.confidence)
        assert best.value == "INV-2024-001"
        assert best.confidence >= 0.85

    def test_layers_report_counts(self, sample_invoice_text):
        result = CandidateExtractor().extract(RawDocument(text=sample_invoice_text))
        assert set(result.layer_counts) == {"pattern", "markup_table", "spatial", "template", "fuzzy"}
        assert result.document_type == "invoice"
        assert "total_amount" in result.fields_found

    def test_confidences_bounded(self, sample_invoice_text):
        result = CandidateExtractor().extract(RawDocument(text=sample_invoice_text))
        assert all(0.0 <= c.confidence <= 1.0 for c in result.candidates)

    def test_markup_key_value_table(self):
        document = RawDocument(text="", markup="| Invoice Number | INV-42-A |\n| Total | $99.00 |")
        result = CandidateExtractor().extract(document)
        markup_candidates = {c.field: c for c in result.candidates if c.method == "markup_table"}
        assert markup_candidates["invoice_number"].value == "INV-42-A"
        assert markup_candidates["total_amount"].value == "99.00"
        assert markup_candidates["total_amount"].confidence == pytest.approx(0.9)

    def test_fuzzy_label_for_misspelled_total(self):
        result = CandidateExtractor().extract(RawDocument(text="Ttl: 45.00"))
        fuzzy = [c for c in result.candidates if c.method == "fuzzy:label"]
        assert any(c.field == "total_amount" and c.value == "45.00" for c in fuzzy)

    def test_nothing_found(self):
        with pytest.raises(NoCandidatesError):
            CandidateExtractor().extract(RawDocument(text="..."))

    def test_document_type(self):
        assert CandidateExtractor.detect_document_type("Monthly STATEMENT") == "statement"
        assert CandidateExtractor.detect_document_type("Thanks for your purchase") == "receipt"
        assert CandidateExtractor.detect_document_type("hello") == "unknown"


def by_method(result, method, field_name=None):
    return [
        c for c in result.candidates
        if c.method == method and (field_name is None or c.field == field_name)
    ]


FILLER = "Remit promptly\nThank you\nQuestions welcome\nSee terms\nPage one\n"


class TestPatternLayerConfidence:
    def test_top_line_and_colon_bonus_clamped(self):
        result = CandidateExtractor().extract(RawDocument(text="Invoice Number: INV-2024-001"))
        candidate = by_method(result, "pattern:explicit_label", "invoice_number")[0]
        assert candidate.confidence == pytest.approx(0.99)
        assert candidate.line == 0

    def test_colon_bonus_below_top_lines(self):
        result = CandidateExtractor().extract(RawDocument(text=FILLER + "Subtotal: $40.00"))
        candidate = by_method(result, "pattern:explicit_label", "subtotal")[0]
        assert candidate.value == "40.00"
        assert candidate.line == 5
        assert candidate.confidence == pytest.approx(0.95)

    def test_base_confidence_without_bonuses(self):
        result = CandidateExtractor().extract(RawDocument(text=FILLER + "Subtotal 40.00"))
        candidate = by_method(result, "pattern:explicit_label", "subtotal")[0]
        assert candidate.confidence == pytest.approx(0.9)

    def test_short_value_penalty(self):
        result = CandidateExtractor().extract(RawDocument(text=FILLER + "Subtotal: 7"))
        candidate = by_method(result, "pattern:explicit_label", "subtotal")[0]
        assert candidate.value == "7.00"
        assert candidate.confidence == pytest.approx(0.75)

    def test_exclude_filter_drops_known_false_positive(self):
        excluded = CandidateExtractor().extract(RawDocument(text="Reference: PENDING"))
        kept = CandidateExtractor().extract(RawDocument(text="Reference: PO-12345"))

        assert not by_method(excluded, "pattern:statement_ref")
        assert by_method(kept, "pattern:statement_ref")[0].value == "PO-12345"

    def test_max_lines_restriction(self):
        near = CandidateExtractor().extract(RawDocument(text="AB12\nRemit promptly"))
        far = CandidateExtractor().extract(RawDocument(text=FILLER + "AB123456"))

        candidate = by_method(near, "pattern:position_based")[0]
        assert candidate.value == "AB12"
        assert candidate.confidence == pytest.approx(0.7)
        assert not by_method(far, "pattern:position_based")
        assert by_method(far, "pattern:standalone_code")[0].value == "AB123456"


class TestSpatialLayer:
    def test_colon_pair_outside_key_value_region(self):
        result = CandidateExtractor().extract(RawDocument(text="Subtotal: $40.00\nThank you"))
        candidate = by_method(result, "spatial:colon_pair", "subtotal")[0]
        assert candidate.value == "40.00"
        assert candidate.confidence == pytest.approx(0.8)

    def test_key_value_region(self):
        result = CandidateExtractor().extract(RawDocument(text="Subtotal: $40.00\nTax: $4.00"))
        candidates = by_method(result, "spatial:key_value_region")

        assert {c.field for c in candidates} == {"subtotal", "tax"}
        assert all(c.confidence == pytest.approx(0.85) for c in candidates)

    def test_column_pair(self):
        result = CandidateExtractor().extract(RawDocument(text="Subtotal    40.00"))
        candidate = by_method(result, "spatial:column_pair", "subtotal")[0]
        assert candidate.value == "40.00"
        assert candidate.confidence == pytest.approx(0.75)

    def test_label_line_then_value(self):
        result = CandidateExtractor().extract(RawDocument(text="Total\n$45.00"))
        candidate = by_method(result, "spatial:next_line", "total_amount")[0]
        assert candidate.value == "45.00"
        assert candidate.line == 1
        assert candidate.confidence == pytest.approx(0.7)

    def test_empty_colon_value_reads_next_line(self):
        result = CandidateExtractor().extract(RawDocument(text="Invoice Number:\nINV-77-A"))
        candidate = by_method(result, "spatial:next_line", "invoice_number")[0]
        assert candidate.value == "INV-77-A"
        assert candidate.confidence == pytest.approx(0.7)


class TestKeywordProximity:
    def test_invoice_number_on_next_line(self):
        result = CandidateExtractor().extract(RawDocument(text="INVOICE\nINV-88231"))
        candidate = by_method(result, "spatial:proximity", "invoice_number")[0]
        assert candidate.value == "INV-88231"
        assert candidate.line == 1
        assert candidate.confidence == pytest.approx(0.65)

    def test_total_and_date_after_keyword(self):
        text = "Please pay the total of 45.00 today\nDate of issue 03/15/2024"
        result = CandidateExtractor().extract(RawDocument(text=text))

        total = by_method(result, "spatial:proximity", "total_amount")[0]
        date = by_method(result, "spatial:proximity", "invoice_date")[0]
        assert (total.value, total.confidence) == ("45.00", pytest.approx(0.75))
        assert (date.value, date.confidence) == ("2024-03-15", pytest.approx(0.7))

    def test_year_of_following_date_line_is_not_an_invoice_number(self):
        text = "Widget Co LLC\nINVOICE\nInvoice Date: March 5, 2024\nSubtotal: $25.00\nTotal: $25.00"
        result = CandidateExtractor().extract(RawDocument(text=text))
        assert not [c for c in result.candidates if c.field == "invoice_number"]

    def test_invoice_total_is_not_an_invoice_number(self):
        text = "Widget Co LLC\nInvoice Total: $110.00\nSubtotal: $110.00"
        result = CandidateExtractor().extract(RawDocument(text=text))
        assert not [c for c in result.candidates if c.field == "invoice_number"]

    def test_amount_after_keyword_rejected(self):
        result = CandidateExtractor().extract(RawDocument(text="INVOICE\n$110.00 paid in full"))
        assert not by_method(result, "spatial:proximity", "invoice_number")


class TestTemplateLayer:
    def test_statement_rules(self):
        text = (
            "Monthly Statement\n"
            "Account Number: 99887766\n"
            "Statement Date: 03/01/2024\n"
            "New Balance: $250.00"
        )
        result = CandidateExtractor().extract(RawDocument(text=text))
        found = {c.field: c for c in by_method(result, "template:statement")}

        assert result.document_type == "statement"
        assert found["invoice_number"].value == "99887766"
        assert found["invoice_date"].value == "2024-03-01"
        assert found["total_amount"].value == "250.00"
        assert all(c.confidence == pytest.approx(0.75) for c in found.values())

    def test_receipt_rules(self):
        text = "Coffee Shop\nReceipt\nLatte 4.50\nTotal 4.50"
        result = CandidateExtractor().extract(RawDocument(text=text))

        merchant = by_method(result, "template:receipt_merchant")[0]
        total = by_method(result, "template:receipt_total")[0]
        assert result.document_type == "receipt"
        assert (merchant.value, merchant.confidence) == ("Coffee Shop", pytest.approx(0.7))
        assert (total.value, total.line, total.confidence) == ("4.50", 3, pytest.approx(0.75))

    def test_item_name_close_to_date_label_is_not_a_date(self):
        result = CandidateExtractor().extract(RawDocument(text="Receipt\nCoffee Shop\nLatte 4.50\nTotal 4.50"))
        assert not [c for c in result.candidates if c.field == "invoice_date"]
