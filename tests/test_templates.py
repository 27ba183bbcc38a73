"""Tests for vendor template recognition and categorization."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.extraction.templates import InvoiceTemplate, TemplateRecognizer, normalize_for_matching
from src.utils.exceptions import ConfigurationError


@pytest.fixture
def recognizer() -> TemplateRecognizer:
    return TemplateRecognizer()


class TestRecognize:
    def test_aws_invoice(self, recognizer, aws_text):
        match = recognizer.recognize(aws_text)

        assert match.template_id == "aws-invoice"
        assert match.category == "Cloud/Infrastructure"
        assert match.confidence == pytest.approx(0.4 * 2 / 3 + 0.3 * 6 / 7 + 0.3)
        assert "layout: usage charges" in match.matched_patterns

    def test_generic_invoice(self, recognizer, sample_invoice_text):
        match = recognizer.recognize(sample_invoice_text)
        assert match.template_id == "generic-business"
        assert recognizer.categorize(match) == "General"

    def test_no_match(self, recognizer):
        assert recognizer.recognize("hello world") is None

    def test_vendor_name_counts(self, recognizer):
        text = (
            "Account Number: 77\nInvoice Number: 1\nWireless Service\nMonthly Charges\nData Usage\n"
            "Phone Number\nService Period: May\nCurrent Charges: 5\nAmount Due: 5\nTotal Due: 5\nBill Date: x"
        )
        assert recognizer.recognize(text) is None
        assert recognizer.recognize(text, vendor_name="Verizon Wireless").template_id == "telecom-invoice"

    def test_match_to_dict(self, recognizer, aws_text):
        data = recognizer.recognize(aws_text).to_dict()
        assert data["template_name"] == "Amazon Web Services"
        assert data["confidence"] == round(data["confidence"], 4)


class TestCategorize:
    def test_vendor_keyword_fallback(self, recognizer):
        assert recognizer.categorize(None, "Verizon Wireless") == "Telecommunications"
        assert recognizer.categorize(None, "Amazon Marketplace") == "E-commerce/Cloud"

    def test_default_category(self, recognizer):
        assert recognizer.categorize(None, None) == "General"
        assert recognizer.categorize(None, "Smith & Sons") == "General"


class TestCatalogue:
    def test_add_replace_remove(self, recognizer):
        custom = InvoiceTemplate(id="acme", name="ACME", category="Supplies", vendor_patterns=["acme"])
        count = len(recognizer.templates)

        recognizer.add_template(custom)
        recognizer.add_template(InvoiceTemplate(id="acme", name="ACME v2", category="Supplies"))

        assert len(recognizer.templates) == count + 1
        assert recognizer.get_template("acme").name == "ACME v2"
        assert recognizer.remove_template("acme")
        assert not recognizer.remove_template("acme")

    def test_by_category(self, recognizer):
        ids = {t.id for t in recognizer.get_templates_by_category("Software/SaaS")}
        assert ids == {"microsoft-office", "google-workspace"}

    def test_custom_templates_argument(self):
        custom = InvoiceTemplate(id="acme", name="ACME", category="Supplies", vendor_patterns=["acme"])
        recognizer = TemplateRecognizer(custom_templates=[custom])
        assert recognizer.get_template("acme") is custom

    def test_bad_catalogue(self, tmp_path):
        path = tmp_path / "templates.yaml"
        path.write_text("templates:\n  - name: missing id\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            TemplateRecognizer(catalogue_path=str(path))

    def test_normalize_for_matching(self):
        assert normalize_for_matching("Amazon.com, Inc.") == "amazon com inc"
