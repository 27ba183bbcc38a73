"""Shared test fixtures for the invoice parser tests."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import ConfigurationManager
from src.enhancement.service import EnhancementResult, EnhancementService
from src.extraction.invoice import CanonicalInvoice, LineItem
from src.ocr_engine.engine import OCRBackend
from src.ocr_engine.ocr_result import OCRResult
from src.postprocessor.validators import InvoiceValidator
from src.utils.exceptions import NoCandidatesError

TODAY = date(2024, 6, 1)


@pytest.fixture(autouse=True)
def reset_config():
    """Drop in-memory configuration overrides between tests."""
    yield
    ConfigurationManager.reset()


@pytest.fixture
def sample_invoice_text() -> str:
    """A complete, arithmetically consistent US invoice."""
    return (
        "ACME Corporation Inc.\n"
        "123 Main Street\n"
        "Springfield, IL 62701\n"
        "\n"
        "Invoice Number: INV-2024-001\n"
        "Invoice Date: 03/15/2024\n"
        "\n"
        "Bill To:\n"
        "Jane Doe\n"
        "456 Oak Avenue\n"
        "\n"
        "Description    Qty    Unit Price    Amount\n"
        "Widget A    2    $10.00    $20.00\n"
        "Widget B    1    $30.00    $30.00\n"
        "\n"
        "Subtotal: $50.00\n"
        "Tax: $5.00\n"
        "Total: $55.00\n"
    )


@pytest.fixture
def simple_text() -> str:
    return "ACME Corp\nInvoice #: INV-1001\nTotal: $110.00"


@pytest.fixture
def european_text() -> str:
    return (
        "Muster GmbH\n"
        "Rechnung\n"
        "Description\n"
        "Beratung  130,00 €  1  130,00 €\n"
        "Total 130,00 €\n"
    )


@pytest.fixture
def aws_text() -> str:
    return (
        "Amazon Web Services, Inc.\n"
        "AWS Account: 1234-5678\n"
        "Invoice Number: 998877\n"
        "Invoice Date: January 5, 2024\n"
        "Billing Period: Dec 1 - Dec 31, 2023\n"
        "Usage Charges\n"
        "Total Amount Due: $250.00\n"
    )


@pytest.fixture
def sample_markup() -> str:
    return "# ACME Corp\n| Invoice Number | INV-7 |\n**$120.00**"


@pytest.fixture
def validator() -> InvoiceValidator:
    return InvoiceValidator(today=TODAY)


@pytest.fixture
def clean_invoice() -> CanonicalInvoice:
    """An invoice that passes every validation rule."""
    return CanonicalInvoice(
        invoice_number="INV-2024-001",
        invoice_date="2024-03-15",
        vendor_name="ACME Corp",
        currency="USD",
        subtotal=100.0,
        tax=10.0,
        total=110.0,
        line_items=[LineItem(1, "Consulting", qty=1.0, unit_price=100.0, amount=100.0)],
    )


class FakeOCRBackend(OCRBackend):
    """Returns a fixed result, or raises the given error."""

    name = 'fake'

    def __init__(self, result: OCRResult = None, error: Exception = None):
        self.result = result
        self.error = error
        self.calls = 0

    def extract_text(self, source):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class FakeEnhancementService(EnhancementService):
    """Returns a canned response, or raises the given error."""

    def __init__(self, response=None, error: Exception = None):
        self.response = response
        self.error = error
        self.calls = 0

    def enhance(self, raw_text, invoice, confidence):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.response


class FailingExtractor:
    """Stands in for the candidate extractor when the cascade must fall back."""

    def extract(self, document):
        raise NoCandidatesError(len(document.lines))


@pytest.fixture
def fake_ocr_backend():
    return FakeOCRBackend


@pytest.fixture
def fake_enhancement_service():
    return FakeEnhancementService


@pytest.fixture
def failing_extractor() -> FailingExtractor:
    return FailingExtractor()


@pytest.fixture
def enhanced_result(clean_invoice) -> EnhancementResult:
    return EnhancementResult(
        enhanced=clean_invoice,
        confidence=0.9,
        improvements=["Corrected total", "Added vendor name"],
    )
