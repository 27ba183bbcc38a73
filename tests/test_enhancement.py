"""Tests for the enhancement invocation and adoption policy and response parsing."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import ConfigurationManager
from src.enhancement.orchestrator import EnhancementOrchestrator
from src.enhancement.service import (
    EnhancementResult,
    normalize_enhanced_data,
    parse_enhancement_response,
    reconcile_totals,
    try_parse_json,
)
from src.extraction.invoice import CanonicalInvoice
from src.postprocessor.validators import ValidationError, ValidationResult
from src.utils.exceptions import EnhancementResponseError


@pytest.fixture
def weak_invoice() -> CanonicalInvoice:
    return CanonicalInvoice(invoice_number="INV-2024-001", raw_ocr_text="original text", ocr_similarity_score=0.6)


class TestInvocationPolicy:
    def test_low_confidence_triggers(self, validator):
        orchestrator = EnhancementOrchestrator(validator=validator)
        assert orchestrator.should_enhance(0.79, ValidationResult())
        assert not orchestrator.should_enhance(0.85, ValidationResult())

    def test_critical_error_at_moderate_confidence(self, validator):
        validation = ValidationResult(is_valid=False, errors=[ValidationError("total", "missing", "critical")])
        assert EnhancementOrchestrator(validator=validator).should_enhance(0.6, validation)

    def test_critical_error_triggers_even_when_confident(self, validator):
        orchestrator = EnhancementOrchestrator(validator=validator)
        validation = ValidationResult(is_valid=False, errors=[ValidationError("total", "missing", "critical")])
        assert orchestrator.should_enhance(0.95, validation)

    def test_not_available_without_service(self, validator):
        assert not EnhancementOrchestrator(validator=validator).available

    def test_disabled_by_config(self, validator, fake_enhancement_service):
        ConfigurationManager().set("enhancement.enabled", False)
        orchestrator = EnhancementOrchestrator(fake_enhancement_service(), validator)
        assert not orchestrator.available


class TestAdoptionPolicy:
    def test_higher_confidence_adopted(self):
        assert EnhancementOrchestrator().should_adopt(0.6, 0.61, 0)

    def test_many_improvements_inside_band(self):
        orchestrator = EnhancementOrchestrator()
        assert orchestrator.should_adopt(0.7, 0.68, 3)
        assert not orchestrator.should_adopt(0.7, 0.68, 2)
        assert not orchestrator.should_adopt(0.7, 0.6, 5)


class TestEnhance:
    def test_better_result_adopted(self, validator, weak_invoice, enhanced_result, fake_enhancement_service):
        service = fake_enhancement_service(response=enhanced_result)
        orchestrator = EnhancementOrchestrator(service, validator)
        validation = validator.validate(weak_invoice)

        decision = orchestrator.enhance("original text", weak_invoice, 0.55, validation)

        assert service.calls == 1
        assert decision.invoked
        assert decision.adopted
        assert decision.invoice.total == 110.0
        assert decision.confidence == pytest.approx(0.99)
        assert decision.improvements == ["Corrected total", "Added vendor name"]
        assert decision.invoice.raw_ocr_text == "original text"
        assert decision.invoice.ocr_similarity_score == 0.6

    def test_worse_result_rejected(self, validator, weak_invoice, fake_enhancement_service):
        result = EnhancementResult(enhanced=CanonicalInvoice(total=0.0), confidence=0.6, improvements=["Tried"])
        orchestrator = EnhancementOrchestrator(fake_enhancement_service(response=result), validator)
        validation = validator.validate(weak_invoice)

        decision = orchestrator.enhance("text", weak_invoice, 0.55, validation)

        assert decision.invoked
        assert not decision.adopted
        assert decision.invoice is weak_invoice
        assert decision.confidence == 0.55
        assert decision.improvements == []

    def test_lower_confidence_single_note_rejected(self, validator, weak_invoice, clean_invoice,
                                                  fake_enhancement_service):
        clean_invoice.currency = "XYZ"
        result = EnhancementResult(enhanced=clean_invoice, confidence=0.6, improvements=["Fixed date"])
        orchestrator = EnhancementOrchestrator(fake_enhancement_service(response=result), validator)

        decision = orchestrator.enhance("text", weak_invoice, 0.6, validator.validate(weak_invoice))

        assert not decision.adopted
        assert decision.confidence == 0.6
        assert decision.invoice is weak_invoice

    def test_band_adoption_keeps_near_confidence(self, validator, weak_invoice, clean_invoice,
                                                 fake_enhancement_service):
        clean_invoice.currency = "XYZ"
        result = EnhancementResult(enhanced=clean_invoice, confidence=0.73, improvements=["a", "b", "c"])
        orchestrator = EnhancementOrchestrator(fake_enhancement_service(response=result), validator)

        decision = orchestrator.enhance("text", weak_invoice, 0.7, validator.validate(weak_invoice))

        assert decision.adopted
        assert decision.confidence == pytest.approx(0.68)

    def test_service_error_absorbed(self, validator, weak_invoice, fake_enhancement_service):
        service = fake_enhancement_service(error=RuntimeError("timeout"))
        orchestrator = EnhancementOrchestrator(service, validator)

        decision = orchestrator.enhance("text", weak_invoice, 0.4, ValidationResult())

        assert decision.invoked
        assert not decision.adopted
        assert decision.invoice is weak_invoice
        assert "timeout" in decision.reason

    def test_empty_response_absorbed(self, validator, weak_invoice, fake_enhancement_service):
        orchestrator = EnhancementOrchestrator(fake_enhancement_service(response=None), validator)
        decision = orchestrator.enhance("text", weak_invoice, 0.4, ValidationResult())
        assert not decision.adopted
        assert decision.confidence == 0.4

    def test_raw_response_parsed(self, validator, weak_invoice, fake_enhancement_service):
        payload = {
            "enhanced_data": {
                "invoice_number": "INV-2024-001",
                "invoice_date": "2024-03-15",
                "vendor_name": "ACME Corp",
                "subtotal": 100,
                "tax": 10,
                "total": 110,
                "line_items": [{"description": "Consulting", "amount": 100}],
            },
            "confidence": 0.99,
            "improvements": ["Filled totals"],
        }
        response = "Here you go:\n```json\n" + json.dumps(payload) + "\n```"
        orchestrator = EnhancementOrchestrator(fake_enhancement_service(response=response), validator)

        decision = orchestrator.enhance("text", weak_invoice, 0.3, validator.validate(weak_invoice))

        assert decision.adopted
        assert decision.invoice.vendor_name == "ACME Corp"
        assert decision.invoice.line_items[0].unit_price == 100.0

    def test_unconfigured_service_not_invoked(self, validator, weak_invoice):
        decision = EnhancementOrchestrator(validator=validator).enhance("text", weak_invoice, 0.3, ValidationResult())
        assert not decision.invoked
        assert decision.reason == "enhancement service not configured"


class TestResponseParsing:
    def test_try_parse_json_forms(self):
        assert try_parse_json('{"a": 1}') == {"a": 1}
        assert try_parse_json('```\n{"a": 1}\n```') == {"a": 1}
        assert try_parse_json('result: {"a": {"b": 2}} done') == {"a": {"b": 2}}
        assert try_parse_json("no json here") is None
        assert try_parse_json("[1, 2]") is None

    def test_confidence_clamped(self):
        low = parse_enhancement_response('{"enhanced_data": {"total": 5}, "confidence": 0.2}')
        high = parse_enhancement_response('{"enhanced_data": {"total": 5}, "confidence": 1}')
        assert low.confidence == 0.5
        assert high.confidence == 0.95

    def test_invalid_payloads(self):
        with pytest.raises(EnhancementResponseError):
            parse_enhancement_response("I could not read the invoice")
        with pytest.raises(EnhancementResponseError):
            parse_enhancement_response('{"confidence": 0.8}')
        with pytest.raises(EnhancementResponseError):
            parse_enhancement_response('{"enhanced_data": {}, "confidence": "high"}')


class TestNormalization:
    def test_normalize_enhanced_data(self):
        invoice = normalize_enhanced_data({
            "invoice_number": "null",
            "invoice_date": "March 15, 2024",
            "vendor_address": {"street": "1 Main St", "city": "Springfield"},
            "currency": "eur",
            "tax": "10",
            "total": "$110",
            "line_items": [
                {"description": "", "amount": 5},
                {"description": "Design", "amount": "60"},
                {"description": "Build", "amount": "40", "qty": 2},
            ],
        })

        assert invoice.invoice_number is None
        assert invoice.invoice_date == "2024-03-15"
        assert invoice.vendor_address == "1 Main St Springfield"
        assert invoice.currency == "EUR"
        assert [item.line_number for item in invoice.line_items] == [1, 2]
        assert invoice.line_items[1].qty == 2.0
        assert invoice.subtotal == 100.0
        assert invoice.total == 110.0

    def test_negative_amounts_floored(self):
        assert normalize_enhanced_data({"total": -20}).total == 0.0

    def test_reconcile_from_total(self):
        invoice = CanonicalInvoice(tax=10.0, total=110.0)
        reconcile_totals(invoice)
        assert invoice.subtotal == 100.0

    def test_reconcile_without_breakdown(self):
        invoice = CanonicalInvoice(total=75.0)
        reconcile_totals(invoice)
        assert invoice.subtotal == 75.0
