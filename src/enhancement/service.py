"""
Enhancement Service Interface.

The language-model enhancement step is an external collaborator. This
module defines what the pipeline expects from it and how a raw model
response is turned into an ``EnhancementResult``:

    - parse JSON from the response (bare, fenced or embedded in prose)
    - normalize the enhanced record to the canonical schema
    - reconcile subtotal / total arithmetic

Author: ML Engineering Team
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from config import get_config
from src.extraction.invoice import CanonicalInvoice, LineItem
from src.postprocessor.normalizers import DateNormalizer
from src.utils.exceptions import EnhancementResponseError
from src.utils.helpers import clamp
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

EMPTY_MARKERS = ('', 'null', 'undefined', 'none')


@dataclass
class EnhancementResult:
    """
    Enhanced invoice as returned by the collaborator.

    Attributes:
        enhanced: Corrected invoice record
        confidence: Collaborator's confidence in the record
        improvements: Human-readable notes on what changed
        validation_errors: Issues the collaborator could not resolve
    """
    enhanced: CanonicalInvoice
    confidence: float
    improvements: List[str] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)


class EnhancementService(ABC):
    """
    Abstract base class for enhancement collaborators.

    Implementations call a language model with the OCR text and the
    current structured guess. They may return an ``EnhancementResult`` or
    the raw response text, which the orchestrator parses with
    ``parse_enhancement_response``. Failures are raised, never retried
    here; the orchestrator absorbs them.
    """

    @abstractmethod
    def enhance(self, raw_text: str, invoice: CanonicalInvoice,
                confidence: float) -> Union[EnhancementResult, str]:
        """
        Enhance an invoice.

        Args:
            raw_text: OCR text of the document.
            invoice: Current structured guess.
            confidence: Current (validation-adjusted) confidence.

        Returns:
            EnhancementResult, or the raw response text.
        """
        pass


def try_parse_json(raw: str) -> Optional[Dict[str, Any]]:
    """
    Try to extract a JSON object from a model response.

    Handles direct JSON, markdown code fences and JSON surrounded by prose.
    Returns None when no object can be parsed.
    """
    if not raw:
        return None

    cleaned = raw.strip()

    try:
        result = json.loads(cleaned)
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError:
        pass

    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", cleaned, re.DOTALL)
    if match:
        try:
            result = json.loads(match.group(1).strip())
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

    # Outermost braces, so nested objects stay intact
    match = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if match:
        try:
            result = json.loads(match.group(0))
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

    logger.warning(f"Could not parse JSON from enhancement response: {cleaned[:200]}")
    return None


def parse_enhancement_response(content: str) -> EnhancementResult:
    """
    Turn a raw collaborator response into an EnhancementResult.

    The payload must carry ``enhanced_data`` (an object) and a numeric
    ``confidence``. Confidence is clamped to [0.5, 0.95] by default.

    Args:
        content: Raw response text.

    Returns:
        EnhancementResult with a normalized invoice.

    Raises:
        EnhancementResponseError: If no valid payload can be read.

    Example:
        >>> result = parse_enhancement_response('{"enhanced_data": {"total": "110"}, "confidence": 0.99}')
        >>> result.enhanced.total, result.confidence
        (110.0, 0.95)
    """
    payload = try_parse_json(content)
    if payload is None:
        raise EnhancementResponseError("response is not valid JSON", preview=(content or '')[:200])

    data = payload.get('enhanced_data')
    confidence = payload.get('confidence')
    if not isinstance(data, dict) or isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise EnhancementResponseError(
            "response must contain enhanced_data and a numeric confidence",
            preview=(content or '')[:200]
        )

    bounds = get_config("enhancement.response_confidence_bounds", [0.5, 0.95])

    return EnhancementResult(
        enhanced=normalize_enhanced_data(data),
        confidence=clamp(float(confidence), bounds),
        improvements=[str(note) for note in payload.get('improvements') or []],
        validation_errors=[str(note) for note in payload.get('validation_errors') or []],
    )


def normalize_enhanced_data(data: Dict[str, Any]) -> CanonicalInvoice:
    """
    Normalize a model-produced record to the canonical schema.

    Strings are cleaned (nested address objects flattened), dates become
    ISO or empty, amounts non-negative floats, line items without a
    description or a positive amount are dropped and the rest renumbered.
    Totals are then reconciled.
    """
    invoice = CanonicalInvoice(
        invoice_number=_clean_string(data.get('invoice_number')),
        invoice_date=_clean_date(data.get('invoice_date') or data.get('statement_date')),
        vendor_name=_clean_string(data.get('vendor_name')),
        vendor_address=_clean_string(data.get('vendor_address')),
        bill_to=_clean_string(data.get('bill_to')),
        ship_to=_clean_string(data.get('ship_to')),
        currency=(_clean_string(data.get('currency')) or 'USD').upper(),
        subtotal=_clean_amount(data.get('subtotal')),
        tax=_clean_amount(data.get('tax')),
        shipping=_clean_amount(data.get('shipping')),
        total=_clean_amount(data.get('total')),
        line_items=_clean_line_items(data.get('line_items')),
    )
    reconcile_totals(invoice)
    return invoice


def reconcile_totals(invoice: CanonicalInvoice) -> None:
    """
    Make subtotal consistent with line items and total, in place.

    Subtotal comes from the line items when missing, equals the total when
    there is no breakdown at all, and is derived from total - tax -
    shipping when the arithmetic does not add up.
    """
    items_total = invoice.line_items_total
    if items_total > 0 and invoice.subtotal == 0:
        invoice.subtotal = items_total

    if invoice.total > 0 and invoice.subtotal == 0 and invoice.tax == 0 and invoice.shipping == 0:
        invoice.subtotal = invoice.total

    expected = invoice.subtotal + invoice.tax + invoice.shipping
    if invoice.total > 0 and abs(invoice.total - expected) > 0.01:
        invoice.subtotal = max(0.0, invoice.total - invoice.tax - invoice.shipping)


def _clean_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        if any(value.get(k) for k in ('street', 'city', 'state')):
            parts = [str(value.get(k) or '') for k in ('street', 'city', 'state', 'zip')]
            return ' '.join(p for p in parts if p).strip() or None
        return json.dumps(value)

    text = str(value).strip()
    if text.lower() in EMPTY_MARKERS:
        return None
    return text


def _clean_date(value: Any) -> Optional[str]:
    text = _clean_string(value)
    if text is None:
        return None
    return DateNormalizer().normalize(text)


def _clean_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return max(0.0, float(value))

    text = str(value).strip()
    if text.lower() in EMPTY_MARKERS:
        return 0.0
    try:
        return max(0.0, float(re.sub(r'[^0-9.\-]', '', text)))
    except ValueError:
        return 0.0


def _clean_line_items(items: Any) -> List[LineItem]:
    if not isinstance(items, list):
        return []

    cleaned = []
    for item in items:
        if not isinstance(item, dict):
            continue
        description = _clean_string(item.get('description'))
        amount = _clean_amount(item.get('amount'))
        if not description or amount <= 0:
            continue
        cleaned.append(LineItem(
            line_number=len(cleaned) + 1,
            description=description,
            qty=_clean_amount(item.get('qty')) or 1.0,
            unit_price=_clean_amount(item.get('unit_price') or item.get('amount')),
            amount=amount,
            tax=_clean_amount(item.get('tax')),
            sku=_clean_string(item.get('sku')),
        ))
    return cleaned
