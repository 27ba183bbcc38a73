"""
Invoice Validation Module.

Cross-field business rule checks on a built invoice:
    - Mathematical consistency (line items, subtotal, tax, shipping, total)
    - Date format and plausibility
    - Completeness of critical and important fields
    - Currency and sign checks
    - Line item sanity

Findings are returned as data, never raised. ``adjust_confidence_by_validation``
turns them into a confidence adjustment.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from config import get_config
from src.extraction.invoice import CanonicalInvoice
from src.postprocessor.normalizers import ISO_DATE_PATTERN
from src.utils.helpers import clamp
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

CRITICAL = 'critical'
MAJOR = 'major'
MINOR = 'minor'


@dataclass
class ValidationError:
    """
    A rule violation.

    Attributes:
        field: Offending field (``line_items[0].qty`` for item fields)
        message: Human-readable description
        severity: critical, major or minor
        suggested_fix: How a reviewer could fix it, when obvious
    """
    field: str
    message: str
    severity: str
    suggested_fix: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'message': self.message,
            'severity': self.severity,
            'suggested_fix': self.suggested_fix,
        }


@dataclass
class ValidationWarning:
    """A suspicious but possible value; ``confidence_impact`` is negative."""
    field: str
    message: str
    confidence_impact: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'message': self.message,
            'confidence_impact': self.confidence_impact,
        }


@dataclass
class ConfidenceAdjustment:
    field: str
    impact: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {'field': self.field, 'impact': self.impact, 'reason': self.reason}


@dataclass
class ValidationResult:
    """
    Outcome of validating one invoice.

    Attributes:
        is_valid: True when there is no critical error
        errors: Rule violations
        warnings: Suspicious values
        confidence_adjustments: One entry per warning
    """
    is_valid: bool = True
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    confidence_adjustments: List[ConfidenceAdjustment] = field(default_factory=list)

    def count(self, severity: str) -> int:
        return sum(1 for error in self.errors if error.severity == severity)

    @property
    def has_critical(self) -> bool:
        return self.count(CRITICAL) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': [e.to_dict() for e in self.errors],
            'warnings': [w.to_dict() for w in self.warnings],
            'confidence_adjustments': [a.to_dict() for a in self.confidence_adjustments],
        }


class InvoiceValidator:
    """
    Validates a CanonicalInvoice against business rules.

    Amount comparisons use a relative tolerance (2% by default) of the
    expected value. The validator is pure: the same invoice always yields
    the same result for a given ``today``.

    Attributes:
        tolerance: Relative tolerance for amount comparisons
        max_year_distance: Years from today after which a date is unusual
        valid_currencies: Currency codes accepted without a warning

    Example:
        >>> validator = InvoiceValidator()
        >>> result = validator.validate(invoice)
        >>> result.is_valid
        True
        >>> [e.message for e in result.errors]
        ["Subtotal (25.00) doesn't match line items total (30.00)"]
    """

    def __init__(self, today: Optional[date] = None) -> None:
        """
        Initialize the validator.

        Args:
            today: Reference date for the date plausibility check;
                defaults to the current date at validation time.
        """
        self.today = today
        self.tolerance = get_config("validation.tolerance", 0.02)
        self.max_year_distance = get_config("validation.max_year_distance", 10)
        self.valid_currencies = [c.upper() for c in get_config(
            "validation.valid_currencies", ['USD', 'EUR', 'GBP', 'CAD', 'AUD', 'JPY']
        )]

    def validate(self, invoice: CanonicalInvoice) -> ValidationResult:
        """
        Run every check.

        Args:
            invoice: Invoice to validate.

        Returns:
            ValidationResult with all findings.
        """
        errors: List[ValidationError] = []
        warnings: List[ValidationWarning] = []

        self._check_math(invoice, errors, warnings)
        self._check_dates(invoice, errors, warnings)
        self._check_completeness(invoice, errors, warnings)
        self._check_formats(invoice, errors, warnings)
        self._check_business_rules(invoice, errors, warnings)
        self._check_line_items(invoice, errors, warnings)

        result = ValidationResult(
            is_valid=not any(e.severity == CRITICAL for e in errors),
            errors=errors,
            warnings=warnings,
            confidence_adjustments=[
                ConfidenceAdjustment(w.field, w.confidence_impact, w.message) for w in warnings
            ],
        )

        logger.debug(
            f"Validation: valid={result.is_valid}, {len(errors)} errors, {len(warnings)} warnings"
        )
        return result

    def adjust_confidence(self, original: float, result: ValidationResult) -> float:
        return adjust_confidence_by_validation(original, result)

    def _check_math(self, invoice: CanonicalInvoice, errors: List[ValidationError],
                    warnings: List[ValidationWarning]) -> None:
        if invoice.line_items:
            items_total = invoice.line_items_total
            if abs(items_total - invoice.subtotal) > items_total * self.tolerance:
                errors.append(ValidationError(
                    'subtotal',
                    f"Subtotal ({invoice.subtotal:.2f}) doesn't match line items total ({items_total:.2f})",
                    MAJOR,
                    f"Set subtotal to {items_total:.2f}",
                ))

        calculated = invoice.subtotal + invoice.tax + invoice.shipping
        if abs(calculated - invoice.total) > calculated * self.tolerance:
            errors.append(ValidationError(
                'total',
                f"Total ({invoice.total:.2f}) doesn't match subtotal + tax + shipping ({calculated:.2f})",
                MAJOR,
                f"Set total to {calculated:.2f}",
            ))

        for index, item in enumerate(invoice.line_items):
            expected = (item.qty or 1) * item.unit_price
            if expected > 0 and abs(expected - item.amount) > expected * self.tolerance:
                warnings.append(ValidationWarning(
                    f"line_items[{index}].amount",
                    f"Line item amount may be incorrect: {item.amount:.2f} vs calculated {expected:.2f}",
                    -0.2,
                ))

    def _check_dates(self, invoice: CanonicalInvoice, errors: List[ValidationError],
                     warnings: List[ValidationWarning]) -> None:
        if not invoice.invoice_date:
            return

        if not ISO_DATE_PATTERN.match(invoice.invoice_date):
            errors.append(ValidationError(
                'invoice_date',
                f"Invalid date format: {invoice.invoice_date}. Expected YYYY-MM-DD",
                MINOR,
                'Convert to YYYY-MM-DD format',
            ))
            return

        today = self.today or date.today()
        if abs(today.year - int(invoice.invoice_date[:4])) > self.max_year_distance:
            warnings.append(ValidationWarning(
                'invoice_date', f"Invoice date seems unusual: {invoice.invoice_date}", -0.1
            ))

    def _check_completeness(self, invoice: CanonicalInvoice, errors: List[ValidationError],
                            warnings: List[ValidationWarning]) -> None:
        if not invoice.total or invoice.total <= 0:
            errors.append(ValidationError('total', 'Missing critical field: total', CRITICAL))

        for name in ('vendor_name', 'invoice_date'):
            if not getattr(invoice, name):
                warnings.append(ValidationWarning(name, f"Missing important field: {name}", -0.1))

    def _check_formats(self, invoice: CanonicalInvoice, errors: List[ValidationError],
                       warnings: List[ValidationWarning]) -> None:
        if invoice.currency and invoice.currency.upper() not in self.valid_currencies:
            warnings.append(ValidationWarning(
                'currency', f"Unusual currency code: {invoice.currency}", -0.05
            ))

        for name in CanonicalInvoice.MONEY_FIELDS:
            value = getattr(invoice, name)
            if value < 0:
                errors.append(ValidationError(
                    name, f"Negative amount not allowed: {name} = {value:.2f}", MAJOR
                ))

    def _check_business_rules(self, invoice: CanonicalInvoice, errors: List[ValidationError],
                              warnings: List[ValidationWarning]) -> None:
        subtotal = invoice.subtotal

        if invoice.tax and subtotal and invoice.tax > subtotal:
            warnings.append(ValidationWarning(
                'tax',
                f"Tax amount ({invoice.tax:.2f}) seems high compared to subtotal ({subtotal:.2f})",
                -0.15,
            ))

        if invoice.shipping and subtotal and invoice.shipping > subtotal * 0.5:
            warnings.append(ValidationWarning(
                'shipping',
                f"Shipping amount ({invoice.shipping:.2f}) seems high compared to subtotal ({subtotal:.2f})",
                -0.1,
            ))

        if invoice.total and subtotal and invoice.total < subtotal:
            errors.append(ValidationError(
                'total',
                f"Total ({invoice.total:.2f}) cannot be less than subtotal ({subtotal:.2f})",
                MAJOR,
            ))

    def _check_line_items(self, invoice: CanonicalInvoice, errors: List[ValidationError],
                          warnings: List[ValidationWarning]) -> None:
        if not invoice.line_items:
            warnings.append(ValidationWarning('line_items', 'No line items found', -0.1))
            return

        for index, item in enumerate(invoice.line_items):
            number = index + 1
            if not (item.description or '').strip():
                errors.append(ValidationError(
                    f"line_items[{index}].description", f"Line item {number} missing description", MINOR
                ))
            if item.qty <= 0:
                errors.append(ValidationError(
                    f"line_items[{index}].qty", f"Line item {number} has invalid quantity: {item.qty}", MINOR
                ))
            if item.unit_price < 0:
                errors.append(ValidationError(
                    f"line_items[{index}].unit_price",
                    f"Line item {number} has negative unit price: {item.unit_price:.2f}", MINOR
                ))
            if item.amount < 0:
                errors.append(ValidationError(
                    f"line_items[{index}].amount",
                    f"Line item {number} has negative amount: {item.amount:.2f}", MINOR
                ))


def adjust_confidence_by_validation(original: float, result: ValidationResult) -> float:
    """
    Apply validation findings to a confidence score.

    Each error costs its severity penalty (0.3 / 0.15 / 0.05 by default),
    warnings add their (negative) impact, and a result with no findings at
    all earns a bonus. The result is clamped to [0.1, 0.99].

    Args:
        original: Confidence before validation.
        result: Validation result for the same invoice.

    Returns:
        Adjusted confidence.

    Example:
        >>> adjust_confidence_by_validation(0.8, ValidationResult())
        0.9
    """
    penalties = get_config("validation.penalties", {CRITICAL: 0.3, MAJOR: 0.15, MINOR: 0.05})
    bounds = get_config("validation.confidence_bounds", [0.1, 0.99])

    adjustment = 0.0
    for severity in (CRITICAL, MAJOR, MINOR):
        adjustment -= result.count(severity) * penalties[severity]

    adjustment += sum(w.confidence_impact for w in result.warnings)

    if not result.errors and not result.warnings:
        adjustment += get_config("validation.clean_bonus", 0.1)

    return clamp(original + adjustment, bounds)
