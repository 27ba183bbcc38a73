"""
Post-Processing Module for the Invoice Confidence Parser.

This module provides functionality for:
    - Date normalization to ISO format
    - Locale-aware amount normalization
    - Cross-field invoice validation
    - Confidence adjustment from validation findings

Author: ML Engineering Team
"""

from .normalizers import AmountNormalizer, DateNormalizer, get_amount_parsers
from .validators import (
    ConfidenceAdjustment,
    InvoiceValidator,
    ValidationError,
    ValidationResult,
    ValidationWarning,
    adjust_confidence_by_validation,
)

__all__ = [
    'DateNormalizer',
    'AmountNormalizer',
    'get_amount_parsers',
    'InvoiceValidator',
    'ValidationError',
    'ValidationWarning',
    'ValidationResult',
    'ConfidenceAdjustment',
    'adjust_confidence_by_validation',
]
