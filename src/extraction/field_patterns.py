"""
Field Matcher Tables.

Declarative regex tables for the pattern layer, plus the label synonyms
used to canonicalize ``key: value`` labels and the fuzzy layer's
synonyms. Everything here is immutable module data; matching state lives
in the extractor call that uses it.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

# Canonical field names, in reporting order
FIELD_ORDER = [
    'invoice_number',
    'invoice_date',
    'vendor_name',
    'vendor_address',
    'bill_to',
    'ship_to',
    'currency',
    'subtotal',
    'tax',
    'shipping',
    'total_amount',
    'line_items',
]

MONEY_FIELDS = ('subtotal', 'tax', 'shipping', 'total_amount')
ADDRESS_FIELDS = ('vendor_address', 'bill_to', 'ship_to')

# Amount capture: optional currency marker, then a numeric token
AMOUNT = r'(?:[$€£¥]|USD|EUR|GBP)?\s*(?<![\d/.,])(-?\d[\d.,]*)(?:\s*€)?'

# Date capture: numeric, "Month DD, YYYY" or "DD Month YYYY"
DATE_VALUE = (
    r'(\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}'
    r'|[A-Za-z]{3,9}\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}'
    r'|\d{1,2}(?:st|nd|rd|th)?\.?\s+[A-Za-z]{3,9}\.?,?\s+\d{4})'
)

# Multi-line block capture for address fields
BLOCK = r'((?:[^\n]+\n?){1,5})'

ALL_LETTERS = re.compile(r'^[A-Za-z]+$')
HEADING_WORDS = re.compile(
    r'\b(?:invoice|statement|receipt|bill|date|total|page|tax|quote)\b', re.IGNORECASE
)


@dataclass(frozen=True)
class FieldMatcher:
    """
    One regex heuristic for one field.

    Attributes:
        pattern: Compiled regex; group 1 is the value
        confidence: Base confidence of a match
        context: Heuristic name, reported as the candidate method
        max_lines: Restrict the search to the first N lines
        exclude: Values matching this are discarded
        repeat: Yield every match instead of the first
        strict: Keep only values the field normalizer accepts
    """
    pattern: Pattern
    confidence: float
    context: str
    max_lines: Optional[int] = None
    exclude: Optional[Pattern] = None
    repeat: bool = False
    strict: bool = False


def _matcher(regex: str, confidence: float, context: str, flags: int = re.IGNORECASE,
             **options) -> FieldMatcher:
    return FieldMatcher(re.compile(regex, flags), confidence, context, **options)


FIELD_PATTERNS: Dict[str, List[FieldMatcher]] = {
    'invoice_number': [
        _matcher(r'\b(?:invoice|inv)\.?\s*(?:number\b|num\b|no\b\.?|#|id\b)\s*:?\s*#?\s*([A-Z0-9][A-Z0-9\-_/#]*)',
                 0.95, 'explicit_label'),
        _matcher(r'^\s*([A-Z]{2,}-\d{4,}-\d{3,})\s*$', 0.9, 'format_match', re.MULTILINE),
        _matcher(r'\b(?:bill|document)\s*(?:number\b|no\b\.?|#)\s*:?\s*([A-Z0-9][A-Z0-9\-_]*)',
                 0.9, 'bill_number'),
        _matcher(r'\b(?:statement|account|ref(?:erence)?)\s*(?:number\b|no\b\.?|#)?\s*:?\s*([A-Z0-9][A-Z0-9\-_]*)',
                 0.85, 'statement_ref', exclude=ALL_LETTERS),
        _matcher(r'^\s*#?([A-Z0-9]{6,})\s*$', 0.7, 'standalone_code', re.MULTILINE,
                 exclude=ALL_LETTERS),
        _matcher(r'^\s*([A-Z0-9]{4,})\s*$', 0.6, 'position_based', re.MULTILINE,
                 max_lines=5, exclude=ALL_LETTERS),
    ],
    'invoice_date': [
        _matcher(r'\b(?:invoice|inv)\.?\s*date\s*:?\s*' + DATE_VALUE, 0.95, 'explicit_label'),
        _matcher(r'(?<!due )(?<!ship )(?<!due)\b(?:date(?:d)?|issued(?:\s*on)?|bill\s*date)\s*:?\s*' + DATE_VALUE,
                 0.85, 'date_label'),
        _matcher(r'\b(\d{4}-\d{2}-\d{2})\b', 0.75, 'iso_format', repeat=True, strict=True),
        _matcher(r'(?<![\d/.\-])(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})(?![\d/.\-])', 0.7, 'date_format',
                 repeat=True, strict=True),
        _matcher(r'\b(\d{1,2}\s+[A-Za-z]{3,9}\s+\d{4})\b', 0.8, 'written_date', repeat=True, strict=True),
        _matcher(r'\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4})\b',
                 0.8, 'written_date', repeat=True, strict=True),
    ],
    'vendor_name': [
        _matcher(r'^\s*(?:from|vendor|company|business|seller|supplier)\s*:\s*([^\n]+)', 0.9,
                 'explicit_label', re.IGNORECASE | re.MULTILINE),
        _matcher(r'^\s*([A-Z][A-Za-z0-9&.,\'\- ]{1,48}?\s(?:Inc|LLC|Ltd|Corp|Corporation|Co|Company|'
                 r'GmbH|Limited|PLC)\.?)\s*$', 0.85, 'company_suffix', re.IGNORECASE | re.MULTILINE),
        _matcher(r'^([A-Z][^0-9\n:]{4,49})$', 0.6, 'company_format', re.MULTILINE,
                 max_lines=3, exclude=HEADING_WORDS),
    ],
    'bill_to': [
        _matcher(r'(?:bill(?:ed)?\s*to\s*:?|sold\s*to\s*:?|customer\s*:)\s*' + BLOCK, 0.9,
                 'explicit_label'),
        _matcher(r'^TO\b\s*:?\s*' + BLOCK, 0.8, 'to_section', re.MULTILINE),
    ],
    'ship_to': [
        _matcher(r'\b(?:ship(?:ped)?|deliver)\s*to\s*:?\s*' + BLOCK, 0.9, 'explicit_label'),
    ],
    'currency': [
        _matcher(r'\bcurrency\s*:?\s*([A-Z]{3})\b', 0.9, 'explicit_label'),
        _matcher(r'\b(USD|EUR|GBP|CAD|AUD|JPY|CHF|INR)\b', 0.85, 'currency_code', 0),
        _matcher(r'([$€£¥])', 0.75, 'currency_symbol', 0),
    ],
    'subtotal': [
        _matcher(r'\b(?:sub\s*-?\s*total|net\s*amount)\s*:?\s*' + AMOUNT, 0.9, 'explicit_label'),
    ],
    'tax': [
        _matcher(r'(?<![A-Za-z])(?:sales\s*tax|tax|vat|gst|hst)(?:\s*\(?\s*\d+(?:[.,]\d+)?\s*%\s*\)?)?\s*:?\s*'
                 + AMOUNT, 0.9, 'explicit_label'),
    ],
    'shipping': [
        _matcher(r'\b(?:shipping|freight|delivery)(?:\s*(?:&|and)\s*handling)?\s*:?\s*' + AMOUNT, 0.9,
                 'explicit_label'),
    ],
    'total_amount': [
        _matcher(r'(?<![A-Za-z])(?<!sub )(?<!sub-)(?:grand\s*total|total\s*(?:amount\s*)?(?:due)?|'
                 r'amount\s*due|balance\s*due)\s*:?\s*' + AMOUNT, 0.95, 'explicit_label'),
        _matcher(r'(?<![A-Za-z])(?<!sub )(?:total|due)\b[^\n]*?' + AMOUNT + r'\s*$', 0.6, 'line_end',
                 re.IGNORECASE | re.MULTILINE),
    ],
}

# Label synonyms for key canonicalization (exact lookup after normalization)
KEY_SYNONYMS: Dict[str, List[str]] = {
    'invoice_number': [
        'invoice number', 'invoice #', 'invoice no', 'invoice id', 'inv no', 'inv #',
        'number', 'reference', 'ref', 'bill number', 'document number',
    ],
    'invoice_date': ['invoice date', 'date', 'bill date', 'issue date', 'date issued', 'dated'],
    'vendor_name': ['vendor', 'vendor name', 'company', 'from', 'business', 'seller', 'supplier'],
    'vendor_address': ['vendor address', 'from address', 'seller address'],
    'bill_to': ['bill to', 'billed to', 'customer', 'sold to'],
    'ship_to': ['ship to', 'shipped to', 'deliver to'],
    'currency': ['currency'],
    'subtotal': ['subtotal', 'sub total', 'net amount'],
    'tax': ['tax', 'vat', 'gst', 'sales tax', 'tax amount'],
    'shipping': ['shipping', 'freight', 'delivery', 'shipping & handling'],
    'total_amount': [
        'total', 'total amount', 'amount due', 'grand total', 'balance', 'balance due',
        'total due', 'invoice total',
    ],
}

# Short field-name forms the fuzzy layer compares line labels against
FUZZY_SYNONYMS: Dict[str, List[str]] = {
    'invoice_number': ['invoice', 'inv', 'number', 'ref', 'reference', 'invoice number'],
    'invoice_date': ['date', 'invoice date', 'bill date'],
    'vendor_name': ['vendor', 'company', 'from', 'business'],
    'total_amount': ['total', 'amount', 'due', 'balance', 'amount due'],
}

# Lines that start a new block and end an address capture
SECTION_BREAK_WORDS = [
    'invoice', 'bill to', 'ship to', 'description', 'qty', 'quantity', 'price',
    'amount', 'subtotal', 'total', 'tax', 'payment', 'terms', 'date', 'due',
]
