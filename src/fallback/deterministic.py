"""
Deterministic Fallback Parser.

Single-pass, first-match-wins regex extraction used when the multi-layer
extractor fails. Every field is reported, found or not, so a reviewer can
see exactly what the fallback could and could not read.

Usage:
    from src.fallback import DeterministicParser

    parser = DeterministicParser()
    result = parser.parse(text, similarity_score=0.92)
    print(result.invoice.total, result.confidence)

Author: ML Engineering Team
"""

import re
from typing import List, Optional, Tuple

from config import get_config
from src.extraction.builder import CanonicalInvoiceBuilder
from src.extraction.candidate import FieldConfidence
from src.extraction.field_mapper import FieldValueCleaner
from src.extraction.line_items import LineItemRowParser, line_items_to_json
from src.input_handler.document import RawDocument
from src.utils.helpers import mean
from src.utils.logger import get_logger

from .result import StrategyResult

# Initialize module logger
logger = get_logger(__name__)

# A found value is (value, confidence); not found is (None, 0.0)
Found = Tuple[Optional[str], float]
NOT_FOUND: Found = (None, 0.0)

# Currency without a marker still defaults to USD, so it keeps some confidence
CURRENCY_NOT_FOUND: Found = (None, 0.3)

INVOICE_NUMBER_PATTERNS = [
    re.compile(r'invoice\s*(?:number|#|no\.?)\s*:?\s*([A-Z0-9\-]*\d[A-Z0-9\-]*)', re.I),
    re.compile(r'\binv(?:oice)?\s*#?\s*:?\s*([A-Z0-9\-]*\d[A-Z0-9\-]*)', re.I),
    re.compile(r'^\s*([A-Z]{2,}-\d{4,}-\d{3,})\s*$', re.M),
    re.compile(r'invoice\s+no\s+(\d+)', re.I),
    re.compile(r'(\d{6,})\s+\d{4,}\s+\d{2}\.\d{2}\.\d{4}'),
]

DATE_PATTERNS = [
    re.compile(r'invoice\s*date\s*:?\s*(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})', re.I),
    re.compile(r'(?<!due )\bdate\s*:?\s*(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})', re.I),
    re.compile(r'(\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2})'),
    re.compile(r'(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})'),
    re.compile(r'date\s+(\d{1,2}\.?\s*[A-Za-z]+\s+\d{4})', re.I),
    re.compile(r'(\d{2}\.\d{2}\.\d{4})\s*$', re.M),
]

ADDRESS_INDICATORS = [
    re.compile(r'\d+\s+[A-Za-z\s]+(?:street|st|avenue|ave|road|rd|drive|dr|lane|ln|way|blvd|boulevard)\b', re.I),
    re.compile(r'\b\d{5}(?:-\d{4})?\b'),
    re.compile(r'\b[A-Z]{2}\s+\d{5}\b'),
]

NEW_SECTION_WORDS = [
    'invoice', 'bill to', 'ship to', 'description', 'qty', 'quantity',
    'price', 'amount', 'subtotal', 'total', 'tax', 'payment', 'terms',
]
ITEMS_HEADER_WORDS = ['description', 'item', 'product', 'service', 'qty', 'quantity', 'price', 'amount']
ITEMS_END_WORDS = ['subtotal', 'total', 'tax', 'vat', 'payment', 'terms']

CURRENCY_SYMBOLS = [('$', 'USD'), ('€', 'EUR'), ('£', 'GBP'), ('¥', 'JPY')]
CURRENCY_CODE = re.compile(r'\b(USD|EUR|GBP|JPY|CAD|AUD)\b', re.I)

# Amount keywords per money field; fragments are regex
AMOUNT_KEYWORDS = {
    'subtotal': [r'sub\s*-?\s*total', r'net\s*amount'],
    'tax': [r'tax(?!\s*(?:id|no|number|#))', r'vat(?!\s*(?:id|no|number|#))', r'gst'],
    'shipping': [r'shipping', r'delivery', r'freight'],
    'total_amount': [r'grand\s*total', r'amount\s*due', r'total'],
}
AMOUNT_VALUE = r'[$€£]?\s*(\d[\d.,]*\d|\d)(?:\s*€)?'
EURO_VALUE = r'[^\n]*?(\d[\d.]*,\d{2})\s*€'


class DeterministicParser:
    """
    Regex-only invoice parser.

    Overall confidence = 0.8 x mean(all field confidences, 0 for fields
    not found, 0.3 for a missing currency) + 0.2 x the caller's OCR
    similarity score.

    Example:
        >>> parser = DeterministicParser()
        >>> result = parser.parse("ACME Corp\\nInvoice #: INV-1001\\nTotal: $110.00")
        >>> result.invoice.invoice_number, result.invoice.total
        ('INV-1001', 110.0)
    """

    STRATEGY = 'deterministic'

    def __init__(
        self,
        cleaner: Optional[FieldValueCleaner] = None,
        row_parser: Optional[LineItemRowParser] = None,
        builder: Optional[CanonicalInvoiceBuilder] = None
    ) -> None:
        self.cleaner = cleaner or FieldValueCleaner()
        self.row_parser = row_parser or LineItemRowParser()
        self.builder = builder or CanonicalInvoiceBuilder()

        self.field_weight = get_config("fallback.deterministic.field_weight", 0.8)
        self.similarity_weight = get_config("fallback.deterministic.similarity_weight", 0.2)
        self.review_threshold = get_config("fallback.deterministic.review_threshold", 0.85)

        self._amount_patterns = {
            name: [re.compile(rf'(?<![A-Za-z])(?<!sub )(?<!sub-){kw}\s*:?\s*{AMOUNT_VALUE}', re.I)
                   for kw in keywords]
            for name, keywords in AMOUNT_KEYWORDS.items()
        }
        self._euro_patterns = {
            name: [re.compile(rf'(?<![A-Za-z])(?<!sub )(?<!sub-){kw}{EURO_VALUE}', re.I) for kw in keywords]
            for name, keywords in AMOUNT_KEYWORDS.items()
        }

    def parse(self, text: str, markup: Optional[str] = None,
              similarity_score: float = 1.0) -> StrategyResult:
        """
        Parse a document.

        Args:
            text: Plain OCR text (the markup is scanned instead when blank).
            markup: Markup of the same page; carried onto the invoice only.
            similarity_score: Agreement between the OCR renderings (0-1).

        Returns:
            StrategyResult reporting every field.
        """
        document = RawDocument(text=text or "", markup=markup, similarity_score=similarity_score)
        source_text = document.plain_text
        lines = [line for line in document.lines if line]

        reported = [
            ('invoice_number', self._invoice_number(source_text), 'regex_pattern'),
            ('invoice_date', self._invoice_date(source_text), 'date_pattern'),
            ('vendor_name', self._vendor_name(lines), 'text_analysis'),
            ('vendor_address', self._vendor_address(lines), 'text_analysis'),
            ('bill_to', self._address_section(lines, ['bill to', 'billed to', 'customer']), 'keyword_search'),
            ('ship_to', self._address_section(lines, ['ship to', 'shipped to', 'delivery']), 'keyword_search'),
            ('currency', self._currency(source_text), 'currency_symbol'),
        ]
        for name in ('subtotal', 'tax', 'shipping', 'total_amount'):
            reported.append((name, self._amount(source_text, name), 'amount_pattern'))
        reported.append(('line_items', self._line_items(lines), 'table_extraction'))

        field_confidences = [
            FieldConfidence(name, value, confidence, source)
            for name, (value, confidence), source in reported
        ]

        confidence = (
            self.field_weight * mean(fc.confidence for fc in field_confidences)
            + self.similarity_weight * similarity_score
        )

        invoice = self.builder.build(field_confidences, document)
        found = sum(1 for fc in field_confidences if fc.value is not None)
        logger.info(f"Deterministic parser found {found}/{len(field_confidences)} fields "
                    f"(confidence {confidence:.2f})")

        return StrategyResult(
            invoice=invoice,
            confidence=confidence,
            field_confidences=field_confidences,
            strategy=self.STRATEGY,
            details={'review_recommended': confidence < self.review_threshold},
        )

    def _invoice_number(self, text: str) -> Found:
        for pattern in INVOICE_NUMBER_PATTERNS:
            match = pattern.search(text)
            if match:
                value = match.group(1).strip()
                return value, self._invoice_number_confidence(value)
        return NOT_FOUND

    @staticmethod
    def _invoice_number_confidence(value: str) -> float:
        if len(value) < 3:
            return 0.3
        if re.fullmatch(r'[A-Z]{2,}-\d{4,}-\d{3,}', value):
            return 0.95
        if re.search(r'[A-Z].*\d|\d.*[A-Z]', value):
            return 0.8
        return 0.6

    def _invoice_date(self, text: str) -> Found:
        for pattern in DATE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            value = self.cleaner.clean('invoice_date', match.group(1), strict=True)
            if value:
                return value, 0.9
        return NOT_FOUND

    def _vendor_name(self, lines: List[str]) -> Found:
        if not lines:
            return NOT_FOUND
        first = lines[0]
        if 'invoice' in first.lower() or len(first) <= 2:
            return NOT_FOUND
        return first, self._vendor_confidence(first)

    @staticmethod
    def _vendor_confidence(value: str) -> float:
        if any(suffix in value for suffix in ('Ltd', 'Inc', 'Corp', 'LLC', 'GmbH')):
            return 0.9
        if 'Company' in value or 'Co.' in value:
            return 0.85
        if len(value) > 10 and re.search(r'[A-Z]', value):
            return 0.7
        return 0.5

    def _vendor_address(self, lines: List[str]) -> Found:
        captured = []
        for line in lines[1:6]:
            lowered = line.lower()
            if 'invoice' in lowered:
                continue
            if not captured and not any(p.search(line) for p in ADDRESS_INDICATORS):
                continue
            if 'bill to' in lowered or 'ship to' in lowered:
                break
            captured.append(line)
            if len(captured) >= 3:
                break

        if not captured:
            return NOT_FOUND
        return '\n'.join(captured), 0.7

    def _address_section(self, lines: List[str], keywords: List[str]) -> Found:
        for index, line in enumerate(lines):
            lowered = line.lower()
            keyword = next((k for k in keywords if k in lowered), None)
            if keyword is None:
                continue

            captured = []
            rest = line[lowered.index(keyword) + len(keyword):].strip(' :')
            if rest:
                captured.append(rest)
            for next_line in lines[index + 1:index + 5]:
                if _is_new_section(next_line):
                    break
                captured.append(next_line)

            if captured:
                return '\n'.join(captured), 0.8
        return NOT_FOUND

    @staticmethod
    def _currency(text: str) -> Found:
        for symbol, code in CURRENCY_SYMBOLS:
            if symbol in text:
                return code, 0.9
        match = CURRENCY_CODE.search(text)
        if match:
            return match.group(1).upper(), 0.95
        return CURRENCY_NOT_FOUND

    def _amount(self, text: str, field_name: str) -> Found:
        for pattern in self._amount_patterns[field_name]:
            match = pattern.search(text)
            if match:
                value = self.cleaner.clean(field_name, match.group(1))
                if value is not None:
                    return value, 0.85

        for pattern in self._euro_patterns[field_name]:
            match = pattern.search(text)
            if match:
                value = self.cleaner.clean(field_name, f"{match.group(1)} €")
                if value is not None:
                    return value, 0.9

        return NOT_FOUND

    def _line_items(self, lines: List[str]) -> Found:
        items = []
        in_items = False

        for line in lines:
            lowered = line.lower()
            if not in_items:
                if any(w in lowered for w in ITEMS_HEADER_WORDS) and not re.search(r'\d', line):
                    in_items = True
                continue

            if any(w in lowered for w in ITEMS_END_WORDS):
                break

            item = self.row_parser.parse_text_row(line, len(items) + 1)
            if item is not None:
                items.append(item)

        if not items:
            return NOT_FOUND
        return line_items_to_json(items), 0.8


def _is_new_section(line: str) -> bool:
    lowered = line.lower()
    return any(word in lowered for word in NEW_SECTION_WORDS)
