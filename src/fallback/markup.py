"""
Markup-Structure Fallback Parser.

Reads an invoice from the structured markup rendering of the page
(headings, bold runs, ``|``-tables) when the multi-layer extractor fails.
Each field falls back to a plain-text heuristic when the markup does not
carry it.

Author: ML Engineering Team
"""

import re
from typing import List, Optional, Sequence, Tuple

from config import get_config
from src.extraction.builder import CanonicalInvoiceBuilder
from src.extraction.candidate import FieldConfidence
from src.extraction.field_mapper import FieldValueCleaner
from src.extraction.invoice import LineItem
from src.extraction.line_items import SUMMARY_WORDS, LineItemRowParser, line_items_to_json
from src.input_handler.document import RawDocument
from src.input_handler.structure import split_table_row
from src.utils.exceptions import FallbackExtractionError
from src.utils.helpers import mean, split_lines
from src.utils.logger import get_logger

from .result import StrategyResult

# Initialize module logger
logger = get_logger(__name__)

HEADING = re.compile(r'^#+\s*(.+)$', re.MULTILINE)
BOLD = re.compile(r'\*\*([^*]+)\*\*')
BOLD_AMOUNT = re.compile(r'\*\*[$€£]?\s*(\d[\d.,]*)\s*€?\*\*')
SECTION_END_WORDS = ['total', 'subtotal', 'tax', 'shipping', 'terms', 'notes']
TEXT_ITEM = re.compile(r'^(.*?)\s*[$€£]?\s*(\d[\d,]*\.\d{2})\s*$')


class MarkupStructureParser:
    """
    Parser driven by markup structure.

    Reports only the fields it finds; overall confidence is the mean of
    their confidences.

    Example:
        >>> parser = MarkupStructureParser()
        >>> result = parser.parse("# ACME Corp\\n| Invoice Number | INV-7 |\\n**$120.00**", "")
        >>> result.invoice.vendor_name, result.invoice.total
        ('ACME Corp', 120.0)
    """

    STRATEGY = 'markup_fallback'

    def __init__(
        self,
        cleaner: Optional[FieldValueCleaner] = None,
        row_parser: Optional[LineItemRowParser] = None,
        builder: Optional[CanonicalInvoiceBuilder] = None
    ) -> None:
        self.cleaner = cleaner or FieldValueCleaner()
        self.row_parser = row_parser or LineItemRowParser()
        self.builder = builder or CanonicalInvoiceBuilder()

        self.confidences = {
            'invoice_number': get_config("fallback.markup.invoice_number_confidence", 0.85),
            'invoice_date': get_config("fallback.markup.date_confidence", 0.9),
            'vendor_name': get_config("fallback.markup.vendor_confidence", 0.8),
            'total_amount': get_config("fallback.markup.total_confidence", 0.9),
            'line_items': get_config("fallback.markup.line_items_confidence", 0.85),
            'bill_to': get_config("fallback.markup.address_confidence", 0.8),
        }

    def parse(self, markup: Optional[str], text: Optional[str] = None,
              similarity_score: float = 1.0) -> StrategyResult:
        """
        Parse an invoice from its markup.

        Args:
            markup: Markup rendering of the page.
            text: Plain OCR text of the same page, for text fallbacks.
            similarity_score: Carried onto the invoice.

        Returns:
            StrategyResult with the fields found.

        Raises:
            FallbackExtractionError: If the markup is blank or no field is found.
        """
        if not markup or not markup.strip():
            raise FallbackExtractionError(self.STRATEGY, "no markup available")

        text = text or ""
        markup_lines = split_lines(markup)
        text_lines = [line for line in split_lines(text) if line]

        found = [
            ('invoice_number', self._invoice_number(markup_lines, text)),
            ('invoice_date', self._invoice_date(markup, markup_lines, text)),
            ('vendor_name', self._vendor_name(markup, text_lines)),
            ('total_amount', self._total(markup, markup_lines, text)),
            ('line_items', self._line_items(markup_lines, text_lines)),
            ('bill_to', self._bill_to(markup, text_lines)),
        ]

        field_confidences = [
            FieldConfidence(name, value, self.confidences[name], source)
            for name, (value, source) in found if value is not None
        ]
        if not field_confidences:
            raise FallbackExtractionError(self.STRATEGY, "no fields found in markup")

        document = RawDocument(text=text, markup=markup, similarity_score=similarity_score)
        invoice = self.builder.build(field_confidences, document)
        confidence = mean(fc.confidence for fc in field_confidences)

        logger.info(f"Markup parser found {len(field_confidences)} fields (confidence {confidence:.2f})")

        return StrategyResult(
            invoice=invoice,
            confidence=confidence,
            field_confidences=field_confidences,
            strategy=self.STRATEGY,
        )

    # Each extractor returns (value, source) with value None when not found

    def _invoice_number(self, markup_lines: List[str], text: str) -> Tuple[Optional[str], str]:
        raw = _table_lookup(markup_lines, ['invoice', 'number', 'ref'], exclude=['date'])
        value = self.cleaner.clean('invoice_number', raw) if raw else None
        if value:
            return value, 'markup_table'

        match = re.search(r'\b(?:invoice|ref|number)\s*(?:#|no\.?|number)?\s*:?\s*([A-Z0-9\-]*\d[A-Z0-9\-]*)',
                          text, re.IGNORECASE)
        if match:
            value = self.cleaner.clean('invoice_number', match.group(1))
            if value:
                return value, 'text_pattern'
        return None, ''

    def _invoice_date(self, markup: str, markup_lines: List[str], text: str) -> Tuple[Optional[str], str]:
        for match in BOLD.finditer(markup):
            value = self.cleaner.clean('invoice_date', match.group(1), strict=True)
            if value:
                return value, 'markup_bold'

        raw = _table_lookup(markup_lines, ['date'], exclude=['due'])
        value = self.cleaner.clean('invoice_date', raw, strict=True) if raw else None
        if value:
            return value, 'markup_table'

        for pattern in (r'date\s*:?\s*(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})', r'(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})'):
            match = re.search(pattern, text, re.IGNORECASE)
            if match:
                value = self.cleaner.clean('invoice_date', match.group(1), strict=True)
                if value:
                    return value, 'text_pattern'
        return None, ''

    def _vendor_name(self, markup: str, text_lines: List[str]) -> Tuple[Optional[str], str]:
        heading = HEADING.search(markup)
        if heading:
            title = heading.group(1).strip().strip('*')
            if len(title) > 3 and 'invoice' not in title.lower():
                return title, 'markup_header'

        bold = BOLD.match(markup.strip())
        if bold:
            value = self.cleaner.clean('vendor_name', bold.group(1))
            if value:
                return value, 'markup_bold'

        for line in text_lines[:5]:
            if len(line) > 3 and 'invoice' not in line.lower():
                return line, 'text_first_line'
        return None, ''

    def _total(self, markup: str, markup_lines: List[str], text: str) -> Tuple[Optional[str], str]:
        bold_amounts = [self.cleaner.clean('total_amount', m.group(1)) for m in BOLD_AMOUNT.finditer(markup)]
        bold_amounts = [a for a in bold_amounts if a is not None and float(a) > 0]
        if bold_amounts:
            return bold_amounts[-1], 'markup_bold'

        for keyword in ('total', 'amount'):
            raw = _table_lookup(markup_lines, [keyword], exclude=['sub'])
            value = self.cleaner.clean('total_amount', raw) if raw else None
            if value is not None and float(value) > 0:
                return value, 'markup_table'

        match = re.search(r'(?<![A-Za-z])(?<!sub )total\s*:?\s*[$€£]?\s*(\d[\d.,]*)', text, re.IGNORECASE)
        if match:
            value = self.cleaner.clean('total_amount', match.group(1))
            if value is not None and float(value) > 0:
                return value, 'text_pattern'
        return None, ''

    def _line_items(self, markup_lines: List[str], text_lines: List[str]) -> Tuple[Optional[str], str]:
        items: List[LineItem] = []
        for line in markup_lines:
            cells = split_table_row(line)
            if cells is None:
                continue
            item = self.row_parser.parse_table_row(cells, len(items) + 1)
            if item is not None:
                items.append(item)
        if items:
            return line_items_to_json(items), 'markup_table'

        for line in text_lines:
            match = TEXT_ITEM.match(line)
            if not match or SUMMARY_WORDS.search(line):
                continue
            description = match.group(1).strip(' |')
            if len(description) <= 3:
                continue
            amount = float(match.group(2).replace(',', ''))
            items.append(LineItem(len(items) + 1, description, unit_price=amount, amount=amount))
        if items:
            return line_items_to_json(items), 'text_rows'
        return None, ''

    def _bill_to(self, markup: str, text_lines: List[str]) -> Tuple[Optional[str], str]:
        match = re.search(r'^##\s*bill[^\n]*\n([\s\S]*?)(?=^##|\Z)', markup, re.IGNORECASE | re.MULTILINE)
        if match and match.group(1).strip():
            value = self.cleaner.clean('bill_to', match.group(1).strip())
            if value:
                return value, 'markup_section'

        for index, line in enumerate(text_lines):
            if 'bill' not in line.lower():
                continue
            captured = []
            for next_line in text_lines[index + 1:index + 5]:
                if any(word in next_line.lower() for word in SECTION_END_WORDS):
                    break
                captured.append(next_line)
            if captured:
                return '\n'.join(captured), 'text_section'
        return None, ''


def _table_lookup(markup_lines: Sequence[str], keywords: Sequence[str],
                  exclude: Sequence[str] = ()) -> Optional[str]:
    """Value cell of the first table row whose key cell contains a keyword."""
    for line in markup_lines:
        cells = [c for c in (split_table_row(line) or []) if c]
        if len(cells) < 2:
            continue
        key = cells[0].strip('* :').lower()
        if any(word in key for word in exclude):
            continue
        if any(keyword in key for keyword in keywords):
            return cells[1].strip('* ')
    return None
