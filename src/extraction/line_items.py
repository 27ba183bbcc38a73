"""
Line Item Row Parsing.

Shared by the spatial extraction layer and both fallback parsers: turns a
text row or a markup table row into a ``LineItem``.

Author: ML Engineering Team
"""

import json
import re
from typing import List, Optional, Sequence

from src.postprocessor.normalizers import AmountNormalizer, LocaleAmountParser, get_amount_parsers

from .invoice import LineItem

SUMMARY_WORDS = re.compile(
    r'\b(?:sub\s*total|total|tax|vat|shipping|freight|balance|amount due|payment|discount)\b',
    re.IGNORECASE
)
HEADER_WORDS = {'description', 'item', 'items', 'product', 'service', 'qty', 'quantity'}
QTY_IN_MIDDLE = re.compile(r'(?<![\d.,])(\d+)(?![\d.,])')
TRAILING_QTY = re.compile(r'(?:\s{2,}|\t)(\d+)$')


class LineItemRowParser:
    """
    Parses one row at a time into a line item.

    Text rows are read with each configured locale parser in turn: the row
    needs at least two amount tokens of that locale; the text before the
    first is the description, the first amount is the unit price, the last
    is the row amount and an integer in between (or a trailing integer
    column after the description) is the quantity.

    Example:
        >>> parser = LineItemRowParser()
        >>> parser.parse_text_row("Widget A    2    $10.00    $20.00", 1)
        LineItem(line_number=1, description='Widget A', qty=2.0, unit_price=10.0, amount=20.0, ...)
        >>> parser.parse_text_row("Beratung  130,00 €  1  130,00 €", 1).amount
        130.0
    """

    def __init__(self, parsers: Optional[List[LocaleAmountParser]] = None) -> None:
        self.parsers = parsers or get_amount_parsers()
        self.amounts = AmountNormalizer(self.parsers)

    def parse_text_row(self, line: str, line_number: int) -> Optional[LineItem]:
        """
        Parse a plain-text row.

        Args:
            line: Row text.
            line_number: Number to assign to the item.

        Returns:
            LineItem, or None when the row is not an item row.
        """
        line = line.strip()
        if not line or SUMMARY_WORDS.search(line):
            return None

        for parser in self.parsers:
            tokens = parser.find_tokens(line)
            if len(tokens) < 2:
                continue

            first, last = tokens[0], tokens[-1]
            description = line[:first.start()].strip(' \t|-:')
            qty = None

            middle = QTY_IN_MIDDLE.search(line[first.end():last.start()])
            if middle:
                qty = float(middle.group(1))
            else:
                trailing = TRAILING_QTY.search(description)
                if trailing:
                    qty = float(trailing.group(1))
                    description = description[:trailing.start()].strip()

            if not self._is_description(description):
                return None

            unit_price = parser.parse(first.group(0)) or 0.0
            amount = parser.parse(last.group(0)) or 0.0
            return LineItem(
                line_number=line_number,
                description=description,
                qty=qty if qty else 1.0,
                unit_price=unit_price,
                amount=amount,
            )

        return None

    def parse_table_row(self, cells: Sequence[str], line_number: int) -> Optional[LineItem]:
        """
        Parse a markup table row with at least three cells.

        The first cell is the description, the second the quantity (1 when
        not numeric), the last the amount; unit price is amount / qty.
        """
        if len(cells) < 3:
            return None

        description = cells[0].strip().strip('*')
        if len(description) <= 3 or description.lower() in HEADER_WORDS:
            return None
        if SUMMARY_WORDS.search(description):
            return None

        amount = self.amounts.to_float(cells[-1])
        if amount is None:
            return None

        qty = self.amounts.to_float(cells[1])
        if not qty or qty <= 0:
            qty = 1.0

        return LineItem(
            line_number=line_number,
            description=description,
            qty=qty,
            unit_price=round(amount / qty, 2),
            amount=amount,
        )

    @staticmethod
    def _is_description(description: str) -> bool:
        return len(description) > 1 and bool(re.search(r'[A-Za-z]', description))


def line_items_to_json(items: Sequence[LineItem]) -> str:
    """Serialize items for the single aggregated ``line_items`` candidate."""
    return json.dumps([item.to_dict() for item in items])


def line_items_from_json(payload: Optional[str]) -> List[LineItem]:
    """
    Parse the aggregated ``line_items`` candidate value.

    Invalid JSON or a non-list payload yields an empty list.
    """
    if not payload:
        return []
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return []
    if not isinstance(data, list):
        return []

    items = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        try:
            item = LineItem.from_dict(entry)
        except (TypeError, ValueError):
            continue
        item.line_number = len(items) + 1
        items.append(item)
    return items
