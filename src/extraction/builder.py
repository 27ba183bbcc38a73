"""
Canonical Invoice Builder.

Maps the winning field values onto a ``CanonicalInvoice``. Used by the
primary extraction path and by both fallback parsers, so every strategy
produces records built by the same rules.

Author: ML Engineering Team
"""

from typing import Dict, Optional, Sequence

from src.input_handler.document import RawDocument
from src.postprocessor.normalizers import AmountNormalizer
from src.utils.logger import get_logger

from .candidate import FieldConfidence
from .invoice import CanonicalInvoice
from .line_items import line_items_from_json

# Initialize module logger
logger = get_logger(__name__)

# Field name -> CanonicalInvoice attribute, for money fields
MONEY_ATTRIBUTES = {
    'subtotal': 'subtotal',
    'tax': 'tax',
    'shipping': 'shipping',
    'total_amount': 'total',
}
TEXT_FIELDS = ('invoice_number', 'invoice_date', 'vendor_name', 'vendor_address', 'bill_to', 'ship_to')


class CanonicalInvoiceBuilder:
    """
    Builds a CanonicalInvoice from one value per field.

    Money fields parse or default to 0.0 and are never negative; currency
    defaults to USD; ``line_items`` is read from its JSON value and
    renumbered, an invalid payload giving no items.

    Example:
        >>> builder = CanonicalInvoiceBuilder()
        >>> invoice = builder.build(field_confidences, document)
        >>> invoice.total
        110.0
    """

    def __init__(self, amounts: Optional[AmountNormalizer] = None) -> None:
        self.amounts = amounts or AmountNormalizer()

    def build(self, field_confidences: Sequence[FieldConfidence],
              document: Optional[RawDocument] = None) -> CanonicalInvoice:
        """
        Build the invoice record.

        Args:
            field_confidences: One entry per field (extra entries for the
                same field are ignored, the first wins).
            document: Source document; its text, markup and similarity
                score are copied onto the record.

        Returns:
            CanonicalInvoice.
        """
        values: Dict[str, Optional[str]] = {}
        for fc in field_confidences:
            values.setdefault(fc.field, fc.value)

        invoice = CanonicalInvoice()

        for name in TEXT_FIELDS:
            value = values.get(name)
            if value:
                setattr(invoice, name, value)

        for name, attribute in MONEY_ATTRIBUTES.items():
            setattr(invoice, attribute, self._money(values.get(name)))

        if values.get('currency'):
            invoice.currency = values['currency'].upper()

        invoice.line_items = line_items_from_json(values.get('line_items'))

        if document is not None:
            invoice.raw_ocr_text = document.text or ""
            invoice.ocr_markup_text = document.markup or ""
            invoice.ocr_similarity_score = document.similarity_score

        logger.debug(f"Built {invoice!r}")
        return invoice

    def _money(self, value: Optional[str]) -> float:
        amount = self.amounts.to_float(value)
        if amount is None:
            return 0.0
        return max(0.0, amount)
