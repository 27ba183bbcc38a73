"""
Canonical Invoice Data Classes.

This module defines the normalized invoice record every parsing strategy
produces, and its line items.

Classes:
    LineItem: One billed row of an invoice
    CanonicalInvoice: The normalized invoice record

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class LineItem:
    """
    One billed row of an invoice.

    Attributes:
        line_number: 1-based position on the invoice
        description: Free-text item description
        qty: Quantity billed
        unit_price: Price per unit
        amount: Row total
        tax: Row tax, when itemized
        sku: Article number, when present
    """
    line_number: int
    description: str
    qty: float = 1.0
    unit_price: float = 0.0
    amount: float = 0.0
    tax: float = 0.0
    sku: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'line_number': self.line_number,
            'description': self.description,
            'qty': self.qty,
            'unit_price': self.unit_price,
            'amount': self.amount,
            'tax': self.tax,
            'sku': self.sku,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineItem':
        qty = data.get('qty')
        return cls(
            line_number=int(data.get('line_number') or 0),
            description=str(data.get('description') or ''),
            qty=float(qty) if qty is not None else 1.0,
            unit_price=float(data.get('unit_price') or 0),
            amount=float(data.get('amount') or 0),
            tax=float(data.get('tax') or 0),
            sku=data.get('sku'),
        )


@dataclass
class CanonicalInvoice:
    """
    Normalized invoice record.

    Money fields are floats and default to 0.0, currency defaults to USD.
    The raw OCR text and markup the record was built from travel with it so
    a reviewer can compare against the source.

    Attributes:
        invoice_number: Vendor-assigned invoice identifier
        invoice_date: Issue date, ISO YYYY-MM-DD when normalizable
        vendor_name: Seller name
        vendor_address: Seller address block
        bill_to: Billing address block
        ship_to: Shipping address block
        currency: ISO 4217 currency code
        subtotal: Sum before tax and shipping
        tax: Tax amount
        shipping: Shipping / freight amount
        total: Amount due
        line_items: Billed rows
        raw_ocr_text: OCR text the record was parsed from
        ocr_markup_text: Structured markup of the same page, if any
        ocr_similarity_score: Agreement between the two OCR renderings (0-1)
        template_id: Recognized vendor template, if any
        category: Invoice category derived from the template or vendor

    Example:
        >>> invoice = CanonicalInvoice(invoice_number="INV-2024-001", total=110.0)
        >>> CanonicalInvoice.from_json(invoice.to_json()) == invoice
        True
    """
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_address: Optional[str] = None
    bill_to: Optional[str] = None
    ship_to: Optional[str] = None
    currency: str = "USD"
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    line_items: List[LineItem] = field(default_factory=list)
    raw_ocr_text: str = ""
    ocr_markup_text: str = ""
    ocr_similarity_score: float = 1.0
    template_id: Optional[str] = None
    category: Optional[str] = None

    MONEY_FIELDS = ('subtotal', 'tax', 'shipping', 'total')

    @property
    def line_items_total(self) -> float:
        """Sum of line item amounts."""
        return sum(item.amount for item in self.line_items)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format.

        Returns:
            Dictionary with every field; line items as nested dictionaries.
        """
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['line_items'] = [item.to_dict() for item in self.line_items]
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CanonicalInvoice':
        """
        Create a CanonicalInvoice from a dictionary.

        Unknown keys are ignored; missing keys take their defaults.

        Args:
            data: Dictionary produced by ``to_dict`` or an equivalent source.

        Returns:
            CanonicalInvoice instance.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        for name in cls.MONEY_FIELDS:
            if values.get(name) is not None:
                values[name] = float(values[name])
            else:
                values.pop(name, None)

        if values.get('currency') is None:
            values.pop('currency', None)

        values['line_items'] = [
            item if isinstance(item, LineItem) else LineItem.from_dict(item)
            for item in (data.get('line_items') or [])
        ]
        return cls(**values)

    @classmethod
    def from_json(cls, payload: str) -> 'CanonicalInvoice':
        return cls.from_dict(json.loads(payload))

    def copy(self) -> 'CanonicalInvoice':
        """Deep copy through the dictionary form."""
        return CanonicalInvoice.from_dict(self.to_dict())

    def __repr__(self) -> str:
        return (
            f"CanonicalInvoice("
            f"number={self.invoice_number}, "
            f"vendor={self.vendor_name}, "
            f"total={self.total:.2f} {self.currency}, "
            f"items={len(self.line_items)})"
        )
