"""
Field Mapping Module.

Two jobs shared by every extraction layer:
    - canonicalize free-form labels ("Inv No.", "Amount Due") to field names
    - clean and validate raw values before they become candidates

Author: ML Engineering Team
"""

import re
from typing import Dict, List, Optional

from rapidfuzz import fuzz, process

from config import get_config
from src.postprocessor.normalizers import AmountNormalizer, DateNormalizer, clean_text
from src.utils.logger import get_logger

from .field_patterns import ADDRESS_FIELDS, KEY_SYNONYMS, MONEY_FIELDS, SECTION_BREAK_WORDS

# Initialize module logger
logger = get_logger(__name__)


def normalize_label(label: str) -> str:
    """
    Normalize a label for lookup.

    Case-folds, turns underscores into spaces, drops trailing colons and
    dots and collapses whitespace, so ``"Invoice_Number:"`` and
    ``"invoice number"`` compare equal.
    """
    label = label.casefold().replace('_', ' ')
    label = ' '.join(label.split())
    return label.strip(' :.')


class FieldMapper:
    """
    Maps free-form labels to canonical field names.

    Lookup order: exact synonym match, whole-string similarity (rapidfuzz
    ratio >= 0.8), word overlap (shared words / longer label >= 0.6),
    otherwise None. Canonical names map to themselves.

    Example:
        >>> mapper = FieldMapper()
        >>> mapper.canonicalize("Invoice No.")
        'invoice_number'
        >>> mapper.canonicalize("Totl")
        'total_amount'
        >>> mapper.canonicalize("Payment Terms") is None
        True
    """

    def __init__(self, synonyms: Optional[Dict[str, List[str]]] = None) -> None:
        self.similarity_threshold = get_config("extraction.label_matching.similarity_threshold", 0.8)
        self.overlap_threshold = get_config("extraction.label_matching.overlap_threshold", 0.6)

        self._lookup: Dict[str, str] = {}
        for field_name, labels in (synonyms or KEY_SYNONYMS).items():
            self._lookup[normalize_label(field_name)] = field_name
            for label in labels:
                self._lookup[normalize_label(label)] = field_name

        self._labels = list(self._lookup)

    def lookup(self, label: str) -> Optional[str]:
        """Exact synonym lookup only, no similarity matching."""
        return self._lookup.get(normalize_label(label or ''))

    def canonicalize(self, label: str) -> Optional[str]:
        """
        Map a label to a canonical field name.

        Args:
            label: Raw label text, e.g. a table key.

        Returns:
            Canonical field name, or None when nothing is close enough.
        """
        key = normalize_label(label or '')
        if not key:
            return None

        if key in self._lookup:
            return self._lookup[key]

        best = process.extractOne(
            key, self._labels, scorer=fuzz.ratio, score_cutoff=self.similarity_threshold * 100
        )
        if best is not None:
            return self._lookup[best[0]]

        words = set(key.split())
        best_field, best_overlap = None, 0.0
        for candidate in self._labels:
            candidate_words = set(candidate.split())
            overlap = len(words & candidate_words) / max(len(words), len(candidate_words))
            if overlap > best_overlap:
                best_field, best_overlap = self._lookup[candidate], overlap

        if best_overlap >= self.overlap_threshold:
            return best_field

        return None


class FieldValueCleaner:
    """
    Cleans raw values per field and rejects implausible ones.

    Money values become two-decimal strings, dates become ISO strings when
    they can be parsed (the raw text is kept otherwise, unless ``strict``),
    address blocks are cut at the next section line.

    Example:
        >>> cleaner = FieldValueCleaner()
        >>> cleaner.clean('total_amount', '$1,234.50')
        '1234.50'
        >>> cleaner.clean('invoice_date', '03/15/2024')
        '2024-03-15'
        >>> cleaner.clean('invoice_number', '#1') is None
        True
    """

    CURRENCY_SYMBOLS = {'$': 'USD', '€': 'EUR', '£': 'GBP', '¥': 'JPY'}
    COLUMN_GAP = re.compile(r'\s{2,}|\t')

    def __init__(self) -> None:
        self.dates = DateNormalizer()
        self.amounts = AmountNormalizer()

    def clean(self, field_name: str, raw: Optional[str], strict: bool = False) -> Optional[str]:
        """
        Clean and validate a raw value.

        Args:
            field_name: Canonical field name.
            raw: Raw text captured for the field.
            strict: Reject dates that cannot be normalized.

        Returns:
            Cleaned value, or None when the value is not valid for the field.
        """
        if raw is None:
            return None

        if field_name in MONEY_FIELDS:
            return self.amounts.normalize(raw)

        if field_name == 'invoice_date':
            return self._clean_date(raw, strict)

        if field_name in ADDRESS_FIELDS:
            return self._clean_address(raw)

        if field_name == 'currency':
            return self._clean_currency(raw)

        if field_name == 'line_items':
            return raw

        value = clean_text(raw)

        if field_name == 'invoice_number':
            value = value.lstrip('#').strip()
            if len(value) < 3 or not re.search(r'[A-Za-z0-9]', value):
                return None
            return value

        if field_name == 'vendor_name':
            if len(value) < 3 or not re.search(r'[^\d\s.,\-]', value):
                return None
            return value

        return value or None

    def _clean_date(self, raw: str, strict: bool) -> Optional[str]:
        normalized = self.dates.normalize(raw)
        if normalized:
            return normalized
        if strict:
            return None

        value = clean_text(raw)
        if not re.search(r'\d', value):
            return None
        return value

    def _clean_address(self, raw: str) -> Optional[str]:
        kept = []
        for index, line in enumerate(raw.split('\n')):
            line = self.COLUMN_GAP.split(line.strip())[0].strip(' :,')
            if not line:
                if kept:
                    break
                continue
            lowered = line.lower()
            if index > 0 and any(word in lowered for word in SECTION_BREAK_WORDS):
                break
            kept.append(line)

        value = '\n'.join(kept)
        if len(value) < 3:
            return None
        return value

    def _clean_currency(self, raw: str) -> Optional[str]:
        raw = raw.strip()
        if raw in self.CURRENCY_SYMBOLS:
            return self.CURRENCY_SYMBOLS[raw]
        if re.fullmatch(r'[A-Za-z]{3}', raw):
            return raw.upper()
        return None
