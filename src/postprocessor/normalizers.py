"""
Data Normalizers Module.

This module provides normalization for:
    - Date strings (to ISO YYYY-MM-DD)
    - Money amounts, through pluggable locale parsers
    - Free text values

Author: ML Engineering Team
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Type

from dateutil import parser as date_parser

from config import get_config
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def clean_text(value: Optional[str]) -> str:
    """
    Collapse whitespace and strip separator punctuation from a field value.

    Example:
        >>> clean_text("  ACME   Corp :")
        "ACME Corp"
    """
    if not value:
        return ''
    value = ' '.join(value.split())
    return value.strip(' :;|-\t')


class DateNormalizer:
    """
    Normalizes date strings to ISO format (YYYY-MM-DD).

    Numeric dates are read with a fixed heuristic instead of a locale
    setting: a 4-digit leading token is the year; otherwise the year is the
    last token and the first token is the month when it is 12 or less, the
    day when it is larger. Two-digit years below the century pivot (50) are
    20xx, the rest 19xx. Written dates ("March 15, 2024", "15 Mar 2024") go
    through dateutil.

    Attributes:
        output_format: Target date format string
        century_pivot: Two-digit years below this are in the 2000s

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.normalize("03/15/2024")
        "2024-03-15"
        >>> normalizer.normalize("15.03.2024")
        "2024-03-15"
        >>> normalizer.normalize("13/45/2024") is None
        True
    """

    YEAR_FIRST_PATTERN = re.compile(r'(?<!\d)(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?!\d)')
    YEAR_LAST_PATTERN = re.compile(r'(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})(?!\d)')
    WRITTEN_PATTERNS = [
        # Month DD, YYYY
        re.compile(
            r'\b((?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+\d{1,2}'
            r'(?:st|nd|rd|th)?,?\s+\d{4})\b',
            re.IGNORECASE
        ),
        # DD Month YYYY
        re.compile(
            r'\b(\d{1,2}(?:st|nd|rd|th)?\.?\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)'
            r'[a-z]*\.?,?\s+\d{4})\b',
            re.IGNORECASE
        ),
    ]

    def __init__(self) -> None:
        self.output_format = get_config("postprocessing.date.output_format", "%Y-%m-%d")
        self.century_pivot = get_config("postprocessing.date.century_pivot", 50)

    def normalize(self, date_str: Optional[str]) -> Optional[str]:
        """
        Normalize the first date found in ``date_str``.

        Args:
            date_str: Text containing a date in any recognized format.

        Returns:
            Normalized date string, or None if no valid date is found.
        """
        if not date_str:
            return None

        date_str = ' '.join(date_str.split())

        parsed = self._parse_numeric(date_str)
        if parsed is None:
            parsed = self._parse_written(date_str)

        if parsed is None:
            logger.debug(f"Could not parse date: {date_str}")
            return None

        return parsed.strftime(self.output_format)

    def _parse_numeric(self, date_str: str) -> Optional[datetime]:
        match = self.YEAR_FIRST_PATTERN.search(date_str)
        if match:
            year, first, second = (int(part) for part in match.groups())
            month, day = (first, second) if first <= 12 else (second, first)
            return self._build(year, month, day)

        match = self.YEAR_LAST_PATTERN.search(date_str)
        if match:
            first, second = int(match.group(1)), int(match.group(2))
            year = self._expand_year(match.group(3))
            month, day = (first, second) if first <= 12 else (second, first)
            return self._build(year, month, day)

        return None

    def _parse_written(self, date_str: str) -> Optional[datetime]:
        for pattern in self.WRITTEN_PATTERNS:
            match = pattern.search(date_str)
            if not match:
                continue
            candidate = re.sub(r'(\d+)(st|nd|rd|th)', r'\1', match.group(1), flags=re.IGNORECASE)
            try:
                return date_parser.parse(candidate.replace('.', ' '), dayfirst=False)
            except (ValueError, OverflowError):
                continue
        return None

    def _expand_year(self, year: str) -> int:
        value = int(year)
        if len(year) == 2:
            return 2000 + value if value < self.century_pivot else 1900 + value
        return value

    @staticmethod
    def _build(year: int, month: int, day: int) -> Optional[datetime]:
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    @staticmethod
    def is_iso(date_str: Optional[str]) -> bool:
        """Check if a string is already in YYYY-MM-DD shape."""
        return bool(date_str) and bool(ISO_DATE_PATTERN.match(date_str))


# =============================================================================
# LOCALE AMOUNT PARSERS
# =============================================================================

class LocaleAmountParser:
    """
    Base class for locale-specific amount parsing.

    A parser decides whether it ``claims`` a numeric token and converts the
    tokens it claims to a float. ``line_token_pattern`` finds amount tokens
    inside an invoice line item row for that locale.
    """

    name = 'base'
    line_token_pattern: re.Pattern = re.compile(r'(?!)')

    def claims(self, token: str) -> bool:
        raise NotImplementedError

    def parse(self, token: str) -> Optional[float]:
        raise NotImplementedError

    def find_tokens(self, line: str) -> List[re.Match]:
        """Return the amount tokens of ``line`` in order of appearance."""
        return list(self.line_token_pattern.finditer(line))

    @staticmethod
    def _to_float(digits: str) -> Optional[float]:
        try:
            return float(digits)
        except ValueError:
            return None

    @staticmethod
    def _has_decimal_comma(token: str) -> bool:
        # One comma, after the last dot, followed by 1-2 digits
        if token.count(',') != 1:
            return False
        comma_pos = token.rfind(',')
        after_comma = token[comma_pos + 1:]
        return comma_pos > token.rfind('.') and 0 < len(after_comma) <= 2 and after_comma.isdigit()


class USAmountParser(LocaleAmountParser):
    """Decimal point, comma thousands separator: ``$1,234.56``."""

    name = 'us'
    line_token_pattern = re.compile(
        r'(?<![\d.,])[$£¥]?\s?(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}(?!\d)'
    )

    def claims(self, token: str) -> bool:
        return not self._has_decimal_comma(token)

    def parse(self, token: str) -> Optional[float]:
        return self._to_float(re.sub(r'[^\d.\-]', '', token.replace(',', '')))


class EuropeanAmountParser(LocaleAmountParser):
    """Decimal comma, dot thousands separator, trailing euro sign: ``1.234,56 €``."""

    name = 'european'
    line_token_pattern = re.compile(r'(?<![\d.,])(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}\s*€')

    def claims(self, token: str) -> bool:
        return self._has_decimal_comma(token)

    def parse(self, token: str) -> Optional[float]:
        digits = re.sub(r'[^\d,\-]', '', token).replace(',', '.')
        return self._to_float(digits)


AMOUNT_PARSERS: Dict[str, Type[LocaleAmountParser]] = {
    USAmountParser.name: USAmountParser,
    EuropeanAmountParser.name: EuropeanAmountParser,
}


def get_amount_parsers(names: Optional[List[str]] = None) -> List[LocaleAmountParser]:
    """
    Instantiate the configured locale parsers.

    Args:
        names: Locale names; defaults to ``postprocessing.amount.locales``.

    Returns:
        Parser instances in configured order. Unknown names are skipped.
    """
    names = names or get_config("postprocessing.amount.locales", ['us', 'european'])
    parsers = []
    for name in names:
        parser_cls = AMOUNT_PARSERS.get(name)
        if parser_cls is None:
            logger.warning(f"Unknown amount locale '{name}', skipping")
            continue
        parsers.append(parser_cls())
    return parsers


class AmountNormalizer:
    """
    Normalizes currency/amount strings to a two-decimal numeric string.

    Currency symbols and codes are stripped, the first numeric token is
    kept and handed to the first locale parser that claims it.

    Attributes:
        parsers: Locale parsers consulted in order
        decimal_places: Digits after the decimal point in the output

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.normalize("$1,234.56")
        "1234.56"
        >>> normalizer.normalize("1.234,56 €")
        "1234.56"
    """

    CURRENCY_SYMBOLS = ['$', '€', '£', '¥', '₹']
    CURRENCY_CODES = ['USD', 'EUR', 'GBP', 'JPY', 'INR', 'CAD', 'AUD']
    NUMERIC_TOKEN = re.compile(r'-?\d[\d.,]*')

    def __init__(self, parsers: Optional[List[LocaleAmountParser]] = None) -> None:
        self.parsers = parsers or get_amount_parsers()
        self.decimal_places = get_config("postprocessing.amount.decimal_places", 2)

    def normalize(self, amount_str: Optional[str]) -> Optional[str]:
        """
        Normalize an amount string.

        Args:
            amount_str: Input amount string (e.g., "$1,234.56").

        Returns:
            Normalized amount string (e.g., "1234.56") or None.
        """
        value = self.to_float(amount_str)
        if value is None:
            return None
        return f"{value:.{self.decimal_places}f}"

    def to_float(self, amount_str: Optional[str]) -> Optional[float]:
        """
        Convert an amount string to float.

        Args:
            amount_str: Amount string to convert.

        Returns:
            Float value or None.
        """
        if amount_str is None:
            return None

        token = self._first_token(str(amount_str))
        if token is None:
            return None

        for parser in self.parsers:
            if parser.claims(token):
                return parser.parse(token)

        logger.debug(f"No locale parser claimed amount token: {token}")
        return None

    def _first_token(self, amount_str: str) -> Optional[str]:
        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, ' ')
        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', ' ', amount_str, flags=re.IGNORECASE)

        match = self.NUMERIC_TOKEN.search(amount_str)
        if not match:
            return None
        return match.group(0).rstrip('.,')

    def is_valid_amount(self, amount_str: Optional[str]) -> bool:
        """True when ``amount_str`` contains a parseable, non-negative amount."""
        value = self.to_float(amount_str)
        return value is not None and value >= 0
