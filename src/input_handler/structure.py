"""
Document Structure Analysis Module.

Finds the coarse layout of an invoice page before any field is read:
headings, markup tables, named sections (bill to, ship to, ...) and runs of
``key: value`` lines. The extractor uses the result to pick confidences and
to read line items out of tables.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from src.utils.helpers import split_lines
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class Header:
    text: str
    level: int
    line: int
    from_markup: bool = False


@dataclass
class Table:
    """A markup table; ``start``/``end`` are markup line indexes, inclusive."""
    start: int
    end: int
    headers: List[str]
    rows: List[List[str]] = field(default_factory=list)


@dataclass
class Section:
    """A named block of text lines; ``start``/``end`` are text line indexes, inclusive."""
    name: str
    start: int
    end: int
    content: List[str] = field(default_factory=list)


@dataclass
class KeyValueRegion:
    start: int
    end: int
    type: str = "colon_separated"

    def contains(self, line: int) -> bool:
        return self.start <= line <= self.end


@dataclass
class DocumentStructure:
    """
    Layout summary of one document.

    Attributes:
        headers: Markup headings and all-caps text headings
        tables: Markup tables
        sections: Keyword-introduced sections of the text
        key_value_regions: Runs of adjacent ``key: value`` lines
    """
    headers: List[Header] = field(default_factory=list)
    tables: List[Table] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    key_value_regions: List[KeyValueRegion] = field(default_factory=list)

    def section(self, name: str) -> Optional[Section]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def in_key_value_region(self, line: int) -> bool:
        return any(region.contains(line) for region in self.key_value_regions)


class DocumentStructureAnalyzer:
    """
    Detects headers, tables, sections and key-value regions.

    The analyzer is stateless; one instance can serve any number of
    documents concurrently.

    Example:
        >>> analyzer = DocumentStructureAnalyzer()
        >>> structure = analyzer.analyze("ACME CORP\\nBill To:\\nJane Doe", None)
        >>> structure.headers[0].text
        'ACME CORP'
        >>> structure.sections[0].name
        'bill to'
    """

    SECTION_KEYWORDS = ['bill to', 'ship to', 'from', 'vendor', 'items', 'total', 'terms']
    SECTION_INDICATORS = ['bill to', 'ship to', 'total', 'subtotal', 'terms', 'notes']

    MARKUP_HEADING = re.compile(r'^(#{1,6})\s+(.+)$')
    TABLE_SEPARATOR_CELL = re.compile(r'^:?-{2,}:?$')
    MAX_TEXT_HEADER_LENGTH = 50

    def analyze(self, text: str, markup: Optional[str] = None) -> DocumentStructure:
        """
        Analyze a document.

        Args:
            text: Plain OCR text.
            markup: Optional markup rendering of the same page.

        Returns:
            DocumentStructure for the document.
        """
        lines = split_lines(text)
        markup_lines = split_lines(markup or "")

        structure = DocumentStructure(
            headers=self._find_headers(lines, markup_lines),
            tables=self._find_tables(markup_lines),
            sections=self._find_sections(lines),
            key_value_regions=self._find_key_value_regions(lines),
        )

        logger.debug(
            f"Structure: {len(structure.headers)} headers, {len(structure.tables)} tables, "
            f"{len(structure.sections)} sections, {len(structure.key_value_regions)} kv regions"
        )
        return structure

    def _find_headers(self, lines: List[str], markup_lines: List[str]) -> List[Header]:
        headers = []

        for index, line in enumerate(markup_lines):
            match = self.MARKUP_HEADING.match(line)
            if match:
                headers.append(Header(match.group(2).strip(), len(match.group(1)), index, True))

        for index, line in enumerate(lines):
            if self._is_text_header(line):
                headers.append(Header(line, 1, index))

        return headers

    def _is_text_header(self, line: str) -> bool:
        return (
            0 < len(line) < self.MAX_TEXT_HEADER_LENGTH
            and line == line.upper()
            and any(ch.isalpha() for ch in line)
            and ':' not in line
            and not line[0].isdigit()
        )

    def _find_tables(self, markup_lines: List[str]) -> List[Table]:
        tables = []
        current: Optional[Table] = None

        for index, line in enumerate(markup_lines):
            cells = split_table_row(line)
            if cells is None:
                if current is not None:
                    tables.append(current)
                    current = None
                continue

            if current is None:
                current = Table(start=index, end=index, headers=cells)
                continue

            current.end = index
            if not all(self.TABLE_SEPARATOR_CELL.match(cell) for cell in cells if cell):
                current.rows.append(cells)

        if current is not None:
            tables.append(current)

        return tables

    def _find_sections(self, lines: List[str]) -> List[Section]:
        sections = []

        for index, line in enumerate(lines):
            lowered = line.lower()
            keyword = next((k for k in self.SECTION_KEYWORDS if k in lowered), None)
            if keyword is None:
                continue

            end = index
            for next_index in range(index + 1, len(lines)):
                next_line = lines[next_index].lower()
                if any(indicator in next_line for indicator in self.SECTION_INDICATORS):
                    break
                end = next_index

            sections.append(Section(keyword, index, end, lines[index:end + 1]))

        return sections

    def _find_key_value_regions(self, lines: List[str]) -> List[KeyValueRegion]:
        regions = []
        index = 0

        while index < len(lines):
            if ':' not in lines[index]:
                index += 1
                continue

            end = index
            while end + 1 < len(lines) and ':' in lines[end + 1]:
                end += 1

            if end > index:
                regions.append(KeyValueRegion(index, end))
            index = end + 1

        return regions


def split_table_row(line: str) -> Optional[List[str]]:
    """
    Split a ``| a | b |`` markup row into stripped cells.

    Returns:
        The cells, or None when the line is not a row with at least two cells.
    """
    stripped = line.strip()
    if not stripped.startswith('|'):
        return None

    cells = [cell.strip() for cell in stripped.strip('|').split('|')]
    if len(cells) < 2:
        return None
    return cells
