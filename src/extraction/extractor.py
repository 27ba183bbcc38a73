"""
Candidate Extraction Module.

Runs five independent heuristic layers over a document and pools every
value they propose:

    1. pattern      - declarative regex tables per field
    2. markup_table - two-column ``| key | value |`` rows of the markup
    3. spatial      - colon pairs, column pairs, label-above-value,
                      fixed-width item rows, keyword proximity
    4. template     - document-type rules and vendor template labels
    5. fuzzy        - edit-distance label matching for critical fields
                      still missing after layers 1-4

Usage:
    from src.extraction import CandidateExtractor

    extractor = CandidateExtractor()
    result = extractor.extract(document)
    for candidate in result.candidates:
        print(candidate.field, candidate.value, candidate.confidence)

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from config import get_config
from src.input_handler.document import RawDocument
from src.input_handler.structure import DocumentStructure, DocumentStructureAnalyzer, split_table_row
from src.utils.exceptions import LayerExtractionError, NoCandidatesError
from src.utils.helpers import clamp, split_lines
from src.utils.logger import get_logger

from .candidate import Candidate
from .field_mapper import FieldMapper, FieldValueCleaner, normalize_label
from .field_patterns import (
    ADDRESS_FIELDS,
    DATE_VALUE,
    FIELD_PATTERNS,
    FUZZY_SYNONYMS,
    HEADING_WORDS,
    FieldMatcher,
)
from .line_items import LineItemRowParser, line_items_to_json
from .templates import TemplateMatch, TemplateRecognizer

# Initialize module logger
logger = get_logger(__name__)

OTHER_DATES = re.compile(r'\b(?:due|ship)\s*date', re.I)
OTHER_INVOICE_LABELS = re.compile(r'invoice\s*(?:date|total|amount|due)', re.I)

# Tokens that read as a year or a money amount are never identifiers
BARE_YEAR = re.compile(r'(?:19|20)\d{2}')
AMOUNT_PREFIX = re.compile(r'[$€£¥]\s?$')
AMOUNT_SUFFIX = re.compile(r'(?:[.,]\d{2}(?!\d)|\s*€)')

# Keyword proximity rules:
# (field, keywords, value pattern, confidence, skip pattern, reject years/amounts)
PROXIMITY_RULES = [
    ('total_amount', ('total', 'amount due', 'balance due'),
     re.compile(r'[$€£]?\s?\d[\d.,]*\d(?:\s*€)?'), 0.75, re.compile(r'sub\s*-?\s*total', re.I), False),
    ('invoice_date', ('date',), re.compile(DATE_VALUE), 0.7, OTHER_DATES, False),
    ('invoice_number', ('invoice', 'inv'),
     re.compile(r'\b(?=[A-Z0-9\-]*\d)[A-Z0-9][A-Z0-9\-]{2,}\b'), 0.65, OTHER_INVOICE_LABELS, True),
]

COLON_PAIR = re.compile(r'^([^:]{2,40}):\s*(.*)$')
COLUMN_GAP = re.compile(r'\s{2,}|\t')

TYPE_KEYWORDS = [
    ('invoice', ('invoice', 'bill')),
    ('statement', ('statement', 'account')),
    ('receipt', ('receipt', 'purchase')),
]

TEMPLATE_FIELD_MAP = {'invoice_number': 'invoice_number', 'total': 'total_amount', 'date': 'invoice_date'}
TEMPLATE_VALUE_PATTERNS = {
    'invoice_number': r'#?\s*((?=[A-Z0-9\-_/]*\d)[A-Z0-9][A-Z0-9\-_/]{2,})',
    'total_amount': r'[$€£]?\s*(\d[\d.,]*)',
    'invoice_date': DATE_VALUE,
}


@dataclass
class ExtractionResult:
    """
    Everything the extractor found in one document.

    Attributes:
        candidates: Pooled candidates from all layers, in layer order
        structure: Layout analysis of the document
        document_type: invoice / statement / receipt / unknown
        template_match: Best vendor template match, if any
        layer_counts: Number of candidates each layer produced
    """
    candidates: List[Candidate] = field(default_factory=list)
    structure: DocumentStructure = field(default_factory=DocumentStructure)
    document_type: str = 'unknown'
    template_match: Optional[TemplateMatch] = None
    layer_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def fields_found(self) -> List[str]:
        return sorted({c.field for c in self.candidates})


class CandidateExtractor:
    """
    Multi-layer candidate extractor.

    All layers run for every document; the aggregator decides between
    their proposals. The extractor keeps no per-document state, so one
    instance can be shared.

    Attributes:
        layers: Enabled layer names, in execution order
        analyzer: Document structure analyzer
        mapper: Label canonicalizer
        cleaner: Per-field value cleaner
        templates: Vendor template recognizer

    Example:
        >>> extractor = CandidateExtractor()
        >>> result = extractor.extract(RawDocument(text="Invoice Number: INV-2024-001"))
        >>> result.candidates[0].field, result.candidates[0].value
        ('invoice_number', 'INV-2024-001')
    """

    def __init__(
        self,
        analyzer: Optional[DocumentStructureAnalyzer] = None,
        mapper: Optional[FieldMapper] = None,
        cleaner: Optional[FieldValueCleaner] = None,
        templates: Optional[TemplateRecognizer] = None,
        row_parser: Optional[LineItemRowParser] = None
    ) -> None:
        self.analyzer = analyzer or DocumentStructureAnalyzer()
        self.mapper = mapper or FieldMapper()
        self.cleaner = cleaner or FieldValueCleaner()
        self.templates = templates or TemplateRecognizer()
        self.row_parser = row_parser or LineItemRowParser()

        self.layers = get_config(
            "extraction.layers", ['pattern', 'markup_table', 'spatial', 'template', 'fuzzy']
        )
        self.bounds = tuple(get_config("extraction.confidence_bounds", [0.1, 0.99]))

        self.top_lines = get_config("extraction.pattern.top_lines", 5)
        self.top_line_bonus = get_config("extraction.pattern.top_line_bonus", 0.1)
        self.colon_bonus = get_config("extraction.pattern.colon_bonus", 0.05)
        self.short_value_penalty = get_config("extraction.pattern.short_value_penalty", 0.2)

        self.markup_confidence = get_config("extraction.markup_table_confidence", 0.9)
        self.spatial = {
            'colon_pair': get_config("extraction.spatial.colon_pair_confidence", 0.8),
            'key_value_region': get_config("extraction.spatial.key_value_region_confidence", 0.85),
            'column_pair': get_config("extraction.spatial.column_pair_confidence", 0.75),
            'next_line': get_config("extraction.spatial.next_line_confidence", 0.7),
            'table_row': get_config("extraction.spatial.table_row_confidence", 0.65),
        }
        self.template_conf = {
            'line_items': get_config("extraction.template.line_item_confidence", 0.8),
            'vendor_template': get_config("extraction.template.vendor_template_confidence", 0.85),
            'section': get_config("extraction.template.section_confidence", 0.75),
            'header_vendor': get_config("extraction.template.header_vendor_confidence", 0.7),
        }
        self.fuzzy_fields = get_config(
            "extraction.fuzzy.fields", ['invoice_number', 'invoice_date', 'vendor_name', 'total_amount']
        )
        self.fuzzy_distance = get_config("extraction.fuzzy.max_distance", 2)
        self.fuzzy_confidence = get_config("extraction.fuzzy.confidence", 0.6)

        self._layer_methods: Dict[str, Callable] = {
            'pattern': self._pattern_layer,
            'markup_table': self._markup_table_layer,
            'spatial': self._spatial_layer,
            'template': self._template_layer,
            'fuzzy': self._fuzzy_layer,
        }

        logger.debug(f"CandidateExtractor initialized (layers: {', '.join(self.layers)})")

    def extract(self, document: RawDocument) -> ExtractionResult:
        """
        Run every enabled layer over the document.

        Args:
            document: Document to extract from.

        Returns:
            ExtractionResult with the pooled candidates.

        Raises:
            LayerExtractionError: If a layer fails.
            NoCandidatesError: If no layer proposed anything.
        """
        result = ExtractionResult(
            structure=self.analyzer.analyze(document.plain_text, document.markup)
        )
        result.document_type = self.detect_document_type(document.plain_text)

        for layer in self.layers:
            method = self._layer_methods.get(layer)
            if method is None:
                logger.warning(f"Unknown extraction layer '{layer}', skipping")
                continue

            try:
                found = list(method(document, result))
            except Exception as e:
                raise LayerExtractionError(layer, str(e)) from e

            result.layer_counts[layer] = len(found)
            result.candidates.extend(found)

        logger.debug(f"Extracted {len(result.candidates)} candidates: {result.layer_counts}")

        if not result.candidates:
            raise NoCandidatesError(len(document.lines))

        return result

    @staticmethod
    def detect_document_type(text: str) -> str:
        """Classify by keyword: invoice, statement, receipt or unknown."""
        lowered = (text or '').lower()
        for doc_type, keywords in TYPE_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return doc_type
        return 'unknown'

    # -------------------------------------------------------------------------
    # Layer 1: patterns
    # -------------------------------------------------------------------------

    def _pattern_layer(self, document: RawDocument, result: ExtractionResult) -> Iterable[Candidate]:
        text = document.plain_text
        lines = split_lines(text)

        for field_name, matchers in FIELD_PATTERNS.items():
            for matcher in matchers:
                search_text = '\n'.join(lines[:matcher.max_lines]) if matcher.max_lines else text
                for match in matcher.pattern.finditer(search_text):
                    candidate = self._pattern_candidate(field_name, matcher, match, search_text)
                    if candidate is None:
                        continue
                    yield candidate
                    if not matcher.repeat:
                        break

    def _pattern_candidate(self, field_name: str, matcher: FieldMatcher, match: re.Match,
                           search_text: str) -> Optional[Candidate]:
        raw = match.group(1)
        if raw is None:
            return None
        if matcher.exclude is not None and matcher.exclude.search(raw.strip()):
            return None

        value = self.cleaner.clean(field_name, raw, strict=matcher.strict)
        if value is None:
            return None

        line, column = _position(search_text, match.start(1))

        confidence = matcher.confidence
        if line < self.top_lines:
            confidence += self.top_line_bonus
        if ':' in match.group(0):
            confidence += self.colon_bonus
        if len(raw.strip()) < 3:
            confidence -= self.short_value_penalty

        return Candidate(
            field=field_name,
            value=value,
            confidence=clamp(confidence, self.bounds),
            method=f"pattern:{matcher.context}",
            context=_line_at(search_text, match.start(1)),
            line=line,
            column=column,
        )

    # -------------------------------------------------------------------------
    # Layer 2: markup key/value tables
    # -------------------------------------------------------------------------

    def _markup_table_layer(self, document: RawDocument, result: ExtractionResult) -> Iterable[Candidate]:
        if not document.has_markup:
            return

        for index, line in enumerate(split_lines(document.markup)):
            cells = split_table_row(line)
            if not cells or len(cells) != 2:
                continue

            key, raw = cells[0].strip('*: '), cells[1].strip('* ')
            field_name = self.mapper.canonicalize(key)
            if field_name is None:
                continue

            value = self.cleaner.clean(field_name, raw)
            if value is None:
                continue

            yield Candidate(field_name, value, self.markup_confidence, 'markup_table',
                            context=line, line=index)

    # -------------------------------------------------------------------------
    # Layer 3: spatial relationships
    # -------------------------------------------------------------------------

    def _spatial_layer(self, document: RawDocument, result: ExtractionResult) -> Iterable[Candidate]:
        lines = document.lines
        structure = result.structure
        items = []

        for index, line in enumerate(lines):
            if not line:
                continue

            pair = self._colon_pair(line)
            if pair is not None:
                field_name, raw = pair
                if raw:
                    method = 'key_value_region' if structure.in_key_value_region(index) else 'colon_pair'
                    candidate = self._spatial_candidate(field_name, raw, self.spatial[method],
                                                        f"spatial:{method}", line, index)
                    if candidate:
                        yield candidate
                else:
                    candidate = self._next_line_candidate(field_name, lines, index)
                    if candidate:
                        yield candidate
                continue

            parts = [p for p in COLUMN_GAP.split(line) if p]
            if len(parts) == 2:
                field_name = self.mapper.canonicalize(parts[0])
                if field_name is not None:
                    candidate = self._spatial_candidate(field_name, parts[1], self.spatial['column_pair'],
                                                        'spatial:column_pair', line, index)
                    if candidate:
                        yield candidate
                        continue

            if self._is_label_line(line):
                candidate = self._next_line_candidate(self.mapper.lookup(line), lines, index)
                if candidate:
                    yield candidate
                    continue

            item = self.row_parser.parse_text_row(line, len(items) + 1)
            if item is not None:
                items.append((index, item))

        if items:
            yield Candidate(
                field='line_items',
                value=line_items_to_json([item for _, item in items]),
                confidence=self.spatial['table_row'],
                method='spatial:table_rows',
                context=f"{len(items)} rows",
                line=items[0][0],
            )

        yield from self._proximity_candidates(lines)

    def _colon_pair(self, line: str) -> Optional[Tuple[str, str]]:
        match = COLON_PAIR.match(line)
        if not match:
            return None
        field_name = self.mapper.canonicalize(match.group(1))
        if field_name is None:
            return None
        return field_name, match.group(2).strip()

    def _is_label_line(self, line: str) -> bool:
        return (
            len(line.split()) <= 4
            and not re.search(r'\d', line)
            and self.mapper.lookup(line) is not None
        )

    def _next_line_candidate(self, field_name: Optional[str], lines: List[str],
                             index: int) -> Optional[Candidate]:
        if field_name is None:
            return None

        following = [l for l in lines[index + 1:index + 6]]
        while following and not following[0]:
            following.pop(0)
        if not following:
            return None

        raw = '\n'.join(following) if field_name in ADDRESS_FIELDS else following[0]
        return self._spatial_candidate(field_name, raw, self.spatial['next_line'],
                                       'spatial:next_line', lines[index], index + 1)

    def _spatial_candidate(self, field_name: str, raw: str, confidence: float, method: str,
                           context: str, line: int) -> Optional[Candidate]:
        value = self.cleaner.clean(field_name, raw)
        if value is None:
            return None
        return Candidate(field_name, value, confidence, method, context=context, line=line)

    def _proximity_candidates(self, lines: List[str]) -> Iterable[Candidate]:
        for field_name, keywords, value_pattern, confidence, skip, reject_amounts in PROXIMITY_RULES:
            for index, line in enumerate(lines):
                hit = next(
                    (m for m in (re.search(rf"\b{re.escape(k)}\b", line, re.I) for k in keywords) if m),
                    None
                )
                if hit is None or skip.search(line):
                    continue

                after = line[hit.end():]
                next_line = lines[index + 1] if index + 1 < len(lines) else ''
                if skip.search(next_line):
                    next_line = ''

                candidate = None
                for source, line_number in ((after, index), (next_line, index + 1)):
                    for match in value_pattern.finditer(source):
                        if reject_amounts and _is_year_or_amount(source, match):
                            continue
                        value = self.cleaner.clean(field_name, match.group(0), strict=True)
                        if value is not None:
                            candidate = Candidate(field_name, value, confidence, 'spatial:proximity',
                                                  context=line, line=line_number)
                        break
                    if candidate is not None:
                        break

                if candidate is not None:
                    yield candidate
                    break

    # -------------------------------------------------------------------------
    # Layer 4: document type and vendor templates
    # -------------------------------------------------------------------------

    def _template_layer(self, document: RawDocument, result: ExtractionResult) -> Iterable[Candidate]:
        text = document.plain_text
        lines = document.lines
        doc_type = result.document_type

        if doc_type == 'invoice':
            yield from self._invoice_rules(result.structure, lines)
        elif doc_type == 'statement':
            yield from self._statement_rules(text)
        elif doc_type == 'receipt':
            yield from self._receipt_rules(lines)

        result.template_match = self.templates.recognize(text)
        if result.template_match is not None:
            template = self.templates.get_template(result.template_match.template_id)
            yield from self._vendor_template_candidates(template.field_patterns, lines)

    def _invoice_rules(self, structure: DocumentStructure, lines: List[str]) -> Iterable[Candidate]:
        items = []
        for table in structure.tables:
            for cells in table.rows:
                item = self.row_parser.parse_table_row(cells, len(items) + 1)
                if item is not None:
                    items.append(item)
        if items:
            yield Candidate('line_items', line_items_to_json(items), self.template_conf['line_items'],
                            'template:markup_table_items', context=f"{len(items)} rows")

        for header in structure.headers:
            if header.line >= 3 and not header.from_markup:
                continue
            if len(header.text) < 3 or HEADING_WORDS.search(header.text):
                continue
            value = self.cleaner.clean('vendor_name', header.text.strip('*'))
            if value:
                yield Candidate('vendor_name', value, self.template_conf['header_vendor'],
                                'template:header_vendor', context=header.text, line=header.line)
                break

        for section_name, field_name in (('bill to', 'bill_to'), ('ship to', 'ship_to')):
            section = structure.section(section_name)
            if section is None:
                continue
            first = re.split(rf'{section_name}\s*:?', section.content[0], maxsplit=1, flags=re.I)
            body = [first[-1]] + section.content[1:]
            value = self.cleaner.clean(field_name, '\n'.join(body))
            if value:
                yield Candidate(field_name, value, self.template_conf['section'],
                                'template:section', context=section.content[0], line=section.start)

    def _statement_rules(self, text: str) -> Iterable[Candidate]:
        confidence = self.template_conf['section']
        rules = [
            ('invoice_number', r'account\s*(?:number|no\.?|#)?\s*:?\s*([A-Z0-9\-]{4,})'),
            ('invoice_date', r'statement\s*date\s*:?\s*' + DATE_VALUE),
            ('total_amount', r'(?:new\s*balance|amount\s*due)\s*:?\s*[$€£]?\s*(\d[\d.,]*)'),
        ]
        for field_name, regex in rules:
            match = re.search(regex, text, re.IGNORECASE)
            if not match:
                continue
            value = self.cleaner.clean(field_name, match.group(1))
            if value:
                yield Candidate(field_name, value, confidence, 'template:statement',
                                context=match.group(0), line=_position(text, match.start(1))[0])

    def _receipt_rules(self, lines: List[str]) -> Iterable[Candidate]:
        confidence = self.template_conf['section']
        merchant = next((l for l in lines if l), None)
        if merchant:
            value = self.cleaner.clean('vendor_name', merchant)
            if value:
                yield Candidate('vendor_name', value, self.template_conf['header_vendor'],
                                'template:receipt_merchant', context=merchant, line=lines.index(merchant))

        for index in range(len(lines) - 1, -1, -1):
            line = lines[index]
            if re.search(r'\btotal\b', line, re.I) and not re.search(r'sub\s*-?\s*total', line, re.I):
                amounts = re.findall(r'\d[\d.,]*\d', line)
                value = self.cleaner.clean('total_amount', amounts[-1]) if amounts else None
                if value:
                    yield Candidate('total_amount', value, confidence, 'template:receipt_total',
                                    context=line, line=index)
                break

    def _vendor_template_candidates(self, field_patterns: Dict[str, List[str]],
                                    lines: List[str]) -> Iterable[Candidate]:
        confidence = self.template_conf['vendor_template']
        for group, labels in field_patterns.items():
            field_name = TEMPLATE_FIELD_MAP.get(group)
            if field_name is None:
                continue
            value_pattern = TEMPLATE_VALUE_PATTERNS[field_name]
            found = False
            for label in labels:
                regex = re.compile(rf'\b{re.escape(label.rstrip(":#").strip())}\s*[:#]?\s*{value_pattern}',
                                   re.IGNORECASE)
                for index, line in enumerate(lines):
                    match = regex.search(line)
                    if not match or (field_name == 'invoice_date' and OTHER_DATES.search(line)):
                        continue
                    value = self.cleaner.clean(field_name, match.group(1), strict=True)
                    if value:
                        yield Candidate(field_name, value, confidence, 'template:vendor_template',
                                        context=line, line=index)
                        found = True
                        break
                if found:
                    break

    # -------------------------------------------------------------------------
    # Layer 5: fuzzy labels
    # -------------------------------------------------------------------------

    def _fuzzy_layer(self, document: RawDocument, result: ExtractionResult) -> Iterable[Candidate]:
        found = {c.field for c in result.candidates}
        missing = [f for f in self.fuzzy_fields if f not in found]
        if not missing:
            return

        lines = document.lines
        for field_name in missing:
            synonyms = FUZZY_SYNONYMS.get(field_name, [])
            for index, line in enumerate(lines):
                label, raw = _split_label(line)
                label = normalize_label(label)
                if len(label) < 3 or not raw:
                    continue
                if not any(Levenshtein.distance(label, s) <= self.fuzzy_distance for s in synonyms):
                    continue

                if field_name == 'total_amount':
                    amounts = re.findall(r'\d[\d.,]*', raw)
                    raw = amounts[0] if amounts else None

                # A near-miss label is weak evidence; only a parseable date counts
                value = self.cleaner.clean(field_name, raw, strict=field_name == 'invoice_date')
                if value is None:
                    continue

                yield Candidate(field_name, value, self.fuzzy_confidence, 'fuzzy:label',
                                context=line, line=index)
                break


def _position(text: str, offset: int) -> Tuple[int, int]:
    """0-based (line, column) of a character offset."""
    line = text.count('\n', 0, offset)
    column = offset - (text.rfind('\n', 0, offset) + 1)
    return line, column


def _line_at(text: str, offset: int) -> str:
    start = text.rfind('\n', 0, offset) + 1
    end = text.find('\n', offset)
    return text[start:end if end != -1 else len(text)].strip()


def _is_year_or_amount(source: str, match: re.Match) -> bool:
    """True when a matched token is a bare year or part of a money amount."""
    if BARE_YEAR.fullmatch(match.group(0)):
        return True
    return bool(
        AMOUNT_PREFIX.search(source[:match.start()])
        or AMOUNT_SUFFIX.match(source, match.end())
    )


def _split_label(line: str) -> Tuple[str, str]:
    """Split ``label: value`` / ``label = value``; otherwise first word and rest."""
    match = re.match(r'^([^:=]+)[:=]\s*(.*)$', line)
    if match:
        return match.group(1), match.group(2).strip()
    parts = line.split(None, 1)
    if len(parts) == 2:
        return parts[0], parts[1]
    return line, ''
