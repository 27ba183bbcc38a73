"""
Vendor Template Recognition Module.

Matches OCR text against a catalogue of known invoice layouts (Amazon,
AWS, utilities, telecoms, ...) loaded from ``config/templates.yaml``, and
derives an invoice category from the match or the vendor name.

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from config import get_config, load_yaml_file
from src.utils.exceptions import ConfigurationError
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


def normalize_for_matching(text: str) -> str:
    """Lowercase, punctuation to spaces, whitespace collapsed."""
    text = re.sub(r'[^\w\s]', ' ', (text or '').lower())
    return ' '.join(text.split())


@dataclass
class InvoiceTemplate:
    """
    A known invoice layout.

    Attributes:
        id: Stable identifier, stamped on matched invoices
        name: Display name
        category: Category reported for matched invoices
        vendor_patterns: Vendor name fragments
        field_patterns: Labels per field group (invoice_number, total, date)
        layout_indicators: Phrases typical of the layout
        confidence_threshold: Minimum score for a match
    """
    id: str
    name: str
    category: str
    vendor_patterns: List[str] = field(default_factory=list)
    field_patterns: Dict[str, List[str]] = field(default_factory=dict)
    layout_indicators: List[str] = field(default_factory=list)
    confidence_threshold: float = 0.7

    @classmethod
    def from_dict(cls, data: Dict) -> 'InvoiceTemplate':
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            category=data.get('category', 'General'),
            vendor_patterns=list(data.get('vendor_patterns') or []),
            field_patterns={k: list(v) for k, v in (data.get('field_patterns') or {}).items()},
            layout_indicators=list(data.get('layout_indicators') or []),
            confidence_threshold=float(data.get('confidence_threshold', 0.7)),
        )


@dataclass
class TemplateMatch:
    template_id: str
    template_name: str
    category: str
    confidence: float
    matched_patterns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'template_id': self.template_id,
            'template_name': self.template_name,
            'category': self.category,
            'confidence': round(self.confidence, 4),
            'matched_patterns': self.matched_patterns,
        }


class TemplateRecognizer:
    """
    Scores OCR text against the template catalogue.

    Score = 0.4 x vendor pattern ratio + 0.3 x field label ratio
    + 0.3 x layout indicator ratio, all computed on normalized text. The
    best template whose score exceeds its own threshold wins.

    Attributes:
        templates: Loaded templates, built-ins first
        category_keywords: Vendor keyword fallback per category

    Example:
        >>> recognizer = TemplateRecognizer()
        >>> match = recognizer.recognize(aws_invoice_text)
        >>> match.template_id
        'aws-invoice'
        >>> recognizer.categorize(match)
        'Cloud/Infrastructure'
    """

    VENDOR_WEIGHT = 0.4
    FIELD_WEIGHT = 0.3
    LAYOUT_WEIGHT = 0.3

    def __init__(self, catalogue_path: Optional[str] = None,
                 custom_templates: Optional[List[InvoiceTemplate]] = None) -> None:
        path = Path(catalogue_path or get_config(
            "paths.templates", str(Path(__file__).parents[2] / "config" / "templates.yaml")
        ))
        data = load_yaml_file(path)

        try:
            self.templates = [InvoiceTemplate.from_dict(t) for t in data.get('templates') or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(str(path), str(e)) from e

        self.category_keywords: Dict[str, List[str]] = data.get('category_keywords') or {}

        for template in custom_templates or []:
            self.add_template(template)

        logger.debug(f"TemplateRecognizer loaded {len(self.templates)} templates")

    def recognize(self, text: str, vendor_name: Optional[str] = None) -> Optional[TemplateMatch]:
        """
        Find the best matching template.

        Args:
            text: OCR text.
            vendor_name: Extracted vendor name, when already known.

        Returns:
            TemplateMatch or None when no template clears its threshold.
        """
        normalized = normalize_for_matching(text)
        vendor = normalize_for_matching(vendor_name or '')

        best: Optional[TemplateMatch] = None
        for template in self.templates:
            score = self._score(normalized, vendor, template)
            if score > template.confidence_threshold and (best is None or score > best.confidence):
                best = TemplateMatch(
                    template_id=template.id,
                    template_name=template.name,
                    category=template.category,
                    confidence=score,
                    matched_patterns=self._matched_patterns(normalized, template),
                )

        if best:
            logger.debug(f"Template match: {best.template_id} ({best.confidence:.2f})")
        return best

    def categorize(self, match: Optional[TemplateMatch], vendor_name: Optional[str] = None) -> str:
        """
        Category for an invoice: the template's, else by vendor keyword, else General.
        """
        if match is not None:
            return match.category

        vendor = (vendor_name or '').lower()
        if vendor:
            for category, keywords in self.category_keywords.items():
                if any(keyword in vendor for keyword in keywords):
                    return category

        return 'General'

    def get_template(self, template_id: str) -> Optional[InvoiceTemplate]:
        return next((t for t in self.templates if t.id == template_id), None)

    def get_templates_by_category(self, category: str) -> List[InvoiceTemplate]:
        return [t for t in self.templates if t.category == category]

    def add_template(self, template: InvoiceTemplate) -> None:
        """Add a template, replacing any template with the same id."""
        for index, existing in enumerate(self.templates):
            if existing.id == template.id:
                self.templates[index] = template
                return
        self.templates.append(template)

    def remove_template(self, template_id: str) -> bool:
        for index, existing in enumerate(self.templates):
            if existing.id == template_id:
                del self.templates[index]
                return True
        return False

    def _score(self, normalized: str, vendor: str, template: InvoiceTemplate) -> float:
        vendor_score = self._ratio(
            [p for p in template.vendor_patterns
             if self._contains(normalized, p) or self._contains(vendor, p)],
            template.vendor_patterns
        )
        labels = [label for labels in template.field_patterns.values() for label in labels]
        field_score = self._ratio([l for l in labels if self._contains(normalized, l)], labels)
        layout_score = self._ratio(
            [i for i in template.layout_indicators if self._contains(normalized, i)],
            template.layout_indicators
        )

        return (
            self.VENDOR_WEIGHT * vendor_score
            + self.FIELD_WEIGHT * field_score
            + self.LAYOUT_WEIGHT * layout_score
        )

    def _matched_patterns(self, normalized: str, template: InvoiceTemplate) -> List[str]:
        matched = [f"vendor: {p}" for p in template.vendor_patterns if self._contains(normalized, p)]
        for field_name, labels in template.field_patterns.items():
            matched.extend(
                f"field({field_name}): {label}" for label in labels if self._contains(normalized, label)
            )
        matched.extend(
            f"layout: {i}" for i in template.layout_indicators if self._contains(normalized, i)
        )
        return matched

    @staticmethod
    def _contains(normalized_text: str, pattern: str) -> bool:
        needle = normalize_for_matching(pattern)
        return bool(needle) and needle in normalized_text

    @staticmethod
    def _ratio(matched: List[str], patterns: List[str]) -> float:
        return len(matched) / len(patterns) if patterns else 0.0
