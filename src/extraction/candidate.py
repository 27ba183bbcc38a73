"""
Candidate Data Classes.

A ``Candidate`` is one proposed value for one invoice field, produced by a
single extraction heuristic. The aggregator reduces candidates to one
``FieldConfidence`` per field.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Candidate:
    """
    One proposed value for a field.

    Attributes:
        field: Canonical field name (e.g. ``total_amount``)
        value: Cleaned value as text; ``line_items`` carries JSON
        confidence: Heuristic confidence in [0, 1]
        method: Name of the heuristic that produced it
        context: Text the value was read from
        line: 0-based line index in the document, when known
        column: Character offset within the line, when known
    """
    field: str
    value: str
    confidence: float
    method: str
    context: str = ""
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'value': self.value,
            'confidence': round(self.confidence, 4),
            'method': self.method,
            'context': self.context,
            'line': self.line,
            'column': self.column,
        }


@dataclass
class FieldConfidence:
    """
    The reported value of one field and how sure the parser is about it.

    Attributes:
        field: Canonical field name
        value: Winning value, None when a strategy looked and found nothing
        confidence: Confidence of the winning value
        source: Method that produced it
    """
    field: str
    value: Optional[str]
    confidence: float
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'value': self.value,
            'confidence': round(self.confidence, 4),
            'source': self.source,
        }
