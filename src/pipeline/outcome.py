"""
Parse Outcome Data Class.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.extraction.candidate import FieldConfidence
from src.extraction.invoice import CanonicalInvoice
from src.postprocessor.validators import ValidationResult


@dataclass
class ParseOutcome:
    """
    Final result of parsing one document.

    Attributes:
        parsed: The invoice record
        confidence: Validation-adjusted confidence in [0.1, 0.99]
        field_confidences: Per-field values and confidences of the strategy used
        fallback_used: True when a fallback parser produced the record
        llm_enhanced: True when an enhanced record was adopted
        action: Recommendation for the reviewer
        validation_results: Findings for ``parsed``
        improvements: Enhancement notes, when enhanced
        extraction_details: Diagnostics (candidate dump, layer counts, cascade log)
        strategy: Name of the strategy that produced the record

    Example:
        >>> outcome = pipeline.parse(text)
        >>> outcome.confidence, outcome.action
        (0.92, 'High confidence extraction. Ready to save.')
    """
    parsed: CanonicalInvoice
    confidence: float
    field_confidences: List[FieldConfidence] = field(default_factory=list)
    fallback_used: bool = False
    llm_enhanced: bool = False
    action: str = ""
    validation_results: ValidationResult = field(default_factory=ValidationResult)
    improvements: List[str] = field(default_factory=list)
    extraction_details: Dict[str, Any] = field(default_factory=dict)
    strategy: Optional[str] = None

    def field_confidence(self, name: str) -> Optional[FieldConfidence]:
        return next((fc for fc in self.field_confidences if fc.field == name), None)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary format for transport layers.

        Returns:
            JSON-serializable dictionary.
        """
        return {
            'parsed': self.parsed.to_dict(),
            'confidence': round(self.confidence, 4),
            'field_confidences': [fc.to_dict() for fc in self.field_confidences],
            'fallback_used': self.fallback_used,
            'llm_enhanced': self.llm_enhanced,
            'action': self.action,
            'validation_results': self.validation_results.to_dict(),
            'improvements': self.improvements,
            'extraction_details': self.extraction_details,
            'strategy': self.strategy,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
