"""
Strategy Result Data Class.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.extraction.candidate import FieldConfidence
from src.extraction.invoice import CanonicalInvoice


@dataclass
class StrategyResult:
    """
    What one parsing strategy produced, before validation.

    Attributes:
        invoice: Built invoice record
        confidence: Strategy confidence in [0, 1], before validation
        field_confidences: One entry per field the strategy reports
        strategy: Name of the strategy
        details: Diagnostics (candidate dump, layer counts, ...)
    """
    invoice: CanonicalInvoice
    confidence: float
    field_confidences: List[FieldConfidence] = field(default_factory=list)
    strategy: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def get_field(self, name: str) -> Optional[FieldConfidence]:
        return next((fc for fc in self.field_confidences if fc.field == name), None)
