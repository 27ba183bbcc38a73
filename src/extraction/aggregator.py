"""
Candidate Aggregation Module.

Collapses the pooled candidates to exactly one value per field and scores
the extraction as a whole.

Author: ML Engineering Team
"""

from typing import Dict, List, Sequence

from config import get_config
from src.utils.helpers import mean
from src.utils.logger import get_logger

from .candidate import Candidate, FieldConfidence
from .field_patterns import FIELD_ORDER

# Initialize module logger
logger = get_logger(__name__)


class CandidateAggregator:
    """
    Keeps the highest-confidence candidate per field.

    Ties go to the candidate seen first, i.e. the earlier extraction
    layer. Overall confidence weights the critical fields (invoice number,
    vendor name, total) against everything else.

    Attributes:
        critical_fields: Fields in the critical group
        critical_weight: Weight of the critical group mean (rest gets 1 - weight)

    Example:
        >>> aggregator = CandidateAggregator()
        >>> fields = aggregator.aggregate(candidates)
        >>> aggregator.overall_confidence(fields)
        0.87
    """

    def __init__(self) -> None:
        self.critical_fields = list(get_config(
            "extraction.critical_fields", ['invoice_number', 'vendor_name', 'total_amount']
        ))
        self.critical_weight = get_config("extraction.critical_weight", 0.7)

    def deduplicate(self, candidates: Sequence[Candidate]) -> List[Candidate]:
        """
        Winning candidate per field, in canonical field order.

        Args:
            candidates: Pooled candidates from every layer.

        Returns:
            One candidate per field that had any candidate.
        """
        best: Dict[str, Candidate] = {}
        for candidate in candidates:
            current = best.get(candidate.field)
            if current is None or candidate.confidence > current.confidence:
                best[candidate.field] = candidate

        return sorted(best.values(), key=lambda c: _field_rank(c.field))

    def aggregate(self, candidates: Sequence[Candidate]) -> List[FieldConfidence]:
        """
        Reduce candidates to one FieldConfidence per field.

        Args:
            candidates: Pooled candidates from every layer.

        Returns:
            FieldConfidence list ordered by canonical field order.
        """
        winners = self.deduplicate(candidates)
        logger.debug(f"Aggregated {len(candidates)} candidates into {len(winners)} fields")
        return [FieldConfidence(c.field, c.value, c.confidence, c.method) for c in winners]

    def overall_confidence(self, field_confidences: Sequence[FieldConfidence]) -> float:
        """
        Weighted extraction confidence.

        ``weight x mean(critical present) + (1 - weight) x mean(others present)``;
        a group with no present field contributes 0.
        """
        present = [fc for fc in field_confidences if fc.value not in (None, '')]
        critical = [fc.confidence for fc in present if fc.field in self.critical_fields]
        others = [fc.confidence for fc in present if fc.field not in self.critical_fields]

        return self.critical_weight * mean(critical) + (1 - self.critical_weight) * mean(others)


def _field_rank(field_name: str) -> int:
    if field_name in FIELD_ORDER:
        return FIELD_ORDER.index(field_name)
    return len(FIELD_ORDER)
