"""
Parsing Strategies.

The pipeline tries an ordered list of strategies; the first one that
applies to the document and does not raise produces the invoice:

    1. PrimaryExtractionStrategy     - multi-layer extraction + aggregation
    2. MarkupFallbackStrategy        - markup structure parser (needs markup)
    3. DeterministicFallbackStrategy - single-pass regex parser (always applies)

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from src.extraction.aggregator import CandidateAggregator
from src.extraction.builder import CanonicalInvoiceBuilder
from src.extraction.extractor import CandidateExtractor
from src.fallback.deterministic import DeterministicParser
from src.fallback.markup import MarkupStructureParser
from src.fallback.result import StrategyResult
from src.input_handler.document import RawDocument
from src.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class ParsingStrategy(ABC):
    """
    One step of the parsing cascade.

    Attributes:
        name: Strategy name reported on the outcome
        is_fallback: Whether a result from this strategy counts as a fallback
        enhanceable: Whether its result may be sent for enhancement
    """

    name = 'strategy'
    is_fallback = True
    enhanceable = False

    def applies(self, document: RawDocument) -> bool:
        return True

    @abstractmethod
    def run(self, document: RawDocument) -> StrategyResult:
        """
        Parse the document.

        Raises:
            ExtractionError: If the strategy cannot produce a result.
        """
        pass


class PrimaryExtractionStrategy(ParsingStrategy):
    """Candidate extraction, aggregation and invoice building."""

    name = 'primary'
    is_fallback = False
    enhanceable = True

    def __init__(
        self,
        extractor: Optional[CandidateExtractor] = None,
        aggregator: Optional[CandidateAggregator] = None,
        builder: Optional[CanonicalInvoiceBuilder] = None
    ) -> None:
        self.extractor = extractor or CandidateExtractor()
        self.aggregator = aggregator or CandidateAggregator()
        self.builder = builder or CanonicalInvoiceBuilder()

    def run(self, document: RawDocument) -> StrategyResult:
        extraction = self.extractor.extract(document)
        field_confidences = self.aggregator.aggregate(extraction.candidates)
        invoice = self.builder.build(field_confidences, document)
        confidence = self.aggregator.overall_confidence(field_confidences)
        template_match = extraction.template_match

        return StrategyResult(
            invoice=invoice,
            confidence=confidence,
            field_confidences=field_confidences,
            strategy=self.name,
            details={
                'document_type': extraction.document_type,
                'layer_counts': extraction.layer_counts,
                'template_match': template_match.to_dict() if template_match else None,
                'candidates': [c.to_dict() for c in extraction.candidates],
                'winners': [c.to_dict() for c in self.aggregator.deduplicate(extraction.candidates)],
            },
        )


class MarkupFallbackStrategy(ParsingStrategy):
    """Markup structure parser; only for documents that carry markup."""

    name = 'markup_fallback'

    def __init__(self, parser: Optional[MarkupStructureParser] = None) -> None:
        self.parser = parser or MarkupStructureParser()

    def applies(self, document: RawDocument) -> bool:
        return document.has_markup

    def run(self, document: RawDocument) -> StrategyResult:
        return self.parser.parse(document.markup, document.text, document.similarity_score)


class DeterministicFallbackStrategy(ParsingStrategy):
    """Regex parser; the last resort, applies to every document."""

    name = 'deterministic'

    def __init__(self, parser: Optional[DeterministicParser] = None) -> None:
        self.parser = parser or DeterministicParser()

    def run(self, document: RawDocument) -> StrategyResult:
        return self.parser.parse(document.text, document.markup, document.similarity_score)


def default_strategies() -> List[ParsingStrategy]:
    return [PrimaryExtractionStrategy(), MarkupFallbackStrategy(), DeterministicFallbackStrategy()]
