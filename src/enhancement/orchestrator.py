"""
Enhancement Orchestrator Module.

Decides when to call the language-model collaborator and whether its
answer replaces the extracted invoice. A collaborator failure never
reaches the caller: it is logged and the original invoice is kept.

Author: ML Engineering Team
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

from config import get_config
from src.extraction.invoice import CanonicalInvoice
from src.postprocessor.validators import InvoiceValidator, ValidationResult, adjust_confidence_by_validation
from src.utils.exceptions import EnhancementServiceError
from src.utils.logger import get_logger

from .service import EnhancementResult, EnhancementService, parse_enhancement_response

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class EnhancementDecision:
    """
    Outcome of one enhancement attempt.

    Attributes:
        invoice: Invoice to report (enhanced when adopted, else the original)
        confidence: Confidence to report
        validation: Validation result matching ``invoice``
        adopted: Whether the enhanced invoice replaced the original
        invoked: Whether the collaborator was called
        improvements: Collaborator notes (empty unless adopted)
        reason: Why the decision went the way it did
    """
    invoice: CanonicalInvoice
    confidence: float
    validation: ValidationResult
    adopted: bool = False
    invoked: bool = False
    improvements: List[str] = field(default_factory=list)
    reason: str = ""


class EnhancementOrchestrator:
    """
    Invocation and adoption policy for invoice enhancement.

    Invoke when the adjusted confidence is below 0.8 or validation found a
    critical error. Adopt when the re-validated confidence of the enhanced
    invoice is strictly higher, or when the collaborator reports more than
    two improvements and the confidence moved by less than 0.05. An
    adopted result reports ``max(new, old x 0.95)``.

    Attributes:
        service: Enhancement collaborator, None when not configured
        validator: Validator used on the enhanced invoice

    Example:
        >>> orchestrator = EnhancementOrchestrator(service=my_llm_service)
        >>> if orchestrator.should_enhance(0.6, validation):
        ...     decision = orchestrator.enhance(text, invoice, 0.6, validation)
        >>> decision.adopted
        True
    """

    def __init__(
        self,
        service: Optional[EnhancementService] = None,
        validator: Optional[InvoiceValidator] = None
    ) -> None:
        self.service = service
        self.validator = validator or InvoiceValidator()

        self.enabled = get_config("enhancement.enabled", True)
        self.confidence_threshold = get_config("enhancement.confidence_threshold", 0.8)
        self.min_improvements = get_config("enhancement.min_improvements", 2)
        self.max_confidence_delta = get_config("enhancement.max_confidence_delta", 0.05)
        self.regression_factor = get_config("enhancement.regression_factor", 0.95)

        logger.debug(
            f"EnhancementOrchestrator initialized (service: "
            f"{type(service).__name__ if service else 'none'})"
        )

    @property
    def available(self) -> bool:
        return self.enabled and self.service is not None

    def should_enhance(self, confidence: float, validation: ValidationResult) -> bool:
        """True when confidence is below threshold or there is a critical error."""
        return confidence < self.confidence_threshold or validation.has_critical

    def enhance(
        self,
        raw_text: str,
        invoice: CanonicalInvoice,
        confidence: float,
        validation: ValidationResult
    ) -> EnhancementDecision:
        """
        Call the collaborator and decide on adoption.

        Args:
            raw_text: OCR text sent to the collaborator.
            invoice: Current invoice.
            confidence: Current validation-adjusted confidence.
            validation: Validation result of the current invoice.

        Returns:
            EnhancementDecision; never raises for collaborator failures.
        """
        keep = EnhancementDecision(invoice=invoice, confidence=confidence, validation=validation)

        if not self.available:
            keep.reason = "enhancement service not configured"
            return keep

        keep.invoked = True
        start_time = time.time()
        try:
            result = self._call_service(raw_text, invoice, confidence)
        except Exception as e:
            logger.error(f"Enhancement failed, keeping extracted invoice: {e}")
            keep.reason = f"enhancement failed: {e}"
            return keep

        new_validation = self.validator.validate(result.enhanced)
        new_confidence = adjust_confidence_by_validation(result.confidence, new_validation)
        improvements = list(result.improvements)

        logger.info(
            f"Enhancement returned in {time.time() - start_time:.2f}s: "
            f"confidence {confidence:.2f} -> {new_confidence:.2f}, {len(improvements)} improvements"
        )

        if not self.should_adopt(confidence, new_confidence, len(improvements)):
            keep.reason = (
                f"enhanced confidence {new_confidence:.2f} with {len(improvements)} "
                f"improvements does not beat {confidence:.2f}"
            )
            return keep

        enhanced = result.enhanced
        enhanced.raw_ocr_text = invoice.raw_ocr_text
        enhanced.ocr_markup_text = invoice.ocr_markup_text
        enhanced.ocr_similarity_score = invoice.ocr_similarity_score

        return EnhancementDecision(
            invoice=enhanced,
            confidence=max(new_confidence, confidence * self.regression_factor),
            validation=new_validation,
            adopted=True,
            invoked=True,
            improvements=improvements,
            reason="enhanced result adopted",
        )

    def should_adopt(self, current: float, new: float, improvement_count: int) -> bool:
        """
        Adoption rule.

        A lower-confidence result with many improvements is adopted only
        inside the small delta band.
        """
        if new > current:
            return True
        return improvement_count > self.min_improvements and abs(new - current) < self.max_confidence_delta

    def _call_service(self, raw_text: str, invoice: CanonicalInvoice,
                      confidence: float) -> EnhancementResult:
        response = self.service.enhance(raw_text, invoice.copy(), confidence)
        if response is None:
            raise EnhancementServiceError("service returned no response")
        if isinstance(response, EnhancementResult):
            return response
        return parse_enhancement_response(response)
