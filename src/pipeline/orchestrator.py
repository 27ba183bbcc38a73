"""
Pipeline Orchestrator Module.

Runs one parse request end to end:

    RECEIVE -> EXTRACT -> VALIDATE -> MAYBE_ENHANCE -> VALIDATE_AGAIN -> EMIT
                  |
                  +-- extraction failure --> MARKUP_FALLBACK (when markup exists)
                                               |
                                               +-- failure --> DETERMINISTIC_FALLBACK

The reported confidence is always the validation-adjusted value. Only OCR
failures and malformed requests reach the caller as exceptions; every other
failure moves the cascade on or ends in an empty best-effort outcome.

Usage:
    from src.pipeline import InvoicePipeline

    pipeline = InvoicePipeline(enhancement_service=my_llm_service)
    outcome = pipeline.parse(text=ocr_text, markup=markdown, similarity_score=0.93)

    print(outcome.confidence, outcome.action)
    print(outcome.parsed.to_json())

Author: ML Engineering Team
"""

import time
from typing import Any, Dict, List, Optional

from config import get_config
from src.enhancement.orchestrator import EnhancementOrchestrator
from src.enhancement.service import EnhancementService
from src.extraction.invoice import CanonicalInvoice
from src.extraction.templates import TemplateRecognizer
from src.fallback.result import StrategyResult
from src.input_handler.document import RawDocument
from src.input_handler.handler import InputHandler
from src.ocr_engine.engine import OCREngine
from src.postprocessor.validators import InvoiceValidator, ValidationResult
from src.utils.exceptions import ExtractionError
from src.utils.logger import get_logger

from .outcome import ParseOutcome
from .strategies import ParsingStrategy, default_strategies

# Initialize module logger
logger = get_logger(__name__)


class InvoicePipeline:
    """
    Strategy cascade with validation and optional enhancement.

    Attributes:
        strategies: Ordered parsing strategies; the first that succeeds wins
        validator: Business-rule validator
        enhancer: Enhancement invocation and adoption policy
        ocr_engine: OCR collaborator wrapper, used by ``parse_document``
        input_handler: Request validation
        template_recognizer: Vendor template catalogue

    Example:
        >>> pipeline = InvoicePipeline()
        >>> outcome = pipeline.parse(text="ACME Corp\\nInvoice Number: INV-1\\nTotal: $110.00")
        >>> outcome.strategy
        'primary'
        >>> outcome.fallback_used
        False
    """

    HIGH_CONFIDENCE_ACTION = "High confidence extraction. Ready to save."
    GOOD_CONFIDENCE_ACTION = "Good confidence extraction. Quick review recommended."
    REVIEW_ACTION = (
        "Please review and edit the extracted fields. Some fields may require "
        "manual correction due to low confidence scores."
    )
    ENHANCED_SUFFIX = " Fields were improved by AI enhancement."
    FALLBACK_SUFFIX = " Parsed with a fallback strategy, verify all fields."

    def __init__(
        self,
        strategies: Optional[List[ParsingStrategy]] = None,
        validator: Optional[InvoiceValidator] = None,
        enhancement_service: Optional[EnhancementService] = None,
        enhancer: Optional[EnhancementOrchestrator] = None,
        ocr_engine: Optional[OCREngine] = None,
        input_handler: Optional[InputHandler] = None,
        template_recognizer: Optional[TemplateRecognizer] = None
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            strategies: Parsing cascade; defaults to primary, markup, deterministic.
            validator: Validator shared by every step.
            enhancement_service: Language-model collaborator, optional.
            enhancer: Pre-built enhancement orchestrator; overrides ``enhancement_service``.
            ocr_engine: OCR engine for ``parse_document``.
            input_handler: Request validator.
            template_recognizer: Template catalogue for stamping template and category.
        """
        self.strategies = strategies if strategies is not None else default_strategies()
        self.validator = validator or InvoiceValidator()
        self.enhancer = enhancer or EnhancementOrchestrator(
            service=enhancement_service, validator=self.validator
        )
        self.ocr_engine = ocr_engine or OCREngine()
        self.input_handler = input_handler or InputHandler()
        self.template_recognizer = template_recognizer or TemplateRecognizer()

        self.high_confidence = get_config("pipeline.high_confidence", 0.9)
        self.good_confidence = get_config("pipeline.good_confidence", 0.8)
        self.empty_confidence = get_config("pipeline.empty_confidence", 0.1)

        logger.info(
            f"InvoicePipeline initialized with strategies: "
            f"{[s.name for s in self.strategies]}, enhancement: {self.enhancer.available}"
        )

    def parse(
        self,
        text: Optional[str] = None,
        markup: Optional[str] = None,
        similarity_score: Optional[float] = None,
        source: Optional[str] = None
    ) -> ParseOutcome:
        """
        Parse OCR output the caller already has.

        Args:
            text: Plain OCR text.
            markup: Markup rendering of the same page.
            similarity_score: Agreement between the two renderings.
            source: Origin label for logging.

        Returns:
            ParseOutcome.

        Raises:
            MissingInputError: If both text and markup are blank.
        """
        document = self.input_handler.build_document(text, markup, similarity_score, source)
        return self.run(document)

    def parse_document(self, source: Any) -> ParseOutcome:
        """
        OCR a document, then parse it.

        Args:
            source: Document reference understood by the OCR backend.

        Returns:
            ParseOutcome.

        Raises:
            OCRServiceUnavailableError: If OCR fails.
        """
        ocr_result = self.ocr_engine.extract(source)
        document = self.input_handler.build_document(
            text=ocr_result.text,
            markup=ocr_result.markup,
            source=str(source),
        )
        return self.run(document)

    def run(self, document: RawDocument) -> ParseOutcome:
        """
        Run the strategy cascade on a validated document.

        Args:
            document: Document built by the input handler.

        Returns:
            ParseOutcome from the first strategy that succeeds, or an empty
            outcome when all of them fail.
        """
        start_time = time.time()
        cascade: List[Dict[str, Any]] = []

        for strategy in self.strategies:
            if not strategy.applies(document):
                cascade.append({'strategy': strategy.name, 'status': 'skipped'})
                continue

            try:
                result = strategy.run(document)
            except ExtractionError as e:
                logger.warning(f"Strategy '{strategy.name}' failed: {e}")
                cascade.append({'strategy': strategy.name, 'status': 'failed', 'error': str(e)})
                continue
            except Exception as e:
                logger.error(f"Strategy '{strategy.name}' raised unexpectedly: {e}", exc_info=True)
                cascade.append({'strategy': strategy.name, 'status': 'failed', 'error': str(e)})
                continue

            cascade.append({'strategy': strategy.name, 'status': 'succeeded'})
            outcome = self._finish(strategy, result, document, cascade)
            break
        else:
            logger.error("Every parsing strategy failed, returning empty outcome")
            outcome = self._empty_outcome(document, cascade)

        outcome.extraction_details['processing_time'] = round(time.time() - start_time, 4)
        logger.info(
            f"Parsed {document.source or 'document'} with {outcome.strategy or 'no strategy'}: "
            f"confidence {outcome.confidence:.2f}, fallback={outcome.fallback_used}, "
            f"enhanced={outcome.llm_enhanced}"
        )
        return outcome

    def recommend(self, confidence: float, validation: ValidationResult,
                  llm_enhanced: bool = False, fallback_used: bool = False) -> str:
        """
        Reviewer recommendation for an outcome.

        Bands: above the high threshold with no errors, above the good
        threshold, anything else.
        """
        if confidence > self.high_confidence and not validation.errors:
            action = self.HIGH_CONFIDENCE_ACTION
        elif confidence > self.good_confidence:
            action = self.GOOD_CONFIDENCE_ACTION
        else:
            action = self.REVIEW_ACTION

        if llm_enhanced:
            action += self.ENHANCED_SUFFIX
        if fallback_used:
            action += self.FALLBACK_SUFFIX
        return action

    def _finish(self, strategy: ParsingStrategy, result: StrategyResult,
                document: RawDocument, cascade: List[Dict[str, Any]]) -> ParseOutcome:
        invoice = result.invoice
        validation = self.validator.validate(invoice)
        confidence = self.validator.adjust_confidence(result.confidence, validation)

        details = dict(result.details)
        details['cascade'] = cascade
        details['raw_confidence'] = round(result.confidence, 4)

        llm_enhanced = False
        improvements: List[str] = []

        if (strategy.enhanceable and self.enhancer.available
                and self.enhancer.should_enhance(confidence, validation)):
            decision = self.enhancer.enhance(document.plain_text, invoice, confidence, validation)
            details['enhancement'] = {
                'invoked': decision.invoked,
                'adopted': decision.adopted,
                'reason': decision.reason,
            }
            if decision.adopted:
                invoice = decision.invoice
                confidence = decision.confidence
                validation = decision.validation
                improvements = decision.improvements
                llm_enhanced = True

        self._stamp_template(invoice, document)

        return ParseOutcome(
            parsed=invoice,
            confidence=confidence,
            field_confidences=result.field_confidences,
            fallback_used=strategy.is_fallback,
            llm_enhanced=llm_enhanced,
            action=self.recommend(confidence, validation, llm_enhanced, strategy.is_fallback),
            validation_results=validation,
            improvements=improvements,
            extraction_details=details,
            strategy=strategy.name,
        )

    def _empty_outcome(self, document: RawDocument, cascade: List[Dict[str, Any]]) -> ParseOutcome:
        invoice = CanonicalInvoice(
            raw_ocr_text=document.text,
            ocr_markup_text=document.markup or "",
            ocr_similarity_score=document.similarity_score,
        )
        validation = self.validator.validate(invoice)

        return ParseOutcome(
            parsed=invoice,
            confidence=self.empty_confidence,
            fallback_used=True,
            action=self.recommend(self.empty_confidence, validation, fallback_used=True),
            validation_results=validation,
            extraction_details={'cascade': cascade},
        )

    def _stamp_template(self, invoice: CanonicalInvoice, document: RawDocument) -> None:
        match = self.template_recognizer.recognize(document.plain_text, invoice.vendor_name)
        invoice.template_id = match.template_id if match else None
        invoice.category = self.template_recognizer.categorize(match, invoice.vendor_name)
