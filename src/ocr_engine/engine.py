"""
Main OCR Engine Module.

This module provides the OCREngine class, the single place the parser
talks to an OCR collaborator. The backend itself (a hosted OCR API, a
local engine) lives outside this package and implements ``OCRBackend``.

Invocation policy:
    - one call per document, no retries
    - any backend exception becomes ``OCRServiceUnavailableError``
    - an empty result is treated as an unavailable service

Usage:
    from src.ocr_engine import OCREngine

    engine = OCREngine(backend=MyHostedOCR())
    result = engine.extract("invoice.png")

    print(result.text)
    print(result.markup)

Author: ML Engineering Team
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from rapidfuzz.distance import Levenshtein

from src.utils.exceptions import OCRServiceUnavailableError
from src.utils.logger import get_logger

from .ocr_result import OCRResult, TextVerification

# Initialize module logger
logger = get_logger(__name__)


class OCRBackend(ABC):
    """
    Abstract base class for OCR collaborators.

    ``source`` is whatever the backend understands: a file path, an image
    URL, base64 content.
    """

    name = 'backend'

    @abstractmethod
    def extract_text(self, source: Any) -> OCRResult:
        """
        Recognize a document.

        Args:
            source: Document reference.

        Returns:
            OCRResult with text and, when available, markup.
        """
        pass


class OCREngine:
    """
    OCR engine wrapping one backend.

    Attributes:
        backend: The active OCR backend, None when OCR is not configured

    Example:
        >>> engine = OCREngine(backend=my_backend)
        >>> result = engine.extract("invoice.png")
        >>> print(f"{len(result.text)} chars, confidence {result.confidence:.2f}")
        >>>
        >>> # Check caller-supplied text against a fresh OCR pass
        >>> verification = engine.verify_text(ocr_text, "invoice.png")
        >>> verification.similarity_score
        0.97
    """

    def __init__(self, backend: Optional[OCRBackend] = None) -> None:
        """
        Initialize the OCR engine.

        Args:
            backend: OCR backend to use; without one every call raises
                OCRServiceUnavailableError.
        """
        self.backend = backend
        logger.info(f"OCR Engine initialized with backend: {self.backend_name}")

    @property
    def backend_name(self) -> str:
        if self.backend is None:
            return 'none'
        return getattr(self.backend, 'name', type(self.backend).__name__)

    def extract(self, source: Any) -> OCRResult:
        """
        Run OCR on a document.

        Args:
            source: Document reference passed through to the backend.

        Returns:
            OCRResult with non-empty text or markup.

        Raises:
            OCRServiceUnavailableError: If there is no backend, the backend
                fails, or it returns nothing.
        """
        label = str(source)
        if self.backend is None:
            raise OCRServiceUnavailableError(label, "no OCR backend configured")

        logger.debug(f"Extracting text using {self.backend_name} backend")
        start_time = time.time()

        try:
            result = self.backend.extract_text(source)
        except OCRServiceUnavailableError:
            raise
        except Exception as e:
            logger.error(f"OCR backend {self.backend_name} failed for {label}: {e}")
            raise OCRServiceUnavailableError(label, str(e)) from e

        if result is None or result.is_empty:
            raise OCRServiceUnavailableError(label, "OCR returned no text")

        result.processing_time = time.time() - start_time
        logger.info(
            f"OCR complete for {label}: {len(result.text or '')} chars "
            f"in {result.processing_time:.2f}s (request {result.request_id})"
        )
        return result

    def verify_text(self, provided_text: str, source: Any) -> TextVerification:
        """
        Compare caller-supplied OCR text with a fresh OCR pass.

        Similarity is ``1 - edit distance / longer length`` on lowercased,
        whitespace-collapsed text; 1.0 for identical texts, 0.0 when
        either is empty.

        Args:
            provided_text: Text the caller already has.
            source: Document to re-OCR.

        Returns:
            TextVerification with the fresh result and the score.

        Raises:
            OCRServiceUnavailableError: As for ``extract``.
        """
        result = self.extract(source)
        score = text_similarity(provided_text, result.text)
        logger.debug(f"OCR verification similarity: {score:.3f}")
        return TextVerification(ocr_result=result, similarity_score=score)

    def get_backend_info(self) -> Dict[str, Any]:
        return {'backend': self.backend_name, 'configured': self.backend is not None}


def text_similarity(first: Optional[str], second: Optional[str]) -> float:
    """Normalized edit similarity of two texts, ignoring case and spacing."""
    a = ' '.join((first or '').lower().split())
    b = ' '.join((second or '').lower().split())

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)
