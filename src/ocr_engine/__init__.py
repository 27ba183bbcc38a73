"""
OCR Engine Module for the Invoice Confidence Parser.

This module provides the OCR invocation policy:
    - A backend interface for OCR collaborators
    - Single-call extraction with upstream failures surfaced as
      OCRServiceUnavailableError
    - Similarity check of caller-supplied text against fresh OCR

Author: ML Engineering Team
"""

from .engine import OCRBackend, OCREngine, text_similarity
from .ocr_result import OCRResult, TextVerification

__all__ = ['OCRBackend', 'OCREngine', 'OCRResult', 'TextVerification', 'text_similarity']
