"""
OCR Result Data Classes.

This module defines the data structures returned by the OCR collaborator.

Classes:
    OCRResult: Text and markup recognized from one source document
    TextVerification: Agreement between caller-supplied text and fresh OCR

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class OCRResult:
    """
    OCR output for one document.

    Attributes:
        text: Plain recognized text
        markup: Structured markup rendering (headings, tables), if the
            backend produces one
        confidence: Backend confidence (0-1)
        request_id: Backend request identifier, for tracing
        processing_time: Seconds spent in the backend call

    Example:
        >>> result = OCRResult(text="ACME Corp\\nInvoice #1001", confidence=0.9)
        >>> result.is_empty
        False
    """
    text: str = ""
    markup: Optional[str] = None
    confidence: float = 0.0
    request_id: Optional[str] = None
    processing_time: float = 0.0

    @property
    def is_empty(self) -> bool:
        """True when neither text nor markup carries any content."""
        return not (self.text and self.text.strip()) and not (self.markup and self.markup.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'markup': self.markup,
            'confidence': self.confidence,
            'request_id': self.request_id,
            'processing_time': round(self.processing_time, 3),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"OCRResult(chars={len(self.text or '')}, "
            f"markup={bool(self.markup)}, "
            f"confidence={self.confidence:.2f}, "
            f"request_id={self.request_id})"
        )


@dataclass
class TextVerification:
    """
    Caller-supplied OCR text checked against a fresh OCR pass.

    Attributes:
        ocr_result: The fresh OCR output
        similarity_score: Normalized edit similarity of the two texts (0-1)
    """
    ocr_result: OCRResult
    similarity_score: float
