"""
Input Handler Module for the Invoice Confidence Parser.

This module provides functionality for:
    - Validating parse requests (text and/or markup required)
    - Loading OCR text and markup from files
    - Analyzing document layout (headers, tables, sections)

Author: ML Engineering Team
"""

from .document import RawDocument
from .handler import InputHandler
from .structure import DocumentStructure, DocumentStructureAnalyzer

__all__ = ['RawDocument', 'InputHandler', 'DocumentStructure', 'DocumentStructureAnalyzer']
