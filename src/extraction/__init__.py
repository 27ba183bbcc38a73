"""
Extraction Module for the Invoice Confidence Parser.

This module provides functionality for:
    - Multi-layer candidate extraction (patterns, markup tables, spatial,
      templates, fuzzy labels)
    - Candidate deduplication and confidence aggregation
    - Building the canonical invoice record
    - Vendor template recognition

Author: ML Engineering Team
"""

from .aggregator import CandidateAggregator
from .builder import CanonicalInvoiceBuilder
from .candidate import Candidate, FieldConfidence
from .extractor import CandidateExtractor, ExtractionResult
from .field_mapper import FieldMapper, FieldValueCleaner
from .invoice import CanonicalInvoice, LineItem
from .line_items import LineItemRowParser
from .templates import InvoiceTemplate, TemplateMatch, TemplateRecognizer

__all__ = [
    'Candidate',
    'FieldConfidence',
    'CanonicalInvoice',
    'LineItem',
    'CandidateExtractor',
    'ExtractionResult',
    'CandidateAggregator',
    'CanonicalInvoiceBuilder',
    'FieldMapper',
    'FieldValueCleaner',
    'LineItemRowParser',
    'InvoiceTemplate',
    'TemplateMatch',
    'TemplateRecognizer',
]
