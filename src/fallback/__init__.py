"""
Fallback Parsing Module for the Invoice Confidence Parser.

This module provides the parsers used when multi-layer extraction fails:
    - MarkupStructureParser: reads tables, headings and bold runs of the markup
    - DeterministicParser: single-pass regex parsing of the plain text

Author: ML Engineering Team
"""

from .deterministic import DeterministicParser
from .markup import MarkupStructureParser
from .result import StrategyResult

__all__ = ['DeterministicParser', 'MarkupStructureParser', 'StrategyResult']
