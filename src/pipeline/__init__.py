"""
Pipeline Module for the Invoice Confidence Parser.

This module provides:
    - The parsing strategy cascade (primary, markup fallback, deterministic fallback)
    - The pipeline orchestrator: validation, enhancement and recommendations
    - The ParseOutcome returned to callers

Author: ML Engineering Team
"""

from .orchestrator import InvoicePipeline
from .outcome import ParseOutcome
from .strategies import (
    DeterministicFallbackStrategy,
    MarkupFallbackStrategy,
    ParsingStrategy,
    PrimaryExtractionStrategy,
    default_strategies,
)

__all__ = [
    'InvoicePipeline',
    'ParseOutcome',
    'ParsingStrategy',
    'PrimaryExtractionStrategy',
    'MarkupFallbackStrategy',
    'DeterministicFallbackStrategy',
    'default_strategies',
]
