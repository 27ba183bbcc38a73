"""
Invoice Confidence Parser - Source Package.

This package contains all core modules of the invoice parsing pipeline.
Each module has a single responsibility.

Modules:
    - input_handler: Request validation and document structure analysis
    - ocr_engine: OCR collaborator invocation
    - extraction: Multi-layer candidate extraction and aggregation
    - fallback: Deterministic and markup-structure parsers
    - postprocessor: Normalization and business-rule validation
    - enhancement: Language-model enhancement policy
    - pipeline: Strategy cascade and parse outcomes
    - utils: Logging, exceptions and helpers

Architecture:
    Input -> (OCR) -> Extraction -> Validation -> Enhancement -> Validation -> Outcome
                          |
                          +-> Markup fallback -> Deterministic fallback
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'ocr_engine',
    'extraction',
    'fallback',
    'postprocessor',
    'enhancement',
    'pipeline',
    'utils'
]
