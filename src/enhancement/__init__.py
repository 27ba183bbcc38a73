"""
Enhancement Module for the Invoice Confidence Parser.

This module provides functionality for:
    - The enhancement collaborator interface
    - Parsing and normalizing enhancement responses
    - Deciding when to enhance and whether to adopt the result

Author: ML Engineering Team
"""

from .orchestrator import EnhancementDecision, EnhancementOrchestrator
from .service import EnhancementResult, EnhancementService, parse_enhancement_response

__all__ = [
    'EnhancementService',
    'EnhancementResult',
    'EnhancementDecision',
    'EnhancementOrchestrator',
    'parse_enhancement_response',
]
