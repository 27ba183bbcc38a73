"""
Utility Module for the Invoice Confidence Parser.

Common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Small numeric and text helpers
"""

from .logger import setup_logger, get_logger
from .helpers import ensure_directory, validate_file_exists, clamp, mean, split_lines

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'validate_file_exists',
    'clamp',
    'mean',
    'split_lines',
]
