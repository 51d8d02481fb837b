"""
Utility Module for the Invoice Totals Engine.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Common helpers
"""

from .logger import setup_logger, get_logger
from .helpers import detect_document_type, format_cents, validate_file_exists

__all__ = [
    'setup_logger',
    'get_logger',
    'detect_document_type',
    'format_cents',
    'validate_file_exists'
]
