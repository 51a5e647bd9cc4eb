"""
Utility Module for the Invoice Pipeline.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Common helpers
"""

from .logger import setup_logger, get_logger, DocumentLoggerAdapter
from .helpers import ensure_directory, generate_timestamp, content_hash, to_decimal

__all__ = [
    'setup_logger',
    'get_logger',
    'DocumentLoggerAdapter',
    'ensure_directory',
    'generate_timestamp',
    'content_hash',
    'to_decimal',
]
