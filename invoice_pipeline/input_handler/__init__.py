"""
Input Handler Module for the Invoice Pipeline.

This module provides functionality for:
    - Loading documents from a document source
    - Classifying PDFs as text-bearing, scanned or malformed

Author: ML Engineering Team
"""

from .verdict import ClassificationVerdict, VerdictKind
from .pdf_classifier import DocumentClassifier
from .handler import DocumentSource, DirectorySource, SourceDocument

__all__ = [
    'ClassificationVerdict',
    'VerdictKind',
    'DocumentClassifier',
    'DocumentSource',
    'DirectorySource',
    'SourceDocument',
]
