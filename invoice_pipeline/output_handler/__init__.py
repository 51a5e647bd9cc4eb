"""
Output Handler Module for the Invoice Pipeline.

This module provides functionality for:
    - Document and extraction storage (SQLite)
    - Excel file generation

Author: ML Engineering Team
"""

from .handler import DocumentStore, StoredDocument, StoredExtraction, EXTRACTION_SOURCES
from .database_handler import SQLiteDocumentStore
from .excel_exporter import ExcelExporter

__all__ = [
    'DocumentStore',
    'StoredDocument',
    'StoredExtraction',
    'EXTRACTION_SOURCES',
    'SQLiteDocumentStore',
    'ExcelExporter',
]
