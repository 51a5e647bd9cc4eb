"""
Model Inference Module for the Invoice Pipeline.

This module provides:
    - The InvoiceRecord data model shared by all extractors
    - Backend selection and endpoint resolution
    - Model response repair and parsing
    - The OpenAI-compatible LLM extractor

Author: ML Engineering Team
"""

from .extraction_result import (
    SCALAR_FIELDS,
    InvoiceRecord,
    LineItem,
    PackingItem,
    PackingTotals,
)
from .endpoint import (
    Backend,
    BackendSettings,
    LlmSettings,
    ResolvedEndpoint,
    health_url,
    resolve_endpoint,
)
from .response_parser import extract_json_object, parse_invoice_response, strip_code_fences
from .llm_extractor import LlmExtractor, SYSTEM_PROMPT

__all__ = [
    'SCALAR_FIELDS',
    'InvoiceRecord',
    'LineItem',
    'PackingItem',
    'PackingTotals',
    'Backend',
    'BackendSettings',
    'LlmSettings',
    'ResolvedEndpoint',
    'health_url',
    'resolve_endpoint',
    'extract_json_object',
    'parse_invoice_response',
    'strip_code_fences',
    'LlmExtractor',
    'SYSTEM_PROMPT',
]
