"""
Custom Exceptions Module.

This module defines all custom exceptions used throughout the invoice
pipeline. Specific exceptions let the orchestrator tell per-document data
problems (recovered by falling back to the heuristics) apart from
misconfiguration (which aborts the whole batch).

Exception Hierarchy:
    InvoicePipelineError (base)
    ├── InputError
    │   ├── StructuralParseError
    │   └── DocumentNotFoundError
    ├── ConfigurationError                (batch-fatal)
    │   ├── MissingCredentialError
    │   └── UnsupportedBackendError
    ├── ModelError
    │   ├── EndpointUnreachableError      (batch-fatal)
    │   ├── ModelRequestError
    │   ├── UpstreamStatusError
    │   ├── EmptyModelOutputError
    │   └── SchemaViolationError
    └── OutputError
        ├── DatabaseError
        └── ExcelExportError
"""

from typing import Optional


class InvoicePipelineError(Exception):
    """
    Base exception for all invoice pipeline errors.

    Attributes:
        message: Human-readable error message.
        details: Dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoicePipelineError):
    """Base exception for document input errors."""
    pass


class StructuralParseError(InputError):
    """
    Raised when a document's container cannot be parsed as a PDF.

    The classifier turns this into an ``error`` verdict; it never escapes
    classify().
    """

    def __init__(self, reason: str):
        message = f"Failed to parse PDF: {reason}"
        details = {"reason": reason}
        super().__init__(message, details)


class DocumentNotFoundError(InputError):
    """Raised when a document id is unknown to the store."""

    def __init__(self, document_id: int):
        message = f"No document found with id {document_id}"
        details = {"document_id": document_id}
        super().__init__(message, details)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(InvoicePipelineError):
    """Base exception for misconfiguration. Always aborts a batch."""
    pass


class MissingCredentialError(ConfigurationError):
    """Raised when the remote backend is selected but no API key is set."""

    def __init__(self, env_var: str):
        message = f"{env_var} env var required for remote backend"
        details = {"env_var": env_var}
        super().__init__(message, details)


class UnsupportedBackendError(ConfigurationError):
    """Raised when a backend cannot serve model extraction."""

    def __init__(self, backend: str, reason: str = None):
        message = f"Backend '{backend}' cannot be used for model extraction"
        details = {"backend": backend, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# MODEL ERRORS
# =============================================================================

class ModelError(InvoicePipelineError):
    """Base exception for model endpoint errors."""
    pass


class EndpointUnreachableError(ModelError):
    """Raised when a local model server fails its health check."""

    def __init__(self, base_url: str, reason: str = None):
        message = f"Model server is not running at {base_url}"
        details = {"base_url": base_url, "reason": reason}
        super().__init__(message, details)


class ModelRequestError(ModelError):
    """Raised when a completion request fails in transport or times out."""

    def __init__(self, url: str, reason: str = None):
        message = f"Completion request to {url} failed"
        details = {"url": url, "reason": reason}
        super().__init__(message, details)


class UpstreamStatusError(ModelError):
    """Raised when the model endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str = None):
        message = f"LLM API error {status_code}"
        details = {"status_code": status_code, "body": body}
        self.status_code = status_code
        super().__init__(message, details)


class EmptyModelOutputError(ModelError):
    """Raised when the model returns no choices or blank content."""

    def __init__(self, reason: str = "Empty response from LLM"):
        super().__init__(reason, {})


class SchemaViolationError(ModelError):
    """
    Raised when model output cannot be reduced to the invoice schema.

    Attributes:
        raw: The offending text, kept for manual triage.
    """

    def __init__(self, reason: str, raw: Optional[str] = None):
        message = f"Failed to parse LLM response as InvoiceRecord: {reason}"
        details = {"raw": raw}
        self.reason = reason
        self.raw = raw
        super().__init__(message, details)


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoicePipelineError):
    """Base exception for persistence and export errors."""
    pass


class DatabaseError(OutputError):
    """Raised when database operations fail."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Database operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


class ExcelExportError(OutputError):
    """Raised when Excel export fails."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Failed to export Excel file: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


# Errors that indicate misconfiguration rather than a data problem
BATCH_FATAL_ERRORS = (ConfigurationError, EndpointUnreachableError)


__all__ = [
    'InvoicePipelineError',
    'InputError',
    'StructuralParseError',
    'DocumentNotFoundError',
    'ConfigurationError',
    'MissingCredentialError',
    'UnsupportedBackendError',
    'ModelError',
    'EndpointUnreachableError',
    'ModelRequestError',
    'UpstreamStatusError',
    'EmptyModelOutputError',
    'SchemaViolationError',
    'OutputError',
    'DatabaseError',
    'ExcelExportError',
    'BATCH_FATAL_ERRORS',
]
