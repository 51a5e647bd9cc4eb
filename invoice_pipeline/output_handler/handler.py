"""
Document Store Interface.

The orchestrator talks to storage only through this interface. The SQLite
implementation lives in database_handler.py.

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from invoice_pipeline.input_handler.verdict import ClassificationVerdict
from invoice_pipeline.model_inference.extraction_result import InvoiceRecord


# Allowed values of the extraction source column
EXTRACTION_SOURCES = ('llm', 'heuristic')


@dataclass
class StoredDocument:
    """
    A document row.

    Attributes:
        id: Store-assigned identifier.
        filename: Original filename.
        data: Raw PDF bytes.
        content_hash: SHA-256 of ``data``.
        content_type: text, scanned, error, or unknown before classification.
        extracted_text: Text content for ``text`` documents.
        classification_reason: Failure reason for ``error`` documents.
        is_processed: Whether a classification has been recorded.
    """
    id: int
    filename: str
    data: bytes = field(repr=False)
    content_hash: str = ""
    content_type: str = "unknown"
    extracted_text: Optional[str] = field(default=None, repr=False)
    classification_reason: Optional[str] = None
    is_processed: bool = False
    created_at: Optional[str] = None


@dataclass
class StoredExtraction:
    """An extraction row together with its document's filename."""
    id: int
    document_id: int
    filename: str
    source: str
    record: InvoiceRecord
    filled: int
    total: int
    model_name: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def coverage(self) -> str:
        return f"{self.filled}/{self.total}"


class DocumentStore(ABC):
    """Storage collaborator used by the orchestrator."""

    @abstractmethod
    def list_pending_documents(self) -> List[StoredDocument]:
        """Documents that have not been classified yet."""

    @abstractmethod
    def record_classification(self, document_id: int, verdict: ClassificationVerdict) -> None:
        """Persist the verdict of one document."""

    @abstractmethod
    def list_text_documents(self, only_unextracted: bool = False) -> List[StoredDocument]:
        """Documents classified as text."""

    @abstractmethod
    def record_extraction(
        self,
        document_id: int,
        record: InvoiceRecord,
        source: str,
        model_name: Optional[str] = None
    ) -> int:
        """Persist an extraction result; ``source`` is 'llm' or 'heuristic'."""

    @abstractmethod
    def get_document(self, document_id: int) -> StoredDocument:
        """Fetch one document; raises DocumentNotFoundError if unknown."""

    @abstractmethod
    def get_counts(self) -> Dict[str, int]:
        """Document counts by state (total, pending, text, scanned, error, extracted)."""
