"""
Document Source Module.

The pipeline receives documents as raw bytes from a document source. Mail
retrieval lives outside this package; any collaborator exposing
``fetch_documents(query)`` can feed the store. DirectorySource is the local
implementation used by the CLI: it reads PDFs from a folder.

Usage:
    from invoice_pipeline.input_handler import DirectorySource

    source = DirectorySource("./invoices")
    for document in source.fetch_documents("*.pdf"):
        store.add_document(document.filename, document.data)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import content_hash

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class SourceDocument:
    """
    A document as delivered by a source.

    Attributes:
        id: Source-specific identifier.
        filename: Original filename.
        data: Raw PDF bytes.
    """
    id: str
    filename: str
    data: bytes

    def __repr__(self) -> str:
        return f"SourceDocument(id='{self.id}', filename='{self.filename}', bytes={len(self.data)})"


class DocumentSource(ABC):
    """Collaborator that retrieves documents matching a query."""

    @abstractmethod
    def fetch_documents(self, query: Optional[str] = None) -> List[SourceDocument]:
        pass


class DirectorySource(DocumentSource):
    """
    Reads PDF documents from a local directory.

    The query is a glob pattern evaluated inside the directory
    (default ``input.default_pattern``). Document ids are content hashes,
    so the same file found twice yields the same id.

    Example:
        >>> source = DirectorySource("./invoices")
        >>> docs = source.fetch_documents("2026-*.pdf")
    """

    PDF_EXTENSIONS = {'.pdf'}

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self.default_pattern = get_config("input.default_pattern", "*.pdf")

    def fetch_documents(self, query: Optional[str] = None) -> List[SourceDocument]:
        """
        Load every PDF matching ``query``.

        Args:
            query: Glob pattern; defaults to the configured pattern.

        Returns:
            Documents sorted by filename.

        Raises:
            FileNotFoundError: If the directory does not exist.
        """
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Input directory not found: {self.directory}")

        pattern = query or self.default_pattern
        paths = sorted(
            p for p in self.directory.glob(pattern)
            if p.is_file() and p.suffix.lower() in self.PDF_EXTENSIONS
        )

        if not paths:
            logger.warning(f"No PDF files matching '{pattern}' in: {self.directory}")
            return []

        documents = []
        for path in paths:
            data = path.read_bytes()
            documents.append(SourceDocument(id=content_hash(data), filename=path.name, data=data))

        logger.info(f"Found {len(documents)} PDF file(s) in {self.directory}")
        return documents
