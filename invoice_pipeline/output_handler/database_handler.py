"""
Database Handler Module.

This module provides SQLite storage for documents and their extraction
results.

Tables:
    documents    One row per unique PDF (deduplicated by SHA-256), with
                 the classification verdict once recorded.
    extractions  One row per extractor run; a document may have several.

Connections are opened per operation.

Author: ML Engineering Team
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import content_hash, ensure_directory
from invoice_pipeline.utils.exceptions import DatabaseError, DocumentNotFoundError
from invoice_pipeline.input_handler.verdict import ClassificationVerdict, VerdictKind
from invoice_pipeline.model_inference.extraction_result import InvoiceRecord
from .handler import EXTRACTION_SOURCES, DocumentStore, StoredDocument, StoredExtraction

# Initialize module logger
logger = get_logger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    content_hash TEXT NOT NULL UNIQUE,
    pdf_data BLOB NOT NULL,
    content_type TEXT NOT NULL DEFAULT 'unknown',
    extracted_text TEXT,
    classification_reason TEXT,
    is_processed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    classified_at TEXT
);

CREATE TABLE IF NOT EXISTS extractions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id INTEGER NOT NULL REFERENCES documents(id),
    source TEXT NOT NULL,
    record_json TEXT NOT NULL,
    filled INTEGER NOT NULL,
    total INTEGER NOT NULL,
    model_name TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_documents_content_type ON documents (content_type);
CREATE INDEX IF NOT EXISTS idx_extractions_document ON extractions (document_id);
"""

_DOCUMENT_COLUMNS = (
    "id, filename, pdf_data, content_hash, content_type, extracted_text, "
    "classification_reason, is_processed, created_at"
)


class SQLiteDocumentStore(DocumentStore):
    """
    SQLite-backed document store.

    Attributes:
        db_path: Path to the SQLite database file.

    Example:
        >>> store = SQLiteDocumentStore("data/documents.db")
        >>> doc_id, inserted = store.add_document("inv.pdf", pdf_bytes)
        >>> store.get_counts()
        {'total': 1, 'pending': 1, 'text': 0, 'scanned': 0, 'error': 0, 'extracted': 0}
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None) -> None:
        """
        Initialize the store and create tables if needed.

        Args:
            db_path: Path to database file. If None, uses configuration.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            data_dir = Path(get_config("paths.data_dir", "data"))
            db_name = get_config("storage.database.name", "documents.db")
            self.db_path = data_dir / db_name

        ensure_directory(self.db_path.parent)
        self._create_tables()

        logger.info(f"SQLiteDocumentStore initialized (db: {self.db_path})")

    @contextmanager
    def _connect(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise DatabaseError(operation, str(e)) from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(operation, str(e)) from e
        finally:
            conn.close()

    def _create_tables(self) -> None:
        with self._connect("create tables") as conn:
            conn.executescript(SCHEMA)
        logger.debug("Database tables created/verified")

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> StoredDocument:
        return StoredDocument(
            id=row["id"],
            filename=row["filename"],
            data=bytes(row["pdf_data"]),
            content_hash=row["content_hash"],
            content_type=row["content_type"],
            extracted_text=row["extracted_text"],
            classification_reason=row["classification_reason"],
            is_processed=bool(row["is_processed"]),
            created_at=row["created_at"],
        )

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def add_document(self, filename: str, data: bytes) -> Tuple[int, bool]:
        """
        Store a document unless identical bytes are already stored.

        Args:
            filename: Original filename.
            data: Raw PDF bytes.

        Returns:
            Tuple of (document_id, inserted). ``inserted`` is False for a
            duplicate, in which case the existing id is returned.
        """
        digest = content_hash(data)

        with self._connect("add_document") as conn:
            row = conn.execute(
                "SELECT id FROM documents WHERE content_hash = ?", (digest,)
            ).fetchone()
            if row is not None:
                logger.debug(f"Duplicate document skipped: {filename} (id {row['id']})")
                return row["id"], False

            cursor = conn.execute(
                "INSERT INTO documents (filename, content_hash, pdf_data) VALUES (?, ?, ?)",
                (filename, digest, sqlite3.Binary(data)),
            )
            document_id = cursor.lastrowid

        logger.debug(f"Stored document {document_id}: {filename} ({len(data)} bytes)")
        return document_id, True

    def list_pending_documents(self) -> List[StoredDocument]:
        with self._connect("list_pending_documents") as conn:
            rows = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE is_processed = 0 ORDER BY id"
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def record_classification(self, document_id: int, verdict: ClassificationVerdict) -> None:
        """
        Persist a verdict and mark the document processed.

        Raises:
            DocumentNotFoundError: If the id is unknown.
        """
        with self._connect("record_classification") as conn:
            cursor = conn.execute(
                """
                UPDATE documents
                SET content_type = ?, extracted_text = ?, classification_reason = ?,
                    is_processed = 1, classified_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (verdict.kind.value, verdict.content, verdict.reason, document_id),
            )
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(document_id)

    def list_text_documents(self, only_unextracted: bool = False) -> List[StoredDocument]:
        """
        Documents classified as text.

        Args:
            only_unextracted: Skip documents that already have an extraction.
        """
        query = f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE content_type = ?"
        if only_unextracted:
            query += " AND id NOT IN (SELECT document_id FROM extractions)"
        query += " ORDER BY id"

        with self._connect("list_text_documents") as conn:
            rows = conn.execute(query, (VerdictKind.TEXT.value,)).fetchall()
        return [self._row_to_document(row) for row in rows]

    def get_document(self, document_id: int) -> StoredDocument:
        with self._connect("get_document") as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        return self._row_to_document(row)

    # -------------------------------------------------------------------------
    # Extractions
    # -------------------------------------------------------------------------

    def record_extraction(
        self,
        document_id: int,
        record: InvoiceRecord,
        source: str,
        model_name: Optional[str] = None
    ) -> int:
        """
        Persist an extraction result.

        Args:
            document_id: Document the record was extracted from.
            record: The extracted record.
            source: 'llm' or 'heuristic'.
            model_name: Model that produced an 'llm' record.

        Returns:
            The extraction row id.

        Raises:
            ValueError: If ``source`` is not a known extraction source.
            DocumentNotFoundError: If the document id is unknown.
        """
        if source not in EXTRACTION_SOURCES:
            raise ValueError(f"Unknown extraction source: {source!r}")

        filled, total = record.coverage()

        with self._connect("record_extraction") as conn:
            exists = conn.execute(
                "SELECT 1 FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            if exists is None:
                raise DocumentNotFoundError(document_id)

            cursor = conn.execute(
                """
                INSERT INTO extractions (document_id, source, record_json, filled, total, model_name)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (document_id, source, record.model_dump_json(), filled, total, model_name),
            )
            extraction_id = cursor.lastrowid

        logger.debug(f"Stored {source} extraction {extraction_id} for document {document_id}")
        return extraction_id

    def get_extractions(self, document_id: Optional[int] = None) -> List[StoredExtraction]:
        """
        Extraction rows with their document filenames, oldest first.

        Args:
            document_id: Restrict to one document. All rows if None.
        """
        query = """
        SELECT e.id, e.document_id, d.filename, e.source, e.record_json,
               e.filled, e.total, e.model_name, e.created_at
        FROM extractions e JOIN documents d ON d.id = e.document_id
        """
        params: Tuple = ()
        if document_id is not None:
            query += " WHERE e.document_id = ?"
            params = (document_id,)
        query += " ORDER BY e.id"

        with self._connect("get_extractions") as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            StoredExtraction(
                id=row["id"],
                document_id=row["document_id"],
                filename=row["filename"],
                source=row["source"],
                record=InvoiceRecord.model_validate_json(row["record_json"]),
                filled=row["filled"],
                total=row["total"],
                model_name=row["model_name"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_counts(self) -> Dict[str, int]:
        """
        Document counts by state.

        Returns:
            Dictionary with total, pending, text, scanned, error and
            extracted (documents with at least one extraction).
        """
        with self._connect("get_counts") as conn:
            total = conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
            pending = conn.execute(
                "SELECT COUNT(*) FROM documents WHERE is_processed = 0"
            ).fetchone()[0]
            by_type = {
                row[0]: row[1] for row in conn.execute(
                    "SELECT content_type, COUNT(*) FROM documents WHERE is_processed = 1 GROUP BY content_type"
                )
            }
            extracted = conn.execute(
                "SELECT COUNT(DISTINCT document_id) FROM extractions"
            ).fetchone()[0]

        return {
            'total': total,
            'pending': pending,
            'text': by_type.get(VerdictKind.TEXT.value, 0),
            'scanned': by_type.get(VerdictKind.SCANNED.value, 0),
            'error': by_type.get(VerdictKind.ERROR.value, 0),
            'extracted': extracted,
        }
