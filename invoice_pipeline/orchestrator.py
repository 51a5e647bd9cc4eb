"""
Extraction Orchestrator Module.

This is the only place where the two extractors are composed. A batch runs
in three phases:

    1. Prepare: resolve the model endpoint and health-check it. Any failure
       here is a misconfiguration and aborts the batch before a single
       document is touched.
    2. Classify: every pending document gets a verdict (text, scanned or
       error) persisted through the store.
    3. Extract: every text document goes to the LLM unless the backend is
       ``heuristics``. A per-document LLM failure falls back to the
       heuristic extractor for that document only.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import requests

from config import get_config
from invoice_pipeline.utils.logger import get_logger, DocumentLoggerAdapter
from invoice_pipeline.utils.exceptions import (
    BATCH_FATAL_ERRORS,
    ConfigurationError,
    ModelError,
)
from invoice_pipeline.input_handler import ClassificationVerdict, DocumentClassifier, VerdictKind
from invoice_pipeline.heuristics import HeuristicExtractor
from invoice_pipeline.model_inference import Backend, InvoiceRecord, LlmExtractor, LlmSettings
from invoice_pipeline.output_handler import DocumentStore, StoredDocument
from invoice_pipeline.evaluation import CoverageReport

# Initialize module logger
logger = get_logger(__name__)


SOURCE_LLM = 'llm'
SOURCE_HEURISTIC = 'heuristic'


@dataclass
class DocumentOutcome:
    """
    Result of extracting one document.

    Attributes:
        document_id: Store id of the document.
        filename: Original filename.
        source: 'llm' or 'heuristic'.
        record: The persisted record.
        llm_error: The LLM failure that caused a heuristic fallback.
    """
    document_id: int
    filename: str
    source: str
    record: InvoiceRecord
    llm_error: Optional[str] = None

    @property
    def coverage(self) -> Tuple[int, int]:
        return self.record.coverage()

    @property
    def fell_back(self) -> bool:
        return self.llm_error is not None


@dataclass
class BatchReport:
    """
    Summary of one batch run.

    An aborted batch carries the reason and has touched no document.
    """
    backend: Backend
    classification_counts: Dict[str, int] = field(default_factory=dict)
    outcomes: List[DocumentOutcome] = field(default_factory=list)
    coverage: CoverageReport = field(default_factory=CoverageReport)
    aborted: bool = False
    abort_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return not self.aborted

    @property
    def fallback_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.fell_back)

    def count_by_source(self, source: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.source == source)


@dataclass
class DocumentInspection:
    """Diagnostics for a single document."""
    filename: str
    verdict: ClassificationVerdict
    text_preview: Optional[str] = None
    heuristic_record: Optional[InvoiceRecord] = None
    llm_record: Optional[InvoiceRecord] = None
    llm_error: Optional[str] = None


class ExtractionOrchestrator:
    """
    Runs classification and extraction over the documents in a store.

    Attributes:
        store: Storage collaborator.
        classifier: PDF classifier.
        heuristic_extractor: Regex extractor, also the fallback path.
        llm_settings: Backend selection and endpoint settings.
        session: HTTP session shared by every request of a batch.

    Example:
        >>> orchestrator = ExtractionOrchestrator(SQLiteDocumentStore())
        >>> report = orchestrator.run()
        >>> print(report.coverage.print_report())
    """

    def __init__(
        self,
        store: DocumentStore,
        classifier: Optional[DocumentClassifier] = None,
        heuristic_extractor: Optional[HeuristicExtractor] = None,
        llm_settings: Optional[LlmSettings] = None,
        session: Optional[requests.Session] = None
    ) -> None:
        self.store = store
        self.classifier = classifier or DocumentClassifier()
        self.heuristic_extractor = heuristic_extractor or HeuristicExtractor()
        self.llm_settings = llm_settings or LlmSettings.from_config()
        self.session = session

    @property
    def backend(self) -> Backend:
        return self.llm_settings.backend

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def prepare(self) -> Optional[LlmExtractor]:
        """
        Build the LLM extractor for the batch.

        Returns:
            LlmExtractor, or None for the ``heuristics`` backend.

        Raises:
            MissingCredentialError: If the remote API key is not set.
            EndpointUnreachableError: If the local server is not running.
        """
        if self.backend is Backend.HEURISTICS:
            logger.info("Heuristics backend selected, LLM extraction skipped")
            return None

        extractor = LlmExtractor.from_settings(self.llm_settings, session=self.session)
        extractor.ensure_available()
        return extractor

    def classify_pending(self) -> Dict[str, int]:
        """
        Classify every pending document and persist the verdicts.

        Returns:
            Counts per verdict kind.
        """
        counts = {kind.value: 0 for kind in VerdictKind}
        documents = self.store.list_pending_documents()
        logger.info(f"Classifying {len(documents)} pending document(s)")

        for document in documents:
            doc_log = DocumentLoggerAdapter(logger, document.id, document.filename)
            verdict = self.classifier.classify(document.data)
            self.store.record_classification(document.id, verdict)
            counts[verdict.kind.value] += 1
            doc_log.info(f"Classified as {verdict.kind.value}")

        logger.info(
            f"Classification complete: text={counts['text']}, "
            f"scanned={counts['scanned']}, error={counts['error']}"
        )
        return counts

    def extract_document(
        self,
        document: StoredDocument,
        llm: Optional[LlmExtractor]
    ) -> Optional[DocumentOutcome]:
        """
        Extract and persist one text document.

        Args:
            document: A document classified as text.
            llm: Batch LLM extractor, or None for heuristics only.

        Returns:
            DocumentOutcome, or None if the document has no stored text.
        """
        doc_log = DocumentLoggerAdapter(logger, document.id, document.filename)

        if not document.extracted_text:
            doc_log.warning("No extracted text despite content_type = text")
            return None

        text = document.extracted_text
        record = None
        source = SOURCE_HEURISTIC
        llm_error = None

        if llm is not None:
            try:
                record = llm.extract(text)
                source = SOURCE_LLM
            except ModelError as e:
                llm_error = str(e)
                doc_log.error(f"LLM extraction failed, falling back to heuristics: {e}")

        if record is None:
            record = self.heuristic_extractor.extract(text)

        model_name = llm.model_name if source == SOURCE_LLM else None
        self.store.record_extraction(document.id, record, source, model_name=model_name)

        filled, total = record.coverage()
        doc_log.info(
            f"{source} extraction: {filled}/{total} fields, "
            f"invoice_no={record.invoice_no}, vendor={record.vendor}, "
            f"total_amount={record.total_amount}, line_items={len(record.line_items)}"
        )

        return DocumentOutcome(
            document_id=document.id,
            filename=document.filename,
            source=source,
            record=record,
            llm_error=llm_error,
        )

    def run(self, only_unextracted: bool = True) -> BatchReport:
        """
        Run a full batch: prepare, classify, extract.

        Args:
            only_unextracted: Skip text documents that already have an
                extraction.

        Returns:
            BatchReport. Batch-fatal errors are reported, not raised.
        """
        report = BatchReport(backend=self.backend)

        counts = self.store.get_counts()
        logger.info(
            f"Store: {counts.get('total', 0)} documents, {counts.get('pending', 0)} pending, "
            f"{counts.get('text', 0)} text, {counts.get('scanned', 0)} scanned, "
            f"{counts.get('error', 0)} error, {counts.get('extracted', 0)} extracted"
        )

        try:
            llm = self.prepare()
        except BATCH_FATAL_ERRORS as e:
            logger.error(f"Batch aborted: {e}")
            report.aborted = True
            report.abort_reason = str(e)
            return report

        try:
            report.classification_counts = self.classify_pending()

            documents = self.store.list_text_documents(only_unextracted=only_unextracted)
            model = llm.model_name if llm is not None else "none"
            logger.info(
                f"Text documents for extraction: {len(documents)} "
                f"(backend={self.backend.value}, model={model})"
            )

            for document in documents:
                outcome = self.extract_document(document, llm)
                if outcome is None:
                    continue
                report.outcomes.append(outcome)
                report.coverage.add(outcome.record, outcome.source)
        finally:
            if llm is not None and self.session is None:
                llm.close()

        report.coverage.log_summary()
        if report.fallback_count:
            logger.warning(f"{report.fallback_count} document(s) fell back to heuristics")

        return report

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def inspect_document(self, document_id: int) -> DocumentInspection:
        """
        Re-run classification and both extractors on a stored document.

        Nothing is persisted.

        Raises:
            DocumentNotFoundError: If the id is unknown.
        """
        document = self.store.get_document(document_id)
        return self.inspect_bytes(document.filename, document.data)

    def inspect_bytes(self, filename: str, data: bytes) -> DocumentInspection:
        """
        Classify raw bytes and, for text, run both extractors.

        LLM failures, including misconfiguration, are reported on the
        inspection instead of raised.
        """
        preview_chars = int(get_config("output.inspect.preview_chars", 2000))

        verdict = self.classifier.classify(data)
        inspection = DocumentInspection(filename=filename, verdict=verdict)
        if not verdict.is_text:
            return inspection

        text = verdict.content or ""
        inspection.text_preview = text[:preview_chars]
        inspection.heuristic_record = self.heuristic_extractor.extract(text)

        if self.backend is Backend.HEURISTICS:
            return inspection

        llm = None
        try:
            llm = self.prepare()
            inspection.llm_record = llm.extract(text)
        except (ConfigurationError, ModelError) as e:
            inspection.llm_error = str(e)
            logger.error(f"LLM extraction failed for {filename}: {e}")
        finally:
            if llm is not None and self.session is None:
                llm.close()

        return inspection
