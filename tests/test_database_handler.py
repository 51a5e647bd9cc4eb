import hashlib

import pytest

from invoice_pipeline.input_handler import ClassificationVerdict
from invoice_pipeline.model_inference import InvoiceRecord
from invoice_pipeline.output_handler import SQLiteDocumentStore
from invoice_pipeline.utils.exceptions import DocumentNotFoundError


@pytest.fixture
def store(tmp_path):
    return SQLiteDocumentStore(tmp_path / "documents.db")


def test_add_document_deduplicates_by_content(store):
    first_id, inserted = store.add_document("a.pdf", b"%PDF-1 one")
    second_id, inserted_again = store.add_document("copy-of-a.pdf", b"%PDF-1 one")
    other_id, _ = store.add_document("b.pdf", b"%PDF-1 two")

    assert inserted and not inserted_again
    assert first_id == second_id
    assert other_id != first_id
    assert store.get_document(first_id).content_hash == hashlib.sha256(b"%PDF-1 one").hexdigest()


def test_classification_lifecycle(store):
    text_id, _ = store.add_document("text.pdf", b"text bytes")
    scan_id, _ = store.add_document("scan.pdf", b"scan bytes")
    bad_id, _ = store.add_document("bad.pdf", b"bad bytes")

    assert [d.id for d in store.list_pending_documents()] == [text_id, scan_id, bad_id]

    store.record_classification(text_id, ClassificationVerdict.text("Invoice No: 1"))
    store.record_classification(scan_id, ClassificationVerdict.scanned())
    store.record_classification(bad_id, ClassificationVerdict.error("No /Root object"))

    assert store.list_pending_documents() == []
    document = store.get_document(text_id)
    assert document.content_type == "text"
    assert document.extracted_text == "Invoice No: 1"
    assert document.is_processed
    assert document.data == b"text bytes"
    assert store.get_document(bad_id).classification_reason == "No /Root object"
    assert [d.id for d in store.list_text_documents()] == [text_id]


def test_record_extraction_round_trip(store):
    doc_id, _ = store.add_document("text.pdf", b"text bytes")
    store.record_classification(doc_id, ClassificationVerdict.text("Invoice No: 1"))
    record = InvoiceRecord(invoice_no="INV-2026-001", currency="USD", total_amount="2540.00")

    store.record_extraction(doc_id, record, "llm", model_name="qwen3:8b")

    [extraction] = store.get_extractions(doc_id)
    assert extraction.filename == "text.pdf"
    assert extraction.source == "llm"
    assert extraction.model_name == "qwen3:8b"
    assert extraction.record == record
    assert extraction.coverage == "3/10"
    assert store.list_text_documents(only_unextracted=True) == []
    assert len(store.list_text_documents()) == 1


def test_record_extraction_validates_input(store):
    doc_id, _ = store.add_document("text.pdf", b"text bytes")

    with pytest.raises(ValueError):
        store.record_extraction(doc_id, InvoiceRecord(), "ocr")
    with pytest.raises(DocumentNotFoundError):
        store.record_extraction(999, InvoiceRecord(), "heuristic")


def test_unknown_document(store):
    with pytest.raises(DocumentNotFoundError):
        store.get_document(42)
    with pytest.raises(DocumentNotFoundError):
        store.record_classification(42, ClassificationVerdict.scanned())


def test_counts(store):
    text_id, _ = store.add_document("text.pdf", b"1")
    scan_id, _ = store.add_document("scan.pdf", b"2")
    store.add_document("pending.pdf", b"3")
    store.record_classification(text_id, ClassificationVerdict.text("x"))
    store.record_classification(scan_id, ClassificationVerdict.scanned())
    store.record_extraction(text_id, InvoiceRecord(), "heuristic")
    store.record_extraction(text_id, InvoiceRecord(), "llm")

    assert store.get_counts() == {
        'total': 3,
        'pending': 1,
        'text': 1,
        'scanned': 1,
        'error': 0,
        'extracted': 1,
    }
