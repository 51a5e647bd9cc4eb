import json

import pytest
import requests

from conftest import build_pdf
from invoice_pipeline.model_inference import Backend, BackendSettings, LlmSettings
from invoice_pipeline.orchestrator import ExtractionOrchestrator
from invoice_pipeline.output_handler import SQLiteDocumentStore


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, post_response=None, get_response=None, get_error=None):
        self.post_response = post_response
        self.get_response = get_response
        self.get_error = get_error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append(url)
        return self.post_response

    def get(self, url, timeout=None):
        if self.get_error:
            raise self.get_error
        return self.get_response

    def close(self):
        pass


def make_settings(backend):
    return LlmSettings(
        backend=backend,
        ollama=BackendSettings("http://localhost:11434/v1", "qwen3:8b"),
        cliproxy=BackendSettings("http://localhost:8317/v1", "gemini-2.5-flash"),
        remote=BackendSettings("https://api.example.com/v1", "gpt-4o-mini"),
    )


@pytest.fixture
def store(tmp_path, text_pdf, scanned_pdf):
    store = SQLiteDocumentStore(tmp_path / "documents.db")
    store.add_document("invoice.pdf", text_pdf)
    store.add_document("scan.pdf", scanned_pdf)
    store.add_document("broken.pdf", b"definitely not a pdf")
    return store


def test_heuristics_backend(store):
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.HEURISTICS))

    report = orchestrator.run()

    assert report.succeeded
    assert report.classification_counts == {'text': 1, 'scanned': 1, 'error': 1}
    [outcome] = report.outcomes
    assert outcome.source == "heuristic"
    assert outcome.filename == "invoice.pdf"
    assert outcome.record.invoice_no == "INV-2026-001"
    assert not outcome.fell_back
    assert report.coverage.total_samples == 1

    [extraction] = store.get_extractions()
    assert extraction.source == "heuristic"
    assert extraction.model_name is None


def test_llm_success(store):
    reply = json.dumps({"invoice_no": "INV-2026-001", "vendor": "SOFT SOURCE PTE LTD"})
    session = FakeSession(
        post_response=FakeResponse(200, {"choices": [{"message": {"role": "assistant", "content": reply}}]})
    )
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.CLIPROXY), session=session)

    report = orchestrator.run()

    [outcome] = report.outcomes
    assert outcome.source == "llm"
    assert outcome.coverage == (2, 10)
    assert session.posts == ["http://localhost:8317/v1/chat/completions"]
    assert store.get_extractions()[0].model_name == "gemini-2.5-flash"


def test_llm_failure_falls_back_per_document(store):
    session = FakeSession(post_response=FakeResponse(500, text="model crashed"))
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.CLIPROXY), session=session)

    report = orchestrator.run()

    [outcome] = report.outcomes
    assert outcome.source == "heuristic"
    assert outcome.fell_back
    assert "500" in outcome.llm_error
    assert outcome.record.invoice_no == "INV-2026-001"
    assert report.fallback_count == 1


def test_malformed_envelope_falls_back(store):
    session = FakeSession(post_response=FakeResponse(200, {"choices": {"x": 1}}))
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.CLIPROXY), session=session)

    report = orchestrator.run()

    assert not report.aborted
    [outcome] = report.outcomes
    assert outcome.source == "heuristic"
    assert outcome.fell_back
    assert outcome.record.invoice_no == "INV-2026-001"
    assert store.get_extractions()[0].source == "heuristic"


def test_missing_credential_aborts_before_any_document(store, monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.REMOTE))

    report = orchestrator.run()

    assert report.aborted
    assert "LLM_API_KEY" in report.abort_reason
    assert report.outcomes == []
    assert store.get_counts()['pending'] == 3


def test_unreachable_ollama_aborts_before_any_document(store):
    session = FakeSession(get_error=requests.ConnectionError("connection refused"))
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.OLLAMA), session=session)

    report = orchestrator.run()

    assert report.aborted
    assert session.posts == []
    assert store.get_counts()['pending'] == 3


def test_second_run_skips_extracted_documents(store):
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.HEURISTICS))
    orchestrator.run()

    assert orchestrator.run().outcomes == []
    assert len(orchestrator.run(only_unextracted=False).outcomes) == 1
    assert len(store.get_extractions()) == 2


def test_inspect_document(store):
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.HEURISTICS))

    inspection = orchestrator.inspect_document(1)

    assert inspection.verdict.is_text
    assert "INV-2026-001" in inspection.text_preview
    assert inspection.heuristic_record.invoice_no == "INV-2026-001"
    assert inspection.llm_record is None
    assert store.get_counts()['pending'] == 3


def test_inspect_reports_llm_misconfiguration(monkeypatch, text_pdf, tmp_path):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    store = SQLiteDocumentStore(tmp_path / "documents.db")
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.REMOTE))

    inspection = orchestrator.inspect_bytes("invoice.pdf", text_pdf)

    assert inspection.heuristic_record is not None
    assert "LLM_API_KEY" in inspection.llm_error


def test_inspect_scanned_bytes(tmp_path):
    store = SQLiteDocumentStore(tmp_path / "documents.db")
    orchestrator = ExtractionOrchestrator(store, llm_settings=make_settings(Backend.HEURISTICS))

    inspection = orchestrator.inspect_bytes("scan.pdf", build_pdf([{"image": True}]))

    assert inspection.verdict.is_scanned
    assert inspection.text_preview is None
    assert inspection.heuristic_record is None
